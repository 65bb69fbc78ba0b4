"""Merkle inclusion proofs over SHA-512, as used by Roughtime servers."""

from __future__ import annotations

import hashlib

HASH_LENGTH = 64
_LEAF_TWEAK = b"\x00"
_NODE_TWEAK = b"\x01"


def hash_leaf(data: bytes) -> bytes:
    """Hash a leaf of the tree."""
    return hashlib.sha512(_LEAF_TWEAK + bytes(data)).digest()


def hash_nodes(left: bytes, right: bytes) -> bytes:
    """Hash two child nodes into their parent."""
    return hashlib.sha512(_NODE_TWEAK + bytes(left) + bytes(right)).digest()


def root_from_paths(index: int, data: bytes, path: bytes) -> bytes:
    """Recompute the tree root from a leaf, its index and its sibling path."""
    path = bytes(path)
    if index < 0:
        raise ValueError("leaf index must not be negative")
    if len(path) % HASH_LENGTH:
        raise ValueError(f"path length must be a multiple of {HASH_LENGTH}")
    node = hash_leaf(data)
    for start in range(0, len(path), HASH_LENGTH):
        sibling = path[start:start + HASH_LENGTH]
        node = hash_nodes(node, sibling) if index & 1 == 0 else hash_nodes(sibling, node)
        index >>= 1
    return node