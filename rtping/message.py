"""Roughtime wire messages: tagged maps of 4-byte aligned values."""

from __future__ import annotations

import struct
from enum import Enum
from itertools import pairwise
from typing import Iterator, Mapping, Union

MIN_REQUEST_LENGTH = 1024


class MessageError(ValueError):
    """Raised for malformed Roughtime messages or invalid fields."""


class Tag(Enum):
    """Known Roughtime tags with their 4-byte wire values."""

    CERT = b"CERT"
    DELE = b"DELE"
    INDX = b"INDX"
    MAXT = b"MAXT"
    MIDP = b"MIDP"
    MINT = b"MINT"
    NONC = b"NONC"
    PAD = b"PAD\xff"
    PATH = b"PATH"
    PUBK = b"PUBK"
    RADI = b"RADI"
    ROOT = b"ROOT"
    SIG = b"SIG\x00"
    SREP = b"SREP"
    VER = b"VER\x00"

    @property
    def wire_value(self) -> bytes:
        return self.value


TagLike = Union[Tag, bytes]


def _wire(tag: TagLike) -> bytes:
    raw = tag.value if isinstance(tag, Tag) else bytes(tag)
    if len(raw) != 4:
        raise MessageError(f"tag must be 4 bytes, got {raw!r}")
    return raw


def _order(raw: bytes) -> int:
    return int.from_bytes(raw, "little")


def _header_size(count: int) -> int:
    return 4 if count == 0 else 8 * count


def _encoded_size(fields: Mapping[bytes, bytes]) -> int:
    return _header_size(len(fields)) + sum(len(value) for value in fields.values())


class RtMessage:
    """A Roughtime message: a set of tagged byte-string values."""

    def __init__(self, fields: Mapping[TagLike, bytes] | None = None) -> None:
        self._fields: dict[bytes, bytes] = {}
        for tag, value in (fields or {}).items():
            self.add_field(tag, value)

    def add_field(self, tag: TagLike, value: bytes) -> None:
        """Add a field; tags must be unique and values 4-byte aligned."""
        raw = _wire(tag)
        value = bytes(value)
        if raw in self._fields:
            raise MessageError(f"duplicate tag {raw!r}")
        if len(value) % 4:
            raise MessageError(f"value for {raw!r} is not a multiple of 4 bytes")
        self._fields[raw] = value

    def get_field(self, tag: TagLike) -> bytes | None:
        """Return the value stored under ``tag``, or None if absent."""
        return self._fields.get(_wire(tag))

    def clear(self) -> None:
        self._fields.clear()

    def items(self) -> Iterator[tuple[bytes, bytes]]:
        """Yield (tag, value) pairs in wire order."""
        yield from sorted(self._fields.items(), key=lambda item: _order(item[0]))

    def encoded_size(self) -> int:
        return _encoded_size(self._fields)

    def calculate_padding_length(self) -> int:
        """Length of the PAD value that brings a request to the minimum size."""
        with_pad = dict(self._fields)
        with_pad[Tag.PAD.value] = b""
        return max(0, MIN_REQUEST_LENGTH - _encoded_size(with_pad))

    def encode(self) -> bytes:
        entries = list(self.items())
        out = bytearray(struct.pack("<I", len(entries)))
        offset = 0
        for _, value in entries[:-1]:
            offset += len(value)
            out += struct.pack("<I", offset)
        for tag, _ in entries:
            out += tag
        for _, value in entries:
            out += value
        return bytes(out)

    @classmethod
    def from_bytes(cls, data: bytes) -> RtMessage:
        """Parse and validate an encoded message."""
        data = bytes(data)
        if len(data) < 4 or len(data) % 4:
            raise MessageError("message length must be a non-zero multiple of 4")
        (count,) = struct.unpack_from("<I", data)
        header = _header_size(count)
        if header > len(data):
            raise MessageError("message too short for its tag count")
        if count == 0:
            if len(data) != 4:
                raise MessageError("empty message carries trailing bytes")
            return cls()

        offsets = [0, *struct.unpack_from(f"<{count - 1}I", data, 4)]
        tags_start = 4 * count
        tags = [data[pos:pos + 4] for pos in range(tags_start, header, 4)]
        payload = data[header:]
        bounds = [*offsets, len(payload)]

        for start, end in pairwise(bounds):
            if start > end or start % 4:
                raise MessageError("invalid value offsets")
        if bounds[-2] > len(payload):
            raise MessageError("value offset beyond end of message")
        for left, right in pairwise(tags):
            if _order(left) >= _order(right):
                raise MessageError("tags are not strictly increasing")

        message = cls()
        for tag, (start, end) in zip(tags, pairwise(bounds)):
            message._fields[tag] = payload[start:end]
        return message

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, tag: object) -> bool:
        if not isinstance(tag, (Tag, bytes)):
            return False
        return _wire(tag) in self._fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RtMessage):
            return NotImplemented
        return self._fields == other._fields

    def __repr__(self) -> str:
        inner = ", ".join(f"{tag!r}: {len(value)} bytes" for tag, value in self.items())
        return f"RtMessage({{{inner}}})"