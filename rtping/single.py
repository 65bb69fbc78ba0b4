"""Query a single Roughtime server with a transaction hash as the nonce."""

from __future__ import annotations

import argparse
import sys
from datetime import timedelta
from typing import Sequence

from rtping.probe import (
    HASH_LENGTH,
    ServerReply,
    TimestampError,
    _exchange,
    _format_local,
    _format_utc,
    _open_socket,
    _resolve,
    build_request,
    decode_reply,
    pad_nonce,
)

DEFAULT_HOST = "roughtime.int08h.com:2002"


def _parse_hash(text: str) -> bytes:
    try:
        raw = bytes.fromhex(text)
    except ValueError as exc:
        raise TimestampError(f"invalid hex: {exc}") from exc
    if len(raw) != HASH_LENGTH:
        raise TimestampError("hash must be 32 bytes (64 hex chars)")
    return raw


def _query(host: str, nonce: bytes) -> tuple[timedelta, ServerReply]:
    packet = build_request(nonce)
    address = _resolve(host)
    with _open_socket() as sock:
        data, _, rtt = _exchange(sock, packet, address)
    return rtt, decode_reply(data, nonce)


def format_report(host: str, rtt: timedelta, reply: ServerReply) -> str:
    """Render one server's answer as a human-readable report."""
    midpoint = reply.midpoint
    return "\n".join(
        [
            f"server      : {host}",
            f"RTT         : {rtt.total_seconds() * 1e3:.3f} ms",
            f"midpoint    : {_format_utc(midpoint)}  (local {_format_local(midpoint)})",
            f"radius      : {reply.radius_us} µs  (±{reply.radius_us / 1000.0:.3f} ms)",
            f"merkle-ok   : {'true' if reply.merkle_ok else 'false'}",
        ]
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="rtping-single",
        description="Send a transaction hash as nonce to one Roughtime server.",
    )
    parser.add_argument("hash", help="64-char hex transaction hash")
    parser.add_argument("host", nargs="?", default=DEFAULT_HOST, help="host:port")
    args = parser.parse_args(argv)
    try:
        nonce = pad_nonce(_parse_hash(args.hash))
        rtt, reply = _query(args.host, nonce)
    except TimestampError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print(format_report(args.host, rtt, reply))
    return 0


if __name__ == "__main__":
    sys.exit(main())