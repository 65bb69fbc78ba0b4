"""Probe two Roughtime servers at once and report their latency-adjusted drift."""

from __future__ import annotations

import argparse
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

from rtping.probe import (
    _EPOCH,
    _MICROSECOND,
    HASH_LENGTH,
    TimestampError,
    _exchange,
    _format_local,
    _format_utc,
    _open_socket,
    _resolve,
    _to_us,
    build_request,
    decode_reply,
    pad_nonce,
)

DEFAULT_HOST = "time.cloudflare.com:2003"
_RULE = "-" * 51


@dataclass(frozen=True)
class Probe:
    """One server's answer, adjusted for half the round trip."""

    host: str
    rtt: timedelta
    offset: int
    uncert: int
    midpoint_us: int

    @property
    def midpoint(self) -> datetime:
        return _EPOCH + timedelta(microseconds=self.midpoint_us)


def make_probe(
    host: str, nonce: bytes, data: bytes, send_wall: datetime, rtt: timedelta
) -> Probe:
    """Verify a reply and compute its offset (server minus client) and uncertainty."""
    reply = decode_reply(data, nonce)
    if not reply.merkle_ok:
        raise TimestampError(f"{host}: bad Merkle proof")
    half_rtt_us = (rtt // _MICROSECOND) // 2
    local_mid = send_wall + timedelta(microseconds=half_rtt_us)
    return Probe(
        host=host,
        rtt=rtt,
        offset=reply.midpoint_us - _to_us(local_mid),
        uncert=reply.radius_us + half_rtt_us,
        midpoint_us=reply.midpoint_us,
    )


def _run(host: str, nonce: bytes, gate: threading.Barrier) -> Probe:
    try:
        packet = build_request(nonce)
        address = _resolve(host)
        sock = _open_socket()
    except BaseException:
        gate.abort()
        raise
    with sock:
        try:
            gate.wait()
        except threading.BrokenBarrierError:
            pass
        data, send_wall, rtt = _exchange(sock, packet, address)
    return make_probe(host, nonce, data, send_wall, rtt)


def probe_pair(host1: str, host2: str, nonce: bytes) -> tuple[Probe, Probe]:
    """Send the same padded nonce to both hosts at the same moment."""
    gate = threading.Barrier(3)
    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(_run, host, nonce, gate) for host in (host1, host2)]
        try:
            gate.wait()
        except threading.BrokenBarrierError:
            pass
        first, second = (future.result() for future in futures)
    return first, second


def format_probe(probe: Probe) -> str:
    """Render one probe as a human-readable block."""
    midpoint = probe.midpoint
    return "\n".join(
        [
            f"server      : {probe.host}",
            f"RTT         : {probe.rtt.total_seconds() * 1e3:>8.3f} ms",
            f"midpoint    : {_format_utc(midpoint)}  (local {_format_local(midpoint)})",
            f"offset      : {probe.offset / 1e3:+9.3f} ms   (server – client)",
            f"uncertainty : ±{probe.uncert / 1e3:>7.3f} ms   (radius + RTT/2)",
        ]
    )


def format_summary(first: Probe, second: Probe) -> str:
    """Render the drift between two probes and the larger uncertainty."""
    drift = abs(first.offset - second.offset)
    bound = max(first.uncert, second.uncert)
    return "\n".join(
        [
            _RULE,
            f"clock drift (lat-adj) : {drift / 1e3:>7.3f} ms",
            f"uncertainty bound     : ±{bound / 1e3:>5.3f} ms (max of both)",
            _RULE,
        ]
    )


def _parse_nonce(text: str) -> bytes:
    try:
        raw = bytes.fromhex(text)
    except ValueError as exc:
        raise TimestampError(f"invalid hex: {exc}") from exc
    if len(raw) != HASH_LENGTH:
        raise TimestampError("nonce must be 32 bytes")
    return pad_nonce(raw)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="rtping-compare",
        description="Compare two Roughtime servers after latency compensation.",
    )
    parser.add_argument("nonce", help="64-char hex nonce")
    parser.add_argument("host1", nargs="?", default=DEFAULT_HOST, help="host:port")
    parser.add_argument("host2", nargs="?", default=DEFAULT_HOST, help="host:port")
    args = parser.parse_args(argv)
    try:
        nonce = _parse_nonce(args.nonce)
        first, second = probe_pair(args.host1, args.host2, nonce)
    except TimestampError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print(format_probe(first))
    print()
    print(format_probe(second))
    print()
    print(format_summary(first, second))
    return 0


if __name__ == "__main__":
    sys.exit(main())