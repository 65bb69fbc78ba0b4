"""Latency-adjusted Roughtime timestamping against a pair of servers."""

from __future__ import annotations

import argparse
import socket
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence

from rtping.merkle import root_from_paths
from rtping.message import MessageError, RtMessage, Tag

DEFAULT_HOSTS = ("roughtime.cloudflare.com:2003", "time.cloudflare.com:2003")
HASH_LENGTH = 32
NONCE_LENGTH = 64
RECV_TIMEOUT = 3.0
MAX_REPLY = 4096

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


class TimestampError(Exception):
    """Raised when a Roughtime probe fails."""


@dataclass(frozen=True)
class ServerReply:
    """The fields of a server reply that a client uses."""

    radius_us: int
    midpoint_us: int
    index: int
    path: bytes
    root: bytes
    merkle_ok: bool

    @property
    def midpoint(self) -> datetime:
        return _EPOCH + timedelta(microseconds=self.midpoint_us)


@dataclass(frozen=True)
class BeaconMeta:
    host: str
    rtt_ms: float
    true_time: datetime
    offset_us: int
    uncert_us: int
    radius_us: int


@dataclass(frozen=True)
class Metadata:
    beacons: tuple[BeaconMeta, BeaconMeta]
    drift_us: int


@dataclass(frozen=True)
class TimestampResponse:
    input_hash: str
    timestamp: int
    metadata: Metadata


def _to_us(moment: datetime) -> int:
    return (moment - _EPOCH) // _MICROSECOND


def pad_nonce(hash_: bytes) -> bytes:
    """Zero-extend a 32-byte hash to a 64-byte nonce."""
    hash_ = bytes(hash_)
    if len(hash_) != HASH_LENGTH:
        raise ValueError(f"hash must be {HASH_LENGTH} bytes")
    return hash_ + bytes(NONCE_LENGTH - HASH_LENGTH)


def build_request(nonce: bytes) -> bytes:
    """Encode a padded Roughtime request carrying ``nonce``."""
    try:
        req = RtMessage()
        req.add_field(Tag.NONC, nonce)
        req.add_field(Tag.PAD, b"")
        pad = req.calculate_padding_length()
        req.clear()
        req.add_field(Tag.NONC, nonce)
        req.add_field(Tag.PAD, bytes(pad))
        return req.encode()
    except MessageError as exc:
        raise TimestampError(f"IO: {exc}") from exc


def _require(message: RtMessage, tag: Tag) -> bytes:
    value = message.get_field(tag)
    if value is None:
        raise TimestampError(f"reply lacks {tag.name}")
    return value


def _uint(message: RtMessage, tag: Tag, size: int) -> int:
    value = _require(message, tag)
    if len(value) < size:
        raise TimestampError(f"{tag.name} is shorter than {size} bytes")
    return int.from_bytes(value[:size], "little")


def decode_reply(data: bytes, nonce: bytes) -> ServerReply:
    """Parse a server reply and check its Merkle proof against ``nonce``."""
    try:
        resp = RtMessage.from_bytes(data)
        srep = RtMessage.from_bytes(_require(resp, Tag.SREP))
    except MessageError as exc:
        raise TimestampError(f"IO: {exc}") from exc

    radius_us = _uint(srep, Tag.RADI, 4)
    midpoint_us = _uint(srep, Tag.MIDP, 8)
    index = _uint(resp, Tag.INDX, 4)
    path = _require(resp, Tag.PATH)
    root = _require(srep, Tag.ROOT)
    try:
        computed = root_from_paths(index, nonce, path)
    except ValueError as exc:
        raise TimestampError(f"bad Merkle path: {exc}") from exc
    return ServerReply(
        radius_us=radius_us,
        midpoint_us=midpoint_us,
        index=index,
        path=path,
        root=root,
        merkle_ok=computed == root,
    )


def parse_reply(
    host: str, nonce: bytes, data: bytes, send_wall: datetime, rtt: timedelta
) -> BeaconMeta:
    """Turn a verified reply into latency-adjusted beacon data."""
    reply = decode_reply(data, nonce)
    if not reply.merkle_ok:
        raise TimestampError(f"{host}: Merkle path invalid")
    half_rtt_us = (rtt // _MICROSECOND) // 2
    true_time = send_wall + timedelta(microseconds=half_rtt_us)
    return BeaconMeta(
        host=host,
        rtt_ms=rtt.total_seconds() * 1e3,
        true_time=true_time,
        offset_us=reply.midpoint_us - _to_us(true_time),
        uncert_us=reply.radius_us + half_rtt_us,
        radius_us=reply.radius_us,
    )


def _resolve(host: str) -> tuple[str, int]:
    name, sep, port = host.rpartition(":")
    if not sep or not name or not port.isdigit():
        raise TimestampError(f"IO: invalid address {host!r}")
    try:
        infos = socket.getaddrinfo(name, int(port), socket.AF_INET, socket.SOCK_DGRAM)
    except OSError as exc:
        raise TimestampError(f"IO: {exc}") from exc
    if not infos:
        raise TimestampError(f"IO: no address for {host!r}")
    return infos[0][4]


def _open_socket() -> socket.socket:
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    except OSError as exc:
        raise TimestampError(f"IO: {exc}") from exc
    try:
        sock.bind(("0.0.0.0", 0))
        sock.settimeout(RECV_TIMEOUT)
    except OSError as exc:
        sock.close()
        raise TimestampError(f"IO: {exc}") from exc
    return sock


def _exchange(
    sock: socket.socket, packet: bytes, address: tuple[str, int]
) -> tuple[bytes, datetime, timedelta]:
    try:
        send_wall = datetime.now(timezone.utc)
        start = time.perf_counter_ns()
        sock.sendto(packet, address)
        data, _ = sock.recvfrom(MAX_REPLY)
        elapsed = time.perf_counter_ns() - start
    except OSError as exc:
        raise TimestampError(f"IO: {exc}") from exc
    return data, send_wall, timedelta(microseconds=elapsed // 1000)


def _probe(host: str, nonce: bytes, gate: threading.Barrier) -> BeaconMeta:
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
    return parse_reply(host, nonce, data, send_wall, rtt)


def get_timestamp(hash_: bytes) -> TimestampResponse:
    """Timestamp ``hash_`` against the default pair of servers."""
    return get_timestamp_custom(hash_, DEFAULT_HOSTS)


def get_timestamp_custom(hash_: bytes, hosts: Sequence[str]) -> TimestampResponse:
    """Probe two servers at once and combine their answers."""
    if len(hosts) != 2:
        raise ValueError("exactly two hosts are required")
    nonce = pad_nonce(hash_)
    gate = threading.Barrier(3)
    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(_probe, host, nonce, gate) for host in hosts]
        try:
            gate.wait()
        except threading.BrokenBarrierError:
            pass
        first, second = (future.result() for future in futures)

    median = first if first.true_time <= second.true_time else second
    return TimestampResponse(
        input_hash=bytes(hash_).hex(),
        timestamp=_to_us(median.true_time),
        metadata=Metadata(
            beacons=(first, second),
            drift_us=abs(first.offset_us - second.offset_us),
        ),
    )


def _fraction(moment: datetime) -> str:
    micros = moment.microsecond
    if micros == 0:
        return ""
    if micros % 1000 == 0:
        return f".{micros // 1000:03d}"
    return f".{micros:06d}"


def _format_utc(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return f"{moment:%Y-%m-%d %H:%M:%S}{_fraction(moment)} UTC"


def _format_local(moment: datetime) -> str:
    local = moment.astimezone()
    offset = local.utcoffset() or timedelta(0)
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(offset) // timedelta(minutes=1)
    return f"{local:%Y-%m-%d %H:%M:%S}{_fraction(local)} {sign}{minutes // 60:02d}:{minutes % 60:02d}"


def format_response(resp: TimestampResponse) -> str:
    """Render a response as a human-readable report."""
    lines = [
        f"input hash  : {resp.input_hash}",
        f"timestamp   : {resp.timestamp}",
    ]
    for number, beacon in enumerate(resp.metadata.beacons):
        lines += [
            f"-- Beacon {number}  {beacon.host}",
            f"   RTT          : {beacon.rtt_ms:.3f} ms",
            f"   true-time    : {_format_utc(beacon.true_time)}"
            f"  (local {_format_local(beacon.true_time)})",
            f"   offset       : {beacon.offset_us:+} µs",
            f"   uncert       : ±{beacon.uncert_us} µs  (radius + ½ RTT)",
        ]
    lines.append(f"drift (adj) : {resp.metadata.drift_us} µs")
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="rtping", description="Query two Roughtime servers with a fixed nonce."
    )
    parser.parse_args(argv)
    try:
        response = get_timestamp(bytes([42]) * HASH_LENGTH)
    except TimestampError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print(format_response(response))
    return 0


if __name__ == "__main__":
    sys.exit(main())