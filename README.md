# rtping

Query Roughtime beacons over UDP, check each reply's Merkle inclusion proof
against the nonce that was sent, and work out latency-adjusted true time,
clock offset and uncertainty.

The nonce sent is a 32-byte hash (for example a transaction hash), zero-padded
to 64 bytes, in a request padded to 1024 bytes.

## Install

    pip install .

For the tests:

    pip install ".[test]"
    pytest

## Commands

Timestamp a fixed sample hash (32 bytes of `0x2a`) against two default beacons
at once and print the result:

    rtping

Query one server for a 64-hex-character hash (the host defaults to
`roughtime.int08h.com:2002`); prints RTT, midpoint, radius and whether the
Merkle proof matched:

    rtping-single <64-hex-hash> [host:port]

Query two servers together and report each one's offset and uncertainty, then
the clock drift between them after latency compensation (both hosts default to
`time.cloudflare.com:2003`):

    rtping-compare <64-hex-nonce> [host1:port] [host2:port]

Each command prints `error: ...` to standard error and exits with status 1 when
a probe fails. Replies wait at most 3 seconds.

## Library use

    from rtping.probe import get_timestamp, format_response

    response = get_timestamp(bytes(32))
    print(format_response(response))

`get_timestamp_custom(hash_, hosts)` takes a pair of `host:port` strings in
place of the defaults. Both probes are sent at the same moment; the earlier
latency-adjusted true time becomes `TimestampResponse.timestamp` (microseconds
since the epoch), and the absolute difference between the two offsets is
reported as `metadata.drift_us`. Failures raise `TimestampError`.

Lower-level pieces:

- `rtping.message` — `RtMessage` and `Tag`, the Roughtime tag/value wire
  format; malformed messages raise `MessageError`.
- `rtping.merkle` — `hash_leaf`, `hash_nodes` and `root_from_paths` for
  checking inclusion proofs with SHA-512 (64-byte nodes).
- `rtping.probe` — `pad_nonce`, `build_request`, `decode_reply` (returns a
  `ServerReply`) and `parse_reply` (returns a `BeaconMeta`), for building
  requests and reading replies without touching the network.
- `rtping.single` — `format_report` for one server's reply.
- `rtping.compare` — `Probe`, `make_probe`, `probe_pair`, `format_probe` and
  `format_summary` for comparing two servers.

## What it does not do

Replies are checked only by their Merkle inclusion proof. The server's
signature and delegation certificate are not verified, so a reply is not
authenticated against any server public key.