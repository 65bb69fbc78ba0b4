"""Latency-adjusted Roughtime querier: wire messages, Merkle proofs and probes."""

__version__ = "0.2.0"