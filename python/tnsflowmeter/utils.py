"""Small formatting helpers shared by the reader and the report layer."""

from __future__ import annotations

import ipaddress
from typing import Union

STATS_SUFFIX = "_SQL_Stats.csv"
SAMPLES_SUFFIX = "_SQL_Samples.csv"

NANOS_PER_MILLI = 1_000_000
NANOS_PER_SECOND = 1_000_000_000


def format_ip(value: Union[bytes, bytearray, str]) -> str:
    """Convert a raw IP buffer into a printable string."""
    if isinstance(value, (bytes, bytearray)):
        if len(value) == 4:
            return ".".join(str(b & 0xFF) for b in value)
        if len(value) == 16:
            return str(ipaddress.IPv6Address(bytes(value)))
    return str(value)


def nanos_to_millis(value: int) -> float:
    return value / NANOS_PER_MILLI


__all__ = [
    "STATS_SUFFIX",
    "SAMPLES_SUFFIX",
    "NANOS_PER_MILLI",
    "NANOS_PER_SECOND",
    "format_ip",
    "nanos_to_millis",
]
