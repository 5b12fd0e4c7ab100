"""Exception types raised by the analyzer."""

from __future__ import annotations


class TnsFlowError(Exception):
    """Base class for analyzer failures."""


class CaptureError(TnsFlowError):
    """The capture file exists but cannot be read as pcap/pcapng."""


__all__ = ["TnsFlowError", "CaptureError"]
