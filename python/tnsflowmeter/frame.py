"""Application-layer TCP segment handed from the capture reader to the analyzer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TnsFrame:
    src_ip: str
    src_port: int
    dst_ip: str
    dst_port: int
    seq: int
    ack: int
    timestamp: int
    payload: bytes

    def __len__(self) -> int:
        return len(self.payload)


__all__ = ["TnsFrame"]
