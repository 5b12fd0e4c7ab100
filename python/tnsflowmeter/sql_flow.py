"""A single SQL execution reconstructed from a conversation's packets."""

from __future__ import annotations

from dataclasses import dataclass

from .statement import Statement


@dataclass(frozen=True)
class SqlFlow:
    statement: Statement
    conversation: str
    opened_at: int
    ended_at: int
    packet_count: int
    network_ns: int
    reused_count: int
    app_ns: int

    @property
    def span_ns(self) -> int:
        """Time from the packet that opened the flow to the terminal packet."""
        return self.ended_at - self.opened_at


__all__ = ["SqlFlow"]
