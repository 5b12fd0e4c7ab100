"""Listener interfaces for flow segmentation events."""

from __future__ import annotations

from typing import Protocol

from .sql_flow import SqlFlow


class FlowListener(Protocol):
    def on_flow_completed(self, flow: SqlFlow) -> None:  # pragma: no cover - protocol definition
        ...


__all__ = ["FlowListener"]
