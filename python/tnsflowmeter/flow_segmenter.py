"""Second-pass segmentation of a conversation's packets into SQL flows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .conversation import PacketRecord
from .listeners import FlowListener
from .sql_flow import SqlFlow
from .statement import Statement

logger = logging.getLogger(__name__)


@dataclass
class SqlFlowState:
    """Running counters of the segment being built.

    ``statement`` is ``None`` while idle. The counters cover every packet
    since the previous flush, not just the packets after the flow opened.
    """

    statement: Optional[Statement] = None
    segment_start: Optional[int] = None
    opened_at: Optional[int] = None
    packet_count: int = 0
    rtt_sum: int = 0
    reused_count: int = 0

    @property
    def is_open(self) -> bool:
        return self.statement is not None


@dataclass
class SegmentationCounters:
    flows: int = 0
    rejected_flows: int = 0
    abandoned_flows: int = 0
    unfinished_flows: int = 0

    def merge(self, other: "SegmentationCounters") -> None:
        self.flows += other.flows
        self.rejected_flows += other.rejected_flows
        self.abandoned_flows += other.abandoned_flows
        self.unfinished_flows += other.unfinished_flows


class FlowSegmenter:
    def __init__(self, conversation: str, listener: Optional[FlowListener] = None) -> None:
        self.conversation = conversation
        self._listener = listener
        self.state = SqlFlowState()
        self.counters = SegmentationCounters()

    def add_flow_listener(self, listener: FlowListener) -> None:
        self._listener = listener

    # ------------------------------------------------------------------
    def add_packet(self, packet: PacketRecord) -> Optional[SqlFlow]:
        state = self.state
        if state.segment_start is None:
            state.segment_start = packet.timestamp
        state.packet_count += 1

        statement = packet.statement
        if statement is not None:
            if state.is_open:
                # Pipelined request without a terminal packet in between
                self.counters.abandoned_flows += 1
                logger.debug(
                    "Flow %s in %s abandoned by %s",
                    state.statement.fingerprint,
                    self.conversation,
                    statement.fingerprint,
                )
            state.statement = statement
            state.opened_at = packet.timestamp
            if packet.reused_cursor:
                state.reused_count += 1
        elif state.is_open:
            state.rtt_sum += packet.rtt

        logger.debug(
            "%s seq=%d ack=%d rtt=%d sum=%d %s",
            state.statement.fingerprint if state.statement else "+",
            packet.seq,
            packet.ack,
            packet.rtt,
            state.rtt_sum,
            packet.sql_text[:5],
        )

        if self._is_terminal(packet):
            return self._flush(packet)
        return None

    def finish(self) -> None:
        if self.state.is_open:
            self.counters.unfinished_flows += 1
            logger.debug(
                "Flow %s in %s still open at end of capture",
                self.state.statement.fingerprint,
                self.conversation,
            )
        self.state = SqlFlowState()

    def process(self, packets: Iterable[PacketRecord]) -> SegmentationCounters:
        for packet in packets:
            self.add_packet(packet)
        self.finish()
        return self.counters

    # ------------------------------------------------------------------
    def _is_terminal(self, packet: PacketRecord) -> bool:
        statement = self.state.statement
        if statement is None:
            return False
        if packet.is_end_of_fetch:
            return True
        return packet.has_no_statement and len(statement.text) > 1 and not statement.is_query

    def _flush(self, packet: PacketRecord) -> Optional[SqlFlow]:
        state = self.state
        assert state.statement is not None and state.segment_start is not None
        flow = SqlFlow(
            statement=state.statement,
            conversation=self.conversation,
            opened_at=state.opened_at if state.opened_at is not None else state.segment_start,
            ended_at=packet.timestamp,
            packet_count=state.packet_count,
            network_ns=state.rtt_sum,
            reused_count=state.reused_count,
            app_ns=packet.timestamp - state.segment_start,
        )
        logger.debug(
            "summary: app=%d span=%d rtt=%d %s",
            flow.app_ns,
            flow.span_ns,
            flow.network_ns,
            flow.statement.fingerprint,
        )
        self.state = SqlFlowState()

        if flow.network_ns < 0:
            self.counters.rejected_flows += 1
            logger.warning(
                "Negative RTT sum %d for %s in %s, flow dropped",
                flow.network_ns,
                flow.statement.fingerprint,
                self.conversation,
            )
            return None

        self.counters.flows += 1
        if self._listener is not None:
            self._listener.on_flow_completed(flow)
        return flow


__all__ = ["SqlFlowState", "SegmentationCounters", "FlowSegmenter"]
