"""One analysis run: streaming ingestion, then per-conversation segmentation."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .classifier import classify
from .config import AnalyzerConfig
from .conversation import Conversation, ConversationStore, PacketRecord
from .cursor_slots import CursorSlotTable
from .flow_segmenter import FlowSegmenter, SegmentationCounters
from .frame import TnsFrame
from .packet_reader import PacketReader
from .protocol import DEFAULT_VARIANT, TnsVariant
from .report import AnalysisReport, Diagnostics, build_report
from .request_parser import RequestParser
from .response_parser import ResponseParser
from .sql_stats import StatisticsAggregator
from .sqlid import sql_id

logger = logging.getLogger(__name__)


def segment_conversation(conversation: Conversation) -> Tuple[StatisticsAggregator, SegmentationCounters]:
    """Segment a single conversation into its own partial aggregate."""
    partial = StatisticsAggregator()
    segmenter = FlowSegmenter(conversation.key, partial)
    counters = segmenter.process(conversation)
    return partial, counters


class AnalysisSession:
    """Owns every piece of mutable state for one capture.

    Frames go in through :meth:`add_frame`/:meth:`ingest` in capture order.
    :meth:`segment` closes ingestion for good: cursor bindings and flow
    boundaries can depend on packets arriving arbitrarily late in the same
    conversation, so no flow is cut before the whole capture has been read.
    """

    def __init__(
        self,
        db_ips: Sequence[str],
        db_port: int,
        *,
        fingerprint: Callable[[str], str] = sql_id,
        variant: TnsVariant = DEFAULT_VARIANT,
        max_errors: Optional[int] = None,
    ) -> None:
        if not db_ips:
            raise ValueError("At least one database IP address is required")
        self.db_ips: List[str] = [ip.strip() for ip in db_ips]
        self.db_port = int(db_port)
        self.max_errors = max_errors

        self.conversations = ConversationStore()
        self.cursors = CursorSlotTable()
        self.aggregator = StatisticsAggregator()
        self.request_parser = RequestParser(self.cursors, fingerprint, variant)
        self.response_parser = ResponseParser(self.cursors, variant)

        self.db_bytes: Dict[str, int] = {}
        self.first_timestamp: Optional[int] = None
        self.last_timestamp: Optional[int] = None
        self.diagnostics = Diagnostics()
        self._segmented = False

    # Phase one ----------------------------------------------------------
    def add_frame(self, frame: TnsFrame) -> Optional[PacketRecord]:
        if self.conversations.closed:
            raise RuntimeError("Ingestion is closed, the session has been segmented")
        self.diagnostics.frames += 1

        endpoints = classify(
            frame.src_ip, frame.src_port, frame.dst_ip, frame.dst_port, self.db_ips, self.db_port
        )
        if endpoints is None:
            self.diagnostics.classification_failures += 1
            logger.warning(
                "Frame %s:%d -> %s:%d matches no database address, skipped",
                frame.src_ip,
                frame.src_port,
                frame.dst_ip,
                frame.dst_port,
            )
            return None

        key = endpoints.key
        self.db_bytes[endpoints.db_ip] = self.db_bytes.get(endpoints.db_ip, 0) + len(frame.payload)

        reused = False
        if endpoints.is_request:
            result = self.request_parser.parse(key, frame.payload)
            classification = result.classification
            reused = result.reused_cursor
            if result.unresolved_slot is not None:
                self.diagnostics.unresolved_cursors += 1
        else:
            classification = self.response_parser.parse(key, frame.payload)

        record = self.conversations.append(
            key,
            classification,
            frame.payload,
            seq=frame.seq,
            ack=frame.ack,
            timestamp=frame.timestamp,
            is_response=not endpoints.is_request,
            reused_cursor=reused,
        )
        if record.rtt < 0:
            self.diagnostics.negative_rtt_packets += 1
            logger.warning("Negative RTT %d ns in %s (seq=%d), capture out of order", record.rtt, key, frame.seq)

        if self.first_timestamp is None:
            self.first_timestamp = frame.timestamp
        self.last_timestamp = frame.timestamp

        logger.debug(
            "Added packet to %s: %s reused=%s rtt=%d",
            key,
            record.fingerprint or record.sql_text,
            reused,
            record.rtt,
        )
        return record

    def ingest(self, frames: Iterable[TnsFrame]) -> int:
        """Consume frames until exhausted or until the anomaly limit is exceeded."""
        count = 0
        for frame in frames:
            self.add_frame(frame)
            count += 1
            if self.max_errors is not None and self.diagnostics.ingestion_anomalies > self.max_errors:
                self.diagnostics.truncated = True
                logger.error(
                    "Stopping ingestion after %d anomalies (limit %d), reporting partial statistics",
                    self.diagnostics.ingestion_anomalies,
                    self.max_errors,
                )
                break
        return count

    # Phase two ----------------------------------------------------------
    def segment(self, workers: int = 1) -> StatisticsAggregator:
        if self._segmented:
            return self.aggregator
        self.conversations.close()

        conversations = list(self.conversations)
        if workers > 1 and len(conversations) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                partials = list(executor.map(segment_conversation, conversations))
        else:
            partials = [segment_conversation(conversation) for conversation in conversations]

        # Merge in first-seen order so the result does not depend on the worker count
        for partial, counters in partials:
            self.aggregator.merge(partial)
            self.diagnostics.segmentation.merge(counters)

        self._segmented = True
        logger.info(
            "Segmented %d conversations into %d flows (%d rejected)",
            len(conversations),
            self.diagnostics.segmentation.flows,
            self.diagnostics.segmentation.rejected_flows,
        )
        return self.aggregator

    def report(self, workers: int = 1) -> AnalysisReport:
        self.segment(workers)
        return build_report(
            self.aggregator,
            self.db_bytes,
            self.first_timestamp,
            self.last_timestamp,
            self.diagnostics,
        )


def analyze_capture(config: AnalyzerConfig, **session_options) -> AnalysisReport:
    session = AnalysisSession(
        config.db_ips,
        config.db_port,
        max_errors=config.max_errors,
        **session_options,
    )
    logger.info("Reading %s with filter %r", config.pcap_path, config.capture_filter)
    with PacketReader(config.pcap_path, config.db_ips, config.db_port) as reader:
        frames = session.ingest(reader)
        session.diagnostics.capture_truncated = reader.truncated
    logger.info("Ingested %d frames into %d conversations", frames, len(session.conversations))
    return session.report(config.workers)


__all__ = ["AnalysisSession", "analyze_capture", "segment_conversation"]
