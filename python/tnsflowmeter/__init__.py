"""Passive Oracle Net (TNS) analyzer: per-statement timing reconstructed from captures."""

from .classifier import Endpoints, classify
from .config import AnalyzerConfig, parse_db_ips
from .conversation import Conversation, ConversationStore, PacketRecord
from .cursor_slots import CursorSlotTable
from .errors import CaptureError, TnsFlowError
from .flow_segmenter import FlowSegmenter, SegmentationCounters, SqlFlowState
from .frame import TnsFrame
from .packet_reader import PacketReader
from .protocol import DEFAULT_VARIANT, TnsVariant
from .report import AnalysisReport, Diagnostics, ReportRow, format_report, write_csv_reports
from .request_parser import RequestParser, RequestResult
from .response_parser import ResponseParser
from .session import AnalysisSession, analyze_capture
from .sql_flow import SqlFlow
from .sql_stats import SqlFingerprintStats, StatisticsAggregator
from .sqlid import sql_id
from .statement import Marker, Statement

__all__ = [
    "Endpoints",
    "classify",
    "AnalyzerConfig",
    "parse_db_ips",
    "Conversation",
    "ConversationStore",
    "PacketRecord",
    "CursorSlotTable",
    "CaptureError",
    "TnsFlowError",
    "FlowSegmenter",
    "SegmentationCounters",
    "SqlFlowState",
    "TnsFrame",
    "PacketReader",
    "DEFAULT_VARIANT",
    "TnsVariant",
    "AnalysisReport",
    "Diagnostics",
    "ReportRow",
    "format_report",
    "write_csv_reports",
    "RequestParser",
    "RequestResult",
    "ResponseParser",
    "AnalysisSession",
    "analyze_capture",
    "SqlFlow",
    "SqlFingerprintStats",
    "StatisticsAggregator",
    "sql_id",
    "Marker",
    "Statement",
]
