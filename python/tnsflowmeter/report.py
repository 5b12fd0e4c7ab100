"""Per-fingerprint report rows, summary totals and their text/CSV renderings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .ancillary import IncrementalCSVWriter
from .flow_segmenter import SegmentationCounters
from .sql_stats import SqlFingerprintStats
from .utils import NANOS_PER_SECOND, SAMPLES_SUFFIX, STATS_SUFFIX

logger = logging.getLogger(__name__)

STATS_HEADER = (
    "sql_id",
    "ela_app_ms",
    "ela_net_ms",
    "executions",
    "ela_app_stddev_ms",
    "ela_app_per_exec_ms",
    "ela_net_stddev_ms",
    "ela_net_per_exec_ms",
    "packets",
    "sessions",
    "reused_cursors",
    "sql_text",
)
SAMPLES_HEADER = ("sql_id", "execution", "ela_app_ms", "ela_net_ms")

_TABLE_COLUMNS = (
    ("SQL ID", 15),
    ("Ela App (ms)", 14),
    ("Ela Net (ms)", 14),
    ("Exec", 7),
    ("Stddev App", 12),
    ("App/Exec", 12),
    ("Stddev Net", 12),
    ("Net/Exec", 12),
    ("P", 7),
    ("S", 5),
    ("RC", 6),
)


@dataclass
class Diagnostics:
    """Anomalies seen while ingesting and segmenting a capture."""

    frames: int = 0
    classification_failures: int = 0
    negative_rtt_packets: int = 0
    unresolved_cursors: int = 0
    truncated: bool = False
    capture_truncated: bool = False
    segmentation: SegmentationCounters = field(default_factory=SegmentationCounters)

    @property
    def ingestion_anomalies(self) -> int:
        return self.classification_failures + self.negative_rtt_packets + self.unresolved_cursors


@dataclass(frozen=True)
class ReportRow:
    fingerprint: str
    sql_text: str
    app_ms: float
    network_ms: float
    executions: int
    app_stddev_ms: float
    app_mean_ms: float
    network_stddev_ms: float
    network_mean_ms: float
    packets: int
    sessions: int
    reused_cursors: int

    @classmethod
    def from_stats(cls, stats: SqlFingerprintStats) -> "ReportRow":
        return cls(
            fingerprint=stats.fingerprint,
            sql_text=stats.sql_text,
            app_ms=stats.app_ms_sum,
            network_ms=stats.network_ms_sum,
            executions=stats.executions,
            app_stddev_ms=stats.app_stddev_ms,
            app_mean_ms=stats.mean_app_ms,
            network_stddev_ms=stats.network_stddev_ms,
            network_mean_ms=stats.mean_network_ms,
            packets=stats.packets,
            sessions=stats.session_count,
            reused_cursors=stats.reused_cursors,
        )

    def as_csv_row(self) -> Tuple[object, ...]:
        return (
            self.fingerprint,
            f"{self.app_ms:.6f}",
            f"{self.network_ms:.6f}",
            self.executions,
            f"{self.app_stddev_ms:.6f}",
            f"{self.app_mean_ms:.6f}",
            f"{self.network_stddev_ms:.6f}",
            f"{self.network_mean_ms:.6f}",
            self.packets,
            self.sessions,
            self.reused_cursors,
            self.sql_text,
        )


@dataclass
class AnalysisReport:
    rows: List[ReportRow]
    total_app_ms: float
    total_network_ms: float
    db_bytes: Dict[str, int]
    first_timestamp: Optional[int]
    last_timestamp: Optional[int]
    diagnostics: Diagnostics
    stats: Dict[str, SqlFingerprintStats] = field(default_factory=dict, repr=False)

    @property
    def span_seconds(self) -> float:
        if self.first_timestamp is None or self.last_timestamp is None:
            return 0.0
        return (self.last_timestamp - self.first_timestamp) / NANOS_PER_SECOND

    def row(self, fingerprint: str) -> ReportRow:
        for row in self.rows:
            if row.fingerprint == fingerprint:
                return row
        raise KeyError(fingerprint)

    def mean_network_by_fingerprint(self) -> Dict[str, float]:
        """Bar chart input: mean network time per execution for each statement."""
        return {row.fingerprint: row.network_mean_ms for row in self.rows}

    def samples(self, fingerprint: str) -> Tuple[List[float], List[float]]:
        """Per-execution (application, network) samples in milliseconds."""
        entry = self.stats[fingerprint]
        return list(entry.app_ms), list(entry.network_ms)


def build_report(
    stats: Iterable[SqlFingerprintStats],
    db_bytes: Dict[str, int],
    first_timestamp: Optional[int],
    last_timestamp: Optional[int],
    diagnostics: Diagnostics,
) -> AnalysisReport:
    entries = {entry.fingerprint: entry for entry in stats}
    rows = sorted(
        (ReportRow.from_stats(entry) for entry in entries.values()),
        key=lambda row: (-row.app_ms, row.fingerprint),
    )
    return AnalysisReport(
        rows=rows,
        total_app_ms=sum(entry.app_ms_sum for entry in entries.values()),
        total_network_ms=sum(entry.network_ms_sum for entry in entries.values()),
        db_bytes=dict(db_bytes),
        first_timestamp=first_timestamp,
        last_timestamp=last_timestamp,
        diagnostics=diagnostics,
        stats=entries,
    )


def format_timestamp(nanos: Optional[int]) -> str:
    if nanos is None:
        return "-"
    moment = datetime.fromtimestamp(nanos / NANOS_PER_SECOND, tz=timezone.utc)
    return moment.isoformat()


def format_report(report: AnalysisReport) -> str:
    lines = ["".join(title.ljust(width) for title, width in _TABLE_COLUMNS)]
    lines.append("-" * sum(width for _, width in _TABLE_COLUMNS))
    for row in report.rows:
        values = (
            row.fingerprint,
            f"{row.app_ms:.3f}",
            f"{row.network_ms:.3f}",
            str(row.executions),
            f"{row.app_stddev_ms:.3f}",
            f"{row.app_mean_ms:.3f}",
            f"{row.network_stddev_ms:.3f}",
            f"{row.network_mean_ms:.3f}",
            str(row.packets),
            str(row.sessions),
            str(row.reused_cursors),
        )
        lines.append("".join(value.ljust(width) for value, (_, width) in zip(values, _TABLE_COLUMNS)))

    lines.append("")
    lines.append(f"Sum App Time(s): {report.total_app_ms / 1000:.6f}")
    lines.append(f"Sum Net Time(s): {report.total_network_ms / 1000:.6f}")
    lines.append("")
    for ip, count in sorted(report.db_bytes.items()):
        lines.append(f"{ip} {count // 1024} kb")
    lines.append("")
    lines.append(
        f"Time frame: {format_timestamp(report.first_timestamp)} <=> {format_timestamp(report.last_timestamp)}"
    )
    lines.append(f"Time frame duration (s): {report.span_seconds:.6f}")

    diagnostics = report.diagnostics
    if diagnostics.truncated:
        lines.append("")
        lines.append("WARNING: ingestion stopped early, statistics cover a partial capture")
    if diagnostics.capture_truncated:
        lines.append("")
        lines.append("WARNING: capture file ends with an incomplete record")
    return "\n".join(lines)


def write_csv_reports(report: AnalysisReport, output_dir: Path, prefix: str) -> Tuple[Path, Path]:
    """Write the statistics table and the per-execution samples as CSV."""
    output_dir = Path(output_dir)
    stats_path = output_dir / f"{prefix}{STATS_SUFFIX}"
    samples_path = output_dir / f"{prefix}{SAMPLES_SUFFIX}"

    stats_writer = IncrementalCSVWriter(stats_path, STATS_HEADER)
    stats_writer.reset()
    stats_writer.write_header()
    stats_writer.append_rows(row.as_csv_row() for row in report.rows)

    samples_writer = IncrementalCSVWriter(samples_path, SAMPLES_HEADER)
    samples_writer.reset()
    samples_writer.write_header()
    for row in report.rows:
        app_samples, network_samples = report.samples(row.fingerprint)
        samples_writer.append_rows(
            (row.fingerprint, index, f"{app:.6f}", f"{network:.6f}")
            for index, (app, network) in enumerate(zip(app_samples, network_samples))
        )

    logger.info("Wrote %d statement rows to %s", len(report.rows), stats_path)
    return stats_path, samples_path


__all__ = [
    "Diagnostics",
    "ReportRow",
    "AnalysisReport",
    "STATS_HEADER",
    "SAMPLES_HEADER",
    "build_report",
    "format_report",
    "format_timestamp",
    "write_csv_reports",
]
