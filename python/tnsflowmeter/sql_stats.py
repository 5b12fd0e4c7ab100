"""Per-fingerprint execution statistics accumulated from completed SQL flows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Set

import numpy as np

from .sql_flow import SqlFlow
from .utils import nanos_to_millis


def population_stddev(samples: List[float]) -> float:
    if not samples:
        return 0.0
    return float(np.std(np.asarray(samples, dtype=float)))


@dataclass
class SqlFingerprintStats:
    """Aggregate for one statement fingerprint.

    ``network_ms`` and ``app_ms`` hold one sample per execution; the running
    sums are kept alongside instead of being recomputed from the arrays.
    """

    fingerprint: str
    sql_text: str = ""
    network_ms: List[float] = field(default_factory=list)
    network_ms_sum: float = 0.0
    executions: int = 0
    packets: int = 0
    sessions: Set[str] = field(default_factory=set)
    reused_cursors: int = 0
    app_ms: List[float] = field(default_factory=list)
    app_ms_sum: float = 0.0

    def add_execution(
        self,
        sql_text: str,
        network_ns: int,
        conversation: str,
        packet_count: int,
        reused_count: int,
        app_ns: int,
    ) -> None:
        if not self.sql_text:
            self.sql_text = sql_text
        network = nanos_to_millis(network_ns)
        app = nanos_to_millis(app_ns)
        self.network_ms.append(network)
        self.network_ms_sum += network
        self.app_ms.append(app)
        self.app_ms_sum += app
        self.executions += 1
        self.packets += packet_count
        self.sessions.add(conversation)
        self.reused_cursors += reused_count

    def merge(self, other: "SqlFingerprintStats") -> None:
        if not self.sql_text:
            self.sql_text = other.sql_text
        self.network_ms.extend(other.network_ms)
        self.network_ms_sum += other.network_ms_sum
        self.app_ms.extend(other.app_ms)
        self.app_ms_sum += other.app_ms_sum
        self.executions += other.executions
        self.packets += other.packets
        self.sessions.update(other.sessions)
        self.reused_cursors += other.reused_cursors

    # Reporting view -------------------------------------------------------
    @property
    def session_count(self) -> int:
        return len(self.sessions)

    @property
    def mean_app_ms(self) -> float:
        if self.executions == 0:
            return 0.0
        return self.app_ms_sum / self.executions

    @property
    def mean_network_ms(self) -> float:
        if self.executions == 0:
            return 0.0
        return self.network_ms_sum / self.executions

    @property
    def app_stddev_ms(self) -> float:
        return population_stddev(self.app_ms)

    @property
    def network_stddev_ms(self) -> float:
        return population_stddev(self.network_ms)


class StatisticsAggregator:
    """Write-once-per-flow, read-many store of :class:`SqlFingerprintStats`."""

    def __init__(self) -> None:
        self._stats: Dict[str, SqlFingerprintStats] = {}

    def record(
        self,
        fingerprint: str,
        sql_text: str,
        network_ns: int,
        conversation: str,
        packet_count: int,
        reused_count: int,
        app_ns: int,
    ) -> SqlFingerprintStats:
        entry = self._stats.get(fingerprint)
        if entry is None:
            entry = SqlFingerprintStats(fingerprint)
            self._stats[fingerprint] = entry
        entry.add_execution(sql_text, network_ns, conversation, packet_count, reused_count, app_ns)
        return entry

    def on_flow_completed(self, flow: SqlFlow) -> None:
        self.record(
            flow.statement.fingerprint,
            flow.statement.text,
            flow.network_ns,
            flow.conversation,
            flow.packet_count,
            flow.reused_count,
            flow.app_ns,
        )

    def merge(self, other: "StatisticsAggregator") -> None:
        for fingerprint, partial in other._stats.items():
            entry = self._stats.get(fingerprint)
            if entry is None:
                entry = SqlFingerprintStats(fingerprint)
                self._stats[fingerprint] = entry
            entry.merge(partial)

    # Accessors --------------------------------------------------------------
    def get(self, fingerprint: str) -> SqlFingerprintStats:
        return self._stats[fingerprint]

    def total_app_ms(self) -> float:
        return sum(entry.app_ms_sum for entry in self._stats.values())

    def total_network_ms(self) -> float:
        return sum(entry.network_ms_sum for entry in self._stats.values())

    def total_executions(self) -> int:
        return sum(entry.executions for entry in self._stats.values())

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._stats

    def __iter__(self) -> Iterator[SqlFingerprintStats]:
        return iter(self._stats.values())

    def __len__(self) -> int:
        return len(self._stats)


__all__ = ["SqlFingerprintStats", "StatisticsAggregator", "population_stddev"]
