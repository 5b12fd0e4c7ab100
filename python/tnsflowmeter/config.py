"""Run configuration handed to the analysis session by the command line."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

_OR_TOKEN = re.compile(r"or", re.IGNORECASE)


def parse_db_ips(value: str) -> List[str]:
    """Split ``"10.0.0.1 or 10.0.0.2"`` into its addresses."""
    ips = [part.strip() for part in _OR_TOKEN.split(value) if part.strip()]
    if not ips:
        raise ValueError(f"No database IP address in {value!r}")
    for ip in ips:
        try:
            ipaddress.ip_address(ip)
        except ValueError as exc:
            raise ValueError(f"Invalid database IP address: {ip!r}") from exc
    return ips


@dataclass
class AnalyzerConfig:
    pcap_path: Path
    db_ips: List[str]
    db_port: int
    debug: bool = False
    output_dir: Optional[Path] = None
    workers: int = 1
    max_errors: Optional[int] = None

    @classmethod
    def from_expression(cls, pcap_path, db_ip_expression: str, db_port: int, **kwargs) -> "AnalyzerConfig":
        config = cls(
            pcap_path=Path(pcap_path),
            db_ips=parse_db_ips(db_ip_expression),
            db_port=int(db_port),
            **kwargs,
        )
        config.validate()
        return config

    @property
    def capture_filter(self) -> str:
        hosts = " or ".join(self.db_ips)
        return f"host {hosts} and port {self.db_port}"

    def validate(self) -> None:
        if not self.db_ips:
            raise ValueError("At least one database IP address is required")
        if not 0 < self.db_port < 65536:
            raise ValueError(f"Invalid database port: {self.db_port}")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.max_errors is not None and self.max_errors < 0:
            raise ValueError("max_errors must not be negative")


__all__ = ["AnalyzerConfig", "parse_db_ips"]
