"""Decide which side of a frame is the database and which is the application."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endpoints:
    db_ip: str
    db_port: int
    app_ip: str
    app_port: int
    is_request: bool

    @property
    def key(self) -> str:
        return f"{self.db_ip}:{self.db_port}<->{self.app_ip}:{self.app_port}"


def classify(
    src_ip: str,
    src_port: int,
    dst_ip: str,
    dst_port: int,
    db_ips: Sequence[str],
    db_port: int,
) -> Optional[Endpoints]:
    """Match the frame endpoints against the configured database addresses.

    Returns ``None`` when neither side belongs to a configured database.
    Direction comes from the port: a frame sent to ``db_port`` is a request.
    """
    is_request = dst_port == db_port
    for candidate in db_ips:
        candidate = candidate.strip()
        if src_ip == candidate:
            logger.debug("Database ip %s found in source", candidate)
            return Endpoints(src_ip, src_port, dst_ip, dst_port, is_request)
        if dst_ip == candidate:
            logger.debug("Database ip %s found in destination", candidate)
            return Endpoints(dst_ip, dst_port, src_ip, src_port, is_request)
    return None


__all__ = ["Endpoints", "classify"]
