"""Extract SQL text, or a reused cursor reference, from client TNS payloads."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Callable, Optional

from .cursor_slots import CursorSlotTable
from .protocol import DEFAULT_VARIANT, TnsVariant
from .statement import Classification, Marker, Statement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestResult:
    classification: Classification
    reused_cursor: bool = False
    unresolved_slot: Optional[int] = None


def find_sql_keyword(payload: bytes, variant: TnsVariant = DEFAULT_VARIANT) -> Optional[int]:
    """Offset of the first statement keyword, ignoring connect descriptors."""
    if variant.connect_descriptor in payload:
        return None
    match = variant.keyword_pattern.search(payload)
    if match is None:
        return None
    return match.start()


def decode_sql_length(payload: bytes, keyword_at: int, variant: TnsVariant = DEFAULT_VARIANT) -> Optional[int]:
    """Read the length field in front of the keyword.

    ``None`` asks for a NUL scan instead. An unknown flag reads as length 0,
    which leaves the request without SQL text.
    """
    size = variant.length_field_size
    if keyword_at < size + 1:
        return None

    flag = payload[keyword_at - size - 1]
    field = payload[keyword_at - size:keyword_at]
    if flag == variant.little_endian_flag:
        length = struct.unpack("<I", field)[0]
    elif flag == variant.big_endian_flag:
        length = struct.unpack(">I", field)[0]
    elif flag == variant.one_byte_length_flag:
        length = field[-1]
    else:
        logger.debug("Unknown length flag %d before SQL keyword", flag)
        return 0

    available = len(payload) - keyword_at
    if length == variant.uncertain_sql_length or length > available:
        logger.debug("Can't determine SQL length (%d, %d bytes available)", length, available)
        return None
    return length


def scan_sql_text(payload: bytes, keyword_at: int) -> bytes:
    """Everything from the keyword up to the first NUL byte."""
    end = payload.find(b"\x00", keyword_at)
    if end == -1:
        return payload[keyword_at:]
    return payload[keyword_at:end]


def extract_sql_text(payload: bytes, keyword_at: int, variant: TnsVariant = DEFAULT_VARIANT) -> str:
    length = decode_sql_length(payload, keyword_at, variant)
    if length is None:
        raw = scan_sql_text(payload, keyword_at)
    else:
        raw = payload[keyword_at:keyword_at + length]
    return raw.decode("utf-8", errors="replace")


class RequestParser:
    """Classifies request-direction payloads of one analysis session."""

    def __init__(
        self,
        cursors: CursorSlotTable,
        fingerprint: Callable[[str], str],
        variant: TnsVariant = DEFAULT_VARIANT,
    ) -> None:
        self.cursors = cursors
        self.fingerprint = fingerprint
        self.variant = variant

    def parse(self, conversation: str, payload: bytes) -> RequestResult:
        keyword_at = find_sql_keyword(payload, self.variant)
        if keyword_at is not None:
            sql_text = extract_sql_text(payload, keyword_at, self.variant)
            self.cursors.remember_issued(conversation, sql_text)
            if not sql_text:
                logger.debug("Empty SQL text at offset %d in %s", keyword_at, conversation)
                return RequestResult(Marker.NO_STATEMENT)
            statement = Statement(sql_text, self.fingerprint(sql_text))
            logger.debug("SQL flow for %s: %s (%s)", conversation, statement.fingerprint, sql_text[:40])
            return RequestResult(statement)

        if self.variant.is_reused_cursor_marker(payload):
            slot = payload[self.variant.reused_cursor_slot_offset]
            sql_text = self.cursors.lookup(conversation, slot)
            if not sql_text:
                logger.debug("Reused cursor slot %d of %s was never bound", slot, conversation)
                return RequestResult(Marker.NO_STATEMENT, reused_cursor=True, unresolved_slot=slot)
            logger.debug("SQL text from reused cursor slot %d of %s", slot, conversation)
            return RequestResult(Statement(sql_text, self.fingerprint(sql_text)), reused_cursor=True)

        return RequestResult(Marker.NO_STATEMENT)


__all__ = [
    "RequestResult",
    "RequestParser",
    "find_sql_keyword",
    "decode_sql_length",
    "scan_sql_text",
    "extract_sql_text",
]
