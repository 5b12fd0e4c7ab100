"""Byte markers and offsets used to dissect Oracle Net (TNS) payloads.

None of this comes from a published grammar. The values were recovered from
captured traffic and hold for the common framing variants only, so they are
grouped in :class:`TnsVariant` and handed to the parsers instead of being
spelled out inline. A new protocol variant means a new ``TnsVariant``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Tuple

TNS_PACKET_DATA = 6

# Header byte at @10 of a DATA response
TTI_RET_OPI_PARAM = 8
TTI_RET_STATUS = 4

SQL_KEYWORDS = ("SELECT", "UPDATE", "INSERT", "WITH", "DELETE", "COMMIT", "ALTER")


def _keyword_pattern(keywords: Tuple[str, ...]) -> re.Pattern:
    alternatives = b"|".join(re.escape(word.encode("ascii")) for word in keywords)
    return re.compile(alternatives, re.IGNORECASE)


@dataclass(frozen=True)
class TnsVariant:
    """Named constants for one TNS framing variant."""

    name: str = "default"

    # Request side ----------------------------------------------------------
    keywords: Tuple[str, ...] = SQL_KEYWORDS
    connect_descriptor: bytes = b"DESCRIPTION"
    little_endian_flag: int = 254
    big_endian_flag: int = 0
    one_byte_length_flag: int = 1
    length_field_size: int = 4
    uncertain_sql_length: int = 0xFEFF
    # (packet length, packet type) at @3..@5 of a request executing an open cursor
    reused_cursor_markers: Tuple[bytes, ...] = (bytes([29, TNS_PACKET_DATA]), bytes([48, TNS_PACKET_DATA]))
    reused_cursor_marker_offset: int = 3
    reused_cursor_slot_offset: int = 13

    # Response side ---------------------------------------------------------
    end_of_fetch_error: bytes = b"ORA-01403"
    end_of_data_flag: bytes = bytes([0x7B, 0x05])
    end_of_data_slot_delta: int = 6
    auth_marker: bytes = b"AUTH"
    packet_type_offset: int = 4
    packet_type_data: int = TNS_PACKET_DATA
    min_data_response_length: int = 20
    subtype_offset: int = 10
    ret_opi_param: int = TTI_RET_OPI_PARAM
    ret_opi_param_slot_offset: int = 21
    ret_status: int = TTI_RET_STATUS
    ret_status_slot_offset: int = 28

    keyword_pattern: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "keyword_pattern", _keyword_pattern(self.keywords))

    def is_reused_cursor_marker(self, payload: bytes) -> bool:
        start = self.reused_cursor_marker_offset
        if len(payload) <= self.reused_cursor_slot_offset:
            return False
        return payload[start:start + 2] in self.reused_cursor_markers


DEFAULT_VARIANT = TnsVariant()


__all__ = [
    "TNS_PACKET_DATA",
    "TTI_RET_OPI_PARAM",
    "TTI_RET_STATUS",
    "SQL_KEYWORDS",
    "TnsVariant",
    "DEFAULT_VARIANT",
]
