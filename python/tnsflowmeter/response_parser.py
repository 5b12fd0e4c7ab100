"""Recognise end-of-fetch and DML acknowledgements in server TNS payloads.

Responses never carry SQL text. What they do carry is the cursor slot the
server parked the statement in, and that is what lets a later request that
only names the slot be attributed to the right statement.
"""

from __future__ import annotations

import logging
from typing import Optional

from .cursor_slots import CursorSlotTable
from .protocol import DEFAULT_VARIANT, TnsVariant
from .statement import Classification, Marker

logger = logging.getLogger(__name__)


def end_of_fetch_slot(payload: bytes, variant: TnsVariant = DEFAULT_VARIANT) -> Optional[int]:
    flag_at = payload.find(variant.end_of_data_flag)
    if flag_at == -1:
        return None
    slot_at = flag_at + variant.end_of_data_slot_delta
    if slot_at >= len(payload):
        return None
    return payload[slot_at]


def dml_ack_slot(payload: bytes, variant: TnsVariant = DEFAULT_VARIANT) -> Optional[int]:
    """Slot number from a DATA response returning OPI parameters or a status."""
    if len(payload) <= variant.min_data_response_length:
        return None
    if variant.auth_marker in payload:
        return None
    if payload[variant.packet_type_offset] != variant.packet_type_data:
        return None

    subtype = payload[variant.subtype_offset]
    if subtype == variant.ret_opi_param:
        slot_at = variant.ret_opi_param_slot_offset
    elif subtype == variant.ret_status:
        slot_at = variant.ret_status_slot_offset
    else:
        return None
    if slot_at >= len(payload):
        return None
    return payload[slot_at]


class ResponseParser:
    def __init__(self, cursors: CursorSlotTable, variant: TnsVariant = DEFAULT_VARIANT) -> None:
        self.cursors = cursors
        self.variant = variant

    def parse(self, conversation: str, payload: bytes) -> Classification:
        if self.variant.end_of_fetch_error in payload:
            slot = end_of_fetch_slot(payload, self.variant)
            if slot is None:
                logger.debug("End of fetch in %s without a cursor slot flag", conversation)
            else:
                logger.debug("Cursor slot at end of fetch is %d (%s)", slot, conversation)
                self._bind(conversation, slot)
            return Marker.END_OF_FETCH

        slot = dml_ack_slot(payload, self.variant)
        if slot is not None:
            logger.debug("Cursor slot in DML acknowledgement is %d (%s)", slot, conversation)
            self._bind(conversation, slot)
        return Marker.NO_STATEMENT

    def _bind(self, conversation: str, slot: int) -> None:
        if not self.cursors.bind_last_issued(conversation, slot):
            logger.debug("No SQL issued yet in %s, slot %d left unbound", conversation, slot)


__all__ = ["ResponseParser", "end_of_fetch_slot", "dml_ack_slot"]
