from __future__ import annotations

from tnsflowmeter import CursorSlotTable, Marker, ResponseParser
from tnsflowmeter.response_parser import dml_ack_slot, end_of_fetch_slot

CONVERSATION = "10.0.0.1:1521<->10.0.0.5:40000"


def _end_of_fetch(slot: int) -> bytes:
    return bytes(10) + b"\x7b\x05" + bytes(4) + bytes([slot]) + bytes(5) + b"ORA-01403: no data found\n"


def _data_response(subtype: int, slot_offset: int, slot: int, size: int = 40) -> bytes:
    payload = bytearray(size)
    payload[4] = 6
    payload[10] = subtype
    payload[slot_offset] = slot
    return bytes(payload)


def _parser():
    cursors = CursorSlotTable()
    cursors.remember_issued(CONVERSATION, "SELECT * FROM emp")
    return cursors, ResponseParser(cursors)


def test_end_of_fetch_binds_last_issued_sql():
    cursors, parser = _parser()

    assert parser.parse(CONVERSATION, _end_of_fetch(3)) is Marker.END_OF_FETCH
    assert cursors.lookup(CONVERSATION, 3) == "SELECT * FROM emp"


def test_end_of_fetch_without_flag_is_still_terminal():
    cursors, parser = _parser()

    assert parser.parse(CONVERSATION, b"\x00\x00ORA-01403") is Marker.END_OF_FETCH
    assert len(cursors) == 0


def test_ret_opi_param_binds_slot_at_21():
    cursors, parser = _parser()
    cursors.remember_issued(CONVERSATION, "INSERT INTO emp VALUES (:1)")

    assert parser.parse(CONVERSATION, _data_response(8, 21, 5)) is Marker.NO_STATEMENT
    assert cursors.lookup(CONVERSATION, 5) == "INSERT INTO emp VALUES (:1)"


def test_ret_status_binds_slot_at_28():
    cursors, parser = _parser()

    parser.parse(CONVERSATION, _data_response(4, 28, 12))

    assert cursors.lookup(CONVERSATION, 12) == "SELECT * FROM emp"


def test_rebinding_overwrites_recycled_slot():
    cursors, parser = _parser()
    parser.parse(CONVERSATION, _end_of_fetch(3))
    cursors.remember_issued(CONVERSATION, "DELETE FROM emp")

    parser.parse(CONVERSATION, _data_response(8, 21, 3))

    assert cursors.lookup(CONVERSATION, 3) == "DELETE FROM emp"


def test_authentication_and_other_packets_are_ignored():
    cursors, parser = _parser()
    auth = bytearray(_data_response(8, 21, 4))
    auth[30:34] = b"AUTH"
    not_data = bytearray(_data_response(8, 21, 4))
    not_data[4] = 12

    assert parser.parse(CONVERSATION, bytes(auth)) is Marker.NO_STATEMENT
    assert parser.parse(CONVERSATION, bytes(not_data)) is Marker.NO_STATEMENT
    assert parser.parse(CONVERSATION, _data_response(0x10, 21, 4)) is Marker.NO_STATEMENT
    assert len(cursors) == 0


def test_short_payloads_are_not_recognised():
    assert dml_ack_slot(bytes(20)) is None
    # Sub-type asks for @28 but the payload ends before it
    assert dml_ack_slot(_data_response(4, 20, 1, size=24)) is None
    assert end_of_fetch_slot(b"\x7b\x05\x00") is None


def test_no_binding_before_any_sql_was_issued():
    cursors = CursorSlotTable()
    parser = ResponseParser(cursors)

    assert parser.parse(CONVERSATION, _end_of_fetch(1)) is Marker.END_OF_FETCH
    assert cursors.lookup(CONVERSATION, 1) is None
