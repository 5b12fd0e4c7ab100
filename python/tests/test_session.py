from __future__ import annotations

import struct
import unittest

import pytest

from tnsflowmeter import AnalysisSession, Marker, TnsFrame, sql_id

DB = ("10.0.0.1", 1521)
APP_A = ("10.0.0.5", 40000)
APP_B = ("10.0.0.6", 40001)
MS = 1_000_000

SELECT_SQL = "SELECT ename FROM emp WHERE empno = :1"
INSERT_SQL = "INSERT INTO audit_log VALUES (:1, :2)"


def _sql_payload(sql: str) -> bytes:
    body = sql.encode()
    return bytes([0, 0, 1, 0, 6, 0, 0, 0, 0, 0, 0x11, 0x69, 0x20, 254]) + struct.pack("<I", len(body)) + body + b"\x00\x01"


def _reused_payload(slot: int) -> bytes:
    return b"\x00\x00\x00" + bytes([29, 6]) + bytes(8) + bytes([slot]) + bytes(15)


def _end_of_fetch(slot: int) -> bytes:
    return bytes(10) + b"\x7b\x05" + bytes(4) + bytes([slot]) + bytes(5) + b"ORA-01403: no data found\n"


def _dml_ack(slot: int) -> bytes:
    payload = bytearray(40)
    payload[4] = 6
    payload[10] = 8
    payload[21] = slot
    return bytes(payload)


def _request(app, payload, ts_ms):
    return TnsFrame(app[0], app[1], DB[0], DB[1], seq=1, ack=1, timestamp=int(ts_ms * MS), payload=payload)


def _response(app, payload, ts_ms):
    return TnsFrame(DB[0], DB[1], app[0], app[1], seq=1, ack=1, timestamp=int(ts_ms * MS), payload=payload)


def _conversation(app, offset_ms=0.0):
    """SELECT, fetch end in slot 3, re-execution through slot 3, then a DML."""
    return [
        _request(app, _sql_payload(SELECT_SQL), offset_ms + 0),
        _response(app, _end_of_fetch(3), offset_ms + 2),
        _request(app, _reused_payload(3), offset_ms + 10),
        _response(app, _end_of_fetch(3), offset_ms + 11),
        _request(app, _sql_payload(INSERT_SQL), offset_ms + 20),
        _response(app, _dml_ack(4), offset_ms + 23),
        _request(app, _reused_payload(4), offset_ms + 30),
        _response(app, _dml_ack(4), offset_ms + 31),
    ]


class AnalysisSessionTest(unittest.TestCase):
    def test_cursor_reuse_round_trip(self) -> None:
        session = AnalysisSession([DB[0]], DB[1])
        session.ingest(_conversation(APP_A))
        report = session.report()

        select = report.row(sql_id(SELECT_SQL))
        self.assertEqual(select.executions, 2)
        self.assertEqual(select.reused_cursors, 1)
        self.assertEqual(select.sessions, 1)
        self.assertAlmostEqual(select.app_ms, 2.0 + 1.0)
        self.assertAlmostEqual(select.network_ms, 2.0 + 1.0)

        insert = report.row(sql_id(INSERT_SQL))
        self.assertEqual(insert.executions, 2)
        self.assertEqual(insert.reused_cursors, 1)
        self.assertAlmostEqual(insert.app_ms, 3.0 + 1.0)

        records = session.conversations.get("10.0.0.1:1521<->10.0.0.5:40000").packets
        self.assertTrue(records[2].reused_cursor)
        self.assertEqual(records[2].fingerprint, sql_id(SELECT_SQL))
        self.assertIs(records[1].classification, Marker.END_OF_FETCH)
        self.assertEqual(records[1].sql_text, "SQL_END")
        self.assertEqual(records[1].fingerprint, "")

    def test_report_totals_bytes_and_time_span(self) -> None:
        frames = _conversation(APP_A)
        session = AnalysisSession([DB[0]], DB[1])
        session.ingest(frames)
        report = session.report()

        self.assertEqual(report.db_bytes, {DB[0]: sum(len(frame.payload) for frame in frames)})
        self.assertEqual(report.first_timestamp, 0)
        self.assertEqual(report.last_timestamp, 31 * MS)
        self.assertAlmostEqual(report.span_seconds, 0.031)
        self.assertAlmostEqual(report.total_app_ms, sum(row.app_ms for row in report.rows))
        self.assertAlmostEqual(report.total_network_ms, sum(row.network_ms for row in report.rows))
        self.assertEqual(report.rows[0].fingerprint, sql_id(INSERT_SQL))
        app_samples, network_samples = report.samples(sql_id(SELECT_SQL))
        self.assertEqual(len(app_samples), 2)
        self.assertEqual(len(network_samples), 2)

    def test_session_count_spans_conversations(self) -> None:
        session = AnalysisSession([DB[0]], DB[1])
        session.ingest(_conversation(APP_A) + _conversation(APP_B, offset_ms=100))
        report = session.report()

        self.assertEqual(report.row(sql_id(SELECT_SQL)).sessions, 2)
        self.assertEqual(report.row(sql_id(SELECT_SQL)).executions, 4)

    def test_parallel_segmentation_matches_serial(self) -> None:
        frames = []
        for index in range(6):
            app = ("10.0.1.%d" % (index + 10), 41000 + index)
            frames.extend(_conversation(app, offset_ms=index * 0.5))
        frames.sort(key=lambda frame: frame.timestamp)

        serial = AnalysisSession([DB[0]], DB[1])
        serial.ingest(frames)
        parallel = AnalysisSession([DB[0]], DB[1])
        parallel.ingest(frames)

        self.assertEqual(serial.report(workers=1).rows, parallel.report(workers=4).rows)

    def test_unclassified_frames_are_skipped_and_counted(self) -> None:
        session = AnalysisSession([DB[0]], DB[1])
        stray = TnsFrame("192.0.2.1", 5000, "192.0.2.2", 1521, 1, 1, 0, _sql_payload(SELECT_SQL))

        with self.assertLogs("tnsflowmeter.session", level="WARNING"):
            self.assertIsNone(session.add_frame(stray))

        self.assertEqual(session.diagnostics.classification_failures, 1)
        self.assertEqual(len(session.conversations), 0)

    def test_max_errors_stops_ingestion_with_partial_statistics(self) -> None:
        frames = _conversation(APP_A)
        stray = TnsFrame("192.0.2.1", 5000, "192.0.2.2", 1521, 1, 1, 40 * MS, b"\x00")
        later = _conversation(APP_B, offset_ms=100)
        session = AnalysisSession([DB[0]], DB[1], max_errors=0)

        consumed = session.ingest(frames + [stray] + later)
        report = session.report()

        self.assertEqual(consumed, len(frames) + 1)
        self.assertTrue(report.diagnostics.truncated)
        self.assertEqual(report.row(sql_id(SELECT_SQL)).executions, 2)
        self.assertEqual(report.row(sql_id(SELECT_SQL)).sessions, 1)

    def test_negative_rtt_packet_is_reported(self) -> None:
        session = AnalysisSession([DB[0]], DB[1])
        frames = [
            _request(APP_A, _sql_payload(SELECT_SQL), 5),
            _response(APP_A, _end_of_fetch(1), 4),
        ]

        with self.assertLogs("tnsflowmeter", level="WARNING"):
            session.ingest(frames)
            report = session.report()

        self.assertEqual(session.diagnostics.negative_rtt_packets, 1)
        self.assertEqual(report.diagnostics.segmentation.rejected_flows, 1)
        self.assertEqual(report.rows, [])

    def test_unresolved_cursor_is_counted(self) -> None:
        session = AnalysisSession([DB[0]], DB[1])
        record = session.add_frame(_request(APP_A, _reused_payload(9), 0))

        self.assertIs(record.classification, Marker.NO_STATEMENT)
        self.assertTrue(record.reused_cursor)
        self.assertEqual(session.diagnostics.unresolved_cursors, 1)


def test_frames_after_segmentation_are_rejected():
    session = AnalysisSession([DB[0]], DB[1])
    session.ingest(_conversation(APP_A))
    session.segment()

    with pytest.raises(RuntimeError):
        session.add_frame(_request(APP_A, _sql_payload(SELECT_SQL), 50))


def test_custom_fingerprint_provider():
    session = AnalysisSession([DB[0]], DB[1], fingerprint=lambda text: text.split()[0].upper())
    session.ingest(_conversation(APP_A))

    report = session.report()

    assert {row.fingerprint for row in report.rows} == {"SELECT", "INSERT"}


def test_session_requires_database_address():
    with pytest.raises(ValueError):
        AnalysisSession([], 1521)
