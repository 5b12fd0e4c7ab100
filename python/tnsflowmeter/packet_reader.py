"""Capture ingestion layer: TCP payloads exchanged with the database listener."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Iterator, Optional, Sequence, Tuple, Union

import dpkt
from dpkt.ethernet import VLANtag8021Q

from .errors import CaptureError
from .frame import TnsFrame
from .utils import format_ip

logger = logging.getLogger(__name__)

MICROS_PER_SECOND = 1_000_000
NANOS_PER_MICRO = 1_000

PCAPNG_MAGIC = b"\x0a\x0d\x0d\x0a"

DLT_NULL = 0
DLT_EN10MB = 1
DLT_RAW = 12
DLT_LINUX_SLL = 113
LINKTYPE_RAW = 101


class PacketReader:
    """Iterates over the TNS frames of a capture, in file order.

    Only TCP segments carrying payload between one of ``db_ips`` and
    ``db_port`` are yielded, the equivalent of the capture filter
    ``host <ip> and port <port>``.
    """

    def __init__(
        self,
        pcap_path: Union[str, Path],
        db_ips: Sequence[str],
        db_port: int,
    ) -> None:
        path = Path(pcap_path)
        if not path.is_file():
            raise FileNotFoundError(f"PCAP file does not exist: {path}")
        if not db_ips:
            raise ValueError("At least one database IP address is required")

        self.path = path
        self.db_ips = frozenset(ip.strip() for ip in db_ips)
        self.db_port = int(db_port)

        self._file: Optional[IO[bytes]] = None
        self._pcap = None
        self._datalink = DLT_EN10MB
        self._packet_iter: Optional[Iterator[Tuple[float, bytes]]] = None

        self._first_packet_ts: Optional[int] = None
        self._last_packet_ts: Optional[int] = None
        self.frames_read = 0
        self.frames_matched = 0
        self.truncated = False

    # ------------------------------------------------------------------
    def __enter__(self) -> "PacketReader":
        self._open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    # ------------------------------------------------------------------
    def close(self) -> None:
        self._pcap = None
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                logger.debug("Failed to close PCAP file", exc_info=True)
            finally:
                self._file = None
        self._packet_iter = None

    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[TnsFrame]:
        while True:
            frame = self.next_frame()
            if frame is None:
                break
            yield frame

    def next_frame(self) -> Optional[TnsFrame]:
        self._ensure_iter()
        assert self._packet_iter is not None

        try:
            for ts, buf in self._packet_iter:
                self.frames_read += 1
                frame = self._decode_frame(ts, buf)
                if frame is not None:
                    self.frames_matched += 1
                    return frame
        except (dpkt.dpkt.NeedData, dpkt.dpkt.UnpackError) as exc:
            # Partial record at the end of the file
            self.truncated = True
            self._packet_iter = iter(())
            logger.warning("Capture %s ends with an incomplete record, reading stopped: %s", self.path, exc)
        return None

    # ------------------------------------------------------------------
    @property
    def first_packet_timestamp(self) -> Optional[int]:
        return self._first_packet_ts

    @property
    def last_packet_timestamp(self) -> Optional[int]:
        return self._last_packet_ts

    # ------------------------------------------------------------------
    def _ensure_iter(self) -> None:
        if self._pcap is None or self._packet_iter is None:
            self._open()
            assert self._pcap is not None
            self._packet_iter = iter(self._pcap)

    def _open(self) -> None:
        if self._pcap is not None:
            return
        try:
            self._file = self.path.open("rb")
            magic = self._file.read(4)
            self._file.seek(0)
            if magic == PCAPNG_MAGIC:
                self._pcap = dpkt.pcapng.Reader(self._file)
            else:
                self._pcap = dpkt.pcap.Reader(self._file)
            self._datalink = self._pcap.datalink()
        except (OSError, ValueError, dpkt.dpkt.NeedData, dpkt.dpkt.UnpackError) as exc:
            self.close()
            raise CaptureError(f"Failed to open PCAP file: {self.path}") from exc
        logger.debug("Opened %s (link type %d)", self.path, self._datalink)

    # ------------------------------------------------------------------
    def _decode_frame(self, timestamp: float, buf: bytes) -> Optional[TnsFrame]:
        try:
            ip_packet = self._network_layer(buf)
        except (dpkt.UnpackError, ValueError):
            logger.debug("Skipping undecodable frame", exc_info=True)
            return None

        if not isinstance(ip_packet, (dpkt.ip.IP, dpkt.ip6.IP6)):
            return None
        transport = ip_packet.data
        if not isinstance(transport, dpkt.tcp.TCP) or not transport.data:
            return None

        src_ip = format_ip(ip_packet.src)
        dst_ip = format_ip(ip_packet.dst)
        if src_ip not in self.db_ips and dst_ip not in self.db_ips:
            return None
        if self.db_port not in (transport.sport, transport.dport):
            return None

        nanos = int(round(timestamp * MICROS_PER_SECOND)) * NANOS_PER_MICRO
        self._register_timestamp(nanos)
        return TnsFrame(
            src_ip=src_ip,
            src_port=transport.sport,
            dst_ip=dst_ip,
            dst_port=transport.dport,
            seq=transport.seq,
            ack=transport.ack,
            timestamp=nanos,
            payload=bytes(transport.data),
        )

    def _network_layer(self, buf: bytes):
        if self._datalink == DLT_EN10MB:
            payload = dpkt.ethernet.Ethernet(buf).data
            if isinstance(payload, VLANtag8021Q):
                payload = payload.data
            return payload
        if self._datalink == DLT_LINUX_SLL:
            return dpkt.sll.SLL(buf).data
        if self._datalink == DLT_NULL:
            return dpkt.loopback.Loopback(buf).data
        if self._datalink in (DLT_RAW, LINKTYPE_RAW):
            if buf and buf[0] >> 4 == 6:
                return dpkt.ip6.IP6(buf)
            return dpkt.ip.IP(buf)
        logger.debug("Unsupported link type %d", self._datalink)
        return None

    def _register_timestamp(self, nanos: int) -> None:
        if self._first_packet_ts is None:
            self._first_packet_ts = nanos
        self._last_packet_ts = nanos


__all__ = ["PacketReader"]
