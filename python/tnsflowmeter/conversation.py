"""Per-conversation packet logs built during the streaming pass."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from .statement import Classification, Marker, Statement, fingerprint_of, sql_text_of


@dataclass
class PacketRecord:
    conversation: str
    classification: Classification
    payload: bytes
    seq: int
    ack: int
    timestamp: int
    is_response: bool = False
    reused_cursor: bool = False
    rtt: int = 0

    @property
    def statement(self) -> Optional[Statement]:
        if isinstance(self.classification, Statement):
            return self.classification
        return None

    @property
    def is_end_of_fetch(self) -> bool:
        return self.classification is Marker.END_OF_FETCH

    @property
    def has_no_statement(self) -> bool:
        return self.classification is Marker.NO_STATEMENT

    @property
    def sql_text(self) -> str:
        return sql_text_of(self.classification)

    @property
    def fingerprint(self) -> str:
        return fingerprint_of(self.classification)


@dataclass
class Conversation:
    key: str
    packets: List[PacketRecord] = field(default_factory=list)

    def last_timestamp(self) -> Optional[int]:
        if not self.packets:
            return None
        return self.packets[-1].timestamp

    def __len__(self) -> int:
        return len(self.packets)

    def __iter__(self) -> Iterator[PacketRecord]:
        return iter(self.packets)


class ConversationStore:
    """One append-only packet log per database/application 4-tuple."""

    def __init__(self) -> None:
        self._conversations: Dict[str, Conversation] = {}
        self._closed = False

    def get(self, key: str) -> Optional[Conversation]:
        return self._conversations.get(key)

    def append(
        self,
        key: str,
        classification: Classification,
        payload: bytes,
        *,
        seq: int,
        ack: int,
        timestamp: int,
        is_response: bool,
        reused_cursor: bool = False,
    ) -> PacketRecord:
        """Append a classified packet and compute its RTT.

        A response's RTT is the time since the previous packet of the same
        conversation; it stays 0 for requests and for a conversation's first
        packet.
        """
        if self._closed:
            raise RuntimeError("Conversation store is closed for ingestion")

        conversation = self._conversations.get(key)
        if conversation is None:
            conversation = Conversation(key)
            self._conversations[key] = conversation

        rtt = 0
        previous = conversation.last_timestamp()
        if is_response and previous is not None:
            rtt = timestamp - previous

        record = PacketRecord(
            conversation=key,
            classification=classification,
            payload=bytes(payload),
            seq=seq,
            ack=ack,
            timestamp=timestamp,
            is_response=is_response,
            reused_cursor=reused_cursor,
            rtt=rtt,
        )
        conversation.packets.append(record)
        return record

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def keys(self) -> List[str]:
        return list(self._conversations)

    def packet_count(self) -> int:
        return sum(len(conversation) for conversation in self._conversations.values())

    def __iter__(self) -> Iterator[Conversation]:
        return iter(self._conversations.values())

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, key: object) -> bool:
        return key in self._conversations


__all__ = ["PacketRecord", "Conversation", "ConversationStore"]
