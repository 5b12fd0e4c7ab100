"""Server cursor slot to SQL text associations, rebuilt from observed traffic."""

from __future__ import annotations

from typing import Dict, Optional, Tuple


class CursorSlotTable:
    """Per-conversation map of cursor slot numbers to the SQL they hold.

    The server recycles slot numbers, so a binding is overwritten whenever a
    new statement lands in the same slot and is never removed.
    """

    def __init__(self) -> None:
        self._slots: Dict[Tuple[str, int], str] = {}
        self._last_issued: Dict[str, str] = {}

    def remember_issued(self, conversation: str, sql_text: str) -> None:
        self._last_issued[conversation] = sql_text

    def last_issued(self, conversation: str) -> Optional[str]:
        return self._last_issued.get(conversation)

    def bind(self, conversation: str, slot: int, sql_text: str) -> None:
        self._slots[(conversation, slot)] = sql_text

    def bind_last_issued(self, conversation: str, slot: int) -> bool:
        sql_text = self._last_issued.get(conversation)
        if sql_text is None:
            return False
        self.bind(conversation, slot, sql_text)
        return True

    def lookup(self, conversation: str, slot: int) -> Optional[str]:
        return self._slots.get((conversation, slot))

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, item: object) -> bool:
        return item in self._slots


__all__ = ["CursorSlotTable"]
