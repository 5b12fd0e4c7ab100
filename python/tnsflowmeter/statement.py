"""What a single TNS packet says about SQL: nothing, end of fetch, or a statement."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Union


@unique
class Marker(Enum):
    NO_STATEMENT = "_"
    END_OF_FETCH = "SQL_END"


@dataclass(frozen=True)
class Statement:
    text: str
    fingerprint: str

    @property
    def is_query(self) -> bool:
        """SELECT and WITH flows only end on an explicit end-of-fetch marker."""
        return self.text[:1].upper() in ("S", "W")


Classification = Union[Marker, Statement]


def sql_text_of(classification: Classification) -> str:
    if isinstance(classification, Statement):
        return classification.text
    return classification.value


def fingerprint_of(classification: Classification) -> str:
    if isinstance(classification, Statement):
        return classification.fingerprint
    return ""


__all__ = ["Marker", "Statement", "Classification", "sql_text_of", "fingerprint_of"]
