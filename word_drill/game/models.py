from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Side(str, Enum):
    SOURCE = "SOURCE"
    TARGET = "TARGET"


class Column(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class CardStatus(str, Enum):
    IDLE = "IDLE"
    SELECTED = "SELECTED"
    MATCHED = "MATCHED"
    REVEALED_INCORRECT = "REVEALED_INCORRECT"


class Phase(str, Enum):
    EMPTY = "EMPTY"
    LOADING = "LOADING"
    PAGE_READY = "PAGE_READY"
    PAGE_CLEARED = "PAGE_CLEARED"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class ErrorReason(str, Enum):
    EMPTY_DECK = "EMPTY_DECK"
    EMPTY_PAGE_AT_START = "EMPTY_PAGE_AT_START"
    RESTART_WITH_NO_DECK = "RESTART_WITH_NO_DECK"
    IMPORT_FAILED = "IMPORT_FAILED"


@dataclass(frozen=True)
class WordPair:
    id: str
    source_text: str
    target_text: str


@dataclass
class DisplayCard:
    id: str
    pair_id: str
    text: str
    display_number: int
    side: Side
    status: CardStatus = CardStatus.IDLE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pair_id": self.pair_id,
            "text": self.text,
            "display_number": self.display_number,
            "side": self.side.value,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class Feedback:
    event: str
    message: str
