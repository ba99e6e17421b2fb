from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class DeckSelectRequest(BaseModel):
    name: str


class CardSelectRequest(BaseModel):
    card_id: str
    column: Literal["left", "right"]


class TTSRequest(BaseModel):
    text: str
    lang: str | None = None
    voice: str | None = None
