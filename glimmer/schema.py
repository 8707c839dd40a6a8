# glimmer/schema.py
from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

NO_DEFINITIONS = "No definitions were submitted for this word."


def _decode_image(v):
    # persisted / wire form is base64 text
    if isinstance(v, str):
        return base64.b64decode(v)
    return v


def _encode_image(v: Optional[bytes]) -> Optional[str]:
    return base64.b64encode(v).decode("ascii") if v is not None else None


class Word(BaseModel):
    word: str
    image: Optional[bytes] = None
    date: str                              # YYYY-MM-DD in the service timezone
    ai_meaning: Optional[str] = None

    @field_validator("image", mode="before")
    @classmethod
    def decode_image(cls, v):
        return _decode_image(v)

    @field_serializer("image", when_used="json")
    def encode_image(self, v: Optional[bytes]) -> Optional[str]:
        return _encode_image(v)


class Submission(BaseModel):
    id: str
    text: str
    username: str
    likes: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    word: Optional[str] = None             # word that was current when this was submitted


class ArchivedWord(BaseModel):
    word: str
    image: Optional[bytes] = None
    date: str
    ai_meaning: Optional[str] = None
    winning_definitions: List[str]

    @field_validator("image", mode="before")
    @classmethod
    def decode_image(cls, v):
        return _decode_image(v)

    @field_serializer("image", when_used="json")
    def encode_image(self, v: Optional[bytes]) -> Optional[str]:
        return _encode_image(v)

    @classmethod
    def from_word(cls, word: Word, winning_definitions: List[str]) -> "ArchivedWord":
        return cls(
            word=word.word,
            image=word.image,
            date=word.date,
            ai_meaning=word.ai_meaning,
            winning_definitions=list(winning_definitions),
        )


class Ledger(BaseModel):
    current: Optional[Word] = None
    submissions: List[Submission] = Field(default_factory=list)
    archive: List[ArchivedWord] = Field(default_factory=list)   # newest first


# ───────── Request bodies ─────────
class SubmitIn(BaseModel):
    text: str
    username: Optional[str] = None


class ForceWordIn(BaseModel):
    word: str


class UsernameOut(BaseModel):
    username: str
