from __future__ import annotations

from pydantic import BaseModel, Field

from .errors import ErrorKind


class NoteIn(BaseModel):
    title: str = ""
    body: str | None = Field(default="")


class NoteOut(BaseModel):
    id: int
    title: str
    body: str
    created_at: str


class MessageOut(BaseModel):
    message: str


class ErrorOut(BaseModel):
    kind: ErrorKind
    message: str
