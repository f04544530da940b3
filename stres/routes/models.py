"""Pydantic request bodies for API endpoints."""

from typing import Literal

from pydantic import BaseModel


class CreateSession(BaseModel):
    title: str = "session"
    character_id: str | None = None


class EventBody(BaseModel):
    role: Literal["user", "assistant"]
    text: str


class ChatBody(BaseModel):
    message: str


class RequestBody(BaseModel):
    user_turn: str


class EndCombatBody(BaseModel):
    reason: str = "fled"


class UpdateParticipant(BaseModel):
    hp: int | None = None
    conditions: list[str] | None = None
