"""Pydantic schemas for event submission and game reads."""

from typing import Any

from pydantic import BaseModel, Field

from app.schemas.game_engine import GameEvent, GameSnapshot


class EventSubmissionRequest(BaseModel):
    """Request body for submitting a game event."""

    game_id: str = Field(..., min_length=1, description="UUID of the game")
    type: str = Field(..., min_length=1, description="Event type, e.g. pitch or at_bat")
    payload: dict[str, Any] = Field(..., description="Event-type specific payload")
    umpire_id: str = Field(..., min_length=1, description="Umpire submitting the event")
    previous_event_id: str | None = Field(
        None, description="Event this one follows (required context for flip cup)"
    )


class EventSubmissionData(BaseModel):
    event: GameEvent | None = Field(None, description="Logged event (null for undo)")
    snapshot: GameSnapshot
    warnings: list[str] = []


class EventSubmissionResponse(BaseModel):
    """Response from event submission."""

    success: bool = True
    data: EventSubmissionData


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int


class EventListData(BaseModel):
    events: list[GameEvent]
    pagination: Pagination


class EventListResponse(BaseModel):
    """A page of a game's event log, in sequence order."""

    success: bool = True
    data: EventListData


class SnapshotResponse(BaseModel):
    success: bool = True
    data: GameSnapshot


class ReplayCheckResponse(BaseModel):
    """Whether replaying the log reproduces the persisted snapshot."""

    game_id: str
    matches: bool
    event_count: int = Field(..., ge=0)
    differences: list[str] = Field(
        default_factory=list, description="Snapshot fields that differ after replay"
    )
    error_message: str | None = None
