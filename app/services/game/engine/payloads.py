"""Event payload types - the variant body of each log entry.

Ids are optional and results are plain strings; rule violations are
reported by the validator, not by the schema.
"""

from typing import Any

from pydantic import BaseModel, Field

from app.schemas.game_engine import EventType, ScoringMethod


class PitchPayload(BaseModel):
    """One pitch thrown at the current batter."""

    result: str
    batter_id: str | None = None
    catcher_id: str | None = None


class FlipCupPayload(BaseModel):
    """Outcome of the flip cup round that follows a cup hit."""

    result: str
    batter_id: str | None = None
    catcher_id: str | None = None
    errors: list[Any] | None = Field(
        None, description="Player IDs charged with a fielding error"
    )


class AtBatPayload(BaseModel):
    """Completion of an at-bat (out, walk or hit)."""

    result: str
    batter_id: str | None = None
    catcher_id: str | None = None


class Lineups(BaseModel):
    home: list[str] = []
    away: list[str] = []


class GameStartPayload(BaseModel):
    umpire_id: str | None = None
    home_team_id: str | None = None
    away_team_id: str | None = None
    lineups: Lineups | None = None
    innings: int | None = None


class GameEndPayload(BaseModel):
    final_score_home: int
    final_score_away: int
    notes: str | None = None
    scoring_method: ScoringMethod = ScoringMethod.LIVE


class TakeoverPayload(BaseModel):
    previous_umpire_id: str | None = None
    new_umpire_id: str | None = None


class UndoPayload(BaseModel):
    target_event_id: str | None = None
    reason: str | None = None


class EditPayload(BaseModel):
    target_event_id: str | None = None
    new_data: Any = None
    reason: str | None = None


class InningEndPayload(BaseModel):
    inning_number: int
    is_top_of_inning: bool
    score_home: int
    score_away: int
    notes: str | None = None


EventPayload = (
    PitchPayload
    | FlipCupPayload
    | AtBatPayload
    | GameStartPayload
    | GameEndPayload
    | TakeoverPayload
    | UndoPayload
    | EditPayload
    | InningEndPayload
)

PAYLOAD_TYPES: dict[EventType, type[BaseModel]] = {
    EventType.PITCH: PitchPayload,
    EventType.FLIP_CUP: FlipCupPayload,
    EventType.AT_BAT: AtBatPayload,
    EventType.GAME_START: GameStartPayload,
    EventType.GAME_END: GameEndPayload,
    EventType.TAKEOVER: TakeoverPayload,
    EventType.UNDO: UndoPayload,
    EventType.EDIT: EditPayload,
    EventType.INNING_END: InningEndPayload,
}


def parse_payload(event_type: EventType | str, payload: dict | BaseModel) -> EventPayload:
    """Build a typed payload from a raw payload dict.

    Args:
        event_type: The event type the payload belongs to.
        payload: Raw payload dict (or an already typed payload).

    Returns:
        The payload model for the event type.

    Raises:
        ValueError: If the event type is unknown or the payload is malformed
            (pydantic's ValidationError is a ValueError).
    """
    try:
        event_type = EventType(event_type)
    except ValueError:
        raise ValueError(f"Unknown event type: {event_type}") from None

    model = PAYLOAD_TYPES[event_type]
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    if not isinstance(payload, dict):
        raise ValueError(f"Payload for {event_type.value} must be an object")
    return model.model_validate(payload)
