"""Validation layer for game events.

validate_event() decides whether a proposed event may be appended to the log
given the current snapshot (and, for flip cup, the event it follows). It is a
pure predicate: nothing is raised and nothing is mutated.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from pydantic import BaseModel

from app.schemas.game_engine import (
    CUP_HITS,
    AtBatResult,
    EventType,
    FlipCupResult,
    GameEvent,
    GameSnapshot,
    GameStatus,
    PitchResult,
)

from .payloads import (
    AtBatPayload,
    EditPayload,
    FlipCupPayload,
    GameEndPayload,
    GameStartPayload,
    InningEndPayload,
    PitchPayload,
    TakeoverPayload,
    UndoPayload,
    parse_payload,
)

logger = logging.getLogger(__name__)

ALLOWED_INNINGS = (3, 5, 7, 9)
MAX_UNDO_REASON_LENGTH = 500
MAX_NOTES_LENGTH = 1000

CUP_HIT_WARNING = "Cup hit recorded - flip cup event should follow"

# Decides whether a game_end may carry scores that differ from the snapshot
ScoreOverride = Callable[[GameEndPayload, GameSnapshot], bool]

E = TypeVar("E", bound=Enum)


@dataclass
class ValidationResult:
    """Result of validating an event before it is appended."""

    is_valid: bool = True
    error_code: str | None = None
    error_message: str | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls, warnings: list[str] | None = None) -> "ValidationResult":
        """Create a successful validation result."""
        return cls(is_valid=True, warnings=warnings or [])

    @classmethod
    def error(cls, code: str, message: str) -> "ValidationResult":
        """Create a validation failure with error details."""
        return cls(
            is_valid=False,
            error_code=code,
            error_message=message,
        )


def _as_member(enum_cls: type[E], value: object) -> E | None:
    try:
        return enum_cls(value)
    except ValueError:
        return None


def validate_pitch(payload: PitchPayload, snapshot: GameSnapshot) -> ValidationResult:
    if not payload.batter_id or not payload.catcher_id:
        return ValidationResult.error(
            "MISSING_FIELD", "Batter and catcher are required for pitch events"
        )

    result = _as_member(PitchResult, payload.result)
    if result is None:
        return ValidationResult.error("INVALID_RESULT", "Invalid pitch result")

    if snapshot.status != GameStatus.IN_PROGRESS:
        return ValidationResult.error(
            "GAME_NOT_IN_PROGRESS", "Cannot record pitches when game is not in progress"
        )

    if snapshot.batter_id != payload.batter_id:
        return ValidationResult.error(
            "BATTER_MISMATCH", "Pitch batter must match current batter in game state"
        )

    if snapshot.catcher_id != payload.catcher_id:
        return ValidationResult.error(
            "CATCHER_MISMATCH", "Pitch catcher must match current catcher in game state"
        )

    if result == PitchResult.STRIKE and snapshot.strikes >= 2:
        return ValidationResult.error(
            "ILLEGAL_COUNT",
            "Cannot record strike when batter already has 2 strikes (should be strikeout)",
        )

    if result == PitchResult.BALL and snapshot.balls >= 3:
        return ValidationResult.error(
            "ILLEGAL_COUNT",
            "Cannot record ball when batter already has 3 balls (should be walk)",
        )

    if result.value in CUP_HITS:
        return ValidationResult.ok(warnings=[CUP_HIT_WARNING])

    return ValidationResult.ok()


def validate_flip_cup(
    payload: FlipCupPayload,
    snapshot: GameSnapshot,
    previous_event: GameEvent | None = None,
) -> ValidationResult:
    if not payload.batter_id or not payload.catcher_id:
        return ValidationResult.error(
            "MISSING_FIELD", "Batter and catcher are required for flip cup events"
        )

    if _as_member(FlipCupResult, payload.result) is None:
        return ValidationResult.error("INVALID_RESULT", "Invalid flip cup result")

    if snapshot.status != GameStatus.IN_PROGRESS:
        return ValidationResult.error(
            "GAME_NOT_IN_PROGRESS", "Cannot record flip cup when game is not in progress"
        )

    if previous_event is not None and previous_event.type == EventType.PITCH:
        previous_result = _as_member(PitchResult, previous_event.payload.get("result"))
        if previous_result is None or previous_result.value not in CUP_HITS:
            return ValidationResult.error(
                "FLIP_CUP_WITHOUT_CUP_HIT", "Flip cup event must follow a cup hit pitch"
            )

    for player_id in payload.errors or []:
        if not player_id or not isinstance(player_id, str):
            return ValidationResult.error("INVALID_ERRORS", "Invalid player ID in errors array")

    return ValidationResult.ok()


def validate_at_bat(payload: AtBatPayload, snapshot: GameSnapshot) -> ValidationResult:
    if not payload.batter_id:
        return ValidationResult.error("MISSING_FIELD", "Batter is required for at-bat events")

    result = _as_member(AtBatResult, payload.result)
    if result is None:
        return ValidationResult.error("INVALID_RESULT", "Invalid at-bat result")

    if snapshot.status != GameStatus.IN_PROGRESS:
        return ValidationResult.error(
            "GAME_NOT_IN_PROGRESS", "Cannot complete at-bat when game is not in progress"
        )

    if snapshot.batter_id != payload.batter_id:
        return ValidationResult.error(
            "BATTER_MISMATCH", "At-bat batter must match current batter in game state"
        )

    if result == AtBatResult.WALK and snapshot.balls < 3:
        return ValidationResult.error(
            "ILLEGAL_COUNT", "Walk requires 4 balls (3 balls + 1 more)"
        )

    return ValidationResult.ok()


def validate_undo(payload: UndoPayload, snapshot: GameSnapshot) -> ValidationResult:
    if not payload.target_event_id:
        return ValidationResult.error(
            "MISSING_FIELD", "Target event ID is required for undo events"
        )

    if snapshot.status == GameStatus.COMPLETED:
        return ValidationResult.error("GAME_COMPLETED", "Cannot undo events in completed games")

    if payload.reason and len(payload.reason) > MAX_UNDO_REASON_LENGTH:
        return ValidationResult.error(
            "REASON_TOO_LONG",
            f"Undo reason must be {MAX_UNDO_REASON_LENGTH} characters or less",
        )

    return ValidationResult.ok()


def validate_edit(payload: EditPayload, snapshot: GameSnapshot) -> ValidationResult:
    if not payload.target_event_id:
        return ValidationResult.error(
            "MISSING_FIELD", "Target event ID is required for edit events"
        )

    if not isinstance(payload.new_data, dict):
        return ValidationResult.error("MISSING_FIELD", "New data is required for edit events")

    if snapshot.status == GameStatus.COMPLETED:
        return ValidationResult.error("GAME_COMPLETED", "Cannot edit events in completed games")

    return ValidationResult.ok()


def validate_takeover(payload: TakeoverPayload, snapshot: GameSnapshot) -> ValidationResult:
    if not payload.new_umpire_id:
        return ValidationResult.error("MISSING_FIELD", "New umpire ID is required")

    # previous_umpire_id may be None when no umpire is assigned yet
    if payload.previous_umpire_id == payload.new_umpire_id:
        return ValidationResult.error(
            "SAME_UMPIRE", "New umpire must be different from previous umpire"
        )

    if snapshot.umpire_id != payload.previous_umpire_id:
        return ValidationResult.error(
            "UMPIRE_MISMATCH", "Previous umpire ID must match current umpire in game state"
        )

    if snapshot.status == GameStatus.COMPLETED:
        return ValidationResult.error("GAME_COMPLETED", "Cannot change umpire in completed games")

    return ValidationResult.ok()


def validate_game_start(payload: GameStartPayload, snapshot: GameSnapshot) -> ValidationResult:
    if not payload.umpire_id or not payload.home_team_id or not payload.away_team_id:
        return ValidationResult.error("MISSING_FIELD", "Umpire and team IDs are required")

    if payload.home_team_id == payload.away_team_id:
        return ValidationResult.error("SAME_TEAMS", "Home and away teams must be different")

    if payload.lineups is None:
        return ValidationResult.error(
            "MISSING_FIELD", "Both home and away lineups are required"
        )

    if not payload.lineups.home or not payload.lineups.away:
        return ValidationResult.error("EMPTY_LINEUP", "Lineups cannot be empty")

    if payload.innings not in ALLOWED_INNINGS:
        return ValidationResult.error("INVALID_INNINGS", "Innings must be 3, 5, 7, or 9")

    if snapshot.status != GameStatus.NOT_STARTED:
        return ValidationResult.error(
            "GAME_ALREADY_STARTED",
            "Game start can only be recorded for games not yet started",
        )

    if (
        snapshot.home_team_id != payload.home_team_id
        or snapshot.away_team_id != payload.away_team_id
    ):
        return ValidationResult.error("TEAM_MISMATCH", "Team IDs must match game snapshot")

    return ValidationResult.ok()


def validate_game_end(
    payload: GameEndPayload,
    snapshot: GameSnapshot,
    score_override: ScoreOverride | None = None,
) -> ValidationResult:
    if payload.final_score_home < 0 or payload.final_score_away < 0:
        return ValidationResult.error("NEGATIVE_SCORE", "Final scores cannot be negative")

    if payload.final_score_home == payload.final_score_away:
        return ValidationResult.error("TIE_SCORE", "Games cannot end in a tie")

    if snapshot.status != GameStatus.IN_PROGRESS:
        return ValidationResult.error(
            "GAME_NOT_IN_PROGRESS", "Game end can only be recorded for games in progress"
        )

    scores_match = (
        payload.final_score_home == snapshot.score_home
        and payload.final_score_away == snapshot.score_away
    )
    if not scores_match:
        if score_override is not None and score_override(payload, snapshot):
            logger.info(
                "Final score override accepted: game=%s, snapshot=%d-%d, final=%d-%d",
                snapshot.game_id,
                snapshot.score_home,
                snapshot.score_away,
                payload.final_score_home,
                payload.final_score_away,
            )
        else:
            return ValidationResult.error(
                "SCORE_MISMATCH", "Final scores must match current game snapshot scores"
            )

    if payload.notes and len(payload.notes) > MAX_NOTES_LENGTH:
        return ValidationResult.error(
            "NOTES_TOO_LONG",
            f"Game end notes must be {MAX_NOTES_LENGTH} characters or less",
        )

    return ValidationResult.ok()


def validate_inning_end(payload: InningEndPayload, snapshot: GameSnapshot) -> ValidationResult:
    if payload.score_home < 0 or payload.score_away < 0:
        return ValidationResult.error("NEGATIVE_SCORE", "Scores cannot be negative")

    if snapshot.status != GameStatus.IN_PROGRESS:
        return ValidationResult.error(
            "GAME_NOT_IN_PROGRESS", "Inning end can only be recorded for games in progress"
        )

    if (
        payload.inning_number != snapshot.current_inning
        or payload.is_top_of_inning != snapshot.is_top_of_inning
    ):
        return ValidationResult.error(
            "INNING_MISMATCH", "Inning end must match the current half-inning"
        )

    return ValidationResult.ok()


def validate_event(
    event_type: EventType | str,
    payload: dict | BaseModel,
    snapshot: GameSnapshot,
    previous_event: GameEvent | None = None,
    score_override: ScoreOverride | None = None,
) -> ValidationResult:
    """Validate an event before it is appended to the log.

    Args:
        event_type: Proposed event type.
        payload: Raw payload dict or typed payload.
        snapshot: Current game snapshot.
        previous_event: The event this one follows, when known (used by flip cup).
        score_override: Predicate allowing a game_end whose scores differ
            from the snapshot (quick result scoring).

    Returns:
        ValidationResult indicating success (with optional warnings) or
        failure with error details.
    """
    kind = _as_member(EventType, event_type)
    if kind is None:
        logger.warning("Validation failed: unknown event type %s", event_type)
        return ValidationResult.error("UNKNOWN_EVENT_TYPE", f"Unknown event type: {event_type}")
    event_type = kind

    try:
        typed_payload = parse_payload(event_type, payload)
    except ValueError as e:
        logger.warning("Validation failed: invalid payload for %s - %s", event_type.value, e)
        return ValidationResult.error(
            "INVALID_PAYLOAD", f"Invalid {event_type.value} payload: {e}"
        )

    logger.debug(
        "Validating event: type=%s, game=%s, status=%s",
        event_type.value,
        snapshot.game_id,
        snapshot.status.value,
    )

    if event_type == EventType.PITCH:
        result = validate_pitch(typed_payload, snapshot)
    elif event_type == EventType.FLIP_CUP:
        result = validate_flip_cup(typed_payload, snapshot, previous_event)
    elif event_type == EventType.AT_BAT:
        result = validate_at_bat(typed_payload, snapshot)
    elif event_type == EventType.UNDO:
        result = validate_undo(typed_payload, snapshot)
    elif event_type == EventType.EDIT:
        result = validate_edit(typed_payload, snapshot)
    elif event_type == EventType.TAKEOVER:
        result = validate_takeover(typed_payload, snapshot)
    elif event_type == EventType.GAME_START:
        result = validate_game_start(typed_payload, snapshot)
    elif event_type == EventType.GAME_END:
        result = validate_game_end(typed_payload, snapshot, score_override)
    else:
        result = validate_inning_end(typed_payload, snapshot)

    if result.is_valid:
        logger.debug("Event validated successfully: type=%s", event_type.value)
    else:
        logger.warning(
            "Validation failed: code=%s, message=%s, game=%s, type=%s",
            result.error_code,
            result.error_message,
            snapshot.game_id,
            event_type.value,
        )
    return result
