"""State transition engine.

transition() maps one logged event onto a new snapshot:
- Re-checks the game phase for the event
- Dispatches to the handler for the event type
- Returns TransitionResult with the new snapshot and side effects

It never raises: failures come back as a TransitionResult carrying the
unchanged input snapshot and an error.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from app.schemas.game_engine import (
    AtBatResult,
    BaseRunners,
    EventType,
    FlipCupResult,
    GameEvent,
    GameSnapshot,
    GameStatus,
    PitchResult,
)

from .baserunning import (
    advance_runners,
    bases_for_result,
    calculate_runs_scored,
    hit_type_from_history,
)
from .payloads import (
    AtBatPayload,
    FlipCupPayload,
    GameEndPayload,
    GameStartPayload,
    InningEndPayload,
    PitchPayload,
    TakeoverPayload,
    parse_payload,
)
from .side_effects import (
    AnySideEffect,
    GameEnded,
    GameStarted,
    InningChanged,
    LineupAdvanced,
    RunnerDropped,
    ScoreChanged,
)

logger = logging.getLogger(__name__)

GAMEPLAY_EVENT_TYPES = (EventType.PITCH, EventType.FLIP_CUP, EventType.AT_BAT, EventType.INNING_END)


@dataclass
class TransitionResult:
    """Result of applying one event to a snapshot.

    On failure ``snapshot`` is the unchanged input snapshot; callers must treat
    a failure as "no state change occurred".
    """

    snapshot: GameSnapshot
    side_effects: list[AnySideEffect] = field(default_factory=list)
    success: bool = True
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def ok(
        cls,
        snapshot: GameSnapshot,
        side_effects: list[AnySideEffect] | None = None,
    ) -> "TransitionResult":
        """Create a successful result with the new snapshot and side effects."""
        return cls(snapshot=snapshot, side_effects=side_effects or [], success=True)

    @classmethod
    def failure(cls, snapshot: GameSnapshot, code: str, message: str) -> "TransitionResult":
        """Create a failure result that keeps the input snapshot."""
        return cls(
            snapshot=snapshot,
            side_effects=[],
            success=False,
            error_code=code,
            error_message=message,
        )


def transition(
    snapshot: GameSnapshot,
    event: GameEvent,
    prior_events: Sequence[GameEvent] | None = None,
    now: datetime | None = None,
) -> TransitionResult:
    """Apply one event to a snapshot and return the result.

    This is the single authoritative state transition. It assumes the event
    already passed validate_event() and only re-checks the game phase.

    Args:
        snapshot: Current snapshot (never mutated).
        event: The logged event to apply.
        prior_events: Log entries preceding ``event`` in sequence order, used
            to find the cup hit a flip cup resolves.
        now: Timestamp for ``last_updated``; defaults to the current UTC time.

    Returns:
        TransitionResult containing:
        - snapshot: The new snapshot (or the input snapshot on failure)
        - side_effects: What happened beyond the snapshot
        - error_code/error_message: Error details (if failed)

    Example:
        >>> result = transition(snapshot, event, prior_events)
        >>> if result.success:
        ...     store.save_snapshot(result.snapshot)
        ... else:
        ...     report(result.error_code, result.error_message)
    """
    now = now or datetime.now(timezone.utc)
    logger.info(
        "Applying event: type=%s, game=%s, seq=%d, status=%s",
        event.type.value,
        snapshot.game_id,
        event.sequence_number,
        snapshot.status.value,
    )

    phase_error = _check_phase(snapshot, event)
    if phase_error is not None:
        code, message = phase_error
        logger.warning("Transition rejected: code=%s, message=%s", code, message)
        return TransitionResult.failure(snapshot, code, message)

    try:
        if event.type == EventType.UNDO:
            return TransitionResult.failure(
                snapshot,
                "UNDO_NOT_SUPPORTED",
                "Undo is not applied by the engine - delete the event and replay the log",
            )
        if event.type == EventType.EDIT:
            return TransitionResult.failure(
                snapshot,
                "EDIT_NOT_SUPPORTED",
                "Edit is not applied by the engine - replace the event and replay the log",
            )

        payload = parse_payload(event.type, event.payload)

        if event.type == EventType.PITCH:
            result = apply_pitch(snapshot, payload)
        elif event.type == EventType.FLIP_CUP:
            result = apply_flip_cup(snapshot, payload, prior_events)
        elif event.type == EventType.AT_BAT:
            result = apply_at_bat(snapshot, payload)
        elif event.type == EventType.GAME_START:
            result = apply_game_start(snapshot, payload, now)
        elif event.type == EventType.GAME_END:
            result = apply_game_end(snapshot, payload)
        elif event.type == EventType.TAKEOVER:
            result = apply_takeover(snapshot, payload)
        elif event.type == EventType.INNING_END:
            result = apply_inning_end(snapshot, payload)
        else:
            logger.error("Unsupported event type received: %s", event.type)
            return TransitionResult.failure(
                snapshot, "UNSUPPORTED_EVENT_TYPE", f"Unsupported event type: {event.type.value}"
            )
    except ValueError as e:
        logger.warning("Transition rejected: malformed %s payload - %s", event.type.value, e)
        return TransitionResult.failure(snapshot, "INVALID_PAYLOAD", f"Invalid payload: {e}")
    except Exception as e:
        logger.exception("Transition failed: type=%s, game=%s", event.type.value, snapshot.game_id)
        return TransitionResult.failure(
            snapshot, "TRANSITION_FAILED", f"State transition failed: {e}"
        )

    new_snapshot = result.snapshot.model_copy(update={"last_updated": now})
    logger.debug(
        "Event applied: inning=%d %s, outs=%d, count=%d-%d, score=%d-%d, effects=%s",
        new_snapshot.current_inning,
        "top" if new_snapshot.is_top_of_inning else "bottom",
        new_snapshot.outs,
        new_snapshot.balls,
        new_snapshot.strikes,
        new_snapshot.score_away,
        new_snapshot.score_home,
        [e.effect_type for e in result.side_effects],
    )
    return TransitionResult.ok(new_snapshot, result.side_effects)


def _check_phase(snapshot: GameSnapshot, event: GameEvent) -> tuple[str, str] | None:
    if snapshot.status == GameStatus.COMPLETED and event.type not in (
        EventType.UNDO,
        EventType.EDIT,
    ):
        return "GAME_COMPLETED", "Cannot modify completed games"

    if event.type in GAMEPLAY_EVENT_TYPES and snapshot.status != GameStatus.IN_PROGRESS:
        return "GAME_NOT_IN_PROGRESS", "Game must be in progress for gameplay events"

    if event.type == EventType.GAME_START and snapshot.status == GameStatus.IN_PROGRESS:
        return "GAME_ALREADY_IN_PROGRESS", "Game is already in progress"

    return None


def apply_pitch(snapshot: GameSnapshot, payload: PitchPayload) -> TransitionResult:
    """Update the count for a pitch. Cup hits leave the count alone."""
    update: dict = {}

    if payload.result == PitchResult.STRIKE:
        update["strikes"] = min(snapshot.strikes + 1, 3)
    elif payload.result == PitchResult.FOUL_BALL:
        # A foul never strikes the batter out
        if snapshot.strikes < 2:
            update["strikes"] = snapshot.strikes + 1
    elif payload.result == PitchResult.BALL:
        update["balls"] = min(snapshot.balls + 1, 4)

    return TransitionResult.ok(snapshot.model_copy(update=update))


def apply_flip_cup(
    snapshot: GameSnapshot,
    payload: FlipCupPayload,
    prior_events: Sequence[GameEvent] | None,
) -> TransitionResult:
    """Resolve a flip cup round.

    Offense wins: the batter gets the hit matching the preceding cup hit.
    Defense wins: the batter is out.
    """
    if payload.result == FlipCupResult.OFFENSE_WINS:
        hit_type = hit_type_from_history(prior_events)
        new_snapshot, side_effects = _advance_on_hit(
            snapshot, bases_for_result(hit_type), payload.batter_id, forced=False
        )
    else:
        new_snapshot = snapshot.model_copy(update={"outs": snapshot.outs + 1})
        side_effects = []

    return _finish_at_bat(new_snapshot, side_effects)


def apply_at_bat(snapshot: GameSnapshot, payload: AtBatPayload) -> TransitionResult:
    """Complete an at-bat with an out, a walk or a hit."""
    if payload.result == AtBatResult.OUT:
        new_snapshot = snapshot.model_copy(update={"outs": snapshot.outs + 1})
        side_effects: list[AnySideEffect] = []
    else:
        new_snapshot, side_effects = _advance_on_hit(
            snapshot,
            bases_for_result(payload.result),
            payload.batter_id,
            forced=payload.result == AtBatResult.WALK,
        )

    return _finish_at_bat(new_snapshot, side_effects)


def apply_game_start(
    snapshot: GameSnapshot, payload: GameStartPayload, now: datetime
) -> TransitionResult:
    """Initialize a game: lineups, first batter, zeroed count and score."""
    home_lineup = list(payload.lineups.home) if payload.lineups else []
    away_lineup = list(payload.lineups.away) if payload.lineups else []

    new_snapshot = snapshot.model_copy(
        update={
            "status": GameStatus.IN_PROGRESS,
            "current_inning": 1,
            "is_top_of_inning": True,
            "outs": 0,
            "balls": 0,
            "strikes": 0,
            "score_home": 0,
            "score_away": 0,
            "umpire_id": payload.umpire_id,
            "home_team_id": payload.home_team_id or "",
            "away_team_id": payload.away_team_id or "",
            "home_lineup": home_lineup,
            "away_lineup": away_lineup,
            "home_lineup_position": 0,
            "away_lineup_position": 0,
            "base_runners": BaseRunners(),
        }
    )
    new_snapshot = _with_current_batter(new_snapshot)

    logger.info(
        "Game started: game=%s, home=%s, away=%s, first_batter=%s",
        new_snapshot.game_id,
        new_snapshot.home_team_id,
        new_snapshot.away_team_id,
        new_snapshot.batter_id,
    )
    return TransitionResult.ok(
        new_snapshot,
        [
            GameStarted(
                home_team_id=new_snapshot.home_team_id,
                away_team_id=new_snapshot.away_team_id,
                started_at=now,
            )
        ],
    )


def apply_game_end(snapshot: GameSnapshot, payload: GameEndPayload) -> TransitionResult:
    new_snapshot = snapshot.model_copy(
        update={
            "status": GameStatus.COMPLETED,
            "score_home": payload.final_score_home,
            "score_away": payload.final_score_away,
        }
    )
    logger.info(
        "Game completed: game=%s, final=%d-%d (away-home), method=%s",
        snapshot.game_id,
        payload.final_score_away,
        payload.final_score_home,
        payload.scoring_method.value,
    )
    return TransitionResult.ok(
        new_snapshot,
        [
            GameEnded(
                final_score_home=payload.final_score_home,
                final_score_away=payload.final_score_away,
                notes=payload.notes,
                scoring_method=payload.scoring_method.value,
            )
        ],
    )


def apply_takeover(snapshot: GameSnapshot, payload: TakeoverPayload) -> TransitionResult:
    logger.info(
        "Umpire takeover: game=%s, %s -> %s",
        snapshot.game_id,
        snapshot.umpire_id,
        payload.new_umpire_id,
    )
    return TransitionResult.ok(snapshot.model_copy(update={"umpire_id": payload.new_umpire_id}))


def apply_inning_end(snapshot: GameSnapshot, payload: InningEndPayload) -> TransitionResult:
    """Close the current half-inning on the umpire's call, taking their scores."""
    new_snapshot = snapshot.model_copy(
        update={"score_home": payload.score_home, "score_away": payload.score_away}
    )
    new_snapshot, side_effect = change_inning(new_snapshot)
    return TransitionResult.ok(new_snapshot, [side_effect])


def _advance_on_hit(
    snapshot: GameSnapshot,
    bases_to_advance: int,
    batter_id: str | None,
    forced: bool,
) -> tuple[GameSnapshot, list[AnySideEffect]]:
    side_effects: list[AnySideEffect] = []

    # Runs are counted from the runners before they move
    runs_scored = calculate_runs_scored(snapshot.base_runners, bases_to_advance)
    outcome = advance_runners(snapshot.base_runners, bases_to_advance, batter_id, forced=forced)

    for dropped in outcome.dropped:
        side_effects.append(
            RunnerDropped(
                runner_id=dropped.runner_id,
                from_base=dropped.from_base,
                target_base=dropped.target_base,
            )
        )

    update: dict = {"base_runners": outcome.runners}
    team = "away" if snapshot.is_top_of_inning else "home"
    if runs_scored > 0:
        if team == "away":
            update["score_away"] = snapshot.score_away + runs_scored
        else:
            update["score_home"] = snapshot.score_home + runs_scored
        side_effects.append(ScoreChanged(runs_scored=runs_scored, team=team))
        logger.info(
            "Runs scored: game=%s, team=%s, runs=%d", snapshot.game_id, team, runs_scored
        )

    return snapshot.model_copy(update=update), side_effects


def _finish_at_bat(
    snapshot: GameSnapshot, side_effects: list[AnySideEffect]
) -> TransitionResult:
    """Reset the count, then change inning on the third out or bring up the next batter."""
    snapshot = snapshot.model_copy(update={"balls": 0, "strikes": 0})

    if snapshot.outs >= 3:
        snapshot, side_effect = change_inning(snapshot)
    else:
        snapshot, side_effect = advance_lineup(snapshot)

    return TransitionResult.ok(snapshot, [*side_effects, side_effect])


def change_inning(snapshot: GameSnapshot) -> tuple[GameSnapshot, InningChanged]:
    """Move to the next half-inning and clear outs, count and bases."""
    if snapshot.is_top_of_inning:
        inning, is_top = snapshot.current_inning, False
    else:
        inning, is_top = snapshot.current_inning + 1, True

    new_snapshot = snapshot.model_copy(
        update={
            "current_inning": inning,
            "is_top_of_inning": is_top,
            "outs": 0,
            "balls": 0,
            "strikes": 0,
            "base_runners": BaseRunners(),
        }
    )
    new_snapshot = _with_current_batter(new_snapshot)

    logger.info(
        "Inning changed: game=%s, inning=%d %s",
        snapshot.game_id,
        inning,
        "top" if is_top else "bottom",
    )
    return new_snapshot, InningChanged(inning=inning, is_top_of_inning=is_top)


def advance_lineup(snapshot: GameSnapshot) -> tuple[GameSnapshot, LineupAdvanced]:
    """Step the batting team's lineup cursor forward, wrapping around."""
    if snapshot.is_top_of_inning:
        lineup, key = snapshot.away_lineup, "away_lineup_position"
    else:
        lineup, key = snapshot.home_lineup, "home_lineup_position"

    position = getattr(snapshot, key)
    if lineup:
        position = (position + 1) % len(lineup)

    new_snapshot = _with_current_batter(snapshot.model_copy(update={key: position}))
    logger.debug(
        "Lineup advanced: game=%s, position=%d, batter=%s",
        snapshot.game_id,
        position,
        new_snapshot.batter_id,
    )
    return new_snapshot, LineupAdvanced(batter_id=new_snapshot.batter_id, position=position)


def _with_current_batter(snapshot: GameSnapshot) -> GameSnapshot:
    """Recompute batter and on-deck from the batting team's lineup cursor."""
    if snapshot.is_top_of_inning:
        lineup, position = snapshot.away_lineup, snapshot.away_lineup_position
    else:
        lineup, position = snapshot.home_lineup, snapshot.home_lineup_position

    if not lineup:
        return snapshot.model_copy(update={"batter_id": None, "catcher_id": None})

    return snapshot.model_copy(
        update={
            "batter_id": lineup[position % len(lineup)],
            "catcher_id": lineup[(position + 1) % len(lineup)],
        }
    )
