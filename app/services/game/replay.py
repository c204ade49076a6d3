"""Rebuild a game snapshot by replaying its event log.

Undo and edit never invert a transition: the log is changed and the snapshot
is recomputed from a pre-start snapshot through the engine.
"""

import logging
from collections.abc import Sequence
from datetime import datetime

from app.schemas.game_engine import (
    META_EVENT_TYPES,
    EventType,
    GameEvent,
    GameSnapshot,
    GameStatus,
)

from .engine import transition

logger = logging.getLogger(__name__)

# Log entries the engine accepts before game_start
PRE_START_EVENT_TYPES = (*META_EVENT_TYPES, EventType.TAKEOVER)


class ReplayError(Exception):
    """An event was rejected while replaying the log.

    The log and the persisted snapshot may disagree after this; it must be
    surfaced, never swallowed.
    """

    def __init__(self, message: str, event_id: str | None = None):
        super().__init__(message)
        self.event_id = event_id


def build_pre_start_snapshot(
    game_id: str,
    home_team_id: str = "",
    away_team_id: str = "",
) -> GameSnapshot:
    """Minimal snapshot of a game that has not started yet."""
    return GameSnapshot(
        game_id=game_id,
        status=GameStatus.NOT_STARTED,
        home_team_id=home_team_id,
        away_team_id=away_team_id,
    )


def replay_events(
    pre_start: GameSnapshot,
    events: Sequence[GameEvent],
    now: datetime | None = None,
) -> GameSnapshot:
    """Replay a game's log onto a pre-start snapshot.

    Events are applied strictly in sequence_number order, so entries logged
    before game_start (an umpire takeover) land before it. Undo/edit entries
    and any game_start after the first are skipped. Each event sees the log
    entries that precede it.

    Args:
        pre_start: Snapshot to start from.
        events: The game's event log, in any order.
        now: Timestamp for ``last_updated`` on every step.

    Returns:
        The rebuilt snapshot. With an empty log this is ``pre_start``.

    Raises:
        ReplayError: If the log has gameplay events but no game_start, or the
            engine rejects any event.
    """
    ordered = sorted(events, key=lambda e: e.sequence_number)
    has_game_start = any(e.type == EventType.GAME_START for e in ordered)
    if not has_game_start and any(e.type not in PRE_START_EVENT_TYPES for e in ordered):
        raise ReplayError("Missing game_start event")

    snapshot = pre_start
    started = False
    replayed = 0
    for index, event in enumerate(ordered):
        if event.type in META_EVENT_TYPES:
            continue
        if event.type == EventType.GAME_START:
            if started:
                continue
            started = True

        result = transition(snapshot, event, ordered[:index], now=now)
        if not result.success:
            logger.error(
                "Replay failed: game=%s, event=%s, seq=%d, code=%s, message=%s",
                pre_start.game_id,
                event.id,
                event.sequence_number,
                result.error_code,
                result.error_message,
            )
            raise ReplayError(result.error_message or "Event rejected during replay", event.id)
        snapshot = result.snapshot
        replayed += 1

    if not replayed:
        logger.info("Replay: no events for game %s, using pre-start snapshot", pre_start.game_id)
    else:
        logger.info("Replay complete: game=%s, events=%d", pre_start.game_id, replayed)
    return snapshot
