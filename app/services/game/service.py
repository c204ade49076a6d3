"""Game service: the single entry point for recording game events.

Every submission for a game runs under that game's lock:
read snapshot -> validate -> append to log -> transition -> persist snapshot.
Undo and edit change the log and rebuild the snapshot by replay.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, cast

from pydantic import BaseModel

from app.config import get_settings
from app.dependencies.redis import get_redis_client
from app.dependencies.supabase import get_async_supabase
from app.schemas.game_engine import (
    EventType,
    GameEvent,
    GameSnapshot,
    GameStatus,
    ScoringMethod,
)

from .engine import (
    AnySideEffect,
    EditPayload,
    GameEndPayload,
    GameEnded,
    GameStarted,
    ScoreOverride,
    UndoPayload,
    parse_payload,
    transition,
    validate_event,
)
from .lock import GameLock, GameLockError, RedisGameLock
from .replay import ReplayError, build_pre_start_snapshot, replay_events
from .store import GameStore, SupabaseGameStore

logger = logging.getLogger(__name__)

# Snapshot status -> games.status
GAME_RECORD_STATUS = {
    GameStatus.COMPLETED.value: "completed",
    GameStatus.IN_PROGRESS.value: "in_progress",
    GameStatus.PAUSED.value: "in_progress",
}


@dataclass
class SubmitEventResult:
    """Result of submit_event / undo_event / edit_event.

    ``event`` is the appended log entry (None for undo). ``fatal`` marks
    failures that leave the log and the snapshot out of step.
    """

    success: bool
    event: GameEvent | None = None
    snapshot: GameSnapshot | None = None
    side_effects: list[AnySideEffect] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error_code: str | None = None
    error_message: str | None = None
    fatal: bool = False

    @classmethod
    def failure(cls, code: str, message: str, fatal: bool = False) -> "SubmitEventResult":
        return cls(success=False, error_code=code, error_message=message, fatal=fatal)


@dataclass
class ReplayCheckResult:
    """Comparison of the persisted snapshot with one rebuilt from the log."""

    game_id: str
    matches: bool
    event_count: int
    differences: list[str] = field(default_factory=list)
    error_message: str | None = None


def quick_result_override(payload: GameEndPayload, snapshot: GameSnapshot) -> bool:
    """Allow final scores that differ from the snapshot for quick results."""
    return payload.scoring_method == ScoringMethod.QUICK_RESULT


class GameService:
    """Service for recording, undoing and editing game events.

    The engine and validator are pure; this class owns the lock, the log and
    the persisted snapshot.
    """

    def __init__(
        self,
        store: GameStore,
        lock: GameLock,
        score_override: ScoreOverride | None = quick_result_override,
    ):
        self._store = store
        self._lock = lock
        self._score_override = score_override

    async def submit_event(
        self,
        game_id: str,
        event_type: EventType | str,
        payload: dict[str, Any] | BaseModel,
        umpire_id: str | None = None,
        previous_event_id: str | None = None,
    ) -> SubmitEventResult:
        """Submit one event for a game.

        Undo and edit are routed to undo_event / edit_event; every other type
        is validated, appended to the log and applied.

        Args:
            game_id: The game the event belongs to.
            event_type: One of the EventType values.
            payload: Raw payload dict (or typed payload).
            umpire_id: The umpire submitting the event.
            previous_event_id: The event this one follows (flip cup checks it).

        Returns:
            SubmitEventResult with the event and new snapshot on success, or
            error info on failure.
        """
        try:
            kind = EventType(event_type)
        except ValueError:
            logger.warning("Rejected unknown event type %s for game %s", event_type, game_id)
            return SubmitEventResult.failure(
                "UNKNOWN_EVENT_TYPE", f"Unknown event type: {event_type}"
            )

        if kind == EventType.UNDO:
            return await self.undo_event(game_id, payload, umpire_id)
        if kind == EventType.EDIT:
            return await self.edit_event(game_id, payload, umpire_id)

        try:
            async with self._lock.hold(game_id):
                return await self._record_event(
                    game_id, kind, payload, umpire_id, previous_event_id
                )
        except GameLockError as e:
            return SubmitEventResult.failure("GAME_BUSY", str(e))
        except Exception:
            logger.exception("Error submitting %s event for game %s", kind.value, game_id)
            return SubmitEventResult.failure("INTERNAL_ERROR", "Failed to record event")

    async def _record_event(
        self,
        game_id: str,
        kind: EventType,
        payload: dict[str, Any] | BaseModel,
        umpire_id: str | None,
        previous_event_id: str | None,
    ) -> SubmitEventResult:
        snapshot = await self._store.get_snapshot(game_id)
        if snapshot is None:
            return SubmitEventResult.failure("GAME_NOT_FOUND", f"Game {game_id} not found")

        previous_event = None
        if previous_event_id:
            previous_event = await self._store.get_event(previous_event_id)
            if previous_event is not None and previous_event.game_id != game_id:
                return SubmitEventResult.failure(
                    "INVALID_PREVIOUS_EVENT",
                    f"Previous event {previous_event_id} belongs to a different game",
                )

        validation = validate_event(
            kind, payload, snapshot, previous_event, self._score_override
        )
        if not validation.is_valid:
            return SubmitEventResult.failure(validation.error_code, validation.error_message)

        history = await self._store.list_events(game_id)
        event = await self._store.append_event(
            game_id, kind, _payload_dict(payload), umpire_id, previous_event_id
        )

        result = transition(snapshot, event, history)
        if not result.success:
            # Keep the log consistent with the snapshot
            await self._store.delete_event(event.id)
            logger.warning(
                "Event %s removed after engine rejection: code=%s", event.id, result.error_code
            )
            return SubmitEventResult.failure(result.error_code, result.error_message)

        try:
            saved = await self._store.save_snapshot(result.snapshot)
        except Exception:
            await self._store.delete_event(event.id)
            logger.error("Event %s removed after snapshot save failed", event.id)
            raise
        await self._sync_game_record(saved, result.side_effects)

        logger.info(
            "Event recorded:game=%s, type=%s, seq=%d, umpire=%s",
            game_id,
            kind.value,
            event.sequence_number,
            umpire_id,
        )
        return SubmitEventResult(
            success=True,
            event=event,
            snapshot=saved,
            side_effects=result.side_effects,
            warnings=validation.warnings,
        )

    async def undo_event(
        self,
        game_id: str,
        payload: dict[str, Any] | BaseModel,
        umpire_id: str | None = None,
    ) -> SubmitEventResult:
        """Remove the latest gameplay event and rebuild the snapshot.

        Only the most recent non-meta event can be undone. The undo itself is
        not logged.
        """
        try:
            async with self._lock.hold(game_id):
                return await self._undo(game_id, payload, umpire_id)
        except GameLockError as e:
            return SubmitEventResult.failure("GAME_BUSY", str(e))
        except ReplayError as e:
            logger.error("Replay failed after undo: game=%s, event=%s - %s", game_id, e.event_id, e)
            return SubmitEventResult.failure("REPLAY_FAILED", str(e), fatal=True)
        except Exception:
            logger.exception("Error undoing event for game %s", game_id)
            return SubmitEventResult.failure("INTERNAL_ERROR", "Failed to undo event")

    async def _undo(
        self,
        game_id: str,
        payload: dict[str, Any] | BaseModel,
        umpire_id: str | None,
    ) -> SubmitEventResult:
        snapshot = await self._store.get_snapshot(game_id)
        if snapshot is None:
            return SubmitEventResult.failure("GAME_NOT_FOUND", f"Game {game_id} not found")

        validation = validate_event(EventType.UNDO, payload, snapshot)
        if not validation.is_valid:
            return SubmitEventResult.failure(validation.error_code, validation.error_message)
        undo = cast(UndoPayload, parse_payload(EventType.UNDO, payload))

        latest = await self._store.latest_gameplay_event(game_id)
        if latest is None:
            return SubmitEventResult.failure("NO_EVENTS", "No events to undo")
        if latest.id != undo.target_event_id:
            return SubmitEventResult.failure(
                "NOT_LATEST_EVENT", "Can only undo the most recent event"
            )

        remaining = [e for e in await self._store.list_events(game_id) if e.id != latest.id]
        rebuilt = replay_events(
            build_pre_start_snapshot(game_id, snapshot.home_team_id, snapshot.away_team_id),
            remaining,
        )
        saved = await self._store.save_snapshot(rebuilt)
        try:
            await self._store.delete_event(latest.id)
        except Exception:
            await self._store.save_snapshot(snapshot)
            logger.error("Undo of %s rolled back: event could not be deleted", latest.id)
            raise
        await self._sync_game_record(saved, [])

        logger.info(
            "Event undone: game=%s, type=%s, seq=%d, umpire=%s, reason=%s",
            game_id,
            latest.type.value,
            latest.sequence_number,
            umpire_id,
            undo.reason,
        )
        return SubmitEventResult(success=True, snapshot=saved)

    async def edit_event(
        self,
        game_id: str,
        payload: dict[str, Any] | BaseModel,
        umpire_id: str | None = None,
    ) -> SubmitEventResult:
        """Replace the payload of the latest gameplay event.

        The snapshot is rebuilt without the target and the new payload is
        validated and applied against it before the log is touched; a rejected
        edit changes nothing.
        """
        try:
            async with self._lock.hold(game_id):
                return await self._edit(game_id, payload, umpire_id)
        except GameLockError as e:
            return SubmitEventResult.failure("GAME_BUSY", str(e))
        except ReplayError as e:
            logger.error("Replay failed during edit: game=%s, event=%s - %s", game_id, e.event_id, e)
            return SubmitEventResult.failure("REPLAY_FAILED", str(e), fatal=True)
        except Exception:
            logger.exception("Error editing event for game %s", game_id)
            return SubmitEventResult.failure("INTERNAL_ERROR", "Failed to edit event")

    async def _edit(
        self,
        game_id: str,
        payload: dict[str, Any] | BaseModel,
        umpire_id: str | None,
    ) -> SubmitEventResult:
        snapshot = await self._store.get_snapshot(game_id)
        if snapshot is None:
            return SubmitEventResult.failure("GAME_NOT_FOUND", f"Game {game_id} not found")

        validation = validate_event(EventType.EDIT, payload, snapshot)
        if not validation.is_valid:
            return SubmitEventResult.failure(validation.error_code, validation.error_message)
        edit = cast(EditPayload, parse_payload(EventType.EDIT, payload))

        target = await self._store.latest_gameplay_event(game_id)
        if target is None:
            return SubmitEventResult.failure("NO_EVENTS", "No events to edit")
        if target.id != edit.target_event_id:
            return SubmitEventResult.failure(
                "NOT_LATEST_EVENT", "Can only edit the most recent event"
            )

        remaining = [e for e in await self._store.list_events(game_id) if e.id != target.id]
        base = replay_events(
            build_pre_start_snapshot(game_id, snapshot.home_team_id, snapshot.away_team_id),
            remaining,
        )
        previous_event = next(
            (e for e in remaining if e.id == target.previous_event_id), None
        )

        replacement_check = validate_event(
            target.type, edit.new_data, base, previous_event, self._score_override
        )
        if not replacement_check.is_valid:
            return SubmitEventResult.failure(
                replacement_check.error_code, replacement_check.error_message
            )

        # Apply to a provisional entry first so a rejection leaves the log untouched
        provisional = target.model_copy(update={"payload": edit.new_data})
        result = transition(base, provisional, remaining)
        if not result.success:
            return SubmitEventResult.failure(result.error_code, result.error_message)

        # Target is removed last; until then a failure only needs the replacement undone
        event = await self._store.append_event(
            game_id,
            target.type,
            edit.new_data,
            umpire_id or target.umpire_id,
            target.previous_event_id,
        )
        try:
            saved = await self._store.save_snapshot(result.snapshot)
            await self._store.delete_event(target.id)
        except Exception:
            await self._store.delete_event(event.id)
            await self._store.save_snapshot(snapshot)
            logger.error("Edit of %s rolled back: replacement %s removed", target.id, event.id)
            raise
        await self._sync_game_record(saved, result.side_effects)

        logger.info(
            "Event edited: game=%s, type=%s, replaced=%s, new=%s, reason=%s",
            game_id,
            target.type.value,
            target.id,
            event.id,
            edit.reason,
        )
        return SubmitEventResult(
            success=True,
            event=event,
            snapshot=saved,
            side_effects=result.side_effects,
            warnings=replacement_check.warnings,
        )

    async def get_snapshot(self, game_id: str) -> GameSnapshot | None:
        return await self._store.get_snapshot(game_id)

    async def list_events(
        self, game_id: str, limit: int = 50, offset: int = 0
    ) -> tuple[list[GameEvent], int]:
        """Page through a game's log in sequence order. Returns (events, total)."""
        return await self._store.page_events(game_id, limit, offset)

    async def check_replay(self, game_id: str) -> ReplayCheckResult | None:
        """Rebuild the snapshot from the log and compare it with the stored one.

        Returns None if the game has no snapshot.
        """
        snapshot = await self._store.get_snapshot(game_id)
        if snapshot is None:
            return None

        events = await self._store.list_events(game_id)
        try:
            rebuilt = replay_events(
                build_pre_start_snapshot(game_id, snapshot.home_team_id, snapshot.away_team_id),
                events,
            )
        except ReplayError as e:
            logger.error("Replay check failed: game=%s, event=%s - %s", game_id, e.event_id, e)
            return ReplayCheckResult(
                game_id=game_id,
                matches=False,
                event_count=len(events),
                error_message=str(e),
            )

        stored = snapshot.model_dump(mode="json", exclude={"last_updated"})
        replayed = rebuilt.model_dump(mode="json", exclude={"last_updated"})
        differences = [key for key in stored if stored[key] != replayed.get(key)]
        if differences:
            logger.warning("Replay mismatch: game=%s, fields=%s", game_id, differences)

        return ReplayCheckResult(
            game_id=game_id,
            matches=not differences,
            event_count=len(events),
            differences=differences,
        )

    async def _sync_game_record(
        self, snapshot: GameSnapshot, side_effects: list[AnySideEffect]
    ) -> None:
        """Mirror scores and status onto the games row. Failures are not fatal."""
        fields: dict[str, Any] = {
            "home_score": snapshot.score_home,
            "away_score": snapshot.score_away,
            "current_inning": snapshot.current_inning,
            "is_top_inning": snapshot.is_top_of_inning,
            "status": GAME_RECORD_STATUS.get(snapshot.status.value, "scheduled"),
        }
        stamp = (snapshot.last_updated or datetime.now(timezone.utc)).isoformat()
        for effect in side_effects:
            if isinstance(effect, GameStarted):
                fields["actual_start"] = effect.started_at.isoformat()
            elif isinstance(effect, GameEnded):
                fields["actual_end"] = stamp

        try:
            await self._store.update_game_record(snapshot.game_id, fields)
        except Exception as e:
            logger.warning("Failed to sync game record for %s: %s", snapshot.game_id, e)


def _payload_dict(payload: dict[str, Any] | BaseModel) -> dict[str, Any]:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return payload


# Singleton instance
_game_service: GameService | None = None


def get_game_service() -> GameService:
    """Get the singleton GameService instance."""
    global _game_service
    if _game_service is None:
        settings = get_settings()
        _game_service = GameService(
            store=SupabaseGameStore(get_async_supabase()),
            lock=RedisGameLock(
                get_redis_client(),
                ttl_seconds=settings.GAME_LOCK_TTL,
                wait_seconds=settings.GAME_LOCK_WAIT,
            ),
        )
    return _game_service
