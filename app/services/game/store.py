"""Persistence port for game snapshots and event logs.

GameStore is the only way the game service reaches storage; the engine and
validator never touch it. SupabaseGameStore backs it with the tables:
- game_snapshots: one row per game_id
- game_events: the append-only log, ordered by (game_id, sequence_number)
- games: the parent game record (scores/status mirror)
"""

import logging
from typing import Any, Protocol, cast

from supabase import AsyncClient

from app.schemas.game_engine import (
    META_EVENT_TYPES,
    EventType,
    GameEvent,
    GameSnapshot,
)

logger = logging.getLogger(__name__)

SNAPSHOTS_TABLE = "game_snapshots"
EVENTS_TABLE = "game_events"
GAMES_TABLE = "games"


class GameStore(Protocol):
    """Storage operations the game service depends on.

    Callers hold the per-game lock around read-validate-write sequences, so
    implementations only need atomic single operations.
    """

    async def get_snapshot(self, game_id: str) -> GameSnapshot | None: ...

    async def save_snapshot(self, snapshot: GameSnapshot) -> GameSnapshot: ...

    async def get_event(self, event_id: str) -> GameEvent | None: ...

    async def list_events(self, game_id: str) -> list[GameEvent]: ...

    async def page_events(
        self, game_id: str, limit: int, offset: int
    ) -> tuple[list[GameEvent], int]: ...

    async def latest_gameplay_event(self, game_id: str) -> GameEvent | None: ...

    async def append_event(
        self,
        game_id: str,
        event_type: EventType,
        payload: dict[str, Any],
        umpire_id: str | None,
        previous_event_id: str | None = None,
    ) -> GameEvent: ...

    async def delete_event(self, event_id: str) -> None: ...

    async def update_game_record(self, game_id: str, fields: dict[str, Any]) -> None: ...


class StoreError(Exception):
    """A storage operation failed."""


class SupabaseGameStore:
    """GameStore backed by Supabase (PostgREST) tables."""

    def __init__(self, client: AsyncClient):
        self._client = client

    async def get_snapshot(self, game_id: str) -> GameSnapshot | None:
        response = (
            await self._client.table(SNAPSHOTS_TABLE)
            .select("*")
            .eq("game_id", game_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            logger.debug("No snapshot found for game %s", game_id)
            return None
        return GameSnapshot.model_validate(response.data[0])

    async def save_snapshot(self, snapshot: GameSnapshot) -> GameSnapshot:
        response = (
            await self._client.table(SNAPSHOTS_TABLE)
            .upsert(snapshot.model_dump(mode="json"), on_conflict="game_id")
            .execute()
        )
        if not response.data:
            raise StoreError(f"Failed to save snapshot for game {snapshot.game_id}")
        logger.debug("Snapshot saved for game %s", snapshot.game_id)
        return GameSnapshot.model_validate(response.data[0])

    async def get_event(self, event_id: str) -> GameEvent | None:
        response = (
            await self._client.table(EVENTS_TABLE).select("*").eq("id", event_id).limit(1).execute()
        )
        if not response.data:
            return None
        return GameEvent.model_validate(response.data[0])

    async def list_events(self, game_id: str) -> list[GameEvent]:
        response = (
            await self._client.table(EVENTS_TABLE)
            .select("*")
            .eq("game_id", game_id)
            .order("sequence_number")
            .execute()
        )
        return [GameEvent.model_validate(row) for row in response.data or []]

    async def page_events(
        self, game_id: str, limit: int, offset: int
    ) -> tuple[list[GameEvent], int]:
        response = (
            await self._client.table(EVENTS_TABLE)
            .select("*", count="exact")
            .eq("game_id", game_id)
            .order("sequence_number")
            .range(offset, offset + limit - 1)
            .execute()
        )
        events = [GameEvent.model_validate(row) for row in response.data or []]
        return events, response.count or 0

    async def latest_gameplay_event(self, game_id: str) -> GameEvent | None:
        response = (
            await self._client.table(EVENTS_TABLE)
            .select("*")
            .eq("game_id", game_id)
            .not_.in_("type", [t.value for t in META_EVENT_TYPES])
            .order("sequence_number", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return GameEvent.model_validate(response.data[0])

    async def append_event(
        self,
        game_id: str,
        event_type: EventType,
        payload: dict[str, Any],
        umpire_id: str | None,
        previous_event_id: str | None = None,
    ) -> GameEvent:
        last = (
            await self._client.table(EVENTS_TABLE)
            .select("sequence_number")
            .eq("game_id", game_id)
            .order("sequence_number", desc=True)
            .limit(1)
            .execute()
        )
        rows = cast(list[dict[str, Any]], last.data or [])
        next_sequence = rows[0]["sequence_number"] + 1 if rows else 1

        response = (
            await self._client.table(EVENTS_TABLE)
            .insert(
                {
                    "game_id": game_id,
                    "type": event_type.value,
                    "payload": payload,
                    "umpire_id": umpire_id,
                    "sequence_number": next_sequence,
                    "previous_event_id": previous_event_id,
                }
            )
            .execute()
        )
        if not response.data:
            raise StoreError(f"Failed to append {event_type.value} event for game {game_id}")

        event = GameEvent.model_validate(response.data[0])
        logger.debug(
            "Event appended: game=%s, id=%s, seq=%d", game_id, event.id, event.sequence_number
        )
        return event

    async def delete_event(self, event_id: str) -> None:
        await self._client.table(EVENTS_TABLE).delete().eq("id", event_id).execute()
        logger.debug("Event deleted: %s", event_id)

    async def update_game_record(self, game_id: str, fields: dict[str, Any]) -> None:
        await self._client.table(GAMES_TABLE).update(fields).eq("id", game_id).execute()
