"""Shared fixtures for game engine and service tests."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import pytest

# Settings are read at app import time
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_API_KEY", "test-key")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://example.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test-token")

from app.schemas.game_engine import (  # noqa: E402
    BaseRunners,
    EventType,
    GameEvent,
    GameSnapshot,
    GameStatus,
)
from app.services.game.lock import GameLockError  # noqa: E402
from app.services.game.service import GameService  # noqa: E402

# Fixed ids for deterministic testing
GAME_ID = "game-1"
HOME_TEAM_ID = "team-home"
AWAY_TEAM_ID = "team-away"
UMPIRE_ID = "umpire-1"
AWAY_LINEUP = ["a1", "a2", "a3"]
HOME_LINEUP = ["h1", "h2", "h3"]

FIXED_NOW = datetime(2025, 6, 1, 18, 0, tzinfo=timezone.utc)


def create_snapshot(**overrides: Any) -> GameSnapshot:
    """In-progress game, top of the 1st, a1 batting with a2 on deck."""
    fields: dict[str, Any] = {
        "game_id": GAME_ID,
        "status": GameStatus.IN_PROGRESS,
        "home_team_id": HOME_TEAM_ID,
        "away_team_id": AWAY_TEAM_ID,
        "home_lineup": list(HOME_LINEUP),
        "away_lineup": list(AWAY_LINEUP),
        "batter_id": AWAY_LINEUP[0],
        "catcher_id": AWAY_LINEUP[1],
        "umpire_id": UMPIRE_ID,
    }
    fields.update(overrides)
    return GameSnapshot(**fields)


def create_pre_start_snapshot() -> GameSnapshot:
    return GameSnapshot(
        game_id=GAME_ID,
        status=GameStatus.NOT_STARTED,
        home_team_id=HOME_TEAM_ID,
        away_team_id=AWAY_TEAM_ID,
    )


def create_event(
    event_type: EventType,
    payload: dict[str, Any],
    sequence_number: int = 1,
    event_id: str | None = None,
    previous_event_id: str | None = None,
) -> GameEvent:
    """Helper to create a logged event."""
    return GameEvent(
        id=event_id or f"event-{sequence_number}",
        game_id=GAME_ID,
        type=event_type,
        payload=payload,
        umpire_id=UMPIRE_ID,
        sequence_number=sequence_number,
        previous_event_id=previous_event_id,
    )


def game_start_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "umpire_id": UMPIRE_ID,
        "home_team_id": HOME_TEAM_ID,
        "away_team_id": AWAY_TEAM_ID,
        "lineups": {"home": list(HOME_LINEUP), "away": list(AWAY_LINEUP)},
        "innings": 7,
    }
    payload.update(overrides)
    return payload


def pitch_payload(result: str, batter_id: str = "a1", catcher_id: str = "a2") -> dict[str, Any]:
    return {"result": result, "batter_id": batter_id, "catcher_id": catcher_id}


def at_bat_payload(result: str, batter_id: str = "a1") -> dict[str, Any]:
    return {"result": result, "batter_id": batter_id}


class FakeGameStore:
    """In-memory GameStore."""

    def __init__(self) -> None:
        self.snapshots: dict[str, GameSnapshot] = {}
        self.events: list[GameEvent] = []
        self.game_records: dict[str, dict[str, Any]] = {}
        self._next_id = 1

    async def get_snapshot(self, game_id: str) -> GameSnapshot | None:
        return self.snapshots.get(game_id)

    async def save_snapshot(self, snapshot: GameSnapshot) -> GameSnapshot:
        self.snapshots[snapshot.game_id] = snapshot
        return snapshot

    async def get_event(self, event_id: str) -> GameEvent | None:
        return next((e for e in self.events if e.id == event_id), None)

    async def list_events(self, game_id: str) -> list[GameEvent]:
        return sorted(
            (e for e in self.events if e.game_id == game_id), key=lambda e: e.sequence_number
        )

    async def page_events(
        self, game_id: str, limit: int, offset: int
    ) -> tuple[list[GameEvent], int]:
        events = await self.list_events(game_id)
        return events[offset : offset + limit], len(events)

    async def latest_gameplay_event(self, game_id: str) -> GameEvent | None:
        gameplay = [
            e
            for e in await self.list_events(game_id)
            if e.type not in (EventType.UNDO, EventType.EDIT)
        ]
        return gameplay[-1] if gameplay else None

    async def append_event(
        self,
        game_id: str,
        event_type: EventType,
        payload: dict[str, Any],
        umpire_id: str | None,
        previous_event_id: str | None = None,
    ) -> GameEvent:
        existing = await self.list_events(game_id)
        event = GameEvent(
            id=f"event-{self._next_id}",
            game_id=game_id,
            type=event_type,
            payload=payload,
            umpire_id=umpire_id,
            sequence_number=existing[-1].sequence_number + 1 if existing else 1,
            previous_event_id=previous_event_id,
            created_at=FIXED_NOW,
        )
        self._next_id += 1
        self.events.append(event)
        return event

    async def delete_event(self, event_id: str) -> None:
        self.events = [e for e in self.events if e.id != event_id]

    async def update_game_record(self, game_id: str, fields: dict[str, Any]) -> None:
        self.game_records.setdefault(game_id, {}).update(fields)


class NullLock:
    """Lock that is always free."""

    @asynccontextmanager
    async def hold(self, game_id: str) -> AsyncIterator[None]:
        yield


class BusyLock:
    """Lock that is always held by someone else."""

    @asynccontextmanager
    async def hold(self, game_id: str) -> AsyncIterator[None]:
        raise GameLockError(f"Game {game_id} is busy, try again")
        yield


@pytest.fixture
def in_progress_snapshot() -> GameSnapshot:
    return create_snapshot()


@pytest.fixture
def pre_start_snapshot() -> GameSnapshot:
    return create_pre_start_snapshot()


@pytest.fixture
def bases_loaded_snapshot() -> GameSnapshot:
    """Top of the 1st with runners r1, r2, r3 on first, second, third."""
    return create_snapshot(base_runners=BaseRunners(first="r1", second="r2", third="r3"))


@pytest.fixture
def store() -> FakeGameStore:
    """Store holding a not-started game."""
    fake = FakeGameStore()
    fake.snapshots[GAME_ID] = create_pre_start_snapshot()
    return fake


@pytest.fixture
def service(store: FakeGameStore) -> GameService:
    return GameService(store=store, lock=NullLock())
