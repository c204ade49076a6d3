"""Game service module.

Provides:
- Game engine: validation and state transitions (engine/)
- Log replay (replay.py)
- Storage and locking ports (store.py, lock.py)
- Event submission orchestration (service.py)
"""

from .lock import GameLock, GameLockError, RedisGameLock
from .replay import ReplayError, build_pre_start_snapshot, replay_events
from .service import (
    GameService,
    ReplayCheckResult,
    SubmitEventResult,
    get_game_service,
    quick_result_override,
)
from .store import GameStore, StoreError, SupabaseGameStore

__all__ = [
    # Replay
    "ReplayError",
    "build_pre_start_snapshot",
    "replay_events",
    # Storage and locking
    "GameStore",
    "StoreError",
    "SupabaseGameStore",
    "GameLock",
    "GameLockError",
    "RedisGameLock",
    # Service
    "GameService",
    "SubmitEventResult",
    "ReplayCheckResult",
    "get_game_service",
    "quick_result_override",
]
