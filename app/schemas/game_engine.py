from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# Game phases
class GameStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


# Event log entry types
class EventType(str, Enum):
    PITCH = "pitch"
    FLIP_CUP = "flip_cup"
    AT_BAT = "at_bat"
    GAME_START = "game_start"
    GAME_END = "game_end"
    TAKEOVER = "takeover"
    UNDO = "undo"
    EDIT = "edit"
    INNING_END = "inning_end"


class PitchResult(str, Enum):
    STRIKE = "strike"
    FOUL_BALL = "foul ball"
    BALL = "ball"
    FIRST_CUP_HIT = "first cup hit"
    SECOND_CUP_HIT = "second cup hit"
    THIRD_CUP_HIT = "third cup hit"
    FOURTH_CUP_HIT = "fourth cup hit"


class FlipCupResult(str, Enum):
    OFFENSE_WINS = "offense wins"
    DEFENSE_WINS = "defense wins"


class AtBatResult(str, Enum):
    OUT = "out"
    WALK = "walk"
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    HOMERUN = "homerun"


class ScoringMethod(str, Enum):
    LIVE = "live"
    QUICK_RESULT = "quick_result"


CUP_HITS = frozenset(
    {
        PitchResult.FIRST_CUP_HIT.value,
        PitchResult.SECOND_CUP_HIT.value,
        PitchResult.THIRD_CUP_HIT.value,
        PitchResult.FOURTH_CUP_HIT.value,
    }
)

# Log entries that act on the log instead of the game
META_EVENT_TYPES = (EventType.UNDO, EventType.EDIT)


class BaseRunners(BaseModel):
    first: str | None = None
    second: str | None = None
    third: str | None = None


class GameSnapshot(BaseModel):
    """Current state of one game.

    A projection of the event log: it can always be rebuilt by replaying the
    log from the game_start event.
    """

    game_id: str
    status: GameStatus = GameStatus.NOT_STARTED

    current_inning: int = Field(1, ge=1)
    is_top_of_inning: bool = True  # True = away team batting

    outs: int = Field(0, ge=0, le=3)
    balls: int = Field(0, ge=0, le=4)
    strikes: int = Field(0, ge=0, le=3)

    score_home: int = Field(0, ge=0)
    score_away: int = Field(0, ge=0)

    home_team_id: str = ""
    away_team_id: str = ""
    home_lineup: list[str] = []
    away_lineup: list[str] = []
    home_lineup_position: int = 0
    away_lineup_position: int = 0

    batter_id: str | None = None
    catcher_id: str | None = None  # on-deck batter
    base_runners: BaseRunners = Field(default_factory=BaseRunners)

    umpire_id: str | None = None
    last_updated: datetime | None = None


class GameEvent(BaseModel):
    """Immutable entry of a game's event log."""

    id: str
    game_id: str
    type: EventType
    payload: dict[str, Any] = {}
    umpire_id: str | None = None
    sequence_number: int
    previous_event_id: str | None = None
    created_at: datetime | None = None
