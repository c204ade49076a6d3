"""Side effects - emitted by state transitions for collaborators.

Side effects describe what a transition did beyond the snapshot itself:
- Scoreboard / live feed updates (runs scored, inning changes)
- Flipping the parent game record when a game starts or ends
- Surfacing anomalies such as a runner that could not be placed
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class SideEffect(BaseModel):
    """Base class for all side effects."""

    effect_type: str


class ScoreChanged(SideEffect):
    """The batting team scored."""

    effect_type: Literal["score_change"] = "score_change"
    runs_scored: int = Field(..., ge=1)
    team: Literal["home", "away"]


class InningChanged(SideEffect):
    """The half-inning changed."""

    effect_type: Literal["inning_change"] = "inning_change"
    inning: int
    is_top_of_inning: bool


class LineupAdvanced(SideEffect):
    """The next batter in the batting team's lineup stepped up."""

    effect_type: Literal["lineup_advance"] = "lineup_advance"
    batter_id: str | None
    position: int


class GameStarted(SideEffect):
    """Game moved from not_started to in_progress."""

    effect_type: Literal["game_start"] = "game_start"
    home_team_id: str
    away_team_id: str
    started_at: datetime


class GameEnded(SideEffect):
    """Game was completed with final scores."""

    effect_type: Literal["game_end"] = "game_end"
    final_score_home: int
    final_score_away: int
    notes: str | None = None
    scoring_method: str = "live"


class RunnerDropped(SideEffect):
    """A runner could not be placed during a non-forced advance."""

    effect_type: Literal["runner_dropped"] = "runner_dropped"
    runner_id: str
    from_base: int
    target_base: int


AnySideEffect = Annotated[
    ScoreChanged | InningChanged | LineupAdvanced | GameStarted | GameEnded | RunnerDropped,
    Field(discriminator="effect_type"),
]
