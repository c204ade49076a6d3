"""Base running rules: hit types, run scoring and runner advancement."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from app.schemas.game_engine import (
    AtBatResult,
    BaseRunners,
    EventType,
    GameEvent,
    PitchResult,
)

logger = logging.getLogger(__name__)

HIT_TYPE_FOR_CUP: dict[str, AtBatResult] = {
    PitchResult.FIRST_CUP_HIT.value: AtBatResult.SINGLE,
    PitchResult.SECOND_CUP_HIT.value: AtBatResult.DOUBLE,
    PitchResult.THIRD_CUP_HIT.value: AtBatResult.TRIPLE,
    PitchResult.FOURTH_CUP_HIT.value: AtBatResult.HOMERUN,
}

BASES_FOR_RESULT: dict[str, int] = {
    AtBatResult.WALK.value: 1,
    AtBatResult.SINGLE.value: 1,
    AtBatResult.DOUBLE.value: 2,
    AtBatResult.TRIPLE.value: 3,
    AtBatResult.HOMERUN.value: 4,
}

BASE_NAMES = {1: "first", 2: "second", 3: "third"}


@dataclass
class DroppedRunner:
    """A runner who had no base to land on during a non-forced advance."""

    runner_id: str
    from_base: int
    target_base: int


@dataclass
class AdvanceOutcome:
    runners: BaseRunners
    dropped: list[DroppedRunner] = field(default_factory=list)


def hit_type_from_history(prior_events: Sequence[GameEvent] | None) -> AtBatResult:
    """Find the hit type of the most recent cup hit pitch.

    Scans prior events backward for the latest pitch whose result was a cup
    hit. Falls back to a single when there is none.
    """
    for event in reversed(prior_events or []):
        if event.type != EventType.PITCH:
            continue
        result = event.payload.get("result")
        if isinstance(result, PitchResult):
            result = result.value
        if isinstance(result, str) and result in HIT_TYPE_FOR_CUP:
            hit_type = HIT_TYPE_FOR_CUP[result]
            logger.debug("Cup hit found: event=%s, result=%s, hit=%s", event.id, result, hit_type.value)
            return hit_type

    logger.debug("No cup hit pitch in history, defaulting to single")
    return AtBatResult.SINGLE


def bases_for_result(result: AtBatResult | str) -> int:
    """Number of bases the batter advances for a walk or hit."""
    if isinstance(result, AtBatResult):
        result = result.value
    return BASES_FOR_RESULT.get(result, 1)


def calculate_runs_scored(runners: BaseRunners, bases_to_advance: int) -> int:
    """Count runs scored by an advance, from the runners before they move."""
    runs = 0
    if runners.third and bases_to_advance >= 1:
        runs += 1
    if runners.second and bases_to_advance >= 2:
        runs += 1
    if runners.first and bases_to_advance >= 3:
        runs += 1
    # Batter comes home on a homerun
    if bases_to_advance >= 4:
        runs += 1
    return runs


def advance_runners(
    runners: BaseRunners,
    bases_to_advance: int,
    batter_id: str | None,
    forced: bool = False,
) -> AdvanceOutcome:
    """Move every runner and the batter forward.

    Runners are processed third, second, first onto empty bases. A runner
    reaching home scores and is not placed. When a runner's target base is
    already taken, a forced advance (walk) pushes it to the next open base
    going forward; a non-forced advance leaves it unplaced and reports it in
    ``dropped``.

    Args:
        runners: Runners before the play.
        bases_to_advance: 1-4 bases for walk/single/double/triple/homerun.
        batter_id: The batter, placed on the base matching the hit.
        forced: True for walks.

    Returns:
        AdvanceOutcome with the new runners and any dropped runner.
    """
    bases: dict[int, str | None] = {1: None, 2: None, 3: None}
    dropped: list[DroppedRunner] = []

    for from_base in (3, 2, 1):
        runner = getattr(runners, BASE_NAMES[from_base])
        if not runner:
            continue

        target = from_base + bases_to_advance
        if target >= 4:
            continue  # scored

        if bases[target] is None:
            bases[target] = runner
        elif forced:
            open_base = next((b for b in (3, 2, 1) if bases[b] is None), None)
            if open_base is not None:
                bases[open_base] = runner
        else:
            logger.warning(
                "Runner %s could not advance from base %d to occupied base %d",
                runner,
                from_base,
                target,
            )
            dropped.append(DroppedRunner(runner_id=runner, from_base=from_base, target_base=target))

    if bases_to_advance < 4 and batter_id:
        if bases[bases_to_advance] is None:
            bases[bases_to_advance] = batter_id
        elif forced:
            open_base = next((b for b in (1, 2, 3) if bases[b] is None), None)
            if open_base is not None:
                bases[open_base] = batter_id
        else:
            logger.warning(
                "Batter %s could not be placed on occupied base %d",
                batter_id,
                bases_to_advance,
            )
            dropped.append(
                DroppedRunner(runner_id=batter_id, from_base=0, target_base=bases_to_advance)
            )

    return AdvanceOutcome(
        runners=BaseRunners(first=bases[1], second=bases[2], third=bases[3]),
        dropped=dropped,
    )
