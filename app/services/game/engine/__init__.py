"""Game engine module - pure functional game logic.

This module provides the core game engine with:
- Payload types for each logged event type
- validate_event() gate run before an event is appended to the log
- transition() applying one logged event to a snapshot
- Side effect types for collaborators (scoreboard, game record)

Usage:
    from app.services.game.engine import transition, validate_event

    validation = validate_event(event_type, payload, snapshot, previous_event)
    if not validation.is_valid:
        reject(validation.error_code, validation.error_message)

    # ... append the event to the log, then:
    result = transition(snapshot, event, prior_events)
    if result.success:
        new_snapshot = result.snapshot
        effects = result.side_effects
"""

# Base running
from .baserunning import (
    advance_runners,
    bases_for_result,
    calculate_runs_scored,
    hit_type_from_history,
)

# Payloads - variant body of each event type
from .payloads import (
    AtBatPayload,
    EditPayload,
    EventPayload,
    FlipCupPayload,
    GameEndPayload,
    GameStartPayload,
    InningEndPayload,
    Lineups,
    PitchPayload,
    TakeoverPayload,
    UndoPayload,
    parse_payload,
)

# Side effects - for collaborators
from .side_effects import (
    AnySideEffect,
    GameEnded,
    GameStarted,
    InningChanged,
    LineupAdvanced,
    RunnerDropped,
    ScoreChanged,
    SideEffect,
)

# Transitions
from .transition import TransitionResult, advance_lineup, change_inning, transition

# Validation
from .validation import ScoreOverride, ValidationResult, validate_event

__all__ = [
    # Payloads
    "EventPayload",
    "PitchPayload",
    "FlipCupPayload",
    "AtBatPayload",
    "GameStartPayload",
    "GameEndPayload",
    "TakeoverPayload",
    "UndoPayload",
    "EditPayload",
    "InningEndPayload",
    "Lineups",
    "parse_payload",
    # Side effects
    "SideEffect",
    "AnySideEffect",
    "ScoreChanged",
    "InningChanged",
    "LineupAdvanced",
    "GameStarted",
    "GameEnded",
    "RunnerDropped",
    # Transitions
    "TransitionResult",
    "transition",
    "change_inning",
    "advance_lineup",
    # Validation
    "ValidationResult",
    "ScoreOverride",
    "validate_event",
    # Base running
    "advance_runners",
    "bases_for_result",
    "calculate_runs_scored",
    "hit_type_from_history",
]
