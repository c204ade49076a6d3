"""Tests for rebuilding snapshots from the event log."""

import pytest

from app.schemas.game_engine import BaseRunners, EventType, GameSnapshot, GameStatus
from app.services.game.replay import ReplayError, build_pre_start_snapshot, replay_events

from .conftest import (
    AWAY_TEAM_ID,
    FIXED_NOW,
    GAME_ID,
    HOME_TEAM_ID,
    UMPIRE_ID,
    at_bat_payload,
    create_event,
    game_start_payload,
    pitch_payload,
)


def half_inning_log():
    """game_start, strike, cup hit, flip cup won by offense, out."""
    return [
        create_event(EventType.GAME_START, game_start_payload(), 1),
        create_event(EventType.PITCH, pitch_payload("strike"), 2),
        create_event(EventType.PITCH, pitch_payload("second cup hit"), 3),
        create_event(
            EventType.FLIP_CUP,
            {"result": "offense wins", "batter_id": "a1", "catcher_id": "a2"},
            4,
            previous_event_id="event-3",
        ),
        create_event(EventType.AT_BAT, at_bat_payload("out", "a2"), 5),
    ]


class TestReplay:
    def test_replay_rebuilds_state(self, pre_start_snapshot: GameSnapshot):
        snapshot = replay_events(pre_start_snapshot, half_inning_log(), now=FIXED_NOW)

        assert snapshot.status == GameStatus.IN_PROGRESS
        assert snapshot.base_runners == BaseRunners(second="a1")
        assert snapshot.outs == 1
        assert snapshot.strikes == 0
        assert snapshot.batter_id == "a3"
        assert snapshot.last_updated == FIXED_NOW

    def test_replay_is_deterministic(self, pre_start_snapshot: GameSnapshot):
        first = replay_events(pre_start_snapshot, half_inning_log(), now=FIXED_NOW)
        second = replay_events(pre_start_snapshot, half_inning_log(), now=FIXED_NOW)

        assert first == second

    def test_replay_orders_by_sequence_number(self, pre_start_snapshot: GameSnapshot):
        events = half_inning_log()

        shuffled = replay_events(pre_start_snapshot, list(reversed(events)), now=FIXED_NOW)

        assert shuffled == replay_events(pre_start_snapshot, events, now=FIXED_NOW)

    def test_flip_cup_uses_log_prefix(self, pre_start_snapshot: GameSnapshot):
        """A later cup hit does not change an earlier flip cup's hit type."""
        events = [
            *half_inning_log(),
            create_event(EventType.PITCH, pitch_payload("fourth cup hit", "a3", "a1"), 6),
        ]

        snapshot = replay_events(pre_start_snapshot, events, now=FIXED_NOW)

        assert snapshot.base_runners == BaseRunners(second="a1")
        assert snapshot.score_away == 0

    def test_meta_events_are_skipped(self, pre_start_snapshot: GameSnapshot):
        events = [
            *half_inning_log(),
            create_event(EventType.UNDO, {"target_event_id": "event-5"}, 6),
            create_event(EventType.EDIT, {"target_event_id": "event-5", "new_data": {}}, 7),
        ]

        snapshot = replay_events(pre_start_snapshot, events, now=FIXED_NOW)

        assert snapshot == replay_events(pre_start_snapshot, half_inning_log(), now=FIXED_NOW)

    def test_duplicate_game_start_is_skipped(self, pre_start_snapshot: GameSnapshot):
        events = [
            *half_inning_log(),
            create_event(EventType.GAME_START, game_start_payload(), 6),
        ]

        snapshot = replay_events(pre_start_snapshot, events, now=FIXED_NOW)

        assert snapshot.outs == 1
        assert snapshot.batter_id == "a3"


class TestReplayEdgeCases:
    def test_empty_log_returns_pre_start(self, pre_start_snapshot: GameSnapshot):
        assert replay_events(pre_start_snapshot, []) == pre_start_snapshot

    def test_missing_game_start_raises(self, pre_start_snapshot: GameSnapshot):
        events = [create_event(EventType.PITCH, pitch_payload("strike"), 1)]

        with pytest.raises(ReplayError, match="Missing game_start event"):
            replay_events(pre_start_snapshot, events)

    def test_rejected_event_raises_with_event_id(self, pre_start_snapshot: GameSnapshot):
        events = [
            create_event(EventType.GAME_START, game_start_payload(), 1),
            create_event(EventType.GAME_END, {"final_score_home": 1, "final_score_away": 0}, 2),
            create_event(EventType.PITCH, pitch_payload("strike"), 3),
        ]

        with pytest.raises(ReplayError) as exc_info:
            replay_events(pre_start_snapshot, events)

        assert exc_info.value.event_id == "event-3"

    def test_pre_start_snapshot(self):
        snapshot = build_pre_start_snapshot(GAME_ID, HOME_TEAM_ID, AWAY_TEAM_ID)

        assert snapshot.status == GameStatus.NOT_STARTED
        assert snapshot.home_team_id == HOME_TEAM_ID
        assert snapshot.away_team_id == AWAY_TEAM_ID
        assert snapshot.batter_id is None
        assert snapshot.base_runners == BaseRunners()


class TestPreStartEvents:
    """Events logged before game_start are applied before it."""

    def test_takeover_before_game_start(self, pre_start_snapshot: GameSnapshot):
        events = [
            create_event(
                EventType.TAKEOVER, {"previous_umpire_id": None, "new_umpire_id": "u-x"}, 1
            ),
            create_event(EventType.GAME_START, game_start_payload(), 2),
        ]

        snapshot = replay_events(pre_start_snapshot, events, now=FIXED_NOW)

        assert snapshot.umpire_id == UMPIRE_ID
        assert snapshot.status == GameStatus.IN_PROGRESS

    def test_takeover_only_log(self, pre_start_snapshot: GameSnapshot):
        events = [
            create_event(
                EventType.TAKEOVER, {"previous_umpire_id": None, "new_umpire_id": "u-x"}, 1
            ),
        ]

        snapshot = replay_events(pre_start_snapshot, events, now=FIXED_NOW)

        assert snapshot.umpire_id == "u-x"
        assert snapshot.status == GameStatus.NOT_STARTED
