"""Tests for half-inning changes."""

from app.schemas.game_engine import BaseRunners, EventType, GameSnapshot
from app.services.game.engine import InningChanged, change_inning, transition

from .conftest import at_bat_payload, create_event, create_snapshot


class TestChangeInning:
    def test_top_goes_to_bottom_of_same_inning(self):
        snapshot = create_snapshot(
            current_inning=3,
            outs=3,
            balls=2,
            strikes=1,
            base_runners=BaseRunners(first="r1", third="r3"),
        )

        new_snapshot, side_effect = change_inning(snapshot)

        assert new_snapshot.current_inning == 3
        assert not new_snapshot.is_top_of_inning
        assert new_snapshot.outs == 0
        assert new_snapshot.balls == 0
        assert new_snapshot.strikes == 0
        assert new_snapshot.base_runners == BaseRunners()
        assert side_effect == InningChanged(inning=3, is_top_of_inning=False)

    def test_bottom_goes_to_top_of_next_inning(self):
        snapshot = create_snapshot(current_inning=3, is_top_of_inning=False, batter_id="h1")

        new_snapshot, side_effect = change_inning(snapshot)

        assert new_snapshot.current_inning == 4
        assert new_snapshot.is_top_of_inning
        assert side_effect == InningChanged(inning=4, is_top_of_inning=True)

    def test_batter_comes_from_new_batting_team(self):
        snapshot = create_snapshot(home_lineup_position=1, away_lineup_position=2)

        new_snapshot, _ = change_inning(snapshot)

        assert new_snapshot.batter_id == "h2"
        assert new_snapshot.catcher_id == "h3"

    def test_batting_team_resumes_where_it_left_off(self):
        """The team that just batted keeps its lineup cursor."""
        snapshot = create_snapshot(
            is_top_of_inning=False,
            away_lineup_position=1,
            batter_id="h1",
            catcher_id="h2",
        )

        new_snapshot, _ = change_inning(snapshot)

        assert new_snapshot.away_lineup_position == 1
        assert new_snapshot.batter_id == "a2"
        assert new_snapshot.catcher_id == "a3"

    def test_scores_survive_inning_change(self):
        snapshot = create_snapshot(score_home=2, score_away=5)

        new_snapshot, _ = change_inning(snapshot)

        assert new_snapshot.score_home == 2
        assert new_snapshot.score_away == 5


class TestThirdOut:
    def test_third_out_does_not_advance_lineup(self):
        snapshot = create_snapshot(outs=2)

        event = create_event(EventType.AT_BAT, at_bat_payload("out", "a1"))
        result = transition(snapshot, event, [])

        assert result.snapshot.away_lineup_position == 0
        assert not result.snapshot.is_top_of_inning
        assert result.snapshot.batter_id == "h1"
        assert result.side_effects == [InningChanged(inning=1, is_top_of_inning=False)]


class TestInningEnd:
    """The umpire closes the half-inning manually."""

    def test_inning_end_takes_payload_scores(self, in_progress_snapshot: GameSnapshot):
        event = create_event(
            EventType.INNING_END,
            {"inning_number": 1, "is_top_of_inning": True, "score_home": 0, "score_away": 2},
        )

        result = transition(in_progress_snapshot, event, [])

        assert result.success
        assert result.snapshot.score_away == 2
        assert not result.snapshot.is_top_of_inning
        assert result.snapshot.batter_id == "h1"
        assert result.side_effects == [InningChanged(inning=1, is_top_of_inning=False)]

    def test_inning_end_requires_game_in_progress(self, pre_start_snapshot: GameSnapshot):
        event = create_event(
            EventType.INNING_END,
            {"inning_number": 1, "is_top_of_inning": True, "score_home": 0, "score_away": 0},
        )

        result = transition(pre_start_snapshot, event, [])

        assert not result.success
        assert result.error_code == "GAME_NOT_IN_PROGRESS"
