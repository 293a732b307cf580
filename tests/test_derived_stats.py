"""
Unit tests for live derived numbers: rates, extras, partnership, the
recent-balls timeline, the over-rate timer and the match result.
"""

import pytest

from crease.engine.derived_stats import (
    current_partnership,
    derive_stats,
    economy,
    extras_breakdown,
    required_rate,
    run_rate,
    strike_rate,
)
from crease.engine.over_rate import elapsed_seconds, format_elapsed, minutes_per_over_for, over_rate_status
from crease.engine.result import compute_result, top_performers
from crease.engine.timeline import ball_label, build_timeline
from crease.models import (
    BallInput,
    InningsSummary,
    MatchFormat,
    MatchState,
    MatchTimer,
    PlayerSlot,
    WicketEvent,
    WicketType,
)


def _play(engine, *balls: dict) -> None:
    for ball in balls:
        engine.apply_ball(BallInput(**ball), now=0.0)


# --------------------------------------------------------------------------- #
#  Rates
# --------------------------------------------------------------------------- #


def test_rates():
    assert run_rate(0, 0) == 0.0
    assert run_rate(45, 30) == 9.0
    assert run_rate(10, 4) == 15.0
    assert strike_rate(7, 3) == 233.3
    assert strike_rate(5, 0) == 0.0
    assert economy(13, 9) == 8.67
    assert economy(1, 0) == 0.0


def test_required_rate():
    assert required_rate(None, 50, 60) is None
    assert required_rate(151, 100, 0) is None
    assert required_rate(151, 100, 30) == 10.2
    assert required_rate(151, 160, 30) == 0.0


# --------------------------------------------------------------------------- #
#  Innings breakdowns
# --------------------------------------------------------------------------- #


def test_extras_breakdown(engine):
    _play(
        engine,
        {"extra_type": "Wide", "extra_runs": 1},
        {"extra_type": "Wide", "extra_runs": 3},
        {"extra_type": "NoBall", "extra_runs": 1, "bat_runs": 4},
        {"extra_type": "Bye", "extra_runs": 2},
        {"extra_type": "LegBye", "extra_runs": 1},
    )
    extras = extras_breakdown(engine.state)
    assert (extras.wides, extras.no_balls, extras.byes, extras.leg_byes) == (4, 1, 2, 1)
    assert extras.total == 8


def test_partnership_resets_on_wicket(engine):
    _play(engine, {"bat_runs": 4}, {"bat_runs": 1})
    assert current_partnership(engine.state).runs == 5

    engine.record_wicket(WicketEvent(wicket_type=WicketType.BOWLED, batter_id=engine.state.striker_id), now=0.0)
    engine.select_batter("a3", PlayerSlot.STRIKER, now=0.0)
    _play(engine, {"bat_runs": 2}, {"extra_type": "Wide", "extra_runs": 1})

    partnership = current_partnership(engine.state)
    assert partnership.runs == 3
    assert partnership.balls == 1
    assert set(partnership.batter_ids) == {"a1", "a3"}


def test_derive_stats_in_chase(engine):
    engine.end_innings()
    engine.start_innings("b", "a", target=31)
    engine.select_batter("b1", PlayerSlot.STRIKER, now=0.0)
    engine.select_batter("b2", PlayerSlot.NON_STRIKER, now=0.0)
    engine.select_bowler("a11", now=0.0)
    _play(engine, {"bat_runs": 4}, {"bat_runs": 2})

    stats = derive_stats(engine.state, total_overs_allowed=2)
    assert stats.overs == "0.2"
    assert stats.run_rate == 18.0
    assert stats.runs_needed == 25
    assert stats.balls_remaining == 10
    assert stats.required_rate == 15.0
    assert stats.batter_stats["b1"].runs == 6
    assert "b2" in stats.batter_stats
    assert stats.bowler_stats["a11"].balls == 2
    # First-innings events stay out of the live figures
    assert "a1" not in stats.batter_stats


def test_derive_stats_first_innings_has_no_target(engine):
    stats = derive_stats(engine.state, total_overs_allowed=20)
    assert stats.runs_needed is None
    assert stats.required_rate is None
    assert stats.balls_remaining == 120


# --------------------------------------------------------------------------- #
#  Timeline
# --------------------------------------------------------------------------- #


def test_timeline_labels(engine):
    _play(
        engine,
        {"bat_runs": 0},
        {"bat_runs": 2},
        {"bat_runs": 4},
        {"bat_runs": 6},
        {"extra_type": "Wide", "extra_runs": 1},
        {"extra_type": "Wide", "extra_runs": 3},
        {"extra_type": "NoBall", "extra_runs": 1},
        {"extra_type": "NoBall", "extra_runs": 1, "bat_runs": 4},
        {"extra_type": "Bye", "extra_runs": 1},
        {"extra_type": "LegBye", "extra_runs": 2},
        {"is_wicket": True, "wicket_type": "Bowled"},
    )
    items = build_timeline(engine.state, limit=20)
    labels = [i.label for i in reversed(items)]
    assert labels == ["0", "2", "4", "6", "Wd", "3Wd", "Nb", "4Nb", "1B", "2Lb", "W"]
    tones = [i.tone for i in reversed(items)]
    assert tones[:4] == ["dot", "run", "boundary", "boundary"]
    assert tones[-1] == "wicket"
    assert set(tones[4:10]) == {"extra"}


def test_timeline_skips_meta_and_limits(engine):
    _play(engine, *[{"bat_runs": 1}] * 4)
    engine.select_bowler("b10", now=0.0)
    items = build_timeline(engine.state, limit=3)
    assert len(items) == 3
    assert len({i.id for i in items}) == 3
    assert all(i.id.startswith("1-") for i in items)


def test_ball_label_for_single(engine):
    _play(engine, {"bat_runs": 1})
    assert ball_label(engine.state.history[0]) == ("1", "run")


# --------------------------------------------------------------------------- #
#  Over-rate timer
# --------------------------------------------------------------------------- #


def test_elapsed_seconds_excludes_pauses():
    assert elapsed_seconds(MatchTimer(), 500.0) == 0.0
    timer = MatchTimer(start_time=0.0, total_allowances=60.0)
    assert elapsed_seconds(timer, 600.0) == 540.0
    paused = MatchTimer(start_time=0.0, total_allowances=60.0, is_paused=True, last_pause_time=500.0)
    assert elapsed_seconds(paused, 600.0) == 440.0


def test_over_rate_behind_and_on_pace():
    timer = MatchTimer(start_time=0.0)
    # 20 minutes at 4 minutes an over should be 5 overs
    behind = over_rate_status(timer, total_balls=24, now=1200.0, minutes_per_over=4.0, tolerance_overs=0.0)
    assert behind.expected_overs == 5.0
    assert behind.actual_overs == 4.0
    assert behind.behind_rate

    on_pace = over_rate_status(timer, total_balls=30, now=1200.0, minutes_per_over=4.0, tolerance_overs=0.0)
    assert not on_pace.behind_rate

    idle = over_rate_status(timer, total_balls=0, now=1200.0, minutes_per_over=4.0, active=False)
    assert not idle.behind_rate


def test_minutes_per_over_for_format():
    assert minutes_per_over_for(MatchFormat.TEST) == 4.0
    assert minutes_per_over_for(MatchFormat.T20) == 4.25


@pytest.mark.parametrize("seconds, expected", [(0, "00:00"), (75, "01:15"), (3725, "1:02:05")])
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected


# --------------------------------------------------------------------------- #
#  Result
# --------------------------------------------------------------------------- #


def _finished(first: int, second: int, second_wickets: int) -> MatchState:
    return MatchState(
        batting_team_id="b",
        bowling_team_id="a",
        innings=2,
        target=first + 1,
        is_completed=True,
        innings_scores=[
            InningsSummary(innings=1, team_id="a", score=first, wickets=7, overs="20.0"),
            InningsSummary(innings=2, team_id="b", score=second, wickets=second_wickets, overs="18.3"),
        ],
    )


def test_result_chasing_side_wins_by_wickets():
    result = compute_result(_finished(150, 151, 3), "a", "b", {"a": "Lions", "b": "Tigers"})
    assert result.winner_id == "b"
    assert result.result_text == "Tigers Won"
    assert result.margin_text == "by 7 wickets"


def test_result_defending_side_wins_by_runs():
    result = compute_result(_finished(150, 120, 10), "a", "b")
    assert result.winner_id == "a"
    assert result.result_text == "a Won"
    assert result.margin_text == "by 30 runs"


def test_result_tie():
    result = compute_result(_finished(150, 150, 9), "a", "b")
    assert result.is_tie
    assert result.winner_id is None
    assert result.result_text == "Match Tied"


def test_result_counts_unarchived_innings():
    state = _finished(100, 0, 0).model_copy(update={
        "innings_scores": [InningsSummary(innings=1, team_id="a", score=100, wickets=10, overs="15.2")],
        "score": 101,
        "wickets": 9,
    })
    result = compute_result(state, "a", "b")
    assert result.winner_id == "b"
    assert result.margin_text == "by 1 wickets"


def test_result_margin_uses_flexible_squad():
    state = _finished(150, 151, 2)
    standard = compute_result(state, "a", "b", players_per_side=15)
    assert standard.margin_text == "by 8 wickets"

    flexible = compute_result(state, "a", "b", players_per_side=15, allow_flexible_squad=True)
    assert flexible.margin_text == "by 12 wickets"


def test_top_performers(engine, teams):
    _play(engine, {"bat_runs": 4}, {"bat_runs": 1}, {"bat_runs": 6})
    engine.record_wicket(WicketEvent(wicket_type=WicketType.BOWLED, batter_id=engine.state.striker_id), now=0.0)
    performers = top_performers(engine.state, 1, teams[0].players, teams[1].players)
    assert performers.best_batter.player_id == "a2"
    assert performers.best_batter.runs == 6
    assert performers.best_bowler.player_id == "b11"
    assert performers.best_bowler.wickets == 1
