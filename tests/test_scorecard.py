"""
Unit tests for the batting and bowling cards, including replay consistency
between the cards and the live match state.
"""

from crease.engine.delivery import innings_events
from crease.engine.match_engine import MatchEngine
from crease.models import BallInput, PlayerSlot, WicketEvent, WicketType
from crease.scorecard.batting import build_batting_card
from crease.scorecard.bowling import build_bowling_card, runs_conceded


def _cards(engine: MatchEngine, teams):
    s = engine.state
    batting = build_batting_card(s.history, teams[0].players, s.innings, s.striker_id, s.non_striker_id)
    bowling = build_bowling_card(s.history, teams[1].players, s.innings)
    return {r.player_id: r for r in batting}, {r.player_id: r for r in bowling}


def _play(engine: MatchEngine, *balls: dict) -> None:
    for ball in balls:
        engine.apply_ball(BallInput(**ball), now=0.0)


# --------------------------------------------------------------------------- #
#  Batting card
# --------------------------------------------------------------------------- #


def test_batting_card_runs_and_boundaries(engine, teams):
    _play(engine, {"bat_runs": 4}, {"bat_runs": 6}, {"bat_runs": 0}, {"bat_runs": 1})
    batting, _ = _cards(engine, teams)
    a1 = batting["a1"]
    assert (a1.runs, a1.balls, a1.fours, a1.sixes) == (11, 4, 1, 1)
    assert a1.strike_rate == 275.0
    assert a1.at_crease


def test_openers_on_card_before_facing(engine, teams):
    batting, bowling = _cards(engine, teams)
    assert set(batting) == {"a1", "a2"}
    assert batting["a2"].balls == 0
    assert batting["a2"].strike_rate == 0.0
    assert bowling == {}


def test_wide_not_a_ball_faced(engine, teams):
    _play(engine, {"extra_type": "Wide", "extra_runs": 1})
    batting, bowling = _cards(engine, teams)
    assert batting["a1"].balls == 0
    assert batting["a1"].runs == 0
    assert bowling == {}
    assert engine.state.score == 1


def test_no_ball_runs_credited_but_not_a_ball_faced(engine, teams):
    _play(engine, {"extra_type": "NoBall", "extra_runs": 1, "bat_runs": 4})
    batting, _ = _cards(engine, teams)
    assert batting["a1"].runs == 4
    assert batting["a1"].fours == 1
    assert batting["a1"].balls == 0


def test_dismissal_text_and_unused_players_left_off(engine, teams):
    engine.record_wicket(WicketEvent(wicket_type=WicketType.BOWLED, batter_id="a1"), now=0.0)
    engine.select_batter("a3", PlayerSlot.STRIKER, now=0.0)
    batting, _ = _cards(engine, teams)
    assert batting["a1"].is_out
    assert batting["a1"].dismissal == "WICKET! Bowled"
    assert batting["a1"].balls == 1
    assert batting["a3"].at_crease
    assert "a4" not in batting


def test_retired_out_marked_out_retired_hurt_not(engine, teams):
    engine.retire_batter("a1", WicketType.RETIRED_HURT, now=0.0)
    engine.retire_batter("a2", WicketType.RETIRED_OUT, now=0.0)
    batting, _ = _cards(engine, teams)
    assert "a1" not in batting
    assert batting["a2"].is_out
    assert batting["a2"].dismissal == "Retired Out"


# --------------------------------------------------------------------------- #
#  Bowling card
# --------------------------------------------------------------------------- #


def test_wide_penalty_charged_to_bowler(engine, teams):
    _play(engine, {"bat_runs": 0})
    before = engine.state
    batting, bowling = _cards(engine, teams)
    faced, conceded = batting["a1"].balls, bowling["b11"].runs

    _play(engine, {"extra_type": "Wide", "extra_runs": 1})
    after = engine.state
    batting, bowling = _cards(engine, teams)
    assert after.score == before.score + 1
    assert after.total_balls == before.total_balls
    assert batting["a1"].balls == faced
    assert bowling["b11"].runs == conceded + 1
    assert bowling["b11"].balls == 1


def test_wide_with_runs_charged_in_full(engine, teams):
    # Penalty plus two runs off the wide
    _play(engine, {"extra_type": "Wide", "extra_runs": 3})
    _, bowling = _cards(engine, teams)
    assert bowling["b11"].runs == 3
    assert engine.state.score == 3


def test_penalty_charged_when_no_extras_recorded(engine):
    _play(engine, {"extra_type": "NoBall", "extra_runs": 0, "bat_runs": 2})
    assert runs_conceded(engine.state.history[0]) == 3


def test_byes_not_charged_to_bowler(engine, teams):
    _play(engine, {"extra_type": "Bye", "extra_runs": 4}, {"extra_type": "LegBye", "extra_runs": 1})
    _, bowling = _cards(engine, teams)
    assert bowling["b11"].runs == 0
    assert bowling["b11"].balls == 2


def test_runs_conceded(engine):
    _play(
        engine,
        {"bat_runs": 3},
        {"extra_type": "NoBall", "extra_runs": 1, "bat_runs": 2},
        {"extra_type": "LegBye", "extra_runs": 2},
    )
    conceded = [runs_conceded(b) for b in innings_events(engine.state.history, 1)]
    assert conceded == [3, 3, 0]


def test_run_out_not_credited_to_bowler(engine, teams):
    engine.record_wicket(WicketEvent(wicket_type=WicketType.RUN_OUT, batter_id="a1"), now=0.0)
    engine.select_batter("a3", PlayerSlot.STRIKER, now=0.0)
    engine.record_wicket(
        WicketEvent(wicket_type=WicketType.CAUGHT, batter_id="a3", credit_bowler=False), now=0.0
    )
    _, bowling = _cards(engine, teams)
    assert engine.state.wickets == 2
    assert bowling["b11"].wickets == 0

    engine.select_batter("a4", PlayerSlot.STRIKER, now=0.0)
    engine.record_wicket(WicketEvent(wicket_type=WicketType.LBW, batter_id="a4"), now=0.0)
    _, bowling = _cards(engine, teams)
    assert bowling["b11"].wickets == 1
    assert bowling["b11"].figures_str == "1/0 (0.3)"


def test_maiden_and_economy(engine, teams):
    _play(engine, *[{"bat_runs": 0}] * 6)
    engine.select_bowler("b10", now=0.0)
    _play(engine, {"bat_runs": 4}, *[{"bat_runs": 0}] * 5)
    _, bowling = _cards(engine, teams)
    assert bowling["b11"].maidens == 1
    assert bowling["b11"].economy == 0.0
    assert bowling["b11"].overs == "1.0"
    assert bowling["b10"].maidens == 0
    assert bowling["b10"].economy == 4.0


def test_wide_spoils_maiden(engine, teams):
    _play(engine, {"extra_type": "Wide", "extra_runs": 1}, *[{"bat_runs": 0}] * 6)
    _, bowling = _cards(engine, teams)
    assert bowling["b11"].maidens == 0


def test_split_over_is_no_maiden(engine, teams):
    _play(engine, *[{"bat_runs": 0}] * 3)
    engine.replace_bowler_mid_over("b10", now=0.0)
    _play(engine, *[{"bat_runs": 0}] * 3)
    _, bowling = _cards(engine, teams)
    assert bowling["b11"].balls == 3
    assert bowling["b10"].balls == 3
    assert bowling["b11"].maidens == 0
    assert bowling["b10"].maidens == 0


# --------------------------------------------------------------------------- #
#  Replay consistency
# --------------------------------------------------------------------------- #


def test_cards_agree_with_state(engine, teams):
    _play(
        engine,
        {"bat_runs": 1},
        {"bat_runs": 4},
        {"extra_type": "Wide", "extra_runs": 1},
        {"extra_type": "NoBall", "extra_runs": 1, "bat_runs": 2},
        {"extra_type": "Bye", "extra_runs": 2},
        {"bat_runs": 6},
    )
    engine.select_bowler("b10", now=0.0)
    engine.record_wicket(WicketEvent(wicket_type=WicketType.CAUGHT, batter_id=engine.state.striker_id), now=0.0)
    engine.select_batter("a3", PlayerSlot.STRIKER, now=0.0)
    _play(engine, {"extra_type": "LegBye", "extra_runs": 1}, {"bat_runs": 3})
    engine.retire_batter(engine.state.striker_id, WicketType.RETIRED_OUT, now=0.0)

    s = engine.state
    batting, bowling = _cards(engine, teams)
    extras = sum(b.extra_runs for b in innings_events(s.history, s.innings))

    assert sum(r.runs for r in batting.values()) + extras == s.score
    assert sum(r.balls for r in bowling.values()) == s.total_balls
    assert sum(1 for r in batting.values() if r.is_out) == s.wickets
    assert sum(r.balls for r in batting.values()) == s.total_balls
