from crease.engine.delivery import BALLS_PER_OVER, innings_events
from crease.models import (
    DerivedStats,
    EventKind,
    ExtrasBreakdown,
    ExtraType,
    MatchState,
    Partnership,
    Player,
)
from crease.scorecard.batting import build_batting_card
from crease.scorecard.bowling import build_bowling_card


# ------------------------------------------------------------------ #
#  Rates
# ------------------------------------------------------------------ #

def run_rate(score: int, balls: int) -> float:
    """Runs per over."""
    overs = balls / BALLS_PER_OVER
    if overs == 0:
        return 0.0
    return round(score / overs, 2)


def required_rate(target: int | None, score: int, balls_remaining: int) -> float | None:
    """Runs per over still needed; None without a target or with no balls left."""
    if target is None or balls_remaining <= 0:
        return None
    runs_needed = max(target - score, 0)
    return round(runs_needed / (balls_remaining / BALLS_PER_OVER), 2)


def strike_rate(runs: int, balls: int) -> float:
    if balls == 0:
        return 0.0
    return round(runs / balls * 100, 1)


def economy(runs: int, balls: int) -> float:
    if balls == 0:
        return 0.0
    return round(runs / (balls / BALLS_PER_OVER), 2)


# ------------------------------------------------------------------ #
#  Innings breakdowns
# ------------------------------------------------------------------ #

def extras_breakdown(state: MatchState) -> ExtrasBreakdown:
    extras = ExtrasBreakdown()
    for b in innings_events(state.history, state.innings):
        if b.extra_type == ExtraType.WIDE:
            extras.wides += b.extra_runs
        elif b.extra_type == ExtraType.NO_BALL:
            extras.no_balls += b.extra_runs
        elif b.extra_type == ExtraType.BYE:
            extras.byes += b.extra_runs
        elif b.extra_type == ExtraType.LEG_BYE:
            extras.leg_byes += b.extra_runs
    return extras


def current_partnership(state: MatchState) -> Partnership:
    """Runs and legal balls since the last batter left the crease."""
    runs = balls = 0
    for b in innings_events(state.history, state.innings, include_meta=True):
        if b.is_wicket or b.kind == EventKind.RETIREMENT:
            runs = balls = 0
            continue
        runs += b.bat_runs + b.extra_runs
        if not b.is_meta and b.is_legal:
            balls += 1
    batter_ids = [pid for pid in (state.striker_id, state.non_striker_id) if pid]
    return Partnership(runs=runs, balls=balls, batter_ids=batter_ids)


def _innings_participants(state: MatchState) -> tuple[list[Player], list[Player]]:
    """Every batter and bowler id that appears in the current innings, in order of appearance."""
    batters: dict[str, Player] = {}
    bowlers: dict[str, Player] = {}
    for b in innings_events(state.history, state.innings, include_meta=True):
        for pid in (b.striker_id, b.non_striker_id, b.out_player_id):
            if pid and pid not in batters:
                batters[pid] = Player(id=pid, name=pid)
        if b.bowler_id and b.bowler_id not in bowlers:
            bowlers[b.bowler_id] = Player(id=b.bowler_id, name=b.bowler_id)
    return list(batters.values()), list(bowlers.values())


def derive_stats(state: MatchState, total_overs_allowed: int) -> DerivedStats:
    """Live figures for the current innings, recomputed from the log."""
    batters, bowlers = _innings_participants(state)
    batting = build_batting_card(
        state.history, batters, state.innings, state.striker_id, state.non_striker_id
    )
    bowling = build_bowling_card(state.history, bowlers, state.innings)

    balls_remaining = max(total_overs_allowed * BALLS_PER_OVER - state.total_balls, 0)
    runs_needed = max(state.target - state.score, 0) if state.target is not None else None

    return DerivedStats(
        overs=state.overs,
        run_rate=run_rate(state.score, state.total_balls),
        runs_needed=runs_needed,
        balls_remaining=balls_remaining,
        required_rate=required_rate(state.target, state.score, balls_remaining),
        batter_stats={r.player_id: r for r in batting},
        bowler_stats={r.player_id: r for r in bowling},
        extras=extras_breakdown(state),
        partnership=current_partnership(state),
    )
