from typing import Sequence

from crease.config import settings
from crease.engine.innings import wicket_limit
from crease.models import MatchResult, MatchState, Player, TopPerformers
from crease.scorecard.batting import build_batting_card
from crease.scorecard.bowling import build_bowling_card


def _team_totals(state: MatchState) -> dict[str, int]:
    """Runs per team across every innings, counting the live one if not yet archived."""
    totals: dict[str, int] = {}
    for summary in state.innings_scores:
        totals[summary.team_id] = totals.get(summary.team_id, 0) + summary.score
    if not any(summary.innings == state.innings for summary in state.innings_scores):
        totals[state.batting_team_id] = totals.get(state.batting_team_id, 0) + state.score
    return totals


def _final_innings(state: MatchState) -> tuple[str, int]:
    """(team, wickets) of the last innings played."""
    for summary in reversed(state.innings_scores):
        if summary.innings == state.innings:
            return summary.team_id, summary.wickets
    return state.batting_team_id, state.wickets


def compute_result(
    state: MatchState,
    team_a_id: str,
    team_b_id: str,
    team_names: dict[str, str] | None = None,
    players_per_side: int | None = None,
    allow_flexible_squad: bool = False,
) -> MatchResult:
    """
    Winner and margin from the innings totals.

    A side that wins batting last wins by wickets in hand, otherwise by runs.
    """
    names = team_names or {}
    totals = _team_totals(state)
    score_a = totals.get(team_a_id, 0)
    score_b = totals.get(team_b_id, 0)

    if score_a == score_b:
        return MatchResult(is_tie=True, result_text="Match Tied", margin_text="Scores Level")

    winner_id = team_a_id if score_a > score_b else team_b_id
    chasing_id, chase_wickets = _final_innings(state)

    if winner_id == chasing_id:
        limit = wicket_limit(players_per_side or settings.players_per_side, allow_flexible_squad)
        margin = f"by {max(1, limit - chase_wickets)} wickets"
    else:
        margin = f"by {abs(score_a - score_b)} runs"

    return MatchResult(
        winner_id=winner_id,
        result_text=f"{names.get(winner_id, winner_id)} Won",
        margin_text=margin,
    )


def top_performers(
    state: MatchState,
    innings: int,
    batters: Sequence[Player],
    bowlers: Sequence[Player],
) -> TopPerformers:
    """Highest run scorer, and the bowler with most wickets (cheapest on a tie)."""
    batting = build_batting_card(state.history, batters, innings, "", "")
    bowling = build_bowling_card(state.history, bowlers, innings)

    best_batter = None
    for row in batting:
        if best_batter is None or row.runs > best_batter.runs:
            best_batter = row

    best_bowler = None
    for row in bowling:
        if (
            best_bowler is None
            or row.wickets > best_bowler.wickets
            or (row.wickets == best_bowler.wickets and row.economy < best_bowler.economy)
        ):
            best_bowler = row

    return TopPerformers(innings=innings, best_batter=best_batter, best_bowler=best_bowler)
