from crease.models import EndReason, MatchState

DEFAULT_PLAYER_COUNT = 11
STANDARD_WICKET_CAP = 10
FINAL_INNINGS = 2


def wicket_limit(batting_team_player_count: int, allow_flexible_squad: bool = False) -> int:
    """
    Wickets that end an innings.

    A pair is needed to bat, so a side of N can lose at most N - 1 wickets.
    Standard rules cap that at 10 even when the squad is larger; flexible
    squads play until everyone has batted.
    """
    players = batting_team_player_count if batting_team_player_count > 0 else DEFAULT_PLAYER_COUNT
    max_possible = max(0, players - 1)
    if allow_flexible_squad:
        return max_possible
    return min(STANDARD_WICKET_CAP, max_possible)


def check_end_of_innings(
    state: MatchState,
    total_overs_allowed: int,
    batting_team_player_count: int = DEFAULT_PLAYER_COUNT,
    allow_flexible_squad: bool = False,
) -> EndReason | None:
    """Return why the current innings must end, or None while it continues."""
    if state.is_declared:
        return EndReason.DECLARED

    if state.wickets >= wicket_limit(batting_team_player_count, allow_flexible_squad):
        return EndReason.ALL_OUT

    if state.total_balls >= total_overs_allowed * 6:
        return EndReason.OVERS_COMPLETED

    # The chase ends the instant the target is reached
    if state.innings == FINAL_INNINGS and state.target is not None and state.score >= state.target:
        return EndReason.TARGET_CHASED

    return None


def is_match_over(state: MatchState, reason: EndReason | None) -> bool:
    """True when the innings that just ended was the last one."""
    return reason is not None and state.innings >= FINAL_INNINGS
