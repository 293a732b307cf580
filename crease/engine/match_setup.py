import time

from crease.models import BallEvent, EventKind, MatchConfig, MatchState, TossDecision


def build_initial_state(config: MatchConfig, now: float | None = None) -> MatchState:
    """
    Fresh first-innings state from the pre-match setup.

    The toss winner (team A when not recorded) bats only if they chose to;
    otherwise the other side bats. When all three openers are known a
    "Match Started" marker is logged so the card shows them at the crease.
    """
    toss_winner_id = config.toss_winner_id or config.team_a_id
    other_id = config.team_b_id if toss_winner_id == config.team_a_id else config.team_a_id
    batting_team_id = toss_winner_id if config.toss_decision == TossDecision.BAT else other_id
    bowling_team_id = config.team_b_id if batting_team_id == config.team_a_id else config.team_a_id

    striker_id = config.striker_id or ""
    non_striker_id = config.non_striker_id or ""
    bowler_id = config.bowler_id or ""

    history: list[BallEvent] = []
    if striker_id and non_striker_id and bowler_id:
        history.append(BallEvent(
            kind=EventKind.PLAYER_CHANGE,
            timestamp=now if now is not None else time.time(),
            over=0,
            ball_number=0,
            striker_id=striker_id,
            non_striker_id=non_striker_id,
            bowler_id=bowler_id,
            commentary="Match Started",
            innings=1,
            team_score_at_ball=0,
        ))

    return MatchState(
        batting_team_id=batting_team_id,
        bowling_team_id=bowling_team_id,
        striker_id=striker_id,
        non_striker_id=non_striker_id,
        bowler_id=bowler_id,
        innings=1,
        history=history,
        toss_winner_id=config.toss_winner_id,
        toss_decision=config.toss_decision,
        umpires=list(config.umpires),
        team_a_squad_ids=list(config.team_a_squad_ids),
        team_b_squad_ids=list(config.team_b_squad_ids),
    )
