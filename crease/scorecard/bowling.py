from typing import Sequence

from crease.engine.delivery import BALLS_PER_OVER, get_over_string, innings_events
from crease.models import BallEvent, BowlingCardRow, ExtraType, Player

# Least a wide or no-ball can cost the bowler; recorded extras include it
ILLEGAL_DELIVERY_PENALTY = 1


def runs_conceded(b: BallEvent) -> int:
    """Byes and leg-byes are never the bowler's; a wide or no-ball costs at least the penalty run."""
    if b.extra_type in (ExtraType.BYE, ExtraType.LEG_BYE):
        return 0
    if b.extra_type in (ExtraType.WIDE, ExtraType.NO_BALL):
        return b.bat_runs + max(b.extra_runs, ILLEGAL_DELIVERY_PENALTY)
    return b.bat_runs + b.extra_runs


def build_bowling_card(
    history: Sequence[BallEvent],
    squad_players: Sequence[Player],
    innings: int,
) -> list[BowlingCardRow]:
    """Bowling card for one innings, rebuilt from the log."""
    card: dict[str, BowlingCardRow] = {
        p.id: BowlingCardRow(player_id=p.id, name=p.name) for p in squad_players
    }

    legal_balls = 0
    over_bowlers: set[str] = set()
    over_runs = 0

    for b in innings_events(history, innings):
        conceded = runs_conceded(b)
        over_bowlers.add(b.bowler_id)
        over_runs += conceded

        row = card.get(b.bowler_id)
        if row is not None:
            row.runs += conceded
            if b.is_legal:
                row.balls += 1
            if b.is_wicket and b.credit_bowler is not False:
                row.wickets += 1

        if not b.is_legal:
            continue
        legal_balls += 1
        if legal_balls % BALLS_PER_OVER == 0:
            # A maiden is a whole over from one bowler with nothing conceded
            if row is not None and over_runs == 0 and len(over_bowlers) == 1:
                row.maidens += 1
            over_bowlers = set()
            over_runs = 0

    rows = [r for r in card.values() if r.balls > 0]
    for r in rows:
        r.overs = get_over_string(r.balls)
        r.economy = round(r.runs / (r.balls / BALLS_PER_OVER), 2) if r.balls else 0.0
    return rows
