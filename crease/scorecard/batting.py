from typing import Sequence

from crease.engine.delivery import innings_events
from crease.models import BallEvent, BattingCardRow, EventKind, ExtraType, Player


def build_batting_card(
    history: Sequence[BallEvent],
    squad_players: Sequence[Player],
    innings: int,
    striker_id: str,
    non_striker_id: str,
) -> list[BattingCardRow]:
    """
    Batting card for one innings, rebuilt from the log.

    Balls faced count legal deliveries only: no-balls are treated like wides
    and are never a ball faced. Players who have not faced, been dismissed or
    walked out to the crease are left off the card.
    """
    card: dict[str, BattingCardRow] = {
        p.id: BattingCardRow(
            player_id=p.id,
            name=p.name,
            at_crease=p.id in (striker_id, non_striker_id),
        )
        for p in squad_players
    }

    for b in innings_events(history, innings, include_meta=True):
        if b.kind == EventKind.RETIREMENT:
            if b.is_wicket:
                _mark_out(card, b)
            continue
        if b.is_meta:
            continue

        row = card.get(b.striker_id)
        if row is not None and b.extra_type != ExtraType.WIDE:
            row.runs += b.bat_runs
            if b.bat_runs == 4:
                row.fours += 1
            elif b.bat_runs == 6:
                row.sixes += 1
            if b.is_legal:
                row.balls += 1

        if b.is_wicket:
            _mark_out(card, b)

    rows = [r for r in card.values() if r.balls > 0 or r.is_out or r.at_crease]
    for r in rows:
        r.strike_rate = round(r.runs / r.balls * 100, 1) if r.balls else 0.0
    return rows


def _mark_out(card: dict[str, BattingCardRow], b: BallEvent) -> None:
    row = card.get(b.out_player_id or "")
    if row is None:
        return
    row.is_out = True
    row.dismissal = b.commentary or "Out"
