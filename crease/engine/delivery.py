"""
Delivery application: the one transition from a match state to the next.

Every scoring action (a ball, a wicket, a new batter walking in, a bowler
change, a retirement, a declaration) becomes a BallEvent and is applied
here. The function is pure: it deep-copies the incoming state, applies the
event to the copy and prepends the event to the copy's log.
"""

import logging
import time
from typing import Iterable

from crease.models import (
    Adjustments,
    BallEvent,
    BallInput,
    EventKind,
    ExtraType,
    MatchState,
    WicketType,
)

logger = logging.getLogger(__name__)

BALLS_PER_OVER = 6

_DEFAULT_META_COMMENTARY = {
    EventKind.PLAYER_CHANGE: "Player Change",
    EventKind.BOWLER_REPLACEMENT: "Injury Replacement (Bowler)",
    EventKind.DECLARATION: "Innings Declared",
}


# ------------------------------------------------------------------ #
#  Log helpers
# ------------------------------------------------------------------ #

def is_legal_ball(extra_type: ExtraType) -> bool:
    """Wides and no-balls are re-bowled; everything else counts toward the over."""
    return extra_type not in (ExtraType.WIDE, ExtraType.NO_BALL)


def get_over_string(balls: int) -> str:
    return f"{balls // BALLS_PER_OVER}.{balls % BALLS_PER_OVER}"


def innings_events(
    history: Iterable[BallEvent], innings: int, include_meta: bool = False
) -> list[BallEvent]:
    """Events of one innings, oldest first (the log itself is newest first)."""
    return [
        b for b in reversed(list(history))
        if b.innings == innings and (include_meta or not b.is_meta)
    ]


def last_delivery(history: Iterable[BallEvent], innings: int | None = None) -> BallEvent | None:
    """Most recent real delivery, skipping meta-events."""
    for b in history:
        if b.is_meta:
            continue
        if innings is not None and b.innings != innings:
            continue
        return b
    return None


def runs_taken(ball: BallEvent) -> int:
    """Runs the batters completed between the wickets (boundaries included)."""
    if ball.extra_type in (ExtraType.WIDE, ExtraType.NO_BALL):
        # The first extra run is the penalty, not a run taken
        return ball.bat_runs + max(ball.extra_runs - 1, 0)
    if ball.extra_type in (ExtraType.BYE, ExtraType.LEG_BYE):
        return ball.bat_runs + ball.extra_runs
    return ball.bat_runs


# ------------------------------------------------------------------ #
#  Transition
# ------------------------------------------------------------------ #

def apply_delivery(
    state: MatchState, ball: BallInput | dict, now: float | None = None
) -> MatchState:
    """Apply one event to `state` and return the resulting state."""
    if isinstance(ball, dict):
        ball = BallInput.model_validate(ball)

    event = _build_event(state, ball, now)
    nxt = state.model_copy(deep=True)

    if event.is_meta:
        _apply_meta_event(nxt, event)
    else:
        _apply_ball(nxt, event)

    event.team_score_at_ball = nxt.score
    nxt.history.insert(0, event)

    logger.debug(
        f"[inn {event.innings}] {event.kind.value} {event.over}.{event.ball_number}: "
        f"{nxt.score}/{nxt.wickets} ({nxt.overs})"
    )
    return nxt


def _build_event(state: MatchState, ball: BallInput, now: float | None) -> BallEvent:
    """Back-fill a partial input from the current state."""
    kind = ball.kind
    bat_runs, extra_runs = ball.bat_runs, ball.extra_runs
    extra_type = ball.extra_type
    is_wicket = ball.is_wicket
    wicket_type = ball.wicket_type
    credit_bowler = ball.credit_bowler
    commentary = ball.commentary

    if kind != EventKind.DELIVERY:
        bat_runs = extra_runs = 0
        extra_type = ExtraType.NONE
        if kind == EventKind.RETIREMENT:
            wicket_type = wicket_type or WicketType.RETIRED_HURT
            is_wicket = wicket_type != WicketType.RETIRED_HURT
            credit_bowler = False
            commentary = commentary or wicket_type.value
        else:
            is_wicket = False
            wicket_type = None
            commentary = commentary or _DEFAULT_META_COMMENTARY[kind]
    elif extra_type == ExtraType.WIDE and bat_runs:
        # Nothing off the bat on a wide; runs taken are wides
        extra_runs += bat_runs
        bat_runs = 0

    striker_id = ball.striker_id if ball.striker_id is not None else state.striker_id

    out_player_id = ball.out_player_id
    if (is_wicket or kind == EventKind.RETIREMENT) and not out_player_id:
        out_player_id = striker_id

    if is_wicket and credit_bowler is None and wicket_type is not None:
        credit_bowler = wicket_type.credits_bowler

    if ball.timestamp is not None:
        timestamp = ball.timestamp
    else:
        timestamp = now if now is not None else time.time()

    return BallEvent(
        kind=kind,
        timestamp=timestamp,
        over=ball.over if ball.over is not None else state.total_balls // BALLS_PER_OVER,
        ball_number=(
            ball.ball_number if ball.ball_number is not None
            else state.total_balls % BALLS_PER_OVER + 1
        ),
        striker_id=striker_id,
        non_striker_id=(
            ball.non_striker_id if ball.non_striker_id is not None else state.non_striker_id
        ),
        bowler_id=ball.bowler_id if ball.bowler_id is not None else state.bowler_id,
        runs=bat_runs + extra_runs,
        bat_runs=bat_runs,
        extra_runs=extra_runs,
        extra_type=extra_type,
        is_wicket=is_wicket,
        wicket_type=wicket_type,
        out_player_id=out_player_id,
        fielder_id=ball.fielder_id,
        credit_bowler=credit_bowler,
        commentary=commentary,
        innings=ball.innings or state.innings,
    )


def _apply_ball(s: MatchState, event: BallEvent) -> None:
    s.bowler_id = event.bowler_id
    s.score += event.bat_runs + event.extra_runs

    if event.is_legal:
        s.total_balls += 1

    striker, non_striker = event.striker_id, event.non_striker_id
    over_complete = event.is_legal and s.total_balls % BALLS_PER_OVER == 0
    if over_complete:
        # Ends change: whoever faced this ball is at the other end, whatever was run
        striker, non_striker = non_striker, striker
    elif runs_taken(event) % 2 == 1:
        striker, non_striker = non_striker, striker
    s.striker_id, s.non_striker_id = striker, non_striker

    if event.is_wicket:
        s.wickets += 1
        _vacate_slot(s, event.out_player_id)


def _apply_meta_event(s: MatchState, event: BallEvent) -> None:
    s.striker_id = event.striker_id
    s.non_striker_id = event.non_striker_id
    s.bowler_id = event.bowler_id

    if event.kind == EventKind.RETIREMENT:
        if event.is_wicket:
            s.wickets += 1
        _vacate_slot(s, event.out_player_id)
    elif event.kind == EventKind.DECLARATION:
        adjustments = s.adjustments or Adjustments()
        s.adjustments = adjustments.model_copy(update={"declared": True})


def _vacate_slot(s: MatchState, player_id: str | None) -> None:
    """Clear whichever batting slot the departing player occupies."""
    if not player_id:
        return
    if s.striker_id == player_id:
        s.striker_id = ""
    elif s.non_striker_id == player_id:
        s.non_striker_id = ""
