import logging

from crease.config import settings
from crease.engine.delivery import apply_delivery, get_over_string
from crease.models import (
    Adjustments,
    BallInput,
    EventKind,
    ExtraType,
    InningsSummary,
    MatchState,
    MatchTimer,
    PlayerSlot,
    WicketEvent,
    WicketType,
)

logger = logging.getLogger(__name__)


class MatchEngine:
    """
    Owns the live match state and its undo stack.

    Every scoring operation pushes the current snapshot before replacing the
    state, so each call is exactly one undo step. Snapshots are never mutated:
    apply_delivery and the transition helpers below always build a new state.
    Player ids are not validated here; callers check them against the squad.
    """

    def __init__(self, initial_state: MatchState, undo_limit: int | None = None) -> None:
        self.state = initial_state
        self._snapshots: list[MatchState] = []
        self._undo_limit = undo_limit if undo_limit is not None else settings.undo_limit

    # ------------------------------------------------------------------ #
    #  Undo stack
    # ------------------------------------------------------------------ #

    @property
    def can_undo(self) -> bool:
        return bool(self._snapshots)

    @property
    def undo_depth(self) -> int:
        return len(self._snapshots)

    @property
    def snapshots(self) -> tuple[MatchState, ...]:
        """Pre-operation states, oldest first."""
        return tuple(self._snapshots)

    def _push(self) -> None:
        self._snapshots.append(self.state)
        if self._undo_limit is not None and len(self._snapshots) > self._undo_limit:
            del self._snapshots[: len(self._snapshots) - self._undo_limit]

    def undo_ball(self) -> bool:
        """Restore the snapshot taken before the last operation. No-op when empty."""
        if not self._snapshots:
            return False
        self.state = self._snapshots.pop()
        logger.info(f"Undo: back to {self.state.score}/{self.state.wickets} ({self.state.overs})")
        return True

    def get_state(self) -> MatchState:
        """Return the current match state."""
        return self.state

    # ------------------------------------------------------------------ #
    #  Scoring
    # ------------------------------------------------------------------ #

    def apply_ball(self, ball: BallInput | dict, now: float | None = None) -> MatchState:
        self._push()
        self.state = apply_delivery(self.state, ball, now=now)
        return self.state

    def record_wicket(self, wicket: WicketEvent, now: float | None = None) -> MatchState:
        ball = BallInput(
            bat_runs=0,
            extra_runs=0,
            extra_type=ExtraType.NONE,
            is_wicket=True,
            wicket_type=wicket.wicket_type,
            out_player_id=wicket.batter_id,
            fielder_id=wicket.fielder_id,
            bowler_id=wicket.bowler_id,
            credit_bowler=wicket.credit_bowler,
            commentary=f"WICKET! {wicket.wicket_type.value}",
        )
        return self.apply_ball(ball, now=now)

    def select_batter(self, player_id: str, slot: PlayerSlot, now: float | None = None) -> MatchState:
        """A new batter walks in to the given (empty) slot."""
        if slot == PlayerSlot.BOWLER:
            raise ValueError("select_batter takes the striker or non-striker slot")
        label = "Striker" if slot == PlayerSlot.STRIKER else "NonStriker"
        ball = BallInput(
            kind=EventKind.PLAYER_CHANGE,
            commentary=f"New Batter ({label})",
            **{f"{slot.value}_id": player_id},
        )
        return self.apply_ball(ball, now=now)

    def select_bowler(self, bowler_id: str, now: float | None = None) -> MatchState:
        """Normal bowling change at the start of an over."""
        ball = BallInput(kind=EventKind.PLAYER_CHANGE, bowler_id=bowler_id, commentary="New Bowler")
        return self.apply_ball(ball, now=now)

    def retire_batter(self, player_id: str, reason: WicketType, now: float | None = None) -> MatchState:
        if reason not in (WicketType.RETIRED_HURT, WicketType.RETIRED_OUT):
            raise ValueError(f"Not a retirement: {reason.value}")
        ball = BallInput(
            kind=EventKind.RETIREMENT,
            wicket_type=reason,
            out_player_id=player_id,
            commentary=reason.value,
        )
        logger.info(f"{player_id} {reason.value}")
        return self.apply_ball(ball, now=now)

    def replace_bowler_mid_over(self, new_bowler_id: str, now: float | None = None) -> MatchState:
        """Injury substitution: the new bowler finishes the over, ball count untouched."""
        ball = BallInput(kind=EventKind.BOWLER_REPLACEMENT, bowler_id=new_bowler_id)
        return self.apply_ball(ball, now=now)

    def declare_innings(self, now: float | None = None) -> MatchState:
        logger.info(f"Innings {self.state.innings} declared at {self.state.score}/{self.state.wickets}")
        return self.apply_ball(BallInput(kind=EventKind.DECLARATION), now=now)

    # ------------------------------------------------------------------ #
    #  Corrections
    # ------------------------------------------------------------------ #

    def correct_player_identity(self, old_id: str, new_id: str, role: PlayerSlot) -> MatchState:
        """
        Retroactively swap a mis-identified player for the given role.

        Rewrites the role's current pointer, that role's field on every
        logged event, and any dismissal naming the old id. Runs, wickets and
        ball counts are left untouched.
        """
        self._push()
        field = f"{role.value}_id"
        nxt = self.state.model_copy(deep=True)

        if getattr(nxt, field) == old_id:
            setattr(nxt, field, new_id)

        history = []
        for ball in nxt.history:
            update = {}
            if getattr(ball, field) == old_id:
                update[field] = new_id
            if ball.out_player_id == old_id:
                update["out_player_id"] = new_id
            history.append(ball.model_copy(update=update) if update else ball)
        nxt.history = history

        self.state = nxt
        logger.info(f"Corrected {role.value}: {old_id} -> {new_id}")
        return self.state

    # ------------------------------------------------------------------ #
    #  Innings transitions
    # ------------------------------------------------------------------ #

    def end_innings(self) -> MatchState:
        """Archive the innings total. Live counters stay until start_innings."""
        self._push()
        s = self.state
        summary = InningsSummary(
            innings=s.innings,
            team_id=s.batting_team_id,
            score=s.score,
            wickets=s.wickets,
            overs=get_over_string(s.total_balls),
        )
        self.state = s.model_copy(update={"innings_scores": [*s.innings_scores, summary]})
        logger.info(
            f"Innings {s.innings} closed: {s.batting_team_id} {s.score}/{s.wickets} ({summary.overs})"
        )
        return self.state

    def start_innings(
        self, batting_team_id: str, bowling_team_id: str, target: int | None = None
    ) -> MatchState:
        """Open the next innings. Call end_innings first to archive the previous one."""
        self._push()
        s = self.state
        adjustments = (s.adjustments or Adjustments()).model_copy(update={"declared": False})
        self.state = s.model_copy(update={
            "innings": s.innings + 1,
            "batting_team_id": batting_team_id,
            "bowling_team_id": bowling_team_id,
            "score": 0,
            "wickets": 0,
            "total_balls": 0,
            "striker_id": "",
            "non_striker_id": "",
            "bowler_id": "",
            "target": target,
            "adjustments": adjustments,
            "match_timer": MatchTimer(),
        })
        logger.info(
            f"Innings {self.state.innings} started: {batting_team_id} batting"
            + (f", target {target}" if target is not None else "")
        )
        return self.state

    def finish_match(self) -> MatchState:
        self._push()
        self.state = self.state.model_copy(update={"is_completed": True})
        logger.info("Match completed")
        return self.state

    # ------------------------------------------------------------------ #
    #  Over-rate timer (not scoring events, so not undoable)
    # ------------------------------------------------------------------ #

    def start_timer(self, now: float) -> MatchState:
        timer = MatchTimer(start_time=now)
        self.state = self.state.model_copy(update={"match_timer": timer})
        return self.state

    def pause_timer(self, now: float) -> MatchState:
        timer = self.state.match_timer
        if timer.start_time is None or timer.is_paused:
            return self.state
        timer = timer.model_copy(update={"is_paused": True, "last_pause_time": now})
        self.state = self.state.model_copy(update={"match_timer": timer})
        return self.state

    def resume_timer(self, now: float) -> MatchState:
        timer = self.state.match_timer
        if not timer.is_paused or timer.last_pause_time is None:
            return self.state
        timer = timer.model_copy(update={
            "is_paused": False,
            "last_pause_time": None,
            "total_allowances": timer.total_allowances + max(0.0, now - timer.last_pause_time),
        })
        self.state = self.state.model_copy(update={"match_timer": timer})
        return self.state
