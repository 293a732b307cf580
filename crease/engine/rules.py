"""
Format-driven match rules.

Overs allowed per innings, the per-bowler over cap, who may bowl the next
over, who may walk out to bat, and which batting slot must be filled before
play can continue. Everything is derived from the config and the current
state; nothing here mutates the match.
"""

import math

from crease.config import settings
from crease.engine.delivery import BALLS_PER_OVER, get_over_string, innings_events, last_delivery
from crease.models import (
    BowlerAvailability,
    MatchConfig,
    MatchFormat,
    MatchState,
    Player,
    PlayerSlot,
    Team,
)

FORMAT_OVERS = {
    MatchFormat.T10: 10,
    MatchFormat.T20: 20,
    MatchFormat.FORTY_OVER: 40,
    MatchFormat.FIFTY_OVER: 50,
}

# Limited-overs sides need at least five bowlers' worth of overs
BOWLER_SHARE = 5


def total_overs_allowed(
    match_format: MatchFormat, custom_overs: int | None = None, overs_lost: int = 0
) -> int:
    if custom_overs:
        base = custom_overs
    elif match_format == MatchFormat.TEST:
        base = settings.test_overs
    else:
        base = FORMAT_OVERS[match_format]
    return max(0, base - overs_lost)


def max_overs_per_bowler(total_overs: int, match_format: MatchFormat) -> int | None:
    """Per-bowler cap; Tests have none."""
    if match_format == MatchFormat.TEST:
        return None
    return math.ceil(total_overs / BOWLER_SHARE)


def revised_target(
    first_innings_total: int,
    overs_lost: int,
    wickets_down: int,
    total_overs: int = 20,
) -> int:
    """
    Rough rain-affected target.

    A placeholder heuristic (share of overs remaining, 5% off per wicket
    down), not the official DLS resource table.
    """
    if total_overs <= 0:
        return first_innings_total + 1
    resource_left = (total_overs - overs_lost) / total_overs
    wicket_penalty = 1 - wickets_down * 0.05
    return math.ceil(first_innings_total * resource_left * wicket_penalty) + 1


class MatchRules:
    """Rule queries for one match at one point in time."""

    def __init__(self, config: MatchConfig, state: MatchState) -> None:
        self.config = config
        self.state = state

    @property
    def total_overs_allowed(self) -> int:
        overs_lost = self.state.adjustments.overs_lost if self.state.adjustments else 0
        return total_overs_allowed(self.config.format, self.config.custom_overs, overs_lost)

    @property
    def max_overs_per_bowler(self) -> int | None:
        return max_overs_per_bowler(self.total_overs_allowed, self.config.format)

    # ------------------------------------------------------------------ #
    #  Batting side
    # ------------------------------------------------------------------ #

    def selectable_players(self, team: Team) -> list[Player]:
        """The team's players, restricted to its named squad unless squads are flexible."""
        squad_ids = self.config.squad_ids_for(team.id)
        if not squad_ids or self.config.allow_flexible_squad:
            return list(team.players)
        return [p for p in team.players if p.id in squad_ids]

    def dismissed_ids(self) -> set[str]:
        return {
            b.out_player_id
            for b in innings_events(self.state.history, self.state.innings, include_meta=True)
            if b.is_wicket and b.out_player_id
        }

    def available_batters(self, team: Team) -> list[Player]:
        out = self.dismissed_ids()
        at_crease = {self.state.striker_id, self.state.non_striker_id}
        return [p for p in self.selectable_players(team) if p.id not in out and p.id not in at_crease]

    def pending_batter_slot(self, team: Team) -> PlayerSlot | None:
        """The batting slot to fill before the next delivery, if any batter is left."""
        if self.state.striker_id and self.state.non_striker_id:
            return None
        if not self.available_batters(team):
            return None
        if not self.state.striker_id:
            return PlayerSlot.STRIKER
        return PlayerSlot.NON_STRIKER

    # ------------------------------------------------------------------ #
    #  Bowling side
    # ------------------------------------------------------------------ #

    def bowler_balls(self, bowler_id: str) -> int:
        return sum(
            1 for b in innings_events(self.state.history, self.state.innings)
            if b.bowler_id == bowler_id and b.is_legal
        )

    def bowler_overs(self, bowler_id: str) -> str:
        return get_over_string(self.bowler_balls(bowler_id))

    def previous_over_bowler(self) -> str | None:
        """Who bowled the last ball of the most recently completed over."""
        legal = 0
        bowler = None
        for b in innings_events(self.state.history, self.state.innings):
            if not b.is_legal:
                continue
            legal += 1
            if legal % BALLS_PER_OVER == 0:
                bowler = b.bowler_id
        return bowler

    def get_bowler_availability(self, bowler_id: str) -> BowlerAvailability:
        balls = self.bowler_balls(bowler_id)
        overs = self.bowler_overs(bowler_id)

        if bowler_id == self.previous_over_bowler():
            return BowlerAvailability(
                bowler_id=bowler_id, available=False, overs_bowled=overs,
                reason="Bowled the previous over",
            )

        cap = self.max_overs_per_bowler
        if cap is not None and balls >= cap * BALLS_PER_OVER:
            return BowlerAvailability(
                bowler_id=bowler_id, available=False, overs_bowled=overs,
                reason=f"Quota of {cap} overs complete",
            )

        return BowlerAvailability(bowler_id=bowler_id, available=True, overs_bowled=overs)

    @property
    def needs_bowler_change(self) -> bool:
        """At an over boundary while the bowler of the finished over is still set."""
        s = self.state
        if s.total_balls == 0 or s.total_balls % BALLS_PER_OVER != 0:
            return False
        last = last_delivery(s.history, s.innings)
        if last is None:
            return False
        return s.bowler_id == last.bowler_id
