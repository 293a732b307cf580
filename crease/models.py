from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# =========================================================================== #
#  Enumerations
# =========================================================================== #


class ExtraType(str, Enum):
    """How a delivery's extra runs were conceded."""

    NONE = "None"
    WIDE = "Wide"
    NO_BALL = "NoBall"
    BYE = "Bye"
    LEG_BYE = "LegBye"


class EventKind(str, Enum):
    """Tag on every logged event. Everything except DELIVERY is a meta-event."""

    DELIVERY = "Delivery"
    PLAYER_CHANGE = "PlayerChange"
    RETIREMENT = "Retirement"
    BOWLER_REPLACEMENT = "BowlerReplacement"
    DECLARATION = "Declaration"


class WicketType(str, Enum):
    BOWLED = "Bowled"
    CAUGHT = "Caught"
    LBW = "LBW"
    RUN_OUT = "Run Out"
    STUMPED = "Stumped"
    HIT_WICKET = "Hit Wicket"
    HANDLED_BALL = "Handled Ball"
    OBSTRUCTING_FIELD = "Obstructing Field"
    TIMED_OUT = "Timed Out"
    RETIRED_OUT = "Retired Out"
    RETIRED_HURT = "Retired Hurt"

    @property
    def credits_bowler(self) -> bool:
        return self in (
            WicketType.BOWLED,
            WicketType.CAUGHT,
            WicketType.LBW,
            WicketType.STUMPED,
            WicketType.HIT_WICKET,
        )


class PlayerSlot(str, Enum):
    """An id pointer on the match state that a player can occupy."""

    STRIKER = "striker"
    NON_STRIKER = "non_striker"
    BOWLER = "bowler"


class EndReason(str, Enum):
    """Why the current innings must end."""

    DECLARED = "Declared"
    ALL_OUT = "All Out"
    OVERS_COMPLETED = "Overs Completed"
    TARGET_CHASED = "Target Chased"


class MatchFormat(str, Enum):
    TEST = "Test"
    T10 = "T10"
    T20 = "T20"
    FORTY_OVER = "40-over"
    FIFTY_OVER = "50-over"


class TossDecision(str, Enum):
    BAT = "Bat"
    BOWL = "Bowl"


# =========================================================================== #
#  Event log
# =========================================================================== #


class BallEvent(BaseModel):
    """A single delivery or meta-event in the match log."""

    kind: EventKind = EventKind.DELIVERY
    timestamp: float = Field(..., description="Epoch seconds when the event was recorded")
    over: int = Field(..., ge=0, description="Over number (0-indexed)")
    ball_number: int = Field(..., ge=0, description="Ball within the over (1-indexed)")
    striker_id: str = ""
    non_striker_id: str = ""
    bowler_id: str = ""
    runs: int = Field(0, ge=0, description="Total runs on the event (bat + extras)")
    bat_runs: int = Field(0, ge=0, description="Runs off the bat")
    extra_runs: int = Field(0, ge=0)
    extra_type: ExtraType = ExtraType.NONE
    is_wicket: bool = False
    wicket_type: Optional[WicketType] = None
    out_player_id: Optional[str] = None
    fielder_id: Optional[str] = None
    credit_bowler: Optional[bool] = Field(
        None, description="A wicket is credited to the bowler unless this is explicitly False"
    )
    commentary: str = ""
    innings: int = Field(1, ge=1)
    team_score_at_ball: Optional[int] = Field(None, description="Team score after this event")

    @property
    def is_meta(self) -> bool:
        return self.kind != EventKind.DELIVERY

    @property
    def is_legal(self) -> bool:
        return self.extra_type not in (ExtraType.WIDE, ExtraType.NO_BALL)


class BallInput(BaseModel):
    """
    A partial event submitted for scoring.

    Any field left as None is filled in from the current match state.
    """

    kind: EventKind = EventKind.DELIVERY
    timestamp: Optional[float] = None
    over: Optional[int] = Field(None, ge=0)
    ball_number: Optional[int] = Field(None, ge=0)
    striker_id: Optional[str] = None
    non_striker_id: Optional[str] = None
    bowler_id: Optional[str] = None
    bat_runs: int = Field(0, ge=0)
    extra_runs: int = Field(0, ge=0)
    extra_type: ExtraType = ExtraType.NONE
    is_wicket: bool = False
    wicket_type: Optional[WicketType] = None
    out_player_id: Optional[str] = None
    fielder_id: Optional[str] = None
    credit_bowler: Optional[bool] = None
    commentary: str = ""
    innings: Optional[int] = Field(None, ge=1)


class WicketEvent(BaseModel):
    """A dismissal as entered by the scorer, before it becomes a BallEvent."""

    wicket_type: WicketType
    batter_id: str
    bowler_id: Optional[str] = None
    fielder_id: Optional[str] = None
    credit_bowler: Optional[bool] = None


# =========================================================================== #
#  Match state
# =========================================================================== #


class InningsSummary(BaseModel):
    innings: int
    team_id: str
    score: int
    wickets: int
    overs: str


class Adjustments(BaseModel):
    """Multi-day and interruption bookkeeping."""

    declared: bool = False
    overs_lost: int = 0
    is_last_hour: bool = False
    day_number: int = 1
    session: str = ""


class MatchTimer(BaseModel):
    """Wall-clock bookkeeping for the over-rate timer (seconds)."""

    start_time: Optional[float] = None
    total_allowances: float = 0.0
    is_paused: bool = False
    last_pause_time: Optional[float] = None


class MatchState(BaseModel):
    """The authoritative snapshot of a match in progress."""

    batting_team_id: str
    bowling_team_id: str
    score: int = 0
    wickets: int = 0
    total_balls: int = 0  # legal deliveries this innings
    striker_id: str = ""
    non_striker_id: str = ""
    bowler_id: str = ""
    innings: int = 1
    target: Optional[int] = None
    history: list[BallEvent] = Field(default_factory=list)  # newest first
    innings_scores: list[InningsSummary] = Field(default_factory=list)
    is_completed: bool = False
    is_super_over: bool = False
    toss_winner_id: Optional[str] = None
    toss_decision: Optional[TossDecision] = None
    umpires: list[str] = Field(default_factory=list)
    team_a_squad_ids: list[str] = Field(default_factory=list)
    team_b_squad_ids: list[str] = Field(default_factory=list)
    match_timer: MatchTimer = Field(default_factory=MatchTimer)
    adjustments: Optional[Adjustments] = None

    @property
    def overs(self) -> str:
        return f"{self.total_balls // 6}.{self.total_balls % 6}"

    @property
    def is_declared(self) -> bool:
        return bool(self.adjustments and self.adjustments.declared)


# =========================================================================== #
#  Roster & setup
# =========================================================================== #


class Player(BaseModel):
    id: str
    name: str
    role: Optional[str] = Field(None, description="Batsman, Bowler, All-rounder, Wicket-keeper")


class Team(BaseModel):
    id: str
    name: str
    players: list[Player] = Field(default_factory=list)


class MatchConfig(BaseModel):
    """Everything the scorer needs to know before the first ball."""

    team_a_id: str
    team_b_id: str
    toss_winner_id: Optional[str] = None
    toss_decision: Optional[TossDecision] = None
    striker_id: Optional[str] = None
    non_striker_id: Optional[str] = None
    bowler_id: Optional[str] = None
    format: MatchFormat = MatchFormat.T20
    custom_overs: Optional[int] = Field(None, gt=0)
    team_a_squad_ids: list[str] = Field(default_factory=list)
    team_b_squad_ids: list[str] = Field(default_factory=list)
    allow_flexible_squad: bool = False
    umpires: list[str] = Field(default_factory=list)

    def squad_ids_for(self, team_id: str) -> list[str]:
        if team_id == self.team_a_id:
            return self.team_a_squad_ids
        if team_id == self.team_b_id:
            return self.team_b_squad_ids
        return []


# =========================================================================== #
#  Derived output
# =========================================================================== #


class BattingCardRow(BaseModel):
    player_id: str
    name: str
    runs: int = 0
    balls: int = 0
    fours: int = 0
    sixes: int = 0
    is_out: bool = False
    at_crease: bool = False
    dismissal: str = ""
    strike_rate: float = 0.0


class BowlingCardRow(BaseModel):
    player_id: str
    name: str
    balls: int = 0
    runs: int = 0
    wickets: int = 0
    maidens: int = 0
    overs: str = "0.0"
    economy: float = 0.0

    @property
    def figures_str(self) -> str:
        return f"{self.wickets}/{self.runs} ({self.overs})"


class Partnership(BaseModel):
    runs: int = 0
    balls: int = 0
    batter_ids: list[str] = Field(default_factory=list)


class ExtrasBreakdown(BaseModel):
    wides: int = 0
    no_balls: int = 0
    byes: int = 0
    leg_byes: int = 0

    @property
    def total(self) -> int:
        return self.wides + self.no_balls + self.byes + self.leg_byes


class DerivedStats(BaseModel):
    """Live numbers for the current innings."""

    overs: str
    run_rate: float
    runs_needed: Optional[int] = None
    balls_remaining: int
    required_rate: Optional[float] = None
    batter_stats: dict[str, BattingCardRow] = Field(default_factory=dict)
    bowler_stats: dict[str, BowlingCardRow] = Field(default_factory=dict)
    extras: ExtrasBreakdown = Field(default_factory=ExtrasBreakdown)
    partnership: Partnership = Field(default_factory=Partnership)


class OverRateStatus(BaseModel):
    elapsed_seconds: int
    actual_overs: float
    expected_overs: float
    behind_rate: bool


class TimelineItem(BaseModel):
    """One chip on the recent-balls tape."""

    id: str
    label: str
    tone: str = Field(..., description="wicket, boundary, extra, dot or run")


class BowlerAvailability(BaseModel):
    bowler_id: str
    available: bool
    overs_bowled: str = "0.0"
    reason: Optional[str] = None


class TopPerformers(BaseModel):
    innings: int
    best_batter: Optional[BattingCardRow] = None
    best_bowler: Optional[BowlingCardRow] = None


class MatchResult(BaseModel):
    winner_id: Optional[str] = None
    is_tie: bool = False
    result_text: str
    margin_text: str = ""
