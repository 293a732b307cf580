import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from crease.config import settings
from crease.engine.delivery import BALLS_PER_OVER
from crease.engine.derived_stats import derive_stats
from crease.engine.innings import check_end_of_innings, is_match_over
from crease.engine.match_engine import MatchEngine
from crease.engine.match_setup import build_initial_state
from crease.engine.over_rate import format_elapsed, minutes_per_over_for, over_rate_status
from crease.engine.result import compute_result, top_performers
from crease.engine.rules import MatchRules
from crease.engine.timeline import build_timeline
from crease.models import (
    BallInput,
    EndReason,
    MatchConfig,
    MatchState,
    Player,
    PlayerSlot,
    Team,
    WicketEvent,
    WicketType,
)
from crease.scorecard.batting import build_batting_card
from crease.scorecard.bowling import build_bowling_card
from crease.storage import database as db

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
#  Live sessions: one engine per match, rebuilt from storage on first use
# --------------------------------------------------------------------------- #

class MatchSession:
    """In-memory scoring session for one match (engine + roster + lock)."""

    def __init__(self, match_id: int, config: MatchConfig, teams: list[Team], state: MatchState) -> None:
        self.match_id = match_id
        self.config = config
        self.teams = {t.id: t for t in teams}
        self.engine = MatchEngine(state)
        self.lock = asyncio.Lock()

    @property
    def state(self) -> MatchState:
        return self.engine.state

    @property
    def rules(self) -> MatchRules:
        return MatchRules(self.config, self.engine.state)

    @property
    def batting_team(self) -> Team:
        return self.teams[self.state.batting_team_id]

    @property
    def bowling_team(self) -> Team:
        return self.teams[self.state.bowling_team_id]

    def end_reason(self) -> EndReason | None:
        rules = self.rules
        return check_end_of_innings(
            self.state,
            rules.total_overs_allowed,
            len(rules.selectable_players(self.batting_team)),
            self.config.allow_flexible_squad,
        )


_sessions: dict[int, MatchSession] = {}
subscribers: dict[int, list[asyncio.Queue]] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """App startup/shutdown lifecycle."""
    logger.info("Crease scoring service starting up")
    await db.init_db()
    yield
    await db.close_db()
    logger.info("Shutting down")


app = FastAPI(
    title="Crease",
    description="Ball-by-ball cricket scoring with live scorecards",
    lifespan=lifespan,
)


# --------------------------------------------------------------------------- #
#  Request bodies
# --------------------------------------------------------------------------- #

class CreateMatchRequest(BaseModel):
    title: str
    config: MatchConfig
    teams: list[Team]


class CorrectionRequest(BaseModel):
    old_id: str
    new_id: str
    role: PlayerSlot


class RetirementRequest(BaseModel):
    player_id: str
    reason: WicketType


class BatterRequest(BaseModel):
    player_id: str
    slot: PlayerSlot


class BowlerRequest(BaseModel):
    bowler_id: str


# --------------------------------------------------------------------------- #
#  Helpers
# --------------------------------------------------------------------------- #

async def _get_session(match_id: int) -> MatchSession:
    session = _sessions.get(match_id)
    if session is not None:
        return session

    match = await db.get_match(match_id)
    if match is None:
        raise HTTPException(status_code=404, detail=f"Match {match_id} not found")

    session = MatchSession(
        match_id=match_id,
        config=MatchConfig.model_validate(match["config"]),
        teams=[Team.model_validate(t) for t in match["teams"]],
        state=MatchState.model_validate(match["state"]),
    )
    _sessions[match_id] = session
    logger.info(f"Match {match_id} loaded from storage ({session.state.score}/{session.state.wickets})")
    return session


def _live_update(session: MatchSession) -> dict:
    state = session.state
    reason = None if state.is_completed else session.end_reason()
    rules = session.rules

    pending_slot = None
    if reason is None:
        pending_slot = rules.pending_batter_slot(session.batting_team)

    return {
        "state": state.model_dump(mode="json"),
        "end_reason": reason.value if reason else None,
        "is_match_over": is_match_over(state, reason),
        "needs_bowler_change": reason is None and rules.needs_bowler_change,
        "pending_batter_slot": pending_slot.value if pending_slot else None,
        "can_undo": session.engine.can_undo,
    }


async def broadcast(match_id: int, event_type: str, data: dict):
    """Push an SSE event to every subscriber of one match."""
    event = {
        "event": event_type,
        "data": json.dumps(data, default=str),
    }
    for queue in subscribers.get(match_id, []):
        await queue.put(event)


async def _mutate(match_id: int, action: Callable[[MatchSession], None]) -> dict:
    """Run one engine operation under the match lock, then persist and broadcast."""
    session = await _get_session(match_id)
    async with session.lock:
        action(session)
        status = "completed" if session.state.is_completed else "live"
        await db.save_match_state(match_id, session.state, status=status)
        update = _live_update(session)
    await broadcast(match_id, "state", update)
    return update


def _player_ids(players: list[Player]) -> set[str]:
    return {p.id for p in players}


def _require_in_play(session: MatchSession) -> None:
    """Gate delivery entry: match live, innings not over, all three slots filled."""
    state = session.state
    if state.is_completed:
        raise HTTPException(status_code=409, detail="Match is completed")
    reason = session.end_reason()
    if reason is not None:
        raise HTTPException(status_code=409, detail=f"Innings is over: {reason.value}")
    if not (state.striker_id and state.non_striker_id):
        raise HTTPException(status_code=409, detail="Select the incoming batter first")
    if not state.bowler_id:
        raise HTTPException(status_code=409, detail="Select a bowler first")
    if session.rules.needs_bowler_change:
        raise HTTPException(status_code=409, detail="Over complete: select the next bowler")


def _require_live(session: MatchSession) -> None:
    if session.state.is_completed:
        raise HTTPException(status_code=409, detail="Match is completed")


def _batting_team_for(session: MatchSession, innings: int) -> str:
    state = session.state
    if innings == state.innings:
        return state.batting_team_id
    for summary in state.innings_scores:
        if summary.innings == innings:
            return summary.team_id
    raise HTTPException(status_code=404, detail=f"Innings {innings} not found")


def _other_team(session: MatchSession, team_id: str) -> str:
    config = session.config
    return config.team_b_id if team_id == config.team_a_id else config.team_a_id


# --------------------------------------------------------------------------- #
#  Matches
# --------------------------------------------------------------------------- #

@app.post("/api/matches", status_code=201)
async def create_match(body: CreateMatchRequest):
    """Create a match from its setup and both rosters; the first innings is ready to score."""
    team_ids = {t.id for t in body.teams}
    if {body.config.team_a_id, body.config.team_b_id} - team_ids:
        raise HTTPException(status_code=422, detail="Both teams in the config must be supplied")

    state = build_initial_state(body.config)
    match = await db.create_match(body.title, body.config, body.teams, state)
    logger.info(
        f"Match {match['match_id']} created: {body.config.team_a_id} vs {body.config.team_b_id} "
        f"({body.config.format.value}), {state.batting_team_id} batting"
    )
    return match


@app.get("/api/matches")
async def get_matches(status: Optional[str] = None):
    return await db.list_matches(status=status)


@app.get("/api/matches/{match_id}")
async def get_match(match_id: int):
    match = await db.get_match(match_id)
    if match is None:
        raise HTTPException(status_code=404, detail=f"Match {match_id} not found")
    return match


@app.delete("/api/matches/{match_id}")
async def delete_match(match_id: int):
    deleted = await db.delete_match(match_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Match {match_id} not found")
    _sessions.pop(match_id, None)
    return {"match_deleted": deleted}


# --------------------------------------------------------------------------- #
#  Scoring
# --------------------------------------------------------------------------- #

@app.post("/api/matches/{match_id}/balls")
async def score_ball(match_id: int, ball: BallInput):
    """Score one delivery. Ids left out are taken from the current state."""
    session = await _get_session(match_id)
    _require_in_play(session)

    batters = _player_ids(session.rules.selectable_players(session.batting_team))
    bowlers = _player_ids(session.rules.selectable_players(session.bowling_team))
    for pid in (ball.striker_id, ball.non_striker_id, ball.out_player_id):
        if pid is not None and pid not in batters:
            raise HTTPException(status_code=422, detail=f"{pid} is not in the batting squad")
    for pid in (ball.bowler_id, ball.fielder_id):
        if pid is not None and pid not in bowlers:
            raise HTTPException(status_code=422, detail=f"{pid} is not in the bowling squad")

    return await _mutate(match_id, lambda s: s.engine.apply_ball(ball))


@app.post("/api/matches/{match_id}/wickets")
async def record_wicket(match_id: int, wicket: WicketEvent):
    session = await _get_session(match_id)
    _require_in_play(session)

    state = session.state
    if wicket.batter_id not in (state.striker_id, state.non_striker_id):
        raise HTTPException(status_code=422, detail=f"{wicket.batter_id} is not at the crease")
    if wicket.wicket_type in (WicketType.RETIRED_HURT, WicketType.RETIRED_OUT):
        raise HTTPException(status_code=422, detail="Use /retirements for retirements")
    bowlers = _player_ids(session.rules.selectable_players(session.bowling_team))
    if wicket.fielder_id is not None and wicket.fielder_id not in bowlers:
        raise HTTPException(status_code=422, detail=f"{wicket.fielder_id} is not in the fielding side")

    return await _mutate(match_id, lambda s: s.engine.record_wicket(wicket))


@app.post("/api/matches/{match_id}/undo")
async def undo(match_id: int):
    undone = False

    def action(s: MatchSession) -> None:
        nonlocal undone
        undone = s.engine.undo_ball()

    update = await _mutate(match_id, action)
    if not undone:
        logger.info(f"Match {match_id}: nothing to undo")
    return {"undone": undone, **update}


@app.post("/api/matches/{match_id}/batters")
async def select_batter(match_id: int, body: BatterRequest):
    """Send in a batter to an empty slot (new batter after a wicket, or an opener)."""
    session = await _get_session(match_id)
    _require_live(session)
    if body.slot == PlayerSlot.BOWLER:
        raise HTTPException(status_code=422, detail="Batters go to the striker or non-striker slot")
    if getattr(session.state, f"{body.slot.value}_id"):
        raise HTTPException(status_code=409, detail=f"The {body.slot.value} slot is occupied")
    available = _player_ids(session.rules.available_batters(session.batting_team))
    if body.player_id not in available:
        raise HTTPException(status_code=422, detail=f"{body.player_id} is not available to bat")

    return await _mutate(match_id, lambda s: s.engine.select_batter(body.player_id, body.slot))


@app.post("/api/matches/{match_id}/bowlers")
async def select_bowler(match_id: int, body: BowlerRequest):
    """Choose the bowler for the next over."""
    session = await _get_session(match_id)
    _require_live(session)
    if body.bowler_id not in _player_ids(session.rules.selectable_players(session.bowling_team)):
        raise HTTPException(status_code=422, detail=f"{body.bowler_id} is not in the bowling squad")
    availability = session.rules.get_bowler_availability(body.bowler_id)
    if not availability.available:
        raise HTTPException(status_code=409, detail=availability.reason)

    return await _mutate(match_id, lambda s: s.engine.select_bowler(body.bowler_id))


@app.post("/api/matches/{match_id}/bowler-replacement")
async def replace_bowler(match_id: int, body: BowlerRequest):
    """Injury replacement in the middle of an over."""
    session = await _get_session(match_id)
    _require_live(session)
    if body.bowler_id == session.state.bowler_id:
        raise HTTPException(status_code=422, detail=f"{body.bowler_id} is already bowling")
    if body.bowler_id not in _player_ids(session.rules.selectable_players(session.bowling_team)):
        raise HTTPException(status_code=422, detail=f"{body.bowler_id} is not in the bowling squad")
    availability = session.rules.get_bowler_availability(body.bowler_id)
    if not availability.available:
        raise HTTPException(status_code=409, detail=availability.reason)

    return await _mutate(match_id, lambda s: s.engine.replace_bowler_mid_over(body.bowler_id))


@app.post("/api/matches/{match_id}/retirements")
async def retire_batter(match_id: int, body: RetirementRequest):
    session = await _get_session(match_id)
    _require_live(session)
    if body.reason not in (WicketType.RETIRED_HURT, WicketType.RETIRED_OUT):
        raise HTTPException(status_code=422, detail=f"{body.reason.value} is not a retirement")
    if body.player_id not in (session.state.striker_id, session.state.non_striker_id):
        raise HTTPException(status_code=422, detail=f"{body.player_id} is not at the crease")

    return await _mutate(match_id, lambda s: s.engine.retire_batter(body.player_id, body.reason))


@app.post("/api/matches/{match_id}/corrections")
async def correct_player(match_id: int, body: CorrectionRequest):
    """Fix a mis-identified player across the whole log."""
    session = await _get_session(match_id)
    _require_live(session)
    team = session.bowling_team if body.role == PlayerSlot.BOWLER else session.batting_team
    if body.new_id not in _player_ids(session.rules.selectable_players(team)):
        raise HTTPException(status_code=422, detail=f"{body.new_id} is not in the {team.name} squad")

    return await _mutate(
        match_id, lambda s: s.engine.correct_player_identity(body.old_id, body.new_id, body.role)
    )


@app.post("/api/matches/{match_id}/declare")
async def declare(match_id: int):
    session = await _get_session(match_id)
    _require_live(session)
    return await _mutate(match_id, lambda s: s.engine.declare_innings())


# --------------------------------------------------------------------------- #
#  Innings & match transitions
# --------------------------------------------------------------------------- #

@app.post("/api/matches/{match_id}/innings/next")
async def next_innings(match_id: int):
    """Archive the finished innings and open the chase, target set one run past the total."""
    session = await _get_session(match_id)
    _require_live(session)
    reason = session.end_reason()
    if reason is None:
        raise HTTPException(status_code=409, detail="Innings still in progress")
    if is_match_over(session.state, reason):
        raise HTTPException(status_code=409, detail="Final innings is over: finish the match")

    def action(s: MatchSession) -> None:
        state = s.state
        # Undo of the chase leaves the innings archived already
        if not any(i.innings == state.innings for i in state.innings_scores):
            s.engine.end_innings()
        s.engine.start_innings(state.bowling_team_id, state.batting_team_id, target=state.score + 1)

    return await _mutate(match_id, action)


@app.post("/api/matches/{match_id}/finish")
async def finish_match(match_id: int):
    session = await _get_session(match_id)
    _require_live(session)

    def action(s: MatchSession) -> None:
        if not any(i.innings == s.state.innings for i in s.state.innings_scores):
            s.engine.end_innings()
        s.engine.finish_match()

    update = await _mutate(match_id, action)
    result = _result(session)
    await db.save_match_state(match_id, session.state, result=result["result"])
    return {**update, **result}


@app.post("/api/matches/{match_id}/timer/{action}")
async def timer(match_id: int, action: str):
    """Start, pause or resume the over-rate clock."""
    operations = {
        "start": lambda s, now: s.engine.start_timer(now),
        "pause": lambda s, now: s.engine.pause_timer(now),
        "resume": lambda s, now: s.engine.resume_timer(now),
    }
    if action not in operations:
        raise HTTPException(status_code=404, detail=f"Unknown timer action: {action}")
    now = time.time()
    return await _mutate(match_id, lambda s: operations[action](s, now))


# --------------------------------------------------------------------------- #
#  Read models
# --------------------------------------------------------------------------- #

@app.get("/api/matches/{match_id}/scorecard")
async def scorecard(match_id: int, innings: Optional[int] = None):
    session = await _get_session(match_id)
    state = session.state
    innings = innings or state.innings
    batting_id = _batting_team_for(session, innings)
    bowling_id = _other_team(session, batting_id)
    rules = session.rules

    live = innings == state.innings
    batting = build_batting_card(
        state.history,
        rules.selectable_players(session.teams[batting_id]),
        innings,
        state.striker_id if live else "",
        state.non_striker_id if live else "",
    )
    bowling = build_bowling_card(
        state.history, rules.selectable_players(session.teams[bowling_id]), innings
    )
    return {
        "innings": innings,
        "batting_team_id": batting_id,
        "bowling_team_id": bowling_id,
        "batting": [r.model_dump() for r in batting],
        "bowling": [r.model_dump() for r in bowling],
    }


@app.get("/api/matches/{match_id}/stats")
async def stats(match_id: int):
    session = await _get_session(match_id)
    state = session.state
    rules = session.rules
    derived = derive_stats(state, rules.total_overs_allowed)
    over_rate = over_rate_status(
        state.match_timer,
        state.total_balls,
        now=time.time(),
        minutes_per_over=minutes_per_over_for(session.config.format),
        active=not state.is_completed,
    )
    return {
        **derived.model_dump(),
        "score": f"{state.score}/{state.wickets}",
        "total_overs_allowed": rules.total_overs_allowed,
        "max_overs_per_bowler": rules.max_overs_per_bowler,
        "balls_per_over": BALLS_PER_OVER,
        "over_rate": {**over_rate.model_dump(), "clock": format_elapsed(over_rate.elapsed_seconds)},
        "bowler_availability": [
            rules.get_bowler_availability(p.id).model_dump()
            for p in rules.selectable_players(session.bowling_team)
        ],
    }


@app.get("/api/matches/{match_id}/timeline")
async def timeline(match_id: int, limit: Optional[int] = None):
    session = await _get_session(match_id)
    return [item.model_dump() for item in build_timeline(session.state, limit)]


def _result(session: MatchSession) -> dict:
    config = session.config
    state = session.state
    names = {tid: t.name for tid, t in session.teams.items()}
    result = compute_result(
        state, config.team_a_id, config.team_b_id, team_names=names,
        players_per_side=len(session.rules.selectable_players(session.teams[config.team_a_id])),
        allow_flexible_squad=config.allow_flexible_squad,
    )

    performers = []
    for summary in state.innings_scores:
        batting = session.teams[summary.team_id]
        bowling = session.teams[_other_team(session, summary.team_id)]
        performers.append(
            top_performers(state, summary.innings, batting.players, bowling.players).model_dump()
        )
    return {"result": result.model_dump(), "top_performers": performers}


@app.get("/api/matches/{match_id}/result")
async def match_result(match_id: int):
    session = await _get_session(match_id)
    return _result(session)


@app.get("/api/matches/{match_id}/stream")
async def stream(match_id: int, request: Request):
    """SSE endpoint that pushes every state change of one match."""
    await _get_session(match_id)
    queue: asyncio.Queue = asyncio.Queue()
    subscribers.setdefault(match_id, []).append(queue)

    async def event_generator():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=1.0)
                    yield event
                except asyncio.TimeoutError:
                    # Send keepalive
                    yield {"event": "ping", "data": "{}"}
        finally:
            subscribers[match_id].remove(queue)

    return EventSourceResponse(event_generator())
