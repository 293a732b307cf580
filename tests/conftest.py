"""
Shared fixtures for the test suite.

Key design decisions:
  - Points the database module's global `DB_PATH` at a temp file per test.
  - Clears the service's in-memory match sessions so ids reused across
    fresh databases never pick up a stale engine.
  - Provides an `httpx.AsyncClient` wired to the FastAPI app via ASGITransport.
  - Supplies two small rosters and a ready-to-score T20 setup.
"""

from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import crease.main as main_mod
import crease.storage.database as db_mod
from crease.engine.match_engine import MatchEngine
from crease.engine.match_setup import build_initial_state
from crease.main import app
from crease.models import MatchConfig, MatchFormat, Player, Team, TossDecision


# --------------------------------------------------------------------------- #
#  Temp-file database, fresh for every test function
# --------------------------------------------------------------------------- #

@pytest_asyncio.fixture(autouse=True)
async def _init_test_db(tmp_path: Path):
    """
    Before each test:
      1. Point the DB module to a temp file.
      2. Run init_db() to create the table.
    After the test:
      3. Close the connection and forget cached sessions.
    """
    test_db = tmp_path / "test.db"
    db_mod.DB_DIR = tmp_path
    db_mod.DB_PATH = test_db
    main_mod._sessions.clear()

    await db_mod.init_db()
    yield
    await db_mod.close_db()
    main_mod._sessions.clear()


# --------------------------------------------------------------------------- #
#  HTTP client wired to the FastAPI app without a real server
# --------------------------------------------------------------------------- #

@pytest_asyncio.fixture
async def client() -> AsyncClient:
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# --------------------------------------------------------------------------- #
#  Rosters and setup
# --------------------------------------------------------------------------- #

def make_team(team_id: str, name: str, size: int = 11) -> Team:
    """Players are named <team_id>1 .. <team_id><size>."""
    return Team(
        id=team_id,
        name=name,
        players=[Player(id=f"{team_id}{i}", name=f"{name} Player {i}") for i in range(1, size + 1)],
    )


@pytest.fixture
def teams() -> list[Team]:
    return [make_team("a", "Lions"), make_team("b", "Tigers")]


@pytest.fixture
def config() -> MatchConfig:
    """Lions win the toss and bat; a1/a2 open against b11."""
    return MatchConfig(
        team_a_id="a",
        team_b_id="b",
        toss_winner_id="a",
        toss_decision=TossDecision.BAT,
        striker_id="a1",
        non_striker_id="a2",
        bowler_id="b11",
        format=MatchFormat.T20,
    )


@pytest.fixture
def engine(config: MatchConfig) -> MatchEngine:
    return MatchEngine(build_initial_state(config, now=1000.0))


@pytest.fixture
def create_payload(config: MatchConfig, teams: list[Team]) -> dict:
    return {
        "title": "Lions vs Tigers",
        "config": config.model_dump(mode="json"),
        "teams": [t.model_dump(mode="json") for t in teams],
    }
