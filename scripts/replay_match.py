#!/usr/bin/env python3
"""
Replay a scored match from a JSON file and print the cards.

The file holds the match setup, both rosters and an ordered list of scoring
events:

    {
      "title": "Lions vs Tigers",
      "config": {"team_a_id": "a", "team_b_id": "b", "toss_decision": "Bat", ...},
      "teams": [{"id": "a", "name": "Lions", "players": [...]}, ...],
      "events": [
        {"bat_runs": 1},
        {"op": "wicket", "wicket_type": "Caught", "batter_id": "a1"},
        {"op": "batter", "player_id": "a3", "slot": "striker"},
        {"op": "bowler", "bowler_id": "b10"},
        {"op": "next_innings"},
        ...
      ]
    }

Events without an "op" are deliveries. Other ops: replace_bowler, retire,
declare, undo.

Usage:
    python scripts/replay_match.py data/sample/final.json
    python scripts/replay_match.py final.json --api                 # push to a running server
    python scripts/replay_match.py final.json --api --base-url http://localhost:8001
"""

import argparse
import json
import sys
from pathlib import Path

import httpx

# Allow importing crease when run as script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from crease.engine.innings import check_end_of_innings  # noqa: E402
from crease.engine.match_engine import MatchEngine  # noqa: E402
from crease.engine.match_setup import build_initial_state  # noqa: E402
from crease.engine.result import compute_result  # noqa: E402
from crease.engine.rules import MatchRules  # noqa: E402
from crease.models import (  # noqa: E402
    BallInput,
    MatchConfig,
    PlayerSlot,
    Team,
    WicketEvent,
    WicketType,
)
from crease.scorecard.batting import build_batting_card  # noqa: E402
from crease.scorecard.bowling import build_bowling_card  # noqa: E402

DEFAULT_BASE_URL = "http://localhost:8000"


# ------------------------------------------------------------------ #
#  Local replay
# ------------------------------------------------------------------ #

def apply_event(engine: MatchEngine, event: dict) -> None:
    body = {k: v for k, v in event.items() if k != "op"}
    op = event.get("op", "ball")

    if op == "ball":
        engine.apply_ball(BallInput.model_validate(body))
    elif op == "wicket":
        engine.record_wicket(WicketEvent.model_validate(body))
    elif op == "batter":
        engine.select_batter(body["player_id"], PlayerSlot(body["slot"]))
    elif op == "bowler":
        engine.select_bowler(body["bowler_id"])
    elif op == "replace_bowler":
        engine.replace_bowler_mid_over(body["bowler_id"])
    elif op == "retire":
        engine.retire_batter(body["player_id"], WicketType(body["reason"]))
    elif op == "declare":
        engine.declare_innings()
    elif op == "undo":
        engine.undo_ball()
    elif op == "next_innings":
        state = engine.state
        engine.end_innings()
        engine.start_innings(state.bowling_team_id, state.batting_team_id, target=state.score + 1)
    else:
        raise ValueError(f"Unknown op: {op}")


def print_cards(engine: MatchEngine, config: MatchConfig, teams: dict[str, Team]) -> None:
    state = engine.state
    rules = MatchRules(config, state)
    played = [(s.innings, s.team_id) for s in state.innings_scores]
    if state.innings not in [inn for inn, _ in played]:
        played.append((state.innings, state.batting_team_id))

    for innings, batting_id in played:
        bowling_id = config.team_b_id if batting_id == config.team_a_id else config.team_a_id
        live = innings == state.innings
        batting = build_batting_card(
            state.history,
            rules.selectable_players(teams[batting_id]),
            innings,
            state.striker_id if live else "",
            state.non_striker_id if live else "",
        )
        bowling = build_bowling_card(
            state.history, rules.selectable_players(teams[bowling_id]), innings
        )

        print(f"\n=== Innings {innings}: {teams[batting_id].name} ===")
        print(f"  {'Batter':<24} {'R':>4} {'B':>4} {'4s':>3} {'6s':>3} {'SR':>7}  Dismissal")
        for r in batting:
            status = r.dismissal if r.is_out else "not out"
            print(f"  {r.name:<24} {r.runs:>4} {r.balls:>4} {r.fours:>3} {r.sixes:>3} {r.strike_rate:>7}  {status}")
        print(f"\n  {'Bowler':<24} {'O':>5} {'M':>3} {'R':>4} {'W':>3} {'Econ':>6}")
        for r in bowling:
            print(f"  {r.name:<24} {r.overs:>5} {r.maidens:>3} {r.runs:>4} {r.wickets:>3} {r.economy:>6}")


def replay_local(raw: dict) -> None:
    config = MatchConfig.model_validate(raw["config"])
    teams = {t.id: t for t in (Team.model_validate(t) for t in raw["teams"])}
    engine = MatchEngine(build_initial_state(config))

    for event in raw.get("events", []):
        apply_event(engine, event)

    print_cards(engine, config, teams)

    state = engine.state
    rules = MatchRules(config, state)
    reason = check_end_of_innings(
        state,
        rules.total_overs_allowed,
        len(rules.selectable_players(teams[state.batting_team_id])),
        config.allow_flexible_squad,
    )
    print(f"\n{state.batting_team_id} {state.score}/{state.wickets} ({state.overs})"
          + (f" - {reason.value}" if reason else ""))
    if state.innings >= 2 and reason is not None:
        result = compute_result(
            state, config.team_a_id, config.team_b_id, {tid: t.name for tid, t in teams.items()},
            players_per_side=len(rules.selectable_players(teams[state.batting_team_id])),
            allow_flexible_squad=config.allow_flexible_squad,
        )
        print(f"{result.result_text} {result.margin_text}".strip())


# ------------------------------------------------------------------ #
#  Replay through the API
# ------------------------------------------------------------------ #

API_ROUTES = {
    "ball": "balls",
    "wicket": "wickets",
    "batter": "batters",
    "bowler": "bowlers",
    "replace_bowler": "bowler-replacement",
    "retire": "retirements",
    "declare": "declare",
    "undo": "undo",
    "next_innings": "innings/next",
}


def replay_api(raw: dict, base_url: str) -> None:
    with httpx.Client(base_url=base_url, timeout=30) as client:
        r = client.post("/api/matches", json={
            "title": raw.get("title", "Replayed match"),
            "config": raw["config"],
            "teams": raw["teams"],
        })
        r.raise_for_status()
        match_id = r.json()["match_id"]
        print(f"Created match {match_id}")

        for i, event in enumerate(raw.get("events", [])):
            op = event.get("op", "ball")
            body = {k: v for k, v in event.items() if k != "op"}
            r = client.post(f"/api/matches/{match_id}/{API_ROUTES[op]}", json=body or None)
            if r.status_code != 200:
                print(f"  Event {i} ({op}) rejected: {r.status_code} {r.json().get('detail')}")
                sys.exit(1)

        stats = client.get(f"/api/matches/{match_id}/stats").json()
        print(f"Replayed {len(raw.get('events', []))} events: {stats['score']} ({stats['overs']})")


def main():
    parser = argparse.ArgumentParser(description="Replay a scored match and print the cards")
    parser.add_argument("file", help="JSON file with config, teams and events")
    parser.add_argument("--api", action="store_true", help="Replay through a running server")
    parser.add_argument(
        "--base-url", default=DEFAULT_BASE_URL, help=f"API base URL (default: {DEFAULT_BASE_URL})"
    )
    args = parser.parse_args()

    path = Path(args.file)
    if not path.exists():
        print(f"File not found: {path}")
        sys.exit(1)
    raw = json.loads(path.read_text())

    if args.api:
        replay_api(raw, args.base_url)
    else:
        replay_local(raw)


if __name__ == "__main__":
    main()
