#!/usr/bin/env python
"""Headless season run with a JSON results dump.

This script:

1. Loads the shipped content (or an override directory).
2. Starts a new game for the chosen team.
3. Ticks through the whole season, running every race as it falls due.
4. Saves the calendar, race results and final standings to
   ``results/season_<n>.json``.

Usage
-----
::

    python scripts/run_season.py [team_id] [seed]
"""

from __future__ import annotations

import json
import os
import sys

# Ensure the project root is on the import path.
_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from gp_manager.config import ContentRepository  # noqa: E402
from gp_manager.core.entities import GamePhase  # noqa: E402
from gp_manager.game import GameState, new_game, run_tick  # noqa: E402
from gp_manager.logging_config import setup_logging  # noqa: E402

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_TEAM: str = "aurora"
DEFAULT_SEED: int = 2025
MAX_TICKS: int = 400
RESULTS_DIR: str = os.path.join(_project_root, "results")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _season_summary(game: GameState) -> dict[str, object]:
    races: list[dict[str, object]] = []
    for entry in game.calendar:
        race = entry.result
        races.append(
            {
                "race_number": entry.race_number,
                "circuit_id": entry.circuit_id,
                "week": entry.week_number,
                "date": str(race.date) if race else None,
                "weather": race.weather.value if race else None,
                "compound": race.compound_id if race else None,
                "classification": race.classification if race else [],
                "dnfs": race.dnf_list if race else [],
            }
        )
    return {
        "season": game.season,
        "player_team_id": game.player_team_id,
        "races": races,
        "driver_standings": [
            {"position": s.position, "driver_id": s.driver_id, "team_id": s.team_id, "points": s.points, "wins": s.wins}
            for s in game.driver_standings
        ],
        "constructor_standings": [
            {"position": s.position, "team_id": s.team_id, "points": s.points, "wins": s.wins}
            for s in game.constructor_standings
        ],
        "team_budgets": {t.id: t.budget for t in game.teams.values()},
    }


# ---------------------------------------------------------------------------
# Main pipeline
# ---------------------------------------------------------------------------


def main() -> None:
    """Run one full season and save its results."""
    team_id: str = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_TEAM
    seed: int = int(sys.argv[2]) if len(sys.argv) > 2 else DEFAULT_SEED
    setup_logging(level="INFO")

    print("=" * 60)
    print("HEADLESS SEASON RUN")
    print("=" * 60)
    print()

    print(f"[1/3] Starting a new game for {team_id} (seed {seed})")
    game = new_game(ContentRepository(), team_id, seed=seed)
    print(f"      {len(game.teams)} teams, {len(game.calendar)} races.")
    print()

    print("[2/3] Simulating the season")
    ticks: int = 0
    while game.phase != GamePhase.POST_SEASON and ticks < MAX_TICKS:
        if run_tick(game).blocked is not None:
            break
        ticks += 1
    print(f"      {ticks} days simulated, now {game.current_date}.")
    print()

    print("[3/3] Saving results")
    os.makedirs(RESULTS_DIR, exist_ok=True)
    output_path = os.path.join(RESULTS_DIR, f"season_{game.season}.json")
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(_season_summary(game), fh, indent=2, sort_keys=True)
    print(f"      Results saved to {output_path}")
    print()

    names = {d.id: d.name for d in game.drivers.values()}
    print("=" * 60)
    print("DRIVERS' CHAMPIONSHIP")
    print("=" * 60)
    for standing in game.driver_standings:
        print(f"  {standing.position:2d}. {names.get(standing.driver_id, standing.driver_id):<30s}  {standing.points:5.0f}")
    print()
    print("Season complete.")


if __name__ == "__main__":
    main()
