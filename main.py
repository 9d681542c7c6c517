"""CLI entrypoint for the grand-prix management simulation."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from gp_manager import __version__
from gp_manager.config import ContentRepository
from gp_manager.core.entities import GamePhase
from gp_manager.game import GameState, end_season, new_game, run_tick
from gp_manager.logging_config import setup_logging


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a headless management season.")
    parser.add_argument("--team", default="aurora", help="player team id")
    parser.add_argument("--seed", type=int, default=2025, help="random seed")
    parser.add_argument("--content", type=Path, default=None, help="content override directory")
    parser.add_argument("--seasons", type=int, default=1, help="seasons to simulate")
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--json-logs", action="store_true")
    return parser.parse_args(argv)


def _print_standings(game: GameState) -> None:
    drivers = {d.id: d.name for d in game.drivers.values()}
    teams = {t.id: t.name for t in game.teams.values()}
    print(f"\n  {'Pos':>3}  {'Driver':<24}  {'Pts':>5}  {'Wins':>4}")
    for standing in game.driver_standings[:10]:
        print(
            f"  {standing.position:3d}  {drivers.get(standing.driver_id, standing.driver_id):<24}  "
            f"{standing.points:5.0f}  {standing.wins:4d}"
        )
    print(f"\n  {'Pos':>3}  {'Constructor':<24}  {'Pts':>5}")
    for standing in game.constructor_standings:
        print(f"  {standing.position:3d}  {teams.get(standing.team_id, standing.team_id):<24}  {standing.points:5.0f}")


def _play_season(game: GameState) -> None:
    """Tick through a season, auto-running every race, until the post-season."""
    circuits = {c.id: c.name for c in game.circuits.values()}
    while game.phase != GamePhase.POST_SEASON:
        tick = run_tick(game)
        if tick.blocked is not None:
            break
        if tick.race is not None:
            winner = game.drivers[tick.race.winner].name if tick.race.winner else "-"
            print(
                f"  R{tick.race.race_number:02d}  {tick.date}  "
                f"{circuits.get(tick.race.circuit_id, tick.race.circuit_id):<28}  "
                f"{tick.race.weather.value:<4}  {winner}"
            )


def main(argv: list[str] | None = None) -> int:
    """Simulate one or more seasons and print the championship tables."""
    args = _parse_args(argv)
    setup_logging(level=args.log_level, json_format=args.json_logs)

    print(f"Grand Prix Manager v{__version__}")
    print("=" * 56)

    game = new_game(ContentRepository(override_dir=args.content), args.team, seed=args.seed)
    print(f"\nPlayer team: {game.player_team.name}")

    for _ in range(args.seasons):
        print(f"\nSeason {game.season} ({game.year}): {len(game.calendar)} races")
        print("-" * 56)
        _play_season(game)
        _print_standings(game)
        end_season(game)

    print(f"\n{len(game.events)} events logged.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
