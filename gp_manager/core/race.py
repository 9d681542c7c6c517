"""Placeholder race outcome generator and race-weekend state deltas.

The race model is deliberately simple: each entrant has a single rating
and a reliability figure; qualifying and race pace are the rating plus
Gaussian noise, and every car has a small chance of retiring.  All
randomness is drawn from the caller's ``numpy.random.Generator`` so that
results are reproducible for a fixed seed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from numpy.random import Generator

from gp_manager.core.dates import SimDate
from gp_manager.core.entities import Department
from gp_manager.core.standings import (
    DEFAULT_POINTS_TABLE,
    FinishStatus,
    RaceEntryResult,
    is_dnf,
    is_podium,
    is_win,
    points_for_result,
)
from gp_manager.core.state import CalendarEntry, DriverStateChange, TeamStateChange

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

QUALIFYING_NOISE_STD: float = 4.0
RACE_NOISE_STD: float = 6.0
GRID_POSITION_PENALTY: float = 0.35  # rating lost per grid slot behind pole
LAPPED_GAP: float = 18.0  # rating gap to the winner at which a car is lapped
BASE_DNF_CHANCE: float = 0.02
UNRELIABILITY_DNF_CHANCE: float = 0.10

POINTS_BONUS_PER_POINT: int = 10_000

WIN_MORALE: int = 10
PODIUM_MORALE: int = 5
POINTS_MORALE: int = 2
DNF_MORALE: int = -5

WIN_REPUTATION: int = 3
PODIUM_REPUTATION: int = 1
DNF_REPUTATION: int = -1


class Weather(str, Enum):
    DRY = "dry"
    WET = "wet"


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Entrant:
    """A car entered for a race.

    Attributes:
        driver_id: Driver of the car.
        team_id: Entering team.
        rating: Combined car and driver pace rating (higher is faster).
        reliability: Probability-like reliability figure in ``[0, 1]``.
    """

    driver_id: str
    team_id: str
    rating: float
    reliability: float = 0.9

    def __post_init__(self) -> None:
        if not 0.0 <= self.reliability <= 1.0:
            raise ValueError("reliability must be in [0, 1].")


@dataclass
class RaceWeekendResult:
    race_number: int
    circuit_id: str
    date: SimDate
    weather: Weather = Weather.DRY
    results: list[RaceEntryResult] = field(default_factory=list)
    compound_id: str | None = None

    @property
    def classification(self) -> list[str]:
        """Driver ids in finishing order, retirements last."""
        return [r.driver_id for r in sorted(self.results, key=lambda r: r.finish_position)]

    @property
    def dnf_list(self) -> list[str]:
        return [r.driver_id for r in self.results if is_dnf(r.status)]

    @property
    def winner(self) -> str | None:
        for result in self.results:
            if is_win(result):
                return result.driver_id
        return None


# ---------------------------------------------------------------------------
# Placeholder race engine
# ---------------------------------------------------------------------------


class RandomRaceEngine:
    """Rating-plus-noise race model."""

    def simulate(
        self,
        entry: CalendarEntry,
        entrants: list[Entrant],
        weather: Weather,
        date: SimDate,
        rng: Generator,
    ) -> RaceWeekendResult:
        """Generate grid order, finishing order and retirements for a race.

        Args:
            entry: Calendar entry being raced.
            entrants: Cars taking part.
            weather: Conditions; wet races double the race noise.
            date: Race day.
            rng: Random source.

        Returns:
            A :class:`RaceWeekendResult` with one record per entrant.
        """
        if not entrants:
            return RaceWeekendResult(entry.race_number, entry.circuit_id, date, weather)

        noise: float = RACE_NOISE_STD * (2.0 if weather == Weather.WET else 1.0)

        quali: list[tuple[float, Entrant]] = [
            (e.rating + float(rng.normal(0.0, QUALIFYING_NOISE_STD)), e) for e in entrants
        ]
        quali.sort(key=lambda pair: pair[0], reverse=True)
        grid: dict[str, int] = {e.driver_id: i + 1 for i, (_, e) in enumerate(quali)}

        finishers: list[tuple[float, Entrant]] = []
        retirements: list[tuple[float, Entrant]] = []
        for _, entrant in quali:
            dnf_chance: float = BASE_DNF_CHANCE + UNRELIABILITY_DNF_CHANCE * (1.0 - entrant.reliability)
            pace: float = (
                entrant.rating
                - GRID_POSITION_PENALTY * (grid[entrant.driver_id] - 1)
                + float(rng.normal(0.0, noise))
            )
            if rng.random() < dnf_chance:
                # Retirement lap fraction orders the non-finishers.
                retirements.append((float(rng.random()), entrant))
            else:
                finishers.append((pace, entrant))

        finishers.sort(key=lambda pair: pair[0], reverse=True)
        retirements.sort(key=lambda pair: pair[0], reverse=True)

        fastest_driver: str | None = None
        if finishers:
            lap_scores = [e.rating + float(rng.normal(0.0, noise)) for _, e in finishers]
            fastest_driver = finishers[max(range(len(lap_scores)), key=lap_scores.__getitem__)][1].driver_id

        results: list[RaceEntryResult] = []
        leader_pace: float = finishers[0][0] if finishers else 0.0
        for index, (pace, entrant) in enumerate(finishers):
            status = FinishStatus.LAPPED if leader_pace - pace > LAPPED_GAP else FinishStatus.FINISHED
            results.append(
                RaceEntryResult(
                    driver_id=entrant.driver_id,
                    team_id=entrant.team_id,
                    grid_position=grid[entrant.driver_id],
                    finish_position=index + 1,
                    status=status,
                    fastest_lap=entrant.driver_id == fastest_driver,
                )
            )
        for offset, (_, entrant) in enumerate(retirements):
            results.append(
                RaceEntryResult(
                    driver_id=entrant.driver_id,
                    team_id=entrant.team_id,
                    grid_position=grid[entrant.driver_id],
                    finish_position=len(finishers) + offset + 1,
                    status=FinishStatus.RETIRED,
                )
            )
        return RaceWeekendResult(entry.race_number, entry.circuit_id, date, weather, results)


# ---------------------------------------------------------------------------
# State deltas
# ---------------------------------------------------------------------------


def calculate_finish_morale(result: RaceEntryResult | None, points_table: list[int]) -> int:
    """Morale swing for a finish; ``None`` means no car finished."""
    if result is None or is_dnf(result.status):
        return DNF_MORALE
    if is_win(result):
        return WIN_MORALE
    if is_podium(result):
        return PODIUM_MORALE
    if points_for_result(result, points_table) > 0:
        return POINTS_MORALE
    return 0


def race_state_changes(
    race: RaceWeekendResult,
    points_table: list[int] = DEFAULT_POINTS_TABLE,
) -> tuple[list[DriverStateChange], list[TeamStateChange]]:
    """Morale, reputation and prize-money deltas produced by a race.

    Drivers: win +10 morale / +3 reputation, podium +5 / +1, points +2 / 0,
    retirement -5 / -1.  Teams: ``points * 10_000`` prize money, and the
    engineering and mechanics departments swing by the morale of the
    team's best finisher.
    """
    driver_changes: list[DriverStateChange] = []
    team_points: dict[str, int] = {}
    best_finish: dict[str, RaceEntryResult | None] = {}

    for result in race.results:
        change = DriverStateChange(driver_id=result.driver_id)
        if is_dnf(result.status):
            change.morale_delta = DNF_MORALE
            change.reputation_delta = DNF_REPUTATION
        elif is_win(result):
            change.morale_delta = WIN_MORALE
            change.reputation_delta = WIN_REPUTATION
        elif is_podium(result):
            change.morale_delta = PODIUM_MORALE
            change.reputation_delta = PODIUM_REPUTATION
        elif points_for_result(result, points_table) > 0:
            change.morale_delta = POINTS_MORALE
        driver_changes.append(change)

        team_points[result.team_id] = team_points.get(result.team_id, 0) + points_for_result(
            result, points_table
        )
        current_best = best_finish.get(result.team_id)
        if not is_dnf(result.status) and (
            current_best is None or result.finish_position < current_best.finish_position
        ):
            best_finish[result.team_id] = result
        else:
            best_finish.setdefault(result.team_id, None)

    team_changes: list[TeamStateChange] = []
    for team_id, points in team_points.items():
        morale: int = calculate_finish_morale(best_finish.get(team_id), points_table)
        team_changes.append(
            TeamStateChange(
                team_id=team_id,
                budget_delta=points * POINTS_BONUS_PER_POINT,
                morale_deltas={Department.ENGINEERING: morale, Department.MECHANICS: morale},
            )
        )
    logger.debug("race %d produced %d driver changes", race.race_number, len(driver_changes))
    return driver_changes, team_changes
