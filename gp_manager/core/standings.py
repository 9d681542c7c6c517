"""Championship standings.

A race outcome is folded into cumulative driver and constructor tables.
Missing records are created at zero, counters are incremented with the
shared rules below, and then the *whole* table is re-sorted (points
descending, wins descending) with ``position`` reassigned as a 1-based
rank.  Positions are always derived, never edited by hand.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, TypeVar

# Standard points for positions 1-10.
DEFAULT_POINTS_TABLE: list[int] = [25, 18, 15, 12, 10, 8, 6, 4, 2, 1]


class FinishStatus(str, Enum):
    FINISHED = "Finished"
    LAPPED = "Lapped"
    RETIRED = "Retired"
    DISQUALIFIED = "Disqualified"
    DID_NOT_START = "DidNotStart"


_CLASSIFIED: frozenset[FinishStatus] = frozenset({FinishStatus.FINISHED, FinishStatus.LAPPED})


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RaceEntryResult:
    """One car's outcome in a race.

    Attributes:
        driver_id: Driver of the car.
        team_id: Team the car was entered by.
        grid_position: Starting position (1 = pole).
        finish_position: Classified position; non-finishers are ordered
            after finishers.
        status: Finish status; anything but Finished/Lapped is a DNF.
        fastest_lap: Whether the driver set the race's fastest lap.
    """

    driver_id: str
    team_id: str
    grid_position: int
    finish_position: int
    status: FinishStatus = FinishStatus.FINISHED
    fastest_lap: bool = False

    def __post_init__(self) -> None:
        if self.grid_position < 1:
            raise ValueError("grid_position must be >= 1.")
        if self.finish_position < 1:
            raise ValueError("finish_position must be >= 1.")


@dataclass
class DriverStanding:
    driver_id: str
    team_id: str | None = None
    points: float = 0
    position: int = 0
    wins: int = 0
    podiums: int = 0
    poles: int = 0
    fastest_laps: int = 0
    dnfs: int = 0


@dataclass
class ConstructorStanding:
    team_id: str
    points: float = 0
    position: int = 0
    wins: int = 0
    podiums: int = 0
    poles: int = 0


StandingT = TypeVar("StandingT", DriverStanding, ConstructorStanding)


# ---------------------------------------------------------------------------
# Shared rules
# ---------------------------------------------------------------------------


def is_dnf(status: FinishStatus) -> bool:
    return status not in _CLASSIFIED


def is_win(result: RaceEntryResult) -> bool:
    return not is_dnf(result.status) and result.finish_position == 1


def is_podium(result: RaceEntryResult) -> bool:
    return not is_dnf(result.status) and result.finish_position <= 3


def is_pole(result: RaceEntryResult) -> bool:
    return result.grid_position == 1


def points_for_position(position: int, points_table: list[int] = DEFAULT_POINTS_TABLE) -> int:
    """Points for a classified *position*; 0 outside the table."""
    if 1 <= position <= len(points_table):
        return points_table[position - 1]
    return 0


def points_for_result(result: RaceEntryResult, points_table: list[int] = DEFAULT_POINTS_TABLE) -> int:
    if is_dnf(result.status):
        return 0
    return points_for_position(result.finish_position, points_table)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_driver_standing(standings: Iterable[DriverStanding], driver_id: str) -> DriverStanding:
    """Return the driver's standing, or a zero record if there is none."""
    for standing in standings:
        if standing.driver_id == driver_id:
            return standing
    return DriverStanding(driver_id=driver_id)


def get_constructor_standing(
    standings: Iterable[ConstructorStanding], team_id: str
) -> ConstructorStanding:
    """Return the team's standing, or a zero record if there is none."""
    for standing in standings:
        if standing.team_id == team_id:
            return standing
    return ConstructorStanding(team_id=team_id)


def constructor_positions(standings: Iterable[ConstructorStanding]) -> dict[str, int]:
    return {s.team_id: s.position for s in standings}


# ---------------------------------------------------------------------------
# Folding
# ---------------------------------------------------------------------------


def sort_standings(standings: Iterable[StandingT]) -> list[StandingT]:
    """Sort by points then wins (both descending) and reassign positions."""
    ranked: list[StandingT] = sorted(standings, key=lambda s: (-s.points, -s.wins))
    for index, standing in enumerate(ranked):
        standing.position = index + 1
    return ranked


def update_standings(
    driver_standings: list[DriverStanding],
    constructor_standings: list[ConstructorStanding],
    results: list[RaceEntryResult],
    points_table: list[int] = DEFAULT_POINTS_TABLE,
) -> tuple[list[DriverStanding], list[ConstructorStanding]]:
    """Fold one race into the championship tables.

    The input lists are not modified.

    Args:
        driver_standings: Current drivers' table.
        constructor_standings: Current constructors' table.
        results: Every car's outcome in the race.
        points_table: Points awarded to classified positions 1..N.

    Returns:
        ``(drivers, constructors)``, both fully re-sorted with positions
        reassigned.
    """
    drivers: dict[str, DriverStanding] = {
        s.driver_id: copy.copy(s) for s in driver_standings
    }
    constructors: dict[str, ConstructorStanding] = {
        s.team_id: copy.copy(s) for s in constructor_standings
    }

    for result in results:
        driver = drivers.setdefault(result.driver_id, DriverStanding(driver_id=result.driver_id))
        team = constructors.setdefault(result.team_id, ConstructorStanding(team_id=result.team_id))
        driver.team_id = result.team_id

        points: int = points_for_result(result, points_table)
        driver.points += points
        team.points += points

        if is_win(result):
            driver.wins += 1
            team.wins += 1
        if is_podium(result):
            driver.podiums += 1
            team.podiums += 1
        if is_pole(result):
            driver.poles += 1
            team.poles += 1
        if result.fastest_lap:
            driver.fastest_laps += 1
        if is_dnf(result.status):
            driver.dnfs += 1

    return sort_standings(drivers.values()), sort_standings(constructors.values())


def initial_standings(
    driver_team_ids: dict[str, str | None], team_ids: Iterable[str]
) -> tuple[list[DriverStanding], list[ConstructorStanding]]:
    """Zeroed tables for a new season, positions assigned in input order."""
    drivers = [DriverStanding(driver_id=d, team_id=t) for d, t in driver_team_ids.items()]
    constructors = [ConstructorStanding(team_id=t) for t in team_ids]
    return sort_standings(drivers), sort_standings(constructors)
