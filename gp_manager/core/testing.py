"""Testing engine for the current-year chassis.

A test session turns mechanics' work units into test progress.  When a
session reaches full progress the first test ever run on the chassis
reveals its handling percentage; every later test discovers one hidden
handling problem, which the design office can then solve.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass

from numpy.random import Generator

from gp_manager.core.design import (
    CurrentChassisState,
    HandlingProblem,
    calculate_work_units,
    facility_multiplier,
)
from gp_manager.core.entities import Chief, FacilityType, StaffQuality

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TEST_FACILITY_BONUS: dict[FacilityType, float] = {FacilityType.TEST_RIG: 0.1}
WORK_UNITS_PER_TEST_POINT: int = 500
MAX_TEST_PROGRESS: int = 10


@dataclass
class TestSession:
    """Running or idle test session of one team.

    Attributes:
        active: Whether the session is running.
        driver_id: Driver doing the running, if any.
        allocation: Percentage of the mechanics department assigned.
        progress: Test progress, 0-10.
        accumulated_work_units: Work not yet converted into progress.
        tests_completed: Completed sessions on the current chassis.
    """

    __test__ = False  # not a pytest class

    active: bool = False
    driver_id: str | None = None
    allocation: int = 0
    progress: int = 0
    accumulated_work_units: int = 0
    tests_completed: int = 0


@dataclass
class TestingResult:
    __test__ = False

    team_id: str
    session: TestSession
    work_units: int = 0
    completed: bool = False
    handling_revealed: int | None = None
    problem_discovered: HandlingProblem | None = None


def start_session(session: TestSession, driver_id: str, allocation: int) -> TestSession:
    """Return *session* switched on, keeping any carried-over work."""
    if not 0 < allocation <= 100:
        raise ValueError(f"allocation must be in (0, 100], got {allocation}")
    updated = copy.copy(session)
    updated.active = True
    updated.driver_id = driver_id
    updated.allocation = allocation
    return updated


def process_day(
    team_id: str,
    session: TestSession,
    staff_counts: dict[StaffQuality, int],
    chief_mechanic: Chief | None,
    facilities: dict[FacilityType, int],
    current_chassis: CurrentChassisState,
    rng: Generator,
) -> TestingResult:
    """Run one day of testing.

    Args:
        team_id: Team being processed.
        session: Current session (not modified).
        staff_counts: Mechanics department staff by quality tier.
        chief_mechanic: The team's chief mechanic, ``None`` if vacant.
        facilities: Facility type to quality level.
        current_chassis: Handling knowledge, read to decide what a
            completed test reveals.
        rng: Random source.

    Returns:
        A :class:`TestingResult` with the updated copy of the session.
        An inactive session is returned unchanged with zero work.
    """
    updated: TestSession = copy.copy(session)
    result = TestingResult(team_id=team_id, session=updated)
    if not updated.active:
        return result

    ability: int | None = chief_mechanic.ability if chief_mechanic is not None else None
    multiplier: float = facility_multiplier(facilities, TEST_FACILITY_BONUS)
    work: int = calculate_work_units(staff_counts, updated.allocation, multiplier, ability, rng)
    result.work_units = work

    updated.accumulated_work_units += work
    points: int = updated.accumulated_work_units // WORK_UNITS_PER_TEST_POINT
    gain: int = min(points, MAX_TEST_PROGRESS - updated.progress)
    updated.progress += gain
    updated.accumulated_work_units -= gain * WORK_UNITS_PER_TEST_POINT
    if updated.progress < MAX_TEST_PROGRESS:
        return result

    result.completed = True
    updated.active = False
    updated.progress = 0
    updated.tests_completed += 1
    if current_chassis.handling_revealed is None:
        result.handling_revealed = current_chassis.true_handling
    else:
        hidden = current_chassis.undiscovered()
        if hidden:
            pick: int = int(rng.integers(0, len(hidden)))
            result.problem_discovered = hidden[pick].problem
    return result


def apply_testing_result(chassis: CurrentChassisState, result: TestingResult) -> None:
    """Fold a completed test's findings into the chassis knowledge."""
    if result.handling_revealed is not None:
        chassis.handling_revealed = result.handling_revealed
    if result.problem_discovered is not None:
        state = chassis.problem_state(result.problem_discovered)
        if state is not None:
            state.discovered = True
