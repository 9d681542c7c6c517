"""Tests for the chassis testing engine."""

import numpy as np
import pytest

from gp_manager.core.design import CurrentChassisState, HandlingProblem, HandlingProblemState
from gp_manager.core.entities import StaffQuality
from gp_manager.core.testing import (
    TestSession,
    apply_testing_result,
    process_day,
    start_session,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_STAFF: dict[StaffQuality, int] = {StaffQuality.VERY_GOOD: 10}


def _make_chassis() -> CurrentChassisState:
    return CurrentChassisState(
        true_handling=72,
        problems=[
            HandlingProblemState(HandlingProblem.POOR_TRACTION),
            HandlingProblemState(HandlingProblem.TYRE_WARM_UP),
        ],
    )


def _run_until_complete(session: TestSession, chassis: CurrentChassisState, rng, max_days: int = 30):
    for _ in range(max_days):
        result = process_day("t1", session, _STAFF, None, {}, chassis, rng)
        session = result.session
        if result.completed:
            return result
    raise AssertionError("test session never completed")


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_inactive_session_does_nothing() -> None:
    """An idle session produces no work and is returned unchanged."""
    session = TestSession()
    result = process_day("t1", session, _STAFF, None, {}, _make_chassis(), np.random.default_rng(0))
    assert result.work_units == 0
    assert not result.completed
    assert result.session == session


def test_start_session_validates_allocation() -> None:
    """Allocation must lie in (0, 100]; the input session is not modified."""
    session = TestSession(accumulated_work_units=120)
    with pytest.raises(ValueError):
        start_session(session, "d1", 0)
    with pytest.raises(ValueError):
        start_session(session, "d1", 101)
    started = start_session(session, "d1", 50)
    assert started.active and started.driver_id == "d1"
    assert started.accumulated_work_units == 120
    assert not session.active


def test_first_test_reveals_handling_then_problems() -> None:
    """The first completed test reveals handling; the next discovers a problem."""
    rng = np.random.default_rng(5)
    chassis = _make_chassis()
    session = start_session(TestSession(), "d1", 100)

    first = _run_until_complete(session, chassis, rng)
    assert first.handling_revealed == 72
    assert first.problem_discovered is None
    assert not first.session.active
    assert first.session.tests_completed == 1
    apply_testing_result(chassis, first)
    assert chassis.handling_revealed == 72

    second = _run_until_complete(start_session(first.session, "d1", 100), chassis, rng)
    assert second.handling_revealed is None
    assert second.problem_discovered in (HandlingProblem.POOR_TRACTION, HandlingProblem.TYRE_WARM_UP)
    apply_testing_result(chassis, second)
    assert len(chassis.undiscovered()) == 1


def test_no_problem_left_to_discover() -> None:
    """Once every problem is known a completed test discovers nothing."""
    rng = np.random.default_rng(6)
    chassis = CurrentChassisState(
        true_handling=60,
        handling_revealed=60,
        problems=[HandlingProblemState(HandlingProblem.PORPOISING, discovered=True)],
    )
    result = _run_until_complete(start_session(TestSession(), "d1", 100), chassis, rng)
    assert result.completed
    assert result.problem_discovered is None
