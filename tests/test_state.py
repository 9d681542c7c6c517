"""Tests for runtime state clamping and the apply functions."""

from gp_manager.core.design import DesignState
from gp_manager.core.entities import Department, StaffQuality, Team
from gp_manager.core.state import (
    CalendarEntry,
    DriverRuntimeState,
    DriverStateChange,
    PercentageMap,
    TeamStateChange,
    apply_driver_state_changes,
    apply_team_state_changes,
    clamp_percentage,
    initial_team_state,
    pending_race_in_week,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _make_team() -> Team:
    return Team(
        id="t1",
        name="Team One",
        budget=10_000_000,
        sponsor_ids=["s1"],
        staff={Department.DESIGN: {StaffQuality.GOOD: 4}},
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_clamp_percentage() -> None:
    """Values outside [0, 100] must be clamped to the nearest bound."""
    assert clamp_percentage(-5) == 0
    assert clamp_percentage(150) == 100
    assert clamp_percentage(42) == 42


def test_driver_state_fields_clamped_on_write() -> None:
    """Writing an out-of-range value must store the clamped value."""
    state = DriverRuntimeState("d1", fatigue=120, fitness=-10)
    assert state.fatigue == 100
    assert state.fitness == 0
    state.morale = 250
    assert state.morale == 100


def test_percentage_map_clamps() -> None:
    """PercentageMap must clamp both constructor values and assignments."""
    values = PercentageMap({"a": 140})
    values["b"] = -3
    assert values == {"a": 100, "b": 0}


def test_apply_driver_changes_clamps_and_floors_countdowns() -> None:
    """Deltas accumulate with clamping; countdowns never go negative."""
    states = {"d1": DriverRuntimeState("d1", fatigue=95, injury_weeks_remaining=1)}
    apply_driver_state_changes(
        states,
        [
            DriverStateChange("d1", fatigue_delta=10, injury_weeks_delta=-3),
            DriverStateChange("unknown", fatigue_delta=10),
        ],
    )
    assert states["d1"].fatigue == 100
    assert states["d1"].injury_weeks_remaining == 0
    assert states["d1"].available


def test_apply_team_changes_updates_budget_and_state() -> None:
    """Budget changes land on the team, morale and satisfaction on the state."""
    team = _make_team()
    state = initial_team_state(team, DesignState())
    apply_team_state_changes(
        {team.id: team},
        {team.id: state},
        [
            TeamStateChange(
                team.id,
                budget_delta=-500,
                morale_deltas={Department.DESIGN: 50},
                sponsor_satisfaction_deltas={"s1": -100},
            )
        ],
    )
    assert team.budget == 10_000_000 - 500
    assert state.department_morale[Department.DESIGN] == 100
    assert state.sponsor_satisfaction["s1"] == 0


def test_initial_team_state_copies_staff() -> None:
    """The runtime staff table must not alias the team's initial staff."""
    team = _make_team()
    state = initial_team_state(team, DesignState())
    state.staff_counts[Department.DESIGN][StaffQuality.GOOD] = 9
    assert team.staff[Department.DESIGN][StaffQuality.GOOD] == 4


def test_pending_race_in_week_skips_completed_and_cancelled() -> None:
    """Only an uncompleted, uncancelled race counts as pending."""
    calendar = [
        CalendarEntry(1, "c1", 10, completed=True),
        CalendarEntry(2, "c2", 11, cancelled=True),
        CalendarEntry(3, "c3", 12),
    ]
    assert pending_race_in_week(calendar, 10) is None
    assert pending_race_in_week(calendar, 11) is None
    assert pending_race_in_week(calendar, 12) is calendar[2]


def test_reset_for_season_keeps_reputation() -> None:
    """Season reset restores defaults but keeps reputation."""
    state = DriverRuntimeState("d1", fatigue=60, reputation=81, engine_units_used=3)
    state.reset_for_season()
    assert state.fatigue == 0
    assert state.fitness == 100
    assert state.engine_units_used == 0
    assert state.reputation == 81
