"""Mutable runtime state owned by the tick pipeline.

Runtime states are created once at new-game or new-season time and then
mutated in place, only through the ``apply_*`` functions in this module.
Every percentage-scale field is clamped to ``[0, 100]`` on write, so an
out-of-range value can never be stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from gp_manager.core.dates import SimDate
from gp_manager.core.design import DesignState
from gp_manager.core.entities import Department, StaffCounts, Team
from gp_manager.core.testing import TestSession

if TYPE_CHECKING:
    from gp_manager.core.race import RaceWeekendResult

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SEASON_START_FATIGUE: int = 0
SEASON_START_FITNESS: int = 100
SEASON_START_MORALE: int = 70
INITIAL_SPONSOR_SATISFACTION: int = 60
INITIAL_DEPARTMENT_MORALE: int = 70


def clamp_percentage(value: float) -> float:
    """Clamp *value* to the closed interval ``[0, 100]``."""
    return max(0, min(100, value))


class PercentageMap(dict):
    """Dictionary whose values are clamped to ``[0, 100]`` on assignment."""

    def __init__(self, values: dict | None = None) -> None:
        super().__init__()
        for key, value in (values or {}).items():
            self[key] = value

    def __setitem__(self, key, value) -> None:
        super().__setitem__(key, clamp_percentage(value))


# ---------------------------------------------------------------------------
# Driver runtime state
# ---------------------------------------------------------------------------


class DriverRuntimeState:
    """Per-driver condition that drifts from day to day.

    ``fatigue``, ``fitness``, ``morale`` and ``reputation`` are exposed as
    properties whose setters clamp to ``[0, 100]``.  Countdown fields never
    drop below zero.
    """

    __slots__ = (
        "driver_id",
        "_fatigue",
        "_fitness",
        "_morale",
        "_reputation",
        "injury_weeks_remaining",
        "ban_races_remaining",
        "engine_units_used",
        "gearbox_race_count",
    )

    def __init__(
        self,
        driver_id: str,
        fatigue: int = SEASON_START_FATIGUE,
        fitness: int = SEASON_START_FITNESS,
        morale: int = SEASON_START_MORALE,
        reputation: int = 50,
        injury_weeks_remaining: int = 0,
        ban_races_remaining: int = 0,
        engine_units_used: int = 0,
        gearbox_race_count: int = 0,
    ) -> None:
        self.driver_id: str = driver_id
        self.fatigue = fatigue
        self.fitness = fitness
        self.morale = morale
        self.reputation = reputation
        self.injury_weeks_remaining: int = max(0, injury_weeks_remaining)
        self.ban_races_remaining: int = max(0, ban_races_remaining)
        self.engine_units_used: int = engine_units_used
        self.gearbox_race_count: int = gearbox_race_count

    @property
    def fatigue(self) -> int:
        return self._fatigue

    @fatigue.setter
    def fatigue(self, value: int) -> None:
        self._fatigue = clamp_percentage(value)

    @property
    def fitness(self) -> int:
        return self._fitness

    @fitness.setter
    def fitness(self, value: int) -> None:
        self._fitness = clamp_percentage(value)

    @property
    def morale(self) -> int:
        return self._morale

    @morale.setter
    def morale(self, value: int) -> None:
        self._morale = clamp_percentage(value)

    @property
    def reputation(self) -> int:
        return self._reputation

    @reputation.setter
    def reputation(self, value: int) -> None:
        self._reputation = clamp_percentage(value)

    @property
    def available(self) -> bool:
        """Whether the driver can race (not injured, not banned)."""
        return self.injury_weeks_remaining == 0 and self.ban_races_remaining == 0

    def reset_for_season(self) -> None:
        """Restore season-start defaults; reputation carries over."""
        self.fatigue = SEASON_START_FATIGUE
        self.fitness = SEASON_START_FITNESS
        self.morale = SEASON_START_MORALE
        self.injury_weeks_remaining = 0
        self.ban_races_remaining = 0
        self.engine_units_used = 0
        self.gearbox_race_count = 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DriverRuntimeState):
            return NotImplemented
        return all(getattr(self, s) == getattr(other, s) for s in self.__slots__)

    def __repr__(self) -> str:
        return (
            f"DriverRuntimeState(driver_id={self.driver_id!r}, fatigue={self.fatigue}, "
            f"fitness={self.fitness}, morale={self.morale}, reputation={self.reputation})"
        )


# ---------------------------------------------------------------------------
# Team runtime state
# ---------------------------------------------------------------------------


@dataclass
class PendingPart:
    """A designed part waiting in the factory until ``ready_date``."""

    team_id: str
    description: str
    ready_date: SimDate
    handling_gain: int = 0


@dataclass
class TeamRuntimeState:
    """Per-team working state.

    Attributes:
        team_id: Owning team.
        department_morale: Morale per department, clamped.
        sponsor_satisfaction: Satisfaction per sponsor id, clamped.
        staff_counts: Staff per department and quality tier.
        design: Design office state.
        test_session: Current test session.
        pending_parts: Parts built but not yet delivered.
    """

    team_id: str
    department_morale: PercentageMap = field(default_factory=PercentageMap)
    sponsor_satisfaction: PercentageMap = field(default_factory=PercentageMap)
    staff_counts: StaffCounts = field(default_factory=dict)
    design: DesignState = field(default_factory=DesignState)
    test_session: TestSession = field(default_factory=TestSession)
    pending_parts: list[PendingPart] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.department_morale, PercentageMap):
            self.department_morale = PercentageMap(self.department_morale)
        if not isinstance(self.sponsor_satisfaction, PercentageMap):
            self.sponsor_satisfaction = PercentageMap(self.sponsor_satisfaction)


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------


@dataclass
class CalendarEntry:
    """One race on the season calendar."""

    race_number: int
    circuit_id: str
    week_number: int
    completed: bool = False
    cancelled: bool = False
    result: RaceWeekendResult | None = None

    @property
    def pending(self) -> bool:
        return not self.completed and not self.cancelled


def pending_race_in_week(calendar: Iterable[CalendarEntry], week: int) -> CalendarEntry | None:
    """The uncompleted, uncancelled race scheduled in *week*, if any."""
    for entry in calendar:
        if entry.week_number == week and entry.pending:
            return entry
    return None


# ---------------------------------------------------------------------------
# Change records and apply functions
# ---------------------------------------------------------------------------


@dataclass
class DriverStateChange:
    driver_id: str
    fatigue_delta: int = 0
    fitness_delta: int = 0
    morale_delta: int = 0
    reputation_delta: int = 0
    injury_weeks_delta: int = 0
    ban_races_delta: int = 0


@dataclass
class TeamStateChange:
    team_id: str
    budget_delta: int = 0
    morale_deltas: dict[Department, int] = field(default_factory=dict)
    sponsor_satisfaction_deltas: dict[str, int] = field(default_factory=dict)


def apply_driver_state_changes(
    states: dict[str, DriverRuntimeState], changes: Iterable[DriverStateChange]
) -> None:
    """Apply *changes* in place.  Changes for unknown drivers are ignored."""
    for change in changes:
        state = states.get(change.driver_id)
        if state is None:
            continue
        state.fatigue += change.fatigue_delta
        state.fitness += change.fitness_delta
        state.morale += change.morale_delta
        state.reputation += change.reputation_delta
        state.injury_weeks_remaining = max(0, state.injury_weeks_remaining + change.injury_weeks_delta)
        state.ban_races_remaining = max(0, state.ban_races_remaining + change.ban_races_delta)


def apply_team_state_changes(
    teams: dict[str, Team],
    states: dict[str, TeamRuntimeState],
    changes: Iterable[TeamStateChange],
) -> None:
    """Apply *changes* in place: budget on the team, the rest on its state."""
    for change in changes:
        team = teams.get(change.team_id)
        if team is not None:
            team.budget += change.budget_delta
        state = states.get(change.team_id)
        if state is None:
            continue
        for department, delta in change.morale_deltas.items():
            current = state.department_morale.get(department, INITIAL_DEPARTMENT_MORALE)
            state.department_morale[department] = current + delta
        for sponsor_id, delta in change.sponsor_satisfaction_deltas.items():
            current = state.sponsor_satisfaction.get(sponsor_id, INITIAL_SPONSOR_SATISFACTION)
            state.sponsor_satisfaction[sponsor_id] = current + delta


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def initial_driver_state(driver_id: str, reputation: int = 50) -> DriverRuntimeState:
    return DriverRuntimeState(driver_id=driver_id, reputation=reputation)


def initial_team_state(team: Team, design: DesignState) -> TeamRuntimeState:
    """Fresh runtime state for *team* at game start."""
    return TeamRuntimeState(
        team_id=team.id,
        department_morale=PercentageMap({d: INITIAL_DEPARTMENT_MORALE for d in Department}),
        sponsor_satisfaction=PercentageMap(
            {sponsor_id: INITIAL_SPONSOR_SATISFACTION for sponsor_id in team.sponsor_ids}
        ),
        staff_counts={dept: dict(counts) for dept, counts in team.staff.items()},
        design=design,
    )
