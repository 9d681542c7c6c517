"""Turn engine: one simulated day.

:meth:`TurnEngine.process_day` advances the calendar by exactly one day,
works out the phase of the new date, generates driver and team drift,
runs the design and testing engines once per team and raises the
auto-stop flag on the Friday of a race week.  It never mutates its
input; the returned :class:`TurnResult` is folded into the game state
by the ``apply_*`` functions of :mod:`gp_manager.core.state`.

Phase boundaries (by week number of the date):

* week <= 9  -- PreSeason
* week >= 50 -- PostSeason (time cannot advance)
* otherwise  -- BetweenRaces, or RaceWeekend once the player has entered
  a pending race week explicitly
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from numpy.random import Generator

from gp_manager.core import design, testing
from gp_manager.core.dates import SimDate, advance_day, is_friday, week_number
from gp_manager.core.entities import (
    Chief,
    ChiefRole,
    Department,
    Driver,
    GamePhase,
    Team,
)
from gp_manager.core.state import (
    CalendarEntry,
    DriverRuntimeState,
    DriverStateChange,
    TeamRuntimeState,
    TeamStateChange,
    pending_race_in_week,
)
from gp_manager.negotiation.models import StakeholderType

if TYPE_CHECKING:
    from gp_manager.negotiation.contracts import ActiveContract

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PRE_SEASON_LAST_WEEK: int = 9
POST_SEASON_FIRST_WEEK: int = 50

FATIGUE_THRESHOLD: int = 80
FITNESS_DROP: int = 1
FATIGUE_GAIN_MIN: int = 1
FATIGUE_GAIN_MAX: int = 3
MORALE_DRIFT: int = 2
WEEKLY_SALARY_RATE: float = 0.001
TEAM_FLUCTUATION: int = 1

STOP_RACE_WEEKEND: str = "race-weekend"
BLOCKED_POST_SEASON: str = "post-season"
BLOCKED_NO_RACE: str = "no-race"


@dataclass(frozen=True)
class BlockedResult:
    """Progression refused; state must be left exactly as it was."""

    reason: str
    message: str


# ---------------------------------------------------------------------------
# Input / output
# ---------------------------------------------------------------------------


@dataclass
class TurnInput:
    """Everything the turn engine reads for one day."""

    current_date: SimDate
    phase: GamePhase
    calendar: list[CalendarEntry]
    drivers: list[Driver]
    teams: list[Team]
    chiefs: list[Chief]
    driver_states: dict[str, DriverRuntimeState]
    team_states: dict[str, TeamRuntimeState]
    rng: Generator
    contracts: list[ActiveContract] = field(default_factory=list)


@dataclass
class TurnResult:
    """Outcome of one day.

    Attributes:
        date: Date after processing; equal to the input date when blocked.
        phase: Phase for ``date``.
        driver_changes: Per-driver deltas.
        team_changes: Per-team deltas.
        design_results: Design engine output keyed by team id.
        testing_results: Testing engine output keyed by team id.
        race_entry: Pending race scheduled in the week of ``date``.
        should_stop_simulation: Whether the scheduler must pause.
        stop_reason: Why it must pause.
        blocked: Set when time could not advance.
    """

    date: SimDate
    phase: GamePhase
    driver_changes: list[DriverStateChange] = field(default_factory=list)
    team_changes: list[TeamStateChange] = field(default_factory=list)
    design_results: dict[str, design.DesignResult] = field(default_factory=dict)
    testing_results: dict[str, testing.TestingResult] = field(default_factory=dict)
    race_entry: CalendarEntry | None = None
    should_stop_simulation: bool = False
    stop_reason: str | None = None
    blocked: BlockedResult | None = None


# ---------------------------------------------------------------------------
# Phase rules
# ---------------------------------------------------------------------------


def determine_phase(
    date: SimDate, calendar: list[CalendarEntry], current_phase: GamePhase
) -> tuple[GamePhase, CalendarEntry | None]:
    """Phase of *date* and the pending race of its week, if any.

    A race week is reported as BetweenRaces unless the player has already
    promoted it to RaceWeekend, which is kept while the race is pending.
    """
    week: int = week_number(date)
    if week <= PRE_SEASON_LAST_WEEK:
        return GamePhase.PRE_SEASON, None
    if week >= POST_SEASON_FIRST_WEEK:
        return GamePhase.POST_SEASON, None
    entry = pending_race_in_week(calendar, week)
    if entry is not None and current_phase == GamePhase.RACE_WEEKEND:
        return GamePhase.RACE_WEEKEND, entry
    return GamePhase.BETWEEN_RACES, entry


def is_post_season(date: SimDate, phase: GamePhase) -> bool:
    return phase == GamePhase.POST_SEASON or week_number(date) >= POST_SEASON_FIRST_WEEK


def find_chief(chiefs: list[Chief], team_id: str, role: ChiefRole) -> Chief | None:
    for chief in chiefs:
        if chief.team_id == team_id and chief.role == role:
            return chief
    return None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class TurnEngine:
    """Daily orchestrator for drift, design and testing.

    The design and testing day functions are injected so that either can
    be replaced without touching the orchestration.
    """

    def __init__(
        self,
        design_day: Callable[..., design.DesignResult] = design.process_day,
        testing_day: Callable[..., testing.TestingResult] = testing.process_day,
    ) -> None:
        self.design_day = design_day
        self.testing_day = testing_day

    def process_day(self, turn: TurnInput) -> TurnResult:
        """Process one simulated day.

        Returns:
            A blocked result (date unchanged, no changes) in the
            post-season; otherwise the deltas for the new day.
        """
        if is_post_season(turn.current_date, turn.phase):
            return TurnResult(
                date=turn.current_date,
                phase=GamePhase.POST_SEASON,
                blocked=BlockedResult(
                    reason=BLOCKED_POST_SEASON,
                    message="The season is over; start the next season to continue.",
                ),
            )

        new_date: SimDate = advance_day(turn.current_date)
        phase, race_entry = determine_phase(new_date, turn.calendar, turn.phase)
        new_week: bool = week_number(new_date) != week_number(turn.current_date)
        race_week_ended: bool = new_week and any(
            e.completed and e.week_number == week_number(turn.current_date) for e in turn.calendar
        )

        result = TurnResult(date=new_date, phase=phase, race_entry=race_entry)
        result.driver_changes = self._driver_changes(turn, new_week, race_week_ended)
        result.team_changes = self._team_changes(turn)

        for team in turn.teams:
            state = turn.team_states.get(team.id)
            if state is None:
                continue
            result.design_results[team.id] = self.design_day(
                team.id,
                state.design,
                state.staff_counts.get(Department.DESIGN, {}),
                find_chief(turn.chiefs, team.id, ChiefRole.DESIGNER),
                team.facilities,
                new_date,
                turn.rng,
            )
            result.testing_results[team.id] = self.testing_day(
                team.id,
                state.test_session,
                state.staff_counts.get(Department.MECHANICS, {}),
                find_chief(turn.chiefs, team.id, ChiefRole.MECHANIC),
                team.facilities,
                state.design.current_chassis,
                turn.rng,
            )

        if race_entry is not None and is_friday(new_date):
            result.should_stop_simulation = True
            result.stop_reason = STOP_RACE_WEEKEND
            logger.info("race weekend %d begins on %s", race_entry.race_number, new_date)
        return result

    # -- drift ---------------------------------------------------------------

    def _driver_changes(
        self, turn: TurnInput, new_week: bool, race_week_ended: bool
    ) -> list[DriverStateChange]:
        changes: list[DriverStateChange] = []
        for driver in turn.drivers:
            if driver.team_id is None:
                continue
            state = turn.driver_states.get(driver.id)
            if state is None:
                continue
            change = DriverStateChange(
                driver_id=driver.id,
                fatigue_delta=int(turn.rng.integers(FATIGUE_GAIN_MIN, FATIGUE_GAIN_MAX + 1)),
                morale_delta=int(turn.rng.integers(-MORALE_DRIFT, MORALE_DRIFT + 1)),
            )
            if state.fatigue > FATIGUE_THRESHOLD:
                change.fitness_delta = -FITNESS_DROP
            if new_week and state.injury_weeks_remaining > 0:
                change.injury_weeks_delta = -1
            if race_week_ended and state.ban_races_remaining > 0:
                change.ban_races_delta = -1
            changes.append(change)
        return changes

    def _team_changes(self, turn: TurnInput) -> list[TeamStateChange]:
        changes: list[TeamStateChange] = []
        for team in turn.teams:
            state = turn.team_states.get(team.id)
            if state is None:
                continue
            change = TeamStateChange(
                team_id=team.id,
                budget_delta=-round(team.budget * WEEKLY_SALARY_RATE),
            )
            for department in Department:
                change.morale_deltas[department] = int(
                    turn.rng.integers(-TEAM_FLUCTUATION, TEAM_FLUCTUATION + 1)
                )
            for sponsor_id in _sponsor_ids(team.id, state, turn.contracts):
                change.sponsor_satisfaction_deltas[sponsor_id] = int(
                    turn.rng.integers(-TEAM_FLUCTUATION, TEAM_FLUCTUATION + 1)
                )
            changes.append(change)
        return changes


def _sponsor_ids(
    team_id: str, state: TeamRuntimeState, contracts: list[ActiveContract]
) -> list[str]:
    ids: list[str] = list(state.sponsor_satisfaction)
    for contract in contracts:
        if (
            contract.stakeholder_type == StakeholderType.SPONSOR
            and contract.team_id == team_id
            and contract.counterparty_id not in ids
        ):
            ids.append(contract.counterparty_id)
    return ids


def process_day(turn: TurnInput) -> TurnResult:
    """Process one day with the default design and testing engines."""
    return TurnEngine().process_day(turn)
