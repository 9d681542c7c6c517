"""Season-end processing: aging, retirement and the next calendar.

:func:`process_season_end` is pure and only *describes* what happens at
the season boundary; :func:`apply_season_end` writes it into the roster.
Retired drivers and chiefs stay in the roster as free agents.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from numpy.random import Generator

from gp_manager.core.dates import BASE_YEAR, season_to_year
from gp_manager.core.entities import DRIVER_ATTRIBUTE_NAMES, CareerSeason, Chief, Circuit, Driver
from gp_manager.core.standings import (
    ConstructorStanding,
    DriverStanding,
    get_constructor_standing,
    get_driver_standing,
)
from gp_manager.core.state import CalendarEntry, DriverRuntimeState, clamp_percentage

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PEAK_AGE: int = 28
DECLINE_START_AGE: int = 32
DRIVER_RETIREMENT_MIN_AGE: int = 35
DRIVER_RETIREMENT_MAX_AGE: int = 42
CHIEF_RETIREMENT_MIN_AGE: int = 55
CHIEF_RETIREMENT_MAX_AGE: int = 70

IMPROVEMENT_CHANCE: float = 0.3
MAX_IMPROVING_ATTRIBUTES: int = 2
MAX_IMPROVEMENT: int = 2
DECLINE_BASE_CHANCE: float = 0.2
DECLINE_CHANCE_PER_YEAR: float = 0.1
DECLINE_MAX_CHANCE: float = 0.6
MAX_DECLINE: int = 3

CHIEF_CHANGE_CHANCE: float = 0.5
CHIEF_CHANGE_RANGE: int = 2
CHIEF_BASE_AGE: int = 40
CHIEF_AGE_ABILITY_DIVISOR: int = 4

FIRST_RACE_WEEK: int = 10
LAST_RACE_WEEK: int = 48

# Probability of a 0, 1, 2 or 3 week gap after a race.
GAP_WEIGHTS: tuple[float, ...] = (0.30, 0.35, 0.20, 0.15)


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DriverAttributeChange:
    driver_id: str
    attribute: str
    change: int


@dataclass(frozen=True)
class ChiefChange:
    chief_id: str
    ability_change: int


@dataclass
class SeasonEndResult:
    """Everything decided at the end of ``season``.

    Attributes:
        season: Season that just finished.
        attribute_changes: Driver attribute deltas.
        chief_changes: Chief ability deltas, never zero.
        retired_driver_ids: Drivers leaving the sport.
        retired_chief_ids: Chiefs leaving the sport.
        new_calendar: Calendar of the next season.
    """

    season: int
    attribute_changes: list[DriverAttributeChange] = field(default_factory=list)
    chief_changes: list[ChiefChange] = field(default_factory=list)
    retired_driver_ids: list[str] = field(default_factory=list)
    retired_chief_ids: list[str] = field(default_factory=list)
    new_calendar: list[CalendarEntry] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Aging and retirement
# ---------------------------------------------------------------------------


def should_retire(age: int, min_age: int, max_age: int, rng: Generator) -> bool:
    """Retirement roll: never below *min_age*, always from *max_age*,
    linear probability in between."""
    if age < min_age:
        return False
    if age >= max_age:
        return True
    return bool(rng.random() < (age - min_age) / (max_age - min_age))


def estimate_chief_age(chief: Chief) -> int:
    return CHIEF_BASE_AGE + chief.ability // CHIEF_AGE_ABILITY_DIVISOR


def decline_chance(years_over_decline_age: int) -> float:
    return min(DECLINE_MAX_CHANCE, DECLINE_BASE_CHANCE + years_over_decline_age * DECLINE_CHANCE_PER_YEAR)


def driver_attribute_changes(driver: Driver, age: int, rng: Generator) -> list[DriverAttributeChange]:
    """Attribute deltas for one driver.

    Drivers below the peak age improve up to two attributes, drivers at
    or past the decline age lose ground on each attribute independently
    and drivers in between are unchanged.
    """
    if age < PEAK_AGE:
        candidates = [name for name in DRIVER_ATTRIBUTE_NAMES if rng.random() < IMPROVEMENT_CHANCE]
        order = rng.permutation(len(candidates))
        chosen = [candidates[int(i)] for i in order[:MAX_IMPROVING_ATTRIBUTES]]
        return [
            DriverAttributeChange(driver.id, name, int(rng.integers(1, MAX_IMPROVEMENT + 1)))
            for name in chosen
        ]
    if age >= DECLINE_START_AGE:
        chance: float = decline_chance(age - DECLINE_START_AGE)
        return [
            DriverAttributeChange(driver.id, name, -int(rng.integers(1, MAX_DECLINE + 1)))
            for name in DRIVER_ATTRIBUTE_NAMES
            if rng.random() < chance
        ]
    return []


def chief_change(chief: Chief, rng: Generator) -> ChiefChange | None:
    """Ability drift of ``1..2`` either way, with a fixed probability."""
    if rng.random() >= CHIEF_CHANGE_CHANCE:
        return None
    magnitude: int = int(rng.integers(1, CHIEF_CHANGE_RANGE + 1))
    sign: int = 1 if rng.random() < 0.5 else -1
    return ChiefChange(chief.id, sign * magnitude)


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------


def generate_calendar(
    circuits: list[Circuit],
    rng: Generator,
    first_week: int = FIRST_RACE_WEEK,
    last_week: int = LAST_RACE_WEEK,
) -> list[CalendarEntry]:
    """Randomised calendar for the racing window ``[first_week, last_week]``.

    The circuit list is shuffled and truncated to the window length ``W``.
    Each race is followed by a gap of 0-3 weeks drawn from
    :data:`GAP_WEIGHTS`, clamped to the weeks still unassigned; any weeks
    left over go to random races, and the gap sequence is shuffled before
    the weeks are laid out.  Gaps plus races always fill the window
    exactly, so the last race can never fall outside it.

    Raises:
        ValueError: If the window is empty.
    """
    window: int = last_week - first_week + 1
    if window < 1:
        raise ValueError("last_week must be >= first_week.")
    if not circuits:
        return []

    order = rng.permutation(len(circuits))
    chosen: list[Circuit] = [circuits[int(i)] for i in order[:window]]
    count: int = len(chosen)

    budget: int = window - count
    gaps: list[int] = []
    for _ in range(count):
        gap: int = min(int(rng.choice(len(GAP_WEIGHTS), p=GAP_WEIGHTS)), budget)
        gaps.append(gap)
        budget -= gap
    while budget > 0:
        gaps[int(rng.integers(0, count))] += 1
        budget -= 1
    gaps = [gaps[int(i)] for i in rng.permutation(count)]

    calendar: list[CalendarEntry] = []
    week: int = first_week
    for index, circuit in enumerate(chosen):
        calendar.append(CalendarEntry(race_number=index + 1, circuit_id=circuit.id, week_number=week))
        week += 1 + gaps[index]
    return calendar


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def process_season_end(
    drivers: list[Driver],
    chiefs: list[Chief],
    season: int,
    circuits: list[Circuit],
    rng: Generator,
    base_year: int = BASE_YEAR,
    first_week: int = FIRST_RACE_WEEK,
    last_week: int = LAST_RACE_WEEK,
) -> SeasonEndResult:
    """Decide aging, retirements and the next calendar for *season*.

    Args:
        drivers: Every driver in the roster, free agents included.
        chiefs: Every chief in the roster.
        season: Season that has just finished.
        circuits: Circuits available for the next calendar.
        rng: Random source.
        base_year: Calendar year of season 1.
        first_week: First week of the racing window.
        last_week: Last week of the racing window.

    Returns:
        A :class:`SeasonEndResult`; nothing is modified.
    """
    year: int = season_to_year(season, base_year)
    result = SeasonEndResult(season=season)

    for driver in drivers:
        age: int = driver.age_in(year)
        result.attribute_changes.extend(driver_attribute_changes(driver, age, rng))
        if driver.team_id is not None and should_retire(
            age, DRIVER_RETIREMENT_MIN_AGE, DRIVER_RETIREMENT_MAX_AGE, rng
        ):
            result.retired_driver_ids.append(driver.id)

    for chief in chiefs:
        change = chief_change(chief, rng)
        if change is not None:
            result.chief_changes.append(change)
        if chief.team_id is not None and should_retire(
            estimate_chief_age(chief), CHIEF_RETIREMENT_MIN_AGE, CHIEF_RETIREMENT_MAX_AGE, rng
        ):
            result.retired_chief_ids.append(chief.id)

    result.new_calendar = generate_calendar(circuits, rng, first_week, last_week)
    logger.info(
        "season %d ended: %d driver and %d chief retirement(s), %d races next season",
        season,
        len(result.retired_driver_ids),
        len(result.retired_chief_ids),
        len(result.new_calendar),
    )
    return result


def archive_season(
    drivers: list[Driver],
    driver_standings: list[DriverStanding],
    constructor_standings: list[ConstructorStanding],
    season: int,
) -> None:
    """Append the finished season to each contracted driver's career."""
    for driver in drivers:
        if driver.team_id is None:
            continue
        driver.career_history.append(
            CareerSeason(
                season=season,
                team_id=driver.team_id,
                points=get_driver_standing(driver_standings, driver.id).points,
                team_points=get_constructor_standing(constructor_standings, driver.team_id).points,
            )
        )


def apply_season_end(
    result: SeasonEndResult,
    drivers: list[Driver],
    chiefs: list[Chief],
    driver_states: dict[str, DriverRuntimeState],
) -> None:
    """Write *result* into the roster and reset every driver's state."""
    by_driver = {d.id: d for d in drivers}
    by_chief = {c.id: c for c in chiefs}

    for change in result.attribute_changes:
        driver = by_driver.get(change.driver_id)
        if driver is None:
            continue
        current: int = getattr(driver.attributes, change.attribute)
        setattr(driver.attributes, change.attribute, int(clamp_percentage(current + change.change)))

    for change in result.chief_changes:
        chief = by_chief.get(change.chief_id)
        if chief is not None:
            chief.ability = int(clamp_percentage(chief.ability + change.ability_change))

    for driver_id in result.retired_driver_ids:
        if driver_id in by_driver:
            by_driver[driver_id].team_id = None
    for chief_id in result.retired_chief_ids:
        if chief_id in by_chief:
            by_chief[chief_id].team_id = None

    for state in driver_states.values():
        state.reset_for_season()
