"""Swappable simulation engines.

Every engine sits behind a small Protocol so an implementation can be
replaced at runtime (for tests, or for a fuller model later) without
touching the tick pipeline.  The defaults here are placeholders: a
rating-plus-noise race, a dry/wet weather roll, a rating-based
performance model, a financial engine that changes nothing, a market
that moves no salaries and a regulation lookup over the content files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol

from numpy.random import Generator

from gp_manager.core import design, testing
from gp_manager.core.dates import SimDate
from gp_manager.core.entities import Chief, Driver, Regulation, Team
from gp_manager.core.race import Entrant, RaceWeekendResult, RandomRaceEngine, Weather
from gp_manager.core.state import (
    CalendarEntry,
    DriverRuntimeState,
    TeamRuntimeState,
    TeamStateChange,
)
from gp_manager.core.turn import TurnEngine
from gp_manager.negotiation.contracts import ActiveContract
from gp_manager.negotiation.engine import NegotiationEngine

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

WET_RACE_CHANCE: float = 0.2

DRIVER_WEIGHT: float = 0.5
TECHNOLOGY_WEIGHT: float = 0.3
HANDLING_WEIGHT: float = 0.2
FITNESS_FLOOR: float = 0.9  # rating multiplier of a driver at zero fitness
ENGINE_PENALTY: float = 3.0  # rating lost when over the power-unit allowance


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class RaceEngine(Protocol):
    def simulate(
        self,
        entry: CalendarEntry,
        entrants: list[Entrant],
        weather: Weather,
        date: SimDate,
        rng: Generator,
    ) -> RaceWeekendResult: ...


class WeatherEngine(Protocol):
    def roll(self, circuit_id: str, date: SimDate, rng: Generator) -> Weather: ...


class PerformanceEngine(Protocol):
    def entrants(
        self,
        teams: Iterable[Team],
        drivers: Iterable[Driver],
        driver_states: dict[str, DriverRuntimeState],
        team_states: dict[str, TeamRuntimeState],
        weather: Weather,
        regulation: Regulation,
    ) -> list[Entrant]: ...


class FinancialEngine(Protocol):
    def process_day(
        self,
        teams: Iterable[Team],
        team_states: dict[str, TeamRuntimeState],
        contracts: list[ActiveContract],
        date: SimDate,
    ) -> list[TeamStateChange]: ...


class RegulationEngine(Protocol):
    def regulations_for(self, season: int) -> Regulation: ...


class MarketEngine(Protocol):
    def process_day(
        self, drivers: Iterable[Driver], chiefs: Iterable[Chief], date: SimDate
    ) -> dict[str, int]: ...


# ---------------------------------------------------------------------------
# Placeholder implementations
# ---------------------------------------------------------------------------


class RandomWeatherEngine:
    """Wet with a fixed probability, dry otherwise."""

    def __init__(self, wet_chance: float = WET_RACE_CHANCE) -> None:
        if not 0.0 <= wet_chance <= 1.0:
            raise ValueError("wet_chance must be between 0.0 and 1.0.")
        self.wet_chance: float = wet_chance

    def roll(self, circuit_id: str, date: SimDate, rng: Generator) -> Weather:
        return Weather.WET if rng.random() < self.wet_chance else Weather.DRY


class RatingPerformanceEngine:
    """Builds race entrants from driver skill and the state of the car.

    A driver's rating is a weighted blend of

    * the attribute average (wet-weather skill counts double in the wet),
    * the mean performance level of the team's technology components,
    * the effective handling of the current chassis,

    scaled down by low fitness.  Reliability is the mean component
    reliability level.  Injured or banned drivers and free agents are
    not entered.
    """

    def entrants(
        self,
        teams: Iterable[Team],
        drivers: Iterable[Driver],
        driver_states: dict[str, DriverRuntimeState],
        team_states: dict[str, TeamRuntimeState],
        weather: Weather,
        regulation: Regulation,
    ) -> list[Entrant]:
        team_ids = {team.id for team in teams}
        entrants: list[Entrant] = []
        for driver in drivers:
            if driver.team_id is None or driver.team_id not in team_ids:
                continue
            state = driver_states.get(driver.id)
            team_state = team_states.get(driver.team_id)
            if state is None or team_state is None or not state.available:
                continue
            entrants.append(
                Entrant(
                    driver_id=driver.id,
                    team_id=driver.team_id,
                    rating=driver_rating(driver, state, team_state, weather, regulation),
                    reliability=car_reliability(team_state),
                )
            )
        return entrants


def effective_handling(team_state: TeamRuntimeState) -> int:
    chassis = team_state.design.current_chassis
    return min(100, chassis.true_handling + chassis.handling_gain)


def car_reliability(team_state: TeamRuntimeState) -> float:
    levels = team_state.design.technology_levels.values()
    if not levels:
        return 0.5
    return sum(level.reliability for level in levels) / (100.0 * len(levels))


def driver_rating(
    driver: Driver,
    state: DriverRuntimeState,
    team_state: TeamRuntimeState,
    weather: Weather,
    regulation: Regulation,
) -> float:
    """Single pace figure used by the race engine; higher is faster."""
    skill: float = driver.attributes.average()
    if weather == Weather.WET:
        skill = (skill + driver.attributes.wet_weather) / 2.0

    levels = list(team_state.design.technology_levels.values())
    technology: float = sum(level.performance for level in levels) / len(levels) if levels else 0.0

    rating: float = (
        DRIVER_WEIGHT * skill
        + TECHNOLOGY_WEIGHT * technology
        + HANDLING_WEIGHT * effective_handling(team_state)
    )
    rating *= FITNESS_FLOOR + (1.0 - FITNESS_FLOOR) * state.fitness / 100.0
    if state.engine_units_used > regulation.max_engine_units:
        rating -= ENGINE_PENALTY
    return rating


def record_race_usage(state: DriverRuntimeState, regulation: Regulation) -> None:
    """Count one race on the driver's gearbox; a worn-out gearbox is
    replaced together with the power unit."""
    if state.engine_units_used == 0:
        state.engine_units_used = 1
    state.gearbox_race_count += 1
    if state.gearbox_race_count > regulation.gearbox_race_life:
        state.gearbox_race_count = 1
        state.engine_units_used += 1


class NullFinancialEngine:
    """Produces no financial changes; daily running costs live in the
    turn engine."""

    def process_day(
        self,
        teams: Iterable[Team],
        team_states: dict[str, TeamRuntimeState],
        contracts: list[ActiveContract],
        date: SimDate,
    ) -> list[TeamStateChange]:
        return []


class NullMarketEngine:
    """Leaves every salary where it is."""

    def process_day(
        self, drivers: Iterable[Driver], chiefs: Iterable[Chief], date: SimDate
    ) -> dict[str, int]:
        return {}


class ContentRegulationEngine:
    """Looks regulations up by season.

    A season without its own entry inherits the most recent earlier one;
    a season before every entry gets the default rule set.
    """

    def __init__(self, regulations: Iterable[Regulation] = ()) -> None:
        self._by_season: dict[int, Regulation] = {r.season: r for r in regulations}

    def regulations_for(self, season: int) -> Regulation:
        if season in self._by_season:
            return self._by_season[season]
        earlier = [s for s in self._by_season if s < season]
        if earlier:
            return self._by_season[max(earlier)]
        return Regulation(season=season)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass
class EngineRegistry:
    """The set of engines used by one game.

    Attributes:
        race: Race outcome generator.
        weather: Race-day weather roll.
        performance: Entrant ratings.
        financial: Extra daily financial changes.
        regulation: Per-season technical rules.
        design: Design-office day function.
        testing: Test-session day function.
        negotiation: Counterparty evaluation.
        market: Salary moves of drivers and chiefs, keyed by person id.
    """

    race: RaceEngine = field(default_factory=RandomRaceEngine)
    weather: WeatherEngine = field(default_factory=RandomWeatherEngine)
    performance: PerformanceEngine = field(default_factory=RatingPerformanceEngine)
    financial: FinancialEngine = field(default_factory=NullFinancialEngine)
    regulation: RegulationEngine = field(default_factory=ContentRegulationEngine)
    design: Callable[..., design.DesignResult] = design.process_day
    testing: Callable[..., testing.TestingResult] = testing.process_day
    negotiation: NegotiationEngine = field(default_factory=NegotiationEngine)
    market: MarketEngine = field(default_factory=NullMarketEngine)

    def replace(self, name: str, implementation: Any) -> None:
        """Swap the engine called *name* for *implementation*.

        Raises:
            KeyError: If *name* is not an engine slot.
        """
        if name not in self.__dataclass_fields__:
            raise KeyError(f"unknown engine: {name!r}")
        setattr(self, name, implementation)
        logger.debug("engine %s replaced by %s", name, type(implementation).__name__)

    @property
    def turn(self) -> TurnEngine:
        """Turn engine wired to the registered design and testing days."""
        return TurnEngine(design_day=self.design, testing_day=self.testing)
