"""Core simulation modules: calendar, roster, design, testing and racing."""

from gp_manager.core.dates import SimDate, advance_day, day_of_week, week_number
from gp_manager.core.design import (
    ChassisDesign,
    CurrentChassisState,
    DesignResult,
    DesignState,
    HandlingProblem,
    TechAttribute,
    TechComponent,
    TechnologyProject,
)
from gp_manager.core.entities import (
    Chief,
    ChiefRole,
    Circuit,
    Driver,
    GamePhase,
    Manufacturer,
    Regulation,
    Sponsor,
    Team,
    TyreCompound,
)
from gp_manager.core.race import RaceWeekendResult, RandomRaceEngine, Weather
from gp_manager.core.season_end import SeasonEndResult, generate_calendar, process_season_end
from gp_manager.core.standings import (
    ConstructorStanding,
    DriverStanding,
    FinishStatus,
    RaceEntryResult,
    update_standings,
)
from gp_manager.core.state import CalendarEntry, DriverRuntimeState, TeamRuntimeState
from gp_manager.core.testing import TestingResult, TestSession
from gp_manager.core.turn import BlockedResult, TurnEngine, TurnInput, TurnResult

__all__ = [
    "BlockedResult",
    "CalendarEntry",
    "ChassisDesign",
    "Chief",
    "ChiefRole",
    "Circuit",
    "ConstructorStanding",
    "CurrentChassisState",
    "DesignResult",
    "DesignState",
    "Driver",
    "DriverRuntimeState",
    "DriverStanding",
    "FinishStatus",
    "GamePhase",
    "HandlingProblem",
    "Manufacturer",
    "RaceEntryResult",
    "RaceWeekendResult",
    "RandomRaceEngine",
    "Regulation",
    "SeasonEndResult",
    "SimDate",
    "Sponsor",
    "Team",
    "TeamRuntimeState",
    "TechAttribute",
    "TechComponent",
    "TechnologyProject",
    "TestSession",
    "TestingResult",
    "TurnEngine",
    "TurnInput",
    "TurnResult",
    "TyreCompound",
    "Weather",
    "advance_day",
    "day_of_week",
    "generate_calendar",
    "process_season_end",
    "update_standings",
    "week_number",
]
