"""Roster and content entities for the management simulation.

Content that never changes during play (circuits, sponsors, manufacturers)
is modelled as frozen dataclasses.  Roster entities (drivers, chiefs,
teams) are mutable because the season-end processor changes attributes,
ability, team membership and budgets between seasons; they are never
deleted, a retirement simply clears ``team_id``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class GamePhase(str, Enum):
    PRE_SEASON = "PreSeason"
    BETWEEN_RACES = "BetweenRaces"
    RACE_WEEKEND = "RaceWeekend"
    POST_SEASON = "PostSeason"


class Department(str, Enum):
    COMMERCIAL = "commercial"
    DESIGN = "design"
    MECHANICS = "mechanics"
    ENGINEERING = "engineering"


class StaffQuality(str, Enum):
    TRAINEE = "trainee"
    AVERAGE = "average"
    GOOD = "good"
    VERY_GOOD = "very_good"
    EXCELLENT = "excellent"


class ChiefRole(str, Enum):
    DESIGNER = "designer"
    MECHANIC = "mechanic"
    COMMERCIAL = "commercial"
    ENGINEER = "engineer"


class FacilityType(str, Enum):
    CAD = "cad"
    CAM = "cam"
    SUPERCOMPUTER = "supercomputer"
    WORKSHOP = "workshop"
    WIND_TUNNEL = "wind_tunnel"
    TEST_RIG = "test_rig"


class SponsorTier(str, Enum):
    TITLE = "title"
    MAJOR = "major"
    MINOR = "minor"


# ---------------------------------------------------------------------------
# Drivers and chiefs
# ---------------------------------------------------------------------------

DRIVER_ATTRIBUTE_NAMES: tuple[str, ...] = (
    "pace",
    "consistency",
    "focus",
    "overtaking",
    "wet_weather",
    "smoothness",
    "defending",
)


@dataclass
class DriverAttributes:
    """Driver skill ratings, each on a 0-100 scale."""

    pace: int = 50
    consistency: int = 50
    focus: int = 50
    overtaking: int = 50
    wet_weather: int = 50
    smoothness: int = 50
    defending: int = 50

    def __post_init__(self) -> None:
        for name in DRIVER_ATTRIBUTE_NAMES:
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be in [0, 100], got {value}")

    def average(self) -> float:
        return sum(getattr(self, n) for n in DRIVER_ATTRIBUTE_NAMES) / len(
            DRIVER_ATTRIBUTE_NAMES
        )


@dataclass
class CareerSeason:
    """One archived season of a driver's career."""

    season: int
    team_id: str | None
    points: float
    team_points: float


@dataclass
class Driver:
    """A racing driver.

    Attributes:
        id: Unique identifier.
        name: Display name.
        team_id: Current team, or ``None`` for a free agent.
        birth_year: Calendar year of birth; age is derived from it.
        attributes: Skill ratings.
        reputation: Public standing, 0-100.
        salary: Current annual salary.
        career_history: Archived seasons, most recent last.
    """

    id: str
    name: str
    team_id: str | None
    birth_year: int
    attributes: DriverAttributes = field(default_factory=DriverAttributes)
    reputation: int = 50
    salary: int = 0
    career_history: list[CareerSeason] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("driver id must not be empty.")

    def age_in(self, year: int) -> int:
        return year - self.birth_year


@dataclass
class Chief:
    """A department chief.  Chiefs carry no birth date; see
    :func:`gp_manager.core.season_end.estimate_chief_age`."""

    id: str
    name: str
    role: ChiefRole
    ability: int
    team_id: str | None = None
    salary: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.ability <= 100:
            raise ValueError(f"ability must be in [0, 100], got {self.ability}")


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

StaffCounts = dict[Department, dict[StaffQuality, int]]


@dataclass
class Team:
    """A constructor entered in the championship.

    Attributes:
        id: Unique identifier.
        name: Display name.
        budget: Cash available, in dollars.
        sponsor_ids: Sponsors attached at game start.
        manufacturer_id: Engine supplier at game start.
        facilities: Facility type to quality level (1-5).
        staff: Initial staff counts per department and quality tier.
    """

    id: str
    name: str
    budget: int
    sponsor_ids: list[str] = field(default_factory=list)
    manufacturer_id: str | None = None
    facilities: dict[FacilityType, int] = field(default_factory=dict)
    staff: StaffCounts = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("team id must not be empty.")
        for facility, level in self.facilities.items():
            if level < 0:
                raise ValueError(f"{facility.value} level must be >= 0, got {level}")


# ---------------------------------------------------------------------------
# Static content
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Circuit:
    id: str
    name: str
    country: str
    laps: int = 57


@dataclass(frozen=True)
class Sponsor:
    """A commercial partner.

    Attributes:
        payment: Base annual payment the sponsor is prepared to make.
        min_reputation: Team reputation (0-100) the sponsor expects.
        rival_group: Sponsors sharing a group never sponsor the same team.
    """

    id: str
    name: str
    tier: SponsorTier
    payment: int
    min_reputation: int
    rival_group: str | None = None

    def __post_init__(self) -> None:
        if self.payment < 0:
            raise ValueError("payment must be >= 0.")
        if not 1 <= self.min_reputation <= 100:
            raise ValueError("min_reputation must be in [1, 100].")


@dataclass(frozen=True)
class ManufacturerCosts:
    base_engine: int
    upgrade: int
    customisation_point: int
    optimisation: int


@dataclass(frozen=True)
class Manufacturer:
    id: str
    name: str
    costs: ManufacturerCosts


@dataclass(frozen=True)
class TyreCompound:
    id: str
    name: str
    pace: float
    durability: float


@dataclass(frozen=True)
class Regulation:
    """Technical rules in force for one season.

    Attributes:
        season: Season the rules apply to.
        max_engine_units: Power units a driver may use before a penalty.
        gearbox_race_life: Races a gearbox must last.
        description: Short headline of the rule changes.
    """

    season: int
    max_engine_units: int = 4
    gearbox_race_life: int = 6
    description: str = ""

    def __post_init__(self) -> None:
        if self.max_engine_units < 1:
            raise ValueError("max_engine_units must be >= 1.")
        if self.gearbox_race_life < 1:
            raise ValueError("gearbox_race_life must be >= 1.")
