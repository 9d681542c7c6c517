"""Work-unit based design engine.

Every day each team's design department converts staff ability into
*work units*::

    work = staff_ability_total * (allocation / 100)
           * facility_multiplier * chief_bonus * U(0.9, 1.1)

floored to a minimum of one unit whenever the allocation is positive.
Work is fed into three independent accumulators:

* the next-year chassis, built through four ordered stages;
* technology projects, which roll for a breakthrough while in discovery
  and then accumulate a fixed requirement while in development;
* the current-year chassis, whose handling problems (discovered by the
  testing engine) each accumulate their own solution progress.

The engine is pure: :func:`process_day` works on a deep copy of the
design state and returns it inside a :class:`DesignResult`.  Partial
progress is carried forward exactly; nothing is reset between ticks.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum

from numpy.random import Generator

from gp_manager.core.dates import SimDate
from gp_manager.core.entities import Chief, FacilityType, StaffQuality

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STAFF_ABILITY_BY_QUALITY: dict[StaffQuality, int] = {
    StaffQuality.TRAINEE: 20,
    StaffQuality.AVERAGE: 40,
    StaffQuality.GOOD: 60,
    StaffQuality.VERY_GOOD: 80,
    StaffQuality.EXCELLENT: 100,
}

DESIGN_FACILITY_BONUS: dict[FacilityType, float] = {
    FacilityType.CAD: 0.05,
    FacilityType.CAM: 0.05,
    FacilityType.SUPERCOMPUTER: 0.03,
    FacilityType.WORKSHOP: 0.02,
}

VARIANCE_MIN: float = 0.9
VARIANCE_MAX: float = 1.1
MIN_WORK_UNITS: int = 1

WORK_UNITS_PER_STAGE_POINT: int = 500
MAX_STAGE_PROGRESS: int = 10
CHIEF_DESIGNER_MAX_EFFICIENCY_BONUS: int = 20

BREAKTHROUGH_WORK_SCALE: float = 4000.0  # work units for a 100% daily chance
MAX_BREAKTHROUGH_CHANCE: float = 0.25
MIN_PAYOFF: int = 1
MAX_PAYOFF: int = 5
WORK_UNITS_PER_PAYOFF_POINT: int = 1000
MAX_TECH_LEVEL: int = 100
INITIAL_TECH_LEVEL: int = 35

WORK_UNITS_PER_SOLUTION_POINT: int = 500
MAX_SOLUTION_PROGRESS: int = 10
SOLUTION_HANDLING_GAIN: int = 3  # handling points recovered per solved problem


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ChassisStage(str, Enum):
    DESIGN = "design"
    CFD = "cfd"
    MODEL = "model"
    WIND_TUNNEL = "wind_tunnel"


CHASSIS_STAGE_ORDER: tuple[ChassisStage, ...] = (
    ChassisStage.DESIGN,
    ChassisStage.CFD,
    ChassisStage.MODEL,
    ChassisStage.WIND_TUNNEL,
)

STAGE_REQUIRED_FACILITY: dict[ChassisStage, FacilityType | None] = {
    ChassisStage.DESIGN: None,
    ChassisStage.CFD: FacilityType.SUPERCOMPUTER,
    ChassisStage.MODEL: FacilityType.WORKSHOP,
    ChassisStage.WIND_TUNNEL: FacilityType.WIND_TUNNEL,
}


class TechComponent(str, Enum):
    AERODYNAMICS = "aerodynamics"
    BRAKES = "brakes"
    COOLING = "cooling"
    ELECTRONICS = "electronics"
    FUEL_SYSTEM = "fuel_system"
    GEARBOX = "gearbox"
    SUSPENSION = "suspension"


class TechAttribute(str, Enum):
    PERFORMANCE = "performance"
    RELIABILITY = "reliability"


class ProjectPhase(str, Enum):
    DISCOVERY = "discovery"
    DEVELOPMENT = "development"


class HandlingProblem(str, Enum):
    SLOW_CORNER_UNDERSTEER = "slow_corner_understeer"
    HIGH_SPEED_OVERSTEER = "high_speed_oversteer"
    POOR_TRACTION = "poor_traction"
    BRAKE_INSTABILITY = "brake_instability"
    PORPOISING = "porpoising"
    KERB_SENSITIVITY = "kerb_sensitivity"
    TYRE_WARM_UP = "tyre_warm_up"
    EXCESSIVE_DRAG = "excessive_drag"


class MilestoneKind(str, Enum):
    STAGE_COMPLETE = "stage_complete"
    CHASSIS_COMPLETE = "chassis_complete"
    BREAKTHROUGH = "breakthrough"
    PROJECT_COMPLETE = "project_complete"
    SOLUTION_COMPLETE = "solution_complete"


# ---------------------------------------------------------------------------
# State containers
# ---------------------------------------------------------------------------


@dataclass
class StageProgress:
    stage: ChassisStage
    progress: int = 0
    completed: bool = False


@dataclass
class ChassisDesign:
    """Next-year chassis under development.

    Attributes:
        target_season: Season the chassis will race in.
        stages: Ordered stage list, Design first.
        accumulated_work_units: Work not yet converted into stage points.
        efficiency_rating: Derived 0-100 rating, refreshed every tick.
        allocation: Percentage of the design department assigned.
    """

    target_season: int
    stages: list[StageProgress] = field(
        default_factory=lambda: [StageProgress(stage) for stage in CHASSIS_STAGE_ORDER]
    )
    accumulated_work_units: int = 0
    efficiency_rating: int = 0
    allocation: int = 0

    def current_stage(self) -> StageProgress | None:
        for stage in self.stages:
            if not stage.completed:
                return stage
        return None

    @property
    def is_complete(self) -> bool:
        return self.current_stage() is None

    def total_progress(self) -> int:
        return sum(stage.progress for stage in self.stages)


@dataclass
class TechnologyLevel:
    performance: int = INITIAL_TECH_LEVEL
    reliability: int = INITIAL_TECH_LEVEL


@dataclass
class TechnologyProject:
    """An improvement project on one attribute of one component.

    ``work_units_required`` and ``payoff`` are only known once the
    discovery phase rolls a breakthrough.
    """

    component: TechComponent
    attribute: TechAttribute
    allocation: int
    phase: ProjectPhase = ProjectPhase.DISCOVERY
    work_units_required: int = 0
    work_units_completed: int = 0
    payoff: int = 0


@dataclass
class HandlingProblemState:
    problem: HandlingProblem
    discovered: bool = False
    accumulated_work_units: int = 0
    solution_progress: int = 0
    solved: bool = False


@dataclass
class CurrentChassisState:
    """Handling knowledge about the chassis currently racing.

    Attributes:
        true_handling: Hidden handling percentage rolled at season start.
        handling_revealed: ``None`` until the first completed test.
        problems: Problems present in this chassis, hidden until discovered.
        active_problem: Problem the design office is currently solving.
        allocation: Percentage of the design department assigned.
        handling_gain: Handling recovered by solved problems.
    """

    true_handling: int = 60
    handling_revealed: int | None = None
    problems: list[HandlingProblemState] = field(default_factory=list)
    active_problem: HandlingProblem | None = None
    allocation: int = 0
    handling_gain: int = 0

    def problem_state(self, problem: HandlingProblem) -> HandlingProblemState | None:
        for state in self.problems:
            if state.problem == problem:
                return state
        return None

    def undiscovered(self) -> list[HandlingProblemState]:
        return [p for p in self.problems if not p.discovered]


@dataclass
class DesignState:
    next_year_chassis: ChassisDesign | None = None
    technology_levels: dict[TechComponent, TechnologyLevel] = field(
        default_factory=lambda: {c: TechnologyLevel() for c in TechComponent}
    )
    projects: list[TechnologyProject] = field(default_factory=list)
    current_chassis: CurrentChassisState = field(default_factory=CurrentChassisState)

    def allocated_percent(self) -> int:
        total: int = self.current_chassis.allocation
        if self.next_year_chassis is not None:
            total += self.next_year_chassis.allocation
        return total + sum(p.allocation for p in self.projects)


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DesignMilestone:
    team_id: str
    kind: MilestoneKind
    description: str
    date: SimDate


@dataclass(frozen=True)
class ChassisBlock:
    """A chassis stage that cannot progress for lack of a facility."""

    stage: ChassisStage
    missing_facility: FacilityType


@dataclass
class DesignResult:
    team_id: str
    design_state: DesignState
    chassis_work_units: int = 0
    technology_work_units: int = 0
    solution_work_units: int = 0
    chassis_block: ChassisBlock | None = None
    milestones: list[DesignMilestone] = field(default_factory=list)
    solved_problems: list[HandlingProblem] = field(default_factory=list)
    completed_projects: list[TechnologyProject] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Work units
# ---------------------------------------------------------------------------


def staff_ability_total(staff: dict[StaffQuality, int]) -> int:
    """Sum of ability over every staff member of one department."""
    return sum(STAFF_ABILITY_BY_QUALITY[quality] * count for quality, count in staff.items())


def facility_multiplier(
    facilities: dict[FacilityType, int],
    bonuses: dict[FacilityType, float] = DESIGN_FACILITY_BONUS,
) -> float:
    """``1 + sum(bonus * level)`` over the facility types in *bonuses*."""
    return 1.0 + sum(bonus * facilities.get(kind, 0) for kind, bonus in bonuses.items())


def calculate_work_units(
    staff: dict[StaffQuality, int],
    allocation: int,
    multiplier: float,
    chief_ability: int | None,
    rng: Generator,
) -> int:
    """Daily work units for one accumulator.

    Args:
        staff: Staff counts by quality tier for the working department.
        allocation: Percentage of the department assigned (0-100).
        multiplier: Facility multiplier from :func:`facility_multiplier`.
        chief_ability: Ability of the department chief, ``None`` if vacant.
        rng: Random source for the daily variance.

    Returns:
        Whole work units; 0 when nothing is allocated, otherwise at
        least :data:`MIN_WORK_UNITS`.
    """
    if allocation <= 0:
        return 0
    chief_bonus: float = 1.0 + chief_ability / 100.0 if chief_ability is not None else 1.0
    variance: float = float(rng.uniform(VARIANCE_MIN, VARIANCE_MAX))
    raw: float = (
        staff_ability_total(staff) * (allocation / 100.0) * multiplier * chief_bonus * variance
    )
    return max(MIN_WORK_UNITS, round(raw))


def efficiency_rating(chassis: ChassisDesign, chief_ability: int | None) -> int:
    """Chassis efficiency: stage completion percentage plus a chief bonus."""
    max_progress: int = len(chassis.stages) * MAX_STAGE_PROGRESS
    base: float = chassis.total_progress() / max_progress * 100.0
    bonus: float = (chief_ability or 0) / 100.0 * CHIEF_DESIGNER_MAX_EFFICIENCY_BONUS
    return min(100, round(base + bonus))


# ---------------------------------------------------------------------------
# Accumulators
# ---------------------------------------------------------------------------


def _process_chassis(
    team_id: str,
    chassis: ChassisDesign,
    work: int,
    facilities: dict[FacilityType, int],
    date: SimDate,
    milestones: list[DesignMilestone],
) -> ChassisBlock | None:
    chassis.accumulated_work_units += work
    while True:
        stage = chassis.current_stage()
        if stage is None:
            return None
        required = STAGE_REQUIRED_FACILITY[stage.stage]
        if required is not None and facilities.get(required, 0) <= 0:
            return ChassisBlock(stage=stage.stage, missing_facility=required)
        points: int = chassis.accumulated_work_units // WORK_UNITS_PER_STAGE_POINT
        if points == 0:
            return None
        gain: int = min(points, MAX_STAGE_PROGRESS - stage.progress)
        stage.progress += gain
        chassis.accumulated_work_units -= gain * WORK_UNITS_PER_STAGE_POINT
        if stage.progress < MAX_STAGE_PROGRESS:
            return None
        stage.completed = True
        milestones.append(
            DesignMilestone(
                team_id=team_id,
                kind=MilestoneKind.STAGE_COMPLETE,
                description=f"{stage.stage.value} stage of the {chassis.target_season} chassis complete",
                date=date,
            )
        )
        if chassis.is_complete:
            milestones.append(
                DesignMilestone(
                    team_id=team_id,
                    kind=MilestoneKind.CHASSIS_COMPLETE,
                    description=f"chassis for season {chassis.target_season} complete",
                    date=date,
                )
            )


def _process_project(
    team_id: str,
    project: TechnologyProject,
    work: int,
    levels: dict[TechComponent, TechnologyLevel],
    date: SimDate,
    rng: Generator,
    milestones: list[DesignMilestone],
) -> bool:
    """Advance one project; return True once it has completed."""
    label: str = f"{project.component.value} {project.attribute.value}"
    if project.phase == ProjectPhase.DISCOVERY:
        chance: float = min(MAX_BREAKTHROUGH_CHANCE, work / BREAKTHROUGH_WORK_SCALE)
        if rng.random() < chance:
            project.payoff = int(rng.integers(MIN_PAYOFF, MAX_PAYOFF + 1))
            project.work_units_required = project.payoff * WORK_UNITS_PER_PAYOFF_POINT
            project.phase = ProjectPhase.DEVELOPMENT
            milestones.append(
                DesignMilestone(
                    team_id=team_id,
                    kind=MilestoneKind.BREAKTHROUGH,
                    description=f"breakthrough on {label} (+{project.payoff})",
                    date=date,
                )
            )
        return False

    project.work_units_completed += work
    if project.work_units_completed < project.work_units_required:
        return False
    level = levels.setdefault(project.component, TechnologyLevel())
    current: int = getattr(level, project.attribute.value)
    setattr(level, project.attribute.value, min(MAX_TECH_LEVEL, current + project.payoff))
    milestones.append(
        DesignMilestone(
            team_id=team_id,
            kind=MilestoneKind.PROJECT_COMPLETE,
            description=f"{label} project complete (+{project.payoff})",
            date=date,
        )
    )
    return True


def _process_solution(
    team_id: str,
    chassis: CurrentChassisState,
    work: int,
    date: SimDate,
    milestones: list[DesignMilestone],
) -> HandlingProblem | None:
    """Advance the active handling problem; return it once solved."""
    if chassis.active_problem is None:
        return None
    state = chassis.problem_state(chassis.active_problem)
    if state is None or not state.discovered or state.solved:
        return None
    state.accumulated_work_units += work
    points: int = state.accumulated_work_units // WORK_UNITS_PER_SOLUTION_POINT
    gain: int = min(points, MAX_SOLUTION_PROGRESS - state.solution_progress)
    state.solution_progress += gain
    state.accumulated_work_units -= gain * WORK_UNITS_PER_SOLUTION_POINT
    if state.solution_progress < MAX_SOLUTION_PROGRESS:
        return None
    state.solved = True
    chassis.active_problem = None
    milestones.append(
        DesignMilestone(
            team_id=team_id,
            kind=MilestoneKind.SOLUTION_COMPLETE,
            description=f"solution for {state.problem.value} designed",
            date=date,
        )
    )
    return state.problem


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def process_day(
    team_id: str,
    design_state: DesignState,
    staff_counts: dict[StaffQuality, int],
    chief_designer: Chief | None,
    facilities: dict[FacilityType, int],
    date: SimDate,
    rng: Generator,
) -> DesignResult:
    """Run one day of design work for a team.

    Each accumulator draws its own work units from its own allocation.
    A completed next-year chassis receives no further work; a chassis
    stage gated by a missing facility keeps its accumulated work and
    reports a :class:`ChassisBlock`.

    Args:
        team_id: Team being processed.
        design_state: Current design state (not modified).
        staff_counts: Design department staff by quality tier.
        chief_designer: The team's chief designer, ``None`` if vacant.
        facilities: Facility type to quality level.
        date: Simulation date of the tick, stamped on milestones.
        rng: Random source.

    Returns:
        A :class:`DesignResult` holding the updated copy of the state.
    """
    state: DesignState = copy.deepcopy(design_state)
    result = DesignResult(team_id=team_id, design_state=state)
    ability: int | None = chief_designer.ability if chief_designer is not None else None
    multiplier: float = facility_multiplier(facilities)

    chassis = state.next_year_chassis
    if chassis is not None and not chassis.is_complete:
        work = calculate_work_units(staff_counts, chassis.allocation, multiplier, ability, rng)
        result.chassis_work_units = work
        result.chassis_block = _process_chassis(
            team_id, chassis, work, facilities, date, result.milestones
        )
        chassis.efficiency_rating = efficiency_rating(chassis, ability)

    remaining: list[TechnologyProject] = []
    for project in state.projects:
        work = calculate_work_units(staff_counts, project.allocation, multiplier, ability, rng)
        result.technology_work_units += work
        if _process_project(
            team_id, project, work, state.technology_levels, date, rng, result.milestones
        ):
            result.completed_projects.append(project)
        else:
            remaining.append(project)
    state.projects = remaining

    current = state.current_chassis
    if current.active_problem is not None:
        work = calculate_work_units(staff_counts, current.allocation, multiplier, ability, rng)
        result.solution_work_units = work
        solved = _process_solution(team_id, current, work, date, result.milestones)
        if solved is not None:
            result.solved_problems.append(solved)

    if result.milestones:
        logger.debug("%s design milestones on %s: %d", team_id, date, len(result.milestones))
    return result


# ---------------------------------------------------------------------------
# Initial state
# ---------------------------------------------------------------------------


def new_current_chassis(rng: Generator, min_problems: int = 2, max_problems: int = 5) -> CurrentChassisState:
    """Roll the hidden handling figure and problem set of a new chassis."""
    count: int = int(rng.integers(min_problems, max_problems + 1))
    pool: list[HandlingProblem] = list(HandlingProblem)
    chosen = rng.choice(len(pool), size=min(count, len(pool)), replace=False)
    return CurrentChassisState(
        true_handling=int(rng.integers(40, 91)),
        problems=[HandlingProblemState(pool[int(i)]) for i in sorted(chosen)],
    )


def initial_design_state(season: int, rng: Generator) -> DesignState:
    """Design state at the start of *season*: next year's chassis opened."""
    return DesignState(
        next_year_chassis=ChassisDesign(target_season=season + 1),
        current_chassis=new_current_chassis(rng),
    )
