"""Team-side view of the driver market.

A team ranks drivers by attractiveness: perceived value for drivers with
at least two seasons behind them, otherwise their ability blurred by a
fixed per-team error of up to 10%.  Either figure is scaled by how well
the driver's age suits the contract length.  A team only looks at the
team directly above it, every team below it and free agents.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from gp_manager.core.entities import Driver, Team
from gp_manager.negotiation.driver import driver_ability, perceived_value
from gp_manager.negotiation.models import stable_fraction

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

YOUNG_AGE_LIMIT: int = 26
PRIME_AGE_LIMIT: int = 30
MATURE_AGE_LIMIT: int = 34

ROOKIE_ERROR_RANGE: float = 0.1
ROOKIE_HISTORY_SEASONS: int = 2

UPGRADE_MARGIN: float = 0.05
SIMILAR_MARGIN: float = 0.10

# Multipliers for 1, 2 and 3+ year deals.
AGE_MULTIPLIERS: dict[str, tuple[float, float, float]] = {
    "young": (0.95, 1.0, 1.1),
    "prime": (1.0, 1.0, 1.0),
    "mature": (1.0, 0.95, 0.9),
    "veteran": (0.9, 0.8, 0.6),
}


class ApproachReason(str, Enum):
    UPGRADE = "upgrade"
    CHEAPER = "cheaper"
    VACANCY = "vacancy"
    NOT_ON_SHORTLIST = "not_on_shortlist"
    DOWNGRADE = "downgrade"


@dataclass(frozen=True)
class RankedDriver:
    driver: Driver
    attractiveness: float
    is_rookie: bool


@dataclass(frozen=True)
class TeamEvaluationResult:
    """How a team reacts to a driver asking for a seat.

    Attributes:
        interested: Whether the team opens talks.
        reason: Why.
        approacher_attractiveness: Score of the approaching driver.
        current_attractiveness: Scores of the team's current drivers.
    """

    interested: bool
    reason: ApproachReason
    approacher_attractiveness: float
    current_attractiveness: tuple[float, ...]


# ---------------------------------------------------------------------------
# Attractiveness
# ---------------------------------------------------------------------------


def age_bracket(age: int) -> str:
    if age < YOUNG_AGE_LIMIT:
        return "young"
    if age < PRIME_AGE_LIMIT:
        return "prime"
    if age < MATURE_AGE_LIMIT:
        return "mature"
    return "veteran"


def age_multiplier(age: int, contract_years: int) -> float:
    index: int = min(max(contract_years, 1), 3) - 1
    return AGE_MULTIPLIERS[age_bracket(age)][index]


def is_rookie(driver: Driver) -> bool:
    return len(driver.career_history) < ROOKIE_HISTORY_SEASONS


def driver_attractiveness(driver: Driver, team_id: str, year: int, contract_years: int) -> float:
    """Attractiveness of *driver* to *team_id*, clamped to ``[0, 1]``."""
    if is_rookie(driver):
        error: float = (stable_fraction(team_id, driver.id) * 2 - 1) * ROOKIE_ERROR_RANGE
        base: float = min(1.0, max(0.0, driver_ability(driver) + error))
    else:
        base = perceived_value(driver.career_history)
    score: float = base * age_multiplier(driver.age_in(year), contract_years)
    return min(1.0, max(0.0, score))


# ---------------------------------------------------------------------------
# Shortlist
# ---------------------------------------------------------------------------


def eligible_driver_pool(
    team: Team, positions: dict[str, int], drivers: list[Driver]
) -> list[Driver]:
    """Drivers *team* may consider, its own drivers excluded."""
    position: int = positions.get(team.id, len(positions) + 1)
    eligible_teams = {tid for tid, pos in positions.items() if pos > position or pos == position - 1}
    return [
        d
        for d in drivers
        if d.team_id != team.id and (d.team_id is None or d.team_id in eligible_teams)
    ]


def team_shortlist(
    team: Team,
    positions: dict[str, int],
    drivers: list[Driver],
    year: int,
    contract_years: int,
) -> list[RankedDriver]:
    """Eligible drivers, most attractive first."""
    ranked = [
        RankedDriver(d, driver_attractiveness(d, team.id, year, contract_years), is_rookie(d))
        for d in eligible_driver_pool(team, positions, drivers)
    ]
    ranked.sort(key=lambda r: r.attractiveness, reverse=True)
    return ranked


def evaluate_driver_approach(
    driver: Driver,
    team: Team,
    current_drivers: list[Driver],
    positions: dict[str, int],
    all_drivers: list[Driver],
    year: int,
    has_vacancy: bool,
    contract_years: int,
) -> TeamEvaluationResult:
    """Decide whether *team* takes up an approach from *driver*.

    The driver must be in the team's eligible pool.  A team with a free
    seat is then always interested; otherwise it wants a driver clearly
    better than its weakest current driver, or one close enough to be a
    cheaper alternative.
    """
    score = driver_attractiveness(driver, team.id, year, contract_years)
    current = tuple(driver_attractiveness(d, team.id, year, contract_years) for d in current_drivers)

    def result(interested: bool, reason: ApproachReason) -> TeamEvaluationResult:
        return TeamEvaluationResult(interested, reason, score, current)

    pool_ids = {d.id for d in eligible_driver_pool(team, positions, all_drivers)}
    if driver.id not in pool_ids:
        return result(False, ApproachReason.NOT_ON_SHORTLIST)
    if has_vacancy or not current:
        return result(True, ApproachReason.VACANCY)
    weakest: float = min(current)
    if score > weakest + UPGRADE_MARGIN:
        return result(True, ApproachReason.UPGRADE)
    if score >= weakest - SIMILAR_MARGIN:
        return result(True, ApproachReason.CHEAPER)
    return result(False, ApproachReason.DOWNGRADE)
