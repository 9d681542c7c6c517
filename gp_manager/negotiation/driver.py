"""Driver response evaluator.

A driver's asking salary is their market value scaled by how attractive
the offering team is relative to the driver's own ability.  Market value
comes from the driver's percentile among all drivers by perceived value,
a recency-weighted share of team points over the last five seasons.
"""

from __future__ import annotations

from dataclasses import dataclass

from gp_manager.core.entities import DRIVER_ATTRIBUTE_NAMES, CareerSeason, Driver, Team
from gp_manager.negotiation.models import (
    EvaluationResult,
    DriverTerms,
    ResponseTone,
    ResponseType,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DECAY_FACTOR: float = 0.8
MAX_HISTORY_YEARS: int = 5
DEFAULT_PERCEIVED_VALUE: float = 0.5
MARKET_VALUE_FLOOR: int = 2_000_000
MARKET_VALUE_CEILING: int = 20_000_000

INSTANT_ACCEPT_RATIO: float = 2.0
ACCEPT_RATIO: float = 1.0
COUNTER_RATIO: float = 0.5
DESPERATE_ACCEPT_RATIO: float = 0.2
DESPERATION_SEAT_THRESHOLD: int = 2
MANY_SEATS_THRESHOLD: int = 5
COUNTER_ASK_MULTIPLIER: float = 1.1

MAX_TEAM_QUALITY_MULTIPLIER: float = 5.0
MIN_TEAM_QUALITY_MULTIPLIER: float = 0.2
YOUNG_AGE: int = 25
VETERAN_AGE: int = 33

BASE_RESPONSE_DELAY_DAYS: int = 3
ACCEPT_RELATIONSHIP_BOOST: int = 5
REJECT_RELATIONSHIP_PENALTY: int = -3


@dataclass(frozen=True)
class DriverEvaluationInput:
    """Everything the driver considers.

    Attributes:
        constructor_positions: Team id to championship position (1-based).
        available_seats: Open race seats left on the grid.
        current_year: Calendar year, for the driver's age.
    """

    driver: Driver
    offering_team: Team
    terms: DriverTerms
    all_drivers: list[Driver]
    all_teams: list[Team]
    constructor_positions: dict[str, int]
    available_seats: int
    current_round: int
    max_rounds: int
    current_year: int


def perceived_value(history: list[CareerSeason]) -> float:
    """Recency-weighted share of team points, 0.5 without history."""
    if not history:
        return DEFAULT_PERCEIVED_VALUE
    recent = sorted(history, key=lambda r: r.season, reverse=True)[:MAX_HISTORY_YEARS]
    weighted: float = 0.0
    total_weight: float = 0.0
    for index, record in enumerate(recent):
        weight: float = DECAY_FACTOR**index
        ratio: float = record.points / record.team_points if record.team_points > 0 else 0.5
        weighted += ratio * weight
        total_weight += weight
    return weighted / total_weight


def market_value(driver: Driver, all_drivers: list[Driver]) -> int:
    """Salary a driver commands by percentile of perceived value."""
    ranked = sorted(all_drivers, key=lambda d: perceived_value(d.career_history))
    ids = [d.id for d in ranked]
    if driver.id not in ids:
        percentile: float = perceived_value(driver.career_history)
    elif len(ranked) > 1:
        percentile = ids.index(driver.id) / (len(ranked) - 1)
    else:
        percentile = 0.5
    return round(MARKET_VALUE_FLOOR + percentile * (MARKET_VALUE_CEILING - MARKET_VALUE_FLOOR))


def team_quality(team: Team, all_teams: list[Team], positions: dict[str, int]) -> float:
    """1.0 for the championship leader down to 0.0 for the last team."""
    total: int = len(all_teams)
    position: int = positions.get(team.id, total)
    return (total - position) / (total - 1) if total > 1 else 0.5


def driver_ability(driver: Driver) -> float:
    return sum(getattr(driver.attributes, n) for n in DRIVER_ATTRIBUTE_NAMES) / (
        100 * len(DRIVER_ATTRIBUTE_NAMES)
    )


def career_weight(age: int) -> float:
    """How much the driver cares about money over performance, 0.3-0.7."""
    if age < YOUNG_AGE:
        return 0.3
    if age >= VETERAN_AGE:
        return 0.7
    return 0.3 + (age - YOUNG_AGE) / (VETERAN_AGE - YOUNG_AGE) * 0.4


def team_quality_multiplier(ability: float, quality: float, weight: float) -> float:
    """Salary premium (weak team, strong driver) or discount (strong team)."""
    gap: float = (ability - quality) * (1 - weight * 0.5)
    if gap > 0:
        return 1 + gap * (MAX_TEAM_QUALITY_MULTIPLIER - 1)
    return 1 - (-gap) * (1 - MIN_TEAM_QUALITY_MULTIPLIER)


def evaluate_driver_offer(data: DriverEvaluationInput) -> EvaluationResult:
    """Decide how a driver answers a salary offer.

    ``ratio = offered / required`` drives the answer: at 2x or more the
    driver accepts outright; at 1x they accept unless many seats are
    open, in which case they ask for 10% more; from 0.5x they counter at
    the required salary (as an ultimatum late in the talks or when seats
    are scarce); a desperate driver takes as little as 0.2x; anything
    else is rejected.
    """
    driver = data.driver
    required: float = market_value(driver, data.all_drivers) * team_quality_multiplier(
        driver_ability(driver),
        team_quality(data.offering_team, data.all_teams, data.constructor_positions),
        career_weight(driver.age_in(data.current_year)),
    )
    ratio: float = data.terms.salary / required if required > 0 else INSTANT_ACCEPT_RATIO
    desperate: bool = data.available_seats <= DESPERATION_SEAT_THRESHOLD
    late_round: bool = data.current_round >= data.max_rounds - 1

    counter_salary: int | None = None
    ultimatum: bool = False
    if ratio >= INSTANT_ACCEPT_RATIO:
        response = ResponseType.ACCEPT
    elif ratio >= ACCEPT_RATIO:
        if data.available_seats > MANY_SEATS_THRESHOLD:
            response = ResponseType.COUNTER
            counter_salary = round(required * COUNTER_ASK_MULTIPLIER)
        else:
            response = ResponseType.ACCEPT
    elif ratio >= COUNTER_RATIO:
        response = ResponseType.COUNTER
        counter_salary = round(required)
        ultimatum = late_round or desperate
    elif ratio >= DESPERATE_ACCEPT_RATIO and desperate:
        response = ResponseType.ACCEPT
    else:
        response = ResponseType.REJECT

    if ratio >= ACCEPT_RATIO:
        tone = ResponseTone.ENTHUSIASTIC
    elif ratio >= COUNTER_RATIO:
        tone = ResponseTone.PROFESSIONAL
    else:
        tone = ResponseTone.DISAPPOINTED

    relationship: int = 0
    if response == ResponseType.ACCEPT:
        relationship = ACCEPT_RELATIONSHIP_BOOST
    elif response == ResponseType.REJECT:
        relationship = REJECT_RELATIONSHIP_PENALTY

    return EvaluationResult(
        response_type=response,
        counter_terms=(
            DriverTerms(salary=counter_salary, duration=data.terms.duration)
            if counter_salary is not None
            else None
        ),
        tone=tone,
        delay_days=BASE_RESPONSE_DELAY_DAYS,
        is_newsworthy=response == ResponseType.ACCEPT,
        relationship_change=relationship,
        is_ultimatum=ultimatum,
    )
