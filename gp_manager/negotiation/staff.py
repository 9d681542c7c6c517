"""Chief (senior staff) response evaluator."""

from __future__ import annotations

from dataclasses import dataclass

from gp_manager.core.entities import Chief, Team
from gp_manager.negotiation.manufacturer import budget_rank
from gp_manager.negotiation.models import (
    EvaluationResult,
    ResponseTone,
    ResponseType,
    StaffTerms,
    stable_fraction,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MARKET_SALARY_FLOOR: int = 300_000
MARKET_SALARY_CEILING: int = 15_000_000
MARKET_SALARY_EXPONENT: float = 2.5
GREED_VARIANCE: float = 0.15

ACCEPT_RATIO: float = 1.0
COUNTER_RATIO: float = 0.7
SALARY_CLOSE_RATIO: float = 0.9
GOOD_SIGNING_BONUS_RATIO: float = 0.15
PREFERRED_MAX_DURATION: int = 3
LONG_CONTRACT_PENALTY: float = 0.05

MID_ABILITY_LOW: int = 50
MID_ABILITY_HIGH: int = 85
MAX_CAREER_DISCOUNT: float = 0.2
NEWSWORTHY_ABILITY: int = 85

BASE_RESPONSE_DELAY_DAYS: int = 3
ACCEPT_RELATIONSHIP_BOOST: int = 5
REJECT_RELATIONSHIP_PENALTY: int = -3

APPROACH_PRESTIGE_THRESHOLD: float = 0.3
PRESTIGE_UPGRADE_THRESHOLD: float = 0.2
ABILITY_UPGRADE_THRESHOLD: int = 5
APPROACH_DURATION: int = 2
APPROACH_BONUS_PERCENT: int = 10
BUYOUT_SALARY_MULTIPLIER: float = 0.5


@dataclass(frozen=True)
class StaffEvaluationInput:
    chief: Chief
    offering_team: Team
    terms: StaffTerms
    all_teams: list[Team]
    current_round: int
    max_rounds: int


def base_market_salary(ability: int) -> int:
    factor: float = (ability / 100) ** MARKET_SALARY_EXPONENT
    return round(MARKET_SALARY_FLOOR + factor * (MARKET_SALARY_CEILING - MARKET_SALARY_FLOOR))


def expected_salary(chief: Chief) -> int:
    """Market salary adjusted by a fixed per-chief greed factor (+/-15%)."""
    greed: float = 1 + (stable_fraction("greed", chief.id) * 2 - 1) * GREED_VARIANCE
    return round(base_market_salary(chief.ability) * greed)


def career_multiplier(ability: int, prestige: float) -> float:
    """Mid-ability chiefs trade up to 20% of salary for a prestigious team."""
    if ability < MID_ABILITY_LOW or ability > MID_ABILITY_HIGH:
        return 1.0
    ability_factor: float = (ability - MID_ABILITY_LOW) / (MID_ABILITY_HIGH - MID_ABILITY_LOW)
    return 1.0 - MAX_CAREER_DISCOUNT * (1 - ability_factor) * prestige


def evaluate_staff_offer(data: StaffEvaluationInput) -> EvaluationResult:
    """Decide how a chief answers an offer.

    The signing bonus counts at half its value, spread over the contract;
    contracts longer than three years cost 0.05 of ratio.  In the counter
    band a chief whose salary is nearly met asks for a 15% signing bonus
    instead of more salary.
    """
    chief, terms = data.chief, data.terms
    expected: int = expected_salary(chief)
    prestige: float = budget_rank(data.offering_team, data.all_teams)
    adjusted: int = max(1, round(expected * career_multiplier(chief.ability, prestige)))
    salary_ratio: float = terms.salary / adjusted
    effective: float = terms.salary + terms.signing_bonus / terms.duration * 0.5
    penalty: float = LONG_CONTRACT_PENALTY if terms.duration > PREFERRED_MAX_DURATION else 0.0
    ratio: float = effective / adjusted - penalty
    late_round: bool = data.current_round >= data.max_rounds - 1

    counter: StaffTerms | None = None
    ultimatum: bool = False
    if ratio >= ACCEPT_RATIO:
        response = ResponseType.ACCEPT
    elif ratio >= COUNTER_RATIO:
        response = ResponseType.COUNTER
        if salary_ratio > SALARY_CLOSE_RATIO:
            salary, bonus = terms.salary, round(expected * GOOD_SIGNING_BONUS_RATIO)
        else:
            salary, bonus = adjusted, terms.signing_bonus
        counter = StaffTerms(
            salary=salary,
            duration=terms.duration,
            signing_bonus=bonus,
            bonus_percent=terms.bonus_percent,
            buyout_required=terms.buyout_required,
        )
        ultimatum = late_round
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
        counter_terms=counter,
        tone=tone,
        delay_days=BASE_RESPONSE_DELAY_DAYS,
        is_newsworthy=response == ResponseType.ACCEPT and chief.ability >= NEWSWORTHY_ABILITY,
        relationship_change=relationship,
        is_ultimatum=ultimatum,
    )


# ---------------------------------------------------------------------------
# Approaches
# ---------------------------------------------------------------------------


def evaluate_staff_approach(
    chief: Chief, target: Team, all_teams: list[Team], all_chiefs: list[Chief]
) -> StaffTerms | None:
    """Terms *chief* would propose to *target*, or ``None`` to stay away.

    A chief only approaches a team whose chief in the same role is
    missing or clearly weaker.  Free agents approach any team above the
    bottom of the budget table; employed chiefs only teams with a much
    bigger budget than their own, and the move carries a buyout.
    """
    if chief.team_id == target.id:
        return None
    incumbent = next(
        (c for c in all_chiefs if c.team_id == target.id and c.role == chief.role and c.id != chief.id),
        None,
    )
    if incumbent is not None and incumbent.ability >= chief.ability - ABILITY_UPGRADE_THRESHOLD:
        return None

    prestige: float = budget_rank(target, all_teams)
    buyout: int = 0
    if chief.team_id is None:
        if prestige <= APPROACH_PRESTIGE_THRESHOLD:
            return None
    else:
        current = next((t for t in all_teams if t.id == chief.team_id), None)
        if current is None or prestige <= budget_rank(current, all_teams) + PRESTIGE_UPGRADE_THRESHOLD:
            return None
        buyout = round(chief.salary * BUYOUT_SALARY_MULTIPLIER)
    return StaffTerms(
        salary=expected_salary(chief),
        duration=APPROACH_DURATION,
        bonus_percent=APPROACH_BONUS_PERCENT,
        buyout_required=buyout,
    )
