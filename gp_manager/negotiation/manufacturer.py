"""Engine manufacturer response evaluator.

The manufacturer prices a supply deal against its own cost::

    cost = (base_engine * 2 + upgrade * n_upgrades
            + customisation_point * n_points + optimisation) * duration

It opens high (30% margin), keeps a comfortable floor (15%) unless it is
desperate for customers or the team is strategically valuable, and hides
a per-negotiation minimum margin between 0% and 15%.  Concessions per
round depend on how the player has been bargaining.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from gp_manager.core.entities import Manufacturer, Team
from gp_manager.negotiation.models import (
    EvaluationResult,
    ManufacturerTerms,
    Negotiation,
    OfferedBy,
    ResponseTone,
    ResponseType,
    stable_fraction,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_RESPONSE_DELAY_DAYS: int = 3
MIN_RESPONSE_DELAY_DAYS: int = 1
MAX_RESPONSE_DELAY_DAYS: int = 7

WARM_RELATIONSHIP: int = 70
COLD_RELATIONSHIP: int = 30
ACCEPT_RELATIONSHIP_BOOST: int = 5
REJECT_RELATIONSHIP_PENALTY: int = -5
ULTIMATUM_RELATIONSHIP_PENALTY: int = -2
MAX_ROUNDS_BEFORE_ULTIMATUM: int = 5

IDEAL_MARGIN: float = 1.30
COMFORTABLE_MARGIN: float = 1.15
MIN_MARGIN_FLOOR: float = 1.0
MIN_MARGIN_CEILING: float = 1.15
MAX_DESPERATION_DISCOUNT: float = 0.20
STRATEGIC_VALUE_DISCOUNT: float = 0.08
STRATEGIC_VALUE_THRESHOLD: float = 0.7
DESPERATION_THRESHOLD: float = 0.3
BASE_CONCESSION_RATE: float = 0.20
GREAT_CONCESSION_THRESHOLD_MULTIPLIER: float = 0.95
ROUND_FACTOR_DIVISOR: int = 4


class BargainingPattern(str, Enum):
    FIRST_OFFER = "first-offer"
    COOPERATIVE = "cooperative"
    STUBBORN = "stubborn"
    AGGRESSIVE = "aggressive"
    GOOD_CONCESSION = "good-concession"
    GREAT_CONCESSION = "great-concession"
    RESPONDED_TO_ULTIMATUM = "responded-to-ultimatum"


_CONCESSION_MULTIPLIER: dict[BargainingPattern, float] = {
    BargainingPattern.GREAT_CONCESSION: 1.5,
    BargainingPattern.GOOD_CONCESSION: 1.2,
    BargainingPattern.STUBBORN: 0.5,
    BargainingPattern.AGGRESSIVE: 0.3,
}


@dataclass(frozen=True)
class ManufacturerEvaluationInput:
    negotiation: Negotiation
    manufacturer: Manufacturer
    team: Team
    all_teams: list[Team]
    relationship_score: int
    secured_team_ids: frozenset[str]
    customer_team_ids: frozenset[str]


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def secret_minimum_margin(negotiation_id: str) -> float:
    """Hidden walk-away margin, fixed for the life of a negotiation."""
    return MIN_MARGIN_FLOOR + stable_fraction(negotiation_id) * (MIN_MARGIN_CEILING - MIN_MARGIN_FLOOR)


def manufacturer_cost(manufacturer: Manufacturer, terms: ManufacturerTerms) -> int:
    costs = manufacturer.costs
    yearly: int = (
        costs.base_engine * 2
        + costs.upgrade * terms.upgrades_included
        + costs.customisation_point * terms.customisation_points_included
        + (costs.optimisation if terms.optimisation_included else 0)
    )
    return yearly * terms.duration


def calculate_desperation(
    all_teams: list[Team], secured_team_ids: frozenset[str], customer_team_ids: frozenset[str]
) -> float:
    """How badly the manufacturer needs to re-sign customers, 0-1."""
    secured: int = sum(1 for t in all_teams if t.id in secured_team_ids and t.id in customer_team_ids)
    unsigned: int = sum(1 for t in all_teams if t.id not in secured_team_ids)
    needed: int = len(customer_team_ids) - secured
    if needed <= 0:
        return 0.0
    if unsigned <= needed:
        return min(1.0, needed / max(1, unsigned))
    return max(0.0, needed / unsigned * 0.5)


def budget_rank(team: Team, all_teams: list[Team]) -> float:
    """Team budget scaled to 0-1 across the grid; 0.5 when all equal."""
    budgets = [t.budget for t in all_teams] or [team.budget]
    spread: int = max(budgets) - min(budgets)
    if spread == 0:
        return 0.5
    return (team.budget - min(budgets)) / spread


def floor_price(cost: float, secret_margin: float, desperation: float, strategic_value: float) -> float:
    strategic: float = STRATEGIC_VALUE_DISCOUNT if strategic_value > STRATEGIC_VALUE_THRESHOLD else 0.0
    margin: float = max(1.0, secret_margin - desperation * MAX_DESPERATION_DISCOUNT - strategic)
    return cost * margin


def detect_pattern(negotiation: Negotiation) -> BargainingPattern:
    """Classify how the player has moved between their last two offers."""
    rounds = negotiation.rounds
    player = negotiation.player_rounds()
    if len(rounds) == 1 or len(player) < 2:
        return BargainingPattern.FIRST_OFFER
    counters = negotiation.counterparty_rounds()
    if counters and counters[-1].is_ultimatum:
        return BargainingPattern.RESPONDED_TO_ULTIMATUM

    last: int = player[-1].terms.annual_cost
    previous: int = player[-2].terms.annual_cost
    if last == previous:
        return BargainingPattern.STUBBORN
    if last < previous:
        return BargainingPattern.AGGRESSIVE
    if not counters:
        return BargainingPattern.COOPERATIVE
    gap: int = counters[-1].terms.annual_cost - previous
    if gap <= 0:
        return BargainingPattern.COOPERATIVE
    movement: float = (last - previous) / gap
    if movement >= 0.20:
        return BargainingPattern.GREAT_CONCESSION
    if movement >= 0.10:
        return BargainingPattern.GOOD_CONCESSION
    return BargainingPattern.COOPERATIVE


def count_stubborn_rounds(negotiation: Negotiation) -> int:
    offers = [r.terms.annual_cost for r in negotiation.player_rounds()]
    return sum(1 for a, b in zip(offers, offers[1:]) if a == b)


def target_price(
    cost: float,
    secret_margin: float,
    round_number: int,
    desperation: float,
    strategic_value: float,
    pattern: BargainingPattern,
) -> float:
    ideal: float = cost * IDEAL_MARGIN
    comfortable: float = cost * COMFORTABLE_MARGIN
    floor: float = floor_price(cost, secret_margin, desperation, strategic_value)
    multiplier: float = _CONCESSION_MULTIPLIER.get(pattern, 1.0)
    concession: float = min(1.0, (round_number - 1) * BASE_CONCESSION_RATE * multiplier)
    target: float = ideal - concession * (ideal - floor)
    if desperation < DESPERATION_THRESHOLD and strategic_value < STRATEGIC_VALUE_THRESHOLD:
        return max(target, comfortable)
    return max(target, floor)


def acceptance_threshold(
    cost: float,
    secret_margin: float,
    round_number: int,
    desperation: float,
    strategic_value: float,
    pattern: BargainingPattern,
) -> float:
    comfortable: float = cost * COMFORTABLE_MARGIN
    floor: float = floor_price(cost, secret_margin, desperation, strategic_value)
    round_factor: float = min(1.0, (round_number - 1) / ROUND_FACTOR_DIVISOR)
    threshold: float = comfortable - round_factor * (comfortable - floor)
    if pattern == BargainingPattern.GREAT_CONCESSION:
        threshold = max(floor, threshold * GREAT_CONCESSION_THRESHOLD_MULTIPLIER)
    return max(floor, threshold)


def response_tone(relationship_score: int, pattern: BargainingPattern) -> ResponseTone:
    if pattern == BargainingPattern.AGGRESSIVE:
        return ResponseTone.INSULTED
    if pattern == BargainingPattern.STUBBORN:
        return ResponseTone.DISAPPOINTED
    if pattern == BargainingPattern.GREAT_CONCESSION:
        return ResponseTone.ENTHUSIASTIC
    if relationship_score >= WARM_RELATIONSHIP:
        return ResponseTone.ENTHUSIASTIC
    if relationship_score <= COLD_RELATIONSHIP:
        return ResponseTone.DISAPPOINTED
    return ResponseTone.PROFESSIONAL


def response_delay(relationship_score: int, strategic_value: float, is_ultimatum: bool) -> int:
    if is_ultimatum:
        return MIN_RESPONSE_DELAY_DAYS
    delay: int = BASE_RESPONSE_DELAY_DAYS - relationship_score // 50 - math.floor(strategic_value * 2)
    return max(MIN_RESPONSE_DELAY_DAYS, min(delay, MAX_RESPONSE_DELAY_DAYS))


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


def _accept(tone: ResponseTone, delay: int, newsworthy: bool) -> EvaluationResult:
    return EvaluationResult(
        response_type=ResponseType.ACCEPT,
        counter_terms=None,
        tone=tone,
        delay_days=delay,
        is_newsworthy=newsworthy,
        relationship_change=ACCEPT_RELATIONSHIP_BOOST,
    )


def _reject(delay: int) -> EvaluationResult:
    return EvaluationResult(
        response_type=ResponseType.REJECT,
        counter_terms=None,
        tone=ResponseTone.DISAPPOINTED,
        delay_days=delay,
        is_newsworthy=False,
        relationship_change=REJECT_RELATIONSHIP_PENALTY,
    )


def evaluate_manufacturer_offer(data: ManufacturerEvaluationInput) -> EvaluationResult:
    """Decide how a manufacturer answers the player's latest offer.

    The offer is compared on the full-contract price
    (``annual_cost * duration``).  A player answering an ultimatum gets a
    final yes/no against the floor price; otherwise the offer is accepted
    at or above the round's acceptance threshold and countered below it.
    The counter becomes an ultimatum when the player is aggressive, has
    repeated the same offer twice, or the round limit is reached.
    """
    current = data.negotiation.latest_round
    if current is None or current.offered_by != OfferedBy.PLAYER:
        return _reject(BASE_RESPONSE_DELAY_DAYS)
    terms: ManufacturerTerms = current.terms
    offered: int = terms.annual_cost * terms.duration
    cost: int = manufacturer_cost(data.manufacturer, terms)
    secret: float = secret_minimum_margin(data.negotiation.id)
    desperation: float = calculate_desperation(
        data.all_teams, data.secured_team_ids, data.customer_team_ids
    )
    strategic: float = budget_rank(data.team, data.all_teams)
    pattern: BargainingPattern = detect_pattern(data.negotiation)
    newsworthy: bool = strategic > STRATEGIC_VALUE_THRESHOLD

    if pattern == BargainingPattern.RESPONDED_TO_ULTIMATUM:
        if offered >= floor_price(cost, secret, desperation, strategic):
            return _accept(ResponseTone.PROFESSIONAL, MIN_RESPONSE_DELAY_DAYS, newsworthy)
        return _reject(MIN_RESPONSE_DELAY_DAYS)

    threshold: float = acceptance_threshold(
        cost, secret, current.round_number, desperation, strategic, pattern
    )
    if current.is_ultimatum:
        if offered >= threshold:
            return _accept(
                response_tone(data.relationship_score, pattern), MIN_RESPONSE_DELAY_DAYS, newsworthy
            )
        return _reject(MIN_RESPONSE_DELAY_DAYS)

    if offered >= threshold:
        return _accept(
            response_tone(data.relationship_score, pattern),
            response_delay(data.relationship_score, strategic, False),
            newsworthy,
        )

    ultimatum: bool = (
        pattern == BargainingPattern.AGGRESSIVE
        or count_stubborn_rounds(data.negotiation) >= 2
        or current.round_number >= MAX_ROUNDS_BEFORE_ULTIMATUM
    )
    price: float = target_price(cost, secret, current.round_number, desperation, strategic, pattern)
    counter = ManufacturerTerms(
        annual_cost=math.ceil(price / terms.duration),
        duration=terms.duration,
        upgrades_included=terms.upgrades_included,
        customisation_points_included=terms.customisation_points_included,
        optimisation_included=terms.optimisation_included,
    )
    return EvaluationResult(
        response_type=ResponseType.COUNTER,
        counter_terms=counter,
        tone=response_tone(data.relationship_score, pattern),
        delay_days=response_delay(data.relationship_score, strategic, ultimatum),
        is_newsworthy=False,
        relationship_change=ULTIMATUM_RELATIONSHIP_PENALTY if ultimatum else 0,
        is_ultimatum=ultimatum,
    )
