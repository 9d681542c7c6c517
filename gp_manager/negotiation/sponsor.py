"""Sponsor response evaluator.

A sponsor values a team by its championship position relative to the
reputation it expects.  Teams well above expectations earn a premium;
teams below a soft gate are offered protective terms (smaller payment,
bigger performance bonuses, an exit clause and a shorter deal); teams
below a hard gate are turned away.  A sponsor never joins a team that
already carries a sponsor from the same rival group.
"""

from __future__ import annotations

from dataclasses import dataclass

from gp_manager.core.entities import Sponsor, SponsorTier
from gp_manager.negotiation.models import (
    EvaluationResult,
    Negotiation,
    OfferedBy,
    ResponseTone,
    ResponseType,
    SponsorPlacement,
    SponsorTerms,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_RESPONSE_DELAY_DAYS: int = 3
MIN_RESPONSE_DELAY_DAYS: int = 1
MAX_RESPONSE_DELAY_DAYS: int = 5

SOFT_GATE: float = 0.9
HARD_GATE: float = 0.7
PREMIUM_THRESHOLD: float = 1.2
MAX_PREMIUM_MULTIPLIER: float = 1.25
DISCOUNT_FLOOR: float = 0.7
BASE_PAYMENT_REDUCTION: float = 0.15

BASE_EXIT_CLAUSE_POSITION: int = 5
MAX_EXIT_CLAUSE_POSITION: int = 10
MAX_CONTRACT_DURATION: int = 3

INSTANT_ACCEPT_RATIO: float = 0.95
REJECT_RATIO: float = 0.6
ULTIMATUM_ROUND: int = 4

ACCEPT_RELATIONSHIP_BOOST: int = 5
REJECT_RELATIONSHIP_PENALTY: int = -3

# (points bonus per point, bonus per win)
TIER_BONUSES: dict[SponsorTier, tuple[int, int]] = {
    SponsorTier.TITLE: (50_000, 1_000_000),
    SponsorTier.MAJOR: (25_000, 500_000),
    SponsorTier.MINOR: (10_000, 200_000),
}

TIER_PLACEMENT: dict[SponsorTier, SponsorPlacement] = {
    SponsorTier.TITLE: SponsorPlacement.PRIMARY,
    SponsorTier.MAJOR: SponsorPlacement.SECONDARY,
    SponsorTier.MINOR: SponsorPlacement.TERTIARY,
}


@dataclass(frozen=True)
class SponsorEvaluationInput:
    """Inputs for a sponsor's decision.

    Attributes:
        existing_sponsor_ids: Sponsors the team already has deals with.
        team_position: Team's constructors' championship position.
        total_teams: Number of teams on the grid.
    """

    negotiation: Negotiation
    sponsor: Sponsor
    all_sponsors: dict[str, Sponsor]
    existing_sponsor_ids: list[str]
    relationship_score: int
    team_position: int
    total_teams: int


@dataclass(frozen=True)
class SponsorValuation:
    willing_payment: int
    protection_level: float
    below_soft_gate: bool
    below_hard_gate: bool


def has_rival_conflict(
    sponsor: Sponsor, existing_sponsor_ids: list[str], all_sponsors: dict[str, Sponsor]
) -> bool:
    if not sponsor.rival_group:
        return False
    for sponsor_id in existing_sponsor_ids:
        existing = all_sponsors.get(sponsor_id)
        if existing is not None and existing.id != sponsor.id and existing.rival_group == sponsor.rival_group:
            return True
    return False


def sponsor_valuation(sponsor: Sponsor, team_position: int, total_teams: int) -> SponsorValuation:
    """Payment the sponsor is willing to make to a team in *team_position*."""
    position_score: float = 1 - (team_position - 1) / (max(1, total_teams - 1))
    reputation_ratio: float = position_score * 100 / sponsor.min_reputation
    willing: float = float(sponsor.payment)
    if reputation_ratio >= PREMIUM_THRESHOLD:
        willing = sponsor.payment * (1 + min(reputation_ratio - 1, MAX_PREMIUM_MULTIPLIER - 1))
    elif reputation_ratio < 1.0:
        willing = sponsor.payment * max(reputation_ratio, DISCOUNT_FLOOR)

    below_soft: bool = reputation_ratio < SOFT_GATE
    protection: float = 0.0
    if below_soft:
        protection = min(1.0, (SOFT_GATE - reputation_ratio) / (SOFT_GATE - HARD_GATE))
    return SponsorValuation(
        willing_payment=round(willing),
        protection_level=protection,
        below_soft_gate=below_soft,
        below_hard_gate=reputation_ratio < HARD_GATE,
    )


def counter_terms(terms: SponsorTerms, sponsor: Sponsor, valuation: SponsorValuation) -> SponsorTerms:
    reduction: float = BASE_PAYMENT_REDUCTION * (1 + valuation.protection_level)
    points_bonus, win_bonus = TIER_BONUSES[sponsor.tier]
    bonus_multiplier: float = 1 + valuation.protection_level * 0.5

    exit_clause: int | None = None
    if valuation.below_soft_gate:
        exit_clause = round(
            BASE_EXIT_CLAUSE_POSITION
            + valuation.protection_level * (MAX_EXIT_CLAUSE_POSITION - BASE_EXIT_CLAUSE_POSITION)
        )

    duration: int = terms.duration
    if valuation.protection_level > 0.5:
        duration = min(duration, 1)
    elif valuation.protection_level > 0:
        duration = min(duration, 2)
    duration = min(duration, MAX_CONTRACT_DURATION)

    return SponsorTerms(
        annual_payment=round(valuation.willing_payment * (1 - reduction)),
        duration=duration,
        placement=terms.placement,
        points_bonus=round(points_bonus * bonus_multiplier),
        win_bonus=round(win_bonus * bonus_multiplier),
        exit_clause_position=exit_clause,
    )


def response_delay(relationship_score: int) -> int:
    return max(
        MIN_RESPONSE_DELAY_DAYS,
        min(BASE_RESPONSE_DELAY_DAYS - relationship_score // 50, MAX_RESPONSE_DELAY_DAYS),
    )


def _result(
    response: ResponseType,
    tone: ResponseTone,
    delay: int,
    relationship: int,
    newsworthy: bool = False,
    counter: SponsorTerms | None = None,
    ultimatum: bool = False,
) -> EvaluationResult:
    return EvaluationResult(
        response_type=response,
        counter_terms=counter,
        tone=tone,
        delay_days=delay,
        is_newsworthy=newsworthy,
        relationship_change=relationship,
        is_ultimatum=ultimatum,
    )


def evaluate_sponsor_offer(data: SponsorEvaluationInput) -> EvaluationResult:
    """Decide how a sponsor answers the player's proposed terms."""
    current = data.negotiation.latest_round
    sponsor = data.sponsor
    if current is None or current.offered_by != OfferedBy.PLAYER:
        return _result(
            ResponseType.REJECT,
            ResponseTone.DISAPPOINTED,
            BASE_RESPONSE_DELAY_DAYS,
            REJECT_RELATIONSHIP_PENALTY,
        )
    if has_rival_conflict(sponsor, data.existing_sponsor_ids, data.all_sponsors):
        return _result(ResponseType.REJECT, ResponseTone.PROFESSIONAL, MIN_RESPONSE_DELAY_DAYS, 0)

    valuation = sponsor_valuation(sponsor, data.team_position, data.total_teams)
    if valuation.below_hard_gate:
        return _result(
            ResponseType.REJECT,
            ResponseTone.PROFESSIONAL,
            MIN_RESPONSE_DELAY_DAYS,
            REJECT_RELATIONSHIP_PENALTY,
        )

    terms: SponsorTerms = current.terms
    ratio: float = terms.annual_payment / max(1, valuation.willing_payment)
    is_title: bool = sponsor.tier == SponsorTier.TITLE

    # Final offer from the team: accept or reject only.
    if current.is_ultimatum:
        if ratio >= REJECT_RATIO:
            return _result(
                ResponseType.ACCEPT,
                ResponseTone.PROFESSIONAL,
                MIN_RESPONSE_DELAY_DAYS,
                ACCEPT_RELATIONSHIP_BOOST,
                newsworthy=is_title,
            )
        return _result(
            ResponseType.REJECT,
            ResponseTone.DISAPPOINTED,
            MIN_RESPONSE_DELAY_DAYS,
            REJECT_RELATIONSHIP_PENALTY,
        )

    delay: int = response_delay(data.relationship_score)
    if ratio >= INSTANT_ACCEPT_RATIO and not valuation.below_soft_gate:
        tone = ResponseTone.ENTHUSIASTIC if ratio >= 1.0 else ResponseTone.PROFESSIONAL
        return _result(ResponseType.ACCEPT, tone, delay, ACCEPT_RELATIONSHIP_BOOST, newsworthy=is_title)
    if ratio < REJECT_RATIO:
        return _result(ResponseType.REJECT, ResponseTone.DISAPPOINTED, delay, REJECT_RELATIONSHIP_PENALTY)

    return _result(
        ResponseType.COUNTER,
        ResponseTone.PROFESSIONAL if valuation.below_soft_gate else ResponseTone.ENTHUSIASTIC,
        delay,
        0,
        counter=counter_terms(terms, sponsor, valuation),
        ultimatum=current.round_number >= ULTIMATUM_ROUND,
    )
