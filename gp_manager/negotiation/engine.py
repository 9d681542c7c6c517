"""Negotiation engine: daily evaluation of open negotiations.

Each day every negotiation that is awaiting a response, whose latest
round was offered by the player and whose response delay has elapsed is
dispatched by stakeholder type to its evaluator.  Evaluators are pure;
:meth:`NegotiationEngine.process_day` only *describes* the outcome and
:func:`apply_negotiation_update` is the single place that mutates a
negotiation.

Phase mapping of a response:

* Accept   -> Completed
* Reject   -> Failed
* Counter  -> ResponseReceived (the player's turn)
* NeedTime -> AwaitingResponse, no round appended, answer postponed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from gp_manager.core.dates import SimDate, add_days
from gp_manager.core.entities import Chief, Driver, Manufacturer, Sponsor, Team
from gp_manager.core.state import clamp_percentage
from gp_manager.errors import NegotiationError
from gp_manager.negotiation.contracts import SEATS_PER_TEAM, ActiveContract
from gp_manager.negotiation.driver import DriverEvaluationInput, evaluate_driver_offer
from gp_manager.negotiation.manufacturer import (
    ManufacturerEvaluationInput,
    evaluate_manufacturer_offer,
)
from gp_manager.negotiation.models import (
    DEFAULT_EXPIRATION_DAYS,
    EvaluationResult,
    Negotiation,
    NegotiationPhase,
    NegotiationRound,
    OfferedBy,
    ResponseType,
    StakeholderType,
    safe_reject,
)
from gp_manager.negotiation.sponsor import SponsorEvaluationInput, evaluate_sponsor_offer
from gp_manager.negotiation.staff import StaffEvaluationInput, evaluate_staff_offer

logger = logging.getLogger(__name__)

DEFAULT_RELATIONSHIP: int = 50
DEFAULT_MAX_ROUNDS: int = 5

_NEXT_PHASE: dict[ResponseType, NegotiationPhase] = {
    ResponseType.ACCEPT: NegotiationPhase.COMPLETED,
    ResponseType.REJECT: NegotiationPhase.FAILED,
    ResponseType.COUNTER: NegotiationPhase.RESPONSE_RECEIVED,
    ResponseType.NEED_TIME: NegotiationPhase.AWAITING_RESPONSE,
}


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass
class NegotiationContext:
    """Read-only world view handed to the evaluators.

    Attributes:
        constructor_positions: Team id to championship position.
        relationship_scores: Counterparty id to relationship (0-100).
        secured_team_ids: Teams already holding next season's engine deal.
        current_year: Calendar year of the current date.
    """

    teams: dict[str, Team]
    drivers: dict[str, Driver]
    chiefs: dict[str, Chief]
    sponsors: dict[str, Sponsor]
    manufacturers: dict[str, Manufacturer]
    contracts: list[ActiveContract] = field(default_factory=list)
    constructor_positions: dict[str, int] = field(default_factory=dict)
    relationship_scores: dict[str, int] = field(default_factory=dict)
    secured_team_ids: frozenset[str] = frozenset()
    current_year: int = 2025
    max_rounds: int = DEFAULT_MAX_ROUNDS

    def relationship(self, counterparty_id: str) -> int:
        return self.relationship_scores.get(counterparty_id, DEFAULT_RELATIONSHIP)

    def available_seats(self) -> int:
        taken: int = sum(1 for d in self.drivers.values() if d.team_id is not None)
        return max(0, SEATS_PER_TEAM * len(self.teams) - taken)

    def contract_ids(self, stakeholder_type: StakeholderType, team_id: str | None = None) -> list[str]:
        return [
            c.counterparty_id
            for c in self.contracts
            if c.stakeholder_type == stakeholder_type and (team_id is None or c.team_id == team_id)
        ]


Evaluator = Callable[[Negotiation, NegotiationContext], EvaluationResult]


# ---------------------------------------------------------------------------
# Evaluator adapters
# ---------------------------------------------------------------------------


def _evaluate_manufacturer(negotiation: Negotiation, ctx: NegotiationContext) -> EvaluationResult:
    manufacturer = ctx.manufacturers.get(negotiation.counterparty_id)
    team = ctx.teams.get(negotiation.team_id)
    if manufacturer is None or team is None:
        return safe_reject()
    customers = frozenset(
        c.team_id
        for c in ctx.contracts
        if c.stakeholder_type == StakeholderType.MANUFACTURER and c.counterparty_id == manufacturer.id
    )
    return evaluate_manufacturer_offer(
        ManufacturerEvaluationInput(
            negotiation=negotiation,
            manufacturer=manufacturer,
            team=team,
            all_teams=list(ctx.teams.values()),
            relationship_score=ctx.relationship(manufacturer.id),
            secured_team_ids=ctx.secured_team_ids,
            customer_team_ids=customers,
        )
    )


def _evaluate_driver(negotiation: Negotiation, ctx: NegotiationContext) -> EvaluationResult:
    driver = ctx.drivers.get(negotiation.counterparty_id)
    team = ctx.teams.get(negotiation.team_id)
    current = negotiation.latest_round
    if driver is None or team is None or current is None:
        return safe_reject()
    return evaluate_driver_offer(
        DriverEvaluationInput(
            driver=driver,
            offering_team=team,
            terms=current.terms,
            all_drivers=list(ctx.drivers.values()),
            all_teams=list(ctx.teams.values()),
            constructor_positions=ctx.constructor_positions,
            available_seats=ctx.available_seats(),
            current_round=current.round_number,
            max_rounds=ctx.max_rounds,
            current_year=ctx.current_year,
        )
    )


def _evaluate_staff(negotiation: Negotiation, ctx: NegotiationContext) -> EvaluationResult:
    chief = ctx.chiefs.get(negotiation.counterparty_id)
    team = ctx.teams.get(negotiation.team_id)
    current = negotiation.latest_round
    if chief is None or team is None or current is None:
        return safe_reject()
    return evaluate_staff_offer(
        StaffEvaluationInput(
            chief=chief,
            offering_team=team,
            terms=current.terms,
            all_teams=list(ctx.teams.values()),
            current_round=current.round_number,
            max_rounds=ctx.max_rounds,
        )
    )


def _evaluate_sponsor(negotiation: Negotiation, ctx: NegotiationContext) -> EvaluationResult:
    sponsor = ctx.sponsors.get(negotiation.counterparty_id)
    if sponsor is None or negotiation.team_id not in ctx.teams:
        return safe_reject()
    return evaluate_sponsor_offer(
        SponsorEvaluationInput(
            negotiation=negotiation,
            sponsor=sponsor,
            all_sponsors=ctx.sponsors,
            existing_sponsor_ids=ctx.contract_ids(StakeholderType.SPONSOR, negotiation.team_id),
            relationship_score=ctx.relationship(sponsor.id),
            team_position=ctx.constructor_positions.get(negotiation.team_id, len(ctx.teams)),
            total_teams=len(ctx.teams),
        )
    )


DEFAULT_EVALUATORS: dict[StakeholderType, Evaluator] = {
    StakeholderType.MANUFACTURER: _evaluate_manufacturer,
    StakeholderType.DRIVER: _evaluate_driver,
    StakeholderType.STAFF: _evaluate_staff,
    StakeholderType.SPONSOR: _evaluate_sponsor,
}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NegotiationUpdate:
    """Evaluated response for one negotiation, not yet applied.

    ``new_round`` is ``None`` only for NeedTime responses.
    """

    negotiation_id: str
    evaluation: EvaluationResult
    phase: NegotiationPhase
    new_round: NegotiationRound | None
    should_stop: bool


@dataclass
class NegotiationProcessResult:
    updates: list[NegotiationUpdate] = field(default_factory=list)

    @property
    def should_stop(self) -> bool:
        return any(u.should_stop for u in self.updates)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def is_due(negotiation: Negotiation, current_date: SimDate) -> bool:
    """Whether the counterparty answers *negotiation* today."""
    current = negotiation.latest_round
    if negotiation.phase != NegotiationPhase.AWAITING_RESPONSE or current is None:
        return False
    if current.offered_by != OfferedBy.PLAYER:
        return False
    return add_days(current.offered_date, negotiation.response_delay_days) <= current_date


class NegotiationEngine:
    """Dispatches due negotiations to stakeholder evaluators.

    Args:
        evaluators: Optional replacements keyed by stakeholder type; the
            resulting table must cover every :class:`StakeholderType`.

    Raises:
        ValueError: If a stakeholder type has no evaluator.
    """

    def __init__(self, evaluators: dict[StakeholderType, Evaluator] | None = None) -> None:
        table: dict[StakeholderType, Evaluator] = dict(DEFAULT_EVALUATORS)
        table.update(evaluators or {})
        missing = [t.value for t in StakeholderType if t not in table]
        if missing:
            raise ValueError(f"no evaluator registered for: {', '.join(missing)}")
        self.evaluators = table

    def process_day(
        self,
        negotiations: list[Negotiation],
        current_date: SimDate,
        context: NegotiationContext,
    ) -> NegotiationProcessResult:
        """Evaluate every due negotiation without modifying any of them."""
        result = NegotiationProcessResult()
        for negotiation in negotiations:
            if not is_due(negotiation, current_date):
                continue
            evaluation = self.evaluators[negotiation.stakeholder_type](negotiation, context)
            update = build_update(negotiation, evaluation, current_date)
            logger.debug(
                "negotiation %s: %s", negotiation.id, evaluation.response_type.value
            )
            result.updates.append(update)
        return result


def build_update(
    negotiation: Negotiation, evaluation: EvaluationResult, current_date: SimDate
) -> NegotiationUpdate:
    """Describe the round and phase change that *evaluation* causes."""
    phase = _NEXT_PHASE[evaluation.response_type]
    new_round: NegotiationRound | None = None
    if evaluation.response_type != ResponseType.NEED_TIME:
        previous = negotiation.latest_round
        terms = evaluation.counter_terms if evaluation.counter_terms is not None else previous.terms
        new_round = NegotiationRound(
            round_number=len(negotiation.rounds) + 1,
            offered_by=OfferedBy.COUNTERPARTY,
            terms=terms,
            offered_date=current_date,
            expires_date=add_days(current_date, DEFAULT_EXPIRATION_DAYS),
            response_type=evaluation.response_type,
            response_tone=evaluation.tone,
            response_date=current_date,
            is_ultimatum=evaluation.is_ultimatum,
        )
    should_stop: bool = evaluation.response_type in (ResponseType.ACCEPT, ResponseType.REJECT) or (
        evaluation.response_type == ResponseType.COUNTER and evaluation.is_ultimatum
    )
    return NegotiationUpdate(
        negotiation_id=negotiation.id,
        evaluation=evaluation,
        phase=phase,
        new_round=new_round,
        should_stop=should_stop,
    )


def apply_negotiation_update(
    negotiation: Negotiation,
    update: NegotiationUpdate,
    relationship_scores: dict[str, int],
) -> None:
    """Apply *update* to *negotiation* and the relationship table.

    Raises:
        NegotiationError: If the negotiation has already been closed.
    """
    if negotiation.is_closed:
        raise NegotiationError(
            f"negotiation {negotiation.id} is {negotiation.phase.value}; update refused",
            context={"negotiation_id": negotiation.id},
        )
    evaluation = update.evaluation
    if update.new_round is not None:
        negotiation.append_round(update.new_round)
        negotiation.response_delay_days = evaluation.delay_days
    else:
        negotiation.response_delay_days += evaluation.delay_days
    negotiation.phase = update.phase

    if evaluation.relationship_change:
        current = relationship_scores.get(negotiation.counterparty_id, DEFAULT_RELATIONSHIP)
        relationship_scores[negotiation.counterparty_id] = int(
            clamp_percentage(current + evaluation.relationship_change)
        )
    if negotiation.is_closed:
        logger.info(
            "negotiation %s with %s %s",
            negotiation.id,
            negotiation.counterparty_id,
            negotiation.phase.value.lower(),
        )
