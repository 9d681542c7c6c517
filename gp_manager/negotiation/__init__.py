"""Contract negotiations between teams and stakeholders."""

from gp_manager.negotiation.actions import (
    accept_counter,
    expire_stale,
    open_outreach,
    start_negotiation,
    submit_offer,
    walk_away,
)
from gp_manager.negotiation.contracts import (
    SEATS_PER_TEAM,
    ActiveContract,
    has_seat_for,
    initial_contracts,
    sign_contract,
)
from gp_manager.negotiation.engine import (
    NegotiationContext,
    NegotiationEngine,
    NegotiationProcessResult,
    NegotiationUpdate,
    apply_negotiation_update,
    is_due,
)
from gp_manager.negotiation.models import (
    DriverTerms,
    EvaluationResult,
    ManufacturerTerms,
    Negotiation,
    NegotiationPhase,
    NegotiationRound,
    OfferedBy,
    ResponseTone,
    ResponseType,
    SponsorPlacement,
    SponsorTerms,
    StaffTerms,
    StakeholderType,
    Terms,
)
from gp_manager.negotiation.outreach import MarketView, OutreachProposal, collect_outreach
from gp_manager.negotiation.team import ApproachReason, TeamEvaluationResult, evaluate_driver_approach

__all__ = [
    "SEATS_PER_TEAM",
    "ActiveContract",
    "ApproachReason",
    "DriverTerms",
    "EvaluationResult",
    "ManufacturerTerms",
    "MarketView",
    "Negotiation",
    "NegotiationContext",
    "NegotiationEngine",
    "NegotiationPhase",
    "NegotiationProcessResult",
    "NegotiationRound",
    "NegotiationUpdate",
    "OfferedBy",
    "OutreachProposal",
    "ResponseTone",
    "ResponseType",
    "SponsorPlacement",
    "SponsorTerms",
    "StaffTerms",
    "StakeholderType",
    "TeamEvaluationResult",
    "Terms",
    "accept_counter",
    "apply_negotiation_update",
    "collect_outreach",
    "evaluate_driver_approach",
    "expire_stale",
    "has_seat_for",
    "initial_contracts",
    "is_due",
    "open_outreach",
    "sign_contract",
    "start_negotiation",
    "submit_offer",
    "walk_away",
]
