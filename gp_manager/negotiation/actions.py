"""Team-side negotiation actions.

A team opens a negotiation with a first offer, may answer a counter
with a new offer (never after an ultimatum), accept the counterparty's
latest terms, or walk away.  Counterparties may also open talks with a
proposal of their own, which the team answers the same way.  Closed
negotiations refuse every action.
"""

from __future__ import annotations

from gp_manager.core.dates import SimDate, add_days
from gp_manager.errors import NegotiationError
from gp_manager.negotiation.models import (
    DEFAULT_EXPIRATION_DAYS,
    Negotiation,
    NegotiationPhase,
    NegotiationRound,
    OfferedBy,
    StakeholderType,
    Terms,
)


def _player_round(number: int, terms: Terms, date: SimDate, final_offer: bool) -> NegotiationRound:
    return NegotiationRound(
        round_number=number,
        offered_by=OfferedBy.PLAYER,
        terms=terms,
        offered_date=date,
        expires_date=add_days(date, DEFAULT_EXPIRATION_DAYS),
        is_ultimatum=final_offer,
    )


def _ensure_open(negotiation: Negotiation) -> None:
    if negotiation.is_closed:
        raise NegotiationError(
            f"negotiation {negotiation.id} is {negotiation.phase.value}",
            context={"negotiation_id": negotiation.id},
        )


def start_negotiation(
    negotiation_id: str,
    stakeholder_type: StakeholderType,
    team_id: str,
    counterparty_id: str,
    terms: Terms,
    date: SimDate,
    for_season: int = 1,
) -> Negotiation:
    """Open a negotiation with the team's first offer."""
    negotiation = Negotiation(
        id=negotiation_id,
        stakeholder_type=stakeholder_type,
        team_id=team_id,
        counterparty_id=counterparty_id,
        for_season=for_season,
    )
    negotiation.append_round(_player_round(1, terms, date, final_offer=False))
    return negotiation


def open_outreach(
    negotiation_id: str,
    stakeholder_type: StakeholderType,
    team_id: str,
    counterparty_id: str,
    terms: Terms,
    date: SimDate,
    for_season: int,
    expiry_days: int = DEFAULT_EXPIRATION_DAYS,
) -> Negotiation:
    """Open a negotiation with a proposal from the counterparty.

    The negotiation starts in ResponseReceived, so the team answers it
    with :func:`accept_counter`, :func:`submit_offer` or
    :func:`walk_away`.  Unanswered proposals lapse after *expiry_days*.
    """
    negotiation = Negotiation(
        id=negotiation_id,
        stakeholder_type=stakeholder_type,
        team_id=team_id,
        counterparty_id=counterparty_id,
        for_season=for_season,
    )
    negotiation.append_round(
        NegotiationRound(
            round_number=1,
            offered_by=OfferedBy.COUNTERPARTY,
            terms=terms,
            offered_date=date,
            expires_date=add_days(date, expiry_days),
        )
    )
    negotiation.phase = NegotiationPhase.RESPONSE_RECEIVED
    return negotiation


def submit_offer(
    negotiation: Negotiation, terms: Terms, date: SimDate, final_offer: bool = False
) -> None:
    """Answer a counter-offer with new terms.

    Args:
        negotiation: Negotiation in ResponseReceived.
        terms: The player's new terms.
        date: Offer date; the counterparty's delay runs from here.
        final_offer: Mark the offer as the player's ultimatum.

    Raises:
        NegotiationError: If it is not the player's turn, the negotiation
            is closed, or the counterparty issued an ultimatum.
    """
    _ensure_open(negotiation)
    if negotiation.phase != NegotiationPhase.RESPONSE_RECEIVED:
        raise NegotiationError(
            f"negotiation {negotiation.id} is waiting for the counterparty",
            context={"phase": negotiation.phase.value},
        )
    latest = negotiation.latest_round
    if latest is not None and latest.is_ultimatum:
        raise NegotiationError(
            f"negotiation {negotiation.id}: ultimatum received, accept or walk away",
            context={"round": latest.round_number},
        )
    negotiation.append_round(_player_round(len(negotiation.rounds) + 1, terms, date, final_offer))
    negotiation.phase = NegotiationPhase.AWAITING_RESPONSE


def accept_counter(negotiation: Negotiation) -> None:
    """Accept the counterparty's latest terms, completing the deal."""
    _ensure_open(negotiation)
    if negotiation.phase != NegotiationPhase.RESPONSE_RECEIVED:
        raise NegotiationError(
            f"negotiation {negotiation.id} has no counter-offer to accept",
            context={"phase": negotiation.phase.value},
        )
    negotiation.phase = NegotiationPhase.COMPLETED


def walk_away(negotiation: Negotiation) -> None:
    """Abandon the negotiation."""
    _ensure_open(negotiation)
    negotiation.phase = NegotiationPhase.FAILED


def expire_stale(negotiations: list[Negotiation], date: SimDate) -> list[Negotiation]:
    """Fail every unanswered counterparty proposal whose expiry has passed.

    Returns:
        The negotiations that lapsed on *date*.
    """
    lapsed: list[Negotiation] = []
    for negotiation in negotiations:
        if negotiation.phase != NegotiationPhase.RESPONSE_RECEIVED:
            continue
        latest = negotiation.latest_round
        if latest is None or latest.offered_by != OfferedBy.COUNTERPARTY:
            continue
        if latest.expires_date < date:
            negotiation.phase = NegotiationPhase.FAILED
            lapsed.append(negotiation)
    return lapsed
