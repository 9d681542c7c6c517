"""Active contracts created from concluded negotiations.

A contract may start in a later season than the one it was signed in.
Roster moves (a driver changing team, a chief replacing an incumbent, a
new engine supplier) happen when the contract starts: at signing for
deals covering the current season, otherwise at the season rollover
through :func:`start_contracts`.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import Iterable

from gp_manager.core.entities import Chief, Driver, Manufacturer, Sponsor, Team
from gp_manager.core.state import INITIAL_SPONSOR_SATISFACTION, TeamRuntimeState
from gp_manager.errors import NegotiationError
from gp_manager.negotiation.models import (
    DriverTerms,
    ManufacturerTerms,
    Negotiation,
    NegotiationPhase,
    SponsorTerms,
    StaffTerms,
    StakeholderType,
    Terms,
)
from gp_manager.negotiation.sponsor import TIER_PLACEMENT

logger = logging.getLogger(__name__)

INITIAL_CONTRACT_YEARS: int = 2
INITIAL_ENGINE_MARGIN: float = 1.15
SEATS_PER_TEAM: int = 2


@dataclass(frozen=True)
class ActiveContract:
    """A signed deal, valid from ``start_season`` to ``end_season`` inclusive."""

    stakeholder_type: StakeholderType
    team_id: str
    counterparty_id: str
    terms: Terms
    start_season: int
    end_season: int

    def is_active(self, season: int) -> bool:
        return self.start_season <= season <= self.end_season

    def conflicts_with(self, other: ActiveContract) -> bool:
        """Whether both deals cannot run in the same season.

        A driver or chief works for one team, a team has one engine
        supplier, and a sponsor holds one deal per team.
        """
        if self.stakeholder_type != other.stakeholder_type:
            return False
        if self.stakeholder_type == StakeholderType.MANUFACTURER:
            return self.team_id == other.team_id
        if self.stakeholder_type == StakeholderType.SPONSOR:
            return self.team_id == other.team_id and self.counterparty_id == other.counterparty_id
        return self.counterparty_id == other.counterparty_id


# ---------------------------------------------------------------------------
# Race seats
# ---------------------------------------------------------------------------


def seated_driver_ids(
    team_id: str,
    season: int,
    current_season: int,
    contracts: Iterable[ActiveContract],
    drivers: dict[str, Driver],
) -> set[str]:
    """Drivers holding one of *team_id*'s seats in *season*.

    Contracts decide future seasons; for the current season the roster
    counts as well.
    """
    seated = {
        c.counterparty_id
        for c in contracts
        if c.stakeholder_type == StakeholderType.DRIVER and c.team_id == team_id and c.is_active(season)
    }
    if season == current_season:
        seated |= {d.id for d in drivers.values() if d.team_id == team_id}
    return seated


def driver_talks(team_id: str, season: int, negotiations: Iterable[Negotiation]) -> set[str]:
    """Drivers *team_id* is still negotiating with for *season*."""
    return {
        n.counterparty_id
        for n in negotiations
        if not n.is_closed
        and n.stakeholder_type == StakeholderType.DRIVER
        and n.team_id == team_id
        and n.for_season == season
    }


def has_seat_for(
    driver_id: str,
    team_id: str,
    season: int,
    current_season: int,
    contracts: Iterable[ActiveContract],
    drivers: dict[str, Driver],
    negotiations: Iterable[Negotiation] = (),
) -> bool:
    """Whether *team_id* can give *driver_id* a seat in *season*.

    A driver already seated always fits.  Open talks with other drivers
    in *negotiations* count as taken seats.
    """
    seated = seated_driver_ids(team_id, season, current_season, contracts, drivers)
    if driver_id in seated:
        return True
    claimed = (seated | driver_talks(team_id, season, negotiations)) - {driver_id}
    return len(claimed) < SEATS_PER_TEAM


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


def join_team(
    contract: ActiveContract,
    teams: dict[str, Team],
    drivers: dict[str, Driver],
    chiefs: dict[str, Chief],
    team_states: dict[str, TeamRuntimeState],
) -> None:
    """Apply the roster move a starting contract brings.

    A driver or chief joins the team (a chief displaces the incumbent of
    the same role), a sponsor starts with initial satisfaction and a
    manufacturer becomes the team's engine supplier.
    """
    terms = contract.terms
    team_id, counterparty = contract.team_id, contract.counterparty_id
    if isinstance(terms, DriverTerms):
        driver = drivers.get(counterparty)
        if driver is not None:
            driver.team_id = team_id
            driver.salary = terms.salary
    elif isinstance(terms, StaffTerms):
        chief = chiefs.get(counterparty)
        if chief is not None:
            for other in chiefs.values():
                if other.team_id == team_id and other.role == chief.role and other.id != chief.id:
                    other.team_id = None
            chief.team_id = team_id
            chief.salary = terms.salary
    elif isinstance(terms, SponsorTerms):
        state = team_states.get(team_id)
        if state is not None:
            state.sponsor_satisfaction[counterparty] = INITIAL_SPONSOR_SATISFACTION
    elif isinstance(terms, ManufacturerTerms):
        team = teams.get(team_id)
        if team is not None:
            team.manufacturer_id = counterparty


def sign_contract(
    negotiation: Negotiation,
    season: int,
    teams: dict[str, Team],
    drivers: dict[str, Driver],
    chiefs: dict[str, Chief],
    team_states: dict[str, TeamRuntimeState],
) -> ActiveContract:
    """Turn a completed negotiation into an active contract.

    The contract starts in ``negotiation.for_season`` (never before
    *season*).  When it starts now, :func:`join_team` updates the roster
    straight away.

    Raises:
        NegotiationError: If the negotiation has not been completed.
    """
    final = negotiation.latest_round
    if negotiation.phase != NegotiationPhase.COMPLETED or final is None:
        raise NegotiationError(
            f"negotiation {negotiation.id} is not completed",
            context={"phase": negotiation.phase.value},
        )
    start: int = max(season, negotiation.for_season)
    contract = ActiveContract(
        stakeholder_type=negotiation.stakeholder_type,
        team_id=negotiation.team_id,
        counterparty_id=negotiation.counterparty_id,
        terms=final.terms,
        start_season=start,
        end_season=start + final.terms.duration - 1,
    )
    if start <= season:
        join_team(contract, teams, drivers, chiefs, team_states)
    logger.info(
        "%s signed %s %s for seasons %d-%d",
        contract.team_id,
        contract.stakeholder_type.value,
        contract.counterparty_id,
        contract.start_season,
        contract.end_season,
    )
    return contract


def merge_contract(
    contracts: list[ActiveContract], contract: ActiveContract, season: int
) -> list[ActiveContract]:
    """Add *contract*, cutting short every deal it conflicts with.

    A conflicting deal ends the season before *contract* starts and is
    dropped when that leaves nothing from *season* on.
    """
    merged: list[ActiveContract] = []
    for existing in contracts:
        if existing.conflicts_with(contract) and existing.end_season >= contract.start_season:
            end: int = contract.start_season - 1
            if end < max(season, existing.start_season):
                continue
            existing = dataclasses.replace(existing, end_season=end)
        merged.append(existing)
    merged.append(contract)
    return merged


def supersedes(contract: ActiveContract, negotiation: Negotiation, season: int) -> bool:
    """Whether signing *contract* leaves the open *negotiation* nothing to agree."""
    if negotiation.is_closed or negotiation.stakeholder_type != contract.stakeholder_type:
        return False
    if not contract.is_active(max(season, negotiation.for_season)):
        return False
    if contract.stakeholder_type == StakeholderType.MANUFACTURER:
        return negotiation.team_id == contract.team_id
    if contract.stakeholder_type == StakeholderType.SPONSOR:
        return (
            negotiation.team_id == contract.team_id
            and negotiation.counterparty_id == contract.counterparty_id
        )
    return negotiation.counterparty_id == contract.counterparty_id


# ---------------------------------------------------------------------------
# Season rollover
# ---------------------------------------------------------------------------


def lapse_contracts(
    contracts: list[ActiveContract],
    season: int,
    drivers: dict[str, Driver],
    chiefs: dict[str, Chief],
) -> list[ActiveContract]:
    """Drop deals that ended before *season* and release their people.

    A driver or chief whose contract ran out leaves the team unless
    another deal keeps them there.

    Returns:
        The contracts still in force in *season* or later.
    """
    kept = [c for c in contracts if c.end_season >= season]
    for contract in contracts:
        if contract.end_season >= season:
            continue
        entity: Driver | Chief | None = None
        if contract.stakeholder_type == StakeholderType.DRIVER:
            entity = drivers.get(contract.counterparty_id)
        elif contract.stakeholder_type == StakeholderType.STAFF:
            entity = chiefs.get(contract.counterparty_id)
        if entity is None or entity.team_id != contract.team_id:
            continue
        renewed = any(
            c.counterparty_id == entity.id and c.team_id == contract.team_id and c.is_active(season)
            for c in kept
        )
        if not renewed:
            entity.team_id = None
            logger.info("%s left %s as their contract ran out", entity.id, contract.team_id)
    return kept


def start_contracts(
    contracts: list[ActiveContract],
    season: int,
    teams: dict[str, Team],
    drivers: dict[str, Driver],
    chiefs: dict[str, Chief],
    team_states: dict[str, TeamRuntimeState],
) -> list[ActiveContract]:
    """Apply the roster moves of every deal starting in *season*."""
    starting = [c for c in contracts if c.start_season == season]
    for contract in starting:
        join_team(contract, teams, drivers, chiefs, team_states)
    return starting


def prune_roster_contracts(
    contracts: list[ActiveContract],
    season: int,
    drivers: dict[str, Driver],
    chiefs: dict[str, Chief],
) -> list[ActiveContract]:
    """Drop current driver and staff deals whose holder is no longer with the team.

    Covers retirements and chiefs displaced by a new hire.  Deals that
    start in a later season are kept.
    """
    kept: list[ActiveContract] = []
    for contract in contracts:
        people: dict | None = {
            StakeholderType.DRIVER: drivers,
            StakeholderType.STAFF: chiefs,
        }.get(contract.stakeholder_type)
        if people is not None and contract.start_season <= season:
            holder = people.get(contract.counterparty_id)
            if holder is None or holder.team_id != contract.team_id:
                continue
        kept.append(contract)
    return kept


# ---------------------------------------------------------------------------
# New game
# ---------------------------------------------------------------------------


def initial_engine_price(manufacturer: Manufacturer) -> int:
    return math.ceil(manufacturer.costs.base_engine * 2 * INITIAL_ENGINE_MARGIN)


def initial_contracts(
    teams: list[Team],
    drivers: list[Driver],
    sponsors: dict[str, Sponsor],
    manufacturers: dict[str, Manufacturer],
    season: int,
) -> list[ActiveContract]:
    """Contracts already in force when a new game starts."""
    end: int = season + INITIAL_CONTRACT_YEARS - 1
    contracts: list[ActiveContract] = []
    for driver in drivers:
        if driver.team_id is None:
            continue
        contracts.append(
            ActiveContract(
                StakeholderType.DRIVER,
                driver.team_id,
                driver.id,
                DriverTerms(salary=driver.salary, duration=INITIAL_CONTRACT_YEARS),
                season,
                end,
            )
        )
    for team in teams:
        for sponsor_id in team.sponsor_ids:
            sponsor = sponsors[sponsor_id]
            contracts.append(
                ActiveContract(
                    StakeholderType.SPONSOR,
                    team.id,
                    sponsor_id,
                    SponsorTerms(
                        annual_payment=sponsor.payment,
                        duration=INITIAL_CONTRACT_YEARS,
                        placement=TIER_PLACEMENT[sponsor.tier],
                    ),
                    season,
                    end,
                )
            )
        if team.manufacturer_id is not None:
            contracts.append(
                ActiveContract(
                    StakeholderType.MANUFACTURER,
                    team.id,
                    team.manufacturer_id,
                    ManufacturerTerms(
                        annual_cost=initial_engine_price(manufacturers[team.manufacturer_id]),
                        duration=INITIAL_CONTRACT_YEARS,
                    ),
                    season,
                    end,
                )
            )
    return contracts
