"""Negotiations opened by someone other than the player.

Counterparties look for deals on a fixed calendar: sponsors on April 1,
the current engine supplier on May 1 and the other manufacturers on June
1, chiefs on the 1st and 15th of May and June, and drivers whose
contracts run out on the 1st and 15th of every month from July.  Rival
teams go after drivers themselves whenever a seat is free.

Every function here only proposes; :class:`OutreachProposal` objects are
turned into negotiations by the game.
"""

from __future__ import annotations

from dataclasses import dataclass

from gp_manager.core.dates import SimDate, days_between
from gp_manager.core.entities import Chief, Driver, Manufacturer, Sponsor, SponsorTier, Team
from gp_manager.negotiation.contracts import (
    SEATS_PER_TEAM,
    ActiveContract,
    driver_talks,
    initial_engine_price,
    seated_driver_ids,
)
from gp_manager.negotiation.driver import market_value
from gp_manager.negotiation.models import (
    DEFAULT_EXPIRATION_DAYS,
    DriverTerms,
    ManufacturerTerms,
    Negotiation,
    OfferedBy,
    SponsorTerms,
    StakeholderType,
    Terms,
)
from gp_manager.negotiation.sponsor import TIER_PLACEMENT, has_rival_conflict
from gp_manager.negotiation.staff import evaluate_staff_approach
from gp_manager.negotiation.team import evaluate_driver_approach, team_shortlist

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SPONSOR_OUTREACH_MONTH: int = 4
CURRENT_SUPPLIER_MONTH: int = 5
OTHER_MANUFACTURERS_MONTH: int = 6
STAFF_OUTREACH_MONTHS: tuple[int, int] = (5, 6)
DRIVER_OUTREACH_START_MONTH: int = 7
TEAM_SCOUTING_START_MONTH: int = 9
OUTREACH_DAYS: tuple[int, int] = (1, 15)

DRIVER_CONTRACT_YEARS: int = 2
DRIVER_OUTREACH_COOLDOWN_DAYS: int = 14
ENGINE_OUTREACH_YEARS: int = 2
SPONSOR_OUTREACH_YEARS: int = 2
STAFF_OUTREACH_EXPIRY_DAYS: int = 30

TITLE_SPONSOR_TARGETS: int = 3
MAJOR_SPONSOR_TARGETS: int = 6
MAX_MINOR_SPONSORS: int = 2


@dataclass(frozen=True)
class OutreachProposal:
    """A negotiation someone wants to open.

    Attributes:
        stakeholder_type: Kind of deal.
        team_id: Team on the other side of the table.
        counterparty_id: Manufacturer, driver, chief or sponsor id.
        terms: Opening terms.
        for_season: First season the deal would cover.
        opened_by: ``COUNTERPARTY`` for an approach to the team,
            ``PLAYER`` when the team itself makes the first offer.
        expiry_days: Days the team has to answer an approach.
        reason: Short tag describing the trigger.
    """

    stakeholder_type: StakeholderType
    team_id: str
    counterparty_id: str
    terms: Terms
    for_season: int
    opened_by: OfferedBy = OfferedBy.COUNTERPARTY
    expiry_days: int = DEFAULT_EXPIRATION_DAYS
    reason: str = ""

    @property
    def key(self) -> tuple[StakeholderType, str, str, int]:
        return (self.stakeholder_type, self.team_id, self.counterparty_id, self.for_season)


@dataclass
class MarketView:
    """Everything the outreach rules look at on one day."""

    date: SimDate
    season: int
    year: int
    player_team_id: str
    teams: dict[str, Team]
    drivers: dict[str, Driver]
    chiefs: dict[str, Chief]
    sponsors: dict[str, Sponsor]
    manufacturers: dict[str, Manufacturer]
    contracts: list[ActiveContract]
    negotiations: list[Negotiation]
    positions: dict[str, int]

    @property
    def next_season(self) -> int:
        return self.season + 1

    def position(self, team_id: str) -> int:
        return self.positions.get(team_id, len(self.teams))

    def contracts_for(
        self, stakeholder_type: StakeholderType, season: int, team_id: str | None = None
    ) -> list[ActiveContract]:
        return [
            c
            for c in self.contracts
            if c.stakeholder_type == stakeholder_type
            and c.is_active(season)
            and (team_id is None or c.team_id == team_id)
        ]

    def has_negotiation(
        self, stakeholder_type: StakeholderType, team_id: str, counterparty_id: str, for_season: int
    ) -> bool:
        return any(
            n.stakeholder_type == stakeholder_type
            and n.team_id == team_id
            and n.counterparty_id == counterparty_id
            and n.for_season == for_season
            for n in self.negotiations
        )

    def recently_talked(self, team_id: str, driver_id: str, for_season: int) -> bool:
        for n in self.negotiations:
            if (
                n.stakeholder_type != StakeholderType.DRIVER
                or n.team_id != team_id
                or n.counterparty_id != driver_id
                or n.for_season != for_season
            ):
                continue
            if not n.is_closed:
                return True
            started = n.started_on
            if started is not None and days_between(started, self.date) < DRIVER_OUTREACH_COOLDOWN_DAYS:
                return True
        return False

    def open_seats(self, team_id: str, season: int) -> int:
        seated = seated_driver_ids(team_id, season, self.season, self.contracts, self.drivers)
        return SEATS_PER_TEAM - len(seated | driver_talks(team_id, season, self.negotiations))


# ---------------------------------------------------------------------------
# Counterparty approaches
# ---------------------------------------------------------------------------


def manufacturer_outreach(view: MarketView) -> list[OutreachProposal]:
    """Engine suppliers courting teams with no deal for next season."""
    month = view.date.month
    if view.date.day != 1 or month not in (CURRENT_SUPPLIER_MONTH, OTHER_MANUFACTURERS_MONTH):
        return []
    secured = {c.team_id for c in view.contracts_for(StakeholderType.MANUFACTURER, view.next_season)}
    proposals: list[OutreachProposal] = []
    for team in view.teams.values():
        if team.id in secured:
            continue
        deals = view.contracts_for(StakeholderType.MANUFACTURER, view.season, team.id)
        current = deals[0].counterparty_id if deals else None
        if month == CURRENT_SUPPLIER_MONTH:
            suppliers = [view.manufacturers[current]] if current in view.manufacturers else []
            reason = "renewal"
        else:
            suppliers = [m for m in view.manufacturers.values() if m.id != current]
            reason = "poach"
        for manufacturer in suppliers:
            if view.has_negotiation(StakeholderType.MANUFACTURER, team.id, manufacturer.id, view.next_season):
                continue
            proposals.append(
                OutreachProposal(
                    StakeholderType.MANUFACTURER,
                    team.id,
                    manufacturer.id,
                    ManufacturerTerms(
                        annual_cost=initial_engine_price(manufacturer), duration=ENGINE_OUTREACH_YEARS
                    ),
                    view.next_season,
                    reason=reason,
                )
            )
    return proposals


def driver_outreach(view: MarketView) -> list[OutreachProposal]:
    """Drivers out of contract after this season asking for a seat.

    A driver approaches every team above their own in the standings and
    every team with a seat free next season; the team must be interested
    for talks to open.
    """
    if view.date.month < DRIVER_OUTREACH_START_MONTH or view.date.day not in OUTREACH_DAYS:
        return []
    all_drivers = list(view.drivers.values())
    signed_next = {c.counterparty_id for c in view.contracts_for(StakeholderType.DRIVER, view.next_season)}
    proposals: list[OutreachProposal] = []
    for driver in all_drivers:
        if driver.team_id is None or driver.id in signed_next:
            continue
        expiring = any(
            c.counterparty_id == driver.id and c.team_id == driver.team_id and c.end_season == view.season
            for c in view.contracts_for(StakeholderType.DRIVER, view.season)
        )
        if not expiring:
            continue
        own_position = view.position(driver.team_id)
        for team in view.teams.values():
            if team.id == driver.team_id:
                continue
            vacancy = view.open_seats(team.id, view.next_season) > 0
            if view.position(team.id) >= own_position and not vacancy:
                continue
            if view.recently_talked(team.id, driver.id, view.next_season):
                continue
            evaluation = evaluate_driver_approach(
                driver,
                team,
                [d for d in all_drivers if d.team_id == team.id],
                view.positions,
                all_drivers,
                view.year,
                vacancy,
                DRIVER_CONTRACT_YEARS,
            )
            if not evaluation.interested:
                continue
            proposals.append(
                OutreachProposal(
                    StakeholderType.DRIVER,
                    team.id,
                    driver.id,
                    DriverTerms(salary=driver.salary, duration=DRIVER_CONTRACT_YEARS),
                    view.next_season,
                    reason=evaluation.reason.value,
                )
            )
    return proposals


def staff_outreach(view: MarketView) -> list[OutreachProposal]:
    """Free or out-of-contract chiefs offering their services."""
    if view.date.month not in STAFF_OUTREACH_MONTHS or view.date.day not in OUTREACH_DAYS:
        return []
    expiring = {
        c.counterparty_id
        for c in view.contracts_for(StakeholderType.STAFF, view.season)
        if c.end_season == view.season
    }
    signed_next = {c.counterparty_id for c in view.contracts_for(StakeholderType.STAFF, view.next_season)}
    teams = list(view.teams.values())
    chiefs = list(view.chiefs.values())
    proposals: list[OutreachProposal] = []
    for chief in chiefs:
        if chief.id in signed_next or (chief.team_id is not None and chief.id not in expiring):
            continue
        for team in teams:
            if view.has_negotiation(StakeholderType.STAFF, team.id, chief.id, view.next_season):
                continue
            terms = evaluate_staff_approach(chief, team, teams, chiefs)
            if terms is None:
                continue
            proposals.append(
                OutreachProposal(
                    StakeholderType.STAFF,
                    team.id,
                    chief.id,
                    terms,
                    view.next_season,
                    expiry_days=STAFF_OUTREACH_EXPIRY_DAYS,
                    reason="free_agent" if chief.team_id is None else "seeking_upgrade",
                )
            )
    return proposals


def sponsor_targets(view: MarketView, sponsor: Sponsor) -> list[Team]:
    """Teams a sponsor of this tier approaches."""
    ranked = sorted(view.teams.values(), key=lambda t: view.position(t.id))
    if sponsor.tier == SponsorTier.TITLE:
        return ranked[:TITLE_SPONSOR_TARGETS]
    if sponsor.tier == SponsorTier.MAJOR:
        return ranked[:MAJOR_SPONSOR_TARGETS]
    targets: list[Team] = []
    for team in ranked:
        minor = [
            c
            for c in view.contracts_for(StakeholderType.SPONSOR, view.season, team.id)
            if c.counterparty_id in view.sponsors
            and view.sponsors[c.counterparty_id].tier == SponsorTier.MINOR
        ]
        if len(minor) < MAX_MINOR_SPONSORS:
            targets.append(team)
    return targets


def sponsor_outreach(view: MarketView) -> list[OutreachProposal]:
    """Uncommitted sponsors pitching to the teams their tier aims at."""
    if view.date.month != SPONSOR_OUTREACH_MONTH or view.date.day != 1:
        return []
    committed = {c.counterparty_id for c in view.contracts_for(StakeholderType.SPONSOR, view.next_season)}
    proposals: list[OutreachProposal] = []
    for sponsor in view.sponsors.values():
        if sponsor.id in committed:
            continue
        for team in sponsor_targets(view, sponsor):
            existing = [c.counterparty_id for c in team_deals(view, StakeholderType.SPONSOR, team.id)]
            if has_rival_conflict(sponsor, existing, view.sponsors):
                continue
            if view.has_negotiation(StakeholderType.SPONSOR, team.id, sponsor.id, view.next_season):
                continue
            proposals.append(
                OutreachProposal(
                    StakeholderType.SPONSOR,
                    team.id,
                    sponsor.id,
                    SponsorTerms(
                        annual_payment=sponsor.payment,
                        duration=SPONSOR_OUTREACH_YEARS,
                        placement=TIER_PLACEMENT[sponsor.tier],
                    ),
                    view.next_season,
                    reason=sponsor.tier.value,
                )
            )
    return proposals


def team_deals(view: MarketView, stakeholder_type: StakeholderType, team_id: str) -> list[ActiveContract]:
    """*team_id*'s deals of one type running this season or next."""
    return [
        c
        for c in view.contracts
        if c.stakeholder_type == stakeholder_type
        and c.team_id == team_id
        and (c.is_active(view.season) or c.is_active(view.next_season))
    ]


# ---------------------------------------------------------------------------
# Rival teams
# ---------------------------------------------------------------------------


def _free_for(view: MarketView, driver: Driver, season: int) -> bool:
    if season == view.season:
        return driver.team_id is None
    return not any(c.counterparty_id == driver.id for c in view.contracts_for(StakeholderType.DRIVER, season))


def team_driver_approaches(view: MarketView) -> list[OutreachProposal]:
    """Rival teams offering their free seats to the best available drivers.

    An empty seat this season goes to a free agent straight away; seats
    free next season are filled from September on the usual outreach
    days.  Each driver is approached by one team at a time.
    """
    all_drivers = list(view.drivers.values())
    busy: set[tuple[str, int]] = {
        (n.counterparty_id, n.for_season)
        for n in view.negotiations
        if not n.is_closed and n.stakeholder_type == StakeholderType.DRIVER
    }
    seasons = [view.season]
    if view.date.month >= TEAM_SCOUTING_START_MONTH and view.date.day in OUTREACH_DAYS:
        seasons.append(view.next_season)

    proposals: list[OutreachProposal] = []
    for team in sorted(view.teams.values(), key=lambda t: view.position(t.id)):
        if team.id == view.player_team_id:
            continue
        for season in seasons:
            seats = view.open_seats(team.id, season)
            if seats <= 0:
                continue
            for ranked in team_shortlist(team, view.positions, all_drivers, view.year, DRIVER_CONTRACT_YEARS):
                if seats <= 0:
                    break
                driver = ranked.driver
                if (driver.id, season) in busy or not _free_for(view, driver, season):
                    continue
                if view.recently_talked(team.id, driver.id, season):
                    continue
                proposals.append(
                    OutreachProposal(
                        StakeholderType.DRIVER,
                        team.id,
                        driver.id,
                        DriverTerms(salary=market_value(driver, all_drivers), duration=DRIVER_CONTRACT_YEARS),
                        season,
                        opened_by=OfferedBy.PLAYER,
                        reason="vacancy",
                    )
                )
                busy.add((driver.id, season))
                seats -= 1
    return proposals


def collect_outreach(view: MarketView) -> list[OutreachProposal]:
    """Every proposal for the day, each negotiation key at most once."""
    proposals: list[OutreachProposal] = []
    seen: set[tuple[StakeholderType, str, str, int]] = set()
    for rule in (
        sponsor_outreach,
        manufacturer_outreach,
        staff_outreach,
        driver_outreach,
        team_driver_approaches,
    ):
        for proposal in rule(view):
            if proposal.key not in seen:
                seen.add(proposal.key)
                proposals.append(proposal)
    return proposals
