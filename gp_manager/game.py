"""Game orchestration: the daily tick pipeline and player actions.

A :class:`GameState` owns every mutable object of a running game,
including the random generator, so ``copy.deepcopy(game)`` produces an
independent game whose future ticks are identical.  :func:`run_tick`
processes exactly one day in a fixed order:

1. turn engine (drift, design, testing) and its state changes,
2. part deliveries, extra financial changes and market salary moves,
3. race processing on the last day of a pending race week,
4. lapsed proposals, negotiation responses and contract signing,
5. rival teams answering their counter-offers,
6. new approaches from counterparties and rival teams,
7. news for everything above.

Blocked progression never raises; it comes back as a
:class:`~gp_manager.core.turn.BlockedResult` with the state untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
from numpy.random import Generator

from gp_manager.config import ContentRepository, Rules
from gp_manager.core import news
from gp_manager.core.dates import SimDate, add_days, advance_day, season_start_date, season_to_year, week_number
from gp_manager.core.design import (
    SOLUTION_HANDLING_GAIN,
    ChassisDesign,
    HandlingProblem,
    TechAttribute,
    TechComponent,
    TechnologyProject,
    initial_design_state,
    new_current_chassis,
)
from gp_manager.core.engines import ContentRegulationEngine, EngineRegistry, record_race_usage
from gp_manager.core.entities import (
    Chief,
    Circuit,
    Driver,
    GamePhase,
    Manufacturer,
    Sponsor,
    Team,
    TyreCompound,
)
from gp_manager.core.news import CalendarEvent, EventKind, EventLog
from gp_manager.core.race import RaceWeekendResult, race_state_changes
from gp_manager.core.season_end import (
    SeasonEndResult,
    apply_season_end,
    archive_season,
    generate_calendar,
    process_season_end,
)
from gp_manager.core.standings import (
    ConstructorStanding,
    DriverStanding,
    constructor_positions,
    initial_standings,
    update_standings,
)
from gp_manager.core.state import (
    CalendarEntry,
    DriverRuntimeState,
    PendingPart,
    TeamRuntimeState,
    apply_driver_state_changes,
    apply_team_state_changes,
    initial_driver_state,
    initial_team_state,
    pending_race_in_week,
)
from gp_manager.core.testing import apply_testing_result, start_session
from gp_manager.core.turn import (
    BLOCKED_NO_RACE,
    BLOCKED_POST_SEASON,
    BlockedResult,
    TurnInput,
    is_post_season,
)
from gp_manager.errors import GameIntegrityError, NegotiationError
from gp_manager.negotiation import actions
from gp_manager.negotiation.contracts import (
    ActiveContract,
    has_seat_for,
    initial_contracts,
    lapse_contracts,
    merge_contract,
    prune_roster_contracts,
    sign_contract,
    start_contracts,
    supersedes,
)
from gp_manager.negotiation.engine import NegotiationContext, NegotiationUpdate, apply_negotiation_update
from gp_manager.negotiation.models import (
    Negotiation,
    NegotiationPhase,
    OfferedBy,
    StakeholderType,
    Terms,
)
from gp_manager.negotiation.outreach import MarketView, collect_outreach
from gp_manager.negotiation.sponsor import has_rival_conflict

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PART_BUILD_DAYS: int = 7
DEFAULT_CHASSIS_ALLOCATION: int = 40
DEFAULT_SOLUTION_ALLOCATION: int = 30
DEFAULT_TEST_ALLOCATION: int = 50

STOP_BLOCKED: str = "blocked"
STOP_CRITICAL_EVENT: str = "critical-event"
STOP_NEGOTIATION: str = "negotiation"
BLOCKED_SEASON_IN_PROGRESS: str = "season-in-progress"
RIVAL_RESPONSE_DAYS: int = 3


# ---------------------------------------------------------------------------
# State containers
# ---------------------------------------------------------------------------


@dataclass
class ArchivedSeason:
    season: int
    calendar: list[CalendarEntry]
    driver_standings: list[DriverStanding]
    constructor_standings: list[ConstructorStanding]


@dataclass
class GameState:
    """Complete mutable state of one game.

    Attributes:
        season: Current season number (1-based).
        current_date: Simulation date.
        phase: Current game phase.
        player_team_id: Team run by the player.
        rules: Championship settings.
        teams: Constructors by id.
        drivers: Every driver by id, free agents included.
        chiefs: Every chief by id.
        circuits: Circuits by id.
        sponsors: Sponsors by id.
        manufacturers: Engine manufacturers by id.
        compounds: Tyre compounds.
        calendar: Races of the current season.
        driver_states: Runtime state per driver.
        team_states: Runtime state per team.
        driver_standings: Drivers' championship table.
        constructor_standings: Constructors' championship table.
        contracts: Contracts in force.
        negotiations: Every negotiation, open and closed.
        relationship_scores: Counterparty id to relationship (0-100).
        events: Append-only news log.
        rng: Random source for every draw in the game.
        engines: Engines used by the tick pipeline.
        archived_seasons: Finished seasons.
    """

    season: int
    current_date: SimDate
    phase: GamePhase
    player_team_id: str
    rules: Rules
    teams: dict[str, Team]
    drivers: dict[str, Driver]
    chiefs: dict[str, Chief]
    circuits: dict[str, Circuit]
    sponsors: dict[str, Sponsor]
    manufacturers: dict[str, Manufacturer]
    compounds: list[TyreCompound]
    calendar: list[CalendarEntry]
    driver_states: dict[str, DriverRuntimeState]
    team_states: dict[str, TeamRuntimeState]
    driver_standings: list[DriverStanding]
    constructor_standings: list[ConstructorStanding]
    rng: Generator
    engines: EngineRegistry
    contracts: list[ActiveContract] = field(default_factory=list)
    negotiations: list[Negotiation] = field(default_factory=list)
    relationship_scores: dict[str, int] = field(default_factory=dict)
    events: EventLog = field(default_factory=EventLog)
    archived_seasons: list[ArchivedSeason] = field(default_factory=list)

    @property
    def player_team(self) -> Team:
        return self.teams[self.player_team_id]

    @property
    def year(self) -> int:
        return season_to_year(self.season, self.rules.base_year)

    def negotiation(self, negotiation_id: str) -> Negotiation:
        for negotiation in self.negotiations:
            if negotiation.id == negotiation_id:
                return negotiation
        raise NegotiationError(
            f"unknown negotiation {negotiation_id}", context={"negotiation_id": negotiation_id}
        )


@dataclass
class TickResult:
    """Outcome of one :func:`run_tick` call.

    Attributes:
        date: Date after the tick (unchanged when blocked).
        phase: Phase after the tick.
        should_stop: Whether the scheduler must pause.
        stop_reasons: Every stop condition raised during the tick.
        blocked: Set when time could not advance.
        race: Race processed during the tick, if any.
        events: Events appended during the tick.
        negotiation_updates: Negotiation responses applied.
    """

    date: SimDate
    phase: GamePhase
    should_stop: bool = False
    stop_reasons: list[str] = field(default_factory=list)
    blocked: BlockedResult | None = None
    race: RaceWeekendResult | None = None
    events: list[CalendarEvent] = field(default_factory=list)
    negotiation_updates: list[NegotiationUpdate] = field(default_factory=list)

    def stop(self, reason: str) -> None:
        self.should_stop = True
        if reason not in self.stop_reasons:
            self.stop_reasons.append(reason)


# ---------------------------------------------------------------------------
# New game
# ---------------------------------------------------------------------------


def check_integrity(
    teams: list[Team],
    drivers: list[Driver],
    chiefs: list[Chief],
    sponsors: dict[str, Sponsor],
    manufacturers: dict[str, Manufacturer],
    player_team_id: str,
) -> None:
    """Verify every cross-reference in the content.

    Raises:
        GameIntegrityError: On the first dangling reference found.
    """
    team_ids = {team.id for team in teams}
    if player_team_id not in team_ids:
        raise GameIntegrityError(
            f"player team {player_team_id!r} does not exist", context={"team_id": player_team_id}
        )
    for team in teams:
        for sponsor_id in team.sponsor_ids:
            if sponsor_id not in sponsors:
                raise GameIntegrityError(
                    f"team {team.id} references unknown sponsor {sponsor_id!r}",
                    context={"team_id": team.id, "sponsor_id": sponsor_id},
                )
        if team.manufacturer_id is not None and team.manufacturer_id not in manufacturers:
            raise GameIntegrityError(
                f"team {team.id} references unknown manufacturer {team.manufacturer_id!r}",
                context={"team_id": team.id, "manufacturer_id": team.manufacturer_id},
            )
    for driver in drivers:
        if driver.team_id is not None and driver.team_id not in team_ids:
            raise GameIntegrityError(
                f"driver {driver.id} references unknown team {driver.team_id!r}",
                context={"driver_id": driver.id, "team_id": driver.team_id},
            )
    for chief in chiefs:
        if chief.team_id is not None and chief.team_id not in team_ids:
            raise GameIntegrityError(
                f"chief {chief.id} references unknown team {chief.team_id!r}",
                context={"chief_id": chief.id, "team_id": chief.team_id},
            )


def new_game(
    repository: ContentRepository,
    player_team_id: str,
    seed: int | None = None,
    season: int = 1,
    engines: EngineRegistry | None = None,
) -> GameState:
    """Build a game from *repository* content.

    Args:
        repository: Content source.
        player_team_id: Team the player runs.
        seed: Seed for the game's random generator.
        season: Season to start in.
        engines: Engine overrides; defaults use the content regulations.

    Returns:
        A game on January 1 of the season's year, in PreSeason.

    Raises:
        GameIntegrityError: If the content references missing entities.
    """
    teams = repository.teams()
    drivers = repository.drivers()
    chiefs = repository.chiefs()
    sponsors = {s.id: s for s in repository.sponsors()}
    manufacturers = {m.id: m for m in repository.manufacturers()}
    check_integrity(teams, drivers, chiefs, sponsors, manufacturers, player_team_id)

    rules = repository.rules()
    circuits = repository.circuits()
    rng = np.random.default_rng(seed)
    if engines is None:
        engines = EngineRegistry(regulation=ContentRegulationEngine(repository.regulations()))

    team_states: dict[str, TeamRuntimeState] = {}
    for team in teams:
        design = initial_design_state(season, rng)
        design.next_year_chassis.allocation = DEFAULT_CHASSIS_ALLOCATION
        design.current_chassis.allocation = DEFAULT_SOLUTION_ALLOCATION
        team_states[team.id] = initial_team_state(team, design)

    driver_standings, constructor_standings = initial_standings(
        {d.id: d.team_id for d in drivers if d.team_id is not None}, [t.id for t in teams]
    )
    game = GameState(
        season=season,
        current_date=season_start_date(season, rules.base_year),
        phase=GamePhase.PRE_SEASON,
        player_team_id=player_team_id,
        rules=rules,
        teams={t.id: t for t in teams},
        drivers={d.id: d for d in drivers},
        chiefs={c.id: c for c in chiefs},
        circuits={c.id: c for c in circuits},
        sponsors=sponsors,
        manufacturers=manufacturers,
        compounds=repository.compounds(),
        calendar=generate_calendar(circuits, rng, rules.first_race_week, rules.last_race_week),
        driver_states={d.id: initial_driver_state(d.id, d.reputation) for d in drivers},
        team_states=team_states,
        driver_standings=driver_standings,
        constructor_standings=constructor_standings,
        rng=rng,
        engines=engines,
        contracts=initial_contracts(teams, drivers, sponsors, manufacturers, season),
    )
    logger.info(
        "new game: season %d, %d teams, %d races, player team %s",
        season,
        len(teams),
        len(game.calendar),
        player_team_id,
    )
    return game


# ---------------------------------------------------------------------------
# Tick pipeline
# ---------------------------------------------------------------------------


def run_tick(game: GameState) -> TickResult:
    """Process one simulated day."""
    first_event: int = len(game.events)
    turn = game.engines.turn.process_day(
        TurnInput(
            current_date=game.current_date,
            phase=game.phase,
            calendar=game.calendar,
            drivers=list(game.drivers.values()),
            teams=list(game.teams.values()),
            chiefs=list(game.chiefs.values()),
            driver_states=game.driver_states,
            team_states=game.team_states,
            rng=game.rng,
            contracts=game.contracts,
        )
    )
    if turn.blocked is not None:
        result = TickResult(date=game.current_date, phase=game.phase, blocked=turn.blocked)
        result.stop(STOP_BLOCKED)
        return result

    game.current_date = turn.date
    game.phase = turn.phase
    apply_driver_state_changes(game.driver_states, turn.driver_changes)
    apply_team_state_changes(game.teams, game.team_states, turn.team_changes)
    _apply_design_and_testing(game, turn.design_results, turn.testing_results)
    _deliver_parts(game)
    apply_team_state_changes(
        game.teams,
        game.team_states,
        game.engines.financial.process_day(
            game.teams.values(), game.team_states, game.contracts, game.current_date
        ),
    )
    _apply_salary_moves(game)
    _manage_rival_teams(game)

    result = TickResult(date=game.current_date, phase=game.phase)
    if turn.should_stop_simulation and turn.stop_reason:
        result.stop(turn.stop_reason)

    if turn.race_entry is not None and _is_last_day_of_week(game.current_date):
        result.race = _process_race(game, turn.race_entry)

    result.negotiation_updates = _process_negotiations(game)
    if any(
        u.should_stop and game.negotiation(u.negotiation_id).team_id == game.player_team_id
        for u in result.negotiation_updates
    ):
        result.stop(STOP_NEGOTIATION)
    _answer_for_rivals(game)
    _open_outreach(game)

    if game.events.critical_since(first_event):
        result.stop(STOP_CRITICAL_EVENT)
    result.events = game.events.since(first_event)
    result.phase = game.phase
    return result


def _is_last_day_of_week(date: SimDate) -> bool:
    return week_number(advance_day(date)) != week_number(date)


def _apply_design_and_testing(game: GameState, design_results: dict, testing_results: dict) -> None:
    date = game.current_date
    for team_id, design_result in design_results.items():
        state = game.team_states[team_id]
        state.design = design_result.design_state
        for problem in design_result.solved_problems:
            state.pending_parts.append(
                PendingPart(
                    team_id=team_id,
                    description=f"revised parts for {problem.value}",
                    ready_date=add_days(date, PART_BUILD_DAYS),
                    handling_gain=SOLUTION_HANDLING_GAIN,
                )
            )
    for team_id, testing_result in testing_results.items():
        state = game.team_states[team_id]
        state.test_session = testing_result.session
        apply_testing_result(state.design.current_chassis, testing_result)

    names = {t.id: t.name for t in game.teams.values()}
    news.design_events(game.events, design_results, game.player_team_id, names)
    own_test = testing_results.get(game.player_team_id)
    if own_test is not None:
        news.testing_events(game.events, date, own_test)


def _deliver_parts(game: GameState) -> None:
    for team_id, state in game.team_states.items():
        due = [p for p in state.pending_parts if p.ready_date <= game.current_date]
        if not due:
            continue
        state.pending_parts = [p for p in state.pending_parts if p.ready_date > game.current_date]
        for part in due:
            state.design.current_chassis.handling_gain += part.handling_gain
            if team_id == game.player_team_id:
                news.part_delivered_event(game.events, game.current_date, part)


def _apply_salary_moves(game: GameState) -> None:
    moves = game.engines.market.process_day(game.drivers.values(), game.chiefs.values(), game.current_date)
    for person_id, salary in moves.items():
        person = game.drivers.get(person_id) or game.chiefs.get(person_id)
        if person is None:
            logger.warning("market moved the salary of unknown person %s", person_id)
            continue
        person.salary = salary


def _manage_rival_teams(game: GameState) -> None:
    """Keep rival design offices and test programmes busy."""
    for team_id, state in game.team_states.items():
        if team_id == game.player_team_id:
            continue
        chassis = state.design.current_chassis
        if chassis.active_problem is None:
            for problem in chassis.problems:
                if problem.discovered and not problem.solved:
                    chassis.active_problem = problem.problem
                    break
        if not state.test_session.active and (
            chassis.handling_revealed is None or chassis.undiscovered()
        ):
            driver_id = next(
                (d.id for d in game.drivers.values() if d.team_id == team_id), None
            )
            if driver_id is not None:
                state.test_session = start_session(
                    state.test_session, driver_id, DEFAULT_TEST_ALLOCATION
                )


def _process_race(game: GameState, entry: CalendarEntry) -> RaceWeekendResult:
    regulation = game.engines.regulation.regulations_for(game.season)
    weather = game.engines.weather.roll(entry.circuit_id, game.current_date, game.rng)
    entrants = game.engines.performance.entrants(
        game.teams.values(),
        game.drivers.values(),
        game.driver_states,
        game.team_states,
        weather,
        regulation,
    )
    race = game.engines.race.simulate(entry, entrants, weather, game.current_date, game.rng)
    if game.compounds:
        race.compound_id = game.compounds[int(game.rng.integers(0, len(game.compounds)))].id

    driver_changes, team_changes = race_state_changes(race, game.rules.points_table)
    apply_driver_state_changes(game.driver_states, driver_changes)
    apply_team_state_changes(game.teams, game.team_states, team_changes)
    game.driver_standings, game.constructor_standings = update_standings(
        game.driver_standings, game.constructor_standings, race.results, game.rules.points_table
    )
    for entrant in entrants:
        record_race_usage(game.driver_states[entrant.driver_id], regulation)

    entry.completed = True
    entry.result = race
    game.phase = GamePhase.BETWEEN_RACES

    circuit = game.circuits.get(entry.circuit_id)
    news.race_events(
        game.events,
        race,
        game.player_team_id,
        {d.id: d.name for d in game.drivers.values()},
        circuit.name if circuit is not None else entry.circuit_id,
    )
    logger.info("race %d at %s won by %s", entry.race_number, entry.circuit_id, race.winner)
    return race


def negotiation_context(game: GameState) -> NegotiationContext:
    next_season: int = game.season + 1
    return NegotiationContext(
        teams=game.teams,
        drivers=game.drivers,
        chiefs=game.chiefs,
        sponsors=game.sponsors,
        manufacturers=game.manufacturers,
        contracts=game.contracts,
        constructor_positions=constructor_positions(game.constructor_standings),
        relationship_scores=dict(game.relationship_scores),
        secured_team_ids=frozenset(
            c.team_id
            for c in game.contracts
            if c.stakeholder_type == StakeholderType.MANUFACTURER and c.is_active(next_season)
        ),
        current_year=game.year,
        max_rounds=game.rules.max_negotiation_rounds,
    )


def _process_negotiations(game: GameState) -> list[NegotiationUpdate]:
    """Lapse stale proposals, then apply every counterparty response due today.

    Only the player's negotiations touch the relationship table and send
    emails.
    """
    for lapsed in actions.expire_stale(game.negotiations, game.current_date):
        logger.info("proposal %s lapsed unanswered", lapsed.id)
    open_negotiations = [n for n in game.negotiations if not n.is_closed]
    if not open_negotiations:
        return []
    processed = game.engines.negotiation.process_day(
        open_negotiations, game.current_date, negotiation_context(game)
    )
    applied: list[NegotiationUpdate] = []
    for update in processed.updates:
        negotiation = game.negotiation(update.negotiation_id)
        if negotiation.is_closed:
            # Superseded by a deal signed earlier in this loop.
            continue
        own: bool = negotiation.team_id == game.player_team_id
        apply_negotiation_update(negotiation, update, game.relationship_scores if own else {})
        applied.append(update)
        if own:
            news.negotiation_events(
                game.events,
                game.current_date,
                negotiation,
                update,
                _counterparty_name(game, negotiation),
            )
        if negotiation.phase == NegotiationPhase.COMPLETED:
            if _seat_available(game, negotiation):
                _sign(game, negotiation)
            else:
                negotiation.phase = NegotiationPhase.FAILED
                logger.info("%s: no race seat left at %s", negotiation.id, negotiation.team_id)
    return applied


def _answer_for_rivals(game: GameState) -> None:
    """Rival teams settle counter-offers and approaches after a few days.

    A rival takes a driver only into a free seat, an engine only when it
    has none for that season and a sponsor only without a rival-group
    clash; chiefs are always welcome.
    """
    for negotiation in game.negotiations:
        if negotiation.team_id == game.player_team_id:
            continue
        if negotiation.phase != NegotiationPhase.RESPONSE_RECEIVED:
            continue
        latest = negotiation.latest_round
        if latest is None or add_days(latest.offered_date, RIVAL_RESPONSE_DAYS) > game.current_date:
            continue
        if _rival_wants(game, negotiation):
            actions.accept_counter(negotiation)
            _sign(game, negotiation)
        else:
            actions.walk_away(negotiation)
            logger.debug("%s walked away from %s", negotiation.team_id, negotiation.id)


def _rival_wants(game: GameState, negotiation: Negotiation) -> bool:
    season: int = max(game.season, negotiation.for_season)
    if negotiation.stakeholder_type == StakeholderType.DRIVER:
        return _seat_available(game, negotiation)
    if negotiation.stakeholder_type == StakeholderType.MANUFACTURER:
        return not any(
            c.stakeholder_type == StakeholderType.MANUFACTURER
            and c.team_id == negotiation.team_id
            and c.is_active(season)
            for c in game.contracts
        )
    if negotiation.stakeholder_type == StakeholderType.SPONSOR:
        sponsor = game.sponsors.get(negotiation.counterparty_id)
        existing = [
            c.counterparty_id
            for c in game.contracts
            if c.stakeholder_type == StakeholderType.SPONSOR
            and c.team_id == negotiation.team_id
            and c.is_active(season)
        ]
        return sponsor is not None and not has_rival_conflict(sponsor, existing, game.sponsors)
    return True


def _seat_available(game: GameState, negotiation: Negotiation) -> bool:
    if negotiation.stakeholder_type != StakeholderType.DRIVER:
        return True
    return has_seat_for(
        negotiation.counterparty_id,
        negotiation.team_id,
        max(game.season, negotiation.for_season),
        game.season,
        game.contracts,
        game.drivers,
    )


def _next_negotiation_id(game: GameState) -> str:
    return f"neg-{game.season}-{len(game.negotiations) + 1}"


def market_view(game: GameState) -> MarketView:
    return MarketView(
        date=game.current_date,
        season=game.season,
        year=game.year,
        player_team_id=game.player_team_id,
        teams=game.teams,
        drivers=game.drivers,
        chiefs=game.chiefs,
        sponsors=game.sponsors,
        manufacturers=game.manufacturers,
        contracts=game.contracts,
        negotiations=game.negotiations,
        positions=constructor_positions(game.constructor_standings),
    )


def _open_outreach(game: GameState) -> list[Negotiation]:
    """Turn today's outreach proposals into negotiations."""
    opened: list[Negotiation] = []
    for proposal in collect_outreach(market_view(game)):
        args = (
            _next_negotiation_id(game),
            proposal.stakeholder_type,
            proposal.team_id,
            proposal.counterparty_id,
            proposal.terms,
            game.current_date,
        )
        if proposal.opened_by == OfferedBy.PLAYER:
            negotiation = actions.start_negotiation(*args, for_season=proposal.for_season)
        else:
            negotiation = actions.open_outreach(*args, proposal.for_season, proposal.expiry_days)
        game.negotiations.append(negotiation)
        opened.append(negotiation)
        if proposal.team_id == game.player_team_id:
            news.approach_event(
                game.events,
                game.current_date,
                negotiation,
                _counterparty_name(game, negotiation),
                season_to_year(proposal.for_season, game.rules.base_year),
            )
    if opened:
        logger.info("%d new negotiation(s) opened by outreach", len(opened))
    return opened


def _counterparty_name(game: GameState, negotiation: Negotiation) -> str:
    lookup: dict = {
        StakeholderType.MANUFACTURER: game.manufacturers,
        StakeholderType.DRIVER: game.drivers,
        StakeholderType.STAFF: game.chiefs,
        StakeholderType.SPONSOR: game.sponsors,
    }[negotiation.stakeholder_type]
    entity = lookup.get(negotiation.counterparty_id)
    return entity.name if entity is not None else negotiation.counterparty_id


def _sign(game: GameState, negotiation: Negotiation) -> ActiveContract:
    """Sign a completed negotiation and close the talks it makes pointless."""
    contract = sign_contract(
        negotiation, game.season, game.teams, game.drivers, game.chiefs, game.team_states
    )
    game.contracts = merge_contract(game.contracts, contract, game.season)
    if contract.start_season <= game.season:
        game.contracts = prune_roster_contracts(game.contracts, game.season, game.drivers, game.chiefs)
        if contract.stakeholder_type == StakeholderType.DRIVER:
            game.driver_standings = _with_driver_team(
                game.driver_standings, contract.counterparty_id, contract.team_id
            )

    name = _counterparty_name(game, negotiation)
    for other in game.negotiations:
        if other is negotiation or not supersedes(contract, other, game.season):
            continue
        other.phase = NegotiationPhase.FAILED
        if other.team_id == game.player_team_id and contract.team_id != game.player_team_id:
            news.deal_lost_event(game.events, game.current_date, other, name)
    if contract.team_id != game.player_team_id:
        news.signing_headline(game.events, game.current_date, game.teams[contract.team_id].name, name)
    return contract


def _with_driver_team(
    standings: list[DriverStanding], driver_id: str, team_id: str
) -> list[DriverStanding]:
    for standing in standings:
        if standing.driver_id == driver_id:
            standing.team_id = team_id
            return standings
    standings.append(DriverStanding(driver_id=driver_id, team_id=team_id, position=len(standings) + 1))
    return standings


# ---------------------------------------------------------------------------
# Race weekend
# ---------------------------------------------------------------------------


def _blocked_no_race() -> BlockedResult:
    return BlockedResult(reason=BLOCKED_NO_RACE, message="There is no race scheduled this week.")


def enter_race_weekend(game: GameState) -> CalendarEntry | BlockedResult:
    """Promote the current race week to RaceWeekend."""
    if is_post_season(game.current_date, game.phase):
        return BlockedResult(reason=BLOCKED_POST_SEASON, message="The season is over.")
    entry = pending_race_in_week(game.calendar, week_number(game.current_date))
    if entry is None:
        return _blocked_no_race()
    game.phase = GamePhase.RACE_WEEKEND
    logger.info("entered race weekend %d", entry.race_number)
    return entry


def run_race_weekend(game: GameState) -> RaceWeekendResult | BlockedResult:
    """Run this week's race now, without advancing the date."""
    entry = pending_race_in_week(game.calendar, week_number(game.current_date))
    if entry is None or is_post_season(game.current_date, game.phase):
        return _blocked_no_race()
    return _process_race(game, entry)


# ---------------------------------------------------------------------------
# Season end
# ---------------------------------------------------------------------------


def end_season(game: GameState) -> SeasonEndResult | BlockedResult:
    """Close the season and move the game to January 1 of the next one.

    Only legal in the post-season.  Aging, retirements and the new
    calendar come from :func:`process_season_end`; career histories are
    written, driver states reset and standings cleared.  Drivers and
    chiefs whose contracts ran out become free agents, deals signed for
    the new season take effect, and every team starts racing last year's
    development chassis.
    """
    if game.phase != GamePhase.POST_SEASON:
        return BlockedResult(
            reason=BLOCKED_SEASON_IN_PROGRESS, message="The season can only end in the post-season."
        )
    finished: int = game.season
    result = process_season_end(
        list(game.drivers.values()),
        list(game.chiefs.values()),
        finished,
        list(game.circuits.values()),
        game.rng,
        game.rules.base_year,
        game.rules.first_race_week,
        game.rules.last_race_week,
    )
    former_teams: dict[str, str | None] = {
        **{d: game.drivers[d].team_id for d in result.retired_driver_ids},
        **{c: game.chiefs[c].team_id for c in result.retired_chief_ids},
    }

    archive_season(list(game.drivers.values()), game.driver_standings, game.constructor_standings, finished)
    game.archived_seasons.append(
        ArchivedSeason(finished, game.calendar, game.driver_standings, game.constructor_standings)
    )
    apply_season_end(result, list(game.drivers.values()), list(game.chiefs.values()), game.driver_states)

    game.season = finished + 1
    game.calendar = result.new_calendar
    game.contracts = lapse_contracts(game.contracts, game.season, game.drivers, game.chiefs)
    start_contracts(game.contracts, game.season, game.teams, game.drivers, game.chiefs, game.team_states)
    game.contracts = prune_roster_contracts(game.contracts, game.season, game.drivers, game.chiefs)
    game.driver_standings, game.constructor_standings = initial_standings(
        {d.id: d.team_id for d in game.drivers.values() if d.team_id is not None},
        list(game.teams),
    )
    for state in game.team_states.values():
        _roll_over_design(state, game.season, game.rng)
    game.current_date = season_start_date(game.season, game.rules.base_year)
    game.phase = GamePhase.PRE_SEASON

    names = {d.id: d.name for d in game.drivers.values()}
    names.update({c.id: c.name for c in game.chiefs.values()})
    news.season_transition_events(
        game.events, game.current_date, result, game.season, game.player_team_id, former_teams, names
    )
    logger.info("season %d started on %s", game.season, game.current_date)
    return result


def _roll_over_design(state: TeamRuntimeState, season: int, rng: Generator) -> None:
    """Last year's development chassis becomes the race car; its
    efficiency pulls the hidden handling figure towards it."""
    design = state.design
    previous = design.next_year_chassis
    chassis = new_current_chassis(rng)
    chassis.allocation = design.current_chassis.allocation
    if previous is not None and previous.efficiency_rating > 0:
        chassis.true_handling = round((chassis.true_handling + previous.efficiency_rating) / 2)
    design.current_chassis = chassis
    design.next_year_chassis = ChassisDesign(
        target_season=season + 1,
        allocation=previous.allocation if previous is not None else DEFAULT_CHASSIS_ALLOCATION,
    )
    session = state.test_session
    session.active = False
    session.progress = 0
    session.tests_completed = 0


# ---------------------------------------------------------------------------
# Player actions: design and testing
# ---------------------------------------------------------------------------


def _check_allocation(state: TeamRuntimeState, extra: int) -> None:
    if extra < 0:
        raise ValueError(f"allocation must be >= 0, got {extra}")
    total = state.design.allocated_percent() + extra
    if total > 100:
        raise ValueError(f"design allocation would reach {total}%, the maximum is 100%")


def set_chassis_allocation(game: GameState, allocation: int) -> None:
    """Assign *allocation* percent of the design office to next year's car.

    Raises:
        ValueError: If the design office would be over-allocated.
    """
    state = game.team_states[game.player_team_id]
    chassis = state.design.next_year_chassis
    if chassis is None:
        chassis = state.design.next_year_chassis = ChassisDesign(target_season=game.season + 1)
    _check_allocation(state, allocation - chassis.allocation)
    chassis.allocation = allocation


def start_technology_project(
    game: GameState, component: TechComponent, attribute: TechAttribute, allocation: int
) -> TechnologyProject:
    """Open a technology project for the player's team.

    Raises:
        ValueError: If the same project is already running or the design
            office would be over-allocated.
    """
    state = game.team_states[game.player_team_id]
    if any(p.component == component and p.attribute == attribute for p in state.design.projects):
        raise ValueError(f"a {component.value} {attribute.value} project is already running")
    _check_allocation(state, allocation)
    project = TechnologyProject(component=component, attribute=attribute, allocation=allocation)
    state.design.projects.append(project)
    return project


def solve_problem(game: GameState, problem: HandlingProblem, allocation: int) -> None:
    """Point the current-chassis team at a discovered handling problem.

    Raises:
        ValueError: If the problem is unknown, undiscovered or solved, or
            the design office would be over-allocated.
    """
    chassis = game.team_states[game.player_team_id].design.current_chassis
    state = chassis.problem_state(problem)
    if state is None or not state.discovered or state.solved:
        raise ValueError(f"{problem.value} is not an open, discovered problem")
    _check_allocation(game.team_states[game.player_team_id], allocation - chassis.allocation)
    chassis.active_problem = problem
    chassis.allocation = allocation


def start_test_session(game: GameState, driver_id: str, allocation: int) -> None:
    """Start a test session for the player's team with one of its drivers.

    Raises:
        ValueError: If the driver is not with the team or the allocation
            is outside ``(0, 100]``.
    """
    driver = game.drivers.get(driver_id)
    if driver is None or driver.team_id != game.player_team_id:
        raise ValueError(f"driver {driver_id!r} does not drive for {game.player_team_id}")
    state = game.team_states[game.player_team_id]
    state.test_session = start_session(state.test_session, driver_id, allocation)


# ---------------------------------------------------------------------------
# Player actions: negotiations
# ---------------------------------------------------------------------------


def open_negotiation(
    game: GameState,
    stakeholder_type: StakeholderType,
    counterparty_id: str,
    terms: Terms,
    for_season: int | None = None,
) -> Negotiation:
    """Open a negotiation with the player's first offer.

    Args:
        for_season: First season of the deal; defaults to the current one.

    Raises:
        NegotiationError: If a negotiation with the counterparty is
            already open, or a driver is offered a seat the team cannot
            give (open talks with other drivers count as taken seats).
    """
    season: int = game.season if for_season is None else max(game.season, for_season)
    for existing in game.negotiations:
        if (
            not existing.is_closed
            and existing.team_id == game.player_team_id
            and existing.counterparty_id == counterparty_id
        ):
            raise NegotiationError(
                f"already negotiating with {counterparty_id}",
                context={"negotiation_id": existing.id},
            )
    if stakeholder_type == StakeholderType.DRIVER and not has_seat_for(
        counterparty_id,
        game.player_team_id,
        season,
        game.season,
        game.contracts,
        game.drivers,
        game.negotiations,
    ):
        raise NegotiationError(
            f"{game.player_team_id} has no race seat free for season {season}",
            context={"driver_id": counterparty_id, "season": season},
        )
    negotiation = actions.start_negotiation(
        _next_negotiation_id(game),
        stakeholder_type,
        game.player_team_id,
        counterparty_id,
        terms,
        game.current_date,
        for_season=season,
    )
    game.negotiations.append(negotiation)
    logger.info("opened %s negotiation %s", stakeholder_type.value, negotiation.id)
    return negotiation


def submit_offer(game: GameState, negotiation_id: str, terms: Terms, final_offer: bool = False) -> None:
    actions.submit_offer(game.negotiation(negotiation_id), terms, game.current_date, final_offer)


def accept_counter(game: GameState, negotiation_id: str) -> ActiveContract:
    """Accept the counterparty's latest terms and sign the contract.

    Raises:
        NegotiationError: If there is nothing to accept, or the deal is
            for a driver and the team has no seat free.
    """
    negotiation = game.negotiation(negotiation_id)
    if not negotiation.is_closed and not _seat_available(game, negotiation):
        raise NegotiationError(
            f"{negotiation.team_id} has no race seat free for {negotiation.counterparty_id}",
            context={"negotiation_id": negotiation.id},
        )
    actions.accept_counter(negotiation)
    game.events.append(
        game.current_date,
        EventKind.EMAIL,
        f"Deal agreed with {_counterparty_name(game, negotiation)}",
        "You accepted the latest terms.",
        data={"negotiation_id": negotiation.id},
    )
    return _sign(game, negotiation)


def walk_away(game: GameState, negotiation_id: str) -> None:
    actions.walk_away(game.negotiation(negotiation_id))
