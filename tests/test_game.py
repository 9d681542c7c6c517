"""End-to-end tests for the game orchestration layer."""

import copy
import dataclasses

import pytest

from gp_manager.config import ContentRepository
from gp_manager.core.dates import SimDate, is_friday, week_number
from gp_manager.core.engines import EngineRegistry
from gp_manager.core.design import TechAttribute, TechComponent
from gp_manager.core.entities import Driver, GamePhase, Team
from gp_manager.core.season_end import SeasonEndResult
from gp_manager.core.turn import BLOCKED_NO_RACE, STOP_RACE_WEEKEND, BlockedResult
from gp_manager.errors import GameIntegrityError, NegotiationError
from gp_manager.game import (
    BLOCKED_SEASON_IN_PROGRESS,
    STOP_BLOCKED,
    STOP_NEGOTIATION,
    GameState,
    accept_counter,
    check_integrity,
    end_season,
    enter_race_weekend,
    new_game,
    open_negotiation,
    run_race_weekend,
    run_tick,
    set_chassis_allocation,
    start_technology_project,
    start_test_session,
    walk_away,
)
from gp_manager.negotiation.actions import open_outreach
from gp_manager.negotiation.contracts import ActiveContract
from gp_manager.negotiation.models import (
    DriverTerms,
    NegotiationPhase,
    OfferedBy,
    StaffTerms,
    StakeholderType,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_PLAYER = "aurora"


@pytest.fixture(scope="module")
def repository() -> ContentRepository:
    return ContentRepository()


@pytest.fixture
def game(repository: ContentRepository) -> GameState:
    return new_game(repository, _PLAYER, seed=7)


def _release(game: GameState, driver_id: str) -> None:
    game.drivers[driver_id].team_id = None
    game.contracts = [c for c in game.contracts if c.counterparty_id != driver_id]


def _expire_after(game: GameState, stakeholder_type: StakeholderType, team_id: str, season: int) -> None:
    game.contracts = [
        dataclasses.replace(c, end_season=season)
        if c.stakeholder_type == stakeholder_type and c.team_id == team_id
        else c
        for c in game.contracts
    ]


def _player_drivers(game: GameState) -> set[str]:
    return {d.id for d in game.drivers.values() if d.team_id == _PLAYER}


def _run_until(game: GameState, predicate, max_ticks: int = 400):
    for _ in range(max_ticks):
        result = run_tick(game)
        if predicate(result):
            return result
    raise AssertionError("condition never reached")


# ---------------------------------------------------------------------------
# New game
# ---------------------------------------------------------------------------


def test_new_game_starts_in_pre_season(game: GameState, repository: ContentRepository) -> None:
    assert game.current_date == SimDate(2025, 1, 1)
    assert game.phase == GamePhase.PRE_SEASON
    assert len(game.calendar) == len(repository.circuits())
    assert {s.team_id for s in game.constructor_standings} == set(game.teams)
    assert game.contracts


def test_unknown_player_team(repository: ContentRepository) -> None:
    with pytest.raises(GameIntegrityError):
        new_game(repository, "nobody", seed=1)


def test_integrity_detects_dangling_team() -> None:
    teams = [Team(id="t1", name="One", budget=1)]
    drivers = [Driver(id="d1", name="Lost", team_id="ghost", birth_year=2000)]
    with pytest.raises(GameIntegrityError):
        check_integrity(teams, drivers, [], {}, {}, "t1")


# ---------------------------------------------------------------------------
# Ticks
# ---------------------------------------------------------------------------


def test_tick_advances_one_day(game: GameState) -> None:
    result = run_tick(game)
    assert result.blocked is None
    assert result.date == SimDate(2025, 1, 2)
    assert game.current_date == SimDate(2025, 1, 2)


def test_deep_copy_replays_identically(game: GameState) -> None:
    """A copied game produces the same future as its source."""
    twin = copy.deepcopy(game)
    for _ in range(90):
        run_tick(game)
        run_tick(twin)
    assert game.current_date == twin.current_date
    assert [e.completed for e in game.calendar] == [e.completed for e in twin.calendar]
    assert [(s.driver_id, s.points) for s in game.driver_standings] == [
        (s.driver_id, s.points) for s in twin.driver_standings
    ]
    assert {d: s.fatigue for d, s in game.driver_states.items()} == {
        d: s.fatigue for d, s in twin.driver_states.items()
    }


def test_stops_on_race_week_friday(game: GameState) -> None:
    """The scheduler is paused on the Friday of the first race week."""
    result = _run_until(game, lambda r: STOP_RACE_WEEKEND in r.stop_reasons)
    assert result.should_stop
    assert is_friday(result.date)
    assert week_number(result.date) == game.calendar[0].week_number
    assert not game.calendar[0].completed


def test_race_weekend_blocked_without_race(game: GameState) -> None:
    """No race in January: entering or running a weekend is refused."""
    for action in (enter_race_weekend, run_race_weekend):
        blocked = action(game)
        assert isinstance(blocked, BlockedResult)
        assert blocked.reason == BLOCKED_NO_RACE
    assert game.phase == GamePhase.PRE_SEASON


def test_run_race_weekend_immediately(game: GameState) -> None:
    """A race can be run early once its week has started."""
    _run_until(game, lambda r: STOP_RACE_WEEKEND in r.stop_reasons)
    entry = enter_race_weekend(game)
    assert game.phase == GamePhase.RACE_WEEKEND
    race = run_race_weekend(game)
    assert race.race_number == entry.race_number
    assert entry.completed
    assert game.phase == GamePhase.BETWEEN_RACES
    assert sum(s.points for s in game.driver_standings) > 0


def test_end_season_blocked_mid_season(game: GameState) -> None:
    blocked = end_season(game)
    assert isinstance(blocked, BlockedResult)
    assert blocked.reason == BLOCKED_SEASON_IN_PROGRESS
    assert game.season == 1


def test_full_season_and_rollover(game: GameState) -> None:
    """Every race runs, time blocks in the post-season, then a new season opens."""
    result = _run_until(game, lambda r: r.blocked is not None)
    assert STOP_BLOCKED in result.stop_reasons
    assert game.phase == GamePhase.POST_SEASON
    assert all(entry.completed for entry in game.calendar)
    winners = sum(1 for entry in game.calendar if entry.result.winner is not None)
    assert sum(s.wins for s in game.constructor_standings) == winners

    blocked_date = game.current_date
    assert run_tick(game).blocked is not None
    assert game.current_date == blocked_date

    season_end = end_season(game)
    assert isinstance(season_end, SeasonEndResult)
    assert game.season == 2
    assert game.current_date == SimDate(2026, 1, 1)
    assert game.phase == GamePhase.PRE_SEASON
    assert len(game.archived_seasons) == 1
    assert all(s.points == 0 for s in game.driver_standings)
    assert not any(entry.completed for entry in game.calendar)
    assert all(c.is_active(2) for c in game.contracts)
    assert run_tick(game).blocked is None


# ---------------------------------------------------------------------------
# Player actions
# ---------------------------------------------------------------------------


def test_design_allocation_capped(game: GameState) -> None:
    """The design office can never be allocated beyond 100%."""
    with pytest.raises(ValueError):
        set_chassis_allocation(game, 80)
    project = start_technology_project(game, TechComponent.BRAKES, TechAttribute.RELIABILITY, 30)
    assert project in game.team_states[_PLAYER].design.projects
    with pytest.raises(ValueError):
        start_technology_project(game, TechComponent.COOLING, TechAttribute.PERFORMANCE, 1)
    with pytest.raises(ValueError):
        start_technology_project(game, TechComponent.BRAKES, TechAttribute.RELIABILITY, 0)


def test_test_session_needs_own_driver(game: GameState) -> None:
    rival = next(d for d in game.drivers.values() if d.team_id not in (None, _PLAYER))
    with pytest.raises(ValueError):
        start_test_session(game, rival.id, 50)
    own = next(d for d in game.drivers.values() if d.team_id == _PLAYER)
    start_test_session(game, own.id, 50)
    assert game.team_states[_PLAYER].test_session.active


def test_generous_offer_signs_free_agent(game: GameState) -> None:
    """A free agent accepts a lavish offer and takes the seat left free."""
    _release(game, "d_okafor")
    free_agent = game.drivers["d_weber"]
    negotiation = open_negotiation(
        game, StakeholderType.DRIVER, free_agent.id, DriverTerms(salary=50_000_000, duration=2)
    )
    assert negotiation.id == "neg-1-1"
    with pytest.raises(NegotiationError):
        open_negotiation(game, StakeholderType.DRIVER, free_agent.id, DriverTerms(1, 1))

    result = _run_until(game, lambda r: bool(r.negotiation_updates), max_ticks=10)
    assert STOP_NEGOTIATION in result.stop_reasons
    assert negotiation.phase == NegotiationPhase.COMPLETED
    assert free_agent.team_id == _PLAYER
    assert _player_drivers(game) == {"d_lindqvist", "d_weber"}
    assert any(c.counterparty_id == free_agent.id and c.end_season == 2 for c in game.contracts)


def test_walk_away_closes_negotiation(game: GameState) -> None:
    negotiation = open_negotiation(game, StakeholderType.STAFF, "c_free_comm", StaffTerms(1, 1))
    walk_away(game, negotiation.id)
    assert negotiation.phase == NegotiationPhase.FAILED
    with pytest.raises(NegotiationError):
        walk_away(game, "neg-9-9")


# ---------------------------------------------------------------------------
# Race seats
# ---------------------------------------------------------------------------


def test_full_team_cannot_open_driver_talks(game: GameState) -> None:
    """Both seats are taken, so no driver negotiation opens."""
    with pytest.raises(NegotiationError):
        open_negotiation(game, StakeholderType.DRIVER, "d_weber", DriverTerms(50_000_000, 2))
    assert not game.negotiations


def test_open_talks_hold_the_last_seat(game: GameState) -> None:
    _release(game, "d_okafor")
    open_negotiation(game, StakeholderType.DRIVER, "d_weber", DriverTerms(50_000_000, 2))
    with pytest.raises(NegotiationError):
        open_negotiation(game, StakeholderType.DRIVER, "d_quinn", DriverTerms(50_000_000, 2))


def test_acceptance_without_free_seat_fails(game: GameState) -> None:
    """A seat filled while talks run makes the agreed deal fall through."""
    _release(game, "d_okafor")
    negotiation = open_negotiation(
        game, StakeholderType.DRIVER, "d_weber", DriverTerms(salary=50_000_000, duration=2)
    )
    game.drivers["d_quinn"].team_id = _PLAYER

    _run_until(game, lambda r: bool(r.negotiation_updates), max_ticks=10)
    assert negotiation.phase == NegotiationPhase.FAILED
    assert game.drivers["d_weber"].team_id is None
    assert _player_drivers(game) == {"d_lindqvist", "d_quinn"}
    assert not any(c.counterparty_id == "d_weber" for c in game.contracts)


def test_accepting_driver_proposal_needs_a_seat(game: GameState) -> None:
    proposal = open_outreach(
        "neg-1-1",
        StakeholderType.DRIVER,
        _PLAYER,
        "d_weber",
        DriverTerms(4_000_000, 2),
        game.current_date,
        1,
    )
    game.negotiations.append(proposal)
    with pytest.raises(NegotiationError):
        accept_counter(game, proposal.id)
    assert proposal.phase == NegotiationPhase.RESPONSE_RECEIVED
    assert len(_player_drivers(game)) == 2


# ---------------------------------------------------------------------------
# Season rollover
# ---------------------------------------------------------------------------


def test_lapsed_driver_leaves_at_rollover(game: GameState) -> None:
    """A driver whose deal ends with the season is a free agent in the next one."""
    game.contracts = [
        dataclasses.replace(c, end_season=1) if c.counterparty_id == "d_okafor" else c
        for c in game.contracts
    ]
    game.phase = GamePhase.POST_SEASON
    assert isinstance(end_season(game), SeasonEndResult)
    assert game.drivers["d_okafor"].team_id is None
    assert not any(c.counterparty_id == "d_okafor" for c in game.contracts)
    assert all(s.driver_id != "d_okafor" for s in game.driver_standings)
    assert game.drivers["d_lindqvist"].team_id == _PLAYER


def test_deal_for_next_season_starts_at_rollover(game: GameState) -> None:
    """A driver signed ahead moves into the vacated seat on January 1."""
    game.contracts = [
        dataclasses.replace(c, end_season=1) if c.counterparty_id == "d_okafor" else c
        for c in game.contracts
    ]
    game.contracts.append(
        ActiveContract(StakeholderType.DRIVER, _PLAYER, "d_weber", DriverTerms(3_000_000, 2), 2, 3)
    )
    assert game.drivers["d_weber"].team_id is None

    game.phase = GamePhase.POST_SEASON
    end_season(game)
    assert _player_drivers(game) == {"d_lindqvist", "d_weber"}
    assert game.drivers["d_weber"].salary == 3_000_000
    assert any(s.driver_id == "d_weber" and s.team_id == _PLAYER for s in game.driver_standings)


def test_driver_talks_for_next_season(game: GameState) -> None:
    """Next season's seat is free once a contract runs out, even with a full team today."""
    _expire_after(game, StakeholderType.DRIVER, _PLAYER, 1)
    negotiation = open_negotiation(
        game, StakeholderType.DRIVER, "d_weber", DriverTerms(50_000_000, 2), for_season=2
    )
    assert negotiation.for_season == 2
    _run_until(game, lambda r: bool(r.negotiation_updates), max_ticks=10)
    assert negotiation.phase == NegotiationPhase.COMPLETED
    assert game.drivers["d_weber"].team_id is None
    assert any(
        c.counterparty_id == "d_weber" and (c.start_season, c.end_season) == (2, 3) for c in game.contracts
    )


# ---------------------------------------------------------------------------
# Market
# ---------------------------------------------------------------------------


def test_engine_supplier_approaches_teams_without_a_deal(game: GameState) -> None:
    """On May 1 the current supplier offers a renewal; rivals answer, the player must."""
    _expire_after(game, StakeholderType.MANUFACTURER, _PLAYER, 1)
    _expire_after(game, StakeholderType.MANUFACTURER, "kestrel", 1)

    result = _run_until(game, lambda r: r.date == SimDate(2025, 5, 1))
    engine_talks = {
        n.team_id: n for n in game.negotiations if n.stakeholder_type == StakeholderType.MANUFACTURER
    }
    assert set(engine_talks) == {_PLAYER, "kestrel"}
    own = engine_talks[_PLAYER]
    assert own.counterparty_id == game.teams[_PLAYER].manufacturer_id
    assert own.is_outreach
    assert own.for_season == 2
    assert own.phase == NegotiationPhase.RESPONSE_RECEIVED
    assert any(e.critical and e.data.get("negotiation_id") == own.id for e in result.events)

    _run_until(game, lambda r: r.date == SimDate(2025, 5, 4))
    assert engine_talks["kestrel"].phase == NegotiationPhase.COMPLETED
    assert any(
        c.stakeholder_type == StakeholderType.MANUFACTURER and c.team_id == "kestrel" and c.is_active(2)
        for c in game.contracts
    )

    _run_until(game, lambda r: r.date == SimDate(2025, 5, 16))
    assert own.phase == NegotiationPhase.FAILED


def test_sponsor_pitch_reaches_player_on_april_first(game: GameState) -> None:
    result = _run_until(game, lambda r: r.date == SimDate(2025, 4, 1))
    pitch = next(n for n in game.negotiations if n.team_id == _PLAYER and n.counterparty_id == "tessera")
    assert pitch.stakeholder_type == StakeholderType.SPONSOR
    assert pitch.rounds[0].offered_by == OfferedBy.COUNTERPARTY
    assert any(e.data.get("negotiation_id") == pitch.id for e in result.events)


class _RaiseEveryone:
    def process_day(self, drivers, chiefs, date):
        return {"d_okafor": 1_234_567, "c_aurora_mech": 765_432, "nobody": 1}


def test_market_engine_moves_salaries(repository: ContentRepository) -> None:
    registry = EngineRegistry()
    registry.replace("market", _RaiseEveryone())
    game = new_game(repository, _PLAYER, seed=7, engines=registry)
    run_tick(game)
    assert game.drivers["d_okafor"].salary == 1_234_567
    assert game.chiefs["c_aurora_mech"].salary == 765_432
