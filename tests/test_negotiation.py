"""Tests for the negotiation state machine, engine and contract signing."""

import pytest

from gp_manager.core.dates import SimDate
from gp_manager.core.entities import Chief, ChiefRole, Driver, Team
from gp_manager.errors import NegotiationError
from gp_manager.negotiation.actions import (
    accept_counter,
    expire_stale,
    open_outreach,
    start_negotiation,
    submit_offer,
    walk_away,
)
from gp_manager.negotiation.contracts import (
    ActiveContract,
    has_seat_for,
    lapse_contracts,
    merge_contract,
    prune_roster_contracts,
    sign_contract,
    start_contracts,
)
from gp_manager.negotiation.engine import (
    NegotiationContext,
    NegotiationEngine,
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
    SponsorTerms,
    StaffTerms,
    StakeholderType,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_DAY = SimDate(2025, 2, 3)


def _response(
    response_type: ResponseType,
    counter: DriverTerms | None = None,
    ultimatum: bool = False,
    delay: int = 3,
    relationship: int = 0,
) -> EvaluationResult:
    return EvaluationResult(
        response_type=response_type,
        counter_terms=counter,
        tone=ResponseTone.PROFESSIONAL,
        delay_days=delay,
        is_newsworthy=False,
        relationship_change=relationship,
        is_ultimatum=ultimatum,
    )


def _engine(result: EvaluationResult) -> NegotiationEngine:
    return NegotiationEngine(evaluators={StakeholderType.DRIVER: lambda n, c: result})


def _context(drivers: dict[str, Driver] | None = None) -> NegotiationContext:
    team = Team(id="t1", name="Team One", budget=50_000_000)
    return NegotiationContext(
        teams={"t1": team},
        drivers=drivers if drivers is not None else {},
        chiefs={},
        sponsors={},
        manufacturers={},
    )


def _open_driver_negotiation(salary: int = 4_000_000) -> Negotiation:
    return start_negotiation(
        "neg-1-1", StakeholderType.DRIVER, "t1", "d9", DriverTerms(salary=salary, duration=2), _DAY
    )


def _respond(negotiation, result: EvaluationResult, scores: dict[str, int] | None = None):
    due = SimDate(2025, 2, 6)
    processed = _engine(result).process_day([negotiation], due, _context())
    assert len(processed.updates) == 1
    update = processed.updates[0]
    apply_negotiation_update(negotiation, update, scores if scores is not None else {})
    return update


# ---------------------------------------------------------------------------
# Rounds and phases
# ---------------------------------------------------------------------------


def test_start_creates_first_player_round() -> None:
    """A new negotiation holds round 1 and waits for the counterparty."""
    negotiation = _open_driver_negotiation()
    assert negotiation.phase == NegotiationPhase.AWAITING_RESPONSE
    assert [r.round_number for r in negotiation.rounds] == [1]
    assert negotiation.rounds[0].offered_by == OfferedBy.PLAYER


def test_round_numbering_and_terms_enforced() -> None:
    """Rounds must be numbered in sequence and carry the matching terms."""
    negotiation = _open_driver_negotiation()
    skipped = NegotiationRound(3, OfferedBy.COUNTERPARTY, DriverTerms(1, 1), _DAY, _DAY)
    with pytest.raises(ValueError):
        negotiation.append_round(skipped)
    wrong_terms = NegotiationRound(2, OfferedBy.COUNTERPARTY, StaffTerms(1, 1), _DAY, _DAY)
    with pytest.raises(ValueError):
        negotiation.append_round(wrong_terms)


def test_terms_reject_zero_duration() -> None:
    with pytest.raises(ValueError):
        DriverTerms(salary=1, duration=0)
    with pytest.raises(ValueError):
        SponsorTerms(annual_payment=1, duration=0)


def test_closed_negotiation_refuses_everything() -> None:
    """After walking away no round, offer or acceptance is possible."""
    negotiation = _open_driver_negotiation()
    walk_away(negotiation)
    assert negotiation.phase == NegotiationPhase.FAILED
    with pytest.raises(NegotiationError):
        negotiation.append_round(
            NegotiationRound(2, OfferedBy.COUNTERPARTY, DriverTerms(1, 1), _DAY, _DAY)
        )
    with pytest.raises(NegotiationError):
        submit_offer(negotiation, DriverTerms(5_000_000, 2), _DAY)
    with pytest.raises(NegotiationError):
        accept_counter(negotiation)
    with pytest.raises(NegotiationError):
        walk_away(negotiation)


def test_is_due_after_response_delay() -> None:
    """The counterparty answers once the delay since the offer has elapsed."""
    negotiation = _open_driver_negotiation()
    assert not is_due(negotiation, SimDate(2025, 2, 5))
    assert is_due(negotiation, SimDate(2025, 2, 6))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def test_process_day_does_not_mutate() -> None:
    """Evaluation only describes the update."""
    negotiation = _open_driver_negotiation()
    _engine(_response(ResponseType.ACCEPT)).process_day([negotiation], SimDate(2025, 2, 6), _context())
    assert negotiation.phase == NegotiationPhase.AWAITING_RESPONSE
    assert len(negotiation.rounds) == 1


@pytest.mark.parametrize(
    "response_type, phase",
    [
        (ResponseType.ACCEPT, NegotiationPhase.COMPLETED),
        (ResponseType.REJECT, NegotiationPhase.FAILED),
        (ResponseType.COUNTER, NegotiationPhase.RESPONSE_RECEIVED),
    ],
)
def test_response_phase_mapping(response_type: ResponseType, phase: NegotiationPhase) -> None:
    """Each answer moves the negotiation to its phase and appends a round."""
    negotiation = _open_driver_negotiation()
    counter = DriverTerms(6_000_000, 2) if response_type == ResponseType.COUNTER else None
    _respond(negotiation, _response(response_type, counter=counter))
    assert negotiation.phase == phase
    assert len(negotiation.rounds) == 2
    latest = negotiation.latest_round
    assert latest.offered_by == OfferedBy.COUNTERPARTY
    assert latest.response_type == response_type
    expected_terms = counter if counter is not None else negotiation.rounds[0].terms
    assert latest.terms == expected_terms


def test_need_time_postpones_without_round() -> None:
    """NeedTime appends nothing and extends the response delay."""
    negotiation = _open_driver_negotiation()
    update = _respond(negotiation, _response(ResponseType.NEED_TIME, delay=2))
    assert update.new_round is None
    assert not update.should_stop
    assert negotiation.phase == NegotiationPhase.AWAITING_RESPONSE
    assert len(negotiation.rounds) == 1
    assert negotiation.response_delay_days == 5


def test_ultimatum_blocks_new_offer() -> None:
    """After an ultimatum the player may only accept or walk away."""
    negotiation = _open_driver_negotiation()
    update = _respond(
        negotiation, _response(ResponseType.COUNTER, counter=DriverTerms(7_000_000, 2), ultimatum=True)
    )
    assert update.should_stop
    with pytest.raises(NegotiationError):
        submit_offer(negotiation, DriverTerms(6_500_000, 2), _DAY)
    accept_counter(negotiation)
    assert negotiation.phase == NegotiationPhase.COMPLETED
    assert negotiation.latest_round.terms.salary == 7_000_000


def test_counter_allows_new_offer() -> None:
    """A plain counter hands the turn back to the player."""
    negotiation = _open_driver_negotiation()
    update = _respond(negotiation, _response(ResponseType.COUNTER, counter=DriverTerms(7_000_000, 2)))
    assert not update.should_stop
    submit_offer(negotiation, DriverTerms(6_000_000, 2), SimDate(2025, 2, 7), final_offer=True)
    assert negotiation.phase == NegotiationPhase.AWAITING_RESPONSE
    assert [r.round_number for r in negotiation.rounds] == [1, 2, 3]
    assert negotiation.latest_round.is_ultimatum
    with pytest.raises(NegotiationError):
        submit_offer(negotiation, DriverTerms(6_100_000, 2), SimDate(2025, 2, 7))


def test_relationship_clamped_and_integer() -> None:
    """Relationship scores stay integers within 0-100."""
    negotiation = _open_driver_negotiation()
    scores = {"d9": 98}
    _respond(negotiation, _response(ResponseType.ACCEPT, relationship=5), scores)
    assert scores["d9"] == 100
    assert isinstance(scores["d9"], int)


def test_missing_counterparty_gets_safe_reject() -> None:
    """A negotiation whose driver no longer exists is rejected quietly."""
    negotiation = _open_driver_negotiation()
    result = NegotiationEngine().process_day([negotiation], SimDate(2025, 2, 6), _context())
    evaluation = result.updates[0].evaluation
    assert evaluation.response_type == ResponseType.REJECT
    assert evaluation.relationship_change == 0


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


def test_sign_driver_contract() -> None:
    """A signed driver joins the team for the agreed seasons."""
    driver = Driver(id="d9", name="New Driver", team_id=None, birth_year=2000)
    negotiation = _open_driver_negotiation()
    _respond(negotiation, _response(ResponseType.ACCEPT))
    contract = sign_contract(negotiation, 3, {}, {"d9": driver}, {}, {})
    assert isinstance(contract, ActiveContract)
    assert (contract.start_season, contract.end_season) == (3, 4)
    assert contract.is_active(4) and not contract.is_active(5)
    assert driver.team_id == "t1"
    assert driver.salary == 4_000_000


def test_sign_requires_completed_negotiation() -> None:
    with pytest.raises(NegotiationError):
        sign_contract(_open_driver_negotiation(), 1, {}, {}, {}, {})


def test_signed_chief_displaces_incumbent() -> None:
    """Only one chief per role stays with the team."""
    incumbent = Chief(id="c1", name="Old", role=ChiefRole.DESIGNER, ability=60, team_id="t1")
    hire = Chief(id="c2", name="New", role=ChiefRole.DESIGNER, ability=80)
    negotiation = start_negotiation(
        "neg-1-2", StakeholderType.STAFF, "t1", "c2", StaffTerms(salary=2_000_000, duration=3), _DAY
    )
    negotiation.phase = NegotiationPhase.COMPLETED
    sign_contract(negotiation, 1, {}, {}, {"c1": incumbent, "c2": hire}, {})
    assert hire.team_id == "t1"
    assert incumbent.team_id is None


def _driver_contract(driver_id: str, team_id: str, start: int, end: int) -> ActiveContract:
    return ActiveContract(
        StakeholderType.DRIVER, team_id, driver_id, DriverTerms(1_000_000, end - start + 1), start, end
    )


def test_contract_for_next_season_moves_driver_at_rollover() -> None:
    """A deal for a later season leaves the roster alone until that season starts."""
    driver = Driver(id="d9", name="New Driver", team_id="t2", birth_year=2000)
    negotiation = start_negotiation(
        "neg-1-1", StakeholderType.DRIVER, "t1", "d9", DriverTerms(3_000_000, 2), _DAY, for_season=2
    )
    negotiation.phase = NegotiationPhase.COMPLETED
    contract = sign_contract(negotiation, 1, {}, {"d9": driver}, {}, {})
    assert (contract.start_season, contract.end_season) == (2, 3)
    assert driver.team_id == "t2"

    started = start_contracts([contract], 2, {}, {"d9": driver}, {}, {})
    assert started == [contract]
    assert driver.team_id == "t1"
    assert driver.salary == 3_000_000


def test_merge_cuts_short_conflicting_driver_deal() -> None:
    """A driver's old deal ends the season before the new one starts."""
    old = _driver_contract("d9", "t2", 1, 2)
    later = merge_contract([old], _driver_contract("d9", "t1", 2, 3), 1)
    assert [(c.team_id, c.start_season, c.end_season) for c in later] == [("t2", 1, 1), ("t1", 2, 3)]

    immediate = merge_contract([old], _driver_contract("d9", "t1", 1, 2), 1)
    assert [c.team_id for c in immediate] == ["t1"]


def test_merge_keeps_other_customers_of_a_supplier() -> None:
    """A new engine deal only replaces the signing team's own supplier."""
    t1_deal = ActiveContract(StakeholderType.MANUFACTURER, "t1", "m1", ManufacturerTerms(10, 2), 1, 2)
    t2_deal = ActiveContract(StakeholderType.MANUFACTURER, "t2", "m1", ManufacturerTerms(10, 2), 1, 2)
    switch = ActiveContract(StakeholderType.MANUFACTURER, "t1", "m2", ManufacturerTerms(12, 2), 1, 2)
    merged = merge_contract([t1_deal, t2_deal], switch, 1)
    assert merged == [t2_deal, switch]


def test_lapsed_contract_releases_driver() -> None:
    """A driver out of contract becomes a free agent; a renewed one stays."""
    leaving = Driver(id="d1", name="Leaving", team_id="t1", birth_year=1995)
    staying = Driver(id="d2", name="Staying", team_id="t1", birth_year=1995)
    chief = Chief(id="c1", name="Unsigned", role=ChiefRole.DESIGNER, ability=70, team_id="t1")
    contracts = [
        _driver_contract("d1", "t1", 1, 1),
        _driver_contract("d2", "t1", 1, 1),
        _driver_contract("d2", "t1", 2, 3),
    ]
    kept = lapse_contracts(contracts, 2, {"d1": leaving, "d2": staying}, {"c1": chief})
    assert kept == [contracts[2]]
    assert leaving.team_id is None
    assert staying.team_id == "t1"
    assert chief.team_id == "t1"


def test_lapse_ignores_driver_who_already_moved() -> None:
    moved = Driver(id="d1", name="Moved", team_id="t2", birth_year=1995)
    lapse_contracts([_driver_contract("d1", "t1", 1, 1)], 2, {"d1": moved}, {})
    assert moved.team_id == "t2"


def test_prune_drops_deals_of_departed_holders() -> None:
    """Current deals follow the roster; future deals are kept."""
    driver = Driver(id="d1", name="Moved", team_id="t2", birth_year=1995)
    current = _driver_contract("d1", "t1", 1, 2)
    future = _driver_contract("d1", "t3", 3, 4)
    retired = _driver_contract("d8", "t1", 1, 2)
    assert prune_roster_contracts([current, future, retired], 1, {"d1": driver}, {}) == [future]


def test_seat_guard_counts_roster_contracts_and_talks() -> None:
    """A team has two seats; open talks with other drivers hold one."""
    drivers = {
        "d1": Driver(id="d1", name="One", team_id="t1", birth_year=1995),
        "d2": Driver(id="d2", name="Two", team_id=None, birth_year=1995),
        "d3": Driver(id="d3", name="Three", team_id=None, birth_year=1995),
    }
    contracts = [_driver_contract("d1", "t1", 1, 1), _driver_contract("d2", "t1", 2, 3)]
    assert has_seat_for("d3", "t1", 1, 1, contracts, drivers)
    assert has_seat_for("d1", "t1", 1, 1, contracts, drivers)
    # Season 2: d1's deal has run out but d2 is signed.
    assert has_seat_for("d3", "t1", 2, 1, contracts, drivers)

    talks = start_negotiation(
        "neg-1-1", StakeholderType.DRIVER, "t1", "d3", DriverTerms(1, 2), _DAY, for_season=2
    )
    assert not has_seat_for("d8", "t1", 2, 1, contracts, drivers, [talks])
    assert has_seat_for("d3", "t1", 2, 1, contracts, drivers, [talks])

    drivers["d2"].team_id = "t1"
    assert not has_seat_for("d3", "t1", 1, 1, contracts, drivers)


# ---------------------------------------------------------------------------
# Counterparty proposals
# ---------------------------------------------------------------------------


def _outreach(expiry_days: int = 14) -> Negotiation:
    return open_outreach(
        "neg-1-4",
        StakeholderType.DRIVER,
        "t1",
        "d9",
        DriverTerms(salary=5_000_000, duration=2),
        _DAY,
        2,
        expiry_days,
    )


def test_outreach_waits_for_the_team() -> None:
    """A counterparty proposal opens in ResponseReceived and can be accepted."""
    negotiation = _outreach()
    assert negotiation.phase == NegotiationPhase.RESPONSE_RECEIVED
    assert negotiation.is_outreach
    assert negotiation.started_on == _DAY
    assert negotiation.for_season == 2
    assert negotiation.latest_round.offered_by == OfferedBy.COUNTERPARTY
    assert not is_due(negotiation, SimDate(2025, 3, 1))
    accept_counter(negotiation)
    assert negotiation.phase == NegotiationPhase.COMPLETED


def test_outreach_answered_with_counter_offer() -> None:
    negotiation = _outreach()
    submit_offer(negotiation, DriverTerms(4_000_000, 2), SimDate(2025, 2, 5))
    assert negotiation.phase == NegotiationPhase.AWAITING_RESPONSE
    assert [r.offered_by for r in negotiation.rounds] == [OfferedBy.COUNTERPARTY, OfferedBy.PLAYER]
    assert not _open_driver_negotiation().is_outreach


def test_unanswered_outreach_lapses_after_expiry() -> None:
    """Proposals fail the day after they expire; the team's own offers never lapse."""
    proposal = _outreach(expiry_days=5)
    own_offer = _open_driver_negotiation()
    assert expire_stale([proposal, own_offer], SimDate(2025, 2, 8)) == []
    assert expire_stale([proposal, own_offer], SimDate(2025, 2, 9)) == [proposal]
    assert proposal.phase == NegotiationPhase.FAILED
    assert own_offer.phase == NegotiationPhase.AWAITING_RESPONSE
