"""Tests for the four stakeholder response evaluators."""

import pytest

from gp_manager.core.dates import SimDate
from gp_manager.core.entities import (
    CareerSeason,
    Chief,
    ChiefRole,
    Driver,
    Manufacturer,
    ManufacturerCosts,
    Sponsor,
    SponsorTier,
    Team,
)
from gp_manager.negotiation.driver import (
    DriverEvaluationInput,
    career_weight,
    evaluate_driver_offer,
    market_value,
    perceived_value,
)
from gp_manager.negotiation.manufacturer import (
    ManufacturerEvaluationInput,
    calculate_desperation,
    evaluate_manufacturer_offer,
    secret_minimum_margin,
)
from gp_manager.negotiation.models import (
    DriverTerms,
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
from gp_manager.negotiation.sponsor import SponsorEvaluationInput, evaluate_sponsor_offer
from gp_manager.negotiation.staff import StaffEvaluationInput, evaluate_staff_offer, expected_salary

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_DAY = SimDate(2025, 4, 1)
_TEAM = Team(id="t1", name="Team One", budget=30_000_000)
_RICH = Team(id="t2", name="Team Two", budget=90_000_000)
_COSTS = ManufacturerCosts(base_engine=5_000_000, upgrade=1_000_000, customisation_point=500_000, optimisation=2_000_000)
_MANUFACTURER = Manufacturer(id="m1", name="Motori", costs=_COSTS)


def _round(number: int, offered_by: OfferedBy, terms, ultimatum: bool = False) -> NegotiationRound:
    return NegotiationRound(number, offered_by, terms, _DAY, _DAY, is_ultimatum=ultimatum)


def _negotiation(stakeholder_type: StakeholderType, *rounds: NegotiationRound) -> Negotiation:
    return Negotiation(
        id="neg-1-1",
        stakeholder_type=stakeholder_type,
        team_id="t1",
        counterparty_id="x",
        phase=NegotiationPhase.AWAITING_RESPONSE,
        rounds=rounds,
    )


def _driver_input(salary: int, seats: int = 3, current_round: int = 1) -> DriverEvaluationInput:
    driver = Driver(id="d1", name="Driver One", team_id=None, birth_year=1998)
    return DriverEvaluationInput(
        driver=driver,
        offering_team=_TEAM,
        terms=DriverTerms(salary=salary, duration=2),
        all_drivers=[driver],
        all_teams=[_TEAM],
        constructor_positions={"t1": 1},
        available_seats=seats,
        current_round=current_round,
        max_rounds=5,
        current_year=2025,
    )


def _manufacturer_input(negotiation: Negotiation) -> ManufacturerEvaluationInput:
    return ManufacturerEvaluationInput(
        negotiation=negotiation,
        manufacturer=_MANUFACTURER,
        team=_TEAM,
        all_teams=[_TEAM, _RICH],
        relationship_score=50,
        secured_team_ids=frozenset(),
        customer_team_ids=frozenset(),
    )


def _sponsor_input(
    annual_payment: int,
    position: int = 1,
    total_teams: int = 10,
    min_reputation: int = 50,
    existing: list[str] | None = None,
    final_offer: bool = False,
) -> SponsorEvaluationInput:
    sponsor = Sponsor("s1", "Fizz Cola", SponsorTier.MAJOR, 10_000_000, min_reputation, rival_group="drinks")
    rival = Sponsor("s2", "Pop Cola", SponsorTier.MINOR, 2_000_000, 30, rival_group="drinks")
    terms = SponsorTerms(annual_payment=annual_payment, duration=3)
    return SponsorEvaluationInput(
        negotiation=_negotiation(StakeholderType.SPONSOR, _round(1, OfferedBy.PLAYER, terms, final_offer)),
        sponsor=sponsor,
        all_sponsors={"s1": sponsor, "s2": rival},
        existing_sponsor_ids=existing or [],
        relationship_score=50,
        team_position=position,
        total_teams=total_teams,
    )


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def test_perceived_value() -> None:
    """No history is neutral; recent seasons weigh more."""
    assert perceived_value([]) == 0.5
    history = [CareerSeason(1, "t1", 10, 100), CareerSeason(2, "t1", 90, 100)]
    assert perceived_value(history) > 0.5


def test_market_value_range() -> None:
    """A lone driver sits at the midpoint between floor and ceiling."""
    driver = Driver(id="d1", name="Driver One", team_id=None, birth_year=1998)
    assert market_value(driver, [driver]) == 11_000_000
    assert career_weight(20) == 0.3
    assert career_weight(40) == 0.7


@pytest.mark.parametrize(
    "salary, seats, expected",
    [
        (22_000_000, 8, ResponseType.ACCEPT),
        (11_000_000, 3, ResponseType.ACCEPT),
        (11_000_000, 8, ResponseType.COUNTER),
        (6_000_000, 3, ResponseType.COUNTER),
        (3_000_000, 2, ResponseType.ACCEPT),
        (3_000_000, 3, ResponseType.REJECT),
    ],
)
def test_driver_ratio_bands(salary: int, seats: int, expected: ResponseType) -> None:
    """The offered/required ratio and open seats decide the answer."""
    assert evaluate_driver_offer(_driver_input(salary, seats)).response_type == expected


def test_driver_counter_terms() -> None:
    """Counters ask for the required salary, as an ultimatum when seats are scarce."""
    relaxed = evaluate_driver_offer(_driver_input(6_000_000, seats=3))
    assert relaxed.counter_terms == DriverTerms(salary=11_000_000, duration=2)
    assert not relaxed.is_ultimatum
    scarce = evaluate_driver_offer(_driver_input(6_000_000, seats=2))
    assert scarce.is_ultimatum
    late = evaluate_driver_offer(_driver_input(6_000_000, seats=3, current_round=4))
    assert late.is_ultimatum
    greedy = evaluate_driver_offer(_driver_input(11_000_000, seats=8))
    assert greedy.counter_terms.salary == 12_100_000


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------


def _staff_input(salary: int, duration: int = 2) -> StaffEvaluationInput:
    chief = Chief(id="c1", name="Chief", role=ChiefRole.DESIGNER, ability=90)
    return StaffEvaluationInput(
        chief=chief,
        offering_team=_TEAM,
        terms=StaffTerms(salary=salary, duration=duration),
        all_teams=[_TEAM],
        current_round=1,
        max_rounds=5,
    )


def _expected() -> int:
    return expected_salary(Chief(id="c1", name="Chief", role=ChiefRole.DESIGNER, ability=90))


def test_staff_accepts_market_salary() -> None:
    result = evaluate_staff_offer(_staff_input(_expected()))
    assert result.response_type == ResponseType.ACCEPT
    assert result.tone == ResponseTone.ENTHUSIASTIC
    assert result.is_newsworthy


def test_staff_counter_asks_for_signing_bonus_when_close() -> None:
    """A nearly met salary is countered with a 15% signing bonus."""
    expected = _expected()
    result = evaluate_staff_offer(_staff_input(round(expected * 0.95)))
    assert result.response_type == ResponseType.COUNTER
    assert result.counter_terms.salary == round(expected * 0.95)
    assert result.counter_terms.signing_bonus == round(expected * 0.15)


def test_staff_counter_asks_for_salary_when_far() -> None:
    expected = _expected()
    result = evaluate_staff_offer(_staff_input(round(expected * 0.8)))
    assert result.response_type == ResponseType.COUNTER
    assert result.counter_terms.salary == expected


def test_staff_long_contract_penalty_and_reject() -> None:
    """Long deals cost ratio; lowball offers are rejected."""
    expected = _expected()
    assert evaluate_staff_offer(_staff_input(round(expected * 1.02), duration=4)).response_type == (
        ResponseType.COUNTER
    )
    low = evaluate_staff_offer(_staff_input(round(expected * 0.5)))
    assert low.response_type == ResponseType.REJECT
    assert low.relationship_change < 0


# ---------------------------------------------------------------------------
# Manufacturer
# ---------------------------------------------------------------------------


def test_secret_margin_is_stable() -> None:
    """The hidden margin depends only on the negotiation id."""
    margin = secret_minimum_margin("neg-1-1")
    assert margin == secret_minimum_margin("neg-1-1")
    assert 1.0 <= margin <= 1.15


def test_desperation() -> None:
    teams = [Team("a", "A", 1), Team("b", "B", 1), Team("c", "C", 1)]
    customers = frozenset({"a", "b"})
    assert calculate_desperation(teams, frozenset(), frozenset()) == 0.0
    assert calculate_desperation(teams, frozenset(), customers) == pytest.approx(1 / 3)
    assert calculate_desperation(teams, frozenset({"c"}), customers) == 1.0


def test_manufacturer_accepts_comfortable_margin() -> None:
    """An offer above cost plus 15% is accepted in the first round."""
    negotiation = _negotiation(
        StakeholderType.MANUFACTURER,
        _round(1, OfferedBy.PLAYER, ManufacturerTerms(annual_cost=11_600_000, duration=1)),
    )
    assert evaluate_manufacturer_offer(_manufacturer_input(negotiation)).response_type == ResponseType.ACCEPT


def test_manufacturer_opens_at_ideal_margin() -> None:
    """A low first offer is countered at cost plus 30%."""
    negotiation = _negotiation(
        StakeholderType.MANUFACTURER,
        _round(1, OfferedBy.PLAYER, ManufacturerTerms(annual_cost=10_000_000, duration=1)),
    )
    result = evaluate_manufacturer_offer(_manufacturer_input(negotiation))
    assert result.response_type == ResponseType.COUNTER
    assert result.counter_terms.annual_cost == pytest.approx(13_000_000, abs=1)
    assert not result.is_ultimatum


def test_manufacturer_aggressive_offer_draws_ultimatum() -> None:
    """Lowering the offer after a counter is insulting and ends the bargaining."""
    negotiation = _negotiation(
        StakeholderType.MANUFACTURER,
        _round(1, OfferedBy.PLAYER, ManufacturerTerms(annual_cost=10_000_000, duration=1)),
        _round(2, OfferedBy.COUNTERPARTY, ManufacturerTerms(annual_cost=13_000_000, duration=1)),
        _round(3, OfferedBy.PLAYER, ManufacturerTerms(annual_cost=9_000_000, duration=1)),
    )
    result = evaluate_manufacturer_offer(_manufacturer_input(negotiation))
    assert result.response_type == ResponseType.COUNTER
    assert result.is_ultimatum
    assert result.tone == ResponseTone.INSULTED
    assert result.relationship_change < 0


@pytest.mark.parametrize("offer, expected", [(11_600_000, ResponseType.ACCEPT), (9_000_000, ResponseType.REJECT)])
def test_manufacturer_answer_to_ultimatum(offer: int, expected: ResponseType) -> None:
    """Answering an ultimatum gets a yes or no against the floor price."""
    negotiation = _negotiation(
        StakeholderType.MANUFACTURER,
        _round(1, OfferedBy.PLAYER, ManufacturerTerms(annual_cost=10_000_000, duration=1)),
        _round(2, OfferedBy.COUNTERPARTY, ManufacturerTerms(annual_cost=12_000_000, duration=1), True),
        _round(3, OfferedBy.PLAYER, ManufacturerTerms(annual_cost=offer, duration=1)),
    )
    assert evaluate_manufacturer_offer(_manufacturer_input(negotiation)).response_type == expected


# ---------------------------------------------------------------------------
# Sponsor
# ---------------------------------------------------------------------------


def test_sponsor_rival_conflict() -> None:
    """A sponsor never joins a team carrying a rival brand."""
    result = evaluate_sponsor_offer(_sponsor_input(12_500_000, existing=["s2"]))
    assert result.response_type == ResponseType.REJECT
    assert result.relationship_change == 0


def test_sponsor_hard_gate() -> None:
    result = evaluate_sponsor_offer(_sponsor_input(12_500_000, position=10))
    assert result.response_type == ResponseType.REJECT


def test_sponsor_premium_team() -> None:
    """Teams above expectations earn a premium on the base payment."""
    accepted = evaluate_sponsor_offer(_sponsor_input(12_500_000))
    assert accepted.response_type == ResponseType.ACCEPT
    assert accepted.tone == ResponseTone.ENTHUSIASTIC
    countered = evaluate_sponsor_offer(_sponsor_input(9_000_000))
    assert countered.response_type == ResponseType.COUNTER
    assert countered.counter_terms.annual_payment == 10_625_000
    assert countered.counter_terms.exit_clause_position is None
    assert evaluate_sponsor_offer(_sponsor_input(5_000_000)).response_type == ResponseType.REJECT


def test_sponsor_protective_terms_below_soft_gate() -> None:
    """A weak team is countered with an exit clause and a shorter deal."""
    result = evaluate_sponsor_offer(_sponsor_input(10_000_000, position=3, total_teams=11, min_reputation=100))
    assert result.response_type == ResponseType.COUNTER
    terms = result.counter_terms
    assert terms.exit_clause_position is not None
    assert 5 <= terms.exit_clause_position <= 10
    assert terms.duration <= 2


def test_sponsor_final_offer_is_yes_or_no() -> None:
    assert evaluate_sponsor_offer(_sponsor_input(8_000_000, final_offer=True)).response_type == (
        ResponseType.ACCEPT
    )
    assert evaluate_sponsor_offer(_sponsor_input(5_000_000, final_offer=True)).response_type == (
        ResponseType.REJECT
    )
