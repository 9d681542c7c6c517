"""Negotiation records and contract terms.

Terms are a tagged union with one variant per stakeholder type.  A
:class:`Negotiation` keeps its rounds in a tuple; rounds are frozen and
only ever appended through :meth:`Negotiation.append_round`, which
refuses to touch a negotiation once it has reached a terminal phase.
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from gp_manager.core.dates import SimDate
from gp_manager.errors import NegotiationError

DEFAULT_RESPONSE_DELAY_DAYS: int = 3
DEFAULT_EXPIRATION_DAYS: int = 14


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class StakeholderType(str, Enum):
    MANUFACTURER = "manufacturer"
    DRIVER = "driver"
    STAFF = "staff"
    SPONSOR = "sponsor"


class NegotiationPhase(str, Enum):
    AWAITING_RESPONSE = "AwaitingResponse"
    RESPONSE_RECEIVED = "ResponseReceived"
    COMPLETED = "Completed"
    FAILED = "Failed"


TERMINAL_PHASES: frozenset[NegotiationPhase] = frozenset(
    {NegotiationPhase.COMPLETED, NegotiationPhase.FAILED}
)


class ResponseType(str, Enum):
    ACCEPT = "Accept"
    REJECT = "Reject"
    COUNTER = "Counter"
    NEED_TIME = "NeedTime"


class ResponseTone(str, Enum):
    ENTHUSIASTIC = "Enthusiastic"
    PROFESSIONAL = "Professional"
    DISAPPOINTED = "Disappointed"
    INSULTED = "Insulted"


class OfferedBy(str, Enum):
    # PLAYER is the team side, whether or not the player runs the team.
    PLAYER = "player"
    COUNTERPARTY = "counterparty"


class SponsorPlacement(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"


# ---------------------------------------------------------------------------
# Terms variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ManufacturerTerms:
    """Engine supply deal; ``annual_cost`` is paid each year of ``duration``."""

    annual_cost: int
    duration: int
    upgrades_included: int = 0
    customisation_points_included: int = 0
    optimisation_included: bool = False

    def __post_init__(self) -> None:
        if self.duration < 1:
            raise ValueError("duration must be >= 1.")


@dataclass(frozen=True)
class DriverTerms:
    salary: int
    duration: int

    def __post_init__(self) -> None:
        if self.duration < 1:
            raise ValueError("duration must be >= 1.")


@dataclass(frozen=True)
class StaffTerms:
    salary: int
    duration: int
    signing_bonus: int = 0
    bonus_percent: int = 0
    buyout_required: int = 0

    def __post_init__(self) -> None:
        if self.duration < 1:
            raise ValueError("duration must be >= 1.")


@dataclass(frozen=True)
class SponsorTerms:
    annual_payment: int
    duration: int
    placement: SponsorPlacement = SponsorPlacement.TERTIARY
    points_bonus: int = 0
    win_bonus: int = 0
    exit_clause_position: int | None = None

    def __post_init__(self) -> None:
        if self.duration < 1:
            raise ValueError("duration must be >= 1.")


Terms = Union[ManufacturerTerms, DriverTerms, StaffTerms, SponsorTerms]

TERMS_TYPE: dict[StakeholderType, type] = {
    StakeholderType.MANUFACTURER: ManufacturerTerms,
    StakeholderType.DRIVER: DriverTerms,
    StakeholderType.STAFF: StaffTerms,
    StakeholderType.SPONSOR: SponsorTerms,
}


# ---------------------------------------------------------------------------
# Rounds and negotiations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NegotiationRound:
    """One offer or response; never modified after creation."""

    round_number: int
    offered_by: OfferedBy
    terms: Terms
    offered_date: SimDate
    expires_date: SimDate
    response_type: ResponseType | None = None
    response_tone: ResponseTone | None = None
    response_date: SimDate | None = None
    is_ultimatum: bool = False


@dataclass
class Negotiation:
    """A contract negotiation between a team and one stakeholder.

    Attributes:
        id: Unique identifier; also seeds hidden evaluator quirks.
        stakeholder_type: Discriminates the terms variant.
        team_id: Team making the offers.
        counterparty_id: Manufacturer, driver, chief or sponsor id.
        phase: State machine phase.
        rounds: Rounds in order; ``rounds[i].round_number == i + 1``.
        response_delay_days: Days the counterparty takes to answer the
            latest player offer.
        for_season: First season the resulting contract covers.
    """

    id: str
    stakeholder_type: StakeholderType
    team_id: str
    counterparty_id: str
    phase: NegotiationPhase = NegotiationPhase.AWAITING_RESPONSE
    rounds: tuple[NegotiationRound, ...] = field(default_factory=tuple)
    response_delay_days: int = DEFAULT_RESPONSE_DELAY_DAYS
    for_season: int = 1

    def __post_init__(self) -> None:
        self.rounds = tuple(self.rounds)
        for index, rnd in enumerate(self.rounds):
            self._check_round(rnd, index + 1)

    @property
    def is_closed(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def latest_round(self) -> NegotiationRound | None:
        return self.rounds[-1] if self.rounds else None

    @property
    def started_on(self) -> SimDate | None:
        return self.rounds[0].offered_date if self.rounds else None

    @property
    def is_outreach(self) -> bool:
        """Whether the counterparty opened the talks."""
        return bool(self.rounds) and self.rounds[0].offered_by == OfferedBy.COUNTERPARTY

    def append_round(self, rnd: NegotiationRound) -> None:
        """Append *rnd*, enforcing numbering, terms variant and openness.

        Raises:
            NegotiationError: If the negotiation is closed.
            ValueError: If the round number or terms variant is wrong.
        """
        if self.is_closed:
            raise NegotiationError(
                f"negotiation {self.id} is {self.phase.value}; no further rounds allowed",
                context={"negotiation_id": self.id},
            )
        self._check_round(rnd, len(self.rounds) + 1)
        self.rounds = self.rounds + (rnd,)

    def _check_round(self, rnd: NegotiationRound, expected_number: int) -> None:
        if rnd.round_number != expected_number:
            raise ValueError(
                f"round number {rnd.round_number} out of sequence, expected {expected_number}"
            )
        expected_type = TERMS_TYPE[self.stakeholder_type]
        if not isinstance(rnd.terms, expected_type):
            raise ValueError(
                f"{self.stakeholder_type.value} negotiation requires "
                f"{expected_type.__name__}, got {type(rnd.terms).__name__}"
            )

    def player_rounds(self) -> list[NegotiationRound]:
        return [r for r in self.rounds if r.offered_by == OfferedBy.PLAYER]

    def counterparty_rounds(self) -> list[NegotiationRound]:
        return [r for r in self.rounds if r.offered_by == OfferedBy.COUNTERPARTY]


# ---------------------------------------------------------------------------
# Evaluation result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EvaluationResult:
    """What a stakeholder evaluator decided about the latest offer."""

    response_type: ResponseType
    counter_terms: Terms | None
    tone: ResponseTone
    delay_days: int
    is_newsworthy: bool
    relationship_change: int
    is_ultimatum: bool = False


def safe_reject() -> EvaluationResult:
    """Response used when a referenced entity no longer exists."""
    return EvaluationResult(
        response_type=ResponseType.REJECT,
        counter_terms=None,
        tone=ResponseTone.PROFESSIONAL,
        delay_days=DEFAULT_RESPONSE_DELAY_DAYS,
        is_newsworthy=False,
        relationship_change=0,
    )


def stable_fraction(*parts: str) -> float:
    """Deterministic value in ``[0, 1]`` derived from *parts*."""
    return zlib.crc32("-".join(parts).encode("utf-8")) / 0xFFFFFFFF
