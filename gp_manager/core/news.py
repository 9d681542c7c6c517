"""Calendar events derived from a tick.

The simulation only ever *appends* to the :class:`EventLog`.  Events about
the player's own team arrive as emails, and the important ones are marked
critical so the scheduler pauses; everything else is a public headline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from gp_manager.core.dates import SimDate
from gp_manager.core.design import DesignResult, MilestoneKind
from gp_manager.core.race import RaceWeekendResult
from gp_manager.core.season_end import SeasonEndResult
from gp_manager.core.state import PendingPart
from gp_manager.core.testing import TestingResult
from gp_manager.negotiation.engine import NegotiationUpdate
from gp_manager.negotiation.models import Negotiation, ResponseType, StakeholderType

logger = logging.getLogger(__name__)

PODIUM_SIZE: int = 3


class EventKind(str, Enum):
    EMAIL = "Email"
    HEADLINE = "Headline"


@dataclass(frozen=True)
class CalendarEvent:
    """A dated message for the player.

    Attributes:
        id: Sequential identifier assigned by the log.
        date: Day the event happened.
        kind: Email to the player or public headline.
        subject: One-line summary.
        body: Full text.
        critical: Whether the event pauses the simulation.
        data: Optional structured payload.
    """

    id: str
    date: SimDate
    kind: EventKind
    subject: str
    body: str
    critical: bool = False
    data: dict[str, Any] = field(default_factory=dict)


class EventLog:
    """Append-only list of calendar events."""

    def __init__(self) -> None:
        self._events: list[CalendarEvent] = []

    def append(
        self,
        date: SimDate,
        kind: EventKind,
        subject: str,
        body: str,
        critical: bool = False,
        data: dict[str, Any] | None = None,
    ) -> CalendarEvent:
        event = CalendarEvent(
            id=f"evt-{len(self._events) + 1}",
            date=date,
            kind=kind,
            subject=subject,
            body=body,
            critical=critical,
            data=dict(data or {}),
        )
        self._events.append(event)
        logger.debug("%s %s: %s", event.kind.value, event.date, event.subject)
        return event

    def __iter__(self) -> Iterator[CalendarEvent]:
        return iter(tuple(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def since(self, index: int) -> list[CalendarEvent]:
        return list(self._events[index:])

    def critical_since(self, index: int) -> list[CalendarEvent]:
        """Critical events appended at or after position *index*."""
        return [e for e in self._events[index:] if e.critical]


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------


def design_events(
    log: EventLog,
    results: dict[str, DesignResult],
    player_team_id: str,
    team_names: dict[str, str],
) -> None:
    """Player milestones as critical emails; rival breakthroughs leak out
    as headlines."""
    for team_id, result in results.items():
        for milestone in result.milestones:
            if team_id == player_team_id:
                log.append(
                    milestone.date,
                    EventKind.EMAIL,
                    f"Design office: {milestone.description}",
                    f"Your design office reports: {milestone.description}.",
                    critical=True,
                    data={"kind": milestone.kind.value},
                )
            elif milestone.kind == MilestoneKind.BREAKTHROUGH:
                name = team_names.get(team_id, team_id)
                log.append(
                    milestone.date,
                    EventKind.HEADLINE,
                    f"{name} rumoured to have found a technical breakthrough",
                    f"Paddock sources suggest {name} have made a significant step forward.",
                    data={"team_id": team_id},
                )


def testing_events(log: EventLog, date: SimDate, result: TestingResult) -> None:
    """Critical email for the player's completed test session."""
    if not result.completed:
        return
    if result.handling_revealed is not None:
        body = f"The car's handling has been measured at {result.handling_revealed}%."
    elif result.problem_discovered is not None:
        body = f"Testing has uncovered a handling problem: {result.problem_discovered.value}."
    else:
        body = "Testing found no further handling problems."
    log.append(
        date,
        EventKind.EMAIL,
        "Test session complete",
        body,
        critical=True,
        data={
            "handling_revealed": result.handling_revealed,
            "problem": result.problem_discovered.value if result.problem_discovered else None,
        },
    )


def part_delivered_event(log: EventLog, date: SimDate, part: PendingPart) -> None:
    log.append(
        date,
        EventKind.EMAIL,
        "Part delivered",
        f"The factory has delivered: {part.description} (+{part.handling_gain} handling).",
        data={"handling_gain": part.handling_gain},
    )


def race_events(
    log: EventLog,
    race: RaceWeekendResult,
    player_team_id: str,
    driver_names: dict[str, str],
    circuit_name: str,
) -> None:
    """Headline for the winner and a results email for the player."""
    winner = race.winner
    if winner is not None:
        podium = [driver_names.get(d, d) for d in race.classification[:PODIUM_SIZE]]
        log.append(
            race.date,
            EventKind.HEADLINE,
            f"{driver_names.get(winner, winner)} wins at {circuit_name}",
            f"Podium: {', '.join(podium)}. Conditions: {race.weather.value}.",
            data={"race_number": race.race_number, "winner": winner},
        )

    own = sorted(
        (r for r in race.results if r.team_id == player_team_id), key=lambda r: r.finish_position
    )
    if own:
        lines = [
            f"{driver_names.get(r.driver_id, r.driver_id)}: P{r.finish_position} ({r.status.value})"
            for r in own
        ]
        log.append(
            race.date,
            EventKind.EMAIL,
            f"Race report: {circuit_name}",
            "\n".join(lines),
            data={"race_number": race.race_number},
        )


_OUTCOME_TEXT: dict[ResponseType, str] = {
    ResponseType.ACCEPT: "accepted your offer",
    ResponseType.REJECT: "rejected your offer",
    ResponseType.COUNTER: "made a counter-offer",
    ResponseType.NEED_TIME: "asked for more time",
}


def negotiation_events(
    log: EventLog,
    date: SimDate,
    negotiation: Negotiation,
    update: NegotiationUpdate,
    counterparty_name: str,
) -> None:
    """Email for every response; the stopping ones are critical.  A
    newsworthy deal also makes the headlines."""
    evaluation = update.evaluation
    text: str = _OUTCOME_TEXT[evaluation.response_type]
    if evaluation.response_type == ResponseType.COUNTER and evaluation.is_ultimatum:
        text = "made a final offer"
    log.append(
        date,
        EventKind.EMAIL,
        f"{counterparty_name} {text}",
        f"{counterparty_name} {text} ({evaluation.tone.value.lower()} tone).",
        critical=update.should_stop,
        data={
            "negotiation_id": negotiation.id,
            "response": evaluation.response_type.value,
            "ultimatum": evaluation.is_ultimatum,
        },
    )
    if evaluation.is_newsworthy and evaluation.response_type == ResponseType.ACCEPT:
        log.append(
            date,
            EventKind.HEADLINE,
            f"{counterparty_name} agrees terms",
            f"{counterparty_name} has agreed a {negotiation.stakeholder_type.value.lower()} deal.",
            data={"negotiation_id": negotiation.id},
        )


_APPROACH_SUBJECT: dict[StakeholderType, str] = {
    StakeholderType.MANUFACTURER: "{name} proposes an engine supply deal",
    StakeholderType.DRIVER: "{name} expresses interest in joining",
    StakeholderType.STAFF: "{name} interested in joining your team",
    StakeholderType.SPONSOR: "{name} interested in a sponsorship deal",
}


def approach_event(
    log: EventLog, date: SimDate, negotiation: Negotiation, counterparty_name: str, year: int
) -> None:
    """Critical email when a counterparty opens talks with the player's team."""
    log.append(
        date,
        EventKind.EMAIL,
        _APPROACH_SUBJECT[negotiation.stakeholder_type].format(name=counterparty_name),
        f"{counterparty_name} has sent a proposal for the {year} season. It lapses if left unanswered.",
        critical=True,
        data={"negotiation_id": negotiation.id},
    )


def deal_lost_event(log: EventLog, date: SimDate, negotiation: Negotiation, counterparty_name: str) -> None:
    log.append(
        date,
        EventKind.EMAIL,
        f"{counterparty_name} has signed elsewhere",
        f"Talks with {counterparty_name} are over; they agreed terms with another team.",
        data={"negotiation_id": negotiation.id},
    )


def signing_headline(log: EventLog, date: SimDate, team_name: str, counterparty_name: str) -> None:
    log.append(
        date,
        EventKind.HEADLINE,
        f"{team_name} sign {counterparty_name}",
        f"{counterparty_name} has agreed terms with {team_name}.",
    )


def season_transition_events(
    log: EventLog,
    date: SimDate,
    result: SeasonEndResult,
    new_season: int,
    player_team_id: str,
    former_teams: dict[str, str | None],
    names: dict[str, str],
) -> None:
    """Retirement headlines, a critical email for the player's own
    retirements and a season-opening headline.

    Args:
        former_teams: Team id of each retiring driver or chief before
            the roster was updated.
        names: Display names of drivers and chiefs.
    """
    for person_id in result.retired_driver_ids + result.retired_chief_ids:
        name = names.get(person_id, person_id)
        log.append(date, EventKind.HEADLINE, f"{name} retires", f"{name} has announced retirement.")
        if former_teams.get(person_id) == player_team_id:
            log.append(
                date,
                EventKind.EMAIL,
                f"{name} has retired",
                f"{name} will not return next season; the position must be filled.",
                critical=True,
                data={"person_id": person_id},
            )
    log.append(
        date,
        EventKind.HEADLINE,
        f"Season {new_season} begins",
        f"The new calendar holds {len(result.new_calendar)} races.",
        data={"season": new_season},
    )
