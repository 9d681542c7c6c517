"""Content repository for the management simulation.

Game content (teams, drivers, chiefs, circuits, sponsors, manufacturers,
rules, regulations and tyre compounds) lives in one YAML file per
resource.  A :class:`ContentRepository` is constructed explicitly and
handed to :func:`gp_manager.game.new_game`; nothing here is global.

When an override directory is given, ``<override_dir>/<name>.yaml``
replaces ``<base_dir>/<name>.yaml`` wholesale.  Parsed resources are cached
until :meth:`ContentRepository.invalidate` is called.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

from gp_manager.core.dates import BASE_YEAR
from gp_manager.core.entities import (
    DRIVER_ATTRIBUTE_NAMES,
    Chief,
    ChiefRole,
    Circuit,
    Department,
    Driver,
    DriverAttributes,
    FacilityType,
    Manufacturer,
    ManufacturerCosts,
    Regulation,
    Sponsor,
    SponsorTier,
    StaffQuality,
    Team,
    TyreCompound,
)
from gp_manager.core.season_end import FIRST_RACE_WEEK, LAST_RACE_WEEK
from gp_manager.core.standings import DEFAULT_POINTS_TABLE
from gp_manager.core.turn import POST_SEASON_FIRST_WEEK, PRE_SEASON_LAST_WEEK
from gp_manager.errors import ContentError
from gp_manager.negotiation.engine import DEFAULT_MAX_ROUNDS

logger = logging.getLogger(__name__)

DATA_DIR: Path = Path(__file__).resolve().parent.parent / "data"

RESOURCES: tuple[str, ...] = (
    "teams",
    "drivers",
    "chiefs",
    "circuits",
    "sponsors",
    "manufacturers",
    "rules",
    "regulations",
    "compounds",
)

_REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "teams": ("id", "name", "budget"),
    "drivers": ("id", "name", "birth_year"),
    "chiefs": ("id", "name", "role", "ability"),
    "circuits": ("id", "name", "country"),
    "sponsors": ("id", "name", "tier", "payment", "min_reputation"),
    "manufacturers": ("id", "name", "costs"),
    "regulations": ("season",),
    "compounds": ("id", "name", "pace", "durability"),
}


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rules:
    """Championship-wide settings.

    Attributes:
        points_table: Points for finishing positions 1..N.
        first_race_week: First week of the racing window.
        last_race_week: Last week of the racing window.
        max_negotiation_rounds: Rounds after which stakeholders lose patience.
        base_year: Calendar year of season 1.
    """

    points_table: list[int] = field(default_factory=lambda: list(DEFAULT_POINTS_TABLE))
    first_race_week: int = FIRST_RACE_WEEK
    last_race_week: int = LAST_RACE_WEEK
    max_negotiation_rounds: int = DEFAULT_MAX_ROUNDS
    base_year: int = BASE_YEAR

    def __post_init__(self) -> None:
        if not self.points_table:
            raise ValueError("points_table must not be empty.")
        if any(p < 0 for p in self.points_table):
            raise ValueError("points_table values must be >= 0.")
        if not PRE_SEASON_LAST_WEEK < self.first_race_week <= self.last_race_week < POST_SEASON_FIRST_WEEK:
            raise ValueError(
                f"racing window must lie within weeks {PRE_SEASON_LAST_WEEK + 1}-"
                f"{POST_SEASON_FIRST_WEEK - 1}, got {self.first_race_week}-{self.last_race_week}"
            )
        if self.max_negotiation_rounds < 1:
            raise ValueError("max_negotiation_rounds must be >= 1.")


# ---------------------------------------------------------------------------
# Entry parsers
# ---------------------------------------------------------------------------


def _parse_staff(raw: dict[str, Any] | None) -> dict[Department, dict[StaffQuality, int]]:
    return {
        Department(dept): {StaffQuality(q): int(n) for q, n in (counts or {}).items()}
        for dept, counts in (raw or {}).items()
    }


def _parse_team(entry: dict[str, Any]) -> Team:
    return Team(
        id=str(entry["id"]),
        name=str(entry["name"]),
        budget=int(entry["budget"]),
        sponsor_ids=[str(s) for s in entry.get("sponsor_ids", [])],
        manufacturer_id=entry.get("manufacturer_id"),
        facilities={FacilityType(k): int(v) for k, v in (entry.get("facilities") or {}).items()},
        staff=_parse_staff(entry.get("staff")),
    )


def _parse_driver(entry: dict[str, Any]) -> Driver:
    raw_attributes: dict[str, Any] = entry.get("attributes") or {}
    unknown = set(raw_attributes) - set(DRIVER_ATTRIBUTE_NAMES)
    if unknown:
        raise ValueError(f"unknown attribute(s): {', '.join(sorted(unknown))}")
    return Driver(
        id=str(entry["id"]),
        name=str(entry["name"]),
        team_id=entry.get("team_id"),
        birth_year=int(entry["birth_year"]),
        attributes=DriverAttributes(**{k: int(v) for k, v in raw_attributes.items()}),
        reputation=int(entry.get("reputation", 50)),
        salary=int(entry.get("salary", 0)),
    )


def _parse_chief(entry: dict[str, Any]) -> Chief:
    return Chief(
        id=str(entry["id"]),
        name=str(entry["name"]),
        role=ChiefRole(entry["role"]),
        ability=int(entry["ability"]),
        team_id=entry.get("team_id"),
        salary=int(entry.get("salary", 0)),
    )


def _parse_circuit(entry: dict[str, Any]) -> Circuit:
    return Circuit(
        id=str(entry["id"]),
        name=str(entry["name"]),
        country=str(entry["country"]),
        laps=int(entry.get("laps", 57)),
    )


def _parse_sponsor(entry: dict[str, Any]) -> Sponsor:
    return Sponsor(
        id=str(entry["id"]),
        name=str(entry["name"]),
        tier=SponsorTier(entry["tier"]),
        payment=int(entry["payment"]),
        min_reputation=int(entry["min_reputation"]),
        rival_group=entry.get("rival_group"),
    )


def _parse_manufacturer(entry: dict[str, Any]) -> Manufacturer:
    costs: dict[str, Any] = entry["costs"]
    return Manufacturer(
        id=str(entry["id"]),
        name=str(entry["name"]),
        costs=ManufacturerCosts(
            base_engine=int(costs["base_engine"]),
            upgrade=int(costs["upgrade"]),
            customisation_point=int(costs["customisation_point"]),
            optimisation=int(costs["optimisation"]),
        ),
    )


def _parse_regulation(entry: dict[str, Any]) -> Regulation:
    return Regulation(
        season=int(entry["season"]),
        max_engine_units=int(entry.get("max_engine_units", 4)),
        gearbox_race_life=int(entry.get("gearbox_race_life", 6)),
        description=str(entry.get("description", "")),
    )


def _parse_compound(entry: dict[str, Any]) -> TyreCompound:
    return TyreCompound(
        id=str(entry["id"]),
        name=str(entry["name"]),
        pace=float(entry["pace"]),
        durability=float(entry["durability"]),
    )


_PARSERS: dict[str, Callable[[dict[str, Any]], Any]] = {
    "teams": _parse_team,
    "drivers": _parse_driver,
    "chiefs": _parse_chief,
    "circuits": _parse_circuit,
    "sponsors": _parse_sponsor,
    "manufacturers": _parse_manufacturer,
    "regulations": _parse_regulation,
    "compounds": _parse_compound,
}


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ContentRepository:
    """Read-only, cached access to the YAML content files.

    Args:
        base_dir: Directory holding the shipped content.
        override_dir: Optional directory whose files take precedence.

    Roster accessors (:meth:`teams`, :meth:`drivers`, :meth:`chiefs`)
    return fresh copies because a running game mutates its roster.
    """

    def __init__(self, base_dir: Path = DATA_DIR, override_dir: Path | None = None) -> None:
        self.base_dir: Path = Path(base_dir)
        self.override_dir: Path | None = Path(override_dir) if override_dir else None
        self._cache: dict[str, Any] = {}

    # -- cache ----------------------------------------------------------------

    def invalidate(self, name: str | None = None) -> None:
        """Drop the cached copy of *name*, or of every resource."""
        if name is None:
            self._cache.clear()
        else:
            self._check_name(name)
            self._cache.pop(name, None)

    def path_for(self, name: str) -> Path:
        """File that serves *name*, honouring the override directory."""
        self._check_name(name)
        if self.override_dir is not None:
            override = self.override_dir / f"{name}.yaml"
            if override.exists():
                return override
        return self.base_dir / f"{name}.yaml"

    # -- typed accessors ------------------------------------------------------

    def teams(self) -> list[Team]:
        return copy.deepcopy(self._load("teams"))

    def drivers(self) -> list[Driver]:
        return copy.deepcopy(self._load("drivers"))

    def chiefs(self) -> list[Chief]:
        return copy.deepcopy(self._load("chiefs"))

    def circuits(self) -> list[Circuit]:
        return list(self._load("circuits"))

    def sponsors(self) -> list[Sponsor]:
        return list(self._load("sponsors"))

    def manufacturers(self) -> list[Manufacturer]:
        return list(self._load("manufacturers"))

    def regulations(self) -> list[Regulation]:
        return list(self._load("regulations"))

    def compounds(self) -> list[TyreCompound]:
        return list(self._load("compounds"))

    def rules(self) -> Rules:
        return self._load("rules")

    # -- loading --------------------------------------------------------------

    def _check_name(self, name: str) -> None:
        if name not in RESOURCES:
            raise KeyError(f"unknown content resource: {name!r}")

    def _load(self, name: str) -> Any:
        if name not in self._cache:
            self._cache[name] = self._parse(name, self._read(name))
            logger.debug("loaded %s from %s", name, self.path_for(name))
        return self._cache[name]

    def _read(self, name: str) -> Any:
        path = self.path_for(name)
        if not path.exists():
            raise FileNotFoundError(f"Content file not found: {path}")
        with open(path, encoding="utf-8") as fh:
            try:
                return yaml.safe_load(fh)
            except yaml.YAMLError as exc:
                raise ContentError(f"{path.name}: invalid YAML ({exc})", context={"file": str(path)}) from exc

    def _parse(self, name: str, data: Any) -> Any:
        filename = f"{name}.yaml"
        if name == "rules":
            if data is None:
                return Rules()
            if not isinstance(data, dict):
                raise ContentError(f"{filename}: expected a mapping", context={"file": filename})
            try:
                return Rules(**data)
            except (TypeError, ValueError) as exc:
                raise ContentError(f"{filename}: {exc}", context={"file": filename}) from exc

        if not isinstance(data, dict) or not isinstance(data.get(name), list):
            raise ContentError(
                f"{filename}: expected a top-level '{name}' list", context={"file": filename}
            )

        parsed: list[Any] = []
        for idx, entry in enumerate(data[name]):
            if not isinstance(entry, dict):
                raise ContentError(
                    f"{filename} entry {idx}: expected a mapping",
                    context={"file": filename, "index": idx},
                )
            for required in _REQUIRED_FIELDS[name]:
                if required not in entry:
                    raise ContentError(
                        f"{filename} entry {idx} ({entry.get('id', '<unknown>')}) "
                        f"is missing required field '{required}'",
                        context={"file": filename, "index": idx, "field": required},
                    )
            try:
                parsed.append(_PARSERS[name](entry))
            except (KeyError, TypeError, ValueError) as exc:
                raise ContentError(
                    f"{filename} entry {idx} ({entry.get('id', '<unknown>')}): {exc}",
                    context={"file": filename, "index": idx},
                ) from exc
        return parsed
