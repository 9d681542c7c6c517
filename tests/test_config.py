"""Tests for the YAML content repository."""

from pathlib import Path

import pytest

from gp_manager.config import DATA_DIR, ContentRepository, Rules
from gp_manager.core.entities import SponsorTier
from gp_manager.errors import ContentError

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _write(directory: Path, name: str, text: str) -> Path:
    path = directory / f"{name}.yaml"
    path.write_text(text, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Shipped content
# ---------------------------------------------------------------------------


def test_shipped_content_loads() -> None:
    """Every shipped resource parses and cross-references resolve."""
    repo = ContentRepository()
    teams = repo.teams()
    drivers = repo.drivers()
    team_ids = {t.id for t in teams}
    assert len(teams) >= 2
    assert all(d.team_id is None or d.team_id in team_ids for d in drivers)
    assert {s.id for s in repo.sponsors()} >= {s for t in teams for s in t.sponsor_ids}
    assert {m.id for m in repo.manufacturers()} >= {t.manufacturer_id for t in teams if t.manufacturer_id}
    assert len(repo.circuits()) >= 1
    assert len(repo.compounds()) == 3
    assert repo.rules().points_table[0] == 25
    assert [r.season for r in repo.regulations()] == [1, 3]


def test_roster_accessors_return_copies() -> None:
    """Mutating a returned roster leaves the cached content untouched."""
    repo = ContentRepository()
    repo.drivers()[0].team_id = "nobody"
    assert repo.drivers()[0].team_id != "nobody"


# ---------------------------------------------------------------------------
# Overrides and caching
# ---------------------------------------------------------------------------


def test_override_directory_takes_precedence(tmp_path: Path) -> None:
    """A file in the override directory replaces the shipped one."""
    _write(tmp_path, "sponsors", "sponsors:\n  - {id: solo, name: Solo, tier: minor, payment: 1, min_reputation: 10}\n")
    repo = ContentRepository(override_dir=tmp_path)
    sponsors = repo.sponsors()
    assert [s.id for s in sponsors] == ["solo"]
    assert sponsors[0].tier == SponsorTier.MINOR
    assert repo.path_for("teams") == DATA_DIR / "teams.yaml"


def test_cache_until_invalidated(tmp_path: Path) -> None:
    """Parsed resources are reused until invalidated."""
    _write(tmp_path, "compounds", "compounds:\n  - {id: a, name: A, pace: 1, durability: 1}\n")
    repo = ContentRepository(base_dir=tmp_path)
    assert [c.id for c in repo.compounds()] == ["a"]
    _write(tmp_path, "compounds", "compounds:\n  - {id: b, name: B, pace: 1, durability: 1}\n")
    assert [c.id for c in repo.compounds()] == ["a"]
    repo.invalidate("compounds")
    assert [c.id for c in repo.compounds()] == ["b"]


def test_unknown_resource() -> None:
    with pytest.raises(KeyError):
        ContentRepository().invalidate("weather")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_missing_required_field(tmp_path: Path) -> None:
    """A missing field is reported with the file and entry."""
    _write(tmp_path, "circuits", "circuits:\n  - {id: x, name: X}\n")
    with pytest.raises(ContentError, match="country"):
        ContentRepository(base_dir=tmp_path).circuits()


def test_out_of_range_value(tmp_path: Path) -> None:
    _write(tmp_path, "sponsors", "sponsors:\n  - {id: s, name: S, tier: minor, payment: 1, min_reputation: 0}\n")
    with pytest.raises(ContentError):
        ContentRepository(base_dir=tmp_path).sponsors()


def test_invalid_yaml(tmp_path: Path) -> None:
    _write(tmp_path, "teams", "teams: [unclosed\n")
    with pytest.raises(ContentError):
        ContentRepository(base_dir=tmp_path).teams()


def test_wrong_top_level(tmp_path: Path) -> None:
    _write(tmp_path, "drivers", "- {id: d1}\n")
    with pytest.raises(ContentError):
        ContentRepository(base_dir=tmp_path).drivers()


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        ContentRepository(base_dir=tmp_path).circuits()


def test_rules_validation(tmp_path: Path) -> None:
    """Empty rules fall back to defaults; a window outside the season fails."""
    _write(tmp_path, "rules", "")
    assert ContentRepository(base_dir=tmp_path).rules() == Rules()
    _write(tmp_path, "rules", "first_race_week: 5\n")
    with pytest.raises(ContentError):
        ContentRepository(base_dir=tmp_path).rules()
    with pytest.raises(ValueError):
        Rules(points_table=[])
