"""Tests for folding race results into the championship tables."""

from gp_manager.core.standings import (
    DEFAULT_POINTS_TABLE,
    ConstructorStanding,
    DriverStanding,
    FinishStatus,
    RaceEntryResult,
    initial_standings,
    is_dnf,
    points_for_position,
    update_standings,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _twelve_finishers() -> list[RaceEntryResult]:
    """Drivers d1..d12, two per team, finishing in grid order."""
    return [
        RaceEntryResult(
            driver_id=f"d{i}",
            team_id=f"t{(i + 1) // 2}",
            grid_position=i,
            finish_position=i,
            fastest_lap=(i == 3),
        )
        for i in range(1, 13)
    ]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_twelve_finishers_points() -> None:
    """Positions 1-10 score the table value; 11 and 12 score nothing."""
    drivers, teams = update_standings([], [], _twelve_finishers())
    points = {s.driver_id: s.points for s in drivers}
    for i in range(1, 11):
        assert points[f"d{i}"] == DEFAULT_POINTS_TABLE[i - 1]
    assert points["d11"] == 0
    assert points["d12"] == 0
    assert {s.team_id: s.points for s in teams}["t1"] == 25 + 18


def test_standings_sorted_with_positions() -> None:
    """Tables are sorted by points and positions are index + 1."""
    drivers, teams = update_standings([], [], _twelve_finishers())
    for table in (drivers, teams):
        assert [s.position for s in table] == list(range(1, len(table) + 1))
        pts = [s.points for s in table]
        assert pts == sorted(pts, reverse=True)


def test_counters_incremented() -> None:
    """Wins, podiums, poles and fastest laps follow the shared rules."""
    drivers, teams = update_standings([], [], _twelve_finishers())
    by_id = {s.driver_id: s for s in drivers}
    assert by_id["d1"].wins == 1 and by_id["d1"].poles == 1
    assert by_id["d3"].podiums == 1 and by_id["d3"].fastest_laps == 1
    assert by_id["d4"].podiums == 0
    team = {s.team_id: s for s in teams}["t1"]
    assert team.wins == 1 and team.podiums == 2 and team.poles == 1


def test_dnf_scores_nothing() -> None:
    """A retirement scores no points and counts as a DNF, even when placed high."""
    results = [
        RaceEntryResult("d1", "t1", 1, 1, FinishStatus.RETIRED),
        RaceEntryResult("d2", "t1", 2, 2, FinishStatus.LAPPED),
    ]
    drivers, _ = update_standings([], [], results)
    by_id = {s.driver_id: s for s in drivers}
    assert by_id["d1"].points == 0
    assert by_id["d1"].dnfs == 1
    assert by_id["d1"].wins == 0
    assert by_id["d2"].points == 18
    assert not is_dnf(FinishStatus.LAPPED)
    assert is_dnf(FinishStatus.DISQUALIFIED)


def test_wins_break_ties() -> None:
    """Equal points are ordered by wins."""
    drivers = [
        DriverStanding("a", "t1", points=25, wins=0),
        DriverStanding("b", "t2", points=25, wins=1),
    ]
    ranked, _ = update_standings(drivers, [], [])
    assert [s.driver_id for s in ranked] == ["b", "a"]
    assert ranked[0].position == 1


def test_inputs_not_modified() -> None:
    """update_standings must return new records, leaving the inputs alone."""
    drivers = [DriverStanding("d1", "t1")]
    teams = [ConstructorStanding("t1")]
    update_standings(drivers, teams, _twelve_finishers())
    assert drivers[0].points == 0
    assert teams[0].points == 0


def test_custom_points_table() -> None:
    """A custom table is honoured, and positions beyond it score zero."""
    assert points_for_position(1, [10, 5]) == 10
    assert points_for_position(3, [10, 5]) == 0
    drivers, _ = update_standings([], [], _twelve_finishers(), [10, 5])
    assert {s.driver_id: s.points for s in drivers}["d2"] == 5


def test_initial_standings_zeroed() -> None:
    """Fresh tables hold zero points and sequential positions."""
    drivers, teams = initial_standings({"d1": "t1", "d2": "t1"}, ["t1", "t2"])
    assert [s.points for s in drivers] == [0, 0]
    assert [s.position for s in teams] == [1, 2]
