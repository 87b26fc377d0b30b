"""Pytest fixtures for eventsync tests."""

import pytest

from eventsync.dataset import ColumnarDataset
from eventsync.errors import StoreError
from eventsync.schemas import EVENT_KINDS, TRACKING_KINDS
from eventsync.store import DirectoryResultsStore, Record

HOME, AWAY = 10, 20


def make_tracking(times_by_period, teams=(HOME, AWAY)):
    """One ball row plus one player per team for every sample time."""
    cols = {k: [] for k in ("period_id", "matched_time", "team_opta_id", "player_opta_id", "jersey_no", "pos_x", "pos_y", "is_ball")}
    for period, times in times_by_period.items():
        for t in times:
            for team, pid, jersey, x, is_ball in (
                (-1, -1, None, 0.0, 1),
                (teams[0], 101, 7, 20.0, 0),
                (teams[1], 201, 9, 80.0, 0),
            ):
                cols["period_id"].append(period)
                cols["matched_time"].append(t)
                cols["team_opta_id"].append(team)
                cols["player_opta_id"].append(pid)
                cols["jersey_no"].append(jersey)
                cols["pos_x"].append(x)
                cols["pos_y"].append(50.0)
                cols["is_ball"].append(is_ball)
    return ColumnarDataset.from_columns(cols, kinds=TRACKING_KINDS)


def make_events(rows):
    """rows: list of (event_id, period_id, matched_time)."""
    cols = {
        "opta_event_id": [r[0] for r in rows],
        "period_id": [r[1] for r in rows],
        "matched_time": [r[2] for r in rows],
        "team_id": [HOME] * len(rows),
        "jersey_no": [7] * len(rows),
        "x": [40.0] * len(rows),
        "y": [50.0] * len(rows),
        "event_type_id": [1] * len(rows),
    }
    return ColumnarDataset.from_columns(cols, kinds=EVENT_KINDS)


@pytest.fixture
def period1_times():
    # 900, 950, ..., 2050
    return list(range(900, 2100, 50))


@pytest.fixture
def tracking(period1_times):
    return make_tracking({1: period1_times, 2: list(range(0, 550, 50))})


@pytest.fixture
def two_events():
    return make_events([("E1", 1, 1000), ("E2", 1, 2000)])


@pytest.fixture
def events():
    return make_events(
        [
            ("E1", 1, 1000),
            ("E2", 1, 2000),
            ("E3", 2, 100),
            ("E4", 3, 50),  # no tracking for period 3
            ("E5", 2, 400),
        ]
    )


@pytest.fixture
def store(tmp_path):
    return DirectoryResultsStore(tmp_path / "store")


class FlakyStore(DirectoryResultsStore):
    """Directory store whose results writes fail while `failing` is set."""

    def __init__(self, root):
        super().__init__(root)
        self.failing = False
        self.saves = 0

    def save(self, record, value):
        if self.failing and Record(record) is Record.RESULTS:
            raise StoreError("disk full")
        super().save(record, value)
        self.saves += 1


@pytest.fixture
def flaky_store(tmp_path):
    return FlakyStore(tmp_path / "flaky")
