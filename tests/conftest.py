"""
Shared fixtures for the Rimuru dashboard test suite.
"""
import json
import os
import sys
from datetime import date, timedelta

import pytest

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from rimuru.config import DashboardConfig  # noqa: E402
from rimuru.overlay import CooperativeScheduler  # noqa: E402
from rimuru.providers.local import LocalDataProvider  # noqa: E402


SESSIONS = [
    {"id": "s-1", "agent_id": "a-1", "agent_type": "claude_code", "status": "completed",
     "started_at": "2026-10-01T09:00:00Z", "duration_secs": 125, "model": "sonnet",
     "total_tokens": 12000, "total_cost": 0.42},
    {"id": "s-2", "agent_id": "a-2", "agent_type": "codex", "status": "active",
     "started_at": "2026-10-03T12:30:00Z", "duration_secs": None, "model": "gpt",
     "total_tokens": 800, "total_cost": 0.05},
    {"id": "s-3", "agent_id": "a-1", "agent_type": "claude_code", "status": "error",
     "started_at": "2026-10-02T18:15:00Z", "duration_secs": 40, "model": None,
     "total_tokens": 3000, "total_cost": 1.5},
]


class FakeClock:
    """Monotonic millisecond clock that only moves when told to."""

    def __init__(self):
        self.now = 1_000_000

    def __call__(self):
        return self.now

    def advance_ms(self, ms):
        self.now += int(ms)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return CooperativeScheduler(clock=clock)


@pytest.fixture
def data_dir(tmp_path):
    today = date.today()
    activity = [
        {"date": today.isoformat(), "count": 5},
        {"date": (today - timedelta(days=1)).isoformat(), "count": 16},
        {"date": (today - timedelta(days=400)).isoformat(), "count": 9},
    ]
    (tmp_path / "sessions.json").write_text(json.dumps(SESSIONS))
    (tmp_path / "activity.json").write_text(json.dumps(activity))
    return tmp_path


@pytest.fixture
def provider(data_dir):
    return LocalDataProvider(data_dir=str(data_dir))


@pytest.fixture
def config(data_dir):
    return DashboardConfig(data_dir=str(data_dir), page_size=2, overlay_duration_ms=200)


@pytest.fixture
def client(config, provider, scheduler):
    import dashboard
    dashboard.configure(config, provider, scheduler)
    dashboard.app.config["TESTING"] = True
    with dashboard.app.test_client() as c:
        yield c
    dashboard.OVERLAYS.destroy_all()
