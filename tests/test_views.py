"""
Sessions view formatters and table factory.
"""
import argparse

import pytest

from rimuru.config import DashboardConfig
from rimuru.providers.base import Session
from rimuru.views import (
    format_cost,
    format_duration,
    format_timestamp,
    format_tokens,
    session_table,
)


class TestFormatters:
    @pytest.mark.parametrize("value,expected", [
        (125, "2m 5s"), (59, "0m 59s"), (0, "--"), (None, "--"), ("12", "--"),
    ])
    def test_duration(self, value, expected):
        assert format_duration(value) == expected

    def test_tokens(self):
        assert format_tokens(1234567) == "1,234,567"
        assert format_tokens(None) == "--"

    def test_cost(self):
        assert format_cost(0.5) == "$0.5000"
        assert format_cost(True) == "--"

    def test_timestamp(self):
        assert format_timestamp("2026-10-01T09:00:00Z") == "2026-10-01 09:00:00"
        assert format_timestamp("yesterday") == "--"
        assert format_timestamp(None) == "--"


class TestSessionTable:
    def test_searches_fields_outside_the_columns(self):
        sessions = [
            Session("a", "x", "codex", "active", model="gpt", project_path="/src/app"),
            Session("b", "y", "claude_code", "completed", model="sonnet"),
        ]
        table = session_table(sessions)
        table.set_search("/SRC")
        assert [s.id for s in table.rows()] == ["a"]
        assert table.activate_row("a") == "/api/sessions/a"


class TestConfigArgs:
    def test_cli_wins_over_env(self, monkeypatch):
        monkeypatch.setenv("RIMURU_PORT", "9100")
        args = argparse.Namespace(port=9200, host=None, data_dir=None, provider=None, token="t",
                                  page_size=None, overlay_duration=0, log_level="debug", debug=None)
        cfg = DashboardConfig.from_env().apply_args(args)
        assert cfg.port == 9200
        assert cfg.auth_token == "t"
        assert cfg.overlay_duration_ms == 0
        assert cfg.log_level == "DEBUG"
        assert cfg.debug is False
