"""
Dashboard API endpoint tests.

Tests every API endpoint for:
- Correct HTTP status
- Response structure / required keys
- Table, heatmap and overlay behaviour over HTTP
"""
import pytest

import dashboard
from rimuru.config import DashboardConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def assert_ok(resp):
    assert resp.status_code == 200, (
        f"Expected 200 for {resp.request.path}, got {resp.status_code}: {resp.get_data(as_text=True)[:200]}"
    )
    return resp.get_json()


def assert_keys(data, *keys):
    for k in keys:
        assert k in data, f"Missing key '{k}' in response: {list(data.keys())}"


def sort_on(client, key, state=None):
    """Click a header, echoing back the sort state from the previous response."""
    query = ""
    if state and state["key"]:
        query = f"?sort={state['key']}&dir={state['direction']}"
    return client.post(f"/api/tables/sessions/sort{query}", json={"key": key})


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class TestAuth:
    @pytest.fixture
    def secured(self, config, provider):
        config.auth_token = "s3cret"
        dashboard.configure(config, provider)
        with dashboard.app.test_client() as c:
            yield c

    def test_open_when_no_token(self, client):
        d = assert_ok(client.get("/api/auth/check"))
        assert d == {"authRequired": False, "valid": True}

    def test_rejects_missing_token(self, secured):
        r = secured.get("/api/sessions")
        assert r.status_code == 401
        assert r.get_json()["authRequired"] is True

    def test_accepts_bearer_and_query_token(self, secured):
        assert_ok(secured.get("/api/sessions", headers={"Authorization": "Bearer s3cret"}))
        assert_ok(secured.get("/api/sessions?token=s3cret"))

    def test_auth_check_always_reachable(self, secured):
        d = assert_ok(secured.get("/api/auth/check"))
        assert d == {"authRequired": True, "valid": False}

    def test_index_page_needs_no_token(self, secured):
        r = secured.get("/")
        assert r.status_code == 200
        assert b"Rimuru Dashboard" in r.data


# ---------------------------------------------------------------------------
# Core endpoints
# ---------------------------------------------------------------------------

class TestHealth:
    def test_status(self, client):
        d = assert_ok(client.get("/api/health"))
        assert_keys(d, "ok", "version", "provider")
        assert d["provider"]["sessions_file_exists"] is True


class TestSessions:
    def test_list(self, client):
        d = assert_ok(client.get("/api/sessions"))
        assert [s["id"] for s in d["sessions"]] == ["s-2", "s-3", "s-1"]

    def test_status_filter(self, client):
        d = assert_ok(client.get("/api/sessions?status=completed"))
        assert [s["id"] for s in d["sessions"]] == ["s-1"]

    def test_detail(self, client):
        d = assert_ok(client.get("/api/sessions/s-3"))
        assert_keys(d, "id", "status", "total_cost", "model")

    def test_unknown_session(self, client):
        assert client.get("/api/sessions/nope").status_code == 404


class TestSessionsTable:
    def test_first_page(self, client):
        d = assert_ok(client.get("/api/tables/sessions"))
        assert_keys(d, "columns", "rows", "sort", "page", "pageCount", "total")
        assert d["pageCount"] == 2
        assert [r["id"] for r in d["rows"]] == ["s-2", "s-3"]
        assert d["rows"][0]["cells"][4] == "--"  # no duration yet

    def test_sort_cycle(self, client):
        d = assert_ok(sort_on(client, "total_cost"))
        assert d["sort"] == {"key": "total_cost", "direction": "asc"}
        assert [r["id"] for r in d["rows"]] == ["s-2", "s-1"]
        d = assert_ok(sort_on(client, "total_cost", d["sort"]))
        assert d["sort"]["direction"] == "desc"
        assert [r["id"] for r in d["rows"]] == ["s-3", "s-1"]
        d = assert_ok(sort_on(client, "total_cost", d["sort"]))
        assert d["sort"] == {"key": None, "direction": None}

    def test_no_state_carries_over_between_requests(self, client):
        assert_ok(sort_on(client, "total_cost"))
        assert_ok(client.get("/api/tables/sessions?q=codex"))
        d = assert_ok(client.get("/api/tables/sessions"))
        assert d["sort"] == {"key": None, "direction": None}
        assert d["query"] == ""
        assert d["total"] == 3
        assert [r["id"] for r in d["rows"]] == ["s-2", "s-3"]

    def test_missing_values_last_both_ways(self, client):
        for direction in ("asc", "desc"):
            d = assert_ok(client.get(f"/api/tables/sessions?sort=duration_secs&dir={direction}&page=1"))
            assert [r["id"] for r in d["rows"]] == ["s-2"]

    def test_bad_sort_params(self, client):
        assert client.get("/api/tables/sessions?sort=total_cost&dir=up").status_code == 400
        assert client.get("/api/tables/sessions?sort=nope&dir=asc").status_code == 400

    def test_unknown_column(self, client):
        assert sort_on(client, "nope").status_code == 400
        assert client.post("/api/tables/sessions/sort", json={}).status_code == 400

    def test_search(self, client):
        d = assert_ok(client.get("/api/tables/sessions?q=CODEX"))
        assert [r["id"] for r in d["rows"]] == ["s-2"]
        assert d["total"] == 1

    def test_bad_page(self, client):
        assert client.get("/api/tables/sessions?page=x").status_code == 400

    def test_row_activation(self, client):
        d = assert_ok(client.post("/api/tables/sessions/rows/s-1/activate"))
        assert d == {"id": "s-1", "detail": "/api/sessions/s-1"}
        detail = assert_ok(client.get(d["detail"]))
        assert detail["id"] == "s-1"
        assert client.post("/api/tables/sessions/rows/zzz/activate").status_code == 404


class TestHeatmap:
    def test_grid(self, client):
        d = assert_ok(client.get("/api/heatmap"))
        assert_keys(d, "cells", "monthLabels", "dayLabels", "max", "total")
        assert len(d["cells"]) == 364
        last = d["cells"][-1]
        assert (last["col"], last["row"], last["count"], last["intensity"]) == (51, 6, 5, 2)
        assert d["max"] == 16
        assert d["total"] == 21


class TestOverlays:
    def test_lifecycle(self, client, clock):
        d = assert_ok(client.post("/api/overlays/settings", json={"open": True}))
        assert (d["phase"], d["shouldRender"]) == ("entering", True)
        d = assert_ok(client.get("/api/overlays/settings"))
        assert d["phase"] == "entered"

        d = assert_ok(client.post("/api/overlays/settings", json={"open": False}))
        assert (d["phase"], d["shouldRender"]) == ("exiting", True)
        clock.advance_ms(200)
        d = assert_ok(client.get("/api/overlays/settings"))
        assert (d["phase"], d["shouldRender"]) == ("exited", False)

    def test_reopen_during_exit(self, client, clock):
        client.post("/api/overlays/m", json={"open": True})
        client.get("/api/overlays/m")
        client.post("/api/overlays/m", json={"open": False})
        d = assert_ok(client.post("/api/overlays/m", json={"open": True}))
        assert d["phase"] == "entering"
        clock.advance_ms(1000)
        assert assert_ok(client.get("/api/overlays/m"))["phase"] == "entered"
        assert assert_ok(client.get("/api/overlays/m"))["phase"] == "entered"

    def test_close_unknown_does_not_create(self, client):
        d = assert_ok(client.post("/api/overlays/ghost", json={"open": False}))
        assert d["phase"] == "exited"
        assert client.get("/api/overlays/ghost").status_code == 404

    def test_validation(self, client):
        assert client.post("/api/overlays/x", json={"open": "yes"}).status_code == 400
        assert client.post("/api/overlays/x", json={"open": True, "duration": -5}).status_code == 400

    def test_list_and_destroy(self, client):
        client.post("/api/overlays/a", json={"open": True, "duration": 50})
        d = assert_ok(client.get("/api/overlays"))
        assert [o["name"] for o in d["overlays"]] == ["a"]
        assert d["overlays"][0]["duration"] == 50
        assert_ok(client.delete("/api/overlays/a"))
        assert client.delete("/api/overlays/a").status_code == 404

    def test_duration_change_on_existing_overlay(self, client, clock):
        client.post("/api/overlays/p", json={"open": True})
        client.get("/api/overlays/p")
        d = assert_ok(client.post("/api/overlays/p", json={"open": False, "duration": 10}))
        assert d["duration"] == 10
        clock.advance_ms(10)
        assert assert_ok(client.get("/api/overlays/p"))["phase"] == "exited"

    def test_overlays_are_per_client(self, client):
        tab_a = {"X-Rimuru-Client": "tab-a"}
        tab_b = {"X-Rimuru-Client": "tab-b"}
        d = assert_ok(client.post("/api/overlays/session-detail", json={"open": True}, headers=tab_a))
        assert d["name"] == "session-detail"
        assert client.get("/api/overlays/session-detail", headers=tab_b).status_code == 404
        assert client.get("/api/overlays/session-detail").status_code == 404
        assert assert_ok(client.get("/api/overlays", headers=tab_b))["overlays"] == []
        names = [o["name"] for o in assert_ok(client.get("/api/overlays", headers=tab_a))["overlays"]]
        assert names == ["session-detail"]
        assert client.delete("/api/overlays/session-detail", headers=tab_b).status_code == 404
        assert_ok(client.delete("/api/overlays/session-detail", headers=tab_a))

    def test_bad_client_header(self, client):
        r = client.get("/api/overlays", headers={"X-Rimuru-Client": "a/b"})
        assert r.status_code == 400


class TestConfig:
    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("RIMURU_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("RIMURU_PORT", "9100")
        monkeypatch.setenv("RIMURU_PAGE_SIZE", "not-a-number")
        monkeypatch.setenv("RIMURU_TOKEN", " tok ")
        cfg = DashboardConfig.from_env()
        assert cfg.data_dir == str(tmp_path)
        assert cfg.port == 9100
        assert cfg.page_size == 20
        assert cfg.auth_token == "tok"

    def test_validate(self, tmp_path):
        cfg = DashboardConfig(data_dir=str(tmp_path / "missing"))
        assert len(cfg.validate()) == 2
        cfg.overlay_duration_ms = -1
        with pytest.raises(ValueError):
            cfg.validate()
