"""Local filesystem data provider: reads the JSON exports the backend writes to ~/.rimuru."""
from __future__ import annotations
import json
import logging
import os
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from rimuru.providers.base import ActivitySample, DashboardDataProvider, Session

logger = logging.getLogger("rimuru.providers")

SESSIONS_FILE = "sessions.json"
ACTIVITY_FILE = "activity.json"


def _session_from_dict(obj: Dict[str, Any]) -> Session:
    return Session(
        id=str(obj["id"]),
        agent_id=str(obj.get("agent_id", "")),
        agent_type=obj.get("agent_type", "unknown"),
        status=obj.get("status", "active"),
        started_at=obj.get("started_at"),
        ended_at=obj.get("ended_at"),
        duration_secs=obj.get("duration_secs"),
        project_path=obj.get("project_path"),
        model=obj.get("model"),
        total_tokens=obj.get("total_tokens", 0) or 0,
        input_tokens=obj.get("input_tokens", 0) or 0,
        output_tokens=obj.get("output_tokens", 0) or 0,
        total_cost=obj.get("total_cost", 0.0) or 0.0,
        messages=obj.get("messages", 0) or 0,
        extra=obj.get("metadata") or {},
    )


class LocalDataProvider(DashboardDataProvider):
    """
    Reads sessions.json and activity.json from the data directory.
    Files are re-parsed only when their mtime changes.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._cache: Dict[str, Tuple[float, Any]] = {}

    def _path(self, name: str) -> str:
        return os.path.join(self.data_dir, name) if self.data_dir else ""

    def _load_json(self, name: str, default: Any) -> Any:
        path = self._path(name)
        if not path or not os.path.exists(path):
            return default
        try:
            mtime = os.path.getmtime(path)
            cached = self._cache.get(name)
            if cached and cached[0] == mtime:
                return cached[1]
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._cache[name] = (mtime, data)
            return data
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return default

    # ── Sessions ──────────────────────────────────────────────────────────────

    def _all_sessions(self) -> List[Session]:
        raw = self._load_json(SESSIONS_FILE, [])
        if isinstance(raw, dict):
            raw = raw.get("sessions", [])
        sessions = []
        for obj in raw:
            if not isinstance(obj, dict) or "id" not in obj:
                continue
            sessions.append(_session_from_dict(obj))
        return sessions

    def list_sessions(self, status: Optional[str] = None,
                      limit: Optional[int] = None) -> List[Session]:
        sessions = self._all_sessions()
        if status:
            sessions = [s for s in sessions if s.status == status]
        # ISO timestamps sort lexically; sessions without one go last
        sessions.sort(key=lambda s: s.started_at or "", reverse=True)
        return sessions[:limit] if limit else sessions

    def get_session(self, session_id: str) -> Optional[Session]:
        for s in self._all_sessions():
            if s.id == session_id:
                return s
        return None

    # ── Activity ──────────────────────────────────────────────────────────────

    def get_activity(self) -> List[ActivitySample]:
        raw = self._load_json(ACTIVITY_FILE, [])
        if isinstance(raw, dict):
            raw = raw.get("activity", [])
        # the heatmap expects one sample per day
        totals: Dict[str, int] = defaultdict(int)
        for obj in raw:
            if not isinstance(obj, dict) or not obj.get("date"):
                continue
            try:
                day = str(obj["date"])[:10]
                count = int(obj.get("count", 0))
            except (TypeError, ValueError):
                logger.warning(f"Skipping malformed activity sample: {obj!r}")
                continue
            totals[day] += count
        return [ActivitySample(d, c) for d, c in sorted(totals.items())]

    # ── Health ────────────────────────────────────────────────────────────────

    def health_check(self) -> Dict[str, Any]:
        return {
            "provider": "LocalDataProvider",
            "ok": True,
            "data_dir": self.data_dir,
            "data_dir_exists": os.path.isdir(self.data_dir) if self.data_dir else False,
            "sessions_file_exists": os.path.exists(self._path(SESSIONS_FILE)) if self.data_dir else False,
            "activity_file_exists": os.path.exists(self._path(ACTIVITY_FILE)) if self.data_dir else False,
        }
