"""Abstract data provider interface for the Rimuru dashboard."""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Session:
    id: str
    agent_id: str
    agent_type: str
    status: str
    started_at: Optional[str] = None
    ended_at: Optional[str] = None
    duration_secs: Optional[int] = None
    project_path: Optional[str] = None
    model: Optional[str] = None
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost: float = 0.0
    messages: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "agent_type": self.agent_type,
            "status": self.status,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_secs": self.duration_secs,
            "project_path": self.project_path,
            "model": self.model,
            "total_tokens": self.total_tokens,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_cost": self.total_cost,
            "messages": self.messages,
        }


@dataclass
class ActivitySample:
    date: str   # YYYY-MM-DD, local calendar day
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "count": self.count}


class DashboardDataProvider(ABC):
    """
    Read-only source of backend data for the dashboard views.

    The backend process owns scanning, cost computation and persistence;
    providers only hand its exported data to the presentation layer.
    All methods are synchronous.
    """

    def __init__(self, data_dir: str = "", **kwargs):
        self.data_dir = data_dir

    # ── Sessions ──────────────────────────────────────────────────────────────

    @abstractmethod
    def list_sessions(self, status: Optional[str] = None,
                      limit: Optional[int] = None) -> List[Session]:
        """Return sessions, newest first, optionally filtered by status."""
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[Session]:
        """Return a single session by ID."""
        ...

    # ── Activity ──────────────────────────────────────────────────────────────

    @abstractmethod
    def get_activity(self) -> List[ActivitySample]:
        """Return per-day activity counts, one sample per date."""
        ...

    # ── Health ────────────────────────────────────────────────────────────────

    def health_check(self) -> Dict[str, Any]:
        """Return health status. Override for custom checks."""
        return {"provider": self.__class__.__name__, "ok": True}
