"""Column sets and cell formatters for the dashboard's list views."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence

from rimuru.table import PLACEHOLDER, Column, DataTable


def format_duration(value: Any, row: Any = None) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return PLACEHOLDER
    secs = int(value)
    return f"{secs // 60}m {secs % 60}s"


def format_tokens(value: Any, row: Any = None) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return PLACEHOLDER
    return f"{value:,}"


def format_cost(value: Any, row: Any = None) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return PLACEHOLDER
    return f"${value:.4f}"


def format_timestamp(value: Any, row: Any = None) -> str:
    if not isinstance(value, str) or not value:
        return PLACEHOLDER
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return PLACEHOLDER
    return dt.strftime("%Y-%m-%d %H:%M:%S")


SESSION_COLUMNS: List[Column] = [
    Column("id", "ID", width="200px"),
    Column("status", "Status", width="100px"),
    Column("agent_type", "Agent"),
    Column("started_at", "Started", render=format_timestamp),
    Column("duration_secs", "Duration", render=format_duration),
    Column("total_tokens", "Tokens", render=format_tokens),
    Column("total_cost", "Cost", render=format_cost),
]


def session_detail_path(session: Any) -> str:
    return f"/api/sessions/{session.id}"


def session_table(sessions: Sequence[Any], page_size: Optional[int] = None,
                  on_row_click: Callable[[Any], Any] = session_detail_path) -> DataTable:
    return DataTable(
        sessions,
        SESSION_COLUMNS,
        on_row_click=on_row_click,
        searchable=True,
        search_fields=["id", "status", "agent_type", "model", "project_path"],
        page_size=page_size,
        empty_message="No sessions yet",
    )
