"""
Generic sortable table engine used by every list view in the dashboard.

A DataTable owns the sort/search/page state for one table and turns an
ordered collection of records into rendered rows. Records are never mutated;
the engine only derives an output ordering.

Usage:
    table = DataTable(records, [Column("id", "ID"), Column("total_cost", "Cost", render=fmt)])
    table.request_sort("total_cost")   # asc → desc → unsorted → asc …
    payload = table.render()
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

logger = logging.getLogger("rimuru.table")

PLACEHOLDER = "--"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"
    NONE = "none"


@dataclass(frozen=True)
class SortState:
    key: Optional[str] = None
    direction: SortDirection = SortDirection.NONE

    @property
    def active(self) -> bool:
        return self.key is not None and self.direction is not SortDirection.NONE

    def toggle(self, key: str) -> "SortState":
        return next_sort_state(self, key)

    def to_dict(self) -> Dict[str, Optional[str]]:
        if not self.active:
            return {"key": None, "direction": None}
        return {"key": self.key, "direction": self.direction.value}

    @classmethod
    def from_params(cls, key: Optional[str], direction: Optional[str]) -> "SortState":
        """Inverse of ``to_dict`` for query strings. Missing parts mean unsorted."""
        if not key or not direction:
            return UNSORTED
        try:
            parsed = SortDirection(direction.lower())
        except ValueError:
            raise ValueError(f"Unknown sort direction: {direction!r}") from None
        if parsed is SortDirection.NONE:
            return UNSORTED
        return cls(key, parsed)


UNSORTED = SortState()


@dataclass
class Column:
    """One column descriptor. ``render(value, record)`` overrides the default text."""
    key: str
    label: str
    width: Optional[str] = None
    render: Optional[Callable[[Any, Any], str]] = None
    sortable: bool = True


def field_value(record: Any, key: str) -> Any:
    """Read ``key`` from a mapping or attribute record. Absent fields raise."""
    if isinstance(record, Mapping):
        return record[key]
    return getattr(record, key)


def render_cell(column: Column, record: Any) -> str:
    value = field_value(record, column.key)
    if column.render is not None:
        return column.render(value, record)
    return PLACEHOLDER if value is None else str(value)


def next_sort_state(state: SortState, key: str) -> SortState:
    """Tri-state header cycle: ascending → descending → unsorted.

    Activating a different column always starts over at ascending.
    """
    if state.key != key:
        return SortState(key, SortDirection.ASC)
    if state.direction is SortDirection.ASC:
        return SortState(key, SortDirection.DESC)
    if state.direction is SortDirection.DESC:
        return UNSORTED
    return SortState(key, SortDirection.ASC)


def sort_records(records: Sequence[Any], state: SortState) -> List[Any]:
    """Stable sort on the state's field.

    Missing (None) values always land after defined ones, in input order,
    whatever the direction. Unsorted state passes the input order through.
    """
    if not state.active:
        return list(records)
    defined, missing = [], []
    for record in records:
        (missing if field_value(record, state.key) is None else defined).append(record)
    # sorted() keeps equal elements in input order even with reverse=True
    ordered = sorted(
        defined,
        key=lambda r: field_value(r, state.key),
        reverse=state.direction is SortDirection.DESC,
    )
    return ordered + missing


def _matches(record: Any, fields: Sequence[str], query: str) -> bool:
    for f in fields:
        val = field_value(record, f)
        if val is not None and query in str(val).lower():
            return True
    return False


class DataTable:
    """Sort, filter and page state for one rendered table."""

    def __init__(self, records: Sequence[Any], columns: Sequence[Column],
                 on_row_click: Optional[Callable[[Any], Any]] = None,
                 searchable: bool = False, search_fields: Optional[Sequence[str]] = None,
                 page_size: Optional[int] = None, empty_message: str = "No data",
                 id_field: str = "id"):
        if page_size is not None and page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.columns = list(columns)
        self.on_row_click = on_row_click
        self.searchable = searchable
        self.search_fields = list(search_fields) if search_fields else [c.key for c in self.columns]
        self.page_size = page_size
        self.empty_message = empty_message
        self.id_field = id_field
        self.sort = UNSORTED
        self.query = ""
        self.page = 0
        self._records: List[Any] = list(records)

    # ── Data ──────────────────────────────────────────────────────────────────

    def set_data(self, records: Sequence[Any]) -> None:
        self._records = list(records)
        self.page = min(self.page, self.page_count - 1)

    @property
    def records(self) -> List[Any]:
        return list(self._records)

    def column(self, key: str) -> Column:
        for col in self.columns:
            if col.key == key:
                return col
        raise ValueError(f"Unknown column: {key!r}. Available: {[c.key for c in self.columns]}")

    # ── State transitions ─────────────────────────────────────────────────────

    def request_sort(self, key: str) -> SortState:
        col = self.column(key)
        if not col.sortable:
            return self.sort
        self.sort = next_sort_state(self.sort, key)
        self.page = 0
        logger.debug(f"Sort on {key!r} -> {self.sort.to_dict()}")
        return self.sort

    def set_sort(self, state: SortState) -> None:
        """Restore a previously rendered sort state, e.g. one echoed back by a client."""
        if state.active and not self.column(state.key).sortable:
            raise ValueError(f"Column {state.key!r} is not sortable")
        self.sort = state
        self.page = 0

    def set_search(self, query: str) -> None:
        if not self.searchable:
            return
        self.query = query or ""
        self.page = 0

    def set_page(self, page: int) -> int:
        self.page = max(0, min(page, self.page_count - 1))
        return self.page

    # ── Output ────────────────────────────────────────────────────────────────

    def filtered(self) -> List[Any]:
        if not self.searchable or not self.query:
            return list(self._records)
        q = self.query.lower()
        return [r for r in self._records if _matches(r, self.search_fields, q)]

    def rows(self) -> List[Any]:
        """Filtered rows in display order, across all pages."""
        return sort_records(self.filtered(), self.sort)

    @property
    def page_count(self) -> int:
        if not self.page_size:
            return 1
        total = len(self.filtered())
        return max(1, -(-total // self.page_size))

    def _page_slice(self, rows: List[Any]) -> List[Any]:
        if not self.page_size:
            return rows
        start = self.page * self.page_size
        return rows[start:start + self.page_size]

    def page_rows(self) -> List[Any]:
        return self._page_slice(self.rows())

    def header(self) -> List[Dict[str, Any]]:
        out = []
        for col in self.columns:
            indicator = None
            if self.sort.active and self.sort.key == col.key:
                indicator = self.sort.direction.value
            out.append({
                "key": col.key,
                "label": col.label,
                "width": col.width,
                "sortable": col.sortable,
                "indicator": indicator,
            })
        return out

    def render(self) -> Dict[str, Any]:
        rows = self.rows()
        visible = self._page_slice(rows)
        return {
            "columns": self.header(),
            "rows": [
                {
                    "id": str(field_value(r, self.id_field)),
                    "cells": [render_cell(c, r) for c in self.columns],
                }
                for r in visible
            ],
            "sort": self.sort.to_dict(),
            "query": self.query,
            "page": self.page,
            "pageCount": self.page_count,
            "total": len(rows),
            "emptyMessage": self.empty_message if not visible else None,
        }

    def activate_row(self, record_id: str) -> Any:
        """Fire the row-click callback once with the full record."""
        for record in self._records:
            if str(field_value(record, self.id_field)) == str(record_id):
                if self.on_row_click is None:
                    return None
                return self.on_row_click(record)
        raise KeyError(record_id)
