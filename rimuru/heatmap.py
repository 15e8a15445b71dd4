"""Activity heatmap: 364 consecutive days ending today, laid out as 52 columns × 7 rows."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

WEEKS = 52
DAYS_PER_WEEK = 7
GRID_SIZE = WEEKS * DAYS_PER_WEEK

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def intensity(count: int) -> int:
    """Colour bucket 0-4 for a day's count."""
    if count == 0:
        return 0
    if count <= 3:
        return 1
    if count <= 7:
        return 2
    if count <= 15:
        return 3
    return 4


@dataclass(frozen=True)
class HeatmapCell:
    date: date
    count: int
    col: int
    row: int

    @property
    def intensity(self) -> int:
        return intensity(self.count)

    @property
    def title(self) -> str:
        return f"{self.date.isoformat()}: {self.count} actions"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "count": self.count,
            "col": self.col,
            "row": self.row,
            "intensity": self.intensity,
            "title": self.title,
        }


@dataclass(frozen=True)
class MonthLabel:
    month: str
    col: int


@dataclass
class HeatmapGrid:
    cells: List[HeatmapCell]
    month_labels: List[MonthLabel]
    day_labels: List[str]

    @property
    def max_count(self) -> int:
        return max((c.count for c in self.cells), default=0)

    @property
    def total(self) -> int:
        return sum(c.count for c in self.cells)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cells": [c.to_dict() for c in self.cells],
            "monthLabels": [{"month": m.month, "col": m.col} for m in self.month_labels],
            "dayLabels": self.day_labels,
            "max": self.max_count,
            "total": self.total,
        }


def _sample_map(samples: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    # callers pre-aggregate per day; on duplicates the last sample wins
    return {s["date"]: int(s["count"]) for s in samples}


def build_grid(samples: Iterable[Mapping[str, Any]], today: Optional[date] = None) -> List[HeatmapCell]:
    """Lay out ``{date: "YYYY-MM-DD", count}`` samples as 364 cells, oldest week first.

    ``today`` is a local calendar day and anchors column 51, row 6. The window
    slides with today; it is not snapped to a week boundary.
    """
    today = today or date.today()
    counts = _sample_map(samples)
    cells = []
    for week in range(WEEKS - 1, -1, -1):
        for day in range(DAYS_PER_WEEK):
            d = today - timedelta(days=week * DAYS_PER_WEEK + (DAYS_PER_WEEK - 1 - day))
            cells.append(HeatmapCell(
                date=d,
                count=counts.get(d.isoformat(), 0),
                col=WEEKS - 1 - week,
                row=day,
            ))
    return cells


def month_labels(cells: Iterable[HeatmapCell]) -> List[MonthLabel]:
    """One label per month change along the top row.

    A month with no top-row cell in the window gets no label.
    """
    labels = []
    last_month = None
    for cell in cells:
        if cell.row != 0:
            continue
        if cell.date.month != last_month:
            labels.append(MonthLabel(MONTHS[cell.date.month - 1], cell.col))
            last_month = cell.date.month
    return labels


def day_labels(today: Optional[date] = None) -> List[str]:
    """Weekday names for rows 1, 3 and 5; blanks elsewhere.

    Every row is a single weekday because columns step by exactly 7 days.
    """
    today = today or date.today()
    labels = []
    for row in range(DAYS_PER_WEEK):
        if row % 2 == 0:
            labels.append("")
            continue
        d = today - timedelta(days=DAYS_PER_WEEK - 1 - row)
        labels.append(WEEKDAYS[d.weekday()])
    return labels


def build_heatmap(samples: Iterable[Mapping[str, Any]], today: Optional[date] = None) -> HeatmapGrid:
    today = today or date.today()
    cells = build_grid(samples, today)
    return HeatmapGrid(cells=cells, month_labels=month_labels(cells), day_labels=day_labels(today))
