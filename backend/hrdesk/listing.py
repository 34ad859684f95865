from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

Row = Dict[str, Any]


@dataclass(frozen=True)
class Page:
    items: List[Row]
    page: int
    page_size: int
    total: int
    total_pages: int

    @property
    def start(self) -> int:
        if not self.items:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def end(self) -> int:
        if not self.items:
            return 0
        return self.start + len(self.items) - 1


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return str(value)


def matches(row: Row, query: Optional[str], fields: Optional[Sequence[str]] = None) -> bool:
    """Case-insensitive substring search over ``fields`` (every field if omitted)."""
    if not query:
        return True
    needle = query.strip().lower()
    if not needle:
        return True
    values: Iterable[Any] = row.values() if fields is None else (row.get(name) for name in fields)
    return any(needle in _text(value).lower() for value in values)


def filter_rows(rows: Iterable[Row], query: Optional[str], fields: Optional[Sequence[str]] = None) -> List[Row]:
    return [row for row in rows if matches(row, query, fields)]


def sort_rows(rows: Iterable[Row], field: str, descending: bool = False) -> List[Row]:
    """Sort by ``field``; missing values sort like empty strings, ahead of everything else."""
    rows = list(rows)
    present = [row for row in rows if row.get(field) is not None]
    missing = [row for row in rows if row.get(field) is None]
    ordered = sorted(present, key=lambda row: row[field], reverse=descending)
    return ordered + missing if descending else missing + ordered


def paginate(rows: Sequence[Row], page: int = 1, page_size: int = 10) -> Page:
    page = max(1, page)
    total = len(rows)
    total_pages = math.ceil(total / page_size) if page_size else 0
    start = (page - 1) * page_size
    return Page(
        items=list(rows[start : start + page_size]),
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages,
    )
