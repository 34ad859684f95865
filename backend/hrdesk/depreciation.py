"""Straight-line depreciation of equipment over a fixed useful life."""

from __future__ import annotations

import calendar
import datetime as dt
import math
from dataclasses import dataclass, field
from typing import List, Optional

USEFUL_LIFE_YEARS = 5


@dataclass(frozen=True)
class DepreciationResult:
    yearly_depreciation: float
    years_elapsed: float
    book_value: float
    depreciation_by_year: List[float] = field(default_factory=list)
    is_fully_depreciated: bool = False


@dataclass(frozen=True)
class DepreciationDetail:
    year: int
    depreciation: float
    book_value: float


def _as_date(value: dt.date) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    return value


def _add_months(value: dt.date, months: int) -> dt.date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return dt.date(year, month, day)


def _month_diff(reference: dt.date, other: dt.date) -> float:
    # Anchored on the date with the larger day of month so that month-end
    # dates step cleanly to shorter months.
    if reference.day < other.day:
        return -_month_diff(other, reference)
    whole = (other.year - reference.year) * 12 + (other.month - reference.month)
    anchor = _add_months(reference, whole)
    overshoot = other < anchor
    neighbour = _add_months(reference, whole + (-1 if overshoot else 1))
    if overshoot:
        span = (anchor - neighbour).days
    else:
        span = (neighbour - anchor).days
    fraction = (other - anchor).days / span
    return -(whole + fraction)


def years_between(start: dt.date, end: dt.date) -> float:
    """Fractional calendar years from ``start`` to ``end`` (negative if ``end`` comes first)."""
    return _month_diff(_as_date(end), _as_date(start)) / 12


def _has_basis(purchase_date: Optional[dt.date], purchase_cost: Optional[float]) -> bool:
    return purchase_date is not None and bool(purchase_cost) and math.isfinite(purchase_cost) and purchase_cost > 0


def compute_depreciation(
    purchase_date: Optional[dt.date],
    purchase_cost: Optional[float],
    as_of: dt.date,
) -> DepreciationResult:
    """Book value as of ``as_of`` and the depreciation already incurred per year.

    Without a purchase date or a positive cost nothing is depreciated and the
    book value is reported as 0, not as the cost.
    """
    if not _has_basis(purchase_date, purchase_cost):
        return DepreciationResult(
            yearly_depreciation=0.0,
            years_elapsed=0.0,
            book_value=0.0,
            depreciation_by_year=[0.0] * USEFUL_LIFE_YEARS,
            is_fully_depreciated=False,
        )

    cost = float(purchase_cost)
    yearly = cost / USEFUL_LIFE_YEARS
    # A purchase dated after as_of has not started depreciating yet
    elapsed = min(float(USEFUL_LIFE_YEARS), max(0.0, years_between(purchase_date, as_of)))
    book_value = max(0.0, cost - yearly * elapsed)
    by_year = [yearly if year <= elapsed else 0.0 for year in range(1, USEFUL_LIFE_YEARS + 1)]
    return DepreciationResult(
        yearly_depreciation=yearly,
        years_elapsed=elapsed,
        book_value=book_value,
        depreciation_by_year=by_year,
        is_fully_depreciated=elapsed >= USEFUL_LIFE_YEARS,
    )


def depreciation_details(
    purchase_date: Optional[dt.date],
    purchase_cost: Optional[float],
) -> List[DepreciationDetail]:
    """Projected schedule over the whole useful life, regardless of elapsed time."""
    if not _has_basis(purchase_date, purchase_cost):
        return [DepreciationDetail(year=year, depreciation=0.0, book_value=0.0) for year in range(1, USEFUL_LIFE_YEARS + 1)]

    cost = float(purchase_cost)
    yearly = cost / USEFUL_LIFE_YEARS
    return [
        DepreciationDetail(year=year, depreciation=yearly, book_value=max(0.0, cost - yearly * year))
        for year in range(1, USEFUL_LIFE_YEARS + 1)
    ]
