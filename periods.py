from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def _month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1) - date.resolution
    return date(year, month + 1, 1) - date.resolution


def month_period(key: str) -> Period:
    try:
        year_raw, month_raw = key.strip().split("-")
        year, month = int(year_raw), int(month_raw)
        start = date(year, month, 1)
    except ValueError as exc:
        raise ValueError("Month must be formatted as YYYY-MM") from exc
    return Period(month_key(start), start, _month_end(year, month))


def trailing_months(count: int = 6, *, today: Optional[date] = None) -> list[Period]:
    """Return the last ``count`` calendar months, oldest first, ending with today's."""
    today = today or date.today()
    periods: list[Period] = []
    year, month = today.year, today.month
    for _ in range(count):
        periods.append(month_period(f"{year:04d}-{month:02d}"))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    periods.reverse()
    return periods
