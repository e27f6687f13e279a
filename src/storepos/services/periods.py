from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Optional

from storepos.domain.errors import ValidationError

HISTORY_PRESETS = ("today", "yesterday", "last7days", "last30days", "thisMonth", "custom", "all")

# dashboard selector values and the history preset each one maps to
DASHBOARD_PRESETS = {
    "7days": "last7days",
    "30days": "last30days",
    "thisMonth": "thisMonth",
}

Window = tuple[Optional[datetime], Optional[datetime]]


def _day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    return datetime.combine(start, time.min), datetime.combine(end, time(23, 59, 59))


def date_range(
    preset: str,
    today: Optional[date] = None,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> Window:
    """
    Inclusive window for a period preset, from the first to the last second of
    the covered days. ``all`` and an incomplete ``custom`` window mean no
    date filter and return ``(None, None)``.
    """
    today = today or date.today()
    preset = DASHBOARD_PRESETS.get(preset, preset)

    if preset == "today":
        return _day_bounds(today, today)
    if preset == "yesterday":
        y = today - timedelta(days=1)
        return _day_bounds(y, y)
    if preset == "last7days":
        return _day_bounds(today - timedelta(days=6), today)
    if preset == "last30days":
        return _day_bounds(today - timedelta(days=29), today)
    if preset == "thisMonth":
        last_day = calendar.monthrange(today.year, today.month)[1]
        return _day_bounds(today.replace(day=1), today.replace(day=last_day))
    if preset == "custom":
        if custom_start is None or custom_end is None:
            return None, None
        if custom_end < custom_start:
            raise ValidationError("End date must be on or after start date.")
        return _day_bounds(custom_start, custom_end)
    if preset == "all":
        return None, None
    raise ValidationError(f"Unknown period: {preset}")


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(sep=" ") if value is not None else None


def days_between(start: date, end: date) -> list[date]:
    out = []
    d = start
    while d <= end:
        out.append(d)
        d += timedelta(days=1)
    return out
