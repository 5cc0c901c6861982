from __future__ import annotations

import datetime as dt
from collections.abc import Iterable

from caseledger.models.enums import TimeWindow
from caseledger.schemas.case import Case, Payment
from caseledger.services.dates import ParsedDate, get_timezone, localize, normalize


def _day_start(d: dt.datetime) -> dt.datetime:
    return d.replace(hour=0, minute=0, second=0, microsecond=0)


def _add_months(d: dt.datetime, months: int) -> dt.datetime:
    y = d.year + (d.month - 1 + months) // 12
    m = (d.month - 1 + months) % 12 + 1
    return d.replace(year=y, month=m, day=1)


def resolve_as_of(as_of: dt.datetime | None) -> dt.datetime:
    tz = get_timezone()
    if as_of is None:
        return dt.datetime.now(tz)
    return localize(as_of, tz)


def window_bounds(window: TimeWindow, as_of: dt.datetime) -> tuple[dt.datetime, dt.datetime] | None:
    """
    Half-open [start, end) interval for the calendar period containing as_of.
    Weeks start on Monday. ALL has no bounds.
    """
    as_of = resolve_as_of(as_of)
    today = _day_start(as_of)
    if window == TimeWindow.TODAY:
        return today, today + dt.timedelta(days=1)
    if window == TimeWindow.WEEK:
        start = today - dt.timedelta(days=today.weekday())
        return start, start + dt.timedelta(days=7)
    if window == TimeWindow.MONTH:
        start = today.replace(day=1)
        return start, _add_months(start, 1)
    if window == TimeWindow.YEAR:
        start = today.replace(month=1, day=1)
        return start, start.replace(year=start.year + 1)
    return None


def in_window(parsed: ParsedDate, window: TimeWindow, as_of: dt.datetime) -> bool:
    bounds = window_bounds(window, as_of)
    if bounds is None:
        return True
    if not parsed.ok:
        return False
    start, end = bounds
    return start <= parsed.value < end


def _recency_key(parsed: ParsedDate) -> tuple[int, float]:
    # Unparsed dates sort below every real date.
    if not parsed.ok:
        return 0, 0.0
    return 1, parsed.value.timestamp()


def sort_recent_first(cases: Iterable[Case]) -> list[Case]:
    return sorted(cases, key=lambda c: _recency_key(c.parsed_date), reverse=True)


def filter_cases(cases: Iterable[Case], window: TimeWindow, as_of: dt.datetime | None = None) -> list[Case]:
    """
    Cases whose date falls in the window, most recent first.

    Cases with a missing or unreadable date never match a dated window.
    Under ALL they are kept and sink to the bottom.
    """
    as_of = resolve_as_of(as_of)
    return sort_recent_first(c for c in cases if in_window(c.parsed_date, window, as_of))


def payments_in_window(
    cases: Iterable[Case], window: TimeWindow, as_of: dt.datetime | None = None
) -> list[tuple[Case, Payment, ParsedDate]]:
    """Payments selected by their own received date, regardless of the case's billing date."""
    as_of = resolve_as_of(as_of)
    out: list[tuple[Case, Payment, ParsedDate]] = []
    for c in cases:
        for p in c.payments:
            parsed = normalize(p.date)
            if in_window(parsed, window, as_of):
                out.append((c, p, parsed))
    return out
