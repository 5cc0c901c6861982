from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Any
from zoneinfo import ZoneInfo

from caseledger.core.config import settings
from caseledger.models.enums import DateOrder, DateStatus

_SEPARATORS = re.compile(r"[-/]")


@dataclass(frozen=True)
class ParsedDate:
    """Outcome of normalizing one raw date value."""

    raw: Any
    status: DateStatus
    value: dt.datetime | None = None

    @property
    def ok(self) -> bool:
        return self.status == DateStatus.PARSED


def get_timezone(name: str | None = None) -> dt.tzinfo:
    name = name or settings.timezone
    if name.upper() in ("UTC", "Z"):
        return dt.timezone.utc
    return ZoneInfo(name)


def localize(value: dt.datetime, tz: dt.tzinfo) -> dt.datetime:
    """Naive values are read as wall time in `tz`; aware values are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def _from_parts(text: str, order: DateOrder, tz: dt.tzinfo) -> dt.datetime | None:
    parts = [p.strip() for p in _SEPARATORS.split(text)]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    a, b, c = (int(p) for p in parts)
    if order == DateOrder.DMY:
        day, month, year = a, b, c
    elif order == DateOrder.MDY:
        month, day, year = a, b, c
    else:
        year, month, day = a, b, c
    try:
        return dt.datetime(year, month, day, tzinfo=tz)
    except ValueError:
        # 31-02-2024 and friends: no rollover into the next month.
        return None


def normalize(raw: Any, *, tz: dt.tzinfo | None = None, order: DateOrder | None = None) -> ParsedDate:
    """
    Best-effort parse of a stored date into an aware instant.

    - ISO-8601 first ("2024-03-15", "2024-03-15T10:30:00.000Z").
    - Then three numeric parts split on "-" or "/", read in `order` (DMY by default).
    - Anything else is INVALID. Never raises.
    """
    tz = tz or get_timezone()
    order = order or settings.date_order

    if isinstance(raw, dt.datetime):
        return ParsedDate(raw=raw, status=DateStatus.PARSED, value=localize(raw, tz))
    if isinstance(raw, dt.date):
        return ParsedDate(raw=raw, status=DateStatus.PARSED, value=dt.datetime(raw.year, raw.month, raw.day, tzinfo=tz))
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return ParsedDate(raw=raw, status=DateStatus.MISSING)
    if not isinstance(raw, str):
        return ParsedDate(raw=raw, status=DateStatus.INVALID)

    text = raw.strip()
    try:
        return ParsedDate(raw=raw, status=DateStatus.PARSED, value=localize(dt.datetime.fromisoformat(text), tz))
    except (ValueError, OverflowError):
        pass

    value = _from_parts(text, order, tz)
    if value is None:
        return ParsedDate(raw=raw, status=DateStatus.INVALID)
    return ParsedDate(raw=raw, status=DateStatus.PARSED, value=value)
