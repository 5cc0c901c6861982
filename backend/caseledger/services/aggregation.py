from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from caseledger.models.enums import TimeWindow
from caseledger.schemas.analytics import (
    AggregateResult,
    Bucket,
    CollectionsOut,
    DashboardOut,
    MonthlyTrendPoint,
    OverviewOut,
    Stats,
)
from caseledger.schemas.case import Case
from caseledger.services.cases import to_case_out
from caseledger.services.dates import normalize
from caseledger.services.ledger import ZERO, q_amount
from caseledger.services.periods import filter_cases, payments_in_window, resolve_as_of, sort_recent_first

logger = logging.getLogger(__name__)

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

UNBUCKETED_LABEL = "Unparsed date"
UNSPECIFIED_METHOD = "Unspecified"
RECENT_CASES = 5
TREND_MONTHS = 6


def bucket_label(window: TimeWindow, instant: dt.datetime) -> str:
    if window == TimeWindow.TODAY:
        return f"{instant.hour:02d}:00"
    if window == TimeWindow.WEEK:
        return WEEKDAYS[instant.weekday()]
    if window == TimeWindow.MONTH:
        return f"{instant.day:02d} {MONTHS[instant.month - 1]}"
    if window == TimeWindow.YEAR:
        return MONTHS[instant.month - 1]
    return f"{MONTHS[instant.month - 1]} {instant.year}"


def _bucket_position(window: TimeWindow, instant: dt.datetime) -> tuple[int, ...]:
    """Where a bucket sits inside its window, so Mon..Sun and Jan..Dec come out in calendar order."""
    if window == TimeWindow.TODAY:
        return (instant.hour,)
    if window == TimeWindow.WEEK:
        return (instant.weekday(),)
    if window == TimeWindow.MONTH:
        return (instant.month, instant.day)
    if window == TimeWindow.YEAR:
        return (instant.month,)
    return (instant.year, instant.month)


@dataclass
class _Cell:
    billed: Decimal = ZERO
    paid: Decimal = ZERO
    cases: int = 0
    first: dt.datetime | None = None  # representative instant, only used for ordering

    def add(self, case: Case) -> None:
        totals = case.totals
        self.billed += totals.total_amount
        self.paid += totals.paid_amount
        self.cases += 1
        if case.instant is not None and (self.first is None or case.instant < self.first):
            self.first = case.instant

    def to_bucket(self, label: str) -> Bucket:
        return Bucket(label=label, billed=q_amount(self.billed), paid=q_amount(self.paid), cases=self.cases)


def aggregate(cases: Iterable[Case], window: TimeWindow) -> AggregateResult:
    """
    Reduce an already filtered case set into stats and chart buckets.

    Every case counts toward stats. Only cases with a usable date land in a
    bucket; the rest are summed into `unbucketed`, so
    stats.total_billed == sum(b.billed for b in buckets) + unbucketed.billed.
    """
    overall = _Cell()
    loose = _Cell()
    cells: dict[str, _Cell] = {}

    for c in cases:
        overall.add(c)
        if c.instant is None:
            loose.add(c)
            continue
        cells.setdefault(bucket_label(window, c.instant), _Cell()).add(c)

    ordered = sorted(cells.items(), key=lambda kv: _bucket_position(window, kv[1].first))

    stats = Stats(
        total_billed=q_amount(overall.billed),
        total_cases=overall.cases,
        total_payments_received=q_amount(overall.paid),
        total_remaining=q_amount(overall.billed - overall.paid),
    )
    return AggregateResult(
        stats=stats,
        buckets=[cell.to_bucket(label) for label, cell in ordered],
        unbucketed=loose.to_bucket(UNBUCKETED_LABEL),
    )


def build_overview(cases: Sequence[Case], window: TimeWindow, as_of: dt.datetime | None = None) -> OverviewOut:
    as_of = resolve_as_of(as_of)
    filtered = filter_cases(cases, window, as_of)
    result = aggregate(filtered, window)

    unparsed_excluded = 0
    if window != TimeWindow.ALL:
        unparsed_excluded = sum(1 for c in cases if c.instant is None)
    if unparsed_excluded:
        logger.info("overview: window=%s unparsed_excluded=%d", window.value, unparsed_excluded)

    return OverviewOut(
        window=window,
        as_of=as_of,
        stats=result.stats,
        buckets=result.buckets,
        unbucketed=result.unbucketed,
        cases=[to_case_out(c) for c in filtered],
        unparsed_excluded=unparsed_excluded,
    )


def collections_summary(cases: Sequence[Case], window: TimeWindow, as_of: dt.datetime | None = None) -> CollectionsOut:
    """Money received in the window, by the date each payment came in."""
    as_of = resolve_as_of(as_of)
    received = payments_in_window(cases, window, as_of)

    total = ZERO
    by_method: dict[str, Decimal] = {}
    for _case, payment, _parsed in received:
        key = payment.method.value if payment.method else UNSPECIFIED_METHOD
        by_method[key] = by_method.get(key, ZERO) + payment.amount
        total += payment.amount

    unparsed_skipped = 0
    if window != TimeWindow.ALL:
        unparsed_skipped = sum(1 for c in cases for p in c.payments if not normalize(p.date).ok)

    return CollectionsOut(
        window=window,
        as_of=as_of,
        total_received=q_amount(total),
        payment_count=len(received),
        by_method={k: q_amount(v) for k, v in sorted(by_method.items())},
        unparsed_skipped=unparsed_skipped,
    )


def _month_key(instant: dt.datetime) -> str:
    return f"{instant.year:04d}-{instant.month:02d}"


def dashboard_summary(cases: Sequence[Case], as_of: dt.datetime | None = None) -> DashboardOut:
    as_of = resolve_as_of(as_of)
    this_month = filter_cases(cases, TimeWindow.MONTH, as_of)

    trend: dict[str, _Cell] = {}
    for c in cases:
        if c.instant is not None:
            trend.setdefault(_month_key(c.instant), _Cell()).add(c)
    # Last six months that have any billing, oldest first.
    last_keys = sorted(trend.keys())[-TREND_MONTHS:]
    monthly_trend = [
        MonthlyTrendPoint(
            period=k,
            label=f"{MONTHS[int(k[5:]) - 1]} {k[:4]}",
            billed=q_amount(trend[k].billed),
            cases=trend[k].cases,
        )
        for k in last_keys
    ]

    return DashboardOut(
        as_of=as_of,
        total_cases=len(cases),
        total_billed=q_amount(sum((c.total_amount for c in cases), ZERO)),
        total_outstanding=q_amount(sum((c.remaining_amount for c in cases), ZERO)),
        this_month_cases=len(this_month),
        this_month_billed=q_amount(sum((c.total_amount for c in this_month), ZERO)),
        recent_cases=[to_case_out(c) for c in sort_recent_first(cases)[:RECENT_CASES]],
        monthly_trend=monthly_trend,
    )


def search_cases(cases: Iterable[Case], term: str | None) -> list[Case]:
    """Case-insensitive substring match on bill number, case number and description."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(cases)
    return [
        c
        for c in cases
        if needle in c.bill_number.lower() or needle in c.case_number.lower() or needle in c.case_description.lower()
    ]
