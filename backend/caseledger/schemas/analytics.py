from __future__ import annotations

import datetime as dt

from caseledger.models.enums import TimeWindow
from caseledger.schemas.case import CaseOut
from caseledger.schemas.common import Amount, ApiModel


class Stats(ApiModel):
    total_billed: Amount
    total_cases: int
    total_payments_received: Amount
    total_remaining: Amount  # total_billed - total_payments_received, may be negative


class Bucket(ApiModel):
    label: str  # "14:00" / "Mon" / "05 Jan" / "Jan" / "Jan 2024"
    billed: Amount
    paid: Amount
    cases: int


class AggregateResult(ApiModel):
    stats: Stats
    buckets: list[Bucket]
    # Cases counted in stats that have no usable date (only ever non-empty for ALL).
    unbucketed: Bucket


class OverviewOut(AggregateResult):
    window: TimeWindow
    as_of: dt.datetime
    cases: list[CaseOut]
    unparsed_excluded: int


class CollectionsOut(ApiModel):
    window: TimeWindow
    as_of: dt.datetime
    total_received: Amount
    payment_count: int
    by_method: dict[str, Amount]
    unparsed_skipped: int


class MonthlyTrendPoint(ApiModel):
    period: str  # 2024-03
    label: str  # Mar 2024
    billed: Amount
    cases: int


class DashboardOut(ApiModel):
    as_of: dt.datetime
    total_cases: int
    total_billed: Amount
    total_outstanding: Amount
    this_month_cases: int
    this_month_billed: Amount
    recent_cases: list[CaseOut]
    monthly_trend: list[MonthlyTrendPoint]
