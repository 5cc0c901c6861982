import datetime as dt
from decimal import Decimal

from caseledger.models.enums import TimeWindow
from caseledger.schemas.case import Case, Particular, Payment
from caseledger.services.aggregation import (
    UNBUCKETED_LABEL,
    aggregate,
    bucket_label,
    build_overview,
    collections_summary,
    dashboard_summary,
    search_cases,
)

UTC = dt.timezone.utc
AS_OF = dt.datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


def _case(id_, date, billed, paid=0, **kw):
    payments = [Payment(amount=paid, method="Cash", date=date)] if paid else []
    return Case(id=id_, date=date, particulars=[Particular(type="Filing", amount=billed)], payments=payments, **kw)


def _assert_consistent(result, cases):
    s = result.stats
    assert s.total_remaining == s.total_billed - s.total_payments_received
    assert s.total_remaining == sum((c.remaining_amount for c in cases), Decimal("0"))
    assert s.total_billed == sum((b.billed for b in result.buckets), Decimal("0")) + result.unbucketed.billed


def test_year_example_single_jan_bucket():
    cases = [_case("a", "2024-01-05", 1000), _case("b", "2024-01-20", 2000)]
    r = build_overview(cases, TimeWindow.YEAR, AS_OF)
    assert r.stats.total_billed == Decimal("3000.00")
    assert r.stats.total_cases == 2
    assert [(b.label, b.billed, b.paid) for b in r.buckets] == [("Jan", Decimal("3000.00"), Decimal("0.00"))]
    _assert_consistent(r, r.cases)


def test_year_buckets_in_calendar_order():
    cases = [_case("d", "2024-12-01", 1), _case("m", "2024-03-01", 1), _case("j", "2024-01-31", 1), _case("f", "2024-02-10", 1)]
    r = build_overview(list(reversed(cases)), TimeWindow.YEAR, dt.datetime(2024, 12, 31, tzinfo=UTC))
    assert [b.label for b in r.buckets] == ["Jan", "Feb", "Mar", "Dec"]


def test_week_buckets_follow_weekdays():
    as_of = dt.datetime(2024, 6, 16, tzinfo=UTC)  # Sunday
    cases = [_case("s", "2024-06-16", 1), _case("w", "2024-06-12", 1), _case("m", "2024-06-10", 1)]
    r = build_overview(cases, TimeWindow.WEEK, as_of)
    assert [b.label for b in r.buckets] == ["Mon", "Wed", "Sun"]


def test_garbage_date_excluded_from_dated_windows():
    cases = [_case("ok", "2024-06-10", 500), _case("bad", "garbage", 900)]
    for window in (TimeWindow.TODAY, TimeWindow.WEEK, TimeWindow.MONTH, TimeWindow.YEAR):
        r = build_overview(cases, window, AS_OF)
        assert "bad" not in [c.id for c in r.cases]
        assert r.unparsed_excluded == 1
        assert r.unbucketed.cases == 0
        _assert_consistent(r, r.cases)


def test_all_window_counts_unparsed_outside_buckets():
    cases = [_case("ok", "2024-06-10", 500), _case("bad", "garbage", 900, paid=100)]
    r = build_overview(cases, TimeWindow.ALL, AS_OF)
    assert [c.id for c in r.cases] == ["ok", "bad"]
    assert r.stats.total_billed == Decimal("1400.00")
    assert [b.label for b in r.buckets] == ["Jun 2024"]
    assert r.unbucketed.label == UNBUCKETED_LABEL
    assert (r.unbucketed.billed, r.unbucketed.paid, r.unbucketed.cases) == (Decimal("900.00"), Decimal("100.00"), 1)
    assert r.unparsed_excluded == 0
    _assert_consistent(r, r.cases)


def test_month_example_with_payment():
    c = Case(
        id="x",
        date="2024-06-10",
        particulars=[Particular(type="Filing", amount=5000), Particular(type="Xerox Charges", amount=500)],
        payments=[Payment(amount=2000, method="Cash", date="2024-06-12")],
    )
    r = build_overview([c], TimeWindow.MONTH, AS_OF)
    assert [(b.label, b.billed, b.paid) for b in r.buckets] == [("10 Jun", Decimal("5500.00"), Decimal("2000.00"))]
    assert r.stats.total_remaining == Decimal("3500.00")


def test_empty_window():
    r = aggregate([], TimeWindow.MONTH)
    assert r.buckets == []
    assert r.stats.total_cases == 0
    _assert_consistent(r, [])


def test_bucket_labels():
    t = dt.datetime(2024, 1, 5, 14, 30, tzinfo=UTC)
    assert bucket_label(TimeWindow.TODAY, t) == "14:00"
    assert bucket_label(TimeWindow.WEEK, t) == "Fri"
    assert bucket_label(TimeWindow.MONTH, t) == "05 Jan"
    assert bucket_label(TimeWindow.YEAR, t) == "Jan"
    assert bucket_label(TimeWindow.ALL, t) == "Jan 2024"


def test_collections_use_payment_dates():
    c = Case(
        id="x",
        date="2023-01-01",
        particulars=[Particular(type="Filing", amount=5000)],
        payments=[
            Payment(amount=2000, method="Cash", date="2024-06-12"),
            Payment(amount=700, method="Online", date="2024-06-01"),
            Payment(amount=300, date="2024-06-02"),
            Payment(amount=999, method="Cash", date="2024-05-31"),
            Payment(amount=50, method="Cash", date="???"),
        ],
    )
    r = collections_summary([c], TimeWindow.MONTH, AS_OF)
    assert r.total_received == Decimal("3000.00")
    assert r.payment_count == 3
    assert r.by_method == {"Cash": Decimal("2000.00"), "Online": Decimal("700.00"), "Unspecified": Decimal("300.00")}
    assert r.unparsed_skipped == 1


def test_dashboard():
    cases = [
        _case("a", "2024-06-01", 1000, paid=400),
        _case("b", "2024-05-20", 2000),
        _case("c", "2023-11-02", 500, paid=500),
        _case("d", "nope", 100),
    ]
    d = dashboard_summary(cases, AS_OF)
    assert d.total_cases == 4
    assert d.total_billed == Decimal("3600.00")
    assert d.total_outstanding == Decimal("2700.00")
    assert (d.this_month_cases, d.this_month_billed) == (1, Decimal("1000.00"))
    assert [c.id for c in d.recent_cases] == ["a", "b", "c", "d"]
    assert [p.period for p in d.monthly_trend] == ["2023-11", "2024-05", "2024-06"]
    assert d.monthly_trend[-1].label == "Jun 2024"


def test_search_matches_bill_case_and_description():
    cases = [
        Case(id="1", bill_number="B-17", case_number="C-1", case_description="Land"),
        Case(id="2", bill_number="B-2", case_number="C-17", case_description="Rent"),
        Case(id="3", bill_number="B-3", case_number="C-3", case_description="Rent arrears"),
    ]
    assert [c.id for c in search_cases(cases, "17")] == ["1", "2"]
    assert [c.id for c in search_cases(cases, "  ARREARS ")] == ["3"]
    assert len(search_cases(cases, "")) == 3


def test_stats_remaining_matches_per_case_remaining_with_overpayment():
    cases = [
        _case("owes", "2024-06-03", 1000, paid=200),
        _case("over", "2024-06-04", 500, paid=800),
        _case("even", "2024-06-05", 300, paid=300),
    ]
    r = build_overview(cases, TimeWindow.MONTH, AS_OF)
    assert r.stats.total_remaining == Decimal("500.00")
    assert [c.balance_status.value for c in r.cases] == ["SETTLED", "OVERPAID", "OUTSTANDING"]
    _assert_consistent(r, r.cases)

    direct = aggregate(cases, TimeWindow.MONTH)
    _assert_consistent(direct, cases)
