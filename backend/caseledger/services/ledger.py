from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from caseledger.models.enums import BalanceStatus

ZERO = Decimal("0.00")
# Largest amount a single charge or payment may carry.
MAX_AMOUNT = Decimal("999999999999999.99")


def q_amount(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def coerce_amount(value: Any) -> Decimal:
    """
    Total parse-or-default for money: anything that is not a finite,
    non-negative number (None, "", "abc", NaN, -5) becomes 0.00.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, float, str)):
        text = str(value).strip().replace(",", "")
        if not text:
            return ZERO
        try:
            d = Decimal(text)
        except InvalidOperation:
            return ZERO
    else:
        return ZERO
    if not d.is_finite() or d < 0 or d > MAX_AMOUNT:
        return ZERO
    return q_amount(d)


def validate_amount(value: Decimal) -> Decimal:
    """Field validator for money: quantizes to the cent, rejecting values the decimal context cannot hold."""
    try:
        return q_amount(value)
    except InvalidOperation as e:
        raise ValueError("amount is out of range") from e


def amount_to_json(x: Decimal) -> int | float:
    """Documents hold plain JSON numbers; integral amounts stay integers."""
    if x == x.to_integral_value():
        return int(x)
    return float(x)


def amount_to_input(x: Decimal) -> str:
    """Editable text for an amount: "5000", "5000.5"."""
    if x == x.to_integral_value():
        return str(int(x))
    return format(x.normalize(), "f")


def _amount_of(item: Any) -> Decimal:
    if isinstance(item, Mapping):
        return coerce_amount(item.get("amount"))
    return coerce_amount(getattr(item, "amount", None))


@dataclass(frozen=True)
class LedgerTotals:
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal

    @property
    def balance_status(self) -> BalanceStatus:
        return balance_status(self.remaining_amount)


def sum_amounts(items: Iterable[Any]) -> Decimal:
    return q_amount(sum((_amount_of(i) for i in items), ZERO))


def compute_totals(particulars: Iterable[Any], payments: Iterable[Any]) -> LedgerTotals:
    """
    total = sum(particulars), paid = sum(payments), remaining = total - paid.

    Items may be models or plain document maps. Remaining is not clamped:
    a negative value is an overpayment.
    """
    total = sum_amounts(particulars)
    paid = sum_amounts(payments)
    return LedgerTotals(total_amount=total, paid_amount=paid, remaining_amount=q_amount(total - paid))


def balance_status(remaining: Decimal) -> BalanceStatus:
    if remaining > 0:
        return BalanceStatus.OUTSTANDING
    if remaining < 0:
        return BalanceStatus.OVERPAID
    return BalanceStatus.SETTLED
