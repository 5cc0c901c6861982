from __future__ import annotations

import enum


class StoreBackend(str, enum.Enum):
    SQL = "sql"
    RTDB = "rtdb"  # Firebase Realtime Database


class DateOrder(str, enum.Enum):
    DMY = "DMY"  # 15-03-2024
    MDY = "MDY"  # 03-15-2024
    YMD = "YMD"  # 2024/03/15


class DateStatus(str, enum.Enum):
    PARSED = "PARSED"
    MISSING = "MISSING"
    INVALID = "INVALID"


class TimeWindow(str, enum.Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class PaymentMethod(str, enum.Enum):
    CASH = "Cash"
    ONLINE = "Online"


class BalanceStatus(str, enum.Enum):
    OUTSTANDING = "OUTSTANDING"  # remaining > 0
    SETTLED = "SETTLED"  # remaining == 0
    OVERPAID = "OVERPAID"  # remaining < 0


OTHER_PARTICULAR = "Other"

PARTICULAR_TYPES: tuple[str, ...] = tuple(
    sorted(
        [
            "Appearance",
            "Arbitration Hearing",
            "Conference",
            "Conference at BEST office",
            "Drafting Charges",
            "Drafting Section 17 Application",
            "Filing",
            "Miscellaneous Expenses",
            "Notary Charges",
            "Notary Charges Affidavit in Reply",
            OTHER_PARTICULAR,
            "Settling Reply to Claims",
            "Written opinion",
            "Xerox Charges",
        ]
    )
)
