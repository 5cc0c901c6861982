from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any

from pydantic import ConfigDict, Field, PrivateAttr, field_validator, model_validator

from caseledger.models.enums import OTHER_PARTICULAR, PARTICULAR_TYPES, BalanceStatus, PaymentMethod
from caseledger.schemas.common import Amount, ApiModel
from caseledger.services.dates import ParsedDate, normalize
from caseledger.services.ledger import MAX_AMOUNT, ZERO, LedgerTotals, amount_to_input, amount_to_json, coerce_amount, compute_totals


def is_hearing_type(type_: str | None) -> bool:
    t = (type_ or "").lower()
    return "appearance" in t or "hearing" in t


def canonical_date(value: Any) -> str:
    """Validate a date input and return it in ISO form; raises ValueError when unreadable."""
    parsed = normalize(value)
    if not parsed.ok:
        raise ValueError(f"not a recognizable date: {value!r}")
    return parsed.value.isoformat()


class ParticularFields(ApiModel):
    type: str = ""
    amount: Amount = Field(default=ZERO, ge=0)
    custom_type: str | None = None
    appearance_date: str | None = None


class Particular(ParticularFields):
    @property
    def display_name(self) -> str:
        if self.type == OTHER_PARTICULAR and self.custom_type:
            return self.custom_type
        return self.type

    @property
    def is_hearing(self) -> bool:
        return is_hearing_type(self.type)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ParticularIn(Particular):
    """A charge line as entered: catalog type, valid amount, optional hearing date."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: str = Field(min_length=1)
    amount: Amount = Field(default=ZERO, ge=0, le=MAX_AMOUNT)

    @field_validator("type")
    @classmethod
    def _known_type(cls, v: str) -> str:
        if v not in PARTICULAR_TYPES:
            raise ValueError(f"unknown particular type: {v!r}")
        return v

    @model_validator(mode="after")
    def _sanitize(self) -> ParticularIn:
        # customType only means something for "Other"; appearanceDate only for hearings.
        if self.type != OTHER_PARTICULAR or not self.custom_type:
            self.custom_type = None
        if not self.is_hearing or not self.appearance_date:
            self.appearance_date = None
        else:
            self.appearance_date = canonical_date(self.appearance_date)
        return self


class Payment(ApiModel):
    amount: Amount = Field(default=ZERO, ge=0)
    method: PaymentMethod | None = None
    date: str = ""

    def to_document(self) -> dict[str, Any]:
        return {
            "amount": amount_to_json(self.amount),
            "method": self.method.value if self.method else "",
            "date": self.date,
        }


class PaymentCreate(ApiModel):
    amount: Amount = Field(gt=0, le=MAX_AMOUNT)
    method: PaymentMethod
    date: str

    @field_validator("amount")
    @classmethod
    def _at_least_a_cent(cls, v: Decimal) -> Decimal:
        # 0.001 passes gt=0 but rounds to 0.00
        if v <= 0:
            raise ValueError("amount must be at least 0.01")
        return v

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, v: Any) -> str:
        return canonical_date(v)


class CaseCreate(ApiModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    bill_number: str = Field(min_length=1, max_length=120)
    case_number: str = Field(min_length=1, max_length=120)
    case_description: str = Field(min_length=1)
    date: str
    particulars: list[ParticularIn] = Field(min_length=1)

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, v: Any) -> str:
        return canonical_date(v)


class CaseUpdate(ApiModel):
    """Replace identifying fields and/or the whole particulars list. Payments are never touched."""

    model_config = ConfigDict(str_strip_whitespace=True)

    bill_number: str | None = Field(default=None, min_length=1, max_length=120)
    case_number: str | None = Field(default=None, min_length=1, max_length=120)
    case_description: str | None = Field(default=None, min_length=1)
    date: str | None = None
    particulars: list[ParticularIn] | None = Field(default=None, min_length=1)

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, v: Any) -> str | None:
        if v is None:
            return None
        return canonical_date(v)


class ParticularDraft(ApiModel):
    """A charge line while it is being edited: the amount is whatever text was typed."""

    type: str = ""
    amount: str = ""
    custom_type: str | None = None
    appearance_date: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v)

    @classmethod
    def from_particular(cls, p: Particular) -> ParticularDraft:
        return cls(type=p.type, amount=amount_to_input(p.amount), custom_type=p.custom_type, appearance_date=p.appearance_date)

    def to_particular(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "amount": coerce_amount(self.amount),
            "custom_type": self.custom_type,
            "appearance_date": self.appearance_date,
        }


class CaseUpdateForm(ApiModel):
    bill_number: str | None = None
    case_number: str | None = None
    case_description: str | None = None
    date: str | None = None
    particulars: list[ParticularDraft] | None = None

    def to_update(self) -> dict[str, Any]:
        data = self.model_dump(exclude={"particulars"}, exclude_none=True)
        if self.particulars is not None:
            data["particulars"] = [p.to_particular() for p in self.particulars]
        return data


class Case(ApiModel):
    """A case as read back from the store; derived amounts are computed on access."""

    id: str
    bill_number: str = ""
    case_number: str = ""
    case_description: str = ""
    date: str = ""
    created_at: str | None = None
    particulars: list[Particular] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)

    _parsed: ParsedDate = PrivateAttr()

    def model_post_init(self, __context: Any) -> None:
        self._parsed = normalize(self.date)

    @property
    def parsed_date(self) -> ParsedDate:
        return self._parsed

    @property
    def instant(self) -> dt.datetime | None:
        return self._parsed.value

    @property
    def totals(self) -> LedgerTotals:
        return compute_totals(self.particulars, self.payments)

    @property
    def total_amount(self) -> Decimal:
        return self.totals.total_amount

    @property
    def paid_amount(self) -> Decimal:
        return self.totals.paid_amount

    @property
    def remaining_amount(self) -> Decimal:
        return self.totals.remaining_amount

    @property
    def balance_status(self) -> BalanceStatus:
        return self.totals.balance_status


class ParticularOut(ParticularFields):
    display_name: str


class CaseOut(ApiModel):
    id: str
    bill_number: str
    case_number: str
    case_description: str
    date: str
    date_valid: bool
    created_at: str | None
    particulars: list[ParticularOut]
    payments: list[Payment]
    total_amount: Amount
    paid_amount: Amount
    remaining_amount: Amount
    balance_status: BalanceStatus


class CaseDraftOut(CaseUpdateForm):
    id: str
