from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from caseledger.core.errors import NotFoundError, ValidationError
from caseledger.models.enums import PaymentMethod
from caseledger.schemas.case import (
    Case,
    CaseCreate,
    CaseDraftOut,
    CaseOut,
    CaseUpdate,
    Particular,
    ParticularDraft,
    ParticularOut,
    Payment,
    PaymentCreate,
)
from caseledger.services.ledger import LedgerTotals, amount_to_json, coerce_amount, compute_totals
from caseledger.services.periods import sort_recent_first
from caseledger.services.store import DocumentStore

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# --- ingestion: raw documents -> Case -------------------------------------------------


def _text(v: Any) -> str:
    if v is None:
        return ""
    return str(v)


def _is_zero(value: Any) -> bool:
    try:
        return Decimal(str(value).strip()) == 0
    except InvalidOperation:
        return False


def _ingest_amount(raw: Mapping[str, Any], *, case_id: str, kind: str) -> Decimal:
    value = raw.get("amount")
    amount = coerce_amount(value)
    if amount == 0 and value not in (None, "") and not _is_zero(value):
        logger.warning("ingest: case=%s %s amount %r is not a valid amount, counted as 0", case_id, kind, value)
    return amount


def _ingest_particular(raw: Any, *, case_id: str) -> Particular | None:
    if not isinstance(raw, Mapping):
        logger.warning("ingest: case=%s dropped malformed particular %r", case_id, raw)
        return None
    return Particular(
        type=_text(raw.get("type")),
        amount=_ingest_amount(raw, case_id=case_id, kind="particular"),
        custom_type=_text(raw.get("customType")) or None,
        appearance_date=_text(raw.get("appearanceDate")) or None,
    )


def _ingest_payment(raw: Any, *, case_id: str) -> Payment | None:
    if not isinstance(raw, Mapping):
        logger.warning("ingest: case=%s dropped malformed payment %r", case_id, raw)
        return None
    try:
        method = PaymentMethod(raw.get("method"))
    except ValueError:
        method = None
    return Payment(
        amount=_ingest_amount(raw, case_id=case_id, kind="payment"),
        method=method,
        date=_text(raw.get("date")),
    )


def _sequence(raw: Any) -> list[Any]:
    # RTDB hands back arrays with holes as {"0": ..., "2": ...}.
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        return [raw[k] for k in sorted(raw.keys(), key=lambda k: int(k) if str(k).isdigit() else 0)]
    if isinstance(raw, (list, tuple)):
        return [x for x in raw if x is not None]
    return []


def case_from_document(case_id: str, doc: Mapping[str, Any]) -> Case:
    """
    Build a Case from a stored document, applying defaults once:
    payments default to [], bad amounts count as 0, stored totals are ignored.
    """
    particulars = [p for p in (_ingest_particular(x, case_id=case_id) for x in _sequence(doc.get("particulars"))) if p]
    payments = [p for p in (_ingest_payment(x, case_id=case_id) for x in _sequence(doc.get("payments"))) if p]
    return Case(
        id=case_id,
        bill_number=_text(doc.get("billNumber")),
        case_number=_text(doc.get("caseNumber")),
        case_description=_text(doc.get("caseDescription")),
        date=_text(doc.get("date")),
        created_at=_text(doc.get("createdAt")) or None,
        particulars=particulars,
        payments=payments,
    )


def ingest_snapshot(docs: Mapping[str, Any] | None) -> list[Case]:
    """Turn a store snapshot into cases, most recent first."""
    cases: list[Case] = []
    for case_id, doc in (docs or {}).items():
        if not isinstance(doc, Mapping):
            logger.warning("ingest: dropped non-document entry id=%s", case_id)
            continue
        cases.append(case_from_document(str(case_id), doc))
    return sort_recent_first(cases)


# --- reads ----------------------------------------------------------------------------


def get_case(store: DocumentStore, case_id: str) -> Case:
    doc = store.get(case_id)
    if doc is None:
        raise NotFoundError(case_id)
    return case_from_document(case_id, doc)


def list_cases(store: DocumentStore) -> list[Case]:
    return ingest_snapshot(store.snapshot())


def to_case_out(case: Case) -> CaseOut:
    totals = case.totals
    return CaseOut(
        id=case.id,
        bill_number=case.bill_number,
        case_number=case.case_number,
        case_description=case.case_description,
        date=case.date,
        date_valid=case.parsed_date.ok,
        created_at=case.created_at,
        particulars=[ParticularOut(**p.model_dump(), display_name=p.display_name) for p in case.particulars],
        payments=case.payments,
        total_amount=totals.total_amount,
        paid_amount=totals.paid_amount,
        remaining_amount=totals.remaining_amount,
        balance_status=totals.balance_status,
    )


def draft_from_case(case: Case) -> CaseDraftOut:
    """Prefill for the edit form: amounts become editable text."""
    return CaseDraftOut(
        id=case.id,
        bill_number=case.bill_number,
        case_number=case.case_number,
        case_description=case.case_description,
        date=case.date,
        particulars=[ParticularDraft.from_particular(p) for p in case.particulars],
    )


# --- mutations ------------------------------------------------------------------------


def _validated(model: type[M], payload: Any) -> M:
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in errors)
        raise ValidationError(f"Invalid {model.__name__}: {fields}", errors=errors) from e


def _totals_fields(totals: LedgerTotals) -> dict[str, Any]:
    return {
        "totalAmount": amount_to_json(totals.total_amount),
        "paidAmount": amount_to_json(totals.paid_amount),
        "remainingAmount": amount_to_json(totals.remaining_amount),
    }


def create_case(store: DocumentStore, payload: CaseCreate | Mapping[str, Any]) -> Case:
    data = _validated(CaseCreate, payload)

    totals = compute_totals(data.particulars, [])
    doc: dict[str, Any] = {
        "billNumber": data.bill_number,
        "caseNumber": data.case_number,
        "caseDescription": data.case_description,
        "date": data.date,
        "createdAt": dt.datetime.now(dt.timezone.utc).isoformat(),
        "particulars": [p.to_document() for p in data.particulars],
        "payments": [],
        **_totals_fields(totals),
    }
    case_id = store.push(doc)
    logger.info("case_create: id=%s bill=%s total=%s", case_id, data.bill_number, totals.total_amount)
    return case_from_document(case_id, doc)


def update_case_details(store: DocumentStore, case_id: str, payload: CaseUpdate | Mapping[str, Any]) -> Case:
    """
    Replace identifying fields and/or the full particulars list, then rewrite
    the derived totals against the payments already on the case.
    """
    data = _validated(CaseUpdate, payload)
    doc = store.get(case_id)
    if doc is None:
        raise NotFoundError(case_id)

    fields: dict[str, Any] = {}
    if data.bill_number is not None:
        fields["billNumber"] = data.bill_number
    if data.case_number is not None:
        fields["caseNumber"] = data.case_number
    if data.case_description is not None:
        fields["caseDescription"] = data.case_description
    if data.date is not None:
        fields["date"] = data.date
    if data.particulars is not None:
        fields["particulars"] = [p.to_document() for p in data.particulars]

    merged = case_from_document(case_id, {**doc, **fields})
    fields.update(_totals_fields(merged.totals))

    store.update(case_id, fields)
    logger.info(
        "case_update: id=%s fields=%s total=%s remaining=%s",
        case_id,
        ",".join(sorted(k for k in fields if not k.endswith("Amount"))),
        merged.total_amount,
        merged.remaining_amount,
    )
    return merged


def record_payment(store: DocumentStore, case_id: str, payload: PaymentCreate | Mapping[str, Any]) -> Case:
    data = _validated(PaymentCreate, payload)
    doc = store.get(case_id)
    if doc is None:
        raise NotFoundError(case_id)

    payment = Payment(amount=data.amount, method=data.method, date=data.date)
    # Existing entries are carried over as stored.
    payments = [*_sequence(doc.get("payments")), payment.to_document()]
    merged = case_from_document(case_id, {**doc, "payments": payments})

    fields = {"payments": payments, **_totals_fields(merged.totals)}
    store.update(case_id, fields)
    logger.info(
        "payment_record: case=%s amount=%s method=%s paid=%s remaining=%s",
        case_id,
        data.amount,
        data.method.value,
        merged.paid_amount,
        merged.remaining_amount,
    )
    return merged
