from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from caseledger.api.deps import get_cases, get_store
from caseledger.schemas.case import Case, CaseDraftOut, CaseOut, CaseUpdateForm
from caseledger.services import cases as case_service
from caseledger.services.aggregation import search_cases
from caseledger.services.store import DocumentStore

router = APIRouter()


@router.get("/", response_model=list[CaseOut])
def list_cases(q: str | None = Query(default=None), cases: tuple[Case, ...] = Depends(get_cases)):
    return [case_service.to_case_out(c) for c in search_cases(cases, q)]


@router.get("/{case_id}", response_model=CaseOut)
def get_case(case_id: str, store: DocumentStore = Depends(get_store)):
    return case_service.to_case_out(case_service.get_case(store, case_id))


@router.get("/{case_id}/draft", response_model=CaseDraftOut)
def get_case_draft(case_id: str, store: DocumentStore = Depends(get_store)):
    return case_service.draft_from_case(case_service.get_case(store, case_id))


# Bodies are validated by the service (ValidationError -> 400).
@router.post("/", response_model=CaseOut, status_code=201)
def create_case(payload: dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store)):
    c = case_service.create_case(store, payload)
    return case_service.to_case_out(c)


@router.patch("/{case_id}", response_model=CaseOut)
def update_case(case_id: str, form: CaseUpdateForm, store: DocumentStore = Depends(get_store)):
    c = case_service.update_case_details(store, case_id, form.to_update())
    return case_service.to_case_out(c)


@router.post("/{case_id}/payments", response_model=CaseOut, status_code=201)
def record_payment(case_id: str, payload: dict[str, Any] = Body(...), store: DocumentStore = Depends(get_store)):
    c = case_service.record_payment(store, case_id, payload)
    return case_service.to_case_out(c)
