from __future__ import annotations

from fastapi import Depends, Request

from caseledger.schemas.case import Case
from caseledger.services.live_view import LiveCaseView
from caseledger.services.store import DocumentStore


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_live_view(request: Request) -> LiveCaseView:
    return request.app.state.live_view


def get_cases(view: LiveCaseView = Depends(get_live_view)) -> tuple[Case, ...]:
    """
    The case set every read works from: the live view's latest snapshot.
    A view that never received one raises PersistenceFailure (503).
    """
    return view.require_snapshot()
