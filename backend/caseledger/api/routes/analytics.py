from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends, Query

from caseledger.api.deps import get_cases
from caseledger.models.enums import TimeWindow
from caseledger.schemas.analytics import CollectionsOut, DashboardOut, OverviewOut
from caseledger.schemas.case import Case
from caseledger.services.aggregation import build_overview, collections_summary, dashboard_summary

router = APIRouter()


@router.get("/overview", response_model=OverviewOut)
def overview(
    window: TimeWindow = Query(default=TimeWindow.MONTH),
    as_of: dt.datetime | None = Query(default=None),  # defaults to now in the configured timezone
    cases: tuple[Case, ...] = Depends(get_cases),
):
    return build_overview(cases, window, as_of)


@router.get("/collections", response_model=CollectionsOut)
def collections(
    window: TimeWindow = Query(default=TimeWindow.MONTH),
    as_of: dt.datetime | None = Query(default=None),
    cases: tuple[Case, ...] = Depends(get_cases),
):
    return collections_summary(cases, window, as_of)


@router.get("/dashboard", response_model=DashboardOut)
def dashboard(as_of: dt.datetime | None = Query(default=None), cases: tuple[Case, ...] = Depends(get_cases)):
    return dashboard_summary(cases, as_of)
