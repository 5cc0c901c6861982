from fastapi import APIRouter

from caseledger.api.routes import analytics, cases

api_router = APIRouter()

api_router.include_router(cases.router, prefix="/cases", tags=["cases"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
