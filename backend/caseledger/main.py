from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from caseledger.api.router import api_router
from caseledger.core.config import settings
from caseledger.core.errors import NotFoundError, PersistenceFailure, ValidationError
from caseledger.models.enums import StoreBackend
from caseledger.services.live_view import LiveCaseView
from caseledger.services.store import DocumentStore, build_store

logger = logging.getLogger(__name__)


def create_app(store: DocumentStore | None = None) -> FastAPI:
    app = FastAPI(title=settings.app_name)

    origins = settings.cors_origins
    logger.info("CORS allow_origins=%s", origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    owns_store = store is None
    app.state.store = store if store is not None else build_store()
    app.state.live_view = LiveCaseView(app.state.store)

    @app.exception_handler(ValidationError)
    def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=jsonable_encoder({"detail": exc.message, "errors": exc.errors}),
        )

    @app.exception_handler(NotFoundError)
    def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Case not found", "id": exc.case_id})

    @app.exception_handler(PersistenceFailure)
    def _persistence_failure(request: Request, exc: PersistenceFailure) -> JSONResponse:
        logger.error("persistence_failure: path=%s error=%s", request.url.path, exc)
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})

    @app.get("/health")
    def health():
        view: LiveCaseView = app.state.live_view
        error = view.last_error
        return {
            "status": "ok" if view.healthy else "degraded",
            "store": settings.store_backend.value,
            "cases": len(view.cases),
            "feedError": str(error) if error else None,
        }

    @app.on_event("startup")
    def _startup() -> None:
        """
        Local-dev helper: creates the documents table (without migrations) when
        the SQL store points at sqlite, then starts following the case feed.
        """
        db_url = settings.database_url or ""
        if (
            owns_store
            and settings.store_backend == StoreBackend.SQL
            and settings.environment == "development"
            and db_url.startswith("sqlite")
        ):
            import caseledger.models.case_document  # noqa: F401
            from caseledger.db.session import Base, engine

            Base.metadata.create_all(bind=engine)

        app.state.live_view.start()

    @app.on_event("shutdown")
    def _shutdown() -> None:
        app.state.live_view.stop()

    app.include_router(api_router)
    return app


app = create_app()
