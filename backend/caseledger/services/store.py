"""Document store boundary: the collection of case documents and its change feed."""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections.abc import Callable
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from caseledger.core.config import settings
from caseledger.core.errors import PersistenceFailure
from caseledger.models.case_document import CaseDocument
from caseledger.models.enums import StoreBackend

logger = logging.getLogger(__name__)

Snapshot = dict[str, dict[str, Any]]
SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[PersistenceFailure], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    def snapshot(self) -> Snapshot: ...

    def get(self, doc_id: str) -> dict[str, Any] | None: ...

    def push(self, data: dict[str, Any]) -> str: ...

    def update(self, doc_id: str, fields: dict[str, Any]) -> None: ...

    def subscribe(self, callback: SnapshotCallback, on_error: ErrorCallback | None = None) -> Unsubscribe: ...


class SqlDocumentStore:
    """
    Case documents kept as JSON rows in one table.

    Writes commit before returning; subscribers get the full snapshot right
    away and again after every committed write.
    """

    def __init__(self, session_factory: sessionmaker[Session], *, collection: str = "cases") -> None:
        self._session_factory = session_factory
        self._collection = collection
        self._subscribers: dict[int, tuple[SnapshotCallback, ErrorCallback | None]] = {}
        self._next_token = 0
        self._lock = threading.Lock()

    def snapshot(self) -> Snapshot:
        db = self._session_factory()
        try:
            rows = (
                db.query(CaseDocument)
                .filter(CaseDocument.collection == self._collection)
                .order_by(CaseDocument.created_at.asc(), CaseDocument.id.asc())
                .all()
            )
            return {r.id: copy.deepcopy(r.data) for r in rows}
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Reading {self._collection} failed: {e}") from e
        finally:
            db.close()

    def get(self, doc_id: str) -> dict[str, Any] | None:
        db = self._session_factory()
        try:
            row = self._row(db, doc_id)
            return copy.deepcopy(row.data) if row else None
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Reading {self._collection}/{doc_id} failed: {e}") from e
        finally:
            db.close()

    def push(self, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        db = self._session_factory()
        try:
            db.add(CaseDocument(id=doc_id, collection=self._collection, data=copy.deepcopy(data)))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Creating a document in {self._collection} failed: {e}") from e
        finally:
            db.close()
        self._notify()
        return doc_id

    def update(self, doc_id: str, fields: dict[str, Any]) -> None:
        """Shallow merge of `fields` into the document (missing documents are created)."""
        db = self._session_factory()
        try:
            row = self._row(db, doc_id)
            if row is None:
                db.add(CaseDocument(id=doc_id, collection=self._collection, data=copy.deepcopy(fields)))
            else:
                # Assign a new dict so the JSON column is flagged dirty.
                row.data = {**row.data, **copy.deepcopy(fields)}
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Updating {self._collection}/{doc_id} failed: {e}") from e
        finally:
            db.close()
        self._notify()

    def subscribe(self, callback: SnapshotCallback, on_error: ErrorCallback | None = None) -> Unsubscribe:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = (callback, on_error)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        self._deliver([(callback, on_error)])
        return unsubscribe

    def _row(self, db: Session, doc_id: str) -> CaseDocument | None:
        return (
            db.query(CaseDocument)
            .filter(CaseDocument.collection == self._collection, CaseDocument.id == doc_id)
            .first()
        )

    def _notify(self) -> None:
        with self._lock:
            targets = list(self._subscribers.values())
        if targets:
            self._deliver(targets)

    def _deliver(self, targets: list[tuple[SnapshotCallback, ErrorCallback | None]]) -> None:
        try:
            snap = self.snapshot()
        except PersistenceFailure as e:
            logger.error("store_feed: collection=%s error=%s", self._collection, e)
            for _, on_error in targets:
                if on_error is not None:
                    on_error(e)
            return
        for callback, _ in targets:
            try:
                callback(snap)
            except Exception:
                # The write already committed.
                logger.exception("store_feed: subscriber failed collection=%s", self._collection)


def build_store() -> DocumentStore:
    if settings.store_backend == StoreBackend.RTDB:
        from caseledger.services.rtdb import RealtimeDbStore

        if not settings.rtdb_url:
            raise RuntimeError("STORE_BACKEND=rtdb requires RTDB_URL")
        return RealtimeDbStore(
            settings.rtdb_url,
            collection=settings.cases_collection,
            auth_token=settings.rtdb_auth_token,
            timeout=settings.rtdb_timeout_seconds,
        )

    from caseledger.db.session import SessionLocal

    return SqlDocumentStore(SessionLocal, collection=settings.cases_collection)
