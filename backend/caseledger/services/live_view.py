from __future__ import annotations

import logging
import threading

from caseledger.core.errors import PersistenceFailure
from caseledger.schemas.case import Case
from caseledger.services.cases import ingest_snapshot
from caseledger.services.store import DocumentStore, Snapshot, Unsubscribe

logger = logging.getLogger(__name__)


class LiveCaseView:
    """
    The in-memory case list every read endpoint works from.

    Each snapshot from the store's feed is ingested and swapped in whole.
    When the feed fails the last good list is kept and the error is held
    until the next snapshot arrives.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._cases: tuple[Case, ...] = ()
        self._last_error: PersistenceFailure | None = None
        self._received = False
        self._unsubscribe: Unsubscribe | None = None
        self._lock = threading.Lock()

    def start(self) -> LiveCaseView:
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_snapshot, self._on_error)
        return self

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_snapshot(self, snap: Snapshot) -> None:
        cases = tuple(ingest_snapshot(snap))
        with self._lock:
            self._cases = cases
            self._last_error = None
            self._received = True
        logger.debug("live_view: snapshot cases=%d", len(cases))

    def _on_error(self, error: PersistenceFailure) -> None:
        with self._lock:
            self._last_error = error
        logger.error("live_view: feed error=%s keeping=%d cases", error, len(self._cases))

    @property
    def cases(self) -> tuple[Case, ...]:
        with self._lock:
            return self._cases

    @property
    def last_error(self) -> PersistenceFailure | None:
        with self._lock:
            return self._last_error

    @property
    def healthy(self) -> bool:
        with self._lock:
            return self._received and self._last_error is None

    def require_snapshot(self) -> tuple[Case, ...]:
        """The current cases; raises when the feed has never delivered any."""
        with self._lock:
            if self._received:
                return self._cases
            error = self._last_error
        raise error or PersistenceFailure("Case feed has not delivered a snapshot yet")
