from __future__ import annotations

import json
import logging
import threading
from typing import Any

import httpx
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from caseledger.core.errors import PersistenceFailure
from caseledger.services.store import ErrorCallback, Snapshot, SnapshotCallback, Unsubscribe

logger = logging.getLogger(__name__)

# Server-sent events that mean the listener is dead and will not recover by itself.
_FATAL_EVENTS = frozenset({"cancel", "auth_revoked"})
_CHANGE_EVENTS = frozenset({"put", "patch"})


class RealtimeDbStore:
    """
    Case documents in a Firebase Realtime Database, over its REST API.

    Reads are retried with backoff. Writes (POST/PATCH) are sent once: a failed
    financial write is reported to the caller, never replayed.
    """

    def __init__(
        self,
        base_url: str,
        *,
        collection: str = "cases",
        auth_token: str | None = None,
        timeout: float = 15.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._collection = collection
        self._auth_token = auth_token
        self._client = client or httpx.Client(timeout=timeout)

    def _url(self, doc_id: str | None = None) -> str:
        path = self._collection if doc_id is None else f"{self._collection}/{doc_id}"
        return f"{self._base_url}/{path}.json"

    def _params(self) -> dict[str, str]:
        return {"auth": self._auth_token} if self._auth_token else {}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
    )
    def _fetch_json(self, url: str) -> Any:
        r = self._client.get(url, params=self._params())
        if r.status_code != 200:
            raise PersistenceFailure(f"RTDB read failed: {r.status_code} {r.text[:200]}")
        return _decode(r)

    def _read(self, url: str) -> Any:
        try:
            return self._fetch_json(url)
        except RetryError as e:
            raise PersistenceFailure(f"RTDB read failed (network/timeout): {e.last_attempt.exception()}") from e

    def snapshot(self) -> Snapshot:
        data = self._read(self._url())
        if not data:
            return {}
        if not isinstance(data, dict):
            raise PersistenceFailure(f"RTDB {self._collection} is not a collection of documents")
        return data

    def get(self, doc_id: str) -> dict[str, Any] | None:
        data = self._read(self._url(doc_id))
        return data if isinstance(data, dict) else None

    def _write(self, method: str, url: str, data: dict[str, Any]) -> httpx.Response:
        try:
            r = self._client.request(method, url, params=self._params(), json=data)
        except httpx.HTTPError as e:
            raise PersistenceFailure(f"RTDB {method} {url} failed: {e}") from e
        if r.status_code != 200:
            raise PersistenceFailure(f"RTDB {method} failed: {r.status_code} {r.text[:200]}")
        return r

    def push(self, data: dict[str, Any]) -> str:
        r = self._write("POST", self._url(), data)
        body = _decode(r)
        name = body.get("name") if isinstance(body, dict) else None
        if not name:
            raise PersistenceFailure("RTDB push returned no document id")
        return str(name)

    def update(self, doc_id: str, fields: dict[str, Any]) -> None:
        self._write("PATCH", self._url(doc_id), fields)

    def subscribe(self, callback: SnapshotCallback, on_error: ErrorCallback | None = None) -> Unsubscribe:
        stop = threading.Event()
        t = threading.Thread(
            target=self._listen,
            args=(callback, on_error, stop),
            name=f"rtdb-feed-{self._collection}",
            daemon=True,
        )
        t.start()
        return stop.set

    def _listen(self, callback: SnapshotCallback, on_error: ErrorCallback | None, stop: threading.Event) -> None:
        """
        Follow the collection's event stream. Firebase opens with a "put" of the
        whole tree; every later put/patch is answered by re-reading the full
        collection so subscribers always see a complete snapshot.
        """
        try:
            with self._client.stream(
                "GET",
                self._url(),
                params=self._params(),
                headers={"Accept": "text/event-stream"},
                timeout=httpx.Timeout(None, connect=10.0),
            ) as r:
                if r.status_code != 200:
                    raise PersistenceFailure(f"RTDB stream failed: {r.status_code}")
                event: str | None = None
                for line in r.iter_lines():
                    if stop.is_set():
                        return
                    if line.startswith("event:"):
                        event = line[len("event:") :].strip()
                        if event in _FATAL_EVENTS:
                            raise PersistenceFailure(f"RTDB stream closed by server: {event}")
                    elif line.startswith("data:") and event in _CHANGE_EVENTS:
                        payload = line[len("data:") :].strip()
                        logger.debug("rtdb_feed: event=%s path=%s", event, _event_path(payload))
                        callback(self.snapshot())
                if not stop.is_set():
                    raise PersistenceFailure("RTDB stream closed by server")
        except httpx.HTTPError as e:
            self._report(on_error, PersistenceFailure(f"RTDB stream dropped: {e}"))
        except PersistenceFailure as e:
            self._report(on_error, e)
        except Exception as e:
            # Subscriber errors end the listener thread; surface them as a dead feed.
            logger.exception("rtdb_feed: subscriber failed collection=%s", self._collection)
            self._report(on_error, PersistenceFailure(f"RTDB feed subscriber failed: {e}"))

    def _report(self, on_error: ErrorCallback | None, error: PersistenceFailure) -> None:
        logger.error("rtdb_feed: collection=%s error=%s", self._collection, error)
        if on_error is not None:
            on_error(error)

    def close(self) -> None:
        self._client.close()


def _decode(r: httpx.Response) -> Any:
    try:
        return r.json()
    except ValueError as e:
        raise PersistenceFailure(f"RTDB returned a body that is not JSON: {r.text[:200]!r}") from e


def _event_path(payload: str) -> str | None:
    try:
        data = json.loads(payload)
    except ValueError:
        return None
    return data.get("path") if isinstance(data, dict) else None
