import threading

import httpx
import pytest

from caseledger.core.errors import PersistenceFailure
from caseledger.services.live_view import LiveCaseView
from caseledger.services.rtdb import RealtimeDbStore


class FakeFeed:
    """A store that only feeds: tests drive the callbacks by hand."""

    def __init__(self):
        self.callback = None
        self.on_error = None
        self.unsubscribed = False

    def subscribe(self, callback, on_error=None):
        self.callback, self.on_error = callback, on_error

        def unsubscribe():
            self.unsubscribed = True

        return unsubscribe


def test_follows_sql_store_writes(store, make_doc):
    view = LiveCaseView(store).start()
    assert view.cases == ()
    assert view.healthy

    store.push(make_doc(date="2024-01-01"))
    store.push(make_doc(date="2024-02-01"))
    assert [c.date for c in view.cases] == ["2024-02-01", "2024-01-01"]
    view.stop()

    store.push(make_doc())
    assert len(view.cases) == 2


def test_keeps_last_known_good_on_feed_error(make_doc):
    feed = FakeFeed()
    view = LiveCaseView(feed).start()
    feed.callback({"k1": make_doc()})
    feed.on_error(PersistenceFailure("stream dropped"))

    assert [c.id for c in view.cases] == ["k1"]
    assert not view.healthy
    assert isinstance(view.last_error, PersistenceFailure)
    assert len(view.require_snapshot()) == 1

    feed.callback({})
    assert view.healthy
    assert view.last_error is None


def test_no_snapshot_yet():
    feed = FakeFeed()
    view = LiveCaseView(feed).start()
    with pytest.raises(PersistenceFailure):
        view.require_snapshot()
    feed.on_error(PersistenceFailure("auth_revoked"))
    with pytest.raises(PersistenceFailure, match="auth_revoked"):
        view.require_snapshot()


def test_stop_unsubscribes():
    feed = FakeFeed()
    view = LiveCaseView(feed).start()
    view.stop()
    assert feed.unsubscribed


def test_closed_rtdb_stream_marks_view_unhealthy(make_doc):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("accept") == "text/event-stream":
            return httpx.Response(200, content=b'event: put\ndata: {"path": "/", "data": {}}\n\n')
        return httpx.Response(200, json={"k1": make_doc()})

    rtdb = RealtimeDbStore("https://ledger-test.firebaseio.com", client=httpx.Client(transport=httpx.MockTransport(handler)))
    view = LiveCaseView(rtdb)
    rtdb._listen(view._on_snapshot, view._on_error, threading.Event())

    assert [c.id for c in view.require_snapshot()] == ["k1"]
    assert not view.healthy
    assert "closed" in str(view.last_error)
