"""
Activity Tracker — Remote backend tests.

Uses httpx.MockTransport so no network is involved.
"""

import asyncio
import json

import httpx
import pytest

from activity_tracker.exceptions import BackendUnavailable, StorageError
from activity_tracker.storage.remote import RemoteBackend

BASE = "https://tracker.test"
DOC = {"activities": [{"title": "Work"}], "lastUpdate": "2024-03-15T10:00:00"}


def _sse(*events: tuple[str, object]) -> bytes:
    chunks = []
    for event, data in events:
        chunks.append(f"event: {event}\ndata: {json.dumps(data)}\n\n")
    return "".join(chunks).encode()


class FakeServer:
    """Records requests and answers like a small document store."""

    def __init__(self, stream: bytes = b""):
        self.documents: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.stream = stream
        self.status: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status is not None:
            return httpx.Response(self.status, json={"error": "nope"})
        path = request.url.path
        if request.headers.get("accept") == "text/event-stream":
            return httpx.Response(200, content=self.stream,
                                  headers={"content-type": "text/event-stream"})
        if request.method == "PUT":
            self.documents[path] = json.loads(request.content)
            return httpx.Response(200, json=self.documents[path])
        if path == "/.json":
            return httpx.Response(200, json={"users": True})
        return httpx.Response(200, json=self.documents.get(path))


def _backend(server, token="secret", **kwargs) -> RemoteBackend:
    return RemoteBackend(BASE, token, transport=httpx.MockTransport(server), **kwargs)


class TestRequests:
    @pytest.mark.asyncio
    async def test_save_then_load(self):
        server = FakeServer()
        async with _backend(server) as backend:
            await backend.save("ana", DOC)
            assert await backend.load("ana") == DOC
        assert server.requests[0].method == "PUT"
        assert server.requests[0].url.path == "/users/ana.json"

    @pytest.mark.asyncio
    async def test_missing_document_is_none(self):
        async with _backend(FakeServer()) as backend:
            assert await backend.load("nobody") is None

    @pytest.mark.asyncio
    async def test_auth_token_sent_as_query(self):
        server = FakeServer()
        async with _backend(server) as backend:
            await backend.load("ana")
        assert server.requests[0].url.params["auth"] == "secret"

    @pytest.mark.asyncio
    async def test_no_token_no_auth_param(self):
        server = FakeServer()
        async with _backend(server, token="") as backend:
            await backend.load("ana")
        assert "auth" not in server.requests[0].url.params

    @pytest.mark.asyncio
    async def test_username_is_quoted(self):
        server = FakeServer()
        async with _backend(server) as backend:
            await backend.load("ana/maria")
        assert server.requests[0].url.raw_path.startswith(b"/users/ana%2Fmaria.json")

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self):
        server = FakeServer()
        server.status = 503
        async with _backend(server) as backend:
            with pytest.raises(BackendUnavailable) as exc:
                await backend.load("ana")
        assert exc.value.status_code == 503

    @pytest.mark.asyncio
    async def test_client_error_is_storage_error(self):
        server = FakeServer()
        server.status = 401
        async with _backend(server) as backend:
            with pytest.raises(StorageError) as exc:
                await backend.save("ana", DOC)
        assert not isinstance(exc.value, BackendUnavailable)
        assert "nope" in str(exc.value)

    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        async with _backend(refuse) as backend:
            with pytest.raises(BackendUnavailable):
                await backend.load("ana")

    @pytest.mark.asyncio
    async def test_health_check(self):
        server = FakeServer()
        async with _backend(server) as backend:
            assert await backend.health_check() is True
        params = server.requests[0].url.params
        assert params["shallow"] == "true"
        assert params["auth"] == "secret"

        server.status = 500
        async with _backend(server) as backend:
            assert await backend.health_check() is False

    def test_base_url_required(self):
        with pytest.raises(ValueError):
            RemoteBackend("")


class TestChangeStream:
    @pytest.mark.asyncio
    async def test_put_at_root_delivers_document(self):
        server = FakeServer(_sse(("keep-alive", None), ("put", {"path": "/", "data": DOC})))
        received = []
        arrived = asyncio.Event()

        def handler(doc):
            received.append(doc)
            arrived.set()

        async with _backend(server, reconnect_delay=60) as backend:
            unsubscribe = backend.subscribe("ana", handler)
            await asyncio.wait_for(arrived.wait(), timeout=2)
            unsubscribe()

        assert received == [DOC]
        stream_request = server.requests[0]
        assert stream_request.headers["accept"] == "text/event-stream"
        assert stream_request.url.params["auth"] == "secret"

    @pytest.mark.asyncio
    async def test_patch_reloads_whole_document(self):
        server = FakeServer(_sse(("patch", {"path": "/activities/0", "data": {"title": "X"}})))
        server.documents["/users/ana.json"] = DOC
        arrived = asyncio.Event()
        received = []

        def handler(doc):
            received.append(doc)
            arrived.set()

        async with _backend(server, reconnect_delay=60) as backend:
            backend.subscribe("ana", handler)
            await asyncio.wait_for(arrived.wait(), timeout=2)

        assert received == [DOC]
        assert [r.method for r in server.requests] == ["GET", "GET"]

    @pytest.mark.asyncio
    async def test_deleted_document_delivers_none(self):
        server = FakeServer(_sse(("put", {"path": "/", "data": None})))
        arrived = asyncio.Event()
        received = []

        def handler(doc):
            received.append(doc)
            arrived.set()

        async with _backend(server, reconnect_delay=60) as backend:
            backend.subscribe("ana", handler)
            await asyncio.wait_for(arrived.wait(), timeout=2)

        assert received == [None]

    @pytest.mark.asyncio
    async def test_malformed_payload_is_skipped(self):
        server = FakeServer(_sse(("put", [1, 2]), ("put", {"path": "/", "data": DOC})))
        arrived = asyncio.Event()
        received = []

        def handler(doc):
            received.append(doc)
            arrived.set()

        async with _backend(server, reconnect_delay=60) as backend:
            backend.subscribe("ana", handler)
            await asyncio.wait_for(arrived.wait(), timeout=2)

        assert received == [DOC]

    @pytest.mark.asyncio
    async def test_failing_handler_keeps_stream_alive(self):
        other = {"activities": [], "lastUpdate": "2024-03-16T10:00:00"}
        server = FakeServer(_sse(
            ("put", {"path": "/", "data": DOC}),
            ("put", {"path": "/", "data": other}),
        ))
        arrived = asyncio.Event()
        received = []

        def handler(doc):
            received.append(doc)
            if len(received) == 1:
                raise RuntimeError("boom")
            arrived.set()

        async with _backend(server, reconnect_delay=60) as backend:
            backend.subscribe("ana", handler)
            await asyncio.wait_for(arrived.wait(), timeout=2)

        assert received == [DOC, other]
        assert len(server.requests) == 1

    @pytest.mark.asyncio
    async def test_reconnects_after_refusal(self):
        calls = []
        arrived = asyncio.Event()

        def flaky(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, content=_sse(("put", {"path": "/", "data": DOC})))

        async with _backend(flaky, reconnect_delay=0) as backend:
            backend.subscribe("ana", lambda doc: arrived.set())
            await asyncio.wait_for(arrived.wait(), timeout=2)

        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_close_cancels_listeners(self):
        server = FakeServer()
        backend = _backend(server, reconnect_delay=60)
        backend.subscribe("ana", lambda doc: None)
        await asyncio.sleep(0)
        await backend.close()
        assert "listeners=0" in repr(backend)
