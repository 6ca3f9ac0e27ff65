"""
Activity Tracker — Remote document store backend.

Talks to a REST document database laid out Firebase-style:

    GET  {base}/users/{username}.json      → document or null
    PUT  {base}/users/{username}.json      ← full document

Changes are pushed over a ``text/event-stream`` on the same URL. Each
subscription runs one listener task that reconnects after a delay until it
is unsubscribed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from activity_tracker.exceptions import BackendUnavailable, StorageError
from activity_tracker.storage import ChangeHandler, Unsubscribe

logger = logging.getLogger("activity_tracker.storage.remote")

DEFAULT_TIMEOUT = 15.0
RECONNECT_DELAY = 5.0
DEFAULT_USER = "default"


class RemoteBackend:
    """Async HTTP backend for a per-user JSON document store.

    Usage::

        async with RemoteBackend("https://tracker.example-db.com") as backend:
            doc = await backend.load("ana")
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        reconnect_delay: float = RECONNECT_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._reconnect_delay = reconnect_delay
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        self._listeners: set[asyncio.Task] = set()

    async def __aenter__(self) -> RemoteBackend:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # ─── Internal ────────────────────────────────────────────────────

    @staticmethod
    def document_path(username: str | None) -> str:
        return f"/users/{quote(username or DEFAULT_USER, safe='')}.json"

    def _params(self) -> dict[str, str]:
        return {"auth": self._token} if self._token else {}

    async def _request(self, method: str, path: str, *, params: dict | None = None, **kwargs: Any) -> Any:
        query = {**self._params(), **(params or {})}
        try:
            resp = await self._client.request(method, path, params=query, **kwargs)
        except httpx.TimeoutException as e:
            raise BackendUnavailable(408, f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise BackendUnavailable(0, f"HTTP error: {e}") from e

        if resp.status_code >= 500:
            raise BackendUnavailable(resp.status_code, resp.text[:200])
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("error", resp.text)
            except (ValueError, AttributeError):
                detail = resp.text
            raise StorageError(f"Remote store rejected {method} {path}: {resp.status_code} {detail}")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise StorageError(f"Invalid JSON from remote store: {e}") from e

    # ─── Protocol ────────────────────────────────────────────────────

    async def load(self, username: str | None) -> dict | list | None:
        return await self._request("GET", self.document_path(username))

    async def save(self, username: str | None, document: dict) -> None:
        await self._request("PUT", self.document_path(username), json=document)
        logger.debug("Pushed %s (%d activities)", username, len(document.get("activities", [])))

    def subscribe(self, username: str | None, handler: ChangeHandler) -> Unsubscribe:
        """Start a listener task. Must be called from a running event loop."""
        task = asyncio.get_running_loop().create_task(
            self._listen(username, handler), name=f"remote-listener:{username}"
        )
        self._listeners.add(task)
        task.add_done_callback(self._listeners.discard)

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def health_check(self) -> bool:
        try:
            await self._request("GET", "/.json", params={"shallow": "true"})
            return True
        except StorageError:
            return False

    async def close(self) -> None:
        for task in list(self._listeners):
            task.cancel()
        if self._listeners:
            await asyncio.gather(*self._listeners, return_exceptions=True)
        await self._client.aclose()

    # ─── Change stream ───────────────────────────────────────────────

    async def _listen(self, username: str | None, handler: ChangeHandler) -> None:
        path = self.document_path(username)
        while True:
            try:
                await self._stream_once(username, path, handler)
            except asyncio.CancelledError:
                raise
            except (httpx.HTTPError, StorageError) as e:
                logger.warning("Change stream for %s dropped: %s", username, e)
            except Exception:
                logger.exception("Change stream for %s failed", username)
            await asyncio.sleep(self._reconnect_delay)

    async def _stream_once(self, username: str | None, path: str, handler: ChangeHandler) -> None:
        headers = {"Accept": "text/event-stream"}
        async with self._client.stream(
            "GET", path, params=self._params(), headers=headers, timeout=None
        ) as resp:
            if resp.status_code >= 400:
                raise StorageError(f"Change stream refused: {resp.status_code}")
            event, data_lines = None, []
            async for line in resp.aiter_lines():
                if line.startswith("event:"):
                    event = line[6:].strip()
                elif line.startswith("data:"):
                    data_lines.append(line[5:].strip())
                elif not line.strip():
                    if event:
                        await self._dispatch(username, event, "\n".join(data_lines), handler)
                    event, data_lines = None, []
            if event:
                await self._dispatch(username, event, "\n".join(data_lines), handler)

    async def _dispatch(self, username: str | None, event: str, data: str, handler: ChangeHandler) -> None:
        if event == "keep-alive":
            return
        if event in ("cancel", "auth_revoked"):
            raise StorageError(f"Change stream closed by server: {event}")
        if event not in ("put", "patch"):
            logger.debug("Ignoring stream event %r", event)
            return
        try:
            payload = json.loads(data) if data else {}
        except json.JSONDecodeError:
            logger.warning("Malformed stream payload for %s", username)
            return
        if not isinstance(payload, dict):
            logger.warning("Unexpected stream payload for %s: %r", username, payload)
            return
        if event == "put" and payload.get("path") == "/":
            document = payload.get("data")
        else:
            # Partial update: fetch the whole document again
            document = await self.load(username)
        try:
            handler(document)
        except Exception:
            logger.exception("Change handler for %s failed", username)

    def __repr__(self) -> str:
        return f"RemoteBackend(url={self.base_url!r}, listeners={len(self._listeners)})"
