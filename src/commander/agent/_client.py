"""HTTP/SSE client for the opencode server API.

Only the three calls a task needs: create a session, send a prompt (blocks
until the agent's turn completes), and subscribe to the event stream.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import aiohttp


def _decode_event(payload: str) -> dict[str, Any] | None:
    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        return None
    return event if isinstance(event, dict) else None


class OpencodeClient:
    """Async client bound to one opencode server.

    Use as an async context manager; it owns a single
    :class:`aiohttp.ClientSession` for its lifetime.
    """

    def __init__(self, base_url: str, *, connect_timeout: float = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self._connect_timeout = connect_timeout
        self._http: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> OpencodeClient:
        # No total timeout: a prompt legitimately runs for many minutes and
        # the caller bounds it.
        self._http = aiohttp.ClientSession(
            base_url=self.base_url,
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=self._connect_timeout),
        )
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._http is not None:
            await self._http.close()
            self._http = None

    @property
    def http(self) -> aiohttp.ClientSession:
        if self._http is None:
            raise RuntimeError("OpencodeClient used outside of 'async with'")
        return self._http

    async def create_session(self, title: str) -> dict[str, Any]:
        async with self.http.post("/session", json={"title": title}) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def prompt(self, session_id: str, text: str) -> Any:
        body = {"parts": [{"type": "text", "text": text}]}
        async with self.http.post(f"/session/{session_id}/message", json=body) as resp:
            resp.raise_for_status()
            raw = await resp.text()
        return _decode_event(raw) if raw else None

    async def subscribe_events(self) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded ``{type, properties}`` events from ``GET /event``.

        Multi-line ``data:`` fields are joined per the SSE framing rules;
        payloads that are not JSON objects are skipped.
        """
        async with self.http.get(
            "/event",
            headers={"Accept": "text/event-stream"},
            timeout=aiohttp.ClientTimeout(total=None, sock_read=None),
        ) as resp:
            resp.raise_for_status()
            data_lines: list[str] = []
            async for raw in resp.content:
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if not line:
                    if data_lines:
                        event = _decode_event("\n".join(data_lines))
                        data_lines = []
                        if event is not None:
                            yield event
                    continue
                if line.startswith("data:"):
                    value = line[5:]
                    data_lines.append(value[1:] if value.startswith(" ") else value)
