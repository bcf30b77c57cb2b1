"""Shared test fixtures for commander."""

from __future__ import annotations

import asyncio
import json
import subprocess
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from commander.types import Container, Issue, TaskReference

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures, importable by test files)
# ---------------------------------------------------------------------------


def make_settings(**overrides):
    """Create a Settings object from pure defaults, no config.toml, no .env.

    Usage::

        s = make_settings()
        s = make_settings(health=HealthSettings(timeout_seconds=1))
    """
    from commander.config import (
        AgentSettings,
        ContainerSettings,
        GitHubSettings,
        HealthSettings,
        LoggingSettings,
        Settings,
    )

    defaults = {
        "container": ContainerSettings(secrets_command=[], passthrough_env=[]),
        "health": HealthSettings(),
        "agent": AgentSettings(),
        "github": GitHubSettings(),
        "logging": LoggingSettings(),
    }
    defaults.update(overrides)
    return Settings.model_construct(**defaults)


def make_container(host_port: int = 41234, **overrides) -> Container:
    fields: dict[str, Any] = {
        "id": "abcdef123456",
        "name": "commander-acme-widgets-issue-42",
        "host_port": host_port,
        "repo": "acme/widgets",
        "branch": "agent/issue-42",
        "cpu_limit": "2.0",
        "memory_limit": "4g",
    }
    fields.update(overrides)
    return Container(**fields)


REF = TaskReference(owner="acme", repo="widgets", issue=42)
ISSUE = Issue(
    number=42,
    title="Add a frobnicator",
    body="The widgets need frobnicating.",
    labels=["enhancement"],
    url="https://github.com/acme/widgets/issues/42",
)


class FakeEngine:
    """Stands in for ``run_command`` when it drives the container engine CLI.

    Records every call and answers by engine subcommand (``run``, ``stop``,
    ``rm``, ``logs``, ``exec``). Set ``results[sub]`` to a CompletedProcess
    or an exception to change the answer.
    """

    CONTAINER_ID = "0123456789abcdef0123"

    def __init__(self, cli: str = "podman") -> None:
        self.cli = cli
        self.calls: list[list[str]] = []
        self.results: dict[str, subprocess.CompletedProcess[str] | BaseException] = {}

    def subcommand(self, cmd: list[str]) -> str:
        return cmd[cmd.index(self.cli) + 1]

    def calls_for(self, sub: str) -> list[list[str]]:
        return [c for c in self.calls if self.subcommand(c) == sub]

    async def __call__(self, *cmd: str, env=None, timeout=None) -> subprocess.CompletedProcess[str]:
        args = list(cmd)
        self.calls.append(args)
        sub = self.subcommand(args)
        result = self.results.get(sub)
        if isinstance(result, BaseException):
            raise result
        if result is not None:
            return result
        stdout = self.CONTAINER_ID if sub == "run" else ""
        if sub == "logs":
            stdout = "line 1\nline 2"
        return subprocess.CompletedProcess(args, 0, stdout, "")


def completed(returncode: int = 0, stdout: str = "", stderr: str = ""):
    return subprocess.CompletedProcess([], returncode, stdout, stderr)


class FakeOpencode:
    """A tiny in-process opencode server for protocol tests."""

    def __init__(self) -> None:
        self.healthy_after: int | None = 0  # polls before healthy; None = never
        self.health_status = 200
        self.health_body: str | None = None  # raw body override
        self.health_delay = 0.0
        self.health_polls: list[float] = []

        self.session_status = 200
        self.session_body: dict[str, Any] = {"id": "ses_123"}
        self.sessions: list[dict[str, Any]] = []

        self.prompt_status = 200
        self.prompt_delay = 0.0
        self.prompts: list[dict[str, Any]] = []

        self.event_status = 200
        self.events: list[dict[str, Any] | str] = []
        self.stream_seconds = 2.0

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/global/health", self._health)
        app.router.add_post("/session", self._session)
        app.router.add_post("/session/{id}/message", self._prompt)
        app.router.add_get("/event", self._events)
        return app

    async def _health(self, request: web.Request) -> web.Response:
        self.health_polls.append(asyncio.get_running_loop().time())
        if self.health_delay:
            await asyncio.sleep(self.health_delay)
        if self.health_body is not None:
            return web.Response(status=self.health_status, text=self.health_body)
        ready = self.healthy_after is not None and len(self.health_polls) > self.healthy_after
        return web.json_response({"healthy": ready}, status=self.health_status)

    async def _session(self, request: web.Request) -> web.Response:
        self.sessions.append(await request.json())
        return web.json_response(self.session_body, status=self.session_status)

    async def _prompt(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.prompts.append({"id": request.match_info["id"], **body})
        if self.prompt_delay:
            await asyncio.sleep(self.prompt_delay)
        if self.prompt_status != 200:
            return web.Response(status=self.prompt_status, text="agent exploded")
        return web.json_response({"info": {"id": "msg_1"}, "parts": []})

    async def _events(self, request: web.Request) -> web.StreamResponse:
        if self.event_status != 200:
            return web.Response(status=self.event_status)
        response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
        await response.prepare(request)
        loop = asyncio.get_running_loop()
        try:
            for event in self.events:
                payload = event if isinstance(event, str) else json.dumps(event)
                await response.write(f"data: {payload}\n\n".encode())
            # Keep the stream open (with keepalives) until the client goes away
            end = loop.time() + self.stream_seconds
            while loop.time() < end:
                await response.write(b": ping\n\n")
                await asyncio.sleep(0.02)
        except (ConnectionResetError, asyncio.CancelledError):
            pass
        return response


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Ensure each test starts with a clean Settings singleton built from defaults."""
    monkeypatch.setattr("commander.config._settings", make_settings())


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_opencode():
    return FakeOpencode()


@pytest.fixture
async def opencode_server(fake_opencode):
    """Serve ``fake_opencode`` on 127.0.0.1 and yield a Container pointing at it."""
    server = TestServer(fake_opencode.app(), host="127.0.0.1")
    await server.start_server()
    yield make_container(host_port=server.port)
    await server.close()


@pytest.fixture
def engine():
    return FakeEngine()
