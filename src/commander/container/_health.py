"""Readiness polling for the opencode server inside a task container."""

from __future__ import annotations

import asyncio
import time

import aiohttp

from commander.errors import HealthTimeoutError
from commander.logger import logger
from commander.types import Container

HEALTH_PATH = "/global/health"


async def _probe(session: aiohttp.ClientSession, url: str) -> str | None:
    """One poll. Returns ``None`` when healthy, else why it is not ready."""
    async with session.get(url) as resp:
        if not 200 <= resp.status < 300:
            return f"HTTP {resp.status}"
        data = await resp.json(content_type=None)
    if isinstance(data, dict) and data.get("healthy") is True:
        return None
    return "not ready"


async def wait_healthy(
    container: Container,
    timeout: float = 300,
    poll_interval: float = 3.0,
    request_timeout: float = 2.0,
) -> None:
    """Poll the health endpoint until it reports healthy, or raise on timeout.

    Every failure mode of a single poll (connection refused, hung request,
    non-2xx, malformed body, ``healthy: false``) means "not ready yet". No
    poll starts after the deadline.
    """
    url = f"{container.base_url}{HEALTH_PATH}"
    start = time.monotonic()
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    last_reason = "no response"
    polls = 0

    logger.info("Waiting for opencode server to be healthy", url=url, timeout=timeout)

    async with aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=request_timeout),
    ) as session:
        while loop.time() < deadline:
            polls += 1
            try:
                reason = await _probe(session, url)
            except (aiohttp.ClientError, OSError, TimeoutError, ValueError) as exc:
                reason = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__

            if reason is None:
                elapsed_ms = (time.monotonic() - start) * 1000
                logger.info(
                    "opencode server is healthy",
                    container=container.id,
                    elapsed_ms=round(elapsed_ms),
                    polls=polls,
                )
                return

            if reason != last_reason:
                logger.debug("Health check not ready", container=container.id, reason=reason)
            last_reason = reason

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll_interval, remaining))

    msg = (
        f"Timed out waiting for opencode server in container {container.id} "
        f"after {timeout:g}s (last: {last_reason})"
    )
    raise HealthTimeoutError(msg)
