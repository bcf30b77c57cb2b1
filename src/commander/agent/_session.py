"""Agent sessions: create a session, send the task, race it against a timer."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import aiohttp

from commander.agent._client import OpencodeClient
from commander.errors import SessionCreationError
from commander.logger import logger
from commander.types import AgentRunOutcome, Container

ClientFactory = Callable[[str], OpencodeClient]


async def _abandon(task: asyncio.Task) -> None:
    """Cancel a still-pending task and wait for it to unwind.

    Only the abandoned task's own cancellation is absorbed; a cancellation
    aimed at the caller propagates.
    """
    if task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        current = asyncio.current_task()
        if current is not None and current.cancelling():
            raise
    except Exception as exc:
        logger.debug("Abandoned prompt failed while unwinding", error=str(exc))


class AgentSessionClient:
    """Runs one agent turn per task against a container's opencode server."""

    def __init__(self, client_factory: ClientFactory = OpencodeClient) -> None:
        self._client_factory = client_factory

    async def create_session(self, container: Container, title: str) -> str:
        async with self._client_factory(container.base_url) as client:
            return await self._create_session(client, title)

    async def _create_session(self, client: OpencodeClient, title: str) -> str:
        logger.info("Creating session", base_url=client.base_url, title=title)
        try:
            data = await client.create_session(title)
        except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
            raise SessionCreationError(f"Failed to create session: {exc}") from exc

        session_id = data.get("id") if isinstance(data, dict) else None
        if not session_id:
            raise SessionCreationError("Failed to create session: no data returned")
        logger.info("Session created", session_id=session_id)
        return str(session_id)

    async def run(self, container: Container, prompt: str, timeout: float) -> AgentRunOutcome:
        """Send *prompt* in a fresh session and wait at most *timeout* seconds.

        A timeout abandons the local wait only; the agent keeps running in
        the container until the caller destroys it. A prompt that has
        finished by the time the wait returns counts as finished, even at
        the deadline. Raises :class:`SessionCreationError`; every other
        failure is reported in the outcome.
        """
        async with self._client_factory(container.base_url) as client:
            session_id = await self._create_session(client, f"Task: {container.branch}")
            logger.info("Sending task prompt", session_id=session_id, prompt_length=len(prompt))

            prompt_task = asyncio.create_task(
                client.prompt(session_id, prompt), name=f"agent-prompt-{session_id}"
            )
            try:
                done, _ = await asyncio.wait({prompt_task}, timeout=timeout)
            finally:
                await _abandon(prompt_task)

            if prompt_task not in done:
                minutes = timeout / 60
                logger.error("Agent timed out", session_id=session_id, timeout=timeout)
                return AgentRunOutcome(
                    success=False,
                    session_id=session_id,
                    summary="Agent timed out",
                    error=f"Task did not complete within {minutes:g} minutes",
                    timed_out=True,
                )

            exc = prompt_task.exception()
            if exc is not None:
                error_msg = str(exc) or type(exc).__name__
                logger.error("Agent failed", session_id=session_id, error=error_msg)
                return AgentRunOutcome(
                    success=False,
                    session_id=session_id,
                    summary="Agent failed",
                    error=error_msg,
                )

            logger.info("Agent completed", session_id=session_id)
            return AgentRunOutcome(
                success=True,
                session_id=session_id,
                summary="Task completed successfully",
            )
