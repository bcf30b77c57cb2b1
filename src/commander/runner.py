"""Task runner: one issue, one container, one agent session.

Flow inside :meth:`TaskRunner.execute`::

    allocate port → acquire container ─┐
        wait healthy                   │
        start event monitor            │  destroy on every exit path
        agent run (timeout)            │
        stop event monitor             │
        publish branch (on success)    │
    ←──────────────────────────────────┘

Classified failures become a :class:`TaskOutcome`; anything else propagates
after the container is destroyed.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from commander.agent import AgentSessionClient, EventMonitor, build_task_prompt
from commander.config import Settings
from commander.container import ContainerManager, find_available_port, wait_healthy
from commander.errors import (
    AgentFailure,
    AgentTimeoutError,
    CommanderError,
    EnvironmentCreationError,
    HealthTimeoutError,
    PublishError,
    SessionCreationError,
)
from commander.logger import logger
from commander.types import (
    AgentRunOutcome,
    Container,
    ContainerSpec,
    Issue,
    RunOptions,
    TaskOutcome,
    TaskReference,
)

OnStarted = Callable[[Container], Awaitable[None]]


class TaskRunner:
    def __init__(
        self,
        settings: Settings,
        *,
        manager: ContainerManager | None = None,
        sessions: AgentSessionClient | None = None,
    ) -> None:
        self._settings = settings
        self._manager = manager or ContainerManager(settings.container)
        self._sessions = sessions or AgentSessionClient()

    def build_spec(self, ref: TaskReference, options: RunOptions, host_port: int) -> ContainerSpec:
        c = self._settings.container
        return ContainerSpec(
            repo=ref.full_repo,
            branch=ref.branch_name,
            name=ref.environment_label,
            host_port=host_port,
            cpu_limit=options.cpu_limit or c.cpu_limit,
            memory_limit=options.memory_limit or c.memory_limit,
        )

    async def execute(
        self,
        ref: TaskReference,
        issue: Issue,
        options: RunOptions,
        on_started: OnStarted | None = None,
    ) -> TaskOutcome:
        """Run *issue* to completion in a fresh container.

        *on_started* is called once the container exists (e.g. to post a
        status comment); its failures are logged and ignored.
        """
        spec = self.build_spec(ref, options, find_available_port())
        logger.info("Starting task", repo=ref.full_repo, issue=ref.issue, branch=spec.branch)

        try:
            async with self._manager.acquire(spec) as container:
                if on_started is not None:
                    try:
                        await on_started(container)
                    except Exception as exc:
                        logger.warning("on_started hook failed", error=str(exc))
                return await self._run(container, ref, issue, options)
        except EnvironmentCreationError as exc:
            logger.error("Container creation failed", error=str(exc))
            return TaskOutcome(
                success=False,
                branch=spec.branch,
                error=str(exc),
                error_kind=EnvironmentCreationError,
            )

    async def _run(
        self,
        container: Container,
        ref: TaskReference,
        issue: Issue,
        options: RunOptions,
    ) -> TaskOutcome:
        h = self._settings.health
        try:
            await wait_healthy(
                container,
                timeout=h.timeout_seconds,
                poll_interval=h.poll_interval_seconds,
                request_timeout=h.request_timeout_seconds,
            )
        except HealthTimeoutError as exc:
            return await self._failure(container, exc)

        timeout_minutes = options.timeout_minutes
        if timeout_minutes is None:
            timeout_minutes = self._settings.agent.timeout_minutes
        prompt = build_task_prompt(ref, issue)

        monitor = EventMonitor(max_pending=self._settings.agent.event_queue_size)
        monitor.start(container)
        try:
            agent = await self._sessions.run(container, prompt, timeout=timeout_minutes * 60)
        except SessionCreationError as exc:
            return await self._failure(container, exc)
        finally:
            await monitor.stop()

        if not agent.success:
            kind = AgentTimeoutError if agent.timed_out else AgentFailure
            return await self._failure(container, kind(agent.error or agent.summary), agent)

        try:
            await self._manager.publish_branch(container)
        except PublishError as exc:
            return await self._failure(container, exc, agent)

        logger.info("Task completed", branch=container.branch, session_id=agent.session_id)
        return TaskOutcome(
            success=True,
            branch=container.branch,
            container_id=container.id,
            agent=agent,
        )

    async def _failure(
        self,
        container: Container,
        exc: CommanderError,
        agent: AgentRunOutcome | None = None,
    ) -> TaskOutcome:
        logger.error("Task failed", kind=type(exc).__name__, error=str(exc), id=container.id)
        logs = await self._manager.get_logs(container)
        return TaskOutcome(
            success=False,
            branch=container.branch,
            container_id=container.id,
            agent=agent,
            error=str(exc),
            error_kind=type(exc),
            logs=logs,
        )
