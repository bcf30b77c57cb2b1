"""Container lifecycle: create, logs, publish, destroy.

One :class:`ContainerManager` drives the engine CLI (podman by default) for
the single container a task owns. :meth:`ContainerManager.acquire` is the
only way the task runner obtains a container, so destroy runs on every exit
path.
"""

from __future__ import annotations

import os
import shlex
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from commander.config import ContainerSettings
from commander.errors import CleanupWarning, EnvironmentCreationError, PublishError
from commander.logger import logger
from commander.process import run_command
from commander.types import Container, ContainerSpec, ContainerState

_WORKSPACE = "/workspace"
_LOGS_UNAVAILABLE = "(logs unavailable)"


class ContainerManager:
    """Drive the container engine CLI for task containers."""

    def __init__(self, settings: ContainerSettings) -> None:
        self._settings = settings

    @property
    def cli(self) -> str:
        return self._settings.cli

    # ------------------------------------------------------------------
    # Command construction
    # ------------------------------------------------------------------

    def build_bootstrap_script(self, repo: str, branch: str) -> str:
        """Shell script run as the container's main process.

        Clones the repo, creates the agent branch, then execs the opencode
        server in the repo's nix dev shell.
        """
        port = self._settings.internal_port
        return "\n".join(
            [
                "set -euo pipefail",
                "",
                f'echo "Cloning {repo}..."',
                f"git clone {shlex.quote(f'https://github.com/{repo}.git')} {_WORKSPACE}",
                f"cd {_WORKSPACE}",
                "",
                f'echo "Creating branch {branch}..."',
                f"git checkout -b {shlex.quote(branch)}",
                "",
                'echo "Starting opencode server..."',
                f"nix develop --command opencode serve --port {port} --hostname 0.0.0.0",
            ]
        )

    def build_create_command(self, spec: ContainerSpec) -> list[str]:
        s = self._settings
        env_args: list[str] = []
        # Pass through by name only so values never appear in argv
        for name in s.passthrough_env:
            if os.environ.get(name):
                env_args += ["--env", name]

        return [
            *s.secrets_command,
            s.cli,
            "run",
            "--detach",
            "--name",
            spec.name,
            "--publish",
            f"{spec.host_port}:{s.internal_port}",
            "--cpus",
            spec.cpu_limit,
            "--memory",
            spec.memory_limit,
            *env_args,
            s.image,
            "bash",
            "-c",
            self.build_bootstrap_script(spec.repo, spec.branch),
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create(self, spec: ContainerSpec) -> Container:
        """Start a detached container for *spec*.

        Raises :class:`EnvironmentCreationError` if the engine exits non-zero
        or cannot be spawned at all.
        """
        logger.info(
            "Creating container",
            repo=spec.repo,
            branch=spec.branch,
            name=spec.name,
            host_port=spec.host_port,
        )
        try:
            result = await run_command(
                *self.build_create_command(spec),
                timeout=self._settings.command_timeout_seconds,
            )
        except TimeoutError as exc:
            # The engine may still finish creating it after we gave up
            await self._remove_by_name(spec.name)
            raise EnvironmentCreationError(-1, "engine timed out") from exc
        except OSError as exc:
            raise EnvironmentCreationError(-1, str(exc) or type(exc).__name__) from exc

        if result.returncode != 0:
            raise EnvironmentCreationError(result.returncode, result.stderr)

        container_id = result.stdout.splitlines()[-1][:12] if result.stdout else ""
        if not container_id:
            raise EnvironmentCreationError(result.returncode, "engine returned no container id")

        container = Container(
            id=container_id,
            name=spec.name,
            host_port=spec.host_port,
            repo=spec.repo,
            branch=spec.branch,
            cpu_limit=spec.cpu_limit,
            memory_limit=spec.memory_limit,
        )
        logger.info("Container created", id=container.id, host_port=container.host_port)
        return container

    async def _remove_by_name(self, name: str) -> None:
        logger.warning("Removing possibly half-created container", name=name)
        try:
            result = await run_command(
                self.cli, "rm", "--force", name, timeout=self._settings.command_timeout_seconds
            )
        except Exception as exc:
            logger.warning("Failed to remove container", name=name, error=str(exc))
            return
        if result.returncode != 0:
            logger.warning("Failed to remove container", name=name, error=result.stderr)

    async def destroy(self, container: Container) -> list[CleanupWarning]:
        """Stop with a grace period, then force-remove. Never raises.

        Returns the cleanup warnings that were logged. A second call on the
        same handle is a no-op that yields one warning.
        """
        if container.state is ContainerState.DESTROYED:
            warning = CleanupWarning(f"Container {container.id} already destroyed")
            logger.warning("Container already destroyed", id=container.id)
            return [warning]

        logger.info("Destroying container", id=container.id)
        container.state = ContainerState.TERMINATING
        warnings: list[CleanupWarning] = []

        steps = [
            ("stop", ["stop", "--time", str(self._settings.stop_grace_seconds), container.id]),
            ("remove", ["rm", "--force", container.id]),
        ]
        for action, args in steps:
            try:
                result = await run_command(
                    self.cli, *args, timeout=self._settings.command_timeout_seconds
                )
                error = result.stderr if result.returncode != 0 else None
            except Exception as exc:
                error = str(exc) or type(exc).__name__
            if error is not None:
                logger.warning(f"Failed to {action} container", id=container.id, error=error)
                warnings.append(CleanupWarning(f"Failed to {action} container: {error}"))

        container.state = ContainerState.DESTROYED
        logger.info("Container destroyed", id=container.id)
        return warnings

    @asynccontextmanager
    async def acquire(self, spec: ContainerSpec) -> AsyncIterator[Container]:
        """Create a container and destroy it when the block exits, however it exits."""
        container = await self.create(spec)
        try:
            yield container
        finally:
            await self.destroy(container)

    # ------------------------------------------------------------------
    # In-container operations
    # ------------------------------------------------------------------

    async def get_logs(self, container: Container, tail: int | None = None) -> str:
        """Tail of the container's output, or a placeholder if unavailable."""
        lines = tail if tail is not None else self._settings.log_tail_lines
        try:
            result = await run_command(
                self.cli,
                "logs",
                "--tail",
                str(lines),
                container.id,
                timeout=self._settings.command_timeout_seconds,
            )
        except Exception as exc:
            logger.debug("Container logs unavailable", id=container.id, error=str(exc))
            return _LOGS_UNAVAILABLE
        # Engines write the container's stderr to our stderr
        return result.stdout or result.stderr or _LOGS_UNAVAILABLE

    async def publish_branch(self, container: Container) -> None:
        """Push the agent branch to origin from the container's clone."""
        logger.info("Pushing branch", id=container.id, branch=container.branch)
        script = f"cd {_WORKSPACE} && git push origin {shlex.quote(container.branch)}"
        try:
            result = await run_command(
                self.cli,
                "exec",
                container.id,
                "bash",
                "-c",
                script,
                timeout=self._settings.command_timeout_seconds,
            )
        except (OSError, TimeoutError) as exc:
            raise PublishError(container.branch, str(exc) or type(exc).__name__) from exc

        if result.returncode != 0:
            raise PublishError(container.branch, result.stderr)
        logger.info("Branch pushed", branch=container.branch)
