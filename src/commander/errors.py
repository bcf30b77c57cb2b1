"""Error taxonomy for a task run.

Everything the task runner classifies derives from :class:`CommanderError`.
:class:`CleanupWarning` is a warning category: it is logged and returned,
never raised.
"""

from __future__ import annotations


class CommanderError(Exception):
    """Base class for all classified task failures."""


class InvalidReferenceError(CommanderError):
    """The task reference is not of the form ``owner/repo#N``."""

    def __init__(self, ref: str) -> None:
        self.ref = ref
        super().__init__(f'Invalid task reference: "{ref}". Expected format: owner/repo#issue')


class EnvironmentCreationError(CommanderError):
    """The container engine refused to create the container."""

    def __init__(self, returncode: int, stderr: str) -> None:
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Failed to create container (exit {returncode}): {stderr}")


class HealthTimeoutError(CommanderError):
    """The agent server never reported healthy before the deadline."""


class SessionCreationError(CommanderError):
    """The agent server did not hand back a session id."""


class AgentTimeoutError(CommanderError):
    """The agent turn did not finish within the configured timeout."""


class AgentFailure(CommanderError):
    """The agent call itself failed (network or server error)."""


class PublishError(CommanderError):
    """Pushing the agent branch from inside the container failed."""

    def __init__(self, branch: str, stderr: str) -> None:
        self.branch = branch
        self.stderr = stderr
        super().__init__(stderr)


class GitHubCommandError(CommanderError):
    """A ``gh`` CLI invocation exited non-zero."""

    def __init__(self, command: str, returncode: int, stderr: str) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"gh {command} failed (exit {returncode}): {stderr}")


class CleanupWarning(UserWarning):
    """Secondary teardown friction (container destroy, status comments)."""
