"""Data models for commander."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from commander.errors import CommanderError, InvalidReferenceError

_REF_RE = re.compile(r"(?P<owner>[A-Za-z0-9][A-Za-z0-9-]*)/(?P<repo>[A-Za-z0-9._-]+)#(?P<issue>\d+)")
_LABEL_UNSAFE_RE = re.compile(r"[^a-z0-9_.-]+")


@dataclass(frozen=True)
class TaskReference:
    """An issue on a GitHub repository, e.g. ``acme/widgets#42``."""

    owner: str
    repo: str
    issue: int

    @classmethod
    def parse(cls, ref: str) -> TaskReference:
        match = _REF_RE.fullmatch(ref)
        if match is None:
            raise InvalidReferenceError(ref)
        issue = int(match["issue"])
        if issue <= 0:
            raise InvalidReferenceError(ref)
        return cls(owner=match["owner"], repo=match["repo"], issue=issue)

    @property
    def full_repo(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def branch_name(self) -> str:
        return f"agent/issue-{self.issue}"

    @property
    def environment_label(self) -> str:
        """Container name for this task. Valid for podman and docker."""
        raw = f"commander-{self.owner}-{self.repo}-issue-{self.issue}".lower()
        return _LABEL_UNSAFE_RE.sub("-", raw)

    def __str__(self) -> str:
        return f"{self.full_repo}#{self.issue}"


@dataclass(frozen=True)
class Issue:
    number: int
    title: str
    body: str
    labels: list[str] = field(default_factory=list)
    url: str = ""


@dataclass(frozen=True)
class ContainerSpec:
    """Everything needed to create one task container."""

    repo: str  # "owner/repo"
    branch: str
    name: str
    host_port: int  # pre-allocated by the caller
    cpu_limit: str = "2.0"
    memory_limit: str = "4g"


class ContainerState(Enum):
    CREATED = "created"
    TERMINATING = "terminating"
    DESTROYED = "destroyed"


@dataclass
class Container:
    """Handle to one ephemeral task container.

    Only :class:`~commander.container.ContainerManager` changes ``state``.
    """

    id: str
    name: str
    host_port: int
    repo: str
    branch: str
    cpu_limit: str
    memory_limit: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    state: ContainerState = ContainerState.CREATED

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.host_port}"


@dataclass(frozen=True)
class AgentRunOutcome:
    success: bool
    session_id: str
    summary: str
    error: str | None = None
    timed_out: bool = False


@dataclass(frozen=True)
class TaskOutcome:
    """Terminal record of one :meth:`TaskRunner.execute` call."""

    success: bool
    branch: str
    container_id: str | None = None
    agent: AgentRunOutcome | None = None
    error: str | None = None
    error_kind: type[CommanderError] | None = None
    logs: str | None = None  # container log tail, failures only


@dataclass
class RunOptions:
    task_ref: str
    timeout_minutes: float | None = None  # None → configured default
    quiet: bool = False
    cpu_limit: str | None = None  # None → configured default
    memory_limit: str | None = None


@dataclass
class RunResult:
    success: bool
    pr_url: str | None = None
    error: str | None = None
