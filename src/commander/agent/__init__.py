"""opencode agent integration: HTTP/SSE client, sessions, events, prompt."""

from commander.agent._client import OpencodeClient
from commander.agent._events import EventMonitor
from commander.agent._session import AgentSessionClient
from commander.agent.prompt import build_task_prompt

__all__ = [
    "AgentSessionClient",
    "EventMonitor",
    "OpencodeClient",
    "build_task_prompt",
]
