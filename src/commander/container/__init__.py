"""Container lifecycle for task execution.

Split into focused submodules:
  _manager — create / destroy / logs / publish via the engine CLI
  _health  — readiness polling of the in-container opencode server
  _ports   — host port allocation
"""

from commander.container._health import HEALTH_PATH, wait_healthy
from commander.container._manager import ContainerManager
from commander.container._ports import find_available_port

__all__ = [
    "HEALTH_PATH",
    "ContainerManager",
    "find_available_port",
    "wait_healthy",
]
