"""External command invocation on the event loop.

The container manager and the GitHub collaborator both go through
:func:`run_command`, so tests can replace one function per call site.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import subprocess

from commander.logger import logger


async def run_command(
    *cmd: str,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run *cmd* without blocking the event loop and capture its output.

    The exit code is returned, not interpreted. Raises :class:`TimeoutError`
    (after killing the process) when *timeout* elapses, and :class:`OSError`
    when the executable cannot be spawned.
    """
    logger.debug("exec", cmd=" ".join(cmd))
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env={**os.environ, **env} if env else None,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
        logger.warning("Command timed out", cmd=cmd[0], timeout=timeout)
        raise

    return subprocess.CompletedProcess(
        args=list(cmd),
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace").strip(),
        stderr=stderr.decode(errors="replace").strip(),
    )
