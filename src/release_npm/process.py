"""Async subprocess abstraction.

Every external tool call (``git``, ``npm``, lifecycle hook commands)
goes through :func:`run_command`, which:

- logs each invocation,
- supports dry-run (the command is logged, not executed, and a synthetic
  success result is returned),
- optionally raises :class:`~release_npm.exceptions.CommandError` on a
  non-zero exit status.
"""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from release_npm.exceptions import CommandError
from release_npm.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger("release_npm.process")

DEFAULT_TIMEOUT_SECONDS = 300


@dataclass(frozen=True)
class CommandResult:
    """Result of a subprocess invocation.

    Attributes:
        command: The command that was executed.
        return_code: Process exit code (0 = success).
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Wall-clock duration in milliseconds.
        dry_run: Whether the command was only logged.
    """

    command: list[str]
    return_code: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        """Whether the command succeeded."""
        return self.return_code == 0


async def run_command(
    cmd: list[str],
    *,
    cwd: Path | str | None = None,
    env: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    dry_run: bool = False,
    check: bool = False,
) -> CommandResult:
    """Execute a command without a shell.

    Args:
        cmd: Command and arguments.
        cwd: Working directory.
        env: Extra environment variables merged over ``os.environ``.
        timeout: Seconds to wait before killing the process.
        dry_run: Log the command but don't execute it.
        check: Raise :class:`CommandError` on a non-zero exit status.

    Returns:
        A :class:`CommandResult`.

    Raises:
        CommandError: If ``check`` is set and the command fails, or the
            executable cannot be found, or the timeout expires.
    """
    cmd_str = " ".join(cmd)
    log.debug("run_command", cmd=cmd_str, cwd=str(cwd or "."), dry_run=dry_run)

    if dry_run:
        log.info("dry_run", cmd=cmd_str)
        return CommandResult(command=cmd, return_code=0, dry_run=True)

    full_env = {**os.environ, **env} if env else None
    start = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=cwd,
            env=full_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise CommandError(f"Command not found: {cmd[0]}", return_code=127) from e

    return await _communicate(proc, cmd, start, timeout=timeout, check=check)


async def run_shell(
    command: str,
    *,
    cwd: Path | str | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    check: bool = False,
) -> CommandResult:
    """Execute a command line through the shell (used for lifecycle hooks)."""
    log.debug("run_shell", cmd=command, cwd=str(cwd or "."))
    start = time.monotonic()
    proc = await asyncio.create_subprocess_shell(
        command,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    return await _communicate(proc, [command], start, timeout=timeout, check=check)


async def _communicate(
    proc: asyncio.subprocess.Process,
    cmd: list[str],
    start: float,
    *,
    timeout: float,
    check: bool,
) -> CommandResult:
    cmd_str = " ".join(cmd)
    try:
        stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise CommandError(f"Command timed out after {timeout}s: {cmd_str}") from e

    duration = (time.monotonic() - start) * 1000
    result = CommandResult(
        command=cmd,
        return_code=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout_b.decode(errors="replace"),
        stderr=stderr_b.decode(errors="replace"),
        duration=duration,
    )

    if not result.ok:
        log.debug("command_failed", cmd=cmd_str, code=result.return_code, stderr=result.stderr[:500])
        if check:
            message = result.stderr.strip() or result.stdout.strip() or f"{cmd_str} failed"
            raise CommandError(message, stderr=result.stderr, return_code=result.return_code)

    return result
