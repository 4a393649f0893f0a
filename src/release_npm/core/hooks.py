"""Lifecycle hooks.

A hook runs before or after one of the release actions::

    before:bump     after:bump
    before:push     after:push
    before:publish  after:publish
    before:release  after:release

Each hook is either a :class:`Shell` list of commands or a
:class:`Callback`. Shell commands support ``{version}``,
``{prev_version}``, ``{name}`` and ``{tag}`` placeholders, run one after
another, and a failing command is reported but never fails the stage.
Exceptions raised by a callback propagate to the caller.

Under dry run nothing is executed, but every hook is still reported.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from release_npm.exceptions import CommandError
from release_npm.logging import get_logger
from release_npm.process import run_shell

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from rich.console import Console

    from release_npm.config.models import HooksConfig

log = get_logger("release_npm.core.hooks")

HOOK_KEYS = (
    "before:bump",
    "after:bump",
    "before:push",
    "after:push",
    "before:publish",
    "after:publish",
    "before:release",
    "after:release",
)


@dataclass(frozen=True)
class Shell:
    """Shell commands run in order."""

    commands: tuple[str, ...] = ()


@dataclass(frozen=True)
class Callback:
    """A callable receiving the template variables; may be async."""

    handler: Callable[[dict[str, str]], Any]


Hook = Shell | Callback


@dataclass(frozen=True)
class HookFailure:
    """A shell hook command that exited non-zero or could not start."""

    command: str
    message: str


def coerce_hook(value: object) -> Hook:
    """Build a hook from a config value.

    Accepts a hook instance, ``None``, a command string, a list of
    command strings, or a callable.
    """
    if isinstance(value, Shell | Callback):
        return value
    if value is None:
        return Shell()
    if isinstance(value, str):
        return Shell((value,) if value.strip() else ())
    if isinstance(value, list | tuple):
        if not all(isinstance(item, str) for item in value):
            raise ValueError("Hook command lists must only contain strings")
        return Shell(tuple(item for item in value if item.strip()))
    if callable(value):
        return Callback(value)
    raise ValueError(f"Unsupported hook value: {value!r}")


def expand_template(command: str, variables: Mapping[str, str]) -> str:
    """Replace ``{name}`` placeholders, leaving unknown ones untouched."""
    result = command
    for key, value in variables.items():
        result = result.replace(f"{{{key}}}", value)
    return result


async def run_hook(
    hooks: HooksConfig,
    key: str,
    *,
    dry_run: bool,
    variables: Mapping[str, str],
    console: Console,
    cwd: Path | None = None,
) -> list[HookFailure]:
    """Run the hook registered under ``key``.

    Args:
        hooks: Hook configuration.
        key: One of :data:`HOOK_KEYS`.
        dry_run: Report the hook without running it.
        variables: Template variables.
        console: Console for progress output.
        cwd: Working directory for shell commands.

    Returns:
        Shell commands that failed. Always empty for callbacks.

    Raises:
        ValueError: If ``key`` is not a known hook.
    """
    if key not in HOOK_KEYS:
        raise ValueError(f"Unknown hook: {key!r}")

    hook = hooks.get(key)
    marker = "[yellow]✔[/]" if dry_run else "[green]✔[/]"

    if isinstance(hook, Callback):
        name = getattr(hook.handler, "__qualname__", repr(hook.handler))
        log.info("hook", hook=key, callback=name, dry_run=dry_run)
        if not dry_run:
            result = hook.handler(dict(variables))
            if inspect.isawaitable(result):
                await result
        console.print(f"  {marker} [dim]run[/] {name}")
        return []

    failures: list[HookFailure] = []
    for raw in hook.commands:
        command = expand_template(raw, variables)
        log.info("hook", hook=key, command=command, dry_run=dry_run)
        if not dry_run:
            failure = await _run_shell_hook(command, cwd)
            if failure is not None:
                failures.append(failure)
                console.print(f"  [red]✗[/] {command}")
                continue
        console.print(f"  {marker} {command}")
    return failures


async def _run_shell_hook(command: str, cwd: Path | None) -> HookFailure | None:
    try:
        result = await run_shell(command, cwd=cwd)
    except CommandError as e:
        log.error("hook_failed", command=command, error=str(e))
        return HookFailure(command, str(e))
    if result.ok:
        return None
    message = result.stderr.strip() or f"exit code {result.return_code}"
    log.error("hook_failed", command=command, return_code=result.return_code, stderr=result.stderr[:500])
    return HookFailure(command, message)
