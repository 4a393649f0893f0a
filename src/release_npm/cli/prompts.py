"""Terminal prompts backed by typer."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click
import typer

from release_npm.exceptions import ReleaseCancelled

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.console import Console

    from release_npm.core.prompts import Choice, Validator

# typer may bundle its own copy of click, so its Abort is not always click's.
ABORT_ERRORS = (click.exceptions.Abort, typer.Abort)


class TyperPrompter:
    """Asks questions on the terminal.

    Ctrl+C or EOF at any prompt cancels the release.
    """

    def __init__(self, console: Console) -> None:
        self.console = console

    def confirm(self, message: str, *, default: bool = True) -> bool:
        try:
            return typer.confirm(message, default=default)
        except ABORT_ERRORS as e:
            raise ReleaseCancelled() from e

    def select(self, message: str, choices: Sequence[Choice], *, default: str | None = None) -> str:
        self.console.print(f"[bold]{message}[/]")
        default_idx = 1
        for i, choice in enumerate(choices, start=1):
            if choice.value == default:
                default_idx = i
            hint = f" [dim]({choice.hint})[/]" if choice.hint else ""
            self.console.print(f"  {i:2}. {choice.label}{hint}")

        while True:
            raw = self._prompt("Select", default=str(default_idx))
            try:
                idx = int(raw)
            except ValueError:
                self.console.print("[red]invalid number[/]")
                continue
            if idx < 1 or idx > len(choices):
                self.console.print("[red]out of range[/]")
                continue
            return choices[idx - 1].value

    def text(self, message: str, *, default: str = "", validate: Validator | None = None) -> str:
        while True:
            value = self._prompt(message, default=default)
            error = validate(value) if validate else None
            if error is None:
                return value
            self.console.print(f"[red]{error}[/]")

    def _prompt(self, message: str, *, default: str) -> str:
        try:
            return typer.prompt(message, default=default or None, show_default=bool(default))
        except ABORT_ERRORS as e:
            raise ReleaseCancelled() from e
