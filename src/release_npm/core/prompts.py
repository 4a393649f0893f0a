"""Interactive prompt capability.

The orchestrator never talks to the terminal directly; it asks a
:class:`Prompter`. The CLI supplies one backed by typer, CI runs get
:class:`NonInteractivePrompter`, and tests script their answers.

Cancelling a prompt raises :class:`~release_npm.exceptions.ReleaseCancelled`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from release_npm.exceptions import PromptUnavailableError

Validator = Callable[[str], "str | None"]


@dataclass(frozen=True)
class Choice:
    """One option of a selection prompt."""

    label: str
    value: str
    hint: str = ""


class Prompter(Protocol):
    """Asks the user for decisions."""

    def confirm(self, message: str, *, default: bool = True) -> bool: ...

    def select(self, message: str, choices: Sequence[Choice], *, default: str | None = None) -> str: ...

    def text(self, message: str, *, default: str = "", validate: Validator | None = None) -> str: ...


class NonInteractivePrompter:
    """Prompter for CI: every question is an error."""

    def confirm(self, message: str, *, default: bool = True) -> bool:
        raise PromptUnavailableError(f"Cannot prompt in CI mode: {message}")

    def select(self, message: str, choices: Sequence[Choice], *, default: str | None = None) -> str:
        raise PromptUnavailableError(f"Cannot prompt in CI mode: {message}")

    def text(self, message: str, *, default: str = "", validate: Validator | None = None) -> str:
        raise PromptUnavailableError(f"Cannot prompt in CI mode: {message}")
