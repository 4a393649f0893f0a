"""Commit type to changelog section mapping.

The defaults cover the conventional commit types plus a few common
custom ones. Projects can override titles or add types through the
``changelog.types`` config entry; overrides are merged once at startup
into a :class:`CommitTypes` registry owned by the run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

UNCLASSIFIED_SECTION = "Other Changes"


@dataclass(frozen=True)
class CommitType:
    """A commit type token and the changelog section it renders under."""

    type: str
    section: str
    description: str = ""


DEFAULT_COMMIT_TYPES: tuple[CommitType, ...] = (
    CommitType("feat", "✨ Features", "A new feature"),
    CommitType("feature", "✨ Features", "A new feature"),
    CommitType("fix", "🐛 Bug Fixes", "A bug fix"),
    CommitType("perf", "⚡ Performance", "A performance improvement"),
    CommitType("revert", "⏪ Reverts", "Revert to a previous version"),
    CommitType("docs", "📝 Documentation", "Documentation only changes"),
    CommitType("style", "💄 Styles", "Formatting changes"),
    CommitType("chore", "🎫 Chores", "Non-functional changes"),
    CommitType("refactor", "♻ Code Refactoring", "Code restructuring"),
    CommitType("test", "✅ Tests", "Adding or updating tests"),
    CommitType("build", "👷 Build System", "Build tooling changes"),
    CommitType("ci", "🔧 Continuous Integration", "CI configuration changes"),
    CommitType("config", "🔨 Configuration", "Configuration file updates"),
    CommitType("deps", "🔗 Dependencies", "Dependency version changes"),
    CommitType("security", "🔒 Security", "Security fixes"),
    CommitType("i18n", "🌐 Internationalization", "Translation updates"),
    CommitType("ux", "🖥️ User Experience", "User experience improvements"),
    CommitType("hotfix", "🔥 Hotfixes", "Urgent fixes"),
)


class CommitTypes:
    """Ordered commit type registry.

    Args:
        types: Initial entries, :data:`DEFAULT_COMMIT_TYPES` by default.
    """

    def __init__(self, types: Iterable[CommitType] = DEFAULT_COMMIT_TYPES) -> None:
        self._types: list[CommitType] = list(types)

    def __iter__(self) -> Iterator[CommitType]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def merge(self, overrides: Iterable[CommitType]) -> CommitTypes:
        """Apply user overrides.

        An override replaces the entry with the same type in place;
        unknown types are appended. Returns ``self`` for chaining.
        """
        for override in overrides:
            for i, existing in enumerate(self._types):
                if existing.type == override.type:
                    self._types[i] = override
                    break
            else:
                self._types.append(override)
        return self

    def get(self, type_: str) -> CommitType | None:
        for entry in self._types:
            if entry.type == type_:
                return entry
        return None

    def section_for(self, type_: str) -> str:
        """Return the section title for ``type_``, falling back to the token."""
        if not type_:
            return UNCLASSIFIED_SECTION
        entry = self.get(type_)
        return entry.section if entry else type_
