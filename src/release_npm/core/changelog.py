"""Changelog generation from conventional commits.

Commits in a tag range are parsed with :mod:`release_npm.core.commits`,
grouped by type and rendered as one markdown section::

    ## [1.3.0](https://github.com/o/r/compare/v1.2.0...v1.3.0) (2024-05-01)

    ### ✨ Features

    * **feat** add widget [abc1234](https://github.com/o/r/commit/abc1234...)

    **Full Changelog**: https://github.com/o/r/compare/v1.2.0...v1.3.0

Rendering is pure: the same commits, tags and date always produce the
same text. The section is then prepended to ``CHANGELOG.md`` below its
title without touching older entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date as date_type
from typing import TYPE_CHECKING

from release_npm.core.commit_types import CommitTypes
from release_npm.core.commits import parse_log
from release_npm.exceptions import ChangelogError
from release_npm.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from release_npm.core.commits import ParsedCommit
    from release_npm.vcs.git import GitRepository

log = get_logger("release_npm.core.changelog")

CHANGELOG_TITLE = "# Changelog"
BREAKING_SECTION = "⚠ BREAKING CHANGES"


@dataclass(frozen=True)
class ChangelogEntry:
    """One line of a changelog section."""

    description: str
    short_hash: str
    full_hash: str
    scope: str | None = None
    breaking: bool = False
    header: str = ""


@dataclass(frozen=True)
class ChangelogRange:
    """Commit span used for one changelog section.

    Attributes:
        from_ref: Exclusive start (a tag), ``None`` for the repository root.
        to_ref: Inclusive end (``HEAD`` or a tag).
    """

    from_ref: str | None
    to_ref: str

    def __str__(self) -> str:
        return f"{self.from_ref or 'root'}...{self.to_ref}"


def classify(commits: Iterable[ParsedCommit]) -> dict[str, list[ChangelogEntry]]:
    """Group commits by type.

    Types keep their first-seen order and commits keep source order
    within a type. Unclassified commits are grouped under ``""``.
    """
    groups: dict[str, list[ChangelogEntry]] = {}
    for commit in commits:
        entry = ChangelogEntry(
            description=commit.description if commit.is_classified else commit.header.strip(),
            short_hash=commit.short_hash,
            full_hash=commit.full_hash,
            scope=commit.scope,
            breaking=commit.breaking,
            header=commit.header,
        )
        groups.setdefault(commit.type, []).append(entry)
    return groups


def compare_url(repo_url: str, previous: str, current: str) -> str:
    """Return the web URL comparing two refs."""
    return f"{repo_url.rstrip('/')}/compare/{previous}...{current}"


def _commit_link(repo_url: str, short_hash: str, full_hash: str) -> str:
    if not repo_url:
        return f"({short_hash})"
    return f"[{short_hash}]({repo_url.rstrip('/')}/commit/{full_hash})"


def render_changelog(
    commits: Iterable[ParsedCommit],
    *,
    version: str,
    current_tag: str,
    previous_tag: str | None,
    repo_url: str,
    commit_types: CommitTypes,
    date: str,
) -> str:
    """Render one changelog section.

    Args:
        commits: Parsed commits, newest first.
        version: Version shown in the heading.
        current_tag: Tag of this release (compare target).
        previous_tag: Tag of the previous release. Without one the heading
            has no compare link and the footer is omitted.
        repo_url: Repository web URL used for links; may be empty.
        commit_types: Section titles per commit type.
        date: Release date, ``YYYY-MM-DD``.

    Returns:
        Markdown text ending with a newline.
    """
    commits = list(commits)
    link_compare = bool(previous_tag and repo_url)
    compare = compare_url(repo_url, previous_tag or "", current_tag) if link_compare else ""

    if link_compare:
        lines = [f"## [{version}]({compare}) ({date})"]
    else:
        lines = [f"## {version} ({date})"]

    breaking = [c for c in commits if c.is_classified and c.breaking]
    if breaking:
        lines += ["", f"### {BREAKING_SECTION}", ""]
        for commit in breaking:
            scope = f"**{commit.scope}:** " if commit.scope else ""
            text = commit.breaks or commit.description
            lines.append(f"* {scope}{text} {_commit_link(repo_url, commit.short_hash, commit.full_hash)}")

    for type_, entries in classify(commits).items():
        lines += ["", f"### {commit_types.section_for(type_)}", ""]
        for entry in entries:
            link = _commit_link(repo_url, entry.short_hash, entry.full_hash)
            if type_:
                lines.append(f"* **{type_}** {entry.description} {link}")
            else:
                lines.append(f"* {entry.description} {link}")

    if link_compare:
        lines += ["", f"**Full Changelog**: {compare}"]

    return "\n".join(lines) + "\n"


def update_changelog_file(path: Path, section: str) -> str:
    """Prepend ``section`` to a changelog file below its title.

    The file is created when missing. Existing entries are kept
    byte-for-byte.

    Returns:
        The new file content.

    Raises:
        ChangelogError: If the file cannot be read or written.
    """
    try:
        existing = path.read_text(encoding="utf-8") if path.exists() else ""
    except OSError as e:
        raise ChangelogError(f"Cannot read {path}: {e}") from e

    rest = existing
    if rest.startswith(CHANGELOG_TITLE):
        rest = rest[len(CHANGELOG_TITLE) :].lstrip("\r\n")

    content = f"{CHANGELOG_TITLE}\n\n{section.strip()}\n"
    if rest:
        content += f"\n{rest}"

    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ChangelogError(f"Cannot write {path}: {e}") from e

    log.debug("changelog_updated", path=str(path), bytes=len(content))
    return content


async def resolve_changelog_range(repo: GitRepository, is_increment: bool, match: str = "*") -> ChangelogRange:
    """Work out which commits belong to the section being rendered.

    A real increment covers everything since the latest matching tag (or
    the whole history when there is none). An as-is release re-renders
    the latest tag, so the range runs from the tag before it.
    """
    latest = await repo.get_latest_tag(match)
    if is_increment:
        return ChangelogRange(from_ref=latest, to_ref="HEAD")
    if latest is None:
        return ChangelogRange(from_ref=None, to_ref="HEAD")
    previous = await repo.get_previous_tag(latest, match)
    return ChangelogRange(from_ref=previous, to_ref=latest)


async def collect_changelog(
    repo: GitRepository,
    *,
    is_increment: bool,
    version: str,
    current_tag: str,
    repo_url: str,
    commit_types: CommitTypes,
    match: str = "*",
    path: Path | None = None,
    date: str | None = None,
) -> tuple[ChangelogRange, list[ParsedCommit], str]:
    """Read, parse and render the changelog for the upcoming release.

    Args:
        repo: Repository to read the log from.
        is_increment: Whether the next version is a real increment.
        version: Version for the heading.
        current_tag: Tag of the upcoming release.
        repo_url: Repository web URL for links.
        commit_types: Section titles.
        match: Tag glob (``pkg@*`` in a monorepo).
        path: Limit the log to this directory.
        date: Release date, today by default.

    Returns:
        ``(range, commits, text)``; ``text`` is empty when the range has
        no commits.
    """
    changelog_range = await resolve_changelog_range(repo, is_increment, match)
    raw_log = await repo.get_log(changelog_range.from_ref, changelog_range.to_ref, path)
    commits = parse_log(raw_log)
    log.debug("changelog_range", range=str(changelog_range), commits=len(commits))

    if not commits:
        return changelog_range, commits, ""

    if not is_increment and changelog_range.to_ref != "HEAD":
        current_tag = changelog_range.to_ref

    text = render_changelog(
        commits,
        version=version,
        current_tag=current_tag,
        previous_tag=changelog_range.from_ref,
        repo_url=repo_url,
        commit_types=commit_types,
        date=date or date_type.today().isoformat(),
    )
    return changelog_range, commits, text
