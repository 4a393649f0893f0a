"""Core business logic for release-npm.

This module contains the fundamental building blocks:
- Semantic version parsing and bumping
- Conventional commit parsing
- Changelog classification and rendering

The release context and the stage orchestrator live in
:mod:`release_npm.core.context` and :mod:`release_npm.core.orchestrator`.
"""

from __future__ import annotations

from release_npm.core.changelog import ChangelogEntry, classify, render_changelog
from release_npm.core.commit_types import CommitType, CommitTypes
from release_npm.core.commits import IssueRefs, ParsedCommit, parse_commit, parse_log
from release_npm.core.version import BumpType, Version, resolve_requested_version

__all__ = [
    # Changelog
    "ChangelogEntry",
    # Commit types
    "CommitType",
    "CommitTypes",
    # Commits
    "IssueRefs",
    "ParsedCommit",
    # Version
    "BumpType",
    "Version",
    "classify",
    "parse_commit",
    "parse_log",
    "render_changelog",
    "resolve_requested_version",
]
