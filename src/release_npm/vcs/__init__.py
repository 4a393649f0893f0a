"""Version control integration."""

from __future__ import annotations

from release_npm.vcs.git import GitRepository, parse_github_repo

__all__ = ["GitRepository", "parse_github_repo"]
