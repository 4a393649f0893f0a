"""Code forge integration (GitHub releases)."""

from __future__ import annotations

from release_npm.forge.github import GitHubClient, ReleaseRequest, truncate_body

__all__ = ["GitHubClient", "ReleaseRequest", "truncate_body"]
