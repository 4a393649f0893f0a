"""release-npm: release automation for npm packages.

Bumps the version, writes the changelog, commits, tags and pushes,
publishes to npm and creates the GitHub release.
"""

from __future__ import annotations

from release_npm.config.loader import define_config

__version__ = "0.1.0"

__all__ = ["__version__", "define_config"]
