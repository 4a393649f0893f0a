"""Configuration management for release-npm."""

from __future__ import annotations

from release_npm.config.loader import LoadedConfig, define_config, load_config
from release_npm.config.models import (
    Ask,
    ChangelogConfig,
    Forced,
    GitConfig,
    GitHubConfig,
    HooksConfig,
    MonorepoConfig,
    NpmConfig,
    ReleaseConfig,
)

__all__ = [
    "Ask",
    "ChangelogConfig",
    "Forced",
    "GitConfig",
    "GitHubConfig",
    "HooksConfig",
    "LoadedConfig",
    "MonorepoConfig",
    "NpmConfig",
    "ReleaseConfig",
    "define_config",
    "load_config",
]
