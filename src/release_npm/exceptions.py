"""Exception hierarchy for release-npm.

All errors raised by release-npm derive from :class:`ReleaseNpmError`.
Subsystem errors (git, npm, GitHub) prefix their message with a
bracketed tag such as ``[git]``. The tag is only used when printing.
"""

from __future__ import annotations


class ReleaseNpmError(Exception):
    """Base class for all release-npm errors."""


# =============================================================================
# Configuration
# =============================================================================


class ConfigError(ReleaseNpmError):
    """Configuration could not be loaded."""


class ConfigNotFoundError(ConfigError):
    """A configuration file that was asked for does not exist."""


class ConfigValidationError(ConfigError):
    """Configuration file content is invalid."""


# =============================================================================
# Project / package metadata
# =============================================================================


class ProjectError(ReleaseNpmError):
    """Package metadata could not be read."""


class PackageNotFoundError(ProjectError):
    """No package.json in the resolved package directory."""


# =============================================================================
# Validation
# =============================================================================


class ReleaseValidationError(ReleaseNpmError):
    """User input is invalid (bad version, missing monorepo package, ...)."""


class InvalidVersionError(ReleaseValidationError):
    """A version string is not a valid semantic version."""


class ChangelogError(ReleaseNpmError):
    """Changelog could not be generated or written."""


# =============================================================================
# External commands
# =============================================================================


class CommandError(ReleaseNpmError):
    """An external command exited with a non-zero status."""

    def __init__(self, message: str, *, stderr: str = "", return_code: int = 1) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.return_code = return_code


class SubsystemError(ReleaseNpmError):
    """Error raised by one of the external subsystems.

    The message is prefixed with ``[<tag>]`` unless it already is.
    """

    tag = ""

    def __init__(self, message: str) -> None:
        prefix = f"[{self.tag}]"
        if self.tag and not message.startswith(prefix):
            message = f"{prefix} {message}"
        super().__init__(message)


class GitError(SubsystemError):
    """Git precondition or command failure."""

    tag = "git"


class NpmError(SubsystemError):
    """npm precondition or command failure."""

    tag = "npm"


class GitHubError(SubsystemError):
    """GitHub precondition or API failure."""

    tag = "github"


# =============================================================================
# Prompts
# =============================================================================


class PromptUnavailableError(ReleaseNpmError):
    """An interactive decision is needed but prompting is not possible (CI)."""


class ReleaseCancelled(ReleaseNpmError):
    """The user cancelled an interactive prompt."""

    def __init__(self, message: str = "Operation cancelled") -> None:
        super().__init__(message)
