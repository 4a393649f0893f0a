"""Release state shared by the pipeline stages.

One :class:`ReleaseContext` is created per run and passed explicitly to
every stage. Stages read what they need and record their results on it.

Two kinds of fields are guarded:

- ``PackageState.next_version`` is set once; a different value later in
  the run is an error.
- ``GitState`` committed/tagged/pushed flags only ever go from
  ``False`` to ``True``. Rollback reads them to know how far to unwind.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from release_npm.core.version import is_prerelease, parse_next_version, resolve_requested_version
from release_npm.exceptions import ReleaseValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from release_npm.config.models import ReleaseConfig
    from release_npm.core.prompts import Prompter
    from release_npm.project.package_json import PackageInfo

_FALSY_ENV = {"", "0", "false", "no"}


def env_flag(env: Mapping[str, str], name: str) -> bool:
    """Whether an environment variable is set to something truthy."""
    return env.get(name, "").strip().lower() not in _FALSY_ENV


def detect_ci(env: Mapping[str, str] | None = None) -> bool:
    """Whether the process runs under CI (``CI`` or ``GITHUB_ACTIONS`` set)."""
    env = os.environ if env is None else env
    return env_flag(env, "CI") or env_flag(env, "GITHUB_ACTIONS")


@dataclass
class ReleaseFlags:
    """Run mode flags. ``no_git`` / ``no_github`` may be set by the checks."""

    dry_run: bool = False
    is_ci: bool = False
    show_changelog: bool = False
    show_release: bool = False
    no_git: bool = False
    no_npm: bool = False
    no_github: bool = False


@dataclass
class PackageState:
    """The package being released."""

    name: str
    current_version: str
    directory: Path
    is_private: bool = False
    selected: str = ""
    is_prerelease_from: bool = False
    is_prerelease_to: bool = False
    preid: str | None = None
    prebase: str | None = None
    publish_access: str = "public"
    registry_url: str = "https://registry.npmjs.org"
    _next_version: str = field(default="", repr=False)

    @property
    def next_version(self) -> str:
        return self._next_version

    def set_next_version(self, version: str) -> None:
        """Record the resolved next version.

        Raises:
            ReleaseValidationError: If a different version was already set.
        """
        if self._next_version and self._next_version != version:
            raise ReleaseValidationError(
                f"Next version already resolved to {self._next_version}, refusing {version}"
            )
        self._next_version = version
        parsed = parse_next_version(version)
        if parsed is not None:
            self.is_prerelease_to = parsed.is_prerelease
            self.preid = parsed.preid
            self.prebase = parsed.prebase


@dataclass
class GitState:
    """Git facts collected by the checks and progress of the git stage."""

    is_repo: bool = False
    remote_name: str = "origin"
    remote_url: str = ""
    latest_tag: str = ""
    previous_tag: str = ""
    current_tag: str = ""
    commit_message: str = ""
    tag_message: str = ""
    _committed: bool = field(default=False, repr=False)
    _tagged: bool = field(default=False, repr=False)
    _pushed: bool = field(default=False, repr=False)

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def tagged(self) -> bool:
        return self._tagged

    @property
    def pushed(self) -> bool:
        return self._pushed

    def mark_committed(self) -> None:
        self._committed = True

    def mark_tagged(self) -> None:
        self._tagged = True

    def mark_pushed(self) -> None:
        self._pushed = True


@dataclass
class NpmState:
    username: str = ""
    otp: str = ""
    dist_tag: str = "latest"


@dataclass
class GitHubState:
    """GitHub repository, token and the created release."""

    owner: str = ""
    repo: str = ""
    username: str = ""
    token: str = field(default="", repr=False)
    changelog_text: str = ""
    release_name: str = ""
    is_web_fallback: bool = False
    is_released: bool = False
    release_id: int | None = None
    release_url: str = ""
    upload_url: str = ""


@dataclass
class ReleaseContext:
    """Everything one release run knows.

    Attributes:
        increment: Release type argument as given on the command line.
        is_increment: ``False`` when the next version equals the current
            one; commit, tag and changelog writing are then skipped.
        config_file: Config file in use, ``None`` for defaults.
        cwd: Directory the run was started from.
    """

    flags: ReleaseFlags
    package: PackageState
    git: GitState = field(default_factory=GitState)
    npm: NpmState = field(default_factory=NpmState)
    github: GitHubState = field(default_factory=GitHubState)
    increment: str = ""
    is_increment: bool = True
    config_file: Path | None = None
    cwd: Path = field(default_factory=Path.cwd)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def template_variables(self) -> dict[str, str]:
        """Placeholders available to message templates and hooks."""
        return {
            "name": self.package.name,
            "version": self.package.next_version,
            "prev_version": self.package.current_version,
            "tag": self.git.current_tag,
        }


def select_package(
    config: ReleaseConfig,
    *,
    requested: str,
    is_ci: bool,
    prompter: Prompter,
) -> str:
    """Pick the monorepo package to release ("" outside a monorepo).

    Raises:
        ReleaseValidationError: In CI without ``--package``, or when no
            packages are configured.
    """
    if not config.is_monorepo:
        return ""

    packages = config.monorepo.packages
    if is_ci:
        if not requested:
            raise ReleaseValidationError(
                'CI mode requires a target package in monorepo. Please specify it via "--package <pkg>"'
            )
        return requested
    if requested:
        return requested
    if not packages:
        raise ReleaseValidationError('Monorepo detected, but no packages found. Please configure "monorepo.packages"')
    if len(packages) == 1:
        return packages[0]

    from release_npm.core.prompts import Choice

    return prompter.select("Select package release:", [Choice(p, p) for p in packages], default=packages[0])


def create_context(
    package: PackageInfo,
    *,
    selected: str = "",
    release_type: str | None = None,
    dry_run: bool = False,
    ci: bool = False,
    show_changelog: bool = False,
    show_release: bool = False,
    no_git: bool = False,
    no_npm: bool = False,
    no_github: bool = False,
    otp: str = "",
    config_file: Path | None = None,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ReleaseContext:
    """Build the context for one run.

    CI mode is on when ``--ci`` is given, when a show-only mode is
    requested, or when ``CI`` / ``GITHUB_ACTIONS`` is set. Private
    packages are never published.

    Raises:
        ReleaseValidationError: If ``release_type`` cannot be resolved
            and there is no way to ask for a version (CI).
    """
    env = os.environ if env is None else env
    is_ci = ci or show_changelog or show_release or detect_ci(env)

    flags = ReleaseFlags(
        dry_run=dry_run,
        is_ci=is_ci,
        show_changelog=show_changelog,
        show_release=show_release,
        no_git=no_git,
        no_npm=no_npm or package.private,
        no_github=no_github,
    )
    state = PackageState(
        name=package.name,
        current_version=package.version,
        directory=package.directory,
        is_private=package.private,
        selected=selected,
        is_prerelease_from=is_prerelease(package.version),
        publish_access=package.access,
        registry_url=package.registry,
    )

    next_version = resolve_requested_version(package.version, release_type)
    if next_version:
        state.set_next_version(next_version)
    elif release_type and is_ci:
        raise ReleaseValidationError(f"Invalid release type or version: {release_type!r}")

    return ReleaseContext(
        flags=flags,
        package=state,
        npm=NpmState(otp=otp),
        increment=release_type or "",
        config_file=config_file,
        cwd=(cwd or Path.cwd()).resolve(),
    )
