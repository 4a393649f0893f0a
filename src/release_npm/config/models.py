"""Configuration models for release-npm.

The resolved configuration is validated with pydantic and frozen after
loading. Decisions that may be asked interactively (commit, tag, push,
publish, release) are :class:`Forced` or :class:`Ask` toggles; in a
config file they are written as ``true`` / ``false`` / ``None``.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from release_npm.core.commit_types import CommitType, CommitTypes
from release_npm.core.hooks import Callback, Hook, Shell, coerce_hook

# =============================================================================
# Toggles
# =============================================================================


class Forced(BaseModel):
    """A decision fixed by configuration."""

    model_config = ConfigDict(frozen=True)

    value: bool


class Ask(BaseModel):
    """A decision left to an interactive prompt."""

    model_config = ConfigDict(frozen=True)


def coerce_toggle(value: object) -> object:
    """Map ``True`` / ``False`` / ``None`` onto :class:`Forced` / :class:`Ask`."""
    if value is None:
        return Ask()
    if isinstance(value, bool):
        return Forced(value=value)
    return value


Toggle = Annotated[Forced | Ask, BeforeValidator(coerce_toggle)]

HookField = Annotated[Shell | Callback, BeforeValidator(coerce_hook)]

PathTemplate = str | Callable[[str], str]
TagTemplate = str | Callable[[str, str], str]


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


# =============================================================================
# Sections
# =============================================================================


class GitConfig(_Section):
    """Git commit, tag and push settings.

    Message templates accept ``{tag}``; the tag name template accepts
    ``{version}``.
    """

    commit: Toggle = Field(default_factory=Ask)
    tag: Toggle = Field(default_factory=Ask)
    push: Toggle = Field(default_factory=Ask)
    commit_message: str = "chore(release): {tag}"
    commit_args: list[str] = Field(default_factory=list)
    tag_message: str = "Release {tag}"
    tag_name: str = "v{version}"
    tag_args: list[str] = Field(default_factory=list)
    push_args: list[str] = Field(default_factory=list)
    add_untracked_files: bool = False
    require_repository: bool = True
    require_remote: bool = True
    require_clean: bool = True


class NpmConfig(_Section):
    """npm publish settings."""

    publish: Toggle = Field(default_factory=Ask)
    publish_args: list[str] = Field(default_factory=list)
    skip_checks: bool = False


class GitHubConfig(_Section):
    """GitHub release settings."""

    release: Toggle = Field(default_factory=Ask)
    release_name: str = "Release {tag}"
    auto_generate: bool = False
    prerelease: bool = False
    draft: bool = False
    token_ref: str = "GITHUB_TOKEN"
    assets: list[str] = Field(default_factory=list)
    skip_checks: bool = False
    api_url: str = "https://api.github.com"
    web_url: str = "https://github.com"


class ChangelogConfig(_Section):
    """Changelog file and commit type titles."""

    infile: str = "CHANGELOG.md"
    types: list[CommitType] = Field(default_factory=list)

    def commit_types(self) -> CommitTypes:
        """The default commit types with the configured overrides merged in."""
        return CommitTypes().merge(self.types)


class HooksConfig(_Section):
    """Lifecycle hooks keyed as ``before:bump``, ``after:publish``, ..."""

    before_bump: HookField = Field(default_factory=Shell, alias="before:bump")
    after_bump: HookField = Field(default_factory=Shell, alias="after:bump")
    before_push: HookField = Field(default_factory=Shell, alias="before:push")
    after_push: HookField = Field(default_factory=Shell, alias="after:push")
    before_publish: HookField = Field(default_factory=Shell, alias="before:publish")
    after_publish: HookField = Field(default_factory=Shell, alias="after:publish")
    before_release: HookField = Field(default_factory=Shell, alias="before:release")
    after_release: HookField = Field(default_factory=Shell, alias="after:release")

    def get(self, key: str) -> Hook:
        """Return the hook for a ``timing:action`` key."""
        return getattr(self, key.replace(":", "_"))


class MonorepoConfig(_Section):
    """Monorepo layout.

    ``package_dir``, ``tag_name`` and ``tag_prefix`` are either format
    strings (``{package}``, ``{version}``) or callables.
    """

    enabled: bool = False
    packages: list[str] = Field(default_factory=list)
    package_dir: PathTemplate = "packages/{package}"
    tag_name: TagTemplate = "{package}@{version}"
    tag_prefix: PathTemplate = "{package}@"


# =============================================================================
# Root
# =============================================================================


class ReleaseConfig(_Section):
    """Resolved release-npm configuration."""

    git: GitConfig = Field(default_factory=GitConfig)
    npm: NpmConfig = Field(default_factory=NpmConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    changelog: ChangelogConfig = Field(default_factory=ChangelogConfig)
    hooks: HooksConfig = Field(default_factory=HooksConfig)
    monorepo: MonorepoConfig = Field(default_factory=MonorepoConfig)

    @property
    def is_monorepo(self) -> bool:
        return self.monorepo.enabled

    def package_dir(self, root: Path, package: str) -> Path:
        """Directory of ``package`` (the root itself outside a monorepo)."""
        if not self.is_monorepo:
            return root
        template = self.monorepo.package_dir
        relative = template(package) if callable(template) else template.format(package=package)
        return root / relative

    def tag_for(self, package: str, version: str) -> str:
        """Tag name for ``version`` of ``package``."""
        if not self.is_monorepo:
            return self.git.tag_name.format(version=version)
        template = self.monorepo.tag_name
        if callable(template):
            return template(package, version)
        return template.format(package=package, version=version)

    def tag_match(self, package: str) -> str:
        """Glob matching the tags of ``package``."""
        if not self.is_monorepo:
            return self.git.tag_name.split("{version}", 1)[0] + "*"
        prefix = self.monorepo.tag_prefix
        return (prefix(package) if callable(prefix) else prefix.format(package=package)) + "*"

