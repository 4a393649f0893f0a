"""Semantic version parsing and bumping.

Implements `Semantic Versioning 2.0 <https://semver.org/>`_ precedence
and the increment rules npm uses for ``npm version <keyword>``:

- ``patch`` on a prerelease drops the prerelease (``1.2.4-beta.0`` → ``1.2.4``)
- ``minor`` / ``major`` do the same when the lower fields are already zero
- ``pre*`` keywords bump and then start a prerelease (``preid.0``)
- ``prerelease`` increments the last numeric prerelease identifier, or
  bumps patch first when the version is not a prerelease yet
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from functools import total_ordering

from release_npm.core.prompts import Choice
from release_npm.exceptions import InvalidVersionError

_SEMVER_RE = re.compile(
    r"^[v=]?\s*"
    r"(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

_COERCE_RE = re.compile(r"(?<!\d)(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?(?!\d)")


class BumpType(StrEnum):
    """Version bump keywords."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    PREMAJOR = "premajor"
    PREMINOR = "preminor"
    PREPATCH = "prepatch"
    PRERELEASE = "prerelease"


class PreId(StrEnum):
    """Common prerelease identifiers."""

    ALPHA = "alpha"
    BETA = "beta"
    RC = "rc"
    NEXT = "next"
    CANARY = "canary"
    NIGHTLY = "nightly"
    DEV = "dev"


PrereleaseId = str | int


def _split_prerelease(raw: str | None) -> tuple[PrereleaseId, ...]:
    if not raw:
        return ()
    return tuple(int(part) if part.isdigit() else part for part in raw.split("."))


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """A semantic version.

    Equality and ordering follow semver precedence, so build metadata
    is ignored when comparing.
    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[PrereleaseId, ...] = field(default=())
    build: str = ""

    @classmethod
    def parse(cls, version: str) -> Version:
        """Parse a strict semver string (a leading ``v`` is tolerated).

        Raises:
            InvalidVersionError: If the string is not a valid version.
        """
        match = _SEMVER_RE.match(version.strip())
        if not match:
            raise InvalidVersionError(f"Invalid version: {version!r}")
        return cls(
            major=int(match["major"]),
            minor=int(match["minor"]),
            patch=int(match["patch"]),
            prerelease=_split_prerelease(match["prerelease"]),
            build=match["build"] or "",
        )

    @classmethod
    def coerce(cls, version: str) -> Version | None:
        """Pull the first ``X[.Y[.Z]]`` out of a string (``"v2"`` → ``2.0.0``)."""
        match = _COERCE_RE.search(version)
        if not match:
            return None
        return cls(int(match[1]), int(match[2] or 0), int(match[3] or 0))

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(str(p) for p in self.prerelease)
        if self.build:
            text += "+" + self.build
        return text

    def _key(self) -> tuple:
        if not self.prerelease:
            pre: tuple = (1,)
        else:
            pre = (0, tuple((0, p, "") if isinstance(p, int) else (1, 0, p) for p in self.prerelease))
        return (self.major, self.minor, self.patch, pre)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def preid(self) -> str | None:
        """The leading non-numeric prerelease identifier, if any."""
        if self.prerelease and isinstance(self.prerelease[0], str):
            return self.prerelease[0]
        return None

    def bump(self, bump_type: BumpType | str, preid: str | None = None) -> Version:
        """Return the next version for ``bump_type``.

        Args:
            bump_type: Bump keyword.
            preid: Prerelease identifier for the ``pre*`` keywords.
        """
        bump_type = BumpType(bump_type)
        major, minor, patch, pre = self.major, self.minor, self.patch, self.prerelease

        if bump_type is BumpType.MAJOR:
            if not (minor == 0 and patch == 0 and pre):
                major += 1
            return Version(major, 0, 0)
        if bump_type is BumpType.MINOR:
            if not (patch == 0 and pre):
                minor += 1
            return Version(major, minor, 0)
        if bump_type is BumpType.PATCH:
            if not pre:
                patch += 1
            return Version(major, minor, patch)
        if bump_type is BumpType.PREMAJOR:
            return Version(major + 1, 0, 0, _next_prerelease((), preid))
        if bump_type is BumpType.PREMINOR:
            return Version(major, minor + 1, 0, _next_prerelease((), preid))
        if bump_type is BumpType.PREPATCH:
            return Version(major, minor, patch + 1, _next_prerelease((), preid))
        # PRERELEASE
        if not pre:
            return Version(major, minor, patch + 1, _next_prerelease((), preid))
        return Version(major, minor, patch, _next_prerelease(pre, preid))


def _next_prerelease(current: tuple[PrereleaseId, ...], preid: str | None) -> tuple[PrereleaseId, ...]:
    if not current:
        return (preid, 0) if preid else (0,)
    if preid and current[0] != preid:
        return (preid, 0)

    items = list(current)
    for i in range(len(items) - 1, -1, -1):
        if isinstance(items[i], int):
            items[i] += 1
            return tuple(items)
    items.append(0)
    return tuple(items)


# =============================================================================
# Resolution helpers used by the bump stage
# =============================================================================


@dataclass(frozen=True)
class NextVersion:
    """A resolved next version with its prerelease details."""

    version: str
    is_prerelease: bool
    preid: str | None = None
    prebase: str | None = None


AS_IS = "as-is"
CUSTOM = "custom"


def is_valid(version: str) -> bool:
    """Return ``True`` for a strictly valid semver string."""
    return _SEMVER_RE.match(version.strip()) is not None


def is_prerelease(version: str) -> bool:
    """Return ``True`` if ``version`` is valid and has a prerelease part."""
    try:
        return Version.parse(version).is_prerelease
    except InvalidVersionError:
        return False


def parse_next_version(raw: str) -> NextVersion | None:
    """Resolve a user-supplied version string.

    Valid versions are used as-is (normalised), anything else is
    coerced. Returns ``None`` when nothing version-like is found.
    """
    if is_valid(raw):
        parsed = Version.parse(raw)
    else:
        coerced = Version.coerce(raw)
        if coerced is None:
            return None
        parsed = coerced

    prebase = None
    if len(parsed.prerelease) > 1:
        prebase = str(parsed.prerelease[1])
    return NextVersion(
        version=str(parsed),
        is_prerelease=parsed.is_prerelease,
        preid=parsed.preid,
        prebase=prebase,
    )


def resolve_requested_version(current: str, requested: str | None) -> str | None:
    """Turn the CLI release-type argument into a next version.

    Args:
        current: Current package version.
        requested: A bump keyword, an explicit version, or nothing.

    Returns:
        The next version, or ``None`` when the request is empty or
        cannot be resolved.
    """
    if not requested:
        return None
    try:
        current_version = Version.parse(current)
    except InvalidVersionError:
        return None

    if requested in {b.value for b in BumpType}:
        return str(current_version.bump(requested))
    if is_valid(requested):
        return str(Version.parse(requested))
    return None


def ci_version(current: str) -> str:
    """Version picked in CI when nothing was requested: a patch bump."""
    return str(Version.parse(current).bump(BumpType.PATCH))


def is_increment(current: str, next_version: str) -> bool:
    """Whether ``next_version`` is a real increment over ``current``.

    Only an unchanged version is not an increment; an "as-is" release
    re-uses the existing tag range instead of producing a new changelog
    section.
    """
    return Version.parse(next_version) != Version.parse(current)


def validate_custom_version(value: str) -> str | None:
    """Return an error message for an invalid custom version, else ``None``."""
    if not is_valid(value):
        return "Invalid version"
    return None


def version_choices(current: str, *, from_prerelease: bool) -> list[Choice]:
    """Build the interactive version menu for ``current``."""
    version = Version.parse(current)

    def choice(label: str, bump_type: BumpType, preid: str | None = None) -> Choice:
        value = str(version.bump(bump_type, preid))
        return Choice(label, value, value)

    choices: list[Choice] = []
    if from_prerelease:
        choices.append(choice("Pre-Release", BumpType.PRERELEASE))
    choices.extend(
        [
            choice("Patch", BumpType.PATCH),
            choice("Minor", BumpType.MINOR),
            choice("Major", BumpType.MAJOR),
        ]
    )
    if not from_prerelease:
        choices.extend(
            [
                choice("Pre-Patch", BumpType.PREPATCH, PreId.BETA),
                choice("Pre-Minor", BumpType.PREMINOR, PreId.BETA),
                choice("Pre-Major", BumpType.PREMAJOR, PreId.BETA),
            ]
        )
    choices.append(Choice("As-Is", AS_IS, current))
    choices.append(Choice("Custom", CUSTOM, "custom specified"))
    return choices


def diff_versions(current: str, next_version: str, separator: str = ".") -> str:
    """Rich markup highlighting the parts of ``next_version`` that changed."""
    old = current.split(separator)
    parts = []
    for i, part in enumerate(next_version.split(separator)):
        same = i < len(old) and old[i] == part
        parts.append(f"[dim]{part}[/]" if same else f"[green]{part}[/]")
    return separator.join(parts)
