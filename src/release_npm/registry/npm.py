"""npm CLI integration.

:class:`NpmClient` wraps the ``npm`` commands the release flow needs:
registry ping, ``whoami``, ``view``, collaborator access, ``version``
and ``publish``. Query methods return ``None`` / ``False`` when npm has
no answer; ``bump_version`` and ``publish`` raise
:class:`~release_npm.exceptions.NpmError`.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING

from release_npm.core.version import Version
from release_npm.exceptions import CommandError, InvalidVersionError, NpmError
from release_npm.logging import get_logger
from release_npm.process import CommandResult, run_command

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger("release_npm.registry.npm")

NPM_PACKAGE_URL = "https://www.npmjs.com/package"

_OTP_ERROR_RE = re.compile(r"one-time password|otp", re.IGNORECASE)


def is_otp_error(error: BaseException) -> bool:
    """Whether ``error`` asks for a one-time password."""
    return bool(_OTP_ERROR_RE.search(str(error)))


def package_url(name: str, version: str) -> str:
    """Web URL of a published package version."""
    return f"{NPM_PACKAGE_URL}/{name}/v/{version}"


class NpmClient:
    """Runs ``npm`` for one package.

    Args:
        registry: Registry URL passed to every registry command.
        cwd: Package directory.
    """

    def __init__(self, registry: str, cwd: Path | None = None) -> None:
        self.registry = registry
        self.cwd = cwd

    async def _npm(self, *args: str, check: bool = False) -> CommandResult:
        return await run_command(["npm", *args], cwd=self.cwd, check=check)

    async def _query(self, *args: str) -> CommandResult | None:
        try:
            result = await self._npm(*args)
        except CommandError as e:
            log.warning("npm_query_failed", args=" ".join(args), error=str(e))
            return None
        return result if result.ok else None

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def ping(self) -> bool:
        """Return ``True`` if the registry answers ``npm ping``."""
        return await self._query("ping", "--registry", self.registry) is not None

    async def whoami(self) -> str | None:
        """Return the authenticated npm user, or ``None``."""
        result = await self._query("whoami", "--registry", self.registry)
        if result is None:
            return None
        return result.stdout.strip() or None

    async def get_published_version(self, spec: str) -> str | None:
        """Return the version ``spec`` (``name`` or ``name@tag``) resolves to."""
        result = await self._query("view", spec, "version", "--registry", self.registry)
        if result is None:
            return None
        return result.stdout.strip() or None

    async def has_write_access(self, name: str, username: str) -> bool:
        """Whether ``username`` may publish ``name``."""
        result = await self._query(
            "access", "list", "collaborators", name, username, "--json", "--registry", self.registry
        )
        if result is None:
            return False
        try:
            collaborators = json.loads(result.stdout or "{}")
        except json.JSONDecodeError:
            log.warning("npm_access_unparseable", output=result.stdout[:200])
            return False
        return collaborators.get(username) == "read-write"

    async def resolve_publish_tag(self, name: str, version: str) -> str:
        """Pick the dist-tag for publishing ``version``.

        Prereleases go to their preid (``next`` without one). A version
        older than the current ``latest`` goes to ``previous`` so it does
        not move ``latest`` backwards.
        """
        parsed = Version.parse(version)
        if parsed.is_prerelease:
            return parsed.preid or "next"

        active = await self.get_published_version(name)
        if not active:
            return "latest"
        try:
            return "previous" if parsed < Version.parse(active) else "latest"
        except InvalidVersionError:
            return "latest"

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def bump_version(self, version: str) -> None:
        """Write ``version`` to package.json (and the lock file) without tagging."""
        try:
            await self._npm("version", version, "--no-git-tag-version", "--allow-same-version", check=True)
        except CommandError as e:
            raise NpmError(f"npm version {version} failed: {e}") from e

    async def publish(
        self,
        tag: str,
        args: list[str] | None = None,
        *,
        otp: str = "",
        dry_run: bool = False,
    ) -> CommandResult:
        """Run ``npm publish``.

        Under dry run npm itself is asked to simulate (``--dry-run``).

        Raises:
            NpmError: If npm fails. OTP failures keep npm's message so
                :func:`is_otp_error` can recognise them.
        """
        cmd = ["publish", "--tag", tag]
        if otp:
            cmd.extend(["--otp", otp])
        cmd.extend(args or [])
        if dry_run:
            cmd.append("--dry-run")

        log.info("npm_publish", tag=tag, dry_run=dry_run)
        try:
            return await self._npm(*cmd, check=True)
        except CommandError as e:
            raise NpmError(str(e)) from e
