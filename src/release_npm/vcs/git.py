"""Git operations for release-npm.

:class:`GitRepository` wraps the ``git`` CLI through
:func:`~release_npm.process.run_command`. Read-only queries return
plain values (``None`` / empty when git has nothing to say); mutations
honour ``dry_run`` and raise :class:`~release_npm.exceptions.GitError`
when git fails.
"""

from __future__ import annotations

import re
from pathlib import Path

from release_npm.exceptions import CommandError, GitError
from release_npm.logging import get_logger
from release_npm.process import CommandResult, run_command

log = get_logger("release_npm.vcs.git")

# Separates commits in ``get_log`` output. Bodies never contain it.
LOG_RECORD_SEPARATOR = "\x1e"
LOG_FORMAT = "%x1e%H%n%h%n%s%n%b"

_GITHUB_URL_RE = re.compile(
    r"""
    ^(?:
        git@(?P<ssh_host>[^:]+):              # git@github.com:owner/repo
      | (?:ssh|git|https?)://(?:[^@/]+@)?(?P<host>[^/:]+)(?::\d+)?/
    )
    (?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$
    """,
    re.VERBOSE,
)


def parse_github_repo(remote_url: str) -> tuple[str, str]:
    """Extract ``(owner, repo)`` from a git remote URL.

    Returns:
        ``("", "")`` when the URL has no recognisable owner/repo path.
    """
    match = _GITHUB_URL_RE.match(remote_url.strip())
    if not match:
        return "", ""
    return match.group("owner"), match.group("repo")


class GitRepository:
    """A local git working tree.

    Args:
        path: Directory inside the repository; commands run from here.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = (path or Path.cwd()).resolve()

    def __repr__(self) -> str:
        return f"GitRepository({str(self.path)!r})"

    async def _git(self, *args: str, dry_run: bool = False, check: bool = False) -> CommandResult:
        return await run_command(["git", *args], cwd=self.path, dry_run=dry_run, check=check)

    async def _mutate(self, *args: str, dry_run: bool = False) -> CommandResult:
        try:
            return await self._git(*args, dry_run=dry_run, check=True)
        except CommandError as e:
            raise GitError(f"git {args[0]} failed: {e}") from e

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def is_repo(self) -> bool:
        """Return ``True`` if the path is inside a git work tree."""
        try:
            result = await self._git("rev-parse", "--is-inside-work-tree")
        except CommandError:
            return False
        return result.ok and result.stdout.strip() == "true"

    async def is_clean(self) -> bool:
        """Return ``True`` if there are no uncommitted changes."""
        result = await self._git("status", "--porcelain")
        return result.stdout.strip() == ""

    async def get_status(self) -> str:
        """Return ``git status --short`` output."""
        result = await self._git("status", "--short")
        return result.stdout.rstrip()

    async def get_current_branch(self) -> str:
        """Return the checked out branch name."""
        result = await self._git("rev-parse", "--abbrev-ref", "HEAD", check=True)
        return result.stdout.strip()

    async def list_remotes(self) -> list[str]:
        """Return the configured remote names."""
        result = await self._git("remote")
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    async def get_remote(self) -> tuple[str, str]:
        """Return ``(remote_name, remote_url)`` for the current branch.

        Falls back to ``origin`` when the branch has no upstream. The URL
        is empty when the remote does not exist.
        """
        name = "origin"
        branch = await self._git("rev-parse", "--abbrev-ref", "HEAD")
        if branch.ok:
            upstream = await self._git("config", "--get", f"branch.{branch.stdout.strip()}.remote")
            if upstream.ok and upstream.stdout.strip():
                name = upstream.stdout.strip()

        url = await self._git("remote", "get-url", name)
        return name, url.stdout.strip() if url.ok else ""

    async def get_latest_tag(self, match: str = "*", exclude: str | None = None) -> str | None:
        """Return the most recent tag reachable from HEAD matching ``match``."""
        args = ["describe", "--tags", "--abbrev=0", "--match", match]
        if exclude:
            args.extend(["--exclude", exclude])
        result = await self._git(*args)
        if not result.ok:
            return None
        return result.stdout.strip() or None

    async def get_previous_tag(self, tag: str, match: str = "*") -> str | None:
        """Return the matching tag before ``tag``."""
        result = await self._git("describe", "--tags", "--abbrev=0", "--match", match, f"{tag}^")
        if not result.ok:
            return None
        return result.stdout.strip() or None

    async def tree_hash(self) -> str:
        """Return the tree hash of the tracked working tree.

        Uncommitted changes are included through ``git stash create``,
        which records them without touching the stash list.
        """
        stash = await self._git("stash", "create")
        ref = stash.stdout.strip() if stash.ok and stash.stdout.strip() else "HEAD"
        result = await self._git("rev-parse", f"{ref}^{{tree}}", check=True)
        return result.stdout.strip()

    async def get_log(self, from_ref: str | None, to_ref: str = "HEAD", path: Path | None = None) -> str:
        """Return raw commit records between two refs.

        Records are separated by :data:`LOG_RECORD_SEPARATOR` and contain
        the full hash, short hash, subject and body on separate lines.
        """
        rev_range = f"{from_ref}..{to_ref}" if from_ref else to_ref
        args = ["log", f"--pretty=format:{LOG_FORMAT}", rev_range]
        if path is not None:
            args.extend(["--", str(path)])
        result = await self._git(*args)
        return result.stdout.strip() if result.ok else ""

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add_all(self, *, dry_run: bool = False) -> None:
        """Stage all changes including untracked files."""
        await self._mutate("add", "--all", dry_run=dry_run)

    async def add_tracked(self, *, dry_run: bool = False) -> None:
        """Stage changes to tracked files only."""
        await self._mutate("add", "--update", dry_run=dry_run)

    async def commit(self, message: str, args: list[str] | None = None, *, dry_run: bool = False) -> None:
        """Create a commit."""
        log.info("commit", message=message[:80])
        await self._mutate("commit", "--message", message, *(args or []), dry_run=dry_run)

    async def tag_annotated(
        self,
        name: str,
        message: str,
        args: list[str] | None = None,
        *,
        dry_run: bool = False,
    ) -> None:
        """Create an annotated tag."""
        log.info("tag", tag=name)
        await self._mutate("tag", "--annotate", name, "--message", message, *(args or []), dry_run=dry_run)

    async def push_tag(self, remote: str, tag: str, args: list[str] | None = None, *, dry_run: bool = False) -> None:
        """Push a single tag."""
        log.info("push_tag", remote=remote, tag=tag)
        await self._mutate("push", remote, f"refs/tags/{tag}", *(args or []), dry_run=dry_run)

    async def push_branch(
        self,
        remote: str,
        branch: str,
        args: list[str] | None = None,
        *,
        dry_run: bool = False,
    ) -> None:
        """Push a branch."""
        log.info("push_branch", remote=remote, branch=branch)
        await self._mutate("push", remote, branch, *(args or []), dry_run=dry_run)

    # Rollback helpers never raise; a failed step is logged and the
    # remaining steps still run.

    async def restore(self) -> bool:
        """Discard unstaged changes to tracked files."""
        return await self._best_effort("restore", ".")

    async def delete_tag(self, tag: str) -> bool:
        """Delete a local tag."""
        return await self._best_effort("tag", "--delete", tag)

    async def reset_hard(self, ref: str = "HEAD") -> bool:
        """Reset index and working tree to ``ref``."""
        return await self._best_effort("reset", "--hard", ref)

    async def _best_effort(self, *args: str) -> bool:
        try:
            result = await self._git(*args)
        except CommandError as e:
            log.warning("git_cleanup_failed", cmd=" ".join(args), error=str(e))
            return False
        if not result.ok:
            log.warning("git_cleanup_failed", cmd=" ".join(args), stderr=result.stderr.strip())
        return result.ok
