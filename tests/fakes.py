"""In-memory stand-ins for git, npm, GitHub and the prompter."""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from release_npm.config.loader import default_config, merge_config
from release_npm.config.models import ReleaseConfig
from release_npm.vcs.git import LOG_RECORD_SEPARATOR

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def make_log(*commits: tuple[str, str]) -> str:
    """Build ``get_log`` output from ``(hash, message)`` pairs."""
    records = []
    for full_hash, message in commits:
        subject, _, body = message.partition("\n")
        records.append(f"{LOG_RECORD_SEPARATOR}{full_hash}\n{full_hash[:7]}\n{subject}\n{body.strip()}")
    return "".join(records).strip()


class FakeGit:
    """Records git calls instead of running them."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.repo = True
        self.clean = True
        self.remote = ("origin", "git@github.com:acme/widget.git")
        self.remotes = ["origin"]
        self.branch = "main"
        self.latest_tag: str | None = "v1.2.3"
        self.previous_tag: str | None = None
        self.log = make_log(
            ("a" * 40, "feat(ui): add button"),
            ("b" * 40, "fix: handle empty input"),
        )
        self.status = " M package.json\n?? CHANGELOG.md"
        # Keyed by call name, or "name:first_arg" such as "push_branch:upstream".
        self.fail_on: dict[str, Exception] = {}

    def _record(self, *call: Any) -> None:
        self.calls.append(call)
        error = self.fail_on.get(call[0])
        if error is None and len(call) > 1:
            error = self.fail_on.get(f"{call[0]}:{call[1]}")
        if error is not None:
            raise error

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def is_repo(self) -> bool:
        return self.repo

    async def is_clean(self) -> bool:
        return self.clean

    async def get_status(self) -> str:
        return self.status

    async def get_current_branch(self) -> str:
        return self.branch

    async def list_remotes(self) -> list[str]:
        return list(self.remotes)

    async def get_remote(self) -> tuple[str, str]:
        return self.remote

    async def get_latest_tag(self, match: str = "*", exclude: str | None = None) -> str | None:
        return self.latest_tag

    async def get_previous_tag(self, tag: str, match: str = "*") -> str | None:
        return self.previous_tag

    async def get_log(self, from_ref: str | None, to_ref: str = "HEAD", path: Path | None = None) -> str:
        self.calls.append(("log", from_ref, to_ref))
        return self.log

    async def add_all(self, *, dry_run: bool = False) -> None:
        self._record("add_all", dry_run)

    async def add_tracked(self, *, dry_run: bool = False) -> None:
        self._record("add_tracked", dry_run)

    async def commit(self, message: str, args: list[str] | None = None, *, dry_run: bool = False) -> None:
        self._record("commit", message, dry_run)

    async def tag_annotated(self, name: str, message: str, args: list[str] | None = None, *, dry_run: bool = False):
        self._record("tag", name, message, dry_run)

    async def push_tag(self, remote: str, tag: str, args: list[str] | None = None, *, dry_run: bool = False):
        self._record("push_tag", remote, tag, dry_run)

    async def push_branch(self, remote: str, branch: str, args: list[str] | None = None, *, dry_run: bool = False):
        self._record("push_branch", remote, branch, dry_run)

    async def restore(self) -> bool:
        self.calls.append(("restore",))
        return True

    async def delete_tag(self, tag: str) -> bool:
        self.calls.append(("delete_tag", tag))
        return True

    async def reset_hard(self, ref: str = "HEAD") -> bool:
        self.calls.append(("reset_hard", ref))
        return True


class FakeNpm:
    """Records npm calls; ``publish_errors`` are raised one per publish."""

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = directory
        self.calls: list[tuple[Any, ...]] = []
        self.reachable = True
        self.username: str | None = "alice"
        self.published: str | None = "1.2.3"
        self.write_access = True
        self.publish_errors: list[Exception] = []
        self.bump_error: Exception | None = None

    async def ping(self) -> bool:
        return self.reachable

    async def whoami(self) -> str | None:
        return self.username

    async def get_published_version(self, spec: str) -> str | None:
        return self.published

    async def has_write_access(self, name: str, username: str) -> bool:
        return self.write_access

    async def resolve_publish_tag(self, name: str, version: str) -> str:
        return "next" if "-" in version else "latest"

    async def bump_version(self, version: str) -> None:
        self.calls.append(("bump_version", version))
        if self.bump_error is not None:
            raise self.bump_error
        if self.directory is not None:
            path = self.directory / "package.json"
            data = json.loads(path.read_text(encoding="utf-8"))
            data["version"] = version
            path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    async def publish(self, tag: str, args: list[str] | None = None, *, otp: str = "", dry_run: bool = False):
        self.calls.append(("publish", tag, otp, dry_run))
        if self.publish_errors:
            raise self.publish_errors.pop(0)


class FakeGitHub:
    """Stands in for GitHubClient."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.user = "alice"
        self.collaborator = True
        self.auth_error: Exception | None = None
        self.release_error: Exception | None = None
        self.owner = ""
        self.repo = ""
        self.token = ""

    def factory(self, owner: str, repo: str, token: str) -> FakeGitHub:
        self.owner, self.repo, self.token = owner, repo, token
        return self

    async def get_authenticated_user(self) -> str:
        if self.auth_error is not None:
            raise self.auth_error
        return self.user

    async def check_collaborator(self, username: str) -> bool:
        return self.collaborator

    async def create_or_update_release(self, request) -> dict[str, Any]:
        self.calls.append(("release", request))
        if self.release_error is not None:
            raise self.release_error
        return {
            "id": 7,
            "html_url": f"https://github.com/{self.owner}/{self.repo}/releases/tag/{request.tag}",
            "upload_url": "https://uploads.github.com/repos/acme/widget/releases/7/assets{?name,label}",
        }

    async def upload_assets(self, upload_url: str, patterns: list[str], cwd: Path) -> list[dict[str, Any]]:
        self.calls.append(("upload_assets", upload_url, tuple(patterns)))
        return [{"name": p} for p in patterns]

    def release_url(self, tag: str) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/releases/tag/{tag}"

    def web_release_url(self, *, tag: str, title: str, body: str, prerelease: bool) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/releases/new?tag={tag}"

    def open_web_release(self, url: str) -> bool:
        self.calls.append(("open_web_release", url))
        return True


class ScriptedPrompter:
    """Answers prompts from queues and records every question."""

    def __init__(self, *, confirm: bool = True, selects: list[str] | None = None, texts: list[str] | None = None):
        self.confirm_answer = confirm
        self.selects = list(selects or [])
        self.texts = list(texts or [])
        self.asked: list[tuple[str, str]] = []

    def confirm(self, message: str, *, default: bool = True) -> bool:
        self.asked.append(("confirm", message))
        return self.confirm_answer

    def select(self, message: str, choices, *, default: str | None = None) -> str:
        self.asked.append(("select", message))
        return self.selects.pop(0)

    def text(self, message: str, *, default: str = "", validate=None) -> str:
        self.asked.append(("text", message))
        value = self.texts.pop(0)
        if validate is not None:
            assert validate(value) is None
        return value


def build_config(overrides: dict[str, Any] | None = None, *, is_ci: bool = True) -> ReleaseConfig:
    return ReleaseConfig.model_validate(merge_config(default_config(is_ci), overrides or {}))


def write_package(directory: Path, name: str = "widget", version: str = "1.2.3", **extra: Any) -> Path:
    path = directory / "package.json"
    path.write_text(json.dumps({"name": name, "version": version, **extra}, indent=2) + "\n", encoding="utf-8")
    return path


def output(console: Console) -> str:
    return console.file.getvalue()


def run_git(repo: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True, text=True)
    return result.stdout.strip()
