"""Shared fixtures."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

import pytest
from fakes import FakeGit, FakeGitHub, FakeNpm, ScriptedPrompter, build_config, run_git, write_package
from rich.console import Console

from release_npm.config.models import ReleaseConfig
from release_npm.core.context import create_context
from release_npm.core.orchestrator import Releaser
from release_npm.project import read_package


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None)


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    write_package(tmp_path)
    return tmp_path


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def fake_npm() -> FakeNpm:
    return FakeNpm()


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def make_releaser(package_dir, fake_git, fake_npm, fake_github, console):
    """Build a Releaser over the fakes.

    Keyword arguments go to ``create_context`` except ``config``,
    ``prompter`` and ``env``. CI mode is on unless ``ci=False`` is given.
    """

    def _make(
        *,
        config: ReleaseConfig | None = None,
        prompter=None,
        env: dict[str, str] | None = None,
        **options: Any,
    ) -> Releaser:
        options.setdefault("ci", True)
        ctx = create_context(read_package(package_dir), cwd=package_dir, env={}, **options)
        return Releaser(
            ctx,
            config or build_config(is_ci=ctx.flags.is_ci),
            git=fake_git,
            npm=fake_npm,
            github=fake_github.factory,
            prompter=prompter or ScriptedPrompter(),
            console=console,
            env=env if env is not None else {"GITHUB_TOKEN": "ghp_test"},
        )

    return _make


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A committed npm package in a real git repository with a GitHub remote."""
    run_git(tmp_path, "init", "--quiet")
    run_git(tmp_path, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(tmp_path, "config", "user.email", "dev@example.com")
    run_git(tmp_path, "config", "user.name", "Dev")
    run_git(tmp_path, "config", "commit.gpgsign", "false")
    run_git(tmp_path, "config", "tag.gpgsign", "false")
    run_git(tmp_path, "remote", "add", "origin", "https://github.com/acme/widget.git")
    write_package(tmp_path)
    run_git(tmp_path, "add", "package.json")
    run_git(tmp_path, "commit", "--quiet", "-m", "feat: initial widget")
    return tmp_path
