"""Tests for the release context."""

from __future__ import annotations

import pytest
from fakes import ScriptedPrompter, build_config, write_package

from release_npm.core.context import (
    GitState,
    PackageState,
    create_context,
    detect_ci,
    select_package,
)
from release_npm.core.prompts import NonInteractivePrompter
from release_npm.exceptions import ReleaseValidationError
from release_npm.project import read_package


@pytest.fixture
def package(tmp_path):
    write_package(tmp_path, version="1.2.3")
    return read_package(tmp_path)


class TestDetectCi:
    """Tests for detect_ci()."""

    def test_ci_variables(self):
        """CI or GITHUB_ACTIONS turn CI mode on."""
        assert detect_ci({"CI": "true"})
        assert detect_ci({"GITHUB_ACTIONS": "1"})

    def test_falsy_values(self):
        """Empty or false-like values do not count."""
        assert not detect_ci({})
        assert not detect_ci({"CI": "false", "GITHUB_ACTIONS": "0"})


class TestCreateContext:
    """Tests for create_context()."""

    def test_release_type_resolved(self, package, tmp_path):
        """A bump keyword resolves to the next version."""
        ctx = create_context(package, release_type="minor", cwd=tmp_path, env={})

        assert ctx.package.next_version == "1.3.0"
        assert ctx.increment == "minor"
        assert not ctx.flags.is_ci
        assert not ctx.package.is_prerelease_to

    def test_prerelease_target(self, package, tmp_path):
        """A prerelease target records its identifier and base."""
        ctx = create_context(package, release_type="2.0.0-rc.1", cwd=tmp_path, env={})

        assert ctx.package.is_prerelease_to
        assert ctx.package.preid == "rc"
        assert ctx.package.prebase == "1"

    def test_environment_enables_ci(self, package, tmp_path):
        """CI is detected from the environment."""
        ctx = create_context(package, cwd=tmp_path, env={"CI": "true"})

        assert ctx.flags.is_ci

    def test_show_modes_imply_ci(self, package, tmp_path):
        """Show-only modes never prompt."""
        assert create_context(package, show_release=True, cwd=tmp_path, env={}).flags.is_ci
        assert create_context(package, show_changelog=True, cwd=tmp_path, env={}).flags.is_ci

    def test_invalid_release_type_in_ci(self, package, tmp_path):
        """An unresolvable release type fails in CI."""
        with pytest.raises(ReleaseValidationError, match="Invalid release type or version"):
            create_context(package, release_type="banana", ci=True, cwd=tmp_path, env={})

    def test_invalid_release_type_interactive(self, package, tmp_path):
        """Interactively the version is asked for later."""
        ctx = create_context(package, release_type="banana", cwd=tmp_path, env={})

        assert ctx.package.next_version == ""

    def test_private_package_not_published(self, tmp_path):
        """Private packages skip npm."""
        write_package(tmp_path, private=True)

        ctx = create_context(read_package(tmp_path), cwd=tmp_path, env={})

        assert ctx.flags.no_npm
        assert ctx.package.is_private

    def test_publish_config(self, tmp_path):
        """publishConfig fills access and registry."""
        write_package(tmp_path, publishConfig={"access": "restricted", "registry": "https://npm.example.com"})

        ctx = create_context(read_package(tmp_path), cwd=tmp_path, env={})

        assert ctx.package.publish_access == "restricted"
        assert ctx.package.registry_url == "https://npm.example.com"

    def test_template_variables(self, package, tmp_path):
        """Templates see name, versions and tag."""
        ctx = create_context(package, release_type="patch", cwd=tmp_path, env={})
        ctx.git.current_tag = "v1.2.4"

        assert ctx.template_variables() == {
            "name": "widget",
            "version": "1.2.4",
            "prev_version": "1.2.3",
            "tag": "v1.2.4",
        }


class TestWriteOnceState:
    """Tests for guarded context fields."""

    def test_next_version_set_once(self, tmp_path):
        """A different next version is refused."""
        state = PackageState(name="widget", current_version="1.0.0", directory=tmp_path)
        state.set_next_version("1.1.0")
        state.set_next_version("1.1.0")

        with pytest.raises(ReleaseValidationError):
            state.set_next_version("2.0.0")
        assert state.next_version == "1.1.0"

    def test_git_progress_only_moves_forward(self):
        """Progress flags are read-only and set by mark_*."""
        git = GitState()

        with pytest.raises(AttributeError):
            git.committed = True

        git.mark_committed()
        git.mark_tagged()

        assert git.committed
        assert git.tagged
        assert not git.pushed


class TestSelectPackage:
    """Tests for select_package()."""

    def monorepo(self, packages):
        return build_config({"monorepo": {"enabled": True, "packages": packages}})

    def test_not_a_monorepo(self):
        """Single packages need no selection."""
        assert select_package(build_config(), requested="", is_ci=True, prompter=NonInteractivePrompter()) == ""

    def test_ci_requires_package(self):
        """CI in a monorepo needs --package."""
        with pytest.raises(ReleaseValidationError, match="--package <pkg>"):
            select_package(self.monorepo(["a", "b"]), requested="", is_ci=True, prompter=NonInteractivePrompter())

    def test_requested_package(self):
        """--package wins in any mode."""
        prompter = ScriptedPrompter()

        assert select_package(self.monorepo(["a", "b"]), requested="b", is_ci=False, prompter=prompter) == "b"
        assert prompter.asked == []

    def test_no_packages_configured(self):
        """An empty package list is an error."""
        with pytest.raises(ReleaseValidationError, match="no packages found"):
            select_package(self.monorepo([]), requested="", is_ci=False, prompter=ScriptedPrompter())

    def test_single_package(self):
        """A single package is picked without asking."""
        assert select_package(self.monorepo(["only"]), requested="", is_ci=False, prompter=ScriptedPrompter()) == "only"

    def test_asks_for_package(self):
        """Several packages are offered in a prompt."""
        prompter = ScriptedPrompter(selects=["b"])

        assert select_package(self.monorepo(["a", "b"]), requested="", is_ci=False, prompter=prompter) == "b"
        assert prompter.asked == [("select", "Select package release:")]
