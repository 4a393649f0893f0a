"""Tests for lifecycle hooks."""

from __future__ import annotations

import asyncio

import pytest
from fakes import build_config, output

from release_npm.core.hooks import Callback, Shell, coerce_hook, expand_template, run_hook

VARIABLES = {"name": "widget", "version": "1.3.0", "prev_version": "1.2.3", "tag": "v1.3.0"}


def run(hooks_config, key, console, *, dry_run=False, cwd=None):
    config = build_config({"hooks": hooks_config})
    return asyncio.run(
        run_hook(config.hooks, key, dry_run=dry_run, variables=VARIABLES, console=console, cwd=cwd)
    )


class TestCoerceHook:
    """Tests for coerce_hook()."""

    def test_values(self):
        """Config values map onto Shell or Callback."""

        def handler(variables):
            return None

        assert coerce_hook(None) == Shell()
        assert coerce_hook("npm test") == Shell(("npm test",))
        assert coerce_hook("   ") == Shell()
        assert coerce_hook(["a", "", "b"]) == Shell(("a", "b"))
        assert coerce_hook(handler) == Callback(handler)

    def test_unsupported(self):
        """Other values are rejected."""
        with pytest.raises(ValueError, match="Unsupported hook value"):
            coerce_hook(42)


def test_expand_template():
    """Known placeholders are replaced, unknown ones kept."""
    assert expand_template("echo {name}@{version} {unknown}", VARIABLES) == "echo widget@1.3.0 {unknown}"


class TestRunHook:
    """Tests for run_hook()."""

    def test_shell_commands_run_in_order(self, tmp_path, console):
        """Commands run one after another with placeholders expanded."""
        failures = run(
            {"after:bump": ["echo {version} > out.txt", "echo {tag} >> out.txt"]},
            "after:bump",
            console,
            cwd=tmp_path,
        )

        assert failures == []
        assert (tmp_path / "out.txt").read_text().split() == ["1.3.0", "v1.3.0"]
        assert "echo 1.3.0 > out.txt" in output(console)

    def test_failing_command_is_reported(self, tmp_path, console):
        """A failing command does not stop the next one."""
        failures = run(
            {"before:push": ["echo boom >&2; exit 3", "echo ok > done.txt"]},
            "before:push",
            console,
            cwd=tmp_path,
        )

        assert [f.command for f in failures] == ["echo boom >&2; exit 3"]
        assert failures[0].message == "boom"
        assert (tmp_path / "done.txt").exists()
        assert "✗ echo boom" in output(console)

    def test_dry_run_reports_only(self, tmp_path, console):
        """Under dry run nothing executes but the hook is listed."""
        failures = run({"before:bump": "touch marker"}, "before:bump", console, dry_run=True, cwd=tmp_path)

        assert failures == []
        assert not (tmp_path / "marker").exists()
        assert "touch marker" in output(console)

    def test_callback_receives_variables(self, console):
        """Callbacks get a copy of the template variables."""
        seen = []

        run({"after:release": seen.append}, "after:release", console)

        assert seen == [VARIABLES]

    def test_async_callback_awaited(self, console):
        """Async callbacks are awaited."""
        seen = []

        async def handler(variables):
            seen.append(variables["tag"])

        run({"before:publish": handler}, "before:publish", console)

        assert seen == ["v1.3.0"]

    def test_callback_errors_propagate(self, console):
        """Exceptions from callbacks reach the caller."""

        def handler(variables):
            raise RuntimeError("hook exploded")

        with pytest.raises(RuntimeError, match="hook exploded"):
            run({"after:push": handler}, "after:push", console)

    def test_callback_skipped_in_dry_run(self, console):
        """Callbacks are not called under dry run."""
        seen = []

        run({"after:bump": seen.append}, "after:bump", console, dry_run=True)

        assert seen == []

    def test_unknown_key(self, console):
        """Only the lifecycle keys are accepted."""
        with pytest.raises(ValueError, match="Unknown hook"):
            run({}, "before:coffee", console)

    def test_empty_hook(self, console):
        """An unset hook does nothing."""
        assert run({}, "after:publish", console) == []
        assert output(console) == ""
