"""Command line entry point.

``release-npm [RELEASE_TYPE]`` runs a release; ``release-npm init``
scaffolds a config file. Usage errors exit with 1.
"""

from __future__ import annotations

import sys

import click
import typer
from rich.console import Console

from release_npm import __version__
from release_npm.cli.commands.init import run_init
from release_npm.cli.commands.release import run_release
from release_npm.cli.prompts import ABORT_ERRORS
from release_npm.logging import configure_logging

console = Console()
err_console = Console(stderr=True)

# typer may bundle its own copy of click; take its UsageError from BadParameter.
USAGE_ERRORS = (
    click.exceptions.UsageError,
    *(cls for cls in typer.BadParameter.__mro__ if cls.__name__ == "UsageError"),
)

app = typer.Typer(
    add_completion=False,
    rich_markup_mode="rich",
    help="Release npm packages: bump, changelog, git, npm and GitHub.",
)

init_app = typer.Typer(add_completion=False, rich_markup_mode="rich")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.command()
def release(
    release_type: str | None = typer.Argument(
        None,
        metavar="[RELEASE_TYPE]",
        help="major | minor | patch | premajor | preminor | prepatch | prerelease, or a version.",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Preview the release without publishing."),
    package: str | None = typer.Option(None, "--package", "-p", help="Monorepo package to release."),
    otp: str | None = typer.Option(None, "--otp", help="One-time password for npm publish."),
    prepare: bool = typer.Option(False, "--prepare", help="Only bump the version and write the changelog."),
    ci: bool = typer.Option(False, "--ci", help="Never prompt; use configured or default decisions."),
    show_changelog: bool = typer.Option(False, "--show-changelog", help="Print the changelog and exit."),
    show_release: bool = typer.Option(False, "--show-release", help="Print the next version and exit."),
    no_git: bool = typer.Option(False, "--no-git", help="Skip commit, tag and push."),
    no_npm: bool = typer.Option(False, "--no-npm", help="Skip npm publish."),
    no_github: bool = typer.Option(False, "--no-github", help="Skip the GitHub release."),
    path: str | None = typer.Option(None, "--path", help="Project directory."),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Show debug logs."),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Print the tool version and exit.",
    ),
) -> None:
    """Bump, changelog, commit, tag, push, publish and create a GitHub release."""
    configure_logging(verbose=verbose)
    run_release(
        release_type,
        path=path,
        dry_run=dry_run,
        ci=ci,
        package=package,
        otp=otp,
        show_changelog=show_changelog,
        show_release=show_release,
        prepare=prepare,
        no_git=no_git,
        no_npm=no_npm,
        no_github=no_github,
        console=console,
        err_console=err_console,
    )


@init_app.command()
def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config file."),
    monorepo: bool = typer.Option(False, "--monorepo", "-m", help="Write the monorepo template."),
    path: str | None = typer.Option(None, "--path", help="Project directory."),
) -> None:
    """Create a release configuration file."""
    configure_logging()
    run_init(path, force, monorepo, console, err_console)


def main(argv: list[str] | None = None) -> None:
    """Console script entry point."""
    args = list(sys.argv[1:] if argv is None else argv)
    target, prog_name = app, "release-npm"
    if args[:1] == ["init"]:
        target, prog_name, args = init_app, "release-npm init", args[1:]

    try:
        result = target(args=args, prog_name=prog_name, standalone_mode=False)
    except USAGE_ERRORS as e:
        e.show()
        raise SystemExit(1) from e
    except ABORT_ERRORS as e:
        err_console.print("[yellow]Aborted[/]")
        raise SystemExit(1) from e
    # Non-standalone click returns the exit code of typer.Exit.
    if isinstance(result, int) and result:
        raise SystemExit(result)
