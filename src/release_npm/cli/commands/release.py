"""Implementation of the release command.

Loads configuration and package metadata, builds the release context and
runs the pipeline. Errors are printed once here and turned into exit
codes: 0 for a cancelled prompt, 1 for everything else.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from rich.panel import Panel
from rich.text import Text

from release_npm.cli.prompts import TyperPrompter
from release_npm.config import load_config
from release_npm.core.context import create_context, detect_ci, select_package
from release_npm.core.orchestrator import Releaser, format_error
from release_npm.core.prompts import NonInteractivePrompter
from release_npm.exceptions import ReleaseCancelled, ReleaseNpmError
from release_npm.forge import GitHubClient
from release_npm.project import find_package_dir, read_package
from release_npm.registry import NpmClient
from release_npm.vcs import GitRepository

if TYPE_CHECKING:
    from rich.console import Console

    from release_npm.core.context import ReleaseContext


def run_release(
    release_type: str | None,
    *,
    path: str | None = None,
    dry_run: bool = False,
    ci: bool = False,
    package: str | None = None,
    otp: str | None = None,
    show_changelog: bool = False,
    show_release: bool = False,
    prepare: bool = False,
    no_git: bool = False,
    no_npm: bool = False,
    no_github: bool = False,
    console: Console,
    err_console: Console,
) -> ReleaseContext | None:
    """Run the release command.

    Args:
        release_type: Bump type (``patch``, ``preminor``, ...) or an
            explicit version. Asked interactively when omitted.
        path: Project root, the working directory by default.
        dry_run: Preview without committing, tagging, pushing or releasing.
        ci: Never prompt.
        package: Monorepo package to release.
        otp: npm one-time password.
        show_changelog: Only print the changelog of the next release.
        show_release: Only print the next version.
        prepare: Only bump the version and write the changelog.
        no_git: Skip commit, tag and push.
        no_npm: Skip publishing.
        no_github: Skip the GitHub release.
        console: Console for standard output
        err_console: Console for error output

    Returns:
        The final release context, or ``None`` if the run was cancelled.
    """
    try:
        return asyncio.run(
            _release(
                release_type,
                project_root=Path(path).resolve() if path else Path.cwd(),
                dry_run=dry_run,
                ci=ci,
                package=package or "",
                otp=otp or "",
                show_changelog=show_changelog,
                show_release=show_release,
                prepare=prepare,
                no_git=no_git,
                no_npm=no_npm,
                no_github=no_github,
                console=console,
            )
        )
    except ReleaseCancelled as e:
        console.print(f"[yellow]{e}[/]")
        return None
    except ReleaseNpmError as e:
        err_console.print(Text(str(e), style="red"))
        raise SystemExit(1) from e
    except Exception as e:
        err_console.print(Text(format_error(e), style="red"))
        raise SystemExit(1) from e


async def _release(
    release_type: str | None,
    *,
    project_root: Path,
    dry_run: bool,
    ci: bool,
    package: str,
    otp: str,
    show_changelog: bool,
    show_release: bool,
    prepare: bool,
    no_git: bool,
    no_npm: bool,
    no_github: bool,
    console: Console,
) -> ReleaseContext:
    is_ci = ci or show_changelog or show_release or detect_ci()
    loaded = await load_config(project_root, is_ci=is_ci)
    config = loaded.config

    prompter = NonInteractivePrompter() if is_ci else TyperPrompter(console)
    selected = select_package(config, requested=package, is_ci=is_ci, prompter=prompter)
    package_dir = find_package_dir(config.package_dir(project_root, selected))
    info = read_package(package_dir)

    ctx = create_context(
        info,
        selected=selected,
        release_type=release_type,
        dry_run=dry_run,
        ci=is_ci,
        show_changelog=show_changelog,
        show_release=show_release,
        no_git=no_git,
        no_npm=no_npm,
        no_github=no_github,
        otp=otp,
        config_file=loaded.path,
        cwd=project_root,
    )

    if not (show_changelog or show_release):
        _print_banner(ctx, console)

    github_cfg = config.github
    releaser = Releaser(
        ctx,
        config,
        git=GitRepository(project_root),
        npm=NpmClient(info.registry, cwd=package_dir),
        github=lambda owner, repo, token: GitHubClient(
            owner,
            repo,
            token=token,
            api_url=github_cfg.api_url,
            web_url=github_cfg.web_url,
        ),
        prompter=prompter,
        console=console,
    )
    return await (releaser.prepare() if prepare else releaser.release())


def _print_banner(ctx: ReleaseContext, console: Console) -> None:
    pkg = ctx.package
    lines = [f"[bold]{pkg.name}[/] [cyan]{pkg.current_version}[/]"]
    if pkg.selected:
        lines.append(f"Package: [cyan]{pkg.selected}[/]")
    if ctx.config_file:
        lines.append(f"Config: [dim]{ctx.config_file.name}[/]")
    skipped = [
        name
        for name, flag in (("git", ctx.flags.no_git), ("npm", ctx.flags.no_npm), ("github", ctx.flags.no_github))
        if flag
    ]
    if skipped:
        lines.append(f"Skipping: [yellow]{', '.join(skipped)}[/]")

    mode = "[yellow]DRY-RUN[/]" if ctx.flags.dry_run else "[green]RELEASE[/]"
    if ctx.flags.is_ci:
        mode += " [dim](ci)[/]"
    console.print(Panel("\n".join(lines), title=mode, border_style="yellow" if ctx.flags.dry_run else "green"))
