"""Release pipeline.

:class:`Releaser` runs the stages of a release in a fixed order::

    CHECK -> BUMP -> CHANGELOG -> GIT -> NPM -> GITHUB

CHECK validates git, npm and GitHub before anything is touched. Any
failure after CHECK rolls the working tree back before the error is
re-raised; a dry run always rolls back at the end.

Dry run still writes package.json and the changelog and stages them, so
the changelog and status output are real. Commit, tag and push are only
printed, ``npm publish`` runs with ``--dry-run`` and no GitHub release is
created.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING

from rich.markup import escape

from release_npm.config.models import Forced
from release_npm.core.changelog import collect_changelog, update_changelog_file
from release_npm.core.hooks import expand_template, run_hook
from release_npm.core.version import (
    AS_IS,
    CUSTOM,
    Version,
    ci_version,
    diff_versions,
    is_increment,
    validate_custom_version,
    version_choices,
)
from release_npm.exceptions import GitError, GitHubError, NpmError, ReleaseNpmError
from release_npm.forge.github import ReleaseRequest, truncate_body
from release_npm.logging import get_logger
from release_npm.registry.npm import is_otp_error, package_url
from release_npm.vcs.git import parse_github_repo

if TYPE_CHECKING:
    from collections.abc import Mapping

    from rich.console import Console

    from release_npm.config.models import ReleaseConfig, Toggle
    from release_npm.core.context import ReleaseContext
    from release_npm.core.prompts import Prompter
    from release_npm.forge.github import GitHubClient
    from release_npm.registry.npm import NpmClient
    from release_npm.vcs.git import GitRepository

log = get_logger("release_npm.core.orchestrator")

GitHubFactory = Callable[[str, str, str], "GitHubClient"]


class Stage(StrEnum):
    CHECK = "check"
    BUMP = "bump"
    CHANGELOG = "changelog"
    GIT = "git"
    NPM = "npm"
    GITHUB = "github"


RELEASE_STAGES = (Stage.BUMP, Stage.CHANGELOG, Stage.GIT, Stage.NPM, Stage.GITHUB)
PREPARE_STAGES = (Stage.BUMP, Stage.CHANGELOG, Stage.GIT)


class _Finished(Exception):
    """Ends the run early after a show-only mode printed its result."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Releaser:
    """Runs one release.

    Args:
        ctx: State of this run.
        config: Resolved configuration.
        git: Repository of the working directory.
        npm: npm client for the package directory.
        github: Builds a GitHub client from ``(owner, repo, token)`` once
            the checks know them.
        prompter: Answers interactive questions.
        console: Progress output.
        env: Environment to read tokens from (``os.environ`` by default).
    """

    def __init__(
        self,
        ctx: ReleaseContext,
        config: ReleaseConfig,
        *,
        git: GitRepository,
        npm: NpmClient,
        github: GitHubFactory,
        prompter: Prompter,
        console: Console,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.ctx = ctx
        self.config = config
        self.git = git
        self.npm = npm
        self.prompter = prompter
        self.console = console
        self.stage: Stage | None = None
        self._github_factory = github
        self._github: GitHubClient | None = None
        self._env = os.environ if env is None else env
        self._from_config: list[str] = []

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def release(self) -> ReleaseContext:
        """Run the full pipeline."""
        return await self._run(RELEASE_STAGES, "Release")

    async def prepare(self) -> ReleaseContext:
        """Bump, write the changelog, commit and tag; no npm or GitHub."""
        return await self._run(PREPARE_STAGES, "PrepareRelease")

    async def _run(self, stages: tuple[Stage, ...], title: str) -> ReleaseContext:
        self._intro()

        # Nothing has been touched yet, so a failing check needs no rollback.
        await self.check()

        try:
            for stage in stages:
                await self._enter(stage)
        except _Finished as done:
            self.console.print(f"\n{done.message}")
            return self.ctx
        except Exception as e:
            log.error("release_failed", stage=str(self.stage), error=str(e))
            await self.rollback()
            raise

        if self.ctx.flags.dry_run:
            await self.rollback()
        self._outro(title)
        return self.ctx

    async def _enter(self, stage: Stage) -> None:
        self.stage = stage
        log.debug("stage", stage=str(stage))
        handler = {
            Stage.BUMP: self.bump,
            Stage.CHANGELOG: self.changelog,
            Stage.GIT: self.commit_and_tag,
            Stage.NPM: self.publish,
            Stage.GITHUB: self.github_release,
        }[stage]
        await handler()

    # -------------------------------------------------------------------------
    # CHECK
    # -------------------------------------------------------------------------

    async def check(self) -> None:
        """Validate git, npm and GitHub before anything is changed."""
        self.stage = Stage.CHECK
        await self._check_git()
        await self._check_npm()
        await self._check_github()

    async def _check_git(self) -> None:
        ctx, cfg = self.ctx, self.config.git

        ctx.git.is_repo = await self.git.is_repo()
        if not ctx.git.is_repo:
            if cfg.require_repository:
                raise GitError(f"Repository not found for {ctx.package.name}")
            ctx.flags.no_git = True
            ctx.flags.no_github = True
            self._note("GIT", "Not a git repository, skipping git and GitHub")
            return

        if cfg.require_clean and not await self.git.is_clean():
            raise GitError("Working dir must be clean")

        remote_name, remote_url = await self.git.get_remote()
        ctx.git.remote_name = remote_name
        if not remote_url:
            if cfg.require_remote:
                raise GitError(f'Remote "{remote_name}" not found')
            ctx.flags.no_github = True
            self._note("GIT", f'Remote "{remote_name}" not found, skipping GitHub')
            return

        ctx.git.remote_url = remote_url
        ctx.github.owner, ctx.github.repo = parse_github_repo(remote_url)
        self._done(f"Git remote {escape(remote_name)} → {escape(remote_url)}")

    async def _check_npm(self) -> None:
        ctx = self.ctx
        if ctx.flags.no_npm:
            return

        ctx.npm.dist_tag = await self.npm.resolve_publish_tag(ctx.package.name, ctx.package.current_version)
        if self.config.npm.skip_checks:
            return

        reachable, username = await asyncio.gather(self.npm.ping(), self.npm.whoami())
        if not reachable:
            raise NpmError(f"Unable to reach npm registry {ctx.package.registry_url}")
        if not username:
            raise NpmError("Not authenticated with npm. Please run npm login and try again.")
        ctx.npm.username = username

        spec = f"{ctx.package.name}@{ctx.npm.dist_tag}"
        if await self.npm.get_published_version(spec) and not await self.npm.has_write_access(
            ctx.package.name, username
        ):
            raise NpmError(f"User {username} is not a collaborator of {ctx.package.name}.")
        self._done(f"npm user [cyan]{escape(username)}[/]")

    async def _check_github(self) -> None:
        ctx, cfg = self.ctx, self.config.github
        if ctx.flags.no_github:
            return

        token = self._env.get(cfg.token_ref, "")
        if not token:
            if ctx.flags.is_ci and self._env.get("GITHUB_ACTIONS"):
                raise GitHubError(f"Environment variable {cfg.token_ref} is required in GitHub Actions")
            ctx.github.is_web_fallback = True
            self._note("GITHUB", f"{cfg.token_ref} not set, releases open in the browser")
            return

        ctx.github.token = token
        if cfg.skip_checks:
            return

        if self._env.get("GITHUB_ACTIONS"):
            ctx.github.username = self._env.get("GITHUB_ACTOR", "")
            return

        client = self._github_client()
        try:
            username = await client.get_authenticated_user()
        except GitHubError as e:
            raise GitHubError("Invalid GitHub token or insufficient permissions") from e
        if not await client.check_collaborator(username):
            raise GitHubError("User does not have permission to create releases")
        ctx.github.username = username
        self._done(f"GitHub user [cyan]{escape(username)}[/]")

    # -------------------------------------------------------------------------
    # BUMP
    # -------------------------------------------------------------------------

    async def bump(self) -> None:
        """Resolve the next version, write it and collect the changelog."""
        ctx = self.ctx
        pkg = ctx.package

        if not pkg.next_version:
            next_version = ci_version(pkg.current_version) if ctx.flags.is_ci else self._ask_version()
            pkg.set_next_version(next_version)
        ctx.is_increment = is_increment(pkg.current_version, pkg.next_version)
        self._resolve_templates()

        if ctx.flags.show_release:
            raise _Finished(f"🎉  Released {pkg.next_version}")

        if not ctx.flags.show_changelog:
            await self._hook("before:bump")
            await self.npm.bump_version(pkg.next_version)
            self._done(
                f"Version {pkg.current_version} → "
                f"{diff_versions(pkg.current_version, pkg.next_version)}"
            )
            await self._hook("after:bump")

        if not ctx.flags.no_git:
            await self._collect_changelog()

        if ctx.flags.show_changelog:
            raise _Finished("🎉  Changelog collected")

    def _ask_version(self) -> str:
        pkg = self.ctx.package
        choices = version_choices(pkg.current_version, from_prerelease=pkg.is_prerelease_from)
        picked = self.prompter.select(
            f"Select version bump for {pkg.name} (current {pkg.current_version}):",
            choices,
            default=choices[0].value,
        )
        if picked == CUSTOM:
            custom = self.prompter.text(
                "Enter a custom version:",
                default=pkg.current_version,
                validate=validate_custom_version,
            )
            return str(Version.parse(custom))
        if picked == AS_IS:
            return pkg.current_version
        return picked

    def _resolve_templates(self) -> None:
        ctx, cfg = self.ctx, self.config
        ctx.git.current_tag = cfg.tag_for(ctx.package.selected, ctx.package.next_version)
        variables = ctx.template_variables()
        ctx.git.commit_message = expand_template(cfg.git.commit_message, variables)
        ctx.git.tag_message = expand_template(cfg.git.tag_message, variables)
        ctx.github.release_name = expand_template(cfg.github.release_name, variables)

    async def _collect_changelog(self) -> None:
        ctx = self.ctx
        repo_url = ""
        if ctx.github.owner and ctx.github.repo:
            repo_url = f"{self.config.github.web_url.rstrip('/')}/{ctx.github.owner}/{ctx.github.repo}"

        match = self.config.tag_match(ctx.package.selected)
        path = ctx.package.directory if self.config.is_monorepo else None
        changelog_range, commits, text = await collect_changelog(
            self.git,
            is_increment=ctx.is_increment,
            version=ctx.package.next_version,
            current_tag=ctx.git.current_tag,
            repo_url=repo_url,
            commit_types=self.config.changelog.commit_types(),
            match=match,
            path=path,
        )
        ctx.git.latest_tag = changelog_range.from_ref or ""
        ctx.github.changelog_text = text

        if not commits:
            self._note("CHANGELOG", "No commits found since last release")
            return
        self.console.print()
        self.console.print(text, markup=False, highlight=False)

    # -------------------------------------------------------------------------
    # CHANGELOG
    # -------------------------------------------------------------------------

    async def changelog(self) -> None:
        """Prepend the new section to the changelog file and stage everything."""
        ctx = self.ctx
        text = ctx.github.changelog_text
        if ctx.is_increment and text:
            path = ctx.package.directory / self.config.changelog.infile
            update_changelog_file(path, text)
            self._done(f"Changelog written to {escape(self.config.changelog.infile)}")

        if not ctx.git.is_repo:
            return
        # Staged even under dry run so the status below is real; rollback resets it.
        await self.git.add_all()
        status = await self.git.get_status()
        if status:
            self.console.print("\n[bold]Changes:[/]")
            self.console.print(status, markup=False, highlight=False)
        else:
            self._note("GIT", "Working tree clean. No files changed")

    # -------------------------------------------------------------------------
    # GIT
    # -------------------------------------------------------------------------

    async def commit_and_tag(self) -> None:
        """Commit, tag and push, each step confirmed or taken from config."""
        ctx, cfg = self.ctx, self.config.git
        if ctx.flags.no_git:
            return
        if not ctx.is_increment:
            self._note("GIT", f"Version {ctx.package.next_version} unchanged, nothing to commit")
            return

        commit = self._decide(cfg.commit, "git.commit", f"Commit ({ctx.git.commit_message})?")
        tag = commit and self._decide(cfg.tag, "git.tag", f"Tag ({ctx.git.current_tag})?")
        push = commit and self._decide(cfg.push, "git.push", "Push?")
        self._report_config_decisions()

        await self._hook("before:push")
        if commit:
            await self._commit(tag=tag, push=push)
        await self._hook("after:push")

    async def _commit(self, *, tag: bool, push: bool) -> None:
        ctx, cfg = self.ctx, self.config.git
        dry_run = ctx.flags.dry_run

        if cfg.add_untracked_files:
            await self.git.add_all(dry_run=dry_run)
        else:
            await self.git.add_tracked(dry_run=dry_run)
        await self.git.commit(ctx.git.commit_message, cfg.commit_args, dry_run=dry_run)
        if not dry_run:
            ctx.git.mark_committed()
        self._done(f"Committed {escape(ctx.git.commit_message)}")

        if tag:
            await self.git.tag_annotated(ctx.git.current_tag, ctx.git.tag_message, cfg.tag_args, dry_run=dry_run)
            if not dry_run:
                ctx.git.mark_tagged()
            self._done(f"Tagged {escape(ctx.git.current_tag)}")

        if push:
            branch = await self.git.get_current_branch()
            for remote in await self.git.list_remotes():
                # Any ref on a remote makes the release irreversible.
                if tag:
                    await self.git.push_tag(remote, ctx.git.current_tag, cfg.push_args, dry_run=dry_run)
                    if not dry_run:
                        ctx.git.mark_pushed()
                await self.git.push_branch(remote, branch, cfg.push_args, dry_run=dry_run)
                if not dry_run:
                    ctx.git.mark_pushed()
                self._done(f"Pushed {escape(branch)} to {escape(remote)}")

    # -------------------------------------------------------------------------
    # NPM
    # -------------------------------------------------------------------------

    async def publish(self) -> None:
        """Publish the package, asking for a one-time password if npm needs one."""
        ctx = self.ctx
        if ctx.flags.no_npm:
            return

        pkg = ctx.package
        publish = self._decide(self.config.npm.publish, "npm.publish", f"Publish {pkg.name}@{pkg.next_version}?")
        self._report_config_decisions()
        ctx.npm.dist_tag = await self.npm.resolve_publish_tag(pkg.name, pkg.next_version)

        await self._hook("before:publish")
        if publish:
            await self._publish_with_otp()
            self._done(f"Published [link]{package_url(pkg.name, pkg.next_version)}[/] ({ctx.npm.dist_tag})")
        await self._hook("after:publish")

    async def _publish_with_otp(self) -> None:
        ctx = self.ctx
        args = self.config.npm.publish_args
        try:
            await self.npm.publish(ctx.npm.dist_tag, args, otp=ctx.npm.otp, dry_run=ctx.flags.dry_run)
        except NpmError as e:
            if ctx.flags.is_ci or not is_otp_error(e):
                raise
            log.info("npm_otp_required")
            ctx.npm.otp = self.prompter.text("Please enter OTP for npm:").strip()
            await self.npm.publish(ctx.npm.dist_tag, args, otp=ctx.npm.otp, dry_run=ctx.flags.dry_run)

    # -------------------------------------------------------------------------
    # GITHUB
    # -------------------------------------------------------------------------

    async def github_release(self) -> None:
        """Create the GitHub release, or open the prefilled page without a token."""
        ctx = self.ctx
        if ctx.flags.no_github:
            return

        release = self._decide(
            self.config.github.release, "github.release", f"Create a GitHub release ({ctx.github.release_name})?"
        )
        self._report_config_decisions()

        await self._hook("before:release")
        if release and not ctx.flags.dry_run:
            await self._create_release()
        elif release:
            self._done(f"GitHub release {escape(ctx.github.release_name)}")
        await self._hook("after:release")

    async def _create_release(self) -> None:
        ctx, cfg = self.ctx, self.config.github
        client = self._github_client()
        prerelease = ctx.package.is_prerelease_to or cfg.prerelease

        if ctx.github.is_web_fallback:
            url = client.web_release_url(
                tag=ctx.git.current_tag,
                title=ctx.github.release_name,
                body=ctx.github.changelog_text,
                prerelease=prerelease,
            )
            client.open_web_release(url)
            ctx.github.release_url = url
            self._done("Opened the GitHub release page in the browser")
            return

        request = ReleaseRequest(
            tag=ctx.git.current_tag,
            name=ctx.github.release_name,
            body="" if cfg.auto_generate else truncate_body(ctx.github.changelog_text),
            draft=cfg.draft,
            prerelease=prerelease,
            generate_release_notes=cfg.auto_generate,
            make_latest="false" if prerelease else "true",
        )
        data = await client.create_or_update_release(request)
        ctx.github.is_released = True
        ctx.github.release_id = data.get("id")
        ctx.github.release_url = data.get("html_url") or client.release_url(ctx.git.current_tag)
        ctx.github.upload_url = data.get("upload_url", "")

        if cfg.assets and ctx.github.upload_url:
            uploaded = await client.upload_assets(ctx.github.upload_url, cfg.assets, ctx.cwd)
            self._done(f"Uploaded {len(uploaded)} asset(s)")
        self._done(f"GitHub release [link]{ctx.github.release_url}[/]")

    def _github_client(self) -> GitHubClient:
        if self._github is None:
            gh = self.ctx.github
            self._github = self._github_factory(gh.owner, gh.repo, gh.token)
        return self._github

    # -------------------------------------------------------------------------
    # Rollback
    # -------------------------------------------------------------------------

    async def rollback(self) -> None:
        """Undo local changes made so far.

        Nothing is undone once the release was pushed. Each step is best
        effort; a failed step does not stop the others.
        """
        ctx = self.ctx
        if ctx.git.pushed:
            log.warning("rollback_skipped", reason="already pushed")
            self.console.print("[yellow]Changes were already pushed, not rolling back.[/]")
            return
        if not ctx.git.is_repo:
            return

        log.info("rollback", committed=ctx.git.committed, tagged=ctx.git.tagged)
        await self.git.restore()
        if ctx.git.tagged:
            await self.git.delete_tag(ctx.git.current_tag)
        await self.git.reset_hard("HEAD~1" if ctx.git.committed else "HEAD")
        self.console.print("[dim]Rolled back local changes[/]")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _decide(self, toggle: Toggle, key: str, question: str) -> bool:
        """Take a decision from config, or ask.

        Interactive dry runs always ask so each step can be previewed.
        """
        ask_anyway = self.ctx.flags.dry_run and not self.ctx.flags.is_ci
        if isinstance(toggle, Forced) and not ask_anyway:
            self._from_config.append(key)
            return toggle.value
        return self.prompter.confirm(question, default=True)

    def _report_config_decisions(self) -> None:
        if self._from_config:
            source = "user config" if self.ctx.config_file else "default config"
            self.console.print(f"[dim]Using {source}: {', '.join(self._from_config)}[/]")
            self._from_config.clear()

    async def _hook(self, key: str) -> None:
        failures = await run_hook(
            self.config.hooks,
            key,
            dry_run=self.ctx.flags.dry_run,
            variables=self.ctx.template_variables(),
            console=self.console,
            cwd=self.ctx.package.directory,
        )
        for failure in failures:
            self.console.print(f"[yellow]Hook {key} failed:[/] {escape(failure.message)}")

    def _intro(self) -> None:
        suffix = " (dry run)" if self.ctx.flags.dry_run else ""
        self.console.print(f"\n[bold]🚀  Starting release{suffix}[/]\n")

    def _outro(self, title: str) -> None:
        suffix = " (dry run)" if self.ctx.flags.dry_run else ""
        self.console.print(f"\n[green]🎉  {title} finished successfully in {self.ctx.elapsed:.0f}s{suffix}[/]")

    def _done(self, message: str) -> None:
        marker = "[yellow]✔[/]" if self.ctx.flags.dry_run else "[green]✔[/]"
        self.console.print(f"  {marker} {message}")

    def _note(self, prefix: str, message: str) -> None:
        self.console.print(f"  [blue]{escape(f'[{prefix}]')}[/] {escape(message)}")


def format_error(error: BaseException) -> str:
    """Message shown for an aborted release."""
    if isinstance(error, ReleaseNpmError):
        return str(error)
    return f"{type(error).__name__}: {error}"
