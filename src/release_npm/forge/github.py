"""GitHub releases via the REST API.

:class:`GitHubClient` talks to the GitHub REST API v3 with ``httpx``.
Without a token, releases fall back to the prefilled
``/releases/new`` page opened in the browser (:meth:`web_release_url`).

Creating a release reconciles with what already exists for the tag::

    no release   -> create
    draft        -> update the draft in place
    published    -> refuse (GitHubError)
"""

from __future__ import annotations

import asyncio
import glob
import mimetypes
import re
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import httpx

from release_npm.exceptions import GitHubError
from release_npm.logging import get_logger

log = get_logger("release_npm.forge.github")

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_WEB_URL = "https://github.com"
DEFAULT_TIMEOUT = 30.0

# API version header for stable API behavior.
API_VERSION = "2022-11-28"

# GitHub rejects release bodies above 125000 characters.
MAX_BODY_LENGTH = 124000

_URI_TEMPLATE_RE = re.compile(r"\{[^}]*\}$")


def truncate_body(body: str) -> str:
    """Cut a release body to the length GitHub accepts."""
    if body and len(body) >= MAX_BODY_LENGTH:
        return body[:MAX_BODY_LENGTH] + "..."
    return body


@dataclass(frozen=True)
class ReleaseRequest:
    """Fields sent when creating or updating a release."""

    tag: str
    name: str
    body: str = ""
    draft: bool = False
    prerelease: bool = False
    generate_release_notes: bool = False
    make_latest: str = "true"

    def to_payload(self) -> dict[str, Any]:
        return {
            "tag_name": self.tag,
            "name": self.name,
            "body": self.body,
            "draft": self.draft,
            "prerelease": self.prerelease,
            "generate_release_notes": self.generate_release_notes,
            "make_latest": self.make_latest,
        }


class GitHubClient:
    """GitHub API client for one repository.

    Args:
        owner: Repository owner.
        repo: Repository name.
        token: API token; may be empty when only the web fallback is used.
        api_url: API base URL (GitHub Enterprise Server uses ``/api/v3``).
        web_url: Web base URL for release pages.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        token: str = "",
        api_url: str = DEFAULT_API_URL,
        web_url: str = DEFAULT_WEB_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._web_url = web_url.rstrip("/")
        self._repo_url = f"{self._api_url}/repos/{owner}/{repo}"
        self._timeout = timeout
        self._transport = transport

    def __repr__(self) -> str:
        return f"GitHubClient(owner={self.owner!r}, repo={self.repo!r})"

    @property
    def headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self.headers,
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
            follow_redirects=True,
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        allow: tuple[int, ...] = (),
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise GitHubError(f"{method} {url} failed: {e}") from e

        log.debug("github_request", method=method, url=url, status=response.status_code)
        if response.is_success or response.status_code in allow:
            return response
        raise GitHubError(f"{method} {url} returned {response.status_code}: {_error_message(response)}")

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    async def get_authenticated_user(self) -> str:
        """Return the login the token belongs to."""
        response = await self._request("GET", f"{self._api_url}/user")
        return response.json()["login"]

    async def check_collaborator(self, username: str) -> bool:
        """Whether ``username`` is a collaborator of the repository."""
        url = f"{self._repo_url}/collaborators/{username}"
        response = await self._request("GET", url, allow=(404,))
        return response.status_code == 204

    # -------------------------------------------------------------------------
    # Releases
    # -------------------------------------------------------------------------

    async def get_release_by_tag(self, tag: str) -> dict[str, Any] | None:
        """Return the release for ``tag``, or ``None`` if there is none."""
        response = await self._request("GET", f"{self._repo_url}/releases/tags/{tag}", allow=(404,))
        if response.status_code == 404:
            return None
        return response.json()

    async def create_release(self, request: ReleaseRequest) -> dict[str, Any]:
        response = await self._request("POST", f"{self._repo_url}/releases", json=request.to_payload())
        log.info("create_release", tag=request.tag, status=response.status_code)
        return response.json()

    async def update_release(self, release_id: int, request: ReleaseRequest) -> dict[str, Any]:
        url = f"{self._repo_url}/releases/{release_id}"
        response = await self._request("PATCH", url, json=request.to_payload())
        log.info("update_release", tag=request.tag, release_id=release_id, status=response.status_code)
        return response.json()

    async def create_or_update_release(self, request: ReleaseRequest) -> dict[str, Any]:
        """Create the release, or update an existing draft for the same tag.

        Raises:
            GitHubError: If a published release already exists for the tag.
        """
        existing = await self.get_release_by_tag(request.tag)
        if existing is None:
            return await self.create_release(request)
        if not existing.get("draft"):
            raise GitHubError(f'Release for tag "{request.tag}" already exists and is not a draft')
        return await self.update_release(existing["id"], request)

    # -------------------------------------------------------------------------
    # Assets
    # -------------------------------------------------------------------------

    async def upload_asset(self, upload_url: str, path: Path) -> dict[str, Any]:
        """Upload one file to a release.

        Args:
            upload_url: The release's ``upload_url`` (URI template suffix allowed).
            path: File to upload.
        """
        url = _URI_TEMPLATE_RE.sub("", upload_url)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        response = await self._request(
            "POST",
            url,
            params={"name": path.name},
            content=path.read_bytes(),
            headers={"Content-Type": content_type},
        )
        log.info("upload_asset", name=path.name, status=response.status_code)
        return response.json()

    async def upload_assets(self, upload_url: str, patterns: list[str], cwd: Path) -> list[dict[str, Any]]:
        """Upload every file matching ``patterns`` concurrently.

        The batch fails if any upload fails; assets that were already
        uploaded stay attached to the release.
        """
        files = expand_assets(patterns, cwd)
        return list(await asyncio.gather(*(self.upload_asset(upload_url, f) for f in files)))

    # -------------------------------------------------------------------------
    # Web fallback
    # -------------------------------------------------------------------------

    def repository_url(self) -> str:
        return f"{self._web_url}/{self.owner}/{self.repo}"

    def release_url(self, tag: str) -> str:
        return f"{self.repository_url()}/releases/tag/{tag}"

    def web_release_url(self, *, tag: str, title: str, body: str, prerelease: bool) -> str:
        """URL of the "new release" page with every field prefilled."""
        query = urlencode(
            {
                "tag": tag,
                "title": title,
                "body": truncate_body(body),
                "prerelease": str(prerelease).lower(),
            }
        )
        return f"{self.repository_url()}/releases/new?{query}"

    def open_web_release(self, url: str) -> bool:
        """Open ``url`` in the default browser."""
        log.info("open_web_release", url=url[:120])
        return webbrowser.open(url)


def expand_assets(patterns: list[str], cwd: Path) -> list[Path]:
    """Expand asset glob patterns relative to ``cwd``, without duplicates."""
    files: dict[Path, None] = {}
    for pattern in patterns:
        for match in sorted(glob.glob(pattern, root_dir=cwd, recursive=True)):
            path = cwd / match
            if path.is_file():
                files[path] = None
    return list(files)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.text[:200]
