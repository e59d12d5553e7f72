"""
GitHub API interaction: parse repository URLs, list directory contents,
fetch file contents and flatten a whole repository into one text blob.

Uses the GitHub REST contents API with optional token authentication.
All network functions are async and use httpx.
"""

import base64
import binascii
import logging
import re
from urllib.parse import quote

import httpx

from enhancer.config import Settings

logger = logging.getLogger(__name__)


class GitHubFetchError(Exception):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, status_code: int = 500, rate_limited: bool = False):
        self.message = message
        self.status_code = status_code
        self.rate_limited = rate_limited
        super().__init__(message)


class InvalidRepoUrlError(GitHubFetchError):
    """The repository URL does not name a github.com owner/repo pair."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class RepositoryFetchError(GitHubFetchError):
    """A repository traversal was aborted; wraps the first failure."""


# ── URL Parsing ───────────────────────────────────────────────────────

_REPO_URL_PATTERN = re.compile(
    r"(?:^|[/@.])github\.com/(?P<owner>[\w.\-]+)/(?P<repo>[\w.\-]+?)(?:\.git)?/?(?:[/?#].*)?$"
)


def parse_github_url(url: str) -> tuple[str, str]:
    """
    Extract (owner, repo) from a GitHub URL.

    Supports:
      - https://github.com/owner/repo
      - https://github.com/owner/repo/
      - https://github.com/owner/repo.git
      - github.com/owner/repo/tree/main

    Raises InvalidRepoUrlError for anything else.
    """
    match = _REPO_URL_PATTERN.search(url.strip())
    if not match:
        raise InvalidRepoUrlError(
            "Invalid GitHub repository URL. "
            "Expected format: https://github.com/{owner}/{repo}"
        )
    return match.group("owner"), match.group("repo")


# ── Client ────────────────────────────────────────────────────────────

def _contents_endpoint(owner: str, repo: str, path: str) -> str:
    """Contents API endpoint with each path segment percent-encoded."""
    return f"/repos/{owner}/{repo}/contents/{quote(path, safe='/')}"


class GitHubClient:
    """Read-only access to repository contents."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    def _build_headers(self) -> dict[str, str]:
        """Build request headers, including auth token if available."""
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "prompt-enhancer-gateway/1.0",
        }
        if self.settings.github_token:
            headers["Authorization"] = f"Bearer {self.settings.github_token}"
        return headers

    async def _get(self, endpoint: str) -> dict | list:
        url = f"{self.settings.github_api_base}{endpoint}"
        logger.debug("GET %s", url)
        try:
            response = await self.client.get(
                url,
                headers=self._build_headers(),
                timeout=self.settings.github_request_timeout,
            )
        except httpx.TimeoutException:
            raise GitHubFetchError("GitHub API request timed out.", status_code=504)
        except httpx.RequestError as exc:
            raise GitHubFetchError(
                f"Network error while contacting GitHub: {exc}",
                status_code=502,
            )

        status = response.status_code
        if status == 404:
            raise GitHubFetchError(
                "Not found. Make sure the URL points to a public repository.",
                status_code=404,
            )
        if status == 429 or (
            status == 403 and response.headers.get("x-ratelimit-remaining") == "0"
        ):
            raise GitHubFetchError(
                "GitHub API rate limit exceeded. "
                "Set the GITHUB_TOKEN environment variable for higher limits.",
                status_code=429,
                rate_limited=True,
            )
        if status in (401, 403):
            raise GitHubFetchError(
                f"GitHub API denied access (status {status}).",
                status_code=status,
            )
        if status != 200:
            raise GitHubFetchError(
                f"GitHub API returned status {status}.",
                status_code=status,
            )
        return response.json()

    async def list_contents(self, owner: str, repo: str, path: str = "") -> dict | list:
        """
        List the entry at ``path``.

        A directory yields a list of entries with ``path`` and ``type``
        (``file``, ``dir``, ``symlink`` or ``submodule``); a file yields a
        single dict.
        """
        return await self._get(_contents_endpoint(owner, repo, path))

    async def get_file_content(self, owner: str, repo: str, path: str) -> str:
        """Fetch a file and decode its base64 content as UTF-8 text."""
        data = await self._get(_contents_endpoint(owner, repo, path))
        if not isinstance(data, dict) or "content" not in data:
            raise GitHubFetchError(f"GitHub returned no content for {path}.")
        try:
            raw = base64.b64decode(data["content"])
        except (binascii.Error, ValueError) as exc:
            raise GitHubFetchError(f"Could not decode content of {path}: {exc}")
        return raw.decode("utf-8", errors="replace")


# ── Flattening ────────────────────────────────────────────────────────

async def _walk(client: GitHubClient, owner: str, repo: str, path: str) -> str:
    listing = await client.list_contents(owner, repo, path)
    if not isinstance(listing, list):
        return ""

    contents = ""
    for item in listing:
        kind = item.get("type")
        if kind == "file":
            text = await client.get_file_content(owner, repo, item["path"])
            contents += f"{item['path']}:\n{text}\n\n"
        elif kind == "dir":
            contents += await _walk(client, owner, repo, item["path"])
    return contents


async def flatten_repo(
    client: GitHubClient, owner: str, repo: str, path: str = ""
) -> str:
    """
    Concatenate every file under ``path`` into one string.

    Files appear as ``"<path>:\\n<content>\\n\\n"`` in listing order,
    depth-first. Any failure aborts the whole walk and raises a single
    RepositoryFetchError; nothing fetched so far is returned.
    """
    try:
        contents = await _walk(client, owner, repo, path)
    except GitHubFetchError as exc:
        raise RepositoryFetchError(
            f"Failed to fetch repository {owner}/{repo}: {exc.message}",
            status_code=exc.status_code,
            rate_limited=exc.rate_limited,
        ) from exc
    except (httpx.HTTPError, AttributeError, KeyError, TypeError, ValueError) as exc:
        raise RepositoryFetchError(
            f"Failed to fetch repository {owner}/{repo}: {exc}"
        ) from exc

    logger.info("Flattened %s/%s: %d chars", owner, repo, len(contents))
    return contents
