"""
Tests for GitHub URL parsing, the contents client and repository flattening.

The GitHub API is simulated with an ``httpx.MockTransport`` serving a small
in-memory repository.
"""

import base64
import dataclasses

import httpx
import pytest

from enhancer.github_fetcher import (
    GitHubClient,
    GitHubFetchError,
    InvalidRepoUrlError,
    RepositoryFetchError,
    flatten_repo,
    parse_github_url,
)

CONTENTS_PREFIX = "/repos/octo/demo/contents/"


def fake_github(files: dict[str, str], extra: dict[str, list[dict]] | None = None):
    """
    Build a handler serving ``files`` ({path: text}) through the contents API.

    ``extra`` adds raw listing entries (e.g. symlinks) under a directory path.
    """
    extra = extra or {}

    def listing(path: str) -> list[dict]:
        entries: list[dict] = []
        seen: set[str] = set()
        prefix = f"{path}/" if path else ""
        for key in files:
            if not key.startswith(prefix):
                continue
            head, sep, _ = key[len(prefix):].partition("/")
            full = f"{prefix}{head}"
            if full in seen:
                continue
            seen.add(full)
            entries.append({"name": head, "path": full, "type": "dir" if sep else "file"})
        return entries + extra.get(path, [])

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path[len(CONTENTS_PREFIX):].rstrip("/")
        if path in files:
            encoded = base64.b64encode(files[path].encode()).decode()
            return httpx.Response(
                200,
                json={"type": "file", "path": path, "encoding": "base64", "content": encoded},
            )
        entries = listing(path)
        if not entries and path:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json=entries)

    return handler


# ═══════════════════════════════════════════════════════════════════════
#  URL Parsing Tests
# ═══════════════════════════════════════════════════════════════════════


class TestParseGitHubUrl:
    """Test parse_github_url with various URL formats."""

    def test_standard_url(self):
        assert parse_github_url("https://github.com/psf/requests") == ("psf", "requests")

    def test_url_with_trailing_slash(self):
        assert parse_github_url("https://github.com/psf/requests/") == ("psf", "requests")

    def test_url_with_git_suffix(self):
        assert parse_github_url("https://github.com/psf/requests.git") == ("psf", "requests")

    def test_url_without_scheme(self):
        assert parse_github_url("github.com/psf/requests") == ("psf", "requests")

    def test_www_host(self):
        assert parse_github_url("https://www.github.com/psf/requests") == ("psf", "requests")

    def test_url_with_whitespace(self):
        assert parse_github_url("  https://github.com/psf/requests  ") == ("psf", "requests")

    def test_url_with_subpath(self):
        assert parse_github_url("https://github.com/psf/requests/tree/main") == (
            "psf",
            "requests",
        )

    def test_dotted_and_hyphenated_names(self):
        assert parse_github_url("https://github.com/my-org/repo.js") == ("my-org", "repo.js")

    def test_invalid_url_not_github(self):
        with pytest.raises(InvalidRepoUrlError, match="github.com"):
            parse_github_url("https://gitlab.com/owner/repo")

    def test_lookalike_host(self):
        with pytest.raises(InvalidRepoUrlError):
            parse_github_url("https://notgithub.com/owner/repo")

    def test_invalid_url_no_repo(self):
        with pytest.raises(InvalidRepoUrlError):
            parse_github_url("https://github.com/onlyowner")

    def test_invalid_url_empty(self):
        with pytest.raises(InvalidRepoUrlError):
            parse_github_url("")

    def test_parse_error_is_a_client_error(self):
        with pytest.raises(GitHubFetchError) as exc_info:
            parse_github_url("not-a-url-at-all")
        assert exc_info.value.status_code == 400


# ═══════════════════════════════════════════════════════════════════════
#  Client Tests
# ═══════════════════════════════════════════════════════════════════════


class TestGitHubClient:

    @pytest.mark.asyncio
    async def test_unauthenticated_by_default(self, settings, upstream):
        upstream.handler = fake_github({"a.txt": "hello"})

        async with upstream.client() as http:
            await GitHubClient(settings, http).list_contents("octo", "demo")

        request = upstream.requests[0]
        assert "Authorization" not in request.headers
        assert request.headers["Accept"] == "application/vnd.github+json"
        assert str(request.url) == "https://api.github.com/repos/octo/demo/contents/"

    @pytest.mark.asyncio
    async def test_token_sent_as_bearer(self, settings, upstream):
        settings = dataclasses.replace(settings, github_token="ghp_test")
        upstream.handler = fake_github({"a.txt": "hello"})

        async with upstream.client() as http:
            await GitHubClient(settings, http).list_contents("octo", "demo")

        assert upstream.requests[0].headers["Authorization"] == "Bearer ghp_test"

    @pytest.mark.asyncio
    async def test_decodes_file_content(self, settings, upstream):
        upstream.handler = fake_github({"src/main.py": "print('héllo')\n"})

        async with upstream.client() as http:
            text = await GitHubClient(settings, http).get_file_content(
                "octo", "demo", "src/main.py"
            )

        assert text == "print('héllo')\n"

    @pytest.mark.asyncio
    async def test_decodes_content_with_line_breaks(self, settings, upstream):
        # GitHub wraps base64 content at 60 characters
        encoded = base64.b64encode(b"x" * 100).decode()
        wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
        upstream.handler = lambda request: httpx.Response(
            200, json={"type": "file", "encoding": "base64", "content": wrapped}
        )

        async with upstream.client() as http:
            text = await GitHubClient(settings, http).get_file_content("octo", "demo", "x")

        assert text == "x" * 100

    @pytest.mark.asyncio
    async def test_not_found(self, settings, upstream):
        upstream.handler = lambda request: httpx.Response(404, json={"message": "Not Found"})

        async with upstream.client() as http:
            with pytest.raises(GitHubFetchError) as exc_info:
                await GitHubClient(settings, http).list_contents("octo", "missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.rate_limited is False

    @pytest.mark.asyncio
    async def test_403_with_exhausted_quota_is_rate_limit(self, settings, upstream):
        upstream.handler = lambda request: httpx.Response(
            403, headers={"x-ratelimit-remaining": "0"}, json={"message": "API rate limit exceeded"}
        )

        async with upstream.client() as http:
            with pytest.raises(GitHubFetchError) as exc_info:
                await GitHubClient(settings, http).list_contents("octo", "demo")

        assert exc_info.value.rate_limited is True

    @pytest.mark.asyncio
    async def test_429_is_rate_limit(self, settings, upstream):
        upstream.handler = lambda request: httpx.Response(429)

        async with upstream.client() as http:
            with pytest.raises(GitHubFetchError) as exc_info:
                await GitHubClient(settings, http).list_contents("octo", "demo")

        assert exc_info.value.rate_limited is True

    @pytest.mark.asyncio
    async def test_plain_403_is_auth_failure(self, settings, upstream):
        upstream.handler = lambda request: httpx.Response(
            403, headers={"x-ratelimit-remaining": "42"}
        )

        async with upstream.client() as http:
            with pytest.raises(GitHubFetchError, match="denied") as exc_info:
                await GitHubClient(settings, http).list_contents("octo", "demo")

        assert exc_info.value.rate_limited is False

    @pytest.mark.asyncio
    async def test_network_error(self, settings, upstream):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        upstream.handler = handler

        async with upstream.client() as http:
            with pytest.raises(GitHubFetchError, match="Network error") as exc_info:
                await GitHubClient(settings, http).list_contents("octo", "demo")

        assert exc_info.value.status_code == 502


# ═══════════════════════════════════════════════════════════════════════
#  Flattening Tests
# ═══════════════════════════════════════════════════════════════════════


class TestFlattenRepo:

    @pytest.mark.asyncio
    async def test_flattens_nested_tree(self, settings, upstream):
        upstream.handler = fake_github({"a.txt": "hello", "dir/b.txt": "world"})

        async with upstream.client() as http:
            result = await flatten_repo(GitHubClient(settings, http), "octo", "demo")

        assert result == "a.txt:\nhello\n\ndir/b.txt:\nworld\n\n"
        assert result.count("a.txt:\nhello\n\n") == 1
        assert result.count("dir/b.txt:\nworld\n\n") == 1
        assert "dir:\n" not in result

    @pytest.mark.asyncio
    async def test_depth_first_listing_order(self, settings, upstream):
        upstream.handler = fake_github(
            {
                "README.md": "readme",
                "src/app.py": "app",
                "src/lib/util.py": "util",
                "src/z.py": "z",
                "setup.cfg": "cfg",
            }
        )

        async with upstream.client() as http:
            result = await flatten_repo(GitHubClient(settings, http), "octo", "demo")

        paths = [block.split(":\n", 1)[0] for block in result.split("\n\n") if block]
        assert paths == ["README.md", "src/app.py", "src/lib/util.py", "src/z.py", "setup.cfg"]

    @pytest.mark.asyncio
    async def test_special_characters_in_paths(self, settings, upstream):
        upstream.handler = fake_github(
            {"notes#1.md": "one", "my docs/a b?.txt": "two", "100%.txt": "three"}
        )

        async with upstream.client() as http:
            result = await flatten_repo(GitHubClient(settings, http), "octo", "demo")

        assert result == (
            "notes#1.md:\none\n\n"
            "my docs/a b?.txt:\ntwo\n\n"
            "100%.txt:\nthree\n\n"
        )
        raw_paths = [r.url.raw_path for r in upstream.requests]
        assert b"/repos/octo/demo/contents/notes%231.md" in raw_paths
        assert b"/repos/octo/demo/contents/my%20docs/a%20b%3F.txt" in raw_paths
        assert b"/repos/octo/demo/contents/100%25.txt" in raw_paths

    @pytest.mark.asyncio
    async def test_skips_other_entry_kinds(self, settings, upstream):
        upstream.handler = fake_github(
            {"a.txt": "hello"},
            extra={
                "": [
                    {"name": "link", "path": "link", "type": "symlink"},
                    {"name": "vendor", "path": "vendor", "type": "submodule"},
                ]
            },
        )

        async with upstream.client() as http:
            result = await flatten_repo(GitHubClient(settings, http), "octo", "demo")

        assert result == "a.txt:\nhello\n\n"
        assert len(upstream.requests) == 2

    @pytest.mark.asyncio
    async def test_empty_repository(self, settings, upstream):
        upstream.handler = lambda request: httpx.Response(200, json=[])

        async with upstream.client() as http:
            result = await flatten_repo(GitHubClient(settings, http), "octo", "demo")

        assert result == ""

    @pytest.mark.asyncio
    async def test_subtree_only(self, settings, upstream):
        upstream.handler = fake_github({"a.txt": "hello", "dir/b.txt": "world"})

        async with upstream.client() as http:
            result = await flatten_repo(GitHubClient(settings, http), "octo", "demo", "dir")

        assert result == "dir/b.txt:\nworld\n\n"

    @pytest.mark.asyncio
    async def test_failure_mid_traversal_discards_partial_result(self, settings, upstream):
        serve = fake_github({"a.txt": "hello", "dir/b.txt": "world"})

        def handler(request):
            if "dir" in request.url.path:
                return httpx.Response(500)
            return serve(request)

        upstream.handler = handler

        async with upstream.client() as http:
            with pytest.raises(RepositoryFetchError) as exc_info:
                await flatten_repo(GitHubClient(settings, http), "octo", "demo")

        err = exc_info.value
        assert err.message.startswith("Failed to fetch repository octo/demo")
        assert err.rate_limited is False
        assert isinstance(err.__cause__, GitHubFetchError)

    @pytest.mark.asyncio
    async def test_rate_limit_flag_is_preserved(self, settings, upstream):
        serve = fake_github({"a.txt": "hello"})

        def handler(request):
            if len(upstream.requests) == 2:
                return httpx.Response(429)
            return serve(request)

        upstream.handler = handler

        async with upstream.client() as http:
            with pytest.raises(RepositoryFetchError) as exc_info:
                await flatten_repo(GitHubClient(settings, http), "octo", "demo")

        assert exc_info.value.rate_limited is True
        assert "rate limit" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_not_found_repository(self, settings, upstream):
        upstream.handler = lambda request: httpx.Response(404, json={"message": "Not Found"})

        async with upstream.client() as http:
            with pytest.raises(RepositoryFetchError, match="Failed to fetch repository"):
                await flatten_repo(GitHubClient(settings, http), "nobody", "nothing")
