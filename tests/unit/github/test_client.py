"""
Unit tests for GitHub API client.

Why: Ensure the client maps error responses onto the right exceptions,
     retries only requests that are safe to repeat, and tracks rate limit
     headers from every response.

What: Tests GitHubClient request handling, retry behavior, GraphQL error
      handling and GitHubClientConfig host mapping.

How: Uses aioresponses to serve canned HTTP responses and patches
     asyncio.sleep so backoff does not slow the suite down.
"""

import asyncio
from collections.abc import Iterator
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from aioresponses import aioresponses

from rerun_failed.github.auth import TokenAuth
from rerun_failed.github.client import GitHubClient, GitHubClientConfig
from rerun_failed.github.exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubGraphQLError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubValidationError,
)

API = "https://api.github.com"
RUNS_URL = f"{API}/repos/owner/repo/actions/runs/1"
RERUN_URL = f"{API}/repos/owner/repo/actions/runs/1/rerun-failed-jobs"
GRAPHQL_URL = f"{API}/graphql"


def request_count(mocked: aioresponses, method: str) -> int:
    return sum(
        len(calls) for (verb, _), calls in mocked.requests.items() if verb == method
    )


class TestGitHubClientConfig:
    """Test GitHubClientConfig data class."""

    def test_defaults(self) -> None:
        config = GitHubClientConfig()

        assert config.base_url == "https://api.github.com"
        assert config.graphql_url == "https://api.github.com/graphql"
        assert config.timeout == 30
        assert config.max_retries == 3
        assert config.retry_backoff_factor == 2.0
        assert config.max_concurrent_requests == 20

    def test_for_public_host(self) -> None:
        config = GitHubClientConfig.for_host("github.com", timeout=10)

        assert config.base_url == "https://api.github.com"
        assert config.timeout == 10

    def test_for_enterprise_host(self) -> None:
        """Test that GHES hosts get the /api/v3 REST root and /api/graphql."""
        config = GitHubClientConfig.for_host("ghe.example.com")

        assert config.base_url == "https://ghe.example.com/api/v3/"
        assert config.graphql_url == "https://ghe.example.com/api/graphql"


class TestGitHubClient:
    """Test GitHubClient class."""

    @pytest.fixture
    def no_backoff(self) -> Iterator[AsyncMock]:
        with patch(
            "rerun_failed.github.client.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            yield sleep

    @pytest.fixture
    def github_client(self) -> GitHubClient:
        config = GitHubClientConfig(max_retries=2)
        return GitHubClient(auth=TokenAuth("test_token"), config=config)

    @pytest.mark.asyncio
    async def test_get_success_sends_auth_header(self, github_client) -> None:
        with aioresponses() as m:
            m.get(RUNS_URL, payload={"id": 1, "name": "CI"})

            async with github_client:
                result = await github_client.get("/repos/owner/repo/actions/runs/1")

            assert result == {"id": 1, "name": "CI"}
            call = next(iter(m.requests.values()))[0]
            assert call.kwargs["headers"] == {"Authorization": "Bearer test_token"}

    @pytest.mark.asyncio
    async def test_empty_bodies_return_none(self, github_client) -> None:
        with aioresponses() as m:
            m.post(RERUN_URL, status=201, body="")
            m.post(f"{API}/repos/owner/repo/actions/runs/2/rerun", status=204)

            async with github_client:
                first = await github_client.post(
                    "/repos/owner/repo/actions/runs/1/rerun-failed-jobs"
                )
                second = await github_client.post(
                    "/repos/owner/repo/actions/runs/2/rerun"
                )

        assert first is None
        assert second is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,exception",
        [
            (401, GitHubAuthenticationError),
            (403, GitHubAuthenticationError),
            (404, GitHubNotFoundError),
            (422, GitHubValidationError),
            (418, GitHubError),
        ],
    )
    async def test_error_status_mapping(
        self, github_client, status: int, exception: type[GitHubError]
    ) -> None:
        with aioresponses() as m:
            m.get(RUNS_URL, status=status, payload={"message": "nope"})

            async with github_client:
                with pytest.raises(exception) as exc_info:
                    await github_client.get("/repos/owner/repo/actions/runs/1")

        assert exc_info.value.status_code == status
        assert str(exc_info.value) == "nope"

    @pytest.mark.asyncio
    async def test_rate_limit_error(self, github_client) -> None:
        with aioresponses() as m:
            m.get(
                RUNS_URL,
                status=403,
                payload={"message": "API rate limit exceeded for user"},
                headers={
                    "X-RateLimit-Limit": "5000",
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": "1234567890",
                },
            )

            async with github_client:
                with pytest.raises(GitHubRateLimitError) as exc_info:
                    await github_client.get("/repos/owner/repo/actions/runs/1")

        assert exc_info.value.remaining == 0
        assert exc_info.value.reset_time == 1234567890
        assert exc_info.value.limit == 5000

    @pytest.mark.asyncio
    async def test_retries_server_errors_on_get(self, github_client, no_backoff) -> None:
        """
        Why: Transient 5xx responses on reads should not fail the pass
        What: A 502 followed by a 200 returns the second response
        How: Registers two responses in order and checks backoff was applied
        """
        with aioresponses() as m:
            m.get(RUNS_URL, status=502, payload={"message": "Bad Gateway"})
            m.get(RUNS_URL, payload={"id": 1})

            async with github_client:
                result = await github_client.get("/repos/owner/repo/actions/runs/1")

            assert result == {"id": 1}
            assert request_count(m, "GET") == 2
        no_backoff.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_retry_exhaustion(self, github_client, no_backoff) -> None:
        with aioresponses() as m:
            m.get(RUNS_URL, status=500, payload={"message": "boom"}, repeat=True)

            async with github_client:
                with pytest.raises(GitHubServerError):
                    await github_client.get("/repos/owner/repo/actions/runs/1")

            assert request_count(m, "GET") == 3
        assert [call.args[0] for call in no_backoff.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_post_is_not_retried(self, github_client, no_backoff) -> None:
        """
        Why: Repeating a rerun request could start the same run twice
        What: A 500 on the rerun POST is raised after a single attempt
        How: Serves 500 repeatedly and counts POST requests
        """
        with aioresponses() as m:
            m.post(RERUN_URL, status=500, payload={"message": "boom"}, repeat=True)

            async with github_client:
                with pytest.raises(GitHubServerError):
                    await github_client.post(
                        "/repos/owner/repo/actions/runs/1/rerun-failed-jobs"
                    )

            assert request_count(m, "POST") == 1
        no_backoff.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, github_client, no_backoff) -> None:
        with aioresponses() as m:
            m.get(RUNS_URL, status=404, payload={"message": "Not Found"}, repeat=True)

            async with github_client:
                with pytest.raises(GitHubNotFoundError):
                    await github_client.get("/repos/owner/repo/actions/runs/1")

            assert request_count(m, "GET") == 1

    @pytest.mark.asyncio
    async def test_connection_error(self, github_client, no_backoff) -> None:
        with aioresponses() as m:
            m.get(
                RUNS_URL,
                exception=aiohttp.ClientConnectionError("refused"),
                repeat=True,
            )

            async with github_client:
                with pytest.raises(GitHubConnectionError, match="refused"):
                    await github_client.get("/repos/owner/repo/actions/runs/1")

    @pytest.mark.asyncio
    async def test_timeout_error(self, github_client, no_backoff) -> None:
        with aioresponses() as m:
            m.get(RUNS_URL, exception=asyncio.TimeoutError(), repeat=True)

            async with github_client:
                with pytest.raises(GitHubTimeoutError):
                    await github_client.get("/repos/owner/repo/actions/runs/1")

    @pytest.mark.asyncio
    async def test_rate_limit_headers_tracked(self, github_client) -> None:
        """
        Why: Responses from api.github.com carry lowercase rate limit headers
        What: The lowercase headers of a response are recorded for the resource
        How: Serves x-ratelimit-* headers through aioresponses
        """
        with aioresponses() as m:
            m.get(
                RUNS_URL,
                payload={"id": 1},
                headers={
                    "x-ratelimit-limit": "5000",
                    "x-ratelimit-remaining": "4500",
                    "x-ratelimit-reset": "1234567890",
                    "x-ratelimit-used": "500",
                    "x-ratelimit-resource": "core",
                },
            )

            async with github_client:
                await github_client.get("/repos/owner/repo/actions/runs/1")

        rate_limit = github_client.rate_limiter.get_rate_limit("core")
        assert rate_limit is not None
        assert rate_limit.remaining == 4500
        assert rate_limit.used == 500


class TestGraphQL:
    """Test GitHubClient.graphql."""

    @pytest.fixture
    def github_client(self) -> GitHubClient:
        return GitHubClient(auth=TokenAuth("test_token"))

    @pytest.mark.asyncio
    async def test_returns_data(self, github_client) -> None:
        with aioresponses() as m:
            m.post(GRAPHQL_URL, payload={"data": {"repository": {"id": "R_1"}}})

            async with github_client:
                data = await github_client.graphql("query { x }", {"owner": "o"})

            assert data == {"repository": {"id": "R_1"}}
            call = next(iter(m.requests.values()))[0]
            assert call.kwargs["json"] == {
                "query": "query { x }",
                "variables": {"owner": "o"},
            }

    @pytest.mark.asyncio
    async def test_errors_raise(self, github_client) -> None:
        with aioresponses() as m:
            m.post(
                GRAPHQL_URL,
                payload={
                    "data": None,
                    "errors": [{"message": "Could not resolve to a Repository"}],
                },
            )

            async with github_client:
                with pytest.raises(GitHubGraphQLError, match="Could not resolve"):
                    await github_client.graphql("query { x }")

    @pytest.mark.asyncio
    async def test_queries_are_retried(self, github_client) -> None:
        with patch("rerun_failed.github.client.asyncio.sleep", new_callable=AsyncMock):
            with aioresponses() as m:
                m.post(GRAPHQL_URL, status=503, payload={"message": "unavailable"})
                m.post(GRAPHQL_URL, payload={"data": {"ok": True}})

                async with github_client:
                    data = await github_client.graphql("query { ok }")

        assert data == {"ok": True}
