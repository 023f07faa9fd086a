"""GitHub API client with authentication, rate limit tracking and retries."""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import aiohttp

from .auth import AuthProvider
from .exceptions import (
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
from .rate_limiting import RateLimitManager

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD"})


@dataclass
class GitHubClientConfig:
    """Configuration for GitHub client."""

    base_url: str = "https://api.github.com"
    graphql_url: str = "https://api.github.com/graphql"
    timeout: int = 30
    max_retries: int = 3
    retry_backoff_factor: float = 2.0
    user_agent: str = "gh-rerun-failed/0.3"
    max_concurrent_requests: int = 20

    @classmethod
    def for_host(cls, host: str, **overrides: Any) -> "GitHubClientConfig":
        """Build a config for github.com or a GitHub Enterprise Server host."""
        if host in ("", "github.com", "api.github.com"):
            return cls(**overrides)
        return cls(
            base_url=f"https://{host}/api/v3/",
            graphql_url=f"https://{host}/api/graphql",
            **overrides,
        )


class GitHubClient:
    """Async GitHub REST and GraphQL client."""

    def __init__(
        self,
        auth: AuthProvider,
        config: GitHubClientConfig | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            auth: Authentication provider
            config: Client configuration
        """
        self.auth = auth
        self.config = config or GitHubClientConfig()
        self.rate_limiter = RateLimitManager()

        # HTTP session will be initialized on first use
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()
        self._request_semaphore = asyncio.Semaphore(
            self.config.max_concurrent_requests
        )

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is initialized."""
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    timeout = aiohttp.ClientTimeout(total=self.config.timeout)
                    connector = aiohttp.TCPConnector(limit=100, limit_per_host=30)

                    self._session = aiohttp.ClientSession(
                        timeout=timeout,
                        connector=connector,
                        headers={
                            "User-Agent": self.config.user_agent,
                            "Accept": "application/vnd.github+json",
                            "X-GitHub-Api-Version": "2022-11-28",
                        },
                    )

    async def close(self) -> None:
        """Close HTTP session and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _generate_correlation_id(self) -> str:
        """Generate correlation ID for request tracking."""
        return str(uuid.uuid4())[:8]

    def _url(self, path: str) -> str:
        base = self.config.base_url
        if not base.endswith("/"):
            base += "/"
        return urljoin(base, path.lstrip("/"))

    async def _make_request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        retry: bool | None = None,
    ) -> Any:
        """Make HTTP request and decode the JSON body.

        Timeouts, connection errors and 5xx responses are retried with
        exponential backoff when ``retry`` is true. By default only
        idempotent methods are retried, so a rerun POST is sent once.

        Args:
            method: HTTP method
            url: Request URL
            params: Query parameters
            data: JSON request body
            retry: Override the retry decision for this request

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            GitHubError: Various GitHub API errors
        """
        correlation_id = self._generate_correlation_id()
        if retry is None:
            retry = method.upper() in IDEMPOTENT_METHODS
        attempts = self.config.max_retries + 1 if retry else 1

        self.rate_limiter.check_rate_limit()

        auth_token = await self.auth.get_token()
        request_kwargs: dict[str, Any] = {
            "params": params,
            "headers": auth_token.to_header(),
        }
        if data is not None:
            request_kwargs["json"] = data

        await self._ensure_session()
        if not self._session:
            raise GitHubConnectionError("Failed to initialize HTTP session")

        last_exception: GitHubError | None = None
        for attempt in range(attempts):
            try:
                async with self._request_semaphore:
                    start_time = time.time()
                    logger.debug(
                        f"GitHub API request [{correlation_id}] {method} {url} "
                        f"params={params} (attempt {attempt + 1})"
                    )

                    async with self._session.request(
                        method, url, **request_kwargs
                    ) as response:
                        request_time = time.time() - start_time
                        self.rate_limiter.update_rate_limit(response.headers)

                        logger.debug(
                            f"GitHub API response [{correlation_id}] "
                            f"{response.status} in {request_time:.2f}s"
                        )

                        if response.status in (200, 201, 202, 204):
                            if response.status == 204:
                                return None
                            body = await response.text()
                            return json.loads(body) if body else None

                        await self._handle_error_response(response, correlation_id)

            except TimeoutError:
                last_exception = GitHubTimeoutError(
                    f"Request timeout for {method} {url}"
                )

            except aiohttp.ClientError as e:
                last_exception = GitHubConnectionError(
                    f"Connection error for {method} {url}: {e}"
                )

            except GitHubServerError as e:
                last_exception = e

            if attempt < attempts - 1:
                backoff_time = self.config.retry_backoff_factor**attempt
                logger.warning(
                    f"Request [{correlation_id}] failed (attempt {attempt + 1}), "
                    f"retrying in {backoff_time:.1f}s: {last_exception}"
                )
                await asyncio.sleep(backoff_time)

        if last_exception:
            raise last_exception
        raise GitHubError(f"Request failed after {attempts} attempts")

    async def _handle_error_response(
        self, response: aiohttp.ClientResponse, correlation_id: str
    ) -> None:
        """Handle error responses from GitHub API.

        Args:
            response: HTTP response
            correlation_id: Request correlation ID

        Raises:
            GitHubError: Appropriate error based on status code
        """
        try:
            error_data = await response.json()
        except (json.JSONDecodeError, aiohttp.ContentTypeError):
            error_data = {"message": await response.text()}
        if not isinstance(error_data, dict):
            error_data = {"message": str(error_data)}

        error_message = error_data.get("message") or f"HTTP {response.status}"

        logger.debug(
            f"GitHub API error [{correlation_id}] {response.status}: {error_message}"
        )

        if response.status == 401:
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status in (403, 429):
            remaining = response.headers.get("X-RateLimit-Remaining")
            if "rate limit" in error_message.lower() or remaining == "0":
                reset_time = response.headers.get("X-RateLimit-Reset")
                raise GitHubRateLimitError(
                    error_message,
                    reset_time=int(reset_time) if reset_time else None,
                    remaining=int(remaining or 0),
                    limit=int(response.headers.get("X-RateLimit-Limit", "0")),
                )
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status == 404:
            raise GitHubNotFoundError(error_message, response.status, error_data)
        elif response.status == 422:
            raise GitHubValidationError(error_message, response.status, error_data)
        elif 500 <= response.status < 600:
            raise GitHubServerError(error_message, response.status, error_data)
        else:
            raise GitHubError(error_message, response.status, error_data)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make GET request to GitHub REST API.

        Args:
            path: API path (e.g., '/repos/owner/repo/actions/runs')
            params: Query parameters

        Returns:
            JSON response data
        """
        return await self._make_request("GET", self._url(path), params)

    async def post(
        self,
        path: str,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make POST request to GitHub REST API.

        Args:
            path: API path
            data: Request body data
            params: Query parameters

        Returns:
            JSON response data, None for empty bodies
        """
        return await self._make_request("POST", self._url(path), params, data)

    async def graphql(
        self, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run a read-only GraphQL query and return its ``data`` object.

        Raises:
            GitHubGraphQLError: If the response carries errors
        """
        payload = await self._make_request(
            "POST",
            self.config.graphql_url,
            data={"query": query, "variables": variables or {}},
            retry=True,
        )
        payload = payload or {}
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(e.get("message", "unknown error") for e in errors)
            raise GitHubGraphQLError(f"GraphQL query failed: {messages}", errors)
        data: dict[str, Any] = payload.get("data") or {}
        return data

    async def get_rate_limit(self) -> dict[str, Any]:
        """Get current rate limit status."""
        data: dict[str, Any] = await self.get("/rate_limit")
        return data
