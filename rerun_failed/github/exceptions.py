"""GitHub API client exceptions."""

from typing import Any


class GitHubError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        """Initialize GitHub error.

        Args:
            message: Error message
            status_code: HTTP status code, if a response was received
            response_data: Decoded error body returned by the API
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class GitHubAuthenticationError(GitHubError):
    """Raised when no usable token is available or GitHub rejects it."""


class GitHubRateLimitError(GitHubError):
    """Raised when the core rate limit budget is exhausted."""

    def __init__(
        self,
        message: str,
        reset_time: int | None = None,
        remaining: int = 0,
        limit: int = 0,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            reset_time: Unix timestamp when the budget resets
            remaining: Remaining API calls
            limit: Total budget for the window
        """
        super().__init__(message, status_code=403)
        self.reset_time = reset_time
        self.remaining = remaining
        self.limit = limit


class GitHubNotFoundError(GitHubError):
    """Raised when a repository, run, commit or PR does not exist."""


class GitHubValidationError(GitHubError):
    """Raised on 422 responses, e.g. a run that cannot be re-run."""


class GitHubGraphQLError(GitHubError):
    """Raised when a GraphQL response carries an ``errors`` array."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message, status_code=200, response_data={"errors": errors})
        self.errors = errors or []


class GitHubServerError(GitHubError):
    """Raised when GitHub answers with a 5xx status."""


class GitHubConnectionError(GitHubError):
    """Raised when the connection to GitHub fails."""


class GitHubTimeoutError(GitHubError):
    """Raised when a request exceeds the client timeout."""


class GitHubResponseError(GitHubError):
    """Raised when a response body does not have the expected shape."""
