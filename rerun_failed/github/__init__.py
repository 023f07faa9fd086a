"""GitHub API client package."""

from .auth import AuthProvider, AuthToken, EnvironmentTokenAuth, TokenAuth
from .client import GitHubClient, GitHubClientConfig
from .exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubGraphQLError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubResponseError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubValidationError,
)
from .models import (
    Commit,
    PullRequest,
    RunConclusion,
    RunStatus,
    WorkflowJob,
    WorkflowRun,
)
from .pagination import PageNumberPaginator, WorkflowRunsPage
from .rate_limiting import RateLimitInfo, RateLimitManager
from .source import GitHubRunSource, RunSource

__all__ = [
    "AuthProvider",
    "AuthToken",
    "Commit",
    "EnvironmentTokenAuth",
    "GitHubAuthenticationError",
    "GitHubClient",
    "GitHubClientConfig",
    "GitHubConnectionError",
    "GitHubError",
    "GitHubGraphQLError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "GitHubResponseError",
    "GitHubRunSource",
    "GitHubServerError",
    "GitHubTimeoutError",
    "GitHubValidationError",
    "PageNumberPaginator",
    "PullRequest",
    "RateLimitInfo",
    "RateLimitManager",
    "RunConclusion",
    "RunSource",
    "RunStatus",
    "TokenAuth",
    "WorkflowJob",
    "WorkflowRun",
    "WorkflowRunsPage",
]
