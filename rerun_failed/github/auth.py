"""GitHub authentication handlers."""

import asyncio
import logging
import os
import shutil
import subprocess  # nosec B404
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .exceptions import GitHubAuthenticationError

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("GH_TOKEN", "GITHUB_TOKEN")


@dataclass
class AuthToken:
    """Authentication token with its header scheme."""

    token: str
    token_type: str = "Bearer"

    def to_header(self) -> dict[str, str]:
        """Convert to authorization header."""
        return {"Authorization": f"{self.token_type} {self.token}"}


class AuthProvider(ABC):
    """Abstract base class for authentication providers."""

    @abstractmethod
    async def get_token(self) -> AuthToken:
        """Get authentication token."""


class TokenAuth(AuthProvider):
    """Static token authentication."""

    DEFAULT_TOKEN_TYPE = "Bearer"  # nosec B105

    def __init__(self, token: str, token_type: str | None = None):
        """Initialize token authentication.

        Args:
            token: GitHub token (PAT, fine-grained or OAuth)
            token_type: Authorization scheme. Uses Bearer by default.
        """
        if not token:
            raise GitHubAuthenticationError("A GitHub token is required")
        self._token = AuthToken(
            token=token, token_type=token_type or self.DEFAULT_TOKEN_TYPE
        )

    async def get_token(self) -> AuthToken:
        """Get authentication token."""
        return self._token


class EnvironmentTokenAuth(AuthProvider):
    """Resolve a token the way the gh CLI does.

    Looks at ``GH_TOKEN`` and ``GITHUB_TOKEN`` first, then asks an installed
    ``gh`` binary for the token of the logged-in account. The lookup happens
    once; later calls reuse the cached token.
    """

    def __init__(self, hostname: str = "github.com"):
        self.hostname = hostname
        self._token: AuthToken | None = None

    def _from_environment(self) -> str | None:
        for name in TOKEN_ENV_VARS:
            value = os.environ.get(name)
            if value:
                logger.debug(f"Using GitHub token from ${name}")
                return value
        return None

    def _from_gh_cli(self) -> str | None:
        gh = shutil.which("gh")
        if gh is None:
            return None
        try:
            result = subprocess.run(  # nosec B603
                [gh, "auth", "token", "--hostname", self.hostname],
                capture_output=True,
                text=True,
                timeout=10,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"gh auth token failed: {e}")
            return None
        token = result.stdout.strip()
        if result.returncode != 0 or not token:
            return None
        logger.debug("Using GitHub token from gh auth token")
        return token

    async def get_token(self) -> AuthToken:
        """Get authentication token, resolving it on first use."""
        if self._token is None:
            token = self._from_environment()
            if not token:
                token = await asyncio.to_thread(self._from_gh_cli)
            if not token:
                raise GitHubAuthenticationError(
                    "No GitHub token found. Set GH_TOKEN or run 'gh auth login'."
                )
            self._token = AuthToken(token=token)
        return self._token
