"""Parsing helpers for command-line values and repository references."""

import os
import re
import shutil
import subprocess  # nosec B404
from dataclasses import dataclass
from datetime import timedelta
from urllib.parse import urlparse

from .exceptions import RepositoryResolutionError

DEFAULT_HOST = "github.com"

_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # micro sign
    "μs": 1e-6,  # greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h|d)")
_SCP_REMOTE = re.compile(r"^(?:[\w.-]+@)?(?P<host>[\w.-]+):(?P<path>[^/].*)$")


def parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration such as ``24h``, ``1h30m`` or ``1.5h``.

    A bare ``0`` is accepted. Days (``d``) are accepted as an extension.

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)

    seconds = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration {value!r}")
        number, unit = match.groups()
        seconds += float(number) * _DURATION_UNITS[unit]
        pos = match.end()

    if pos == 0:
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=sign * seconds)


@dataclass(frozen=True)
class RepositoryRef:
    """A repository on a GitHub host."""

    owner: str
    name: str
    host: str = DEFAULT_HOST

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        if self.host == DEFAULT_HOST:
            return self.full_name
        return f"{self.host}/{self.full_name}"


def _strip_git_suffix(name: str) -> str:
    return name[:-4] if name.endswith(".git") else name


def parse_repository(value: str) -> RepositoryRef:
    """Parse ``[HOST/]OWNER/REPO`` or a clone URL into a ``RepositoryRef``.

    Raises:
        RepositoryResolutionError: If the value is not a repository reference
    """
    text = value.strip()

    if "://" in text:
        parsed = urlparse(text)
        host = parsed.hostname or DEFAULT_HOST
        parts = [p for p in parsed.path.split("/") if p]
    elif match := _SCP_REMOTE.match(text):
        host = match.group("host")
        parts = [p for p in match.group("path").split("/") if p]
    else:
        parts = [p for p in text.split("/") if p]
        host = DEFAULT_HOST
        if len(parts) == 3:
            host = parts.pop(0)

    if len(parts) != 2:
        raise RepositoryResolutionError(
            f'expected the "[HOST/]OWNER/REPO" format, got "{value}"'
        )

    owner, name = parts[0], _strip_git_suffix(parts[1])
    if not owner or not name:
        raise RepositoryResolutionError(
            f'expected the "[HOST/]OWNER/REPO" format, got "{value}"'
        )
    return RepositoryRef(owner=owner, name=name, host=host.lower())


def _origin_url(cwd: str | None = None) -> str | None:
    git = shutil.which("git")
    if git is None:
        return None
    try:
        result = subprocess.run(  # nosec B603
            [git, "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
            cwd=cwd,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    url = result.stdout.strip()
    return url if result.returncode == 0 and url else None


def resolve_repository(override: str | None, cwd: str | None = None) -> RepositoryRef:
    """Work out which repository to target.

    Order: explicit override, ``$GH_REPO``, the ``origin`` remote of the
    git checkout in ``cwd``.

    Raises:
        RepositoryResolutionError: If none of them yields a repository
    """
    for candidate in (override, os.environ.get("GH_REPO")):
        if candidate:
            return parse_repository(candidate)

    url = _origin_url(cwd)
    if url is None:
        raise RepositoryResolutionError(
            "could not determine repository: not a git checkout with an "
            "'origin' remote, use --repo"
        )
    try:
        return parse_repository(url)
    except RepositoryResolutionError as e:
        raise RepositoryResolutionError(f"could not determine repository: {e}") from e
