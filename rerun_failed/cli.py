"""Command-line entry point.

Usage:
    rerun-failed [options]
    python -m rerun_failed [options]
"""

import argparse
import asyncio
import logging
import sys
from typing import Any

from rerun_failed import __version__
from rerun_failed.config import (
    ConfigurationError,
    ConfigurationValidationError,
    GitHubSettings,
    RepositoryRef,
    build_options,
    load_config,
    parse_duration,
    resolve_repository,
)
from rerun_failed.github import (
    EnvironmentTokenAuth,
    GitHubClient,
    GitHubClientConfig,
    GitHubError,
    GitHubRunSource,
)
from rerun_failed.rerunner import Rerunner, RerunError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser.

    Flags that are not given stay None so config file defaults apply.
    """
    parser = argparse.ArgumentParser(
        prog="rerun-failed",
        description=(
            "Rerun failed GitHub Actions workflow runs across branches, "
            "commits, and PRs."
        ),
    )
    parser.add_argument(
        "-R",
        "--repo",
        help="Select another repository using the [HOST/]OWNER/REPO format",
    )
    parser.add_argument("-b", "--branch", help="Filter runs by branch")
    parser.add_argument(
        "-L", "--limit", type=int, help="Limit the number of runs to process"
    )
    parser.add_argument(
        "-s",
        "--since",
        help="Only process runs since this duration (e.g. 24h, 1h)",
    )
    parser.add_argument("--pr", type=int, dest="pr_number", help="Filter runs by PR number")
    parser.add_argument(
        "--all-prs",
        dest="all_open_prs",
        action="store_true",
        default=None,
        help="Process runs for all open PRs",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Show what would be done without performing re-runs",
    )
    parser.add_argument(
        "--failed-only",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Only rerun failed jobs within a run (default: true)",
    )
    parser.add_argument(
        "--include-drafts",
        action="store_true",
        default=None,
        help="Include draft PRs when using --all-prs",
    )
    parser.add_argument(
        "--include-cancelled",
        action="store_true",
        default=None,
        help="Include cancelled runs",
    )
    parser.add_argument(
        "--include-timed-out",
        action="store_true",
        default=None,
        help="Include timed-out runs",
    )
    parser.add_argument("--config", help="Configuration file path")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Log level (default: WARNING)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Shortcut for --log-level DEBUG"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def option_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Collect the selection flags that were given on the command line.

    Raises:
        ConfigurationValidationError: If ``--since`` is not a duration
    """
    since = None
    if args.since is not None:
        try:
            since = parse_duration(args.since)
        except ValueError as e:
            raise ConfigurationValidationError(
                f"invalid duration for --since: {e}"
            ) from e

    return {
        "repo": args.repo,
        "branch": args.branch,
        "limit": args.limit,
        "since": since,
        "pr_number": args.pr_number,
        "all_open_prs": args.all_open_prs,
        "dry_run": args.dry_run,
        "failed_only": args.failed_only,
        "include_drafts": args.include_drafts,
        "include_cancelled": args.include_cancelled,
        "include_timed_out": args.include_timed_out,
    }


def client_config(settings: GitHubSettings, repository: RepositoryRef) -> GitHubClientConfig:
    """Translate configured transport settings for the repository's host."""
    config = GitHubClientConfig.for_host(
        repository.host,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
        retry_backoff_factor=settings.retry_backoff_factor,
        user_agent=settings.user_agent,
        max_concurrent_requests=settings.max_concurrent_requests,
    )
    if settings.base_url:
        config.base_url = settings.base_url
    if settings.graphql_url:
        config.graphql_url = settings.graphql_url
    return config


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


async def run(args: argparse.Namespace) -> None:
    """Load configuration, connect to GitHub and run one pass."""
    config = load_config(args.config)
    level = "DEBUG" if args.verbose else args.log_level or config.logging.level.value
    configure_logging(level)

    options = build_options(config, option_overrides(args))
    repository = resolve_repository(options.repo)
    logger.debug(f"Resolved repository {repository} with options {options!r}")

    auth = EnvironmentTokenAuth(hostname=repository.host)
    async with GitHubClient(auth, client_config(config.github, repository)) as client:
        source = GitHubRunSource(client, repository)
        await Rerunner(source, options).run()


def main(argv: list[str] | None = None) -> None:
    """Main entry point; exits 0 on success and 1 on fatal errors."""
    args = build_parser().parse_args(argv)

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(130)
    except (RerunError, ConfigurationError, GitHubError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
