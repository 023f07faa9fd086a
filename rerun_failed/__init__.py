"""Rerun failed GitHub Actions workflow runs across branches, commits and PRs."""

__version__ = "0.3.0"
