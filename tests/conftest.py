"""
Shared fixtures for the rerunner test suite.

Provides an in-memory run source, fixed clocks and an output buffer so the
pipeline can be exercised end to end without network access.
"""

import io
import os
from collections.abc import Generator
from unittest.mock import patch

import pytest

from rerun_failed.config.models import RerunOptions
from tests.fixtures.fake_source import FIXED_NOW, FakeRunSource


@pytest.fixture
def fixed_clock():
    """
    Why: Lookback filtering depends on "now"; tests need it pinned
    What: Returns a clock callable that always reports 2025-12-18T12:00:00Z
    How: Closes over the FIXED_NOW constant
    """
    return lambda: FIXED_NOW


@pytest.fixture
def output() -> io.StringIO:
    """Buffer standing in for stdout."""
    return io.StringIO()


@pytest.fixture
def fake_source() -> FakeRunSource:
    """Empty fake source; tests populate the attributes they need."""
    return FakeRunSource()


@pytest.fixture
def default_options() -> RerunOptions:
    return RerunOptions()


@pytest.fixture
def clean_github_env() -> Generator[None, None, None]:
    """
    Why: Token and repository lookups read the environment
    What: Removes GH_TOKEN, GITHUB_TOKEN, GH_REPO and RERUN_FAILED_CONFIG
    How: Patches os.environ for the duration of the test
    """
    names = ("GH_TOKEN", "GITHUB_TOKEN", "GH_REPO", "RERUN_FAILED_CONFIG")
    env = {k: v for k, v in os.environ.items() if k not in names}
    with patch.dict(os.environ, env, clear=True):
        yield
