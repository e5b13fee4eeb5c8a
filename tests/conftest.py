"""
Pytest configuration and fixtures for execpolicy tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from execpolicy.config import get_settings
from execpolicy.defaults import load_default_policy
from execpolicy.parser import load_policy
from execpolicy.policy import Policy


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def default_policy() -> Policy:
    """The built-in policy."""
    return load_default_policy()


@pytest.fixture
def sample_policy_source() -> str:
    """Return a small policy covering each matcher kind."""
    return """
define_program(
    program="cp",
    options=[flag("-r")],
    args=[ARG_RFILES, ARG_WFILE],
    system_path=["/bin/cp", "/usr/bin/cp"],
)

define_program(
    program="fake_executable",
    args=["subcommand", "sub-subcommand"],
)

define_program(
    program="diff",
    args=[ARG_RFILE, ARG_RFILE],
)
"""


@pytest.fixture
def sample_policy(sample_policy_source: str) -> Policy:
    """Parsed sample_policy_source."""
    return load_policy(sample_policy_source, "sample.policy")


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Settings are cached per process; isolate each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
