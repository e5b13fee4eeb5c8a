"""
Default policy registry.

The built-in policy lives in default.policy next to this module. It is
parsed on first use and cached for the life of the process; the returned
Policy is read-only and may be shared freely.

A parse failure here means the shipped policy data is broken. It is raised
as PolicyParseError and should be treated as fatal at startup.
"""

import logging
from functools import lru_cache
from pathlib import Path

from execpolicy.parser import PolicyParser
from execpolicy.policy import Policy

logger = logging.getLogger(__name__)

DEFAULT_POLICY_NAME = "default.policy"


def default_policy_path() -> Path:
    """Path of the embedded default policy file."""
    return Path(__file__).resolve().parent / DEFAULT_POLICY_NAME


def default_policy_source() -> str:
    """Raw PDL text of the embedded default policy."""
    return default_policy_path().read_text(encoding="utf-8")


@lru_cache
def load_default_policy() -> Policy:
    """
    Load the built-in policy.

    Parsed once per process; later calls return the same instance.

    Raises:
        PolicyParseError: If the embedded policy is malformed
    """
    policy = PolicyParser(DEFAULT_POLICY_NAME, default_policy_source()).parse()
    logger.info("Loaded default policy with %d programs", len(policy.programs))
    return policy
