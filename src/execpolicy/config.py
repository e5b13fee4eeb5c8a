"""Settings for execpolicy, loaded from EXECPOLICY_* environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from execpolicy.defaults import load_default_policy
from execpolicy.parser import load_policy_file
from execpolicy.policy import Policy


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="EXECPOLICY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    policy_path: Path | None = Field(
        default=None,
        description="PDL file to use instead of the built-in default policy",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Log level used by the command-line front end",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept log levels in any case."""
        return v.upper() if isinstance(v, str) else v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def resolve_policy(settings: Settings, policy_path: Path | None = None) -> Policy:
    """
    Load the policy a caller should use.

    An explicit path wins over settings.policy_path; with neither, the
    built-in default policy is returned.

    Raises:
        FileNotFoundError: If the chosen policy file doesn't exist
        PolicyParseError: If the chosen policy is malformed
    """
    path = policy_path or settings.policy_path
    if path is None:
        return load_default_policy()
    return load_policy_file(path)
