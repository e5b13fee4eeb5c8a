"""
Unit tests for settings and policy resolution.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from execpolicy.config import Settings, get_settings, resolve_policy
from execpolicy.defaults import load_default_policy


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("EXECPOLICY_POLICY_PATH", raising=False)
        monkeypatch.delenv("EXECPOLICY_LOG_LEVEL", raising=False)
        settings = Settings(_env_file=None)
        assert settings.policy_path is None
        assert settings.log_level == "WARNING"

    def test_env_vars(self, monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> None:
        monkeypatch.setenv("EXECPOLICY_POLICY_PATH", str(temp_dir / "p.policy"))
        monkeypatch.setenv("EXECPOLICY_LOG_LEVEL", "debug")
        settings = Settings(_env_file=None)
        assert settings.policy_path == temp_dir / "p.policy"
        assert settings.log_level == "DEBUG"

    def test_invalid_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXECPOLICY_LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


class TestResolvePolicy:
    """Tests for resolve_policy()."""

    def test_default_policy(self) -> None:
        settings = Settings(_env_file=None, policy_path=None)
        assert resolve_policy(settings) is load_default_policy()

    def test_settings_path(self, temp_dir: Path, sample_policy_source: str) -> None:
        path = temp_dir / "s.policy"
        path.write_text(sample_policy_source)
        settings = Settings(_env_file=None, policy_path=path)
        assert "fake_executable" in resolve_policy(settings).programs

    def test_explicit_path_wins(self, temp_dir: Path, sample_policy_source: str) -> None:
        chosen = temp_dir / "chosen.policy"
        chosen.write_text('define_program(program="only")\n')
        ignored = temp_dir / "ignored.policy"
        ignored.write_text(sample_policy_source)

        settings = Settings(_env_file=None, policy_path=ignored)
        assert set(resolve_policy(settings, chosen).programs) == {"only"}

    def test_missing_file(self, temp_dir: Path) -> None:
        settings = Settings(_env_file=None, policy_path=temp_dir / "missing.policy")
        with pytest.raises(FileNotFoundError):
            resolve_policy(settings)
