"""Tests for Settings loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from commander.config import (
    AgentSettings,
    ContainerSettings,
    LoggingSettings,
    Settings,
    get_settings,
    reset_settings,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run from an empty directory so no config.toml / .env leaks in."""
    monkeypatch.chdir(tmp_path)
    for var in ("CONTAINER__CLI", "AGENT__TIMEOUT_MINUTES", "LOGGING__LEVEL"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


class TestDefaults:
    def test_defaults(self, isolated):
        s = Settings()
        assert s.container.cli == "podman"
        assert s.container.image == "nixos/nix:latest"
        assert s.container.internal_port == 4096
        assert s.container.secrets_command == ["op", "run", "--"]
        assert s.health.timeout_seconds == 300
        assert s.health.poll_interval_seconds == 3
        assert s.health.request_timeout_seconds == 2
        assert s.agent.timeout_minutes == 30
        assert s.github.pr_label == "agent-pr"
        assert s.logging.level == "INFO"


class TestSources:
    def test_toml(self, isolated):
        (isolated / "config.toml").write_text(
            '[container]\ncli = "docker"\nmemory_limit = "8g"\n\n[agent]\ntimeout_minutes = 45\n'
        )
        s = Settings()
        assert s.container.cli == "docker"
        assert s.container.memory_limit == "8g"
        assert s.agent.timeout_minutes == 45

    def test_env_overrides_toml(self, isolated, monkeypatch):
        (isolated / "config.toml").write_text('[container]\ncli = "docker"\n')
        monkeypatch.setenv("CONTAINER__CLI", "podman-remote")
        assert Settings().container.cli == "podman-remote"

    def test_unknown_key_rejected(self, isolated):
        (isolated / "config.toml").write_text("[container]\nimgae = 'typo'\n")
        with pytest.raises(ValidationError):
            Settings()


class TestValidation:
    def test_level_upper_cased(self):
        assert LoggingSettings(level="debug").level == "DEBUG"

    def test_queue_size_clamped(self):
        assert AgentSettings(event_queue_size=0).event_queue_size == 1

    def test_frozen(self):
        with pytest.raises(ValidationError):
            ContainerSettings().cli = "docker"  # type: ignore[misc]


class TestSingleton:
    def test_cached_until_reset(self, isolated):
        reset_settings()
        first = get_settings()
        assert get_settings() is first
        reset_settings()
        assert get_settings() is not first
