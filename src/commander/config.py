"""Centralized configuration — Pydantic BaseSettings with TOML + dotenv sources.

Non-secret settings live in config.toml. Credentials are never stored here:
they are injected into the container by ``container.secrets_command``
(1Password's ``op run`` by default). Environment variables override both
using ``__`` as the nested delimiter (e.g. ``CONTAINER__CLI=docker``).

Priority (highest wins): init args > env vars > .env > config.toml

Settings are built once at startup and handed to each component; they are
frozen so nothing can change them mid-run.

Usage::

    from commander.config import get_settings

    s = get_settings()
    print(s.container.image)
    print(s.agent.timeout_minutes)
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in config.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models; reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid", "frozen": True}


class ContainerSettings(_StrictModel):
    cli: str = "podman"  # "podman" | "docker"
    image: str = "nixos/nix:latest"
    internal_port: int = 4096  # opencode serve port inside the container
    cpu_limit: str = "2.0"
    memory_limit: str = "4g"
    # Prefix that injects secrets into the engine's environment; [] to disable
    secrets_command: list[str] = ["op", "run", "--"]
    passthrough_env: list[str] = ["ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GITHUB_TOKEN"]
    stop_grace_seconds: int = 10
    log_tail_lines: int = 100
    command_timeout_seconds: float = 120

    @field_validator("stop_grace_seconds", "log_tail_lines")
    @classmethod
    def non_negative(cls, v: int) -> int:
        return max(0, v)


class HealthSettings(_StrictModel):
    timeout_seconds: float = 300  # first nix develop in a fresh container is slow
    poll_interval_seconds: float = 3
    request_timeout_seconds: float = 2


class AgentSettings(_StrictModel):
    timeout_minutes: float = 30
    event_queue_size: int = 256

    @field_validator("event_queue_size")
    @classmethod
    def clamp_queue_size(cls, v: int) -> int:
        return max(1, v)


class GitHubSettings(_StrictModel):
    cli: str = "gh"
    pr_label: str = "agent-pr"


class LoggingSettings(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="config.toml",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    container: ContainerSettings = ContainerSettings()
    health: HealthSettings = HealthSettings()
    agent: AgentSettings = AgentSettings()
    github: GitHubSettings = GitHubSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > .env > config.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings  # noqa: PLW0603
    _settings = None
