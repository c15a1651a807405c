"""Centralized configuration: Pydantic BaseSettings with TOML + dotenv sources.

Non-secret settings live in config.toml. Secrets (API keys) live in .env.
Environment variables override both using ``__`` as the nested delimiter
(e.g. ``AI__PROVIDER=openai``, ``SECRETS__OPENAI_API_KEY=...``). Secrets use
SecretStr for masking in logs.

Priority (highest wins): init args > env vars > .env > config.toml

Usage::

    from wabot.config import get_settings

    s = get_settings()
    print(s.session.watchdog_seconds)
    print(s.ai.provider)
"""

from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in config.toml)
# ---------------------------------------------------------------------------

_DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful WhatsApp assistant. "
    "Answer clearly and usefully in 3-5 sentences at most. "
    "For technical questions give concise steps and examples. "
    "Avoid very long messages; short lists are fine when they help."
)


class _StrictModel(BaseModel):
    """Base for all config sub-models: reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class SessionConfig(_StrictModel):
    auth_dir: str = "auth"  # relative to project root or absolute
    watchdog_seconds: float = 40.0
    reconnect_delay_seconds: float = 1.5

    @field_validator("watchdog_seconds", "reconnect_delay_seconds")
    @classmethod
    def positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timer durations must be positive")
        return v


class ServerConfig(_StrictModel):
    host: str = "0.0.0.0"
    port: int = 3000


class LoggingConfig(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


class AIConfig(_StrictModel):
    provider: Literal["gemini", "openai", "anthropic", "local"] = "gemini"
    system_prompt: str = _DEFAULT_SYSTEM_PROMPT
    gemini_model: str = "gemini-1.5-flash"
    openai_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-3-5-sonnet-latest"
    local_url: str | None = None
    local_model: str = "llama3.1"
    temperature: float = 0.7
    max_tokens: int = 500
    timeout_seconds: float = 60.0

    @field_validator("provider", mode="before")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v


# NOTE: Keep every credential here so it is masked as SecretStr
class SecretsConfig(_StrictModel):
    google_api_key: SecretStr | None = None
    openai_api_key: SecretStr | None = None
    anthropic_api_key: SecretStr | None = None


class HistoryConfig(_StrictModel):
    db_file: str = "history.db"  # inside data_dir
    window: int = 8
    max_text_chars: int = 2000

    @field_validator("window", "max_text_chars")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        return max(1, v)


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="config.toml",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    session: SessionConfig = SessionConfig()
    server: ServerConfig = ServerConfig()
    logging: LoggingConfig = LoggingConfig()
    ai: AIConfig = AIConfig()
    secrets: SecretsConfig = SecretsConfig()
    history: HistoryConfig = HistoryConfig()

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

    # --- Computed properties ---

    @cached_property
    def project_root(self) -> Path:
        return Path.cwd()

    @cached_property
    def data_dir(self) -> Path:
        return (self.project_root / "data").resolve()

    @cached_property
    def auth_dir(self) -> Path:
        p = Path(self.session.auth_dir).expanduser()
        if not p.is_absolute():
            p = self.project_root / p
        return p.resolve()

    @cached_property
    def history_db_path(self) -> Path:
        return self.data_dir / self.history.db_file


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
