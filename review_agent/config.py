"""Application configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Final

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, BaseModel, ValidationError

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_AGENT_API_BASE_URL: Final[str] = "https://api.openai.com/v1"
DEFAULT_AGENT_MODEL: Final[str] = "Mistral-7B-Instruct-v0.3"
DEFAULT_GITHUB_API_BASE_URL: Final[str] = "https://api.github.com"


class SettingsError(RuntimeError):
    """Raised when application configuration is invalid or incomplete."""


@dataclass(frozen=True)
class GitHubCredentials:
    token: str | None = None
    app_id: int | None = None
    private_key_pem: str | None = None

    @property
    def uses_app(self) -> bool:
        return self.token is None


class Settings(BaseModel):
    """Runtime settings loaded from environment variables."""

    agent_api_key: str | None = None
    agent_api_base_url: AnyHttpUrl = DEFAULT_AGENT_API_BASE_URL
    agent_model: str = DEFAULT_AGENT_MODEL
    poll_interval: float = 1.0
    max_polls: int | None = 600
    max_attempts: int = 3
    github_api_base_url: AnyHttpUrl = DEFAULT_GITHUB_API_BASE_URL
    github_token: str | None = None
    github_app_id: int | None = None
    github_private_key_pem: str | None = None
    github_webhook_secret: str | None = None

    @property
    def normalized_agent_api_base_url(self) -> str:
        return str(self.agent_api_base_url).rstrip("/")

    @property
    def normalized_github_api_base_url(self) -> str:
        return str(self.github_api_base_url).rstrip("/")

    def require_agent_api_key(self) -> str:
        if not self.agent_api_key:
            raise SettingsError("Agent service is not configured. Missing environment variable: AGENT_API_KEY.")
        return self.agent_api_key

    def require_github_credentials(self) -> GitHubCredentials:
        """Return token credentials when present, otherwise GitHub App credentials."""

        if self.github_token:
            return GitHubCredentials(token=self.github_token)

        missing = []
        if self.github_app_id is None:
            missing.append("GITHUB_APP_ID")
        if not self.github_private_key_pem:
            missing.append("GITHUB_PRIVATE_KEY")
        if missing:
            raise SettingsError(
                "GitHub access is not configured. Set GITHUB_TOKEN or the GitHub App variables: "
                f"{', '.join(missing)}."
            )
        return GitHubCredentials(app_id=int(self.github_app_id), private_key_pem=self.github_private_key_pem)

    def require_webhook_secret(self) -> str:
        if not self.github_webhook_secret:
            raise SettingsError("Webhook is not configured. Missing environment variable: GITHUB_WEBHOOK_SECRET.")
        return self.github_webhook_secret


def _parse_int_env(name: str, raw_value: str | None, *, default: int | None) -> int | None:
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return int(raw_value)
    except ValueError as exc:
        raise SettingsError(f"Invalid value for {name}. It must be an integer.") from exc


def _parse_float_env(name: str, raw_value: str | None, *, default: float) -> float:
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return float(raw_value)
    except ValueError as exc:
        raise SettingsError(f"Invalid value for {name}. It must be a number.") from exc


def _build_settings() -> Settings:
    max_polls = _parse_int_env("AGENT_MAX_POLLS", os.getenv("AGENT_MAX_POLLS"), default=600)
    max_attempts = _parse_int_env("AGENT_MAX_ATTEMPTS", os.getenv("AGENT_MAX_ATTEMPTS"), default=3)
    if max_attempts is None or max_attempts < 1:
        raise SettingsError("AGENT_MAX_ATTEMPTS must be at least 1.")

    try:
        return Settings(
            agent_api_key=os.getenv("AGENT_API_KEY"),
            agent_api_base_url=os.getenv("AGENT_API_BASE_URL") or DEFAULT_AGENT_API_BASE_URL,
            agent_model=os.getenv("AGENT_MODEL") or DEFAULT_AGENT_MODEL,
            poll_interval=_parse_float_env("AGENT_POLL_INTERVAL", os.getenv("AGENT_POLL_INTERVAL"), default=1.0),
            # 0 disables the poll bound
            max_polls=max_polls or None,
            max_attempts=max_attempts,
            github_api_base_url=os.getenv("GITHUB_API_BASE_URL") or DEFAULT_GITHUB_API_BASE_URL,
            github_token=os.getenv("GITHUB_TOKEN") or None,
            github_app_id=_parse_int_env("GITHUB_APP_ID", os.getenv("GITHUB_APP_ID"), default=None),
            github_private_key_pem=os.getenv("GITHUB_PRIVATE_KEY"),
            github_webhook_secret=os.getenv("GITHUB_WEBHOOK_SECRET"),
        )
    except ValidationError as exc:
        raise SettingsError("Invalid application configuration.") from exc


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return _build_settings()


def get_settings() -> Settings:
    """Retrieve cached application settings."""
    return _cached_settings()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for tests)."""
    _cached_settings.cache_clear()
