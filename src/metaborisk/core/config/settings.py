"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """MetaboRisk server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; remote access must be enabled explicitly.
    metaborisk_host: str = "127.0.0.1"
    metaborisk_port: int = 8001
    metaborisk_log_level: str = "info"
    metaborisk_allow_insecure_bind: bool = False

    # Narrative provider
    llm_provider: Literal["gemini", "anthropic", "openai", "mock"] = "gemini"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    narrative_timeout_seconds: float = 30.0
    narrative_max_tokens: int = 1024
    narrative_temperature: float = 0.3

    # Storage
    db_path: str = "~/.metaborisk/metaborisk.db"
    # Fernet key; when empty the server runs on an in-memory database.
    encryption_key: str = ""

    # Accounts
    admin_username: str = "admin"
    admin_password: str = ""
    session_ttl_minutes: int = 480


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
