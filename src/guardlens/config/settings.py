from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized config.

    Key idea:
    - read from env first (so tests/CI can override),
    - otherwise default to local dev values.

    The governance API key is not held here. It is supplied per session
    (CLI option, GUARDLENS_API_KEY, or the interactive prompt) and passed
    explicitly into the action layer.
    """

    model_config = SettingsConfigDict(env_prefix="GUARDLENS_", extra="ignore")

    # Governance service root, e.g. https://engine.example.com
    base_url: str | None = None

    # safety defaults
    timeout_s: float = 20.0

    # how long a fetched page counts as fresh in the query cache
    stale_time_s: float = 30.0

    log_level: str = "INFO"


settings = Settings()
