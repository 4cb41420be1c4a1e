"""Pydantic-settings configuration for the FX Treasury engine.

Loads operational thresholds from a .env file or the environment with
sensible defaults for local development.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = "FX Treasury"
    debug: bool = False
    log_json: bool = False  # JSON log lines instead of console output

    # Actors stamped on events when the caller does not name one
    default_user: str = "admin@treasury.com"
    system_user: str = "System"

    # Manual hedge entry
    dual_auth_threshold: float = 1_000_000.0
    rate_deviation_warning_pct: float = 1.0

    # Position reset workflow
    reset_min_justification_chars: int = 100

    # Exotic decomposition: |sum of leg USD positions| below this is rounding noise
    usd_residual_tolerance: float = 1e-6

    # Audit log JSONL mirror directory (empty = in-memory only)
    audit_dir: str = ""

    # API
    allowed_origins: str = ""  # Comma-separated extra CORS origins
    api_rate_limit: str = "100/minute"


settings = Settings()
