"""Settings for the campus messages backend."""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    service_name: str = _env_field("campus-messages", "SERVICE_NAME")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")
    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_sampling_rate_info: float = _env_field(1.0, "LOG_SAMPLING_RATE_INFO")
    obs_metrics_public: bool = _env_field(True, "METRICS_PUBLIC")
    obs_admin_token: Optional[str] = _env_field(None, "ADMIN_TOKEN", "OBS_ADMIN_TOKEN")

    # Composition limits
    draft_max_files: int = _env_field(12, "DRAFT_MAX_FILES")
    draft_max_gifs: int = _env_field(12, "DRAFT_MAX_GIFS")
    note_max_length: int = _env_field(60, "NOTE_MAX_LENGTH")

    # Thread list search only scans this many recent messages per thread
    search_recent_messages: int = _env_field(25, "SEARCH_RECENT_MESSAGES")
    user_picker_limit: int = _env_field(30, "USER_PICKER_LIMIT")

    # Periodic re-fetch used to recompute relative timestamps and pick up new messages
    refresh_interval_seconds: float = _env_field(30.0, "REFRESH_INTERVAL_SECONDS")

    # "memory" keeps conversations in-process; "http" talks to the messages API
    messages_backend: str = _env_field("memory", "MESSAGES_BACKEND")
    messages_api_base_url: str = _env_field("http://localhost:3000/api/messages", "MESSAGES_API_BASE_URL")
    messages_api_timeout_seconds: float = _env_field(10.0, "MESSAGES_API_TIMEOUT_SECONDS")
    messages_api_token: Optional[str] = _env_field(None, "MESSAGES_API_TOKEN")

    # Environment helpers
    def is_prod(self) -> bool:
        return self.environment.lower() in ("prod", "production", "live")

    def is_dev(self) -> bool:
        return self.environment.lower() in ("dev", "development")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("draft_max_files", "draft_max_gifs", "note_max_length", "user_picker_limit", mode="after")
    def _non_negative(cls, value: int) -> int:  # type: ignore[override]
        return max(0, int(value))

    @field_validator("obs_log_sampling_rate_info", mode="after")
    def _clamp_rate(cls, value: float) -> float:  # type: ignore[override]
        return max(0.0, min(1.0, float(value)))


settings = Settings()
