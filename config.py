"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

MFA code and recovery code policy lives in MfaSettings; the defaults match the
admin console (6-digit codes valid for 10 minutes, 10 recovery codes per set).
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "mfa-codes"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional. Without Redis pending MFA codes are kept in process memory,
    # which is only correct for a single server process
    redis_uri: Optional[str] = None


class MfaSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mfa_code_ttl_seconds: int = Field(default=600, gt=0)
    mfa_code_min: int = Field(default=100000, ge=0)
    mfa_code_max: int = Field(default=999999, ge=0)
    # None disables the failure-exhaustion policy
    mfa_max_failed_attempts: Optional[int] = Field(default=5, ge=1)
    # How often the in-memory store drops codes that were never verified
    mfa_purge_interval_seconds: int = Field(default=60, gt=0)

    recovery_codes_enabled: bool = True
    recovery_codes_count: int = Field(default=10, ge=1, le=50)
    recovery_code_bytes: int = Field(default=6, ge=4, le=32)

    @model_validator(mode="after")
    def _check_code_range(self) -> "MfaSettings":
        if self.mfa_code_min > self.mfa_code_max:
            raise ValueError("mfa_code_min must not exceed mfa_code_max")
        return self


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@example.com"
    zepto_from_name: str = "Security"


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "mfa-codes"

    # CORS default: all origins, credentials allowed
    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    mfa: Optional[MfaSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.mfa is None:
            self.mfa = MfaSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
