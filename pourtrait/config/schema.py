"""Pydantic models for Pourtrait configuration.

These models define the structure of config.toml and secrets.env files.
"""

from typing import Literal

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000
    workers: int = 2
    debug: bool = False
    enforce_https: bool = False
    rate_limit_per_minute: int = 60
    # CORS configuration - empty list means same-origin only
    cors_origins: list[str] = []


class DatabaseConfig(BaseModel):
    """MongoDB database configuration."""

    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "pourtrait"
    # Connection pool settings
    min_pool_size: int = 10
    max_pool_size: int = 100


class AuthConfig(BaseModel):
    """Authentication configuration."""

    enabled: bool = True
    registration_enabled: bool = True
    email_verification_required: bool = True
    auth_rate_limit_per_minute: int = 30


class EmailConfig(BaseModel):
    """Email configuration."""

    backend: Literal["console", "ses"] = "console"
    from_address: str = "hello@pourtrait.app"
    from_name: str = "Pourtrait"
    frontend_url: str = "http://localhost:3000"
    aws_region: str = "eu-west-1"


class AnalyticsConfig(BaseModel):
    """Analytics configuration."""

    posthog_enabled: bool = False
    posthog_host: str = "https://eu.posthog.com"
    posthog_debug: bool = False


class LLMConfig(BaseModel):
    """Language model configuration for taste-profile mapping and wine-list scans."""

    model: str = "claude-3-5-haiku-latest"
    fallback_models: list[str] = ["claude-3-5-haiku-latest", "claude-3-5-sonnet-latest"]
    vision_model: str = "claude-3-5-sonnet-latest"
    temperature: float = 0.15
    max_tokens: int = 900
    # Delay before the single re-request after an HTTP 429
    retry_delay_seconds: float = 2.0
    prompt_version: str | None = None
    evaluator_version: str | None = None
    # Include evaluator checks in preview responses and mapping-run logs
    show_eval_diagnostics: bool = False


class NotificationConfig(BaseModel):
    """Notification scheduling configuration."""

    batch_size: int = 100
    max_alerts: int = 10
    max_snooze_minutes: int = 24 * 60
    preview_throttle_ms: int = 4000


class PourtraitConfig(BaseModel):
    """Main Pourtrait configuration loaded from config.toml."""

    app_name: str = "Pourtrait"
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)


class SecretsConfig(BaseModel):
    """Secrets loaded from secrets.env file.

    These are sensitive values that should not be stored in config.toml.
    """

    secret_key: str | None = None
    anthropic_api_key: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    posthog_api_key: str | None = None
    cron_secret: str | None = None
    metrics_ingest_key: str | None = None
    llm_log_salt: str | None = None
