"""Global settings instance for Pourtrait.

``Settings`` flattens the structured ``config.toml`` sections and the
secrets into one attribute namespace (``settings.mongodb_url``,
``settings.cron_secret``...). Values are read through to the underlying
models on every access, so tests can adjust ``config`` or ``secrets`` in
place.
"""

import logging
import secrets as secrets_module
from typing import Any

from pourtrait.config.loader import load_config, load_secrets
from pourtrait.config.schema import PourtraitConfig, SecretsConfig

logger = logging.getLogger(__name__)


class _ConfigValue:
    """Read-through attribute for ``config.<section>.<name>``."""

    def __init__(self, section: str, name: str) -> None:
        self.section = section
        self.name = name

    def __get__(self, obj: "Settings | None", objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return getattr(getattr(obj.config, self.section), self.name)


class _SecretValue:
    """Read-through attribute for ``secrets.<name>``."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __get__(self, obj: "Settings | None", objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return getattr(obj.secrets, self.name)


class Settings:
    def __init__(
        self,
        config: PourtraitConfig | None = None,
        secrets: SecretsConfig | None = None,
    ):
        self.config = config if config is not None else load_config()
        self.secrets = secrets if secrets is not None else load_secrets()

        if not self.secrets.secret_key:
            self.secrets.secret_key = secrets_module.token_urlsafe(32)
            logger.warning(
                "SECURITY WARNING: No secret key configured; generated a random one. "
                "Issued tokens stop working on restart. Set POURTRAIT_SECRET_KEY."
            )

    @property
    def app_name(self) -> str:
        return self.config.app_name

    # Server
    debug = _ConfigValue("server", "debug")
    host = _ConfigValue("server", "host")
    port = _ConfigValue("server", "port")
    workers = _ConfigValue("server", "workers")
    enforce_https = _ConfigValue("server", "enforce_https")
    rate_limit_per_minute = _ConfigValue("server", "rate_limit_per_minute")
    cors_origins = _ConfigValue("server", "cors_origins")

    # Database
    mongodb_url = _ConfigValue("database", "mongodb_url")
    mongodb_database = _ConfigValue("database", "mongodb_database")
    min_pool_size = _ConfigValue("database", "min_pool_size")
    max_pool_size = _ConfigValue("database", "max_pool_size")

    # Auth
    auth_enabled = _ConfigValue("auth", "enabled")
    registration_enabled = _ConfigValue("auth", "registration_enabled")
    email_verification_required = _ConfigValue("auth", "email_verification_required")
    auth_rate_limit_per_minute = _ConfigValue("auth", "auth_rate_limit_per_minute")

    # Email
    email_backend = _ConfigValue("email", "backend")
    email_sender = _ConfigValue("email", "from_address")
    email_sender_name = _ConfigValue("email", "from_name")
    frontend_url = _ConfigValue("email", "frontend_url")
    aws_region = _ConfigValue("email", "aws_region")

    # Analytics
    posthog_enabled = _ConfigValue("analytics", "posthog_enabled")
    posthog_host = _ConfigValue("analytics", "posthog_host")
    posthog_debug = _ConfigValue("analytics", "posthog_debug")

    # Taste-profile mapping and wine-list scans
    llm_model = _ConfigValue("llm", "model")
    llm_fallback_models = _ConfigValue("llm", "fallback_models")
    llm_vision_model = _ConfigValue("llm", "vision_model")
    llm_temperature = _ConfigValue("llm", "temperature")
    llm_max_tokens = _ConfigValue("llm", "max_tokens")
    llm_retry_delay_seconds = _ConfigValue("llm", "retry_delay_seconds")
    prompt_version = _ConfigValue("llm", "prompt_version")
    evaluator_version = _ConfigValue("llm", "evaluator_version")
    show_eval_diagnostics = _ConfigValue("llm", "show_eval_diagnostics")

    # Notifications
    notification_batch_size = _ConfigValue("notifications", "batch_size")
    max_alerts = _ConfigValue("notifications", "max_alerts")
    max_snooze_minutes = _ConfigValue("notifications", "max_snooze_minutes")
    preview_throttle_ms = _ConfigValue("notifications", "preview_throttle_ms")

    # Secrets
    anthropic_api_key = _SecretValue("anthropic_api_key")
    aws_access_key_id = _SecretValue("aws_access_key_id")
    aws_secret_access_key = _SecretValue("aws_secret_access_key")
    posthog_api_key = _SecretValue("posthog_api_key")
    cron_secret = _SecretValue("cron_secret")
    metrics_ingest_key = _SecretValue("metrics_ingest_key")

    @property
    def secret_key(self) -> str:
        return self.secrets.secret_key or ""

    @property
    def llm_log_salt(self) -> str:
        return self.secrets.llm_log_salt or "pourtrait"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access reloads files and environment."""
    global _settings
    _settings = None


class _SettingsProxy:
    """Module-level ``settings`` that resolves to ``get_settings()`` on each access."""

    def __getattr__(self, name: str) -> Any:
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
