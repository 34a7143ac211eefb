"""Pourtrait configuration module.

This module provides TOML-based configuration with environment variable overrides.

Configuration is loaded from the following locations (in order of priority):
1. Environment variables (highest priority)
2. ./config.toml (project root - for development)
3. ~/.config/pourtrait/config.toml (user config)
4. /opt/pourtrait/config.toml (production install)
5. /etc/pourtrait/config.toml (system config)

Secrets are loaded from secrets.env files in the same directories.
"""

from pourtrait.config.schema import (
    AnalyticsConfig,
    AuthConfig,
    DatabaseConfig,
    EmailConfig,
    LLMConfig,
    NotificationConfig,
    PourtraitConfig,
    SecretsConfig,
    ServerConfig,
)
from pourtrait.config.settings import get_settings, reset_settings, settings

__all__ = [
    "AnalyticsConfig",
    "AuthConfig",
    "DatabaseConfig",
    "EmailConfig",
    "LLMConfig",
    "NotificationConfig",
    "PourtraitConfig",
    "SecretsConfig",
    "ServerConfig",
    "get_settings",
    "reset_settings",
    "settings",
]
