"""Configuration loader for Pourtrait.

Settings come from ``config.toml`` and secrets from ``secrets.env``. Any
config field can be overridden with ``POURTRAIT_<SECTION>_<FIELD>``; the
common ones also have a short form (``POURTRAIT_PORT``,
``POURTRAIT_MONGODB_URL``...). Secrets are read from the environment under
``POURTRAIT_<NAME>`` or the provider's usual variable name.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any, get_origin

from pydantic import BaseModel

from pourtrait.config.schema import PourtraitConfig, SecretsConfig

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

ENV_PREFIX = "POURTRAIT"

# Short forms, applied after the POURTRAIT_<SECTION>_<FIELD> names
ENV_SHORTHANDS = {
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "DEBUG": ("server", "debug"),
    "CORS_ORIGINS": ("server", "cors_origins"),
    "MONGODB_URL": ("database", "mongodb_url"),
    "MONGODB_DATABASE": ("database", "mongodb_database"),
    "REGISTRATION_ENABLED": ("auth", "registration_enabled"),
    "FRONTEND_URL": ("email", "frontend_url"),
    "POSTHOG_ENABLED": ("analytics", "posthog_enabled"),
    "POSTHOG_HOST": ("analytics", "posthog_host"),
    "POSTHOG_DEBUG": ("analytics", "posthog_debug"),
    "PROMPT_VERSION": ("llm", "prompt_version"),
    "EVALUATOR_VERSION": ("llm", "evaluator_version"),
    "SHOW_EVAL_DIAGNOSTICS": ("llm", "show_eval_diagnostics"),
}

# Unprefixed names used by the SDKs and the hosting platform's cron
SECRET_ALIASES = {
    "ANTHROPIC_API_KEY": "anthropic_api_key",
    "AWS_ACCESS_KEY_ID": "aws_access_key_id",
    "AWS_SECRET_ACCESS_KEY": "aws_secret_access_key",
    "CRON_SECRET": "cron_secret",
    "METRICS_INGEST_KEY": "metrics_ingest_key",
}

TRUE_VALUES = ("true", "1", "yes", "on")


def _search_paths(filename: str) -> list[Path]:
    """Paths to search for a configuration file, in priority order (first found wins)."""
    return [
        Path.cwd() / filename,
        Path.home() / ".config" / "pourtrait" / filename,
        Path("/opt/pourtrait") / filename,
        Path("/etc/pourtrait") / filename,
    ]


def get_config_search_paths() -> list[Path]:
    return _search_paths("config.toml")


def get_secrets_search_paths() -> list[Path]:
    return _search_paths("secrets.env")


def _first_existing(paths: list[Path]) -> Path | None:
    for path in paths:
        if path.is_file():
            logger.debug("Found %s", path)
            return path
    return None


def find_config_file() -> Path | None:
    return _first_existing(get_config_search_paths())


def find_secrets_file() -> Path | None:
    return _first_existing(get_secrets_search_paths())


def load_toml_file(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse ``KEY=value`` lines; blank lines, ``#`` comments and surrounding quotes are dropped."""
    env_vars: dict[str, str] = {}

    with open(path) as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = (part.strip() for part in line.split("=", 1))
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            env_vars[key] = value

    return env_vars


def _coerce(annotation: Any, value: str) -> Any:
    """Convert an env string to the type the config field declares."""
    if annotation is bool:
        return value.strip().lower() in TRUE_VALUES
    if annotation is int:
        return int(value)
    if annotation is float:
        return float(value)
    if get_origin(annotation) is list:
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


def env_override_targets(prefix: str = ENV_PREFIX) -> dict[str, tuple[str, str]]:
    """Map every override variable to its ``(section, field)``."""
    targets: dict[str, tuple[str, str]] = {}
    for section, section_field in PourtraitConfig.model_fields.items():
        model = section_field.annotation
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            continue
        for name in model.model_fields:
            targets[f"{prefix}_{section.upper()}_{name.upper()}"] = (section, name)

    for short, target in ENV_SHORTHANDS.items():
        targets[f"{prefix}_{short}"] = target
    return targets


def apply_env_overrides(config_dict: dict[str, Any], prefix: str = ENV_PREFIX) -> None:
    """Apply environment overrides to ``config_dict`` in place."""
    sections = PourtraitConfig.model_fields

    for env_var, (section, name) in env_override_targets(prefix).items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        annotation = sections[section].annotation.model_fields[name].annotation
        config_dict.setdefault(section, {})[name] = _coerce(annotation, value)


def _secret_names() -> dict[str, str]:
    names = {f"{ENV_PREFIX}_{field.upper()}": field for field in SecretsConfig.model_fields}
    names.update(SECRET_ALIASES)
    return names


def load_secrets(secrets_file: Path | None = None) -> SecretsConfig:
    """Load secrets from ``secrets.env``; non-empty environment variables win."""
    names = _secret_names()
    secrets_dict: dict[str, str] = {}

    if secrets_file is None:
        secrets_file = find_secrets_file()

    if secrets_file and secrets_file.exists():
        logger.info("Loading secrets from: %s", secrets_file)
        for key, value in parse_env_file(secrets_file).items():
            if key in names:
                secrets_dict[names[key]] = value

    for env_var, field in names.items():
        value = os.environ.get(env_var)
        if value:
            secrets_dict[field] = value

    return SecretsConfig(**secrets_dict)


def load_config(config_file: Path | None = None) -> PourtraitConfig:
    """Load ``config.toml`` (searched for when not given) and apply env overrides."""
    config_dict: dict[str, Any] = {}

    if config_file is None:
        config_file = find_config_file()

    if config_file and config_file.exists():
        logger.info("Loading config from: %s", config_file)
        config_dict = load_toml_file(config_file)
    else:
        logger.info("No config file found, using defaults with env overrides")

    apply_env_overrides(config_dict)
    return PourtraitConfig(**config_dict)
