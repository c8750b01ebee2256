"""
Configuration loading and validation for video-digest.

Configuration is layered: built-in defaults, then an optional JSON config
file, then environment variables (usually populated from a .env file).
The merged result is validated once, before any network call is made.

All configuration errors use predefined error codes. A missing-field error
lists every missing environment variable at once so the operator can fix
the .env file in a single pass.
"""

import copy
import json
import os
from typing import Dict, Any, Optional, List, Mapping

from .errors import ConfigError, ErrorCode
from .models import ScheduleConfig

# Default configuration values
DEFAULT_CONFIG: Dict[str, Any] = {
    "gateway": {
        "base_url": None,
        "api_key": None,
        "instance": None,
        "targets": None,
    },
    "source": {
        "channel_handle": "EsteDiacomDeus",
        "channel_id": None,
        "transcript_language": "pt",
    },
    "llm": {
        "provider": "openai",
        "openai_api_key": None,
        "openai_model": "gpt-4o-mini",
        "gemini_api_key": None,
        "gemini_model": "gemini-2.0-flash",
        "max_attempts": 3,
        "rate_limit_backoff_seconds": 30,
    },
    "schedule": {
        "cron": "0 6 * * *",
        "timezone": "America/Sao_Paulo",
    },
    "delivery": {
        "pacing_seconds": 10,
        "presence_delay_ms": 1200,
        "presence": "composing",
    },
    "timeouts": {
        "status": 10,
        "fetch": 15,
        "send": 30,
        "llm": 120,
    },
    "logging": {
        "level": "INFO",
        "dir": "logs",
    },
}

# Environment variable -> (section, key)
ENV_MAPPING = {
    "EVOLUTION_API_URL": ("gateway", "base_url"),
    "EVOLUTION_API_KEY": ("gateway", "api_key"),
    "EVOLUTION_INSTANCE": ("gateway", "instance"),
    "WHATSAPP_TARGETS": ("gateway", "targets"),
    "YOUTUBE_CHANNEL_HANDLE": ("source", "channel_handle"),
    "YOUTUBE_CHANNEL_ID": ("source", "channel_id"),
    "LLM_PROVIDER": ("llm", "provider"),
    "OPENAI_API_KEY": ("llm", "openai_api_key"),
    "OPENAI_MODEL": ("llm", "openai_model"),
    "GEMINI_API_KEY": ("llm", "gemini_api_key"),
    "GEMINI_MODEL": ("llm", "gemini_model"),
    "CRON_SCHEDULE": ("schedule", "cron"),
    "TIMEZONE": ("schedule", "timezone"),
    "SEND_PACING_SECONDS": ("delivery", "pacing_seconds"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_DIR": ("logging", "dir"),
}

# Legacy single-destination variable, used only when WHATSAPP_TARGETS is unset
LEGACY_TARGET_ENV = "WHATSAPP_GROUP_ID"

REQUIRED_GATEWAY_FIELDS = [
    ("EVOLUTION_API_URL", "base_url"),
    ("EVOLUTION_API_KEY", "api_key"),
    ("EVOLUTION_INSTANCE", "instance"),
    ("WHATSAPP_TARGETS", "targets"),
]

LLM_KEY_FIELDS = {
    "openai": ("OPENAI_API_KEY", "openai_api_key"),
    "gemini": ("GEMINI_API_KEY", "gemini_api_key"),
}

NUMERIC_FIELDS = [
    ("timeouts", "status"),
    ("timeouts", "fetch"),
    ("timeouts", "send"),
    ("timeouts", "llm"),
    ("llm", "max_attempts"),
    ("llm", "rate_limit_backoff_seconds"),
    ("delivery", "pacing_seconds"),
    ("delivery", "presence_delay_ms"),
]

CONFIG_SEARCH_PATHS = [
    "./video-digest.json",
    "~/.config/video-digest/config.json",
]


def load_config(
    config_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    validate: bool = True,
) -> Dict[str, Any]:
    """
    Load, merge and validate configuration.

    Args:
        config_path: Optional JSON config file. If None, default locations are
            searched and a missing file is not an error.
        env: Environment mapping (defaults to os.environ)
        validate: Run required-field and value validation

    Returns:
        Merged configuration dictionary.

    Raises:
        ConfigError: If the file is unreadable or validation fails.
    """
    if env is None:
        env = os.environ

    config = copy.deepcopy(DEFAULT_CONFIG)

    file_path = config_path or _find_config_file()
    if file_path:
        config = _deep_merge(config, _read_config_file(file_path))

    _apply_env(config, env)
    _normalize(config)

    if validate:
        _validate_required_fields(config)
        _validate_config_values(config)

    return config


def _find_config_file() -> Optional[str]:
    """Return the first existing config file in the search paths, if any."""
    for path in CONFIG_SEARCH_PATHS:
        expanded = os.path.expanduser(path)
        if os.path.exists(expanded):
            return expanded
    return None


def _read_config_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw_config = json.load(f)
    except FileNotFoundError:
        raise ConfigError(ErrorCode.CONFIG_FILE_NOT_FOUND, f"Config file not found: {path}")
    except json.JSONDecodeError:
        raise ConfigError(ErrorCode.CONFIG_INVALID_JSON)

    if not isinstance(raw_config, dict):
        raise ConfigError(ErrorCode.CONFIG_INVALID_VALUE, "Config file must contain a JSON object")
    for section in DEFAULT_CONFIG:
        if section in raw_config and not isinstance(raw_config[section], dict):
            raise ConfigError(ErrorCode.CONFIG_INVALID_VALUE, f"{section} must be an object")
    return raw_config


def _apply_env(config: Dict[str, Any], env: Mapping[str, str]) -> None:
    """Overlay non-empty environment variables onto the config."""
    for var, (section, key) in ENV_MAPPING.items():
        value = env.get(var)
        if value:
            config[section][key] = value

    if not config["gateway"]["targets"] and env.get(LEGACY_TARGET_ENV):
        config["gateway"]["targets"] = env[LEGACY_TARGET_ENV]


def _normalize(config: Dict[str, Any]) -> None:
    """Coerce numeric strings and tidy URLs."""
    base_url = config["gateway"].get("base_url")
    if base_url:
        config["gateway"]["base_url"] = str(base_url).rstrip("/")

    provider = config["llm"].get("provider")
    if provider:
        config["llm"]["provider"] = str(provider).strip().lower()

    for section, key in NUMERIC_FIELDS:
        value = config[section].get(key)
        if isinstance(value, str):
            try:
                config[section][key] = float(value) if "." in value else int(value)
            except ValueError:
                raise ConfigError(
                    ErrorCode.CONFIG_INVALID_VALUE,
                    f"{section}.{key} must be a number, got '{value}'"
                )


def _validate_required_fields(config: Dict[str, Any]) -> None:
    """Validate that all required fields are present."""
    missing: List[str] = []

    for env_name, key in REQUIRED_GATEWAY_FIELDS:
        if not config["gateway"].get(key):
            missing.append(env_name)

    provider = config["llm"]["provider"]
    if provider not in LLM_KEY_FIELDS:
        raise ConfigError(
            ErrorCode.CONFIG_INVALID_VALUE,
            f"Unknown LLM provider: {provider}"
        )
    env_name, key = LLM_KEY_FIELDS[provider]
    if not config["llm"].get(key):
        missing.append(env_name)

    if missing:
        raise ConfigError(
            ErrorCode.CONFIG_MISSING_REQUIRED_FIELD,
            f"Missing required configuration: {', '.join(missing)}"
        )


def _validate_config_values(config: Dict[str, Any]) -> None:
    """Validate configuration field values."""
    for section, key in NUMERIC_FIELDS:
        value = config[section][key]
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise ConfigError(
                ErrorCode.CONFIG_INVALID_VALUE,
                f"{section}.{key} must be a number"
            )
        # Pacing may be disabled, everything else must be positive
        if key == "pacing_seconds":
            if value < 0:
                raise ConfigError(
                    ErrorCode.CONFIG_INVALID_VALUE,
                    "delivery.pacing_seconds cannot be negative"
                )
        elif value <= 0:
            raise ConfigError(
                ErrorCode.CONFIG_INVALID_VALUE,
                f"{section}.{key} must be positive"
            )

    base_url = config["gateway"]["base_url"]
    if not base_url.startswith(("http://", "https://")):
        raise ConfigError(
            ErrorCode.CONFIG_INVALID_VALUE,
            "EVOLUTION_API_URL must start with http:// or https://"
        )


def _deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries."""
    result = base.copy()

    for key, value in update.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def get_schedule_config(config: Dict[str, Any]) -> ScheduleConfig:
    """Build the ScheduleConfig from the merged configuration."""
    schedule = config.get("schedule", {})
    return ScheduleConfig(
        cron_expression=str(schedule.get("cron") or DEFAULT_CONFIG["schedule"]["cron"]).strip(),
        timezone=str(schedule.get("timezone") or DEFAULT_CONFIG["schedule"]["timezone"]).strip(),
    )
