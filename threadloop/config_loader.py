"""
Configuration loader for threadloop.

Loads configuration from a YAML file with support for environment variable
interpolation. Values missing from the file fall back to the
environment-derived defaults in ``config``.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .config import config
from .models import (
    AgentSection,
    AppConfig,
    LangfuseConfig,
    LoggingConfig,
    ProviderConfig,
)

logger = logging.getLogger(__name__)

# Repository checkout location; config/ is not packaged, so installed copies
# need CONFIG_PATH or an explicit path.
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """Recursively substitute environment variables in a data structure."""
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _parse_provider_config(data: dict) -> ProviderConfig:
    """Parse provider configuration from dict."""
    return ProviderConfig(
        base_url=data.get("base_url") or config.provider.base_url,
        api_key=data.get("api_key") or config.provider.api_key,
        timeout=float(data.get("timeout", config.provider.timeout)),
    )


def _parse_agent_section(data: dict) -> AgentSection:
    """Parse agent configuration from dict."""
    return AgentSection(
        model=data.get("model") or config.agent.model,
        instructions=data.get("instructions", config.agent.instructions) or "",
        parallel_tool_calls=_as_bool(
            data.get("parallel_tool_calls", config.agent.parallel_tool_calls)
        ),
        validate_model=_as_bool(data.get("validate_model", True)),
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(level=data.get("level") or config.log_level)


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        public_key=data.get("public_key") or config.langfuse.public_key,
        secret_key=data.get("secret_key") or config.langfuse.secret_key,
        host=data.get("host") or config.langfuse.host,
        debug=_as_bool(data.get("debug", config.langfuse.debug)),
    )


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Load application configuration from a YAML file.

    Subsequent calls return the cached config unless reload=True.

    Args:
        path: Path to the YAML file. If None, uses the CONFIG_PATH env var
              or the default path (config/config.yaml).
              The default only exists in a source checkout; installed
              packages do not ship config/, so set CONFIG_PATH there.
        reload: Force a reload from disk instead of using the cache.

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file is empty or not a mapping
    """
    global _app_config

    if _app_config is not None and not reload:
        return _app_config

    if path is None:
        path = os.environ.get("CONFIG_PATH", str(DEFAULT_CONFIG_PATH))

    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found at {config_path}. "
            f"Create one from config/config.yaml or set CONFIG_PATH env var."
        )

    logger.info("Loading configuration from %s", config_path)

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raise ValueError(f"Configuration file {config_path} is empty")
    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    raw_config = _substitute_env_vars_recursive(raw_config)

    app_config = AppConfig(
        version=str(raw_config.get("version", "1.0")),
        provider=_parse_provider_config(raw_config.get("provider") or {}),
        agent=_parse_agent_section(raw_config.get("agent") or {}),
        logging=_parse_logging_config(raw_config.get("logging") or {}),
        langfuse=_parse_langfuse_config(raw_config.get("langfuse") or {}),
    )

    _app_config = app_config
    logger.debug(
        "Configuration loaded: version=%s, model=%s",
        app_config.version,
        app_config.agent.model,
    )
    return app_config


def reset_config_cache() -> None:
    """Reset the configuration cache, forcing a reload on next access."""
    global _app_config
    _app_config = None
    logger.debug("Configuration cache reset")
