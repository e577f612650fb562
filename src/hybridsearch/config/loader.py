"""Configuration loading from files and environment.

Supports:
- TOML config files
- Environment variables (HYBRIDSEARCH_* prefix)
- .env files
- Multiple profiles (local, server, cloud)
"""

import os
import re
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from hybridsearch.config.schema import AppConfig
from hybridsearch.observability.logging import get_logger

logger = get_logger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute environment variables in a data structure.

    Supports formats:
    - ${VAR_NAME}
    - ${VAR_NAME:-default}

    Args:
        obj: Input data (dict, list, str, etc.)

    Returns:
        Data structure with environment variables substituted
    """
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    elif isinstance(obj, str):

        def replace_var(match: re.Match) -> str:
            var_expr = match.group(1)
            if ":-" in var_expr:
                var_name, default_value = var_expr.split(":-", 1)
                return os.getenv(var_name.strip(), default_value)

            var_name = var_expr.strip()
            value = os.getenv(var_name)
            if value is None:
                # Left as-is so the unresolved reference is visible downstream
                logger.warning(
                    "env_var_not_found",
                    var_name=var_name,
                    suggestion="Check that the environment variable is set",
                )
                return match.group(0)
            return value

        return _ENV_VAR_PATTERN.sub(replace_var, obj)
    else:
        return obj


def load_config(
    config_path: Optional[Path] = None,
    profile: Optional[str] = None,
    env_file: Optional[Path] = None,
) -> AppConfig:
    """Load application configuration.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (profile section over base values)
    3. Defaults

    Args:
        config_path: Path to TOML config file
        profile: Config profile to use (e.g., "local", "server")
        env_file: Path to .env file

    Returns:
        Loaded and validated configuration
    """
    if env_file and env_file.exists():
        load_dotenv(env_file)
        logger.info("loaded_env_file", path=str(env_file))

    config_data: dict[str, Any] = {}
    if config_path and config_path.exists():
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
        logger.info("loaded_config_file", path=str(config_path))

        profiles = config_data.pop("profiles", {})
        if profile and profile in profiles:
            config_data = _merge_sections(config_data, profiles[profile])
            logger.info("applied_profile", profile=profile)
        elif profile:
            logger.warning("profile_not_found", profile=profile, available=sorted(profiles))

        config_data = _substitute_env_vars(config_data)
        logger.debug("substituted_env_vars_in_config")

    config = AppConfig(**config_data)
    logger.info(
        "config_loaded",
        embedding_provider=config.embedding.provider.value,
        storage=config.storage.store_type.value,
        merge_strategy=config.hybrid.strategy.value,
    )

    return config


def _merge_sections(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge a profile over the base config, one table level deep."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def get_default_config_path() -> Path:
    """Get the default config file path.

    Searches in order:
    1. ./hybridsearch.toml
    2. ~/.hybridsearch/config.toml
    3. /etc/hybridsearch/config.toml
    """
    search_paths = [
        Path.cwd() / "hybridsearch.toml",
        Path.home() / ".hybridsearch" / "config.toml",
        Path("/etc/hybridsearch/config.toml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return search_paths[0]
