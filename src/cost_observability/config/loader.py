"""Configuration loader for the cost observability engine."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml

from cost_observability.config.schema import Config


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir() -> Path:
    """Find the config directory, searching up from current directory."""
    if config_dir := os.environ.get("CONFIG_DIR"):
        return Path(config_dir)

    current = Path.cwd()
    while current != current.parent:
        config_path = current / "config"
        if config_path.is_dir():
            return config_path
        current = current.parent

    return Path("config")


def load_config(
    config_path: str | Path | None = None,
    environment: str | None = None,
) -> Config:
    """
    Load configuration from YAML files.

    Loads config.yaml as base, then merges environment-specific overrides
    (e.g., config.dev.yaml, config.prod.yaml).

    Args:
        config_path: Path to config directory. If None, searches for config/ directory.
        environment: Environment name (dev, staging, prod). If None, uses CONFIG_ENV
                    environment variable or defaults to 'dev'.

    Returns:
        Config: Validated configuration object.
    """
    config_dir = Path(config_path) if config_path else _find_config_dir()
    environment = environment or os.environ.get("CONFIG_ENV", "dev")

    base_config_path = config_dir / "config.yaml"
    config_data: dict = {}

    if base_config_path.exists():
        with open(base_config_path) as f:
            config_data = yaml.safe_load(f) or {}

    env_config_path = config_dir / f"config.{environment}.yaml"
    if env_config_path.exists():
        with open(env_config_path) as f:
            env_data = yaml.safe_load(f) or {}
            config_data = _deep_merge(config_data, env_data)

    config_data = _apply_env_overrides(config_data)
    config_data["environment"] = environment

    return Config(**config_data)


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration."""
    env_mappings = {
        "AWS_REGION": ("aws", "region"),
        "AWS_ACCOUNT_ID": ("aws", "account_id"),
        "MONTHLY_BUDGET": ("detectors", "cost_anomaly", "thresholds", "monthly_budget_limit"),
        "LEARNING_TABLE_NAME": ("learning", "table_name"),
        "LEARNING_ENABLED": ("learning", "enabled"),
        "LOG_LEVEL": ("logging", "level"),
        "DEMO_MODE": ("demo_mode",),
    }

    for env_var, path in env_mappings.items():
        if value := os.environ.get(env_var):
            current = config_data
            for key in path[:-1]:
                current = current.setdefault(key, {})

            final_key = path[-1]
            if final_key in ("monthly_budget_limit",):
                current[final_key] = float(value)
            elif final_key in ("enabled", "demo_mode"):
                current[final_key] = value.lower() in ("true", "1", "yes")
            elif final_key == "level":
                current[final_key] = value.upper()
            else:
                current[final_key] = value

    return config_data


@lru_cache(maxsize=1)
def get_cached_config() -> Config:
    """
    Get cached configuration singleton.

    Useful for Lambda handlers to avoid re-loading config on warm starts.
    """
    return load_config()
