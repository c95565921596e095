from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from forge.config_models import ForgeConfig

REQUIRED_SECTIONS = ("backend", "executor", "library", "output")


def default_forge_config_dict() -> Dict[str, Any]:
    """Return the canonical nested defaults for all config sections."""

    return {
        "backend": {
            "provider": "groq",
            "model": "llama3-70b-8192",
            "base_url": None,
            "api_key_env": None,
            "max_retries": 2,
            "initial_backoff_s": 1.0,
            "max_backoff_s": 10.0,
            "timeout_s": 60.0,
        },
        "executor": {
            "max_attempts": 3,
        },
        "library": {
            "blueprints_dir": "profiles/blueprints",
        },
        "output": {
            "artifacts_dir": "artifacts",
        },
    }


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge nested config values while preserving default sections."""

    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        elif value is not None:
            merged[key] = value
    return merged


def normalize_forge_config_dict(raw_config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate nested config shape and merge with canonical defaults.

    Sections may be omitted, but a present section must be a mapping.
    """

    for key, value in raw_config.items():
        if key in REQUIRED_SECTIONS and not isinstance(value, dict):
            raise ValueError(
                "Config must use nested sections "
                f"{REQUIRED_SECTIONS}; section '{key}' is not an object."
            )
    return _deep_merge(default_forge_config_dict(), raw_config)


def normalize_forge_config(raw_config: Dict[str, Any]) -> ForgeConfig:
    """Parse and strictly validate config values."""

    return ForgeConfig.model_validate(normalize_forge_config_dict(raw_config))


def load_forge_config(config_path: Path) -> ForgeConfig:
    """Load and validate a forge config YAML file from disk."""

    if not config_path.exists():
        raise FileNotFoundError(
            f"Missing config: {config_path}. Create one from `profiles/forge.yaml`."
        )
    with config_path.open("r", encoding="utf-8") as config_file:
        raw_config = yaml.safe_load(config_file) or {}
    if not isinstance(raw_config, dict):
        raise ValueError(f"Invalid config shape in {config_path}: expected object at root")
    return normalize_forge_config(raw_config)


def apply_forge_overrides(
    config: ForgeConfig,
    *,
    model: Optional[str] = None,
    max_attempts: Optional[int] = None,
    blueprints_dir: Optional[str] = None,
) -> ForgeConfig:
    """Apply CLI overrides after strict config parsing."""

    effective = config.model_copy(deep=True)
    if model:
        effective.backend.model = model
    if max_attempts is not None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        effective.executor.max_attempts = max_attempts
    if blueprints_dir:
        effective.library.blueprints_dir = blueprints_dir
    return effective
