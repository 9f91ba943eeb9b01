"""YAML configuration loader with environment variable overrides.

Configuration is layered, later layers overriding earlier ones:

    1. config/config.yaml  -- static defaults checked into the repo
    2. .env file           -- local overrides (not committed)
    3. environment vars    -- set at deploy time

:func:`load_config` reads the YAML file first, then deep-merges the
env-derived :class:`Settings` values on top.
"""

from pathlib import Path

import yaml

from lorekeeper.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings to merge on top; a fresh ``Settings()`` by default.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "llm": {
            "provider": settings.llm_provider,
            "api_url": settings.llm_api_url,
            "model": settings.llm_model,
            "timeout": settings.llm_timeout,
            "available_providers": settings.get_available_llm_providers(),
        },
        "segmenter": {
            "max_chunk_length": settings.max_chunk_length,
            "min_chunk_length": settings.min_chunk_length,
            "metadata_keyword_threshold": settings.metadata_keyword_threshold,
        },
        "pipeline": {
            "request_delay": settings.extraction_request_delay,
            "retry_max_attempts": settings.retry_max_attempts,
            "retry_base_delay": settings.retry_base_delay,
        },
        "merge": {
            "request_delay": settings.merge_request_delay,
        },
        "storage": {
            "knowledge_db_path": settings.knowledge_db_path,
            "checkpoint_path": settings.checkpoint_path,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
