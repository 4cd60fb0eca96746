"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
#   1. config/config.yaml  -- Static defaults checked into the repo
#   2. .env file           -- Local developer overrides (not committed)
#   3. Environment vars    -- Set at deploy time
#
# load_config() reads the YAML file first, then deep-merges values from
# Settings on top.  Pipeline tuning only exists in YAML; provider and
# storage settings come from Settings and win where keys overlap.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from tusk.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
            an empty base, so every pipeline default applies.
        settings: Settings to merge; a fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    if settings is None:
        settings = Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
            "default_owner": settings.default_owner,
        },
        "llm": {
            "openai_api_key": settings.openai_api_key,
            "ollama_base_url": settings.ollama_base_url,
            "generation_provider": settings.generation_provider,
            "available_providers": settings.get_available_llm_providers(),
        },
        "storage": {
            "document_db_path": settings.document_db_path,
            "chromadb_persist_dir": settings.chromadb_persist_dir,
            "chromadb_collection": settings.chromadb_collection,
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
