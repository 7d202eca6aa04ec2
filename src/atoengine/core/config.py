"""3-layer configuration system for the ATO engine.

Loads and merges configuration from:
1. Default settings (built-in)
2. Project config (.ato-engine/config.yaml)
3. CLI parameters (override)
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = ".ato-engine"

DEFAULT_CONFIG: dict = {
    "tenant": {
        "id": "",
        "resource_group": None,
    },
    "inventory": {
        "endpoint": "http://localhost:8080/api/inventory",
        "api_key_env": "ATO_INVENTORY_TOKEN",
        "timeout_seconds": 60,
        "retry_attempts": 3,
        "retry_delay_seconds": 2,
    },
    "catalog": {
        "endpoint": "http://localhost:8080/api/controls",
        "api_key_env": "ATO_CATALOG_TOKEN",
        "timeout_seconds": 30,
        "retry_attempts": 3,
        "retry_delay_seconds": 2,
    },
    "storage": {
        "path": f"{CONFIG_DIR}/store",
    },
    "evidence": {
        "collected_by": "ato-engine",
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_project_config(project_path: Path) -> dict:
    """Load project configuration from .ato-engine/config.yaml."""
    config_path = project_path / CONFIG_DIR / "config.yaml"
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        return yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return {}


def get_effective_config(
    project_path: Path,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for a run."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    project_config = load_project_config(project_path)
    if project_config:
        config = deep_merge(config, project_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    # Relative storage paths are anchored at the project
    storage_path = Path(config["storage"]["path"])
    if not storage_path.is_absolute():
        storage_path = project_path / storage_path
    config["storage"]["path"] = str(storage_path)
    config["_project_path"] = str(project_path)

    return config


def initialize_project(project_path: Path, tenant_id: str = "") -> Path:
    """Create the .ato-engine directory with a starter config.yaml."""
    cfg_dir = project_path / CONFIG_DIR
    (cfg_dir / "store").mkdir(parents=True, exist_ok=True)

    config_path = cfg_dir / "config.yaml"
    if not config_path.exists():
        config_path.write_text(
            "# ATO engine project configuration\n"
            "\n"
            "tenant:\n"
            f'  id: "{tenant_id}"\n'
            "\n"
            "inventory:\n"
            f'  endpoint: "{DEFAULT_CONFIG["inventory"]["endpoint"]}"\n'
            "\n"
            "catalog:\n"
            f'  endpoint: "{DEFAULT_CONFIG["catalog"]["endpoint"]}"\n',
            encoding="utf-8",
        )
    return config_path
