"""
Configuration Loader.

Reads the optional YAML settings file of the sample programs and layers
command-line overrides on top of it.
"""
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Mapping, Optional

logger = logging.getLogger(__name__)


def load_config(config_path: Optional[str] = "config.yaml") -> Dict[str, Any]:
    """
    Loads the YAML configuration file. A missing file yields an empty config.
    """
    if not config_path:
        return {}
    path = Path(config_path)
    if not path.exists():
        logger.warning(f"Config file not found at {path}. Using defaults.")
        return {}

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {path}")
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse config file: {e}")
        raise
    if not isinstance(config, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(config).__name__}")
    return config


def merge_overrides(config: Dict[str, Any], section: str, overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Returns a copy of `config` where every non-None value of `overrides`
    replaces the key of the same name in `config[section]`.
    """
    merged = dict(config)
    values = dict(merged.get(section) or {})
    values.update({k: v for k, v in overrides.items() if v is not None})
    merged[section] = values
    return merged
