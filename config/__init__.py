# PATH: config/__init__.py
"""
Configuration loading utilities for TIERARB.

strategy.yaml holds tunables, addresses.yaml the on-chain object ids.
strategy/config.py merges both with environment overrides.
"""

from pathlib import Path
from typing import Any, Union

import yaml


CONFIG_DIR = Path(__file__).parent


def load_yaml(source: Union[str, Path]) -> Any:
    """
    Load a YAML configuration file.

    Args:
        source: Name of a file in the config directory, or a Path

    Returns:
        Parsed YAML ({} for an empty file)
    """
    filepath = source if isinstance(source, Path) else CONFIG_DIR / source
    if not filepath.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}
