"""YAML configuration loading.

Uses ``yaml.safe_load`` so configuration files can never instantiate
arbitrary Python objects. Consumed by the ``from_yaml`` factories of
[Pool][waitroom.core.pool.Pool], [QueueStore][waitroom.core.store.QueueStore]
and [BaseService][waitroom.core.base_service.BaseService].

Examples:
    ```python
    from waitroom.core.yaml import load_yaml

    config = load_yaml("config/services/synchronizer.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str) -> dict[str, Any]:
    """Load and parse a YAML configuration file into a dictionary.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        Parsed configuration. An empty file yields an empty dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file contains invalid YAML syntax.
        ConfigurationError: If the document is not a mapping.

    Warning:
        The structure is not validated here. Pass the result to the
        matching Pydantic model for schema validation.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {config_path} must contain a mapping, got {type(data).__name__}"
        )
    return data
