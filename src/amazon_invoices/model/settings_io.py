from __future__ import annotations

"""
Settings I/O (YAML loading and saving).

Functions for reading and writing config/settings.yml. All operations are
local file I/O only.
"""

from pathlib import Path

import yaml
from pydantic import ValidationError

from amazon_invoices.model.settings import Settings


def load_settings(path: Path) -> Settings:
    """Load settings from YAML (safe loader).

    A missing file yields default settings.

    Args:
        path: Path to settings.yml

    Returns:
        Settings instance

    Raises:
        ValueError: If the file is not valid YAML or fails validation
    """
    if not path.exists():
        return Settings()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top of {path}")

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid settings in {path}: {e}") from e


def save_settings(path: Path, settings: Settings) -> None:
    """Save settings to a YAML file, creating parent directories if needed.

    Args:
        path: Path to settings.yml
        settings: Settings to write
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data = settings.model_dump(mode="json", exclude_none=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


__all__ = ["load_settings", "save_settings"]
