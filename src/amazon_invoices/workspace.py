"""
Workspace - centralized data path resolution for the Amazon invoices application.

A Workspace represents the root directory containing the staging database,
settings and the inbox of PDFs waiting to be imported. All paths are computed
relative to this root.

Resolution priority:
1. Explicit path (--data-dir CLI option)
2. AMAZON_INVOICES_DATA environment variable
3. Current working directory
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from amazon_invoices.config import DATA_DIR_ENV_VAR, DEFAULT_DATABASE_FILE


@dataclass
class Workspace:
    """Root directory for all staging data paths."""

    root: Path

    @classmethod
    def resolve(cls, explicit: Path | None = None) -> Workspace:
        """Resolve workspace root from explicit path, env var, or CWD.

        Args:
            explicit: Explicitly provided path (highest priority)

        Returns:
            Workspace with resolved root
        """
        if explicit is not None:
            return cls(root=explicit)
        env = os.environ.get(DATA_DIR_ENV_VAR)
        if env:
            return cls(root=Path(env))
        return cls(root=Path.cwd())

    @property
    def data_dir(self) -> Path:
        return self.root / "data"

    @property
    def database_path(self) -> Path:
        return self.data_dir / DEFAULT_DATABASE_FILE

    @property
    def settings_path(self) -> Path:
        return self.root / "config" / "settings.yml"

    @property
    def inbox_dir(self) -> Path:
        return self.root / "inbox"

    @property
    def archive_dir(self) -> Path:
        return self.root / "archive"


__all__ = ["Workspace"]
