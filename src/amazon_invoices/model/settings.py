from __future__ import annotations

"""
Settings models for the Amazon invoices workspace.

Scope
- Pure Pydantic v2 models mirroring config/settings.yml
- No I/O operations (handled by settings_io.py)
"""

from pydantic import BaseModel, Field, field_validator

from amazon_invoices.config import DEFAULT_CURRENCY, DEFAULT_TABLE_PREFIX


def _default_category_mappings() -> dict[str, int]:
    return {
        "computer": 1,
        "electronic": 1,
        "book": 2,
        "clothing": 3,
        "home": 4,
        "kitchen": 4,
        "office": 5,
    }


class MatchingSettings(BaseModel):
    """Thresholds and defaults used by stock matching and new-item suggestions."""

    min_name_confidence: int = Field(default=60, ge=0, le=100)
    default_category_id: int | None = 1
    default_purchase_account: str = "5010"
    default_cogs_account: str = "5020"
    default_inventory_account: str = "1510"
    default_adjustment_account: str = "5040"
    default_assembly_account: str = "1530"
    category_mappings: dict[str, int] = Field(default_factory=_default_category_mappings)


class OcrSettings(BaseModel):
    """External OCR tool locations and thresholds for the PDF pipeline."""

    tesseract_path: str = "tesseract"
    pdftoppm_path: str = "pdftoppm"
    language: str = "eng"
    dpi: int = Field(default=300, gt=0)
    timeout_seconds: int = Field(default=60, gt=0)
    min_confidence: float = Field(default=60.0, ge=0, le=100)


class Settings(BaseModel):
    """Workspace settings loaded from config/settings.yml."""

    table_prefix: str = DEFAULT_TABLE_PREFIX
    default_currency: str = DEFAULT_CURRENCY
    amazon_email: str | None = None
    download_path: str | None = None
    default_supplier: int | None = None
    auto_process: bool = Field(
        default=False, description="Auto-match items right after each import"
    )
    notification_email: str | None = None
    backup_enabled: bool = False
    max_file_age_days: int = Field(default=90, gt=0)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    ocr: OcrSettings = Field(default_factory=OcrSettings)

    @field_validator("default_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()


__all__ = ["MatchingSettings", "OcrSettings", "Settings"]
