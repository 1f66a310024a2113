"""Amazon invoice staging, item matching and import tracking for FrontAccounting."""

__version__ = "0.1.0"
