from .invoice import TIMESTAMP_FORMAT, Invoice, InvoiceStatus
from .invoice_item import InvoiceItem, MatchType
from .money import amounts_differ
from .matching_rule import RULE_TYPES, MatchingRule, StockSuggestion
from .payment import Payment, PaymentMethod
from .settings import MatchingSettings, OcrSettings, Settings
from .settings_io import load_settings, save_settings

__all__ = [
    # models
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "MatchType",
    "MatchingRule",
    "Payment",
    "PaymentMethod",
    "StockSuggestion",
    "RULE_TYPES",
    "TIMESTAMP_FORMAT",
    "amounts_differ",
    # settings
    "MatchingSettings",
    "OcrSettings",
    "Settings",
    "load_settings",
    "save_settings",
]
