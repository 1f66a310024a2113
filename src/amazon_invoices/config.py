"""
Central configuration for the Amazon invoices application.

Path resolution lives in amazon_invoices.workspace.Workspace, which provides
a single workspace root with computed path properties for all data locations:
  1. Explicit --data-dir CLI option
  2. AMAZON_INVOICES_DATA environment variable
  3. Current working directory

Tunable behaviour (table prefix, matching thresholds, default GL accounts) is
read from config/settings.yml; see amazon_invoices.model.settings.
"""

DATA_DIR_ENV_VAR = "AMAZON_INVOICES_DATA"

DEFAULT_DATABASE_FILE = "amazon_invoices.db"
DEFAULT_TABLE_PREFIX = "0_"
DEFAULT_CURRENCY = "USD"

# Absolute tolerance used for every money comparison
AMOUNT_TOLERANCE = 0.01

# Actor recorded when a command runs without an explicit --actor
DEFAULT_ACTOR = "system"
ACTOR_ENV_VAR = "AMAZON_INVOICES_ACTOR"
