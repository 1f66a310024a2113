"""
Staging schema install/uninstall.

All plugin tables are prefixed with the gateway's table prefix. The
``stock_master`` table belongs to the host ERP; it is created here only when
missing so a standalone workspace has a stock catalog to match against, and
it is never dropped.
"""

from __future__ import annotations

import logging

from amazon_invoices.storage.gateway import DatabaseGateway

logger = logging.getLogger(__name__)

INVOICES_TABLE = "amazon_invoices_staging"
ITEMS_TABLE = "amazon_invoice_items_staging"
PAYMENTS_TABLE = "amazon_payment_staging"
RULES_TABLE = "amazon_item_matching_rules"
HISTORY_TABLE = "amazon_item_matching_history"
LOG_TABLE = "amazon_processing_log"
SOURCES_TABLE = "amazon_processed_sources"
STOCK_TABLE = "stock_master"

# Creation order; uninstall drops in reverse
PLUGIN_TABLES = (
    INVOICES_TABLE,
    ITEMS_TABLE,
    PAYMENTS_TABLE,
    RULES_TABLE,
    HISTORY_TABLE,
    LOG_TABLE,
    SOURCES_TABLE,
)

_NOW = "(datetime('now', 'localtime'))"


def _ddl(db: DatabaseGateway) -> dict[str, list[str]]:
    def idx(table: str, suffix: str) -> str:
        return f'"idx_{db.table_name(table)}_{suffix}"'

    inv = db.table(INVOICES_TABLE)
    items = db.table(ITEMS_TABLE)
    pay = db.table(PAYMENTS_TABLE)
    rules = db.table(RULES_TABLE)
    hist = db.table(HISTORY_TABLE)
    log = db.table(LOG_TABLE)
    src = db.table(SOURCES_TABLE)
    return {
        INVOICES_TABLE: [
            f"""
            CREATE TABLE IF NOT EXISTS {inv} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                invoice_number TEXT NOT NULL UNIQUE,
                order_number TEXT NOT NULL,
                invoice_date TEXT NOT NULL,
                invoice_total REAL NOT NULL,
                tax_amount REAL DEFAULT 0,
                shipping_amount REAL DEFAULT 0,
                currency TEXT DEFAULT 'USD',
                pdf_path TEXT,
                raw_data TEXT,
                status TEXT NOT NULL DEFAULT 'pending',
                notes TEXT,
                created_at TEXT NOT NULL DEFAULT {_NOW},
                processed_at TEXT,
                fa_trans_no INTEGER
            )
            """,
            f"CREATE INDEX IF NOT EXISTS {idx(INVOICES_TABLE, 'status')} ON {inv}(status)",
            f"CREATE INDEX IF NOT EXISTS {idx(INVOICES_TABLE, 'order')} ON {inv}(order_number)",
            f"CREATE INDEX IF NOT EXISTS {idx(INVOICES_TABLE, 'date')} ON {inv}(invoice_date)",
        ],
        ITEMS_TABLE: [
            f"""
            CREATE TABLE IF NOT EXISTS {items} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                staging_invoice_id INTEGER NOT NULL REFERENCES {inv}(id),
                line_number INTEGER NOT NULL,
                product_name TEXT NOT NULL,
                asin TEXT,
                sku TEXT,
                quantity INTEGER NOT NULL,
                unit_price REAL NOT NULL,
                total_price REAL NOT NULL,
                tax_amount REAL DEFAULT 0,
                fa_stock_id TEXT,
                fa_item_matched INTEGER NOT NULL DEFAULT 0,
                item_match_type TEXT,
                supplier_item_code TEXT,
                category_suggestion TEXT,
                notes TEXT,
                UNIQUE (staging_invoice_id, line_number)
            )
            """,
            f"CREATE INDEX IF NOT EXISTS {idx(ITEMS_TABLE, 'asin')} ON {items}(asin)",
        ],
        PAYMENTS_TABLE: [
            f"""
            CREATE TABLE IF NOT EXISTS {pay} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                staging_invoice_id INTEGER NOT NULL REFERENCES {inv}(id),
                payment_method TEXT NOT NULL,
                payment_reference TEXT,
                amount REAL NOT NULL,
                fa_bank_account INTEGER,
                fa_payment_type INTEGER,
                allocation_complete INTEGER NOT NULL DEFAULT 0,
                notes TEXT
            )
            """,
        ],
        RULES_TABLE: [
            f"""
            CREATE TABLE IF NOT EXISTS {rules} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                match_type TEXT NOT NULL,
                match_value TEXT NOT NULL,
                fa_stock_id TEXT NOT NULL,
                priority INTEGER NOT NULL DEFAULT 1,
                active INTEGER NOT NULL DEFAULT 1,
                created_by TEXT,
                created_at TEXT NOT NULL DEFAULT {_NOW}
            )
            """,
            f"CREATE INDEX IF NOT EXISTS {idx(RULES_TABLE, 'lookup')} ON {rules}(match_type, match_value, active)",
        ],
        HISTORY_TABLE: [
            f"""
            CREATE TABLE IF NOT EXISTS {hist} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                item_id INTEGER,
                asin TEXT,
                sku TEXT,
                product_name TEXT,
                fa_stock_id TEXT NOT NULL,
                match_type TEXT NOT NULL,
                confidence INTEGER NOT NULL DEFAULT 100,
                created_by TEXT,
                created_at TEXT NOT NULL DEFAULT {_NOW}
            )
            """,
        ],
        LOG_TABLE: [
            f"""
            CREATE TABLE IF NOT EXISTS {log} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                staging_invoice_id INTEGER,
                action TEXT NOT NULL,
                details TEXT,
                user_id TEXT,
                created_at TEXT NOT NULL DEFAULT {_NOW}
            )
            """,
            f"CREATE INDEX IF NOT EXISTS {idx(LOG_TABLE, 'invoice')} ON {log}(staging_invoice_id)",
        ],
        SOURCES_TABLE: [
            f"""
            CREATE TABLE IF NOT EXISTS {src} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source_kind TEXT NOT NULL,
                source_key TEXT NOT NULL,
                status TEXT NOT NULL,
                staging_invoice_id INTEGER,
                details TEXT,
                processed_at TEXT NOT NULL DEFAULT {_NOW},
                UNIQUE (source_kind, source_key)
            )
            """,
        ],
    }


def _stock_ddl(db: DatabaseGateway) -> str:
    return f"""
    CREATE TABLE IF NOT EXISTS {db.table(STOCK_TABLE)} (
        stock_id TEXT PRIMARY KEY,
        description TEXT NOT NULL,
        long_description TEXT,
        units TEXT DEFAULT 'each',
        material_cost REAL DEFAULT 0,
        supplier_reference TEXT,
        inactive INTEGER NOT NULL DEFAULT 0
    )
"""


def install_schema(db: DatabaseGateway) -> None:
    """Create the staging tables (and a stock catalog when missing).

    Safe to run repeatedly.
    """
    db.execute(_stock_ddl(db))
    ddl = _ddl(db)
    for table in PLUGIN_TABLES:
        for statement in ddl[table]:
            db.execute(statement)
    logger.info("Installed staging schema with prefix %r", db.table_prefix)


def uninstall_schema(db: DatabaseGateway) -> None:
    """Drop the staging tables in reverse dependency order."""
    for table in reversed(PLUGIN_TABLES):
        db.execute(f"DROP TABLE IF EXISTS {db.table(table)}")
    logger.info("Removed staging schema with prefix %r", db.table_prefix)


def tables_exist(db: DatabaseGateway) -> bool:
    """True when every plugin table is present."""
    rows = db.query_all("SELECT name FROM sqlite_master WHERE type = 'table'")
    names = {row["name"] for row in rows}
    return all(db.table_name(table) in names for table in PLUGIN_TABLES)


__all__ = [
    "HISTORY_TABLE",
    "INVOICES_TABLE",
    "ITEMS_TABLE",
    "LOG_TABLE",
    "PAYMENTS_TABLE",
    "PLUGIN_TABLES",
    "RULES_TABLE",
    "SOURCES_TABLE",
    "STOCK_TABLE",
    "install_schema",
    "tables_exist",
    "uninstall_schema",
]
