from .errors import RepositoryError
from .gateway import DatabaseGateway, SqliteGateway
from .invoice_repository import InvoiceRepository
from .processing_log import SOURCE_EMAIL, SOURCE_PDF, ProcessingLog
from .schema import install_schema, tables_exist, uninstall_schema
from .stock_catalog import StockCatalog

__all__ = [
    "DatabaseGateway",
    "InvoiceRepository",
    "ProcessingLog",
    "RepositoryError",
    "SOURCE_EMAIL",
    "SOURCE_PDF",
    "SqliteGateway",
    "StockCatalog",
    "install_schema",
    "tables_exist",
    "uninstall_schema",
]
