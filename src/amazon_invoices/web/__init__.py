"""HTTP facade over the import services."""

from amazon_invoices.web.import_controller import ImportController, Request, Response

__all__ = ["ImportController", "Request", "Response"]
