"""Errors raised by the import pipelines."""


class ExtractionError(Exception):
    """A PDF or e-mail could not be turned into invoice text."""


class AllocationError(Exception):
    """A payment allocation or split request cannot be applied."""


__all__ = ["AllocationError", "ExtractionError"]
