from __future__ import annotations

"""Storage-layer exceptions."""


class RepositoryError(Exception):
    """A multi-statement write failed and was rolled back.

    The underlying storage error is available as ``__cause__``.
    """


__all__ = ["RepositoryError"]
