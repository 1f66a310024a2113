"""Text similarity scoring for product names and stock descriptions."""

from .name_similarity import (
    ProductNameScorer,
    clean_product_name,
    levenshtein_ratio,
    normalize_for_comparison,
    token_overlap,
)

__all__ = [
    "ProductNameScorer",
    "clean_product_name",
    "levenshtein_ratio",
    "normalize_for_comparison",
    "token_overlap",
]
