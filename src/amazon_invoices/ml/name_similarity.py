"""Similarity scoring between Amazon product names and stock descriptions.

Amazon titles are long and noisy ("Anker USB-C Cable (6ft, 2-Pack) [Braided]")
while stock descriptions are short ("USB-C Cable 6ft"). Scores combine
character-level and word-level measures so both typos and re-ordered words
are tolerated.
"""

from __future__ import annotations

import re

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

_PARENTHETICAL = re.compile(r"\s*\([^)]*\)\s*")
_BRACKETED = re.compile(r"\s*\[[^\]]*\]\s*")
_PACK_COUNT = re.compile(r"\s*-\s*[0-9]+\s*(pack|count|pcs?)\s*", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]")

STOP_WORDS = frozenset(
    {
        "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "from", "up", "about", "into", "through", "during", "before", "after", "above",
        "below", "between", "among", "within", "without", "under", "over",
    }
)


def clean_product_name(name: str) -> str:
    """Strip Amazon decorations: parenthetical/bracketed text and pack counts."""
    name = _PARENTHETICAL.sub(" ", name)
    name = _BRACKETED.sub(" ", name)
    name = _PACK_COUNT.sub(" ", name)
    return _WHITESPACE.sub(" ", name).strip()


def normalize_for_comparison(name: str) -> str:
    """Lowercase, drop punctuation, stop words and words of two characters or less."""
    text = _PUNCTUATION.sub(" ", name.lower())
    words = [w for w in text.split() if len(w) > 2 and w not in STOP_WORDS]
    return " ".join(words)


def levenshtein_ratio(s1: str, s2: str) -> float:
    """Levenshtein similarity ratio (0-1, higher is more similar).

    Uses dynamic programming with two rows.
    """
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    prev_row = list(range(len(s2) + 1))
    curr_row = [0] * (len(s2) + 1)

    for i in range(1, len(s1) + 1):
        curr_row[0] = i
        for j in range(1, len(s2) + 1):
            if s1[i - 1] == s2[j - 1]:
                curr_row[j] = prev_row[j - 1]
            else:
                curr_row[j] = 1 + min(
                    prev_row[j],  # Deletion
                    curr_row[j - 1],  # Insertion
                    prev_row[j - 1],  # Substitution
                )
        prev_row, curr_row = curr_row, prev_row

    return 1.0 - (prev_row[-1] / max(len(s1), len(s2)))


def token_overlap(s1: str, s2: str) -> float:
    """Jaccard overlap of whitespace-separated tokens."""
    tokens1 = set(s1.split())
    tokens2 = set(s2.split())
    union = tokens1 | tokens2
    if not union:
        return 0.0
    return len(tokens1 & tokens2) / len(union)


class ProductNameScorer:
    """Scores how well a stock description matches an Amazon product name.

    Features combined:
    1. Levenshtein ratio on cleaned, lowercased names (character-level)
    2. Token overlap (word-level)
    3. TF-IDF cosine over character n-grams, once fitted on a stock catalog

    Without a fitted vectorizer the score is 0.7 × Levenshtein + 0.3 × overlap.
    With one, the cosine takes a third of the weight.
    """

    def __init__(self) -> None:
        self.vectorizer = TfidfVectorizer(
            analyzer="char_wb",
            ngram_range=(2, 4),
            lowercase=True,
            min_df=1,
        )
        self._is_fitted = False

    @property
    def is_fitted(self) -> bool:
        return self._is_fitted

    def fit(self, corpus: list[str]) -> None:
        """Learn the n-gram vocabulary from stock descriptions.

        Args:
            corpus: Descriptions to learn from; blank entries are ignored
        """
        texts = [clean_product_name(t).lower() for t in corpus if t and t.strip()]
        if not texts:
            self._is_fitted = False
            return
        self.vectorizer.fit(texts)
        self._is_fitted = True

    def score(self, product_name: str, description: str) -> float:
        """Similarity in [0, 1] between a product name and a stock description."""
        a = clean_product_name(product_name).lower()
        b = clean_product_name(description).lower()
        if not a or not b:
            return 0.0

        base = 0.7 * levenshtein_ratio(a, b) + 0.3 * token_overlap(a, b)
        if not self._is_fitted:
            return base

        vectors = self.vectorizer.transform([a, b])
        cosine = float(cosine_similarity(vectors[0], vectors[1])[0, 0])
        return float(np.clip((2.0 * base + cosine) / 3.0, 0.0, 1.0))

    def confidence(self, product_name: str, *descriptions: str | None) -> int:
        """Best score against any of the descriptions, as an integer percentage."""
        scores = [self.score(product_name, d) for d in descriptions if d]
        if not scores:
            return 0
        return min(100, int(max(scores) * 100))


__all__ = [
    "ProductNameScorer",
    "STOP_WORDS",
    "clean_product_name",
    "levenshtein_ratio",
    "normalize_for_comparison",
    "token_overlap",
]
