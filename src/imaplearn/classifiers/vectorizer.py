"""Hashing vectoriser turning message text into sparse token counts."""

from __future__ import annotations

from scipy import sparse
from sklearn.feature_extraction.text import HashingVectorizer

DEFAULT_TEXT_DIM = 2**16


class TextVectoriser:
    """Stateless token counter; the same text always maps to the same columns."""

    def __init__(self, text_features: int = DEFAULT_TEXT_DIM) -> None:
        self._text_features = text_features
        self._vectorizer = HashingVectorizer(
            n_features=text_features,
            alternate_sign=False,
            norm=None,
            binary=False,
            lowercase=True,
            stop_words=None,
        )

    @property
    def dimension(self) -> int:
        return self._text_features

    def transform(self, text: str) -> sparse.csr_matrix:
        """Encode ``text`` as a 1 x dimension sparse count row."""

        matrix = sparse.csr_matrix(self._vectorizer.transform([text]))
        matrix.sum_duplicates()
        return matrix


__all__ = ["DEFAULT_TEXT_DIM", "TextVectoriser"]
