"""Multinomial Naive Bayes tastiness scorer with retractable training."""

from __future__ import annotations

from typing import Any

import numpy as np
from scipy.special import expit

from ..types import Direction, Label
from .vectorizer import DEFAULT_TEXT_DIM, TextVectoriser

CLASSES: tuple[Label, ...] = (Label.TASTY, Label.BLAND)


class NaiveBayesClassifier:
    """Token-count Naive Bayes over hashed features.

    Counts are kept explicitly instead of in an estimator so a correction can
    retract an earlier training update (``Direction.REMOVE``); counts never go
    below zero.
    """

    def __init__(
        self,
        name: str = "naive_bayes",
        *,
        alpha: float = 1.0,
        text_features: int = DEFAULT_TEXT_DIM,
    ) -> None:
        if alpha <= 0:
            raise ValueError("alpha must be positive")
        self.name = name
        self._alpha = float(alpha)
        self._vectoriser = TextVectoriser(text_features)
        self._counts = np.zeros((len(CLASSES), text_features), dtype=np.float64)
        self._documents = np.zeros(len(CLASSES), dtype=np.float64)

    def train(self, text: str, label: Label, direction: Direction = Direction.ADD) -> None:
        row = _class_index(label)
        sign = 1.0 if direction is Direction.ADD else -1.0
        encoded = self._vectoriser.transform(text)
        counts = self._counts[row]
        np.add.at(counts, encoded.indices, sign * encoded.data)
        np.maximum(counts, 0.0, out=counts)
        self._documents[row] = max(0.0, self._documents[row] + sign)

    def score(self, text: str) -> float:
        """Return the posterior probability that ``text`` is tasty."""

        if not self.is_trained():
            return 0.0
        encoded = self._vectoriser.transform(text)
        joint = self._log_priors() + self._log_likelihoods(encoded.indices, encoded.data)
        tasty, bland = (_class_index(Label.TASTY), _class_index(Label.BLAND))
        return float(expit(joint[tasty] - joint[bland]))

    def to_state(self) -> dict[str, Any]:
        return {
            "counts": self._counts,
            "documents": self._documents,
            "alpha": self._alpha,
            "text_features": self._vectoriser.dimension,
        }

    def load_state(self, state: dict[str, Any]) -> None:
        counts = np.asarray(state["counts"], dtype=np.float64)
        documents = np.asarray(state["documents"], dtype=np.float64)
        if counts.shape != (len(CLASSES), int(state["text_features"])):
            raise ValueError(f"Model counts have unexpected shape {counts.shape}")
        self._counts = counts
        self._documents = documents
        self._alpha = float(state.get("alpha", self._alpha))
        if counts.shape[1] != self._vectoriser.dimension:
            self._vectoriser = TextVectoriser(counts.shape[1])

    def is_trained(self) -> bool:
        return bool(self._documents.sum() > 0)

    def document_counts(self) -> dict[Label, int]:
        return {label: int(self._documents[idx]) for idx, label in enumerate(CLASSES)}

    def _log_priors(self) -> np.ndarray:
        return np.log((self._documents + 1.0) / (self._documents.sum() + len(CLASSES)))

    def _log_likelihoods(self, indices: np.ndarray, data: np.ndarray) -> np.ndarray:
        totals = self._counts.sum(axis=1)
        smoothed = self._counts[:, indices] + self._alpha
        denominators = totals + self._alpha * self._vectoriser.dimension
        return (data * np.log(smoothed / denominators[:, np.newaxis])).sum(axis=1)


def _class_index(label: Label) -> int:
    return CLASSES.index(Label(label))


__all__ = ["CLASSES", "NaiveBayesClassifier"]
