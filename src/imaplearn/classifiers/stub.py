"""Classifier used when the scoring backend cannot be imported."""

from __future__ import annotations

from typing import Any

from ..types import Direction, Label


class BlandClassifier:
    """Never finds anything tasty and ignores training."""

    name = "bland"

    def score(self, text: str) -> float:
        return float("-inf")

    def train(self, text: str, label: Label, direction: Direction = Direction.ADD) -> None:
        return None

    def to_state(self) -> dict[str, Any]:
        return {}

    def load_state(self, state: dict[str, Any]) -> None:
        return None

    def is_trained(self) -> bool:
        return False


__all__ = ["BlandClassifier"]
