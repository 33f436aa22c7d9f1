"""Classifier protocol definitions."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ..types import Direction, Label


@runtime_checkable
class TextClassifier(Protocol):
    """Binary tasty/bland text classifier kept per mailbox."""

    name: str

    def score(self, text: str) -> float:
        """Return how tasty ``text`` looks; higher is tastier."""

    def train(self, text: str, label: Label, direction: Direction = Direction.ADD) -> None:
        """Add (or retract) ``text`` as evidence for ``label``."""

    def to_state(self) -> dict[str, Any]:
        """Return a picklable snapshot of the model."""

    def load_state(self, state: dict[str, Any]) -> None:
        """Restore the model from :meth:`to_state` output."""

    def is_trained(self) -> bool:
        """Return True when the classifier holds at least one sample."""


__all__ = ["TextClassifier"]
