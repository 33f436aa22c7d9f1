"""Classifier implementations and infrastructure.

The scoring backend is imported lazily by :func:`default_factory` so that a
missing numerical stack degrades to :class:`BlandClassifier` instead of
failing at import time.
"""

from .base import TextClassifier
from .cache import ClassifierCache, default_factory
from .stub import BlandClassifier

__all__ = [
    "BlandClassifier",
    "ClassifierCache",
    "TextClassifier",
    "default_factory",
]
