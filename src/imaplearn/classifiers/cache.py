"""Per-mailbox classifier lifecycle."""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable

from ..store import ModelStore
from .base import TextClassifier
from .stub import BlandClassifier

LOGGER = logging.getLogger(__name__)

ClassifierFactory = Callable[[], TextClassifier]
BACKEND_MODULE = "imaplearn.classifiers.naive_bayes"


def default_factory() -> ClassifierFactory:
    """Return the scoring classifier factory, or the bland stub without a backend."""

    try:
        module = importlib.import_module(BACKEND_MODULE)
    except ImportError as exc:
        LOGGER.debug("Classifier backend unavailable (%s); scoring everything bland", exc)
        return BlandClassifier
    return module.NaiveBayesClassifier


class ClassifierCache:
    """Builds one classifier per mailbox on first use and keeps it for the run.

    The cache is the only owner of model state: it loads a mailbox's model file
    when the classifier is first requested and writes it back on
    :meth:`persist`.
    """

    def __init__(
        self,
        store: ModelStore,
        factory: ClassifierFactory | None = None,
        *,
        persist: bool = True,
    ) -> None:
        self._store = store
        self._factory = factory or default_factory()
        self._persist = persist
        self._entries: dict[str, TextClassifier] = {}

    def classifier_for(self, mailbox: str) -> TextClassifier:
        """Return the classifier for ``mailbox``, creating it when needed."""

        classifier = self._entries.get(mailbox)
        if classifier is not None:
            return classifier

        path = self._store.prepare(mailbox)
        classifier = self._factory()
        # the stub keeps no state; an existing model stays on disk for when the backend returns
        state = None if isinstance(classifier, BlandClassifier) else self._store.load(mailbox)
        if state:
            try:
                classifier.load_state(state)
            except (KeyError, TypeError, ValueError):
                LOGGER.warning(
                    "Ignoring incompatible model for %s at %s", mailbox, path, exc_info=True
                )
                classifier = self._factory()
        LOGGER.debug("Using %s classifier for %s (%s)", classifier.name, mailbox, path)
        self._entries[mailbox] = classifier
        return classifier

    def persist(self, mailbox: str) -> None:
        """Write the model of ``mailbox`` to disk if it was loaded this run."""

        classifier = self._entries.get(mailbox)
        if classifier is None:
            return
        if not self._persist:
            LOGGER.debug("Dry-run: not saving model for %s", mailbox)
            return
        state = classifier.to_state()
        if not state:
            return
        path = self._store.save(mailbox, state)
        LOGGER.debug("Saved model for %s to %s", mailbox, path)

    def persist_all(self) -> None:
        for mailbox in list(self._entries):
            self.persist(mailbox)

    def __contains__(self, mailbox: object) -> bool:
        return mailbox in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["BACKEND_MODULE", "ClassifierCache", "ClassifierFactory", "default_factory"]
