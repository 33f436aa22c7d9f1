"""Learn which messages are tasty from the user's own flagging.

Classification state lives entirely in IMAP keywords on the server:

* no learn keyword: the message was never classified (``UNLEARNED``);
* learn + tasty keyword: classified interesting (``TASTY``), normally
  ``\\Flagged``;
* learn + bland keyword: classified uninteresting (``BLAND``), normally not
  ``\\Flagged``.

Every run reconciles each mailbox in four ordered passes:

1. flagged messages never learned are trained tasty;
2. tasty messages the user unflagged are corrected to bland;
3. bland messages the user flagged are corrected to tasty;
4. whatever is still unlearned is scored and bucketed by the threshold.

Corrections only touch learned messages and add the new keyword before
removing the old one. A run that dies in between leaves both keywords on the
message; :func:`classification_state` resolves that pair by ``\\Flagged`` and
pass 2 or 3 repairs it next time. Passes 1 and 4 drop any stale opposite
keyword, so no single run matches a message in more than one pass.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from .classifiers.base import TextClassifier
from .classifiers.cache import ClassifierCache
from .extractor import message_text
from .scanner import MailboxScanner
from .session import ImapSession
from .types import FLAGGED, ClassificationState, Direction, FlagOp, Label, TriageKeywords

LOGGER = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.85
BODY_ITEM = "BODY.PEEK[]"
BODY_KEY = "BODY[]"
FLAGS_ITEM = "FLAGS"

TrainingSignal = tuple[Label, Direction]


class TriagePass(IntEnum):
    """The ordered reconciliation passes run for every mailbox."""

    LEARN_FLAGGED = 1
    CORRECT_TO_BLAND = 2
    CORRECT_TO_TASTY = 3
    CLASSIFY_UNLEARNED = 4


@dataclass(frozen=True)
class KeywordSnapshot:
    """The flag and keyword predicates the state machine reads."""

    flagged: bool
    learned: bool
    tasty: bool
    bland: bool

    @classmethod
    def from_flags(
        cls,
        flags: Iterable[str],
        keywords: TriageKeywords = TriageKeywords(),
    ) -> KeywordSnapshot:
        present = {str(flag).casefold() for flag in flags}
        return cls(
            flagged=FLAGGED.casefold() in present,
            learned=keywords.learn.casefold() in present,
            tasty=keywords.tasty.casefold() in present,
            bland=keywords.bland.casefold() in present,
        )


def classification_state(snapshot: KeywordSnapshot) -> ClassificationState:
    """Map every flag/keyword combination onto exactly one state.

    Tasty/bland keywords without the learn keyword are ignored. A learned
    message carrying both keywords, or neither, was left mid-correction and
    takes its state from ``\\Flagged``, which is what the user last asked for.
    """

    if not snapshot.learned:
        return ClassificationState.UNLEARNED
    if snapshot.tasty != snapshot.bland:
        return ClassificationState.TASTY if snapshot.tasty else ClassificationState.BLAND
    return ClassificationState.TASTY if snapshot.flagged else ClassificationState.BLAND


def matching_pass(snapshot: KeywordSnapshot) -> TriagePass | None:
    """Return the first pass whose search would select a message in this state."""

    if snapshot.flagged and not snapshot.learned:
        return TriagePass.LEARN_FLAGGED
    if snapshot.learned and not snapshot.flagged and snapshot.tasty:
        return TriagePass.CORRECT_TO_BLAND
    if snapshot.learned and snapshot.flagged and snapshot.bland:
        return TriagePass.CORRECT_TO_TASTY
    if not snapshot.learned:
        return TriagePass.CLASSIFY_UNLEARNED
    return None


def pass_criteria(triage_pass: TriagePass, keywords: TriageKeywords) -> list[str]:
    """Return the IMAP SEARCH criteria of ``triage_pass``."""

    criteria: Mapping[TriagePass, list[str]] = {
        TriagePass.LEARN_FLAGGED: ["FLAGGED", "NOT", "KEYWORD", keywords.learn],
        TriagePass.CORRECT_TO_BLAND: [
            "NOT", "FLAGGED", "KEYWORD", keywords.learn, "KEYWORD", keywords.tasty
        ],
        TriagePass.CORRECT_TO_TASTY: [
            "FLAGGED", "KEYWORD", keywords.learn, "KEYWORD", keywords.bland
        ],
        TriagePass.CLASSIFY_UNLEARNED: ["NOT", "KEYWORD", keywords.learn],
    }
    return list(criteria[triage_pass])


@dataclass
class MailboxReport:
    """Messages matched by each pass in one mailbox."""

    mailbox: str
    learned_flagged: int = 0
    corrected_to_bland: int = 0
    corrected_to_tasty: int = 0
    classified_tasty: int = 0
    classified_bland: int = 0

    @property
    def classified(self) -> int:
        return self.classified_tasty + self.classified_bland

    @property
    def total(self) -> int:
        return (
            self.learned_flagged
            + self.corrected_to_bland
            + self.corrected_to_tasty
            + self.classified
        )


class TriageEngine:
    """Runs the four reconciliation passes against the selected mailbox."""

    def __init__(
        self,
        scanner: MailboxScanner[Any],
        cache: ClassifierCache,
        *,
        keywords: TriageKeywords = TriageKeywords(),
        text_extractor: Callable[[bytes | str], str] = message_text,
    ) -> None:
        self._scanner = scanner
        self._cache = cache
        self._keywords = keywords
        self._text_extractor = text_extractor

    def triage(self, mailbox: str, threshold: float = DEFAULT_THRESHOLD) -> MailboxReport:
        """Run passes 1 to 4 on ``mailbox``, which must already be selected.

        Any error aborts the remaining passes and propagates. Training done up
        to that point is still saved.
        """

        report = MailboxReport(mailbox)
        classifier = self._cache.classifier_for(mailbox)
        handled: set[int] = set()
        try:
            for field, run_pass in (
                ("learned_flagged", self._learn_flagged),
                ("corrected_to_bland", self._correct_to_bland),
                ("corrected_to_tasty", self._correct_to_tasty),
            ):
                ids = run_pass(classifier)
                setattr(report, field, len(ids))
                handled.update(ids)
            tasty, bland = self._classify_unlearned(classifier, threshold, handled)
            report.classified_tasty = tasty
            report.classified_bland = bland
        except BaseException:
            self._persist_quietly(mailbox)
            raise
        self._cache.persist(mailbox)
        LOGGER.info(
            "%s: learned %s flagged, corrected %s to bland and %s to tasty, "
            "classified %s tasty and %s bland",
            mailbox,
            report.learned_flagged,
            report.corrected_to_bland,
            report.corrected_to_tasty,
            report.classified_tasty,
            report.classified_bland,
        )
        return report

    def _learn_flagged(self, classifier: TextClassifier) -> list[int]:
        keywords = self._keywords
        ids = self._search(TriagePass.LEARN_FLAGGED, "unlearned, flagged messages")
        self._train_and_mark(
            classifier,
            ids,
            signals=[(Label.TASTY, Direction.ADD)],
            add=[keywords.learn, keywords.tasty],
            remove=[keywords.bland],
        )
        return ids

    def _correct_to_bland(self, classifier: TextClassifier) -> list[int]:
        keywords = self._keywords
        ids = self._search(TriagePass.CORRECT_TO_BLAND, "messages re-marked bland")
        self._train_and_mark(
            classifier,
            ids,
            signals=[(Label.TASTY, Direction.REMOVE), (Label.BLAND, Direction.ADD)],
            add=[keywords.bland],
            remove=[keywords.tasty],
        )
        return ids

    def _correct_to_tasty(self, classifier: TextClassifier) -> list[int]:
        keywords = self._keywords
        ids = self._search(TriagePass.CORRECT_TO_TASTY, "messages re-marked tasty")
        self._train_and_mark(
            classifier,
            ids,
            signals=[(Label.BLAND, Direction.REMOVE), (Label.TASTY, Direction.ADD)],
            add=[keywords.tasty],
            remove=[keywords.bland],
        )
        return ids

    def _classify_unlearned(
        self,
        classifier: TextClassifier,
        threshold: float,
        handled: Iterable[int] = (),
    ) -> tuple[int, int]:
        keywords = self._keywords
        ids = self._search(TriagePass.CLASSIFY_UNLEARNED, "new, unmarked messages")
        # a dry run writes no learn keyword, so earlier passes' matches show up again
        skip = set(handled)
        if skip:
            ids = [msgid for msgid in ids if msgid not in skip]

        tasty: list[int] = []
        bland: list[int] = []
        stale_bland: list[int] = []
        stale_tasty: list[int] = []
        for chunk in self._scanner.executor.iter_fetch(ids, [BODY_ITEM, FLAGS_ITEM]):
            for msgid, record in chunk:
                rating = classifier.score(self._text(record))
                snapshot = KeywordSnapshot.from_flags(record.get(FLAGS_ITEM, ()), keywords)
                if rating > threshold:
                    tasty.append(msgid)
                    if snapshot.bland:
                        stale_bland.append(msgid)
                else:
                    bland.append(msgid)
                    if snapshot.tasty:
                        stale_tasty.append(msgid)
                LOGGER.debug("Message %s rated %.3f (threshold %.3f)", msgid, rating, threshold)

        self._train_and_mark(
            classifier,
            tasty,
            signals=[(Label.TASTY, Direction.ADD)],
            add=[FLAGGED, keywords.learn, keywords.tasty],
        )
        self._train_and_mark(
            classifier,
            bland,
            signals=[(Label.BLAND, Direction.ADD)],
            add=[keywords.learn, keywords.bland],
        )
        self._scanner.mark(stale_bland, [keywords.bland], FlagOp.REMOVE)
        self._scanner.mark(stale_tasty, [keywords.tasty], FlagOp.REMOVE)
        return len(tasty), len(bland)

    def _persist_quietly(self, mailbox: str) -> None:
        """Save the model while another error is propagating."""

        try:
            self._cache.persist(mailbox)
        except OSError:
            LOGGER.error("Could not save model for %s", mailbox, exc_info=True)

    def _search(self, triage_pass: TriagePass, label: str) -> list[int]:
        return self._scanner.search(pass_criteria(triage_pass, self._keywords), label)

    def _train_and_mark(
        self,
        classifier: TextClassifier,
        ids: Sequence[int],
        *,
        signals: Sequence[TrainingSignal],
        add: Sequence[str] = (),
        remove: Sequence[str] = (),
    ) -> None:
        """Train on each fetched chunk, then write that chunk's keyword delta."""

        for chunk in self._scanner.executor.iter_fetch(ids, [BODY_ITEM]):
            for _msgid, record in chunk:
                text = self._text(record)
                for label, direction in signals:
                    classifier.train(text, label, direction)
            chunk_ids = [msgid for msgid, _record in chunk]
            if add:
                self._scanner.mark(chunk_ids, add, FlagOp.ADD)
            if remove:
                self._scanner.mark(chunk_ids, remove, FlagOp.REMOVE)

    def _text(self, record: Mapping[str, Any]) -> str:
        body = record.get(BODY_KEY)
        if body is None:
            body = record.get("RFC822", b"")
        return self._text_extractor(body)


class LearnProcessor(MailboxScanner[float | None]):
    """Flags tasty messages in every configured mailbox.

    ``boxes`` maps a box fragment to its tastiness threshold; ``None`` uses
    the processor-wide default.
    """

    description = "Flagging tasty messages"

    def __init__(
        self,
        session: ImapSession,
        boxes: Mapping[str, float | None],
        *,
        cache: ClassifierCache,
        threshold: float = DEFAULT_THRESHOLD,
        keywords: TriageKeywords = TriageKeywords(),
        **kwargs: Any,
    ) -> None:
        super().__init__(session, boxes, **kwargs)
        self.threshold = threshold
        self.engine = TriageEngine(self, cache, keywords=keywords)
        self.reports: list[MailboxReport] = []

    def process_mailbox(self, mailbox: str) -> int:
        configured = self.parameter_for(mailbox)
        threshold = self.threshold if configured is None else float(configured)
        report = self.engine.triage(mailbox, threshold)
        self.reports.append(report)
        return report.total


__all__ = [
    "BODY_ITEM",
    "DEFAULT_THRESHOLD",
    "FLAGS_ITEM",
    "KeywordSnapshot",
    "LearnProcessor",
    "MailboxReport",
    "TriageEngine",
    "TriagePass",
    "classification_state",
    "matching_pass",
    "pass_criteria",
]
