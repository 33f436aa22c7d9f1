"""Core immutable data structures used throughout imaplearn."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

FLAGGED = "\\Flagged"
DELETED = "\\Deleted"
NOSELECT = "\\Noselect"

LEARN_KEYWORD = "IMAPLEARN_FLAGGED"
TASTY_KEYWORD = LEARN_KEYWORD + "_TASTY"
BLAND_KEYWORD = LEARN_KEYWORD + "_BLAND"
AUTO_FLAG_KEYWORD = "IMAPFLAG_AUTO_FLAGGED"


class FlagOp(str, Enum):
    """Direction of a STORE flag delta."""

    ADD = "+FLAGS.SILENT"
    REMOVE = "-FLAGS.SILENT"


class Label(str, Enum):
    """Training label for the tastiness classifier."""

    TASTY = "tasty"
    BLAND = "bland"


class Direction(str, Enum):
    """Whether a training update adds or retracts evidence."""

    ADD = "add"
    REMOVE = "remove"


class ClassificationState(str, Enum):
    """Classification state derived from a message's flags and keywords."""

    UNLEARNED = "unlearned"
    TASTY = "tasty"
    BLAND = "bland"


@dataclass(frozen=True)
class MailboxListing:
    """A mailbox returned by LIST."""

    name: str
    attributes: frozenset[str] = frozenset()
    delimiter: str | None = "/"

    @property
    def selectable(self) -> bool:
        return not any(attr.lower() == NOSELECT.lower() for attr in self.attributes)


@dataclass(frozen=True)
class TriageKeywords:
    """Keyword names used to persist classification state on the server."""

    learn: str = LEARN_KEYWORD
    tasty: str = TASTY_KEYWORD
    bland: str = BLAND_KEYWORD


__all__ = [
    "AUTO_FLAG_KEYWORD",
    "BLAND_KEYWORD",
    "ClassificationState",
    "DELETED",
    "Direction",
    "FLAGGED",
    "FlagOp",
    "LEARN_KEYWORD",
    "Label",
    "MailboxListing",
    "NOSELECT",
    "TASTY_KEYWORD",
    "TriageKeywords",
]
