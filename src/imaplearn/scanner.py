"""Mailbox discovery and the search/mark primitives shared by all processors."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from .batch import BatchExecutor
from .session import ImapSession, SessionError
from .types import FlagOp

LOGGER = logging.getLogger(__name__)

P = TypeVar("P")


class MatchKind(str, Enum):
    """How a configured box fragment is compared with a mailbox name."""

    PREFIX = "prefix"
    SUBSTRING = "substring"


@dataclass(frozen=True)
class BoxPattern:
    """A single case-insensitive mailbox name predicate."""

    fragment: str
    kind: MatchKind = MatchKind.PREFIX

    def matches(self, name: str, root: str = "") -> bool:
        candidate = name.casefold()
        if self.kind is MatchKind.SUBSTRING:
            return candidate.startswith(root.casefold()) and self.fragment.casefold() in candidate
        return candidate.startswith((root + self.fragment).casefold())


def build_patterns(
    fragments: Iterable[str],
    kind: MatchKind = MatchKind.PREFIX,
) -> list[BoxPattern]:
    """Return patterns for ``fragments`` in the given order, without duplicates."""

    patterns: list[BoxPattern] = []
    seen: set[str] = set()
    for fragment in fragments:
        if fragment in seen:
            continue
        seen.add(fragment)
        patterns.append(BoxPattern(fragment, kind))
    return patterns


@dataclass
class RunReport:
    """Outcome of a processor run across every discovered mailbox."""

    mailboxes: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


class MailboxScanner(Generic[P]):
    """Walk the mailboxes selected by box fragments and process each one.

    Subclasses implement :meth:`process_mailbox` using :meth:`search` and
    :meth:`mark`; ``boxes`` maps each fragment to the per-mailbox parameter
    the subclass needs (a threshold, an age, a list of addresses).
    """

    description = "Processing messages"

    def __init__(
        self,
        session: ImapSession,
        boxes: Mapping[str, P],
        *,
        root: str = "",
        match: MatchKind = MatchKind.PREFIX,
        dry_run: bool = False,
        executor: BatchExecutor | None = None,
    ) -> None:
        self.session = session
        self.root = root or ""
        self.boxes = dict(boxes)
        self.patterns = build_patterns(self.boxes, match)
        self.dry_run = dry_run
        self.executor = executor or BatchExecutor(session)
        self.mailbox: str | None = None

    def run(self) -> RunReport:
        """Process every matching mailbox in turn."""

        LOGGER.info(self.description)
        report = RunReport()
        names = self.discover()
        for mailbox, count in self.for_each_mailbox(names, self.process_mailbox, report):
            report.mailboxes.append(mailbox)
            report.counts[mailbox] = count
        LOGGER.info(
            "Done. Found %s messages in %s mailboxes",
            report.total,
            len(report.mailboxes),
        )
        return report

    def process_mailbox(self, mailbox: str) -> int:
        """Handle the currently selected ``mailbox``; return messages found."""

        raise NotImplementedError

    def discover(self) -> list[str]:
        """Return selectable mailboxes under the root matched by the patterns."""

        listings = self.session.list(self.root, "*")
        if not listings:
            LOGGER.warning(
                "Found no mailboxes under %r, you may have an incorrect root", self.root
            )
            return []

        names = [
            listing.name
            for listing in listings
            if listing.selectable and self._matches_any(listing.name)
        ]
        names = sorted(set(names), key=lambda name: (name.casefold(), name))
        LOGGER.info("Found %s mailboxes to search", len(names))
        for name in names:
            LOGGER.debug("\t%s", name)
        return names

    def for_each_mailbox(
        self,
        names: Sequence[str],
        body: Callable[[str], int],
        report: RunReport | None = None,
    ) -> list[tuple[str, int]]:
        """Select each mailbox and call ``body``; a failed SELECT skips only that box."""

        results: list[tuple[str, int]] = []
        for name in names:
            try:
                self.session.select(name)
            except SessionError as exc:
                LOGGER.error("Could not select %s: %s", name, exc)
                if report is not None:
                    report.failed.append(name)
                continue
            self.mailbox = name
            LOGGER.debug("Selected %s", name)
            results.append((name, body(name)))
        self.mailbox = None
        return results

    def parameter_for(self, mailbox: str) -> P:
        """Return the parameter of the first pattern matching ``mailbox``."""

        for pattern in self.patterns:
            if pattern.matches(mailbox, self.root):
                return self.boxes[pattern.fragment]
        raise LookupError(f"No configured box matches mailbox {mailbox!r}")

    def search(self, criteria: Sequence[str], label: str) -> list[int]:
        """Search the selected mailbox, logging the query and hit count."""

        LOGGER.debug("  Scanning for %s: %s", label, " ".join(criteria))
        ids = self.session.search(criteria)
        LOGGER.debug("    Found %s messages", len(ids))
        return ids

    def mark(self, ids: Sequence[int], flags: Sequence[str], op: FlagOp = FlagOp.ADD) -> None:
        """Apply a flag delta to ``ids`` unless running in dry-run mode."""

        if not ids:
            return
        if self.dry_run:
            LOGGER.info(
                "Dry-run: would store %s %s on %s message(s) in %s",
                op.value,
                " ".join(flags),
                len(ids),
                self.mailbox,
            )
            return
        self.executor.store(ids, op, flags)
        LOGGER.debug("Marked %s message(s) with %s %s", len(ids), op.value, " ".join(flags))

    def _matches_any(self, name: str) -> bool:
        return any(pattern.matches(name, self.root) for pattern in self.patterns)


__all__ = [
    "BoxPattern",
    "MailboxScanner",
    "MatchKind",
    "RunReport",
    "build_patterns",
]
