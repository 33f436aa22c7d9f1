"""Chunked FETCH/STORE execution that keeps IMAP commands bounded."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from typing import Any, TypeVar

from .session import ImapSession
from .types import FlagOp

LOGGER = logging.getLogger(__name__)

FETCH_CHUNK_SIZE = 20
STORE_CHUNK_SIZE = 500

T = TypeVar("T")


def chunked(items: Iterable[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of ``items`` holding at most ``size`` entries."""

    if size < 1:
        raise ValueError("chunk size must be positive")
    chunk: list[T] = []
    for item in items:
        chunk.append(item)
        if len(chunk) == size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


class BatchExecutor:
    """Apply FETCH and STORE to large id sets one bounded chunk at a time.

    Chunks run strictly in input order. Nothing is retried: an exception from
    the session aborts the remaining chunks and propagates to the caller.
    """

    def __init__(
        self,
        session: ImapSession,
        *,
        fetch_size: int = FETCH_CHUNK_SIZE,
        store_size: int = STORE_CHUNK_SIZE,
    ) -> None:
        self._session = session
        self.fetch_size = fetch_size
        self.store_size = store_size

    def iter_fetch(
        self,
        ids: Sequence[int],
        items: Sequence[str],
    ) -> Iterator[list[tuple[int, dict[str, Any]]]]:
        """Yield ``(id, record)`` pairs per chunk, ordered like ``ids``.

        Ids the server returned nothing for (expunged concurrently) are
        dropped from the chunk.
        """

        for chunk in chunked(ids, self.fetch_size):
            records = self._session.fetch(chunk, items)
            yield [(msgid, records[msgid]) for msgid in chunk if msgid in records]

    def fetch(self, ids: Sequence[int], items: Sequence[str]) -> list[tuple[int, dict[str, Any]]]:
        """Fetch ``items`` for every id, returning pairs in input order."""

        results: list[tuple[int, dict[str, Any]]] = []
        for chunk in self.iter_fetch(ids, items):
            results.extend(chunk)
        return results

    def store(self, ids: Sequence[int], op: FlagOp, flags: Sequence[str]) -> int:
        """Apply a flag delta to ``ids``; returns the number of STORE commands issued."""

        commands = 0
        for chunk in chunked(ids, self.store_size):
            self._session.store(chunk, op, flags)
            commands += 1
        LOGGER.debug(
            "Stored %s %s on %s message(s) in %s command(s)",
            op.value,
            " ".join(flags),
            len(ids),
            commands,
        )
        return commands


__all__ = ["BatchExecutor", "FETCH_CHUNK_SIZE", "STORE_CHUNK_SIZE", "chunked"]
