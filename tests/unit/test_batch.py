from __future__ import annotations

import pytest
from imap_fakes import FakeImapSession, message

from imaplearn.batch import FETCH_CHUNK_SIZE, STORE_CHUNK_SIZE, BatchExecutor, chunked
from imaplearn.session import SessionError
from imaplearn.types import FlagOp


def _session(count: int) -> FakeImapSession:
    session = FakeImapSession({"INBOX": [message(f"Message {i}") for i in range(count)]})
    session.select("INBOX")
    return session


def test_chunked_splits_in_order() -> None:
    assert list(chunked(range(7), 3)) == [[0, 1, 2], [3, 4, 5], [6]]
    assert list(chunked([], 3)) == []


def test_chunked_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        list(chunked([1, 2], 0))


@pytest.mark.parametrize(
    ("count", "expected"),
    [(1, [1]), (20, [20]), (21, [20, 1]), (500, [20] * 25), (501, [20] * 25 + [1])],
)
def test_fetch_never_exceeds_fetch_chunk(count: int, expected: list[int]) -> None:
    session = _session(count)
    executor = BatchExecutor(session)
    ids = list(range(1, count + 1))

    results = executor.fetch(ids, ["FLAGS"])

    assert session.fetch_sizes == expected
    assert max(session.fetch_sizes) <= FETCH_CHUNK_SIZE
    assert [msgid for msgid, _record in results] == ids


@pytest.mark.parametrize(
    ("count", "expected"),
    [(1, [1]), (20, [20]), (21, [21]), (500, [500]), (501, [500, 1])],
)
def test_store_never_exceeds_store_chunk(count: int, expected: list[int]) -> None:
    session = _session(count)
    executor = BatchExecutor(session)

    commands = executor.store(list(range(1, count + 1)), FlagOp.ADD, ["\\Flagged"])

    assert session.store_sizes == expected
    assert commands == len(expected)
    assert max(session.store_sizes) <= STORE_CHUNK_SIZE
    assert all(msg.has("\\Flagged") for msg in session.messages().values())


def test_fetch_preserves_input_order_and_drops_vanished_ids() -> None:
    session = _session(5)
    del session.messages()[3]
    executor = BatchExecutor(session, fetch_size=2)

    results = executor.fetch([5, 3, 1, 4], ["FLAGS"])

    assert [msgid for msgid, _record in results] == [5, 1, 4]
    assert session.fetch_sizes == [2, 2]


def test_iter_fetch_yields_one_list_per_chunk() -> None:
    session = _session(5)
    executor = BatchExecutor(session, fetch_size=2)

    chunks = list(executor.iter_fetch([1, 2, 3, 4, 5], ["FLAGS"]))

    assert [[msgid for msgid, _ in chunk] for chunk in chunks] == [[1, 2], [3, 4], [5]]


def test_failure_aborts_remaining_chunks() -> None:
    session = _session(3)
    executor = BatchExecutor(session, store_size=1)

    with pytest.raises(KeyError):
        executor.store([1, 99, 2], FlagOp.ADD, ["\\Flagged"])

    assert session.store_sizes == [1, 1]
    assert not session.messages()[2].has("\\Flagged")


def test_session_errors_propagate_unchanged() -> None:
    session = FakeImapSession({"INBOX": [message()]})
    executor = BatchExecutor(session)

    with pytest.raises(SessionError):
        executor.fetch([1], ["FLAGS"])


def test_empty_ids_issue_no_commands() -> None:
    session = _session(1)
    executor = BatchExecutor(session)

    assert executor.fetch([], ["FLAGS"]) == []
    assert executor.store([], FlagOp.ADD, ["\\Flagged"]) == 0
    assert session.fetches == []
    assert session.stores == []
