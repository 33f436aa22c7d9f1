from __future__ import annotations

import logging

import pytest

from imaplearn.store import ModelStore


def _store(tmp_path) -> ModelStore:
    return ModelStore(tmp_path / "state", username="me", host="imap.example.org", port=993)


def test_model_path_is_per_account_and_mailbox(tmp_path):
    store = _store(tmp_path)

    assert store.account_dir == tmp_path / "state" / "me@imap.example.org:993"
    assert store.model_path("INBOX") == store.account_dir / "INBOX.db"
    assert store.model_path("INBOX/Lists/python") == (
        store.account_dir / "INBOX" / "Lists" / "python.db"
    )


def test_accounts_do_not_share_models(tmp_path):
    first = _store(tmp_path)
    second = ModelStore(tmp_path / "state", username="me", host="imap.example.org", port=143)

    first.save("INBOX", {"value": 1})

    assert second.load("INBOX") is None
    assert first.load("INBOX") == {"value": 1}


@pytest.mark.parametrize("mailbox", ["", "/", "../escape", "INBOX/../../x", "."])
def test_model_path_rejects_traversal(tmp_path, mailbox):
    with pytest.raises(ValueError):
        _store(tmp_path).model_path(mailbox)


def test_prepare_creates_nested_directory(tmp_path):
    store = _store(tmp_path)

    path = store.prepare("Lists/python")

    assert path.parent.is_dir()
    assert not path.exists()


def test_save_and_load_roundtrip(tmp_path):
    store = _store(tmp_path)

    path = store.save("INBOX", {"counts": [1, 2]})

    assert path.exists()
    assert store.load("INBOX") == {"counts": [1, 2]}
    assert not list(path.parent.glob("*.tmp"))


def test_load_missing_model_returns_none(tmp_path):
    assert _store(tmp_path).load("INBOX") is None


def test_corrupt_model_is_quarantined(tmp_path):
    store = _store(tmp_path)
    path = store.save("INBOX", {"value": 1})
    path.write_bytes(b"\x00not a pickle")

    assert store.load("INBOX") is None
    assert not path.exists()
    assert len(list(path.parent.glob("INBOX.db.corrupt*"))) == 1

    store.save("INBOX", {"value": 2})
    store.model_path("INBOX").write_bytes(b"\x00still not a pickle")

    assert store.load("INBOX") is None
    assert len(list(path.parent.glob("INBOX.db.corrupt*"))) == 2


def test_model_needing_a_missing_module_stays_in_place(tmp_path, caplog):
    store = _store(tmp_path)
    path = store.prepare("INBOX")
    # protocol 0 GLOBAL opcode naming a module that is not installed
    path.write_bytes(b"cimaplearn_missing_backend\nModel\n.")

    with caplog.at_level(logging.WARNING):
        assert store.load("INBOX") is None

    assert path.exists()
    assert not list(path.parent.glob("*.corrupt*"))
    assert "not installed" in caplog.text
