from __future__ import annotations

from pathlib import Path

import pytest
from imap_fakes import FakeImapSession, ScriptedClassifier

from imaplearn.classifiers import ClassifierCache
from imaplearn.store import ModelStore


@pytest.fixture
def model_store(tmp_path: Path) -> ModelStore:
    return ModelStore(tmp_path / "models", username="me", host="imap.example.org", port=993)


@pytest.fixture
def scripted() -> ScriptedClassifier:
    return ScriptedClassifier()


@pytest.fixture
def scripted_cache(model_store: ModelStore, scripted: ScriptedClassifier) -> ClassifierCache:
    """Cache that hands out the shared scripted classifier for every mailbox."""

    return ClassifierCache(model_store, lambda: scripted, persist=False)


@pytest.fixture
def empty_session() -> FakeImapSession:
    return FakeImapSession({"INBOX": []})
