from __future__ import annotations

from pathlib import Path

import pytest
from imap_fakes import FakeImapSession

from imaplearn.classifiers import ClassifierCache
from imaplearn.store import ModelStore
from imaplearn.triage import LearnProcessor, MailboxReport


class LearnRunner:
    """Runs ``learn`` the way the CLI does: a fresh cache over a shared model store."""

    def __init__(self, session: FakeImapSession, store: ModelStore) -> None:
        self.session = session
        self.store = store

    def __call__(self, threshold: float = 0.85, dry_run: bool = False) -> MailboxReport:
        cache = ClassifierCache(self.store, persist=not dry_run)
        processor = LearnProcessor(
            self.session,
            {"INBOX": None},
            cache=cache,
            threshold=threshold,
            dry_run=dry_run,
        )
        processor.run()
        return processor.reports[0]


@pytest.fixture
def inbox() -> FakeImapSession:
    return FakeImapSession({"INBOX": []})


@pytest.fixture
def learn(inbox: FakeImapSession, tmp_path: Path) -> LearnRunner:
    store = ModelStore(tmp_path / "models", username="me", host="imap.example.org", port=993)
    return LearnRunner(inbox, store)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Automatically mark tests in this package as integration."""

    package_root = Path(__file__).resolve().parent
    integration_mark = pytest.mark.integration
    for item in items:
        try:
            path = Path(item.fspath).resolve()
        except OSError:
            continue
        if package_root in path.parents:
            item.add_marker(integration_mark)
