from __future__ import annotations

from imap_fakes import FakeImapSession
from mail_corpus import bland_message, deliver, tasty_message

from imaplearn.triage import KeywordSnapshot, classification_state
from imaplearn.types import (
    BLAND_KEYWORD,
    FLAGGED,
    LEARN_KEYWORD,
    TASTY_KEYWORD,
    ClassificationState,
)


def _states(session: FakeImapSession) -> dict[int, ClassificationState]:
    return {
        msgid: classification_state(KeywordSnapshot.from_flags(msg.flags))
        for msgid, msg in session.messages().items()
    }


def _assert_exclusive(session: FakeImapSession) -> None:
    for msg in session.messages().values():
        assert not (msg.has(TASTY_KEYWORD) and msg.has(BLAND_KEYWORD)), msg.flags


def test_flags_new_mail_like_the_mail_the_user_flagged(inbox, learn) -> None:
    deliver(
        inbox,
        "INBOX",
        *(tasty_message(topic, flags=[FLAGGED]) for topic in ("lexer", "linker", "optimizer")),
        *(bland_message(topic) for topic in ("shoes", "sofas", "socks")),
    )

    first = learn()

    assert (first.learned_flagged, first.classified_tasty, first.classified_bland) == (3, 0, 3)
    _assert_exclusive(inbox)

    new_tasty, new_bland = deliver(
        inbox, "INBOX", tasty_message("inliner"), bland_message("hats")
    )

    second = learn()

    assert (second.classified_tasty, second.classified_bland) == (1, 1)
    assert inbox.messages()[new_tasty].flags == {FLAGGED, LEARN_KEYWORD, TASTY_KEYWORD}
    assert inbox.messages()[new_bland].flags == {LEARN_KEYWORD, BLAND_KEYWORD}
    _assert_exclusive(inbox)

    assert learn().total == 0


def test_user_corrections_are_learned_and_stick(inbox, learn) -> None:
    deliver(
        inbox,
        "INBOX",
        *(tasty_message(topic, flags=[FLAGGED]) for topic in ("lexer", "linker")),
        *(bland_message(topic) for topic in ("shoes", "sofas")),
    )
    learn()
    messages = inbox.messages()

    messages[1].flags.discard(FLAGGED)
    messages[3].flags.add(FLAGGED)
    report = learn()

    assert (report.corrected_to_bland, report.corrected_to_tasty) == (1, 1)
    assert _states(inbox) == {
        1: ClassificationState.BLAND,
        2: ClassificationState.TASTY,
        3: ClassificationState.TASTY,
        4: ClassificationState.BLAND,
    }
    assert not messages[1].has(FLAGGED)
    _assert_exclusive(inbox)
    assert learn().total == 0


def test_interrupted_correction_is_repaired(inbox, learn) -> None:
    deliver(inbox, "INBOX", tasty_message("lexer", flags=[FLAGGED]))
    learn()
    msg = inbox.messages()[1]

    # user unflagged it and the correction died after adding the new keyword
    msg.flags.discard(FLAGGED)
    msg.flags.add(BLAND_KEYWORD)
    assert classification_state(KeywordSnapshot.from_flags(msg.flags)) is ClassificationState.BLAND

    report = learn()

    assert report.corrected_to_bland == 1
    assert msg.flags == {LEARN_KEYWORD, BLAND_KEYWORD}


def test_models_survive_between_runs(inbox, learn) -> None:
    deliver(inbox, "INBOX", tasty_message("lexer", flags=[FLAGGED]))
    learn()

    assert learn.store.model_path("INBOX").exists()
    assert learn.store.load("INBOX")["documents"].sum() == 1


def test_dry_run_leaves_server_and_models_untouched(inbox, learn) -> None:
    deliver(inbox, "INBOX", tasty_message("lexer", flags=[FLAGGED]), bland_message("shoes"))

    report = learn(dry_run=True)

    assert report.learned_flagged == 1
    assert inbox.stores == []
    assert not learn.store.model_path("INBOX").exists()
    assert _states(inbox) == {
        1: ClassificationState.UNLEARNED,
        2: ClassificationState.UNLEARNED,
    }
