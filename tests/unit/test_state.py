from __future__ import annotations

import itertools

import pytest

from imaplearn.triage import (
    KeywordSnapshot,
    TriagePass,
    classification_state,
    matching_pass,
    pass_criteria,
)
from imaplearn.types import (
    BLAND_KEYWORD,
    FLAGGED,
    LEARN_KEYWORD,
    TASTY_KEYWORD,
    ClassificationState,
    TriageKeywords,
)

ALL_SNAPSHOTS = [
    KeywordSnapshot(*combination) for combination in itertools.product((False, True), repeat=4)
]


def test_snapshot_reads_flags_case_insensitively() -> None:
    snapshot = KeywordSnapshot.from_flags(["\\flagged", LEARN_KEYWORD.lower(), TASTY_KEYWORD])

    assert snapshot == KeywordSnapshot(flagged=True, learned=True, tasty=True, bland=False)


def test_snapshot_uses_custom_keywords() -> None:
    keywords = TriageKeywords(learn="SEEN_BY_BOT", tasty="YUM", bland="MEH")

    snapshot = KeywordSnapshot.from_flags(["SEEN_BY_BOT", "MEH"], keywords)

    assert snapshot == KeywordSnapshot(flagged=False, learned=True, tasty=False, bland=True)


@pytest.mark.parametrize(
    ("flags", "expected"),
    [
        ([], ClassificationState.UNLEARNED),
        ([FLAGGED], ClassificationState.UNLEARNED),
        ([TASTY_KEYWORD, FLAGGED], ClassificationState.UNLEARNED),
        ([LEARN_KEYWORD, TASTY_KEYWORD, FLAGGED], ClassificationState.TASTY),
        ([LEARN_KEYWORD, TASTY_KEYWORD], ClassificationState.TASTY),
        ([LEARN_KEYWORD, BLAND_KEYWORD], ClassificationState.BLAND),
        ([LEARN_KEYWORD, BLAND_KEYWORD, FLAGGED], ClassificationState.BLAND),
        ([LEARN_KEYWORD, TASTY_KEYWORD, BLAND_KEYWORD, FLAGGED], ClassificationState.TASTY),
        ([LEARN_KEYWORD, TASTY_KEYWORD, BLAND_KEYWORD], ClassificationState.BLAND),
        ([LEARN_KEYWORD, FLAGGED], ClassificationState.TASTY),
        ([LEARN_KEYWORD], ClassificationState.BLAND),
    ],
)
def test_classification_state(flags: list[str], expected: ClassificationState) -> None:
    assert classification_state(KeywordSnapshot.from_flags(flags)) is expected


@pytest.mark.parametrize("snapshot", ALL_SNAPSHOTS)
def test_classification_state_is_total(snapshot: KeywordSnapshot) -> None:
    assert isinstance(classification_state(snapshot), ClassificationState)


@pytest.mark.parametrize(
    ("flags", "expected"),
    [
        ([FLAGGED], TriagePass.LEARN_FLAGGED),
        ([FLAGGED, BLAND_KEYWORD], TriagePass.LEARN_FLAGGED),
        ([LEARN_KEYWORD, TASTY_KEYWORD], TriagePass.CORRECT_TO_BLAND),
        ([LEARN_KEYWORD, FLAGGED, BLAND_KEYWORD], TriagePass.CORRECT_TO_TASTY),
        ([], TriagePass.CLASSIFY_UNLEARNED),
        ([TASTY_KEYWORD], TriagePass.CLASSIFY_UNLEARNED),
        ([LEARN_KEYWORD, FLAGGED, TASTY_KEYWORD], None),
        ([LEARN_KEYWORD, BLAND_KEYWORD], None),
    ],
)
def test_matching_pass(flags: list[str], expected: TriagePass | None) -> None:
    assert matching_pass(KeywordSnapshot.from_flags(flags)) is expected


def test_pass_criteria_use_configured_keywords() -> None:
    keywords = TriageKeywords()

    assert pass_criteria(TriagePass.LEARN_FLAGGED, keywords) == [
        "FLAGGED",
        "NOT",
        "KEYWORD",
        LEARN_KEYWORD,
    ]
    assert pass_criteria(TriagePass.CORRECT_TO_BLAND, keywords) == [
        "NOT",
        "FLAGGED",
        "KEYWORD",
        LEARN_KEYWORD,
        "KEYWORD",
        TASTY_KEYWORD,
    ]
    assert pass_criteria(TriagePass.CORRECT_TO_TASTY, keywords) == [
        "FLAGGED",
        "KEYWORD",
        LEARN_KEYWORD,
        "KEYWORD",
        BLAND_KEYWORD,
    ]
    assert pass_criteria(TriagePass.CLASSIFY_UNLEARNED, keywords) == [
        "NOT",
        "KEYWORD",
        LEARN_KEYWORD,
    ]


def test_pass_criteria_returns_a_fresh_list() -> None:
    criteria = pass_criteria(TriagePass.LEARN_FLAGGED, TriageKeywords())
    criteria.append("ALL")

    assert "ALL" not in pass_criteria(TriagePass.LEARN_FLAGGED, TriageKeywords())
