"""Delete old messages that were read and never flagged."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, timedelta
from typing import Any

from imapclient.datetime_util import format_criteria_date

from .scanner import MailboxScanner
from .session import ImapSession
from .types import DELETED

LOGGER = logging.getLogger(__name__)


class CleanseProcessor(MailboxScanner[int]):
    """``boxes`` maps a box fragment to the age in days after which mail goes."""

    description = "Cleansing read, unflagged old messages"

    def __init__(
        self,
        session: ImapSession,
        boxes: dict[str, int],
        *,
        today: Callable[[], date] = date.today,
        **kwargs: Any,
    ) -> None:
        super().__init__(session, boxes, **kwargs)
        self._today = today

    def process_mailbox(self, mailbox: str) -> int:
        age = int(self.parameter_for(mailbox))
        before = self._today() - timedelta(days=age)
        ids = self.search(
            ["NOT", "NEW", "NOT", "FLAGGED", "BEFORE", _criteria_date(before)],
            "read, unflagged messages",
        )
        if not ids:
            return 0
        self.mark(ids, [DELETED])
        if self.dry_run:
            LOGGER.info("Dry-run: not expunging %s", mailbox)
        else:
            self.session.expunge()
            LOGGER.debug("Expunged deleted messages")
        return len(ids)


def _criteria_date(value: date) -> str:
    formatted = format_criteria_date(value)
    if isinstance(formatted, bytes):
        return formatted.decode("ascii")
    return formatted


__all__ = ["CleanseProcessor"]
