"""Automatically flag messages the user is likely to care about.

Flags messages the user answered, messages the user wrote, and replies to
messages the user wrote. Flagged messages also get an auto-flag keyword, so a
message the user later unflags is never flagged again.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from email.parser import HeaderParser

from .scanner import MailboxScanner
from .types import AUTO_FLAG_KEYWORD, FLAGGED

LOGGER = logging.getLogger(__name__)

MESSAGE_ID_FIELDS = "HEADER.FIELDS (MESSAGE-ID)"
MESSAGE_ID_ITEM = f"BODY.PEEK[{MESSAGE_ID_FIELDS}]"
MESSAGE_ID_KEY = f"BODY[{MESSAGE_ID_FIELDS}]"
NOT_FLAGGED = ["NOT", "FLAGGED", "NOT", "KEYWORD", AUTO_FLAG_KEYWORD]


def from_criteria(addresses: Sequence[str]) -> list[str]:
    """Return SEARCH criteria matching mail from any of ``addresses``."""

    if not addresses:
        raise ValueError("at least one address is required")
    criteria = ["FROM", addresses[0]]
    for address in addresses[1:]:
        criteria = ["OR", *criteria, "FROM", address]
    return criteria


class FlagProcessor(MailboxScanner[Sequence[str]]):
    """``boxes`` maps a box fragment to the user's addresses for that box."""

    description = "Flagging messages"

    def process_mailbox(self, mailbox: str) -> int:
        addresses = list(self.parameter_for(mailbox))
        found = [
            *self.answered(),
            *self.written_by(addresses),
            *self.responses_to(addresses),
        ]
        ids = list(dict.fromkeys(found))
        self.mark(ids, [FLAGGED, AUTO_FLAG_KEYWORD])
        return len(ids)

    def answered(self) -> list[int]:
        return self.search(["ANSWERED", *NOT_FLAGGED], "answered messages")

    def written_by(self, addresses: Sequence[str]) -> list[int]:
        return self.search(
            [*from_criteria(addresses), *NOT_FLAGGED],
            f"messages by {', '.join(addresses)}",
        )

    def responses_to(self, addresses: Sequence[str]) -> list[int]:
        LOGGER.debug("  Scanning for responses to messages I wrote")
        mine = self.session.search(from_criteria(addresses))
        if not mine:
            return []

        parser = HeaderParser()
        responses: list[int] = []
        for _msgid, record in self.executor.fetch(mine, [MESSAGE_ID_ITEM]):
            raw = record.get(MESSAGE_ID_KEY, b"")
            text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
            message_id = (parser.parsestr(text).get("Message-ID") or "").strip()
            if not message_id:
                continue
            responses.extend(
                self.session.search(["HEADER", "In-Reply-To", message_id, *NOT_FLAGGED])
            )
        LOGGER.debug("    Found %s messages", len(responses))
        return responses


__all__ = ["FlagProcessor", "from_criteria"]
