"""Turn raw RFC822 messages into the text the classifier scores."""

from __future__ import annotations

from email import policy
from email.header import decode_header, make_header
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parseaddr

from bs4 import BeautifulSoup

FALLBACK_CHARSETS = ("utf-8", "latin-1")


def message_text(raw_message: bytes | str) -> str:
    """Return subject, sender and readable body text of ``raw_message``.

    Plain-text parts win over HTML ones; attachments are ignored. Input that
    does not parse as a message is returned as decoded text so a broken
    message still carries its tokens.
    """

    if isinstance(raw_message, str):
        raw_message = raw_message.encode("utf-8", errors="ignore")
    parsed = BytesParser(policy=policy.default).parsebytes(raw_message)
    if not parsed.keys():
        return _decode(raw_message, None)

    display_name, address = parseaddr(str(parsed.get("From", "")))
    fields = [
        _header_text(str(parsed.get("Subject", ""))),
        display_name,
        address,
        _body_text(parsed),
    ]
    return "\n".join(field for field in fields if field)


def html_to_text(html: str) -> str:
    """Return the visible text content of an HTML fragment."""

    return BeautifulSoup(html, "lxml").get_text(" ", strip=True)


def _body_text(message: EmailMessage) -> str:
    texts: dict[str, list[str]] = {"text/plain": [], "text/html": []}
    for part in message.walk():
        if part.is_multipart() or part.get_content_disposition() == "attachment":
            continue
        kind = part.get_content_type()
        if kind not in texts:
            continue
        payload = part.get_payload(decode=True)
        if not isinstance(payload, bytes):
            continue
        text = _decode(payload, part.get_content_charset())
        texts[kind].append(html_to_text(text) if kind == "text/html" else text)

    chosen = texts["text/plain"] or texts["text/html"]
    return "\n".join(stripped for stripped in (text.strip() for text in chosen) if stripped)


def _decode(data: bytes, charset: str | None) -> str:
    for encoding in (charset, *FALLBACK_CHARSETS):
        if not encoding:
            continue
        try:
            return data.decode(encoding, errors="replace")
        except LookupError:
            continue
    return data.decode("ascii", errors="replace")


def _header_text(value: str) -> str:
    # policy.default already decodes RFC 2047 words; this covers raw leftovers
    try:
        return str(make_header(decode_header(value))).strip()
    except (LookupError, UnicodeDecodeError, ValueError):
        return value.strip()


__all__ = ["html_to_text", "message_text"]
