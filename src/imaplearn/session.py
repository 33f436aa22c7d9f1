"""IMAP session capability and its imapclient-backed implementation."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Protocol, runtime_checkable

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from .types import FlagOp, MailboxListing

LOGGER = logging.getLogger(__name__)

SUPPORTED_AUTH = ("LOGIN", "PLAIN")

FetchRecords = dict[int, dict[str, Any]]


class SessionError(RuntimeError):
    """Raised when the IMAP server or the connection to it fails."""


@runtime_checkable
class ImapSession(Protocol):
    """Connected, authenticated IMAP session used by the processors."""

    def select(self, mailbox: str) -> None:
        """Make ``mailbox`` the target of subsequent commands."""

    def search(self, criteria: Sequence[str]) -> list[int]:
        """Return message ids matching ``criteria`` in the selected mailbox."""

    def fetch(self, ids: Sequence[int], items: Sequence[str]) -> FetchRecords:
        """Return ``{id: {data item: value}}`` for the requested ids."""

    def store(self, ids: Sequence[int], op: FlagOp, flags: Sequence[str]) -> None:
        """Add or remove ``flags`` on ``ids``."""

    def list(self, root: str, pattern: str) -> list[MailboxListing]:
        """List mailboxes below ``root`` matching ``pattern``."""

    def expunge(self) -> None:
        """Permanently remove messages flagged as deleted."""

    def logout(self) -> None:
        """Close the session."""


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (IMAPClientError, OSError) as exc:
        raise SessionError(f"IMAP {action} failed: {exc}") from exc


class ImapClientSession:
    """``ImapSession`` backed by an ``imapclient.IMAPClient`` connection."""

    def __init__(self, client: IMAPClient) -> None:
        self._client = client

    def capabilities(self) -> list[str]:
        with _translate_errors("CAPABILITY"):
            return [_text(cap) for cap in self._client.capabilities()]

    def select(self, mailbox: str) -> None:
        with _translate_errors(f"SELECT {mailbox}"):
            self._client.select_folder(mailbox)

    def search(self, criteria: Sequence[str]) -> list[int]:
        with _translate_errors("SEARCH"):
            return list(self._client.search(list(criteria)))

    def fetch(self, ids: Sequence[int], items: Sequence[str]) -> FetchRecords:
        if not ids:
            return {}
        with _translate_errors("FETCH"):
            response = self._client.fetch(list(ids), list(items))
        return {int(msgid): _normalise_record(data) for msgid, data in response.items()}

    def store(self, ids: Sequence[int], op: FlagOp, flags: Sequence[str]) -> None:
        if not ids:
            return
        with _translate_errors("STORE"):
            if op is FlagOp.ADD:
                self._client.add_flags(list(ids), list(flags), silent=True)
            else:
                self._client.remove_flags(list(ids), list(flags), silent=True)

    def list(self, root: str, pattern: str) -> list[MailboxListing]:
        with _translate_errors("LIST"):
            folders = self._client.list_folders(directory=root, pattern=pattern)
        listings: list[MailboxListing] = []
        for flags, delimiter, name in folders:
            listings.append(
                MailboxListing(
                    name=_text(name),
                    attributes=frozenset(_text(flag) for flag in flags),
                    delimiter=_text(delimiter) if delimiter else None,
                )
            )
        return listings

    def expunge(self) -> None:
        with _translate_errors("EXPUNGE"):
            self._client.expunge()

    def logout(self) -> None:
        with _translate_errors("LOGOUT"):
            self._client.logout()


def connect(
    host: str,
    port: int,
    ssl: bool,
    username: str,
    password: str,
    auth: str | None = None,
    *,
    timeout: float | None = None,
) -> ImapClientSession:
    """Connect to ``host`` and authenticate, returning a ready session."""

    with _translate_errors(f"connect to {host}:{port}"):
        client = IMAPClient(host, port=port, ssl=ssl, timeout=timeout)
    LOGGER.debug("Connected to imap://%s:%s/", host, port)
    session = ImapClientSession(client)

    try:
        capabilities = session.capabilities()
        LOGGER.debug("Capabilities: %s", ", ".join(capabilities))
        mechanism = (auth or pick_auth(capabilities)).upper()
        LOGGER.debug("Trying %s authentication", mechanism)
        with _translate_errors(f"{mechanism} authentication"):
            if mechanism == "PLAIN":
                client.plain_login(username, password)
            elif mechanism == "LOGIN":
                client.login(username, password)
            else:
                supported = ", ".join(SUPPORTED_AUTH)
                raise SessionError(
                    f"Unsupported auth type {mechanism!r} (expected one of {supported})"
                )
    except SessionError:
        _close_quietly(client)
        raise
    LOGGER.debug("Logged in as %s", username)
    return session


def pick_auth(capabilities: Sequence[str]) -> str:
    """Return the first advertised ``AUTH=`` mechanism this client can use.

    Servers advertising no usable mechanism get plain ``LOGIN`` unless they
    announce ``LOGINDISABLED``.
    """

    names = [cap.upper() for cap in capabilities]
    for name in names:
        if name.startswith("AUTH="):
            mechanism = name[len("AUTH="):]
            if mechanism in SUPPORTED_AUTH:
                return mechanism
    if "LOGINDISABLED" in names:
        raise SessionError("Couldn't find a supported auth type")
    return "LOGIN"


@contextmanager
def open_session(
    host: str,
    port: int,
    ssl: bool,
    username: str,
    password: str,
    auth: str | None = None,
) -> Iterator[ImapClientSession]:
    """Yield an authenticated session and always log out afterwards."""

    session = connect(host, port, ssl, username, password, auth)
    try:
        yield session
    finally:
        try:
            session.logout()
        except SessionError as exc:
            LOGGER.warning("Logout failed: %s", exc)


def _close_quietly(client: IMAPClient) -> None:
    try:
        client.shutdown()
    except (IMAPClientError, OSError):
        LOGGER.debug("Ignoring error while closing unauthenticated connection", exc_info=True)


def _normalise_record(data: dict[Any, Any]) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for key, value in data.items():
        name = _text(key).upper()
        if name == "FLAGS":
            value = tuple(_text(flag) for flag in value)
        record[name] = value
    return record


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


__all__ = [
    "FetchRecords",
    "ImapClientSession",
    "ImapSession",
    "SUPPORTED_AUTH",
    "SessionError",
    "connect",
    "open_session",
    "pick_auth",
]
