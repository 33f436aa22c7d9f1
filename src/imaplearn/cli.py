"""imaplearn command-line interface."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer

from . import __version__
from .classifiers import ClassifierCache
from .cleanse import CleanseProcessor
from .config import Config, ConfigError, load_config, require_boxes
from .flag import FlagProcessor
from .logging import configure_logging
from .scanner import MailboxScanner, RunReport
from .session import ImapSession, SessionError, open_session
from .store import ModelStore
from .triage import LearnProcessor

app = typer.Typer(help="Keep IMAP mailboxes tidy: learn what is tasty, flag and cleanse.")
LOGGER = logging.getLogger(__name__)

ProcessorBuilder = Callable[[ImapSession], MailboxScanner[Any]]


@dataclass
class CLIState:
    """Stores shared CLI options."""

    config_path: Path | None
    overrides: dict[str, Any] = field(default_factory=dict)


@app.callback()
def _imaplearn(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "-c",
            "--config",
            help="Path to config (env IMAPLEARN_CONFIG or ~/.config/imaplearn/config.yaml).",
        ),
    ] = None,
    host: Annotated[str | None, typer.Option("-H", "--host", help="IMAP server host.")] = None,
    port: Annotated[int | None, typer.Option("-P", "--port", help="IMAP server port.")] = None,
    no_ssl: Annotated[
        bool, typer.Option("--no-ssl", help="Connect without SSL (default port 143).")
    ] = False,
    username: Annotated[
        str | None, typer.Option("-u", "--username", help="IMAP username.")
    ] = None,
    password: Annotated[
        str | None, typer.Option("-p", "--password", help="IMAP password.")
    ] = None,
    auth: Annotated[
        str | None, typer.Option("-a", "--auth", help="Authentication type: LOGIN or PLAIN (default: first one the server advertises).")
    ] = None,
    root: Annotated[
        str | None, typer.Option("-r", "--root", help="Root of the mailbox hierarchy.")
    ] = None,
    verbose: Annotated[bool, typer.Option("-v", "--verbose", help="Be verbose.")] = False,
    quiet: Annotated[bool, typer.Option("-q", "--quiet", help="Be quiet.")] = False,
    dry_run: Annotated[
        bool,
        typer.Option("-n", "--dry-run", help="Search and log, but do not change anything."),
    ] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Log the IMAP conversation.")] = False,
) -> None:
    """Capture global CLI options."""

    if verbose and quiet:
        _config_failure(ConfigError("--verbose and --quiet are exclusive."))

    overrides: dict[str, Any] = {
        "host": host,
        "port": port,
        "ssl": False if no_ssl else None,
        "username": username,
        "password": password,
        "auth": auth,
        "root": root,
        "verbose": True if verbose else (False if quiet else None),
        "dry_run": True if dry_run else None,
        "debug": True if debug else None,
    }
    resolved = config.expanduser() if config else None
    ctx.obj = CLIState(config_path=resolved, overrides=overrides)


@app.command()
def learn(
    ctx: typer.Context,
    threshold: Annotated[
        float | None,
        typer.Option("-t", "--threshold", help="Flag messages more tasty than THRESHOLD."),
    ] = None,
    boxes: Annotated[
        str | None,
        typer.Option(
            "-b",
            "--boxes",
            help="Comma-separated box fragments, optionally FRAGMENT=THRESHOLD.",
        ),
    ] = None,
) -> None:
    """Flag tasty messages, learning from what you flag yourself."""

    state = _state(ctx)
    config = _load_config(
        state,
        {"learn": {"threshold": threshold, "boxes": _parse_boxes_option(boxes)}},
    )
    _require_boxes(config.learn.boxes, "learn")
    _configure_logging(config)

    def build(session: ImapSession) -> MailboxScanner[Any]:
        account = config.account
        store = ModelStore(
            config.root_dir,
            username=account.username,
            host=account.host,
            port=account.port,
        )
        cache = ClassifierCache(store, persist=not config.dry_run)
        return LearnProcessor(
            session,
            config.learn.boxes,
            cache=cache,
            threshold=config.learn.threshold,
            root=config.root,
            match=config.match,
            dry_run=config.dry_run,
        )

    _report(_run(config, build))


@app.command()
def flag(ctx: typer.Context) -> None:
    """Flag answered messages, your own messages and replies to them."""

    state = _state(ctx)
    config = _load_config(state)
    _require_boxes(config.flag.boxes, "flag")
    _configure_logging(config)

    def build(session: ImapSession) -> MailboxScanner[Any]:
        return FlagProcessor(
            session,
            config.flag.boxes,
            root=config.root,
            match=config.match,
            dry_run=config.dry_run,
        )

    _report(_run(config, build))


@app.command()
def cleanse(ctx: typer.Context) -> None:
    """Delete read, unflagged messages older than each box's age."""

    state = _state(ctx)
    config = _load_config(state)
    _require_boxes(config.cleanse.boxes, "cleanse")
    _configure_logging(config)

    def build(session: ImapSession) -> MailboxScanner[Any]:
        return CleanseProcessor(
            session,
            config.cleanse.boxes,
            root=config.root,
            match=config.match,
            dry_run=config.dry_run,
        )

    _report(_run(config, build))


@app.command()
def version() -> None:
    """Print the installed version."""

    typer.echo(__version__)


def run(config: Config, build: ProcessorBuilder) -> RunReport:
    """Connect with ``config``, run the processor ``build`` creates, then log out."""

    account = config.account
    with open_session(
        account.host,
        account.port,
        account.ssl,
        account.username,
        account.password,
        account.auth,
    ) as session:
        processor = build(session)
        return processor.run()


def _run(config: Config, build: ProcessorBuilder) -> RunReport:
    try:
        return run(config, build)
    except SessionError as exc:
        typer.secho(f"IMAP error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from exc
    except Exception as exc:
        LOGGER.exception("Failed to finish with exception")
        typer.secho(
            f"Failed to finish with exception: {type(exc).__name__}: {exc}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(1) from exc


def _report(report: RunReport) -> None:
    typer.echo(f"Found {report.total} messages in {len(report.mailboxes)} mailboxes")
    for mailbox in report.failed:
        typer.secho(f"Could not select {mailbox}", fg=typer.colors.YELLOW, err=True)


def _state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise RuntimeError("CLI state missing from context.")
    return state


def _load_config(state: CLIState, overrides: dict[str, Any] | None = None) -> Config:
    merged = dict(state.overrides)
    merged.update(overrides or {})
    try:
        return load_config(state.config_path, merged)
    except ConfigError as exc:
        _config_failure(exc)


def _require_boxes(boxes: dict[str, Any], command: str) -> None:
    try:
        require_boxes(boxes, command)
    except ConfigError as exc:
        _config_failure(exc)


def _configure_logging(config: Config) -> None:
    try:
        configure_logging(
            config.logging,
            config.root_dir,
            verbose=config.verbose,
            debug=config.debug,
        )
    except ConfigError as exc:
        _config_failure(exc)


def _config_failure(exc: ConfigError) -> NoReturn:
    typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(2) from exc


def _parse_boxes_option(value: str | None) -> dict[str, float | None] | None:
    if value is None:
        return None
    boxes: dict[str, float | None] = {}
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        fragment, sep, raw_threshold = entry.partition("=")
        if not sep:
            boxes[fragment] = None
            continue
        try:
            boxes[fragment] = float(raw_threshold)
        except ValueError:
            _config_failure(ConfigError(f"Invalid threshold in --boxes entry {entry!r}."))
    return boxes


def main() -> None:  # pragma: no cover - delegated to Typer
    app()


__all__ = ["app", "main", "run"]
