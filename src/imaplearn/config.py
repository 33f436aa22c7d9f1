"""Configuration loading and validation."""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .scanner import MatchKind
from .session import SUPPORTED_AUTH
from .store import DEFAULT_ROOT_DIR
from .triage import DEFAULT_THRESHOLD

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/imaplearn/config.yaml")
DEFAULT_LOG_LEVEL = "info"
SSL_PORT = 993
PLAIN_PORT = 143


class ConfigError(ValueError):
    """Raised when configuration is invalid or missing."""


@dataclass(frozen=True)
class LoggingConfig:
    """Logging-related configuration."""

    level: str = DEFAULT_LOG_LEVEL
    debug_file: bool = False


@dataclass(frozen=True)
class AccountConfig:
    """Where and how to log in."""

    host: str
    port: int
    ssl: bool
    username: str
    password: str = field(repr=False)
    auth: str | None = None


@dataclass(frozen=True)
class LearnConfig:
    """Box fragments to triage and their tastiness thresholds."""

    threshold: float = DEFAULT_THRESHOLD
    boxes: dict[str, float | None] = field(default_factory=dict)


@dataclass(frozen=True)
class FlagConfig:
    """Box fragments to auto-flag and the user's addresses for each."""

    boxes: dict[str, tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class CleanseConfig:
    """Box fragments to cleanse and the age in days for each."""

    boxes: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Config:
    """Fully parsed configuration."""

    account: AccountConfig
    root: str = ""
    root_dir: Path = DEFAULT_ROOT_DIR.expanduser()
    match: MatchKind = MatchKind.PREFIX
    verbose: bool = False
    dry_run: bool = False
    debug: bool = False
    logging: LoggingConfig = LoggingConfig()
    learn: LearnConfig = LearnConfig()
    flag: FlagConfig = FlagConfig()
    cleanse: CleanseConfig = CleanseConfig()


def load_config(
    path: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Config:
    """Load YAML configuration and apply command-line ``overrides``.

    Overrides use the same keys as the file; ``None`` values are ignored so
    unset CLI options keep the file's settings.
    """

    config_path = resolve_config_path(path)
    raw: dict[str, Any] = {}
    if config_path.exists():
        _check_permissions(config_path)
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ConfigError("Configuration root must be a mapping.")
        raw = loaded
        LOGGER.debug("Loaded configuration from %s", config_path)
    elif path is not None:
        raise ConfigError(f"Config file not found: {config_path}")
    else:
        LOGGER.debug("No config file at %s, using command-line options only", config_path)

    merged = _merge(raw, overrides or {})
    return _parse_config(merged)


def resolve_config_path(explicit: Path | str | None) -> Path:
    if explicit:
        return Path(explicit).expanduser()
    env_path = os.environ.get("IMAPLEARN_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def require_boxes(boxes: Mapping[str, Any], command: str) -> None:
    """Raise when ``command`` has no box fragments to work on."""

    if not boxes:
        raise ConfigError(f"Boxes not set for '{command}'.")


def _check_permissions(path: Path) -> None:
    mode = stat.S_IMODE(path.stat().st_mode)
    if mode & 0o077:
        raise ConfigError(
            f"{path} is group/other readable or writable; run 'chmod 600 {path}' first."
        )


def _merge(base: dict[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            current = merged.get(key)
            section = dict(current) if isinstance(current, Mapping) else {}
            section.update({name: item for name, item in value.items() if item is not None})
            merged[key] = section
        else:
            merged[key] = value
    return merged


def _parse_config(raw: dict[str, Any]) -> Config:
    account = _parse_account(raw)
    root = raw.get("root") or ""
    if not isinstance(root, str):
        raise ConfigError("root must be a string.")
    root_dir = Path(raw.get("root_dir") or raw.get("rootdir") or DEFAULT_ROOT_DIR).expanduser()
    return Config(
        account=account,
        root=root,
        root_dir=root_dir,
        match=_parse_match(raw.get("match")),
        verbose=bool(raw.get("verbose", False)),
        dry_run=bool(raw.get("dry_run", raw.get("noop", False))),
        debug=bool(raw.get("debug", False)),
        logging=_parse_logging(raw.get("logging")),
        learn=_parse_learn(raw.get("learn")),
        flag=_parse_flag(raw.get("flag")),
        cleanse=_parse_cleanse(raw.get("cleanse")),
    )


def _parse_account(raw: dict[str, Any]) -> AccountConfig:
    host = raw.get("host")
    password = raw.get("password")
    missing = [
        message
        for value, message in ((host, "Host name not set"), (password, "Password not set"))
        if not value
    ]
    if missing:
        raise ConfigError("; ".join(missing) + ".")

    ssl = bool(raw.get("ssl", True))
    port = _parse_int(raw.get("port"), "port") if raw.get("port") is not None else None
    username = raw.get("username") or os.environ.get("USER")
    if not username:
        raise ConfigError("Username not set.")

    auth = raw.get("auth")
    if auth is not None:
        auth = str(auth).upper()
        if auth not in SUPPORTED_AUTH:
            raise ConfigError(f"auth must be one of {', '.join(SUPPORTED_AUTH)}, got {auth!r}.")

    return AccountConfig(
        host=str(host),
        port=port or (SSL_PORT if ssl else PLAIN_PORT),
        ssl=ssl,
        username=str(username),
        password=str(password),
        auth=auth,
    )


def _parse_match(value: Any) -> MatchKind:
    if value is None:
        return MatchKind.PREFIX
    try:
        return MatchKind(str(value).lower())
    except ValueError as exc:
        choices = ", ".join(kind.value for kind in MatchKind)
        raise ConfigError(f"match must be one of {choices}, got {value!r}.") from exc


def _parse_learn(value: Any) -> LearnConfig:
    if value is None:
        return LearnConfig()
    if not isinstance(value, dict):
        raise ConfigError("learn must be a mapping.")
    threshold = _parse_float(value.get("threshold", DEFAULT_THRESHOLD), "learn.threshold")

    raw_boxes = value.get("boxes") or {}
    if isinstance(raw_boxes, list):
        raw_boxes = {str(fragment): None for fragment in raw_boxes}
    if not isinstance(raw_boxes, dict):
        raise ConfigError("learn.boxes must be a list or a mapping of box to threshold.")
    boxes: dict[str, float | None] = {}
    for fragment, box_threshold in raw_boxes.items():
        boxes[str(fragment)] = (
            None
            if box_threshold is None
            else _parse_float(box_threshold, f"learn.boxes[{fragment}]")
        )
    return LearnConfig(threshold=threshold, boxes=boxes)


def _parse_flag(value: Any) -> FlagConfig:
    if value is None:
        return FlagConfig()
    if not isinstance(value, dict):
        raise ConfigError("flag must be a mapping.")
    raw_boxes = value.get("boxes") or {}
    if not isinstance(raw_boxes, dict):
        raise ConfigError("flag.boxes must be a mapping of box to addresses.")
    boxes: dict[str, tuple[str, ...]] = {}
    for fragment, addresses in raw_boxes.items():
        if isinstance(addresses, str):
            addresses = [addresses]
        if not isinstance(addresses, list) or not addresses:
            raise ConfigError(f"flag.boxes[{fragment}] must list at least one address.")
        boxes[str(fragment)] = tuple(str(address) for address in addresses)
    return FlagConfig(boxes=boxes)


def _parse_cleanse(value: Any) -> CleanseConfig:
    if value is None:
        return CleanseConfig()
    if not isinstance(value, dict):
        raise ConfigError("cleanse must be a mapping.")
    raw_boxes = value.get("boxes") or {}
    if not isinstance(raw_boxes, dict):
        raise ConfigError("cleanse.boxes must be a mapping of box to age in days.")
    boxes: dict[str, int] = {}
    for fragment, age in raw_boxes.items():
        days = _parse_int(age, f"cleanse.boxes[{fragment}]")
        if days < 0:
            raise ConfigError(f"cleanse.boxes[{fragment}] cannot be negative.")
        boxes[str(fragment)] = days
    return CleanseConfig(boxes=boxes)


def _parse_logging(value: Any) -> LoggingConfig:
    if value is None:
        return LoggingConfig()
    if not isinstance(value, dict):
        raise ConfigError("logging must be a mapping.")
    level = str(value.get("level", DEFAULT_LOG_LEVEL)).lower()
    debug_file = bool(value.get("debug_file", False))
    return LoggingConfig(level=level, debug_file=debug_file)


def _parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be an integer.") from exc


def _parse_float(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a number.")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be a number.") from exc


__all__ = [
    "AccountConfig",
    "CleanseConfig",
    "Config",
    "ConfigError",
    "FlagConfig",
    "LearnConfig",
    "LoggingConfig",
    "load_config",
    "require_boxes",
    "resolve_config_path",
]
