"""On-disk layout for per-mailbox classifier models."""

from __future__ import annotations

import logging
import pickle
import uuid
from pathlib import Path
from typing import Any

LOGGER = logging.getLogger(__name__)
DEFAULT_ROOT_DIR = Path("~/.imap_learn")
MODEL_SUFFIX = ".db"


class ModelStore:
    """Owns the model directory of one ``user@host:port`` account.

    Every mailbox gets a single pickled model file. Mailbox names containing
    the hierarchy delimiter map onto nested directories, as the server shows
    them.
    """

    def __init__(
        self,
        root_dir: Path,
        *,
        username: str,
        host: str,
        port: int,
    ) -> None:
        self.root_dir = root_dir.expanduser()
        self.account = f"{username}@{host}:{port}"
        self.account_dir = self.root_dir / self.account

    def model_path(self, mailbox: str) -> Path:
        """Return the model file for ``mailbox``, rejecting path traversal."""

        parts = [part for part in mailbox.replace("\\", "/").split("/") if part]
        if not parts or any(part in (".", "..") for part in parts):
            raise ValueError(f"Unusable mailbox name for model storage: {mailbox!r}")
        *parents, leaf = parts
        return self.account_dir.joinpath(*parents, f"{leaf}{MODEL_SUFFIX}")

    def prepare(self, mailbox: str) -> Path:
        """Create the storage directory for ``mailbox`` and return its model path."""

        path = self.model_path(mailbox)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def load(self, mailbox: str) -> Any | None:
        """Return the stored model state, or None when missing or unreadable."""

        path = self.model_path(mailbox)
        try:
            with path.open("rb") as handle:
                return pickle.load(handle)
        except FileNotFoundError:
            return None
        except ImportError:
            LOGGER.warning(
                "Model for %s at %s needs a module that is not installed; ignoring it",
                mailbox,
                path,
                exc_info=True,
            )
            return None
        except (OSError, pickle.UnpicklingError, EOFError, AttributeError, ValueError):
            aside = self._set_aside(path)
            LOGGER.warning(
                "Unreadable model for %s moved to %s", mailbox, aside, exc_info=True
            )
            return None

    def save(self, mailbox: str, state: Any) -> Path:
        """Pickle ``state`` next to the model file, then rename it into place."""

        target = self.prepare(mailbox)
        scratch = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            with scratch.open("wb") as handle:
                pickle.dump(state, handle, protocol=pickle.HIGHEST_PROTOCOL)
            scratch.replace(target)
        finally:
            scratch.unlink(missing_ok=True)
        return target

    def _set_aside(self, path: Path) -> Path:
        """Rename an unreadable model to ``<name>.corrupt``, ``.corrupt2``, ..."""

        counter = 1
        candidate = path.with_name(path.name + ".corrupt")
        while candidate.exists():
            counter += 1
            candidate = path.with_name(f"{path.name}.corrupt{counter}")
        path.replace(candidate)
        return candidate


__all__ = ["DEFAULT_ROOT_DIR", "MODEL_SUFFIX", "ModelStore"]
