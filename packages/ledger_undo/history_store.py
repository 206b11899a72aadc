"""Durable slot for the undo history.

The history lives in one JSON file under the state root:

  ``<state_root>/undo_history.json``

State root default: ``./.state`` under the current working directory.
Override: ``LEDGER_UNDO_STATE_DIR`` environment variable (absolute or relative).

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place.
Read and write failures are logged and never raised: a corrupt or
schema-mismatched file is deleted and an empty history is returned.
"""

from __future__ import annotations

import contextlib
import json
import os
from collections.abc import Sequence
from pathlib import Path

from pydantic import ValidationError

from .logging_setup import get_logger
from .models import Action, HistoryFile

# Bump only when the on-disk history JSON shape changes.
SCHEMA_VERSION: int = 1

HISTORY_KEY = "undo_history"

_logger = get_logger("ledger_undo.history_store")


def _get_state_root() -> Path:
    root = os.getenv("LEDGER_UNDO_STATE_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".state").resolve()


class HistoryStore:
    """Load, save and clear the persisted action list."""

    def __init__(self, state_dir: Path | str | None = None) -> None:
        self._state_dir = Path(state_dir).expanduser().resolve() if state_dir else None

    @property
    def path(self) -> Path:
        root = self._state_dir or _get_state_root()
        return root / f"{HISTORY_KEY}.json"

    def load(self) -> list[Action]:
        """Return persisted actions, oldest first; ``[]`` when absent or unreadable."""

        path = self.path
        if not path.exists():
            return []

        try:
            parsed = HistoryFile.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError):
            _logger.warning(
                "history:load_failed; discarding persisted history path=%s",
                os.fspath(path),
                exc_info=True,
            )
            self._discard(path)
            return []

        if parsed.schema_version != SCHEMA_VERSION or parsed.key != HISTORY_KEY:
            _logger.warning(
                "history:schema_mismatch; discarding persisted history "
                "path=%s schema_version=%d key=%s",
                os.fspath(path),
                parsed.schema_version,
                parsed.key,
            )
            self._discard(path)
            return []

        return list(parsed.actions)

    def save(self, actions: Sequence[Action]) -> bool:
        """Overwrite the slot with ``actions``. Returns False when the write failed."""

        path = self.path
        tmp = path.with_suffix(path.suffix + ".tmp")
        payload = HistoryFile(
            schema_version=SCHEMA_VERSION, key=HISTORY_KEY, actions=list(actions)
        )

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(
                    payload.model_dump(mode="json", exclude_unset=True),
                    ensure_ascii=False,
                    separators=(",", ":"),
                ),
                encoding="utf-8",
            )
            os.replace(tmp, path)
        except OSError:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            _logger.warning(
                "history:save_failed path=%s actions=%d",
                os.fspath(path),
                len(actions),
                exc_info=True,
            )
            return False
        return True

    def clear(self) -> None:
        self._discard(self.path)

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            _logger.warning("history:remove_failed path=%s", os.fspath(path), exc_info=True)


__all__ = ["HISTORY_KEY", "SCHEMA_VERSION", "HistoryStore"]
