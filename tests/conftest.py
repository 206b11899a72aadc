"""Pytest configuration for test isolation.

The undo history persists to ``<state dir>/undo_history.json`` (default
``./.state``). Tests running in the same working tree would otherwise share
that file and see each other's actions, so each test gets its own state
directory via an autouse fixture. Cached SQLAlchemy engines are disposed
after every test so per-test SQLite files are released.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make `packages/`, the shared db library and the repo root importable
_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in [str(_ROOT / "packages"), str(_ROOT / "libs/db/src"), str(_ROOT)]
    if p not in sys.path
]


@pytest.fixture(autouse=True)
def _isolate_state_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Force a per-test state root so tests don't share on-disk history."""

    state_root = tmp_path / "state"
    state_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("LEDGER_UNDO_STATE_DIR", os.fspath(state_root))
    monkeypatch.delenv("LEDGER_UNDO_OWNER_ID", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    yield state_root

    from db.client import dispose_engines

    dispose_engines()
