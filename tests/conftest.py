"""Pytest configuration shared by the suite.

Puts the workspace ``packages/`` and ``libs/db/src`` directories on
``sys.path`` so the suite runs from a plain checkout, and disposes the shared
SQLAlchemy engine after every test so each test may bind its own temporary
SQLite database.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
_PATHS = [_ROOT / "packages", _ROOT / "libs" / "db" / "src", _ROOT]
sys.path[:0] = [str(p) for p in _PATHS if str(p) not in sys.path]

from ledger_db.client import dispose_engine  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_engine(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep tests from sharing an engine or an inherited ``DATABASE_URL``."""

    monkeypatch.delenv("DATABASE_URL", raising=False)
    dispose_engine()
    yield
    dispose_engine()


@pytest.fixture()
def sqlite_url(tmp_path: Path) -> str:
    """A fresh file-backed SQLite ledger database with the schema created."""

    from tests.helpers.db import bootstrap_sqlite_db

    return bootstrap_sqlite_db(tmp_path / "ledger.sqlite")
