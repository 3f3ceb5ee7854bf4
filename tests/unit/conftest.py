"""Unit-test conftest: DB isolation safety net.

Before every unit test the storage module's engine and session-factory
singletons are reset and ``get_engine()`` is replaced with a guard that
raises, so no test can reach the configured database by accident. Tests
that need SQL build their own in-memory engine.
"""

from __future__ import annotations

import pytest

import toolstream.storage as _storage_mod


@pytest.fixture(autouse=True)
def _block_real_db(monkeypatch: pytest.MonkeyPatch) -> None:
    def _guarded_get_engine(settings=None):
        raise RuntimeError(
            "Unit test attempted a real DB connection via get_engine(). "
            "Pass a session factory bound to an in-memory engine instead."
        )

    monkeypatch.setattr(_storage_mod, "_engine", None)
    monkeypatch.setattr(_storage_mod, "_session_factory", None)
    monkeypatch.setattr(_storage_mod, "get_engine", _guarded_get_engine)
