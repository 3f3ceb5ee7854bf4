"""Tests for storage module wiring."""

from unittest.mock import AsyncMock, MagicMock

import pytest

import toolstream.storage as storage
from toolstream.storage import SqlConversationSink, get_sql_sink


class TestStorageWiring:
    def test_sql_sink_uses_managed_sessions(self):
        sink = get_sql_sink()
        assert isinstance(sink, SqlConversationSink)
        assert sink._session_factory is storage.get_session

    def test_unit_tests_cannot_reach_database(self):
        with pytest.raises(RuntimeError, match="real DB connection"):
            storage.get_session_factory()

    @pytest.mark.asyncio
    async def test_close_db_disposes_engine(self, monkeypatch):
        engine = MagicMock()
        engine.dispose = AsyncMock()
        monkeypatch.setattr(storage, "_engine", engine)
        monkeypatch.setattr(storage, "_session_factory", MagicMock())

        await storage.close_db()

        engine.dispose.assert_awaited_once()
        assert storage._engine is None
        assert storage._session_factory is None

    @pytest.mark.asyncio
    async def test_init_db_creates_tables(self, monkeypatch):
        conn = MagicMock()
        conn.run_sync = AsyncMock()
        engine = MagicMock()
        engine.begin.return_value.__aenter__ = AsyncMock(return_value=conn)
        engine.begin.return_value.__aexit__ = AsyncMock(return_value=False)
        monkeypatch.setattr(storage, "get_engine", lambda settings=None: engine)

        await storage.init_db()

        conn.run_sync.assert_awaited_once_with(storage.Base.metadata.create_all)
