"""Tests for the session helper."""

import pytest

from steward.db import get_session
from steward.db.repositories import MemoryRepository


class TestGetSession:
    async def test_commits_on_success(self, session_factory):
        async with get_session(session_factory) as session:
            await MemoryRepository(session).upsert("timezone", "UTC", "preference")

        async with session_factory() as session:
            entry = await MemoryRepository(session).get("timezone")
        assert entry.value == "UTC"

    async def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            async with get_session(session_factory) as session:
                await MemoryRepository(session).upsert("timezone", "UTC")
                raise RuntimeError("boom")

        async with session_factory() as session:
            assert await MemoryRepository(session).get("timezone") is None
