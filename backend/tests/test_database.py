"""
eLabel API — Store Connection Lifecycle Tests
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from elabel import database
from elabel.config import settings


@pytest.mark.asyncio
async def test_ping_in_memory_store():
    await database.ping()


@pytest.mark.asyncio
async def test_verify_connection_retries_until_reachable(monkeypatch):
    ping = AsyncMock(side_effect=[ConnectionRefusedError("starting"), None])
    monkeypatch.setattr(database, "ping", ping)
    monkeypatch.setattr(settings, "retry_max_attempts", 3)

    await database.verify_connection()

    assert ping.await_count == 2


@pytest.mark.asyncio
async def test_verify_connection_gives_up(monkeypatch):
    ping = AsyncMock(side_effect=ConnectionRefusedError("down"))
    monkeypatch.setattr(database, "ping", ping)
    monkeypatch.setattr(settings, "retry_max_attempts", 1)

    with pytest.raises(ConnectionRefusedError):
        await database.verify_connection()
    assert ping.await_count == 1


@pytest.mark.asyncio
async def test_dispose_engine_times_out(monkeypatch):
    async def hang():
        await asyncio.sleep(10)

    stuck = MagicMock()
    stuck.dispose = hang
    monkeypatch.setattr(database, "engine", stuck)

    with pytest.raises(asyncio.TimeoutError):
        await database.dispose_engine(timeout=0.01)
