"""Unit tests for the daily quota services."""

import asyncio
from datetime import date

import pytest

from services.quota_service import InMemoryQuotaService, SQLiteQuotaService

TODAY = date(2026, 10, 18)
TOMORROW = date(2026, 10, 19)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_in_memory_limit_is_enforced_per_day():
    quota = InMemoryQuotaService(limit=2)

    assert await quota.check_and_consume(TODAY)
    assert await quota.check_and_consume(TODAY)
    assert not await quota.check_and_consume(TODAY)
    assert await quota.usage(TODAY) == 2

    # new day starts from zero
    assert await quota.check_and_consume(TOMORROW)
    assert await quota.usage(TOMORROW) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sqlite_limit_is_enforced(temp_dir):
    quota = SQLiteQuotaService(db_path=str(temp_dir / "quota.db"), limit=3)
    await quota.connect()
    try:
        results = [await quota.check_and_consume(TODAY) for _ in range(4)]
        assert results == [True, True, True, False]
        assert await quota.usage(TODAY) == 3
        assert await quota.usage(TOMORROW) == 0
    finally:
        await quota.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sqlite_usage_survives_reconnect(temp_dir):
    db_path = str(temp_dir / "nested" / "quota.db")

    first = SQLiteQuotaService(db_path=db_path, limit=3)
    await first.connect()
    await first.check_and_consume(TODAY)
    await first.close()

    second = SQLiteQuotaService(db_path=db_path, limit=3)
    await second.connect()
    try:
        assert await second.usage(TODAY) == 1
    finally:
        await second.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sqlite_concurrent_consumers_never_exceed_limit(temp_dir):
    quota = SQLiteQuotaService(db_path=str(temp_dir / "quota.db"), limit=3)
    await quota.connect()
    try:
        results = await asyncio.gather(*(quota.check_and_consume(TODAY) for _ in range(10)))
        assert results.count(True) == 3
        assert await quota.usage(TODAY) == 3
    finally:
        await quota.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sqlite_requires_connect(temp_dir):
    quota = SQLiteQuotaService(db_path=str(temp_dir / "quota.db"))

    with pytest.raises(RuntimeError, match="connect"):
        await quota.check_and_consume(TODAY)
