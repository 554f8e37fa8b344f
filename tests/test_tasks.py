"""Celery task bodies called directly with Redis and the store patched."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pandas as pd
import pytest
from redis.exceptions import LockNotOwnedError

from trendwatch.core.redis import StreamNames
from trendwatch.services.ingestion_service import IngestionService
from trendwatch.services.recompute_service import RecomputeService
from trendwatch.tasks import indicators as indicator_tasks
from trendwatch.tasks import market_data as market_tasks

from conftest import START, InMemoryBarStore, make_series


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.lock.return_value.acquire.return_value = True
    return client


@pytest.fixture
def task_store():
    return InMemoryBarStore(make_series("AAA", [100 + i for i in range(60)]))


@pytest.fixture
def patched(redis_client, task_store):
    service = RecomputeService(task_store, universe=None, windows=[50, 100, 200], min_history=50)
    with patch.object(indicator_tasks, "get_redis", return_value=redis_client), \
            patch.object(indicator_tasks, "build_recompute_service", return_value=service), \
            patch.object(indicator_tasks, "close_db", new=AsyncMock()):
        yield redis_client


class TestRecomputeTasks:

    def test_recompute_all(self, patched, task_store):
        result = indicator_tasks.recompute_all_indicators()

        assert result["status"] == "completed"
        assert result["sufficient_data"] == 1
        patched.lock.return_value.release.assert_called_once()
        stream, fields = patched.xadd.call_args.args
        assert stream == StreamNames.INDICATORS
        assert fields["processed"] == "1"
        assert task_store.rows[("AAA", START + timedelta(days=59))].ma_50 is not None

    def test_recompute_since_string(self, patched):
        result = indicator_tasks.recompute_all_indicators(str(START + timedelta(days=100)))
        assert result["status"] == "completed"
        assert result["processed"] == 0

    def test_locked(self, patched):
        patched.lock.return_value.acquire.return_value = False
        assert indicator_tasks.recompute_all_indicators() == {"status": "locked"}
        patched.lock.return_value.release.assert_not_called()

    def test_enumeration_failure(self, patched, task_store):
        task_store.fail_enumeration = True
        result = indicator_tasks.recompute_all_indicators()
        assert result["status"] == "failed"
        patched.lock.return_value.release.assert_called_once()

    def test_expired_lock_keeps_summary(self, patched):
        patched.lock.return_value.release.side_effect = LockNotOwnedError("expired")
        result = indicator_tasks.recompute_all_indicators()
        assert result["status"] == "completed"
        assert result["sufficient_data"] == 1

    def test_disabled(self, patched):
        with patch.object(indicator_tasks.settings, "MOVING_AVERAGES_ENABLED", False):
            assert indicator_tasks.recompute_all_indicators() == {"status": "disabled"}

    def test_recompute_symbol(self, patched):
        result = indicator_tasks.recompute_symbol_indicators("aaa")
        assert result["status"] == "completed"
        assert result["symbol"] == "AAA"
        assert result["result"]["status"] == "updated"


class FakeProvider:
    name = "fake"

    def fetch_daily_bars(self, symbols, start_date, end_date):
        return pd.DataFrame([
            {"symbol": "AAA", "date": START + timedelta(days=60), "open": 160,
             "high": 161, "low": 159, "close": 160, "volume": 10},
        ])


class TestIngestTask:

    def test_ingest_then_recompute(self, patched, task_store):
        service = IngestionService(task_store, provider=FakeProvider())
        with patch.object(market_tasks, "IngestionService", return_value=service), \
                patch.object(market_tasks, "get_redis", return_value=patched), \
                patch.object(market_tasks, "close_db", new=AsyncMock()):
            result = market_tasks.ingest_market_data()

        assert result["processed"] == 1
        assert result["recompute"]["status"] == "completed"
        assert result["recompute"]["sufficient_data"] == 1
        streams = [call.args[0] for call in patched.xadd.call_args_list]
        assert StreamNames.MARKET_BARS in streams
        latest = task_store.rows[("AAA", START + timedelta(days=60))]
        assert latest.percentage_change is not None
        assert latest.ma_50 is not None
