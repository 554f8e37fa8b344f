"""
Shared FastAPI dependencies.

Routes depend on the BarStore interface rather than a raw session so the
whole surface can run against any store implementation.
"""

from typing import Optional

from trendwatch.core.config import settings
from trendwatch.core.redis import get_async_redis, recompute_lock
from trendwatch.services.bar_store import BarStore, SqlAlchemyBarStore
from trendwatch.services.recompute_service import RecomputeService

_store: Optional[BarStore] = None
_recompute_service: Optional[RecomputeService] = None


def get_store() -> BarStore:
    global _store
    if _store is None:
        _store = SqlAlchemyBarStore()
    return _store


def get_recompute_service() -> RecomputeService:
    # One instance per process so per-symbol locks are shared across requests
    global _recompute_service
    if _recompute_service is None:
        _recompute_service = RecomputeService(get_store(), universe=settings.TRADING_UNIVERSE)
    return _recompute_service


async def get_recompute_lock():
    return recompute_lock(await get_async_redis())
