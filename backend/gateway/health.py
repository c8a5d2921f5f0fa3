"""Health monitoring.

Readiness checks for the application's backing services:
Redis and the relational database.
"""

from __future__ import annotations

from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.logging_config import get_logger

logger = get_logger(__name__)


class HealthMonitor:
    """Checks connectivity to every backing service."""

    def __init__(self, redis: aioredis.Redis | None, engine: AsyncEngine | None) -> None:
        self.redis = redis
        self.engine = engine

    async def check_all(self) -> dict[str, Any]:
        """Run all checks; status is "healthy" only when every check passes."""
        redis_ok = await self._check_redis()
        db_ok = await self._check_database()

        return {
            "status": "healthy" if redis_ok and db_ok else "degraded",
            "checks": {
                "redis": {"status": "ok" if redis_ok else "error"},
                "database": {"status": "ok" if db_ok else "error"},
            },
        }

    async def _check_redis(self) -> bool:
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except (RedisError, OSError):
            logger.error("health_check_redis_failed")
            return False

    async def _check_database(self) -> bool:
        if self.engine is None:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError):
            logger.error("health_check_database_failed")
            return False


def get_health_monitor() -> HealthMonitor:
    """Monitor bound to the application's current connections."""
    from app.dependencies import get_redis_pool
    from db.session import get_engine

    return HealthMonitor(get_redis_pool(), get_engine())
