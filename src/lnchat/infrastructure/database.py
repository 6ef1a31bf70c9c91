"""Redis connection for the comment log."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Protocol, Union

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class HasDatabaseSettings(Protocol):
    database_url: str


class DatabaseClient:
    """Lazily connected Redis client shared by every repository call.

    Responses are decoded to ``str`` since everything stored is JSON or a
    decimal counter.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._redis: Optional[redis.Redis] = None

    def _connect(self) -> redis.Redis:
        # Expecting URL like: redis://host:port/0
        if self._redis is None:
            self._redis = redis.from_url(self.database_url, decode_responses=True)
        return self._redis

    @asynccontextmanager
    async def get_connection(self) -> AsyncGenerator[redis.Redis, None]:
        """Yield the pooled connection; it stays open until ``close``."""
        yield self._connect()

    async def ping(self) -> bool:
        """Report whether Redis answers; failures are logged, not raised."""
        try:
            return bool(await self._connect().ping())
        except (RedisError, OSError) as e:
            logger.warning("Redis at %s is unreachable: %s", self.database_url, e)
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Global database client instance
_db_client: Union[DatabaseClient, None] = None


def get_database_client(settings: HasDatabaseSettings) -> DatabaseClient:
    """Get or create database client singleton."""
    global _db_client
    if _db_client is None:
        _db_client = DatabaseClient(settings.database_url)
    return _db_client
