"""Storage abstractions and Redis implementation for repositories."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Mapping, Optional

from .database import DatabaseClient


class KeyValueStore(ABC):
    """Abstract key-value store with minimal operations used by repositories."""

    @abstractmethod
    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def incr(self, key: str) -> int:
        pass

    @abstractmethod
    async def zadd(self, key: str, mapping: Mapping[str, float]) -> int:
        pass

    @abstractmethod
    async def zrange(self, key: str, start: int, end: int) -> list[str]:
        pass


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed implementation of KeyValueStore."""

    def __init__(self, db_client: DatabaseClient):
        self._db_client = db_client

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        if not keys:
            return []
        async with self._db_client.get_connection() as conn:
            return await conn.mget(keys)

    async def set(self, key: str, value: str) -> None:
        async with self._db_client.get_connection() as conn:
            await conn.set(key, value)

    async def incr(self, key: str) -> int:
        async with self._db_client.get_connection() as conn:
            return await conn.incr(key)

    async def zadd(self, key: str, mapping: Mapping[str, float]) -> int:
        async with self._db_client.get_connection() as conn:
            return await conn.zadd(key, mapping)

    async def zrange(self, key: str, start: int, end: int) -> list[str]:
        async with self._db_client.get_connection() as conn:
            return await conn.zrange(key, start, end)
