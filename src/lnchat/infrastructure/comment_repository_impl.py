"""Comment repository implemented over a storage abstraction."""

from __future__ import annotations

from typing import List

from ..domain.comment_repository import CommentRepository
from ..domain.entities import Comment
from ..domain.errors import PersistenceError
from .storage import KeyValueStore


class CommentRepositoryImpl(CommentRepository):
    """Comment log using a KeyValueStore.

    Keys:
      - comments:sequence -> last assigned sequence (INCR counter)
      - comment:{sequence} -> Comment JSON
      - comments:all -> sorted set of sequences scored by sequence
    """

    SEQUENCE_KEY = "comments:sequence"
    INDEX_KEY = "comments:all"

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def append(self, comment: Comment) -> int:
        try:
            sequence = await self.store.incr(self.SEQUENCE_KEY)
            stored = comment.model_copy(update={"sequence": sequence})
            await self.store.set(f"comment:{sequence}", stored.model_dump_json())
            await self.store.zadd(self.INDEX_KEY, {str(sequence): float(sequence)})
        except Exception as e:
            raise PersistenceError(f"Failed to store comment: {e}") from e
        return sequence

    async def recent_window(self, limit: int = 1000) -> List[Comment]:
        if limit <= 0:
            return []
        try:
            sequences = await self.store.zrange(self.INDEX_KEY, -limit, -1)
            rows = await self.store.mget([f"comment:{seq}" for seq in sequences])
        except Exception as e:
            raise PersistenceError(f"Failed to read comments: {e}") from e
        return [Comment.model_validate_json(row) for row in rows if row]
