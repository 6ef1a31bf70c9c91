"""Comment feed: the durable log plus its bounded in-memory mirror."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import List

from ...domain.comment_repository import CommentRepository
from ...domain.entities import Comment
from ...domain.errors import PersistenceError
from ..dtos import NewCommentEvent
from .broadcast import BroadcastHub

logger = logging.getLogger(__name__)


class CommentFeed:
    """Service appending accepted comments to storage, cache and live viewers.

    Storage is the source of truth. The cache is seeded from it by ``load`` and
    only appended to afterwards, under a lock, so cache order, broadcast order
    and application order always agree.
    """

    def __init__(
        self,
        comment_repository: CommentRepository,
        hub: BroadcastHub,
        *,
        limit: int = 1000,
    ):
        self.comment_repository = comment_repository
        self.hub = hub
        self.limit = limit
        self._cache: deque[Comment] = deque(maxlen=limit)
        self._lock = asyncio.Lock()

    async def load(self) -> int:
        """Seed the cache with the most recent stored comments."""
        recent = await self.comment_repository.recent_window(self.limit)
        async with self._lock:
            self._cache.clear()
            self._cache.extend(recent)
        return len(recent)

    def messages(self) -> List[Comment]:
        return list(self._cache)

    async def publish_comment(self, text: str) -> Comment:
        """Persist, cache and broadcast a confirmed comment.

        A failed durable write is logged and the comment is still cached and
        broadcast without a sequence.
        """
        comment = Comment(text=text)
        async with self._lock:
            try:
                sequence = await self.comment_repository.append(comment)
                comment = comment.model_copy(update={"sequence": sequence})
            except PersistenceError:
                logger.exception("Comment could not be stored; broadcasting anyway")
            self._cache.append(comment)
            await self.hub.publish(NewCommentEvent(data=comment))
        return comment
