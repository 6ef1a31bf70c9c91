"""Comment domain repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from .entities import Comment


class CommentRepository(ABC):
    """Append-only, time-ordered log of accepted comments."""

    @abstractmethod
    async def append(self, comment: Comment) -> int:
        """Durably store a comment and return its assigned sequence.

        Raises:
            PersistenceError: If the write did not complete.
        """
        pass

    @abstractmethod
    async def recent_window(self, limit: int = 1000) -> List[Comment]:
        """Return the most recent ``limit`` comments, oldest first."""
        pass
