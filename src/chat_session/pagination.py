"""Cursor over older history pages."""

from typing import Optional

import structlog

from .repositories.base import MessageStore

logger = structlog.get_logger()


class PaginationCursor:
    """Derives the next page key from the store and remembers exhaustion."""

    def __init__(self, store: MessageStore) -> None:
        self._store = store
        self._has_more = True

    @property
    def has_more(self) -> bool:
        """Whether older pages may still exist. Never turns true again once false."""
        return self._has_more

    @property
    def oldest_message_id(self) -> Optional[str]:
        oldest = self._store.oldest()
        return oldest.id if oldest else None

    def next_page_key(self) -> Optional[str]:
        """Exclusive upper bound for the next older page, or None for an empty store."""
        return self.oldest_message_id

    def mark_exhausted(self) -> None:
        """Record that no older history remains."""
        if self._has_more:
            self._has_more = False
            logger.info("history_exhausted", oldest_message_id=self.oldest_message_id)
