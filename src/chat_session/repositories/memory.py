"""In-memory message store implementation."""

import itertools
import secrets
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from ..domain.models import Message, Role, now_millis
from .base import MessageStore

logger = structlog.get_logger()


class InMemoryMessageStore(MessageStore):
    """Ordered, per-session message history kept in memory."""

    def __init__(self) -> None:
        """Initialize an empty history."""
        self._messages: List[Message] = []
        self._by_id: Dict[str, Message] = {}
        self._counter = itertools.count(1)
        logger.debug("message_store_initialized")

    def _new_id(self, role: Role) -> str:
        """Generate an id unique within this store."""
        while True:
            message_id = f"{role.value}-{now_millis()}-{next(self._counter)}-{secrets.token_hex(4)}"
            if message_id not in self._by_id:
                return message_id

    def _append(self, role: Role, content: str) -> Message:
        message = Message(id=self._new_id(role), content=content, role=role)
        self._messages.append(message)
        self._by_id[message.id] = message
        logger.debug("message_appended", message_id=message.id, message_role=role.value)
        return message

    def append_user(self, content: str) -> Message:
        """Append a new user message to the tail."""
        return self._append(Role.USER, content)

    def append_assistant(self, content: str) -> Message:
        """Append a new assistant message to the tail."""
        return self._append(Role.ASSISTANT, content)

    def prepend_older(self, batch: Iterable[Message]) -> List[Message]:
        """Insert older messages before the head, keeping the batch's order.

        Messages whose id is already stored, or repeated inside the batch, are
        dropped. Returns the messages that were actually inserted.
        """
        fresh: List[Message] = []
        seen = set(self._by_id)
        duplicates = 0
        for message in batch:
            if message.id in seen:
                duplicates += 1
                continue
            seen.add(message.id)
            fresh.append(message)

        if fresh:
            self._messages[0:0] = fresh
            self._by_id.update((message.id, message) for message in fresh)
        if fresh or duplicates:
            logger.debug("older_messages_prepended", inserted=len(fresh), duplicates_dropped=duplicates)
        return fresh

    def messages(self) -> Tuple[Message, ...]:
        """All messages, oldest first."""
        return tuple(self._messages)

    def get(self, message_id: str) -> Optional[Message]:
        """Retrieve a message by id."""
        return self._by_id.get(message_id)

    def oldest(self) -> Optional[Message]:
        return self._messages[0] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)
