"""Base message store interface."""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple

from ..domain.models import Message


class MessageStore(ABC):
    """Abstract base class for message stores.

    Methods are synchronous on purpose: a mutation is always applied as one step,
    never interleaved with another task.
    """

    @abstractmethod
    def append_user(self, content: str) -> Message:
        """Append a new user message to the tail."""
        pass

    @abstractmethod
    def append_assistant(self, content: str) -> Message:
        """Append a new assistant message to the tail."""
        pass

    @abstractmethod
    def prepend_older(self, batch: Iterable[Message]) -> List[Message]:
        """Insert older messages before the head, dropping known ids."""
        pass

    @abstractmethod
    def messages(self) -> Tuple[Message, ...]:
        """All messages, oldest first."""
        pass

    @abstractmethod
    def get(self, message_id: str) -> Optional[Message]:
        """Retrieve a message by id."""
        pass

    def oldest(self) -> Optional[Message]:
        """The head of the history, if any."""
        messages = self.messages()
        return messages[0] if messages else None

    def __len__(self) -> int:
        return len(self.messages())

    def __contains__(self, message_id: object) -> bool:
        return isinstance(message_id, str) and self.get(message_id) is not None
