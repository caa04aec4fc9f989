"""Message stores."""

from .base import MessageStore
from .memory import InMemoryMessageStore

__all__ = ["InMemoryMessageStore", "MessageStore"]
