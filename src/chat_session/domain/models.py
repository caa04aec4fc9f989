"""Domain models for the chat session."""

import time
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def now_millis() -> int:
    """Current time as epoch milliseconds."""
    return time.time_ns() // 1_000_000


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """Message model.

    Frozen: once a message is in the store its id, role and content never change.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    content: str
    role: Role
    timestamp: int = Field(default_factory=now_millis)


class SessionStatus(str, Enum):
    """Request lifecycle state."""

    IDLE = "idle"
    SENDING = "sending"
    PAGINATING = "paginating"
    ERROR = "error"


class SessionSnapshot(BaseModel):
    """Read-only view of the session state handed to observers."""

    model_config = ConfigDict(frozen=True)

    messages: Tuple[Message, ...] = ()
    is_loading: bool = False
    is_typing: bool = False
    error: Optional[str] = None
    has_more_messages: bool = True
    oldest_message_id: Optional[str] = None
    status: SessionStatus = SessionStatus.IDLE
