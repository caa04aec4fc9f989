"""Client configuration."""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_CHAT_PATH = "/api/chat"
DEFAULT_HISTORY_PATH = "/api/chat/history"
DEFAULT_PAGE_SIZE = 20
DEFAULT_TIMEOUT = 30.0


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass
class ClientSettings:
    """Where the chat service lives and how the session talks to it."""

    base_url: str = DEFAULT_BASE_URL
    chat_path: str = DEFAULT_CHAT_PATH
    # None means the deployment has no history endpoint; paging then always ends empty.
    history_path: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE
    request_timeout: float = DEFAULT_TIMEOUT
    # Send the whole transcript instead of only the new user turn.
    include_history: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ClientSettings":
        """Build settings from CHAT_SESSION_* environment variables."""
        history_path = os.getenv("CHAT_SESSION_HISTORY_PATH")
        return cls(
            base_url=os.getenv("CHAT_SESSION_BASE_URL", DEFAULT_BASE_URL),
            chat_path=os.getenv("CHAT_SESSION_CHAT_PATH", DEFAULT_CHAT_PATH),
            history_path=history_path or None,
            page_size=_env_int("CHAT_SESSION_PAGE_SIZE", DEFAULT_PAGE_SIZE),
            request_timeout=_env_float("CHAT_SESSION_TIMEOUT", DEFAULT_TIMEOUT),
            include_history=os.getenv("CHAT_SESSION_INCLUDE_HISTORY", "").lower() in ("1", "true", "yes"),
            log_level=os.getenv("CHAT_SESSION_LOG_LEVEL", "INFO").upper(),
        )
