"""HTTP boundary to the chat and history endpoints."""

from .chat_client import ChatServiceClient
from .history import HistoryService, HttpHistoryService, NullHistoryService

__all__ = ["ChatServiceClient", "HistoryService", "HttpHistoryService", "NullHistoryService"]
