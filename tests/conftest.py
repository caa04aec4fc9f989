"""Shared fixtures: fake chat endpoints and history sources."""

from typing import Callable, Iterable, List, Optional, Tuple

import httpx
import pytest

from chat_session.controller import SessionController
from chat_session.domain.errors import ChatSessionError
from chat_session.domain.models import Message
from chat_session.services.chat_client import ChatServiceClient
from chat_session.services.history import HistoryService


class RecordingHistory(HistoryService):
    """History source that replays canned pages (or errors) and records calls."""

    def __init__(self, pages: Iterable) -> None:
        self.pages = list(pages)
        self.calls: List[Tuple[Optional[str], int]] = []

    async def fetch_page(self, before_id: Optional[str], limit: int) -> List[Message]:
        self.calls.append((before_id, limit))
        page = self.pages.pop(0) if self.pages else []
        if isinstance(page, ChatSessionError):
            raise page
        return list(page)


@pytest.fixture
def chat_handler():
    """Builds a MockTransport handler streaming ``chunks`` and recording requests."""

    def build(*chunks, status_code: int = 200, requests: Optional[list] = None):
        async def handler(request: httpx.Request) -> httpx.Response:
            if requests is not None:
                requests.append(request)

            async def body():
                for chunk in chunks:
                    yield chunk.encode() if isinstance(chunk, str) else chunk

            return httpx.Response(status_code, content=body())

        return handler

    return build


@pytest.fixture
def make_controller() -> Callable[..., SessionController]:
    """Builds a controller whose chat endpoint is served by ``handler``."""

    def build(handler, history: Optional[HistoryService] = None, **kwargs) -> SessionController:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
        return SessionController(ChatServiceClient(http_client), history=history, **kwargs)

    return build


@pytest.fixture
def recording_history() -> Callable[..., RecordingHistory]:
    return RecordingHistory
