"""
Reference Chat Service Module

A small FastAPI app that speaks the two contracts the session client relies on:

- POST /api/chat streams a record-framed reply (``0:{"content": ...}`` fragments
  followed by a ``d:`` finish record)
- GET /api/chat/history pages an in-memory transcript backwards by message id

It echoes the last user turn instead of running a model, which makes it
suitable for local development and integration tests.
"""

import json
import re
from typing import AsyncIterator, List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from pydantic import BaseModel, Field
from structlog import get_logger

from ..config import DEFAULT_CHAT_PATH, DEFAULT_HISTORY_PATH
from ..domain.models import Message, Role
from ..streaming.decoder import CONTENT_TAG

logger = get_logger()

FINISH_TAG = "d"
MAX_PAGE_SIZE = 100


class ChatTurn(BaseModel):
    """One conversation turn in a chat request"""
    role: Role
    content: str


class ChatRequest(BaseModel):
    """Defines the structure for chat completion requests"""
    messages: List[ChatTurn] = Field(min_length=1)


def encode_record(tag: str, payload: dict) -> str:
    """Frame one record of the streaming protocol"""
    return f"{tag}:{json.dumps(payload)}\n"


def split_fragments(text: str) -> List[str]:
    """Splits a reply into word fragments, keeping leading whitespace"""
    return re.findall(r"\s*\S+", text)


class HistoryArchive:
    """Ordered transcript served by the history endpoint"""

    def __init__(self, messages: Optional[Sequence[Message]] = None) -> None:
        self._messages = sorted(messages or [], key=lambda m: m.timestamp)
        self._index = {m.id: i for i, m in enumerate(self._messages)}

    def page_before(self, before_id: Optional[str], limit: int) -> List[Message]:
        """Returns up to ``limit`` messages older than ``before_id``, oldest first"""
        if before_id is None:
            end = len(self._messages)
        elif before_id in self._index:
            end = self._index[before_id]
        else:
            raise KeyError(before_id)
        return self._messages[max(0, end - limit):end]


def create_app(history: Optional[Sequence[Message]] = None) -> FastAPI:
    """Builds the reference service, optionally seeded with a transcript"""
    app = FastAPI(
        title="Chat Session Reference Service",
        description="Echoing chat service speaking the streaming record protocol",
        version="0.1.0",
    )
    app.state.archive = HistoryArchive(history)

    # Set up request tracing
    FastAPIInstrumentor.instrument_app(app)

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Tracks requests"""
        logger.info("request_started", path=request.url.path)
        try:
            return await call_next(request)
        except Exception as e:
            logger.error("request_failed", path=request.url.path, error=str(e))
            raise

    @app.post(DEFAULT_CHAT_PATH)
    async def chat(request: ChatRequest) -> StreamingResponse:
        """Streams an echo of the latest user turn"""
        user_turns = [turn for turn in request.messages if turn.role == Role.USER]
        if not user_turns:
            raise HTTPException(status_code=422, detail="No user message to answer")
        reply = user_turns[-1].content

        async def records() -> AsyncIterator[str]:
            for fragment in split_fragments(reply):
                yield encode_record(CONTENT_TAG, {"content": fragment})
            yield encode_record(FINISH_TAG, {"finishReason": "stop"})

        logger.info("chat_reply_streaming", turns=len(request.messages), reply_length=len(reply))
        return StreamingResponse(records(), media_type="text/plain; charset=utf-8")

    @app.get(DEFAULT_HISTORY_PATH, response_model=List[Message])
    async def history_page(
        request: Request,
        before_id: Optional[str] = Query(None, alias="beforeId"),
        limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    ) -> List[Message]:
        """Gets the page of messages just before ``beforeId``"""
        try:
            return request.app.state.archive.page_before(before_id, limit)
        except KeyError:
            logger.warning("history_cursor_unknown", before_id=before_id)
            raise HTTPException(status_code=404, detail="Unknown message id")

    return app


app = create_app()
