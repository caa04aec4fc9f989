"""Client for the streaming chat completion endpoint."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

import httpx
import structlog

from ..domain.errors import NetworkError, ServiceError
from ..domain.models import Message

logger = structlog.get_logger()

SEND_FAILED = "Failed to send message"


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__


async def _error_detail(response: httpx.Response) -> Optional[str]:
    """Pull a short explanation out of an error body, if it has one."""
    try:
        await response.aread()
        body = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug("error_body_unreadable", status_code=response.status_code, error=str(e))
        return None
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if isinstance(body.get(key), str):
                return body[key]
    return None


class ChatServiceClient:
    """Posts conversation turns and exposes the reply body as a chunk iterator."""

    def __init__(self, http_client: httpx.AsyncClient, chat_path: str = "/api/chat") -> None:
        self._http = http_client
        self._chat_path = chat_path

    @staticmethod
    def build_payload(messages: Sequence[Message]) -> dict:
        """Request body for the chat endpoint."""
        return {"messages": [{"role": m.role.value, "content": m.content} for m in messages]}

    @asynccontextmanager
    async def stream_reply(self, messages: Sequence[Message]) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open the reply stream for ``messages``.

        Yields an async iterator over raw body chunks. Raises NetworkError when the
        request cannot be completed and ServiceError on a non-success status.
        """
        try:
            request = self._http.build_request("POST", self._chat_path, json=self.build_payload(messages))
            response = await self._http.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("chat_request_failed", path=self._chat_path, error=str(e))
            raise NetworkError(f"{SEND_FAILED}: {_describe(e)}") from e

        try:
            if not response.is_success:
                detail = await _error_detail(response)
                logger.warning("chat_request_rejected", status_code=response.status_code, detail=detail)
                message = f"{SEND_FAILED} (HTTP {response.status_code})"
                if detail:
                    message = f"{message}: {detail}"
                raise ServiceError(message, status_code=response.status_code)
            yield self._iter_body(response)
        finally:
            await response.aclose()

    @staticmethod
    async def _iter_body(response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            logger.error("chat_stream_interrupted", error=str(e))
            raise NetworkError(f"Reply stream interrupted: {_describe(e)}") from e
