"""History page sources."""

from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from ..domain.errors import NetworkError, ServiceError
from ..domain.models import Message

logger = structlog.get_logger()

FETCH_FAILED = "Failed to fetch older messages"

_PAGE_ADAPTER = TypeAdapter(List[Message])


class HistoryService(ABC):
    """Source of older message pages."""

    @abstractmethod
    async def fetch_page(self, before_id: Optional[str], limit: int) -> List[Message]:
        """Return up to ``limit`` messages older than ``before_id``, oldest first.

        An empty list means there is no older history.
        """
        pass


class NullHistoryService(HistoryService):
    """Used when the deployment has no history endpoint: every page is empty."""

    async def fetch_page(self, before_id: Optional[str], limit: int) -> List[Message]:
        return []


class HttpHistoryService(HistoryService):
    """Fetches pages from ``GET <history_path>?beforeId=..&limit=..``."""

    def __init__(self, http_client: httpx.AsyncClient, history_path: str = "/api/chat/history") -> None:
        self._http = http_client
        self._history_path = history_path

    async def fetch_page(self, before_id: Optional[str], limit: int) -> List[Message]:
        params = {"limit": limit}
        if before_id is not None:
            params["beforeId"] = before_id

        try:
            response = await self._http.get(self._history_path, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("history_request_failed", before_id=before_id, error=str(e))
            raise NetworkError(f"{FETCH_FAILED}: {str(e) or type(e).__name__}") from e

        if not response.is_success:
            logger.warning("history_request_rejected", status_code=response.status_code, before_id=before_id)
            raise ServiceError(f"{FETCH_FAILED} (HTTP {response.status_code})", status_code=response.status_code)

        try:
            page = _PAGE_ADAPTER.validate_json(response.content)
        except ValidationError as e:
            logger.error("history_page_malformed", before_id=before_id, errors=e.error_count())
            raise ServiceError(f"{FETCH_FAILED}: malformed history page", status_code=response.status_code) from e

        logger.debug("history_page_received", before_id=before_id, size=len(page))
        return page
