"""
Session Controller Module

Owns the state of one chat session and runs its two asynchronous flows:

- send: append the user turn, stream the reply, append one assistant message
- paginate: fetch an older page and prepend it without duplicates

Observers subscribe to full snapshots, which are re-emitted after every
mutation. The store is only ever mutated here, synchronously, after an await
has resolved, so no two mutations interleave.
"""

from typing import Callable, List, Optional

import httpx
import structlog

from .config import ClientSettings
from .domain.errors import ChatSessionError, ErrorKind
from .domain.models import Message, SessionSnapshot, SessionStatus
from .domain.results import Err, Ok, Result
from .logging_config import configure_logging
from .metrics import PAGE_FAILURES, PAGES_FETCHED, RECORDS_SKIPPED, SEND_FAILURES, SENDS
from .pagination import PaginationCursor
from .repositories.base import MessageStore
from .repositories.memory import InMemoryMessageStore
from .services.chat_client import ChatServiceClient
from .services.history import HistoryService, HttpHistoryService, NullHistoryService
from .streaming.decoder import FragmentCallback, StreamDecoder, decode_stream

logger = structlog.get_logger()

Listener = Callable[[SessionSnapshot], None]


class SessionController:
    """Request lifecycle controller for a single chat session."""

    def __init__(
        self,
        chat_client: ChatServiceClient,
        history: Optional[HistoryService] = None,
        store: Optional[MessageStore] = None,
        page_size: int = 20,
        include_history: bool = False,
        on_fragment: Optional[FragmentCallback] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Wire the controller to its collaborators.

        ``http_client`` is closed by ``aclose()``; pass it only when the
        controller owns it.
        """
        self._chat = chat_client
        self._history = history if history is not None else NullHistoryService()
        self._store = store if store is not None else InMemoryMessageStore()
        self._cursor = PaginationCursor(self._store)
        self._page_size = page_size
        self._include_history = include_history
        self._on_fragment = on_fragment
        self._owned_http = http_client

        self._sending = False
        self._paginating = False
        self._error: Optional[str] = None
        self._listeners: List[Listener] = []

    # Observation

    @property
    def status(self) -> SessionStatus:
        if self._sending:
            return SessionStatus.SENDING
        if self._paginating:
            return SessionStatus.PAGINATING
        if self._error is not None:
            return SessionStatus.ERROR
        return SessionStatus.IDLE

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def cursor(self) -> PaginationCursor:
        return self._cursor

    def snapshot(self) -> SessionSnapshot:
        """Current session state as an immutable value."""
        return SessionSnapshot(
            messages=self._store.messages(),
            is_loading=self._sending or self._paginating,
            is_typing=self._sending,
            error=self._error,
            has_more_messages=self._cursor.has_more,
            oldest_message_id=self._cursor.oldest_message_id,
            status=self.status,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for snapshots; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error("session_listener_failed", listener=repr(listener), error=str(e))

    # Commands

    async def submit(self, text: str) -> Result:
        """UI command: send a user turn."""
        return await self.send_message(text)

    async def request_older_page(self, limit: Optional[int] = None) -> Result:
        """UI command: load the page just before the oldest loaded message."""
        before_id = self._cursor.next_page_key()
        if before_id is None:
            return Err(ErrorKind.VALIDATION, "No loaded messages to page back from")
        return await self.fetch_older_messages(before_id, limit or self._page_size)

    def dismiss_error(self) -> None:
        """UI command: clear the pending error."""
        if self._error is not None:
            self._error = None
            self._emit()

    async def send_message(self, text: str) -> Result:
        """Submit ``text`` and stream the assistant reply into the store.

        Returns Ok with the assistant message (None when the reply was empty),
        or Err. Network and service failures also set the session error; the
        user message is kept either way.
        """
        text = text.strip() if text else ""
        if not text:
            return Err(ErrorKind.VALIDATION, "Message is empty")
        if self._sending:
            logger.warning("send_rejected_in_flight")
            return Err(ErrorKind.BUSY, "A message is already being sent")

        self._sending = True
        self._error = None
        SENDS.inc()
        user_message = self._store.append_user(text)
        logger.info("message_sent", message_id=user_message.id, content_length=len(text))
        self._emit()

        outgoing = list(self._store.messages()) if self._include_history else [user_message]
        try:
            reply = await self._receive_reply(outgoing)
        except ChatSessionError as e:
            SEND_FAILURES.inc()
            self._error = e.message
            logger.error("send_message_failed", message_id=user_message.id, kind=e.kind.value, error=e.message)
            result = Err(e.kind, e.message)
        else:
            assistant = self._store.append_assistant(reply) if reply else None
            logger.info(
                "reply_received",
                message_id=assistant.id if assistant else None,
                reply_length=len(reply),
            )
            result = Ok(assistant)
        finally:
            self._sending = False
            self._emit()
        return result

    async def _receive_reply(self, outgoing: List[Message]) -> str:
        decoder = StreamDecoder()
        try:
            async with self._chat.stream_reply(outgoing) as chunks:
                return await decode_stream(chunks, decoder=decoder, on_fragment=self._on_fragment)
        finally:
            if decoder.skipped_records:
                RECORDS_SKIPPED.inc(decoder.skipped_records)
                logger.warning("stream_records_skipped", count=decoder.skipped_records)

    async def fetch_older_messages(self, before_id: Optional[str], limit: int) -> Result:
        """Fetch up to ``limit`` messages older than ``before_id`` and prepend them.

        Returns Ok with the messages actually inserted. An empty page marks the
        history exhausted for the rest of the session.
        """
        if limit < 1:
            return Err(ErrorKind.VALIDATION, "Page size must be positive")
        if not self._cursor.has_more:
            return Err(ErrorKind.EXHAUSTED, "No older messages")
        if self._paginating:
            logger.warning("fetch_older_rejected_in_flight", before_id=before_id)
            return Err(ErrorKind.BUSY, "Older messages are already being fetched")

        self._paginating = True
        self._error = None
        self._emit()

        try:
            batch = await self._history.fetch_page(before_id, limit)
        except ChatSessionError as e:
            PAGE_FAILURES.inc()
            self._error = e.message
            logger.error("fetch_older_failed", before_id=before_id, kind=e.kind.value, error=e.message)
            result = Err(e.kind, e.message)
        else:
            PAGES_FETCHED.inc()
            if not batch:
                self._cursor.mark_exhausted()
                result = Ok([])
            else:
                # Pages must be oldest-first before they reach the store.
                inserted = self._store.prepend_older(sorted(batch, key=lambda m: m.timestamp))
                logger.info(
                    "older_messages_loaded",
                    before_id=before_id,
                    received=len(batch),
                    inserted=len(inserted),
                    oldest_message_id=self._cursor.oldest_message_id,
                )
                result = Ok(inserted)
        finally:
            self._paginating = False
            self._emit()
        return result

    # Resources

    async def aclose(self) -> None:
        """Close the HTTP client if this controller owns it."""
        if self._owned_http is not None:
            await self._owned_http.aclose()
            self._owned_http = None

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def create_session(
    settings: Optional[ClientSettings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> SessionController:
    """Build a controller wired to the chat service described by ``settings``.

    An injected ``http_client`` stays owned by the caller. When ``settings`` is
    omitted they are read from the environment and structlog is configured at
    their ``log_level``.
    """
    if settings is None:
        settings = ClientSettings.from_env()
        configure_logging(settings.log_level)
    owned = None
    if http_client is None:
        http_client = owned = httpx.AsyncClient(base_url=settings.base_url, timeout=settings.request_timeout)

    history: HistoryService
    if settings.history_path:
        history = HttpHistoryService(http_client, settings.history_path)
    else:
        history = NullHistoryService()

    logger.info(
        "session_created",
        base_url=str(http_client.base_url),
        history_enabled=settings.history_path is not None,
        page_size=settings.page_size,
    )
    return SessionController(
        ChatServiceClient(http_client, settings.chat_path),
        history=history,
        page_size=settings.page_size,
        include_history=settings.include_history,
        http_client=owned,
    )
