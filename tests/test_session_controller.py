"""Test suite for the session controller's send and paginate flows."""

import json

import httpx
import pytest

from chat_session.controller import SessionController
from chat_session.domain.errors import ErrorKind, NetworkError, ServiceError
from chat_session.domain.models import Message, Role, SessionStatus
from chat_session.domain.results import Err, Ok
from chat_session.metrics import CUSTOM_REGISTRY
from chat_session.repositories.memory import InMemoryMessageStore
from chat_session.services.chat_client import ChatServiceClient


def make_message(id: str, timestamp: int) -> Message:
    return Message(id=id, content=f"message {id}", role=Role.USER, timestamp=timestamp)


def _sample(name: str) -> float:
    return CUSTOM_REGISTRY.get_sample_value(name) or 0.0


@pytest.mark.asyncio
async def test_send_appends_user_then_single_assistant_message(chat_handler, make_controller):
    """Test a successful send adds the user turn first and one full reply after the stream."""
    requests = []
    controller = make_controller(
        chat_handler('0:{"content":"Hel', 'lo"}\n0:{"content":" world"}\n', requests=requests)
    )
    snapshots = []
    controller.subscribe(snapshots.append)

    result = await controller.send_message("hi")

    assert isinstance(result, Ok)
    assert result.value.role == Role.ASSISTANT
    assert result.value.content == "Hello world"

    first = snapshots[0]
    assert [m.role for m in first.messages] == [Role.USER]
    assert first.is_loading and first.is_typing
    assert first.status == SessionStatus.SENDING

    final = controller.snapshot()
    assert [(m.role, m.content) for m in final.messages] == [(Role.USER, "hi"), (Role.ASSISTANT, "Hello world")]
    assert not final.is_loading and not final.is_typing
    assert final.error is None
    assert final.status == SessionStatus.IDLE
    # No snapshot ever holds a partial assistant message.
    for snapshot in snapshots:
        assert all(m.content == "Hello world" for m in snapshot.messages if m.role == Role.ASSISTANT)

    assert len(requests) == 1
    assert json.loads(requests[0].content) == {"messages": [{"role": "user", "content": "hi"}]}


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_blank_submit_changes_nothing(text, chat_handler, make_controller):
    requests = []
    controller = make_controller(chat_handler('0:{"content":"x"}\n', requests=requests))
    snapshots = []
    controller.subscribe(snapshots.append)
    before = controller.snapshot()

    result = await controller.submit(text)

    assert result == Err(ErrorKind.VALIDATION, "Message is empty")
    assert controller.snapshot() == before
    assert snapshots == []
    assert requests == []


@pytest.mark.asyncio
async def test_empty_reply_adds_no_assistant_message(chat_handler, make_controller):
    controller = make_controller(chat_handler('d:{"finishReason":"stop"}\n'))

    result = await controller.send_message("hi")

    assert result == Ok(None)
    assert [m.role for m in controller.snapshot().messages] == [Role.USER]
    assert controller.snapshot().error is None


@pytest.mark.asyncio
async def test_service_error_keeps_user_message_and_resets_flags(make_controller):
    """Test a non-success status surfaces an error without rolling back the user turn."""

    def handler(request):
        return httpx.Response(500, json={"error": "model overloaded"})

    controller = make_controller(handler)
    failures = _sample("chat_send_failures_total")

    result = await controller.send_message("hi")

    assert isinstance(result, Err)
    assert result.kind == ErrorKind.SERVICE
    snapshot = controller.snapshot()
    assert [(m.role, m.content) for m in snapshot.messages] == [(Role.USER, "hi")]
    assert snapshot.error == "Failed to send message (HTTP 500): model overloaded"
    assert not snapshot.is_loading and not snapshot.is_typing
    assert snapshot.status == SessionStatus.ERROR
    assert _sample("chat_send_failures_total") == failures + 1


@pytest.mark.asyncio
async def test_network_error_surfaces_as_session_error(make_controller):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    controller = make_controller(handler)

    result = await controller.send_message("hi")

    assert result.kind == ErrorKind.NETWORK
    assert "connection refused" in controller.snapshot().error
    assert len(controller.snapshot().messages) == 1


@pytest.mark.asyncio
async def test_error_persists_until_dismissed_or_next_operation(chat_handler, make_controller):
    calls = []

    async def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(502)
        return await chat_handler('0:{"content":"ok"}\n')(request)

    controller = make_controller(handler)
    await controller.send_message("first")
    assert controller.snapshot().error is not None

    snapshots = []
    controller.subscribe(snapshots.append)
    controller.dismiss_error()
    assert controller.snapshot().error is None
    assert controller.status == SessionStatus.IDLE
    assert len(snapshots) == 1
    controller.dismiss_error()
    assert len(snapshots) == 1

    result = await controller.send_message("second")
    assert result.value.content == "ok"


@pytest.mark.asyncio
async def test_malformed_records_are_recovered_and_counted(chat_handler, make_controller):
    controller = make_controller(chat_handler('0:{not json}\n9:{"x":1}\n0:{"content":"fine"}\n'))
    skipped = _sample("chat_stream_records_skipped_total")

    result = await controller.send_message("hi")

    assert result.value.content == "fine"
    assert controller.snapshot().error is None
    assert _sample("chat_stream_records_skipped_total") == skipped + 1


@pytest.mark.asyncio
async def test_include_history_sends_full_transcript(chat_handler, make_controller):
    requests = []
    controller = make_controller(chat_handler('0:{"content":"two"}\n', requests=requests), include_history=True)
    await controller.send_message("one")
    await controller.send_message("again")

    payload = json.loads(requests[-1].content)
    assert payload["messages"] == [
        {"role": "user", "content": "one"},
        {"role": "assistant", "content": "two"},
        {"role": "user", "content": "again"},
    ]


@pytest.mark.asyncio
async def test_live_fragments_reach_callback_only(chat_handler, make_controller):
    fragments = []
    controller = make_controller(
        chat_handler('0:{"content":"a"}\n', '0:{"content":"b"}\n'), on_fragment=fragments.append
    )
    await controller.send_message("hi")
    assert fragments == ["a", "b"]


@pytest.mark.asyncio
async def test_fetch_older_prepends_sorted_page(chat_handler, make_controller, recording_history):
    history = recording_history([[make_message("b", 2), make_message("a", 1)]])
    controller = make_controller(chat_handler('0:{"content":"x"}\n'), history=history)
    await controller.send_message("now")
    head = controller.snapshot().messages[0].id

    result = await controller.request_older_page(limit=5)

    assert [m.id for m in result.value] == ["a", "b"]
    snapshot = controller.snapshot()
    assert [m.id for m in snapshot.messages][:3] == ["a", "b", head]
    assert snapshot.oldest_message_id == "a"
    assert snapshot.has_more_messages
    assert not snapshot.is_loading
    assert history.calls == [(head, 5)]


@pytest.mark.asyncio
async def test_empty_page_exhausts_history_permanently(make_controller, recording_history):
    history = recording_history([[], [make_message("late", 1)]])
    controller = make_controller(lambda request: httpx.Response(200), history=history)

    assert await controller.fetch_older_messages(None, 10) == Ok([])
    assert controller.snapshot().has_more_messages is False

    result = await controller.fetch_older_messages(None, 10)
    assert result.kind == ErrorKind.EXHAUSTED
    assert controller.snapshot().has_more_messages is False
    assert len(history.calls) == 1


@pytest.mark.asyncio
async def test_fetch_older_failure_keeps_has_more(make_controller, recording_history):
    history = recording_history([ServiceError("Failed to fetch older messages (HTTP 503)", 503), [make_message("a", 1)]])
    controller = make_controller(lambda request: httpx.Response(200), history=history)

    result = await controller.fetch_older_messages("x", 10)

    assert result.kind == ErrorKind.SERVICE
    snapshot = controller.snapshot()
    assert snapshot.error == "Failed to fetch older messages (HTTP 503)"
    assert snapshot.has_more_messages
    assert not snapshot.is_loading

    retry = await controller.fetch_older_messages("x", 10)
    assert [m.id for m in retry.value] == ["a"]
    assert controller.snapshot().error is None


@pytest.mark.asyncio
async def test_overlapping_pages_do_not_duplicate(make_controller, recording_history):
    page = [make_message("a", 1), make_message("b", 2)]
    history = recording_history([page, [make_message("z", 0), make_message("a", 1)]])
    controller = make_controller(lambda request: httpx.Response(200), history=history)

    await controller.fetch_older_messages(None, 2)
    result = await controller.fetch_older_messages(None, 3)

    assert [m.id for m in result.value] == ["z"]
    assert [m.id for m in controller.snapshot().messages] == ["z", "a", "b"]


@pytest.mark.asyncio
async def test_request_older_page_needs_loaded_messages(make_controller, recording_history):
    history = recording_history([])
    controller = make_controller(lambda request: httpx.Response(200), history=history)

    result = await controller.request_older_page()

    assert result.kind == ErrorKind.VALIDATION
    assert history.calls == []


@pytest.mark.asyncio
async def test_default_history_is_always_empty(make_controller):
    controller = make_controller(lambda request: httpx.Response(200))
    assert await controller.fetch_older_messages(None, 20) == Ok([])
    assert not controller.snapshot().has_more_messages


@pytest.mark.asyncio
async def test_invalid_page_size_is_rejected(make_controller, recording_history):
    history = recording_history([])
    controller = make_controller(lambda request: httpx.Response(200), history=history)
    assert (await controller.fetch_older_messages(None, 0)).kind == ErrorKind.VALIDATION
    assert history.calls == []


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_send(chat_handler, make_controller):
    controller = make_controller(chat_handler('0:{"content":"ok"}\n'))

    def broken(snapshot):
        raise RuntimeError("render failed")

    seen = []
    controller.subscribe(broken)
    unsubscribe = controller.subscribe(seen.append)

    result = await controller.send_message("hi")
    assert result.value.content == "ok"
    assert seen

    unsubscribe()
    count = len(seen)
    await controller.send_message("again")
    assert len(seen) == count


@pytest.mark.asyncio
async def test_network_error_from_history_source(make_controller, recording_history):
    history = recording_history([NetworkError("Failed to fetch older messages: timed out")])
    controller = make_controller(lambda request: httpx.Response(200), history=history)
    result = await controller.fetch_older_messages(None, 5)
    assert result.kind == ErrorKind.NETWORK
    assert controller.status == SessionStatus.ERROR


@pytest.mark.asyncio
async def test_injected_empty_store_receives_the_session(chat_handler, make_controller):
    """Test a store handed in by the caller is the one the session writes to."""
    store = InMemoryMessageStore()
    controller = make_controller(chat_handler('0:{"content":"hello"}\n'), store=store)

    await controller.send_message("hi")

    assert controller.store is store
    assert [m.content for m in store.messages()] == ["hi", "hello"]


@pytest.mark.asyncio
async def test_submitted_text_is_trimmed(chat_handler, make_controller):
    requests = []
    controller = make_controller(chat_handler('0:{"content":"ok"}\n', requests=requests))

    await controller.submit("  hi there \n")

    assert controller.snapshot().messages[0].content == "hi there"
    assert json.loads(requests[0].content) == {"messages": [{"role": "user", "content": "hi there"}]}


@pytest.mark.asyncio
async def test_invalid_chat_url_surfaces_as_session_error(chat_handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(chat_handler()), base_url="http://test")
    controller = SessionController(ChatServiceClient(http_client, chat_path="/api/chat\x00"))

    result = await controller.send_message("hi")

    assert result.kind == ErrorKind.NETWORK
    snapshot = controller.snapshot()
    assert snapshot.error.startswith("Failed to send message")
    assert not snapshot.is_loading and not snapshot.is_typing
    assert [m.content for m in snapshot.messages] == ["hi"]
