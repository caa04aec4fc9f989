"""Prometheus counters for session activity."""

from prometheus_client import CollectorRegistry, Counter

# Registry for isolated metric collection
CUSTOM_REGISTRY = CollectorRegistry()

SENDS = Counter("chat_sends_total", "Messages submitted to the chat endpoint", registry=CUSTOM_REGISTRY)
SEND_FAILURES = Counter("chat_send_failures_total", "Sends that ended in an error", registry=CUSTOM_REGISTRY)
PAGES_FETCHED = Counter("chat_history_pages_total", "Older history pages fetched", registry=CUSTOM_REGISTRY)
PAGE_FAILURES = Counter("chat_history_failures_total", "History fetches that ended in an error", registry=CUSTOM_REGISTRY)
RECORDS_SKIPPED = Counter(
    "chat_stream_records_skipped_total", "Streamed records dropped as undecodable", registry=CUSTOM_REGISTRY
)
