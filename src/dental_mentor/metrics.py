"""Prometheus metrics for the chat service."""

from prometheus_client import CollectorRegistry, Counter

# Registry for isolated metric collection
CUSTOM_REGISTRY = CollectorRegistry()

REQUESTS = Counter("requests_total", "Total requests by endpoint", ["path"], registry=CUSTOM_REGISTRY)
ERRORS = Counter("errors_total", "Total errors by endpoint", ["path"], registry=CUSTOM_REGISTRY)
CHAT_TURNS = Counter("chat_turns_total", "Chat turns started by agent mode", ["mode"], registry=CUSTOM_REGISTRY)
STREAM_ERRORS = Counter("stream_errors_total", "Chat streams aborted with an error", registry=CUSTOM_REGISTRY)
PERSISTENCE_FAILURES = Counter(
    "persistence_failures_total",
    "Storage writes that failed during a chat turn",
    ["operation"],
    registry=CUSTOM_REGISTRY,
)
CITATIONS_APPENDED = Counter(
    "citations_appended_total", "Responses that received a sources block", registry=CUSTOM_REGISTRY
)
