"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNTER = Counter(
	"campus_messages_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"campus_messages_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

CHAT_SEND = Counter(
	"campus_messages_chat_send_total",
	"Chat messages sent",
)

CHAT_SEND_FAILURES = Counter(
	"campus_messages_chat_send_failures_total",
	"Chat sends rejected by the persistence backend",
)

CHAT_READ_UPDATES = Counter(
	"campus_messages_chat_read_updates_total",
	"Chat read receipts",
)

THREADS_CREATED = Counter(
	"campus_messages_threads_created_total",
	"Threads created through conversation resolution",
)

MODERATION_ACTIONS = Counter(
	"campus_messages_moderation_actions_total",
	"Local moderation transitions applied",
	["action"],
)

MODERATION_SYNC_FAILURES = Counter(
	"campus_messages_moderation_sync_failures_total",
	"Moderation transitions the backend did not confirm",
	["action"],
)

NOTES_UPDATED = Counter(
	"campus_messages_notes_updated_total",
	"Status notes written",
)

REFRESH_FAILURES = Counter(
	"campus_messages_refresh_failures_total",
	"Directory/store fetches that failed",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_chat_send() -> None:
	CHAT_SEND.inc()


def inc_chat_send_failure() -> None:
	CHAT_SEND_FAILURES.inc()


def inc_chat_read() -> None:
	CHAT_READ_UPDATES.inc()


def inc_thread_created() -> None:
	THREADS_CREATED.inc()


def inc_moderation(action: str) -> None:
	MODERATION_ACTIONS.labels(action=action).inc()


def inc_moderation_sync_failure(action: str) -> None:
	MODERATION_SYNC_FAILURES.labels(action=action).inc()


def inc_note_updated() -> None:
	NOTES_UPDATED.inc()


def inc_refresh_failure() -> None:
	REFRESH_FAILURES.inc()
