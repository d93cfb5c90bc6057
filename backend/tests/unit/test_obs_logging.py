import json
import logging

from app.obs import logging as obs_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("campus_messages", logging.INFO, __file__, 1, "chat message sent", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_context_and_redacts_message_text():
    tokens = obs_logging.bind_context(request_id="req-1", route="/messages/threads", user_id="me")
    try:
        line = obs_logging.JSONLogFormatter().format(_record(thread_id="t1", text="hello there", details="rude"))
    finally:
        obs_logging.reset_context(tokens)

    payload = json.loads(line)
    assert payload["msg"] == "chat message sent"
    assert payload["request_id"] == "req-1"
    assert payload["user_id"] == "me"
    assert payload["thread_id"] == "t1"
    assert payload["text"] == "[redacted]"
    assert payload["details"] == "[redacted]"
    assert obs_logging.current_request_id() == "unknown"


def test_long_values_are_truncated():
    value = obs_logging.sanitize_field("reason", "x" * 400)
    assert len(value) == 257
    assert obs_logging.sanitize_field("ids", list(range(20)))[-1] == "…"
