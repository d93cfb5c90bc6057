"""Domain-level exceptions for direct messaging."""

from __future__ import annotations


class ChatError(Exception):
    """Base class for messaging errors."""

    reason: str = "unknown"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)
        if reason:
            self.reason = reason


class InvalidMessage(ChatError):
    reason = "invalid_message"


class ThreadNotFound(ChatError):
    reason = "thread_not_found"


class UserNotFound(ChatError):
    reason = "user_missing"


class ConversationBlocked(ChatError):
    reason = "blocked"


class BackendError(ChatError):
    """Raised by persistence collaborators when a round-trip fails."""

    reason = "backend_unavailable"


class FetchFailed(ChatError):
    reason = "fetch_failed"


class SendFailed(ChatError):
    reason = "send_failed"
