"""Unread derivation: only the newest message of a thread decides read state."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .models import Message


def thread_messages(messages: Iterable[Message], thread_id: str) -> List[Message]:
	"""Messages of one thread in display order (oldest first)."""
	return sorted((m for m in messages if m.thread_id == thread_id), key=lambda m: (m.created_at, m.id))


def latest_message(messages: Iterable[Message], thread_id: str) -> Optional[Message]:
	latest: Optional[Message] = None
	for message in messages:
		if message.thread_id != thread_id:
			continue
		if latest is None or (message.created_at, message.id) > (latest.created_at, latest.id):
			latest = message
	return latest


def is_unread(messages: Iterable[Message], thread_id: str, user_id: str) -> bool:
	last = latest_message(messages, thread_id)
	if last is None or last.from_user_id == user_id:
		return False
	return user_id not in last.seen_by_user_ids
