"""Thread list visibility and ordering."""

from __future__ import annotations

from collections import defaultdict
from typing import AbstractSet, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from app.settings import settings

from .models import Message, Tab, Thread, User
from .unread import is_unread


def _messages_by_thread(messages: Iterable[Message]) -> Dict[str, List[Message]]:
	grouped: Dict[str, List[Message]] = defaultdict(list)
	for message in messages:
		grouped[message.thread_id].append(message)
	return grouped


def conversation_search_text(
	thread: Thread,
	current_user_id: str,
	users: Mapping[str, User],
	thread_msgs: Sequence[Message],
	*,
	window: Optional[int] = None,
) -> str:
	"""Case-folded haystack: the other participant plus the most recent messages.

	Only the newest ``window`` messages are included; older history is not
	searchable from the thread list.
	"""
	limit = settings.search_recent_messages if window is None else window
	other_id = thread.other_participant(current_user_id)
	other = users.get(other_id) if other_id else None
	who = f"{other.display_name} @{other.username}" if other else ""
	recent = sorted(thread_msgs, key=lambda m: (m.created_at, m.id), reverse=True)[:limit]
	text = " ".join(m.text for m in recent)
	return f"{who} {text}".casefold()


def resolve(
	threads: Sequence[Thread],
	messages: Iterable[Message],
	users: Mapping[str, User],
	current_user_id: str,
	tab: Tab,
	query: str,
	blocked_user_ids: AbstractSet[str],
	hidden_thread_ids: AbstractSet[str],
) -> List[Thread]:
	want_requests = Tab(tab) is Tab.REQUESTS
	needle = (query or "").strip().casefold()
	by_thread = _messages_by_thread(messages)

	visible: List[Thread] = []
	for thread in threads:
		if thread.is_request != want_requests:
			continue
		if thread.id in hidden_thread_ids:
			continue
		other_id = thread.other_participant(current_user_id)
		if other_id is None or other_id in blocked_user_ids:
			continue
		if needle:
			haystack = conversation_search_text(thread, current_user_id, users, by_thread.get(thread.id, ()))
			if needle not in haystack:
				continue
		visible.append(thread)

	unread = {t.id: is_unread(by_thread.get(t.id, ()), t.id, current_user_id) for t in visible}
	# Both passes are stable, so equal keys keep store order.
	visible.sort(key=lambda t: t.updated_at, reverse=True)
	visible.sort(key=lambda t: unread[t.id], reverse=True)
	return visible


def request_count(
	threads: Sequence[Thread],
	current_user_id: str,
	blocked_user_ids: AbstractSet[str],
	hidden_thread_ids: AbstractSet[str],
) -> int:
	count = 0
	for thread in threads:
		if not thread.is_request or thread.id in hidden_thread_ids:
			continue
		other_id = thread.other_participant(current_user_id)
		if other_id is None or other_id in blocked_user_ids:
			continue
		count += 1
	return count


class ThreadListCache:
	"""Memoizes ``resolve`` on (store version, moderation version, filters).

	Purely an optimisation: a miss always recomputes from the inputs.
	"""

	def __init__(self, max_entries: int = 32) -> None:
		self._max_entries = max(1, max_entries)
		self._entries: Dict[Tuple[Hashable, ...], Tuple[Thread, ...]] = {}

	def get_or_resolve(
		self,
		key: Tuple[Hashable, ...],
		threads: Sequence[Thread],
		messages: Iterable[Message],
		users: Mapping[str, User],
		current_user_id: str,
		tab: Tab,
		query: str,
		blocked_user_ids: AbstractSet[str],
		hidden_thread_ids: AbstractSet[str],
	) -> List[Thread]:
		cached = self._entries.get(key)
		if cached is not None:
			return list(cached)
		result = resolve(
			threads,
			messages,
			users,
			current_user_id,
			tab,
			query,
			blocked_user_ids,
			hidden_thread_ids,
		)
		if len(self._entries) >= self._max_entries:
			self._entries.pop(next(iter(self._entries)))
		self._entries[key] = tuple(result)
		return result

	def clear(self) -> None:
		self._entries.clear()

	def __len__(self) -> int:
		return len(self._entries)
