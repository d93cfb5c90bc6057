"""In-process conversation store: threads, messages and notes."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from .exceptions import ThreadNotFound
from .models import ConversationKey, Message, Note, Thread


class ConversationStore:
	"""Mutable source of truth for the signed-in user's conversations.

	Every mutation bumps ``version`` so derived views can be memoized.
	"""

	def __init__(
		self,
		threads: Iterable[Thread] = (),
		messages: Iterable[Message] = (),
		notes: Iterable[Note] = (),
	) -> None:
		self._lock = asyncio.Lock()
		self._threads: List[Thread] = list(threads)
		self._messages: List[Message] = list(messages)
		self._notes: List[Note] = list(notes)
		self._version = 0

	@property
	def version(self) -> int:
		return self._version

	@property
	def threads(self) -> Tuple[Thread, ...]:
		return tuple(self._threads)

	@property
	def messages(self) -> Tuple[Message, ...]:
		return tuple(self._messages)

	@property
	def notes(self) -> Tuple[Note, ...]:
		return tuple(self._notes)

	def get_thread(self, thread_id: str) -> Optional[Thread]:
		for thread in self._threads:
			if thread.id == thread_id:
				return thread
		return None

	def require_thread(self, thread_id: str) -> Thread:
		thread = self.get_thread(thread_id)
		if thread is None:
			raise ThreadNotFound()
		return thread

	def find_by_participants(self, user_one: str, user_two: str) -> List[Thread]:
		key = ConversationKey.from_participants(user_one, user_two)
		return [t for t in self._threads if t.key == key]

	def _bump(self) -> None:
		self._version += 1

	async def replace(
		self,
		threads: Iterable[Thread],
		messages: Iterable[Message],
		notes: Iterable[Note],
	) -> None:
		"""Full, idempotent replacement used by refresh; never a merge."""
		async with self._lock:
			self._threads = list(threads)
			self._messages = list(messages)
			self._notes = list(notes)
			self._bump()

	async def add_thread(self, thread: Thread) -> Thread:
		async with self._lock:
			self._threads.insert(0, thread)
			self._bump()
			return thread

	async def update_thread(self, thread_id: str, **changes: object) -> Thread:
		async with self._lock:
			for idx, thread in enumerate(self._threads):
				if thread.id == thread_id:
					updated = replace(thread, **changes)
					self._threads[idx] = updated
					self._bump()
					return updated
			raise ThreadNotFound()

	async def remove_thread(self, thread_id: str) -> None:
		async with self._lock:
			self._threads = [t for t in self._threads if t.id != thread_id]
			self._messages = [m for m in self._messages if m.thread_id != thread_id]
			self._bump()

	async def discard_messages(self, thread_id: str) -> None:
		async with self._lock:
			self._messages = [m for m in self._messages if m.thread_id != thread_id]
			self._bump()

	async def append_message(self, message: Message, *, touched_at: datetime) -> Message:
		"""Append ``message`` and move its thread's ``updated_at`` to ``touched_at``.

		A message already present (for example fetched by a refresh that raced
		the send) is not appended twice.
		"""
		async with self._lock:
			if any(m.id == message.id for m in self._messages):
				return message
			for idx, thread in enumerate(self._threads):
				if thread.id == message.thread_id:
					self._threads[idx] = thread.touched(touched_at)
					break
			else:
				raise ThreadNotFound()
			self._messages.append(message)
			self._bump()
			return message

	async def mark_seen(self, message_id: str, user_id: str) -> Optional[Message]:
		async with self._lock:
			for idx, message in enumerate(self._messages):
				if message.id == message_id:
					updated = message.seen_by(user_id)
					if updated is not message:
						self._messages[idx] = updated
						self._bump()
					return updated
			return None

	async def upsert_note(self, note: Note) -> Note:
		"""One note per user: the newest write replaces any earlier one."""
		async with self._lock:
			self._notes = [note] + [n for n in self._notes if n.user_id != note.user_id]
			self._bump()
			return note

	def note_for(self, user_id: str) -> Optional[Note]:
		for note in self._notes:
			if note.user_id == user_id:
				return note
		return None
