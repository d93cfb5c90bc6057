"""Persistence collaborator contract and the in-process implementation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Collection, Dict, List, Optional, Protocol, Sequence, Tuple

import ulid

from .attachments import is_local_url
from .exceptions import BackendError, ThreadNotFound
from .models import Attachment, Message, Note, ReportReason, Thread, User

Clock = Callable[[], datetime]


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _persist(attachment: Attachment) -> Attachment:
	if not is_local_url(attachment.url):
		return attachment
	return replace(attachment, url=f"memory://attachments/{attachment.id}")


@dataclass(slots=True)
class ConversationSnapshot:
	"""Threads, messages and notes in the current user's scope."""

	threads: List[Thread] = field(default_factory=list)
	messages: List[Message] = field(default_factory=list)
	notes: List[Note] = field(default_factory=list)


class MessagingBackend(Protocol):
	"""Server-side record of conversations, as seen by one signed-in user.

	Every method may suspend on network I/O and raises ``BackendError`` when
	the round-trip fails.
	"""

	async def fetch_directory(self, user_ids: Optional[Collection[str]] = None) -> List[User]:
		"""Users by id, or every user when ``user_ids`` is None."""
		...

	async def fetch_conversations(self, user_id: str) -> ConversationSnapshot:
		...

	async def send_message(
		self,
		user_id: str,
		thread_id: str,
		text: str,
		attachments: Sequence[Attachment],
	) -> Message:
		...

	async def create_thread(self, user_id: str, peer_id: str) -> Thread:
		...

	async def mark_seen(self, user_id: str, message_id: str) -> None:
		...

	async def update_note(self, user_id: str, text: str) -> Note:
		...

	async def accept_request(self, user_id: str, thread_id: str) -> None:
		...

	async def delete_thread(self, user_id: str, thread_id: str) -> None:
		...

	async def report_thread(
		self,
		user_id: str,
		thread_id: str,
		reason: ReportReason,
		details: Optional[str] = None,
	) -> None:
		...

	async def block_user(self, user_id: str, target_id: str) -> None:
		...


@dataclass(slots=True)
class ReportRecord:
	reporter_id: str
	thread_id: str
	reason: ReportReason
	details: Optional[str]
	created_at: datetime


class InMemoryBackend:
	"""Backend used in tests and local development when no server is wired.

	``fail_next`` makes the next call of the named operation raise
	``BackendError``, which lets callers exercise failure paths.
	"""

	def __init__(
		self,
		*,
		users: Sequence[User] = (),
		threads: Sequence[Thread] = (),
		messages: Sequence[Message] = (),
		notes: Sequence[Note] = (),
		clock: Clock = utcnow,
	) -> None:
		self._lock = asyncio.Lock()
		self._clock = clock
		self.users: List[User] = list(users)
		self.threads: List[Thread] = list(threads)
		self.messages: List[Message] = list(messages)
		self.notes: List[Note] = list(notes)
		self.reports: List[ReportRecord] = []
		self.blocks: List[Tuple[str, str]] = []
		self.deleted: List[Tuple[str, str]] = []
		self._failures: Dict[str, int] = {}
		self.calls: List[str] = []

	def fail_next(self, operation: str, times: int = 1) -> None:
		self._failures[operation] = self._failures.get(operation, 0) + times

	def _enter(self, operation: str) -> None:
		self.calls.append(operation)
		remaining = self._failures.get(operation, 0)
		if remaining:
			self._failures[operation] = remaining - 1
			raise BackendError(f"{operation}_failed")

	def _thread_index(self, thread_id: str) -> int:
		for idx, thread in enumerate(self.threads):
			if thread.id == thread_id:
				return idx
		raise ThreadNotFound()

	async def fetch_directory(self, user_ids: Optional[Collection[str]] = None) -> List[User]:
		async with self._lock:
			self._enter("fetch_directory")
			if user_ids is None:
				return list(self.users)
			wanted = set(user_ids)
			return [u for u in self.users if u.id in wanted]

	async def fetch_conversations(self, user_id: str) -> ConversationSnapshot:
		async with self._lock:
			self._enter("fetch_conversations")
			threads = [t for t in self.threads if user_id in t.participant_ids]
			thread_ids = {t.id for t in threads}
			return ConversationSnapshot(
				threads=threads,
				messages=[m for m in self.messages if m.thread_id in thread_ids],
				notes=list(self.notes),
			)

	async def send_message(
		self,
		user_id: str,
		thread_id: str,
		text: str,
		attachments: Sequence[Attachment],
	) -> Message:
		async with self._lock:
			self._enter("send_message")
			idx = self._thread_index(thread_id)
			now = self._clock()
			message = Message(
				id=str(ulid.new()),
				thread_id=thread_id,
				from_user_id=user_id,
				text=text,
				created_at=now,
				attachments=tuple(_persist(a) for a in attachments),
			)
			self.messages.append(message)
			self.threads[idx] = self.threads[idx].touched(now)
			return message

	async def create_thread(self, user_id: str, peer_id: str) -> Thread:
		async with self._lock:
			self._enter("create_thread")
			thread = Thread(
				id=str(ulid.new()),
				participant_ids=(user_id, peer_id),
				updated_at=self._clock(),
				is_request=False,
			)
			self.threads.insert(0, thread)
			return thread

	async def mark_seen(self, user_id: str, message_id: str) -> None:
		async with self._lock:
			self._enter("mark_seen")
			for idx, message in enumerate(self.messages):
				if message.id == message_id:
					self.messages[idx] = message.seen_by(user_id)
					return

	async def update_note(self, user_id: str, text: str) -> Note:
		async with self._lock:
			self._enter("update_note")
			existing = next((n for n in self.notes if n.user_id == user_id), None)
			note = Note(
				id=existing.id if existing else str(ulid.new()),
				user_id=user_id,
				text=text,
				updated_at=self._clock(),
			)
			self.notes = [note] + [n for n in self.notes if n.user_id != user_id]
			return note

	async def accept_request(self, user_id: str, thread_id: str) -> None:
		async with self._lock:
			self._enter("accept_request")
			idx = self._thread_index(thread_id)
			self.threads[idx] = replace(self.threads[idx], is_request=False, updated_at=self._clock())

	async def delete_thread(self, user_id: str, thread_id: str) -> None:
		async with self._lock:
			self._enter("delete_thread")
			self.deleted.append((user_id, thread_id))

	async def report_thread(
		self,
		user_id: str,
		thread_id: str,
		reason: ReportReason,
		details: Optional[str] = None,
	) -> None:
		async with self._lock:
			self._enter("report_thread")
			self.reports.append(
				ReportRecord(
					reporter_id=user_id,
					thread_id=thread_id,
					reason=reason,
					details=details,
					created_at=self._clock(),
				)
			)

	async def block_user(self, user_id: str, target_id: str) -> None:
		async with self._lock:
			self._enter("block_user")
			self.blocks.append((user_id, target_id))
