"""Send pipeline: turns a thread's draft into a persisted message."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional

import ulid

from app.obs import metrics as obs_metrics

from .attachments import build_attachments
from .backend import Clock, MessagingBackend, utcnow
from .drafts import DraftManager
from .exceptions import ChatError, SendFailed
from .models import Message
from .store import ConversationStore

logger = logging.getLogger(__name__)


class SendPipeline:
	"""Two-phase send.

	The draft is taken (input cleared) when the send is dispatched and held
	as a snapshot. The snapshot's local references are released only once
	the backend returns the canonical message; on failure the snapshot is
	restored into the draft, unless the thread was deleted or reported in the
	meantime, in which case the snapshot is released with it. Sends for one
	thread run one at a time.
	"""

	def __init__(
		self,
		user_id: str,
		store: ConversationStore,
		drafts: DraftManager,
		backend: MessagingBackend,
		*,
		clock: Clock = utcnow,
		is_hidden: Optional[Callable[[str], bool]] = None,
	) -> None:
		self._user_id = user_id
		self._store = store
		self._drafts = drafts
		self._backend = backend
		self._clock = clock
		self._is_hidden = is_hidden or (lambda _thread_id: False)
		self._locks: Dict[str, asyncio.Lock] = {}
		self._pending: Dict[str, List[Message]] = {}

	def pending(self, thread_id: str) -> List[Message]:
		"""Optimistic messages still awaiting backend confirmation."""
		return list(self._pending.get(thread_id, ()))

	def in_flight(self, thread_id: str) -> bool:
		return bool(self._pending.get(thread_id))

	async def send(self, thread_id: str) -> Optional[Message]:
		if self._store.get_thread(thread_id) is None:
			return None
		if self._drafts.get_draft(thread_id).is_empty():
			return None
		lock = self._locks.setdefault(thread_id, asyncio.Lock())
		async with lock:
			snapshot = self._drafts.take_draft(thread_id)
			if snapshot.is_empty():
				return None
			text = snapshot.text.strip()
			attachments = build_attachments(snapshot.files, snapshot.gifs)
			optimistic = Message(
				id=f"pending-{ulid.new()}",
				thread_id=thread_id,
				from_user_id=self._user_id,
				text=text,
				created_at=self._clock(),
				attachments=tuple(attachments),
			)
			queue = self._pending.setdefault(thread_id, [])
			queue.append(optimistic)
			try:
				message = await self._backend.send_message(self._user_id, thread_id, text, attachments)
			except ChatError as exc:
				obs_metrics.inc_chat_send_failure()
				logger.warning("chat send failed", extra={"thread_id": thread_id, "reason": exc.reason})
				if self._discarded(thread_id):
					# Deleted or reported while in flight: the draft goes with the thread.
					self._drafts.release_snapshot(snapshot)
					return None
				self._drafts.restore_draft(thread_id, snapshot)
				raise SendFailed(exc.reason) from exc
			finally:
				queue.remove(optimistic)

			if self._discarded(thread_id):
				logger.info("chat send landed on a removed thread", extra={"thread_id": thread_id})
			else:
				await self._store.append_message(message, touched_at=message.created_at)
			self._drafts.release_snapshot(snapshot)
			obs_metrics.inc_chat_send()
			logger.info(
				"chat message sent",
				extra={"thread_id": thread_id, "attachments": len(message.attachments)},
			)
			return message

	def _discarded(self, thread_id: str) -> bool:
		return self._store.get_thread(thread_id) is None or self._is_hidden(thread_id)
