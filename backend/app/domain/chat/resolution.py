"""Conversation resolution: "message this person" -> thread."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from app.obs import metrics as obs_metrics

from .backend import MessagingBackend
from .directory import Directory
from .exceptions import ConversationBlocked, UserNotFound
from .moderation import ModerationState
from .models import Tab, Thread, User
from .store import ConversationStore

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Resolution:
	thread: Thread
	tab: Tab
	created: bool


class ConversationResolver:
	"""Maps a target user to the single thread shared with them.

	Resolution is serialized so two quick picks of the same person can not
	both miss the lookup and create two threads.
	"""

	def __init__(
		self,
		user_id: str,
		directory: Directory,
		store: ConversationStore,
		moderation: ModerationState,
		backend: MessagingBackend,
	) -> None:
		self._user_id = user_id
		self._directory = directory
		self._store = store
		self._moderation = moderation
		self._backend = backend
		self._lock = asyncio.Lock()

	def use_directory(self, directory: Directory) -> None:
		self._directory = directory

	def find_existing(self, target_user_id: str) -> Optional[Thread]:
		"""Visible thread whose participants are exactly {me, target}; hidden ones are never reused."""
		for thread in self._store.find_by_participants(self._user_id, target_user_id):
			if not self._moderation.is_hidden(thread.id):
				return thread
		return None

	async def pick_user(self, target_user_id: str) -> Optional[Resolution]:
		if target_user_id == self._user_id:
			return None
		if target_user_id not in self._directory:
			raise UserNotFound()
		if self._moderation.is_blocked(target_user_id):
			raise ConversationBlocked()
		async with self._lock:
			existing = self.find_existing(target_user_id)
			if existing is not None:
				tab = Tab.REQUESTS if existing.is_request else Tab.MESSAGES
				return Resolution(thread=existing, tab=tab, created=False)
			created = await self._backend.create_thread(self._user_id, target_user_id)
			await self._store.add_thread(created)
			obs_metrics.inc_thread_created()
			logger.info("thread created", extra={"thread_id": created.id, "peer_id": target_user_id})
			return Resolution(thread=created, tab=Tab.MESSAGES, created=True)

	def candidate_users(self, query: str = "", *, limit: Optional[int] = None) -> List[User]:
		"""Users offered by the "new message" picker: never me, never blocked users."""
		exclude = set(self._moderation.blocked_user_ids) | {self._user_id}
		return self._directory.search(query, exclude_ids=exclude, limit=limit)
