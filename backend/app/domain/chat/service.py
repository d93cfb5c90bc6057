"""Messaging engine facade: one instance per signed-in user."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import ulid

from app.obs import metrics as obs_metrics
from app.settings import settings

from . import notes as notes_mod
from .attachments import LocalFile, PendingFile
from .backend import Clock, MessagingBackend, utcnow
from .directory import Directory
from .drafts import Draft, DraftManager
from .exceptions import BackendError, FetchFailed, SendFailed, ThreadNotFound
from .gifs import GifItem, GifPicker, GifProvider
from .moderation import ModerationState
from .models import Attachment, Message, Note, ReportReason, Tab, Thread, ThreadState, User
from .notices import Notice, NoticeBoard
from .pipeline import SendPipeline
from .resolution import ConversationResolver
from .resolver import ThreadListCache, request_count
from .store import ConversationStore
from .timefmt import activity_text, format_ago
from .unread import is_unread, latest_message, thread_messages

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ThreadSummary:
	"""One row of the thread list."""

	thread: Thread
	other_user: Optional[User]
	last_message: Optional[Message]
	unread: bool
	updated_label: str
	activity_label: str


@dataclass(slots=True)
class ThreadView:
	"""The open conversation: history, in-flight sends and the draft."""

	thread: Thread
	state: ThreadState
	other_user: Optional[User]
	messages: List[Message]
	pending: List[Message]
	draft: Draft
	unread: bool


class MessagesService:
	"""Ties directory, store, drafts, moderation and sending together.

	``user_id`` is fixed for the lifetime of the instance and passed down to
	every component; there is no ambient current-user state.
	"""

	def __init__(
		self,
		user_id: str,
		backend: MessagingBackend,
		*,
		clock: Clock = utcnow,
		gif_provider: Optional[GifProvider] = None,
		drafts: Optional[DraftManager] = None,
	) -> None:
		self.user_id = user_id
		self._backend = backend
		self._clock = clock
		self.directory = Directory()
		self._directory_version = 0
		self.store = ConversationStore()
		self.drafts = drafts or DraftManager()
		self.moderation = ModerationState()
		self.notices = NoticeBoard(clock=clock)
		self.gifs = GifPicker(gif_provider)
		self.pipeline = SendPipeline(
			user_id,
			self.store,
			self.drafts,
			backend,
			clock=clock,
			is_hidden=self.moderation.is_hidden,
		)
		self.resolver = ConversationResolver(user_id, self.directory, self.store, self.moderation, backend)
		self._cache = ThreadListCache()
		self.tab = Tab.MESSAGES
		self.query = ""
		self.selected_thread_id: Optional[str] = None
		self.now: datetime = clock()

	# ------------------------------------------------------------------
	# Refresh
	# ------------------------------------------------------------------
	async def refresh(self, *, strict: bool = False) -> bool:
		"""Re-fetch directory and conversations as a full replacement.

		On failure the last known state, drafts and selection are kept and a
		notice is posted; with ``strict`` the failure is also raised as
		``FetchFailed``.
		"""
		try:
			users = await self._backend.fetch_directory()
			snapshot = await self._backend.fetch_conversations(self.user_id)
		except BackendError as exc:
			obs_metrics.inc_refresh_failure()
			logger.warning("messages refresh failed", extra={"reason": exc.reason})
			self.notices.post("fetch_failed", "Couldn't load your messages. We'll retry shortly.")
			if strict:
				raise FetchFailed(exc.reason) from exc
			return False

		self.directory = Directory(users)
		self._directory_version += 1
		self.resolver.use_directory(self.directory)
		hidden = self.moderation.hidden_thread_ids
		threads = [t for t in self.moderation.overlay(snapshot.threads) if t.id not in hidden]
		messages = [m for m in snapshot.messages if m.thread_id not in hidden]
		await self.store.replace(threads, messages, snapshot.notes)
		if self.selected_thread_id and self.store.get_thread(self.selected_thread_id) is None:
			self.selected_thread_id = None
		self.now = self._clock()
		return True

	def tick(self) -> datetime:
		self.now = self._clock()
		return self.now

	# ------------------------------------------------------------------
	# Thread list
	# ------------------------------------------------------------------
	def set_tab(self, tab: Tab | str) -> Tab:
		self.tab = Tab(tab)
		return self.tab

	def set_query(self, query: str) -> str:
		self.query = query or ""
		return self.query

	def visible_threads(self, tab: Optional[Tab] = None, query: Optional[str] = None) -> List[Thread]:
		tab = Tab(tab) if tab is not None else self.tab
		query = self.query if query is None else query
		key = (
			self.store.version,
			self.moderation.version,
			self._directory_version,
			self.user_id,
			tab.value,
			query.strip().casefold(),
		)
		return self._cache.get_or_resolve(
			key,
			self.store.threads,
			self.store.messages,
			self.directory.as_mapping(),
			self.user_id,
			tab,
			query,
			self.moderation.blocked_user_ids,
			self.moderation.hidden_thread_ids,
		)

	def thread_summaries(self, tab: Optional[Tab] = None, query: Optional[str] = None) -> List[ThreadSummary]:
		messages = self.store.messages
		rows: List[ThreadSummary] = []
		for thread in self.visible_threads(tab, query):
			other = self._other_user(thread)
			rows.append(
				ThreadSummary(
					thread=thread,
					other_user=other,
					last_message=latest_message(messages, thread.id),
					unread=is_unread(messages, thread.id, self.user_id),
					updated_label=format_ago(self.now, thread.updated_at),
					activity_label=activity_text(self.now, other.last_active_at) if other else "",
				)
			)
		return rows

	def request_count(self) -> int:
		return request_count(
			self.store.threads,
			self.user_id,
			self.moderation.blocked_user_ids,
			self.moderation.hidden_thread_ids,
		)

	def is_unread(self, thread_id: str, user_id: Optional[str] = None) -> bool:
		return is_unread(self.store.messages, thread_id, user_id or self.user_id)

	def _other_user(self, thread: Thread) -> Optional[User]:
		other_id = thread.other_participant(self.user_id)
		return self.directory.get(other_id) if other_id else None

	def _require_visible(self, thread_id: str) -> Thread:
		thread = self.store.require_thread(thread_id)
		if self.moderation.is_hidden(thread_id):
			raise ThreadNotFound()
		return thread

	# ------------------------------------------------------------------
	# Open conversation
	# ------------------------------------------------------------------
	async def select_thread(self, thread_id: str) -> ThreadView:
		"""Open a thread and mark its newest incoming message as seen."""
		self._require_visible(thread_id)
		self.selected_thread_id = thread_id
		last = latest_message(self.store.messages, thread_id)
		if last is not None and last.from_user_id != self.user_id and self.user_id not in last.seen_by_user_ids:
			await self.store.mark_seen(last.id, self.user_id)
			obs_metrics.inc_chat_read()
			try:
				await self._backend.mark_seen(self.user_id, last.id)
			except BackendError as exc:
				logger.info("read receipt not delivered", extra={"thread_id": thread_id, "reason": exc.reason})
		return self.thread_view(thread_id)

	def thread_view(self, thread_id: str) -> ThreadView:
		thread = self._require_visible(thread_id)
		messages = self.store.messages
		return ThreadView(
			thread=thread,
			state=self.moderation.state_of(thread),
			other_user=self._other_user(thread),
			messages=thread_messages(messages, thread_id),
			pending=self.pipeline.pending(thread_id),
			draft=self.drafts.get_draft(thread_id),
			unread=is_unread(messages, thread_id, self.user_id),
		)

	# ------------------------------------------------------------------
	# Drafts
	# ------------------------------------------------------------------
	def get_draft(self, thread_id: str) -> Draft:
		self._require_visible(thread_id)
		return self.drafts.get_draft(thread_id)

	def set_draft_text(self, thread_id: str, text: str) -> Draft:
		self._require_visible(thread_id)
		return self.drafts.set_text(thread_id, text)

	def add_files(self, thread_id: str, files: Iterable[LocalFile]) -> List[PendingFile]:
		self._require_visible(thread_id)
		return self.drafts.add_files(thread_id, files)

	def add_gif(self, thread_id: str, url: str) -> Optional[Attachment]:
		self._require_visible(thread_id)
		return self.drafts.add_gif(thread_id, url)

	def remove_file(self, thread_id: str, index: int) -> Optional[PendingFile]:
		self._require_visible(thread_id)
		return self.drafts.remove_file(thread_id, index)

	def remove_gif(self, thread_id: str, index: int) -> Optional[Attachment]:
		self._require_visible(thread_id)
		return self.drafts.remove_gif(thread_id, index)

	def clear_draft(self, thread_id: str) -> None:
		self._require_visible(thread_id)
		self.drafts.clear_draft(thread_id)

	# ------------------------------------------------------------------
	# Sending
	# ------------------------------------------------------------------
	async def send(self, thread_id: Optional[str] = None) -> Optional[Message]:
		target = thread_id or self.selected_thread_id
		if target is None or self.moderation.is_hidden(target):
			return None
		try:
			return await self.pipeline.send(target)
		except SendFailed:
			self.notices.post("send_failed", "Message not sent. Your draft was kept.", thread_id=target)
			return None

	# ------------------------------------------------------------------
	# Conversation resolution
	# ------------------------------------------------------------------
	async def pick_user(self, target_user_id: str) -> Optional[Thread]:
		try:
			resolution = await self.resolver.pick_user(target_user_id)
		except BackendError as exc:
			logger.warning("thread creation failed", extra={"reason": exc.reason})
			self.notices.post("create_failed", "Couldn't start that conversation.")
			return None
		if resolution is None:
			return None
		self.selected_thread_id = resolution.thread.id
		self.tab = resolution.tab
		return resolution.thread

	def candidate_users(self, query: str = "") -> List[User]:
		return self.resolver.candidate_users(query)

	# ------------------------------------------------------------------
	# Moderation
	# ------------------------------------------------------------------
	async def _sync(self, action: str, call, *, thread_id: Optional[str] = None) -> None:
		"""Confirm an already-applied local transition with the backend."""
		try:
			await call
		except (BackendError, ThreadNotFound) as exc:
			obs_metrics.inc_moderation_sync_failure(action)
			logger.warning("moderation sync failed", extra={"action": action, "reason": exc.reason})
			self.notices.post(f"{action}_unconfirmed", "We couldn't confirm that with the server yet.", thread_id=thread_id)

	async def accept_request(self, thread_id: str) -> bool:
		thread = self.store.get_thread(thread_id)
		if thread is None or not self.moderation.accept(thread):
			return False
		await self.store.update_thread(thread_id, is_request=False, updated_at=self._clock())
		self.tab = Tab.MESSAGES
		self.selected_thread_id = thread_id
		await self._sync("accept", self._backend.accept_request(self.user_id, thread_id), thread_id=thread_id)
		return True

	def _hide_locally(self, thread_id: str) -> None:
		self.drafts.discard(thread_id)
		if self.selected_thread_id == thread_id:
			self.selected_thread_id = None

	async def delete_thread(self, thread_id: str) -> bool:
		if not self.moderation.delete(thread_id):
			return False
		await self.store.remove_thread(thread_id)
		self._hide_locally(thread_id)
		await self._sync("delete", self._backend.delete_thread(self.user_id, thread_id), thread_id=thread_id)
		return True

	async def report_thread(
		self,
		thread_id: str,
		reason: ReportReason | str,
		details: Optional[str] = None,
	) -> bool:
		reason = ReportReason(reason)
		details = (details or "").strip() or None
		if not self.moderation.report(thread_id, reason, details):
			return False
		await self.store.discard_messages(thread_id)
		self._hide_locally(thread_id)
		await self._sync(
			"report",
			self._backend.report_thread(self.user_id, thread_id, reason, details),
			thread_id=thread_id,
		)
		return True

	async def block_user(self, target_user_id: str) -> bool:
		if target_user_id == self.user_id or not self.moderation.block(target_user_id):
			return False
		if self.selected_thread_id:
			selected = self.store.get_thread(self.selected_thread_id)
			if selected is not None and target_user_id in selected.participant_ids:
				self.selected_thread_id = None
		await self._sync("block", self._backend.block_user(self.user_id, target_user_id))
		return True

	# ------------------------------------------------------------------
	# Notes
	# ------------------------------------------------------------------
	async def update_note(self, text: str) -> Note:
		clamped = notes_mod.clamp_note_text(text)
		existing = self.store.note_for(self.user_id)
		local = Note(
			id=existing.id if existing else str(ulid.new()),
			user_id=self.user_id,
			text=clamped,
			updated_at=self._clock(),
		)
		await self.store.upsert_note(local)
		obs_metrics.inc_note_updated()
		try:
			canonical = await self._backend.update_note(self.user_id, clamped)
		except BackendError as exc:
			logger.warning("note update failed", extra={"reason": exc.reason})
			self.notices.post("note_unconfirmed", "Your note was saved here but not on the server yet.")
			return local
		return await self.store.upsert_note(canonical)

	def my_note(self) -> Optional[Note]:
		return self.store.note_for(self.user_id)

	def notes_bar(self) -> List[Note]:
		return notes_mod.notes_bar(
			self.store.notes,
			self.user_id,
			blocked_user_ids=self.moderation.blocked_user_ids,
		)

	# ------------------------------------------------------------------
	# GIFs
	# ------------------------------------------------------------------
	async def list_gifs(self, query: Optional[str] = None) -> List[GifItem]:
		return await self.gifs.list_gifs(query)

	def toggle_favorite_gif(self, url: str) -> bool:
		return self.gifs.toggle_favorite(url)

	# ------------------------------------------------------------------
	# Notices
	# ------------------------------------------------------------------
	def active_notices(self) -> List[Notice]:
		return self.notices.active()

	def dismiss_notice(self, notice_id: str) -> bool:
		return self.notices.dismiss(notice_id)


class RefreshLoop:
	"""Periodically refreshes a service so relative labels and inbox stay current."""

	def __init__(self, service: MessagesService, *, interval_seconds: Optional[float] = None) -> None:
		self._service = service
		self._interval = settings.refresh_interval_seconds if interval_seconds is None else interval_seconds
		self._task: Optional[asyncio.Task] = None

	@property
	def running(self) -> bool:
		return self._task is not None and not self._task.done()

	def start(self) -> None:
		if self.running or self._interval <= 0:
			return
		self._task = asyncio.create_task(self._run(), name=f"messages-refresh:{self._service.user_id}")

	async def stop(self) -> None:
		task = self._task
		self._task = None
		if task is None:
			return
		task.cancel()
		with suppress(asyncio.CancelledError):
			await task

	async def _run(self) -> None:
		interval = max(0.05, float(self._interval))
		try:
			while True:
				await asyncio.sleep(interval)
				# Failures are already turned into notices; the next tick retries.
				await self._service.refresh()
		except asyncio.CancelledError:
			raise
		except Exception:  # pragma: no cover
			logger.exception("messages refresh loop failed", extra={"user_id": self._service.user_id})


class ServiceRegistry:
	"""One engine per signed-in user sharing a single backend."""

	def __init__(
		self,
		backend: MessagingBackend,
		*,
		clock: Clock = utcnow,
		auto_refresh: bool = False,
	) -> None:
		self.backend = backend
		self._clock = clock
		self._auto_refresh = auto_refresh
		self._services: Dict[str, MessagesService] = {}
		self._ready: Dict[str, asyncio.Future] = {}
		self._loops: Dict[str, RefreshLoop] = {}
		self._lock = asyncio.Lock()

	async def get(self, user_id: str) -> MessagesService:
		async with self._lock:
			service = self._services.get(user_id)
			if service is None:
				service = MessagesService(user_id, self.backend, clock=self._clock)
				self._services[user_id] = service
				self._ready[user_id] = asyncio.ensure_future(service.refresh())
				if self._auto_refresh:
					loop = self._loops[user_id] = RefreshLoop(service)
					loop.start()
			ready = self._ready[user_id]
		# First load runs outside the registry lock; callers for the same user share it.
		await asyncio.shield(ready)
		return service

	def __len__(self) -> int:
		return len(self._services)

	async def close(self) -> None:
		loops = list(self._loops.values())
		self._loops.clear()
		for loop in loops:
			await loop.stop()
		pending = [f for f in self._ready.values() if not f.done()]
		self._ready.clear()
		for future in pending:
			future.cancel()
			with suppress(asyncio.CancelledError):
				await future
		self._services.clear()
