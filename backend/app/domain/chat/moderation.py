"""Local moderation state: requests, deletions, reports and blocks."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, FrozenSet, Iterable, List, Optional

from app.obs import metrics as obs_metrics

from .models import ReportReason, Thread, ThreadState

logger = logging.getLogger(__name__)


class ModerationState:
	"""Blocked users and hidden threads for the signed-in user.

	The resolver reads these sets; only this class writes them. Blocking is
	monotonic (there is no unblock) and hiding a thread is terminal.
	"""

	def __init__(
		self,
		*,
		blocked_user_ids: Iterable[str] = (),
		deleted_thread_ids: Iterable[str] = (),
		reported_thread_ids: Iterable[str] = (),
	) -> None:
		self._blocked: set[str] = set(blocked_user_ids)
		self._deleted: set[str] = set(deleted_thread_ids)
		self._reported: set[str] = set(reported_thread_ids)
		self._accepted: set[str] = set()
		self._reports: Dict[str, tuple[ReportReason, Optional[str]]] = {}
		self._version = 0

	@property
	def version(self) -> int:
		return self._version

	@property
	def blocked_user_ids(self) -> FrozenSet[str]:
		return frozenset(self._blocked)

	@property
	def hidden_thread_ids(self) -> FrozenSet[str]:
		return frozenset(self._deleted | self._reported)

	@property
	def accepted_thread_ids(self) -> FrozenSet[str]:
		return frozenset(self._accepted)

	def is_blocked(self, user_id: str) -> bool:
		return user_id in self._blocked

	def is_hidden(self, thread_id: str) -> bool:
		return thread_id in self._deleted or thread_id in self._reported

	def report_for(self, thread_id: str) -> Optional[tuple[ReportReason, Optional[str]]]:
		return self._reports.get(thread_id)

	def state_of(self, thread: Thread) -> ThreadState:
		if thread.id in self._reported:
			return ThreadState.REPORTED
		if thread.id in self._deleted:
			return ThreadState.DELETED
		if thread.is_request:
			return ThreadState.REQUEST
		return ThreadState.ACTIVE

	def accept(self, thread: Thread) -> bool:
		"""Request -> Active. Any other starting state is a no-op."""
		if self.state_of(thread) is not ThreadState.REQUEST:
			return False
		self._accepted.add(thread.id)
		self._version += 1
		obs_metrics.inc_moderation("accept")
		return True

	def delete(self, thread_id: str) -> bool:
		if self.is_hidden(thread_id):
			return False
		self._deleted.add(thread_id)
		self._accepted.discard(thread_id)
		self._version += 1
		obs_metrics.inc_moderation("delete")
		return True

	def report(self, thread_id: str, reason: ReportReason, details: Optional[str] = None) -> bool:
		if thread_id in self._reported:
			return False
		self._reported.add(thread_id)
		self._accepted.discard(thread_id)
		self._reports[thread_id] = (reason, details)
		self._version += 1
		obs_metrics.inc_moderation("report")
		logger.info("thread reported", extra={"thread_id": thread_id, "reason": reason.value})
		return True

	def block(self, user_id: str) -> bool:
		if user_id in self._blocked:
			return False
		self._blocked.add(user_id)
		self._version += 1
		obs_metrics.inc_moderation("block")
		return True

	def overlay(self, threads: Iterable[Thread]) -> List[Thread]:
		"""Re-apply locally accepted requests on top of freshly fetched threads."""
		result: List[Thread] = []
		for thread in threads:
			if thread.is_request and thread.id in self._accepted:
				thread = replace(thread, is_request=False)
			result.append(thread)
		return result
