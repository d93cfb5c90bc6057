"""Dismissible, non-blocking notices surfaced to the user."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List

import ulid

from .backend import Clock, utcnow


@dataclass(slots=True, frozen=True)
class Notice:
	id: str
	kind: str
	message: str
	created_at: datetime
	thread_id: str | None = None


class NoticeBoard:
	def __init__(self, *, clock: Clock = utcnow, max_notices: int = 20) -> None:
		self._clock = clock
		self._max = max_notices
		self._items: List[Notice] = []

	def post(self, kind: str, message: str, *, thread_id: str | None = None) -> Notice:
		notice = Notice(id=str(ulid.new()), kind=kind, message=message, created_at=self._clock(), thread_id=thread_id)
		self._items.append(notice)
		del self._items[: -self._max]
		return notice

	def dismiss(self, notice_id: str) -> bool:
		before = len(self._items)
		self._items = [n for n in self._items if n.id != notice_id]
		return len(self._items) != before

	def active(self) -> List[Notice]:
		return list(self._items)

	def clear(self) -> None:
		self._items.clear()
