"""Per-thread composition drafts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from app.settings import settings

from .attachments import LocalFile, LocalReferencePool, PendingFile, gif_attachment
from .models import Attachment

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Draft:
	text: str = ""
	files: Tuple[PendingFile, ...] = ()
	gifs: Tuple[Attachment, ...] = ()

	def is_empty(self) -> bool:
		return not self.text.strip() and not self.files and not self.gifs


EMPTY_DRAFT = Draft()

DraftUpdater = Callable[[Draft], Draft]


class DraftManager:
	"""Sole owner and writer of draft state, keyed by thread id.

	Every local reference acquired for a pending file is released exactly
	once: on removal, on clear/discard, or when the caller that took the
	draft for sending hands it back through ``release_snapshot``.
	"""

	def __init__(
		self,
		pool: Optional[LocalReferencePool] = None,
		*,
		max_files: Optional[int] = None,
		max_gifs: Optional[int] = None,
	) -> None:
		self._pool = pool or LocalReferencePool()
		self._drafts: Dict[str, Draft] = {}
		self.max_files = settings.draft_max_files if max_files is None else max_files
		self.max_gifs = settings.draft_max_gifs if max_gifs is None else max_gifs

	@property
	def pool(self) -> LocalReferencePool:
		return self._pool

	def get_draft(self, thread_id: str) -> Draft:
		draft = self._drafts.get(thread_id)
		if draft is None:
			draft = self._drafts[thread_id] = Draft()
		return draft

	def has_draft(self, thread_id: str) -> bool:
		return thread_id in self._drafts

	def update_draft(self, thread_id: str, updater: DraftUpdater) -> Draft:
		previous = self.get_draft(thread_id)
		updated = updater(previous)
		kept_files = updated.files[: self.max_files]
		dropped = [p for p in updated.files[self.max_files :] if p not in previous.files]
		removed = [p for p in previous.files if p not in kept_files]
		self._pool.release_all(p.ref for p in dropped + removed)
		updated = replace(updated, files=kept_files, gifs=updated.gifs[: self.max_gifs])
		self._drafts[thread_id] = updated
		return updated

	def set_text(self, thread_id: str, text: str) -> Draft:
		return self.update_draft(thread_id, lambda d: replace(d, text=text))

	def add_files(self, thread_id: str, files: Iterable[LocalFile]) -> List[PendingFile]:
		"""Append files up to the cap; files past it are ignored and never referenced."""
		incoming = list(files)
		if not incoming:
			return []
		draft = self.get_draft(thread_id)
		room = max(0, self.max_files - len(draft.files))
		accepted = [PendingFile(file=f, ref=self._pool.acquire(f)) for f in incoming[:room]]
		if len(incoming) > room:
			logger.debug("draft file cap reached", extra={"dropped": len(incoming) - room})
		if accepted:
			self._drafts[thread_id] = replace(draft, files=draft.files + tuple(accepted))
		return accepted

	def add_gif(self, thread_id: str, url: str) -> Optional[Attachment]:
		draft = self.get_draft(thread_id)
		if len(draft.gifs) >= self.max_gifs:
			return None
		attachment = gif_attachment(url)
		self._drafts[thread_id] = replace(draft, gifs=draft.gifs + (attachment,))
		return attachment

	def remove_file(self, thread_id: str, index: int) -> Optional[PendingFile]:
		draft = self.get_draft(thread_id)
		if not 0 <= index < len(draft.files):
			return None
		removed = draft.files[index]
		self._pool.release(removed.ref)
		self._drafts[thread_id] = replace(draft, files=draft.files[:index] + draft.files[index + 1 :])
		return removed

	def remove_gif(self, thread_id: str, index: int) -> Optional[Attachment]:
		draft = self.get_draft(thread_id)
		if not 0 <= index < len(draft.gifs):
			return None
		removed = draft.gifs[index]
		self._drafts[thread_id] = replace(draft, gifs=draft.gifs[:index] + draft.gifs[index + 1 :])
		return removed

	def clear_draft(self, thread_id: str) -> None:
		draft = self._drafts.get(thread_id)
		if draft is not None:
			self._pool.release_all(p.ref for p in draft.files)
		self._drafts[thread_id] = Draft()

	def discard(self, thread_id: str) -> None:
		"""Forget a thread's draft entirely (thread deleted or reported)."""
		draft = self._drafts.pop(thread_id, None)
		if draft is not None:
			self._pool.release_all(p.ref for p in draft.files)

	def take_draft(self, thread_id: str) -> Draft:
		"""Detach the draft for sending; the caller now owns its references."""
		draft = self.get_draft(thread_id)
		self._drafts[thread_id] = Draft()
		return draft

	def restore_draft(self, thread_id: str, snapshot: Draft) -> Draft:
		"""Put a taken draft back after a failed send.

		Content typed while the send was in flight is kept after the
		restored content; caps still apply.
		"""
		current = self.get_draft(thread_id)
		text = snapshot.text
		if current.text:
			text = f"{snapshot.text}\n{current.text}" if snapshot.text else current.text
		merged = Draft(text=text, files=snapshot.files + current.files, gifs=snapshot.gifs + current.gifs)
		# Files already owned by the current draft are not treated as new by the cap logic.
		self._drafts[thread_id] = replace(current, files=current.files + snapshot.files)
		return self.update_draft(thread_id, lambda _: merged)

	def release_snapshot(self, snapshot: Draft) -> int:
		"""Release references of a taken draft whose message is now durable."""
		return self._pool.release_all(p.ref for p in snapshot.files)
