"""Status notes shown next to avatars."""

from __future__ import annotations

from typing import AbstractSet, Iterable, List, Optional

from app.settings import settings

from .models import Note


def clamp_note_text(text: str, *, max_length: Optional[int] = None) -> str:
	limit = settings.note_max_length if max_length is None else max_length
	return (text or "").strip()[:limit]


def notes_bar(
	notes: Iterable[Note],
	current_user_id: str,
	*,
	blocked_user_ids: AbstractSet[str] = frozenset(),
) -> List[Note]:
	"""The current user's note first, then everyone else's newest first."""
	mine: List[Note] = []
	others: List[Note] = []
	for note in notes:
		if note.user_id == current_user_id:
			mine.append(note)
		elif note.user_id not in blocked_user_ids:
			others.append(note)
	others.sort(key=lambda n: n.updated_at, reverse=True)
	return mine[:1] + others
