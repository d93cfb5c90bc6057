"""Domain models for direct-message conversations."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from .exceptions import InvalidMessage


class Tab(str, Enum):
	"""Thread list tabs."""

	MESSAGES = "messages"
	REQUESTS = "requests"


class AttachmentKind(str, Enum):
	IMAGE = "image"
	AUDIO = "audio"
	FILE = "file"

	@classmethod
	def from_mime(cls, mime_type: str | None) -> "AttachmentKind":
		lowered = (mime_type or "").strip().lower()
		if lowered.startswith("audio/"):
			return cls.AUDIO
		if lowered.startswith("image/"):
			return cls.IMAGE
		return cls.FILE


class ThreadState(str, Enum):
	"""Moderation state of a thread as seen by the current user."""

	ACTIVE = "active"
	REQUEST = "request"
	DELETED = "deleted"
	REPORTED = "reported"


class ReportReason(str, Enum):
	SPAM = "Spam"
	HARASSMENT = "Harassment"
	HATE = "Hate"
	SCAM = "Scam"
	OTHER = "Other"


@dataclass(slots=True, frozen=True)
class ConversationKey:
	"""Canonical, order-independent representation of a 1:1 participant pair."""

	user_a: str
	user_b: str

	@classmethod
	def from_participants(cls, user_one: str, user_two: str) -> "ConversationKey":
		ordered = tuple(sorted((str(user_one), str(user_two))))
		return cls(user_a=ordered[0], user_b=ordered[1])


@dataclass(slots=True, frozen=True)
class User:
	id: str
	username: str
	display_name: str
	avatar_url: str = ""
	last_active_at: Optional[datetime] = None


@dataclass(slots=True, frozen=True)
class Attachment:
	id: str
	kind: AttachmentKind
	name: str
	url: str
	size: Optional[int] = None


@dataclass(slots=True, frozen=True)
class Thread:
	id: str
	participant_ids: Tuple[str, ...]
	updated_at: datetime
	is_request: bool = False

	def other_participant(self, user_id: str) -> Optional[str]:
		for participant in self.participant_ids:
			if participant != user_id:
				return participant
		return None

	@property
	def key(self) -> Optional[ConversationKey]:
		"""Pair key for direct threads; None when the thread is not exactly 1:1."""
		if len(self.participant_ids) != 2:
			return None
		return ConversationKey.from_participants(*self.participant_ids)

	def touched(self, when: datetime) -> "Thread":
		return replace(self, updated_at=when)


@dataclass(slots=True, frozen=True)
class Message:
	id: str
	thread_id: str
	from_user_id: str
	text: str
	created_at: datetime
	attachments: Tuple[Attachment, ...] = ()
	seen_by_user_ids: FrozenSet[str] = field(default_factory=frozenset)

	def __post_init__(self) -> None:
		if not self.text and not self.attachments:
			raise InvalidMessage("empty_message")

	def seen_by(self, user_id: str) -> "Message":
		if user_id in self.seen_by_user_ids:
			return self
		return replace(self, seen_by_user_ids=self.seen_by_user_ids | {user_id})


@dataclass(slots=True, frozen=True)
class Note:
	id: str
	user_id: str
	text: str
	updated_at: datetime
