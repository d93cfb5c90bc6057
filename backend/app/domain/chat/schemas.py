"""Pydantic schemas for the messages API and the remote backend payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .attachments import normalize_attachments
from .models import Attachment, Message, Note, ReportReason, Tab, Thread, ThreadState, User
from .notices import Notice


def parse_timestamp(value: Any) -> Optional[datetime]:
	"""Epoch milliseconds, ISO strings and datetimes all become aware datetimes."""
	if value is None or value == "":
		return None
	if isinstance(value, datetime):
		return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
	if isinstance(value, (int, float)):
		return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
	text = str(value).strip()
	if text.lstrip("-").isdigit():
		return datetime.fromtimestamp(int(text) / 1000.0, tz=timezone.utc)
	parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
	return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


Timestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
OptionalTimestamp = Annotated[Optional[datetime], BeforeValidator(parse_timestamp)]


# ----------------------------------------------------------------------
# Remote payloads (camelCase, epoch milliseconds)
# ----------------------------------------------------------------------
class _RemoteModel(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RemoteUser(_RemoteModel):
	id: str
	username: str = ""
	display_name: str = Field(default="", alias="displayName")
	avatar_url: str = Field(default="", alias="avatarUrl")
	last_active_at: OptionalTimestamp = Field(default=None, alias="lastActiveAt")

	def to_domain(self) -> User:
		return User(
			id=self.id,
			username=self.username,
			display_name=self.display_name or self.username,
			avatar_url=self.avatar_url,
			last_active_at=self.last_active_at,
		)


class RemoteThread(_RemoteModel):
	id: str
	participant_ids: List[str] = Field(alias="participantIds")
	updated_at: Timestamp = Field(alias="updatedAt")
	is_request: bool = Field(default=False, alias="isRequest")

	def to_domain(self) -> Thread:
		return Thread(
			id=self.id,
			participant_ids=tuple(self.participant_ids),
			updated_at=self.updated_at,
			is_request=self.is_request,
		)


class RemoteMessage(_RemoteModel):
	id: str
	thread_id: str = Field(alias="threadId")
	from_user_id: str = Field(alias="fromUserId")
	text: str = ""
	created_at: Timestamp = Field(alias="createdAt")
	attachments: List[dict] = Field(default_factory=list)
	seen_by_user_ids: List[str] = Field(default_factory=list, alias="seenByUserIds")

	def to_domain(self) -> Message:
		return Message(
			id=self.id,
			thread_id=self.thread_id,
			from_user_id=self.from_user_id,
			text=self.text,
			created_at=self.created_at,
			attachments=tuple(normalize_attachments(self.attachments)),
			seen_by_user_ids=frozenset(self.seen_by_user_ids),
		)


class RemoteNote(_RemoteModel):
	id: str
	user_id: str = Field(alias="userId")
	text: str = ""
	updated_at: Timestamp = Field(alias="updatedAt")

	def to_domain(self) -> Note:
		return Note(id=self.id, user_id=self.user_id, text=self.text, updated_at=self.updated_at)


# ----------------------------------------------------------------------
# API responses
# ----------------------------------------------------------------------
class AttachmentOut(BaseModel):
	id: str
	kind: str
	name: str
	url: str
	size: Optional[int] = None

	@classmethod
	def from_model(cls, attachment: Attachment) -> "AttachmentOut":
		return cls(
			id=attachment.id,
			kind=attachment.kind.value,
			name=attachment.name,
			url=attachment.url,
			size=attachment.size,
		)


class UserOut(BaseModel):
	id: str
	username: str
	display_name: str
	avatar_url: str = ""
	last_active_at: Optional[datetime] = None

	@classmethod
	def from_model(cls, user: User) -> "UserOut":
		return cls(
			id=user.id,
			username=user.username,
			display_name=user.display_name,
			avatar_url=user.avatar_url,
			last_active_at=user.last_active_at,
		)


class MessageOut(BaseModel):
	id: str
	thread_id: str
	from_user_id: str
	text: str
	created_at: datetime
	attachments: List[AttachmentOut] = Field(default_factory=list)
	seen_by_user_ids: List[str] = Field(default_factory=list)

	@classmethod
	def from_model(cls, message: Message) -> "MessageOut":
		return cls(
			id=message.id,
			thread_id=message.thread_id,
			from_user_id=message.from_user_id,
			text=message.text,
			created_at=message.created_at,
			attachments=[AttachmentOut.from_model(a) for a in message.attachments],
			seen_by_user_ids=sorted(message.seen_by_user_ids),
		)


class ThreadSummaryOut(BaseModel):
	id: str
	participant_ids: List[str]
	updated_at: datetime
	is_request: bool
	other_user: Optional[UserOut] = None
	last_message: Optional[MessageOut] = None
	unread: bool = False
	updated_label: str = ""
	activity_label: str = ""


class ThreadListResponse(BaseModel):
	tab: Tab
	query: str
	request_count: int
	threads: List[ThreadSummaryOut]


class DraftOut(BaseModel):
	text: str = ""
	files: List[str] = Field(default_factory=list)
	gifs: List[str] = Field(default_factory=list)


class ThreadViewOut(BaseModel):
	id: str
	state: ThreadState
	other_user: Optional[UserOut] = None
	messages: List[MessageOut]
	pending: List[MessageOut] = Field(default_factory=list)
	draft: DraftOut
	unread: bool = False


class NoteOut(BaseModel):
	id: str
	user_id: str
	text: str
	updated_at: datetime

	@classmethod
	def from_model(cls, note: Note) -> "NoteOut":
		return cls(id=note.id, user_id=note.user_id, text=note.text, updated_at=note.updated_at)


class NotesResponse(BaseModel):
	mine: Optional[NoteOut] = None
	notes: List[NoteOut]


class NoticeOut(BaseModel):
	id: str
	kind: str
	message: str
	created_at: datetime
	thread_id: Optional[str] = None

	@classmethod
	def from_model(cls, notice: Notice) -> "NoticeOut":
		return cls(
			id=notice.id,
			kind=notice.kind,
			message=notice.message,
			created_at=notice.created_at,
			thread_id=notice.thread_id,
		)


class SendResponse(BaseModel):
	sent: bool
	message: Optional[MessageOut] = None
	draft: DraftOut


class ActionResponse(BaseModel):
	ok: bool


class GifOut(BaseModel):
	url: str
	title: str
	favorite: bool = False


class GifFavoriteRequest(BaseModel):
	url: str = Field(..., min_length=1)


# ----------------------------------------------------------------------
# API requests
# ----------------------------------------------------------------------
class DraftUpdateRequest(BaseModel):
	text: Optional[str] = Field(default=None, max_length=4000)
	add_gifs: List[str] = Field(default_factory=list)
	remove_gif_indexes: List[int] = Field(default_factory=list)
	remove_file_indexes: List[int] = Field(default_factory=list)


class ReportRequest(BaseModel):
	reason: ReportReason
	details: Optional[str] = Field(default=None, max_length=1000)


class NoteUpdateRequest(BaseModel):
	text: str = Field(default="", max_length=500)


class CreateConversationRequest(BaseModel):
	user_id: str = Field(..., min_length=1)
