"""FastAPI endpoints for direct messages."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status

from app.domain.chat.backend import InMemoryBackend, MessagingBackend
from app.domain.chat.drafts import Draft
from app.domain.chat.models import Tab, User
from app.domain.chat.schemas import (
	ActionResponse,
	CreateConversationRequest,
	DraftOut,
	DraftUpdateRequest,
	GifFavoriteRequest,
	GifOut,
	MessageOut,
	NoteOut,
	NotesResponse,
	NoteUpdateRequest,
	NoticeOut,
	ReportRequest,
	SendResponse,
	ThreadListResponse,
	ThreadSummaryOut,
	ThreadViewOut,
	UserOut,
)
from app.domain.chat.service import MessagesService, ServiceRegistry, ThreadSummary, ThreadView
from app.infra.http_backend import HttpMessagingBackend
from app.settings import settings

router = APIRouter(prefix="/messages", tags=["messages"])

_registry: Optional[ServiceRegistry] = None


def _build_backend() -> MessagingBackend:
	if settings.messages_backend.lower() == "http":
		return HttpMessagingBackend()
	return InMemoryBackend()


def get_registry() -> ServiceRegistry:
	global _registry
	if _registry is None:
		_registry = ServiceRegistry(_build_backend(), auto_refresh=True)
	return _registry


def set_registry(registry: Optional[ServiceRegistry]) -> None:
	global _registry
	_registry = registry


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
	user_id = (x_user_id or "").strip()
	if not user_id:
		raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="missing_user")
	return user_id


async def get_messages_service(
	user_id: str = Depends(get_current_user_id),
	registry: ServiceRegistry = Depends(get_registry),
) -> MessagesService:
	return await registry.get(user_id)


def _user_out(user: Optional[User]) -> Optional[UserOut]:
	return UserOut.from_model(user) if user else None


def _draft_out(draft: Draft) -> DraftOut:
	return DraftOut(text=draft.text, files=[p.name for p in draft.files], gifs=[g.url for g in draft.gifs])


def _summary_out(row: ThreadSummary) -> ThreadSummaryOut:
	return ThreadSummaryOut(
		id=row.thread.id,
		participant_ids=list(row.thread.participant_ids),
		updated_at=row.thread.updated_at,
		is_request=row.thread.is_request,
		other_user=_user_out(row.other_user),
		last_message=MessageOut.from_model(row.last_message) if row.last_message else None,
		unread=row.unread,
		updated_label=row.updated_label,
		activity_label=row.activity_label,
	)


def _view_out(view: ThreadView) -> ThreadViewOut:
	return ThreadViewOut(
		id=view.thread.id,
		state=view.state,
		other_user=_user_out(view.other_user),
		messages=[MessageOut.from_model(m) for m in view.messages],
		pending=[MessageOut.from_model(m) for m in view.pending],
		draft=_draft_out(view.draft),
		unread=view.unread,
	)


@router.get("/threads", response_model=ThreadListResponse)
async def list_threads(
	tab: Optional[Tab] = Query(default=None),
	q: Optional[str] = Query(default=None, max_length=200),
	service: MessagesService = Depends(get_messages_service),
) -> ThreadListResponse:
	if tab is not None:
		service.set_tab(tab)
	if q is not None:
		service.set_query(q)
	service.tick()
	return ThreadListResponse(
		tab=service.tab,
		query=service.query,
		request_count=service.request_count(),
		threads=[_summary_out(row) for row in service.thread_summaries()],
	)


@router.post("/refresh", response_model=ActionResponse)
async def refresh(service: MessagesService = Depends(get_messages_service)) -> ActionResponse:
	return ActionResponse(ok=await service.refresh(strict=True))


@router.get("/threads/{thread_id}", response_model=ThreadViewOut)
async def get_thread(thread_id: str, service: MessagesService = Depends(get_messages_service)) -> ThreadViewOut:
	return _view_out(service.thread_view(thread_id))


@router.post("/threads/{thread_id}/select", response_model=ThreadViewOut)
async def select_thread(thread_id: str, service: MessagesService = Depends(get_messages_service)) -> ThreadViewOut:
	return _view_out(await service.select_thread(thread_id))


@router.patch("/threads/{thread_id}/draft", response_model=DraftOut)
async def update_draft(
	thread_id: str,
	payload: DraftUpdateRequest,
	service: MessagesService = Depends(get_messages_service),
) -> DraftOut:
	if payload.text is not None:
		service.set_draft_text(thread_id, payload.text)
	for index in sorted(payload.remove_file_indexes, reverse=True):
		service.remove_file(thread_id, index)
	for index in sorted(payload.remove_gif_indexes, reverse=True):
		service.remove_gif(thread_id, index)
	for url in payload.add_gifs:
		service.add_gif(thread_id, url)
	return _draft_out(service.get_draft(thread_id))


@router.post("/threads/{thread_id}/send", response_model=SendResponse)
async def send_message(
	thread_id: str,
	response: Response,
	service: MessagesService = Depends(get_messages_service),
) -> SendResponse:
	service.thread_view(thread_id)
	message = await service.send(thread_id)
	if message is not None:
		response.status_code = status.HTTP_201_CREATED
	return SendResponse(
		sent=message is not None,
		message=MessageOut.from_model(message) if message else None,
		draft=_draft_out(Draft() if service.moderation.is_hidden(thread_id) else service.get_draft(thread_id)),
	)


@router.post("/threads/{thread_id}/accept", response_model=ActionResponse)
async def accept_request(thread_id: str, service: MessagesService = Depends(get_messages_service)) -> ActionResponse:
	return ActionResponse(ok=await service.accept_request(thread_id))


@router.post("/threads/{thread_id}/delete", response_model=ActionResponse)
async def delete_thread(thread_id: str, service: MessagesService = Depends(get_messages_service)) -> ActionResponse:
	return ActionResponse(ok=await service.delete_thread(thread_id))


@router.post("/threads/{thread_id}/report", response_model=ActionResponse)
async def report_thread(
	thread_id: str,
	payload: ReportRequest,
	service: MessagesService = Depends(get_messages_service),
) -> ActionResponse:
	return ActionResponse(ok=await service.report_thread(thread_id, payload.reason, payload.details))


@router.post("/users/{user_id}/block", response_model=ActionResponse)
async def block_user(user_id: str, service: MessagesService = Depends(get_messages_service)) -> ActionResponse:
	return ActionResponse(ok=await service.block_user(user_id))


@router.get("/users", response_model=List[UserOut])
async def candidate_users(
	q: str = Query(default="", max_length=200),
	service: MessagesService = Depends(get_messages_service),
) -> List[UserOut]:
	return [UserOut.from_model(u) for u in service.candidate_users(q)]


@router.post("/conversations", response_model=Optional[ThreadViewOut])
async def start_conversation(
	payload: CreateConversationRequest,
	service: MessagesService = Depends(get_messages_service),
) -> Optional[ThreadViewOut]:
	thread = await service.pick_user(payload.user_id)
	if thread is None:
		return None
	return _view_out(service.thread_view(thread.id))


@router.get("/notes", response_model=NotesResponse)
async def list_notes(service: MessagesService = Depends(get_messages_service)) -> NotesResponse:
	mine = service.my_note()
	return NotesResponse(
		mine=NoteOut.from_model(mine) if mine else None,
		notes=[NoteOut.from_model(n) for n in service.notes_bar()],
	)


@router.put("/notes/me", response_model=NoteOut)
async def update_note(
	payload: NoteUpdateRequest,
	service: MessagesService = Depends(get_messages_service),
) -> NoteOut:
	return NoteOut.from_model(await service.update_note(payload.text))


@router.get("/gifs", response_model=List[GifOut])
async def list_gifs(
	q: Optional[str] = Query(default=None, max_length=100),
	service: MessagesService = Depends(get_messages_service),
) -> List[GifOut]:
	favorites = set(service.gifs.favorites)
	return [GifOut(url=g.url, title=g.title, favorite=g.url in favorites) for g in await service.list_gifs(q)]


@router.post("/gifs/favorites", response_model=ActionResponse)
async def toggle_gif_favorite(
	payload: GifFavoriteRequest,
	service: MessagesService = Depends(get_messages_service),
) -> ActionResponse:
	return ActionResponse(ok=service.toggle_favorite_gif(payload.url))


@router.get("/notices", response_model=List[NoticeOut])
async def list_notices(service: MessagesService = Depends(get_messages_service)) -> List[NoticeOut]:
	return [NoticeOut.from_model(n) for n in service.active_notices()]


@router.delete("/notices/{notice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_notice(notice_id: str, service: MessagesService = Depends(get_messages_service)) -> Response:
	if not service.dismiss_notice(notice_id):
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="notice_not_found")
	return Response(status_code=status.HTTP_204_NO_CONTENT)
