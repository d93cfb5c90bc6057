"""REST implementation of the messaging backend over httpx."""

from __future__ import annotations

import logging
from typing import Any, Collection, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from app.domain.chat.backend import ConversationSnapshot
from app.domain.chat.exceptions import BackendError, InvalidMessage, ThreadNotFound
from app.domain.chat.models import Attachment, Message, Note, ReportReason, Thread, User
from app.domain.chat.schemas import RemoteMessage, RemoteNote, RemoteThread, RemoteUser
from app.settings import settings

logger = logging.getLogger(__name__)


class HttpMessagingBackend:
	"""Talks to the campus messages API.

	The remote API authenticates the acting user through ``X-User-Id`` (and an
	optional bearer token); timestamps arrive as epoch milliseconds.
	"""

	def __init__(
		self,
		*,
		base_url: Optional[str] = None,
		timeout: Optional[float] = None,
		token: Optional[str] = None,
		http: Optional[httpx.AsyncClient] = None,
	) -> None:
		self._owns_client = http is None
		self.http = http or httpx.AsyncClient(
			base_url=(base_url or settings.messages_api_base_url).rstrip("/"),
			timeout=timeout if timeout is not None else settings.messages_api_timeout_seconds,
		)
		self._token = token if token is not None else settings.messages_api_token

	async def aclose(self) -> None:
		if self._owns_client:
			await self.http.aclose()

	def _headers(self, user_id: Optional[str]) -> Dict[str, str]:
		headers: Dict[str, str] = {"Accept": "application/json"}
		if user_id:
			headers["X-User-Id"] = user_id
		if self._token:
			headers["Authorization"] = f"Bearer {self._token}"
		return headers

	async def _request(
		self,
		method: str,
		path: str,
		*,
		user_id: Optional[str] = None,
		json: Any = None,
		params: Optional[Dict[str, Any]] = None,
	) -> Dict[str, Any]:
		try:
			response = await self.http.request(method, path, json=json, params=params, headers=self._headers(user_id))
		except httpx.HTTPError as exc:
			logger.warning("messages api unreachable", extra={"path": path, "error": exc.__class__.__name__})
			raise BackendError("backend_unreachable") from exc
		if response.status_code == 404 and "/threads/" in path:
			raise ThreadNotFound()
		if response.status_code >= 400:
			logger.warning("messages api error", extra={"path": path, "status": response.status_code})
			raise BackendError(f"http_{response.status_code}")
		if not response.content:
			return {}
		try:
			body = response.json()
		except ValueError as exc:
			raise BackendError("invalid_response") from exc
		return body if isinstance(body, dict) else {}

	@staticmethod
	def _parse(model, payload: Any):
		try:
			return model.model_validate(payload).to_domain()
		except (ValidationError, ValueError, InvalidMessage) as exc:
			raise BackendError("invalid_response") from exc

	async def fetch_directory(self, user_ids: Optional[Collection[str]] = None) -> List[User]:
		params = {"ids": ",".join(sorted(user_ids))} if user_ids is not None else None
		body = await self._request("GET", "/users", params=params)
		return [self._parse(RemoteUser, item) for item in body.get("users") or []]

	async def fetch_conversations(self, user_id: str) -> ConversationSnapshot:
		threads_body = await self._request("GET", "/threads", user_id=user_id)
		threads: List[Thread] = [self._parse(RemoteThread, item) for item in threads_body.get("threads") or []]
		messages: List[Message] = []
		for thread in threads:
			body = await self._request("GET", f"/threads/{thread.id}/messages", user_id=user_id)
			messages.extend(self._parse(RemoteMessage, item) for item in body.get("messages") or [])
		notes_body = await self._request("GET", "/notes", user_id=user_id)
		notes = [self._parse(RemoteNote, item) for item in notes_body.get("notes") or []]
		return ConversationSnapshot(threads=threads, messages=messages, notes=notes)

	async def send_message(
		self,
		user_id: str,
		thread_id: str,
		text: str,
		attachments: Sequence[Attachment],
	) -> Message:
		payload = {
			"threadId": thread_id,
			"text": text,
			"attachments": [
				{"id": a.id, "type": a.kind.value, "name": a.name, "url": a.url, "size": a.size}
				for a in attachments
			],
		}
		body = await self._request("POST", "/send", user_id=user_id, json=payload)
		return self._parse(RemoteMessage, body.get("message"))

	async def create_thread(self, user_id: str, peer_id: str) -> Thread:
		body = await self._request("POST", "/threads", user_id=user_id, json={"userId": peer_id})
		return self._parse(RemoteThread, body.get("thread"))

	async def mark_seen(self, user_id: str, message_id: str) -> None:
		await self._request("POST", f"/messages/{message_id}/seen", user_id=user_id)

	async def update_note(self, user_id: str, text: str) -> Note:
		body = await self._request("PATCH", "/notes", user_id=user_id, json={"text": text})
		return self._parse(RemoteNote, body.get("note"))

	async def accept_request(self, user_id: str, thread_id: str) -> None:
		await self._request("POST", f"/threads/{thread_id}/accept", user_id=user_id)

	async def delete_thread(self, user_id: str, thread_id: str) -> None:
		await self._request("DELETE", f"/threads/{thread_id}", user_id=user_id)

	async def report_thread(
		self,
		user_id: str,
		thread_id: str,
		reason: ReportReason,
		details: Optional[str] = None,
	) -> None:
		payload = {"reason": ReportReason(reason).value, "details": details}
		await self._request("POST", f"/threads/{thread_id}/report", user_id=user_id, json=payload)

	async def block_user(self, user_id: str, target_id: str) -> None:
		await self._request("POST", "/blocks", user_id=user_id, json={"userId": target_id})
