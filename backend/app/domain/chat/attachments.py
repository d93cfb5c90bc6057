"""Attachment helpers: local file references and attachment construction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

import ulid

from .models import Attachment, AttachmentKind

_LOCAL_SCHEME = "local://"
GIF_NAME = "GIF"


def _ensure_ulid(value: str | None) -> str:
	return value or str(ulid.new())


@dataclass(slots=True, eq=False)
class LocalFile:
	"""Raw file handed to a draft before upload (picked file or voice clip)."""

	name: str
	mime_type: str
	size: Optional[int] = None
	content: object = None


@dataclass(slots=True, eq=False)
class LocalReference:
	"""Revocable handle that makes a local file addressable by URL until released."""

	id: str
	url: str
	file: LocalFile
	released: bool = False


@dataclass(slots=True)
class PendingFile:
	"""A file sitting in a draft together with the reference that exposes it."""

	file: LocalFile
	ref: LocalReference

	@property
	def name(self) -> str:
		return self.file.name


class LocalReferencePool:
	"""Owns every live local reference so none can outlive its draft or message."""

	def __init__(self) -> None:
		self._live: Dict[str, LocalReference] = {}

	def acquire(self, file: LocalFile) -> LocalReference:
		ref_id = str(ulid.new())
		ref = LocalReference(id=ref_id, url=f"{_LOCAL_SCHEME}{ref_id}", file=file)
		self._live[ref_id] = ref
		return ref

	def release(self, ref: LocalReference) -> bool:
		if ref.released:
			return False
		ref.released = True
		self._live.pop(ref.id, None)
		return True

	def release_all(self, refs: Iterable[LocalReference]) -> int:
		return sum(1 for ref in refs if self.release(ref))

	def resolve(self, url: str) -> Optional[LocalFile]:
		if not url.startswith(_LOCAL_SCHEME):
			return None
		ref = self._live.get(url[len(_LOCAL_SCHEME):])
		return ref.file if ref else None

	@property
	def live_count(self) -> int:
		return len(self._live)


def is_local_url(url: str) -> bool:
	return url.startswith(_LOCAL_SCHEME)


def file_attachment(pending: PendingFile) -> Attachment:
	return Attachment(
		id=str(ulid.new()),
		kind=AttachmentKind.from_mime(pending.file.mime_type),
		name=pending.file.name,
		url=pending.ref.url,
		size=pending.file.size,
	)


def gif_attachment(url: str) -> Attachment:
	return Attachment(id=str(ulid.new()), kind=AttachmentKind.IMAGE, name=GIF_NAME, url=url)


def build_attachments(files: Iterable[PendingFile], gifs: Iterable[Attachment]) -> List[Attachment]:
	"""Files first, then GIFs, preserving draft order."""

	return [file_attachment(pending) for pending in files] + list(gifs)


_ALLOWED_KINDS = {kind.value for kind in AttachmentKind}


def normalize_attachments(items: Iterable[Mapping[str, object]] | None) -> List[Attachment]:
	"""Validate and normalise attachment payloads returned by the backend.

	Each attachment may include:
	- id (optional ULID string)
	- type or kind (required, one of image/audio/file)
	- name (optional)
	- url (required)
	- size (optional)
	"""

	normalized: List[Attachment] = []
	if not items:
		return normalized
	for entry in items:
		kind = str(entry.get("type") or entry.get("kind") or "").strip().lower()
		if kind not in _ALLOWED_KINDS:
			raise ValueError("unsupported attachment type")
		url = str(entry.get("url") or "").strip()
		if not url:
			raise ValueError("attachment url required")
		normalized.append(
			Attachment(
				id=_ensure_ulid(str(entry.get("id") or "")),
				kind=AttachmentKind(kind),
				name=str(entry.get("name")) if entry.get("name") else "",
				url=url,
				size=int(entry["size"]) if entry.get("size") is not None else None,
			)
		)
	return normalized
