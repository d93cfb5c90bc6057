"""Read-only user directory."""

from __future__ import annotations

from types import MappingProxyType
from typing import AbstractSet, Iterable, List, Mapping, Optional

from app.settings import settings

from .models import User


class Directory:
	"""Snapshot of known users keyed by id.

	The engine only reads it; a refresh swaps in a whole new snapshot.
	"""

	def __init__(self, users: Iterable[User] = ()) -> None:
		self._users: Mapping[str, User] = MappingProxyType({u.id: u for u in users})

	def get(self, user_id: str) -> Optional[User]:
		return self._users.get(user_id)

	def __contains__(self, user_id: object) -> bool:
		return user_id in self._users

	def __len__(self) -> int:
		return len(self._users)

	def as_mapping(self) -> Mapping[str, User]:
		return self._users

	def users(self) -> List[User]:
		return list(self._users.values())

	def search(
		self,
		query: str,
		*,
		exclude_ids: AbstractSet[str] = frozenset(),
		limit: Optional[int] = None,
	) -> List[User]:
		"""Users matching username or display name, in directory order."""
		needle = (query or "").strip().casefold()
		cap = settings.user_picker_limit if limit is None else limit
		matches: List[User] = []
		for user in self._users.values():
			if user.id in exclude_ids:
				continue
			if needle and needle not in user.username.casefold() and needle not in user.display_name.casefold():
				continue
			matches.append(user)
			if len(matches) >= cap:
				break
		return matches
