"""GIF picker: a fixed catalog plus per-user favorites."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence


@dataclass(slots=True, frozen=True)
class GifItem:
	url: str
	title: str


class GifProvider(Protocol):
	async def search(self, query: Optional[str] = None) -> List[GifItem]:
		...


DEFAULT_GIFS: Sequence[GifItem] = (
	GifItem("https://media.giphy.com/media/26ufdipQqU2lhNA4g/giphy.gif", "wow"),
	GifItem("https://media.giphy.com/media/l0MYt5jPR6QX5pnqM/giphy.gif", "lets go"),
	GifItem("https://media.giphy.com/media/3o7TKtnuHOHHUjR38Y/giphy.gif", "nice"),
	GifItem("https://media.giphy.com/media/5GoVLqeAOo6PK/giphy.gif", "typing"),
	GifItem("https://media.giphy.com/media/xT0GqFhyNd0Wmfo6sM/giphy.gif", "omg"),
	GifItem("https://media.giphy.com/media/111ebonMs90YLu/giphy.gif", "party"),
	GifItem("https://media.giphy.com/media/l0HlQ7LRalQqdWfao/giphy.gif", "hype"),
	GifItem("https://media.giphy.com/media/3o6Zt481isNVuQI1l6/giphy.gif", "yay"),
	GifItem("https://media.giphy.com/media/13HgwGsXF0aiGY/giphy.gif", "nope"),
	GifItem("https://media.giphy.com/media/3o7TKMt1VVNkHV2PaE/giphy.gif", "facepalm"),
	GifItem("https://media.giphy.com/media/3o6ZsWwQGQWbFhJ6xO/giphy.gif", "fire"),
	GifItem("https://media.giphy.com/media/l0HlMG1EX2H38cZeE/giphy.gif", "shocked"),
)


def filter_gifs(items: Iterable[GifItem], query: Optional[str]) -> List[GifItem]:
	needle = (query or "").strip().casefold()
	if not needle:
		return list(items)
	return [g for g in items if needle in g.title.casefold() or needle in g.url.casefold()]


class StaticGifCatalog:
	"""Provider backed by a fixed list; no external GIF service involved."""

	def __init__(self, items: Sequence[GifItem] = DEFAULT_GIFS) -> None:
		self._items = tuple(items)

	async def search(self, query: Optional[str] = None) -> List[GifItem]:
		return filter_gifs(self._items, query)


class GifPicker:
	"""Favorites first (in the order they were starred), then the rest."""

	def __init__(self, provider: Optional[GifProvider] = None, favorites: Iterable[str] = ()) -> None:
		self._provider: GifProvider = provider or StaticGifCatalog()
		self._favorites: List[str] = list(dict.fromkeys(favorites))

	@property
	def favorites(self) -> List[str]:
		return list(self._favorites)

	def toggle_favorite(self, url: str) -> bool:
		"""Returns True when ``url`` is a favorite after the call."""
		if url in self._favorites:
			self._favorites.remove(url)
			return False
		self._favorites.append(url)
		return True

	async def list_gifs(self, query: Optional[str] = None) -> List[GifItem]:
		catalog = await self._provider.search(None)
		by_url = {g.url: g for g in catalog}
		fav_set = set(self._favorites)
		ordered = [by_url[url] for url in self._favorites if url in by_url]
		ordered.extend(g for g in catalog if g.url not in fav_set)
		return filter_gifs(ordered, query)
