import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from app.api import messages as messages_api
from app.domain.chat.backend import InMemoryBackend
from app.domain.chat.models import Message, Note, Thread, User
from app.domain.chat.service import MessagesService, ServiceRegistry
from app.main import app
from app.settings import settings

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
	"""Deterministic clock; every call advances one second unless frozen."""

	def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)) -> None:
		self.current = start
		self.step = step

	def __call__(self) -> datetime:
		value = self.current
		self.current = self.current + self.step
		return value

	def advance(self, delta: timedelta) -> None:
		self.current = self.current + delta


def at(minutes: int) -> datetime:
	return BASE_TIME + timedelta(minutes=minutes)


def make_users() -> list[User]:
	return [
		User(id="me", username="me", display_name="Me Myself", last_active_at=at(0)),
		User(id="ana", username="ana", display_name="Ana Lopez", last_active_at=at(-1)),
		User(id="ben", username="benji", display_name="Ben Carter", last_active_at=at(-90)),
		User(id="cy", username="cy", display_name="Cy Young"),
		User(id="dee", username="dee", display_name="Dee Park"),
	]


def make_threads() -> list[Thread]:
	return [
		Thread(id="t-ana", participant_ids=("me", "ana"), updated_at=at(-10)),
		Thread(id="t-ben", participant_ids=("ben", "me"), updated_at=at(-5)),
		Thread(id="t-cy", participant_ids=("cy", "me"), updated_at=at(-2), is_request=True),
	]


def make_messages() -> list[Message]:
	return [
		Message(id="m1", thread_id="t-ana", from_user_id="ana", text="see you at the library", created_at=at(-12)),
		Message(
			id="m2",
			thread_id="t-ana",
			from_user_id="me",
			text="on my way",
			created_at=at(-10),
			seen_by_user_ids=frozenset({"ana"}),
		),
		Message(id="m3", thread_id="t-ben", from_user_id="ben", text="lecture notes?", created_at=at(-5)),
		Message(id="m4", thread_id="t-cy", from_user_id="cy", text="hey, new here", created_at=at(-2)),
	]


def make_notes() -> list[Note]:
	return [
		Note(id="n-ana", user_id="ana", text="studying all day", updated_at=at(-30)),
		Note(id="n-ben", user_id="ben", text="gym", updated_at=at(-3)),
	]


@pytest.fixture
def clock() -> FakeClock:
	return FakeClock()


@pytest.fixture
def backend(clock) -> InMemoryBackend:
	return InMemoryBackend(
		users=make_users(),
		threads=make_threads(),
		messages=make_messages(),
		notes=make_notes(),
		clock=clock,
	)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Keep composition limits at their documented defaults regardless of env."""
	original = (settings.draft_max_files, settings.draft_max_gifs, settings.note_max_length)
	settings.draft_max_files = 12
	settings.draft_max_gifs = 12
	settings.note_max_length = 60
	try:
		yield
	finally:
		settings.draft_max_files, settings.draft_max_gifs, settings.note_max_length = original


@pytest_asyncio.fixture
async def registry(backend, clock):
	registry = ServiceRegistry(backend, clock=clock)
	messages_api.set_registry(registry)
	try:
		yield registry
	finally:
		await registry.close()
		messages_api.set_registry(None)


@pytest_asyncio.fixture
async def api_client(registry):
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


@pytest.fixture
def minutes():
	"""Timestamp ``n`` minutes from the fixture base time."""
	return at


@pytest_asyncio.fixture
async def service(backend, clock):
	engine = MessagesService("me", backend, clock=clock)
	assert await engine.refresh()
	return engine
