import asyncio

import pytest

from app.domain.chat.directory import Directory
from app.domain.chat.exceptions import ConversationBlocked, UserNotFound
from app.domain.chat.models import ConversationKey, Tab, Thread
from app.domain.chat.moderation import ModerationState
from app.domain.chat.resolution import ConversationResolver
from app.domain.chat.store import ConversationStore


@pytest.fixture
def moderation():
    return ModerationState()


@pytest.fixture
def store(backend):
    return ConversationStore(backend.threads, backend.messages)


@pytest.fixture
def resolver(backend, store, moderation):
    return ConversationResolver("me", Directory(backend.users), store, moderation, backend)


@pytest.mark.asyncio
async def test_existing_thread_is_reused_regardless_of_participant_order(resolver, backend):
    resolution = await resolver.pick_user("ben")
    assert resolution.thread.id == "t-ben"
    assert resolution.created is False
    assert resolution.tab is Tab.MESSAGES
    assert "create_thread" not in backend.calls


@pytest.mark.asyncio
async def test_request_thread_opens_on_requests_tab(resolver):
    resolution = await resolver.pick_user("cy")
    assert resolution.thread.id == "t-cy"
    assert resolution.tab is Tab.REQUESTS


@pytest.mark.asyncio
async def test_new_thread_is_created_and_prepended(resolver, store, backend):
    resolution = await resolver.pick_user("dee")
    assert resolution.created is True
    assert resolution.tab is Tab.MESSAGES
    assert set(resolution.thread.participant_ids) == {"me", "dee"}
    assert store.threads[0].id == resolution.thread.id
    assert backend.calls.count("create_thread") == 1


@pytest.mark.asyncio
async def test_concurrent_picks_create_a_single_thread(resolver, store, backend):
    first, second = await asyncio.gather(resolver.pick_user("dee"), resolver.pick_user("dee"))
    assert first.thread.id == second.thread.id
    assert backend.calls.count("create_thread") == 1
    assert len(store.find_by_participants("me", "dee")) == 1


@pytest.mark.asyncio
async def test_picking_yourself_does_nothing(resolver, backend):
    assert await resolver.pick_user("me") is None
    assert "create_thread" not in backend.calls


@pytest.mark.asyncio
async def test_unknown_and_blocked_users_are_rejected(resolver, moderation):
    with pytest.raises(UserNotFound):
        await resolver.pick_user("ghost")
    moderation.block("dee")
    with pytest.raises(ConversationBlocked):
        await resolver.pick_user("dee")


@pytest.mark.asyncio
async def test_hidden_thread_is_not_reused(resolver, moderation, backend):
    moderation.delete("t-ana")
    resolution = await resolver.pick_user("ana")
    assert resolution.created is True
    assert resolution.thread.id != "t-ana"


def test_candidate_users_exclude_self_and_blocked(resolver, moderation):
    moderation.block("ben")
    ids = [u.id for u in resolver.candidate_users("")]
    assert "me" not in ids
    assert "ben" not in ids
    assert ids == ["ana", "cy", "dee"]
    assert [u.id for u in resolver.candidate_users("PARK")] == ["dee"]
    assert len(resolver.candidate_users("", limit=1)) == 1


def test_pair_lookup_ignores_order_and_non_direct_threads(store, minutes):
    assert store.get_thread("t-ben").key == ConversationKey.from_participants("me", "ben")
    assert [t.id for t in store.find_by_participants("ben", "me")] == ["t-ben"]
    assert [t.id for t in store.find_by_participants("me", "ben")] == ["t-ben"]

    group = Thread(id="t-group", participant_ids=("me", "ana", "ben"), updated_at=minutes(0))
    assert group.key is None
    assert store.find_by_participants("me", "dee") == []
