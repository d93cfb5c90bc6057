from datetime import datetime, timedelta, timezone

from app.domain.chat.models import Message
from app.domain.chat.unread import is_unread, latest_message, thread_messages

T0 = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)


def _msg(mid: str, sender: str, minute: int, *, thread: str = "t1", seen=()) -> Message:
    return Message(
        id=mid,
        thread_id=thread,
        from_user_id=sender,
        text=f"text {mid}",
        created_at=T0 + timedelta(minutes=minute),
        seen_by_user_ids=frozenset(seen),
    )


def test_thread_without_messages_is_read():
    assert is_unread([], "t1", "me") is False


def test_latest_from_other_not_seen_is_unread():
    messages = [_msg("a", "me", 0), _msg("b", "ana", 1)]
    assert is_unread(messages, "t1", "me") is True


def test_latest_from_self_is_never_unread():
    messages = [_msg("a", "ana", 0), _msg("b", "me", 1)]
    assert is_unread(messages, "t1", "me") is False


def test_seen_latest_is_read():
    messages = [_msg("a", "ana", 0, seen={"me"})]
    assert is_unread(messages, "t1", "me") is False


def test_only_latest_message_matters():
    # An older unseen message does not make the thread unread once a newer one is seen.
    messages = [_msg("a", "ana", 0), _msg("b", "ana", 5, seen={"me"})]
    assert is_unread(messages, "t1", "me") is False

    messages = [_msg("a", "ana", 0, seen={"me"}), _msg("b", "ana", 5)]
    assert is_unread(messages, "t1", "me") is True


def test_latest_ignores_storage_order_and_other_threads():
    messages = [
        _msg("late", "ana", 9),
        _msg("early", "ana", 1),
        _msg("other", "ben", 30, thread="t2"),
    ]
    assert latest_message(messages, "t1").id == "late"
    assert [m.id for m in thread_messages(messages, "t1")] == ["early", "late"]


def test_equal_timestamps_break_ties_by_id():
    messages = [_msg("b", "ana", 3), _msg("a", "ana", 3)]
    assert latest_message(messages, "t1").id == "b"
    assert [m.id for m in thread_messages(messages, "t1")] == ["a", "b"]
