from datetime import datetime, timedelta, timezone

import pytest

from app.domain.chat.gifs import DEFAULT_GIFS, GifItem, GifPicker, StaticGifCatalog
from app.domain.chat.models import Note
from app.domain.chat.notes import clamp_note_text, notes_bar
from app.domain.chat.timefmt import activity_text, format_ago

NOW = datetime(2026, 5, 20, 18, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(seconds=30), "now"),
        (timedelta(minutes=1), "1m"),
        (timedelta(minutes=59), "59m"),
        (timedelta(hours=3, minutes=5), "3h"),
        (timedelta(days=2, hours=1), "2d"),
    ],
)
def test_format_ago(delta, expected):
    assert format_ago(NOW, NOW - delta) == expected


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(minutes=2), "Active now"),
        (timedelta(minutes=3), "Active 3m ago"),
        (timedelta(hours=5), "Active 5h ago"),
        (timedelta(days=3), "Active 3d ago"),
    ],
)
def test_activity_text(delta, expected):
    assert activity_text(NOW, NOW - delta) == expected


def test_activity_text_without_presence():
    assert activity_text(NOW, None) == ""


def test_note_text_is_trimmed_and_capped():
    assert clamp_note_text("   coffee?  ") == "coffee?"
    assert len(clamp_note_text("x" * 80)) == 60
    assert clamp_note_text("abcdef", max_length=3) == "abc"


def test_notes_bar_puts_mine_first_and_hides_blocked():
    notes = [
        Note(id="1", user_id="ana", text="old", updated_at=NOW - timedelta(hours=2)),
        Note(id="2", user_id="ben", text="new", updated_at=NOW - timedelta(minutes=1)),
        Note(id="3", user_id="me", text="mine", updated_at=NOW - timedelta(days=1)),
        Note(id="4", user_id="spam", text="buy now", updated_at=NOW),
    ]
    bar = notes_bar(notes, "me", blocked_user_ids={"spam"})
    assert [n.id for n in bar] == ["3", "2", "1"]


@pytest.mark.asyncio
async def test_gif_picker_lists_favorites_first():
    picker = GifPicker()
    second = DEFAULT_GIFS[1].url
    fifth = DEFAULT_GIFS[4].url
    assert picker.toggle_favorite(fifth) is True
    assert picker.toggle_favorite(second) is True

    items = await picker.list_gifs()
    assert [g.url for g in items[:2]] == [fifth, second]
    assert len(items) == len(DEFAULT_GIFS)

    assert picker.toggle_favorite(fifth) is False
    assert picker.favorites == [second]


@pytest.mark.asyncio
async def test_gif_search_filters_by_title():
    catalog = StaticGifCatalog([GifItem("https://g/a.gif", "Party"), GifItem("https://g/b.gif", "nope")])
    picker = GifPicker(catalog)
    assert [g.title for g in await picker.list_gifs("PART")] == ["Party"]
    assert await catalog.search("zzz") == []
