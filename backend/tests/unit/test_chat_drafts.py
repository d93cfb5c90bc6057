from app.domain.chat.attachments import LocalFile, LocalReferencePool, build_attachments, is_local_url
from app.domain.chat.drafts import Draft, DraftManager
from app.domain.chat.models import AttachmentKind


def _files(count: int, mime: str = "image/png") -> list[LocalFile]:
    return [LocalFile(name=f"photo-{i}.png", mime_type=mime, size=100 + i) for i in range(count)]


def test_unknown_thread_has_empty_draft():
    drafts = DraftManager()
    draft = drafts.get_draft("t1")
    assert draft == Draft()
    assert draft.is_empty()


def test_drafts_are_isolated_per_thread():
    drafts = DraftManager()
    drafts.set_text("t1", "hello")
    drafts.add_gif("t1", "https://gifs.example/a.gif")
    assert drafts.get_draft("t2").is_empty()
    assert drafts.get_draft("t1").text == "hello"


def test_whitespace_only_text_counts_as_empty():
    drafts = DraftManager()
    drafts.set_text("t1", "   \n ")
    assert drafts.get_draft("t1").is_empty()


def test_file_cap_keeps_first_twelve_and_never_references_the_rest():
    pool = LocalReferencePool()
    drafts = DraftManager(pool)
    accepted = drafts.add_files("t1", _files(15))
    assert len(accepted) == 12
    assert len(drafts.get_draft("t1").files) == 12
    assert [p.name for p in drafts.get_draft("t1").files][-1] == "photo-11.png"
    assert pool.live_count == 12

    assert drafts.add_files("t1", _files(1)) == []
    assert pool.live_count == 12


def test_gif_cap():
    drafts = DraftManager(max_gifs=2)
    assert drafts.add_gif("t1", "https://g/1.gif") is not None
    assert drafts.add_gif("t1", "https://g/2.gif") is not None
    assert drafts.add_gif("t1", "https://g/3.gif") is None
    gifs = drafts.get_draft("t1").gifs
    assert [g.url for g in gifs] == ["https://g/1.gif", "https://g/2.gif"]
    assert all(g.name == "GIF" and g.kind is AttachmentKind.IMAGE for g in gifs)


def test_remove_file_releases_its_reference():
    pool = LocalReferencePool()
    drafts = DraftManager(pool)
    first, second = drafts.add_files("t1", _files(2))
    removed = drafts.remove_file("t1", 0)
    assert removed is first
    assert first.ref.released is True
    assert second.ref.released is False
    assert pool.live_count == 1
    assert drafts.remove_file("t1", 5) is None


def test_remove_gif_by_index():
    drafts = DraftManager()
    drafts.add_gif("t1", "https://g/1.gif")
    drafts.add_gif("t1", "https://g/2.gif")
    assert drafts.remove_gif("t1", 0).url == "https://g/1.gif"
    assert [g.url for g in drafts.get_draft("t1").gifs] == ["https://g/2.gif"]
    assert drafts.remove_gif("t1", -1) is None


def test_clear_and_discard_release_everything():
    pool = LocalReferencePool()
    drafts = DraftManager(pool)
    drafts.add_files("t1", _files(3))
    drafts.add_files("t2", _files(2))
    drafts.clear_draft("t1")
    assert drafts.get_draft("t1").is_empty()
    assert pool.live_count == 2
    drafts.discard("t2")
    assert drafts.has_draft("t2") is False
    assert pool.live_count == 0


def test_update_draft_applies_caps_and_releases_dropped_files():
    pool = LocalReferencePool()
    drafts = DraftManager(pool, max_files=2)
    pending = drafts.add_files("t1", _files(2))
    updated = drafts.update_draft("t1", lambda d: Draft(text="x", files=d.files[1:], gifs=d.gifs))
    assert updated.text == "x"
    assert [p.name for p in updated.files] == ["photo-1.png"]
    assert pending[0].ref.released is True
    assert pool.live_count == 1


def test_take_and_restore_merges_with_newer_input():
    pool = LocalReferencePool()
    drafts = DraftManager(pool, max_files=3)
    drafts.set_text("t1", "first")
    drafts.add_files("t1", _files(2))
    snapshot = drafts.take_draft("t1")
    assert drafts.get_draft("t1").is_empty()
    assert pool.live_count == 2

    drafts.set_text("t1", "second")
    drafts.add_files("t1", _files(2, mime="audio/webm"))
    restored = drafts.restore_draft("t1", snapshot)

    assert restored.text == "first\nsecond"
    assert len(restored.files) == 3
    assert restored.files[:2] == snapshot.files
    # The overflowing newer file lost its place and its reference.
    assert pool.live_count == 3


def test_release_snapshot_frees_sent_files():
    pool = LocalReferencePool()
    drafts = DraftManager(pool)
    drafts.add_files("t1", _files(2))
    snapshot = drafts.take_draft("t1")
    assert drafts.release_snapshot(snapshot) == 2
    assert drafts.release_snapshot(snapshot) == 0
    assert pool.live_count == 0


def test_build_attachments_orders_files_before_gifs():
    drafts = DraftManager()
    drafts.add_gif("t1", "https://g/1.gif")
    drafts.add_files("t1", _files(1, mime="audio/webm"))
    draft = drafts.get_draft("t1")
    attachments = build_attachments(draft.files, draft.gifs)
    assert [a.kind for a in attachments] == [AttachmentKind.AUDIO, AttachmentKind.IMAGE]
    assert is_local_url(attachments[0].url)
    assert drafts.pool.resolve(attachments[0].url) is draft.files[0].file
