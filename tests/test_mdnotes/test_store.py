"""Unit tests for mdnotes.store."""

import json
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from mdnotes.errors import NoteIOError, NoteValidationError
from mdnotes.index import INDEX_FILENAME, TRASH_DIRNAME, NoteIndex, generate_note_id
from mdnotes.note import AutoSavePayload
from mdnotes.parser import NO_TITLE
from mdnotes.store import (
    NoteStore,
    import_text_files,
    list_markdown_files,
    read_markdown_file,
    save_markdown_file,
    save_text_file,
    title_from_filename,
    unique_note_path,
)


@pytest.fixture()
def store(tmp_path: Path) -> NoteStore:
    return NoteStore(tmp_path / "Notes")


def _save(store: NoteStore, note_id: str, title: str, content: str = "body", **kwargs):
    return store.auto_save(AutoSavePayload(note_id, title, content, **kwargs))


def _md_files(root: Path) -> set[str]:
    return {
        p.relative_to(root).as_posix()
        for p in root.rglob("*.md")
        if TRASH_DIRNAME not in p.relative_to(root).parts
    }


# ---------------------------------------------------------------------------
# unique_note_path
# ---------------------------------------------------------------------------


class TestUniqueNotePath:
    def test_free_name(self, tmp_path: Path):
        assert unique_note_path(tmp_path, "plan") == tmp_path / "plan.md"

    def test_numeric_suffix(self, tmp_path: Path):
        (tmp_path / "plan.md").write_text("")
        (tmp_path / "plan-2.md").write_text("")
        assert unique_note_path(tmp_path, "plan") == tmp_path / "plan-3.md"

    def test_own_path_is_free(self, tmp_path: Path):
        (tmp_path / "plan.md").write_text("")
        (tmp_path / "plan-2.md").write_text("")
        own = tmp_path / "plan-2.md"
        assert unique_note_path(tmp_path, "plan", own) == own


# ---------------------------------------------------------------------------
# auto_save
# ---------------------------------------------------------------------------


class TestAutoSave:
    def test_creates_file_with_crlf(self, store: NoteStore):
        result = _save(store, "n1", "Plan", "line one\nline two")
        path = Path(result.file_path)
        assert path == store.root / "Plan.md"
        assert path.read_bytes() == b"line one\r\nline two"

    def test_result_fields(self, store: NoteStore):
        result = _save(store, "n1", "Plan")
        assert result.note_id == "n1"
        assert result.created_at > 0
        assert result.updated_at > 0

    def test_index_entry_written(self, store: NoteStore):
        _save(store, "n1", "Plan", folder_path="work/2024")
        raw = json.loads((store.root / INDEX_FILENAME).read_text(encoding="utf-8"))
        assert raw["entries"]["n1"]["relativePath"] == "work/2024/Plan.md"
        assert "manualTitle" not in raw["entries"]["n1"]

    def test_id_sanitised_with_fallback(self, store: NoteStore):
        assert _save(store, "a/b c", "x").note_id == "abc"
        assert _save(store, "///", "y").note_id == "note"

    def test_inbox_folder_is_root(self, store: NoteStore):
        result = _save(store, "n1", "Plan", folder_path="inbox")
        assert Path(result.file_path).parent == store.root

    def test_title_derived_from_content_when_empty(self, store: NoteStore):
        result = _save(store, "n1", "", "# Meeting notes\n- [ ] agenda")
        assert Path(result.file_path).name == "Meeting-notes.md"

    def test_empty_title_and_content(self, store: NoteStore):
        result = _save(store, "n1", "", "")
        assert Path(result.file_path).name == f"{NO_TITLE.replace(' ', '-')}.md"

    def test_same_title_different_ids(self, store: NoteStore):
        first = _save(store, "n1", "Title")
        second = _save(store, "n2", "Title")
        assert Path(first.file_path).name == "Title.md"
        assert Path(second.file_path).name == "Title-2.md"

    def test_resave_same_id_keeps_file(self, store: NoteStore):
        _save(store, "n1", "Title")
        _save(store, "n2", "Title")
        again = _save(store, "n2", "Title", "edited")
        assert Path(again.file_path).name == "Title-2.md"
        assert _md_files(store.root) == {"Title.md", "Title-2.md"}

    def test_rename_removes_old_file(self, store: NoteStore):
        _save(store, "n1", "Old")
        result = _save(store, "n1", "New")
        assert Path(result.file_path).name == "New.md"
        assert _md_files(store.root) == {"New.md"}

    def test_move_to_folder(self, store: NoteStore):
        _save(store, "n1", "Plan")
        result = _save(store, "n1", "Plan", folder_path="work")
        assert _md_files(store.root) == {"work/Plan.md"}
        assert NoteIndex.load(store.root).get("n1").relative_path == "work/Plan.md"
        assert Path(result.file_path) == store.root / "work" / "Plan.md"

    def test_created_at_preserved(self, store: NoteStore):
        first = _save(store, "n1", "Plan")
        second = _save(store, "n1", "Renamed", "more")
        assert second.created_at == first.created_at

    def test_manual_title_set_and_cleared(self, store: NoteStore):
        _save(store, "n1", "  " + "M" * 60 + "  ", is_title_manual=True)
        assert NoteIndex.load(store.root).get("n1").manual_title == "M" * 50

        _save(store, "n1", "Other", is_title_manual=False)
        assert NoteIndex.load(store.root).get("n1").manual_title is None

    def test_failed_overwrite_keeps_previous_content(self, store: NoteStore):
        result = _save(store, "n1", "Keep", "original text")
        path = Path(result.file_path)

        with pytest.raises(NoteIOError):
            _save(store, "n1", "Keep", "new \ud800 text")

        assert path.read_bytes() == b"original text"
        assert sorted(p.name for p in store.root.iterdir()) == [INDEX_FILENAME, "Keep.md"]

    def test_overwrite_keeps_file_mode(self, store: NoteStore):
        path = Path(_save(store, "n1", "Keep").file_path)
        path.chmod(0o640)
        _save(store, "n1", "Keep", "edited")
        assert path.stat().st_mode & 0o777 == 0o640

    def test_blank_manual_title_not_stored(self, store: NoteStore):
        _save(store, "n1", "   ", "content", is_title_manual=True)
        assert NoteIndex.load(store.root).get("n1").manual_title is None


# ---------------------------------------------------------------------------
# load_all
# ---------------------------------------------------------------------------


class TestLoadAll:
    def test_empty_root_created(self, store: NoteStore):
        assert store.load_all() == []
        assert store.root.is_dir()

    def test_roundtrip(self, store: NoteStore):
        content = ":::toggle[open] Plan\n- [ ] a\n  - [x] b\n:::"
        saved = _save(store, "n1", "", content, folder_path="work")

        notes = store.load_all()

        assert len(notes) == 1
        note = notes[0]
        assert note.note_id == "n1"
        assert note.title == "Plan"
        assert note.is_title_manual is False
        assert note.folder_path == "work"
        assert note.file_path == saved.file_path
        assert note.created_at == saved.created_at
        assert note.plain_text == "Plan\na\n  b"
        assert note.content.startswith('<details data-type="toggleBlock" open="open"><summary>Plan</summary>')
        assert note.content.count('<ul data-type="taskList">') == 2

    def test_manual_title_overrides(self, store: NoteStore):
        _save(store, "n1", "Chosen", "# Derived", is_title_manual=True)
        note = store.load_all()[0]
        assert note.title == "Chosen"
        assert note.is_title_manual is True

    def test_sorted_newest_first(self, store: NoteStore):
        old = Path(_save(store, "old", "Old").file_path)
        new = Path(_save(store, "new", "New").file_path)
        os.utime(old, (1_000, 1_000))
        os.utime(new, (2_000, 2_000))

        assert [n.note_id for n in store.load_all()] == ["new", "old"]

    def test_external_files_adopted(self, store: NoteStore):
        store.root.mkdir(parents=True)
        (store.root / "sub").mkdir()
        (store.root / "sub" / "ext.md").write_text("Hello\n", encoding="utf-8")

        notes = store.load_all()

        assert [n.note_id for n in notes] == [generate_note_id("sub/ext.md")]
        assert notes[0].title == "Hello"
        assert notes[0].folder_path == "sub"

    def test_undecodable_file_skipped(self, store: NoteStore):
        _save(store, "n1", "Good")
        (store.root / "latin1.md").write_bytes(b"caf\xe9\n")

        notes = store.load_all()

        assert [n.note_id for n in notes] == ["n1"]
        assert generate_note_id("latin1.md") in NoteIndex.load(store.root).entries

    def test_externally_deleted_file_pruned(self, store: NoteStore):
        result = _save(store, "n1", "Gone")
        Path(result.file_path).unlink()
        assert store.load_all() == []
        assert NoteIndex.load(store.root).entries == {}


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    def test_missing_id(self, store: NoteStore):
        _save(store, "n1", "Keep")
        before = (store.root / INDEX_FILENAME).read_text(encoding="utf-8")

        assert store.delete("nope") is False
        assert store.delete("///") is False
        assert (store.root / INDEX_FILENAME).read_text(encoding="utf-8") == before

    def test_delete_moves_to_trash(self, store: NoteStore):
        result = _save(store, "n1", "Bye")

        assert store.delete("n1") is True

        assert not Path(result.file_path).exists()
        assert (store.trash_dir / "Bye.md").exists()
        assert NoteIndex.load(store.root).get("n1") is None
        assert store.load_all() == []

    def test_trash_name_collision(self, store: NoteStore):
        _save(store, "n1", "Bye")
        store.delete("n1")
        _save(store, "n2", "Bye")
        store.delete("n2")
        assert len(list(store.trash_dir.iterdir())) == 2

    def test_already_missing_file_still_removes_entry(self, store: NoteStore):
        result = _save(store, "n1", "Bye")
        Path(result.file_path).unlink()
        assert store.delete("n1") is True
        assert NoteIndex.load(store.root).entries == {}

    def test_executor(self, tmp_path: Path):
        with ThreadPoolExecutor(max_workers=1) as pool:
            store = NoteStore(tmp_path, executor=pool)
            result = _save(store, "n1", "Bye")
            assert store.delete("n1") is True
        assert not Path(result.file_path).exists()
        assert (store.trash_dir / "Bye.md").exists()


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


class TestFileHelpers:
    def test_save_and_read_markdown(self, tmp_path: Path):
        path = tmp_path / "a" / "b.md"
        save_markdown_file(path, "hello\n")
        assert read_markdown_file(path) == "hello\n"

    def test_read_undecodable_markdown(self, tmp_path: Path):
        path = tmp_path / "latin1.md"
        path.write_bytes(b"caf\xe9")
        with pytest.raises(NoteIOError):
            read_markdown_file(path)

    def test_markdown_extension_required(self, tmp_path: Path):
        with pytest.raises(NoteValidationError, match="Only .md"):
            save_markdown_file(tmp_path / "a.txt", "x")
        with pytest.raises(NoteValidationError):
            read_markdown_file(tmp_path / "a.txt")
        assert not (tmp_path / "a.txt").exists()

    def test_list_markdown_files_not_recursive(self, tmp_path: Path):
        (tmp_path / "a.md").write_text("")
        (tmp_path / "b.txt").write_text("")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "c.md").write_text("")
        assert list_markdown_files(tmp_path) == [str(tmp_path / "a.md")]

    def test_save_text_file_crlf(self, tmp_path: Path):
        path = tmp_path / "out" / "a.txt"
        save_text_file(path, "a\nb")
        assert path.read_bytes() == b"a\r\nb"

    def test_title_from_filename(self):
        assert title_from_filename(Path("/x/ Meeting .txt")) == "Meeting"
        assert title_from_filename(Path("/x/" + "y" * 80 + ".txt")) == "y" * 50
        assert title_from_filename(Path("/x/.txt")) == ".txt"
        assert title_from_filename(Path("/x/ .txt")) == NO_TITLE

    def test_import_text_files(self, tmp_path: Path):
        path = tmp_path / "todo.txt"
        path.write_text("buy milk", encoding="utf-8")
        [imported] = import_text_files([path])
        assert imported.title == "todo"
        assert imported.content == "buy milk"
        assert imported.file_path == str(path)
