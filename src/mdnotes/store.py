"""NoteStore: auto-save, load and delete notes under one save root.

Auto-save turns an in-memory edit into a uniquely named ``.md`` file:

1. the target name is the slug of the title (``plan.md``, then
   ``plan-2.md``, ``plan-3.md`` ... on collision; the note may always keep
   its own current file);
2. the new file is written before the old one is removed, so a crash
   leaves at worst a duplicate, never nothing;
3. the index is persisted last.

Usage::

    store = NoteStore(Path("~/Documents/HwanNote/Notes").expanduser())
    result = store.auto_save(AutoSavePayload("n1", "Plan", "# Plan\\n- [ ] ship"))
    notes = store.load_all()      # newest first
    store.delete("n1")
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from concurrent.futures import Executor
from pathlib import Path

from mdnotes.errors import NoteIOError, NoteValidationError
from mdnotes.index import (
    TRASH_DIRNAME,
    NoteIndex,
    is_markdown,
    now_millis,
    relative_posix,
    to_millis,
)
from mdnotes.note import (
    MANUAL_TITLE_MAX_LENGTH,
    AutoSavePayload,
    AutoSaveResult,
    ImportedFile,
    IndexEntry,
    LoadedNote,
    clamp_manual_title,
)
from mdnotes.parser import NO_TITLE, derive_title, markdown_to_html, markdown_to_plain_text
from mdnotes.text import sanitize_folder_path, sanitize_note_id, slugify_title, to_crlf

logger = logging.getLogger(__name__)

#: Id used when a caller-supplied id sanitises to nothing
DEFAULT_NOTE_ID = "note"


def _write_text(path: Path, content: str) -> None:
    """Replace *path* with *content* via a temp file, never truncating it first."""
    try:
        data = content.encode("utf-8")
    except UnicodeError as exc:
        raise NoteIOError(f"Could not write {path}: {exc}") from exc
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            if path.exists():
                shutil.copymode(path, tmp_path)
            else:
                os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
    except OSError as exc:
        raise NoteIOError(f"Could not write {path}: {exc}") from exc


def _mkdir(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise NoteIOError(f"Could not create directory {directory}: {exc}") from exc


def _read_text(path: Path) -> str:
    try:
        with path.open("r", encoding="utf-8", newline="") as fh:
            return fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise NoteIOError(f"Could not read {path}: {exc}") from exc


def _mtime_millis(path: Path) -> int:
    try:
        return to_millis(path.stat().st_mtime)
    except OSError as exc:
        raise NoteIOError(f"Could not stat {path}: {exc}") from exc


def _assert_markdown(path: Path) -> None:
    if not is_markdown(path):
        raise NoteValidationError("Only .md files are supported.")


def unique_note_path(target_dir: Path, base_name: str, own_path: Path | None = None) -> Path:
    """First free ``base_name[-N].md`` in *target_dir*.

    *own_path* counts as free: a note may keep the file it already has.
    """
    counter = 1
    while True:
        suffix = "" if counter == 1 else f"-{counter}"
        candidate = target_dir / f"{base_name}{suffix}.md"
        if own_path is not None and candidate == own_path:
            return candidate
        if not candidate.exists():
            return candidate
        counter += 1


class NoteStore:
    """Notes persisted as markdown files under *root*.

    Parameters
    ----------
    root:
        Save directory; created on first use.
    executor:
        Optional executor that moves deleted notes to the trash off the
        calling thread.  Without one the move happens inline.
    """

    def __init__(self, root: Path, executor: Executor | None = None) -> None:
        self.root = Path(root)
        self.executor = executor

    @property
    def trash_dir(self) -> Path:
        return self.root / TRASH_DIRNAME

    # ------------------------------------------------------------------
    # Auto-save
    # ------------------------------------------------------------------

    def auto_save(self, payload: AutoSavePayload) -> AutoSaveResult:
        """Write *payload* to its file and record it in the index."""
        note_id = sanitize_note_id(payload.note_id) or DEFAULT_NOTE_ID
        folder = sanitize_folder_path(payload.folder_path)
        target_dir = self.root / folder if folder else self.root
        _mkdir(target_dir)

        index = NoteIndex.load(self.root)
        existing = index.get(note_id)
        existing_path = index.absolute_path(existing) if existing else None

        base_name = slugify_title(payload.title or derive_title(payload.content))
        next_path = unique_note_path(target_dir, base_name, existing_path)
        logger.debug("Saving %s to %s", note_id, next_path)

        _write_text(next_path, to_crlf(payload.content))

        if existing_path is not None and existing_path != next_path:
            try:
                existing_path.unlink()
            except OSError as exc:
                logger.warning("Could not remove old file %s: %s", existing_path, exc)

        created_at = existing.created_at if existing else now_millis()
        updated_at = _mtime_millis(next_path)

        index.upsert(
            note_id,
            IndexEntry(
                relative_path=relative_posix(self.root, next_path),
                created_at=created_at,
                manual_title=clamp_manual_title(payload.title, payload.is_title_manual),
            ),
        )
        index.persist()

        return AutoSaveResult(str(next_path), note_id, created_at, updated_at)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load_all(self) -> list[LoadedNote]:
        """Reconcile the index and render every note, newest first."""
        _mkdir(self.root)
        index = NoteIndex.load(self.root)
        by_relative_path = index.reconcile()

        notes: list[LoadedNote] = []
        for note_id, entry in index.entries.items():
            file_path = by_relative_path.get(entry.relative_path)
            if file_path is None:
                continue
            note = self._load_note(note_id, entry, file_path)
            if note is not None:
                notes.append(note)

        notes.sort(key=lambda n: n.updated_at, reverse=True)
        return notes

    def _load_note(self, note_id: str, entry: IndexEntry, file_path: Path) -> LoadedNote | None:
        try:
            markdown = _read_text(file_path)
            updated_at = _mtime_millis(file_path)
        except NoteIOError as exc:
            logger.warning("Skipping %s: %s", note_id, exc)
            return None

        title = entry.manual_title.strip() if entry.has_manual_title else derive_title(markdown)
        return LoadedNote(
            note_id=note_id,
            title=title,
            is_title_manual=entry.has_manual_title,
            plain_text=markdown_to_plain_text(markdown),
            content=markdown_to_html(markdown),
            folder_path=entry.folder_path,
            created_at=entry.created_at,
            updated_at=updated_at,
            file_path=str(file_path),
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def remove_from_index(self, note_id: str) -> Path | None:
        """Drop *note_id* from the index; returns the file it pointed to."""
        safe_id = sanitize_note_id(note_id)
        if not safe_id:
            return None
        index = NoteIndex.load(self.root)
        entry = index.remove(safe_id)
        if entry is None:
            return None
        index.persist()
        logger.info("Removed %s from index", safe_id)
        return index.absolute_path(entry)

    def delete(self, note_id: str) -> bool:
        """Remove *note_id* from the index, then move its file to the trash.

        Returns ``False`` when no such note exists.
        """
        file_path = self.remove_from_index(note_id)
        if file_path is None:
            return False
        if self.executor is not None:
            self.executor.submit(self.move_to_trash, file_path)
        else:
            self.move_to_trash(file_path)
        return True

    def move_to_trash(self, file_path: Path) -> Path | None:
        """Best-effort move of *file_path* into the trash directory."""
        try:
            self.trash_dir.mkdir(parents=True, exist_ok=True)
            target = self.trash_dir / file_path.name
            if target.exists():
                target = self.trash_dir / f"{file_path.stem}-{time.time_ns()}{file_path.suffix}"
            shutil.move(str(file_path), str(target))
        except OSError as exc:
            logger.warning("Failed to trash %s: %s", file_path, exc)
            return None
        logger.info("Moved %s to trash", file_path)
        return target


# ---------------------------------------------------------------------------
# Standalone file helpers
# ---------------------------------------------------------------------------


def save_markdown_file(file_path: Path, content: str) -> None:
    """Write *content* as-is to a ``.md`` file, creating parent folders."""
    file_path = Path(file_path)
    _assert_markdown(file_path)
    _mkdir(file_path.parent)
    _write_text(file_path, content)


def read_markdown_file(file_path: Path) -> str:
    file_path = Path(file_path)
    _assert_markdown(file_path)
    return _read_text(file_path)


def list_markdown_files(directory: Path) -> list[str]:
    """``.md`` files directly inside *directory* (not recursive)."""
    try:
        return sorted(str(p) for p in Path(directory).iterdir() if p.is_file() and is_markdown(p))
    except OSError as exc:
        raise NoteIOError(f"Could not list {directory}: {exc}") from exc


def read_text_file(file_path: Path) -> str:
    return _read_text(Path(file_path))


def save_text_file(file_path: Path, content: str) -> None:
    """Write *content* with CRLF line endings, creating parent folders."""
    file_path = Path(file_path)
    _mkdir(file_path.parent)
    _write_text(file_path, to_crlf(content))


def title_from_filename(file_path: Path) -> str:
    title = Path(file_path).stem.strip()[:MANUAL_TITLE_MAX_LENGTH]
    return title or NO_TITLE


def import_text_files(paths: list[Path]) -> list[ImportedFile]:
    """Read each chosen text file into an :class:`ImportedFile`."""
    return [
        ImportedFile(title_from_filename(p), read_text_file(p), str(p))
        for p in map(Path, paths)
    ]
