"""NoteIndex: persistent note-id -> file mapping for one save root.

The index is a single JSON document stored in the save root itself::

    {
      "entries": {
        "note-3f2a9c01b7de": {"relativePath": "work/plan.md", "createdAt": 1718000000000},
        "todo": {"relativePath": "todo.md", "createdAt": 1718000000000, "manualTitle": "Todo"}
      }
    }

It is advisory: :meth:`NoteIndex.reconcile` re-synchronises it with the
files actually on disk, so files added, renamed or deleted by other tools
show up (or disappear) on the next load without user action.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path

from mdnotes.errors import NoteIOError
from mdnotes.note import IndexEntry
from mdnotes.text import to_posix

logger = logging.getLogger(__name__)

#: Reserved filename of the index document; never treated as a note
INDEX_FILENAME = ".hwan-note-index.json"
#: Reserved directory holding deleted notes; never scanned
TRASH_DIRNAME = ".trash"
NOTE_SUFFIX = ".md"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def now_millis() -> int:
    return int(time.time() * 1000)


def to_millis(seconds: float) -> int:
    return int(seconds * 1000)


def generate_note_id(relative_path: str) -> str:
    """Deterministic id for a file discovered without one."""
    digest = hashlib.sha1(relative_path.encode("utf-8")).hexdigest()
    return f"note-{digest[:12]}"


def relative_posix(root: Path, path: Path) -> str:
    try:
        return to_posix(str(path.relative_to(root)))
    except ValueError:
        return to_posix(str(path))


def is_markdown(path: Path) -> bool:
    return path.suffix.lower() == NOTE_SUFFIX


def walk_markdown_files(root: Path) -> list[Path]:
    """Every ``.md`` file under *root*, at any depth.

    Unreadable directories are skipped.  The index file and the trash
    directory directly under *root* are excluded.
    """
    files: list[Path] = []
    root = Path(root)
    stack = [root]
    while stack:
        directory = stack.pop()
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError:
            continue
        for entry in entries:
            if entry.name == INDEX_FILENAME:
                continue
            if entry.name == TRASH_DIRNAME and directory == root:
                continue
            path = Path(entry.path)
            if entry.is_dir():
                stack.append(path)
            elif entry.is_file() and is_markdown(path):
                files.append(path)
    return files


def _created_millis(path: Path) -> int:
    st = path.stat()
    birth = getattr(st, "st_birthtime", None)
    if birth:
        return to_millis(birth)
    if st.st_mtime:
        return to_millis(st.st_mtime)
    return now_millis()


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------


class NoteIndex:
    """The entry mapping of one save root, plus load/persist/reconcile."""

    def __init__(self, root: Path, entries: dict[str, IndexEntry] | None = None) -> None:
        self.root = Path(root)
        self.entries: dict[str, IndexEntry] = entries if entries is not None else {}

    @property
    def path(self) -> Path:
        return self.root / INDEX_FILENAME

    # ------------------------------------------------------------------
    # Load / persist
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, root: Path) -> "NoteIndex":
        """Read the index of *root*; missing or malformed means empty."""
        index = cls(root)
        try:
            raw = json.loads(index.path.read_text(encoding="utf-8"))
            index.entries = {
                str(note_id): IndexEntry.from_dict(entry)
                for note_id, entry in raw["entries"].items()
            }
        except FileNotFoundError:
            pass
        except (OSError, ValueError, KeyError, TypeError, AttributeError, OverflowError):
            logger.warning("Ignoring unreadable index %s", index.path)
            index.entries = {}
        return index

    def persist(self) -> None:
        """Overwrite the index file (temp file + rename)."""
        payload = {"entries": {k: v.to_dict() for k, v in self.entries.items()}}
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=INDEX_FILENAME, dir=str(self.root))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            finally:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
        except OSError as exc:
            raise NoteIOError(f"Could not write index {self.path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Queries / mutation
    # ------------------------------------------------------------------

    def get(self, note_id: str) -> IndexEntry | None:
        return self.entries.get(note_id)

    def upsert(self, note_id: str, entry: IndexEntry) -> None:
        self.entries[note_id] = entry

    def remove(self, note_id: str) -> IndexEntry | None:
        return self.entries.pop(note_id, None)

    def absolute_path(self, entry: IndexEntry) -> Path:
        return self.root / entry.relative_path

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self) -> dict[str, Path]:
        """Sync entries with the files under the root.

        Entries whose file is gone are pruned; files without an entry are
        adopted under :func:`generate_note_id`.  The index is persisted when
        anything changed.  Returns the ``relative path -> absolute path``
        map of every note file found.
        """
        by_relative_path = {
            relative_posix(self.root, path): path for path in walk_markdown_files(self.root)
        }
        changed = False

        for note_id in [k for k, e in self.entries.items() if e.relative_path not in by_relative_path]:
            logger.debug("Pruning %s: %s is gone", note_id, self.entries[note_id].relative_path)
            del self.entries[note_id]
            changed = True

        used_paths = {entry.relative_path for entry in self.entries.values()}
        for rel_path, full_path in by_relative_path.items():
            if rel_path in used_paths:
                continue
            note_id = generate_note_id(rel_path)
            if note_id in self.entries:
                continue
            try:
                created_at = _created_millis(full_path)
            except OSError as exc:
                raise NoteIOError(f"Could not stat {full_path}: {exc}") from exc
            logger.debug("Adopting orphan %s as %s", rel_path, note_id)
            self.entries[note_id] = IndexEntry(rel_path, created_at)
            changed = True

        if changed:
            self.persist()
            logger.info("Reconciled index for %s (%d entries)", self.root, len(self.entries))
        return by_relative_path
