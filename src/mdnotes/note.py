"""Core note dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

#: Longest manual title kept in the index
MANUAL_TITLE_MAX_LENGTH = 50


@dataclass
class IndexEntry:
    """Where a note lives, relative to the save root."""

    #: Root-relative path with ``/`` separators
    relative_path: str
    #: Millisecond epoch timestamp, fixed at first creation
    created_at: int
    manual_title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "relativePath": self.relative_path,
            "createdAt": self.created_at,
        }
        if self.manual_title is not None:
            data["manualTitle"] = self.manual_title
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexEntry":
        relative_path = data["relativePath"]
        created_at = data["createdAt"]
        manual_title = data.get("manualTitle")
        if not isinstance(relative_path, str):
            raise TypeError("malformed index entry")
        # createdAt is a non-negative integer; floats (incl. 1e999) are rejected
        if type(created_at) is not int or created_at < 0:
            raise TypeError("malformed index entry")
        if manual_title is not None and not isinstance(manual_title, str):
            raise TypeError("malformed index entry")
        return cls(relative_path, created_at, manual_title)

    @property
    def has_manual_title(self) -> bool:
        return bool(self.manual_title and self.manual_title.strip())

    @property
    def folder_path(self) -> str:
        """Parent folder of :attr:`relative_path`; ``""`` for the root."""
        head, sep, _ = self.relative_path.rpartition("/")
        return head if sep else ""


@dataclass
class AutoSavePayload:
    """An in-memory edit handed to :meth:`NoteStore.auto_save`."""

    note_id: str
    title: str
    content: str
    folder_path: str | None = None
    is_title_manual: bool = False


@dataclass
class AutoSaveResult:
    file_path: str
    note_id: str
    created_at: int
    updated_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "noteId": self.note_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class LoadedNote:
    """A note file projected for display; never persisted."""

    note_id: str
    title: str
    is_title_manual: bool
    plain_text: str
    #: Rendered markup
    content: str
    folder_path: str
    created_at: int
    updated_at: int
    file_path: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "noteId": self.note_id,
            "title": self.title,
            "isTitleManual": self.is_title_manual,
            "plainText": self.plain_text,
            "content": self.content,
            "folderPath": self.folder_path,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "filePath": self.file_path,
        }


@dataclass
class ImportedFile:
    title: str
    content: str
    file_path: str


def clamp_manual_title(title: str, is_manual: bool) -> str | None:
    """Return the title to store as a manual override, or ``None``."""
    trimmed = title.strip()[:MANUAL_TITLE_MAX_LENGTH]
    if is_manual and trimmed:
        return trimmed
    return None
