"""Markdown note persistence and rendering library."""

from mdnotes.config import ConfigManager, default_auto_save_dir
from mdnotes.db import NoteDB
from mdnotes.errors import NoteError, NoteIOError, NoteValidationError
from mdnotes.index import NoteIndex, generate_note_id
from mdnotes.note import AutoSavePayload, AutoSaveResult, IndexEntry, LoadedNote
from mdnotes.parser import derive_title, markdown_to_html, markdown_to_plain_text
from mdnotes.store import NoteStore

__all__ = [
    "AutoSavePayload",
    "AutoSaveResult",
    "ConfigManager",
    "IndexEntry",
    "LoadedNote",
    "NoteDB",
    "NoteError",
    "NoteIOError",
    "NoteIndex",
    "NoteStore",
    "NoteValidationError",
    "default_auto_save_dir",
    "derive_title",
    "generate_note_id",
    "markdown_to_html",
    "markdown_to_plain_text",
]
