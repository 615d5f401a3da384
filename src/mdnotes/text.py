"""Line-ending, escaping, identifier and filename helpers.

Everything here is pure string manipulation; nothing touches the disk.
"""

from __future__ import annotations

import re

# Characters that are illegal in filenames on at least one platform
_UNSAFE_FILENAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1F]')
_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_DOTS_RE = re.compile(r"\.+$")
_UNSAFE_ID_CHAR_RE = re.compile(r"[^A-Za-z0-9_-]")

#: Folder name that means "no folder" (the root of the save directory)
INBOX_FOLDER = "inbox"
#: Fallback file stem when a title slugifies to nothing
UNTITLED_SLUG = "untitled"
SLUG_MAX_LENGTH = 80


def to_crlf(text: str) -> str:
    """Normalise every line ending in *text* to ``\\r\\n``."""
    return normalize_newlines(text).replace("\n", "\r\n")


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n")


def to_posix(path: str) -> str:
    return path.replace("\\", "/")


def sanitize_note_id(note_id: str) -> str:
    """Keep ASCII letters, digits, ``_`` and ``-``; may return ``""``."""
    return _UNSAFE_ID_CHAR_RE.sub("", note_id)


def sanitize_folder_path(folder_path: str | None) -> str:
    """Return a ``/``-joined folder path, or ``""`` for the root.

    Both slash styles split segments; each segment is sanitised like a
    note id and empty segments are dropped.  ``inbox`` is an alias for the
    root.
    """
    if not folder_path:
        return ""
    segments = (sanitize_note_id(s) for s in to_posix(folder_path).split("/"))
    normalized = "/".join(s for s in segments if s)
    if normalized == INBOX_FOLDER:
        return ""
    return normalized


def slugify_title(title: str) -> str:
    """Turn a note title into a filesystem-safe file stem.

    >>> slugify_title(" multiple   spaces ")
    'multiple-spaces'
    >>> slugify_title("a/b:c")
    'abc'
    """
    slug = _UNSAFE_FILENAME_RE.sub("", title.strip())
    slug = _WHITESPACE_RE.sub("-", slug)
    slug = _TRAILING_DOTS_RE.sub("", slug)
    slug = slug[:SLUG_MAX_LENGTH]
    return slug or UNTITLED_SLUG


def escape_html(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )
