"""Custom exceptions for the note store."""


class NoteError(Exception):
    """Base exception for note store errors."""
    pass


class NoteValidationError(NoteError, ValueError):
    """Raised when an input is rejected before touching the filesystem."""
    pass


class NoteIOError(NoteError, OSError):
    """Raised when a file or directory cannot be read or written."""
    pass
