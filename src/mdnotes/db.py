"""NoteDB — in-memory query layer behind the sidebar.

Loads the notes returned by :meth:`NoteStore.load_all` into DuckDB and
answers folder/search/preview questions as :mod:`polars` DataFrames.

Usage::

    db = NoteDB(store.load_all())

    recent  = db.table_view(folder="work", search="deadline")
    folders = db.folder_rows()        # path / label / depth, incl. "inbox"
    counts  = db.folder_counts()
    text    = db.preview("note-3f2a9c01b7de")
"""

from __future__ import annotations

from typing import Iterable

import duckdb
import polars as pl

from mdnotes.note import LoadedNote
from mdnotes.text import INBOX_FOLDER

#: Preview text for a note with nothing besides its title ("no content")
EMPTY_PREVIEW = "내용 없음"
PREVIEW_LENGTH = 60


def build_folder_rows(folder_paths: Iterable[str]) -> list[dict[str, object]]:
    """Every folder and each of its ancestors, plus the implicit inbox."""
    paths = {INBOX_FOLDER}
    for raw in folder_paths:
        segments = [s for s in raw.strip().replace("\\", "/").split("/") if s]
        for depth in range(1, len(segments) + 1):
            paths.add("/".join(segments[:depth]))
    rows: list[dict[str, object]] = []
    for path in sorted(paths):
        segments = path.split("/")
        rows.append({"path": path, "label": segments[-1], "depth": len(segments) - 1})
    return rows


def build_preview(title: str, plain_text: str) -> str:
    lines = [line.strip() for line in plain_text.splitlines() if line.strip()]
    if not lines:
        return EMPTY_PREVIEW
    if lines[0] == title:
        return " ".join(lines[1:])[:PREVIEW_LENGTH] or EMPTY_PREVIEW
    return " ".join(lines)[:PREVIEW_LENGTH]


class NoteDB:
    """In-memory DuckDB database over loaded notes."""

    def __init__(self, notes: list[LoadedNote]) -> None:
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(":memory:")
        self.refresh(notes)

    # ------------------------------------------------------------------
    # Build / refresh
    # ------------------------------------------------------------------

    def refresh(self, notes: list[LoadedNote]) -> None:
        """(Re-)populate the database from *notes* (call after a reload)."""
        self._create_schema()
        rows = [
            (
                n.note_id,
                n.title,
                n.is_title_manual,
                n.plain_text,
                n.content,
                n.folder_path,
                n.created_at,
                n.updated_at,
                n.file_path,
            )
            for n in notes
        ]
        if rows:
            self.conn.executemany("INSERT OR REPLACE INTO notes VALUES (?,?,?,?,?,?,?,?,?)", rows)

    def _create_schema(self) -> None:
        self.conn.execute("""
            CREATE OR REPLACE TABLE notes (
                note_id         VARCHAR PRIMARY KEY,
                title           VARCHAR,
                is_title_manual BOOLEAN,
                plain_text      TEXT,
                content         TEXT,
                folder_path     VARCHAR,
                created_at      BIGINT,
                updated_at      BIGINT,
                file_path       VARCHAR
            )
        """)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, sql: str) -> pl.DataFrame:
        """Run a raw SQL query and return a Polars DataFrame."""
        return self.conn.execute(sql).pl()

    def table_view(
        self,
        *,
        folder: str | None = None,
        search: str | None = None,
        columns: list[str] | None = None,
        order_by: str = "updated_at DESC",
    ) -> pl.DataFrame:
        """Return notes as a Polars DataFrame, optionally filtered.

        Parameters
        ----------
        folder:
            Only include notes in this folder or below it.  ``""`` means
            root-level notes only.
        search:
            Case-insensitive substring filter on title or plain text.
        columns:
            Which columns to include.  Defaults to
            ``note_id, title, folder_path, updated_at``.
        order_by:
            ORDER BY clause.
        """
        cols = ", ".join(columns) if columns else "note_id, title, folder_path, updated_at"
        where_clauses: list[str] = []
        params: list[object] = []

        if folder is not None:
            if folder:
                where_clauses.append("(folder_path = ? OR starts_with(folder_path, ?))")
                params += [folder, folder + "/"]
            else:
                where_clauses.append("folder_path = ''")
        if search:
            where_clauses.append(
                "(contains(lower(title), lower(?)) OR contains(lower(plain_text), lower(?)))"
            )
            params += [search, search]

        where = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        safe_order = order_by.replace(";", "").replace("'", "")
        sql = f"SELECT {cols} FROM notes {where} ORDER BY {safe_order}"
        return self.conn.execute(sql, params or None).pl()

    def folder_rows(self) -> pl.DataFrame:
        folders = [r[0] for r in self.conn.execute("SELECT DISTINCT folder_path FROM notes").fetchall()]
        return pl.DataFrame(
            build_folder_rows(folders),
            schema={"path": pl.Utf8, "label": pl.Utf8, "depth": pl.Int64},
        )

    def folder_counts(self) -> pl.DataFrame:
        """Return a folder -> note count table (``""`` is the root)."""
        return self.conn.execute(
            """
            SELECT folder_path, COUNT(*) AS note_count
            FROM notes
            GROUP BY folder_path
            ORDER BY folder_path
            """
        ).pl()

    def preview(self, note_id: str) -> str:
        row = self.conn.execute(
            "SELECT title, plain_text FROM notes WHERE note_id = ?", [note_id]
        ).fetchone()
        if row is None:
            raise KeyError(note_id)
        return build_preview(row[0], row[1])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "NoteDB":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
