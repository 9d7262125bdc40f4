from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone

from .errors import NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255

_COLUMNS = "id, title, body, created_at"


def _now_iso() -> str:
    # microseconds keep back-to-back inserts strictly ordered
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


@contextmanager
def _storage_errors(action: str):
    try:
        yield
    except sqlite3.Error as e:
        raise StorageError(f"Could not {action}") from e


def _row_to_note(row: sqlite3.Row) -> dict:
    return {
        "id": int(row["id"]),
        "title": str(row["title"]),
        "body": str(row["body"] or ""),
        "created_at": str(row["created_at"]),
    }


def validate_title(title: str | None) -> str:
    if title is None or not title.strip():
        raise ValidationError("Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be at most {TITLE_MAX_LENGTH} characters")
    return title


def list_notes(conn: sqlite3.Connection) -> list[dict]:
    with _storage_errors("list notes"):
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM posts ORDER BY created_at DESC, id DESC"
        ).fetchall()
    return [_row_to_note(r) for r in rows]


def search_notes(conn: sqlite3.Connection, query: str) -> list[dict]:
    """Notes whose title or body contains ``query``, ignoring case.

    The query is matched as a literal substring; ``%`` and ``_`` carry no
    wildcard meaning.
    """
    needle = query.casefold()
    with _storage_errors("search notes"):
        rows = conn.execute(
            f"""
            SELECT {_COLUMNS}
            FROM posts
            WHERE instr(casefold(title), ?) > 0 OR instr(casefold(body), ?) > 0
            ORDER BY created_at DESC, id DESC
            """,
            (needle, needle),
        ).fetchall()
    return [_row_to_note(r) for r in rows]


def get_note(conn: sqlite3.Connection, note_id: int) -> dict:
    with _storage_errors("load note"):
        row = conn.execute(f"SELECT {_COLUMNS} FROM posts WHERE id = ?", (note_id,)).fetchone()
    if row is None:
        raise NotFoundError(note_id)
    return _row_to_note(row)


def create_note(conn: sqlite3.Connection, title: str, body: str | None) -> dict:
    title = validate_title(title)
    now = _now_iso()
    with _storage_errors("create note"):
        cur = conn.execute(
            "INSERT INTO posts(title, body, created_at) VALUES (?, ?, ?)",
            (title, body or "", now),
        )
    note_id = int(cur.lastrowid)
    logger.info("Created note id=%s title_len=%s body_len=%s", note_id, len(title), len(body or ""))
    return {"id": note_id, "title": title, "body": body or "", "created_at": now}


def update_note(conn: sqlite3.Connection, note_id: int, title: str, body: str | None) -> None:
    title = validate_title(title)
    with _storage_errors("update note"):
        cur = conn.execute(
            "UPDATE posts SET title = ?, body = ? WHERE id = ?",
            (title, body or "", note_id),
        )
    if cur.rowcount == 0:
        raise NotFoundError(note_id)
    logger.info("Updated note id=%s", note_id)


def delete_note(conn: sqlite3.Connection, note_id: int) -> None:
    with _storage_errors("delete note"):
        cur = conn.execute("DELETE FROM posts WHERE id = ?", (note_id,))
    if cur.rowcount == 0:
        raise NotFoundError(note_id)
    logger.info("Deleted note id=%s", note_id)
