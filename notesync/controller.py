"""
Client-side state for the notes screen.

The controller never patches its list after a mutation: every successful
create, update or delete is followed by a full reload, so the displayed list
always has the server's ordering and fields.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, Union

from .client import Note
from .errors import ApiError, NetworkError

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255

UNREACHABLE_MESSAGE = "Server unreachable. Check your connection."

ConfirmCallback = Callable[[int], Union[bool, Awaitable[bool]]]


class NotesApi(Protocol):
    async def list_notes(self) -> list[Note]: ...

    async def search_notes(self, query: str) -> list[Note]: ...

    async def create_note(self, title: str, body: str = "") -> Any: ...

    async def update_note(self, note_id: int, title: str, body: str = "") -> Any: ...

    async def delete_note(self, note_id: int) -> Any: ...


class ViewState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    EDITING = "editing"


class NoticeLevel(str, Enum):
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str


@dataclass
class Draft:
    title: str = ""
    body: str = ""
    note_id: int | None = None

    @property
    def is_new(self) -> bool:
        return self.note_id is None


class NotesController:
    """
    Holds the displayed note list and the edit draft.

    List fetches are numbered; only the response to the most recently issued
    fetch is applied, so a slow stale search can never overwrite a newer one.

    Args:
        client: a :class:`~notesync.client.NotesClient` or anything with the same
            async methods.
        confirm: called with a note id before deleting; may return a bool or an
            awaitable bool. Without it, only ``delete(..., confirmed=True)`` deletes.
        on_change: called with the controller after every state change.

    """

    def __init__(
        self,
        client: NotesApi,
        confirm: ConfirmCallback | None = None,
        on_change: Callable[["NotesController"], None] | None = None,
    ) -> None:
        self._client = client
        self._confirm = confirm
        self.on_change = on_change
        self.notes: list[Note] = []
        self.search_text = ""
        self.draft: Draft | None = None
        self._notices: list[Notice] = []
        self._seq = 0
        self._loading = False

    # ---- observable state ----

    @property
    def state(self) -> ViewState:
        if self.draft is not None:
            return ViewState.EDITING
        if self._loading:
            return ViewState.LOADING
        return ViewState.IDLE

    @property
    def notices(self) -> tuple[Notice, ...]:
        return tuple(self._notices)

    def pop_notices(self) -> list[Notice]:
        notices, self._notices = self._notices, []
        return notices

    def find(self, note_id: int) -> Note | None:
        return next((n for n in self.notes if n.id == note_id), None)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _notify(self, level: NoticeLevel, message: str) -> None:
        self._notices.append(Notice(level, message))
        self._changed()

    def _notify_failure(self, error: Exception, message: str) -> None:
        logger.warning("%s: %s", message, error)
        if isinstance(error, NetworkError):
            message = UNREACHABLE_MESSAGE
        self._notify(NoticeLevel.ERROR, message)

    # ---- list mode ----

    async def mount(self) -> bool:
        return await self.reload()

    async def reload(self) -> bool:
        """Fetch the list for the current search text; ``True`` if it was applied."""
        self._seq += 1
        ticket = self._seq
        self._loading = True
        self._changed()

        query = self.search_text.strip()
        try:
            if query:
                notes = await self._client.search_notes(query)
            else:
                notes = await self._client.list_notes()
        except (NetworkError, ApiError) as e:
            if ticket == self._seq:
                self._notify_failure(e, "Could not load notes")
            return False
        else:
            if ticket != self._seq:
                logger.debug("Dropped stale list response #%s (latest #%s)", ticket, self._seq)
                return False
            self.notes = list(notes)
            return True
        finally:
            if ticket == self._seq:
                self._loading = False
                self._changed()

    async def set_search_text(self, text: str) -> bool:
        self.search_text = text
        return await self.reload()

    # ---- edit mode ----

    def open_create(self) -> None:
        self.draft = Draft()
        self._changed()

    def open_edit(self, note: Note) -> None:
        self.draft = Draft(title=note.title, body=note.body, note_id=note.id)
        self._changed()

    def set_title(self, title: str) -> None:
        if self.draft is None:
            raise RuntimeError("No note is being edited")
        self.draft.title = title[:TITLE_MAX_LENGTH]
        self._changed()

    def set_body(self, body: str) -> None:
        if self.draft is None:
            raise RuntimeError("No note is being edited")
        self.draft.body = body
        self._changed()

    def cancel(self) -> None:
        self.draft = None
        self._changed()

    async def save(self) -> bool:
        draft = self.draft
        if draft is None:
            return False
        title = draft.title.strip()
        if not title:
            self._notify(NoticeLevel.ERROR, "Title is required")
            return False

        try:
            if draft.is_new:
                await self._client.create_note(title, draft.body)
                done = "Note created"
            else:
                await self._client.update_note(draft.note_id, title, draft.body)
                done = "Note updated"
        except (NetworkError, ApiError) as e:
            self._notify_failure(e, "Could not save note")
            return False

        if self.draft is draft:
            self.draft = None
        self._notify(NoticeLevel.INFO, done)
        await self.reload()
        return True

    # ---- delete ----

    async def _ask(self, note_id: int) -> bool:
        if self._confirm is None:
            return False
        answer = self._confirm(note_id)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def delete(self, note_id: int, *, confirmed: bool = False) -> bool:
        if not confirmed and not await self._ask(note_id):
            return False
        try:
            await self._client.delete_note(note_id)
        except (NetworkError, ApiError) as e:
            self._notify_failure(e, "Could not delete note")
            return False
        self._notify(NoticeLevel.INFO, "Note deleted")
        await self.reload()
        return True
