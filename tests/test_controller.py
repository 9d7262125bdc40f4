from __future__ import annotations

import asyncio

import httpx
import pytest

from notesync.client import Note, NotesClient
from notesync.controller import (
    UNREACHABLE_MESSAGE,
    Draft,
    Notice,
    NoticeLevel,
    NotesController,
    ViewState,
)
from notesync.errors import ApiError, ErrorKind, NetworkError


def _note(note_id: int, title: str, body: str = "") -> Note:
    return Note(id=note_id, title=title, body=body, created_at=f"2024-01-01T00:00:{note_id:02d}+00:00")


class FakeNotesApi:
    """In-memory stand-in for NotesClient; calls can be held open or made to fail."""

    def __init__(self, notes=()):
        self.notes = list(notes)
        self.calls: list[tuple] = []
        self.gates: dict[tuple, asyncio.Event] = {}
        self.failures: dict[tuple, Exception] = {}
        self._next_id = max((n.id for n in self.notes), default=0) + 1

    def hold(self, *key) -> asyncio.Event:
        return self.gates.setdefault(key, asyncio.Event())

    def fail(self, error: Exception, *key) -> None:
        self.failures[key] = error

    async def _answer(self, key: tuple):
        self.calls.append(key)
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        if key in self.failures:
            raise self.failures[key]

    def _sorted(self) -> list[Note]:
        return sorted(self.notes, key=lambda n: n.created_at, reverse=True)

    async def list_notes(self):
        await self._answer(("list",))
        return self._sorted()

    async def search_notes(self, query):
        await self._answer(("search", query))
        q = query.lower()
        return [n for n in self._sorted() if q in n.title.lower() or q in n.body.lower()]

    async def create_note(self, title, body=""):
        await self._answer(("create", title, body))
        note = _note(self._next_id, title, body)
        self._next_id += 1
        self.notes.append(note)
        return note

    async def update_note(self, note_id, title, body=""):
        await self._answer(("update", note_id, title, body))
        for i, n in enumerate(self.notes):
            if n.id == note_id:
                self.notes[i] = Note(note_id, title, body, n.created_at)
                return "Note updated"
        raise ApiError(404, ErrorKind.NOT_FOUND, "missing")

    async def delete_note(self, note_id):
        await self._answer(("delete", note_id))
        self.notes = [n for n in self.notes if n.id != note_id]
        return "Note deleted"


def _titles(controller):
    return [n.title for n in controller.notes]


def _unreachable() -> NetworkError:
    return NetworkError(httpx.ConnectError("refused"))


@pytest.mark.anyio
async def test_mount_loads_list_and_returns_to_idle():
    api = FakeNotesApi([_note(1, "older"), _note(2, "newer")])
    seen = []
    controller = NotesController(api, on_change=lambda c: seen.append(c.state))

    assert await controller.mount() is True

    assert _titles(controller) == ["newer", "older"]
    assert controller.state is ViewState.IDLE
    assert seen[0] is ViewState.LOADING
    assert seen[-1] is ViewState.IDLE
    assert api.calls == [("list",)]


@pytest.mark.anyio
async def test_blank_search_text_routes_to_full_list():
    api = FakeNotesApi([_note(1, "apple")])
    controller = NotesController(api)

    await controller.set_search_text("app")
    await controller.set_search_text("   ")

    assert api.calls == [("search", "app"), ("list",)]
    assert _titles(controller) == ["apple"]


@pytest.mark.anyio
async def test_late_stale_search_response_is_dropped():
    api = FakeNotesApi([_note(1, "abacus"), _note(2, "apple")])
    slow_a = api.hold("search", "a")
    fast_ab = api.hold("search", "ab")
    controller = NotesController(api)

    first = asyncio.create_task(controller.set_search_text("a"))
    second = asyncio.create_task(controller.set_search_text("ab"))
    await asyncio.sleep(0)
    assert controller.state is ViewState.LOADING

    fast_ab.set()
    assert await second is True
    assert _titles(controller) == ["abacus"]
    assert controller.state is ViewState.IDLE

    slow_a.set()
    assert await first is False
    assert _titles(controller) == ["abacus"]
    assert controller.state is ViewState.IDLE


@pytest.mark.anyio
async def test_early_stale_response_keeps_loading_until_latest_settles():
    api = FakeNotesApi([_note(1, "abacus"), _note(2, "apple")])
    gate_a = api.hold("search", "a")
    gate_ab = api.hold("search", "ab")
    controller = NotesController(api)

    first = asyncio.create_task(controller.set_search_text("a"))
    second = asyncio.create_task(controller.set_search_text("ab"))
    await asyncio.sleep(0)

    gate_a.set()
    assert await first is False
    assert controller.notes == []
    assert controller.state is ViewState.LOADING

    gate_ab.set()
    assert await second is True
    assert _titles(controller) == ["abacus"]
    assert controller.state is ViewState.IDLE


@pytest.mark.anyio
async def test_stale_failure_is_silent():
    api = FakeNotesApi([_note(1, "abacus")])
    gate_a = api.hold("search", "a")
    api.fail(_unreachable(), "search", "a")
    controller = NotesController(api)

    first = asyncio.create_task(controller.set_search_text("a"))
    await asyncio.sleep(0)
    assert await controller.set_search_text("ab") is True

    gate_a.set()
    assert await first is False
    assert controller.notices == ()
    assert _titles(controller) == ["abacus"]


@pytest.mark.anyio
async def test_failed_reload_keeps_previous_list():
    api = FakeNotesApi([_note(1, "kept")])
    controller = NotesController(api)
    await controller.mount()

    api.fail(ApiError(500, ErrorKind.STORAGE, "Operation failed"), "list")
    assert await controller.reload() is False

    assert _titles(controller) == ["kept"]
    assert controller.state is ViewState.IDLE
    assert controller.pop_notices() == [Notice(NoticeLevel.ERROR, "Could not load notes")]
    assert controller.notices == ()


@pytest.mark.anyio
async def test_unreachable_server_has_its_own_notice():
    api = FakeNotesApi()
    api.fail(_unreachable(), "list")
    controller = NotesController(api)

    await controller.mount()

    assert controller.state is ViewState.IDLE
    assert controller.pop_notices() == [Notice(NoticeLevel.ERROR, UNREACHABLE_MESSAGE)]


@pytest.mark.anyio
async def test_open_create_and_cancel_make_no_calls():
    api = FakeNotesApi()
    controller = NotesController(api)

    controller.open_create()
    assert controller.state is ViewState.EDITING
    assert controller.draft == Draft()
    controller.set_title("Unsaved")
    controller.cancel()

    assert controller.draft is None
    assert controller.state is ViewState.IDLE
    assert api.calls == []


@pytest.mark.anyio
async def test_save_requires_title():
    api = FakeNotesApi()
    controller = NotesController(api)
    controller.open_create()
    controller.set_title("   ")
    controller.set_body("body without title")

    assert await controller.save() is False

    assert controller.state is ViewState.EDITING
    assert api.calls == []
    assert controller.pop_notices() == [Notice(NoticeLevel.ERROR, "Title is required")]


@pytest.mark.anyio
async def test_save_new_note_reloads_from_server():
    api = FakeNotesApi([_note(1, "existing")])
    controller = NotesController(api)
    await controller.mount()

    controller.open_create()
    controller.set_title("  Groceries ")
    controller.set_body("milk, eggs")
    assert await controller.save() is True

    assert api.calls[-2:] == [("create", "Groceries", "milk, eggs"), ("list",)]
    assert controller.state is ViewState.IDLE
    assert controller.draft is None
    assert _titles(controller) == ["Groceries", "existing"]
    assert Notice(NoticeLevel.INFO, "Note created") in controller.pop_notices()


@pytest.mark.anyio
async def test_save_bound_draft_updates():
    api = FakeNotesApi([_note(1, "Groceries", "milk, eggs")])
    controller = NotesController(api)
    await controller.mount()

    controller.open_edit(controller.notes[0])
    assert controller.draft == Draft(title="Groceries", body="milk, eggs", note_id=1)
    controller.set_title("Groceries v2")
    controller.set_body("")
    assert await controller.save() is True

    assert ("update", 1, "Groceries v2", "") in api.calls
    assert controller.notes == [Note(1, "Groceries v2", "", _note(1, "x").created_at)]


@pytest.mark.anyio
async def test_failed_save_stays_in_editing():
    api = FakeNotesApi([_note(1, "Groceries")])
    controller = NotesController(api)
    await controller.mount()
    api.fail(_unreachable(), "update", 1, "Renamed", "")

    controller.open_edit(controller.notes[0])
    controller.set_title("Renamed")
    assert await controller.save() is False

    assert controller.state is ViewState.EDITING
    assert controller.draft.title == "Renamed"
    assert _titles(controller) == ["Groceries"]
    assert controller.pop_notices() == [Notice(NoticeLevel.ERROR, UNREACHABLE_MESSAGE)]


def test_title_is_capped_while_typing():
    controller = NotesController(FakeNotesApi())
    controller.open_create()
    controller.set_title("x" * 300)
    assert len(controller.draft.title) == 255


def test_editing_without_draft_is_an_error():
    controller = NotesController(FakeNotesApi())
    with pytest.raises(RuntimeError):
        controller.set_title("nope")


@pytest.mark.anyio
async def test_declined_delete_makes_no_call():
    api = FakeNotesApi([_note(1, "keep")])
    asked = []

    def confirm(note_id):
        asked.append(note_id)
        return False

    controller = NotesController(api, confirm=confirm)
    await controller.mount()

    assert await controller.delete(1) is False
    assert asked == [1]
    assert ("delete", 1) not in api.calls
    assert _titles(controller) == ["keep"]


@pytest.mark.anyio
async def test_delete_without_confirmation_hook_is_refused():
    api = FakeNotesApi([_note(1, "keep")])
    controller = NotesController(api)

    assert await controller.delete(1) is False
    assert api.calls == []


@pytest.mark.anyio
async def test_confirmed_delete_reloads():
    api = FakeNotesApi([_note(1, "gone"), _note(2, "stays")])

    async def confirm(note_id):
        return True

    controller = NotesController(api, confirm=confirm)
    await controller.mount()

    assert await controller.delete(1) is True

    assert api.calls[-2:] == [("delete", 1), ("list",)]
    assert _titles(controller) == ["stays"]
    assert controller.pop_notices() == [Notice(NoticeLevel.INFO, "Note deleted")]


@pytest.mark.anyio
async def test_failed_delete_leaves_list_unchanged():
    api = FakeNotesApi([_note(1, "gone?")])
    api.fail(ApiError(404, ErrorKind.NOT_FOUND, "missing"), "delete", 1)
    controller = NotesController(api)
    await controller.mount()

    assert await controller.delete(1, confirmed=True) is False

    assert _titles(controller) == ["gone?"]
    assert controller.state is ViewState.IDLE
    assert controller.pop_notices() == [Notice(NoticeLevel.ERROR, "Could not delete note")]


@pytest.mark.anyio
async def test_unreadable_server_answer_becomes_notice():
    def portal(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>captive portal</html>")

    async with NotesClient("http://testserver/api/posts", transport=httpx.MockTransport(portal)) as client:
        controller = NotesController(client, confirm=lambda note_id: True)

        assert await controller.mount() is False
        assert controller.state is ViewState.IDLE
        assert controller.pop_notices() == [Notice(NoticeLevel.ERROR, "Could not load notes")]

        controller.open_create()
        controller.set_title("Groceries")
        assert await controller.save() is False
        assert controller.state is ViewState.EDITING
        assert controller.pop_notices() == [Notice(NoticeLevel.ERROR, "Could not save note")]

        assert await controller.delete(1) is False
        assert controller.pop_notices() == [Notice(NoticeLevel.ERROR, "Could not delete note")]
