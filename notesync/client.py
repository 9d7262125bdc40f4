"""Async HTTP client for the ``/api/posts`` Notes API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar
from urllib.parse import quote

import httpx

from .errors import ApiError, ErrorKind, NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Note:
    id: int
    title: str
    body: str
    created_at: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Note":
        return cls(
            id=int(data["id"]),
            title=str(data["title"]),
            body=str(data.get("body") or ""),
            created_at=str(data.get("created_at") or ""),
        )


def _notes(data: list[dict[str, Any]]) -> list[Note]:
    if not isinstance(data, list):
        raise TypeError(f"expected a list of notes, got {type(data).__name__}")
    return [Note.from_dict(d) for d in data]


def _message(data: dict[str, Any]) -> str:
    return str(data.get("message", ""))


class NotesClient:
    """
    Thin wrapper around :class:`httpx.AsyncClient`.

    Request failures surface as :class:`NetworkError`; any non-2xx answer
    surfaces as :class:`ApiError` with the error kind the server reported,
    and a 2xx answer whose body cannot be read as the expected shape as an
    :class:`ApiError` of kind ``storage``. Nothing is retried.

    Args:
        base_url: URL of the posts collection, e.g. ``http://127.0.0.1:3000/api/posts``.
        transport: optional httpx transport (``httpx.ASGITransport`` in tests).
        timeout: seconds, or ``None`` to wait indefinitely.

    """

    def __init__(
        self,
        base_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(transport=transport, timeout=timeout)

    async def __aenter__(self) -> "NotesClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, url: str, decode: Callable[[Any], T], **kwargs: Any) -> T:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise NetworkError(e) from e

        if response.is_success:
            try:
                return decode(response.json())
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning("%s %s returned an unreadable body: %s", method, url, e)
                raise ApiError(response.status_code, ErrorKind.STORAGE, "Operation failed") from e

        kind = ErrorKind.STORAGE
        message = "Operation failed"
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            try:
                kind = ErrorKind(payload.get("kind"))
            except ValueError:
                pass
            message = str(payload.get("message") or message)
        raise ApiError(response.status_code, kind, message)

    def _note_url(self, note_id: int) -> str:
        return f"{self.base_url}/{int(note_id)}"

    async def list_notes(self) -> list[Note]:
        return await self._request("GET", self.base_url, _notes)

    async def search_notes(self, query: str) -> list[Note]:
        q = query.strip()
        if not q:
            return await self.list_notes()
        return await self._request("GET", f"{self.base_url}/search/{quote(q, safe='')}", _notes)

    async def get_note(self, note_id: int) -> Note:
        return await self._request("GET", self._note_url(note_id), Note.from_dict)

    async def create_note(self, title: str, body: str = "") -> Note:
        return await self._request(
            "POST", self.base_url, Note.from_dict, json={"title": title, "body": body}
        )

    async def update_note(self, note_id: int, title: str, body: str = "") -> str:
        return await self._request(
            "PUT", self._note_url(note_id), _message, json={"title": title, "body": body}
        )

    async def delete_note(self, note_id: int) -> str:
        return await self._request("DELETE", self._note_url(note_id), _message)
