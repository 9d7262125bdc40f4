from __future__ import annotations

import logging
import sqlite3

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, load_settings
from .db import connect, init_db
from .errors import ErrorKind, NoteSyncError
from .schemas import ErrorOut, MessageOut, NoteIn, NoteOut
from .store import create_note, delete_note, get_note, list_notes, search_notes, update_note

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 500,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORAGE: 500,
}

_ERROR_RESPONSES = {
    404: {"model": ErrorOut},
    422: {"model": ErrorOut},
    500: {"model": ErrorOut, "description": "Rejected note (kind `validation`) or storage fault (kind `storage`)"},
}


def _error(kind: ErrorKind, message: str, status_code: int | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or _STATUS_BY_KIND[kind],
        content=ErrorOut(kind=kind, message=message).model_dump(mode="json"),
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(
        title="notesync",
        description="Personal notes API: create, list, search, update and delete short text notes.",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    with connect(settings.db_path) as conn:
        init_db(conn)
    logger.info("Database ready at %s", settings.db_path)

    @app.exception_handler(NoteSyncError)
    async def _note_error_handler(request: Request, exc: NoteSyncError) -> JSONResponse:
        if exc.kind is ErrorKind.STORAGE:
            logger.exception("Storage failure on %s %s", request.method, request.url.path)
        return _error(exc.kind, exc.message)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            loc = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
            message = f"{loc}: {errors[0].get('msg', 'invalid value')}" if loc else message
        # malformed requests never reach the store
        return _error(ErrorKind.VALIDATION, message, status_code=422)

    @app.exception_handler(sqlite3.Error)
    async def _sqlite_error_handler(request: Request, exc: sqlite3.Error) -> JSONResponse:
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return _error(ErrorKind.STORAGE, "Operation failed")

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error(ErrorKind.STORAGE, "Operation failed")

    def _list_or_search(query: str | None) -> list[dict]:
        q = (query or "").strip()
        with connect(settings.db_path) as conn:
            return search_notes(conn, q) if q else list_notes(conn)

    # ---- JSON API ----

    @app.get("/api/posts", response_model=list[NoteOut], responses=_ERROR_RESPONSES)
    def api_list(q: str | None = None) -> list[dict]:
        return _list_or_search(q)

    @app.get("/api/posts/search", response_model=list[NoteOut], responses=_ERROR_RESPONSES)
    @app.get("/api/posts/search/{query:path}", response_model=list[NoteOut], responses=_ERROR_RESPONSES)
    def api_search(query: str = "") -> list[dict]:
        return _list_or_search(query)

    @app.get("/api/posts/{note_id}", response_model=NoteOut, responses=_ERROR_RESPONSES)
    def api_get(note_id: int) -> dict:
        with connect(settings.db_path) as conn:
            return get_note(conn, note_id)

    @app.post(
        "/api/posts",
        response_model=NoteOut,
        status_code=status.HTTP_201_CREATED,
        responses=_ERROR_RESPONSES,
    )
    def api_create(payload: NoteIn) -> dict:
        with connect(settings.db_path) as conn:
            return create_note(conn, title=payload.title.strip(), body=(payload.body or "").strip())

    @app.put("/api/posts/{note_id}", response_model=MessageOut, responses=_ERROR_RESPONSES)
    def api_update(note_id: int, payload: NoteIn) -> dict:
        with connect(settings.db_path) as conn:
            update_note(conn, note_id, title=payload.title.strip(), body=(payload.body or "").strip())
        return {"message": "Note updated"}

    @app.delete("/api/posts/{note_id}", response_model=MessageOut, responses=_ERROR_RESPONSES)
    def api_delete(note_id: int) -> dict:
        with connect(settings.db_path) as conn:
            delete_note(conn, note_id)
        return {"message": "Note deleted"}

    @app.get("/healthz")
    def healthz() -> dict:
        return {"ok": True}

    return app
