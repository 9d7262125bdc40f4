from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    db_path: Path
    host: str = "127.0.0.1"
    port: int = 3000
    api_url: str = "http://127.0.0.1:3000/api/posts"
    cors_origins: tuple[str, ...] = ("*",)
    log_level: str = "info"


def _parse_origins(raw: str) -> tuple[str, ...]:
    origins = [o.strip() for o in raw.split(",")]
    return tuple(o for o in origins if o) or ("*",)


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    env = environ if environ is not None else os.environ
    db_path = Path(env.get("NOTESYNC_DB_PATH", "./notesync.db")).expanduser()
    host = env.get("NOTESYNC_HOST", "127.0.0.1")
    port_raw = env.get("NOTESYNC_PORT", "3000")
    try:
        port = int(port_raw)
    except ValueError as e:
        raise ValueError(f"Invalid NOTESYNC_PORT: {port_raw}") from e

    api_url = env.get("NOTESYNC_API_URL") or f"http://{host}:{port}/api/posts"
    cors_origins = _parse_origins(env.get("NOTESYNC_CORS_ORIGINS", "*"))
    log_level = (env.get("NOTESYNC_LOG_LEVEL") or "info").lower()

    return Settings(
        db_path=db_path,
        host=host,
        port=port,
        api_url=api_url.rstrip("/"),
        cors_origins=cors_origins,
        log_level=log_level,
    )
