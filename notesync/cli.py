from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime

import uvicorn

from .client import Note, NotesClient
from .config import Settings, load_settings
from .controller import NoticeLevel, NotesController
from .errors import ApiError, NetworkError


def format_created_at(value: str) -> str:
    try:
        stamp = datetime.fromisoformat(value)
    except ValueError:
        return value
    return stamp.strftime("%d/%m/%Y %H:%M")


def _print_notes(notes: list[Note]) -> None:
    if not notes:
        print("No notes yet. Create one with `notesync add`.")
        return
    for n in notes:
        print(f"#{n.id}  {n.title}  ({format_created_at(n.created_at)})")
        preview = n.body.strip().splitlines()[0] if n.body.strip() else ""
        if preview:
            print(f"    {preview[:77] + '...' if len(preview) > 80 else preview}")


def _print_notices(controller: NotesController) -> None:
    for notice in controller.pop_notices():
        stream = sys.stderr if notice.level is NoticeLevel.ERROR else sys.stdout
        print(notice.message, file=stream)


async def _run_action(args: argparse.Namespace, api_url: str) -> bool:
    async with NotesClient(api_url) as client:

        def confirm(note_id: int) -> bool:
            note = controller.find(note_id)
            label = f"#{note_id} ({note.title})" if note else f"#{note_id}"
            answer = input(f"Delete note {label}? [y/N] ")
            return answer.strip().lower() in ("y", "yes")

        controller = NotesController(client, confirm=confirm)

        if args.cmd == "list":
            ok = await controller.set_search_text(args.search or "")
            _print_notices(controller)
            if ok:
                _print_notes(controller.notes)
            return ok

        if args.cmd == "add":
            controller.open_create()
            controller.set_title(args.title)
            controller.set_body(args.body)
            ok = await controller.save()
        elif args.cmd == "edit":
            try:
                note = await client.get_note(args.id)
            except NetworkError:
                print("Server unreachable. Check your connection.", file=sys.stderr)
                return False
            except ApiError as e:
                print(f"Could not load note #{args.id}: {e.message}", file=sys.stderr)
                return False
            controller.open_edit(note)
            if args.title is not None:
                controller.set_title(args.title)
            if args.body is not None:
                controller.set_body(args.body)
            ok = await controller.save()
        else:
            await controller.mount()
            controller.pop_notices()
            ok = await controller.delete(args.id, confirmed=args.yes)

        _print_notices(controller)
        if ok:
            _print_notes(controller.notes)
        return ok


def _serve(args: argparse.Namespace, settings: Settings) -> None:
    host = args.host or settings.host
    port = args.port or settings.port
    uvicorn.run(
        "notesync.web:create_app",
        factory=True,
        host=host,
        port=port,
        reload=False,
        log_level=settings.log_level,
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="notesync", description="notesync - personal notes server and client.")
    parser.add_argument("--api-url", default=None, help="Notes API URL (override NOTESYNC_API_URL)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Run the API server")
    run.add_argument("--host", default=None, help="Bind host (override NOTESYNC_HOST)")
    run.add_argument("--port", type=int, default=None, help="Bind port (override NOTESYNC_PORT)")

    ls = sub.add_parser("list", help="List notes, newest first")
    ls.add_argument("--search", "-s", default=None, help="Only notes whose title or body contains this text")

    add = sub.add_parser("add", help="Create a note")
    add.add_argument("title")
    add.add_argument("--body", "-b", default="")

    edit = sub.add_parser("edit", help="Replace a note's title and/or body")
    edit.add_argument("id", type=int)
    edit.add_argument("--title", "-t", default=None)
    edit.add_argument("--body", "-b", default=None)

    rm = sub.add_parser("rm", help="Delete a note")
    rm.add_argument("id", type=int)
    rm.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    args = parser.parse_args(argv)
    settings = load_settings()

    if args.cmd == "run":
        _serve(args, settings)
        return

    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    ok = asyncio.run(_run_action(args, args.api_url or settings.api_url))
    if not ok:
        sys.exit(1)
