from __future__ import annotations

import argparse
import uuid
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .config import AppConfig, load_config
from .errors import AssistantError
from .ingest import WebImporter
from .logging_config import configure_logging, enable_debug_mode
from .models import Note, WebImport
from .query import QueryDispatcher, answer_question, resolve_api_key
from .store import RecordStore

console = Console()


def build_services(cfg: AppConfig) -> tuple[RecordStore, QueryDispatcher, WebImporter]:
    store = RecordStore.from_config(cfg)
    dispatcher = QueryDispatcher(cfg, lambda: resolve_api_key(store))
    importer = WebImporter(store)
    return store, dispatcher, importer


def _parse_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise SystemExit(f"Not a valid id: {value}") from e


def _resolve_notes(store: RecordStore, ids: Sequence[str]) -> List[Note]:
    notes: List[Note] = []
    for raw in ids:
        note = store.get_note(_parse_id(raw))
        if note is None:
            raise SystemExit(f"Note not found: {raw}")
        notes.append(note)
    return notes


def _resolve_web_imports(store: RecordStore, ids: Sequence[str]) -> List[WebImport]:
    items: List[WebImport] = []
    for raw in ids:
        item = store.get_web_import(_parse_id(raw))
        if item is None:
            raise SystemExit(f"Web import not found: {raw}")
        items.append(item)
    return items


def _print_records(title: str, rows: Sequence[tuple[str, str, str]]) -> None:
    if not rows:
        console.print(f"[yellow]No {title.lower()} stored.[/yellow]")
        return
    table = Table(title=title)
    table.add_column("id", style="dim")
    table.add_column("when")
    table.add_column("title")
    for row in rows:
        table.add_row(*row)
    console.print(table)


def _handle_import(importer: WebImporter, url: str, title: Optional[str], save_as: Optional[str]) -> None:
    console.print(f"[green]Fetching:[/green] {url}")
    staged = importer.fetch(url, title)
    console.print(Panel(staged.content[:2000], title=staged.title, subtitle=staged.url, expand=False))

    if save_as is None:
        save_as = Prompt.ask("Save as", choices=["web", "note", "cancel"], default="web")

    if save_as == "web":
        item = importer.confirm_as_web_import()
        console.print(f"[bold green]Saved web import[/bold green] {item.id}")
    elif save_as == "note":
        note = importer.confirm_as_note()
        console.print(f"[bold green]Saved note[/bold green] {note.id}")
    else:
        importer.cancel()
        console.print("[yellow]Import discarded.[/yellow]")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Reference Notes Assistant - keep notes, import web pages and ask questions against them."
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to a config YAML file (default: config.yaml).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    ask_parser = subparsers.add_parser("ask", help="Ask a question, optionally with references.")
    ask_parser.add_argument("question", type=str, help="Question to ask.")
    ask_parser.add_argument("--note", action="append", default=[], help="Id of a note to use as reference.")
    ask_parser.add_argument("--web", action="append", default=[], help="Id of a web import to use as reference.")

    import_parser = subparsers.add_parser("import", help="Import a web page.")
    import_parser.add_argument("url", type=str)
    import_parser.add_argument("--title", type=str, default=None, help="Title to use instead of the page title.")
    import_parser.add_argument("--save-as", choices=["web", "note"], default=None)

    subparsers.add_parser("notes", help="List notes.")
    subparsers.add_parser("web", help="List web imports.")
    subparsers.add_parser("history", help="List query history, newest first.")

    note_parser = subparsers.add_parser("note-add", help="Save a note.")
    note_parser.add_argument("title", type=str)
    note_parser.add_argument("content", type=str)

    delete_parser = subparsers.add_parser("delete", help="Delete one record.")
    delete_parser.add_argument("kind", choices=["history", "note", "web"])
    delete_parser.add_argument("id", type=str)

    delete_all_parser = subparsers.add_parser("delete-all", help="Delete every record.")
    delete_all_parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation.")

    key_parser = subparsers.add_parser("set-key", help="Store the API key.")
    key_parser.add_argument("key", type=str)

    args = parser.parse_args(argv)

    cfg = load_config(Path(args.config))
    if args.verbose:
        enable_debug_mode()
    else:
        configure_logging(cfg.log_level)

    store, dispatcher, importer = build_services(cfg)

    try:
        if args.command == "ask":
            notes = _resolve_notes(store, args.note)
            web_imports = _resolve_web_imports(store, args.web)
            answer_question(args.question, store, dispatcher, notes, web_imports)
        elif args.command == "import":
            _handle_import(importer, args.url, args.title, args.save_as)
        elif args.command == "notes":
            _print_records("Notes", [(str(n.id), n.display_timestamp(), n.title) for n in store.list_notes()])
        elif args.command == "web":
            _print_records(
                "Web imports",
                [(str(w.id), w.display_timestamp(), f"{w.title} ({w.url})") for w in store.list_web_imports()],
            )
        elif args.command == "history":
            records = sorted(store.list_history(), key=lambda r: r.timestamp, reverse=True)
            _print_records("History", [(str(r.id), r.display_timestamp(), r.keyword) for r in records])
        elif args.command == "note-add":
            note = Note(title=args.title, content=args.content)
            store.save_note(note)
            console.print(f"[bold green]Saved note[/bold green] {note.id}")
        elif args.command == "delete":
            record_id = _parse_id(args.id)
            if args.kind == "history":
                store.delete_history(record_id)
            elif args.kind == "note":
                store.delete_note(record_id)
            else:
                store.delete_web_import(record_id)
            console.print(f"[green]Deleted {args.kind} {record_id}[/green]")
        elif args.command == "delete-all":
            if args.yes or Confirm.ask("Delete all history, notes and web imports?", default=False):
                store.delete_all()
                console.print("[bold green]All records deleted.[/bold green]")
        elif args.command == "set-key":
            store.save_api_key(args.key)
            console.print("[green]API key saved.[/green]")
        else:  # pragma: no cover - defensive
            parser.print_help()
    except AssistantError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
