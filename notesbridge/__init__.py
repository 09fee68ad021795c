"""Apple Notes automation through generated AppleScript."""

import argparse
import base64
import logging
from datetime import datetime, time
from pathlib import Path
from typing import Callable, Optional

from notesbridge.bridge.markdown import markdown_to_html
from notesbridge.config import DEFAULT_MAX_ATTACHMENT_SIZE, Settings
from notesbridge.core.errors import NotesError, describe
from notesbridge.core.models import SCOPE_TITLE, SEARCH_SCOPES, SearchOptions
from notesbridge.output import OutputHandler
from notesbridge.service import NotesService

logger = logging.getLogger(__name__)

Command = Callable[[NotesService, argparse.Namespace, OutputHandler], None]


def _parse_day(value: str) -> datetime:
    """parses a YYYY-MM-DD command line date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError as e:
        raise argparse.ArgumentTypeError(
            f"invalid date {value!r} (use YYYY-MM-DD)"
        ) from e


def _body(args: argparse.Namespace) -> str:
    return markdown_to_html(args.content) if args.markdown else args.content


def _cmd_create(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    tags = [tag.strip() for tag in args.tags.split(",") if tag.strip()]
    with output.waiting("Creating note..."):
        note = service.create_note(args.title, _body(args), tags, args.folder)
    output.log_info(f"Created note: {note.title}")
    if note.id:
        output.print_text(note.id)


def _cmd_search(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Searching notes..."):
        notes = service.search_notes(args.query)
    output.print_listing([note.title for note in notes], notes, "matching notes")


def _cmd_search_advanced(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    date_to = args.date_to
    if date_to is not None:
        # the whole end day is included
        date_to = datetime.combine(date_to.date(), time(23, 59, 59))
    options = SearchOptions(
        query=args.query,
        scope=args.search_in,
        folder=args.folder,
        date_from=args.date_from,
        date_to=date_to,
    )
    with output.waiting("Searching notes..."):
        notes = service.search_notes_advanced(options)
    output.print_listing([note.title for note in notes], notes, "matching notes")


def _cmd_get(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Reading note..."):
        content = service.get_note_content(args.title)
    output.print_text(content)


def _cmd_metadata(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Reading note metadata..."):
        note = service.get_note_metadata(args.title)
    output.print_json(note.to_dict())


def _cmd_update(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Updating note..."):
        service.update_note(args.title, _body(args))
    output.log_info(f"Updated note: {args.title}")


def _cmd_delete(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Deleting note..."):
        service.delete_note(args.title)
    output.log_info(f"Deleted note: {args.title}")


def _cmd_folders(
    service: NotesService, _args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Listing folders..."):
        folders = service.list_folders()
    output.print_listing(folders.items, folders, "folders")


def _cmd_recent(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Listing recent notes..."):
        notes = service.get_recent_notes(args.limit)
    output.print_listing([note.title for note in notes], notes, "notes")


def _cmd_folder_notes(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Listing notes..."):
        notes = service.get_notes_in_folder(args.folder)
    output.print_listing([note.title for note in notes], notes, "notes")


def _cmd_create_folder(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Creating folder..."):
        service.create_folder(args.name, args.parent)
    output.log_info(f"Created folder: {args.name}")


def _cmd_move(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Moving note..."):
        service.move_note(args.title, args.folder)
    output.log_info(f"Moved note {args.title!r} to {args.folder!r}")


def _cmd_folder_hierarchy(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Reading folder hierarchy..."):
        root = service.get_folder_hierarchy()
    if args.json:
        output.print_json(root.to_dict())
    else:
        output.print_tree(root)


def _cmd_attachments(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Listing attachments..."):
        attachments = service.get_note_attachments(args.title)
    output.print_json([attachment.to_dict() for attachment in attachments])


def _cmd_get_attachment(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    content = service.get_attachment_content(args.file_path, args.max_size)
    if args.output:
        Path(args.output).write_bytes(content)
        output.log_info(f"Attachment saved to: {args.output}")
    else:
        output.print_text(base64.b64encode(content).decode("ascii"))


def _cmd_export_markdown(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Exporting note..."):
        markdown = service.export_note_markdown(args.title)
    output.print_text(markdown)


def _cmd_export_text(
    service: NotesService, args: argparse.Namespace, output: OutputHandler
) -> None:
    with output.waiting("Exporting note..."):
        text = service.export_note_text(args.title)
    output.print_text(text)


def _add_content_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("content", help="note body (plain text, or HTML)")
    parser.add_argument(
        "--markdown",
        action="store_true",
        help="treat content as markdown and convert it to Notes HTML",
    )


def build_parser() -> argparse.ArgumentParser:
    """builds the notesbridge argument parser."""
    parser = argparse.ArgumentParser(
        prog="notesbridge", description="Manage Apple Notes from the command line"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="suppress informational output"
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="show a spinner while waiting for Notes",
    )
    parser.add_argument(
        "--account", help="Notes account to use (default: $NOTESBRIDGE_ACCOUNT or iCloud)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="seconds a single AppleScript call may run (default: 10)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add(name: str, handler: Command, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text, description=help_text)
        sub.set_defaults(handler=handler)
        return sub

    sub = add("create", _cmd_create, "create a note")
    sub.add_argument("title", help="note title")
    _add_content_arguments(sub)
    sub.add_argument("--tags", default="", help="comma-separated tags")
    sub.add_argument("--folder", default="", help="folder to create the note in")

    sub = add("search", _cmd_search, "search notes by title")
    sub.add_argument("query")

    sub = add(
        "search-advanced",
        _cmd_search_advanced,
        "search notes by title and/or body with folder and date filters",
    )
    sub.add_argument("query")
    sub.add_argument(
        "--search-in",
        default=SCOPE_TITLE,
        choices=SEARCH_SCOPES,
        help="where to search (default: title)",
    )
    sub.add_argument("--folder", default="", help="limit search to a folder")
    sub.add_argument(
        "--date-from", type=_parse_day, help="modified on or after (YYYY-MM-DD)"
    )
    sub.add_argument(
        "--date-to", type=_parse_day, help="modified on or before (YYYY-MM-DD)"
    )

    sub = add("get", _cmd_get, "print the HTML body of a note")
    sub.add_argument("title")

    sub = add("metadata", _cmd_metadata, "print note metadata as JSON")
    sub.add_argument("title")

    sub = add("update", _cmd_update, "replace the body of a note")
    sub.add_argument("title")
    _add_content_arguments(sub)

    sub = add("delete", _cmd_delete, "delete a note")
    sub.add_argument("title")

    add("folders", _cmd_folders, "list folders")

    sub = add("recent", _cmd_recent, "list recently modified notes")
    sub.add_argument("--limit", type=int, default=10, help="number of notes")

    sub = add("folder-notes", _cmd_folder_notes, "list notes in a folder")
    sub.add_argument("folder")

    sub = add("create-folder", _cmd_create_folder, "create a folder")
    sub.add_argument("name")
    sub.add_argument("--parent", default="", help="parent folder")

    sub = add("move", _cmd_move, "move a note to another folder")
    sub.add_argument("title")
    sub.add_argument("folder")

    sub = add(
        "folder-hierarchy", _cmd_folder_hierarchy, "show folders with note counts"
    )
    sub.add_argument("--json", action="store_true", help="print as JSON")

    sub = add("attachments", _cmd_attachments, "list attachments of a note as JSON")
    sub.add_argument("title")

    sub = add("get-attachment", _cmd_get_attachment, "read an attachment file")
    sub.add_argument("file_path", help="path from the attachments command")
    sub.add_argument("-o", "--output", help="save to file instead of base64 output")
    sub.add_argument(
        "--max-size",
        type=int,
        default=DEFAULT_MAX_ATTACHMENT_SIZE,
        help="maximum attachment size in bytes (default: 10MB)",
    )

    sub = add("export-markdown", _cmd_export_markdown, "export a note as markdown")
    sub.add_argument("title")

    sub = add("export-text", _cmd_export_text, "export a note as plain text")
    sub.add_argument("title")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    main entry point for the notesbridge CLI.

    Args:
        argv: command line arguments (defaults to sys.argv[1:])

    Returns:
        exit code (0 success, 1 Notes error, 2 usage error)
    """
    args = build_parser().parse_args(argv)

    # configures logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="[%(levelname)s] %(message)s",
    )

    settings = Settings.from_env()
    if args.account:
        settings.account = args.account
    if args.timeout and args.timeout > 0:
        settings.script_timeout = args.timeout
        settings.request_timeout = args.timeout * 3

    output = OutputHandler(quiet=args.quiet, show_progress=args.progress)
    service = NotesService(settings=settings)

    try:
        args.handler(service, args, output)
    except NotesError as e:
        logger.debug("%s failed", args.command, exc_info=True)
        output.log_error(describe(e))
        return 1
    except OSError as e:
        output.log_error(str(e))
        return 1
    return 0
