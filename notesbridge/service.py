"""Notes service: the single entry point for Apple Notes operations."""

import inspect
import logging
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from notesbridge.bridge import scripts
from notesbridge.bridge.executor import Deadline, OsaScriptExecutor, ScriptExecutor
from notesbridge.bridge.markdown import html_to_markdown
from notesbridge.config import Settings
from notesbridge.core.errors import (
    InvalidInputError,
    ScriptCancelled,
    ScriptExecutionError,
    classify,
)
from notesbridge.core.models import Attachment, FolderNode, Listing, Note, SearchOptions
from notesbridge.core.parser import (
    parse_attachments,
    parse_folder_hierarchy,
    parse_list,
    parse_note_metadata,
)

logger = logging.getLogger(__name__)

OPERATIONS = (
    "create_note",
    "search_notes",
    "search_notes_advanced",
    "get_note_content",
    "get_note_metadata",
    "update_note",
    "delete_note",
    "list_folders",
    "get_recent_notes",
    "get_notes_in_folder",
    "create_folder",
    "move_note",
    "get_folder_hierarchy",
    "get_note_attachments",
    "get_attachment_content",
    "export_note_markdown",
    "export_note_text",
)


def _require(name: str, value: Optional[str]) -> str:
    if not value or not value.strip():
        raise InvalidInputError(f"{name} is required")
    return value


def _diagnostics(error: BaseException) -> str:
    stderr = getattr(error, "stderr", None)
    if isinstance(stderr, bytes):
        return stderr.decode("utf-8", errors="replace")
    return stderr or ""


def _strip_result(output: str) -> str:
    """drops the newline osascript appends to every result."""
    return output[:-1] if output.endswith("\n") else output


def _titles_to_notes(listing: Listing[str]) -> Listing[Note]:
    return Listing(items=[Note(title=title) for title in listing], total=listing.total)


class NotesService:
    """
    runs Apple Notes operations through generated AppleScript.

    Each operation builds one script, runs it through the executor, and
    either parses the output or raises a classified NotesError. Every
    operation takes an optional ``deadline``; without one, a deadline of
    ``settings.request_timeout`` seconds is used.
    """

    def __init__(
        self,
        executor: Optional[ScriptExecutor] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.executor = executor or OsaScriptExecutor(self.settings.script_timeout)

    @property
    def account(self) -> str:
        return self.settings.account

    def _run(
        self,
        operation: str,
        script: str,
        deadline: Optional[Deadline],
        source_output: bool = False,
    ) -> str:
        """executes a script, translating failures into domain errors."""
        if deadline is None:
            deadline = Deadline(self.settings.request_timeout)
        try:
            return self.executor.execute(script, deadline, source_output=source_output)
        except (
            subprocess.CalledProcessError,
            subprocess.TimeoutExpired,
            ScriptCancelled,
        ) as e:
            diagnostics = _diagnostics(e)
            detected = classify(diagnostics, e)
            if detected is e:
                logger.debug("failed to %s: unclassified error %r", operation, e)
                message = diagnostics.strip() or str(e)
                raise ScriptExecutionError(
                    f"failed to {operation}: {message}", diagnostics
                ) from e
            logger.debug("failed to %s: %s", operation, type(detected).__name__)
            raise detected from e

    def _listing(self, output: str, limit: Optional[int] = None) -> Listing[str]:
        limit = self.settings.result_limit if limit is None else limit
        listing = parse_list(output, limit)
        if listing.truncated:
            logger.info(
                "showing first %d of %d results", len(listing.items), listing.total
            )
        return listing

    def create_note(
        self,
        title: str,
        content: str,
        tags: Optional[list[str]] = None,
        folder: str = "",
        *,
        deadline: Optional[Deadline] = None,
    ) -> Note:
        """
        creates a note.

        Tags are kept on the returned Note only; Notes has no tag concept.

        Args:
            title: note title
            content: plain-text or HTML body; newlines become <br>
            tags: free-form tags
            folder: optional target folder path; the account default otherwise
            deadline: optional caller deadline

        Returns:
            the new note, with the id Notes assigned to it
        """
        _require("title", title)
        script = scripts.create_note_script(self.account, title, content, folder)
        output = self._run("create note", script, deadline).strip()
        now = datetime.now()
        return Note(
            id=output or None,
            title=title,
            content=content,
            tags=list(tags or []),
            created=now,
            modified=now,
            folder=folder or None,
        )

    def search_notes(
        self, query: str, *, deadline: Optional[Deadline] = None
    ) -> Listing[Note]:
        """searches note titles; results carry titles only."""
        _require("query", query)
        script = scripts.title_search_script(self.account, query)
        output = self._run("search notes", script, deadline)
        return _titles_to_notes(self._listing(output))

    def search_notes_advanced(
        self, options: SearchOptions, *, deadline: Optional[Deadline] = None
    ) -> Listing[Note]:
        """
        searches notes by title, body or both, optionally within a folder
        and modification date range.

        Raises:
            InvalidInputError: for an empty query, unknown scope or inverted
                date range; raised before any script runs
        """
        _require("query", options.query)
        strategy = scripts.select_search_strategy(options)
        logger.debug("search strategy %s", strategy.value)
        script = scripts.search_script(self.account, options)
        output = self._run("search notes", script, deadline)
        return _titles_to_notes(self._listing(output))

    def get_note_content(
        self, title: str, *, deadline: Optional[Deadline] = None
    ) -> str:
        """returns the HTML body of a note."""
        _require("title", title)
        script = scripts.note_body_script(self.account, title)
        return _strip_result(self._run("get note content", script, deadline))

    def get_note_metadata(
        self, title: str, *, deadline: Optional[Deadline] = None
    ) -> Note:
        """returns id, dates, folder and sharing flags of a note."""
        _require("title", title)
        script = scripts.note_metadata_script(self.account, title)
        output = self._run("get note metadata", script, deadline, source_output=True)
        return parse_note_metadata(output, title)

    def update_note(
        self, title: str, content: str, *, deadline: Optional[Deadline] = None
    ) -> None:
        """replaces the body of a note."""
        _require("title", title)
        script = scripts.update_note_script(self.account, title, content)
        self._run("update note", script, deadline)

    def delete_note(self, title: str, *, deadline: Optional[Deadline] = None) -> None:
        _require("title", title)
        script = scripts.delete_note_script(self.account, title)
        self._run("delete note", script, deadline)

    def list_folders(self, *, deadline: Optional[Deadline] = None) -> Listing[str]:
        script = scripts.list_folders_script(self.account)
        return self._listing(self._run("list folders", script, deadline))

    def get_recent_notes(
        self, limit: int = 10, *, deadline: Optional[Deadline] = None
    ) -> Listing[Note]:
        """
        returns the most recently modified notes.

        Args:
            limit: number of notes; <= 0 uses the configured result limit
        """
        cap = self.settings.result_limit
        if limit > 0:
            cap = min(limit, cap)
        script = scripts.recent_notes_script(self.account)
        output = self._run("get recent notes", script, deadline)
        return _titles_to_notes(parse_list(output, cap))

    def get_notes_in_folder(
        self, folder: str, *, deadline: Optional[Deadline] = None
    ) -> Listing[Note]:
        _require("folder", folder)
        script = scripts.notes_in_folder_script(self.account, folder)
        output = self._run("get notes in folder", script, deadline)
        return _titles_to_notes(self._listing(output))

    def create_folder(
        self, name: str, parent: str = "", *, deadline: Optional[Deadline] = None
    ) -> None:
        """creates a folder at the top level, or inside ``parent`` when given."""
        _require("name", name)
        script = scripts.create_folder_script(self.account, name, parent)
        self._run("create folder", script, deadline)

    def move_note(
        self, title: str, folder: str, *, deadline: Optional[Deadline] = None
    ) -> None:
        _require("title", title)
        _require("folder", folder)
        script = scripts.move_note_script(self.account, title, folder)
        self._run("move note", script, deadline)

    def get_folder_hierarchy(
        self, *, deadline: Optional[Deadline] = None
    ) -> FolderNode:
        """returns the account's folder tree with per-folder note counts."""
        script = scripts.folder_hierarchy_script(self.account)
        output = self._run(
            "get folder hierarchy", script, deadline, source_output=True
        )
        return parse_folder_hierarchy(output)

    def get_note_attachments(
        self, title: str, *, deadline: Optional[Deadline] = None
    ) -> list[Attachment]:
        _require("title", title)
        script = scripts.attachments_script(self.account, title)
        output = self._run("get note attachments", script, deadline)
        return parse_attachments(output)

    def get_attachment_content(
        self,
        file_path: str,
        max_size: Optional[int] = None,
        *,
        deadline: Optional[Deadline] = None,  # pylint: disable=unused-argument
    ) -> bytes:
        """
        reads an attachment file reported by get_note_attachments.

        Args:
            file_path: local path from Attachment.file_path
            max_size: largest file read in bytes (defaults to the setting)

        Raises:
            InvalidInputError: for an empty path or a file over max_size
            OSError: if the file cannot be read
        """
        _require("file_path", file_path)
        limit = self.settings.max_attachment_size if max_size is None else max_size
        path = Path(file_path)
        size = path.stat().st_size
        if size > limit:
            raise InvalidInputError(
                f"attachment file size ({size} bytes) exceeds maximum size "
                f"({limit} bytes)"
            )
        return path.read_bytes()

    def export_note_markdown(
        self, title: str, *, deadline: Optional[Deadline] = None
    ) -> str:
        """returns a note's body converted to markdown."""
        return html_to_markdown(self.get_note_content(title, deadline=deadline))

    def export_note_text(
        self, title: str, *, deadline: Optional[Deadline] = None
    ) -> str:
        """returns a note's plain text as Notes renders it."""
        _require("title", title)
        script = scripts.note_plaintext_script(self.account, title)
        return _strip_result(self._run("export note text", script, deadline))

    def invoke(
        self,
        operation: str,
        *,
        deadline: Optional[Deadline] = None,
        **arguments: Any,
    ) -> Any:
        """
        runs an operation by name.

        Args:
            operation: one of OPERATIONS
            deadline: optional caller deadline
            **arguments: the operation's keyword arguments

        Raises:
            InvalidInputError: for an unknown operation or bad arguments
        """
        if operation not in OPERATIONS:
            raise InvalidInputError(f"unknown operation {operation!r}")
        method = getattr(self, operation)
        try:
            inspect.signature(method).bind(**arguments)
        except TypeError as e:
            raise InvalidInputError(f"invalid arguments for {operation}: {e}") from e
        return method(deadline=deadline, **arguments)
