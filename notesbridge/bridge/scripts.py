"""AppleScript generation for Apple Notes operations."""

from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from datetime import datetime
from enum import Enum
from typing import Optional

from notesbridge.bridge.escaping import format_body, quote
from notesbridge.core.errors import InvalidInputError
from notesbridge.core.models import (
    SCOPE_BOTH,
    SCOPE_TITLE,
    SEARCH_SCOPES,
    SearchOptions,
)
from notesbridge.core.parser import LIST_DELIMITER, format_date

INDENT = "    "


class Raw(str):
    """script text that is already valid AppleScript and must not be quoted."""


# (search, replacement) pairs applied bridge-side to text placed in a record line
_RECORD_TEXT_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    (Raw("linefeed"), "\\n"),
    (Raw("return"), "\\r"),
)


def date_literal(value: datetime) -> Raw:
    """returns an AppleScript date literal for ``value``."""
    return Raw(f'date "{format_date(value)}"')


def body_literal(content: str) -> Raw:
    """returns note content as an AppleScript string literal of HTML body text."""
    return Raw(f'"{format_body(content)}"')


class ScriptBuilder:
    """
    collects AppleScript statements with indentation.

    Statements use ``%s`` placeholders; every value passed for them is quoted
    and escaped unless it is a ``Raw`` instance.
    """

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._depth = 0

    def add(self, statement: str, *values: str) -> "ScriptBuilder":
        """appends one statement, substituting quoted values for ``%s``."""
        if values:
            rendered = tuple(
                value if isinstance(value, Raw) else quote(value) for value in values
            )
            statement = statement % rendered
        self._lines.append(f"{INDENT * self._depth}{statement}")
        return self

    @contextmanager
    def block(self, opener: str, closer: str, *values: str) -> Iterator[None]:
        """wraps the statements added inside the ``with`` body in opener/closer."""
        self.add(opener, *values)
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            self.add(closer)

    @contextmanager
    def tell_account(self, account: str) -> Iterator[None]:
        """scopes statements to the given Notes account."""
        with self.block('tell application "Notes"', "end tell"):
            with self.block("tell account %s", "end tell", account):
                yield

    def join_and_return(self, variable: str) -> None:
        """returns a list variable joined with the list delimiter."""
        self.add("set oldDelimiters to AppleScript's text item delimiters")
        self.add("set AppleScript's text item delimiters to %s", LIST_DELIMITER)
        self.add(f"set output to {variable} as string")
        self.add("set AppleScript's text item delimiters to oldDelimiters")
        self.add("return output")

    def require_note(self, variable: str, title: str) -> None:
        """resolves a note by title, failing with a "note not found" error."""
        with self.block("if not (exists note %s) then", "end if", title):
            self.add('error "note not found: " & %s', title)
        self.add(f"set {variable} to note %s", title)

    def require_folder(self, variable: str, path: str) -> None:
        """resolves a folder path, failing with a "folder not found" error."""
        ref = folder_ref(path)
        with self.block(f"if not (exists {ref}) then", "end if"):
            self.add('error "folder not found: " & %s', path)
        self.add(f"set {variable} to {ref}")

    def render(self) -> str:
        return "\n".join(self._lines) + "\n"


def parse_folder_path(path: str) -> list[str]:
    """splits a folder path like "Parent/Child" into its components."""
    return [part for part in path.split("/") if part]


def folder_ref(path: str) -> Raw:
    """
    generates an AppleScript folder reference for a folder path.

    Args:
        path: folder path like "Folder" or "Parent/Child"

    Returns:
        reference like 'folder "Folder"' or 'folder "Child" of folder "Parent"'
    """
    parts = parse_folder_path(path) or [path]
    return Raw(" of ".join(f"folder {quote(part)}" for part in reversed(parts)))


def create_note_script(
    account: str, title: str, content: str, folder: str = ""
) -> str:
    """generates AppleScript that creates a note and returns its id."""
    script = ScriptBuilder()
    with script.tell_account(account):
        if folder:
            script.require_folder("targetFolder", folder)
            script.add(
                "set newNote to make new note at targetFolder with properties "
                "{name:%s, body:%s}",
                title,
                body_literal(content),
            )
        else:
            script.add(
                "set newNote to make new note with properties {name:%s, body:%s}",
                title,
                body_literal(content),
            )
        script.add("return id of newNote")
    return script.render()


def note_body_script(account: str, title: str) -> str:
    script = ScriptBuilder()
    with script.tell_account(account):
        script.require_note("theNote", title)
        script.add("return body of theNote")
    return script.render()


def note_plaintext_script(account: str, title: str) -> str:
    script = ScriptBuilder()
    with script.tell_account(account):
        script.require_note("theNote", title)
        script.add("return plaintext of theNote")
    return script.render()


def update_note_script(account: str, title: str, content: str) -> str:
    script = ScriptBuilder()
    with script.tell_account(account):
        script.require_note("theNote", title)
        script.add("set body of theNote to %s", body_literal(content))
    return script.render()


def delete_note_script(account: str, title: str) -> str:
    script = ScriptBuilder()
    with script.tell_account(account):
        script.require_note("theNote", title)
        script.add("delete theNote")
    return script.render()


def list_folders_script(account: str) -> str:
    script = ScriptBuilder()
    with script.tell_account(account):
        script.add("set folderNames to name of folders")
        script.join_and_return("folderNames")
    return script.render()


def recent_notes_script(account: str) -> str:
    """generates AppleScript listing note titles, most recently modified first."""
    script = ScriptBuilder()
    with script.tell_account(account):
        script.add("set noteNames to name of notes")
        script.join_and_return("noteNames")
    return script.render()


def notes_in_folder_script(account: str, folder: str) -> str:
    script = ScriptBuilder()
    with script.tell_account(account):
        script.require_folder("targetFolder", folder)
        script.add("set noteNames to name of notes of targetFolder")
        script.join_and_return("noteNames")
    return script.render()


def note_metadata_script(account: str, title: str) -> str:
    """generates AppleScript returning a note's metadata as a record."""
    script = ScriptBuilder()
    with script.tell_account(account):
        script.require_note("theNote", title)
        script.add(
            "return {id:(id of theNote), name:(name of theNote), "
            "creation date:(creation date of theNote), "
            "modification date:(modification date of theNote), "
            "container:(name of container of theNote), "
            "shared:(shared of theNote), "
            "password protected:(password protected of theNote)}"
        )
    return script.render()


def create_folder_script(account: str, name: str, parent: str = "") -> str:
    """
    generates AppleScript that creates a folder.

    Args:
        account: Notes account name
        name: new folder name
        parent: existing parent folder path, empty for a top-level folder
    """
    script = ScriptBuilder()
    with script.tell_account(account):
        if parent:
            script.require_folder("parentFolder", parent)
            script.add(
                "make new folder at parentFolder with properties {name:%s}", name
            )
        else:
            script.add("make new folder with properties {name:%s}", name)
    return script.render()


def move_note_script(account: str, title: str, folder: str) -> str:
    script = ScriptBuilder()
    with script.tell_account(account):
        script.require_folder("targetFolder", folder)
        script.require_note("theNote", title)
        script.add("move theNote to targetFolder")
    return script.render()


def folder_hierarchy_script(account: str) -> str:
    """
    generates AppleScript that walks the folder tree inside osascript.

    The recursive handler runs bridge-side so the whole tree comes back in a
    single round trip, as one nested record.
    """
    script = ScriptBuilder()
    with script.block("on folderInfo(fld)", "end folderInfo"):
        with script.block('tell application "Notes"', "end tell"):
            script.add("set childInfos to {}")
            with script.block("repeat with childFld in (folders of fld)", "end repeat"):
                script.add("copy my folderInfo(childFld) to end of childInfos")
            script.add(
                "return {name:(name of fld), shared:(shared of fld), "
                "noteCount:(count of notes of fld), children:childInfos}"
            )
    script.add("set topInfos to {}")
    with script.tell_account(account):
        with script.block("repeat with fld in folders", "end repeat"):
            script.add("copy my folderInfo(fld) to end of topInfos")
    script.add(
        "return {name:%s, shared:false, noteCount:0, children:topInfos}", account
    )
    return script.render()


def attachments_script(account: str, title: str) -> str:
    """
    generates AppleScript emitting one attachment record per line.

    Names and paths go through an ``escapeText`` handler so the quoted record
    values stay well-formed and each record stays on one line.
    """
    script = ScriptBuilder()
    with script.block("on escapeText(t)", "end escapeText"):
        script.add("set oldDelimiters to AppleScript's text item delimiters")
        for old, new in _RECORD_TEXT_ESCAPES:
            script.add("set AppleScript's text item delimiters to %s", old)
            script.add("set parts to text items of t")
            script.add("set AppleScript's text item delimiters to %s", new)
            script.add("set t to parts as text")
        script.add("set AppleScript's text item delimiters to oldDelimiters")
        script.add("return t")
    with script.tell_account(account):
        script.require_note("theNote", title)
        script.add('set output to ""')
        with script.block("repeat with att in attachments of theNote", "end repeat"):
            script.add('set attPath to ""')
            with script.block("try", "end try"):
                script.add("set attPath to (contents of att) as text")
            script.add(
                'set output to output & "{id:" & quote & my escapeText(id of att) & quote'
                ' & ", name:" & quote & my escapeText(name of att) & quote'
                ' & ", contents:" & quote & my escapeText(attPath) & quote'
                ' & ", creation date:date " & quote'
                " & ((creation date of att) as text) & quote"
                ' & ", modification date:date " & quote'
                ' & ((modification date of att) as text) & quote & "}" & linefeed'
            )
        script.add("return output")
    return script.render()


class SearchStrategy(Enum):
    """shape of the generated search script."""

    TITLE_FAST = "title_fast"
    TITLE_FILTERED = "title_filtered"
    BODY_SCAN = "body_scan"
    BODY_FILTERED = "body_filtered"


def normalize_scope(scope: str) -> str:
    """defaults an empty scope to "title" and rejects unknown scopes."""
    scope = scope or SCOPE_TITLE
    if scope not in SEARCH_SCOPES:
        raise InvalidInputError(
            f"invalid search scope {scope!r} (must be 'title', 'body', or 'both')"
        )
    return scope


def select_search_strategy(options: SearchOptions) -> SearchStrategy:
    """
    picks the search script shape for the given options.

    Body searches are the most expensive operation Notes performs, so any
    folder or date filter narrows the candidates before the body predicate.

    Raises:
        InvalidInputError: for an unknown scope or an inverted date range
    """
    scope = normalize_scope(options.scope)
    if (
        options.date_from is not None
        and options.date_to is not None
        and options.date_from > options.date_to
    ):
        raise InvalidInputError("date_from must not be later than date_to")

    if scope == SCOPE_TITLE:
        if options.has_filters:
            return SearchStrategy.TITLE_FILTERED
        return SearchStrategy.TITLE_FAST
    if options.has_filters:
        return SearchStrategy.BODY_FILTERED
    return SearchStrategy.BODY_SCAN


def _match_predicate(scope: str) -> str:
    if scope == SCOPE_TITLE:
        return "name of n contains %s"
    if scope == SCOPE_BOTH:
        return "(name of n contains %s) or (body of n contains %s)"
    return "body of n contains %s"


def _date_condition(options: SearchOptions) -> tuple[Optional[str], tuple[Raw, ...]]:
    """returns the inclusive modification date condition and its literals."""
    clauses: list[str] = []
    literals: list[Raw] = []
    if options.date_from is not None:
        clauses.append("(modification date of n) >= %s")
        literals.append(date_literal(options.date_from))
    if options.date_to is not None:
        clauses.append("(modification date of n) <= %s")
        literals.append(date_literal(options.date_to))
    if not clauses:
        return None, ()
    return " and ".join(clauses), tuple(literals)


def title_search_script(account: str, query: str) -> str:
    """generates the fast title-contains search script."""
    script = ScriptBuilder()
    with script.tell_account(account):
        script.add("set matchedNotes to {}")
        script.add("set foundNotes to notes where name contains %s", query)
        with script.block("repeat with n in foundNotes", "end repeat"):
            script.add("copy name of n to end of matchedNotes")
        script.join_and_return("matchedNotes")
    return script.render()


def _scan_search_script(account: str, options: SearchOptions, scope: str) -> str:
    """generates a search script that narrows by folder and date, then matches."""
    script = ScriptBuilder()
    with script.tell_account(account):
        script.add("set matchedNotes to {}")
        if options.folder:
            script.require_folder("targetFolder", options.folder)
            script.add("set candidateNotes to notes of targetFolder")
        else:
            script.add("set candidateNotes to notes")

        predicate = _match_predicate(scope)
        query_values = (options.query,) * predicate.count("%s")
        condition, date_values = _date_condition(options)

        with script.block("repeat with n in candidateNotes", "end repeat"):
            with ExitStack() as stack:
                if condition:
                    stack.enter_context(
                        script.block(f"if {condition} then", "end if", *date_values)
                    )
                with script.block(f"if {predicate} then", "end if", *query_values):
                    script.add("copy name of n to end of matchedNotes")
        script.join_and_return("matchedNotes")
    return script.render()


def search_script(account: str, options: SearchOptions) -> str:
    """
    generates the advanced search script for ``options``.

    Raises:
        InvalidInputError: for an unknown scope or an inverted date range
    """
    strategy = select_search_strategy(options)
    if strategy is SearchStrategy.TITLE_FAST:
        return title_search_script(account, options.query)
    return _scan_search_script(account, options, normalize_scope(options.scope))
