"""Parsing of osascript output into notes, attachments and folder trees."""

import re
from datetime import datetime
from typing import Any, NoReturn, Optional
from urllib.parse import unquote

from notesbridge.core.errors import ParseError
from notesbridge.core.models import Attachment, FolderNode, Listing, Note

LIST_DELIMITER = "|||"
DEFAULT_RESULT_LIMIT = 100

APPLESCRIPT_DATE_FORMAT = "%A, %B %d, %Y at %I:%M:%S %p"

# AppleScript renders a narrow no-break space before AM/PM on recent macOS
_DATE_SPACES = str.maketrans({"\u202f": " ", "\u00a0": " "})

_RECORD_KEY = re.compile(r"\|?([A-Za-z_][\w ]*?)\|?\s*:")
_BARE_DATE = re.compile(r'date\s+(?=")')
_INTEGER = re.compile(r"-?\d+")
_REAL = re.compile(r"-?\d+\.\d+(?:E[+-]?\d+)?", re.IGNORECASE)
_STRING_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\"}


def parse_list(output: str, limit: int = DEFAULT_RESULT_LIMIT) -> Listing[str]:
    """
    parses a ``|||``-joined list into its entries.

    Args:
        output: raw osascript stdout
        limit: maximum number of entries kept

    Returns:
        listing with at most ``limit`` entries and the full entry count
    """
    output = output.strip()
    if not output:
        return Listing(items=[], total=0)

    entries = [entry.strip() for entry in output.split(LIST_DELIMITER)]
    entries = [entry for entry in entries if entry]
    return Listing(items=entries[:limit], total=len(entries))


def _record_fields(record: str) -> dict[str, Any]:
    fields = parse_record(record)
    if not isinstance(fields, dict):
        raise ParseError(f"expected a record, got {record.strip()[:80]!r}")
    return fields


def extract_field(record: str, name: str) -> Optional[str]:
    """
    extracts a field value from a single-line AppleScript record.

    Example: extract_field('{id:"123", name:"Test"}', "id") returns "123".
    Quoted values may contain commas, braces and escaped quotes.

    Args:
        record: record text like ``{field:"value", field:value}``
        name: field name, may contain spaces ("password protected")

    Returns:
        the field value as text, or None when the field is absent

    Raises:
        ParseError: if the record is not well-formed
    """
    value = _record_fields(record).get(name)
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def extract_date_field(record: str, name: str) -> Optional[str]:
    """extracts the text of a ``name:date "..."`` field, or None when absent."""
    value = _record_fields(record).get(name)
    if isinstance(value, str) and value.startswith('date "'):
        return value[len('date "') : -1]
    return None


def parse_date(text: str) -> datetime:
    """
    parses an AppleScript date string.

    Accepts "Monday, January 1, 2024 at 10:00:00 AM", optionally wrapped as
    ``date "..."``.

    Raises:
        ParseError: if the text does not match the AppleScript date layout
    """
    value = text.strip()
    if value.startswith('date "'):
        value = value[len('date "') :]
    if value.endswith('"'):
        value = value[:-1]
    value = value.translate(_DATE_SPACES).strip()

    try:
        return datetime.strptime(value, APPLESCRIPT_DATE_FORMAT)
    except ValueError as e:
        raise ParseError(f"failed to parse AppleScript date {text!r}") from e


def format_date(value: datetime) -> str:
    """formats a datetime the way AppleScript prints dates."""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return (
        f"{value:%A, %B} {value.day}, {value.year} "
        f"at {hour}:{value:%M:%S} {meridiem}"
    )


def _optional_date(fields: dict[str, Any], name: str) -> Optional[datetime]:
    raw = fields.get(name)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ParseError(f"field {name!r} is not a date: {raw!r}")
    return parse_date(raw)


def _optional_text(fields: dict[str, Any], name: str) -> Optional[str]:
    value = fields.get(name)
    return value if isinstance(value, str) else None


def parse_note_metadata(output: str, title: str) -> Note:
    """
    parses the metadata record of a single note.

    Args:
        output: record text with id, container, shared, password protected
            and the two date fields
        title: title the note was looked up by

    Returns:
        note with id, dates, folder and flags populated

    Raises:
        ParseError: if the id is missing or a date is malformed
    """
    fields = _record_fields(output)
    note_id = _optional_text(fields, "id")
    if not note_id:
        raise ParseError(f"note metadata has no id: {output.strip()!r}")

    return Note(
        id=note_id,
        title=_optional_text(fields, "name") or title,
        created=_optional_date(fields, "creation date"),
        modified=_optional_date(fields, "modification date"),
        folder=_optional_text(fields, "container"),
        shared=fields.get("shared") is True,
        password_protected=fields.get("password protected") is True,
    )


def _file_path(reference: Optional[str]) -> str:
    if not reference:
        return ""
    if reference.startswith("file://"):
        return unquote(reference[len("file://") :])
    return reference


def parse_attachments(output: str) -> list[Attachment]:
    """
    parses attachment records, one per line.

    Raises:
        ParseError: if a record has no id or a malformed date
    """
    attachments: list[Attachment] = []
    for line in output.strip().splitlines():
        line = line.strip()
        if not line:
            continue

        fields = _record_fields(line)
        attachment_id = _optional_text(fields, "id")
        if not attachment_id:
            raise ParseError(f"attachment record has no id: {line!r}")

        attachments.append(
            Attachment(
                id=attachment_id,
                name=_optional_text(fields, "name") or "",
                file_path=_file_path(_optional_text(fields, "contents")),
                created=_optional_date(fields, "creation date"),
                modified=_optional_date(fields, "modification date"),
            )
        )
    return attachments


class _RecordReader:
    """recursive descent reader for AppleScript records and lists in source form."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def read(self) -> Any:
        value = self._value()
        self._skip_space()
        if self.pos != len(self.text):
            self._fail("unexpected trailing text")
        return value

    def _fail(self, reason: str) -> NoReturn:
        raise ParseError(f"{reason} at offset {self.pos} in {self.text[:80]!r}")

    def _skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _value(self) -> Any:
        self._skip_space()
        char = self._peek()
        if char == "{":
            return self._braced()
        if char == '"':
            return self._string()
        if not char:
            self._fail("unexpected end of input")
        return self._bare()

    def _braced(self) -> Any:
        self.pos += 1
        self._skip_space()
        if self._peek() == "}":
            self.pos += 1
            return []
        if _RECORD_KEY.match(self.text, self.pos):
            return self._record()
        return self._list()

    def _record(self) -> dict[str, Any]:
        record: dict[str, Any] = {}
        while True:
            self._skip_space()
            match = _RECORD_KEY.match(self.text, self.pos)
            if not match:
                self._fail("expected record field")
            self.pos = match.end()
            record[match.group(1).strip()] = self._value()
            if self._separator():
                return record

    def _list(self) -> list[Any]:
        items: list[Any] = []
        while True:
            items.append(self._value())
            if self._separator():
                return items

    def _separator(self) -> bool:
        """consumes ',' or '}' and returns True at the closing brace."""
        self._skip_space()
        char = self._peek()
        self.pos += 1
        if char == "}":
            return True
        if char != ",":
            self.pos -= 1
            self._fail("expected ',' or '}'")
        return False

    def _string(self) -> str:
        self.pos += 1
        chunks: list[str] = []
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == "\\" and self.pos + 1 < len(self.text):
                escaped = self.text[self.pos + 1]
                chunks.append(_STRING_ESCAPES.get(escaped, escaped))
                self.pos += 2
                continue
            self.pos += 1
            if char == '"':
                return "".join(chunks)
            chunks.append(char)
        self._fail("unterminated string")

    def _bare(self) -> Any:
        date_match = _BARE_DATE.match(self.text, self.pos)
        if date_match:
            self.pos = date_match.end()
            return f'date "{self._string()}"'

        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in ",}":
            self.pos += 1
        token = self.text[start : self.pos].strip()
        if not token:
            self._fail("empty value")
        if token in ("true", "false"):
            return token == "true"
        if token == "missing value":
            return None
        if _INTEGER.fullmatch(token):
            return int(token)
        if _REAL.fullmatch(token):
            return float(token)
        return token


def parse_record(text: str) -> Any:
    """
    parses AppleScript record/list source text into Python values.

    Records become dicts, lists become lists, quoted strings become str,
    true/false become bool, numbers become int/float, ``missing value``
    becomes None and dates are returned as their ``date "..."`` text.

    Raises:
        ParseError: if the text is not well-formed
    """
    return _RecordReader(text.strip()).read()


def _folder_node(record: Any) -> FolderNode:
    if not isinstance(record, dict):
        raise ParseError(f"expected folder record, got {record!r}")

    name = record.get("name")
    if not isinstance(name, str):
        raise ParseError(f"folder record has no name: {record!r}")

    note_count = record.get("noteCount", record.get("note count", 0))
    if not isinstance(note_count, int) or isinstance(note_count, bool):
        raise ParseError(f"folder {name!r} has invalid note count {note_count!r}")

    children = record.get("children") or []
    if not isinstance(children, list):
        raise ParseError(f"folder {name!r} has invalid children {children!r}")

    return FolderNode(
        name=name,
        shared=record.get("shared") is True,
        note_count=note_count,
        children=[_folder_node(child) for child in children],
    )


def parse_folder_hierarchy(output: str) -> FolderNode:
    """
    rebuilds the folder tree from the nested hierarchy record.

    Example input:
        {name:"iCloud", shared:false, noteCount:0, children:{{name:"Work",
        shared:false, noteCount:3, children:{}}}}

    Raises:
        ParseError: if the output is not a well-formed folder record
    """
    if not output.strip():
        raise ParseError("empty folder hierarchy output")
    return _folder_node(parse_record(output))
