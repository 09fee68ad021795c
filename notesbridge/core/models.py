"""Data models for Apple Notes entities."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

SCOPE_TITLE = "title"
SCOPE_BODY = "body"
SCOPE_BOTH = "both"
SEARCH_SCOPES = (SCOPE_TITLE, SCOPE_BODY, SCOPE_BOTH)

T = TypeVar("T")


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Note:
    """a note as reported by Apple Notes.

    Listing operations only fill in ``title``; the remaining fields stay None
    until the note's metadata or body is fetched.
    """

    title: str
    id: Optional[str] = None
    content: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    folder: Optional[str] = None
    shared: bool = False
    password_protected: bool = False

    @property
    def creation_date(self) -> Optional[datetime]:
        """alias of created, kept for consumers of the older field name."""
        return self.created

    @property
    def modification_date(self) -> Optional[datetime]:
        """alias of modified, kept for consumers of the older field name."""
        return self.modified

    def to_dict(self) -> dict[str, Any]:
        """returns a JSON-serializable dict with both timestamp spellings."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "created": _isoformat(self.created),
            "modified": _isoformat(self.modified),
            "creation_date": _isoformat(self.created),
            "modification_date": _isoformat(self.modified),
            "folder": self.folder,
            "shared": self.shared,
            "password_protected": self.password_protected,
        }


@dataclass
class Attachment:
    """file attachment embedded in a note."""

    id: str
    name: str = ""
    file_path: str = ""
    created: Optional[datetime] = None
    modified: Optional[datetime] = None

    @property
    def content_identifier(self) -> str:
        return self.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "file_path": self.file_path,
            "content_identifier": self.content_identifier,
            "creation_date": _isoformat(self.created),
            "modification_date": _isoformat(self.modified),
        }


@dataclass
class FolderNode:
    """folder in the account's folder tree."""

    name: str
    shared: bool = False
    note_count: int = 0
    children: list["FolderNode"] = field(default_factory=list)

    def walk(self) -> Iterator["FolderNode"]:
        """yields this node and every descendant, depth-first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "shared": self.shared,
            "note_count": self.note_count,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass
class SearchOptions:
    """parameters for advanced note search."""

    query: str
    scope: str = SCOPE_TITLE
    folder: str = ""
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @property
    def has_filters(self) -> bool:
        """True when a folder or date bound narrows the candidate notes."""
        return bool(self.folder) or self.date_from is not None or self.date_to is not None


@dataclass
class Listing(Generic[T]):
    """capped list result that remembers how many entries the bridge returned."""

    items: list[T]
    total: int

    @property
    def truncated(self) -> bool:
        return self.total > len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
