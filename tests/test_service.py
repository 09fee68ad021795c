"""tests for the notes service."""

import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import pytest

from notesbridge.bridge.executor import Deadline
from notesbridge.config import Settings
from notesbridge.core.errors import (
    AppNotRunningError,
    FolderNotFoundError,
    InvalidInputError,
    NoteNotFoundError,
    ParseError,
    PermissionDeniedError,
    ScriptCancelled,
    ScriptExecutionError,
    ScriptTimeoutError,
)
from notesbridge.core.models import SearchOptions
from notesbridge.service import OPERATIONS, NotesService

Response = Union[str, BaseException]


class FakeExecutor:
    """records scripts and replays canned responses."""

    def __init__(self, *responses: Response) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, Optional[Deadline], bool]] = []

    def execute(
        self,
        script: str,
        deadline: Optional[Deadline] = None,
        *,
        source_output: bool = False,
    ) -> str:
        self.calls.append((script, deadline, source_output))
        response = self.responses.pop(0) if self.responses else ""
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def script(self) -> str:
        return self.calls[-1][0]


def _failure(stderr: str) -> subprocess.CalledProcessError:
    return subprocess.CalledProcessError(1, ["osascript"], output="", stderr=stderr)


def _service(*responses: Response, **settings: object) -> NotesService:
    return NotesService(FakeExecutor(*responses), Settings(**settings))  # type: ignore[arg-type]


def _executor(service: NotesService) -> FakeExecutor:
    assert isinstance(service.executor, FakeExecutor)
    return service.executor


def test_create_note_returns_note_with_id() -> None:
    service = _service("x-coredata://new\n")
    note = service.create_note("Groceries", "milk\neggs", ["home"])

    assert note.id == "x-coredata://new"
    assert note.title == "Groceries"
    assert note.content == "milk\neggs"
    assert note.tags == ["home"]
    assert note.created is not None
    assert note.created == note.modified
    assert 'body:"milk<br>eggs"' in _executor(service).script


def test_create_note_uses_account() -> None:
    service = _service("id", account="Work")
    service.create_note("T", "")
    assert 'tell account "Work"' in _executor(service).script


def test_create_note_requires_title() -> None:
    service = _service()
    with pytest.raises(InvalidInputError):
        service.create_note("  ", "body")
    assert not _executor(service).calls


def test_create_note_in_missing_folder() -> None:
    service = _service(_failure("execution error: folder not found: Nope (-2700)"))
    with pytest.raises(FolderNotFoundError):
        service.create_note("T", "body", folder="Nope")


def test_search_notes_returns_titles() -> None:
    service = _service("Meeting notes|||Team meeting\n")
    notes = service.search_notes("meeting")

    assert [note.title for note in notes] == ["Meeting notes", "Team meeting"]
    assert all(note.id is None for note in notes)
    assert notes.total == 2


def test_search_notes_caps_results() -> None:
    output = "|||".join(f"Note {i}" for i in range(150))
    notes = _service(output).search_notes("Note")
    assert len(notes) == 100
    assert notes.total == 150
    assert notes.truncated


def test_search_notes_respects_result_limit_setting() -> None:
    notes = _service("a|||b|||c", result_limit=2).search_notes("x")
    assert [note.title for note in notes] == ["a", "b"]


def test_search_notes_advanced_body_filtered() -> None:
    service = _service("Budget 2024")
    options = SearchOptions(
        "budget", scope="body", folder="Work", date_from=datetime(2024, 1, 1)
    )
    notes = service.search_notes_advanced(options)

    assert [note.title for note in notes] == ["Budget 2024"]
    script = _executor(service).script
    assert "notes of targetFolder" in script
    assert 'body of n contains "budget"' in script


def test_search_notes_advanced_invalid_scope_runs_nothing() -> None:
    service = _service()
    with pytest.raises(InvalidInputError):
        service.search_notes_advanced(SearchOptions("q", scope="tags"))
    assert not _executor(service).calls


def test_search_notes_advanced_inverted_range_runs_nothing() -> None:
    service = _service()
    options = SearchOptions(
        "q", date_from=datetime(2024, 2, 1), date_to=datetime(2024, 1, 1)
    )
    with pytest.raises(InvalidInputError):
        service.search_notes_advanced(options)
    assert not _executor(service).calls


def test_get_note_content_returns_body() -> None:
    service = _service("<div>Hello</div>\n")
    assert service.get_note_content("Hello") == "<div>Hello</div>"


def test_get_note_content_not_found() -> None:
    service = _service(
        _failure("execution error: note not found: Missing (-2700)\n")
    )
    with pytest.raises(NoteNotFoundError):
        service.get_note_content("Missing")


def test_get_note_metadata_uses_source_output() -> None:
    service = _service(
        '{id:"n1", name:"T", '
        'creation date:date "Monday, January 1, 2024 at 10:00:00 AM", '
        'modification date:date "Monday, January 1, 2024 at 11:00:00 AM", '
        'container:"Notes", shared:false, password protected:false}\n'
    )
    note = service.get_note_metadata("T")

    assert note.id == "n1"
    assert note.folder == "Notes"
    assert note.modified == datetime(2024, 1, 1, 11, 0, 0)
    assert _executor(service).calls[-1][2] is True


def test_get_note_metadata_malformed_output() -> None:
    with pytest.raises(ParseError):
        _service("garbage").get_note_metadata("T")


def test_update_note() -> None:
    service = _service("")
    service.update_note("T", 'new "body"')
    assert 'set body of theNote to "new \\"body\\""' in _executor(service).script


def test_delete_note_app_not_running() -> None:
    service = _service(_failure("execution error: Notes got an error: (-1728)"))
    with pytest.raises(AppNotRunningError):
        service.delete_note("T")


def test_permission_denied() -> None:
    service = _service(
        _failure("execution error: Not authorized to send Apple events to Notes. (-1743)")
    )
    with pytest.raises(PermissionDeniedError):
        service.list_folders()


def test_unclassified_failure_keeps_diagnostics() -> None:
    service = _service(_failure("execution error: weird failure (-2741)\n"))
    with pytest.raises(ScriptExecutionError) as exc_info:
        service.delete_note("T")

    assert exc_info.value.diagnostics == "execution error: weird failure (-2741)\n"
    assert "weird failure" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, subprocess.CalledProcessError)


def test_timeout_is_classified() -> None:
    service = _service(subprocess.TimeoutExpired(["osascript"], 10))
    with pytest.raises(ScriptTimeoutError):
        service.list_folders()


def test_cancel_is_classified_as_timeout() -> None:
    service = _service(ScriptCancelled("cancelled"))
    with pytest.raises(ScriptTimeoutError):
        service.get_note_content("T")


def test_default_deadline_from_settings() -> None:
    service = _service("", script_timeout=5.0)
    service.list_folders()
    deadline = _executor(service).calls[-1][1]
    assert deadline is not None
    remaining = deadline.remaining()
    assert remaining is not None
    assert 14.0 < remaining <= 15.0


def test_caller_deadline_is_passed_through() -> None:
    service = _service("")
    deadline = Deadline(3)
    service.list_folders(deadline=deadline)
    assert _executor(service).calls[-1][1] is deadline


def test_list_folders() -> None:
    folders = _service("Notes|||Work|||Personal\n").list_folders()
    assert folders.items == ["Notes", "Work", "Personal"]


def test_get_recent_notes_limit() -> None:
    notes = _service("a|||b|||c|||d").get_recent_notes(2)
    assert [note.title for note in notes] == ["a", "b"]
    assert notes.total == 4


def test_get_recent_notes_non_positive_limit_uses_setting() -> None:
    notes = _service("a|||b|||c", result_limit=2).get_recent_notes(0)
    assert len(notes) == 2


def test_get_notes_in_folder() -> None:
    service = _service("One|||Two")
    notes = service.get_notes_in_folder("Work/Projects")
    assert [note.title for note in notes] == ["One", "Two"]
    assert 'folder "Projects" of folder "Work"' in _executor(service).script


def test_get_notes_in_folder_requires_folder() -> None:
    with pytest.raises(InvalidInputError):
        _service().get_notes_in_folder("")


def test_create_folder_with_parent() -> None:
    service = _service("")
    service.create_folder("2024", "Archive")
    assert "make new folder at parentFolder" in _executor(service).script


def test_move_note() -> None:
    service = _service("")
    service.move_note("T", "Archive")
    assert "move theNote to targetFolder" in _executor(service).script


def test_move_note_requires_folder() -> None:
    with pytest.raises(InvalidInputError):
        _service().move_note("T", "")


def test_get_folder_hierarchy() -> None:
    service = _service(
        '{name:"iCloud", shared:false, noteCount:0, children:{'
        '{name:"Work", shared:false, noteCount:2, children:{}}}}\n'
    )
    root = service.get_folder_hierarchy()

    assert root.name == "iCloud"
    assert root.children[0].name == "Work"
    assert root.children[0].note_count == 2
    assert _executor(service).calls[-1][2] is True


def test_get_note_attachments() -> None:
    service = _service(
        '{id:"a1", name:"img.png", contents:"/tmp/img.png", '
        'creation date:date "Monday, January 1, 2024 at 10:00:00 AM", '
        'modification date:date "Monday, January 1, 2024 at 10:00:00 AM"}\n'
    )
    attachments = service.get_note_attachments("T")
    assert len(attachments) == 1
    assert attachments[0].file_path == "/tmp/img.png"


def test_get_attachment_content(tmp_path: Path) -> None:
    path = tmp_path / "img.png"
    path.write_bytes(b"\x89PNG data")
    assert _service().get_attachment_content(str(path)) == b"\x89PNG data"


def test_get_attachment_content_too_large(tmp_path: Path) -> None:
    path = tmp_path / "big.bin"
    path.write_bytes(b"x" * 20)
    with pytest.raises(InvalidInputError):
        _service().get_attachment_content(str(path), max_size=10)


def test_get_attachment_content_missing_file(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        _service().get_attachment_content(str(tmp_path / "missing.png"))


def test_export_note_markdown() -> None:
    service = _service("<h1>Title</h1><div>Some <b>bold</b> text</div>\n")
    assert service.export_note_markdown("Title") == "# Title\nSome **bold** text"


def test_export_note_text() -> None:
    service = _service("Title\nSome text\n")
    assert service.export_note_text("Title") == "Title\nSome text"
    assert "return plaintext of theNote" in _executor(service).script


def test_invoke_runs_operation() -> None:
    service = _service("Work|||Home")
    result = service.invoke("list_folders")
    assert result.items == ["Work", "Home"]


def test_invoke_passes_arguments_and_deadline() -> None:
    service = _service("<div>x</div>")
    deadline = Deadline(5)
    assert service.invoke("get_note_content", deadline=deadline, title="T") == (
        "<div>x</div>"
    )
    assert _executor(service).calls[-1][1] is deadline


def test_invoke_unknown_operation() -> None:
    with pytest.raises(InvalidInputError):
        _service().invoke("format_disk")


def test_invoke_bad_arguments() -> None:
    service = _service()
    with pytest.raises(InvalidInputError):
        service.invoke("get_note_content", name="T")
    with pytest.raises(InvalidInputError):
        service.invoke("get_note_content")
    assert not _executor(service).calls


def test_operations_are_methods() -> None:
    for operation in OPERATIONS:
        assert callable(getattr(NotesService, operation))
