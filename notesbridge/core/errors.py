"""Error kinds for Apple Notes operations and classification of osascript diagnostics."""

import re
import subprocess

# matches "note" followed by anything, then "not found" as a phrase
NOTE_NOT_FOUND_PATTERN = re.compile(r"note.*?\bnot\s+found\b", re.IGNORECASE)
FOLDER_NOT_FOUND_PATTERN = re.compile(r"folder.*?\bnot\s+found\b", re.IGNORECASE)

# osascript fault codes: -1728 can't get object/app not answering, -1743 not authorized
APP_NOT_RUNNING_CODE = "-1728"
PERMISSION_DENIED_CODE = "-1743"


class NotesError(Exception):
    """base class for errors reported by notesbridge."""


class NoteNotFoundError(NotesError):
    """the named note does not exist."""


class FolderNotFoundError(NotesError):
    """the named folder does not exist."""


class AppNotRunningError(NotesError):
    """Notes did not answer the Apple event."""


class PermissionDeniedError(NotesError):
    """automation access to Notes was refused."""


class ScriptTimeoutError(NotesError):
    """script did not finish before its deadline."""


class InvalidInputError(NotesError, ValueError):
    """caller supplied a missing or malformed argument."""


class ParseError(NotesError):
    """bridge output did not have the expected structure."""


class ScriptExecutionError(NotesError):
    """unclassified script failure; keeps the diagnostic text."""

    def __init__(self, message: str, diagnostics: str = "") -> None:
        super().__init__(message)
        self.diagnostics = diagnostics


class ScriptCancelled(Exception):
    """raised by the executor when the caller cancels its deadline."""


def classify(diagnostics: str, error: BaseException) -> BaseException:
    """
    maps osascript diagnostics onto a domain error.

    Checks run in order and the first match wins, since diagnostic text can
    match more than one pattern.

    Args:
        diagnostics: stderr captured from osascript
        error: exception raised while executing the script

    Returns:
        a domain error instance, or ``error`` itself when nothing matches
    """
    if isinstance(error, subprocess.TimeoutExpired):
        return ScriptTimeoutError(
            f"AppleScript execution timeout after {error.timeout:g}s"
        )
    if isinstance(error, ScriptCancelled):
        return ScriptTimeoutError("AppleScript execution cancelled")

    if not diagnostics:
        return error

    lowered = diagnostics.lower()

    if APP_NOT_RUNNING_CODE in lowered or "event not handled" in lowered:
        return AppNotRunningError(diagnostics.strip())

    if "not allowed" in lowered or PERMISSION_DENIED_CODE in lowered:
        return PermissionDeniedError(diagnostics.strip())

    if NOTE_NOT_FOUND_PATTERN.search(diagnostics):
        return NoteNotFoundError(diagnostics.strip())

    if FOLDER_NOT_FOUND_PATTERN.search(diagnostics):
        return FolderNotFoundError(diagnostics.strip())

    return error


def describe(error: BaseException) -> str:
    """returns a user-facing message for an error."""
    if isinstance(error, NoteNotFoundError):
        return "Note not found in Apple Notes. Please check the title and try again."
    if isinstance(error, FolderNotFoundError):
        return "Folder not found in Apple Notes. Please check the folder name and try again."
    if isinstance(error, AppNotRunningError):
        return "Apple Notes app is not running. Please open the Notes app and try again."
    if isinstance(error, PermissionDeniedError):
        return (
            "Permission denied to access Notes. Please grant access in "
            "System Settings > Privacy & Security > Automation."
        )
    if isinstance(error, ScriptTimeoutError):
        return "Apple Notes is not responding (timeout). Please try again."
    if isinstance(error, InvalidInputError):
        return f"Invalid input: {error}"
    if isinstance(error, ScriptExecutionError) and error.diagnostics:
        return f"An error occurred: {error.diagnostics.strip()}"
    return f"An error occurred: {error}"
