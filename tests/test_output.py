"""tests for CLI output."""

import io
import json
from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console

from notesbridge.core.models import FolderNode, Listing
from notesbridge.output import OutputHandler


def _handler(quiet: bool = False, show_progress: bool = False) -> tuple[
    OutputHandler, io.StringIO, io.StringIO
]:
    out, err = io.StringIO(), io.StringIO()
    handler = OutputHandler(
        quiet=quiet,
        show_progress=show_progress,
        console=Console(file=out, width=200, highlight=False, soft_wrap=True),
        err_console=Console(file=err, width=200, highlight=False),
    )
    return handler, out, err


def test_output_handler_defaults() -> None:
    handler = OutputHandler()
    assert handler.quiet is False
    assert handler.show_progress is False


def test_print_text_keeps_brackets() -> None:
    """text is printed without markup interpretation."""
    handler, out, _ = _handler()
    handler.print_text("[todo] buy milk")
    assert out.getvalue() == "[todo] buy milk\n"


def test_print_json() -> None:
    handler, out, _ = _handler()
    handler.print_json({"id": "n1", "shared": False})
    assert json.loads(out.getvalue()) == {"id": "n1", "shared": False}


def test_log_error_shown_when_quiet() -> None:
    handler, _, err = _handler(quiet=True)
    handler.log_error("boom")
    assert err.getvalue() == "ERROR: boom\n"


def test_log_info_suppressed_when_quiet() -> None:
    handler, _, err = _handler(quiet=True)
    handler.log_info("hello")
    assert err.getvalue() == ""


def test_print_listing() -> None:
    handler, out, err = _handler()
    handler.print_listing(["a", "b"], Listing(items=["a", "b"], total=2), "notes")
    assert out.getvalue() == "a\nb\n"
    assert err.getvalue() == ""


def test_print_listing_truncated_notice() -> None:
    handler, out, err = _handler()
    handler.print_listing(["a"], Listing(items=["a"], total=150), "notes")
    assert out.getvalue() == "a\n"
    assert "(Showing first 1 of 150 notes)" in err.getvalue()


def test_print_listing_empty() -> None:
    handler, out, err = _handler()
    handler.print_listing([], Listing(items=[], total=0), "folders")
    assert out.getvalue() == ""
    assert "No folders found." in err.getvalue()


def test_print_tree() -> None:
    root = FolderNode(
        name="iCloud",
        children=[
            FolderNode(
                name="Work",
                note_count=3,
                shared=True,
                children=[FolderNode(name="Projects", note_count=1)],
            )
        ],
    )
    handler, out, _ = _handler()
    handler.print_tree(root)

    text = out.getvalue()
    assert "iCloud (0)" in text
    assert "Work (3) shared" in text
    assert "Projects (1)" in text


def test_waiting_without_progress_does_not_start_spinner() -> None:
    with patch("notesbridge.output.Progress") as mock_progress_class:
        handler, _, _ = _handler()
        with handler.waiting("Working..."):
            pass
    mock_progress_class.assert_not_called()


def test_waiting_shows_spinner_when_progress_enabled() -> None:
    with patch("notesbridge.output.Progress") as mock_progress_class:
        mock_progress = MagicMock()
        mock_progress_class.return_value = mock_progress

        handler, _, _ = _handler(show_progress=True)
        with handler.waiting("Working..."):
            mock_progress.start.assert_called_once()

    mock_progress.add_task.assert_called_once_with("Working...", total=None)
    mock_progress.stop.assert_called_once()


def test_waiting_stops_spinner_on_error() -> None:
    with patch("notesbridge.output.Progress") as mock_progress_class:
        mock_progress = MagicMock()
        mock_progress_class.return_value = mock_progress

        handler, _, _ = _handler(show_progress=True)
        try:
            with handler.waiting("Working..."):
                raise RuntimeError("fail")
        except RuntimeError:
            pass

    mock_progress.stop.assert_called_once()


def test_waiting_quiet_suppresses_spinner() -> None:
    with patch("notesbridge.output.Progress") as mock_progress_class:
        handler, _, _ = _handler(quiet=True, show_progress=True)
        with handler.waiting("Working..."):
            pass
    mock_progress_class.assert_not_called()


def test_print_text_keeps_emoji_codes() -> None:
    """:name: sequences in note text are not replaced with emoji."""
    out = io.StringIO()
    handler = OutputHandler(
        console=Console(file=out, highlight=False, soft_wrap=True),
    )
    handler.print_text("Status :thumbs_up: done")
    assert out.getvalue() == "Status :thumbs_up: done\n"


def test_default_consoles_keep_emoji_codes(capsys: pytest.CaptureFixture[str]) -> None:
    handler = OutputHandler()
    handler.print_text(":thumbs_up:")
    handler.log_info(":smile: info")
    handler.log_error(":x: failed")

    captured = capsys.readouterr()
    assert captured.out == ":thumbs_up:\n"
    assert ":smile: info" in captured.err
    assert ":x: failed" in captured.err
