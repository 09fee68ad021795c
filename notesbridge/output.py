"""console output for the notesbridge CLI."""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.text import Text
from rich.tree import Tree

from notesbridge.core.models import FolderNode, Listing


class OutputHandler:
    """prints command results to stdout and messages to stderr."""

    def __init__(
        self,
        quiet: bool = False,
        show_progress: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ) -> None:
        self.quiet = quiet
        self.show_progress = show_progress
        # note text is printed verbatim: no markup, highlighting or :emoji: codes
        self._console = console or Console(
            highlight=False, emoji=False, soft_wrap=True
        )
        self._err_console = err_console or Console(
            stderr=True, highlight=False, emoji=False
        )

    @contextmanager
    def waiting(self, description: str) -> Iterator[None]:
        """shows a spinner while a Notes call is in flight."""
        if not self.show_progress or self.quiet:
            yield
            return

        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self._err_console,
            transient=True,
        )
        progress.start()
        progress.add_task(description, total=None)
        try:
            yield
        finally:
            progress.stop()

    def log_error(self, message: str) -> None:
        """prints error message (always shown, even in quiet mode)."""
        self._err_console.print(Text.assemble(("ERROR:", "red"), " ", message))

    def log_info(self, message: str) -> None:
        """prints info message unless quiet."""
        if self.quiet:
            return
        self._err_console.print(message, markup=False, emoji=False)

    def print_text(self, text: str) -> None:
        self._console.print(text, markup=False, emoji=False)

    def print_json(self, data: Any) -> None:
        self._console.print(json.dumps(data, indent=2), markup=False, emoji=False)

    def print_listing(self, titles: list[str], listing: Listing[Any], noun: str) -> None:
        """prints one title per line and a notice when the listing was capped."""
        if not titles:
            self.log_info(f"No {noun} found.")
            return
        for title in titles:
            self.print_text(title)
        if listing.truncated:
            self.log_info(
                f"\n(Showing first {len(listing.items)} of {listing.total} {noun})"
            )

    def print_tree(self, root: FolderNode) -> None:
        """prints the folder hierarchy as a tree with note counts."""
        tree = Tree(_folder_label(root))
        _add_children(tree, root)
        self._console.print(tree)


def _folder_label(node: FolderNode) -> Text:
    label = Text(f"{node.name} ({node.note_count})")
    if node.shared:
        label.append(" shared", style="cyan")
    return label


def _add_children(tree: Tree, node: FolderNode) -> None:
    for child in node.children:
        branch = tree.add(_folder_label(child))
        _add_children(branch, child)
