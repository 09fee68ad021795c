"""String escaping for values embedded in generated AppleScript."""


def escape(value: str) -> str:
    """
    escapes a string for embedding inside an AppleScript string literal.

    Backslashes are escaped before quotes, since quote escaping inserts
    backslashes of its own.
    """
    return value.replace("\\", "\\\\").replace('"', '\\"')


def format_body(content: str) -> str:
    """escapes note content and converts newlines to <br> for the HTML body."""
    if not content:
        return ""
    return escape(content).replace("\r\n", "\n").replace("\n", "<br>")


def quote(value: str) -> str:
    """returns ``value`` as a complete AppleScript string literal."""
    return f'"{escape(value)}"'
