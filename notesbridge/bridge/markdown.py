"""Conversion between Apple Notes HTML bodies and Markdown."""

import html as html_lib
import re
from typing import Any, Optional, cast

from markdown_it import MarkdownIt

# (pattern, replacement) pairs applied in order; only the HTML Notes emits
_HTML_TO_MARKDOWN = [
    *(
        (re.compile(rf"<h{level}[^>]*>(.*?)</h{level}>"), "#" * level + r" \1\n")
        for level in range(1, 7)
    ),
    (re.compile(r"<b(?:\s[^>]*)?>(.*?)</b>"), r"**\1**"),
    (re.compile(r"<strong[^>]*>(.*?)</strong>"), r"**\1**"),
    (re.compile(r"<i(?:\s[^>]*)?>(.*?)</i>"), r"*\1*"),
    (re.compile(r"<em[^>]*>(.*?)</em>"), r"*\1*"),
    (re.compile(r'<a[^>]*href="([^"]*)"[^>]*>(.*?)</a>'), r"[\2](\1)"),
    (re.compile(r"<li[^>]*>(.*?)</li>"), r"- \1\n"),
    (re.compile(r"<br\s*/?>"), "\n"),
    (re.compile(r"<p(?:\s[^>]*)?>(.*?)</p>"), r"\1\n\n"),
    (re.compile(r"<[^>]+>"), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
]


# markdown-it tags renamed to the ones Notes uses
_NOTES_TAGS = {"p": "div", "strong": "b", "em": "i", "code": "tt"}


def html_to_markdown(html: str) -> str:
    """
    converts a Notes HTML body to Markdown.

    Best-effort regex substitution over headings, bold, italic, links, list
    items, line breaks and paragraphs; any other tag is dropped. Entities are
    left as they are.

    Args:
        html: note body HTML

    Returns:
        markdown text
    """
    if not html:
        return ""

    result = html
    for pattern, replacement in _HTML_TO_MARKDOWN:
        result = pattern.sub(replacement, result)
    return result.strip()


def markdown_to_html(text: str) -> str:
    """
    converts markdown to Apple Notes-compatible HTML.

    Notes prefers div over p, b/i over strong/em and tt for code; lists are
    rendered as bullet or numbered divs.

    Args:
        text: markdown text

    Returns:
        Apple Notes-compatible HTML on a single line
    """
    md = MarkdownIt()
    md.disable("html_inline")
    md.disable("html_block")

    renderer: Any = md.renderer
    original_render_token = renderer.renderToken

    # one entry per open list: the last number used, or None for bullets
    counters: list[Optional[int]] = []

    def render_list_token(tag: str, nesting: int) -> str:
        if tag in ("ul", "ol"):
            if nesting == 1:
                counters.append(0 if tag == "ol" else None)
            elif counters:
                counters.pop()
            return ""
        if nesting != 1:
            return "</div>"
        number = counters[-1] if counters else None
        if number is None:
            return "<div>•\t"
        counters[-1] = number + 1
        return f"<div>{number + 1}.\t"

    def custom_render_token(tokens: Any, idx: int, options: Any, env: Any) -> str:
        token = tokens[idx]

        if token.tag in ("ul", "ol", "li"):
            return render_list_token(token.tag, token.nesting)

        token.tag = _NOTES_TAGS.get(token.tag, token.tag)

        return cast(str, original_render_token(tokens, idx, options, env))

    renderer.renderToken = custom_render_token

    def render_code_block(tokens: Any, idx: int, _options: Any, _env: Any) -> str:
        escaped = html_lib.escape(tokens[idx].content.rstrip("\n"))
        return f"<pre>{escaped}</pre>"

    renderer.rules["code_block"] = render_code_block
    renderer.rules["fence"] = render_code_block

    def render_code_inline(tokens: Any, idx: int, _options: Any, _env: Any) -> str:
        return f"<tt>{html_lib.escape(tokens[idx].content)}</tt>"

    renderer.rules["code_inline"] = render_code_inline

    rendered = cast(str, md.render(text))
    # newlines between block tags would turn into extra <br> in the note body
    return re.sub(r">\s*\n\s*<", "><", rendered).strip()
