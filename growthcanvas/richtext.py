"""
Pseudo-markdown support for text widgets.

While editing, text blocks hold one ``<div>`` per line with markdown-like
markers; on blur those lines are rendered to HTML, and on focus the HTML is
reverted to editable lines again.
"""

import html
import re
from typing import List, Optional

from bs4 import BeautifulSoup, NavigableString, Tag


_INLINE_RULES = [
    (re.compile(r"\*\*(.*?)\*\*"), r"<b>\1</b>"),
    (re.compile(r"__(.*?)__"), r"<u>\1</u>"),
    (re.compile(r"\*(.*?)\*"), r"<i>\1</i>"),
    (re.compile(r"~~(.*?)~~"), r"<s>\1</s>"),
]

_HEADING_RE = re.compile(r"^(#{1,3})\s+(.*)", re.DOTALL)
_BULLET_RE = re.compile(r"^[-*]\s+(.*)", re.DOTALL)
_FIRST_NUMBER_RE = re.compile(r"^1\.\s+(.*)", re.DOTALL)
_NUMBER_RE = re.compile(r"^\d+\.\s+(.*)", re.DOTALL)

_INLINE_MARKERS = {
    "b": "**", "strong": "**",
    "i": "*", "em": "*",
    "u": "__",
    "s": "~~", "strike": "~~",
}


def format_inline(text: str) -> str:
    """Escape a line and apply bold, underline, italic and strike markers."""
    result = html.escape(text, quote=False)
    for pattern, replacement in _INLINE_RULES:
        result = pattern.sub(replacement, result)
    return result


def markdown_to_html(fragment: str) -> str:
    """
    Render pseudo-markdown lines to HTML.

    Each top-level node of the fragment is one line. Supported markers are
    ``#``/``##``/``###`` headings, ``-``/``*`` bullets and ``1.`` numbered
    lists (later numbers continue an open list), plus the inline markers of
    ``format_inline``.

    Args:
        fragment: Editor HTML, typically a sequence of ``<div>`` lines

    Returns:
        Rendered HTML, or the input unchanged when nothing was produced
    """
    soup = BeautifulSoup(fragment, "html.parser")
    parts: List[str] = []
    list_items: List[str] = []
    list_type: Optional[str] = None

    def flush_list():
        nonlocal list_type
        if list_items and list_type:
            items = "".join(f"<li>{format_inline(item)}</li>" for item in list_items)
            parts.append(f"<{list_type}>{items}</{list_type}>")
        list_items.clear()
        list_type = None

    for node in list(soup.contents):
        text = node.get_text().strip() if isinstance(node, Tag) else str(node).strip()
        if not text:
            if isinstance(node, Tag) and node.name == "br":
                flush_list()
                parts.append("<br>")
            continue

        heading = _HEADING_RE.match(text)
        if heading:
            flush_list()
            level = len(heading.group(1))
            parts.append(f"<h{level}>{format_inline(heading.group(2))}</h{level}>")
            continue

        item_type, content = None, None
        bullet = _BULLET_RE.match(text)
        if bullet:
            item_type, content = "ul", bullet.group(1)
        elif _FIRST_NUMBER_RE.match(text):
            item_type, content = "ol", _FIRST_NUMBER_RE.match(text).group(1)
        elif list_type and _NUMBER_RE.match(text):
            item_type, content = "ol", _NUMBER_RE.match(text).group(1)

        if item_type:
            if list_type and list_type != item_type:
                flush_list()
            list_type = item_type
            list_items.append(content)
        else:
            flush_list()
            parts.append(f"<div>{format_inline(text)}</div>")

    flush_list()
    return "".join(parts) or fragment


def _inline_markdown(node) -> str:
    if isinstance(node, NavigableString):
        return html.escape(str(node), quote=False)
    if not isinstance(node, Tag):
        return ""
    if node.name == "br":
        return "<br>"
    content = "".join(_inline_markdown(child) for child in node.children)
    marker = _INLINE_MARKERS.get(node.name)
    return f"{marker}{content}{marker}" if marker else content


def _block_markdown(node) -> str:
    if isinstance(node, NavigableString):
        text = str(node)
        return f"<div>{html.escape(text, quote=False)}</div>" if text.strip() else ""
    if not isinstance(node, Tag):
        return ""

    if node.name in ("ul", "ol"):
        lines = []
        for number, item in enumerate(node.find_all("li", recursive=False), start=1):
            prefix = "- " if node.name == "ul" else f"{number}. "
            inner = "".join(_inline_markdown(child) for child in item.children)
            lines.append(f"<div>{prefix}{inner}</div>")
        return "".join(lines)

    if node.name in ("h1", "h2", "h3"):
        hashes = "#" * int(node.name[1])
        inner = "".join(_inline_markdown(child) for child in node.children)
        return f"<div>{hashes} {inner}</div>"

    if node.name in ("div", "p"):
        inner = "".join(_block_markdown(child) for child in node.children)
        return f"<div>{inner}</div>"

    inner = "".join(_inline_markdown(child) for child in node.children)
    return f"<div>{inner}</div>" if inner.strip() else ""


def html_to_markdown(fragment: str) -> str:
    """Revert rendered HTML to editable pseudo-markdown ``<div>`` lines."""
    soup = BeautifulSoup(fragment, "html.parser")
    return "".join(_block_markdown(node) for node in soup.contents)
