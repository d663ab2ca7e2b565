"""Visible-text extraction used to explain render misses."""

from __future__ import annotations

import re
from typing import Literal

from selectolax.lexbor import LexborHTMLParser

from casemark.markup.matcher import locate

# Runs of whitespace, nbsp included, collapse to one space as the browser renders them
_WHITESPACE_RUN = re.compile(r"[\s\u00a0]+")

_STRIP_TAGS = ["script", "style", "noscript", "template"]

MissReason = Literal["placed", "content drift", "straddles markup", "nested"]


def visible_text(markup: str) -> str:
    """Return the reader-visible text of *markup* with whitespace collapsed."""
    if not markup:
        return ""
    tree = LexborHTMLParser(markup)
    tree.strip_tags(_STRIP_TAGS)
    root = tree.body if tree.body is not None else tree.root
    if root is None:
        return ""
    return _WHITESPACE_RUN.sub(" ", root.text(deep=True, separator="", strip=False))


def classify_miss(markup: str, needle: str) -> MissReason:
    """Explain why *needle* could (or could not) be placed in *markup*.

    - ``placed``: an eligible occurrence exists.
    - ``nested``: the text occurs in the markup, but only inside an existing
      span or a tag.
    - ``straddles markup``: the text is visible but crosses element
      boundaries, so no single text run contains it.
    - ``content drift``: the text is no longer in the content at all.
    """
    if locate(markup, needle) is not None:
        return "placed"
    if needle in markup:
        return "nested"
    if _WHITESPACE_RUN.sub(" ", needle) in visible_text(markup):
        return "straddles markup"
    return "content drift"
