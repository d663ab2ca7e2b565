"""Flat tokenisation of serialised markup.

The matcher never parses markup into a tree: highlights are re-anchored by
literal text search, and the only structural question it asks is "is this
position inside visible text, outside any open span?". A flat list of
TEXT / TAG tokens with source offsets answers that without index arithmetic
over raw slices.
"""

# Pattern: Functional Core (pure functions over strings)

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

# Elements whose content is never visible text. The whole element becomes a
# single opaque TAG token so that nothing inside it can be matched.
_OPAQUE_TAGS = frozenset(("script", "style", "noscript", "template"))


class TokenKind(StrEnum):
    TEXT = "text"
    TAG = "tag"


@dataclass(frozen=True, slots=True)
class Token:
    """A run of markup with its ``[start, end)`` offsets in the source.

    Attributes:
        kind: TEXT for character data, TAG for tags, comments and opaque
            elements.
        start: Offset of the first character.
        end: Offset one past the last character.
        name: Lower-cased tag name (``""`` for text and comments).
        closing: True for ``</name>`` tags.
    """

    kind: TokenKind
    start: int
    end: int
    name: str = ""
    closing: bool = False

    @property
    def is_span_open(self) -> bool:
        return self.kind is TokenKind.TAG and self.name == "span" and not self.closing

    @property
    def is_span_close(self) -> bool:
        return self.kind is TokenKind.TAG and self.name == "span" and self.closing


def _tag_name(tag_content: str) -> tuple[str, bool]:
    """Extract ``(name, closing)`` from tag content without ``<`` and ``>``.

    Examples:
        "span class='x'" -> ("span", False)
        "/span" -> ("span", True)
        "br/" -> ("br", False)
    """
    closing = tag_content.startswith("/")
    parts = tag_content.lstrip("/").split()
    name = parts[0] if parts else ""
    return name.rstrip("/").lower(), closing


def _scan_tag(markup: str, i: int) -> tuple[Token, int] | None:
    """Scan a tag, comment or opaque element starting at ``markup[i] == '<'``.

    Returns ``(token, next_position)`` or None when the ``<`` does not open a
    tag, in which case it is character data.
    """
    if markup.startswith("<!--", i):
        close = markup.find("-->", i + 4)
        end = len(markup) if close == -1 else close + 3
        return Token(TokenKind.TAG, i, end), end

    # "a <3 b" or "x < y": not a tag
    first = markup[i + 1 : i + 2]
    if not (first.isalpha() or first in ("/", "!")):
        return None

    tag_end = markup.find(">", i)
    if tag_end == -1:
        return None

    name, closing = _tag_name(markup[i + 1 : tag_end])
    if not name:
        return None

    end = tag_end + 1
    if name in _OPAQUE_TAGS and not closing:
        close_tag = f"</{name}"
        close_pos = markup.lower().find(close_tag, end)
        if close_pos != -1:
            close_end = markup.find(">", close_pos)
            end = len(markup) if close_end == -1 else close_end + 1
    return Token(TokenKind.TAG, i, end, name=name, closing=closing), end


def tokenize(markup: str) -> list[Token]:
    """Split *markup* into consecutive TEXT and TAG tokens.

    Tokens cover the input exactly: concatenating ``markup[t.start:t.end]``
    for every token reproduces *markup*. A ``<`` that does not start a tag is
    character data.
    """
    tokens: list[Token] = []
    text_start: int | None = None
    i = 0
    n = len(markup)

    while i < n:
        if markup[i] == "<":
            scanned = _scan_tag(markup, i)
            if scanned is not None:
                if text_start is not None:
                    tokens.append(Token(TokenKind.TEXT, text_start, i))
                    text_start = None
                token, i = scanned
                tokens.append(token)
                continue
        if text_start is None:
            text_start = i
        i += 1

    if text_start is not None:
        tokens.append(Token(TokenKind.TEXT, text_start, n))
    return tokens


def eligible_text_runs(tokens: list[Token]) -> list[Token]:
    """Return TEXT tokens that are not inside an unclosed ``<span>``.

    Mirrors the ``lastIndexOf('<span') <= lastIndexOf('</span>')`` rule:
    a text run is eligible when no span tag precedes it, or when the most
    recent span tag before it is a closing one.
    """
    runs: list[Token] = []
    inside_span = False
    for token in tokens:
        if token.is_span_open:
            inside_span = True
        elif token.is_span_close:
            inside_span = False
        elif token.kind is TokenKind.TEXT and not inside_span:
            runs.append(token)
    return runs
