"""Locate and wrap the first eligible occurrence of highlight text.

Highlights are anchored by content, not by DOM position: the matcher does a
literal search for the highlight text and accepts the first occurrence that
sits inside visible text outside any existing highlight span. This is a
heuristic that trades anchoring precision for robustness against markup
normalisation. A miss is not an error; callers skip the highlight.
"""

# Pattern: Functional Core (pure functions over strings)

from __future__ import annotations

import html
from bisect import bisect_right

from casemark.markup.tokens import Token, eligible_text_runs, tokenize


def _fits_in_run(runs: list[Token], run_starts: list[int], start: int, end: int) -> bool:
    idx = bisect_right(run_starts, start) - 1
    if idx < 0:
        return False
    run = runs[idx]
    return run.start <= start and end <= run.end


def _first_eligible(
    markup: str, needle: str, runs: list[Token], run_starts: list[int]
) -> int | None:
    pos = markup.find(needle)
    while pos != -1:
        if _fits_in_run(runs, run_starts, pos, pos + len(needle)):
            return pos
        pos = markup.find(needle, pos + 1)
    return None


def locate(markup: str, needle: str) -> tuple[int, int] | None:
    """Find the first eligible occurrence of *needle* in *markup*.

    The raw needle is tried first. If it has no eligible occurrence and its
    HTML-escaped form differs (``&`` -> ``&amp;`` etc.), the escaped form is
    tried, since selected text is decoded while markup stores entities.

    Returns:
        ``(start, end)`` offsets of the matched markup slice, or None.
    """
    if not needle or not markup:
        return None

    runs = eligible_text_runs(tokenize(markup))
    if not runs:
        return None
    run_starts = [run.start for run in runs]

    for candidate in dict.fromkeys((needle, html.escape(needle, quote=False))):
        pos = _first_eligible(markup, candidate, runs, run_starts)
        if pos is not None:
            return pos, pos + len(candidate)
    return None


def find_insertion_point(markup: str, needle: str) -> int | None:
    """Return the index of the first eligible occurrence, or None.

    An occurrence is eligible when it lies within a single text run (never
    inside a tag or its attributes) and is not nested inside an unclosed
    ``<span>``.
    """
    found = locate(markup, needle)
    return found[0] if found is not None else None


def wrap_first_occurrence(
    markup: str,
    needle: str,
    open_tag: str,
    close_tag: str = "</span>",
) -> str | None:
    """Wrap the first eligible occurrence of *needle* in the given tags.

    Returns:
        New markup, or None when *needle* has no eligible occurrence.
    """
    found = locate(markup, needle)
    if found is None:
        return None
    start, end = found
    return markup[:start] + open_tag + markup[start:end] + close_tag + markup[end:]
