"""Markup tokenising, highlight matching and rendering."""

from casemark.markup.matcher import (
    find_insertion_point,
    locate,
    wrap_first_occurrence,
)
from casemark.markup.renderer import (
    HighlightState,
    PopularityTier,
    RenderOptions,
    render_heatmap,
    render_highlights,
    render_section,
)
from casemark.markup.text import classify_miss, visible_text
from casemark.markup.tokens import Token, TokenKind, eligible_text_runs, tokenize

__all__ = [
    "HighlightState",
    "PopularityTier",
    "RenderOptions",
    "Token",
    "TokenKind",
    "classify_miss",
    "eligible_text_runs",
    "find_insertion_point",
    "locate",
    "render_heatmap",
    "render_highlights",
    "render_section",
    "tokenize",
    "visible_text",
    "wrap_first_occurrence",
]
