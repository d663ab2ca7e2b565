"""Data models for highlights and their aggregates."""

from casemark.models.highlight import (
    INTRODUCTION_SECTION,
    Highlight,
    HighlightColor,
    new_highlight_id,
    section_label,
    validate_selection_text,
)
from casemark.models.stats import (
    HeatLevel,
    PopularHighlight,
    SectionHighlightStats,
    SessionHighlightMetrics,
)

__all__ = [
    "INTRODUCTION_SECTION",
    "Highlight",
    "HeatLevel",
    "HighlightColor",
    "PopularHighlight",
    "SectionHighlightStats",
    "SessionHighlightMetrics",
    "new_highlight_id",
    "section_label",
    "validate_selection_text",
]
