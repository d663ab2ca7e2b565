"""Cross-student highlight clustering and popularity metrics."""

from casemark.analysis.aggregate import (
    aggregate_highlights,
    heat_level,
    heat_score,
    popular_for_section,
    section_stats,
    session_metrics,
)
from casemark.analysis.similarity import jaccard, texts_similar, token_set

__all__ = [
    "aggregate_highlights",
    "heat_level",
    "heat_score",
    "jaccard",
    "popular_for_section",
    "section_stats",
    "session_metrics",
    "texts_similar",
    "token_set",
]
