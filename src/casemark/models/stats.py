"""Derived, read-only aggregates over a highlight collection.

These are rebuilt from scratch on every aggregation pass and never mutated,
so they cannot drift out of date after a highlight is edited or deleted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class HeatLevel(StrEnum):
    """Instructor heat-map bucket for a popular highlight."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very-high"

    @property
    def css_class(self) -> str:
        return f"heat-{self.value}"


@dataclass(frozen=True)
class PopularHighlight:
    """A cluster of similar-text highlights from one or more students.

    Attributes:
        text: Representative text (most frequent exact string in the cluster).
        count: Number of contributing highlights.
        student_ids: Unique contributors, in first-seen order.
        recent_count: Contributing highlights inside the recency window.
        colors: Colour name to number of highlights using it.
        section_index: Section of the earliest contributing highlight.
        section_title: Display title of that section.
        first_highlighted_at: Creation time of the earliest highlight.
        last_highlighted_at: Creation time of the latest highlight.
        heat_score: Ranking score (volume plus a small recency bonus).
    """

    text: str
    count: int
    student_ids: tuple[str, ...]
    recent_count: int
    colors: dict[str, int]
    section_index: int
    section_title: str
    first_highlighted_at: datetime
    last_highlighted_at: datetime
    heat_score: int

    @property
    def student_count(self) -> int:
        return len(self.student_ids)

    def other_student_count(self, viewer_id: str) -> int:
        """Contributors to this cluster other than *viewer_id*."""
        return sum(1 for sid in self.student_ids if sid != viewer_id)


@dataclass(frozen=True)
class SectionHighlightStats:
    """Highlight activity for a single section."""

    section_index: int
    section_title: str
    total_highlights: int
    unique_students: int
    most_popular_text: str
    average_highlights_per_student: float
    recent_activity: int


@dataclass(frozen=True)
class SessionHighlightMetrics:
    """Highlight activity rolled up across every section of a session."""

    total_highlights: int
    unique_students: int
    recent_activity: int
    sections_with_highlights: int
    average_highlights_per_student: float
    popular_highlights: tuple[PopularHighlight, ...] = field(default_factory=tuple)
