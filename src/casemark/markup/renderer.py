"""Render highlights into section markup.

Transforms source markup plus highlight lists into markup with ``<span>``
wrappers. Rendering is a pure function of its inputs, so the host can simply
recompute it on every re-render instead of patching the DOM.

Architecture:
    Two ordered passes over the markup, each applying the matcher once per
    highlight:

    1. Popular pass: cross-student clusters, filtered to those with enough
       *other* contributors, longest text first, capped, styled by tier.
    2. Personal pass: the viewer's highlights plus the temp highlight,
       longest text first, styled by colour and tagged with the highlight id.

    Longest-first ordering stops a short phrase from claiming part of a
    longer one. Text that is already wrapped is never eligible again, so
    overlapping highlights are never nested.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING

from casemark.analysis.aggregate import aggregate_highlights, heat_level
from casemark.config import Settings, get_settings
from casemark.markup.matcher import wrap_first_occurrence
from casemark.markup.text import classify_miss

if TYPE_CHECKING:
    from collections.abc import Sequence

    from casemark.models.highlight import Highlight
    from casemark.models.stats import PopularHighlight

logger = logging.getLogger(__name__)


class PopularityTier(StrEnum):
    """Styling tier for a popular highlight, chosen by classmate count."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def css_class(self) -> str:
        match self:
            case PopularityTier.LOW:
                return "popular-tier-low"
            case PopularityTier.MEDIUM:
                return "popular-tier-medium"
            case PopularityTier.HIGH:
                return "popular-tier-high"


@dataclass(frozen=True)
class RenderOptions:
    """Popular-overlay settings for a render call."""

    show_popular: bool = True
    min_students: int = 2
    max_popular: int = 10
    opacity: float = 0.6
    tier_medium: int = 3
    tier_high: int = 5

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RenderOptions:
        popular = (settings or get_settings()).popular
        return cls(
            show_popular=popular.enabled,
            min_students=popular.min_students,
            max_popular=popular.max_rendered,
            opacity=popular.opacity,
            tier_medium=popular.tier_medium,
            tier_high=popular.tier_high,
        )

    def tier_for(self, classmates: int) -> PopularityTier:
        if classmates >= self.tier_high:
            return PopularityTier.HIGH
        if classmates >= self.tier_medium:
            return PopularityTier.MEDIUM
        return PopularityTier.LOW


@dataclass(frozen=True)
class HighlightState:
    """Everything the host knows about highlights for one rendered section.

    Attributes:
        personal: The viewer's own highlights.
        temp: The unconfirmed highlight from an in-progress selection.
        session_highlights: Every student's highlights for the session; the
            popular overlay is derived from these.
        viewer_id: The reader's id, excluded from classmate counts.
        section_index: Section being rendered.
        show_popular: Overrides ``RenderOptions.show_popular`` when set.
    """

    personal: Sequence[Highlight] = ()
    temp: Highlight | None = None
    session_highlights: Sequence[Highlight] = ()
    viewer_id: str = ""
    section_index: int = 0
    show_popular: bool | None = None


# ---------------------------------------------------------------------------
# Span builders
# ---------------------------------------------------------------------------


def _attr(value: object) -> str:
    return html.escape(str(value), quote=True)


def _personal_open_tag(highlight: Highlight) -> str:
    return (
        f'<span class="highlight {highlight.color.css_class}" '
        f'data-highlight-id="{_attr(highlight.id)}">'
    )


def _popular_open_tag(classmates: int, options: RenderOptions) -> str:
    plural = "" if classmates == 1 else "s"
    tooltip = f"{classmates} classmate{plural} highlighted this"
    tier = options.tier_for(classmates)
    return (
        f'<span class="popular-highlight {tier.css_class}" '
        f'title="{tooltip}" '
        f'data-popular-count="{classmates}" '
        f'style="opacity: {options.opacity}">'
    )


def _heat_open_tag(popular: PopularHighlight, index: int) -> str:
    students = popular.student_count
    parts = [
        f"{students} student{'' if students == 1 else 's'}",
        f"{popular.count} highlight{'' if popular.count == 1 else 's'}",
    ]
    if popular.recent_count > 0:
        parts.append(f"{popular.recent_count} recent")
    tooltip = _attr(" · ".join(parts))
    level = heat_level(popular.count, popular.recent_count)
    return (
        f'<span class="heat-highlight {level.css_class}" '
        f'data-tooltip="{tooltip}" data-highlight-index="{index}" '
        f'title="{tooltip}">'
    )


def _wrap_or_skip(markup: str, needle: str, open_tag: str, label: str) -> str:
    wrapped = wrap_first_occurrence(markup, needle, open_tag)
    if wrapped is None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Skipping %s %.40r: %s", label, needle, classify_miss(markup, needle)
            )
        return markup
    return wrapped


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------


def _apply_popular(
    markup: str,
    popular: Sequence[PopularHighlight],
    viewer_id: str,
    options: RenderOptions,
) -> str:
    eligible = [
        p for p in popular if p.other_student_count(viewer_id) >= options.min_students
    ]
    eligible.sort(key=lambda p: len(p.text), reverse=True)

    result = markup
    for cluster in eligible[: options.max_popular]:
        needle = cluster.text.strip()
        if not needle:
            continue
        open_tag = _popular_open_tag(cluster.other_student_count(viewer_id), options)
        result = _wrap_or_skip(result, needle, open_tag, "popular highlight")
    return result


def _apply_personal(
    markup: str, personal: Sequence[Highlight], temp: Highlight | None
) -> str:
    candidates = [h for h in personal if not h.deleted]
    if temp is not None:
        candidates.append(temp)
    candidates.sort(key=lambda h: len(h.text), reverse=True)

    result = markup
    for highlight in candidates:
        result = _wrap_or_skip(
            result, highlight.text, _personal_open_tag(highlight), "highlight"
        )
    return result


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def render_highlights(
    markup: str,
    personal: Sequence[Highlight],
    temp: Highlight | None = None,
    popular: Sequence[PopularHighlight] | None = None,
    *,
    viewer_id: str = "",
    options: RenderOptions | None = None,
) -> str:
    """Wrap popular and personal highlights into *markup*.

    Args:
        markup: Section markup (already free of highlight spans).
        personal: The viewer's highlights. Deleted ones are ignored.
        temp: The in-progress highlight, rendered like a personal one.
        popular: Cross-student clusters for the popular overlay.
        viewer_id: Excluded when counting classmates per cluster.
        options: Overlay settings (defaults to ``get_settings().popular``).

    Returns:
        Markup with ``<span>`` wrappers. Highlights whose text cannot be
        placed are skipped, so the result is *markup* unchanged when nothing
        matches.
    """
    if not markup:
        return markup
    options = options if options is not None else RenderOptions.from_settings()

    result = markup
    if popular and options.show_popular:
        result = _apply_popular(result, popular, viewer_id, options)
    return _apply_personal(result, personal, temp)


def render_section(
    markup: str,
    state: HighlightState,
    *,
    options: RenderOptions | None = None,
) -> str:
    """Render one section for the host UI.

    Restricts every highlight list to ``state.section_index``, builds the
    popular overlay from the session highlights, and delegates to
    ``render_highlights``.
    """
    options = options if options is not None else RenderOptions.from_settings()
    show_popular = (
        state.show_popular if state.show_popular is not None else options.show_popular
    )

    popular: list[PopularHighlight] | None = None
    if show_popular and state.session_highlights:
        in_section = [
            h for h in state.session_highlights if h.section_index == state.section_index
        ]
        popular = aggregate_highlights(in_section)

    personal = [h for h in state.personal if h.section_index == state.section_index]
    return render_highlights(
        markup,
        personal,
        state.temp,
        popular,
        viewer_id=state.viewer_id,
        options=replace(options, show_popular=show_popular),
    )


def render_heatmap(
    markup: str, popular: Sequence[PopularHighlight], *, limit: int = 15
) -> str:
    """Instructor view: wrap popular clusters with heat-level styling.

    Unlike the student overlay, every contributor counts and no minimum
    applies. Clusters are placed longest text first, at most *limit*.
    """
    if not markup or not popular:
        return markup

    ordered = sorted(popular, key=lambda p: len(p.text), reverse=True)[:limit]
    result = markup
    for index, cluster in enumerate(ordered):
        needle = cluster.text.strip()
        if not needle:
            continue
        result = _wrap_or_skip(
            result, needle, _heat_open_tag(cluster, index), "heat highlight"
        )
    return result
