"""Cross-student highlight aggregation.

Clusters highlights by text similarity and derives popularity metrics
(heat scores, per-section stats, session roll-ups). Every function here is a
pure function of its input snapshot: results are rebuilt from scratch on each
call, so a delete or edit is reflected on the next computation without any
invalidation logic.

Clustering is single-pass and order-sensitive. Each highlight joins the
first existing cluster whose seed text is similar, otherwise it seeds a new
cluster. That is O(n*k) and not globally optimal, which is fine for the
handful of highlights a section collects.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from casemark.analysis.similarity import texts_similar
from casemark.config import AggregationConfig, get_settings
from casemark.models.stats import (
    HeatLevel,
    PopularHighlight,
    SectionHighlightStats,
    SessionHighlightMetrics,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from casemark.models.highlight import Highlight

logger = logging.getLogger(__name__)


def _config(settings: AggregationConfig | None) -> AggregationConfig:
    return settings if settings is not None else get_settings().aggregation


def _recent_cutoff(now: datetime | None, cfg: AggregationConfig) -> datetime:
    now = now if now is not None else datetime.now(UTC)
    return now - timedelta(minutes=cfg.recent_window_minutes)


def _live(highlights: Iterable[Highlight]) -> list[Highlight]:
    return [h for h in highlights if not h.deleted]


def _round_one_decimal(value: float) -> float:
    # Half-up, matching the dashboard figures (round() would use banker's rounding)
    return math.floor(value * 10 + 0.5) / 10


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


def heat_score(
    count: int,
    recent_count: int,
    *,
    count_weight: int = 10,
    recency_bonus: int = 5,
) -> int:
    """Rank a cluster by volume with a small fixed bonus for recent activity.

    The bonus is additive rather than a multiplier, so a large old cluster
    still outranks a small fresh one.
    """
    return count * count_weight + (recency_bonus if recent_count > 0 else 0)


def heat_level(count: int, recent_count: int) -> HeatLevel:
    """Bucket a cluster for the instructor heat map.

    Recent highlights count double here, unlike ``heat_score``.
    """
    score = count + recent_count * 2
    if score >= 8:
        return HeatLevel.VERY_HIGH
    if score >= 5:
        return HeatLevel.HIGH
    if score >= 3:
        return HeatLevel.MEDIUM
    return HeatLevel.LOW


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------


def _cluster(highlights: list[Highlight], threshold: float) -> list[list[Highlight]]:
    clusters: list[tuple[str, list[Highlight]]] = []
    for highlight in highlights:
        for seed_text, members in clusters:
            if texts_similar(highlight.text, seed_text, threshold):
                members.append(highlight)
                break
        else:
            clusters.append((highlight.text, [highlight]))
    return [members for _seed, members in clusters]


def _build_popular(
    members: list[Highlight], cutoff: datetime, cfg: AggregationConfig
) -> PopularHighlight:
    # most_common() keeps first-seen order among equal counts
    representative = Counter(h.text for h in members).most_common(1)[0][0]
    student_ids = tuple(dict.fromkeys(h.author_id for h in members))
    recent_count = sum(1 for h in members if h.created_at > cutoff)
    colors = dict(Counter(h.color.value for h in members))

    ordered = sorted(members, key=lambda h: h.created_at)
    first, last = ordered[0], ordered[-1]

    return PopularHighlight(
        text=representative,
        count=len(members),
        student_ids=student_ids,
        recent_count=recent_count,
        colors=colors,
        section_index=first.section_index,
        section_title=first.display_section_title,
        first_highlighted_at=first.created_at,
        last_highlighted_at=last.created_at,
        heat_score=heat_score(
            len(members),
            recent_count,
            count_weight=cfg.count_weight,
            recency_bonus=cfg.recency_bonus,
        ),
    )


def aggregate_highlights(
    highlights: Iterable[Highlight],
    *,
    now: datetime | None = None,
    settings: AggregationConfig | None = None,
) -> list[PopularHighlight]:
    """Cluster highlights by similar text and compute popularity metrics.

    Args:
        highlights: Highlights from any number of students. Soft-deleted
            highlights are ignored.
        now: Reference time for the recency window (defaults to now, UTC).
        settings: Aggregation tunables (defaults to ``get_settings()``).

    Returns:
        One PopularHighlight per cluster, highest heat score first.
    """
    cfg = _config(settings)
    cutoff = _recent_cutoff(now, cfg)
    live = _live(highlights)

    popular = [
        _build_popular(members, cutoff, cfg)
        for members in _cluster(live, cfg.similarity_threshold)
    ]
    popular.sort(key=lambda p: p.heat_score, reverse=True)
    logger.debug(
        "Aggregated %d highlights into %d clusters", len(live), len(popular)
    )
    return popular


def popular_for_section(
    highlights: Iterable[Highlight],
    section_index: int,
    limit: int = 10,
    *,
    now: datetime | None = None,
    settings: AggregationConfig | None = None,
) -> list[PopularHighlight]:
    """Top *limit* clusters for one section."""
    in_section = [h for h in highlights if h.section_index == section_index]
    return aggregate_highlights(in_section, now=now, settings=settings)[:limit]


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def section_stats(
    highlights: Iterable[Highlight],
    *,
    now: datetime | None = None,
    settings: AggregationConfig | None = None,
) -> list[SectionHighlightStats]:
    """Per-section highlight activity, one record per section present.

    Returns:
        Records sorted by section index (the introduction, -1, first).
    """
    cfg = _config(settings)
    cutoff = _recent_cutoff(now, cfg)

    by_section: dict[int, list[Highlight]] = {}
    for highlight in _live(highlights):
        by_section.setdefault(highlight.section_index, []).append(highlight)

    stats: list[SectionHighlightStats] = []
    for section_index, members in sorted(by_section.items()):
        unique_students = len({h.author_id for h in members})
        clusters = aggregate_highlights(members, now=now, settings=cfg)
        most_popular = (
            _truncate(clusters[0].text, cfg.display_text_length) if clusters else "None"
        )
        stats.append(
            SectionHighlightStats(
                section_index=section_index,
                section_title=members[0].display_section_title,
                total_highlights=len(members),
                unique_students=unique_students,
                most_popular_text=most_popular,
                average_highlights_per_student=(
                    _round_one_decimal(len(members) / unique_students)
                    if unique_students
                    else 0.0
                ),
                recent_activity=sum(1 for h in members if h.created_at > cutoff),
            )
        )
    return stats


def session_metrics(
    highlights: Iterable[Highlight],
    *,
    now: datetime | None = None,
    settings: AggregationConfig | None = None,
) -> SessionHighlightMetrics:
    """Roll highlight activity up across every section of a session."""
    cfg = _config(settings)
    cutoff = _recent_cutoff(now, cfg)
    live = _live(highlights)

    unique_students = len({h.author_id for h in live})
    clusters = aggregate_highlights(live, now=now, settings=cfg)

    return SessionHighlightMetrics(
        total_highlights=len(live),
        unique_students=unique_students,
        recent_activity=sum(1 for h in live if h.created_at > cutoff),
        sections_with_highlights=len({h.section_index for h in live}),
        average_highlights_per_student=(
            _round_one_decimal(len(live) / unique_students) if unique_students else 0.0
        ),
        popular_highlights=tuple(clusters[: cfg.top_clusters]),
    )
