"""Shared pytest fixtures for casemark tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, TypeAlias

import pytest

from casemark.config import Settings, get_settings
from casemark.models.highlight import Highlight, HighlightColor

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

# Reference time for recency calculations; highlights older than
# NOW - 30 minutes are not "recent".
NOW = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)

HighlightFactory: TypeAlias = "Callable[..., Highlight]"


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None]:
    """Drop the cached Settings so env overrides never leak between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Default settings, isolated from any .env file."""
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_highlight() -> HighlightFactory:
    """Factory for Highlight records with sensible defaults.

    ``minutes_ago`` sets ``created_at`` relative to ``NOW``.
    """
    counter = iter(range(1, 10_000))

    def _make(
        text: str,
        *,
        student: str = "s1",
        session: str = "session-1",
        section: int = 0,
        color: HighlightColor | str = HighlightColor.YELLOW,
        minutes_ago: float = 120,
        **extra: Any,
    ) -> Highlight:
        return Highlight(
            id=extra.pop("id", f"h{next(counter)}"),
            author_id=student,
            session_id=session,
            section_index=section,
            text=text,
            color=color,
            created_at=NOW - timedelta(minutes=minutes_ago),
            **extra,
        )

    return _make
