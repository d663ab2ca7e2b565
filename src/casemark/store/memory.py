"""In-memory highlight store for tests and local demos.

Implements HighlightStore without any transport. Subscribers are notified
synchronously after every mutation, the way a real-time snapshot listener
delivers a fresh list after each write.
"""

from __future__ import annotations

import logging
from itertools import count
from typing import TYPE_CHECKING, Any

from casemark.errors import HighlightNotFoundError, TempHighlightPersistError
from casemark.store.protocol import merge_fields

if TYPE_CHECKING:
    from collections.abc import Mapping

    from casemark.models.highlight import Highlight
    from casemark.store.protocol import OnChange, Unsubscribe

logger = logging.getLogger(__name__)


class InMemoryHighlightStore:
    """Dict-backed implementation of HighlightStore.

    Attributes:
        calls: ``(operation, highlight_id)`` log of mutations, for assertions.
    """

    def __init__(self, highlights: list[Highlight] | None = None) -> None:
        self._highlights: dict[str, Highlight] = {}
        self._subscribers: dict[int, tuple[str, str, OnChange]] = {}
        self._next_token = count()
        self.calls: list[tuple[str, str]] = []
        for highlight in highlights or []:
            self._highlights[highlight.id] = highlight

    def _get(self, highlight_id: str) -> Highlight:
        try:
            return self._highlights[highlight_id]
        except KeyError:
            raise HighlightNotFoundError(highlight_id) from None

    def _live_for(self, student_id: str, session_id: str) -> list[Highlight]:
        return [
            h
            for h in self._highlights.values()
            if h.author_id == student_id and h.session_id == session_id and not h.deleted
        ]

    def _notify(self, highlight: Highlight) -> None:
        for student_id, session_id, on_change in list(self._subscribers.values()):
            if highlight.author_id == student_id and highlight.session_id == session_id:
                on_change(self._live_for(student_id, session_id))

    async def create(self, highlight: Highlight) -> str:
        if highlight.is_temp:
            raise TempHighlightPersistError(highlight.id)
        self._highlights[highlight.id] = highlight
        self.calls.append(("create", highlight.id))
        logger.debug("Created highlight %s for %s", highlight.id, highlight.author_id)
        self._notify(highlight)
        return highlight.id

    async def update(self, highlight_id: str, fields: Mapping[str, Any]) -> None:
        updated = merge_fields(self._get(highlight_id), fields)
        self._highlights[highlight_id] = updated
        self.calls.append(("update", highlight_id))
        self._notify(updated)

    async def delete(self, highlight_id: str) -> None:
        deleted = self._get(highlight_id).model_copy(update={"deleted": True})
        self._highlights[highlight_id] = deleted
        self.calls.append(("delete", highlight_id))
        logger.debug("Soft-deleted highlight %s", highlight_id)
        self._notify(deleted)

    async def list_by_student_and_session(
        self, student_id: str, session_id: str
    ) -> list[Highlight]:
        return self._live_for(student_id, session_id)

    async def list_by_session(self, session_id: str) -> list[Highlight]:
        return [
            h
            for h in self._highlights.values()
            if h.session_id == session_id and not h.deleted
        ]

    def subscribe(
        self, student_id: str, session_id: str, on_change: OnChange
    ) -> Unsubscribe:
        token = next(self._next_token)
        self._subscribers[token] = (student_id, session_id, on_change)
        on_change(self._live_for(student_id, session_id))

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
