"""CRDT-backed highlight store for collaborative sessions.

Holds every student's highlights for a session in a shared pycrdt document
so that clients can exchange binary updates and converge on the same set.
Each highlight is one entry of the ``highlights`` Map, keyed by id, whose
value is the highlight's wire record.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from itertools import count
from typing import TYPE_CHECKING, Any

from pycrdt import Doc, Map, TransactionEvent

from casemark.errors import HighlightNotFoundError, TempHighlightPersistError
from casemark.models.highlight import Highlight
from casemark.store.protocol import merge_fields

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from casemark.store.protocol import OnChange, Unsubscribe

logger = logging.getLogger(__name__)

# Async-safe storage for the origin client ID during updates.
_origin_var: ContextVar[str | None] = ContextVar("highlight_origin", default=None)


class CrdtHighlightStore:
    """HighlightStore over a pycrdt document.

    Attributes:
        doc_id: Identifier of the shared document (e.g. the session id).
        doc: The pycrdt Doc instance.
    """

    def __init__(self, doc_id: str) -> None:
        """Initialize an empty shared highlight document.

        Args:
            doc_id: Unique identifier for this document.
        """
        self.doc_id = doc_id
        self.doc = Doc()
        self.doc["highlights"] = Map()

        self._subscribers: dict[int, tuple[str, str, OnChange]] = {}
        self._next_token = count()
        self._broadcast_callback: Callable[[bytes, str | None], None] | None = None

        self.doc.observe(self._on_update)

    @property
    def highlights(self) -> Map:
        """Get the highlights Map."""
        return self.doc["highlights"]

    # --- Sync ---

    def set_broadcast_callback(
        self, callback: Callable[[bytes, str | None], None] | None
    ) -> None:
        """Set the callback for broadcasting updates to peers.

        Args:
            callback: Function that takes (update_bytes, origin_client_id).
        """
        self._broadcast_callback = callback

    def _on_update(self, event: TransactionEvent) -> None:
        if self._broadcast_callback is not None:
            self._broadcast_callback(event.update, _origin_var.get())

    def get_full_state(self) -> bytes:
        """Get the full document state for syncing to a new peer."""
        return self.doc.get_update()

    def apply_update(self, update: bytes, origin_client_id: str | None = None) -> None:
        """Apply an update from a peer and notify every subscriber.

        Args:
            update: Binary update produced by another document.
            origin_client_id: Peer that sent the update (for echo prevention).
        """
        token = _origin_var.set(origin_client_id)
        try:
            self.doc.apply_update(update)
        finally:
            _origin_var.reset(token)
        self._notify_all()

    # --- Reads ---

    def _read(self, highlight_id: str) -> Highlight:
        raw = self.highlights.get(highlight_id)
        if raw is None:
            raise HighlightNotFoundError(highlight_id)
        return Highlight.model_validate(dict(raw))

    def _all(self) -> list[Highlight]:
        """Every readable highlight in the document.

        A malformed record from a peer is logged and skipped so that one bad
        entry does not break listings for everyone else.
        """
        result: list[Highlight] = []
        for key, raw in self.highlights.items():
            try:
                result.append(Highlight.model_validate(dict(raw)))
            except (TypeError, ValueError) as exc:
                # ValidationError is a ValueError; non-mapping values raise either
                logger.warning(
                    "Skipping malformed highlight %s in %s: %s", key, self.doc_id, exc
                )
        return result

    def _live_for(self, student_id: str, session_id: str) -> list[Highlight]:
        return [
            h
            for h in self._all()
            if h.author_id == student_id and h.session_id == session_id and not h.deleted
        ]

    # --- Writes ---

    def _write(self, highlight: Highlight) -> None:
        self.highlights[highlight.id] = highlight.to_record()

    def _notify(self, highlight: Highlight) -> None:
        for student_id, session_id, on_change in list(self._subscribers.values()):
            if highlight.author_id == student_id and highlight.session_id == session_id:
                on_change(self._live_for(student_id, session_id))

    def _notify_all(self) -> None:
        for student_id, session_id, on_change in list(self._subscribers.values()):
            on_change(self._live_for(student_id, session_id))

    async def create(self, highlight: Highlight) -> str:
        if highlight.is_temp:
            raise TempHighlightPersistError(highlight.id)
        self._write(highlight)
        logger.debug("Created highlight %s in %s", highlight.id, self.doc_id)
        self._notify(highlight)
        return highlight.id

    async def update(self, highlight_id: str, fields: Mapping[str, Any]) -> None:
        updated = merge_fields(self._read(highlight_id), fields)
        self._write(updated)
        self._notify(updated)

    async def delete(self, highlight_id: str) -> None:
        deleted = self._read(highlight_id).model_copy(update={"deleted": True})
        self._write(deleted)
        logger.debug("Soft-deleted highlight %s in %s", highlight_id, self.doc_id)
        self._notify(deleted)

    async def list_by_student_and_session(
        self, student_id: str, session_id: str
    ) -> list[Highlight]:
        return self._live_for(student_id, session_id)

    async def list_by_session(self, session_id: str) -> list[Highlight]:
        return [h for h in self._all() if h.session_id == session_id and not h.deleted]

    def subscribe(
        self, student_id: str, session_id: str, on_change: OnChange
    ) -> Unsubscribe:
        token = next(self._next_token)
        self._subscribers[token] = (student_id, session_id, on_change)
        on_change(self._live_for(student_id, session_id))

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe
