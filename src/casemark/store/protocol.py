"""Protocol defining the highlight store interface.

The engine only ever talks to persistence through this protocol, so the
transport (document database, CRDT document, in-memory fake) stays opaque.
Both InMemoryHighlightStore and CrdtHighlightStore implement it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

from casemark.errors import TempHighlightPersistError
from casemark.models.highlight import Highlight

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

OnChange: TypeAlias = "Callable[[list[Highlight]], None]"
Unsubscribe: TypeAlias = "Callable[[], None]"

# Fields that identify a highlight's owner and scope; never rewritten.
IMMUTABLE_FIELDS = frozenset(("id", "author_id", "studentId", "session_id", "sessionId"))


def _wire_key(key: str) -> str:
    field = Highlight.model_fields.get(key)
    return field.alias if field is not None and field.alias else key


class HighlightStore(Protocol):
    """Persistence boundary for highlights.

    Delivery order and latency are opaque to the engine; it only relies on
    eventual delivery of the current authoritative set through ``subscribe``.
    """

    async def create(self, highlight: Highlight) -> str:
        """Persist a new highlight.

        Args:
            highlight: A confirmed (non-temp) highlight.

        Returns:
            The stored highlight's id.
        """
        ...

    async def update(self, highlight_id: str, fields: Mapping[str, Any]) -> None:
        """Change mutable fields (e.g. ``note``) of a stored highlight."""
        ...

    async def delete(self, highlight_id: str) -> None:
        """Soft-delete a highlight (sets ``deleted``)."""
        ...

    async def list_by_student_and_session(
        self, student_id: str, session_id: str
    ) -> list[Highlight]:
        """Return one student's live highlights for a session."""
        ...

    async def list_by_session(self, session_id: str) -> list[Highlight]:
        """Return every student's live highlights for a session."""
        ...

    def subscribe(
        self, student_id: str, session_id: str, on_change: OnChange
    ) -> Unsubscribe:
        """Receive the student's live highlight list whenever it changes.

        The current list is delivered immediately on subscription.

        Returns:
            A callable that cancels the subscription.
        """
        ...


def merge_fields(existing: Highlight, fields: Mapping[str, Any]) -> Highlight:
    """Apply an update to a stored highlight, re-validating the result.

    Accepts snake_case or camelCase keys.

    Raises:
        ValueError: If *fields* tries to change an identity or scope field.
        TempHighlightPersistError: If the update would store the temp colour.
        pydantic.ValidationError: If the merged record is invalid.
    """
    forbidden = IMMUTABLE_FIELDS.intersection(fields)
    if forbidden:
        msg = f"Cannot update immutable highlight fields: {sorted(forbidden)}"
        raise ValueError(msg)
    updates = {_wire_key(key): value for key, value in fields.items()}
    merged = Highlight.model_validate({**existing.to_record(), **updates})
    if merged.is_temp:
        raise TempHighlightPersistError(existing.id)
    return merged
