"""Exception types raised by the highlighting engine.

Rendering and aggregation never raise for content problems (a highlight
that cannot be placed is dropped). These exceptions cover the cases the
host has to react to: rejected selections, lifecycle misuse, and store
lookups that fail.
"""

from __future__ import annotations


class CaseMarkError(Exception):
    """Base class for all casemark errors."""


class SelectionRejectedError(CaseMarkError, ValueError):
    """Selected text is empty or longer than the configured maximum."""

    def __init__(self, reason: str, length: int) -> None:
        self.reason = reason
        self.length = length
        super().__init__(f"Selection rejected ({reason}, {length} chars)")


class SelectionStateError(CaseMarkError, RuntimeError):
    """The selection lifecycle was driven into an impossible transition.

    Raised for caller bugs such as confirming when no temp highlight exists.
    """


class TempHighlightPersistError(CaseMarkError, ValueError):
    """A highlight still carrying the ``temp`` colour was sent to a store."""

    def __init__(self, highlight_id: str) -> None:
        self.highlight_id = highlight_id
        super().__init__(f"Refusing to persist temp highlight {highlight_id}")


class HighlightNotFoundError(CaseMarkError, KeyError):
    """No stored highlight has the requested id."""

    def __init__(self, highlight_id: str) -> None:
        self.highlight_id = highlight_id
        super().__init__(highlight_id)
