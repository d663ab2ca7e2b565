"""Highlight store boundary and its implementations."""

from casemark.store.crdt import CrdtHighlightStore
from casemark.store.memory import InMemoryHighlightStore
from casemark.store.protocol import (
    HighlightStore,
    OnChange,
    Unsubscribe,
    merge_fields,
)

__all__ = [
    "CrdtHighlightStore",
    "HighlightStore",
    "InMemoryHighlightStore",
    "OnChange",
    "Unsubscribe",
    "merge_fields",
]
