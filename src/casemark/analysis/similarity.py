"""Text similarity used to cluster highlights from different students."""

from __future__ import annotations

DEFAULT_THRESHOLD = 0.7


def _normalise(text: str) -> str:
    return text.lower().strip()


def token_set(text: str) -> frozenset[str]:
    """Lower-cased, whitespace-split word set of *text*."""
    return frozenset(_normalise(text).split())


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    """Jaccard index of two sets (0.0 when both are empty)."""
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def texts_similar(text1: str, text2: str, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """Decide whether two highlight texts describe the same passage.

    Similar when, after lower-casing and stripping, the texts are equal, one
    contains the other, or their word sets have a Jaccard index of at least
    *threshold*. Blank texts are never similar to anything.
    """
    t1 = _normalise(text1)
    t2 = _normalise(text2)
    if not t1 or not t2:
        return False

    if t1 == t2:
        return True
    if t1 in t2 or t2 in t1:
        return True
    return jaccard(token_set(t1), token_set(t2)) >= threshold
