"""Tests for highlight text similarity."""

from __future__ import annotations

import pytest

from casemark.analysis.similarity import jaccard, texts_similar, token_set


class TestTextsSimilar:
    """Exact, substring, or Jaccard >= threshold."""

    def test_exact_ignoring_case_and_padding(self) -> None:
        assert texts_similar("  Duty of Care ", "duty of care")

    def test_substring_either_way(self) -> None:
        """A shorter selection inside a longer one is the same passage."""
        assert texts_similar("duty of care", "the duty of care owed")
        assert texts_similar("the duty of care owed", "duty of care")

    def test_jaccard_at_threshold(self) -> None:
        """7 shared words out of 10 distinct words is exactly 0.7."""
        a = "one two three four five six seven eight"
        b = "one two three four five six seven nine ten"
        assert jaccard(token_set(a), token_set(b)) == pytest.approx(0.7)
        assert texts_similar(a, b)

    def test_jaccard_below_threshold(self) -> None:
        """'the cat sat' vs 'the dog sat' share 2 of 4 words (0.5)."""
        assert not texts_similar("the cat sat", "the dog sat")

    def test_custom_threshold(self) -> None:
        assert texts_similar("the cat sat", "the dog sat", threshold=0.5)

    def test_unrelated(self) -> None:
        assert not texts_similar("negligence", "contract law")

    def test_blank_never_similar(self) -> None:
        """An empty string is a substring of everything; it must not cluster."""
        assert not texts_similar("   ", "duty of care")
        assert not texts_similar("duty of care", "")


class TestJaccard:
    """Set overlap helper."""

    def test_empty_sets(self) -> None:
        assert jaccard(frozenset(), frozenset()) == 0.0

    def test_identical(self) -> None:
        s = token_set("a b c")
        assert jaccard(s, s) == 1.0

    def test_token_set_lowercases(self) -> None:
        assert token_set("The THE the") == frozenset({"the"})
