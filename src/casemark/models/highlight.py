"""Highlight record and colour palette.

A Highlight is addressed by its ``text``: the exact string the reader
selected. Offsets are captured for information only and are never used to
re-render, because the underlying content may reflow between sessions.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from casemark.errors import SelectionRejectedError, TempHighlightPersistError

logger = logging.getLogger(__name__)

INTRODUCTION_SECTION = -1


class HighlightColor(StrEnum):
    """Fixed highlight palette plus the ``temp`` sentinel.

    ``TEMP`` marks the unconfirmed highlight shown while the reader picks a
    colour. It is never persisted.
    """

    YELLOW = "yellow"
    BLUE = "blue"
    GREEN = "green"
    PINK = "pink"
    PURPLE = "purple"
    TEMP = "temp"

    @classmethod
    def palette(cls) -> tuple[HighlightColor, ...]:
        """Colours a reader can choose from (everything except ``TEMP``)."""
        return (cls.YELLOW, cls.BLUE, cls.GREEN, cls.PINK, cls.PURPLE)

    @property
    def css_class(self) -> str:
        match self:
            case HighlightColor.YELLOW:
                return "highlight-yellow"
            case HighlightColor.BLUE:
                return "highlight-blue"
            case HighlightColor.GREEN:
                return "highlight-green"
            case HighlightColor.PINK:
                return "highlight-pink"
            case HighlightColor.PURPLE:
                return "highlight-purple"
            case HighlightColor.TEMP:
                return "highlight-temp"


def new_highlight_id() -> str:
    """Generate an opaque highlight identifier."""
    return uuid4().hex


def section_label(section_index: int, title: str | None = None) -> str:
    """Display title for a section, falling back to a positional name."""
    if title:
        return title
    if section_index == INTRODUCTION_SECTION:
        return "Introduction"
    return f"Section {section_index + 1}"


def validate_selection_text(text: str, max_length: int) -> str:
    """Strip and bounds-check selected text before it becomes a highlight.

    Args:
        text: Raw selected text as reported by the host.
        max_length: Maximum accepted length after stripping.

    Returns:
        The stripped text.

    Raises:
        SelectionRejectedError: If the text is empty or too long.
    """
    stripped = text.strip()
    if not stripped:
        raise SelectionRejectedError("empty", 0)
    if len(stripped) > max_length:
        raise SelectionRejectedError("too long", len(stripped))
    return stripped


class Highlight(BaseModel):
    """A reader's highlighted text span.

    Field names are snake_case in Python; the wire format produced by
    ``to_record()`` uses camelCase (``studentId``, ``sectionIndex`` ...).
    Either spelling is accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(default_factory=new_highlight_id)
    author_id: str = Field(alias="studentId")
    session_id: str
    section_index: int = 0
    section_title: str | None = None
    text: str = Field(min_length=1)
    start_offset: int = 0
    end_offset: int = 0
    color: HighlightColor = HighlightColor.YELLOW
    note: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    deleted: bool = False

    @model_validator(mode="before")
    @classmethod
    def _log_missing_color(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("color") is None:
            logger.warning(
                "Highlight %s arrived without a colour; using %s",
                data.get("id", "<new>"),
                HighlightColor.YELLOW.value,
            )
            return {**data, "color": HighlightColor.YELLOW}
        return data

    @field_validator("color", mode="before")
    @classmethod
    def _fallback_color(cls, value: Any) -> Any:
        if isinstance(value, HighlightColor):
            return value
        try:
            return HighlightColor(str(value).lower())
        except ValueError:
            logger.warning(
                "Highlight colour %r not in palette; using %s",
                value,
                HighlightColor.YELLOW.value,
            )
            return HighlightColor.YELLOW

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "highlight text must not be blank"
            raise ValueError(msg)
        return value

    @field_validator("created_at", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def is_temp(self) -> bool:
        return self.color is HighlightColor.TEMP

    @property
    def display_section_title(self) -> str:
        return section_label(self.section_index, self.section_title)

    def to_record(self) -> dict[str, Any]:
        """Serialise to the store's wire shape.

        Raises:
            TempHighlightPersistError: If the highlight is still a temp one.
        """
        if self.is_temp:
            raise TempHighlightPersistError(self.id)
        return self.model_dump(by_alias=True, mode="json")
