"""Popover placement for the colour picker and the delete confirmation.

Pure geometry over host-supplied rectangles. Selection rectangles are in
viewport coordinates (as returned by ``getBoundingClientRect``); positions
returned here are in document coordinates, ready for absolute placement.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from casemark.config import SelectionConfig


@dataclass(frozen=True)
class Rect:
    """Bounding box of a selection or highlight span, viewport-relative."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(frozen=True)
class Viewport:
    """Visible area of the host page."""

    width: float
    height: float
    scroll_y: float = 0.0
    is_mobile: bool = False


class Placement(StrEnum):
    ABOVE = "above"
    BELOW = "below"
    PINNED = "pinned"


@dataclass(frozen=True)
class PopoverPosition:
    x: float
    y: float
    placement: Placement


def position_color_popover(
    rect: Rect, viewport: Viewport, cfg: SelectionConfig
) -> PopoverPosition:
    """Place the colour picker centred above the selection.

    The popover is clamped horizontally to the viewport with a
    ``viewport_margin`` gap. If there is no room above the selection it goes
    below it on desktop. On mobile, where the on-screen keyboard covers the
    lower part of the screen, it is pinned to the top of the visible area.
    """
    margin = cfg.viewport_margin
    x = rect.left + rect.width / 2 - cfg.popover_width / 2
    x = max(margin, min(x, viewport.width - cfg.popover_width - margin))

    top_limit = viewport.scroll_y + margin
    y = rect.top + viewport.scroll_y - cfg.popover_height - cfg.popover_offset
    if y >= top_limit:
        return PopoverPosition(x, y, Placement.ABOVE)

    if not viewport.is_mobile:
        below = rect.bottom + viewport.scroll_y + cfg.popover_offset
        if below + cfg.popover_height <= viewport.scroll_y + viewport.height - margin:
            return PopoverPosition(x, below, Placement.BELOW)

    return PopoverPosition(x, top_limit, Placement.PINNED)


def position_delete_popover(
    rect: Rect, viewport: Viewport, cfg: SelectionConfig
) -> PopoverPosition:
    """Place the delete confirmation just below the clicked highlight."""
    return PopoverPosition(
        rect.left,
        rect.bottom + viewport.scroll_y + cfg.delete_popover_offset,
        Placement.BELOW,
    )
