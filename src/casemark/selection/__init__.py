"""Selection lifecycle: temp highlight, confirmation popover, deletion."""

from casemark.selection.controller import (
    RangeDescriptor,
    Selection,
    SelectionLifecycleController,
    SelectionState,
)
from casemark.selection.popover import (
    Placement,
    PopoverPosition,
    Rect,
    Viewport,
    position_color_popover,
    position_delete_popover,
)
from casemark.selection.throttle import SelectionThrottle

__all__ = [
    "Placement",
    "PopoverPosition",
    "RangeDescriptor",
    "Rect",
    "Selection",
    "SelectionLifecycleController",
    "SelectionState",
    "SelectionThrottle",
    "Viewport",
    "position_color_popover",
    "position_delete_popover",
]
