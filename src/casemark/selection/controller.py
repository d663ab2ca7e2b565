"""Selection lifecycle: from a native text selection to a stored highlight.

The host forwards selection, click and key events; the controller owns the
transient state (the temp highlight and the open popover) and talks to the
HighlightStore when the reader confirms or deletes.

State machine::

    IDLE -> SELECTING -> PENDING_CONFIRMATION -> FINALIZED -> IDLE
                                             \\-> CANCELLED -> IDLE

``FINALIZED`` and ``CANCELLED`` are recorded as ``last_outcome``; the
controller itself always comes back to rest in ``IDLE``.

Persistence failures propagate to the caller unchanged and leave the local
state exactly as it was, so the reader can retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from casemark.config import get_settings
from casemark.errors import SelectionRejectedError, SelectionStateError
from casemark.markup.renderer import HighlightState, RenderOptions, render_section
from casemark.models.highlight import (
    Highlight,
    HighlightColor,
    new_highlight_id,
    validate_selection_text,
)
from casemark.selection.popover import (
    PopoverPosition,
    Rect,
    Viewport,
    position_color_popover,
    position_delete_popover,
)
from casemark.selection.throttle import SelectionThrottle

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from casemark.config import Settings
    from casemark.store.protocol import HighlightStore, Unsubscribe

logger = logging.getLogger(__name__)


class SelectionState(StrEnum):
    IDLE = "idle"
    SELECTING = "selecting"
    PENDING_CONFIRMATION = "pending_confirmation"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RangeDescriptor:
    """Where the host's native selection sits.

    Attributes:
        start_offset: Offset of the selection start (informational).
        end_offset: Offset of the selection end (informational).
        rect: Bounding box of the selection, viewport-relative.
        in_container: Whether the range intersects the content container.
        inside_highlight: Whether the range starts or ends inside an
            existing highlight span.
    """

    start_offset: int
    end_offset: int
    rect: Rect
    in_container: bool = True
    inside_highlight: bool = False


@dataclass(frozen=True)
class Selection:
    text: str
    range: RangeDescriptor


class SelectionLifecycleController:
    """Drive one reader's highlighting of one case-study section.

    Args:
        viewer_id: The reader; new highlights are authored by them.
        session_id: Session the highlights belong to.
        viewport: Current visible area, used for popover placement.
        section_index: Section currently shown.
        section_title: Display title stored on new highlights.
        store: Highlight store to attach to immediately.
        clear_native_selection: Host callback that removes the browser
            selection once the temp highlight replaces it.
        settings: Overrides ``get_settings()``.
    """

    def __init__(
        self,
        viewer_id: str,
        session_id: str,
        *,
        viewport: Viewport,
        section_index: int = 0,
        section_title: str | None = None,
        store: HighlightStore | None = None,
        clear_native_selection: Callable[[], None] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.viewer_id = viewer_id
        self.session_id = session_id
        self.viewport = viewport
        self.section_index = section_index
        self.section_title = section_title

        settings = settings or get_settings()
        self._selection_cfg = settings.selection
        self._max_length = settings.highlights.max_selection_length
        self._default_color = settings.highlights.default_color
        self._render_options = RenderOptions.from_settings(settings)
        self._throttle = SelectionThrottle(self._selection_cfg.throttle_ms)
        self._clear_native_selection = clear_native_selection

        self._state = SelectionState.IDLE
        self._last_outcome: SelectionState | None = None
        self._temp: Highlight | None = None
        self._latest: Selection | None = None
        self._popover: PopoverPosition | None = None
        self._delete_target: str | None = None
        self._delete_popover: PopoverPosition | None = None

        self._highlights: list[Highlight] = []
        self._store: HighlightStore | None = None
        self._unsubscribe: Unsubscribe | None = None
        if store is not None:
            self.attach(store)

    # --- Read-only state ---

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def last_outcome(self) -> SelectionState | None:
        return self._last_outcome

    @property
    def temp(self) -> Highlight | None:
        return self._temp

    @property
    def popover(self) -> PopoverPosition | None:
        return self._popover

    @property
    def delete_target(self) -> str | None:
        return self._delete_target

    @property
    def delete_popover(self) -> PopoverPosition | None:
        return self._delete_popover

    @property
    def highlights(self) -> list[Highlight]:
        return list(self._highlights)

    # --- Store wiring ---

    def attach(self, store: HighlightStore) -> None:
        """Subscribe to the reader's highlights in *store*."""
        self.detach()
        self._store = store
        self._unsubscribe = store.subscribe(
            self.viewer_id, self.session_id, self.on_highlights_changed
        )

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._store = None

    def on_highlights_changed(self, highlights: Sequence[Highlight]) -> None:
        """Replace the local highlight list with the store's current set."""
        self._highlights = [h for h in highlights if not h.deleted]
        if self._delete_target is not None and not any(
            h.id == self._delete_target for h in self._highlights
        ):
            self.dismiss_delete()

    async def refresh(self) -> list[Highlight]:
        store = self._require_store()
        self.on_highlights_changed(
            await store.list_by_student_and_session(self.viewer_id, self.session_id)
        )
        return self.highlights

    def _require_store(self) -> HighlightStore:
        if self._store is None:
            raise SelectionStateError("No highlight store attached")
        return self._store

    def set_section(self, section_index: int, title: str | None = None) -> None:
        """Switch to another section, discarding any pending selection."""
        self.cancel()
        self.dismiss_delete()
        self.section_index = section_index
        self.section_title = title

    # --- Selection signals ---

    def on_selection_start(self, selection: Selection, now: float | None = None) -> bool:
        self._latest = selection
        if not self._throttle.should_process(selection.text, now, bypass_window=True):
            return False
        return self._accept(selection, now, complete=False)

    def on_selection_change(
        self, selection: Selection, now: float | None = None
    ) -> bool:
        self._latest = selection
        if not self._throttle.should_process(selection.text, now):
            return False
        return self._accept(selection, now, complete=False)

    def on_selection_end(self, selection: Selection, now: float | None = None) -> bool:
        """Handle a finished selection gesture.

        A finished selection that is declined also discards the temp
        highlight left behind by the drag.

        Returns:
            True if a temp highlight is now pending confirmation.
        """
        self._latest = selection
        fresh = self._throttle.should_process(selection.text, now, bypass_window=True)
        # Same text as the last change signal: the temp highlight is already
        # shown, only the popover is missing.
        repeat = self._state is SelectionState.SELECTING and self._temp is not None
        if not (fresh or repeat):
            return False
        if self._accept(selection, now, complete=True):
            return True
        self.cancel()
        return False

    def on_key(self, key: str, *, ctrl: bool = False, meta: bool = False) -> bool:
        """Keyboard shortcuts: Escape cancels, Ctrl/Cmd+H highlights the selection.

        Returns:
            True if the key was handled.
        """
        if key == "Escape":
            self.cancel()
            return True
        if key.lower() == "h" and (ctrl or meta):
            if self._latest is None:
                return False
            return self._accept(self._latest, None, complete=True)
        return False

    def _accept(
        self, selection: Selection, now: float | None, *, complete: bool
    ) -> bool:
        if not self._process(selection, complete=complete):
            return False
        self._throttle.record(selection.text, now)
        return True

    def _rejection_reason(self, selection: Selection) -> str | None:
        try:
            validate_selection_text(selection.text, self._max_length)
        except SelectionRejectedError as exc:
            return exc.reason
        if not selection.range.in_container:
            return "outside content"
        if selection.range.inside_highlight:
            return "inside existing highlight"
        return None

    def _process(self, selection: Selection, *, complete: bool) -> bool:
        reason = self._rejection_reason(selection)
        if reason is not None:
            logger.debug("Selection declined (%s): %.40r", reason, selection.text)
            return False

        text = selection.text.strip()
        rng = selection.range
        if self._temp is None:
            self._temp = Highlight(
                id=new_highlight_id(),
                author_id=self.viewer_id,
                session_id=self.session_id,
                section_index=self.section_index,
                section_title=self.section_title,
                text=text,
                start_offset=rng.start_offset,
                end_offset=rng.end_offset,
                color=HighlightColor.TEMP,
            )
        else:
            self._temp = self._temp.model_copy(
                update={
                    "text": text,
                    "start_offset": rng.start_offset,
                    "end_offset": rng.end_offset,
                }
            )

        if not complete:
            self._state = SelectionState.SELECTING
            self._popover = None
            return True

        if self._clear_native_selection is not None:
            self._clear_native_selection()
        self._popover = position_color_popover(
            rng.rect, self.viewport, self._selection_cfg
        )
        self._state = SelectionState.PENDING_CONFIRMATION
        logger.debug("Temp highlight %s pending: %.40r", self._temp.id, text)
        return True

    # --- Confirmation ---

    async def confirm(self, color: HighlightColor | str | None = None) -> Highlight:
        """Persist the temp highlight in the chosen colour.

        Without *color* the configured default (``HIGHLIGHTS__DEFAULT_COLOR``)
        is used.

        Returns:
            The stored highlight (fresh id, ``created_at`` now).

        Raises:
            SelectionStateError: If no selection is pending confirmation (none
                made, or still being dragged), the colour is ``temp`` or no
                store is attached.
        """
        temp = self._temp
        if temp is None or self._state is not SelectionState.PENDING_CONFIRMATION:
            raise SelectionStateError("No pending selection to confirm")
        chosen = HighlightColor(color or self._default_color)
        if chosen is HighlightColor.TEMP:
            raise SelectionStateError("Cannot confirm a highlight with the temp colour")
        store = self._require_store()

        highlight = temp.model_copy(
            update={
                "id": new_highlight_id(),
                "color": chosen,
                "created_at": datetime.now(UTC),
            }
        )
        await store.create(highlight)
        logger.info(
            "Highlight %s created by %s in section %d",
            highlight.id,
            self.viewer_id,
            highlight.section_index,
        )

        if self._temp is not None and self._temp.id == temp.id:
            self._reset(SelectionState.FINALIZED)
        return highlight

    def cancel(self) -> None:
        """Discard the temp highlight without touching the store."""
        if self._temp is None and self._state is SelectionState.IDLE:
            return
        self._reset(SelectionState.CANCELLED)

    def _reset(self, outcome: SelectionState) -> None:
        self._last_outcome = outcome
        self._temp = None
        self._popover = None
        self._state = SelectionState.IDLE
        self._throttle.reset()

    # --- Existing highlights ---

    def on_highlight_click(self, highlight_id: str, rect: Rect) -> bool:
        """Open the delete popover for one of the reader's own highlights.

        Returns:
            False if *highlight_id* is not one of the viewer's highlights.
        """
        if not any(
            h.id == highlight_id and h.author_id == self.viewer_id
            for h in self._highlights
        ):
            logger.debug("Ignoring click on foreign highlight %s", highlight_id)
            return False
        self._delete_target = highlight_id
        self._delete_popover = position_delete_popover(
            rect, self.viewport, self._selection_cfg
        )
        return True

    async def confirm_delete(self) -> str:
        """Soft-delete the highlight under the delete popover.

        The local list is not touched; the store's subscription (or
        ``refresh()``) delivers the updated set. On failure the popover
        stays open.
        """
        target = self._delete_target
        if target is None:
            raise SelectionStateError("No highlight selected for deletion")
        await self._require_store().delete(target)
        logger.info("Highlight %s deleted by %s", target, self.viewer_id)
        if self._delete_target == target:
            self.dismiss_delete()
        return target

    def dismiss_delete(self) -> None:
        self._delete_target = None
        self._delete_popover = None

    async def update_note(self, highlight_id: str, note: str | None) -> None:
        await self._require_store().update(highlight_id, {"note": note})

    # --- Rendering ---

    def render(
        self, markup: str, session_highlights: Sequence[Highlight] | None = None
    ) -> str:
        """Render the current section with this reader's highlights.

        Args:
            markup: Section markup.
            session_highlights: Every student's highlights, for the popular
                overlay. Omit to render personal highlights only.
        """
        state = HighlightState(
            personal=tuple(self._highlights),
            temp=self._temp,
            session_highlights=tuple(session_highlights or ()),
            viewer_id=self.viewer_id,
            section_index=self.section_index,
        )
        return render_section(markup, state, options=self._render_options)
