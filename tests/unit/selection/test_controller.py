"""Tests for the selection lifecycle controller.

Drives the controller the way a host page would: selection signals, key
presses and clicks in, store calls and rendered markup out.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from casemark.errors import SelectionStateError
from casemark.models.highlight import Highlight, HighlightColor
from casemark.selection import (
    Placement,
    RangeDescriptor,
    Rect,
    Selection,
    SelectionLifecycleController,
    SelectionState,
    Viewport,
)
from casemark.store import InMemoryHighlightStore

if TYPE_CHECKING:
    from casemark.config import Settings
    from tests.conftest import HighlightFactory

MARKUP = "<p>The duty of care is owed to your neighbour.</p>"
RECT = Rect(left=400, top=300, width=100, height=20)


def _sel(
    text: str,
    *,
    in_container: bool = True,
    inside_highlight: bool = False,
    start: int = 0,
) -> Selection:
    return Selection(
        text=text,
        range=RangeDescriptor(
            start_offset=start,
            end_offset=start + len(text),
            rect=RECT,
            in_container=in_container,
            inside_highlight=inside_highlight,
        ),
    )


class FailingStore(InMemoryHighlightStore):
    """Store whose writes fail, as when the network drops."""

    async def create(self, highlight: Highlight) -> str:
        raise ConnectionError("offline")

    async def delete(self, highlight_id: str) -> None:
        raise ConnectionError("offline")


@pytest.fixture
def store() -> InMemoryHighlightStore:
    return InMemoryHighlightStore()


@pytest.fixture
def cleared() -> list[bool]:
    return []


@pytest.fixture
def controller(
    store: InMemoryHighlightStore, settings: Settings, cleared: list[bool]
) -> SelectionLifecycleController:
    return SelectionLifecycleController(
        "s1",
        "session-1",
        viewport=Viewport(width=1000, height=800),
        store=store,
        clear_native_selection=lambda: cleared.append(True),
        settings=settings,
    )


class TestSelectionSignals:
    """From native selection to a pending temp highlight."""

    def test_end_creates_pending_temp(
        self, controller: SelectionLifecycleController, cleared: list[bool]
    ) -> None:
        assert controller.on_selection_end(_sel("duty of care"), now=0.0)

        assert controller.state is SelectionState.PENDING_CONFIRMATION
        temp = controller.temp
        assert temp is not None
        assert temp.color is HighlightColor.TEMP
        assert temp.text == "duty of care"
        assert temp.author_id == "s1"
        assert cleared == [True]
        assert controller.popover is not None
        assert controller.popover.placement is Placement.ABOVE

    def test_text_is_stripped(self, controller: SelectionLifecycleController) -> None:
        controller.on_selection_end(_sel("  duty of care \n"), now=0.0)
        assert controller.temp is not None
        assert controller.temp.text == "duty of care"

    def test_start_and_change_show_temp_without_popover(
        self, controller: SelectionLifecycleController, cleared: list[bool]
    ) -> None:
        """While dragging the temp highlight follows the selection."""
        assert controller.on_selection_start(_sel("d"), now=0.0)
        assert controller.state is SelectionState.SELECTING
        assert controller.popover is None
        assert cleared == []

    def test_change_signals_throttled(
        self, controller: SelectionLifecycleController
    ) -> None:
        controller.on_selection_start(_sel("d"), now=0.0)
        assert not controller.on_selection_change(_sel("du"), now=0.05)
        assert controller.on_selection_change(_sel("duty"), now=0.2)
        assert controller.temp is not None
        assert controller.temp.text == "duty"

    def test_end_after_identical_change_opens_popover(
        self, controller: SelectionLifecycleController
    ) -> None:
        """An end signal repeating the last change text still completes."""
        controller.on_selection_change(_sel("duty"), now=0.0)
        assert controller.on_selection_end(_sel("duty"), now=0.01)
        assert controller.state is SelectionState.PENDING_CONFIRMATION

    def test_duplicate_end_ignored(
        self, controller: SelectionLifecycleController, cleared: list[bool]
    ) -> None:
        controller.on_selection_end(_sel("duty"), now=0.0)
        assert not controller.on_selection_end(_sel("duty"), now=1.0)
        assert cleared == [True]

    @pytest.mark.parametrize(
        "selection",
        [
            _sel(""),
            _sel("   \n"),
            _sel("x" * 501),
            _sel("duty", in_container=False),
            _sel("duty", inside_highlight=True),
        ],
        ids=["empty", "whitespace", "too-long", "outside", "inside-highlight"],
    )
    def test_rejected_selection_leaves_state(
        self,
        controller: SelectionLifecycleController,
        store: InMemoryHighlightStore,
        selection: Selection,
    ) -> None:
        assert not controller.on_selection_end(selection, now=0.0)
        assert controller.state is SelectionState.IDLE
        assert controller.temp is None
        assert controller.popover is None
        assert store.calls == []

    def test_max_length_accepted(self, controller: SelectionLifecycleController) -> None:
        assert controller.on_selection_end(_sel("x" * 500), now=0.0)

    def test_declined_end_discards_dragged_temp(
        self, controller: SelectionLifecycleController
    ) -> None:
        """A drag that ends on an unusable selection leaves nothing behind."""
        controller.on_selection_start(_sel("duty"), now=0.0)
        assert controller.temp is not None

        assert not controller.on_selection_end(_sel("x" * 501), now=0.5)

        assert controller.temp is None
        assert controller.state is SelectionState.IDLE
        assert controller.last_outcome is SelectionState.CANCELLED
        assert "highlight-temp" not in controller.render(MARKUP)

    def test_declined_text_can_be_selected_elsewhere(
        self, controller: SelectionLifecycleController
    ) -> None:
        """Declining a selection does not mark its text as already processed."""
        assert not controller.on_selection_end(
            _sel("duty", inside_highlight=True), now=0.0
        )
        assert controller.on_selection_end(_sel("duty", start=4), now=5.0)
        assert controller.state is SelectionState.PENDING_CONFIRMATION

    def test_reselection_updates_temp_in_place(
        self, controller: SelectionLifecycleController
    ) -> None:
        """Only one temp highlight ever exists; its id is kept."""
        controller.on_selection_end(_sel("duty"), now=0.0)
        assert controller.temp is not None
        first_id = controller.temp.id

        controller.on_selection_start(_sel("neighbour", start=30), now=1.0)
        controller.on_selection_end(_sel("your neighbour", start=25), now=1.1)

        assert controller.temp is not None
        assert controller.temp.id == first_id
        assert controller.temp.text == "your neighbour"
        assert controller.temp.start_offset == 25
        assert controller.state is SelectionState.PENDING_CONFIRMATION


class TestKeys:
    """Escape and Ctrl/Cmd+H."""

    def test_escape_cancels(self, controller: SelectionLifecycleController) -> None:
        controller.on_selection_end(_sel("duty"), now=0.0)
        assert controller.on_key("Escape")
        assert controller.temp is None
        assert controller.last_outcome is SelectionState.CANCELLED

    def test_ctrl_h_processes_throttled_selection(
        self, controller: SelectionLifecycleController
    ) -> None:
        """Ctrl+H highlights the latest selection even if it was throttled."""
        controller.on_selection_start(_sel("d"), now=0.0)
        controller.on_selection_change(_sel("duty"), now=0.01)

        assert controller.on_key("h", ctrl=True)
        assert controller.state is SelectionState.PENDING_CONFIRMATION
        assert controller.temp is not None
        assert controller.temp.text == "duty"

    def test_meta_h(self, controller: SelectionLifecycleController) -> None:
        controller.on_selection_change(_sel("duty"), now=0.0)
        assert controller.on_key("H", meta=True)

    def test_plain_h_ignored(self, controller: SelectionLifecycleController) -> None:
        controller.on_selection_change(_sel("duty"), now=0.0)
        assert not controller.on_key("h")
        assert controller.state is SelectionState.SELECTING

    def test_ctrl_h_without_selection(
        self, controller: SelectionLifecycleController
    ) -> None:
        assert not controller.on_key("h", ctrl=True)


class TestConfirm:
    """Promoting the temp highlight to a stored one."""

    async def test_confirm_persists(
        self,
        controller: SelectionLifecycleController,
        store: InMemoryHighlightStore,
    ) -> None:
        controller.on_selection_end(_sel("duty of care"), now=0.0)
        assert controller.temp is not None
        temp_id = controller.temp.id

        created = await controller.confirm("green")

        assert created.id != temp_id
        assert created.color is HighlightColor.GREEN
        assert store.calls == [("create", created.id)]
        assert controller.state is SelectionState.IDLE
        assert controller.last_outcome is SelectionState.FINALIZED
        assert controller.temp is None
        assert controller.popover is None
        # Delivered back through the subscription
        assert [h.id for h in controller.highlights] == [created.id]

    async def test_default_colour(
        self, controller: SelectionLifecycleController
    ) -> None:
        controller.on_selection_end(_sel("duty"), now=0.0)
        created = await controller.confirm()
        assert created.color is HighlightColor.YELLOW

    async def test_same_text_can_be_selected_again(
        self, controller: SelectionLifecycleController
    ) -> None:
        controller.on_selection_end(_sel("duty"), now=0.0)
        await controller.confirm(HighlightColor.BLUE)
        assert controller.on_selection_end(_sel("duty"), now=0.01)

    async def test_confirm_without_temp(
        self, controller: SelectionLifecycleController
    ) -> None:
        with pytest.raises(SelectionStateError):
            await controller.confirm("yellow")

    async def test_confirm_while_dragging(
        self,
        controller: SelectionLifecycleController,
        store: InMemoryHighlightStore,
    ) -> None:
        """Only a finished selection can be confirmed."""
        controller.on_selection_start(_sel("duty"), now=0.0)
        with pytest.raises(SelectionStateError):
            await controller.confirm("yellow")
        assert store.calls == []
        assert controller.state is SelectionState.SELECTING

    async def test_confirm_with_temp_colour(
        self,
        controller: SelectionLifecycleController,
        store: InMemoryHighlightStore,
    ) -> None:
        controller.on_selection_end(_sel("duty"), now=0.0)
        with pytest.raises(SelectionStateError):
            await controller.confirm(HighlightColor.TEMP)
        assert store.calls == []
        assert controller.state is SelectionState.PENDING_CONFIRMATION

    async def test_failure_preserves_state(self, settings: Settings) -> None:
        """A failed create propagates and leaves the temp highlight pending."""
        controller = SelectionLifecycleController(
            "s1",
            "session-1",
            viewport=Viewport(width=1000, height=800),
            store=FailingStore(),
            settings=settings,
        )
        controller.on_selection_end(_sel("duty"), now=0.0)
        temp = controller.temp

        with pytest.raises(ConnectionError):
            await controller.confirm("pink")

        assert controller.state is SelectionState.PENDING_CONFIRMATION
        assert controller.temp == temp
        assert controller.popover is not None

    async def test_no_store_attached(self, settings: Settings) -> None:
        controller = SelectionLifecycleController(
            "s1",
            "session-1",
            viewport=Viewport(width=1000, height=800),
            settings=settings,
        )
        controller.on_selection_end(_sel("duty"), now=0.0)
        with pytest.raises(SelectionStateError, match="store"):
            await controller.confirm("yellow")


class TestCancel:
    """Discarding the temp highlight."""

    def test_cancel_discards_without_store_call(
        self,
        controller: SelectionLifecycleController,
        store: InMemoryHighlightStore,
    ) -> None:
        controller.on_selection_end(_sel("duty"), now=0.0)
        controller.cancel()
        assert controller.temp is None
        assert controller.popover is None
        assert controller.state is SelectionState.IDLE
        assert store.calls == []

    def test_cancel_when_idle_is_noop(
        self, controller: SelectionLifecycleController
    ) -> None:
        controller.cancel()
        assert controller.last_outcome is None

    def test_set_section_cancels(self, controller: SelectionLifecycleController) -> None:
        controller.on_selection_end(_sel("duty"), now=0.0)
        controller.set_section(3, "Facts")
        assert controller.temp is None
        assert controller.section_index == 3

    def test_new_temp_uses_section(
        self, controller: SelectionLifecycleController
    ) -> None:
        controller.set_section(-1)
        controller.on_selection_end(_sel("duty"), now=0.0)
        assert controller.temp is not None
        assert controller.temp.section_index == -1


class TestDelete:
    """Deleting one of the reader's own highlights."""

    @pytest.fixture
    def seeded(self, make_highlight: HighlightFactory) -> InMemoryHighlightStore:
        return InMemoryHighlightStore(
            [
                make_highlight("duty", id="mine", student="s1"),
                make_highlight("care", id="theirs", student="s2"),
            ]
        )

    async def test_delete_flow(
        self,
        seeded: InMemoryHighlightStore,
        settings: Settings,
    ) -> None:
        controller = SelectionLifecycleController(
            "s1",
            "session-1",
            viewport=Viewport(width=1000, height=800, scroll_y=50),
            store=seeded,
            settings=settings,
        )
        assert controller.on_highlight_click("mine", RECT)
        assert controller.delete_target == "mine"
        assert controller.delete_popover is not None
        assert controller.delete_popover.y == 300 + 20 + 50 + 5

        assert await controller.confirm_delete() == "mine"

        assert seeded.calls == [("delete", "mine")]
        assert controller.delete_target is None
        assert controller.delete_popover is None
        assert controller.highlights == []

    def test_cannot_delete_others(
        self, seeded: InMemoryHighlightStore, settings: Settings
    ) -> None:
        controller = SelectionLifecycleController(
            "s1",
            "session-1",
            viewport=Viewport(width=1000, height=800),
            store=seeded,
            settings=settings,
        )
        assert not controller.on_highlight_click("theirs", RECT)
        assert controller.delete_popover is None

    async def test_failure_keeps_popover_open(
        self, make_highlight: HighlightFactory, settings: Settings
    ) -> None:
        controller = SelectionLifecycleController(
            "s1",
            "session-1",
            viewport=Viewport(width=1000, height=800),
            store=FailingStore([make_highlight("duty", id="mine")]),
            settings=settings,
        )
        controller.on_highlight_click("mine", RECT)

        with pytest.raises(ConnectionError):
            await controller.confirm_delete()

        assert controller.delete_target == "mine"
        assert controller.delete_popover is not None
        assert [h.id for h in controller.highlights] == ["mine"]

    async def test_confirm_delete_without_target(
        self, controller: SelectionLifecycleController
    ) -> None:
        with pytest.raises(SelectionStateError):
            await controller.confirm_delete()

    def test_dismiss(
        self, seeded: InMemoryHighlightStore, settings: Settings
    ) -> None:
        controller = SelectionLifecycleController(
            "s1",
            "session-1",
            viewport=Viewport(width=1000, height=800),
            store=seeded,
            settings=settings,
        )
        controller.on_highlight_click("mine", RECT)
        controller.dismiss_delete()
        assert controller.delete_target is None
        assert seeded.calls == []


class TestStoreWiring:
    """Subscription, refresh and note edits."""

    async def test_update_note(
        self,
        controller: SelectionLifecycleController,
        store: InMemoryHighlightStore,
    ) -> None:
        controller.on_selection_end(_sel("duty"), now=0.0)
        created = await controller.confirm("yellow")

        await controller.update_note(created.id, "the key test")

        [h] = controller.highlights
        assert h.note == "the key test"
        assert store.calls[-1] == ("update", created.id)

    def test_detach_unsubscribes(
        self,
        controller: SelectionLifecycleController,
        store: InMemoryHighlightStore,
    ) -> None:
        assert store.subscriber_count == 1
        controller.detach()
        assert store.subscriber_count == 0

    async def test_refresh(
        self,
        store: InMemoryHighlightStore,
        make_highlight: HighlightFactory,
        settings: Settings,
    ) -> None:
        controller = SelectionLifecycleController(
            "s1",
            "session-1",
            viewport=Viewport(width=1000, height=800),
            settings=settings,
        )
        controller.attach(store)
        controller.detach()
        await store.create(make_highlight("duty", id="late"))
        assert controller.highlights == []

        controller.attach(store)
        assert [h.id for h in await controller.refresh()] == ["late"]


class TestRender:
    """Convenience rendering of the controller's state."""

    def test_temp_highlight_rendered_live(
        self, controller: SelectionLifecycleController
    ) -> None:
        controller.on_selection_end(_sel("duty of care"), now=0.0)
        result = controller.render(MARKUP)
        assert 'class="highlight highlight-temp"' in result
        assert ">duty of care</span>" in result

    async def test_confirmed_highlight_rendered(
        self, controller: SelectionLifecycleController
    ) -> None:
        controller.on_selection_end(_sel("neighbour"), now=0.0)
        created = await controller.confirm("purple")
        result = controller.render(MARKUP)
        assert f'data-highlight-id="{created.id}">neighbour</span>' in result
        assert "highlight-temp" not in result

    def test_popular_overlay(
        self,
        controller: SelectionLifecycleController,
        make_highlight: HighlightFactory,
    ) -> None:
        session = [make_highlight("duty of care", student=s) for s in ("s2", "s3")]
        result = controller.render(MARKUP, session)
        assert 'data-popular-count="2"' in result
