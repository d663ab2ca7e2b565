"""Rate limiting for selection-change signals.

Hosts report selection changes continuously while the reader drags. Only
one signal per window is processed, and a signal whose text is identical to
the last processed one is ignored. Checking and recording are separate
steps: the caller records a signal only once it has actually accepted it.
"""

from __future__ import annotations

import time


class SelectionThrottle:
    """Throttle window plus duplicate suppression.

    Attributes:
        window_ms: Minimum time between two processed change signals.
    """

    def __init__(self, window_ms: int = 150) -> None:
        self.window_ms = window_ms
        self._last_text: str | None = None
        self._last_at: float | None = None

    @property
    def last_text(self) -> str | None:
        return self._last_text

    def should_process(
        self, text: str, now: float | None = None, *, bypass_window: bool = False
    ) -> bool:
        """Decide whether a selection signal should be handled.

        Does not record anything; call ``record()`` once the signal has been
        accepted.

        Args:
            text: Selected text carried by the signal.
            now: Monotonic timestamp in seconds (defaults to ``time.monotonic()``).
            bypass_window: True for start/end signals, which skip the window
                check but are still subject to duplicate suppression.
        """
        if text == self._last_text:
            return False
        if bypass_window or self._last_at is None:
            return True
        now = now if now is not None else time.monotonic()
        return (now - self._last_at) * 1000 >= self.window_ms

    def record(self, text: str, now: float | None = None) -> None:
        """Remember *text* as the last processed signal."""
        self._last_text = text
        self._last_at = now if now is not None else time.monotonic()

    def reset(self) -> None:
        """Forget the last processed signal."""
        self._last_text = None
        self._last_at = None
