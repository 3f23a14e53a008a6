"""Refresh coordinator: debounces redraw requests into one redraw per window.

Concurrent edits to different records each ask for a redraw; the coordinator
keeps one pending timer and restarts it on every request, so a burst produces
a single redraw once it goes quiet.

A request may name one item (a title or priority edit only needs that node
redrawn). Requests inside one window that disagree widen to a full redraw.
"""

import logging
from typing import Callable, Optional

from cascade.lib.config import DEFAULT_REFRESH_DEBOUNCE_MS, REFRESH_DEBOUNCE_RANGE, clamp_delay
from cascade.workflow.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

# Redraw callback argument: None redraws everything, an item id redraws that node
RefreshTarget = Optional[str]

_UNSET = object()


class RefreshCoordinator:
    """Single pending-timer debouncer in front of the redraw callback."""

    def __init__(
        self,
        scheduler: Scheduler,
        on_refresh: Callable[[RefreshTarget], None],
        delay_ms: int = DEFAULT_REFRESH_DEBOUNCE_MS,
    ):
        self._scheduler = scheduler
        self._on_refresh = on_refresh
        self._delay_ms = clamp_delay(delay_ms, REFRESH_DEBOUNCE_RANGE, "REFRESH_DEBOUNCE_DELAY")
        self._timer: Optional[TimerHandle] = None
        self._target = _UNSET
        self.refresh_count = 0

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @property
    def pending(self) -> bool:
        """True while a debounced redraw is waiting to fire."""
        return self._timer is not None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, target: RefreshTarget) -> None:
        self.refresh_count += 1
        logger.debug(f"[Refresh] Redraw #{self.refresh_count} ({target or 'all'})")
        self._on_refresh(target)

    def _on_timer(self) -> None:
        target = None if self._target is _UNSET else self._target
        self._timer = None
        self._target = _UNSET
        self._fire(target)

    def schedule_refresh(self, target: RefreshTarget = None) -> None:
        """Request a redraw after the debounce delay.

        Args:
            target: Item id to redraw, or None for everything
        """
        if self._delay_ms == 0:
            self._fire(target)
            return

        if self._target is _UNSET:
            self._target = target
        elif self._target != target:
            self._target = None

        self._cancel_timer()
        self._timer = self._scheduler.call_later(self._delay_ms, self._on_timer)

    def refresh_now(self, target: RefreshTarget = None) -> None:
        """Cancel any pending redraw and redraw immediately."""
        if self._timer is not None and self._target is not _UNSET and self._target != target:
            target = None
        self._cancel_timer()
        self._target = _UNSET
        self._fire(target)

    def update_delay(self, delay_ms: int) -> None:
        """Change the delay for future requests; a running timer keeps its delay."""
        self._delay_ms = clamp_delay(delay_ms, REFRESH_DEBOUNCE_RANGE, "REFRESH_DEBOUNCE_DELAY")
        logger.debug(f"[Refresh] Debounce delay set to {self._delay_ms}ms")

    def dispose(self) -> None:
        """Cancel any pending redraw without firing it."""
        if self._timer is not None:
            logger.debug("[Refresh] Disposed with a pending redraw, cancelled")
        self._cancel_timer()
        self._target = _UNSET
