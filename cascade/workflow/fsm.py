"""Repository-operation detector using transitions library.

Checkouts, merges, rebases and pulls rewrite many records at once. Each
rewrite produces its own file event, and redrawing after every one of them
would flicker through dozens of half-applied trees. The detector watches the
repository metadata (HEAD and index) instead: the first touch opens an
operation, every further touch restarts a settle timer, and once the timer
runs out the operation is over and the engine rebuilds once.

States:
    idle                    no operation seen
    operation_in_progress   metadata touched within the last settle delay

Usage:
    from cascade.workflow.fsm import RepositoryOperationDetector

    detector = RepositoryOperationDetector(scheduler, on_complete=engine_rebuild)
    detector.handle_signal(REFERENCE_CHANGED)
    detector.is_operation_in_progress()  # True until the settle timer fires
"""

import logging
from typing import Callable, Optional

from transitions import Machine

from cascade.lib.config import DEFAULT_GIT_SETTLE_MS, GIT_SETTLE_RANGE, clamp_delay
from cascade.lib.watcher import INDEX_CHANGED, REFERENCE_CHANGED
from cascade.workflow.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

SIGNAL_KINDS = (REFERENCE_CHANGED, INDEX_CHANGED)

STATES = ["idle", "operation_in_progress"]

TRANSITIONS = [
    # First metadata touch opens an operation
    {"trigger": "operation_started", "source": "idle", "dest": "operation_in_progress"},

    # Settle timer ran out: rebuild
    {"trigger": "operation_settled", "source": "operation_in_progress", "dest": "idle"},

    # Detection disabled or shut down mid-operation: no rebuild
    {"trigger": "operation_cancelled", "source": "operation_in_progress", "dest": "idle"},
]


class RepositoryOperationDetector:
    """Settle-timer state machine over repository metadata signals.

    The Machine binds `is_idle()` and `is_operation_in_progress()` onto the
    instance.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        on_complete: Callable[[], None],
        settle_ms: int = DEFAULT_GIT_SETTLE_MS,
        enabled: bool = True,
    ):
        """
        Args:
            scheduler: Timer source for the settle timer
            on_complete: Called once per operation after it settles
            settle_ms: Quiet period that ends an operation
            enabled: When False, signals are ignored
        """
        self._scheduler = scheduler
        self._on_complete = on_complete
        self._settle_ms = clamp_delay(settle_ms, GIT_SETTLE_RANGE, "GIT_OPERATION_DEBOUNCE_DELAY")
        self._enabled = enabled
        self._timer: Optional[TimerHandle] = None
        self.started_at: Optional[float] = None
        self.signal_count = 0

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="idle",
            auto_transitions=False,  # Only explicit transitions
            send_event=True,  # Pass EventData to callbacks
            after_state_change="on_state_change",
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def settle_ms(self) -> int:
        return self._settle_ms

    def on_state_change(self, event) -> None:
        """Log every transition."""
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name
        logger.debug(f"[Git] {from_state} -> {to_state} ({trigger})")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer = self._scheduler.call_later(self._settle_ms, self._on_settled)

    def _on_settled(self) -> None:
        self._timer = None
        if not self.is_operation_in_progress():
            return

        elapsed = self._scheduler.now_ms() - (self.started_at or 0)
        logger.info(
            f"[Git] Operation settled after {elapsed:.0f}ms "
            f"({self.signal_count} metadata signals), rebuilding"
        )
        self.operation_settled()
        self.started_at = None
        self.signal_count = 0
        self._on_complete()

    def handle_signal(self, kind: str) -> None:
        """Feed one metadata signal ("reference changed" or "index changed")."""
        if not self._enabled:
            return
        if kind not in SIGNAL_KINDS:
            logger.warning(f"[Git] Unknown metadata signal '{kind}', ignoring")
            return

        self.signal_count += 1
        if self.is_idle():
            self.started_at = self._scheduler.now_ms()
            logger.info(f"[Git] Operation started ({kind})")
            self.operation_started()
        else:
            logger.debug(f"[Git] Operation continues ({kind}), settle timer reset")

        self._restart_timer()

    def _cancel_operation(self, reason: str) -> None:
        self._cancel_timer()
        if self.is_operation_in_progress():
            logger.info(f"[Git] Operation cancelled ({reason}), no rebuild")
            self.operation_cancelled()
        self.started_at = None
        self.signal_count = 0

    def set_enabled(self, enabled: bool) -> None:
        """Turn detection on or off. Disabling mid-operation cancels it without rebuilding."""
        if not enabled:
            self._cancel_operation("detection disabled")
        self._enabled = enabled

    def update_settle_delay(self, settle_ms: int) -> None:
        """Change the settle delay for timers started from now on."""
        self._settle_ms = clamp_delay(settle_ms, GIT_SETTLE_RANGE, "GIT_OPERATION_DEBOUNCE_DELAY")

    def dispose(self) -> None:
        """Cancel the settle timer at shutdown without rebuilding."""
        self._cancel_operation("disposed")
