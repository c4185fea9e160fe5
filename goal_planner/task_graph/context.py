"""
Per-run execution state.
One ExecutionContext is created for each execution of a plan and discarded
afterwards; results and the timeline are the only state shared between the
tasks of a dependency level.
"""

import asyncio
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .models import EventType, Plan, TaskResult, TimelineEvent

logger = logging.getLogger(__name__)

# Receives every timeline event as it is recorded
EventCallback = Callable[[TimelineEvent], None]


class ExecutionContext:
    """
    Mutable state for one plan execution.

    Results are write-once per task ID, the timeline is append-only, and both
    are guarded by a lock so concurrent workers never observe a torn update.
    """

    def __init__(self, plan: Plan, on_event: Optional[EventCallback] = None):
        self.plan = plan
        self.on_event = on_event
        self.started_at = datetime.now()

        self._lock = threading.Lock()
        self._results: Dict[str, TaskResult] = {}
        self._timeline: List[TimelineEvent] = []
        self._task_counter = 0

        # Concurrency gauge
        self._in_flight = 0
        self.max_in_flight = 0
        self.parallel_tasks = 0

        self._cancel_event = asyncio.Event()
        self.cancel_reason: Optional[str] = None

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def get_result(self, task_id: str) -> Optional[TaskResult]:
        with self._lock:
            return self._results.get(task_id)

    def set_result(self, result: TaskResult) -> None:
        """
        Store the outcome of a task.

        Raises:
            RuntimeError: If the task already has a result
        """
        with self._lock:
            if result.task_id in self._results:
                raise RuntimeError(f"result for task {result.task_id} already recorded")
            self._results[result.task_id] = result

    def results_snapshot(self) -> Dict[str, TaskResult]:
        """Consistent copy of all results recorded so far."""
        with self._lock:
            return dict(self._results)

    # ------------------------------------------------------------------
    # Timeline
    # ------------------------------------------------------------------

    def add_event(
        self,
        event_type: EventType,
        description: str,
        task_id: Optional[str] = None,
        **data: Any,
    ) -> TimelineEvent:
        """Append an event to the timeline and notify the callback."""
        event = TimelineEvent(
            type=event_type,
            description=description,
            task_id=task_id,
            data=data,
        )
        with self._lock:
            self._timeline.append(event)

        if self.on_event:
            try:
                self.on_event(event)
            except Exception as e:
                logger.warning(f"Event callback failed for {event_type.value}: {e}")

        return event

    def timeline_snapshot(self) -> List[TimelineEvent]:
        with self._lock:
            return list(self._timeline)

    def increment_task_counter(self) -> int:
        """Count one executed task; returns the new total."""
        with self._lock:
            self._task_counter += 1
            return self._task_counter

    @property
    def task_counter(self) -> int:
        with self._lock:
            return self._task_counter

    # ------------------------------------------------------------------
    # Concurrency gauge
    # ------------------------------------------------------------------

    def task_entered(self) -> int:
        """Mark a task as in flight; returns the current in-flight count."""
        with self._lock:
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
            return self._in_flight

    def task_exited(self) -> None:
        with self._lock:
            self._in_flight -= 1

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def count_parallel_dispatch(self) -> None:
        with self._lock:
            self.parallel_tasks += 1

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self, reason: str = "canceled") -> None:
        """Request cancellation; the first reason wins."""
        if self.cancel_reason is None:
            self.cancel_reason = reason
        self._cancel_event.set()

    @property
    def is_canceled(self) -> bool:
        return self._cancel_event.is_set()

    async def wait_canceled(self) -> None:
        await self._cancel_event.wait()
