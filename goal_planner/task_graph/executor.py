"""
Plan Executor for driving a task DAG to completion.
Supports sequential, level-parallel and adaptive scheduling, records a
timeline of what ran, and evaluates goal completion.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Set, Tuple

from ..errors import PlanExecutionError, PlanValidationError
from ..llm.base import ChatAgent
from ..metrics import MetricsCollector
from .config import PlannerConfig
from .context import EventCallback, ExecutionContext
from .dag import build_adjacency, group_by_dependency_level, parallel_fraction
from .models import (
    EventType,
    ExecutionResult,
    Metrics,
    Plan,
    PlanningStrategy,
    PlanStatus,
    Task,
    TaskResult,
    TaskStatus,
)
from .worker_pool import BoundedWorkerPool

logger = logging.getLogger(__name__)

# Strategy body: runs tasks against a context, returns an error message or None
StrategyBody = Callable[[ExecutionContext], Awaitable[Optional[str]]]


class Executor:
    """
    Executes plans using a chat agent, one chat turn per task.

    Features:
    - Sequential, parallel (per dependency level) and adaptive strategies
    - Bounded concurrency within a level
    - Cancellation and goal timeout
    - Timeline events and aggregate metrics

    Example:
        executor = Executor(agent, config=PlannerConfig(max_parallel=3))

        result = await executor.run(plan)
        if result.success:
            print(result.final_result)
    """

    def __init__(
        self,
        agent: ChatAgent,
        config: Optional[PlannerConfig] = None,
        on_event: Optional[EventCallback] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        """
        Initialize the executor.

        Args:
            agent: Chat collaborator that performs each task
            config: Planner configuration (defaults are used when omitted)
            on_event: Called with every timeline event as it is recorded
            metrics_collector: Optional cross-run metrics sink
        """
        self.agent = agent
        self.config = (config or PlannerConfig()).validate()
        self.on_event = on_event
        self.metrics_collector = metrics_collector

        self._active: Set[ExecutionContext] = set()

    # ------------------------------------------------------------------
    # Task selection
    # ------------------------------------------------------------------

    def can_execute(self, task: Task, ctx: ExecutionContext) -> bool:
        """A pending task whose dependencies all completed in this run."""
        if task.status != TaskStatus.PENDING:
            return False

        for dep_id in task.dependencies:
            result = ctx.get_result(dep_id)
            if result is None or result.status != TaskStatus.COMPLETED:
                return False

        return True

    def select_next_task(
        self,
        ctx: ExecutionContext,
        candidates: Optional[Sequence[Task]] = None,
    ) -> Optional[Task]:
        """
        First executable task in declaration order.

        Args:
            ctx: Execution context
            candidates: Tasks to choose from (defaults to the whole plan)

        Returns:
            The task, or None when nothing is currently executable
        """
        for task in ctx.plan.tasks if candidates is None else candidates:
            if self.can_execute(task, ctx):
                return task
        return None

    # ------------------------------------------------------------------
    # Single task
    # ------------------------------------------------------------------

    async def execute_task(self, task: Task, ctx: ExecutionContext) -> TaskResult:
        """
        Run one task through the chat agent.

        Agent errors are recorded as a failed result, never raised. If the
        surrounding run is cancelled mid-call, the task goes back to pending
        and the cancellation propagates.
        """
        started_at = datetime.now()
        start = time.monotonic()

        ctx.add_event(EventType.TASK_STARTED, f"Starting task: {task.description}", task.id)
        task.status = TaskStatus.RUNNING
        task.started_at = started_at

        in_flight = ctx.task_entered()
        if self.metrics_collector:
            self.metrics_collector.set_gauge("tasks_in_flight", in_flight)

        try:
            chat_result = await self.agent.chat(task.description)
        except asyncio.CancelledError:
            task.status = TaskStatus.PENDING
            task.started_at = None
            logger.debug(f"Task {task.id} cancelled while running")
            raise
        except Exception as e:
            duration_ms = (time.monotonic() - start) * 1000
            task.status = TaskStatus.FAILED
            task.error = str(e)
            task.completed_at = datetime.now()
            task.duration_ms = duration_ms

            result = TaskResult(
                task_id=task.id,
                status=TaskStatus.FAILED,
                error=str(e),
                started_at=started_at,
                ended_at=task.completed_at,
                duration_ms=duration_ms,
            )
            ctx.set_result(result)
            ctx.add_event(
                EventType.TASK_FAILED,
                f"Task failed: {e}",
                task.id,
                duration_ms=duration_ms,
            )
            logger.warning(f"Task {task.id} failed: {e}")
        else:
            duration_ms = (time.monotonic() - start) * 1000
            task.status = TaskStatus.COMPLETED
            task.result = chat_result.content
            task.completed_at = datetime.now()
            task.duration_ms = duration_ms

            result = TaskResult(
                task_id=task.id,
                status=TaskStatus.COMPLETED,
                output=chat_result.content,
                started_at=started_at,
                ended_at=task.completed_at,
                duration_ms=duration_ms,
            )
            ctx.set_result(result)
            ctx.add_event(
                EventType.TASK_COMPLETED,
                f"Task completed in {duration_ms:.1f}ms",
                task.id,
                duration_ms=duration_ms,
            )
            logger.debug(f"Task {task.id} completed in {duration_ms:.1f}ms")
        finally:
            ctx.task_exited()
            if self.metrics_collector:
                self.metrics_collector.set_gauge("tasks_in_flight", ctx.in_flight)

        if self.metrics_collector:
            self.metrics_collector.record_task_execution(
                task.type.value, result.duration_ms, result.status == TaskStatus.COMPLETED
            )

        self._periodic_goal_check(ctx)
        return result

    # ------------------------------------------------------------------
    # Goal evaluation and metrics
    # ------------------------------------------------------------------

    def check_goal_completion(self, ctx: ExecutionContext) -> Tuple[bool, str]:
        """
        True iff every task completed and every goal criterion is satisfied.

        Returns:
            (met, human-readable reason)
        """
        plan = ctx.plan

        unfinished = [task for task in plan.tasks if task.status != TaskStatus.COMPLETED]
        if unfinished:
            return False, f"{len(unfinished)} of {len(plan.tasks)} tasks not completed"

        unmet = plan.goal_state.unmet_criteria()
        if unmet:
            return False, f"Criterion not met: {unmet[0]}"

        if plan.goal_state.criteria:
            return True, "All goal criteria satisfied"
        return True, "All tasks completed successfully"

    def _periodic_goal_check(self, ctx: ExecutionContext) -> None:
        count = ctx.increment_task_counter()
        if count % self.config.goal_check_interval != 0:
            return

        met, reason = self.check_goal_completion(ctx)
        ctx.add_event(
            EventType.GOAL_CHECKED,
            f"Goal check at task {count}: {reason} (met: {met})",
            task_counter=count,
            met=met,
        )
        # Observed only; remaining tasks still run
        if met:
            ctx.add_event(
                EventType.GOAL_ACHIEVED,
                f"Goal achieved after {count} tasks",
                task_counter=count,
            )

    def build_metrics(self, ctx: ExecutionContext) -> Metrics:
        """Aggregate statistics for a run, independent of strategy."""
        results = list(ctx.results_snapshot().values())
        completed = [r for r in results if r.status == TaskStatus.COMPLETED]
        failed = [r for r in results if r.status == TaskStatus.FAILED]
        skipped = [r for r in results if r.status == TaskStatus.SKIPPED]

        durations = [r.duration_ms for r in completed]
        executed = len(completed) + len(failed) + len(skipped)
        tasks = ctx.plan.tasks

        return Metrics(
            task_count=len(tasks),
            completed_tasks=len(completed),
            failed_tasks=len(failed),
            skipped_tasks=len(skipped),
            success_rate=len(completed) / executed if executed else 0.0,
            execution_time_ms=(datetime.now() - ctx.started_at).total_seconds() * 1000,
            total_task_time_ms=sum(durations),
            avg_task_duration_ms=sum(durations) / len(durations) if durations else 0,
            max_task_duration_ms=max(durations) if durations else 0,
            parallel_tasks=ctx.parallel_tasks,
            max_concurrency=ctx.max_in_flight,
            avg_task_depth=sum(task.depth for task in tasks) / len(tasks) if tasks else 0.0,
            goal_achieved=self.check_goal_completion(ctx)[0],
        )

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    async def execute(self, plan: Plan) -> ExecutionResult:
        """
        Run tasks one at a time in declaration order.

        A failed task does not stop independent tasks; its dependents never
        become executable.
        """
        return await self._run(plan, PlanningStrategy.SEQUENTIAL, self._sequential_body)

    async def execute_parallel(self, plan: Plan) -> ExecutionResult:
        """
        Run dependency levels in order, each through a bounded worker pool.

        The first failure in a level stops further dispatches in that level and
        aborts all later levels.
        """
        return await self._run(plan, PlanningStrategy.PARALLEL, self._parallel_body)

    async def execute_adaptive(self, plan: Plan) -> ExecutionResult:
        """
        Choose per level: parallel when the level's parallel fraction exceeds
        adaptive_threshold, sequential otherwise.
        """
        return await self._run(plan, PlanningStrategy.ADAPTIVE, self._adaptive_body)

    async def run(self, plan: Plan) -> ExecutionResult:
        """Execute a plan with its own strategy."""
        if plan.strategy == PlanningStrategy.PARALLEL:
            return await self.execute_parallel(plan)
        if plan.strategy == PlanningStrategy.ADAPTIVE:
            return await self.execute_adaptive(plan)
        return await self.execute(plan)

    async def run_or_raise(self, plan: Plan) -> ExecutionResult:
        """
        Execute a plan and require completion.

        Raises:
            PlanExecutionError: If the plan did not complete
        """
        result = await self.run(plan)
        if result.status != PlanStatus.COMPLETED:
            raise PlanExecutionError(
                f"plan execution {result.status.value}: {result.error}",
                plan_id=plan.id,
                status=result.status.value,
            )
        return result

    def cancel_all(self, reason: str = "canceled") -> int:
        """
        Cancel every active run.

        No new tasks are dispatched and in-flight tasks are cancelled; the runs
        finish with status canceled.

        Returns:
            Number of runs cancelled
        """
        active = list(self._active)
        for ctx in active:
            ctx.cancel(reason)
        if active:
            logger.info(f"Cancelling {len(active)} active run(s): {reason}")
        return len(active)

    async def _sequential_body(self, ctx: ExecutionContext) -> Optional[str]:
        await self._execute_tasks_sequentially(ctx)
        return None

    async def _parallel_body(self, ctx: ExecutionContext) -> Optional[str]:
        levels = self._levels(ctx)
        if levels is None:
            return "dependency cycle detected"

        for index, level in enumerate(levels):
            if ctx.is_canceled:
                break

            ctx.add_event(
                EventType.LEVEL_STARTED,
                f"Starting level {index} with {len(level)} task(s)",
                level=index,
                task_count=len(level),
            )
            failed = await self._execute_level_parallel(ctx, level)
            if failed:
                logger.warning(f"Level {index} had failures, aborting remaining levels")
                break

        return None

    async def _adaptive_body(self, ctx: ExecutionContext) -> Optional[str]:
        threshold = self.config.adaptive_threshold
        ctx.add_event(
            EventType.STRATEGY_INITIALIZED,
            f"Starting with adaptive strategy (threshold: {threshold:.2f})",
            threshold=threshold,
        )

        levels = self._levels(ctx)
        if levels is None:
            return "dependency cycle detected"

        current: Optional[PlanningStrategy] = None
        for index, level in enumerate(levels):
            if ctx.is_canceled:
                break

            fraction = parallel_fraction(level)
            path = PlanningStrategy.PARALLEL if fraction > threshold else PlanningStrategy.SEQUENTIAL

            if current is not None and path != current:
                ctx.add_event(
                    EventType.STRATEGY_SWITCHED,
                    f"Switched from {current.value} to {path.value} at level {index} "
                    f"(parallel fraction: {fraction:.2f}, threshold: {threshold:.2f})",
                    level=index,
                    from_strategy=current.value,
                    to_strategy=path.value,
                    parallel_fraction=fraction,
                )
            current = path

            ctx.add_event(
                EventType.LEVEL_STARTED,
                f"Starting level {index} with {len(level)} task(s) ({path.value})",
                level=index,
                task_count=len(level),
                strategy=path.value,
            )

            if path == PlanningStrategy.PARALLEL:
                failed = await self._execute_level_parallel(ctx, level)
            else:
                failed = await self._execute_tasks_sequentially(ctx, level, stop_on_failure=True)

            if failed:
                logger.warning(f"Level {index} had failures, aborting remaining levels")
                break

        return None

    async def _execute_tasks_sequentially(
        self,
        ctx: ExecutionContext,
        candidates: Optional[Sequence[Task]] = None,
        stop_on_failure: bool = False,
    ) -> bool:
        """
        Select-and-run until nothing is executable. Returns True if any task failed.

        With stop_on_failure, no further task is started after the first failure.
        """
        failed = False
        while not ctx.is_canceled:
            task = self.select_next_task(ctx, candidates)
            if task is None:
                break

            result = await self._until_canceled(ctx, self.execute_task(task, ctx))
            if result is None:
                break
            if result.status == TaskStatus.FAILED:
                failed = True
                if stop_on_failure:
                    break

        return failed

    async def _execute_level_parallel(self, ctx: ExecutionContext, level: List[Task]) -> bool:
        """Run one level through a worker pool. Returns True if any task failed."""
        runnable = [task for task in level if self.can_execute(task, ctx)]
        if not runnable:
            return False

        pool = BoundedWorkerPool(min(self.config.max_parallel, len(runnable)))
        failures: List[str] = []

        async def worker(task: Task) -> TaskResult:
            ctx.count_parallel_dispatch()
            result = await self.execute_task(task, ctx)
            if result.status == TaskStatus.FAILED:
                failures.append(task.id)
            return result

        def should_dispatch() -> bool:
            return not failures and not ctx.is_canceled

        await self._until_canceled(ctx, pool.run(runnable, worker, should_dispatch))
        return bool(failures)

    def _levels(self, ctx: ExecutionContext) -> Optional[List[List[Task]]]:
        try:
            return group_by_dependency_level(ctx.plan.tasks)
        except PlanValidationError as e:
            logger.error(f"Cannot schedule plan {ctx.plan.id}: {e}")
            return None

    async def _until_canceled(self, ctx: ExecutionContext, coro: Awaitable):
        """
        Await ``coro`` unless the run is cancelled first.

        Returns:
            The coroutine's result, or None if cancellation won
        """
        work = asyncio.ensure_future(coro)
        waiter = asyncio.ensure_future(ctx.wait_canceled())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for future in (work, waiter):
                if not future.done():
                    future.cancel()
            await asyncio.gather(work, waiter, return_exceptions=True)

        if work.cancelled():
            return None
        return work.result()

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    async def _run(
        self,
        plan: Plan,
        strategy: PlanningStrategy,
        body: StrategyBody,
    ) -> ExecutionResult:
        ctx = ExecutionContext(plan, on_event=self.on_event)
        result = ExecutionResult(
            plan=plan,
            status=PlanStatus.RUNNING,
            strategy=strategy,
            started_at=ctx.started_at,
        )

        logger.info(
            f"Executing plan {plan.id} ({len(plan.tasks)} tasks, strategy={strategy.value})"
        )

        error = self._check_plan(plan)
        if error is not None:
            return self._finish(ctx, result, error)

        loop = asyncio.get_running_loop()
        timer = loop.call_later(self.config.goal_timeout_seconds, ctx.cancel, "timeout")
        self._active.add(ctx)
        try:
            error = await body(ctx)
        finally:
            timer.cancel()
            self._active.discard(ctx)

        return self._finish(ctx, result, error)

    def _check_plan(self, plan: Plan) -> Optional[str]:
        """Reject plans that cannot be scheduled before any task runs."""
        try:
            build_adjacency(plan.tasks)
        except PlanValidationError as e:
            logger.error(f"Invalid plan {plan.id}: {e}")
            return f"invalid plan: {e.message}"
        return None

    def _finish(
        self,
        ctx: ExecutionContext,
        result: ExecutionResult,
        error: Optional[str],
    ) -> ExecutionResult:
        plan = ctx.plan
        all_completed = all(task.status == TaskStatus.COMPLETED for task in plan.tasks)

        if all_completed and error is None:
            result.status = PlanStatus.COMPLETED
        elif ctx.is_canceled:
            result.status = PlanStatus.CANCELED
            result.error = f"execution canceled: {ctx.cancel_reason}"
            ctx.add_event(
                EventType.PLAN_CANCELED,
                f"Plan canceled ({ctx.cancel_reason})",
                reason=ctx.cancel_reason,
            )
            logger.warning(f"Plan {plan.id} canceled: {ctx.cancel_reason}")
        else:
            result.status = PlanStatus.FAILED
            if error is None:
                if any(task.status == TaskStatus.FAILED for task in plan.tasks):
                    error = "some tasks failed"
                else:
                    error = "no executable tasks remain"
            result.error = error
            self._skip_pending(ctx)
            logger.warning(f"Plan {plan.id} failed: {error}")

        goal_met, reason = self.check_goal_completion(ctx)
        if result.status == PlanStatus.COMPLETED:
            result.final_result = reason

        result.metrics = self.build_metrics(ctx)
        result.metrics.goal_achieved = goal_met
        result.results = ctx.results_snapshot()
        result.timeline = ctx.timeline_snapshot()
        result.completed_at = datetime.now()
        result.duration_ms = (result.completed_at - result.started_at).total_seconds() * 1000

        if self.metrics_collector:
            self.metrics_collector.record_plan_completion(
                result.strategy.value,
                result.status.value,
                result.duration_ms,
                len(plan.tasks),
            )

        logger.info(
            f"Plan {plan.id} {result.status.value}: "
            f"{result.completed_tasks}/{result.total_tasks} tasks completed "
            f"in {result.duration_ms:.1f}ms"
        )

        return result

    def _skip_pending(self, ctx: ExecutionContext) -> None:
        """Mark tasks that never ran as skipped."""
        for task in ctx.plan.tasks:
            if task.status != TaskStatus.PENDING:
                continue

            task.status = TaskStatus.SKIPPED
            # a rejected plan may repeat an ID; record it once
            if ctx.get_result(task.id) is not None:
                continue
            ctx.set_result(TaskResult(task_id=task.id, status=TaskStatus.SKIPPED))
            ctx.add_event(
                EventType.TASK_SKIPPED,
                f"Task skipped: {task.description}",
                task.id,
            )
