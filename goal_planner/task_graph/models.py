"""
Data model for plans, tasks and execution results.
A plan holds a flat, depth-first list of tasks whose dependencies form a DAG.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class PlanningStrategy(str, Enum):
    """How a plan's tasks are scheduled."""
    SEQUENTIAL = "sequential"  # One task at a time, declaration order
    PARALLEL = "parallel"  # Dependency levels, bounded worker pool per level
    ADAPTIVE = "adaptive"  # Per-level choice between the two


class PlanStatus(str, Enum):
    """Overall state of a plan execution."""
    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


class TaskStatus(str, Enum):
    """Lifecycle state of a single task."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"  # Never ran because a dependency failed


class TaskType(str, Enum):
    """Purpose of a task."""
    ACTION = "action"
    DECISION = "decision"
    OBSERVATION = "observation"
    AGGREGATE = "aggregate"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TaskType":
        """Map a generator-provided type string onto a TaskType."""
        if not value:
            return cls.ACTION
        try:
            return cls(value.strip().lower())
        except ValueError:
            logger.warning(f"Unknown task type '{value}', using 'action'")
            return cls.ACTION


class EventType(str, Enum):
    """Timeline event types."""
    STRATEGY_INITIALIZED = "strategy_initialized"
    STRATEGY_SWITCHED = "strategy_switched"
    LEVEL_STARTED = "level_started"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"
    TASK_SKIPPED = "task_skipped"
    GOAL_CHECKED = "goal_checked"
    GOAL_ACHIEVED = "goal_achieved"
    PLAN_CANCELED = "plan_canceled"


def generate_id() -> str:
    """Short unique identifier for plans and tasks."""
    return uuid.uuid4().hex[:16]


@dataclass
class Task:
    """
    A unit of work in a plan.

    Subtasks are kept both on their parent (``subtasks``) and in the plan's flat
    task list; both references point at the same object so status updates are
    visible from either side.
    """
    id: str
    description: str
    type: TaskType = TaskType.ACTION
    dependencies: List[str] = field(default_factory=list)
    subtasks: List["Task"] = field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    depth: int = 0
    parent_id: Optional[str] = None

    # Filled in by the executor
    result: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: float = 0

    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def is_failed(self) -> bool:
        return self.status == TaskStatus.FAILED

    def is_finished(self) -> bool:
        """True once the task can no longer be scheduled."""
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.SKIPPED)

    def is_independent_of(self, other: "Task") -> bool:
        """Check that neither task directly depends on the other."""
        return self.id not in other.dependencies and other.id not in self.dependencies

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "description": self.description,
            "type": self.type.value,
            "dependencies": list(self.dependencies),
            "subtasks": [subtask.id for subtask in self.subtasks],
            "status": self.status.value,
            "depth": self.depth,
            "parent_id": self.parent_id,
            "result": self.result,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
        }


@dataclass
class GoalCriterion:
    """A single externally evaluated success condition."""
    name: str
    operator: str = "=="  # ==, !=, >, <, >=, <=, contains, matches
    expected: Any = None
    actual: Any = None
    satisfied: bool = False
    weight: float = 1.0


@dataclass
class GoalState:
    """Measurable success criteria for a plan."""
    description: str = ""
    criteria: List[GoalCriterion] = field(default_factory=list)
    satisfied: bool = False
    progress: float = 0.0
    checked_at: Optional[datetime] = None

    def criteria_satisfied(self) -> bool:
        """All criteria met (vacuously true without criteria)."""
        return all(criterion.satisfied for criterion in self.criteria)

    def unmet_criteria(self) -> List[str]:
        return [criterion.name for criterion in self.criteria if not criterion.satisfied]


@dataclass
class Plan:
    """
    A goal with its flattened task DAG and execution strategy.

    Example:
        plan = Plan.new("Summarize the quarterly report")
        plan.add_task(Task(id="read", description="Read the report"))
        plan.add_task(Task(id="summarize", description="Summarize it", dependencies=["read"]))
    """
    id: str
    goal: str
    strategy: PlanningStrategy = PlanningStrategy.SEQUENTIAL
    tasks: List[Task] = field(default_factory=list)
    goal_state: GoalState = field(default_factory=GoalState)
    created_at: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def new(
        cls,
        goal: str,
        strategy: PlanningStrategy = PlanningStrategy.SEQUENTIAL,
    ) -> "Plan":
        """Create an empty plan with a fresh ID."""
        return cls(id=generate_id(), goal=goal, strategy=strategy)

    def add_task(self, task: Task) -> None:
        """Append a task and, depth-first, all of its subtasks."""
        self.tasks.append(task)
        for subtask in task.subtasks:
            self.add_task(subtask)

    def get_task(self, task_id: str) -> Optional[Task]:
        """Find a task by ID."""
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def task_ids(self) -> List[str]:
        return [task.id for task in self.tasks]

    def root_tasks(self) -> List[Task]:
        return [task for task in self.tasks if task.parent_id is None]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "goal": self.goal,
            "strategy": self.strategy.value,
            "tasks": [task.to_dict() for task in self.tasks],
            "goal_state": {
                "description": self.goal_state.description,
                "satisfied": self.goal_state.satisfied,
                "progress": self.goal_state.progress,
                "criteria": [
                    {
                        "name": c.name,
                        "operator": c.operator,
                        "expected": c.expected,
                        "actual": c.actual,
                        "satisfied": c.satisfied,
                        "weight": c.weight,
                    }
                    for c in self.goal_state.criteria
                ],
            },
            "created_at": self.created_at.isoformat(),
            "metadata": self.metadata,
        }


@dataclass
class TaskResult:
    """Outcome of one task execution attempt."""
    task_id: str
    status: TaskStatus
    output: str = ""
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_ms: float = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "task_id": self.task_id,
            "status": self.status.value,
            "output": self.output,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_ms": self.duration_ms,
        }


@dataclass
class TimelineEvent:
    """A significant moment during plan execution."""
    type: EventType
    description: str
    task_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "task_id": self.task_id,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


@dataclass
class Metrics:
    """Aggregate statistics for one plan execution."""
    task_count: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    skipped_tasks: int = 0
    success_rate: float = 0.0  # completed / executed, 0.0 - 1.0
    execution_time_ms: float = 0
    total_task_time_ms: float = 0
    avg_task_duration_ms: float = 0
    max_task_duration_ms: float = 0
    parallel_tasks: int = 0  # Tasks dispatched through the worker pool
    max_concurrency: int = 0  # Highest number of tasks in flight at once
    avg_task_depth: float = 0.0
    goal_achieved: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "task_count": self.task_count,
            "completed_tasks": self.completed_tasks,
            "failed_tasks": self.failed_tasks,
            "skipped_tasks": self.skipped_tasks,
            "success_rate": round(self.success_rate, 4),
            "execution_time_ms": round(self.execution_time_ms, 2),
            "total_task_time_ms": round(self.total_task_time_ms, 2),
            "avg_task_duration_ms": round(self.avg_task_duration_ms, 2),
            "max_task_duration_ms": round(self.max_task_duration_ms, 2),
            "parallel_tasks": self.parallel_tasks,
            "max_concurrency": self.max_concurrency,
            "avg_task_depth": round(self.avg_task_depth, 2),
            "goal_achieved": self.goal_achieved,
        }


@dataclass
class ExecutionResult:
    """Result of executing a whole plan."""
    plan: Plan
    status: PlanStatus
    strategy: PlanningStrategy
    results: Dict[str, TaskResult] = field(default_factory=dict)
    timeline: List[TimelineEvent] = field(default_factory=list)
    metrics: Metrics = field(default_factory=Metrics)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    duration_ms: float = 0
    error: Optional[str] = None
    final_result: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == PlanStatus.COMPLETED

    @property
    def total_tasks(self) -> int:
        return len(self.plan.tasks)

    @property
    def completed_tasks(self) -> int:
        return sum(1 for task in self.plan.tasks if task.status == TaskStatus.COMPLETED)

    @property
    def failed_tasks(self) -> int:
        return sum(1 for task in self.plan.tasks if task.status == TaskStatus.FAILED)

    @property
    def skipped_tasks(self) -> int:
        return sum(1 for task in self.plan.tasks if task.status == TaskStatus.SKIPPED)

    def events_of(self, event_type: EventType) -> List[TimelineEvent]:
        return [event for event in self.timeline if event.type == event_type]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "plan_id": self.plan.id,
            "goal": self.plan.goal,
            "status": self.status.value,
            "strategy": self.strategy.value,
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "failed_tasks": self.failed_tasks,
            "skipped_tasks": self.skipped_tasks,
            "results": {task_id: r.to_dict() for task_id, r in self.results.items()},
            "timeline": [event.to_dict() for event in self.timeline],
            "metrics": self.metrics.to_dict(),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": round(self.duration_ms, 2),
            "error": self.error,
            "final_result": self.final_result,
        }
