"""
Task Graph system for goal planning.
Provides goal decomposition into a task DAG and dependency-aware execution.
"""

from .models import (
    PlanningStrategy,
    PlanStatus,
    TaskStatus,
    TaskType,
    EventType,
    Task,
    GoalCriterion,
    GoalState,
    Plan,
    TaskResult,
    TimelineEvent,
    Metrics,
    ExecutionResult,
)
from .config import PlannerConfig, DEFAULT_PLANNER_CONFIG
from .dag import (
    build_adjacency,
    find_cycle,
    topological_sort,
    group_by_dependency_level,
    parallel_fraction,
)
from .schema import TaskNode, TaskTree, strip_code_fence, parse_task_tree, flatten_task_tree
from .decomposer import Decomposer
from .context import ExecutionContext
from .worker_pool import BoundedWorkerPool
from .executor import Executor

__all__ = [
    # Models
    "PlanningStrategy",
    "PlanStatus",
    "TaskStatus",
    "TaskType",
    "EventType",
    "Task",
    "GoalCriterion",
    "GoalState",
    "Plan",
    "TaskResult",
    "TimelineEvent",
    "Metrics",
    "ExecutionResult",
    # Config
    "PlannerConfig",
    "DEFAULT_PLANNER_CONFIG",
    # DAG
    "build_adjacency",
    "find_cycle",
    "topological_sort",
    "group_by_dependency_level",
    "parallel_fraction",
    # Schema
    "TaskNode",
    "TaskTree",
    "strip_code_fence",
    "parse_task_tree",
    "flatten_task_tree",
    # Decomposer
    "Decomposer",
    # Executor
    "ExecutionContext",
    "BoundedWorkerPool",
    "Executor",
]
