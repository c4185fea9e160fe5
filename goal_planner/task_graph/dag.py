"""
Graph algorithms over a plan's task list.
Cycle detection, topological ordering and dependency-level grouping share one
adjacency builder and one DFS, so sorting and leveling cannot disagree about
what counts as a cycle.
"""

import logging
from collections import deque
from typing import Dict, List, Optional, Sequence

from ..errors import DependencyCycleError, DuplicateTaskIDError
from .models import Task

logger = logging.getLogger(__name__)

# DFS colors
_WHITE, _GRAY, _BLACK = 0, 1, 2


def build_adjacency(tasks: Sequence[Task]) -> Dict[str, List[str]]:
    """
    Map each task ID to the IDs it depends on.

    Dependencies on IDs outside ``tasks`` are dropped; duplicates are collapsed
    while keeping their first-seen order.

    Raises:
        DuplicateTaskIDError: If two tasks share an ID
    """
    known: Dict[str, Task] = {}
    for task in tasks:
        if task.id in known:
            raise DuplicateTaskIDError(task.id)
        known[task.id] = task

    adjacency: Dict[str, List[str]] = {}
    for task in tasks:
        deps: List[str] = []
        for dep_id in task.dependencies:
            if dep_id in known and dep_id not in deps:
                deps.append(dep_id)
        adjacency[task.id] = deps
    return adjacency


def find_cycle(tasks: Sequence[Task]) -> Optional[List[str]]:
    """
    Find a dependency cycle.

    Three-color DFS over the dependency edges. A self-dependency is a cycle of
    length one.

    Returns:
        The cycle as a list of task IDs, first ID repeated at the end
        (e.g. ["a", "b", "a"]), or None if the graph is acyclic
    """
    adjacency = build_adjacency(tasks)
    color = {task_id: _WHITE for task_id in adjacency}
    stack: List[str] = []

    def visit(task_id: str) -> Optional[List[str]]:
        color[task_id] = _GRAY
        stack.append(task_id)

        for dep_id in adjacency[task_id]:
            if color[dep_id] == _GRAY:
                start = stack.index(dep_id)
                return stack[start:] + [dep_id]
            if color[dep_id] == _WHITE:
                cycle = visit(dep_id)
                if cycle:
                    return cycle

        stack.pop()
        color[task_id] = _BLACK
        return None

    for task_id in adjacency:
        if color[task_id] == _WHITE:
            cycle = visit(task_id)
            if cycle:
                return cycle

    return None


def ensure_acyclic(tasks: Sequence[Task]) -> Dict[str, List[str]]:
    """
    Validate the graph and return its adjacency.

    Raises:
        DependencyCycleError: If the dependencies contain a cycle
    """
    cycle = find_cycle(tasks)
    if cycle:
        logger.debug(f"Dependency cycle found: {' -> '.join(cycle)}")
        raise DependencyCycleError(cycle)
    return build_adjacency(tasks)


def topological_sort(tasks: Sequence[Task]) -> List[Task]:
    """
    Order tasks so every dependency comes before its dependents.

    Kahn's algorithm; ties are broken by declaration order, so an already
    ordered list comes back unchanged.

    Raises:
        DependencyCycleError: If the graph contains a cycle
    """
    adjacency = ensure_acyclic(tasks)
    by_id = {task.id: task for task in tasks}

    in_degree = {task_id: len(deps) for task_id, deps in adjacency.items()}
    dependents: Dict[str, List[str]] = {task_id: [] for task_id in adjacency}
    for task_id, deps in adjacency.items():
        for dep_id in deps:
            dependents[dep_id].append(task_id)

    queue = deque(task.id for task in tasks if in_degree[task.id] == 0)
    ordered: List[Task] = []

    while queue:
        task_id = queue.popleft()
        ordered.append(by_id[task_id])

        for dependent_id in dependents[task_id]:
            in_degree[dependent_id] -= 1
            if in_degree[dependent_id] == 0:
                queue.append(dependent_id)

    if len(ordered) != len(tasks):
        raise DependencyCycleError()

    return ordered


def compute_levels(tasks: Sequence[Task]) -> Dict[str, int]:
    """
    Dependency level per task ID: 0 without dependencies, otherwise one more
    than the deepest dependency.

    Raises:
        DependencyCycleError: If the graph contains a cycle
    """
    adjacency = build_adjacency(tasks)
    levels: Dict[str, int] = {}
    for task in topological_sort(tasks):
        deps = adjacency[task.id]
        levels[task.id] = 1 + max(levels[dep_id] for dep_id in deps) if deps else 0
    return levels


def group_by_dependency_level(tasks: Sequence[Task]) -> List[List[Task]]:
    """
    Group tasks into waves that can run concurrently.

    Level 0 holds tasks without dependencies, level 1 tasks depending only on
    level 0, and so on. Tasks within a level keep their declaration order.

    Returns:
        List of levels; each level is a non-empty list of tasks

    Raises:
        DependencyCycleError: If the graph contains a cycle
    """
    if not tasks:
        return []

    levels = compute_levels(tasks)
    grouped: List[List[Task]] = [[] for _ in range(max(levels.values()) + 1)]
    for task in tasks:
        grouped[levels[task.id]].append(task)

    return grouped


def parallel_fraction(level_tasks: Sequence[Task]) -> float:
    """
    Share of a level that can overlap with another task of the same level.

    A task counts as independent when it has no direct dependency relation with
    any other task of the level. With ``k`` independent tasks out of ``n`` the
    fraction is ``(k - 1) / n``: one task would run anyway, the rest are the
    concurrency gained. A single-task level scores 0.0.
    """
    count = len(level_tasks)
    if count < 2:
        return 0.0

    independent = [
        task for task in level_tasks
        if all(task.is_independent_of(other) for other in level_tasks if other is not task)
    ]
    if len(independent) < 2:
        return 0.0

    return (len(independent) - 1) / count
