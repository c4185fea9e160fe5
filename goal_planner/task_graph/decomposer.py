"""
Goal Decomposer for turning a natural-language goal into a task DAG.
Simple goals become a single-task plan; everything else is sent to a text
generator and the returned task tree is parsed, flattened and validated.
"""

import logging
import re
import time
from collections import Counter
from typing import Dict, List, Optional

from ..errors import (
    DepthLimitError,
    DuplicateTaskIDError,
    GenerationError,
    PlannerError,
    TaskCountLimitError,
    UnknownDependencyError,
    DependencyCycleError,
)
from ..llm.base import TextGenerator
from .config import PlannerConfig
from .dag import find_cycle
from .models import Plan, Task, TaskStatus, TaskType, generate_id
from .schema import flatten_task_tree, parse_task_tree

logger = logging.getLogger(__name__)

# Words that usually mean more than one step
MULTI_STEP_KEYWORDS = (
    "and", "then", "after", "before", "also", "additionally",
    "multiple", "several", "all", "each", "every",
    "analyze", "compare", "research", "investigate",
)

_KEYWORD_PATTERN = re.compile(
    r"\b(" + "|".join(MULTI_STEP_KEYWORDS) + r")\b",
    re.IGNORECASE,
)

DECOMPOSITION_PROMPT_TEMPLATE = """You are a task planning expert. Break down the following goal into a clear, actionable plan.

GOAL: {goal}

Please decompose this into subtasks following these rules:
1. Each subtask should be clear and actionable
2. Identify which subtasks can run in parallel (no dependencies)
3. Mark dependencies between subtasks (which tasks must complete before others)
4. Limit nesting to {max_depth} levels maximum
5. Aim for {min_subtasks} to {max_subtasks} subtasks per level
6. Use these task types: {task_types}

Output ONLY valid JSON in this exact format (no markdown, no extra text):
{{
  "tasks": [
    {{
      "id": "task_1",
      "description": "Clear description of what to do",
      "type": "action",
      "dependencies": [],
      "subtasks": []
    }},
    {{
      "id": "task_2",
      "description": "Another task description",
      "type": "observation",
      "dependencies": ["task_1"],
      "subtasks": []
    }}
  ]
}}

Be specific and practical. Each task should be executable by tools or simple reasoning."""

_TASK_TYPE_HINTS = {
    TaskType.ACTION: "execute tool/action",
    TaskType.DECISION: "make choice",
    TaskType.OBSERVATION: "gather info",
    TaskType.AGGREGATE: "combine results",
}


class Decomposer:
    """
    Breaks a goal into a validated Plan.

    Example:
        decomposer = Decomposer(generator=my_generator)
        plan = await decomposer.decompose("Compare three vendors and recommend one")

        for task in plan.tasks:
            print(task.depth, task.id, task.dependencies)
    """

    def __init__(
        self,
        config: Optional[PlannerConfig] = None,
        generator: Optional[TextGenerator] = None,
    ):
        """
        Initialize the decomposer.

        Args:
            config: Planner configuration (defaults are used when omitted)
            generator: Text generator asked for the task tree
        """
        self.config = (config or PlannerConfig()).validate()
        self.generator = generator

    def analyze_complexity(self, goal: str) -> int:
        """
        Score how many steps a goal probably needs.

        Longer goals, coordination keywords, comma-separated lists and
        alternatives ("or") each raise the score. Deterministic, no side effects.
        """
        score = 0

        word_count = len(goal.split())
        if word_count > 20:
            score += 3
        elif word_count > 10:
            score += 2
        elif word_count > 5:
            score += 1

        keywords = {match.lower() for match in _KEYWORD_PATTERN.findall(goal)}
        score += len(keywords)

        score += goal.count(",")

        if " or " in goal.lower():
            score += 1

        return score

    def create_simple_plan(self, goal: str) -> Plan:
        """Wrap the goal verbatim in a single action task."""
        plan = Plan.new(goal, self.config.strategy)
        plan.add_task(Task(
            id=generate_id(),
            description=goal,
            type=TaskType.ACTION,
            status=TaskStatus.PENDING,
            depth=0,
        ))
        return plan

    def build_decomposition_prompt(self, goal: str) -> str:
        """Render the generator prompt for a goal."""
        task_types = ", ".join(
            f'"{task_type.value}" ({hint})' for task_type, hint in _TASK_TYPE_HINTS.items()
        )
        return DECOMPOSITION_PROMPT_TEMPLATE.format(
            goal=goal,
            max_depth=self.config.max_depth,
            min_subtasks=self.config.min_subtask_split,
            max_subtasks=self.config.max_subtasks,
            task_types=task_types,
        )

    def validate_task_tree(self, tasks: List[Task]) -> None:
        """
        Check a flattened task tree against the configured limits.

        The whole tree is rejected on the first violation.

        Raises:
            DepthLimitError: A task is nested deeper than max_depth
            TaskCountLimitError: The roots, or the children of one task, exceed max_subtasks
            DuplicateTaskIDError: Two tasks share an ID
            UnknownDependencyError: A dependency names a task outside the tree
            DependencyCycleError: The dependencies contain a cycle
        """
        for task in tasks:
            if task.depth > self.config.max_depth:
                raise DepthLimitError(task.depth, self.config.max_depth, task.id)

        siblings: Dict[Optional[str], int] = Counter(task.parent_id for task in tasks)
        for parent_id, count in siblings.items():
            if count > self.config.max_subtasks:
                raise TaskCountLimitError(count, self.config.max_subtasks, parent_id)

        seen = set()
        for task in tasks:
            if task.id in seen:
                raise DuplicateTaskIDError(task.id)
            seen.add(task.id)

        for task in tasks:
            for dep_id in task.dependencies:
                if dep_id not in seen:
                    raise UnknownDependencyError(task.id, dep_id)

        cycle = find_cycle(tasks)
        if cycle:
            raise DependencyCycleError(cycle)

    async def decompose(self, goal: str) -> Plan:
        """
        Decompose a goal into a Plan.

        Args:
            goal: Natural-language goal

        Returns:
            Plan whose goal is the input string, with tasks flattened depth-first

        Raises:
            GenerationError: The generator call failed
            DecompositionParseError: The response was not a valid task tree
            PlanValidationError: The tree broke a depth, size, ID or cycle rule
        """
        start = time.monotonic()
        complexity = self.analyze_complexity(goal)

        if complexity < self.config.decomposition_threshold:
            logger.debug(
                f"Goal complexity {complexity} below threshold "
                f"{self.config.decomposition_threshold}, using single-task plan"
            )
            plan = self.create_simple_plan(goal)
            plan.metadata.update({
                "complexity": complexity,
                "decomposed": False,
                "decomposition_time_ms": (time.monotonic() - start) * 1000,
            })
            return plan

        if self.generator is None:
            raise GenerationError("no text generator configured", goal=goal)

        logger.info(f"Decomposing goal (complexity={complexity}): {goal[:100]}")

        prompt = self.build_decomposition_prompt(goal)
        try:
            response = await self.generator.generate(prompt)
        except PlannerError:
            raise
        except Exception as e:
            raise GenerationError(f"text generation failed: {e}", goal=goal, cause=e) from e

        nodes = parse_task_tree(response)
        tasks = flatten_task_tree(nodes)
        self.validate_task_tree(tasks)

        plan = Plan.new(goal, self.config.strategy)
        for task in tasks:
            if task.parent_id is None:
                plan.add_task(task)

        plan.metadata.update({
            "complexity": complexity,
            "decomposed": True,
            "decomposition_time_ms": (time.monotonic() - start) * 1000,
        })

        logger.info(
            f"Decomposed into {len(plan.tasks)} tasks "
            f"({len(plan.root_tasks())} root, strategy={plan.strategy.value})"
        )

        return plan
