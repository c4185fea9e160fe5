"""
Wire schema for generator-produced task trees.

Expected shape:
    {"tasks": [{"id": "t1", "description": "...", "type": "action",
                "dependencies": [], "subtasks": []}]}

optionally wrapped in a Markdown code fence. Parsing (text -> TaskNode tree)
and flattening (tree -> depth-annotated Task list) are separate steps.
"""

import json
import logging
import re
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import DecompositionParseError
from .models import Task, TaskStatus, TaskType

logger = logging.getLogger(__name__)

_OPEN_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*[ \t]*\n?")
_CLOSE_FENCE = re.compile(r"\n?[ \t]*```$")


class TaskNode(BaseModel):
    """One node of the generator's task tree."""
    id: str
    description: str = ""
    type: str = "action"
    dependencies: List[str] = Field(default_factory=list)
    subtasks: List["TaskNode"] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("task id must not be empty")
        return value

    @field_validator("type", mode="before")
    @classmethod
    def default_type(cls, value: Optional[str]) -> str:
        return value or "action"

    @field_validator("dependencies", "subtasks", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return [] if value is None else value


class TaskTree(BaseModel):
    """Top-level generator response."""
    tasks: List[TaskNode] = Field(default_factory=list)


def strip_code_fence(text: str) -> str:
    """
    Remove a leading ```json (or bare ```) fence and a trailing ``` fence.

    Each side is stripped on its own, so a response cut off before the
    closing fence still parses.
    """
    text = _OPEN_FENCE.sub("", text.strip(), count=1)
    text = _CLOSE_FENCE.sub("", text, count=1)
    return text.strip()


def parse_task_tree(response: str) -> List[TaskNode]:
    """
    Parse a generator response into task nodes.

    Args:
        response: Raw generator output

    Returns:
        Root task nodes, in response order

    Raises:
        DecompositionParseError: On malformed JSON, an unexpected shape, or no tasks
    """
    cleaned = strip_code_fence(response or "")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise DecompositionParseError(
            f"failed to parse JSON response: {e}", response=response
        ) from e

    try:
        tree = TaskTree.model_validate(data)
    except ValidationError as e:
        raise DecompositionParseError(
            f"response does not match the task tree schema: {e.error_count()} error(s)",
            response=response,
        ) from e

    if not tree.tasks:
        raise DecompositionParseError("no tasks found in response", response=response)

    return tree.tasks


def flatten_task_tree(
    nodes: List[TaskNode],
    parent_id: Optional[str] = None,
    depth: int = 0,
) -> List[Task]:
    """
    Convert a task tree into a flat, depth-first task list.

    Each task's ``subtasks`` holds the same Task objects that follow it in the
    flat list. Root depth is 0; every subtask is one deeper than its parent.
    """
    flat: List[Task] = []

    for node in nodes:
        task = Task(
            id=node.id,
            description=node.description,
            type=TaskType.parse(node.type),
            dependencies=list(node.dependencies),
            status=TaskStatus.PENDING,
            depth=depth,
            parent_id=parent_id,
        )
        flat.append(task)

        if node.subtasks:
            children = flatten_task_tree(node.subtasks, parent_id=task.id, depth=depth + 1)
            task.subtasks = [child for child in children if child.parent_id == task.id]
            flat.extend(children)

    return flat
