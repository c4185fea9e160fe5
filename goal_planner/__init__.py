"""
Goal planner: decompose natural-language goals into task DAGs and execute them.
"""

from .errors import (
    PlannerError,
    ConfigurationError,
    GenerationError,
    DecompositionParseError,
    PlanValidationError,
    PlanExecutionError,
)
from .llm import ChatOptions, ChatResult, TextGenerator, ChatAgent, ChatAgentGenerator
from .task_graph import (
    PlannerConfig,
    PlanningStrategy,
    PlanStatus,
    Plan,
    Task,
    ExecutionResult,
    Decomposer,
    Executor,
)
from .integration import plan_and_execute
from .logging_config import setup_logging

__version__ = "0.1.0"

__all__ = [
    "PlannerError",
    "ConfigurationError",
    "GenerationError",
    "DecompositionParseError",
    "PlanValidationError",
    "PlanExecutionError",
    "ChatOptions",
    "ChatResult",
    "TextGenerator",
    "ChatAgent",
    "ChatAgentGenerator",
    "PlannerConfig",
    "PlanningStrategy",
    "PlanStatus",
    "Plan",
    "Task",
    "ExecutionResult",
    "Decomposer",
    "Executor",
    "plan_and_execute",
    "setup_logging",
]
