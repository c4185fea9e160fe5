"""
One-call entry point: decompose a goal, then execute the plan.
"""

import logging
from typing import Optional

from .llm.base import ChatAgent, ChatAgentGenerator, TextGenerator
from .metrics import MetricsCollector
from .task_graph.config import PlannerConfig
from .task_graph.context import EventCallback
from .task_graph.decomposer import Decomposer
from .task_graph.executor import Executor
from .task_graph.models import ExecutionResult

logger = logging.getLogger(__name__)


async def plan_and_execute(
    agent: ChatAgent,
    goal: str,
    config: Optional[PlannerConfig] = None,
    generator: Optional[TextGenerator] = None,
    on_event: Optional[EventCallback] = None,
    metrics_collector: Optional[MetricsCollector] = None,
) -> ExecutionResult:
    """
    Plan and run a goal with a single chat agent.

    Args:
        agent: Chat agent that executes each task
        goal: Natural-language goal
        config: Planner configuration
        generator: Text generator for decomposition (defaults to the agent itself)
        on_event: Called with every timeline event
        metrics_collector: Optional cross-run metrics sink

    Returns:
        ExecutionResult of running the plan with its strategy

    Raises:
        GenerationError, DecompositionParseError, PlanValidationError:
            Decomposition failed; nothing was executed
    """
    config = config or PlannerConfig()
    decomposer = Decomposer(config=config, generator=generator or ChatAgentGenerator(agent))

    plan = await decomposer.decompose(goal)
    logger.info(f"Plan {plan.id} ready with {len(plan.tasks)} task(s)")

    executor = Executor(
        agent,
        config=config,
        on_event=on_event,
        metrics_collector=metrics_collector,
    )
    return await executor.run(plan)
