"""
Planner configuration.
Immutable per Decomposer/Executor instance; overrides can be read from the environment.
"""

import os
import logging
from dataclasses import dataclass, replace, fields
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv

from ..errors import ConfigurationError
from .models import PlanningStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannerConfig:
    """
    Configuration for decomposition and execution.

    Example:
        config = PlannerConfig(strategy=PlanningStrategy.PARALLEL, max_parallel=4)
        config.validate()
    """
    max_depth: int = 3  # Deepest allowed subtask nesting (root = 0)
    max_subtasks: int = 5  # Max tasks per sibling group
    min_subtask_split: int = 2
    strategy: PlanningStrategy = PlanningStrategy.SEQUENTIAL
    max_parallel: int = 3  # Worker pool size per dependency level
    adaptive_threshold: float = 0.7  # Parallel fraction a level must exceed to run in parallel
    goal_check_interval: int = 5  # Executed tasks between goal checks
    goal_timeout_seconds: float = 300.0
    complexity_threshold: Optional[int] = None  # None: use min_subtask_split

    @property
    def decomposition_threshold(self) -> int:
        """Complexity score at or above which a goal is sent to the generator."""
        if self.complexity_threshold is not None:
            return self.complexity_threshold
        return self.min_subtask_split

    def validate(self) -> "PlannerConfig":
        """
        Check every field.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: On the first invalid field
        """
        if self.max_depth <= 0:
            raise ConfigurationError("max_depth must be greater than 0", field="max_depth")
        if self.max_subtasks <= 0:
            raise ConfigurationError("max_subtasks must be greater than 0", field="max_subtasks")
        if self.min_subtask_split < 2:
            raise ConfigurationError("min_subtask_split must be at least 2", field="min_subtask_split")
        if self.max_parallel <= 0:
            raise ConfigurationError("max_parallel must be greater than 0", field="max_parallel")
        if not 0.0 <= self.adaptive_threshold <= 1.0:
            raise ConfigurationError(
                "adaptive_threshold must be between 0.0 and 1.0",
                field="adaptive_threshold",
            )
        if self.goal_check_interval <= 0:
            raise ConfigurationError(
                "goal_check_interval must be greater than 0",
                field="goal_check_interval",
            )
        if self.goal_timeout_seconds <= 0:
            raise ConfigurationError(
                "goal_timeout_seconds must be greater than 0",
                field="goal_timeout_seconds",
            )
        if self.complexity_threshold is not None and self.complexity_threshold < 0:
            raise ConfigurationError(
                "complexity_threshold must not be negative",
                field="complexity_threshold",
            )
        if not isinstance(self.strategy, PlanningStrategy):
            raise ConfigurationError(
                "strategy must be sequential, parallel, or adaptive",
                field="strategy",
            )
        return self

    def with_overrides(self, **changes: Any) -> "PlannerConfig":
        """Return a validated copy with some fields replaced."""
        if "strategy" in changes:
            changes["strategy"] = _parse_strategy(changes["strategy"])
        return replace(self, **changes).validate()

    @classmethod
    def from_env(
        cls,
        prefix: str = "PLANNER_",
        env_file: Optional[str] = None,
    ) -> "PlannerConfig":
        """
        Build a config from environment variables.

        Each field maps to ``{prefix}{FIELD_NAME}``, e.g. PLANNER_MAX_PARALLEL=4.
        Unset variables keep their defaults. With ``env_file``, the file is
        loaded first; variables already set in the environment win.

        Raises:
            ConfigurationError: If a value cannot be parsed or fails validation
        """
        parsers: Dict[str, Callable[[str], Any]] = {
            "max_depth": int,
            "max_subtasks": int,
            "min_subtask_split": int,
            "strategy": _parse_strategy,
            "max_parallel": int,
            "adaptive_threshold": float,
            "goal_check_interval": int,
            "goal_timeout_seconds": float,
            "complexity_threshold": int,
        }

        if env_file:
            load_dotenv(env_file, override=False)

        values: Dict[str, Any] = {}
        for config_field in fields(cls):
            env_name = f"{prefix}{config_field.name.upper()}"
            raw = os.getenv(env_name)
            if raw is None or raw.strip() == "":
                continue
            try:
                values[config_field.name] = parsers[config_field.name](raw.strip())
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {env_name}: {raw!r}",
                    field=config_field.name,
                ) from e

        if values:
            logger.debug(f"Planner config overrides from environment: {sorted(values)}")

        return cls(**values).validate()


def _parse_strategy(value: Any) -> PlanningStrategy:
    if isinstance(value, PlanningStrategy):
        return value
    try:
        return PlanningStrategy(str(value).strip().lower())
    except ValueError:
        raise ConfigurationError(
            "strategy must be sequential, parallel, or adaptive",
            field="strategy",
        ) from None


DEFAULT_PLANNER_CONFIG = PlannerConfig()
