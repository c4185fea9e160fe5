"""
Errors - 에러 처리 모듈

플래너 전체에서 사용하는 예외 계층을 제공합니다.
"""

from .exceptions import (
    PlannerError,
    ConfigurationError,
    GenerationError,
    DecompositionParseError,
    PlanValidationError,
    DepthLimitError,
    TaskCountLimitError,
    DuplicateTaskIDError,
    UnknownDependencyError,
    DependencyCycleError,
    PlanExecutionError,
)

__all__ = [
    # Base
    "PlannerError",
    "ConfigurationError",

    # Decomposition
    "GenerationError",
    "DecompositionParseError",
    "PlanValidationError",
    "DepthLimitError",
    "TaskCountLimitError",
    "DuplicateTaskIDError",
    "UnknownDependencyError",
    "DependencyCycleError",

    # Execution
    "PlanExecutionError",
]
