"""
Exceptions - 플래너 예외 클래스

Decomposer, Executor, 설정 계층에서 사용하는 표준화된 예외 클래스입니다.
"""

from typing import Optional, Dict, Any, List


class PlannerError(Exception):
    """플래너 기본 에러 클래스"""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Args:
            message: 에러 메시지
            code: 에러 코드
            details: 추가 상세 정보
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict:
        """에러를 딕셔너리로 변환"""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class ConfigurationError(PlannerError):
    """PlannerConfig 검증 실패 시 발생"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            details={"field": field} if field else {}
        )


class GenerationError(PlannerError):
    """텍스트 생성기(LLM) 호출 실패"""

    def __init__(
        self,
        message: str,
        goal: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message=message,
            code="GENERATION_FAILED",
            details={"goal": goal} if goal else {}
        )
        # 생성기가 던진 원래 예외 (없으면 None)
        self.cause = cause


class DecompositionParseError(PlannerError):
    """생성기 응답을 task tree로 해석할 수 없을 때 발생"""

    def __init__(self, message: str, response: Optional[str] = None):
        details = {}
        if response is not None:
            details["response_preview"] = response[:200]
        super().__init__(
            message=message,
            code="DECOMPOSITION_PARSE_ERROR",
            details=details
        )


class PlanValidationError(PlannerError):
    """Task tree 구조 검증 실패 (깊이/개수/ID/순환)"""

    def __init__(
        self,
        message: str,
        code: str = "PLAN_VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, code=code, details=details)


class DepthLimitError(PlanValidationError):
    """Task 깊이가 max_depth를 초과"""

    def __init__(self, depth: int, max_depth: int, task_id: Optional[str] = None):
        super().__init__(
            message=f"task depth {depth} exceeds maximum {max_depth}",
            code="DEPTH_LIMIT_EXCEEDED",
            details={"depth": depth, "max_depth": max_depth, "task_id": task_id}
        )


class TaskCountLimitError(PlanValidationError):
    """한 레벨의 task 수가 max_subtasks를 초과"""

    def __init__(self, count: int, max_subtasks: int, parent_id: Optional[str] = None):
        super().__init__(
            message=f"task count {count} exceeds maximum {max_subtasks}",
            code="TASK_COUNT_LIMIT_EXCEEDED",
            details={"count": count, "max_subtasks": max_subtasks, "parent_id": parent_id}
        )


class DuplicateTaskIDError(PlanValidationError):
    """중복된 task ID"""

    def __init__(self, task_id: str):
        super().__init__(
            message=f"duplicate task ID: {task_id}",
            code="DUPLICATE_TASK_ID",
            details={"task_id": task_id}
        )


class UnknownDependencyError(PlanValidationError):
    """존재하지 않는 task를 의존성으로 참조"""

    def __init__(self, task_id: str, dependency_id: str):
        super().__init__(
            message=f"task {task_id} depends on unknown task {dependency_id}",
            code="UNKNOWN_DEPENDENCY",
            details={"task_id": task_id, "dependency_id": dependency_id}
        )


class DependencyCycleError(PlanValidationError):
    """의존성 그래프에 순환이 존재"""

    def __init__(self, cycle: Optional[List[str]] = None):
        cycle = cycle or []
        if cycle:
            message = "dependency cycle detected: " + " -> ".join(cycle)
        else:
            message = "cycle detected in task dependencies"
        super().__init__(
            message=message,
            code="DEPENDENCY_CYCLE",
            details={"cycle": cycle}
        )
        self.cycle = cycle


class PlanExecutionError(PlannerError):
    """Plan 실행이 완료 상태에 도달하지 못함"""

    def __init__(self, message: str, plan_id: Optional[str] = None, status: Optional[str] = None):
        super().__init__(
            message=message,
            code="PLAN_EXECUTION_FAILED",
            details={"plan_id": plan_id, "status": status}
        )
