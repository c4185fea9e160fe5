"""
Pytest Configuration and Fixtures

테스트 전역 설정 및 공유 fixtures입니다.
"""

import pytest
import asyncio
from typing import Dict, List, Optional, Set

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from goal_planner.llm import ChatAgent, ChatOptions, ChatResult, TextGenerator
from goal_planner.task_graph import Plan, PlanningStrategy, Task


class MockChatAgent(ChatAgent):
    """
    테스트용 Chat Agent

    - 호출된 메시지 순서 기록
    - 동시 실행 수 추적 (최대값 포함)
    - 특정 메시지에 대해 실패 유도
    """

    def __init__(
        self,
        delay: float = 0.0,
        fail_on: Optional[Set[str]] = None,
        responses: Optional[Dict[str, str]] = None,
    ):
        self.delay = delay
        self.fail_on = fail_on or set()
        self.responses = responses or {}
        self.calls: List[str] = []
        self.completed: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def chat(self, message: str, options: Optional[ChatOptions] = None) -> ChatResult:
        self.calls.append(message)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if message in self.fail_on:
                raise RuntimeError(f"agent error on {message}")
            self.completed.append(message)
            return ChatResult(content=self.responses.get(message, f"done: {message}"))
        finally:
            self.in_flight -= 1


class MockGenerator(TextGenerator):
    """고정 응답을 반환하는 텍스트 생성기"""

    def __init__(self, response: str = "", error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, prompt: str, options: Optional[ChatOptions] = None) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def mock_agent() -> MockChatAgent:
    """지연 없는 Chat Agent"""
    return MockChatAgent()


@pytest.fixture
def agent_factory():
    """옵션을 지정해 Chat Agent 생성"""
    return MockChatAgent


@pytest.fixture
def generator_factory():
    """응답을 지정해 텍스트 생성기 생성"""
    return MockGenerator


@pytest.fixture
def two_task_response() -> str:
    """의존성이 있는 2개 task 응답"""
    return """```json
{
  "tasks": [
    {"id": "task_1", "description": "Gather data", "type": "observation", "dependencies": [], "subtasks": []},
    {"id": "task_2", "description": "Write report", "type": "action", "dependencies": ["task_1"], "subtasks": []}
  ]
}
```"""


@pytest.fixture
def diamond_plan() -> Plan:
    """1 → {2, 3} → 4 다이아몬드 그래프"""
    plan = Plan.new("diamond", PlanningStrategy.PARALLEL)
    plan.add_task(Task(id="1", description="task 1"))
    plan.add_task(Task(id="2", description="task 2", dependencies=["1"]))
    plan.add_task(Task(id="3", description="task 3", dependencies=["1"]))
    plan.add_task(Task(id="4", description="task 4", dependencies=["2", "3"]))
    return plan


@pytest.fixture
def chain_plan() -> Plan:
    """a → b → c 순차 체인"""
    plan = Plan.new("chain")
    plan.add_task(Task(id="a", description="task a"))
    plan.add_task(Task(id="b", description="task b", dependencies=["a"]))
    plan.add_task(Task(id="c", description="task c", dependencies=["b"]))
    return plan
