"""
Examples Unit Tests

examples/ 데모 스크립트가 실제로 동작하는지 확인합니다.
"""

import pytest
import runpy

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

EXAMPLE_PATH = os.path.join(
    os.path.dirname(__file__), '..', '..', 'examples', 'planner_example.py'
)


@pytest.fixture(scope="module")
def example():
    """예시 스크립트 namespace (__main__ 블록은 실행하지 않음)"""
    return runpy.run_path(EXAMPLE_PATH)


class TestPlannerExample:
    """planner_example.py 테스트"""

    @pytest.mark.asyncio
    async def test_stub_agent_serves_decomposition(self, example):
        """분해 프롬프트에는 fenced task tree 반환"""
        result = await example["StubAgent"]().chat("You are a task planning expert. GOAL: x")
        assert result.content.startswith("```json")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", [
        "example_1_basic_planning",
        "example_2_parallel",
        "example_3_adaptive",
    ])
    async def test_examples_complete(self, example, name, capsys):
        """각 예시가 완료 상태로 끝남"""
        await example[name]()

        assert "상태: completed" in capsys.readouterr().out
