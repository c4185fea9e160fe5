"""
Decomposer Unit Tests

목표 복잡도 분석, 프롬프트 생성, task tree 검증, 분해 흐름의 단위 테스트입니다.
"""

import json
import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from goal_planner.errors import (
    DecompositionParseError,
    DependencyCycleError,
    DepthLimitError,
    DuplicateTaskIDError,
    GenerationError,
    PlanValidationError,
    TaskCountLimitError,
    UnknownDependencyError,
)
from goal_planner.task_graph.config import PlannerConfig
from goal_planner.task_graph.decomposer import Decomposer
from goal_planner.task_graph.models import PlanningStrategy, Task, TaskType


COMPLEX_GOAL = "This is a complex goal that requires multiple steps and coordination between different tasks"


def make_task(task_id: str, *deps: str, depth: int = 0, parent_id: str = None) -> Task:
    """테스트용 Task 생성 헬퍼"""
    return Task(
        id=task_id,
        description=f"task {task_id}",
        dependencies=list(deps),
        depth=depth,
        parent_id=parent_id,
    )


def tasks_response(*tasks: dict) -> str:
    """생성기 응답 JSON 생성 헬퍼"""
    return json.dumps({"tasks": list(tasks)})


class TestAnalyzeComplexity:
    """analyze_complexity 테스트"""

    @pytest.fixture
    def decomposer(self):
        """기본 설정의 Decomposer"""
        return Decomposer()

    @pytest.mark.parametrize("goal,min_score,max_score", [
        ("Calculate 2 + 2", 0, 2),
        ("Research AI trends and summarize findings", 2, 5),
        (
            "Analyze competitors A, B, C, then compare features, pricing, "
            "and market position, and recommend best strategy",
            5, 15,
        ),
        ("Check stock prices for AAPL, GOOGL, MSFT, TSLA, AMZN", 4, 10),
    ])
    def test_score_ranges(self, decomposer, goal, min_score, max_score):
        """목표 유형별 점수 범위"""
        score = decomposer.analyze_complexity(goal)
        assert min_score <= score <= max_score

    def test_single_word_scores_zero(self, decomposer):
        """한 단어 목표는 0점"""
        assert decomposer.analyze_complexity("Simple") == 0

    def test_keywords_match_whole_words(self, decomposer):
        """키워드는 단어 단위로만 매칭"""
        assert decomposer.analyze_complexity("Band") == 0
        assert decomposer.analyze_complexity("Bread and butter") == 1

    def test_alternatives_add_score(self, decomposer):
        """' or '는 점수 추가"""
        assert decomposer.analyze_complexity("tea or coffee") == 1

    def test_multi_step_scores_higher(self, decomposer):
        """다단계 목표가 더 높은 점수"""
        simple = decomposer.analyze_complexity("Summarize the report")
        multi = decomposer.analyze_complexity(
            "Collect sales, costs, and margins, then compare each region and summarize"
        )
        assert multi > simple + 3


class TestSimplePlanAndPrompt:
    """create_simple_plan / build_decomposition_prompt 테스트"""

    def test_simple_plan(self):
        """단일 task plan"""
        decomposer = Decomposer(PlannerConfig(strategy=PlanningStrategy.PARALLEL))
        plan = decomposer.create_simple_plan("Simple task")

        assert plan.goal == "Simple task"
        assert plan.strategy == PlanningStrategy.PARALLEL
        assert len(plan.tasks) == 1
        assert plan.tasks[0].description == "Simple task"
        assert plan.tasks[0].type == TaskType.ACTION
        assert plan.tasks[0].depth == 0
        assert plan.tasks[0].dependencies == []

    def test_prompt_contents(self):
        """프롬프트에 목표와 제한값 포함"""
        decomposer = Decomposer(PlannerConfig(max_depth=2, max_subtasks=4, min_subtask_split=3))
        prompt = decomposer.build_decomposition_prompt("Test goal")

        assert "GOAL: Test goal" in prompt
        assert "Limit nesting to 2 levels" in prompt
        assert "Aim for 3 to 4 subtasks" in prompt
        assert '"tasks"' in prompt
        for task_type in ("action", "decision", "observation", "aggregate"):
            assert f'"{task_type}"' in prompt


class TestValidateTaskTree:
    """validate_task_tree 테스트"""

    @pytest.fixture
    def decomposer(self):
        """작은 제한값의 Decomposer"""
        return Decomposer(PlannerConfig(max_depth=2, max_subtasks=3))

    def test_valid_tree(self, decomposer):
        """유효한 tree는 통과"""
        decomposer.validate_task_tree([
            make_task("a"),
            make_task("a1", depth=1, parent_id="a"),
            make_task("a1x", depth=2, parent_id="a1"),
            make_task("b", "a"),
        ])

    def test_depth_violation(self, decomposer):
        """최대 깊이 초과"""
        with pytest.raises(DepthLimitError) as exc_info:
            decomposer.validate_task_tree([
                make_task("a"),
                make_task("deep", depth=3, parent_id="a"),
            ])
        assert "exceeds maximum 2" in str(exc_info.value)

    def test_root_count_violation(self, decomposer):
        """루트 task 수 초과"""
        with pytest.raises(TaskCountLimitError):
            decomposer.validate_task_tree([make_task(str(i)) for i in range(4)])

    def test_subtask_count_violation(self, decomposer):
        """한 부모의 subtask 수 초과"""
        tasks = [make_task("root")] + [
            make_task(f"s{i}", depth=1, parent_id="root") for i in range(4)
        ]
        with pytest.raises(TaskCountLimitError) as exc_info:
            decomposer.validate_task_tree(tasks)
        assert exc_info.value.details["parent_id"] == "root"

    def test_count_is_per_sibling_group(self, decomposer):
        """개수 제한은 형제 그룹 단위"""
        tasks = [make_task("a"), make_task("b")]
        tasks += [make_task(f"a{i}", depth=1, parent_id="a") for i in range(3)]
        tasks += [make_task(f"b{i}", depth=1, parent_id="b") for i in range(3)]
        decomposer.validate_task_tree(tasks)

    def test_duplicate_ids(self, decomposer):
        """중복 ID"""
        with pytest.raises(DuplicateTaskIDError):
            decomposer.validate_task_tree([
                make_task("a"),
                make_task("a", depth=1, parent_id="a"),
            ])

    def test_unknown_dependency(self, decomposer):
        """존재하지 않는 의존성"""
        with pytest.raises(UnknownDependencyError):
            decomposer.validate_task_tree([make_task("a", "ghost")])

    def test_cycle(self, decomposer):
        """의존성 순환"""
        with pytest.raises(DependencyCycleError) as exc_info:
            decomposer.validate_task_tree([make_task("a", "b"), make_task("b", "a")])
        assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]

    def test_self_cycle(self, decomposer):
        """자기 의존 순환"""
        with pytest.raises(DependencyCycleError):
            decomposer.validate_task_tree([make_task("a", "a")])

    def test_all_violations_are_validation_errors(self, decomposer):
        """모든 검증 에러는 PlanValidationError 계열"""
        with pytest.raises(PlanValidationError):
            decomposer.validate_task_tree([make_task("a", "a")])


class TestDecompose:
    """decompose 테스트"""

    @pytest.mark.asyncio
    async def test_simple_goal_skips_generator(self, generator_factory):
        """단순 목표는 생성기 호출 없음"""
        generator = generator_factory("should not be used")
        decomposer = Decomposer(generator=generator)

        plan = await decomposer.decompose("Simple")

        assert len(plan.tasks) == 1
        assert plan.tasks[0].description == "Simple"
        assert generator.prompts == []
        assert plan.metadata["decomposed"] is False

    @pytest.mark.asyncio
    async def test_complex_goal_uses_generator(self, generator_factory, two_task_response):
        """복잡한 목표는 생성기 응답으로 plan 생성"""
        generator = generator_factory(two_task_response)
        decomposer = Decomposer(generator=generator)

        plan = await decomposer.decompose(COMPLEX_GOAL)

        assert plan.goal == COMPLEX_GOAL
        assert [t.id for t in plan.tasks] == ["task_1", "task_2"]
        assert plan.tasks[1].dependencies == ["task_1"]
        assert plan.tasks[0].type == TaskType.OBSERVATION
        assert len(generator.prompts) == 1
        assert COMPLEX_GOAL in generator.prompts[0]
        assert plan.metadata["complexity"] >= 2
        assert "decomposition_time_ms" in plan.metadata

    @pytest.mark.asyncio
    async def test_nested_subtasks_flattened_once(self, generator_factory):
        """중첩 subtask는 한 번씩만 평탄화"""
        response = tasks_response(
            {"id": "a", "description": "a", "subtasks": [
                {"id": "a1", "description": "a1"},
                {"id": "a2", "description": "a2", "dependencies": ["a1"]},
            ]},
            {"id": "b", "description": "b", "dependencies": ["a"]},
        )
        decomposer = Decomposer(generator=generator_factory(response))

        plan = await decomposer.decompose(COMPLEX_GOAL)

        assert plan.task_ids() == ["a", "a1", "a2", "b"]
        assert [t.depth for t in plan.tasks] == [0, 1, 1, 0]
        assert plan.get_task("a").subtasks[0] is plan.get_task("a1")

    @pytest.mark.asyncio
    async def test_strategy_from_config(self, generator_factory, two_task_response):
        """plan 전략은 설정을 따름"""
        config = PlannerConfig(strategy=PlanningStrategy.ADAPTIVE)
        decomposer = Decomposer(config, generator=generator_factory(two_task_response))

        plan = await decomposer.decompose(COMPLEX_GOAL)
        assert plan.strategy == PlanningStrategy.ADAPTIVE

    @pytest.mark.asyncio
    async def test_generator_failure(self, generator_factory):
        """생성기 실패는 GenerationError"""
        cause = ConnectionError("provider down")
        decomposer = Decomposer(generator=generator_factory(error=cause))

        with pytest.raises(GenerationError) as exc_info:
            await decomposer.decompose(COMPLEX_GOAL)
        assert exc_info.value.__cause__ is cause
        assert exc_info.value.cause is cause

    @pytest.mark.asyncio
    async def test_malformed_response(self, generator_factory):
        """잘못된 응답은 파싱 에러"""
        decomposer = Decomposer(generator=generator_factory("Sure! Here is a plan: step 1..."))

        with pytest.raises(DecompositionParseError):
            await decomposer.decompose(COMPLEX_GOAL)

    @pytest.mark.asyncio
    async def test_invalid_tree_returns_no_plan(self, generator_factory):
        """검증 실패 시 plan 없이 에러"""
        response = tasks_response(
            {"id": "a", "description": "a", "dependencies": ["b"]},
            {"id": "b", "description": "b", "dependencies": ["a"]},
        )
        decomposer = Decomposer(generator=generator_factory(response))

        with pytest.raises(DependencyCycleError):
            await decomposer.decompose(COMPLEX_GOAL)

    @pytest.mark.asyncio
    async def test_too_many_tasks(self, generator_factory):
        """task 수 초과는 잘라내지 않고 실패"""
        response = tasks_response(*[
            {"id": f"t{i}", "description": f"t{i}"} for i in range(6)
        ])
        decomposer = Decomposer(generator=generator_factory(response))

        with pytest.raises(TaskCountLimitError):
            await decomposer.decompose(COMPLEX_GOAL)

    @pytest.mark.asyncio
    async def test_missing_generator(self):
        """생성기 없이 복잡한 목표 분해 시 에러"""
        with pytest.raises(GenerationError):
            await Decomposer().decompose(COMPLEX_GOAL)

    @pytest.mark.asyncio
    async def test_complexity_threshold_override(self, generator_factory, two_task_response):
        """complexity_threshold로 분해 기준 변경"""
        generator = generator_factory(two_task_response)
        decomposer = Decomposer(PlannerConfig(complexity_threshold=100), generator=generator)

        plan = await decomposer.decompose(COMPLEX_GOAL)

        assert len(plan.tasks) == 1
        assert generator.prompts == []
