#!/usr/bin/env python3
"""
Goal Planner 사용 예시

기본 / 병렬 / 적응형 실행을 스텁 agent로 데모합니다.
실제 사용 시에는 LLM 호출을 감싼 ChatAgent 구현을 넘기면 됩니다.
"""

import asyncio
import json
import random
from typing import Optional

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from goal_planner import ChatAgent, ChatOptions, ChatResult, plan_and_execute, setup_logging
from goal_planner.task_graph import (
    EventType,
    Executor,
    Plan,
    PlannerConfig,
    PlanningStrategy,
    Task,
    TaskType,
)


# Stub 분해 응답 (실제로는 LLM이 생성)
STUB_TREE = {
    "tasks": [
        {"id": "collect", "description": "Collect vendor price lists", "type": "observation",
         "dependencies": [], "subtasks": []},
        {"id": "reviews", "description": "Collect vendor support reviews", "type": "observation",
         "dependencies": [], "subtasks": []},
        {"id": "compare", "description": "Compare price and support", "type": "decision",
         "dependencies": ["collect", "reviews"], "subtasks": []},
        {"id": "recommend", "description": "Write a recommendation", "type": "aggregate",
         "dependencies": ["compare"], "subtasks": []},
    ]
}


class StubAgent(ChatAgent):
    """분해 프롬프트에는 task tree, 그 외에는 짧은 완료 메시지를 반환"""

    async def chat(self, message: str, options: Optional[ChatOptions] = None) -> ChatResult:
        if message.startswith("You are a task planning expert"):
            return ChatResult(content="```json\n" + json.dumps(STUB_TREE, indent=2) + "\n```")

        await asyncio.sleep(random.uniform(0.05, 0.2))
        return ChatResult(content=f"done: {message}")


def print_event(event) -> None:
    """타임라인 이벤트 출력"""
    task = f" [{event.task_id}]" if event.task_id else ""
    print(f"  {event.type.value:<22}{task} {event.description}")


async def example_1_basic_planning():
    """예시 1: 목표 분해 + 실행"""
    print("\n" + "=" * 60)
    print("예시 1: plan_and_execute")
    print("=" * 60 + "\n")

    result = await plan_and_execute(
        StubAgent(),
        "Research three vendors, compare their pricing and support, then recommend one",
        config=PlannerConfig(strategy=PlanningStrategy.PARALLEL),
        on_event=print_event,
    )

    print(f"\n상태: {result.status.value}")
    print(f"완료: {result.completed_tasks}/{result.total_tasks}")
    print(f"결과: {result.final_result}")


async def example_2_parallel():
    """예시 2: 직접 만든 plan의 병렬 실행"""
    print("\n" + "=" * 60)
    print("예시 2: 병렬 실행 (max_parallel=3)")
    print("=" * 60 + "\n")

    plan = Plan.new("Summarize five reports", PlanningStrategy.PARALLEL)
    for i in range(1, 6):
        plan.add_task(Task(id=f"report-{i}", description=f"Summarize report #{i}",
                           type=TaskType.OBSERVATION))
    plan.add_task(Task(id="merge", description="Merge all summaries", type=TaskType.AGGREGATE,
                       dependencies=[f"report-{i}" for i in range(1, 6)]))

    executor = Executor(StubAgent(), config=PlannerConfig(max_parallel=3))
    result = await executor.run(plan)

    metrics = result.metrics
    print(f"상태: {result.status.value}")
    print(f"병렬 dispatch: {metrics.parallel_tasks}, 최대 동시 실행: {metrics.max_concurrency}")
    print(f"총 소요: {metrics.execution_time_ms:.1f}ms (task 합계 {metrics.total_task_time_ms:.1f}ms)")


async def example_3_adaptive():
    """예시 3: 레벨별 전략 전환"""
    print("\n" + "=" * 60)
    print("예시 3: 적응형 실행")
    print("=" * 60 + "\n")

    plan = Plan.new("Gather, analyze, publish", PlanningStrategy.ADAPTIVE)
    plan.add_task(Task(id="scope", description="Define research scope"))
    for i in range(1, 6):
        plan.add_task(Task(id=f"gather-{i}", description=f"Gather facts about trend #{i}",
                           type=TaskType.OBSERVATION, dependencies=["scope"]))
    plan.add_task(Task(id="analysis", description="Analyze gathered facts", type=TaskType.AGGREGATE,
                       dependencies=[f"gather-{i}" for i in range(1, 6)]))

    result = await Executor(StubAgent()).run(plan)

    for event in result.events_of(EventType.STRATEGY_SWITCHED):
        print(f"  전환: {event.data['from_strategy']} -> {event.data['to_strategy']} "
              f"(parallel fraction {event.data['parallel_fraction']:.2f})")
    print(f"상태: {result.status.value}")


async def main():
    """모든 예시 실행"""
    setup_logging()

    examples = [
        ("기본 Planning", example_1_basic_planning),
        ("병렬 실행", example_2_parallel),
        ("적응형 실행", example_3_adaptive),
    ]

    for i, (name, func) in enumerate(examples, 1):
        try:
            await func()
        except Exception as e:
            print(f"\n예시 {i} ({name}) 실패: {e}")
            raise


if __name__ == "__main__":
    asyncio.run(main())
