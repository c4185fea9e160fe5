"""
Metrics Collector - 플래너 실행 메트릭 수집

여러 plan 실행에 걸친 task 실행 시간, 성공/실패 수, plan 완료 통계를 수집합니다.
실행 단위 통계(Metrics)는 Executor가 ExecutionContext에서 직접 계산합니다.
"""

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterator, List, Any, Optional


class MetricsCollector:
    """
    메트릭 수집기

    책임:
    - Task 실행 시간 분포 (히스토그램)
    - Task 성공/실패 카운트
    - Plan 완료 시간 및 상태별 카운트
    - 현재 실행 중인 task 수 (게이지)
    """

    def __init__(self, max_samples: int = 1000):
        """
        Args:
            max_samples: 히스토그램별 보관할 최대 샘플 수
        """
        self._max_samples = max_samples
        self._lock = threading.Lock()
        self._counters: Dict[str, float] = defaultdict(float)
        self._gauges: Dict[str, float] = {}
        self._histograms: Dict[str, List[float]] = defaultdict(list)

    # =========================================================================
    # Counter / Gauge / Histogram
    # =========================================================================

    def increment(
        self,
        name: str,
        value: float = 1.0,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        """카운터 증가"""
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] += value

    def get_counter(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> float:
        """카운터 값 조회"""
        key = self._make_key(name, labels)
        with self._lock:
            return self._counters.get(key, 0.0)

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        """게이지 설정"""
        key = self._make_key(name, labels)
        with self._lock:
            self._gauges[key] = value

    def get_gauge(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> Optional[float]:
        """게이지 값 조회"""
        key = self._make_key(name, labels)
        with self._lock:
            return self._gauges.get(key)

    def observe(
        self,
        name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        """히스토그램에 값 추가 (최근 max_samples개만 유지)"""
        key = self._make_key(name, labels)
        with self._lock:
            samples = self._histograms[key]
            samples.append(value)
            if len(samples) > self._max_samples:
                del samples[:len(samples) - self._max_samples]

    def get_histogram_stats(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> Dict[str, float]:
        """히스토그램 통계 (count/min/max/avg/p50/p90/p99)"""
        key = self._make_key(name, labels)
        with self._lock:
            values = list(self._histograms.get(key, []))

        if not values:
            return {"count": 0, "min": 0, "max": 0, "avg": 0, "p50": 0, "p90": 0, "p99": 0}

        sorted_values = sorted(values)
        count = len(values)

        return {
            "count": count,
            "min": sorted_values[0],
            "max": sorted_values[-1],
            "avg": sum(values) / count,
            "p50": self._percentile(sorted_values, 50),
            "p90": self._percentile(sorted_values, 90),
            "p99": self._percentile(sorted_values, 99),
        }

    @contextmanager
    def timed(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> Iterator[None]:
        """블록 실행 시간을 ms 단위로 히스토그램에 기록"""
        start = time.monotonic()
        try:
            yield
        finally:
            self.observe(name, (time.monotonic() - start) * 1000, labels)

    # =========================================================================
    # Planner-specific Methods
    # =========================================================================

    def record_task_execution(
        self,
        task_type: str,
        duration_ms: float,
        success: bool
    ) -> None:
        """Task 실행 기록"""
        self.observe("task_execution_time_ms", duration_ms, {"type": task_type})

        if success:
            self.increment("task_success_total", 1, {"type": task_type})
        else:
            self.increment("task_failure_total", 1, {"type": task_type})

        self.increment("task_execution_total")

    def record_plan_completion(
        self,
        strategy: str,
        status: str,
        duration_ms: float,
        task_count: int
    ) -> None:
        """Plan 실행 완료 기록"""
        self.observe("plan_execution_time_ms", duration_ms, {"strategy": strategy})
        self.observe("plan_task_count", task_count)
        self.increment("plan_total", 1, {"status": status})

    def get_task_stats(self, task_type: str) -> Dict[str, Any]:
        """Task 유형별 통계 조회"""
        labels = {"type": task_type}
        success_count = self.get_counter("task_success_total", labels)
        failure_count = self.get_counter("task_failure_total", labels)
        total_count = success_count + failure_count

        success_rate = success_count / total_count * 100 if total_count > 0 else 0

        return {
            "type": task_type,
            "total_executions": int(total_count),
            "success_count": int(success_count),
            "failure_count": int(failure_count),
            "success_rate": round(success_rate, 2),
            "execution_time": self.get_histogram_stats("task_execution_time_ms", labels),
        }

    def get_summary(self) -> Dict[str, Any]:
        """전체 메트릭 요약"""
        with self._lock:
            counters = dict(self._counters)
            gauges = dict(self._gauges)
            histogram_keys = list(self._histograms.keys())

        return {
            "counters": counters,
            "gauges": gauges,
            "histograms": {key: self._stats_for_key(key) for key in histogram_keys},
        }

    def reset(self) -> None:
        """모든 메트릭 초기화"""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _stats_for_key(self, key: str) -> Dict[str, float]:
        name, _, label_str = key.partition("__")
        labels = dict(part.split("=", 1) for part in label_str.split("__")) if label_str else None
        return self.get_histogram_stats(name, labels)

    def _make_key(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> str:
        """메트릭 키 생성 (name__k=v__k=v)"""
        if not labels:
            return name

        label_str = "__".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}__{label_str}"

    def _percentile(self, sorted_values: List[float], p: int) -> float:
        """퍼센타일 계산"""
        if not sorted_values:
            return 0

        index = int(len(sorted_values) * p / 100)
        index = min(index, len(sorted_values) - 1)
        return sorted_values[index]


# 전역 메트릭 수집기 인스턴스
metrics_collector = MetricsCollector()
