"""
Metrics Module - 플래너 실행 메트릭 수집
"""

from .collector import MetricsCollector, metrics_collector

__all__ = ['MetricsCollector', 'metrics_collector']
