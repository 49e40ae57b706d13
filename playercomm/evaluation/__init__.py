"""
Latency evaluation suite for player communication transports.
"""

from .benchmark import (
    LatencyBenchmarkResult,
    TimedChannel,
    run_in_process_benchmark,
    run_network_benchmark,
    run_latency_benchmarks,
)

__all__ = [
    'LatencyBenchmarkResult',
    'TimedChannel',
    'run_in_process_benchmark',
    'run_network_benchmark',
    'run_latency_benchmarks',
]
