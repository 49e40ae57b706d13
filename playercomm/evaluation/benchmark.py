"""
Latency benchmarks for the two channel transports.

Each benchmark runs a full two-player exchange with pacing disabled and
records, on the initiator side, the round-trip time between each send and
the reply that follows it.
"""

import gc
import statistics
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

import psutil

from ..channel import (
    ChannelError,
    MessageChannel,
    NetworkChannel,
    create_channel_pair,
    find_free_port,
)
from ..player import Player
from ..utils.cancellation import CancellationToken

BENCHMARK_MESSAGE = "bench"
RESPONDER_JOIN_TIMEOUT = 5.0
ACCEPT_TIMEOUT = 10.0


@dataclass
class LatencyBenchmarkResult:
    """Container for one transport's benchmark results."""
    name: str
    transport: str
    rounds: int
    total_time: float
    mean_us: float
    median_us: float
    p95_us: float
    min_us: float
    max_us: float
    sent_count: int
    received_count: int
    memory_usage: Optional[Dict[str, float]] = None


class TimedChannel:
    """
    Channel wrapper measuring send-to-reply latency.

    Satisfies MessageChannel itself, so a Player can drive it unchanged.
    """

    def __init__(self, channel: MessageChannel):
        self.channel = channel
        self.latencies: List[float] = []
        self._last_send: Optional[float] = None

    def send(self, message: Optional[str]) -> None:
        if message is not None:
            self._last_send = time.perf_counter()
        self.channel.send(message)

    def receive(self) -> Optional[str]:
        message = self.channel.receive()
        if message is not None and self._last_send is not None:
            self.latencies.append(time.perf_counter() - self._last_send)
            self._last_send = None
        return message

    def close(self) -> None:
        self.channel.close()


def measure_memory_usage() -> Dict[str, float]:
    """
    Measure current process memory usage.

    Returns:
        Dictionary with memory statistics in MB
    """
    process = psutil.Process()
    memory_info = process.memory_info()

    return {
        'rss': memory_info.rss / 1024 / 1024,  # MB
        'vms': memory_info.vms / 1024 / 1024,  # MB
        'percent': process.memory_percent()
    }


def summarize_latencies(latencies: List[float]) -> Dict[str, float]:
    """Mean, median, p95, min and max of latencies, in microseconds."""
    if not latencies:
        return {'mean_us': 0.0, 'median_us': 0.0, 'p95_us': 0.0, 'min_us': 0.0, 'max_us': 0.0}

    micros = [value * 1_000_000 for value in latencies]
    p95 = statistics.quantiles(micros, n=20, method='inclusive')[-1] if len(micros) >= 2 else micros[0]
    return {
        'mean_us': statistics.mean(micros),
        'median_us': statistics.median(micros),
        'p95_us': p95,
        'min_us': min(micros),
        'max_us': max(micros),
    }


def _run_exchange(transport: str, rounds: int,
                  initiator_channel: MessageChannel, responder_channel: MessageChannel,
                  initiator_token: CancellationToken,
                  responder_token: CancellationToken) -> LatencyBenchmarkResult:
    timed = TimedChannel(initiator_channel)
    initiator = Player("bench-initiator", timed, True, BENCHMARK_MESSAGE,
                       max_messages=rounds, pause=0.0, token=initiator_token)
    responder = Player("bench-responder", responder_channel, False,
                       max_messages=rounds, pause=0.0, token=responder_token)

    responder_thread = threading.Thread(target=responder.run, name="bench-responder", daemon=True)

    gc.collect()
    memory_before = measure_memory_usage()

    responder_thread.start()
    start = time.perf_counter()
    result = initiator.run()
    total_time = time.perf_counter() - start

    memory_after = measure_memory_usage()

    # The responder is left waiting for a reply that never comes.
    responder.shutdown()
    timed.close()
    responder_thread.join(RESPONDER_JOIN_TIMEOUT)
    responder_channel.close()

    stats = summarize_latencies(timed.latencies)
    return LatencyBenchmarkResult(
        name=f"Exchange-{transport}-{rounds}",
        transport=transport,
        rounds=rounds,
        total_time=total_time,
        sent_count=result.sent_count,
        received_count=result.received_count,
        memory_usage={
            'rss_delta': memory_after['rss'] - memory_before['rss'],
            'vms_delta': memory_after['vms'] - memory_before['vms'],
        },
        **stats
    )


def run_in_process_benchmark(rounds: int = 100, capacity: int = 16) -> LatencyBenchmarkResult:
    """
    Benchmark an exchange between two threads over bounded queues.

    Args:
        rounds: Message cap per player
        capacity: Queue capacity per direction
    """
    initiator_token = CancellationToken()
    responder_token = CancellationToken()
    initiator_channel, responder_channel = create_channel_pair(
        capacity, initiator_token, responder_token
    )
    return _run_exchange("in-process", rounds, initiator_channel, responder_channel,
                         initiator_token, responder_token)


def run_network_benchmark(rounds: int = 100, host: str = "127.0.0.1",
                          port: int = 0) -> LatencyBenchmarkResult:
    """
    Benchmark an exchange between two threads over a loopback TCP connection.

    Args:
        rounds: Message cap per player
        host: Interface to listen on and connect to
        port: TCP port (0 = pick a free one)

    Raises:
        ChannelError: If the connection cannot be established
    """
    if port == 0:
        port = find_free_port(host)

    accepted: Dict[str, object] = {}

    def serve():
        try:
            accepted['channel'] = NetworkChannel.listen(port, host=host, accept_timeout=ACCEPT_TIMEOUT)
        except ChannelError as e:
            accepted['error'] = e

    listener = threading.Thread(target=serve, name="bench-listener", daemon=True)
    listener.start()

    client = NetworkChannel.connect(host, port, settle_delay=0.0, retry_delay=0.1, max_retries=20)
    listener.join()
    if 'error' in accepted:
        client.close()
        raise accepted['error']

    return _run_exchange("network", rounds, client, accepted['channel'],
                         CancellationToken(), CancellationToken())


def run_latency_benchmarks(rounds: int = 100, transports: Optional[List[str]] = None,
                           port: int = 0) -> List[LatencyBenchmarkResult]:
    """Run the requested transports' benchmarks in order."""
    if transports is None:
        transports = ["in-process", "network"]

    results = []
    for transport in transports:
        if transport == "in-process":
            results.append(run_in_process_benchmark(rounds))
        elif transport == "network":
            results.append(run_network_benchmark(rounds, port=port))
        else:
            raise ValueError(f"Unknown transport: {transport}")
    return results
