#!/usr/bin/env -S uv run
"""
Executor Benchmark Tool for rdeque

Benchmarks BlockingDeque over InMemoryListStore and RedisExecutor using the
operations real producers and consumers issue (put, take, move, drain).

Usage:
    uv run tools/benchmark_deque.py
    uv run tools/benchmark_deque.py --operations 5000
    uv run tools/benchmark_deque.py --executors memory,redis --redis-url redis://localhost:6379/15
    uv run tools/benchmark_deque.py --help
"""
# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "pydantic>=2.0",
#     "pydantic-settings>=2.0",
#     "structlog>=23.1",
#     "redis>=5.0.1",
#     "typer>=0.9.0",
#     "rich>=13.0",
# ]
# ///

from __future__ import annotations

import asyncio
import statistics
import sys
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Import rdeque from the local checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from rdeque import BlockingDeque, InMemoryListStore, RedisExecutor, StringCodec
from rdeque.ports.executor import CommandExecutorPort

app = typer.Typer(
    help="Benchmark rdeque executors",
    add_completion=False,
)

console = Console()


# ---------------------------------------------------------------------------
# Data Classes
# ---------------------------------------------------------------------------


@dataclass
class BenchmarkConfig:
    operations: int = 1000
    concurrency_levels: list[int] = field(default_factory=lambda: [10, 50])
    payload_size: int = 1000
    drain_batch: int = 100
    executors: list[str] = field(default_factory=lambda: ["memory"])
    redis_url: str = "redis://localhost:6379/15"


@dataclass
class BenchmarkResult:
    executor_name: str
    operation: str
    total_ops: int
    total_time: float
    latencies: list[float]  # seconds, one per call

    @property
    def ops_per_sec(self) -> float:
        return self.total_ops / self.total_time if self.total_time > 0 else 0.0

    def percentile(self, q: float) -> float:
        if not self.latencies:
            return 0.0
        ordered = sorted(self.latencies)
        return ordered[min(int(len(ordered) * q), len(ordered) - 1)]

    @property
    def p50(self) -> float:
        return statistics.median(self.latencies) if self.latencies else 0.0

    @property
    def max_latency(self) -> float:
        return max(self.latencies) if self.latencies else 0.0


def format_ms(seconds: float) -> str:
    ms = seconds * 1000
    if ms < 1:
        return f"{ms:.3f}ms"
    if ms < 10:
        return f"{ms:.2f}ms"
    return f"{ms:.1f}ms"


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


async def timed_calls(calls: list) -> list[float]:
    """Await each zero-argument coroutine factory in turn, timing every call."""
    latencies = []
    for call in calls:
        start = perf_counter()
        await call()
        latencies.append(perf_counter() - start)
    return latencies


async def bench_put(queue: BlockingDeque, n: int, payload: str) -> list[float]:
    return await timed_calls([lambda: queue.put(payload)] * n)


async def bench_concurrent_put(
    queue: BlockingDeque, n: int, concurrency: int, payload: str
) -> list[float]:
    async def put_one() -> float:
        start = perf_counter()
        await queue.put(payload)
        return perf_counter() - start

    latencies: list[float] = []
    for i in range(0, n, concurrency):
        batch = min(concurrency, n - i)
        latencies.extend(await asyncio.gather(*[put_one() for _ in range(batch)]))
    return latencies


async def bench_take(queue: BlockingDeque, n: int) -> list[float]:
    return await timed_calls([queue.take] * n)


async def bench_competing_consumers(
    queue: BlockingDeque, n: int, concurrency: int
) -> list[float]:
    """`concurrency` consumers poll one pre-filled queue until it is empty."""
    latencies: list[float] = []

    async def consumer() -> None:
        while True:
            start = perf_counter()
            value = await queue.poll(1)
            if value is None:
                return
            latencies.append(perf_counter() - start)

    await asyncio.gather(*[consumer() for _ in range(concurrency)])
    return latencies


async def bench_move(queue: BlockingDeque, n: int) -> list[float]:
    target = f"{queue.name}:processing"
    return await timed_calls(
        [lambda: queue.poll_last_and_offer_first_to(target, 1)] * n
    )


async def bench_drain(queue: BlockingDeque, batch: int) -> list[float]:
    latencies = []
    while True:
        sink: list[str] = []
        start = perf_counter()
        count = await queue.drain_to(sink, batch)
        if count == 0:
            return latencies
        latencies.append(perf_counter() - start)


# ---------------------------------------------------------------------------
# Executor Setup
# ---------------------------------------------------------------------------


def create_executor(name: str, config: BenchmarkConfig) -> CommandExecutorPort:
    if name == "memory":
        return InMemoryListStore()
    if name == "redis":
        return RedisExecutor(url=config.redis_url)
    raise ValueError(f"Unknown executor: {name}")


async def fill(queue: BlockingDeque, n: int, payload: str) -> None:
    for _ in range(n):
        await queue.put(payload)


# ---------------------------------------------------------------------------
# Benchmark Runner
# ---------------------------------------------------------------------------


async def run_executor_benchmark(
    executor_name: str, config: BenchmarkConfig
) -> list[BenchmarkResult]:
    executor = create_executor(executor_name, config)
    payload = "x" * config.payload_size
    n = config.operations
    results: list[BenchmarkResult] = []
    created: list[BlockingDeque] = []

    def fresh_queue() -> BlockingDeque:
        queue = BlockingDeque(f"bench:{uuid.uuid4().hex}", executor, StringCodec())
        created.append(queue)
        return queue

    async def record(operation: str, scenario, ops: int | None = None) -> None:
        start = perf_counter()
        latencies = await scenario
        total = perf_counter() - start
        results.append(
            BenchmarkResult(
                executor_name=executor_name,
                operation=operation,
                total_ops=len(latencies) if ops is None else ops,
                total_time=total,
                latencies=latencies,
            )
        )

    try:
        await record("put-seq", bench_put(fresh_queue(), n, payload))

        for concurrency in config.concurrency_levels:
            await record(
                f"put-c{concurrency}",
                bench_concurrent_put(fresh_queue(), n, concurrency, payload),
            )

        queue = fresh_queue()
        await fill(queue, n, payload)
        await record("take-seq", bench_take(queue, n))

        for concurrency in config.concurrency_levels:
            queue = fresh_queue()
            await fill(queue, n, payload)
            await record(
                f"poll-c{concurrency}",
                bench_competing_consumers(queue, n, concurrency),
            )

        queue = fresh_queue()
        await fill(queue, n, payload)
        await record("move-seq", bench_move(queue, n))

        queue = fresh_queue()
        await fill(queue, n, payload)
        await record(
            f"drain-b{config.drain_batch}", bench_drain(queue, config.drain_batch), n
        )
    finally:
        for queue in created:
            await queue.delete()
            await BlockingDeque(f"{queue.name}:processing", executor).delete()
        if isinstance(executor, RedisExecutor):
            await executor.close()

    return results


# ---------------------------------------------------------------------------
# Result Formatting
# ---------------------------------------------------------------------------


def format_results(results: list[BenchmarkResult]) -> None:
    by_executor: dict[str, list[BenchmarkResult]] = {}
    for result in results:
        by_executor.setdefault(result.executor_name, []).append(result)

    console.print()
    console.print(
        Panel("[bold cyan]rdeque Executor Benchmark Results[/bold cyan]", expand=False)
    )

    for executor_name, executor_results in by_executor.items():
        console.print()
        console.print(f"[bold yellow]Executor: {executor_name}[/bold yellow]")
        console.print()

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Operation", style="cyan", width=15)
        table.add_column("Ops/sec", justify="right", style="green")
        table.add_column("P50", justify="right")
        table.add_column("P95", justify="right")
        table.add_column("P99", justify="right")
        table.add_column("Max", justify="right")

        for result in executor_results:
            table.add_row(
                result.operation,
                f"{result.ops_per_sec:.1f}",
                format_ms(result.p50),
                format_ms(result.percentile(0.95)),
                format_ms(result.percentile(0.99)),
                format_ms(result.max_latency),
            )

        console.print(table)

    console.print()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@app.command()
def main(
    operations: int = typer.Option(
        1000,
        "--operations",
        "-n",
        help="Elements pushed or popped per scenario",
    ),
    executors: str = typer.Option(
        "memory",
        "--executors",
        "-e",
        help="Comma-separated executors to test (memory, redis)",
    ),
    redis_url: str = typer.Option(
        "redis://localhost:6379/15",
        "--redis-url",
        help="Redis server used by the redis executor",
    ),
    drain_batch: int = typer.Option(
        100,
        "--drain-batch",
        help="max_elements for each drain_to call",
    ),
) -> None:
    """
    Benchmark rdeque executors.

    Measures throughput (ops/sec) and latency percentiles (p50/p95/p99/max)
    of BlockingDeque operations. Every scenario uses its own uniquely named
    queue, deleted afterwards.
    """
    config = BenchmarkConfig(
        operations=operations,
        drain_batch=drain_batch,
        executors=[e.strip() for e in executors.split(",") if e.strip()],
        redis_url=redis_url,
    )

    all_results: list[BenchmarkResult] = []
    for executor_name in config.executors:
        try:
            all_results.extend(
                asyncio.run(run_executor_benchmark(executor_name, config))
            )
        except Exception as e:
            console.print(f"[red]Error benchmarking {executor_name}: {e}[/red]")

    if not all_results:
        console.print("[red]No benchmark results to display.[/red]")
        raise typer.Exit(code=1)

    format_results(all_results)


if __name__ == "__main__":
    app()
