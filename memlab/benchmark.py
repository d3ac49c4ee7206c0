"""Concurrent benchmark of standard, slab and buddy style allocators."""

from __future__ import annotations

import argparse
import gc
import sys
import threading
import time
import tracemalloc
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Union

from memlab.allocators import capacity

Buffer = Union[bytearray, memoryview]

SIZE_CLASSES = (64, 128, 256, 512, 1024, 2048, 4096, 8192)
REQUEST_SIZES = (64, 128, 256, 512, 1024, 2048)
FRAGMENTATION_SIZES = (100, 300, 700, 1500, 3000)


class Allocator(Protocol):
    def allocate(self, size: int) -> Buffer: ...

    def free(self, buf: Optional[Buffer]) -> None: ...

    def total_allocations(self) -> int: ...


@dataclass(frozen=True)
class BenchmarkResult:
    """Outcome of one benchmark run."""

    name: str
    duration: float
    memory_used: int
    gc_count: int
    allocations_per_sec: float


@dataclass(frozen=True)
class FragmentationRow:
    """How much of one allocation is wasted by rounding up."""

    allocator: str
    requested: int
    allocated: int
    waste: int
    efficiency: float


@dataclass(frozen=True)
class Scenario:
    name: str
    iterations: int
    concurrency: int
    description: str


SCENARIOS: tuple[Scenario, ...] = (
    Scenario("Web requests", 50000, 100, "HTTP request/response buffers"),
    Scenario("Database queries", 10000, 50, "query result buffers"),
    Scenario("Log processing", 100000, 200, "log message buffers"),
    Scenario("File I/O", 5000, 20, "file read/write buffers"),
)


def _check_size(size: int) -> None:
    if size < 0:
        raise ValueError(f"size must not be negative: {size}")


def _storage(buf: Buffer) -> Optional[bytearray]:
    target = buf.obj if isinstance(buf, memoryview) else buf
    return target if isinstance(target, bytearray) else None


class _FreeList:
    """Free list of equally sized blocks, created on demand."""

    def __init__(self, block_size: int) -> None:
        self.block_size = block_size
        self._blocks: list[bytearray] = []
        self._lock = threading.Lock()

    def get(self) -> bytearray:
        with self._lock:
            if self._blocks:
                return self._blocks.pop()
        return bytearray(self.block_size)

    def put(self, block: bytearray) -> None:
        with self._lock:
            self._blocks.append(block)


class _Counter:
    """Thread-safe monotonically increasing counter."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> None:
        with self._lock:
            self._value += 1

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class _SizeClassPools:
    """One free list per entry of ``SIZE_CLASSES``."""

    def __init__(self) -> None:
        self._pools = {size: _FreeList(size) for size in SIZE_CLASSES}

    def take(self, block_size: int, size: int) -> Buffer:
        pool = self._pools.get(block_size)
        if pool is not None:
            return memoryview(pool.get())[:size]
        return bytearray(size)

    def give_back(self, buf: Buffer) -> None:
        pool = self._pools.get(capacity(buf))
        block = _storage(buf)
        if pool is not None and block is not None:
            pool.put(block)


class StandardAllocator:
    """Allocates a fresh buffer for every request."""

    def __init__(self) -> None:
        self._allocations = _Counter()

    def allocate(self, size: int) -> bytearray:
        _check_size(size)
        self._allocations.increment()
        return bytearray(size)

    def free(self, buf: Optional[Buffer]) -> None:
        """Release a view so it can no longer be used; storage goes to the GC."""
        if isinstance(buf, memoryview):
            buf.release()

    def total_allocations(self) -> int:
        """Number of allocations made over the allocator's lifetime."""
        return self._allocations.value


class OptimizedSlabAllocator:
    """Size classes from 64 to 8192 bytes; larger requests bypass the pools."""

    def __init__(self) -> None:
        self._pools = _SizeClassPools()
        self._allocations = _Counter()

    def optimal_size(self, size: int) -> int:
        for block_size in SIZE_CLASSES:
            if size <= block_size:
                return block_size
        return size

    def allocate(self, size: int) -> Buffer:
        _check_size(size)
        self._allocations.increment()
        return self._pools.take(self.optimal_size(size), size)

    def free(self, buf: Optional[Buffer]) -> None:
        if buf is not None:
            self._pools.give_back(buf)

    def total_allocations(self) -> int:
        """Number of allocations made over the allocator's lifetime."""
        return self._allocations.value


class BuddySystemAllocator:
    """Rounds requests to a power of two between 64 and 8192 bytes."""

    MIN_BLOCK = 64
    MAX_BLOCK = 8192

    def __init__(self) -> None:
        self._pools = _SizeClassPools()
        self._allocations = _Counter()

    def next_power_of_2(self, size: int) -> int:
        power = self.MIN_BLOCK
        while power < size:
            power *= 2
        if power > self.MAX_BLOCK:
            return size
        return power

    def allocate(self, size: int) -> Buffer:
        _check_size(size)
        self._allocations.increment()
        return self._pools.take(self.next_power_of_2(size), size)

    def free(self, buf: Optional[Buffer]) -> None:
        if buf is not None:
            self._pools.give_back(buf)

    def total_allocations(self) -> int:
        """Number of allocations made over the allocator's lifetime."""
        return self._allocations.value


def _collections() -> int:
    return sum(stat["collections"] for stat in gc.get_stats())


def benchmark_allocator(
    name: str, allocator: Allocator, iterations: int, concurrency: int
) -> BenchmarkResult:
    """Run ``iterations`` allocate/free pairs spread over ``concurrency`` threads."""
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1: {concurrency}")
    per_worker = iterations // concurrency

    def worker() -> None:
        for j in range(per_worker):
            buf = allocator.allocate(REQUEST_SIZES[j % len(REQUEST_SIZES)])
            if len(buf) > 0:
                buf[0] = j % 256
            allocator.free(buf)

    gc.collect()
    already_tracing = tracemalloc.is_tracing()
    if not already_tracing:
        tracemalloc.start()
    tracemalloc.reset_peak()
    baseline, _ = tracemalloc.get_traced_memory()
    collections_before = _collections()
    start = time.perf_counter()
    try:
        threads = [threading.Thread(target=worker) for _ in range(concurrency)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        duration = time.perf_counter() - start
        _, peak = tracemalloc.get_traced_memory()
    finally:
        if not already_tracing:
            tracemalloc.stop()
    gc.collect()

    total = allocator.total_allocations()
    return BenchmarkResult(
        name=name,
        duration=duration,
        memory_used=max(0, peak - baseline),
        gc_count=_collections() - collections_before,
        allocations_per_sec=total / max(duration, 1e-9),
    )


def _row(label: str, size: int, buf: Buffer) -> FragmentationRow:
    allocated = capacity(buf)
    efficiency = size / allocated * 100 if allocated else 100.0
    return FragmentationRow(label, size, allocated, allocated - size, efficiency)


def fragmentation_report(sizes: Sequence[int] = FRAGMENTATION_SIZES) -> list[FragmentationRow]:
    """Compare the storage each allocator hands out for each requested size."""
    rows: list[FragmentationRow] = []
    for size in sizes:
        rows.append(_row("standard", size, StandardAllocator().allocate(size)))
        rows.append(_row("buddy", size, BuddySystemAllocator().allocate(size)))
        rows.append(_row("slab", size, OptimizedSlabAllocator().allocate(size)))
    return rows


def simulate_real_world_scenario(allocator: Allocator, name: str) -> list[BenchmarkResult]:
    """Benchmark ``allocator`` under each workload in ``SCENARIOS``."""
    print(f"\n=== {name} workloads ===")
    results: list[BenchmarkResult] = []
    for scenario in SCENARIOS:
        result = benchmark_allocator(
            f"{name}-{scenario.name}", allocator, scenario.iterations, scenario.concurrency
        )
        results.append(result)
        ns_per_op = result.duration * 1e9 / scenario.iterations if scenario.iterations else 0.0
        print(
            f"{scenario.name:<20}: {ns_per_op:8.2f} ns/op, "
            f"{result.memory_used / 1024 / 1024:8.2f} MB, {result.gc_count} GC, "
            f"{result.allocations_per_sec:.0f} alloc/sec"
        )
    return results


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Allocator benchmark based on kernel memory concepts")
    parser.add_argument("--iterations", type=int, default=100000)
    parser.add_argument("--concurrency", type=int, default=50)
    args = parser.parse_args(argv)

    print("Allocator performance comparison based on kernel memory management")
    print("=" * 60)

    standard = StandardAllocator()
    slab = OptimizedSlabAllocator()
    buddy = BuddySystemAllocator()

    results = [
        benchmark_allocator("Standard allocator", standard, args.iterations, args.concurrency),
        benchmark_allocator("Slab allocator (SLAB)", slab, args.iterations, args.concurrency),
        benchmark_allocator("Buddy system", buddy, args.iterations, args.concurrency),
    ]

    print(f"\n{'Allocator':<22} {'Time(s)':>10} {'Memory(MB)':>12} {'GC':>6} {'Alloc/s':>15}")
    print("-" * 70)
    base_time = results[0].duration
    base_mem = results[0].memory_used
    for result in results:
        speedup = base_time / result.duration if result.duration else float("inf")
        reduction = base_mem / result.memory_used if result.memory_used else float("inf")
        print(
            f"{result.name:<22} {result.duration:10.4f} "
            f"{result.memory_used / 1024 / 1024:12.2f} {result.gc_count:6d} "
            f"{result.allocations_per_sec:15.0f} "
            f"({speedup:.2f}x faster, {reduction:.2f}x less mem)"
        )

    print("\n=== Memory fragmentation ===")
    print(f"{'Allocator':<15} {'Requested':<10} {'Allocated':<15} {'Waste':<15} {'Efficiency':<10}")
    print("-" * 70)
    previous = None
    for row in fragmentation_report():
        if previous is not None and row.requested != previous:
            print()
        previous = row.requested
        print(
            f"{row.allocator:<15} {row.requested:<10d} {row.allocated:<15d} "
            f"{row.waste:<15d} {row.efficiency:.2f}%"
        )
    print()

    simulate_real_world_scenario(standard, "Standard")
    simulate_real_world_scenario(slab, "Slab")
    simulate_real_world_scenario(buddy, "Buddy")

    print("\n=== Conclusion ===")
    print("- Slab allocator: tuned for fixed object sizes, minimal fragmentation")
    print("- Buddy system: power-of-two blocks, cheap merging")
    print("- Standard allocator: simple but puts pressure on the garbage collector")
    print("- In practice: choose the allocator that fits the usage pattern")
    return 0


if __name__ == "__main__":
    sys.exit(main())