"""Slab and buddy style buffer pools compared with plain allocation."""

from __future__ import annotations

import argparse
import gc
import sys
import threading
import time
import tracemalloc
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

Buffer = Union[bytearray, memoryview]

PAGE_SIZE = 4096


def capacity(buf: Buffer) -> int:
    """Size of the storage behind ``buf``, which may exceed ``len(buf)``."""
    if isinstance(buf, memoryview):
        return memoryview(buf.obj).nbytes
    return len(buf)


def _storage(buf: Buffer) -> Optional[bytearray]:
    target = buf.obj if isinstance(buf, memoryview) else buf
    return target if isinstance(target, bytearray) else None


def _check_size(size: int) -> None:
    if size < 0:
        raise ValueError(f"size must not be negative: {size}")


class _Pool:
    """Free list of equally sized blocks, created on demand."""

    def __init__(self, block_size: int) -> None:
        self.block_size = block_size
        self._free: list[bytearray] = []
        self._lock = threading.Lock()

    def get(self) -> bytearray:
        with self._lock:
            if self._free:
                return self._free.pop()
        return bytearray(self.block_size)

    def put(self, block: bytearray) -> None:
        with self._lock:
            self._free.append(block)


class SimpleAllocator:
    """Allocates a fresh buffer for every request."""

    def allocate(self, size: int) -> bytearray:
        _check_size(size)
        return bytearray(size)

    def deallocate(self, buf: Buffer) -> None:
        """Release a view so it can no longer be used; storage goes to the GC."""
        if isinstance(buf, memoryview):
            buf.release()


class SlabPool:
    """Three size classes (256, 1024, 4096 bytes) backed by free lists."""

    def __init__(self) -> None:
        self._classes = {size: _Pool(size) for size in (256, 1024, PAGE_SIZE)}

    def allocate(self, size: int) -> memoryview:
        _check_size(size)
        for block_size, pool in self._classes.items():
            if size <= block_size:
                return memoryview(pool.get())[:size]
        return memoryview(bytearray(size))

    def deallocate(self, buf: Buffer) -> None:
        pool = self._classes.get(capacity(buf))
        block = _storage(buf)
        if pool is not None and block is not None:
            pool.put(block)


class BuddyAllocator:
    """Rounds requests up to a power of two between 256 and 32768 bytes."""

    MIN_BLOCK = 256
    MAX_BLOCK = 32768

    def __init__(self) -> None:
        self._pools: dict[int, _Pool] = {}
        size = self.MIN_BLOCK
        while size <= self.MAX_BLOCK:
            self._pools[size] = _Pool(size)
            size *= 2

    def next_power_of_2(self, size: int) -> int:
        power = self.MIN_BLOCK
        while power < size:
            power *= 2
        return power

    def allocate(self, size: int) -> memoryview:
        _check_size(size)
        pool = self._pools.get(self.next_power_of_2(size))
        if pool is not None:
            return memoryview(pool.get())[:size]
        return memoryview(bytearray(size))

    def deallocate(self, buf: Buffer) -> None:
        pool = self._pools.get(capacity(buf))
        block = _storage(buf)
        if pool is not None and block is not None:
            pool.put(block)


@dataclass(frozen=True)
class BenchmarkReport:
    name: str
    iterations: int
    duration: float
    peak_bytes: int
    gc_collections: int


def _collections() -> int:
    return sum(stat["collections"] for stat in gc.get_stats())


def benchmark_allocator(
    name: str,
    allocate: Callable[[int], Buffer],
    deallocate: Callable[[Buffer], None],
    iterations: int,
) -> BenchmarkReport:
    """Allocate and release buffers of 100..599 bytes ``iterations`` times."""
    gc.collect()
    already_tracing = tracemalloc.is_tracing()
    if not already_tracing:
        tracemalloc.start()
    tracemalloc.reset_peak()
    baseline, _ = tracemalloc.get_traced_memory()
    collections_before = _collections()
    start = time.perf_counter()
    try:
        for i in range(iterations):
            deallocate(allocate(100 + i % 500))
        duration = time.perf_counter() - start
        _, peak = tracemalloc.get_traced_memory()
    finally:
        if not already_tracing:
            tracemalloc.stop()
    gc.collect()
    return BenchmarkReport(
        name=name,
        iterations=iterations,
        duration=duration,
        peak_bytes=max(0, peak - baseline),
        gc_collections=_collections() - collections_before,
    )


def _print_report(report: BenchmarkReport) -> None:
    print(f"{report.name}:")
    print(f"  time: {report.duration:.6f}s")
    print(f"  peak traced memory: {report.peak_bytes // 1024} KB")
    print(f"  GC collections: {report.gc_collections}")
    print()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Compare buffer allocation strategies")
    parser.add_argument("--iterations", type=int, default=100000)
    args = parser.parse_args(argv)

    simple = SimpleAllocator()
    slab = SlabPool()
    buddy = BuddyAllocator()

    for report in (
        benchmark_allocator("Plain allocation", simple.allocate, simple.deallocate, args.iterations),
        benchmark_allocator("Slab pool (SLAB/SLOB)", slab.allocate, slab.deallocate, args.iterations),
        benchmark_allocator("Buddy system", buddy.allocate, buddy.deallocate, args.iterations),
    ):
        _print_report(report)

    print("=== Internal fragmentation ===")
    request = 600
    plain = simple.allocate(request)
    print(
        f"Plain - requested: {request}, allocated: {capacity(plain)}, "
        f"wasted: {capacity(plain) - request}"
    )
    rounded = buddy.allocate(request)
    print(
        f"Buddy - requested: {request}, allocated: {capacity(rounded)}, "
        f"wasted: {capacity(rounded) - request}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())