"""Fixed-size buffer pools that reuse released blocks."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Sequence

log = logging.getLogger(__name__)

HTTP_RESPONSE = (
    b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\n\r\n"
    b'{"status":"success"}'
)
QUERY_RESULT = b'[{"id":1,"name":"Kim"},{"id":2,"name":"Lee"}]'


@dataclass(frozen=True)
class PoolStats:
    """Fresh allocations, reuses and the reuse rate as a percentage."""

    allocated: int
    reused: int
    reuse_rate: float


class MemoryPool:
    """Hands out zeroed buffers of one size, recycling returned ones."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError(f"size must not be negative: {size}")
        self.size = size
        self._free: list[bytearray] = []
        self._lock = threading.Lock()
        self._allocated = 0
        self._reused = 0

    def get(self) -> bytearray:
        """Return a zero-filled buffer of ``size`` bytes."""
        with self._lock:
            if self._free:
                buffer = self._free.pop()
                self._reused += 1
                log.debug("Reusing memory: %d bytes", self.size)
            else:
                buffer = bytearray(self.size)
                self._allocated += 1
                log.debug("New allocation: %d bytes", self.size)
        buffer[:] = bytes(self.size)
        return buffer

    def put(self, buffer: bytearray) -> None:
        """Give a buffer back; buffers of the wrong size are refused."""
        if len(buffer) != self.size:
            raise ValueError(
                f"buffer of wrong size returned: {len(buffer)} (expected: {self.size})"
            )
        with self._lock:
            self._free.append(buffer)
        log.debug("Memory returned: %d bytes", self.size)

    def stats(self) -> PoolStats:
        with self._lock:
            total = self._allocated + self._reused
            rate = self._reused / total * 100 if total else 0.0
            return PoolStats(self._allocated, self._reused, rate)

    @contextmanager
    def borrow(self) -> Iterator[bytearray]:
        """Lend a buffer for the duration of a ``with`` block."""
        buffer = self.get()
        try:
            yield buffer
        finally:
            self.put(buffer)


def _fill(buffer: bytearray, data: bytes) -> None:
    count = min(len(buffer), len(data))
    buffer[:count] = data[:count]


class JSONProcessor:
    """Processes JSON payloads using a pooled scratch buffer."""

    latency = 0.01

    def __init__(self, buffer_size: int) -> None:
        self.buffer_pool = MemoryPool(buffer_size)

    def process(self, data: bytes) -> bytes:
        with self.buffer_pool.borrow() as scratch:
            log.info("Processing JSON: %d bytes", len(data))
            _fill(scratch, data)
            if self.latency:
                time.sleep(self.latency)
            return bytes(data)


class PooledHTTPHandler:
    """Answers requests using pooled request and response buffers."""

    def __init__(self, request_size: int, response_size: int) -> None:
        self.request_pool = MemoryPool(request_size)
        self.response_pool = MemoryPool(response_size)

    def handle_request(self, request_data: bytes) -> bytes:
        with self.request_pool.borrow() as request, self.response_pool.borrow() as response:
            log.info("Handling HTTP request: %d bytes", len(request_data))
            _fill(request, request_data)
            _fill(response, HTTP_RESPONSE)
            return bytes(HTTP_RESPONSE)


class DatabaseConnector:
    """Runs simulated queries through pooled query and result buffers."""

    latency = 0.02

    def __init__(self, query_size: int, result_size: int) -> None:
        self.query_pool = MemoryPool(query_size)
        self.result_pool = MemoryPool(result_size)

    def execute_query(self, query: str) -> bytes:
        with self.query_pool.borrow() as query_buffer, self.result_pool.borrow() as result_buffer:
            log.info("Running database query: %s", query)
            if self.latency:
                time.sleep(self.latency)
            _fill(query_buffer, query.encode())
            _fill(result_buffer, QUERY_RESULT)
            return bytes(QUERY_RESULT)


def benchmark_memory_usage(iterations: int = 1000) -> tuple[float, float, PoolStats]:
    """Time pooled against direct 4 KiB allocation.

    Returns the pooled time, the direct time (both in seconds) and the
    pool's statistics.
    """
    pool = MemoryPool(4096)
    start = time.perf_counter()
    for i in range(iterations):
        with pool.borrow() as buffer:
            buffer[0] = i % 256
    pool_time = time.perf_counter() - start

    start = time.perf_counter()
    for i in range(iterations):
        buffer = bytearray(4096)
        buffer[0] = i % 256
    direct_time = time.perf_counter() - start

    return pool_time, direct_time, pool.stats()


def _format_stats(label: str, stats: PoolStats) -> str:
    return (
        f"{label} - allocated: {stats.allocated}, reused: {stats.reused}, "
        f"reuse rate: {stats.reuse_rate:.2f}%"
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Memory pool examples")
    parser.add_argument("--iterations", type=int, default=1000)
    args = parser.parse_args(argv)

    print("=== Memory pool examples (avoiding internal fragmentation) ===")

    print("\n1. JSON processor:")
    processor = JSONProcessor(8192)
    payload = b'{"name":"Kim","age":30,"email":"kim@example.com"}'
    for _ in range(3):
        print(f"Processed: {len(processor.process(payload))} bytes")

    print("\n2. HTTP handler:")
    http = PooledHTTPHandler(4096, 2048)
    request = b"GET /api/users HTTP/1.1\r\nHost: example.com\r\n\r\n"
    for _ in range(3):
        print(f"Response: {len(http.handle_request(request))} bytes")

    print("\n3. Database connector:")
    connector = DatabaseConnector(1024, 4096)
    for query in ("SELECT * FROM users", "SELECT * FROM products", "SELECT * FROM orders"):
        print(f"Query result: {len(connector.execute_query(query))} bytes")

    print("\n=== Memory usage benchmark ===")
    pool_time, direct_time, bench_stats = benchmark_memory_usage(args.iterations)
    print(f"Pooled time: {pool_time:.6f}s")
    print(f"Direct time: {direct_time:.6f}s")
    if pool_time > 0:
        print(f"Speed-up: {direct_time / pool_time:.2f}x")
    print(_format_stats("Benchmark pool", bench_stats))

    print("\n4. Pool statistics:")
    print(_format_stats("JSON processor", processor.buffer_pool.stats()))
    print(_format_stats("HTTP handler (request)", http.request_pool.stats()))
    print(_format_stats("DB connector (query)", connector.query_pool.stats()))
    return 0


if __name__ == "__main__":
    sys.exit(main())