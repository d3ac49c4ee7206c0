"""Asynchronous logger whose message buffers come from a slab allocator."""

from __future__ import annotations

import argparse
import enum
import inspect
import os
import queue
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence, TextIO, Union

from memlab.allocators import capacity

Buffer = Union[bytearray, memoryview]

SLAB_SIZES = (512, 2048, 8192)
MESSAGE_HEADROOM = 100
DEFAULT_QUEUE_SIZE = 10000
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogLevel(enum.IntEnum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4

    def __str__(self) -> str:
        return self.name


class _FreeList:
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


class SlabBufferAllocator:
    """Slabs of 512 B (plain logs), 2 KiB (detailed logs) and 8 KiB (traces)."""

    def __init__(self) -> None:
        self._classes = {size: _FreeList(size) for size in SLAB_SIZES}

    def get_buffer(self, size: int) -> memoryview:
        if size < 0:
            raise ValueError(f"size must not be negative: {size}")
        for block_size, pool in self._classes.items():
            if size <= block_size:
                return memoryview(pool.get())[:size]
        return memoryview(bytearray(size))

    def put_buffer(self, buf: Buffer) -> None:
        pool = self._classes.get(capacity(buf))
        storage = buf.obj if isinstance(buf, memoryview) else buf
        if pool is not None and isinstance(storage, bytearray):
            pool.put(storage)


@dataclass
class LogEntry:
    """One queued log record and the buffer reserved for it."""

    timestamp: datetime
    level: LogLevel
    message: str
    file: str
    line: int
    thread: int
    buffer: Optional[Buffer] = None


@dataclass
class LoggerStats:
    """Counters of logged, dropped, reused and allocated buffers."""

    total_logs: int = 0
    dropped_logs: int = 0
    buffer_reuse: int = 0
    buffer_alloc: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def _add(
        self, *, total: int = 0, dropped: int = 0, reuse: int = 0, alloc: int = 0
    ) -> None:
        with self._lock:
            self.total_logs += total
            self.dropped_logs += dropped
            self.buffer_reuse += reuse
            self.buffer_alloc += alloc

    def snapshot(self) -> tuple[int, int, int, int]:
        """Return (total, dropped, buffer reuses, buffer allocations)."""
        with self._lock:
            return (
                self.total_logs,
                self.dropped_logs,
                self.buffer_reuse,
                self.buffer_alloc,
            )


def _format_timestamp(moment: datetime) -> str:
    return f"{moment.strftime(TIMESTAMP_FORMAT)}.{moment.microsecond // 1000:03d}"


def _caller(depth: int) -> tuple[str, int]:
    frame = inspect.currentframe()
    try:
        for _ in range(depth + 1):
            if frame is None:
                break
            frame = frame.f_back
        if frame is None:
            return "???", 0
        return frame.f_code.co_filename, frame.f_lineno
    finally:
        del frame


def _render(fmt: str, args: tuple) -> str:
    return fmt % args if args else fmt


class HighPerformanceLogger:
    """Queues log records and writes them from a pool of worker threads.

    When the queue is full a record is dropped rather than blocking the
    caller. Closing the logger writes out everything still queued.
    """

    def __init__(
        self,
        writers: Sequence[TextIO],
        level: LogLevel = LogLevel.INFO,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        workers: Optional[int] = None,
    ) -> None:
        if workers is None:
            workers = os.cpu_count() or 1
        if workers < 0:
            raise ValueError(f"workers must not be negative: {workers}")
        if queue_size < 1:
            raise ValueError(f"queue_size must be at least 1: {queue_size}")
        self.writers = list(writers)
        self.level = LogLevel(level)
        self.allocator = SlabBufferAllocator()
        self._stats = LoggerStats()
        self._queue: queue.Queue[Optional[LogEntry]] = queue.Queue(maxsize=queue_size)
        self._write_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._closed = False
        self._threads = [
            threading.Thread(target=self._worker, daemon=True) for _ in range(workers)
        ]
        for thread in self._threads:
            thread.start()

    def _worker(self) -> None:
        while True:
            entry = self._queue.get()
            if entry is None:
                return
            self._process(entry)

    def _process(self, entry: LogEntry) -> None:
        try:
            line = (
                f"[{_format_timestamp(entry.timestamp)}] {entry.level} "
                f"{entry.file}:{entry.line} [G{entry.thread}] {entry.message}\n"
            )
            with self._write_lock:
                for writer in self.writers:
                    writer.write(line)
        finally:
            if entry.buffer is not None:
                self.allocator.put_buffer(entry.buffer)
                self._stats._add(reuse=1)

    def _log(self, level: LogLevel, fmt: str, args: tuple) -> None:
        if level < self.level:
            return
        if self._closed:
            raise RuntimeError("logger is closed")
        self._stats._add(total=1)

        file, line = _caller(2)
        message = _render(fmt, args)
        buffer = self.allocator.get_buffer(len(message) + MESSAGE_HEADROOM)
        self._stats._add(alloc=1)

        entry = LogEntry(
            timestamp=datetime.now(),
            level=level,
            message=message,
            file=file,
            line=line,
            thread=threading.get_ident(),
            buffer=buffer,
        )
        try:
            self._queue.put_nowait(entry)
        except queue.Full:
            self._stats._add(dropped=1)
            self.allocator.put_buffer(buffer)

    def debug(self, fmt: str, *args: object) -> None:
        self._log(LogLevel.DEBUG, fmt, args)

    def info(self, fmt: str, *args: object) -> None:
        self._log(LogLevel.INFO, fmt, args)

    def warn(self, fmt: str, *args: object) -> None:
        self._log(LogLevel.WARN, fmt, args)

    def error(self, fmt: str, *args: object) -> None:
        self._log(LogLevel.ERROR, fmt, args)

    def fatal(self, fmt: str, *args: object) -> None:
        """Log at FATAL level, flush the logger and exit with status 1."""
        self._log(LogLevel.FATAL, fmt, args)
        self.close()
        raise SystemExit(1)

    def close(self) -> None:
        """Stop the workers and write out every record still queued."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
        for _ in self._threads:
            self._queue.put(None)
        for thread in self._threads:
            thread.join()
        while True:
            try:
                entry = self._queue.get_nowait()
            except queue.Empty:
                break
            if entry is not None:
                self._process(entry)

    def stats(self) -> tuple[int, int, int, int]:
        """Return (total, dropped, buffer reuses, buffer allocations)."""
        return self._stats.snapshot()

    def __enter__(self) -> HighPerformanceLogger:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _format_duration(seconds: float) -> str:
    if seconds == 0:
        return "0s"
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    return f"{seconds:g}s"


class WebServer:
    """Simulated web server that logs every request it handles."""

    def __init__(self, logger: Optional[HighPerformanceLogger] = None) -> None:
        self._log_file: Optional[TextIO] = None
        if logger is None:
            self._log_file = open("server.log", "a", encoding="utf-8")
            logger = HighPerformanceLogger([sys.stdout, self._log_file], LogLevel.INFO)
        self.logger = logger

    def handle_request(self, user_id: int, endpoint: str, duration: float) -> None:
        """Log one request; ``duration`` is in seconds."""
        self.logger.info(
            "Request: user=%d endpoint=%s duration=%s",
            user_id, endpoint, _format_duration(duration),
        )
        if user_id % 100 == 0:
            self.logger.error("Database connection failed for user %d", user_id)
        self.logger.debug(
            "Processing details: user=%d internal_state=processing", user_id
        )

    def simulate_traffic(self, request_count: int, concurrency: int) -> float:
        """Handle ``request_count`` requests across threads; return elapsed seconds."""
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1: {concurrency}")
        per_worker = request_count // concurrency

        def worker(worker_id: int) -> None:
            for j in range(per_worker):
                user_id = worker_id * per_worker + j
                self.handle_request(
                    user_id, f"/api/users/{user_id % 10}", (j % 100) / 1000
                )

        start = time.perf_counter()
        threads = [threading.Thread(target=worker, args=(i,)) for i in range(concurrency)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        elapsed = time.perf_counter() - start

        rate = request_count / elapsed if elapsed > 0 else 0.0
        self.logger.info(
            "Traffic simulation completed: %d requests in %.3fs (%.2f req/sec)",
            request_count, elapsed, rate,
        )
        return elapsed

    def format_stats(self) -> str:
        total, dropped, reuse, alloc = self.logger.stats()
        lines = [
            "=== Logger statistics ===",
            f"Total logs: {total}",
            f"Dropped logs: {dropped}",
            f"Buffer reuses: {reuse}",
            f"Buffer allocations: {alloc}",
        ]
        if alloc > 0:
            lines.append(f"Reuse rate: {reuse / alloc * 100:.2f}%")
        if total > 0:
            lines.append(f"Drop rate: {dropped / total * 100:.2f}%")
        return "\n".join(lines)

    def close(self) -> None:
        self.logger.close()
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None


class SimpleLogger:
    """Synchronous logger used as a baseline for comparison."""

    def __init__(self, writers: Sequence[TextIO], level: LogLevel = LogLevel.INFO) -> None:
        self.writers = list(writers)
        self.level = LogLevel(level)
        self._lock = threading.Lock()
        self._total = 0

    def _log(self, level: LogLevel, fmt: str, args: tuple) -> None:
        if level < self.level:
            return
        with self._lock:
            self._total += 1
            file, line = _caller(2)
            message = _render(fmt, args)
            record = (
                f"[{_format_timestamp(datetime.now())}] {level} {file}:{line} {message}\n"
            )
            for writer in self.writers:
                writer.write(record)

    def info(self, fmt: str, *args: object) -> None:
        self._log(LogLevel.INFO, fmt, args)

    def total_logs(self) -> int:
        with self._lock:
            return self._total


class _Discard:
    def write(self, text: str) -> int:
        return len(text)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Slab-buffered asynchronous logger demo")
    parser.add_argument("--requests", type=int, default=10000)
    parser.add_argument("--concurrency", type=int, default=50)
    parser.add_argument("--log-file", default="server.log")
    args = parser.parse_args(argv)

    print("=== High-performance logger (kernel memory concepts) ===")
    with open(args.log_file, "a", encoding="utf-8") as log_file:
        logger = HighPerformanceLogger([sys.stdout, log_file], LogLevel.INFO)
        server = WebServer(logger)
        try:
            start = time.perf_counter()
            server.simulate_traffic(args.requests, args.concurrency)
            fast_duration = time.perf_counter() - start
        finally:
            server.close()
    print()
    print(server.format_stats())
    print(f"High-performance logger time: {fast_duration:.3f}s")

    print("\n=== Simple logger (baseline) ===")
    simple = SimpleLogger([_Discard()], LogLevel.INFO)
    per_worker = args.requests // max(args.concurrency, 1)

    def worker(worker_id: int) -> None:
        for j in range(per_worker):
            user_id = worker_id * per_worker + j
            simple.info(
                "Request: user=%d endpoint=%s duration=%s",
                user_id, f"/api/users/{user_id % 10}", _format_duration((j % 100) / 1000),
            )

    start = time.perf_counter()
    threads = [threading.Thread(target=worker, args=(i,)) for i in range(args.concurrency)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    simple_duration = time.perf_counter() - start
    print(f"Simple logger time: {simple_duration:.3f}s")
    if fast_duration > 0:
        print(f"Speed-up: {simple_duration / fast_duration:.2f}x")
    return 0


if __name__ == "__main__":
    sys.exit(main())