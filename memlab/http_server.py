"""JSON HTTP server that builds responses in slab-allocated buffers."""

from __future__ import annotations

import argparse
import gc
import json
import logging
import sys
import threading
import time
import tracemalloc
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence, Union

from werkzeug.exceptions import HTTPException
from werkzeug.routing import Map, Rule
from werkzeug.wrappers import Request, Response

from memlab.allocators import capacity

log = logging.getLogger(__name__)

Buffer = Union[bytearray, memoryview]

SLAB_SIZES = (1024, 4096, 16384)
JSON_HEADROOM = 100


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


class SlabAllocator:
    """Three slab classes of 1, 4 and 16 KiB; larger requests are allocated directly."""

    def __init__(self) -> None:
        self._classes = {size: _FreeList(size) for size in SLAB_SIZES}

    def get(self, size: int) -> memoryview:
        if size < 0:
            raise ValueError(f"size must not be negative: {size}")
        for block_size, pool in self._classes.items():
            if size <= block_size:
                return memoryview(pool.get())[:size]
        return memoryview(bytearray(size))

    def put(self, buf: Buffer) -> None:
        pool = self._classes.get(capacity(buf))
        storage = buf.obj if isinstance(buf, memoryview) else buf
        if pool is not None and isinstance(storage, bytearray):
            pool.put(storage)


class ResponseBufferPool:
    """Response buffers drawn from a slab allocator."""

    def __init__(self) -> None:
        self.allocator = SlabAllocator()

    def get_buffer(self, size: int) -> memoryview:
        return self.allocator.get(size)

    def put_buffer(self, buf: Buffer) -> None:
        self.allocator.put(buf)


@dataclass
class ServerMetrics:
    """Request count plus memory and garbage-collector figures."""

    request_count: int = 0
    allocated_memory: int = 0
    gc_count: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def increment_request(self) -> None:
        with self._lock:
            self.request_count += 1

    def update_memory_stats(self) -> None:
        """Refresh traced memory (zero unless tracemalloc runs) and GC runs."""
        current = tracemalloc.get_traced_memory()[0] if tracemalloc.is_tracing() else 0
        collections = sum(stat["collections"] for stat in gc.get_stats())
        with self._lock:
            self.allocated_memory = current
            self.gc_count = collections

    def snapshot(self) -> tuple[int, int, int]:
        """Return (requests, allocated memory in bytes, GC collections)."""
        with self._lock:
            return self.request_count, self.allocated_memory, self.gc_count


class HighPerformanceServer:
    """WSGI application serving the user, bulk, upload and metrics endpoints."""

    def __init__(self) -> None:
        self.buffer_pool = ResponseBufferPool()
        self.metrics = ServerMetrics()
        self._url_map = Map(
            [
                Rule("/api/user", endpoint="user"),
                Rule("/api/bulk", endpoint="bulk"),
                Rule("/api/upload", endpoint="upload"),
                Rule("/api/metrics", endpoint="metrics"),
            ]
        )
        self._handlers: dict[str, Callable[[Request], Response]] = {
            "user": self._handle_user,
            "bulk": self._handle_bulk,
            "upload": self._handle_upload,
            "metrics": self._handle_metrics,
        }

    def __call__(
        self, environ: dict[str, Any], start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        request = Request(environ)
        adapter = self._url_map.bind_to_environ(environ)
        try:
            endpoint, _ = adapter.match()
            response = self._handlers[endpoint](request)
        except HTTPException as exc:
            return exc(environ, start_response)
        return response(environ, start_response)

    def _json_response(self, data: Any) -> Response:
        payload = json.dumps(
            data, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")
        buffer = self.buffer_pool.get_buffer(len(payload) + JSON_HEADROOM)
        try:
            buffer[: len(payload)] = payload
            body = bytes(buffer[: len(payload)])
        finally:
            self.buffer_pool.put_buffer(buffer)
        return Response(body, content_type="application/json")

    def _handle_user(self, request: Request) -> Response:
        self.metrics.increment_request()
        return self._json_response(
            {
                "id": 12345,
                "username": "john_doe",
                "email": "john@example.com",
                "profile": {
                    "name": "John Doe",
                    "age": 30,
                    "location": "Seoul, Korea",
                    "bio": "Software Engineer with 5+ years experience",
                },
                "preferences": {
                    "theme": "dark",
                    "language": "ko",
                    "timezone": "Asia/Seoul",
                },
                "timestamp": int(time.time()),
            }
        )

    def _handle_bulk(self, request: Request) -> Response:
        self.metrics.increment_request()
        items = [
            {
                "id": i,
                "title": f"Item {i}",
                "description": "Lorem ipsum dolor sit amet, consectetur adipiscing elit",
                "price": float(i * 10),
                "category": "electronics",
            }
            for i in range(1000)
        ]
        return self._json_response(
            {"total_count": len(items), "items": items, "page": 1, "per_page": 1000}
        )

    def _handle_upload(self, request: Request) -> Response:
        self.metrics.increment_request()
        upload = request.files.get("file")
        if upload is None:
            return Response("cannot read file\n", status=400, mimetype="text/plain")
        try:
            data = upload.read()
        except OSError:
            return Response("file read error\n", status=500, mimetype="text/plain")

        buffer = self.buffer_pool.get_buffer(len(data))
        try:
            buffer[:] = data
            size = len(buffer)
        finally:
            self.buffer_pool.put_buffer(buffer)

        return self._json_response(
            {
                "filename": upload.filename,
                "size": size,
                "status": "uploaded",
                "timestamp": int(time.time()),
            }
        )

    def _handle_metrics(self, request: Request) -> Response:
        self.metrics.update_memory_stats()
        requests, memory, gc_count = self.metrics.snapshot()
        return self._json_response(
            {
                "total_requests": requests,
                "allocated_memory": memory,
                "gc_count": gc_count,
                "timestamp": int(time.time()),
                "memory_mb": memory / 1024 / 1024,
            }
        )


def _monitor(server: HighPerformanceServer, stop: threading.Event, interval: float) -> None:
    while not stop.wait(interval):
        server.metrics.update_memory_stats()
        requests, memory, gc_count = server.metrics.snapshot()
        log.info(
            "Requests: %d, Memory: %.2f MB, GC: %d",
            requests, memory / 1024 / 1024, gc_count,
        )


def main(argv: Sequence[str] | None = None) -> int:
    from werkzeug.serving import run_simple

    parser = argparse.ArgumentParser(description="Slab-allocator backed HTTP server")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--monitor-interval", type=float, default=5.0)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    tracemalloc.start()
    server = HighPerformanceServer()
    stop = threading.Event()
    monitor = threading.Thread(
        target=_monitor, args=(server, stop, args.monitor_interval), daemon=True
    )
    monitor.start()

    log.info("Slab-allocator HTTP server listening on %s:%d", args.host, args.port)
    log.info("Endpoints:")
    log.info("  GET  /api/user     - user data")
    log.info("  GET  /api/bulk     - bulk data")
    log.info("  POST /api/upload   - file upload")
    log.info("  GET  /api/metrics  - server metrics")
    try:
        run_simple(args.host, args.port, server, threaded=True)
    except OSError as err:
        log.error("failed to start server: %s", err)
        return 1
    finally:
        stop.set()
        tracemalloc.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())