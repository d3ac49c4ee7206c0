import io
import json
import tracemalloc

import pytest
from werkzeug.test import Client

from memlab.allocators import capacity
from memlab.http_server import (
    HighPerformanceServer,
    ResponseBufferPool,
    ServerMetrics,
    SlabAllocator,
)


@pytest.fixture
def client():
    server = HighPerformanceServer()
    return server, Client(server)


@pytest.mark.parametrize(
    "size, expected",
    [(100, 1024), (1024, 1024), (1025, 4096), (4096, 4096), (16384, 16384), (20000, 20000)],
)
def test_slab_capacity(size, expected):
    buf = SlabAllocator().get(size)
    assert len(buf) == size
    assert capacity(buf) == expected


def test_slab_reuses_returned_block():
    allocator = SlabAllocator()
    first = allocator.get(10)
    allocator.put(first)
    second = allocator.get(500)
    assert second.obj is first.obj


def test_slab_does_not_pool_oversized_buffers():
    allocator = SlabAllocator()
    big = allocator.get(20000)
    allocator.put(big)
    assert allocator.get(20000).obj is not big.obj


def test_slab_rejects_negative_size():
    with pytest.raises(ValueError):
        SlabAllocator().get(-1)


def test_response_buffer_pool_round_trip():
    pool = ResponseBufferPool()
    buf = pool.get_buffer(2000)
    buf[:5] = b"hello"
    pool.put_buffer(buf)
    again = pool.get_buffer(3000)
    assert again.obj is buf.obj
    assert bytes(again[:5]) == b"hello"


def test_server_metrics_counts_requests():
    metrics = ServerMetrics()
    metrics.increment_request()
    metrics.increment_request()
    assert metrics.snapshot()[0] == 2


def test_user_endpoint(client):
    _, c = client
    response = c.get("/api/user")
    body = json.loads(response.data)
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "application/json"
    assert body["username"] == "john_doe"
    assert body["profile"]["location"] == "Seoul, Korea"
    assert isinstance(body["timestamp"], int)


def test_bulk_endpoint(client):
    _, c = client
    body = json.loads(c.get("/api/bulk").data)
    assert body["total_count"] == len(body["items"]) == body["per_page"]
    assert body["items"][5]["title"] == "Item 5"
    assert body["items"][5]["category"] == "electronics"


def test_upload_endpoint(client):
    _, c = client
    data = b"test data\n" * 300
    response = c.post(
        "/api/upload", data={"file": (io.BytesIO(data), "test.txt")}
    )
    body = json.loads(response.data)
    assert response.status_code == 200
    assert body["size"] == len(data)
    assert body["filename"] == "test.txt"
    assert body["status"] == "uploaded"


def test_upload_without_file_is_bad_request(client):
    _, c = client
    response = c.post("/api/upload", data={"other": "value"})
    assert response.status_code == 400


def test_metrics_endpoint_reports_request_count(client):
    server, c = client
    c.get("/api/user")
    c.get("/api/bulk")
    body = json.loads(c.get("/api/metrics").data)
    assert body["total_requests"] == 2
    assert server.metrics.snapshot()[0] == 2
    assert body["gc_count"] >= 0


def test_metrics_report_traced_memory(client):
    _, c = client
    tracemalloc.start()
    try:
        body = json.loads(c.get("/api/metrics").data)
    finally:
        tracemalloc.stop()
    assert body["allocated_memory"] > 0
    assert body["memory_mb"] > 0


def test_unknown_path_is_not_found(client):
    _, c = client
    assert c.get("/api/missing").status_code == 404