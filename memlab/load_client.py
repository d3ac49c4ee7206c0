"""Load-testing client for the pooled HTTP server."""

from __future__ import annotations

import argparse
import sys
import threading
import time
import urllib.error
import urllib.request
import uuid
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

DEFAULT_URL = "http://localhost:8080"
ENDPOINTS = ("/api/user", "/api/bulk", "/api/metrics")
TIMEOUT = 10.0
UPLOAD_DATA = b"test data\n" * 1000


@dataclass(frozen=True)
class LoadTestResult:
    """Totals of one load test run."""

    total_requests: int
    failed_requests: int
    duration: float

    @property
    def requests_per_second(self) -> float:
        return self.total_requests / self.duration if self.duration > 0 else 0.0


def _get(url: str) -> bytes:
    try:
        with urllib.request.urlopen(url, timeout=TIMEOUT) as response:
            return response.read()
    except urllib.error.HTTPError as err:
        with err:
            return err.read()


def load_test(
    base_url: str = DEFAULT_URL, workers: int = 100, requests_per_worker: int = 100
) -> LoadTestResult:
    """Hit the server's endpoints in turn from ``workers`` concurrent threads."""
    base = base_url.rstrip("/")
    failures = 0
    lock = threading.Lock()

    def worker(worker_id: int) -> None:
        nonlocal failures
        for j in range(requests_per_worker):
            url = base + ENDPOINTS[j % len(ENDPOINTS)]
            try:
                _get(url)
            except (urllib.error.URLError, OSError) as err:
                print(f"Error: {err}")
                with lock:
                    failures += 1
                continue
            if j % 50 == 0:
                print(f"Worker {worker_id}: {j + 1} requests completed")

    start = time.perf_counter()
    threads = [threading.Thread(target=worker, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return LoadTestResult(workers * requests_per_worker, failures, time.perf_counter() - start)


def _multipart(field: str, filename: str, data: bytes) -> tuple[bytes, str]:
    boundary = uuid.uuid4().hex
    body = b"".join(
        [
            f"--{boundary}\r\n".encode(),
            f'Content-Disposition: form-data; name="{field}"; filename="{filename}"\r\n'.encode(),
            b"Content-Type: application/octet-stream\r\n\r\n",
            data,
            f"\r\n--{boundary}--\r\n".encode(),
        ]
    )
    return body, f"multipart/form-data; boundary={boundary}"


def upload_file(
    base_url: str = DEFAULT_URL, data: Optional[bytes] = None, filename: str = "test.txt"
) -> str:
    """POST ``data`` as a multipart file upload and return the response body."""
    body, content_type = _multipart("file", filename, UPLOAD_DATA if data is None else data)
    request = urllib.request.Request(
        base_url.rstrip("/") + "/api/upload",
        data=body,
        headers={"Content-Type": content_type},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=TIMEOUT) as response:
            return response.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as err:
        with err:
            return err.read().decode("utf-8", errors="replace")


def monitor_metrics(
    base_url: str = DEFAULT_URL, count: int = 10, interval: float = 2.0
) -> Iterator[str]:
    """Yield the metrics endpoint's body ``count`` times, ``interval`` seconds apart."""
    url = base_url.rstrip("/") + "/api/metrics"
    for i in range(count):
        if i and interval > 0:
            time.sleep(interval)
        yield _get(url).decode("utf-8", errors="replace")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Client for the pooled HTTP server")
    parser.add_argument("command", choices=["load", "upload", "metrics"])
    parser.add_argument("--url", default=DEFAULT_URL)
    parser.add_argument("--workers", type=int, default=100)
    parser.add_argument("--requests", type=int, default=100)
    parser.add_argument("--count", type=int, default=10)
    parser.add_argument("--interval", type=float, default=2.0)
    args = parser.parse_args(argv)

    if args.command == "load":
        print("Starting load test...")
        result = load_test(args.url, args.workers, args.requests)
        print("\n=== Load test results ===")
        print(f"Total requests: {result.total_requests}")
        print(f"Failed requests: {result.failed_requests}")
        print(f"Duration: {result.duration:.3f}s")
        print(f"Requests per second: {result.requests_per_second:.2f}")
        return 0

    if args.command == "upload":
        print("File upload test...")
        try:
            print(f"Upload response: {upload_file(args.url)}")
        except (urllib.error.URLError, OSError) as err:
            print(f"Upload error: {err}")
            return 1
        return 0

    print("Monitoring metrics...")
    try:
        for number, body in enumerate(monitor_metrics(args.url, args.count, args.interval), 1):
            print(f"Metrics {number}: {body}")
    except (urllib.error.URLError, OSError) as err:
        print(f"Metrics request error: {err}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())