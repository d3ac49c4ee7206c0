# memlab

A small laboratory of memory-management ideas from operating systems,
written as runnable Python simulations and reusable classes:

- **Paging with a valid-invalid bit** (`memlab.paging`, `memlab.paging_demo`):
  a page table, physical frames, a swap space, page faults, dirty and
  reference bits, and page replacement.
- **Memory protection** (`memlab.safe_buffer`, `memlab.boundary`,
  `memlab.errors`): bounds-checked buffers, arrays, sequences, strings, CSV
  cells and request limits that raise instead of corrupting data.
- **Allocators** (`memlab.allocators`, `memlab.benchmark`): slab-style size
  classes and buddy-style power-of-two pools, with internal fragmentation
  measured side by side and a threaded benchmark.
- **Caches and pools** (`memlab.lru_cache`, `memlab.memory_pool`,
  `memlab.db_pool`): an LRU cache with per-entry valid bits, fixed-size
  buffer pools, and a SQLite connection pool sized by powers of two.
- **Applications** (`memlab.http_server`, `memlab.load_client`,
  `memlab.log_buffer`): a WSGI server whose JSON responses pass through
  slab-allocated buffers, a client to load it, and an asynchronous logger
  whose message buffers come from a slab allocator.

## Installation

```
pip install .
```

The only third-party dependency is `werkzeug`, used by the HTTP server.
To run the test suite:

```
pip install ".[test]"
pytest
```

## Command-line demos

| Command | What it shows | Options |
| --- | --- | --- |
| `memlab-paging` | Page faults, dirty pages and page replacement on a tiny machine (8 pages, 4 frames of 1024 bytes by default); the last access of scenario 3 falls outside the page table and reports a segmentation fault | `--pages`, `--process-id`, `--frames`, `--frame-size`, `--seed`, `--latency` |
| `memlab-safe-buffer` | A buffer that refuses overflows and access after invalidation, and protocol header/payload parsing | |
| `memlab-boundary` | Bounds checking for arrays, sequences, strings, CSV cells, products, user input and API requests | |
| `memlab-allocators` | Plain, slab and buddy allocation timed side by side, then the internal fragmentation of a 600-byte request | `--iterations` |
| `memlab-lru-cache` | LRU eviction, invalidation, a TTL-based API cache and a query cache | |
| `memlab-memory-pool` | Fixed-size buffer pools behind a JSON processor, an HTTP handler and a database connector, with reuse statistics | `--iterations` |
| `memlab-benchmark` | Concurrent allocator benchmark, a fragmentation report and four workload scenarios | `--iterations`, `--concurrency` |
| `memlab-db-pool` | A user service on a power-of-two SQLite connection pool: single and bulk inserts, lookups, pool statistics and a threaded test | `--db`, `--bulk`, `--workers`, `--requests` |
| `memlab-http-server` | A WSGI server on `localhost:8080` serving `/api/user`, `/api/bulk`, `/api/upload` (POST, multipart field `file`) and `/api/metrics`, logging its metrics periodically | `--host`, `--port`, `--monitor-interval` |
| `memlab-load-client` | A client for that server: `memlab-load-client load`, `memlab-load-client upload` or `memlab-load-client metrics` | `--url`, `--workers`, `--requests`, `--count`, `--interval` |
| `memlab-logger` | The asynchronous logger under simulated traffic, compared with a synchronous one; records are also appended to `server.log` | `--requests`, `--concurrency`, `--log-file` |

Start `memlab-http-server` in one terminal and `memlab-load-client load` in
another to watch the server's metrics change under load.

## Using the library

### Paging

```python
import random

from memlab.paging import MemoryManager

manager = MemoryManager(
    page_table_size=8, process_id=1, total_frames=4, frame_size=1024,
    rng=random.Random(0),
)
manager.access_memory(0)          # page fault; returns the physical address
manager.write_memory(512, "data") # marks page 0 dirty
print(manager.format_page_table())
print(manager.format_statistics())
```

When every frame is taken, the first resident page whose reference bit is
clear is evicted; otherwise a page chosen with `rng` is. Dirty pages that are
evicted go to `swap_space`. An address beyond the page table raises
`memlab.errors.SegmentationFault`, a subclass of `MemoryProtectionError`.
Progress messages go to the `memlab.paging` logger.

### Protected buffers and bounds checks

```python
from memlab.errors import MemoryProtectionError
from memlab.safe_buffer import SafeBuffer, parse_protocol_data

buffer = SafeBuffer(100)
buffer.write(0, b"Hello, World!")
print(buffer.read(0, 13))

try:
    buffer.write(0, bytes(200))
except MemoryProtectionError as exc:
    print("rejected:", exc)

header, payload = parse_protocol_data(bytes(range(1, 9)) + b"ABC")
```

`memlab.boundary` offers `SafeArray`, `safe_slice_access`,
`safe_slice_write`, `safe_string_access`, `safe_substring` (all raising
`MemoryProtectionError`), plus `UserInputValidator`, `CSVParser`,
`ProductManager` and `APIRequestHandler`, which raise `ValueError`,
`IndexError` or `LookupError`.

### Allocators and caches

```python
from memlab.allocators import BuddyAllocator, capacity
from memlab.lru_cache import LRUCache

buddy = BuddyAllocator()
buf = buddy.allocate(600)
print(len(buf), capacity(buf))    # 600 1024
buddy.deallocate(buf)

cache = LRUCache(3)
cache.set("A", "data A")
cache.get("A")                    # a miss raises KeyError
cache.invalidate("A")             # keeps the slot, reads as a miss
print(cache.stats(), len(cache))
```

`memlab.memory_pool.MemoryPool` hands out zero-filled buffers of one size and
can lend one with `with pool.borrow() as buf:`; returning a buffer of the
wrong size raises `ValueError`.

### Connection pool and logger

```python
from memlab.db_pool import UserService
from memlab.log_buffer import HighPerformanceLogger, LogLevel
import sys

service = UserService(":memory:")
user = service.create_user("john_doe", "john@example.com")
print(service.get_user(user.id), service.pool_stats())

with HighPerformanceLogger([sys.stdout], LogLevel.INFO, workers=2) as logger:
    logger.info("request from user %d", 42)
print(logger.stats())
```

Log calls use `%`-style formatting. When the logger's queue is full a record
is dropped and counted rather than blocking the caller; `fatal` logs, closes
the logger and raises `SystemExit(1)`.

## What this package does not do

- It manages no real memory. Paging, slabs, buddy blocks and pools are
  simulations over Python `bytearray` objects; memory figures come from
  `tracemalloc` and garbage-collector counts, not from the process's resident
  size.
- The HTTP server runs on Werkzeug's development server; it is meant for
  experiments, not production traffic. Its reported memory is zero unless
  `tracemalloc` is running (the `memlab-http-server` command starts it).
- The connection pool only speaks SQLite through the standard `sqlite3`
  module.