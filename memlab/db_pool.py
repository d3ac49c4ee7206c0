"""Database connection pool whose size classes follow the buddy system."""

from __future__ import annotations

import argparse
import logging
import sqlite3
import sys
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Optional, Sequence

log = logging.getLogger(__name__)

MAX_GROUP_SIZE = 32
MAX_CONNECTION_AGE = 30 * 60.0

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT UNIQUE NOT NULL,
    email TEXT UNIQUE NOT NULL,
    created DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""


@dataclass
class PoolStats:
    """Counters describing how the pool has been used."""

    active_connections: int = 0
    total_requests: int = 0
    pool_hits: int = 0
    pool_misses: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def _add(
        self, *, active: int = 0, requests: int = 0, hits: int = 0, misses: int = 0
    ) -> None:
        with self._lock:
            self.active_connections += active
            self.total_requests += requests
            self.pool_hits += hits
            self.pool_misses += misses

    def snapshot(self) -> tuple[int, int, int, int]:
        """Return (active, total requests, hits, misses)."""
        with self._lock:
            return (
                self.active_connections,
                self.total_requests,
                self.pool_hits,
                self.pool_misses,
            )


@dataclass
class PooledConnection:
    """A database connection together with its pool bookkeeping."""

    connection: sqlite3.Connection
    pool_size: int
    created: float = field(default_factory=time.monotonic)
    last_used: float = field(default_factory=time.monotonic)
    in_use: bool = False


class BuddyConnectionPool:
    """Keeps idle connections in power-of-two size classes from 1 to 32."""

    def __init__(self, db_source: str) -> None:
        self.db_source = db_source
        if db_source == ":memory:":
            # A named shared-cache database lets every pooled connection see
            # the same in-memory data.
            self._target = f"file:memlab-{uuid.uuid4().hex}?mode=memory&cache=shared"
            self._uri = True
        else:
            self._target = db_source
            self._uri = db_source.startswith("file:")
        self.stats = PoolStats()
        self._lock = threading.Lock()
        self._pools: dict[int, list[PooledConnection]] = {}
        size = 1
        while size <= MAX_GROUP_SIZE:
            self._pools[size] = []
            size *= 2
        self._anchor: Optional[sqlite3.Connection] = (
            self._open() if db_source == ":memory:" else None
        )

    def _open(self) -> sqlite3.Connection:
        return sqlite3.connect(
            self._target, uri=self._uri, check_same_thread=False, timeout=5.0
        )

    def _create_group(self, size: int) -> list[PooledConnection]:
        return [PooledConnection(self._open(), size) for _ in range(size)]

    def next_power_of_2(self, size: int) -> int:
        power = 1
        while power < size:
            power *= 2
        return min(power, MAX_GROUP_SIZE)

    def get_connection(self, requested_size: int) -> PooledConnection:
        """Take a connection from the size class that fits ``requested_size``."""
        self.stats._add(requests=1)
        pool_size = self.next_power_of_2(requested_size)

        with self._lock:
            idle = self._pools[pool_size]
            conn = idle.pop() if idle else None

        if conn is None:
            group = self._create_group(pool_size)
            conn = group[0]
            with self._lock:
                self._pools[pool_size].extend(group[1:])

        conn.in_use = True
        conn.last_used = time.monotonic()
        self.stats._add(hits=1, active=1)
        return conn

    def put_connection(self, conn: Optional[PooledConnection]) -> None:
        """Return a connection; connections older than the age limit are closed."""
        if conn is None:
            return
        conn.in_use = False
        conn.last_used = time.monotonic()
        self.stats._add(active=-1)

        if time.monotonic() - conn.created > MAX_CONNECTION_AGE:
            conn.connection.close()
            return

        with self._lock:
            pool = self._pools.get(conn.pool_size)
            if pool is not None:
                pool.append(conn)
                return
        conn.connection.close()

    @contextmanager
    def connection(self, requested_size: int) -> Iterator[PooledConnection]:
        """Borrow a connection for the duration of a ``with`` block."""
        conn = self.get_connection(requested_size)
        try:
            yield conn
        finally:
            self.put_connection(conn)


@dataclass
class User:
    id: int
    username: str
    email: str
    created: str


class UserService:
    """User records stored through the buddy connection pool."""

    def __init__(self, db_source: str) -> None:
        self.pool = BuddyConnectionPool(db_source)
        with self.pool.connection(1) as conn, conn.connection as db:
            db.execute(_SCHEMA)

    def create_user(self, username: str, email: str) -> User:
        with self.pool.connection(1) as conn, conn.connection as db:
            cursor = db.execute(
                "INSERT INTO users (username, email) VALUES (?, ?)", (username, email)
            )
            user_id = cursor.lastrowid
        return User(
            id=int(user_id or 0),
            username=username,
            email=email,
            created=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        )

    def get_user(self, user_id: int) -> User:
        with self.pool.connection(1) as conn:
            row = conn.connection.execute(
                "SELECT id, username, email, created FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            raise LookupError(f"user {user_id} not found")
        return User(*row)

    def get_all_users(self) -> list[User]:
        with self.pool.connection(4) as conn:
            rows = conn.connection.execute(
                "SELECT id, username, email, created FROM users ORDER BY id"
            ).fetchall()
        return [User(*row) for row in rows]

    def bulk_create_users(self, user_count: int) -> int:
        """Insert ``user_<i>`` rows in one transaction; return how many were added."""
        created = 0
        with self.pool.connection(8) as conn, conn.connection as db:
            for i in range(user_count):
                try:
                    db.execute(
                        "INSERT INTO users (username, email) VALUES (?, ?)",
                        (f"user_{i}", f"user_{i}@example.com"),
                    )
                except sqlite3.IntegrityError as err:
                    log.warning("failed to create user %d: %s", i, err)
                else:
                    created += 1
        return created

    def pool_stats(self) -> tuple[int, int, int, int]:
        return self.pool.stats.snapshot()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Buddy-system connection pool demo")
    parser.add_argument("--db", default=":memory:")
    parser.add_argument("--bulk", type=int, default=1000)
    parser.add_argument("--workers", type=int, default=50)
    parser.add_argument("--requests", type=int, default=20)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    service = UserService(args.db)

    log.info("=== Single user ===")
    try:
        log.info("Created user: %s", service.create_user("john_doe", "john@example.com"))
    except sqlite3.Error as err:
        log.info("User creation failed: %s", err)

    log.info("\n=== Bulk user creation ===")
    start = time.perf_counter()
    count = service.bulk_create_users(args.bulk)
    log.info("Created %d users in %.3fs", count, time.perf_counter() - start)

    log.info("\n=== User lookup ===")
    try:
        log.info("Found user: %s", service.get_user(1))
    except LookupError as err:
        log.info("Lookup failed: %s", err)

    log.info("\n=== All users ===")
    start = time.perf_counter()
    users = service.get_all_users()
    log.info("Fetched %d users in %.3fs", len(users), time.perf_counter() - start)

    log.info("\n=== Pool statistics ===")
    active, total, hits, misses = service.pool_stats()
    log.info("Active connections: %d", active)
    log.info("Total requests: %d", total)
    log.info("Pool hits: %d", hits)
    log.info("Pool misses: %d", misses)
    if total:
        log.info("Hit rate: %.2f%%", hits / total * 100)

    log.info("\n=== Concurrency test ===")

    def worker(worker_id: int) -> None:
        for j in range(args.requests):
            try:
                if j % 2 == 0:
                    service.get_user(j + 1)
                else:
                    service.create_user(
                        f"concurrent_user_{worker_id}_{j}",
                        f"concurrent_user_{worker_id}_{j}@example.com",
                    )
            except (sqlite3.Error, LookupError):
                pass

    start = time.perf_counter()
    threads = [threading.Thread(target=worker, args=(i,)) for i in range(args.workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    log.info("Concurrency test finished in %.3fs", time.perf_counter() - start)

    _, total, hits, _ = service.pool_stats()
    log.info("\n=== Final statistics ===")
    log.info("Total requests: %d", total)
    if total:
        log.info("Pool hit rate: %.2f%%", hits / total * 100)
    return 0


if __name__ == "__main__":
    sys.exit(main())