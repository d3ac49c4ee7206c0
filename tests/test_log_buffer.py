import io
import re

import pytest

from memlab.allocators import capacity
from memlab.log_buffer import (
    HighPerformanceLogger,
    LogLevel,
    SimpleLogger,
    SlabBufferAllocator,
    WebServer,
    main,
)

LINE_RE = re.compile(
    r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}\] (\w+) (.+):(\d+) \[G\d+\] (.*)$"
)


def _lines(stream):
    return [line for line in stream.getvalue().splitlines() if line]


def test_log_level_threshold_filters_lower_levels():
    out = io.StringIO()
    with HighPerformanceLogger([out], LogLevel.WARN, workers=1) as logger:
        logger.debug("d")
        logger.info("i")
        logger.warn("w")
        logger.error("e")
    levels = sorted(LINE_RE.match(line).group(1) for line in _lines(out))
    assert levels == ["ERROR", str(LogLevel.WARN)]
    assert levels[1] == "WARN"
    assert logger.stats()[0] == 2


@pytest.mark.parametrize("size,slab", [(100, 512), (512, 512), (600, 2048), (8192, 8192)])
def test_slab_sizes(size, slab):
    buf = SlabBufferAllocator().get_buffer(size)
    assert len(buf) == size
    assert capacity(buf) == slab


def test_oversized_buffer_is_direct():
    buf = SlabBufferAllocator().get_buffer(9000)
    assert len(buf) == 9000
    assert capacity(buf) == 9000


def test_slab_buffer_reused():
    allocator = SlabBufferAllocator()
    first = allocator.get_buffer(10)
    storage = first.obj
    allocator.put_buffer(first)
    second = allocator.get_buffer(20)
    assert second.obj is storage


def test_negative_buffer_size_rejected():
    with pytest.raises(ValueError):
        SlabBufferAllocator().get_buffer(-1)


def test_line_format_and_level_filter():
    out = io.StringIO()
    with HighPerformanceLogger([out], LogLevel.INFO, workers=2) as logger:
        logger.debug("hidden %d", 1)
        logger.info("user=%d name=%s", 7, "kim")
    lines = _lines(out)
    assert len(lines) == 1
    match = LINE_RE.match(lines[0])
    assert match is not None
    assert match.group(1) == "INFO"
    assert match.group(2).endswith("test_log_buffer.py")
    assert match.group(4) == "user=7 name=kim"
    assert logger.stats()[0] == 1


def test_every_writer_receives_records():
    first, second = io.StringIO(), io.StringIO()
    with HighPerformanceLogger([first, second], LogLevel.DEBUG, workers=1) as logger:
        logger.warn("a")
        logger.error("b")
    assert first.getvalue() == second.getvalue()
    levels = sorted(LINE_RE.match(line).group(1) for line in _lines(first))
    assert levels == ["ERROR", "WARN"]


def test_all_buffers_returned_after_close():
    out = io.StringIO()
    logger = HighPerformanceLogger([out], LogLevel.DEBUG, workers=3)
    for i in range(50):
        logger.info("message %d", i)
    logger.close()
    total, dropped, reuse, alloc = logger.stats()
    assert dropped == 0
    assert total == alloc == reuse == 50
    assert len(_lines(out)) == total


def test_full_queue_drops_and_close_drains():
    out = io.StringIO()
    logger = HighPerformanceLogger([out], LogLevel.INFO, queue_size=1, workers=0)
    logger.info("kept")
    logger.info("dropped")
    logger.close()
    total, dropped, reuse, alloc = logger.stats()
    assert (total, dropped, alloc) == (2, 1, 2)
    assert reuse == total - dropped
    assert [LINE_RE.match(line).group(4) for line in _lines(out)] == ["kept"]


def test_logging_after_close_raises():
    logger = HighPerformanceLogger([io.StringIO()], workers=1)
    logger.close()
    logger.close()
    with pytest.raises(RuntimeError):
        logger.info("late")


def test_fatal_flushes_and_exits():
    out = io.StringIO()
    logger = HighPerformanceLogger([out], workers=1)
    with pytest.raises(SystemExit) as excinfo:
        logger.fatal("boom %s", "now")
    assert excinfo.value.code == 1
    assert LINE_RE.match(_lines(out)[0]).group(1) == "FATAL"


def test_invalid_worker_count():
    with pytest.raises(ValueError):
        HighPerformanceLogger([io.StringIO()], workers=-1)


def test_web_server_error_for_hundredth_user():
    out = io.StringIO()
    server = WebServer(HighPerformanceLogger([out], LogLevel.INFO, workers=1))
    server.handle_request(100, "/api/users/0", 0.005)
    server.handle_request(5, "/api/users/5", 0.0)
    server.close()
    levels = [LINE_RE.match(line).group(1) for line in _lines(out)]
    assert levels.count("ERROR") == 1
    assert levels.count("INFO") == 2
    assert "DEBUG" not in levels


def test_simulate_traffic_logs_every_request():
    out = io.StringIO()
    server = WebServer(HighPerformanceLogger([out], LogLevel.INFO, workers=2))
    server.simulate_traffic(200, 4)
    server.close()
    messages = [LINE_RE.match(line).group(4) for line in _lines(out)]
    requests = [m for m in messages if m.startswith("Request:")]
    assert len(requests) == 200
    assert len({m.split()[1] for m in requests}) == 200
    assert sum(m.startswith("Database connection failed") for m in messages) == 2
    assert messages[-1].startswith("Traffic simulation completed: 200 requests")
    total = server.logger.stats()[0]
    assert f"Total logs: {total}" in server.format_stats()


def test_simple_logger_counts_and_writes():
    out = io.StringIO()
    logger = SimpleLogger([out], LogLevel.INFO)
    logger.info("hello %s", "world")
    logger.info("again")
    assert logger.total_logs() == 2
    lines = out.getvalue().splitlines()
    assert lines[0].endswith("hello world")
    assert " INFO " in lines[1]


def test_main_writes_log_file(tmp_path, capsys):
    log_file = tmp_path / "server.log"
    code = main(["--requests", "20", "--concurrency", "2", "--log-file", str(log_file)])
    assert code == 0
    assert log_file.read_text(encoding="utf-8").count("Request: user=") == 20
    assert "Simple logger time" in capsys.readouterr().out