import pytest

from memlab.errors import MemoryProtectionError, SegmentationFault
from memlab.paging import MemoryManager, PageTable, PhysicalMemory


class _FixedChoices:
    def __init__(self, *values):
        self._values = iter(values)

    def randrange(self, stop):
        value = next(self._values)
        assert 0 <= value < stop
        return value


def _manager(rng=None, pages=8, frames=4, frame_size=1024):
    mm = MemoryManager(pages, 1, frames, frame_size, rng if rng is not None else _FixedChoices())
    mm.load_latency = 0
    return mm


def test_new_structures_start_empty():
    table = PageTable(8, 1)
    memory = PhysicalMemory(4, 1024)
    assert len(table) == 8
    assert table.resident_pages == 0
    assert memory.frames == [False] * 4


def test_first_access_faults_and_loads_into_frame_zero():
    mm = _manager()
    assert mm.access_memory(100) == 100
    assert mm.page_faults == 1
    assert mm.page_table[0].valid
    assert mm.page_table[0].referenced


def test_second_access_does_not_fault():
    mm = _manager()
    first = mm.access_memory(5)
    second = mm.access_memory(5)
    assert first == second
    assert mm.page_faults == 1
    assert mm.memory_accesses == 2


def test_pages_fill_frames_in_order():
    mm = _manager()
    for page in range(4):
        physical = mm.access_memory(page * 1024 + 7)
        assert physical // 1024 == page
        assert physical % 1024 == 7
    assert mm.physical_memory.frames == [True] * 4


def test_address_beyond_table_is_segfault():
    mm = _manager()
    with pytest.raises(SegmentationFault):
        mm.access_memory(8 * 1024)
    assert mm.memory_accesses == 1
    assert mm.page_faults == 0


def test_negative_address_is_segfault():
    mm = _manager()
    with pytest.raises(MemoryProtectionError):
        mm.write_memory(-1, "x")


def test_write_marks_page_dirty():
    mm = _manager()
    physical = mm.write_memory(1536, "data")
    entry = mm.page_table[1]
    assert entry.dirty and entry.referenced and entry.valid
    assert physical == entry.frame_number * 1024 + 512


def test_unreferenced_page_is_evicted_first_and_dirty_goes_to_swap():
    mm = _manager()
    for page in range(4):
        mm.write_memory(page * 1024, "d")
    mm.page_table[2].referenced = False
    frame_of_two = mm.page_table[2].frame_number

    mm.access_memory(4 * 1024)

    assert not mm.page_table[2].valid
    assert mm.page_table[4].frame_number == frame_of_two
    assert mm.swap_space == {2}


def test_reloading_swapped_page_removes_it_from_swap():
    mm = _manager()
    for page in range(4):
        mm.write_memory(page * 1024, "d")
    mm.page_table[2].referenced = False
    mm.access_memory(4 * 1024)
    mm.page_table[0].referenced = False

    mm.access_memory(2 * 1024)

    assert mm.page_table[2].valid
    assert not mm.page_table[2].dirty
    assert 2 not in mm.swap_space


def test_random_victim_is_used_when_all_referenced():
    mm = _manager(_FixedChoices(1))
    for page in range(4):
        mm.access_memory(page * 1024)
    frame_of_one = mm.page_table[1].frame_number

    mm.access_memory(5 * 1024)

    assert not mm.page_table[1].valid
    assert mm.page_table[5].frame_number == frame_of_one
    assert mm.page_faults == 5


def test_random_victim_not_resident_with_full_memory_raises():
    mm = _manager(_FixedChoices(6))
    for page in range(4):
        mm.access_memory(page * 1024)
    with pytest.raises(MemoryError):
        mm.access_memory(5 * 1024)


def test_allocate_and_free_frame():
    mm = _manager(frames=2)
    assert mm.allocate_frame() == 0
    assert mm.allocate_frame() == 1
    assert mm.allocate_frame() is None
    mm.free_frame(0)
    mm.free_frame(99)
    assert mm.allocate_frame() == 0


def test_format_page_table_has_a_row_per_page():
    mm = _manager()
    mm.write_memory(0, "x")
    rows = mm.format_page_table().splitlines()[2:]
    assert len(rows) == 8
    assert rows[0].split("\t") == ["0", "valid", "0", "Y", "Y"]
    assert rows[1].split("\t") == ["1", "invalid", "-", "-", "-"]


def test_format_statistics_reports_counts():
    mm = _manager()
    mm.access_memory(0)
    mm.access_memory(0)
    text = mm.format_statistics()
    assert "Total memory accesses: 2" in text
    assert "Page faults: 1" in text
    assert "Page fault ratio: 50.00%" in text
    assert "Resident pages: 1/8" in text


def test_zero_frame_size_rejected():
    with pytest.raises(ValueError):
        MemoryManager(8, 1, 4, 0)