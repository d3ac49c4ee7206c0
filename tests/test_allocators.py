import pytest

from memlab.allocators import (
    BuddyAllocator,
    SimpleAllocator,
    SlabPool,
    benchmark_allocator,
    capacity,
    main,
)


def test_simple_allocator_has_no_slack():
    buf = SimpleAllocator().allocate(600)
    assert len(buf) == 600
    assert capacity(buf) == 600


@pytest.mark.parametrize(
    "size,expected",
    [(0, 256), (100, 256), (256, 256), (257, 1024), (1024, 1024), (4096, 4096), (5000, 5000)],
)
def test_slab_size_classes(size, expected):
    buf = SlabPool().allocate(size)
    assert len(buf) == size
    assert capacity(buf) == expected


def test_slab_reuses_released_block():
    pool = SlabPool()
    first = pool.allocate(100)
    block = first.obj
    pool.deallocate(first)
    second = pool.allocate(200)
    assert second.obj is block
    assert len(second) == 200


def test_slab_does_not_pool_oversized_blocks():
    pool = SlabPool()
    big = pool.allocate(5000)
    pool.deallocate(big)
    assert pool.allocate(5000).obj is not big.obj


def test_buddy_next_power_of_2():
    buddy = BuddyAllocator()
    assert buddy.next_power_of_2(1) == 256
    assert buddy.next_power_of_2(600) == 1024
    assert buddy.next_power_of_2(32768) == 32768
    assert buddy.next_power_of_2(40000) == 2 * 32768


def test_buddy_fragmentation_for_600_bytes():
    buf = BuddyAllocator().allocate(600)
    assert len(buf) == 600
    assert capacity(buf) == 1024


def test_buddy_large_request_is_exact():
    buf = BuddyAllocator().allocate(40000)
    assert capacity(buf) == 40000


def test_buddy_reuse_round_trip():
    buddy = BuddyAllocator()
    buf = buddy.allocate(3000)
    block = buf.obj
    buddy.deallocate(buf)
    again = buddy.allocate(2500)
    assert again.obj is block
    assert capacity(again) == capacity(buf)


@pytest.mark.parametrize("allocator", [SimpleAllocator(), SlabPool(), BuddyAllocator()])
def test_negative_size_rejected(allocator):
    with pytest.raises(ValueError):
        allocator.allocate(-1)


def test_benchmark_visits_every_iteration():
    sizes = []
    released = []

    def allocate(size):
        sizes.append(size)
        return bytearray(size)

    report = benchmark_allocator("probe", allocate, released.append, 1000)
    assert report.iterations == 1000
    assert len(released) == 1000
    assert min(sizes) == 100
    assert max(sizes) == 599
    assert report.duration >= 0


def test_main_prints_fragmentation(capsys):
    assert main(["--iterations", "50"]) == 0
    out = capsys.readouterr().out
    assert "requested: 600, allocated: 1024" in out