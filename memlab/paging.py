"""Demand-paging simulator built around the valid-invalid bit."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Iterator, Optional, Protocol

from memlab.errors import SegmentationFault

log = logging.getLogger(__name__)


class RandomSource(Protocol):
    def randrange(self, stop: int) -> int: ...


@dataclass
class PageTableEntry:
    """One page-table slot: residency, location and usage bits."""

    valid: bool = False
    frame_number: int = 0
    dirty: bool = False
    referenced: bool = False

    def clear(self) -> None:
        self.valid = False
        self.frame_number = -1
        self.dirty = False
        self.referenced = False


@dataclass
class PageTable:
    """The page table of a single process."""

    size: int
    process_id: int
    entries: list[PageTableEntry] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.entries = [PageTableEntry() for _ in range(self.size)]

    def __len__(self) -> int:
        return self.size

    def __getitem__(self, page: int) -> PageTableEntry:
        return self.entries[page]

    def __iter__(self) -> Iterator[PageTableEntry]:
        return iter(self.entries)

    @property
    def resident_pages(self) -> int:
        return sum(entry.valid for entry in self.entries)


@dataclass
class PhysicalMemory:
    """Physical memory as a row of equally sized frames."""

    total_frames: int
    frame_size: int
    frames: list[bool] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.frames = [False] * self.total_frames


class MemoryManager:
    """Translates virtual addresses and services page faults."""

    load_latency = 0.01

    def __init__(
        self,
        page_table_size: int,
        process_id: int,
        total_frames: int,
        frame_size: int,
        rng: Optional[RandomSource] = None,
    ) -> None:
        if frame_size <= 0:
            raise ValueError("frame size must be positive")
        self.page_table = PageTable(page_table_size, process_id)
        self.physical_memory = PhysicalMemory(total_frames, frame_size)
        self.swap_space: set[int] = set()
        self.page_faults = 0
        self.memory_accesses = 0
        self._rng: RandomSource = rng if rng is not None else random.Random()

    @property
    def frame_size(self) -> int:
        return self.physical_memory.frame_size

    def allocate_frame(self) -> Optional[int]:
        """Claim the lowest free frame, or return None when memory is full."""
        frames = self.physical_memory.frames
        for number, used in enumerate(frames):
            if not used:
                frames[number] = True
                return number
        return None

    def free_frame(self, frame_number: int) -> None:
        if 0 <= frame_number < self.physical_memory.total_frames:
            self.physical_memory.frames[frame_number] = False

    def _translate(self, virtual_address: int) -> tuple[int, int]:
        page, offset = divmod(virtual_address, self.frame_size)
        if virtual_address < 0 or page >= self.page_table.size:
            raise SegmentationFault(
                f"segmentation fault: page number {page} is invalid "
                f"(max: {self.page_table.size - 1})"
            )
        return page, offset

    def access_memory(self, virtual_address: int) -> int:
        """Read-access a virtual address and return its physical address."""
        self.memory_accesses += 1
        page, offset = self._translate(virtual_address)
        entry = self.page_table[page]
        if not entry.valid:
            return self._handle_page_fault(page, offset)

        entry.referenced = True
        physical = entry.frame_number * self.frame_size + offset
        log.info(
            "Memory access ok: virtual %d -> physical %d (page %d, frame %d)",
            virtual_address, physical, page, entry.frame_number,
        )
        return physical

    def write_memory(self, virtual_address: int, data: str) -> int:
        """Write-access a virtual address, marking its page dirty."""
        self.memory_accesses += 1
        page, offset = self._translate(virtual_address)
        entry = self.page_table[page]
        if not entry.valid:
            self._handle_page_fault(page, offset)

        entry.referenced = True
        entry.dirty = True
        physical = entry.frame_number * self.frame_size + offset
        log.info(
            "Memory write ok: virtual %d -> physical %d (data: %s)",
            virtual_address, physical, data,
        )
        return physical

    def _handle_page_fault(self, page: int, offset: int) -> int:
        self.page_faults += 1
        log.info("Page fault: page %d", page)

        frame = self.allocate_frame()
        if frame is None:
            frame = self._evict_page()

        log.info("Loading page %d into frame %d...", page, frame)
        if self.load_latency:
            time.sleep(self.load_latency)

        entry = self.page_table[page]
        entry.valid = True
        entry.frame_number = frame
        entry.referenced = True
        entry.dirty = False

        if page in self.swap_space:
            log.info("Restored page %d from swap space", page)
            self.swap_space.discard(page)

        physical = frame * self.frame_size + offset
        log.info(
            "Page fault handled: virtual %d -> physical %d",
            page * self.frame_size + offset, physical,
        )
        return physical

    def _evict(self, page: int) -> int:
        entry = self.page_table[page]
        frame = entry.frame_number
        if entry.dirty:
            log.info("Saving dirty page %d to swap space...", page)
            self.swap_space.add(page)
        entry.clear()
        log.info("Evicted page %d, freeing frame %d", page, frame)
        return frame

    def _evict_page(self) -> int:
        for page, entry in enumerate(self.page_table):
            if entry.valid and not entry.referenced:
                return self._evict(page)

        victim = self._rng.randrange(self.page_table.size)
        if self.page_table[victim].valid:
            return self._evict(victim)

        frame = self.allocate_frame()
        if frame is None:
            raise MemoryError(
                f"no frame could be freed: randomly chosen page {victim} is not resident"
            )
        return frame

    def format_statistics(self) -> str:
        ratio = (
            self.page_faults / self.memory_accesses * 100
            if self.memory_accesses
            else 0.0
        )
        return "\n".join(
            [
                "=== Memory management statistics ===",
                f"Total memory accesses: {self.memory_accesses}",
                f"Page faults: {self.page_faults}",
                f"Page fault ratio: {ratio:.2f}%",
                f"Resident pages: {self.page_table.resident_pages}/{self.page_table.size}",
                f"Pages in swap space: {len(self.swap_space)}",
            ]
        )

    def format_page_table(self) -> str:
        lines = ["=== Page table ===", "page\tvalid\tframe\tdirty\tref"]
        for page, entry in enumerate(self.page_table):
            lines.append(
                "\t".join(
                    [
                        str(page),
                        "valid" if entry.valid else "invalid",
                        str(entry.frame_number) if entry.valid else "-",
                        "Y" if entry.dirty else "-",
                        "Y" if entry.referenced else "-",
                    ]
                )
            )
        return "\n".join(lines)