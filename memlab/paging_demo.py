"""Walk-through of page faults, dirty pages and replacement."""

from __future__ import annotations

import argparse
import logging
import random
import sys
from typing import Sequence, Union

from memlab.errors import MemoryProtectionError
from memlab.paging import MemoryManager

Outcome = Union[int, Exception]

_RULE = "=" * 60


def _run_accesses(
    manager: MemoryManager, addresses: Sequence[int], note: str = ""
) -> list[tuple[int, Outcome]]:
    outcomes: list[tuple[int, Outcome]] = []
    for address in addresses:
        print(f"\nAccessing virtual address {address}{note}...")
        try:
            outcome: Outcome = manager.access_memory(address)
        except (MemoryProtectionError, MemoryError) as err:
            print(f"Error: {err}")
            outcome = err
        outcomes.append((address, outcome))
    print()
    print(manager.format_page_table())
    return outcomes


def scenario_basic_access(manager: MemoryManager) -> list[tuple[int, Outcome]]:
    """Touch six consecutive pages, triggering faults and replacement."""
    print("=== Scenario 1: basic access and page faults ===")
    return _run_accesses(manager, [0, 1024, 2048, 3072, 4096, 5120])


def scenario_writes(manager: MemoryManager) -> list[tuple[int, Outcome]]:
    """Write into three pages so that their dirty bits are set."""
    print("=== Scenario 2: writes and the dirty bit ===")
    outcomes: list[tuple[int, Outcome]] = []
    for index, address in enumerate([512, 1536, 2560]):
        print(f"\nWriting to virtual address {address}...")
        try:
            outcome: Outcome = manager.write_memory(address, f"data_{index}")
        except (MemoryProtectionError, MemoryError) as err:
            print(f"Error: {err}")
            outcome = err
        outcomes.append((address, outcome))
    print()
    print(manager.format_page_table())
    return outcomes


def scenario_replacement(manager: MemoryManager) -> list[tuple[int, Outcome]]:
    """Access pages under memory pressure, including one past the table."""
    print("=== Scenario 3: memory pressure and page replacement ===")
    return _run_accesses(manager, [6144, 7168, 8192], " (memory pressure)")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Valid-invalid bit paging simulator")
    parser.add_argument("--pages", type=int, default=8)
    parser.add_argument("--process-id", type=int, default=1)
    parser.add_argument("--frames", type=int, default=4)
    parser.add_argument("--frame-size", type=int, default=1024)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--latency", type=float, default=MemoryManager.load_latency)
    args = parser.parse_args(argv)

    manager = MemoryManager(
        args.pages, args.process_id, args.frames, args.frame_size, random.Random(args.seed)
    )
    manager.load_latency = args.latency

    paging_log = logging.getLogger("memlab.paging")
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    previous_level = paging_log.level
    paging_log.addHandler(handler)
    paging_log.setLevel(logging.INFO)
    try:
        print("=== Valid-invalid bit memory management simulator ===\n")
        print("Simulator ready")
        print(f"- page table size: {args.pages} pages")
        print(f"- physical memory: {args.frames} frames")
        print(f"- frame size: {args.frame_size} bytes\n")

        scenario_basic_access(manager)
        print("\n" + _RULE)
        scenario_writes(manager)
        print("\n" + _RULE)
        scenario_replacement(manager)

        print()
        print(manager.format_statistics())
    finally:
        paging_log.removeHandler(handler)
        paging_log.setLevel(previous_level)
    return 0


if __name__ == "__main__":
    sys.exit(main())