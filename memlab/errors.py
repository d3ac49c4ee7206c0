"""Exceptions raised by the memory-protection simulations."""


class MemoryProtectionError(Exception):
    """An access was refused because it would break a memory boundary."""


class SegmentationFault(MemoryProtectionError):
    """A virtual address falls outside the process's page table."""