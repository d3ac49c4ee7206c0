"""Simulations of operating-system memory management: paging, protection, allocators, pools, caches and a pooled logger."""

__version__ = "0.1.0"