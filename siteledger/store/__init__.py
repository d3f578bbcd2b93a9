"""
Record store backends for site items.
"""

from .base import ScanKey, ScanPage, SiteStore
from .memory_store import InMemorySiteStore

__all__ = [
    "ScanKey",
    "ScanPage",
    "SiteStore",
    "InMemorySiteStore",
]
