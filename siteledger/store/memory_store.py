"""
In-process site store.

Implements the SiteStore contract over a dict guarded by a lock, so the
conditional insert is atomic across threads. Used for tests and local runs
where no database is available.
"""

import copy
import threading
from typing import Any

from siteledger.core.errors import DuplicateKeyError, SiteNotFoundError, VersionConflictError

from .base import ScanKey, ScanPage


class InMemorySiteStore:
    """
    Thread-safe in-memory implementation of SiteStore.

    Items are copied on the way in and out so callers cannot mutate stored
    state behind the store's back.
    """

    def __init__(self, items: list[dict[str, Any]] | None = None):
        """
        Initialize store.

        Args:
            items: Optional items to preload (written unconditionally)
        """
        self._items: dict[ScanKey, dict[str, Any]] = {}
        self._lock = threading.Lock()

        for item in items or []:
            self._items[(item["PK"], item.get("SK", "METADATA"))] = copy.deepcopy(item)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def scan_page(
        self, attribute: str, start_key: ScanKey | None = None, limit: int = 100
    ) -> ScanPage:
        with self._lock:
            keys = sorted(self._items)
            if start_key is not None:
                keys = [k for k in keys if k > start_key]

            page_keys = keys[:limit]
            values = [self._items[k].get(attribute) for k in page_keys]

        last_key = page_keys[-1] if len(keys) > limit else None
        return ScanPage(values=values, last_key=last_key)

    def conditional_put(self, item: dict[str, Any]) -> None:
        pk = item["PK"]
        with self._lock:
            if any(key[0] == pk for key in self._items):
                raise DuplicateKeyError(pk)
            self._items[(pk, item["SK"])] = copy.deepcopy(item)

    def query_by_company(self, company_id: str) -> list[dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(self._items[k])
                for k in sorted(self._items)
                if str(self._items[k].get("companyId")) == company_id
            ]

    def get_item(self, pk: str, sk: str) -> dict[str, Any] | None:
        with self._lock:
            item = self._items.get((pk, sk))
            return copy.deepcopy(item) if item is not None else None

    def conditional_replace(self, item: dict[str, Any], expected_version: int) -> None:
        key = (item["PK"], item["SK"])
        with self._lock:
            existing = self._items.get(key)
            if existing is None:
                raise SiteNotFoundError(item["PK"])
            if existing.get("version") != expected_version:
                raise VersionConflictError(item["PK"], expected_version, existing.get("version"))
            self._items[key] = copy.deepcopy(item)

    def delete_item(self, pk: str, sk: str) -> dict[str, Any] | None:
        with self._lock:
            return self._items.pop((pk, sk), None)
