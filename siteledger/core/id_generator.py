"""
Sequential site id allocation.

The next id for a category is derived from the store's current contents on
every call: scan every item's category id attribute, take the maximum and
add one. Nothing is cached in-process, so two concurrent allocations may
return the same id; the conditional insert in SiteService rejects the loser.
"""

import math
import re
from decimal import Decimal
from typing import Any

from siteledger.core.errors import AllocationScanFailure, StoreError
from siteledger.core.models import id_field_for
from siteledger.observability.logger import get_logger
from siteledger.observability.metrics import (
    id_allocation_duration_seconds,
    increment_counter,
    record_store_error,
    scan_pages_total,
    track_duration,
)
from siteledger.store.base import SiteStore
from siteledger.utils.validation import validate_category, validate_limit

logger = get_logger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_site_id(value: Any) -> int:
    """
    Parse a stored site id leniently.

    Strings are read up to the first non-digit, numbers are truncated, and
    anything else (None, booleans, non-numeric text) counts as 0.

    Examples:
        >>> parse_site_id("12")
        12
        >>> parse_site_id("7abc")
        7
        >>> parse_site_id(None)
        0
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else 0
    return 0


def next_id_from_values(values) -> int:
    """
    Return one more than the largest parsed id, never less than 1.

    Examples:
        >>> next_id_from_values(["3", "7", "2"])
        8
        >>> next_id_from_values([])
        1
    """
    return max([0, *(parse_site_id(v) for v in values)]) + 1


class IdGenerator:
    """
    Allocates the next numeric site id for a category.

    Usage:
        generator = IdGenerator(store)
        next_id = generator.next_site_id("production")
    """

    def __init__(self, store: SiteStore, page_size: int = 100):
        """
        Initialize id generator.

        Args:
            store: Record store to scan
            page_size: Items requested per scan page
        """
        self.store = store
        self.page_size = validate_limit(page_size, "page_size")

    def scan_site_ids(self, category: str) -> list[Any]:
        """
        Collect the raw id attribute of every item in the store.

        Pages are read until the store reports no further key; stopping
        after the first page would hand out ids that are already taken.

        Raises:
            AllocationScanFailure: If any page read fails
        """
        attribute = id_field_for(category)
        values: list[Any] = []
        start_key = None

        while True:
            try:
                page = self.store.scan_page(attribute, start_key=start_key, limit=self.page_size)
            except StoreError as e:
                raise AllocationScanFailure(
                    f"Failed to generate site ID: {e.message}", e.cause or e
                ) from e
            except Exception as e:
                record_store_error("scan", e)
                raise AllocationScanFailure(f"Failed to generate site ID: {e}", e) from e

            increment_counter(scan_pages_total, attribute=attribute)
            values.extend(page.values)

            if page.last_key is None:
                return values
            start_key = page.last_key

    def next_site_id(self, category: str) -> int:
        """
        Return the next unused numeric id for ``category``.

        Args:
            category: "production" or "consumption"

        Returns:
            max(existing ids) + 1, or 1 when there are none

        Raises:
            InvalidSiteCategoryError: If the category is unknown
            AllocationScanFailure: If the store scan fails
        """
        validate_category(category)

        with track_duration(id_allocation_duration_seconds, category=category):
            try:
                values = self.scan_site_ids(category)
            except AllocationScanFailure as e:
                logger.error(
                    f"Error getting next {category} site ID: {e}",
                    extra={"category": category},
                )
                raise

        next_id = next_id_from_values(values)
        logger.debug(
            f"Allocated {category} site ID {next_id}",
            extra={"category": category, "next_id": next_id, "scanned": len(values)},
        )
        return next_id
