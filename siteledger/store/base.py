"""
Record store port for site items.

Defines the interface (Protocol) that every store backend implements.
Stores hold flat site items keyed by (PK, SK) and raise SiteLedgerError
subclasses; they never leak driver exceptions to callers.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

# Resume position for a scan: the (PK, SK) of the last item returned
ScanKey = tuple[str, str]


@dataclass(frozen=True)
class ScanPage:
    """
    One bounded chunk of a full-store scan.

    Attributes:
        values: Raw value of the scanned attribute for each item in the page,
            None where the item lacks the attribute
        last_key: Key to resume from, or None when the scan is complete
    """

    values: list[Any] = field(default_factory=list)
    last_key: ScanKey | None = None


class SiteStore(Protocol):
    """Port for reading and writing site items."""

    def scan_page(
        self, attribute: str, start_key: ScanKey | None = None, limit: int = 100
    ) -> ScanPage:
        """
        Read one page of ``attribute`` values across every item in the store.

        Raises:
            StoreReadFailure: If the underlying read fails
        """
        ...

    def conditional_put(self, item: dict[str, Any]) -> None:
        """
        Insert ``item`` only if no item with the same PK exists.

        Raises:
            DuplicateKeyError: If the PK is already present
            StoreWriteFailure: If the underlying write fails
        """
        ...

    def query_by_company(self, company_id: str) -> list[dict[str, Any]]:
        """Return every item owned by ``company_id``, ordered by key."""
        ...

    def get_item(self, pk: str, sk: str) -> dict[str, Any] | None:
        ...

    def conditional_replace(self, item: dict[str, Any], expected_version: int) -> None:
        """
        Overwrite an existing item only if its stored version matches.

        Raises:
            SiteNotFoundError: If no item has the item's key
            VersionConflictError: If the stored version differs
            StoreWriteFailure: If the underlying write fails
        """
        ...

    def delete_item(self, pk: str, sk: str) -> dict[str, Any] | None:
        """Delete an item and return it, or None if it did not exist."""
        ...
