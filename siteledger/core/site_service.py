"""
Site creation and lifecycle operations.

SiteService allocates a numeric id, assembles the site record and writes it
with a conditional insert. It performs no retries: a DuplicateKeyError means
another creation won the race for the same id, and the caller decides
whether to run create_site again (which scans afresh and picks a new id).
"""

from datetime import datetime, timezone
from typing import Any, Callable

from siteledger.core.errors import (
    DuplicateKeyError,
    SiteNotFoundError,
    StoreError,
    StoreReadFailure,
    StoreWriteFailure,
    VersionConflictError,
)
from siteledger.core.id_generator import IdGenerator
from siteledger.core.models import (
    COMPUTED_FIELDS,
    METADATA_SORT_KEY,
    SiteCreationResult,
    SiteRecord,
    build_primary_key,
    key_prefix,
)
from siteledger.observability.logger import get_logger, log_operation
from siteledger.observability.metrics import (
    increment_counter,
    record_site_created,
    record_store_error,
    site_id_collisions_total,
)
from siteledger.store.base import SiteStore
from siteledger.utils.validation import (
    validate_category,
    validate_company_id,
    validate_numeric_id,
)

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SiteService:
    """
    Creates, lists and maintains site records in a SiteStore.

    Usage:
        service = SiteService(store)
        result = service.create_site({"companyId": "ACME", "name": "Kayathar"}, "production")
        result.data["PK"]  # "ACME_P0001"
    """

    def __init__(
        self,
        store: SiteStore,
        id_generator: IdGenerator | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize site service.

        Args:
            store: Record store holding site items
            id_generator: Id allocator (defaults to one scanning ``store``)
            clock: Returns the current UTC time; injectable for tests
        """
        self.store = store
        self.id_generator = id_generator or IdGenerator(store)
        self.clock = clock

    def create_site(self, site_data: dict[str, Any], category: str) -> SiteCreationResult:
        """
        Create a new site with the next available id for its category.

        Args:
            site_data: Caller attributes; must include companyId
            category: "production" or "consumption"

        Returns:
            SiteCreationResult with the stored item and a confirmation message

        Raises:
            MissingCompanyIdError: If companyId is absent (nothing is read or written)
            InvalidSiteCategoryError: If the category is unknown
            AllocationScanFailure: If the id scan fails
            DuplicateKeyError: If a concurrent creation took the same id
            StoreWriteFailure: If the insert fails for any other reason
        """
        company_id = validate_company_id(site_data.get("companyId"))
        validate_category(category)

        with log_operation(
            f"Create {category} site", logger=logger, company_id=company_id, category=category
        ):
            numeric_id = self.id_generator.next_site_id(category)

            record = SiteRecord.new(
                company_id=company_id,
                category=category,
                numeric_id=numeric_id,
                attributes=site_data,
                now=self.clock(),
            )
            item = record.to_item()

            try:
                self.store.conditional_put(item)
            except DuplicateKeyError:
                increment_counter(site_id_collisions_total, category=category)
                logger.warning(
                    f"Site key {record.primary_key} already exists",
                    extra={"primary_key": record.primary_key, "category": category},
                )
                raise
            except StoreWriteFailure:
                raise
            except StoreError as e:
                raise StoreWriteFailure(
                    f"Error creating {category} site: {e.message}", e.cause or e
                ) from e
            except Exception as e:
                record_store_error("put", e)
                raise StoreWriteFailure(f"Error creating {category} site: {e}", e) from e

        record_site_created(category, numeric_id)

        return SiteCreationResult(
            success=True,
            data=item,
            message=f"{category.capitalize()} site created successfully",
        )

    def get_sites(self, company_id: Any, category: str | None = None) -> list[dict[str, Any]]:
        """
        List a company's sites, optionally restricted to one category.

        Args:
            company_id: Owning company
            category: "production", "consumption" or None for both

        Returns:
            Store items whose PK starts with {company_id}_{P|C}

        Raises:
            StoreReadFailure: If the store query fails
        """
        company_id = validate_company_id(company_id)
        if category is not None:
            validate_category(category)

        items = self._read(
            lambda: self.store.query_by_company(company_id),
            f"Error getting {category or 'all'} sites for company {company_id}",
        )

        if category is None:
            return items

        prefix = key_prefix(company_id, category)
        return [item for item in items if str(item.get("PK", "")).startswith(prefix)]

    def get_site(self, company_id: Any, category: str, numeric_id: int) -> dict[str, Any]:
        """
        Fetch one site's root record.

        Raises:
            SiteNotFoundError: If no such site exists
        """
        pk = self._primary_key(company_id, category, numeric_id)

        item = self._read(
            lambda: self.store.get_item(pk, METADATA_SORT_KEY),
            f"Error getting site {pk}",
        )
        if item is None:
            raise SiteNotFoundError(pk)
        return item

    def update_site(
        self,
        company_id: Any,
        category: str,
        numeric_id: int,
        updates: dict[str, Any],
        version: int,
    ) -> dict[str, Any]:
        """
        Apply attribute updates to a site using its version as a concurrency token.

        Key fields (PK, SK, companyId, the id attribute, createdAt, version)
        are ignored in ``updates``. The stored version increments by one.

        Args:
            company_id: Owning company
            category: "production" or "consumption"
            numeric_id: Site number
            updates: Attributes to change
            version: The version the caller last read

        Returns:
            The updated store item

        Raises:
            SiteNotFoundError: If no such site exists
            VersionConflictError: If ``version`` is stale
            StoreWriteFailure: If the write fails
        """
        existing = self.get_site(company_id, category, numeric_id)
        pk = existing["PK"]

        if existing.get("version") != version:
            raise VersionConflictError(pk, version, existing.get("version"))

        record = SiteRecord.from_item(existing)
        updated = record.model_copy(update={
            "attributes": {
                **record.attributes,
                **{k: v for k, v in updates.items() if k not in COMPUTED_FIELDS},
            },
            "version": record.version + 1,
            "updated_at": self.clock(),
        })
        item = updated.to_item()

        with log_operation(f"Update {category} site", logger=logger, primary_key=pk, version=version):
            try:
                self.store.conditional_replace(item, expected_version=version)
            except (SiteNotFoundError, VersionConflictError, StoreWriteFailure):
                raise
            except StoreError as e:
                raise StoreWriteFailure(f"Error updating site {pk}: {e.message}", e.cause or e) from e

        return item

    def delete_site(self, company_id: Any, category: str, numeric_id: int) -> dict[str, Any]:
        """
        Delete a site's root record.

        Returns:
            The removed item

        Raises:
            SiteNotFoundError: If no such site exists
        """
        pk = self._primary_key(company_id, category, numeric_id)

        with log_operation(f"Delete {category} site", logger=logger, primary_key=pk):
            try:
                removed = self.store.delete_item(pk, METADATA_SORT_KEY)
            except StoreWriteFailure:
                raise
            except StoreError as e:
                raise StoreWriteFailure(f"Error deleting site {pk}: {e.message}", e.cause or e) from e

            if removed is None:
                raise SiteNotFoundError(pk)

        return removed

    def _primary_key(self, company_id: Any, category: str, numeric_id: int) -> str:
        return build_primary_key(
            validate_company_id(company_id),
            validate_category(category),
            validate_numeric_id(numeric_id),
        )

    def _read(self, fetch: Callable[[], Any], message: str):
        try:
            return fetch()
        except StoreReadFailure:
            raise
        except StoreError as e:
            raise StoreReadFailure(f"{message}: {e.message}", e.cause or e) from e
        except Exception as e:
            record_store_error("query", e)
            raise StoreReadFailure(f"{message}: {e}", e) from e
