"""
Error taxonomy for site allocation and persistence.

Every error carries an ``error_code`` and an HTTP-style ``status_code`` so the
route layer can shape a response without inspecting messages, plus a
``retryable`` flag telling the caller whether re-running the whole operation
may succeed. The originating exception (if any) is available as ``cause``.
"""


class SiteLedgerError(Exception):
    """Base class for all site ledger failures."""

    error_code = "SITE_LEDGER_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, cause: BaseException | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class MissingCompanyIdError(SiteLedgerError):
    """Site data did not include a companyId."""

    error_code = "MISSING_COMPANY_ID"
    status_code = 400

    def __init__(self, message: str = "Company ID is required"):
        super().__init__(message)


class InvalidSiteCategoryError(SiteLedgerError):
    """Category is not one of production/consumption."""

    error_code = "INVALID_CATEGORY"
    status_code = 400

    def __init__(self, category):
        self.category = category
        super().__init__(
            f"Invalid site category {category!r}. Must be 'production' or 'consumption'"
        )


class SiteNotFoundError(SiteLedgerError):
    error_code = "SITE_NOT_FOUND"
    status_code = 404

    def __init__(self, primary_key: str):
        self.primary_key = primary_key
        super().__init__(f"Site {primary_key} not found")


class DuplicateKeyError(SiteLedgerError):
    """
    Conditional insert rejected because the primary key already exists.

    Raised when two creations race to the same numeric id. Re-running the
    full allocate-and-insert sequence picks a fresh id.
    """

    error_code = "DUPLICATE_KEY"
    status_code = 409
    retryable = True

    def __init__(self, primary_key: str, cause: BaseException | None = None):
        self.primary_key = primary_key
        super().__init__(f"Site with key {primary_key} already exists", cause)


class VersionConflictError(SiteLedgerError):
    """Caller's version token does not match the stored record."""

    error_code = "VERSION_CONFLICT"
    status_code = 409

    def __init__(self, primary_key: str, expected: int, actual: int | None):
        self.primary_key = primary_key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Version mismatch for {primary_key}: expected {expected}, found {actual}"
        )


class StoreError(SiteLedgerError):
    """Base class for record store failures."""

    error_code = "STORE_ERROR"


class AllocationScanFailure(StoreError):
    """The id allocation scan could not read the store."""

    error_code = "ALLOCATION_SCAN_FAILURE"
    retryable = True


class StoreReadFailure(StoreError):
    error_code = "STORE_READ_FAILURE"
    retryable = True


class StoreWriteFailure(StoreError):
    """
    The store rejected or failed a write for a reason other than a key clash.

    Whether a retry can help depends on the cause; stores set ``retryable``
    for connection-level failures.
    """

    error_code = "STORE_WRITE_FAILURE"

    def __init__(self, message: str, cause: BaseException | None = None, retryable: bool = False):
        super().__init__(message, cause)
        self.retryable = retryable
