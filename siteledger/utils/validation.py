"""
Input validation utilities for site ledger operations.

Provides reusable checks for company IDs, site categories, numeric site IDs
and SQL identifiers used to name the site table.
"""

import re
from typing import Any

from siteledger.core.errors import InvalidSiteCategoryError, MissingCompanyIdError

SITE_CATEGORIES = ("production", "consumption")


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


def validate_company_id(company_id: Any) -> str:
    """
    Validate a company ID and return it as a string.

    Company IDs are often numeric in upstream data, so integers are accepted
    and rendered in decimal.

    Args:
        company_id: The company ID from the caller's site data

    Returns:
        The company ID as a string

    Raises:
        MissingCompanyIdError: If the company ID is absent, None or blank

    Examples:
        >>> validate_company_id("ACME")
        'ACME'
        >>> validate_company_id(42)
        '42'
    """
    if company_id is None or isinstance(company_id, bool):
        raise MissingCompanyIdError()

    company_id = str(company_id)
    if not company_id.strip():
        raise MissingCompanyIdError()

    return company_id


def validate_category(category: Any) -> str:
    """
    Validate a site category.

    Args:
        category: "production" or "consumption"

    Returns:
        The validated category

    Raises:
        InvalidSiteCategoryError: If the category is not recognised
    """
    if category not in SITE_CATEGORIES:
        raise InvalidSiteCategoryError(category)
    return category


def validate_numeric_id(numeric_id: Any, field_name: str = "numeric_id") -> int:
    """
    Validate a numeric site ID supplied by a caller.

    Args:
        numeric_id: Positive integer (or a string of digits)
        field_name: Name of the field (for error messages)

    Returns:
        The numeric ID as an int

    Raises:
        ValidationError: If the value is not a positive integer
    """
    if isinstance(numeric_id, bool):
        raise ValidationError(f"{field_name} must be an integer, got bool")

    if isinstance(numeric_id, str) and numeric_id.strip().isdigit():
        numeric_id = int(numeric_id.strip())

    if not isinstance(numeric_id, int):
        raise ValidationError(
            f"{field_name} must be an integer, got {type(numeric_id).__name__}"
        )

    if numeric_id <= 0:
        raise ValidationError(f"{field_name} must be a positive integer, got {numeric_id}")

    return numeric_id


def validate_limit(limit: int, field_name: str = "limit", max_limit: int = 10000) -> int:
    """
    Validate a positive bounded integer such as the scan page size.

    Raises:
        ValidationError: If not an int, not positive or above ``max_limit``
    """
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError(f"{field_name} must be an integer, got {type(limit).__name__}")
    if limit <= 0:
        raise ValidationError(f"{field_name} must be a positive integer, got {limit}")
    if limit > max_limit:
        raise ValidationError(f"{field_name} exceeds maximum of {max_limit}")
    return limit


_SQL_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_MAX_IDENTIFIER_LENGTH = 63  # PostgreSQL NAMEDATALEN - 1
_RESERVED_TABLE_NAMES = frozenset({
    "select", "insert", "update", "delete", "drop", "create", "alter",
    "table", "database", "index", "view", "user", "grant", "revoke",
})


def sanitize_sql_identifier(identifier: str, field_name: str = "identifier") -> str:
    """
    Check that a configurable table name is a plain, unquoted SQL identifier.

    Statements also compose the name with psycopg.sql.Identifier; this
    rejects bad configuration at load time instead of at the first query.

    Examples:
        >>> sanitize_sql_identifier(" site_record ")
        'site_record'
    """
    if not isinstance(identifier, str) or not identifier.strip():
        raise ValidationError(f"{field_name} must be a non-empty string")

    identifier = identifier.strip()

    if not _SQL_IDENTIFIER.match(identifier):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "SQL identifiers must start with a letter or underscore and contain only "
            "alphanumeric characters and underscores."
        )
    if len(identifier) > _MAX_IDENTIFIER_LENGTH:
        raise ValidationError(
            f"{field_name} exceeds PostgreSQL maximum length of {_MAX_IDENTIFIER_LENGTH} characters"
        )
    if identifier.lower() in _RESERVED_TABLE_NAMES:
        raise ValidationError(f"{field_name} '{identifier}' is a reserved SQL keyword")

    return identifier
