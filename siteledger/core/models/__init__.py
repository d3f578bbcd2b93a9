"""
Core data models for the site ledger.

All models use Pydantic for runtime validation and type safety.
"""

from .creation_result import SiteCreationResult
from .site_record import (
    COMPUTED_FIELDS,
    ID_FIELDS,
    KEY_PREFIXES,
    METADATA_SORT_KEY,
    SiteCategory,
    SiteRecord,
    build_primary_key,
    format_timestamp,
    id_field_for,
    key_prefix,
)

__all__ = [
    "SiteRecord",
    "SiteCategory",
    "SiteCreationResult",
    "COMPUTED_FIELDS",
    "ID_FIELDS",
    "KEY_PREFIXES",
    "METADATA_SORT_KEY",
    "build_primary_key",
    "format_timestamp",
    "id_field_for",
    "key_prefix",
]
