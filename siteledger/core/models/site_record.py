"""
SiteRecord model representing the root record of a production or consumption site.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from siteledger.utils.validation import validate_category

SiteCategory = Literal["production", "consumption"]

METADATA_SORT_KEY = "METADATA"

# Category-specific attribute holding the numeric site id in the store item
ID_FIELDS = {
    "production": "productionSiteId",
    "consumption": "consumptionSiteId",
}

KEY_PREFIXES = {
    "production": "P",
    "consumption": "C",
}

# Item attributes derived by the ledger; these always override caller data
COMPUTED_FIELDS = frozenset({
    "PK",
    "SK",
    "companyId",
    "createdAt",
    "updatedAt",
    "version",
    *ID_FIELDS.values(),
})


def id_field_for(category: str) -> str:
    """Return the store attribute holding the numeric id for a category."""
    return ID_FIELDS[validate_category(category)]


def key_prefix(company_id: str, category: str) -> str:
    """
    Return the primary key prefix shared by a company's sites of one category.

    Examples:
        >>> key_prefix("ACME", "production")
        'ACME_P'
    """
    return f"{company_id}_{KEY_PREFIXES[validate_category(category)]}"


def build_primary_key(company_id: str, category: str, numeric_id: int) -> str:
    """
    Build the composite primary key for a site.

    Examples:
        >>> build_primary_key("ACME", "production", 8)
        'ACME_P0008'
        >>> build_primary_key("X1", "consumption", 12345)
        'X1_C12345'
    """
    return f"{key_prefix(company_id, category)}{numeric_id:04d}"


def format_timestamp(ts: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with milliseconds and a Z suffix."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class SiteRecord(BaseModel):
    """
    Root (METADATA) record of a site.

    The store holds sites as flat items: caller attributes plus the computed
    fields in COMPUTED_FIELDS. This model separates the two so the computed
    part is validated while caller attributes pass through unmodified.

    Attributes:
        primary_key: {company_id}_{P|C}{numeric_id:04d}
        sort_key: Always METADATA for the root record
        company_id: Owning tenant
        category: "production" or "consumption"
        numeric_id: Allocated site number, unique within the category
        version: Optimistic concurrency token, 1 at creation
        created_at: When the site was created
        updated_at: Last modification
        attributes: Caller-supplied site attributes (name, capacity, ...)
    """

    primary_key: str = Field(..., min_length=1)
    sort_key: str = METADATA_SORT_KEY
    company_id: str = Field(..., min_length=1)
    category: SiteCategory
    numeric_id: int = Field(..., gt=0)
    version: int = Field(1, ge=1)
    created_at: datetime
    updated_at: datetime
    attributes: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_primary_key(self):
        """Validate that the primary key matches company, category and id."""
        expected = build_primary_key(self.company_id, self.category, self.numeric_id)
        if self.primary_key != expected:
            raise ValueError(
                f"primary_key {self.primary_key!r} does not match expected {expected!r}"
            )
        return self

    @classmethod
    def new(
        cls,
        company_id: str,
        category: str,
        numeric_id: int,
        attributes: dict[str, Any],
        now: datetime,
    ) -> "SiteRecord":
        """Assemble a brand new site record at version 1."""
        return cls(
            primary_key=build_primary_key(company_id, category, numeric_id),
            company_id=company_id,
            category=category,
            numeric_id=numeric_id,
            version=1,
            created_at=now,
            updated_at=now,
            attributes={k: v for k, v in attributes.items() if k not in COMPUTED_FIELDS},
        )

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "SiteRecord":
        """
        Rebuild a record from a flat store item.

        The category is recovered from the key letter following the company
        prefix, and the numeric id from the trailing digits of the key.
        """
        company_id = str(item["companyId"])
        pk = item["PK"]
        letter = pk[len(company_id) + 1:len(company_id) + 2]
        category = next(
            (cat for cat, prefix in KEY_PREFIXES.items() if prefix == letter),
            None,
        )
        if category is None:
            raise ValueError(f"Cannot determine category from key {pk!r}")

        return cls(
            primary_key=pk,
            sort_key=item.get("SK", METADATA_SORT_KEY),
            company_id=company_id,
            category=category,
            numeric_id=int(pk[len(company_id) + 2:]),
            version=int(item.get("version", 1)),
            created_at=parse_timestamp(item["createdAt"]),
            updated_at=parse_timestamp(item["updatedAt"]),
            attributes={k: v for k, v in item.items() if k not in COMPUTED_FIELDS},
        )

    @property
    def id_field(self) -> str:
        return ID_FIELDS[self.category]

    def to_item(self) -> dict[str, Any]:
        """Flatten into the store item; computed fields win over attributes."""
        return {
            **self.attributes,
            "companyId": self.company_id,
            self.id_field: str(self.numeric_id),
            "PK": self.primary_key,
            "SK": self.sort_key,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "version": self.version,
        }

    class Config:
        json_schema_extra = {
            "example": {
                "primary_key": "ACME_P0008",
                "sort_key": "METADATA",
                "company_id": "ACME",
                "category": "production",
                "numeric_id": 8,
                "version": 1,
                "attributes": {
                    "name": "Kayathar Wind Farm",
                    "location": "Tirunelveli",
                    "type": "Wind",
                    "capacity_MW": "1.5",
                    "annualProduction_L": "30"
                }
            }
        }
