"""
SiteCreationResult model returned to the route layer after a site is created.
"""

from typing import Any

from pydantic import BaseModel


class SiteCreationResult(BaseModel):
    """
    Outcome of a successful site creation.

    Attributes:
        success: Always True; failures are raised as SiteLedgerError
        data: The full store item that was written
        message: Human-readable confirmation naming the category
    """

    success: bool = True
    data: dict[str, Any]
    message: str

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "data": {
                    "companyId": "ACME",
                    "productionSiteId": "8",
                    "PK": "ACME_P0008",
                    "SK": "METADATA",
                    "name": "Kayathar Wind Farm",
                    "createdAt": "2025-11-17T10:00:00.000Z",
                    "updatedAt": "2025-11-17T10:00:00.000Z",
                    "version": 1
                },
                "message": "Production site created successfully"
            }
        }
