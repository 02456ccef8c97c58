"""Requirement schema.

Requirements are auditable clauses grouped first by standard, then by
category. They are reference data: loaded once per session and never
re-parented (a requirement keeps its standard and category for the whole
session).
"""

from pydantic import BaseModel, Field


class Requirement(BaseModel):
    """One auditable clause within a compliance standard.

    Attributes:
        requirement_id: Unique identifier.
        standard: Standard identifier (e.g. "iso_9001").
        category: Grouping within the standard (policy, procedure, record, ...).
        code: Short clause code, unique-ish within a standard (e.g. "7.5.3").
        title: Clause title.
        factory_id: Owning factory (owner scope).
    """

    requirement_id: str = Field(..., min_length=1)
    standard: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    title: str = ""
    factory_id: str = Field(..., min_length=1)

    model_config = {
        "extra": "forbid",
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "requirement_id": "req-001",
                    "standard": "iso_9001",
                    "category": "policy",
                    "code": "5.2",
                    "title": "Quality policy",
                    "factory_id": "factory-7",
                }
            ]
        },
    }
