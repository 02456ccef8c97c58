"""Evidence item schema.

Evidence items are uploaded artifacts (documents, photos, recordings) offered
as proof of compliance. They are created by the upload workflow before the
linking engine runs and are read-only from the engine's perspective.

The kind is derived from the file name extension when not supplied. It is
used for classification and filtering only; file contents are never read.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from compliance_linker.config.standards import KIND_EXTENSIONS


class EvidenceKind(str, Enum):
    """File-name-derived classification of an evidence item."""

    DOCUMENT = "document"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    OTHER = "other"


def classify_kind(file_name: str) -> EvidenceKind:
    """Classify an evidence file by its extension.

    Args:
        file_name: File name, e.g. "fire-drill-2024.mp4".

    Returns:
        EvidenceKind for the extension, OTHER when unknown or missing.
    """
    if "." not in file_name:
        return EvidenceKind.OTHER
    extension = file_name.rsplit(".", 1)[-1].lower()
    for kind, extensions in KIND_EXTENSIONS.items():
        if extension in extensions:
            return EvidenceKind(kind)
    return EvidenceKind.OTHER


def as_utc(moment: datetime) -> datetime:
    """Timezone-aware copy of a timestamp; naive timestamps are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class EvidenceItem(BaseModel):
    """An uploaded evidence artifact.

    Auto-link uses the declared ``standard`` and ``requirement_code``: when
    both are present and the item is unlinked, it is linked to every
    requirement with the same (standard, code).

    Attributes:
        evidence_id: Unique identifier.
        name: Display name (usually the original file name).
        kind: Classification derived from the file extension.
        standard: Optional declared standard identifier (e.g. "iso_9001").
        requirement_code: Optional declared requirement code within the standard.
        description: Optional free-form description.
        tags: Free-form tags.
        uploaded_at: Upload timestamp.
        size_bytes: File size in bytes.
        factory_id: Owning factory (owner scope).
    """

    evidence_id: str = Field(..., min_length=1, description="Unique evidence identifier")
    name: str = Field(..., min_length=1, description="Display name / file name")
    kind: Optional[EvidenceKind] = Field(
        None, description="Derived from file extension when not supplied"
    )
    standard: Optional[str] = Field(None, description="Declared standard identifier")
    requirement_code: Optional[str] = Field(
        None, description="Declared requirement code used by auto-link"
    )
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    size_bytes: int = Field(0, ge=0)
    factory_id: str = Field(..., min_length=1, description="Owning factory identifier")

    @field_validator("uploaded_at")
    @classmethod
    def upload_time_aware(cls, v: datetime) -> datetime:
        """Catalogs mix "Z"-suffixed and bare timestamps; bare ones are UTC."""
        return as_utc(v)

    @model_validator(mode="after")
    def derive_kind(self) -> "EvidenceItem":
        """Derive kind from the file name if not provided."""
        if self.kind is None:
            self.kind = classify_kind(self.name)
        return self

    @property
    def declares_requirement(self) -> bool:
        """True when both a standard and a requirement code are declared."""
        return bool(self.standard) and bool(self.requirement_code)

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [
                {
                    "evidence_id": "ev-001",
                    "name": "quality-policy-2024.pdf",
                    "standard": "iso_9001",
                    "requirement_code": "5.2",
                    "tags": ["policy", "signed"],
                    "uploaded_at": "2024-03-15T14:30:00Z",
                    "size_bytes": 248000,
                    "factory_id": "factory-7",
                }
            ]
        },
    }
