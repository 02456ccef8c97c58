"""Evidence-requirement link schemas.

A Link asserts that one evidence item supports one requirement. Links are
weak reference pairs: they own neither endpoint and are cascade-deleted when
either endpoint is removed.

Identical (evidence_id, requirement_id) pairs are NOT deduplicated. Callers
avoid redundant links; derived status counts links, not distinct pairs.

Links are append-mostly. The only field-level mutation is verification
(verified, verified_at, verified_by), which is monotonic.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from compliance_linker.data_management.schemas.evidence_schema import EvidenceItem, as_utc
from compliance_linker.data_management.schemas.requirement_schema import Requirement


class LinkType(str, Enum):
    """How directly the evidence demonstrates the requirement."""

    DIRECT = "direct"
    INDIRECT = "indirect"
    SUPPORTING = "supporting"
    REFERENCE = "reference"


class LinkPriority(str, Enum):
    """Review priority of a link."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DerivedLinkStatus(str, Enum):
    """Per-evidence status computed from the number of links.

    UNLINKED: no links.
    LINKED: 1-2 links.
    VERIFIED: 3 or more links. This is a count threshold and is unrelated to
        the Link.verified flag set by the verification workflow.
    """

    UNLINKED = "unlinked"
    LINKED = "linked"
    VERIFIED = "verified"


class LinkAttributes(BaseModel):
    """Attributes shared by every link created in one linking call."""

    link_type: LinkType = LinkType.DIRECT
    strength: int = Field(3, ge=1, le=5, description="Link strength 1 (weak) - 5 (strong)")
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    priority: LinkPriority = LinkPriority.MEDIUM

    @classmethod
    def parse_tags(cls, raw: str) -> list[str]:
        """Split a comma-separated tag string, dropping blanks."""
        return [tag.strip() for tag in raw.split(",") if tag.strip()]


class Link(BaseModel):
    """Stored evidence-requirement link.

    Evidence name and requirement code/title are copied at creation time so
    exported reports stay readable after catalog edits.
    """

    link_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    evidence_id: str = Field(..., min_length=1)
    requirement_id: str = Field(..., min_length=1)

    link_type: LinkType = LinkType.DIRECT
    strength: int = Field(3, ge=1, le=5)
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    priority: LinkPriority = LinkPriority.MEDIUM

    verified: bool = False
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    created_by: str = ""
    created_by_name: str = ""
    factory_id: str = ""

    # Denormalised for export
    evidence_name: str = ""
    requirement_code: str = ""
    requirement_title: str = ""

    @field_validator("created_at", "verified_at")
    @classmethod
    def timestamps_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Bare timestamps from persisted or imported links are UTC."""
        return as_utc(v) if v is not None else v

    @classmethod
    def create(
        cls,
        evidence: EvidenceItem,
        requirement: Requirement,
        attributes: LinkAttributes,
        created_by: str,
        created_by_name: str = "",
    ) -> "Link":
        """Build a new unverified link between two catalog records.

        Args:
            evidence: Linked evidence item.
            requirement: Linked requirement.
            attributes: Shared link attributes.
            created_by: Acting user id.
            created_by_name: Acting user display name.

        Returns:
            New Link with a fresh link_id.
        """
        return cls(
            evidence_id=evidence.evidence_id,
            requirement_id=requirement.requirement_id,
            link_type=attributes.link_type,
            strength=attributes.strength,
            description=attributes.description,
            tags=list(attributes.tags),
            priority=attributes.priority,
            created_by=created_by,
            created_by_name=created_by_name or created_by,
            factory_id=evidence.factory_id,
            evidence_name=evidence.name,
            requirement_code=requirement.code,
            requirement_title=requirement.title,
        )

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [
                {
                    "link_id": "uuid-here",
                    "evidence_id": "ev-001",
                    "requirement_id": "req-001",
                    "link_type": "direct",
                    "strength": 4,
                    "tags": ["auto-linked"],
                    "priority": "medium",
                    "verified": False,
                    "created_by": "auditor-3",
                }
            ]
        },
    }


class LinkDraft(BaseModel):
    """Saved-but-not-applied linking intent.

    Drafts never count towards status or coverage.
    """

    draft_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    evidence_id: str = Field(..., min_length=1)
    evidence_name: str = ""
    requirement_ids: list[str] = Field(default_factory=list)
    attributes: LinkAttributes = Field(default_factory=LinkAttributes)
    created_by: str = ""
    created_by_name: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    factory_id: str = ""
    status: str = "draft"
