"""Schema package for evidence, requirements, links and coverage.

All records are Pydantic models. Records that cross the catalog-loading
boundary (EvidenceItem, Requirement, Link) forbid unknown fields, so
ad-hoc document shapes are rejected instead of trusted.

Primary exports:
- EvidenceItem / Requirement: read-only catalog records
- Link: the many-to-many evidence-requirement relation
- DerivedLinkStatus: count-based per-evidence status
- BatchResult: summary returned by batch operations
- CoverageSummary / LinkingReport: aggregation outputs

Usage:
    from compliance_linker.data_management.schemas import Link, LinkAttributes
    link = Link.create(evidence, requirement, LinkAttributes(strength=4), "auditor-1")
"""

from compliance_linker.data_management.schemas.evidence_schema import (
    EvidenceItem,
    EvidenceKind,
    as_utc,
    classify_kind,
)
from compliance_linker.data_management.schemas.requirement_schema import (
    Requirement,
)
from compliance_linker.data_management.schemas.link_schema import (
    DerivedLinkStatus,
    Link,
    LinkAttributes,
    LinkDraft,
    LinkPriority,
    LinkType,
)
from compliance_linker.data_management.schemas.result_schema import (
    BatchResult,
    FailedItem,
)
from compliance_linker.data_management.schemas.coverage_schema import (
    CategoryNode,
    CoverageEntry,
    CoverageSummary,
    LinkingReport,
    LinkingStats,
    RequirementNode,
    StandardNode,
)

__all__ = [
    # Evidence
    "EvidenceItem",
    "EvidenceKind",
    "as_utc",
    "classify_kind",
    # Requirement
    "Requirement",
    # Link
    "DerivedLinkStatus",
    "Link",
    "LinkAttributes",
    "LinkDraft",
    "LinkPriority",
    "LinkType",
    # Results
    "BatchResult",
    "FailedItem",
    # Coverage / reports
    "CategoryNode",
    "CoverageEntry",
    "CoverageSummary",
    "LinkingReport",
    "LinkingStats",
    "RequirementNode",
    "StandardNode",
]
