"""Data management package for the linking engine.

Provides storage adapters and schemas for:
- Evidence (EvidenceItem) - read-only catalog of uploaded artifacts
- Requirements (Requirement) - read-only hierarchical reference data
- Links (Link) - the mutable many-to-many relation
- Drafts and generated coverage reports

Storage adapters:
- EvidenceStore: Owner-scoped evidence catalog
- RequirementStore: Owner-scoped requirement catalog with (standard, code) index
- LinkStore: Link persistence with evidence/requirement indexes
- DraftStore: Unapplied linking intents
- ReportStore: Point-in-time coverage reports

Repository protocols (repositories.py) describe what the linking engine
needs from each store; the stores above implement them.
"""

from compliance_linker.data_management.draft_store import DraftStore
from compliance_linker.data_management.evidence_store import EvidenceStore
from compliance_linker.data_management.link_store import LinkStore
from compliance_linker.data_management.report_store import ReportStore
from compliance_linker.data_management.repositories import (
    EvidenceRepository,
    IdentityProvider,
    LinkRepository,
    RequirementRepository,
    StaticIdentityProvider,
)
from compliance_linker.data_management.requirement_store import RequirementStore

__all__ = [
    "DraftStore",
    "EvidenceRepository",
    "EvidenceStore",
    "IdentityProvider",
    "LinkRepository",
    "LinkStore",
    "ReportStore",
    "RequirementRepository",
    "RequirementStore",
    "StaticIdentityProvider",
]
