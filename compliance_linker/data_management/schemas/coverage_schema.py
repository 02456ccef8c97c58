"""Coverage, statistics and report schemas.

Coverage is the percentage of requirements (overall, per standard, per
category) referenced by at least one link, verified or not. Values are
unrounded floats; rounding is a display concern.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from compliance_linker.data_management.schemas.evidence_schema import EvidenceItem
from compliance_linker.data_management.schemas.link_schema import Link
from compliance_linker.data_management.schemas.requirement_schema import Requirement


class CoverageEntry(BaseModel):
    """Coverage for one group of requirements.

    Attributes:
        key: Group key: a standard, a category, or "standard/category".
        total_requirements: Requirements in the group.
        linked_requirements: Requirements in the group with at least one link.
        coverage: linked / total * 100 (0.0 for an empty group).
    """

    key: str
    total_requirements: int = Field(0, ge=0)
    linked_requirements: int = Field(0, ge=0)
    coverage: float = Field(0.0, ge=0.0, le=100.0)


class CoverageSummary(BaseModel):
    """All coverage figures at one point in time."""

    overall: float = 0.0
    total_requirements: int = 0
    linked_requirements: int = 0
    by_standard: list[CoverageEntry] = Field(default_factory=list)
    by_category: list[CoverageEntry] = Field(default_factory=list)
    by_standard_category: list[CoverageEntry] = Field(default_factory=list)


class LinkingStats(BaseModel):
    """Headline numbers refreshed after every mutation.

    coverage_rate is the only rounded figure (integer percent for display).
    """

    total_evidence: int = 0
    unlinked_evidence: int = 0
    total_links: int = 0
    linked_today: int = 0
    unverified_links: int = 0
    coverage_rate: int = 0


class RequirementNode(BaseModel):
    """Requirement leaf of the requirements tree."""

    requirement: Requirement
    evidence_count: int = 0


class CategoryNode(BaseModel):
    """Category level of the requirements tree."""

    category: str
    requirements: list[RequirementNode] = Field(default_factory=list)


class StandardNode(BaseModel):
    """Standard level of the requirements tree."""

    standard: str
    display_name: str
    requirement_count: int = 0
    categories: list[CategoryNode] = Field(default_factory=list)


class LinkingReport(BaseModel):
    """Serializable snapshot of the linking workspace.

    Flattened to CSV by reporting.export; persisted as a coverage report by
    ReportStore.
    """

    report_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    factory_id: str = ""
    evidence: list[EvidenceItem] = Field(default_factory=list)
    requirements: list[Requirement] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)
    coverage: CoverageSummary = Field(default_factory=CoverageSummary)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    generated_by: Optional[str] = None

    @property
    def total_evidence(self) -> int:
        return len(self.evidence)

    @property
    def total_requirements(self) -> int:
        return len(self.requirements)

    @property
    def total_links(self) -> int:
        return len(self.links)
