"""Coverage aggregation over the requirement catalog and the link store.

A requirement counts as linked when at least one link references it,
whether or not that link is verified. Coverage of a group is

    linked requirements in group / requirements in group * 100

returned as an unrounded float (0.0 for an empty group).

Category coverage pools categories across standards: "policy" under
iso_9001 and "policy" under sa_8000 form one group. This keeps existing
reports comparable. by_standard_category() gives the namespaced view.

Links whose requirement is not in the catalog are ignored.
"""

from collections import Counter
from typing import Callable, Iterable, Optional, Sequence

from compliance_linker.data_management.repositories import LinkRepository, RequirementRepository
from compliance_linker.data_management.schemas import (
    CoverageEntry,
    CoverageSummary,
    Link,
    Requirement,
)


def coverage_percent(linked: int, total: int) -> float:
    """linked / total * 100, or 0.0 when total is zero."""
    if total <= 0:
        return 0.0
    return linked / total * 100


class CoverageCalculator:
    """Pure coverage computation over a snapshot of requirements and links.

    Build one per read: the snapshot is taken at construction, so every
    figure it returns describes the same store state.
    """

    def __init__(self, requirements: Sequence[Requirement], links: Iterable[Link]) -> None:
        self.requirements = list(requirements)
        self._link_counts: Counter[str] = Counter(link.requirement_id for link in links)

    @classmethod
    async def from_stores(
        cls,
        requirement_store: RequirementRepository,
        link_store: LinkRepository,
        owner_scope: Optional[str] = None,
    ) -> "CoverageCalculator":
        """Snapshot the catalog and link store into a calculator."""
        requirements = await requirement_store.list_requirements(owner_scope)
        links = await link_store.snapshot()
        return cls(requirements, links)

    def is_linked(self, requirement_id: str) -> bool:
        return self._link_counts.get(requirement_id, 0) > 0

    def requirement_evidence_count(self, requirement_id: str) -> int:
        """Number of links referencing a requirement."""
        return self._link_counts.get(requirement_id, 0)

    def _entry(self, key: str, predicate: Callable[[Requirement], bool]) -> CoverageEntry:
        group = [req for req in self.requirements if predicate(req)]
        linked = sum(1 for req in group if self.is_linked(req.requirement_id))
        return CoverageEntry(
            key=key,
            total_requirements=len(group),
            linked_requirements=linked,
            coverage=coverage_percent(linked, len(group)),
        )

    def overall(self) -> float:
        return self._entry("overall", lambda req: True).coverage

    def for_standard(self, standard: str) -> CoverageEntry:
        return self._entry(standard, lambda req: req.standard == standard)

    def for_category(self, category: str) -> CoverageEntry:
        """Coverage of one category pooled across all standards."""
        return self._entry(category, lambda req: req.category == category)

    def by_standard(self) -> list[CoverageEntry]:
        standards = dict.fromkeys(req.standard for req in self.requirements)
        return [self.for_standard(standard) for standard in standards]

    def by_category(self) -> list[CoverageEntry]:
        categories = dict.fromkeys(req.category for req in self.requirements)
        return [self.for_category(category) for category in categories]

    def by_standard_category(self) -> list[CoverageEntry]:
        """Coverage per (standard, category); key is "standard/category"."""
        pairs = dict.fromkeys((req.standard, req.category) for req in self.requirements)
        return [
            self._entry(
                f"{standard}/{category}",
                lambda req, s=standard, c=category: req.standard == s and req.category == c,
            )
            for standard, category in pairs
        ]

    def summary(self) -> CoverageSummary:
        linked = sum(1 for req in self.requirements if self.is_linked(req.requirement_id))
        return CoverageSummary(
            overall=coverage_percent(linked, len(self.requirements)),
            total_requirements=len(self.requirements),
            linked_requirements=linked,
            by_standard=self.by_standard(),
            by_category=self.by_category(),
            by_standard_category=self.by_standard_category(),
        )
