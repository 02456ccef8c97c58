"""Derived link status and read-only query helpers.

Status is a pure function of the number of links an evidence item has:

    0 links   -> unlinked
    1-2 links -> linked
    3+ links  -> verified

"verified" here is a count threshold. It is independent of the
Link.verified flag set by the verification workflow; verifying a link never
changes its evidence item's derived status.

Status is recomputed from the link store on every read and never written
back.

Usage:
    resolver = StatusResolver(evidence_store, requirement_store, link_store)
    status = await resolver.status("ev-001")
    tree = await resolver.requirements_tree("factory-7")
"""

from datetime import datetime
from typing import Optional

from compliance_linker.config.standards import (
    LINKED_MIN_COUNT,
    VERIFIED_MIN_COUNT,
    standard_display_name,
)
from compliance_linker.data_management.repositories import (
    EvidenceRepository,
    LinkRepository,
    RequirementRepository,
)
from compliance_linker.data_management.schemas import (
    CategoryNode,
    DerivedLinkStatus,
    EvidenceItem,
    EvidenceKind,
    Requirement,
    RequirementNode,
    StandardNode,
    as_utc,
)
from compliance_linker.utils.logging import get_structured_logger


def derive_status(link_count: int) -> DerivedLinkStatus:
    """Map a link count to its derived status.

    Args:
        link_count: Number of links (not distinct requirements) for one evidence item.

    Returns:
        DerivedLinkStatus for that count.
    """
    if link_count >= VERIFIED_MIN_COUNT:
        return DerivedLinkStatus.VERIFIED
    if link_count >= LINKED_MIN_COUNT:
        return DerivedLinkStatus.LINKED
    return DerivedLinkStatus.UNLINKED


class StatusResolver:
    """Per-evidence status derivation plus catalog query helpers.

    Reads the link store and catalogs; never writes.
    """

    def __init__(
        self,
        evidence_store: EvidenceRepository,
        requirement_store: RequirementRepository,
        link_store: LinkRepository,
    ) -> None:
        self.evidence_store = evidence_store
        self.requirement_store = requirement_store
        self.link_store = link_store
        self._logger = get_structured_logger("linking.status", component="StatusResolver")

    async def link_count(self, evidence_id: str) -> int:
        return await self.link_store.count_for_evidence(evidence_id)

    async def status(self, evidence_id: str) -> DerivedLinkStatus:
        """Derived status of one evidence item from its current link count."""
        return derive_status(await self.link_store.count_for_evidence(evidence_id))

    async def statuses(self, owner_scope: Optional[str] = None) -> dict[str, DerivedLinkStatus]:
        """evidence_id -> status for every evidence item in scope.

        Link counts are read in one pass so all statuses reflect the same
        store state.
        """
        counts = await self.link_store.evidence_link_counts()
        evidence = await self.evidence_store.list_evidence(owner_scope)
        return {
            item.evidence_id: derive_status(counts.get(item.evidence_id, 0))
            for item in evidence
        }

    async def unlinked_evidence(self, owner_scope: Optional[str] = None) -> list[EvidenceItem]:
        """Evidence items with no links, newest upload first."""
        return await self.filter_evidence(owner_scope, status=DerivedLinkStatus.UNLINKED)

    async def first_unlinked(self, owner_scope: Optional[str] = None) -> Optional[EvidenceItem]:
        """Next evidence item to work on when starting a linking pass."""
        unlinked = await self.unlinked_evidence(owner_scope)
        return unlinked[0] if unlinked else None

    async def current_requirement_codes(self, evidence_id: str) -> list[str]:
        """Codes of requirements an evidence item is currently linked to.

        Each requirement appears once even when linked several times.
        Requirements no longer in the catalog are skipped.
        """
        codes: list[str] = []
        seen: set[str] = set()
        for link in await self.link_store.links_for_evidence(evidence_id):
            if link.requirement_id in seen:
                continue
            seen.add(link.requirement_id)
            requirement = await self.requirement_store.get(link.requirement_id)
            if requirement is not None:
                codes.append(requirement.code)
        return codes

    async def filter_evidence(
        self,
        owner_scope: Optional[str] = None,
        status: Optional[DerivedLinkStatus] = None,
        standard: Optional[str] = None,
        kind: Optional[EvidenceKind] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[EvidenceItem]:
        """Filter the evidence catalog. Every filter left as None is ignored.

        Args:
            owner_scope: Factory id.
            status: Derived link status.
            standard: Declared standard.
            kind: Evidence kind.
            start: Earliest upload time (inclusive, naive = UTC).
            end: Latest upload time (inclusive, naive = UTC).

        Returns:
            Matching evidence, newest upload first.
        """
        items = await self.evidence_store.list_evidence(owner_scope)

        if status is not None:
            counts = await self.link_store.evidence_link_counts()
            items = [i for i in items if derive_status(counts.get(i.evidence_id, 0)) == status]
        if standard is not None:
            items = [i for i in items if i.standard == standard]
        if kind is not None:
            items = [i for i in items if i.kind == kind]
        if start is not None:
            items = [i for i in items if i.uploaded_at >= as_utc(start)]
        if end is not None:
            items = [i for i in items if i.uploaded_at <= as_utc(end)]

        return items

    async def search_requirements(
        self,
        term: str,
        owner_scope: Optional[str] = None,
    ) -> list[Requirement]:
        """Case-insensitive substring search over requirement title and code."""
        needle = term.strip().lower()
        requirements = await self.requirement_store.list_requirements(owner_scope)
        if not needle:
            return requirements
        return [
            req for req in requirements
            if needle in req.title.lower() or needle in req.code.lower()
        ]

    async def requirements_tree(
        self,
        owner_scope: Optional[str] = None,
        standard: Optional[str] = None,
    ) -> list[StandardNode]:
        """Group requirements by standard then category, with evidence counts.

        Evidence count is the number of links referencing each requirement.

        Args:
            owner_scope: Factory id.
            standard: Restrict to one standard (None = all).
        """
        requirements = await self.requirement_store.list_requirements(owner_scope)
        if standard is not None:
            requirements = [req for req in requirements if req.standard == standard]

        tree: dict[str, dict[str, list[RequirementNode]]] = {}
        for req in requirements:
            count = await self.link_store.count_for_requirement(req.requirement_id)
            tree.setdefault(req.standard, {}).setdefault(req.category, []).append(
                RequirementNode(requirement=req, evidence_count=count)
            )

        return [
            StandardNode(
                standard=std,
                display_name=standard_display_name(std),
                requirement_count=sum(len(nodes) for nodes in categories.values()),
                categories=[
                    CategoryNode(category=cat, requirements=nodes)
                    for cat, nodes in categories.items()
                ],
            )
            for std, categories in tree.items()
        ]
