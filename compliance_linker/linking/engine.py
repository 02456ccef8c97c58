"""Linking engine: creates and removes evidence-requirement links.

Operations:
- link_evidence: one evidence item -> a set of requirements (manual linking)
- create_link: a single link, errors raised directly
- bulk_link: full cross product of evidence x requirements
- bulk_link_selection: bulk_link over the selection manager, then clear it
- auto_link: heuristic pass linking unlinked evidence by declared (standard, code)
- clear_links: remove every link of a set of evidence items
- on_evidence_deleted / on_requirement_deleted: cascade external deletions
- save_draft / apply_draft: park a linking intent and apply it later

Error policy:
- Empty selections raise ValidationError before any write
- Within a batch, missing catalog ids (NotFoundError) and persistence
  failures (StoreError) are logged, skipped and reported in the BatchResult;
  the rest of the batch still runs and nothing is rolled back
- No retries; the caller decides

Inserts within one batch run concurrently (bounded by a semaphore) and are
joined before the operation returns, so a coverage read issued afterwards
never sees a half-written batch. No ordering holds between links of one
batch.
"""

import asyncio
from typing import Iterable, Optional

from compliance_linker.config.settings import settings
from compliance_linker.config.standards import (
    AUTO_LINK_DESCRIPTION,
    AUTO_LINK_STRENGTH,
    AUTO_LINK_TAG,
)
from compliance_linker.data_management.draft_store import DraftStore
from compliance_linker.data_management.repositories import (
    EvidenceRepository,
    IdentityProvider,
    LinkRepository,
    RequirementRepository,
)
from compliance_linker.data_management.schemas import (
    BatchResult,
    Link,
    LinkAttributes,
    LinkDraft,
    LinkType,
)
from compliance_linker.errors import NotFoundError, ValidationError
from compliance_linker.linking.locks import EvidenceLockRegistry
from compliance_linker.linking.selection import SelectionManager
from compliance_linker.utils.logging import get_structured_logger

AUTO_LINK_ATTRIBUTES = LinkAttributes(
    link_type=LinkType.DIRECT,
    strength=AUTO_LINK_STRENGTH,
    description=AUTO_LINK_DESCRIPTION,
    tags=[AUTO_LINK_TAG],
)


def _unique(ids: Iterable[str]) -> list[str]:
    """Order-preserving de-duplication (selection inputs are sets)."""
    return list(dict.fromkeys(ids))


def pair_key(evidence_id: str, requirement_id: str) -> str:
    """Item id used in BatchResult failures for one link attempt."""
    return f"{evidence_id}:{requirement_id}"


class LinkingEngine:
    """Creates and removes links between catalog records.

    Reads the evidence/requirement catalogs and the selection manager,
    writes only to the link store (and the draft store for drafts).
    """

    def __init__(
        self,
        evidence_store: EvidenceRepository,
        requirement_store: RequirementRepository,
        link_store: LinkRepository,
        identity: IdentityProvider,
        selection: Optional[SelectionManager] = None,
        draft_store: Optional[DraftStore] = None,
        max_concurrent_writes: Optional[int] = None,
        evidence_locks: Optional[EvidenceLockRegistry] = None,
    ) -> None:
        """Initialize LinkingEngine.

        Args:
            evidence_store: Evidence catalog.
            requirement_store: Requirement catalog.
            link_store: Link persistence.
            identity: Acting user recorded as link creator.
            selection: Selection manager for bulk_link_selection / clear_selection_links.
            draft_store: Draft persistence. Lazy-initialized (memory-only) if None.
            max_concurrent_writes: In-flight inserts per batch. Defaults to settings.
            evidence_locks: Advisory lock registry. Defaults to settings.evidence_locks_enabled.
        """
        self.evidence_store = evidence_store
        self.requirement_store = requirement_store
        self.link_store = link_store
        self.identity = identity
        self.selection = selection or SelectionManager()
        self._draft_store = draft_store
        self.max_concurrent_writes = max_concurrent_writes or settings.max_concurrent_writes
        self.evidence_locks = evidence_locks or EvidenceLockRegistry(
            enabled=settings.evidence_locks_enabled
        )
        self._logger = get_structured_logger("linking.engine", component="LinkingEngine")

    def _get_draft_store(self) -> DraftStore:
        """Lazy-init a memory-only DraftStore."""
        if self._draft_store is None:
            self._draft_store = DraftStore()
        return self._draft_store

    # ── Manual and bulk linking ──────────────────────────────────────────

    async def create_link(
        self,
        evidence_id: str,
        requirement_id: str,
        attributes: Optional[LinkAttributes] = None,
    ) -> Link:
        """Create exactly one link. Every error surfaces to the caller.

        Raises:
            NotFoundError: Unknown evidence or requirement id.
            StoreError: Persistence failed.
        """
        evidence = await self.evidence_store.require(evidence_id)
        requirement = await self.requirement_store.require(requirement_id)
        link = Link.create(
            evidence,
            requirement,
            attributes or LinkAttributes(),
            created_by=self.identity.user_id,
            created_by_name=self.identity.display_name,
        )
        async with self.evidence_locks.hold([evidence_id]):
            await self.link_store.insert_link(link)

        self._logger.info(
            "link_created",
            link_id=link.link_id,
            evidence_id=evidence_id,
            requirement_id=requirement_id,
        )
        return link

    async def link_evidence(
        self,
        evidence_id: str,
        requirement_ids: Iterable[str],
        attributes: Optional[LinkAttributes] = None,
    ) -> BatchResult:
        """Link one evidence item to each of a set of requirements.

        No uniqueness check: re-linking an existing pair adds another link.

        Args:
            evidence_id: Evidence being linked.
            requirement_ids: Non-empty set of requirement ids.
            attributes: Shared link attributes (defaults: direct, strength 3, medium).

        Returns:
            BatchResult; succeeded = links created.

        Raises:
            ValidationError: requirement_ids is empty.
            NotFoundError: evidence_id is not in the catalog.
        """
        requirement_ids = _unique(requirement_ids)
        if not requirement_ids:
            raise ValidationError("At least one requirement must be selected")
        await self.evidence_store.require(evidence_id)

        pairs = [(evidence_id, rid) for rid in requirement_ids]
        async with self.evidence_locks.hold([evidence_id]):
            result = await self._insert_pairs(pairs, attributes or LinkAttributes())

        self._logger.info(
            "manual_link_complete",
            evidence_id=evidence_id,
            created=result.succeeded,
            failed=result.failed_count,
        )
        return result

    async def bulk_link(
        self,
        evidence_ids: Iterable[str],
        requirement_ids: Iterable[str],
        attributes: Optional[LinkAttributes] = None,
    ) -> BatchResult:
        """Link every evidence item to every requirement (m x n links).

        Calling it twice with the same input creates 2 x m x n links.

        Args:
            evidence_ids: Non-empty set of evidence ids.
            requirement_ids: Non-empty set of requirement ids.
            attributes: Attributes shared by every created link.

        Returns:
            BatchResult; succeeded = links created. Pairs with unknown ids or
            failed inserts are listed in failed.

        Raises:
            ValidationError: Either set is empty.
        """
        evidence_ids = _unique(evidence_ids)
        requirement_ids = _unique(requirement_ids)
        if not evidence_ids:
            raise ValidationError("At least one evidence item must be selected")
        if not requirement_ids:
            raise ValidationError("At least one requirement must be selected")

        potential = len(evidence_ids) * len(requirement_ids)
        if potential > settings.bulk_link_warn_threshold:
            self._logger.warning(
                "large_bulk_link",
                potential_links=potential,
                threshold=settings.bulk_link_warn_threshold,
            )

        pairs = [(eid, rid) for eid in evidence_ids for rid in requirement_ids]
        async with self.evidence_locks.hold(evidence_ids):
            result = await self._insert_pairs(pairs, attributes or LinkAttributes())

        self._logger.info(
            "bulk_link_complete",
            evidence=len(evidence_ids),
            requirements=len(requirement_ids),
            created=result.succeeded,
            failed=result.failed_count,
        )
        return result

    async def bulk_link_selection(
        self,
        attributes: Optional[LinkAttributes] = None,
    ) -> BatchResult:
        """Bulk link the current selection, then clear the selection.

        Raises:
            ValidationError: Either selection set is empty (selection kept).
        """
        result = await self.bulk_link(
            self.selection.evidence_ids,
            self.selection.requirement_ids,
            attributes,
        )
        self.selection.clear()
        return result

    # ── Auto-link ────────────────────────────────────────────────────────

    async def auto_link(self, owner_scope: Optional[str] = None) -> BatchResult:
        """Link unlinked evidence to requirements matching its declared metadata.

        Candidates are evidence items with zero links that declare both a
        standard and a requirement code. Each candidate is linked (direct,
        strength 4, tagged auto-linked) to every requirement of the same
        factory with that (standard, code); ties are all linked. Candidates
        without a match are left alone.

        Items linked by a previous run are no longer unlinked, so running
        auto_link twice does not double-link them.

        Args:
            owner_scope: Factory id (None = all loaded evidence).

        Returns:
            BatchResult; succeeded = links created.
        """
        counts = await self.link_store.evidence_link_counts()
        candidates = [
            item for item in await self.evidence_store.list_evidence(owner_scope)
            if item.declares_requirement and counts.get(item.evidence_id, 0) == 0
        ]

        matches: dict[str, list[str]] = {}
        for item in candidates:
            requirements = await self.requirement_store.find_by_code(
                item.standard, item.requirement_code
            )
            requirement_ids = [
                req.requirement_id for req in requirements
                if req.factory_id == item.factory_id
            ]
            if requirement_ids:
                matches[item.evidence_id] = requirement_ids

        if not matches:
            self._logger.info("auto_link_no_matches", candidates=len(candidates))
            return BatchResult()

        async with self.evidence_locks.hold(matches.keys()):
            # Another batch may have linked a candidate while we were matching
            pairs = []
            for evidence_id, requirement_ids in matches.items():
                if await self.link_store.count_for_evidence(evidence_id) == 0:
                    pairs.extend((evidence_id, rid) for rid in requirement_ids)
            result = await self._insert_pairs(pairs, AUTO_LINK_ATTRIBUTES)

        self._logger.info(
            "auto_link_complete",
            candidates=len(candidates),
            matched=len(matches),
            created=result.succeeded,
            failed=result.failed_count,
        )
        return result

    # ── Removal ──────────────────────────────────────────────────────────

    async def clear_links(self, evidence_ids: Iterable[str]) -> BatchResult:
        """Remove every link of each evidence item.

        Returns:
            BatchResult; succeeded = links removed, created_ids = evidence ids
            whose links were cleared, failed = evidence ids whose removal failed.

        Raises:
            ValidationError: evidence_ids is empty.
        """
        evidence_ids = _unique(evidence_ids)
        if not evidence_ids:
            raise ValidationError("At least one evidence item must be selected")

        result = BatchResult()
        async with self.evidence_locks.hold(evidence_ids):
            outcomes = await asyncio.gather(
                *[self.link_store.remove_for_evidence(eid) for eid in evidence_ids],
                return_exceptions=True,
            )

        for evidence_id, outcome in zip(evidence_ids, outcomes):
            if isinstance(outcome, Exception):
                self._logger.error(
                    "clear_links_failed", evidence_id=evidence_id, error=str(outcome)
                )
                result.record_failure(evidence_id, outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.succeeded += outcome
                result.created_ids.append(evidence_id)

        self._logger.info(
            "clear_links_complete",
            evidence=len(evidence_ids),
            removed=result.succeeded,
            failed=result.failed_count,
        )
        return result

    async def clear_selection_links(self) -> BatchResult:
        """Clear links of every selected evidence item, then clear the selection."""
        result = await self.clear_links(self.selection.evidence_ids)
        self.selection.clear()
        return result

    async def unlink(
        self,
        evidence_ids: Iterable[str],
        requirement_ids: Iterable[str] = (),
    ) -> int:
        """Remove links between given evidence and requirements in one batch.

        An empty requirement_ids removes every link of the evidence items.

        Returns:
            Number of links removed.

        Raises:
            ValidationError: evidence_ids is empty.
        """
        evidence_ids = _unique(evidence_ids)
        if not evidence_ids:
            raise ValidationError("At least one evidence item must be selected")
        async with self.evidence_locks.hold(evidence_ids):
            return await self.link_store.remove_for_pairs(requirement_ids, evidence_ids)

    async def on_evidence_deleted(self, evidence_id: str) -> int:
        """Cascade an external evidence deletion to its links.

        Returns:
            Number of links removed.
        """
        await self.evidence_store.remove(evidence_id)
        async with self.evidence_locks.hold([evidence_id]):
            removed = await self.link_store.remove_for_evidence(evidence_id)
        self._logger.info("evidence_cascade", evidence_id=evidence_id, removed=removed)
        return removed

    async def on_requirement_deleted(self, requirement_id: str) -> int:
        """Cascade an external requirement deletion to its links.

        Returns:
            Number of links removed.
        """
        await self.requirement_store.remove(requirement_id)
        removed = await self.link_store.remove_for_requirement(requirement_id)
        self._logger.info("requirement_cascade", requirement_id=requirement_id, removed=removed)
        return removed

    # ── Drafts ───────────────────────────────────────────────────────────

    async def save_draft(
        self,
        evidence_id: str,
        requirement_ids: Iterable[str],
        attributes: Optional[LinkAttributes] = None,
    ) -> LinkDraft:
        """Store a linking intent without creating links.

        Raises:
            ValidationError: requirement_ids is empty.
            NotFoundError: evidence_id is not in the catalog.
        """
        requirement_ids = _unique(requirement_ids)
        if not requirement_ids:
            raise ValidationError("At least one requirement must be selected")
        evidence = await self.evidence_store.require(evidence_id)

        draft = LinkDraft(
            evidence_id=evidence_id,
            evidence_name=evidence.name,
            requirement_ids=requirement_ids,
            attributes=attributes or LinkAttributes(),
            created_by=self.identity.user_id,
            created_by_name=self.identity.display_name,
            factory_id=evidence.factory_id,
        )
        await self._get_draft_store().save_draft(draft)
        return draft

    async def apply_draft(self, draft_id: str) -> BatchResult:
        """Create the links described by a draft, then delete the draft.

        Raises:
            NotFoundError: Unknown draft_id.
        """
        draft_store = self._get_draft_store()
        draft = await draft_store.get_draft(draft_id)
        if draft is None:
            raise NotFoundError("draft", draft_id)

        result = await self.link_evidence(
            draft.evidence_id, draft.requirement_ids, draft.attributes
        )
        await draft_store.delete_draft(draft_id)
        return result

    # ── Internals ────────────────────────────────────────────────────────

    async def _insert_pairs(
        self,
        pairs: list[tuple[str, str]],
        attributes: LinkAttributes,
    ) -> BatchResult:
        """Insert one link per (evidence_id, requirement_id) pair concurrently.

        Uses asyncio.Semaphore to bound in-flight inserts and asyncio.gather
        with return_exceptions=True so one failure cannot abort the batch.
        """
        semaphore = asyncio.Semaphore(self.max_concurrent_writes)

        async def insert_one(evidence_id: str, requirement_id: str) -> str:
            async with semaphore:
                evidence = await self.evidence_store.require(evidence_id)
                requirement = await self.requirement_store.require(requirement_id)
                link = Link.create(
                    evidence,
                    requirement,
                    attributes,
                    created_by=self.identity.user_id,
                    created_by_name=self.identity.display_name,
                )
                return await self.link_store.insert_link(link)

        outcomes = await asyncio.gather(
            *[insert_one(eid, rid) for eid, rid in pairs],
            return_exceptions=True,
        )

        result = BatchResult()
        for (evidence_id, requirement_id), outcome in zip(pairs, outcomes):
            if isinstance(outcome, Exception):
                self._logger.error(
                    "link_insert_failed",
                    evidence_id=evidence_id,
                    requirement_id=requirement_id,
                    error=str(outcome),
                )
                result.record_failure(pair_key(evidence_id, requirement_id), outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.succeeded += 1
                result.created_ids.append(outcome)
        return result
