"""Linking session pipeline: catalogs -> linking -> coverage/statistics refresh.

Wires the stores, the linking engine, status resolution, coverage and
verification into one owner-scoped session. Every mutation is followed by
a refresh: statistics and coverage are recomputed from the stores and
pushed to registered refresh handlers (the workspace re-render hook).

Usage:
    from compliance_linker.pipeline import LinkingPipeline

    pipeline = LinkingPipeline(owner_scope="factory-7")
    await pipeline.load_catalogs(evidence_records, requirement_records)
    result = await pipeline.auto_link()
    stats = await pipeline.stats()
    report = await pipeline.generate_report()
"""

import math
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional

from compliance_linker.config.settings import settings
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
from compliance_linker.data_management.schemas import (
    BatchResult,
    CoverageSummary,
    DerivedLinkStatus,
    EvidenceItem,
    LinkAttributes,
    LinkDraft,
    LinkingReport,
    LinkingStats,
)
from compliance_linker.linking.coverage import CoverageCalculator
from compliance_linker.linking.engine import LinkingEngine
from compliance_linker.linking.locks import EvidenceLockRegistry
from compliance_linker.linking.selection import SelectionManager
from compliance_linker.linking.status import StatusResolver
from compliance_linker.linking.verification import VerificationWorkflow
from compliance_linker.utils.logging import get_structured_logger, new_session_id

RefreshHandler = Callable[[LinkingStats, CoverageSummary], Awaitable[None]]


def utc_date(moment: datetime) -> date:
    """Calendar day of a timestamp in UTC; naive timestamps are taken as UTC."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


def display_rate(coverage: float) -> int:
    """Integer percent for display, halves rounded up."""
    return int(math.floor(coverage + 0.5))


class LinkingPipeline:
    """One operator session over one factory's catalogs and links.

    Stores are shared across the session; pass existing ones to share them
    with other components, or let the pipeline build them from settings.
    """

    def __init__(
        self,
        owner_scope: Optional[str] = None,
        evidence_store: Optional[EvidenceRepository] = None,
        requirement_store: Optional[RequirementRepository] = None,
        link_store: Optional[LinkRepository] = None,
        draft_store: Optional[DraftStore] = None,
        report_store: Optional[ReportStore] = None,
        identity: Optional[IdentityProvider] = None,
        selection: Optional[SelectionManager] = None,
    ) -> None:
        """Initialize LinkingPipeline.

        Args:
            owner_scope: Factory id. Defaults to settings.owner_scope.
            evidence_store: Shared evidence catalog.
            requirement_store: Shared requirement catalog.
            link_store: Shared link store. Built from settings.link_store_path if None.
            draft_store: Shared draft store. Built from settings.draft_store_path if None.
            report_store: Shared report store. Built from settings.report_store_path if None.
            identity: Acting user. Defaults to settings.actor_id / actor_name.
            selection: Selection manager for bulk operations.
        """
        self.owner_scope = owner_scope or settings.owner_scope
        self.evidence_store = evidence_store or EvidenceStore()
        self.requirement_store = requirement_store or RequirementStore()
        self.link_store = link_store or LinkStore(settings.link_store_path)
        self.draft_store = draft_store or DraftStore(settings.draft_store_path)
        self.report_store = report_store or ReportStore(settings.report_store_path)
        self.identity = identity or StaticIdentityProvider(
            settings.actor_id, settings.actor_name
        )
        self.selection = selection or SelectionManager()

        self.engine = LinkingEngine(
            evidence_store=self.evidence_store,
            requirement_store=self.requirement_store,
            link_store=self.link_store,
            identity=self.identity,
            selection=self.selection,
            draft_store=self.draft_store,
            max_concurrent_writes=settings.max_concurrent_writes,
            evidence_locks=EvidenceLockRegistry(enabled=settings.evidence_locks_enabled),
        )
        self.status = StatusResolver(self.evidence_store, self.requirement_store, self.link_store)
        self.verification = VerificationWorkflow(self.link_store, self.identity)

        self._refresh_handlers: list[RefreshHandler] = []
        self.session_id = new_session_id()
        self._logger = get_structured_logger(
            "pipeline.linking",
            session_id=self.session_id,
            actor_id=self.identity.user_id,
            component="LinkingPipeline",
            owner_scope=self.owner_scope,
        )

    def on_refresh(self, handler: RefreshHandler) -> None:
        """Register a handler called with fresh stats and coverage after each mutation."""
        self._refresh_handlers.append(handler)

    async def load_catalogs(
        self,
        evidence_records: Iterable[Any],
        requirement_records: Iterable[Any],
    ) -> dict[str, Any]:
        """Load both catalogs for this session's owner scope.

        Returns:
            {"evidence": load stats, "requirements": load stats}
        """
        evidence_stats = await self.evidence_store.load(evidence_records, self.owner_scope)
        requirement_stats = await self.requirement_store.load(
            requirement_records, self.owner_scope
        )
        self._logger.info(
            "catalogs_loaded",
            evidence=evidence_stats["loaded"],
            requirements=requirement_stats["loaded"],
            rejected=evidence_stats["rejected"] + requirement_stats["rejected"],
        )
        return {"evidence": evidence_stats, "requirements": requirement_stats}

    # ── Reads ────────────────────────────────────────────────────────────

    async def coverage(self) -> CoverageSummary:
        calculator = await CoverageCalculator.from_stores(
            self.requirement_store, self.link_store, self.owner_scope
        )
        return calculator.summary()

    async def stats(self, now: Optional[datetime] = None) -> LinkingStats:
        """Headline statistics for the session.

        Args:
            now: Reference time for "linked today" (defaults to now, UTC).
                 Days are UTC calendar days.
        """
        today = utc_date(now or datetime.now(timezone.utc))

        statuses = await self.status.statuses(self.owner_scope)
        links = await self.link_store.list_links(self.owner_scope)
        coverage = await self.coverage()

        return LinkingStats(
            total_evidence=len(statuses),
            unlinked_evidence=sum(
                1 for status in statuses.values() if status == DerivedLinkStatus.UNLINKED
            ),
            total_links=len(links),
            linked_today=sum(
                1 for link in links
                if utc_date(link.created_at) == today
            ),
            unverified_links=sum(1 for link in links if not link.verified),
            coverage_rate=display_rate(coverage.overall),
        )

    async def start_linking(self) -> Optional[EvidenceItem]:
        """First unlinked evidence item to work on, or None when all are linked."""
        return await self.status.first_unlinked(self.owner_scope)

    async def refresh(self) -> tuple[LinkingStats, CoverageSummary]:
        """Recompute stats and coverage and notify refresh handlers."""
        stats = await self.stats()
        coverage = await self.coverage()
        for handler in list(self._refresh_handlers):
            try:
                await handler(stats, coverage)
            except Exception as e:
                self._logger.error("refresh_handler_failed", error=str(e))
        return stats, coverage

    # ── Mutations (each followed by a refresh) ───────────────────────────

    async def link_evidence(
        self,
        evidence_id: str,
        requirement_ids: Iterable[str],
        attributes: Optional[LinkAttributes] = None,
    ) -> BatchResult:
        result = await self.engine.link_evidence(evidence_id, requirement_ids, attributes)
        await self.refresh()
        return result

    async def bulk_link(
        self,
        evidence_ids: Iterable[str],
        requirement_ids: Iterable[str],
        attributes: Optional[LinkAttributes] = None,
    ) -> BatchResult:
        result = await self.engine.bulk_link(evidence_ids, requirement_ids, attributes)
        await self.refresh()
        return result

    async def bulk_link_selection(
        self,
        attributes: Optional[LinkAttributes] = None,
    ) -> BatchResult:
        result = await self.engine.bulk_link_selection(attributes)
        await self.refresh()
        return result

    async def auto_link(self) -> BatchResult:
        result = await self.engine.auto_link(self.owner_scope)
        await self.refresh()
        return result

    async def clear_links(self, evidence_ids: Iterable[str]) -> BatchResult:
        result = await self.engine.clear_links(evidence_ids)
        await self.refresh()
        return result

    async def unlink(
        self,
        evidence_ids: Iterable[str],
        requirement_ids: Iterable[str] = (),
    ) -> int:
        removed = await self.engine.unlink(evidence_ids, requirement_ids)
        await self.refresh()
        return removed

    async def save_draft(
        self,
        evidence_id: str,
        requirement_ids: Iterable[str],
        attributes: Optional[LinkAttributes] = None,
    ) -> LinkDraft:
        draft = await self.engine.save_draft(evidence_id, requirement_ids, attributes)
        await self.refresh()
        return draft

    async def apply_draft(self, draft_id: str) -> BatchResult:
        result = await self.engine.apply_draft(draft_id)
        await self.refresh()
        return result

    async def verify(self, link_ids: Iterable[str]) -> BatchResult:
        result = await self.verification.verify(link_ids)
        await self.refresh()
        return result

    async def verify_all_unverified(self) -> BatchResult:
        result = await self.verification.verify_all_unverified(self.owner_scope)
        await self.refresh()
        return result

    async def evidence_deleted(self, evidence_id: str) -> int:
        removed = await self.engine.on_evidence_deleted(evidence_id)
        await self.refresh()
        return removed

    async def requirement_deleted(self, requirement_id: str) -> int:
        removed = await self.engine.on_requirement_deleted(requirement_id)
        await self.refresh()
        return removed

    # ── Reports ──────────────────────────────────────────────────────────

    async def build_report(self) -> LinkingReport:
        """Snapshot the session without persisting it."""
        return LinkingReport(
            factory_id=self.owner_scope,
            evidence=await self.evidence_store.list_evidence(self.owner_scope),
            requirements=await self.requirement_store.list_requirements(self.owner_scope),
            links=await self.link_store.list_links(self.owner_scope),
            coverage=await self.coverage(),
            generated_by=self.identity.user_id,
        )

    async def generate_report(self) -> LinkingReport:
        """Snapshot the session and save it as a coverage report."""
        report = await self.build_report()
        await self.report_store.save_report(report)
        self._logger.info(
            "report_generated",
            report_id=report.report_id,
            links=report.total_links,
            overall_coverage=report.coverage.overall,
        )
        return report
