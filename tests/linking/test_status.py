"""Tests for derived status and StatusResolver query helpers."""

from datetime import datetime, timezone

import pytest

from compliance_linker.data_management.evidence_store import EvidenceStore
from compliance_linker.data_management.link_store import LinkStore
from compliance_linker.data_management.requirement_store import RequirementStore
from compliance_linker.data_management.schemas import DerivedLinkStatus, EvidenceKind
from compliance_linker.linking.engine import LinkingEngine
from compliance_linker.linking.status import StatusResolver, derive_status


def resolver_for(workspace) -> StatusResolver:
    return StatusResolver(
        workspace.evidence_store, workspace.requirement_store, workspace.link_store
    )


class TestDeriveStatus:
    @pytest.mark.parametrize(
        "count,expected",
        [
            (0, DerivedLinkStatus.UNLINKED),
            (1, DerivedLinkStatus.LINKED),
            (2, DerivedLinkStatus.LINKED),
            (3, DerivedLinkStatus.VERIFIED),
            (10, DerivedLinkStatus.VERIFIED),
        ],
    )
    def test_thresholds(self, count: int, expected: DerivedLinkStatus) -> None:
        assert derive_status(count) == expected


class TestStatusResolver:
    @pytest.mark.asyncio
    async def test_status_counts_duplicate_links(self, workspace) -> None:
        resolver = resolver_for(workspace)
        await workspace.engine.link_evidence("E1", ["R1"])
        await workspace.engine.link_evidence("E1", ["R1"])
        assert await resolver.link_count("E1") == 2
        assert await resolver.status("E1") == DerivedLinkStatus.LINKED

        await workspace.engine.link_evidence("E1", ["R1"])
        assert await resolver.status("E1") == DerivedLinkStatus.VERIFIED

    @pytest.mark.asyncio
    async def test_statuses_for_scope(self, workspace) -> None:
        await workspace.engine.link_evidence("E2", ["R3"])
        statuses = await resolver_for(workspace).statuses("factory-7")

        assert statuses == {
            "E1": DerivedLinkStatus.UNLINKED,
            "E2": DerivedLinkStatus.LINKED,
            "E3": DerivedLinkStatus.UNLINKED,
            "E4": DerivedLinkStatus.UNLINKED,
        }

    @pytest.mark.asyncio
    async def test_first_unlinked_is_newest(self, workspace) -> None:
        resolver = resolver_for(workspace)
        first = await resolver.first_unlinked("factory-7")
        assert first is not None
        assert first.evidence_id == "E4"

        await workspace.engine.bulk_link(["E1", "E2", "E3", "E4"], ["R1"])
        assert await resolver.first_unlinked("factory-7") is None

    @pytest.mark.asyncio
    async def test_current_requirement_codes(self, workspace) -> None:
        await workspace.engine.link_evidence("E1", ["R1", "R3"])
        await workspace.engine.link_evidence("E1", ["R1"])

        codes = await resolver_for(workspace).current_requirement_codes("E1")
        assert sorted(codes) == ["5.2", "7.5"]

    @pytest.mark.asyncio
    async def test_filter_by_status_and_kind(self, workspace) -> None:
        resolver = resolver_for(workspace)
        await workspace.engine.link_evidence("E3", ["R1"])

        linked = await resolver.filter_evidence("factory-7", status=DerivedLinkStatus.LINKED)
        assert [item.evidence_id for item in linked] == ["E3"]

        images = await resolver.filter_evidence("factory-7", kind=EvidenceKind.IMAGE)
        assert [item.evidence_id for item in images] == ["E3"]

    @pytest.mark.asyncio
    async def test_filter_by_standard_and_dates(self, workspace) -> None:
        resolver = resolver_for(workspace)

        declared = await resolver.filter_evidence("factory-7", standard="iso_9001")
        assert [item.evidence_id for item in declared] == ["E4", "E3", "E2"]

        window = await resolver.filter_evidence(
            "factory-7",
            start=datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc),
            end=datetime(2024, 5, 1, 11, 0, tzinfo=timezone.utc),
        )
        assert [item.evidence_id for item in window] == ["E3", "E2"]

    @pytest.mark.asyncio
    async def test_search_requirements(self, workspace) -> None:
        resolver = resolver_for(workspace)

        by_title = await resolver.search_requirements("POLICY", "factory-7")
        assert [req.requirement_id for req in by_title] == ["R1", "R4"]

        by_code = await resolver.search_requirements("7.5", "factory-7")
        assert [req.requirement_id for req in by_code] == ["R3"]

        assert len(await resolver.search_requirements("  ", "factory-7")) == 4

    @pytest.mark.asyncio
    async def test_requirements_tree(self, workspace) -> None:
        await workspace.engine.bulk_link(["E1", "E2"], ["R1"])
        tree = await resolver_for(workspace).requirements_tree("factory-7")

        assert [node.standard for node in tree] == ["iso_9001", "sa_8000"]
        iso = tree[0]
        assert iso.display_name == "ISO 9001 - Quality Management"
        assert iso.requirement_count == 3
        assert [category.category for category in iso.categories] == ["policy", "record"]

        policy = iso.categories[0]
        counts = {node.requirement.requirement_id: node.evidence_count for node in policy.requirements}
        assert counts == {"R1": 2, "R2": 0}

    @pytest.mark.asyncio
    async def test_requirements_tree_single_standard(self, workspace) -> None:
        tree = await resolver_for(workspace).requirements_tree("factory-7", standard="sa_8000")
        assert len(tree) == 1
        assert tree[0].display_name == "SA 8000 - Social Accountability"


class TestMixedTimestampCatalog:
    """Catalog records with and without a UTC offset share one ordering."""

    @pytest.mark.asyncio
    async def test_auto_link_and_statuses(self, identity) -> None:
        evidence_store = EvidenceStore()
        requirement_store = RequirementStore()
        link_store = LinkStore()
        await evidence_store.load([
            {"evidence_id": "E1", "name": "manual.pdf",
             "uploaded_at": "2024-05-01T09:00:00Z", "factory_id": "f"},
            {"evidence_id": "E2", "name": "index.xlsx", "standard": "iso_9001",
             "requirement_code": "7.5", "uploaded_at": "2024-05-01T10:00:00", "factory_id": "f"},
        ], owner_scope="f")
        await requirement_store.load([
            {"requirement_id": "R3", "standard": "iso_9001", "category": "record",
             "code": "7.5", "title": "Documented information", "factory_id": "f"},
        ], owner_scope="f")
        engine = LinkingEngine(evidence_store, requirement_store, link_store, identity)
        resolver = StatusResolver(evidence_store, requirement_store, link_store)

        result = await engine.auto_link("f")

        assert result.succeeded == 1
        assert [item.evidence_id for item in await evidence_store.list_evidence("f")] == ["E2", "E1"]
        assert await resolver.statuses("f") == {
            "E2": DerivedLinkStatus.LINKED,
            "E1": DerivedLinkStatus.UNLINKED,
        }

    @pytest.mark.asyncio
    async def test_filter_with_bare_bounds(self, workspace) -> None:
        window = await resolver_for(workspace).filter_evidence(
            "factory-7",
            start=datetime(2024, 5, 1, 10, 0),
            end=datetime(2024, 5, 1, 11, 0),
        )
        assert [item.evidence_id for item in window] == ["E3", "E2"]
