"""Tests for LinkStore.

Tests cover:
- Add and retrieve (duplicates pairs allowed, duplicate ids rejected)
- Batched removal (per evidence, per requirement, evidence x requirement)
- Verification (monotonic, original stamp kept)
- Patch restrictions on update_link
- Lazy queries and statistics
- JSON persistence round trip and write failures
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from compliance_linker.data_management.link_store import LinkStore
from compliance_linker.data_management.schemas import Link
from compliance_linker.errors import NotFoundError, StoreError, ValidationError


def make_link(evidence_id: str, requirement_id: str, **kwargs) -> Link:
    return Link(
        evidence_id=evidence_id,
        requirement_id=requirement_id,
        factory_id=kwargs.pop("factory_id", "factory-7"),
        **kwargs,
    )


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def store() -> LinkStore:
    return LinkStore()


async def populate(store: LinkStore) -> LinkStore:
    await store.add(make_link("ev-1", "req-1"))
    await store.add(make_link("ev-1", "req-2"))
    await store.add(make_link("ev-2", "req-1"))
    await store.add(make_link("ev-3", "req-3", factory_id="factory-9"))
    return store


# ── Add and Retrieve Tests ───────────────────────────────────────────────


class TestAddAndRetrieve:
    @pytest.mark.asyncio
    async def test_add_and_get(self, store: LinkStore) -> None:
        link = make_link("ev-1", "req-1")
        link_id = await store.add(link)

        retrieved = await store.get(link_id)
        assert retrieved is not None
        assert retrieved.evidence_id == "ev-1"
        assert retrieved.requirement_id == "req-1"
        assert retrieved.verified is False

    @pytest.mark.asyncio
    async def test_identical_pairs_are_separate_links(self, store: LinkStore) -> None:
        await store.add(make_link("ev-1", "req-1"))
        await store.add(make_link("ev-1", "req-1"))

        assert await store.count_for_evidence("ev-1") == 2
        assert await store.count_for_requirement("req-1") == 2

    @pytest.mark.asyncio
    async def test_duplicate_link_id_rejected(self, store: LinkStore) -> None:
        link = make_link("ev-1", "req-1")
        await store.add(link)
        with pytest.raises(StoreError):
            await store.add(link)
        assert await store.count_for_evidence("ev-1") == 1

    @pytest.mark.asyncio
    async def test_stored_link_is_isolated_from_caller(self, store: LinkStore) -> None:
        link = make_link("ev-1", "req-1")
        await store.insert_link(link)
        link.tags.append("mutated")

        retrieved = await store.get(link.link_id)
        assert retrieved is not None
        assert retrieved.tags == []

    @pytest.mark.asyncio
    async def test_get_unknown_returns_none(self, store: LinkStore) -> None:
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_list_links_scoped(self, store: LinkStore) -> None:
        populated = await populate(store)
        assert len(await populated.list_links()) == 4
        assert len(await populated.list_links("factory-7")) == 3
        assert len(await populated.list_links("factory-9")) == 1


# ── Removal Tests ────────────────────────────────────────────────────────


class TestRemoval:
    @pytest.mark.asyncio
    async def test_remove_for_evidence(self, store: LinkStore) -> None:
        populated = await populate(store)
        removed = await populated.remove_for_evidence("ev-1")
        assert removed == 2
        assert await populated.count_for_evidence("ev-1") == 0
        assert await populated.count_for_requirement("req-1") == 1

    @pytest.mark.asyncio
    async def test_remove_for_requirement(self, store: LinkStore) -> None:
        populated = await populate(store)
        removed = await populated.remove_for_requirement("req-1")
        assert removed == 2
        assert await populated.count_for_evidence("ev-1") == 1
        assert await populated.count_for_evidence("ev-2") == 0

    @pytest.mark.asyncio
    async def test_remove_for_pairs(self, store: LinkStore) -> None:
        populated = await populate(store)
        removed = await populated.remove_for_pairs(["req-1"], ["ev-1", "ev-2"])
        assert removed == 2
        remaining = await populated.links_for_evidence("ev-1")
        assert [link.requirement_id for link in remaining] == ["req-2"]

    @pytest.mark.asyncio
    async def test_remove_for_pairs_without_requirements_removes_all(self, store: LinkStore) -> None:
        populated = await populate(store)
        removed = await populated.remove_for_pairs([], ["ev-1"])
        assert removed == 2

    @pytest.mark.asyncio
    async def test_delete_links_ignores_unknown(self, store: LinkStore) -> None:
        populated = await populate(store)
        links = await populated.links_for_evidence("ev-2")
        removed = await populated.delete_links([links[0].link_id, "missing"])
        assert removed == 1
        assert await populated.count_for_evidence("ev-2") == 0

    @pytest.mark.asyncio
    async def test_remove_nothing(self, store: LinkStore) -> None:
        assert await store.remove_for_evidence("ev-unknown") == 0


# ── Verification Tests ───────────────────────────────────────────────────


class TestVerification:
    @pytest.mark.asyncio
    async def test_mark_verified(self, store: LinkStore) -> None:
        populated = await populate(store)
        links = await populated.links_for_evidence("ev-1")
        ids = [link.link_id for link in links]

        verified = await populated.mark_verified(ids, verified_by="auditor-3")
        assert verified == ids

        for link_id in ids:
            link = await populated.get(link_id)
            assert link is not None
            assert link.verified is True
            assert link.verified_by == "auditor-3"
            assert link.verified_at is not None

    @pytest.mark.asyncio
    async def test_reverify_keeps_original_stamp(self, store: LinkStore) -> None:
        populated = await populate(store)
        link = (await populated.links_for_evidence("ev-2"))[0]
        first = datetime(2024, 5, 1, tzinfo=timezone.utc)
        await populated.mark_verified([link.link_id], "auditor-1", verified_at=first)
        await populated.mark_verified([link.link_id], "auditor-2")

        stored = await populated.get(link.link_id)
        assert stored is not None
        assert stored.verified_by == "auditor-1"
        assert stored.verified_at == first

    @pytest.mark.asyncio
    async def test_unknown_ids_skipped(self, store: LinkStore) -> None:
        populated = await populate(store)
        link = (await populated.links_for_evidence("ev-2"))[0]
        verified = await populated.mark_verified([link.link_id, "missing"], "auditor-1")
        assert verified == [link.link_id]


# ── Patch Tests ──────────────────────────────────────────────────────────


class TestUpdateLink:
    @pytest.mark.asyncio
    async def test_patch_verification_fields(self, store: LinkStore) -> None:
        populated = await populate(store)
        link = (await populated.links_for_evidence("ev-2"))[0]
        updated = await populated.update_link(
            link.link_id, {"verified": True, "verified_by": "auditor-1"}
        )
        assert updated.verified is True
        assert updated.verified_by == "auditor-1"

    @pytest.mark.asyncio
    async def test_non_verification_field_rejected(self, store: LinkStore) -> None:
        populated = await populate(store)
        link = (await populated.links_for_evidence("ev-2"))[0]
        with pytest.raises(ValidationError):
            await populated.update_link(link.link_id, {"strength": 5})

    @pytest.mark.asyncio
    async def test_unverify_rejected(self, store: LinkStore) -> None:
        populated = await populate(store)
        link = (await populated.links_for_evidence("ev-2"))[0]
        await populated.mark_verified([link.link_id], "auditor-1")
        with pytest.raises(ValidationError):
            await populated.update_link(link.link_id, {"verified": False})

    @pytest.mark.asyncio
    async def test_unknown_link(self, store: LinkStore) -> None:
        with pytest.raises(NotFoundError):
            await store.update_link("missing", {"verified": True})


# ── Query and Stats Tests ────────────────────────────────────────────────


class TestQueryAndStats:
    @pytest.mark.asyncio
    async def test_query_with_predicate(self, store: LinkStore) -> None:
        populated = await populate(store)
        matches = [
            link async for link in populated.query(lambda link: link.requirement_id == "req-1")
        ]
        assert {link.evidence_id for link in matches} == {"ev-1", "ev-2"}

    @pytest.mark.asyncio
    async def test_query_is_restartable(self, store: LinkStore) -> None:
        populated = await populate(store)
        first = [link async for link in populated.query()]
        await populated.add(make_link("ev-4", "req-4"))
        second = [link async for link in populated.query()]
        assert len(first) == 4
        assert len(second) == 5

    @pytest.mark.asyncio
    async def test_evidence_link_counts(self, store: LinkStore) -> None:
        populated = await populate(store)
        counts = await populated.evidence_link_counts()
        assert counts == {"ev-1": 2, "ev-2": 1, "ev-3": 1}

    @pytest.mark.asyncio
    async def test_stats(self, store: LinkStore) -> None:
        populated = await populate(store)
        link = (await populated.links_for_evidence("ev-2"))[0]
        await populated.mark_verified([link.link_id], "auditor-1")

        stats = await populated.get_stats()
        assert stats["total_links"] == 4
        assert stats["verified_links"] == 1
        assert stats["unverified_links"] == 3
        assert stats["linked_evidence"] == 3
        assert stats["persistence_enabled"] is False


# ── Persistence Tests ────────────────────────────────────────────────────


class TestPersistence:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "links.json"
        store = LinkStore(str(path))
        await store.add(make_link("ev-1", "req-1"))
        await store.add(make_link("ev-1", "req-2"))

        reloaded = LinkStore(str(path))
        assert await reloaded.count_for_evidence("ev-1") == 2
        assert await reloaded.count_for_requirement("req-2") == 1

    @pytest.mark.asyncio
    async def test_corrupt_file_starts_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "links.json"
        path.write_text("{not json")
        store = LinkStore(str(path))
        assert (await store.get_stats())["total_links"] == 0

    @pytest.mark.asyncio
    async def test_write_failure_rolls_back(self, tmp_path: Path) -> None:
        # A directory at the target path makes every write fail
        path = tmp_path / "links.json"
        path.mkdir()
        store = LinkStore(str(path))

        with pytest.raises(StoreError):
            await store.add(make_link("ev-1", "req-1"))
        assert await store.count_for_evidence("ev-1") == 0
