"""Tests for evidence, requirement, link and batch result schemas."""

from datetime import datetime, timedelta, timezone

import pydantic
import pytest

from compliance_linker.data_management.schemas import (
    BatchResult,
    EvidenceItem,
    EvidenceKind,
    Link,
    LinkAttributes,
    LinkPriority,
    LinkType,
    Requirement,
    classify_kind,
)
from compliance_linker.errors import NotFoundError, StoreError


@pytest.fixture
def evidence() -> EvidenceItem:
    return EvidenceItem(
        evidence_id="ev-1",
        name="fire-drill.mp4",
        standard="ohsas_18001",
        requirement_code="4.4.7",
        factory_id="factory-7",
    )


@pytest.fixture
def requirement() -> Requirement:
    return Requirement(
        requirement_id="req-1",
        standard="ohsas_18001",
        category="procedure",
        code="4.4.7",
        title="Emergency preparedness",
        factory_id="factory-7",
    )


class TestEvidenceItem:
    @pytest.mark.parametrize(
        "name,kind",
        [
            ("policy.PDF", EvidenceKind.DOCUMENT),
            ("site.jpeg", EvidenceKind.IMAGE),
            ("drill.mov", EvidenceKind.VIDEO),
            ("briefing.wav", EvidenceKind.AUDIO),
            ("archive.zip", EvidenceKind.OTHER),
            ("README", EvidenceKind.OTHER),
        ],
    )
    def test_classify_kind(self, name: str, kind: EvidenceKind) -> None:
        assert classify_kind(name) == kind

    def test_kind_derived(self, evidence: EvidenceItem) -> None:
        assert evidence.kind == EvidenceKind.VIDEO

    def test_explicit_kind_kept(self) -> None:
        item = EvidenceItem(
            evidence_id="ev-2", name="scan.pdf", kind=EvidenceKind.IMAGE, factory_id="f"
        )
        assert item.kind == EvidenceKind.IMAGE

    def test_declares_requirement(self, evidence: EvidenceItem) -> None:
        assert evidence.declares_requirement is True
        partial = EvidenceItem(evidence_id="ev-3", name="a.pdf", standard="iso_9001", factory_id="f")
        assert partial.declares_requirement is False

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            EvidenceItem(evidence_id="ev-1", name="a.pdf", factory_id="f", colour="red")

    def test_negative_size_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            EvidenceItem(evidence_id="ev-1", name="a.pdf", factory_id="f", size_bytes=-1)

    def test_bare_upload_time_is_utc(self) -> None:
        bare = EvidenceItem(
            evidence_id="ev-1", name="a.pdf", factory_id="f",
            uploaded_at="2024-05-01T10:00:00",
        )
        zulu = EvidenceItem(
            evidence_id="ev-2", name="b.pdf", factory_id="f",
            uploaded_at="2024-05-01T09:00:00Z",
        )
        assert bare.uploaded_at.tzinfo is not None
        assert bare.uploaded_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert sorted([bare, zulu], key=lambda item: item.uploaded_at)[0] is zulu

    def test_offset_upload_time_kept(self) -> None:
        item = EvidenceItem(
            evidence_id="ev-1", name="a.pdf", factory_id="f",
            uploaded_at="2024-05-01T12:00:00+02:00",
        )
        assert item.uploaded_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert item.uploaded_at.utcoffset() == timedelta(hours=2)


class TestRequirement:
    def test_frozen(self, requirement: Requirement) -> None:
        with pytest.raises(pydantic.ValidationError):
            requirement.category = "policy"


class TestLink:
    def test_create_copies_catalog_fields(
        self, evidence: EvidenceItem, requirement: Requirement
    ) -> None:
        attributes = LinkAttributes(
            link_type=LinkType.SUPPORTING,
            strength=2,
            tags=["drill"],
            priority=LinkPriority.HIGH,
        )
        link = Link.create(evidence, requirement, attributes, created_by="auditor-3")

        assert link.evidence_name == "fire-drill.mp4"
        assert link.requirement_code == "4.4.7"
        assert link.requirement_title == "Emergency preparedness"
        assert link.factory_id == "factory-7"
        assert link.link_type == LinkType.SUPPORTING
        assert link.strength == 2
        assert link.created_by_name == "auditor-3"
        assert link.verified is False

    def test_tags_not_shared_with_attributes(
        self, evidence: EvidenceItem, requirement: Requirement
    ) -> None:
        attributes = LinkAttributes(tags=["a"])
        link = Link.create(evidence, requirement, attributes, created_by="u")
        link.tags.append("b")
        assert attributes.tags == ["a"]

    def test_unique_ids(self, evidence: EvidenceItem, requirement: Requirement) -> None:
        first = Link.create(evidence, requirement, LinkAttributes(), created_by="u")
        second = Link.create(evidence, requirement, LinkAttributes(), created_by="u")
        assert first.link_id != second.link_id

    @pytest.mark.parametrize("strength", [0, 6])
    def test_strength_bounds(self, strength: int) -> None:
        with pytest.raises(pydantic.ValidationError):
            LinkAttributes(strength=strength)

    def test_attribute_defaults(self) -> None:
        attributes = LinkAttributes()
        assert attributes.link_type == LinkType.DIRECT
        assert attributes.strength == 3
        assert attributes.priority == LinkPriority.MEDIUM

    def test_bare_link_timestamps_are_utc(self) -> None:
        link = Link.model_validate({
            "evidence_id": "ev-1",
            "requirement_id": "req-1",
            "created_at": "2024-05-01T09:30:00",
            "verified": True,
            "verified_at": "2024-05-02T08:00:00",
        })
        assert link.created_at == datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
        assert link.verified_at == datetime(2024, 5, 2, 8, 0, tzinfo=timezone.utc)

    def test_parse_tags(self) -> None:
        assert LinkAttributes.parse_tags(" drill, ,annual ,") == ["drill", "annual"]


class TestBatchResult:
    def test_record_failure_classifies(self) -> None:
        result = BatchResult()
        result.record_failure("ev-1:req-9", NotFoundError("requirement", "req-9"))
        result.record_failure("ev-2:req-1", StoreError("disk full"))
        result.record_failure("ev-3:req-1", RuntimeError("boom"))

        assert result.failed_count == 3
        assert [f.error_type for f in result.failed] == ["not_found", "store_error", "RuntimeError"]
        assert result.failed_ids == ["ev-1:req-9", "ev-2:req-1", "ev-3:req-1"]
        assert result.failed[0].message == "requirement not found: req-9"

    def test_merge(self) -> None:
        first = BatchResult(succeeded=2, created_ids=["a", "b"])
        second = BatchResult(succeeded=1, created_ids=["c"])
        second.record_failure("x", StoreError("x"))

        merged = first.merge(second)
        assert merged.succeeded == 3
        assert merged.created_ids == ["a", "b", "c"]
        assert merged.failed_count == 1
