"""Shared workspace fixtures for linking tests.

Catalog (factory-7):
    iso_9001: R1 (policy, 5.2), R2 (policy, 5.3), R3 (record, 7.5)
    sa_8000:  R4 (policy, 5.2)
    E1: no declared requirement
    E2: declares iso_9001 / 7.5 (matches R3)
    E3: declares iso_9001 / 9.9 (no match)
    E4: declares iso_9001 only
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from compliance_linker.data_management.draft_store import DraftStore
from compliance_linker.data_management.evidence_store import EvidenceStore
from compliance_linker.data_management.link_store import LinkStore
from compliance_linker.data_management.repositories import StaticIdentityProvider
from compliance_linker.data_management.requirement_store import RequirementStore
from compliance_linker.linking.engine import LinkingEngine
from compliance_linker.linking.locks import EvidenceLockRegistry
from compliance_linker.linking.selection import SelectionManager

FACTORY = "factory-7"
BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

REQUIREMENTS = [
    {"requirement_id": "R1", "standard": "iso_9001", "category": "policy", "code": "5.2",
     "title": "Quality policy", "factory_id": FACTORY},
    {"requirement_id": "R2", "standard": "iso_9001", "category": "policy", "code": "5.3",
     "title": "Roles and responsibilities", "factory_id": FACTORY},
    {"requirement_id": "R3", "standard": "iso_9001", "category": "record", "code": "7.5",
     "title": "Documented information", "factory_id": FACTORY},
    {"requirement_id": "R4", "standard": "sa_8000", "category": "policy", "code": "5.2",
     "title": "Social policy", "factory_id": FACTORY},
]

EVIDENCE = [
    {"evidence_id": "E1", "name": "quality-manual.pdf", "size_bytes": 2048,
     "uploaded_at": BASE_TIME.isoformat(), "factory_id": FACTORY},
    {"evidence_id": "E2", "name": "records-index.xlsx", "standard": "iso_9001",
     "requirement_code": "7.5", "uploaded_at": (BASE_TIME + timedelta(hours=1)).isoformat(),
     "factory_id": FACTORY},
    {"evidence_id": "E3", "name": "audit-photo.jpg", "standard": "iso_9001",
     "requirement_code": "9.9", "uploaded_at": (BASE_TIME + timedelta(hours=2)).isoformat(),
     "factory_id": FACTORY},
    {"evidence_id": "E4", "name": "drill.mp4", "standard": "iso_9001",
     "uploaded_at": (BASE_TIME + timedelta(hours=3)).isoformat(), "factory_id": FACTORY},
]


@dataclass
class Workspace:
    evidence_store: EvidenceStore
    requirement_store: RequirementStore
    link_store: LinkStore
    selection: SelectionManager
    engine: LinkingEngine


@pytest.fixture
def identity() -> StaticIdentityProvider:
    return StaticIdentityProvider("auditor-3", "Dana Auditor")


@pytest_asyncio.fixture
async def workspace(identity: StaticIdentityProvider) -> Workspace:
    evidence_store = EvidenceStore()
    requirement_store = RequirementStore()
    link_store = LinkStore()
    selection = SelectionManager()

    await evidence_store.load(EVIDENCE, owner_scope=FACTORY)
    await requirement_store.load(REQUIREMENTS, owner_scope=FACTORY)

    engine = LinkingEngine(
        evidence_store=evidence_store,
        requirement_store=requirement_store,
        link_store=link_store,
        identity=identity,
        selection=selection,
        draft_store=DraftStore(),
        max_concurrent_writes=3,
        evidence_locks=EvidenceLockRegistry(enabled=True),
    )
    return Workspace(evidence_store, requirement_store, link_store, selection, engine)
