"""Evidence catalog: uploaded evidence items for an owner scope.

Evidence is created by the upload workflow; the linking engine only reads
it. Removal here models an external deletion and must be followed by a
link cascade (see LinkingEngine.on_evidence_deleted).

Usage:
    store = EvidenceStore()
    await store.load(raw_records, owner_scope="factory-7")
    items = await store.list_evidence("factory-7")
"""

from typing import List, Optional

from compliance_linker.data_management.catalog_store import CatalogStore, SourceLoader
from compliance_linker.data_management.schemas import EvidenceItem


class EvidenceStore(CatalogStore[EvidenceItem]):
    """Catalog of EvidenceItem records keyed by evidence_id."""

    kind = "evidence"

    def __init__(self, source_loader: Optional[SourceLoader] = None):
        super().__init__(EvidenceItem, "evidence_id", source_loader=source_loader)

    async def list_evidence(self, owner_scope: Optional[str] = None) -> List[EvidenceItem]:
        """
        List evidence items, newest upload first.

        Args:
            owner_scope: Factory id (None = all loaded evidence)

        Returns:
            EvidenceItem list ordered by uploaded_at descending
        """
        items = await self.list_all(owner_scope)
        return sorted(items, key=lambda item: item.uploaded_at, reverse=True)

    async def list_declaring(self, owner_scope: Optional[str] = None) -> List[EvidenceItem]:
        """Evidence items that declare both a standard and a requirement code."""
        return [item for item in await self.list_evidence(owner_scope) if item.declares_requirement]
