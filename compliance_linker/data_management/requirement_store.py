"""Requirement catalog: hierarchical reference data (standard -> category -> requirement).

Requirements are loaded once per session. A requirement may be reloaded
with an updated title, but never moved to a different standard or
category; such a record is rejected.

Indexes:
- _code_index: (standard, code) -> list[requirement_id] for auto-link matching.
  Several requirements may share a code within a standard; all of them are
  returned.
"""

from typing import Dict, List, Optional, Tuple

from compliance_linker.data_management.catalog_store import CatalogStore, SourceLoader
from compliance_linker.data_management.schemas import Requirement
from compliance_linker.errors import ValidationError


class RequirementStore(CatalogStore[Requirement]):
    """Catalog of Requirement records keyed by requirement_id."""

    kind = "requirement"

    def __init__(self, source_loader: Optional[SourceLoader] = None):
        super().__init__(Requirement, "requirement_id", source_loader=source_loader)
        self._code_index: Dict[Tuple[str, str], List[str]] = {}

    def _check_replace(self, existing: Requirement, incoming: Requirement) -> None:
        if (existing.standard, existing.category) != (incoming.standard, incoming.category):
            raise ValidationError(
                f"Requirement {existing.requirement_id} cannot move from "
                f"{existing.standard}/{existing.category} to "
                f"{incoming.standard}/{incoming.category}"
            )
        self._unindex(existing)

    def _index(self, item: Requirement) -> None:
        ids = self._code_index.setdefault((item.standard, item.code), [])
        if item.requirement_id not in ids:
            ids.append(item.requirement_id)

    def _unindex(self, item: Requirement) -> None:
        key = (item.standard, item.code)
        ids = self._code_index.get(key)
        if not ids:
            return
        self._code_index[key] = [rid for rid in ids if rid != item.requirement_id]
        if not self._code_index[key]:
            del self._code_index[key]

    async def list_requirements(self, owner_scope: Optional[str] = None) -> List[Requirement]:
        """
        List requirements ordered by standard, then category, then code.

        Args:
            owner_scope: Factory id (None = all loaded requirements)
        """
        items = await self.list_all(owner_scope)
        return sorted(items, key=lambda req: (req.standard, req.category, req.code))

    async def find_by_code(self, standard: str, code: str) -> List[Requirement]:
        """
        All requirements of a standard carrying the given code.

        O(1) index lookup. Ties are returned in load order.
        """
        async with self._lock:
            return [
                self._items[rid]
                for rid in self._code_index.get((standard, code), [])
                if rid in self._items
            ]

    async def standards(self) -> List[str]:
        """Distinct standards, sorted."""
        async with self._lock:
            return sorted({req.standard for req in self._items.values()})

    async def categories(self, standard: Optional[str] = None) -> List[str]:
        """Distinct categories, optionally within one standard, sorted."""
        async with self._lock:
            return sorted({
                req.category for req in self._items.values()
                if standard is None or req.standard == standard
            })
