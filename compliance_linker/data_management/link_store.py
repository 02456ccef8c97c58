"""Link storage adapter: the many-to-many relation between evidence and requirements.

Features:
- In-memory storage with optional JSON persistence
- O(1) lookup by link_id
- Evidence and requirement indexes for status derivation and coverage
- Batched removal (per evidence, per requirement, per evidence x requirement)
- Lazy, restartable queries over current state
- Thread-safe operations with asyncio locks

Design constraints:
- Identical (evidence_id, requirement_id) pairs are stored as separate links
- Referential integrity to the catalogs is the caller's job; add() accepts
  any well-formed Link
- A batch removal or verification happens under one lock acquisition, so no
  reader observes it half-applied
- Only verification fields may be patched
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence

import pydantic
from loguru import logger

from compliance_linker.data_management.repositories import LinkPredicate
from compliance_linker.data_management.schemas import Link, as_utc
from compliance_linker.errors import NotFoundError, StoreError, ValidationError


# Fields update_link() may change
VERIFICATION_FIELDS = frozenset({"verified", "verified_at", "verified_by"})


class LinkStore:
    """
    Storage adapter for evidence-requirement links.

    For beta: Uses in-memory storage with optional JSON file persistence.
    For production: Would be replaced with the hosted document repository.

    Data structure:
    {
        "link_id": Link,
        ...
    }

    Indexes:
    - _evidence_index: evidence_id -> list[link_id]
    - _requirement_index: requirement_id -> list[link_id]
    """

    def __init__(self, persistence_path: Optional[str] = None):
        """
        Initialize link store.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
        """
        self._links: Dict[str, Link] = {}
        self._evidence_index: Dict[str, List[str]] = {}
        self._requirement_index: Dict[str, List[str]] = {}

        self._lock = asyncio.Lock()
        self.persistence_path = Path(persistence_path) if persistence_path else None
        self.logger = logger.bind(component="LinkStore")

        if self.persistence_path and self.persistence_path.exists():
            self._load_from_file()

        self.logger.info(
            "LinkStore initialized",
            persistence_enabled=self.persistence_path is not None
        )

    # ── Writes ────────────────────────────────────────────────────────────

    async def add(self, link: Link) -> str:
        """
        Insert a link.

        No uniqueness check: a second link for the same pair is a new link.

        Args:
            link: Link to store

        Returns:
            The stored link_id

        Raises:
            StoreError: If persistence fails (the link is not kept)
        """
        async with self._lock:
            if link.link_id in self._links:
                raise StoreError(f"Duplicate link_id: {link.link_id}", item_id=link.link_id)

            stored = link.model_copy(deep=True)
            self._links[stored.link_id] = stored
            self._index(stored)

            if self.persistence_path:
                try:
                    self._save_to_file()
                except StoreError:
                    self._unindex(stored)
                    del self._links[stored.link_id]
                    raise

            self.logger.debug(
                f"Saved link: {stored.link_id}",
                evidence_id=stored.evidence_id,
                requirement_id=stored.requirement_id,
            )
            return stored.link_id

    async def insert_link(self, link: Link) -> str:
        """Persistence adapter name for add()."""
        return await self.add(link)

    async def remove_for_evidence(self, evidence_id: str) -> int:
        """
        Remove every link of one evidence item.

        Returns:
            Number of links removed
        """
        async with self._lock:
            link_ids = list(self._evidence_index.get(evidence_id, []))
            return self._remove_ids(link_ids)

    async def remove_for_requirement(self, requirement_id: str) -> int:
        """
        Remove every link of one requirement (cascade on requirement deletion).

        Returns:
            Number of links removed
        """
        async with self._lock:
            link_ids = list(self._requirement_index.get(requirement_id, []))
            return self._remove_ids(link_ids)

    async def remove_for_pairs(
        self,
        requirement_ids: Iterable[str],
        evidence_ids: Iterable[str],
    ) -> int:
        """
        Batched removal over evidence x requirements.

        Removes links whose evidence is in evidence_ids and, when
        requirement_ids is non-empty, whose requirement is in requirement_ids.
        Applied under a single lock acquisition.

        Returns:
            Number of links removed
        """
        requirement_set = set(requirement_ids)
        evidence_set = set(evidence_ids)
        async with self._lock:
            link_ids = [
                link_id
                for evidence_id in evidence_set
                for link_id in self._evidence_index.get(evidence_id, [])
                if not requirement_set
                or self._links[link_id].requirement_id in requirement_set
            ]
            return self._remove_ids(link_ids)

    async def delete_links(self, link_ids: Sequence[str]) -> int:
        """
        Delete links by id. Unknown ids are ignored.

        Returns:
            Number of links deleted
        """
        async with self._lock:
            return self._remove_ids([lid for lid in link_ids if lid in self._links])

    async def update_link(self, link_id: str, patch: Dict[str, Any]) -> Link:
        """
        Apply a field patch to one link.

        Only verification fields are patchable; verification is monotonic
        (verified cannot go back to False).

        Raises:
            ValidationError: Unknown/forbidden patch key or un-verify attempt
            NotFoundError: Unknown link_id
            StoreError: Persistence failed (patch rolled back)
        """
        forbidden = set(patch) - VERIFICATION_FIELDS
        if forbidden:
            raise ValidationError(f"Fields not patchable: {sorted(forbidden)}")
        if patch.get("verified") is False:
            raise ValidationError("Verification cannot be revoked")

        async with self._lock:
            current = self._links.get(link_id)
            if current is None:
                raise NotFoundError("link", link_id)

            try:
                updated = Link.model_validate({**current.model_dump(), **patch})
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid patch for link {link_id}: {e}") from e

            self._links[link_id] = updated
            if self.persistence_path:
                try:
                    self._save_to_file()
                except StoreError:
                    self._links[link_id] = current
                    raise

            return updated.model_copy(deep=True)

    async def mark_verified(
        self,
        link_ids: Sequence[str],
        verified_by: str,
        verified_at: Optional[datetime] = None,
    ) -> List[str]:
        """
        Set verified=True on a batch of links.

        Links already verified keep their original verifier and timestamp.
        Unknown ids are skipped.

        Args:
            link_ids: Links to verify
            verified_by: Verifier identity
            verified_at: Verification time (defaults to now, UTC)

        Returns:
            Ids of links that exist and are now verified
        """
        stamp = as_utc(verified_at) if verified_at else datetime.now(timezone.utc)
        async with self._lock:
            previous: Dict[str, Link] = {}
            verified_ids: List[str] = []

            for link_id in link_ids:
                link = self._links.get(link_id)
                if link is None:
                    continue
                if not link.verified:
                    previous[link_id] = link.model_copy(deep=True)
                    link.verified = True
                    link.verified_at = stamp
                    link.verified_by = verified_by
                verified_ids.append(link_id)

            if previous and self.persistence_path:
                try:
                    self._save_to_file()
                except StoreError:
                    self._links.update(previous)
                    raise

            self.logger.info(
                "Marked links verified",
                requested=len(link_ids),
                newly_verified=len(previous),
            )
            return verified_ids

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get(self, link_id: str) -> Optional[Link]:
        """O(1) lookup by link_id."""
        async with self._lock:
            link = self._links.get(link_id)
            return link.model_copy(deep=True) if link else None

    async def query(self, predicate: Optional[LinkPredicate] = None) -> AsyncIterator[Link]:
        """
        Lazily iterate links matching a predicate.

        The store is read when iteration starts; every call re-reads current
        state, so a query can be restarted by calling it again.

        Args:
            predicate: Filter (None = all links)

        Yields:
            Copies of matching links in insertion order
        """
        async with self._lock:
            snapshot = list(self._links.values())
        for link in snapshot:
            if predicate is None or predicate(link):
                yield link.model_copy(deep=True)

    async def list_links(self, owner_scope: Optional[str] = None) -> List[Link]:
        """
        List links, newest first.

        Args:
            owner_scope: Factory id (None = all links)
        """
        async with self._lock:
            links = [
                link.model_copy(deep=True)
                for link in self._links.values()
                if owner_scope is None or link.factory_id == owner_scope
            ]
        return sorted(links, key=lambda link: link.created_at, reverse=True)

    async def snapshot(self) -> List[Link]:
        """Consistent copy of all links, for aggregation."""
        async with self._lock:
            return [link.model_copy(deep=True) for link in self._links.values()]

    async def links_for_evidence(self, evidence_id: str) -> List[Link]:
        async with self._lock:
            return [
                self._links[lid].model_copy(deep=True)
                for lid in self._evidence_index.get(evidence_id, [])
            ]

    async def links_for_requirement(self, requirement_id: str) -> List[Link]:
        async with self._lock:
            return [
                self._links[lid].model_copy(deep=True)
                for lid in self._requirement_index.get(requirement_id, [])
            ]

    async def count_for_evidence(self, evidence_id: str) -> int:
        """Number of links (not distinct requirements) for an evidence item."""
        async with self._lock:
            return len(self._evidence_index.get(evidence_id, []))

    async def count_for_requirement(self, requirement_id: str) -> int:
        async with self._lock:
            return len(self._requirement_index.get(requirement_id, []))

    async def evidence_link_counts(self) -> Dict[str, int]:
        """evidence_id -> link count, for every evidence item with links."""
        async with self._lock:
            return {eid: len(ids) for eid, ids in self._evidence_index.items()}

    async def get_stats(self) -> Dict[str, Any]:
        """
        Get storage statistics.

        Returns:
            Dictionary with statistics
        """
        async with self._lock:
            verified = sum(1 for link in self._links.values() if link.verified)
            return {
                "total_links": len(self._links),
                "verified_links": verified,
                "unverified_links": len(self._links) - verified,
                "linked_evidence": len(self._evidence_index),
                "linked_requirements": len(self._requirement_index),
                "persistence_enabled": self.persistence_path is not None,
                "persistence_path": str(self.persistence_path) if self.persistence_path else None
            }

    # ── Internals ─────────────────────────────────────────────────────────

    def _index(self, link: Link) -> None:
        self._evidence_index.setdefault(link.evidence_id, []).append(link.link_id)
        self._requirement_index.setdefault(link.requirement_id, []).append(link.link_id)

    def _unindex(self, link: Link) -> None:
        for index, key in (
            (self._evidence_index, link.evidence_id),
            (self._requirement_index, link.requirement_id),
        ):
            ids = [lid for lid in index.get(key, []) if lid != link.link_id]
            if ids:
                index[key] = ids
            else:
                index.pop(key, None)

    def _remove_ids(self, link_ids: List[str]) -> int:
        """Remove links by id. Caller holds the lock."""
        if not link_ids:
            return 0

        removed: Dict[str, Link] = {}
        for link_id in link_ids:
            link = self._links.pop(link_id, None)
            if link is None:
                continue
            self._unindex(link)
            removed[link_id] = link

        if removed and self.persistence_path:
            try:
                self._save_to_file()
            except StoreError:
                for link in removed.values():
                    self._links[link.link_id] = link
                    self._index(link)
                raise

        self.logger.info(f"Removed {len(removed)} links")
        return len(removed)

    def _save_to_file(self) -> None:
        """Save current storage to JSON file (synchronous).

        Raises:
            StoreError: If the file cannot be written
        """
        if not self.persistence_path:
            return

        try:
            self.persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data = {
                link_id: link.model_dump(mode="json")
                for link_id, link in self._links.items()
            }
            with open(self.persistence_path, 'w') as f:
                json.dump(data, f, indent=2, default=str)

            self.logger.debug(f"Persisted to {self.persistence_path}")

        except OSError as e:
            self.logger.error(f"Failed to persist to file: {e}")
            raise StoreError(f"Failed to persist links: {e}") from e

    def _load_from_file(self) -> None:
        """Load storage from JSON file and rebuild indexes (synchronous)."""
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            with open(self.persistence_path, 'r') as f:
                data = json.load(f)

            self._links = {
                link_id: Link.model_validate(raw)
                for link_id, raw in data.items()
            }
            self._rebuild_indexes()

            self.logger.info(
                f"Loaded from {self.persistence_path}",
                links=len(self._links)
            )

        except (OSError, ValueError) as e:
            self.logger.error(f"Failed to load from file: {e}", exc_info=True)
            self._links = {}
            self._evidence_index = {}
            self._requirement_index = {}

    def _rebuild_indexes(self) -> None:
        """Rebuild all indexes from storage (called after loading from file)."""
        self._evidence_index = {}
        self._requirement_index = {}
        for link in self._links.values():
            self._index(link)
