"""Link draft storage with owner-scoped persistence.

Follows the same patterns as LinkStore:
- O(1) lookup by draft_id
- Thread-safe operations with asyncio locks
- Optional JSON persistence

Drafts record a linking intent that has not been applied. They never count
towards link status or coverage.

Usage:
    store = DraftStore()
    draft_id = await store.save_draft(draft)
    drafts = await store.list_drafts("factory-7")
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

from compliance_linker.data_management.schemas import LinkDraft
from compliance_linker.errors import StoreError
from compliance_linker.utils.logging import get_structured_logger


class DraftStore:
    """Storage for link drafts.

    Data structure:
    {
        draft_id: LinkDraft,
        ...
    }
    """

    def __init__(self, persistence_path: Optional[str] = None) -> None:
        """Initialize DraftStore.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
        """
        self._drafts: dict[str, LinkDraft] = {}
        self._lock = asyncio.Lock()
        self._persistence_path = Path(persistence_path) if persistence_path else None
        self._logger = get_structured_logger("data_management.draft_store", component="DraftStore")

        if self._persistence_path and self._persistence_path.exists():
            self._load_from_file()

    async def save_draft(self, draft: LinkDraft) -> str:
        """Save (or overwrite) a draft.

        Args:
            draft: LinkDraft to store.

        Returns:
            The draft_id.
        """
        async with self._lock:
            self._drafts[draft.draft_id] = draft
            self._logger.debug(
                "draft_saved",
                draft_id=draft.draft_id,
                evidence_id=draft.evidence_id,
                requirements=len(draft.requirement_ids),
            )
            if self._persistence_path:
                self._save_to_file()
            return draft.draft_id

    async def get_draft(self, draft_id: str) -> Optional[LinkDraft]:
        async with self._lock:
            return self._drafts.get(draft_id)

    async def list_drafts(self, owner_scope: Optional[str] = None) -> list[LinkDraft]:
        """List drafts, newest first, optionally for one factory."""
        async with self._lock:
            drafts = [
                d for d in self._drafts.values()
                if owner_scope is None or d.factory_id == owner_scope
            ]
        return sorted(drafts, key=lambda d: d.created_at, reverse=True)

    async def delete_draft(self, draft_id: str) -> bool:
        """Delete a draft (after it was applied or discarded).

        Returns:
            True if deleted, False if not found.
        """
        async with self._lock:
            if self._drafts.pop(draft_id, None) is None:
                return False
            if self._persistence_path:
                self._save_to_file()
            return True

    def _save_to_file(self) -> None:
        """Save to JSON file (synchronous)."""
        if not self._persistence_path:
            return
        try:
            self._persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data: dict[str, Any] = {
                did: draft.model_dump(mode="json") for did, draft in self._drafts.items()
            }
            with open(self._persistence_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
        except OSError as e:
            self._logger.error("persistence_failed", error=str(e))
            raise StoreError(f"Failed to persist drafts: {e}") from e

    def _load_from_file(self) -> None:
        """Load drafts from JSON file (synchronous)."""
        try:
            with open(self._persistence_path, "r") as f:
                data = json.load(f)
            self._drafts = {did: LinkDraft.model_validate(raw) for did, raw in data.items()}
        except (OSError, ValueError) as e:
            self._logger.error("load_failed", error=str(e))
            self._drafts = {}
