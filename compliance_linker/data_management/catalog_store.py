"""Base catalog store shared by the evidence and requirement catalogs.

Features:
- In-memory read-through cache in front of an optional async source loader
- Owner-scoped loading (factory_id) with explicit invalidation
- Shape validation at the loading boundary: records with unknown or missing
  fields are rejected (logged and counted), never trusted
- O(1) lookup by id
- Thread-safe operations with asyncio locks
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Generic, Iterable, List, Optional, Type, TypeVar, Union

import pydantic
from loguru import logger
from pydantic import BaseModel

from compliance_linker.errors import NotFoundError, ValidationError

T = TypeVar("T", bound=BaseModel)

SourceLoader = Callable[[str], Awaitable[Iterable[Union[Dict[str, Any], BaseModel]]]]


class CatalogStore(Generic[T]):
    """
    Read-only catalog of reference records keyed by id.

    Type Parameters:
        T: Pydantic record type managed by this catalog

    Data structure:
    {
        "record_id": T,
        ...
    }

    Owner scopes that have been pulled from the source loader are tracked in
    _loaded_scopes; invalidate() forgets them so the next read goes back to
    the source.
    """

    kind = "record"

    def __init__(
        self,
        model_class: Type[T],
        id_field: str,
        source_loader: Optional[SourceLoader] = None,
    ):
        """
        Initialize catalog store.

        Args:
            model_class: Pydantic model each record is validated against
            id_field: Name of the identity field on model_class
            source_loader: Optional async callable returning raw records for
                           an owner scope (the hosted repository)
        """
        self.model_class = model_class
        self.id_field = id_field
        self._source_loader = source_loader
        self._items: Dict[str, T] = {}
        self._loaded_scopes: set[str] = set()
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component=type(self).__name__)

    def _coerce(self, record: Union[Dict[str, Any], BaseModel]) -> T:
        """Validate a raw record into the catalog model."""
        if isinstance(record, self.model_class):
            return record
        if isinstance(record, BaseModel):
            record = record.model_dump()
        try:
            return self.model_class.model_validate(record)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Rejected {self.kind} record: {e.error_count()} validation error(s)"
            ) from e

    def _check_replace(self, existing: T, incoming: T) -> None:
        """Hook for subclasses to refuse replacing an existing record."""

    async def load(
        self,
        records: Iterable[Union[Dict[str, Any], BaseModel]],
        owner_scope: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Load records into the catalog.

        Malformed records are skipped and reported; the rest are stored.

        Args:
            records: Raw dicts or model instances
            owner_scope: Scope to mark as loaded (skips later read-through)

        Returns:
            Dictionary with load statistics:
            - loaded: Number of records stored
            - rejected: Number of records rejected
            - errors: Rejection messages
            - total: Records in the catalog after load
        """
        async with self._lock:
            loaded = 0
            errors: List[str] = []

            for index, record in enumerate(records):
                try:
                    item = self._coerce(record)
                    self._store(item)
                except ValidationError as e:
                    errors.append(f"#{index}: {e}")
                    self.logger.warning(f"Skipping {self.kind} record #{index}: {e}")
                    continue
                loaded += 1

            if owner_scope:
                self._loaded_scopes.add(owner_scope)

            stats = {
                "loaded": loaded,
                "rejected": len(errors),
                "errors": errors,
                "total": len(self._items),
            }
            self.logger.info(
                f"Loaded {self.kind} catalog",
                loaded=loaded,
                rejected=len(errors),
                total=len(self._items),
            )
            return stats

    async def add(self, record: Union[Dict[str, Any], BaseModel]) -> T:
        """
        Add a single record.

        Raises:
            ValidationError: If the record shape is invalid
        """
        item = self._coerce(record)
        async with self._lock:
            self._store(item)
        return item

    def _store(self, item: T) -> None:
        item_id = getattr(item, self.id_field)
        existing = self._items.get(item_id)
        if existing is not None:
            self._check_replace(existing, item)
        self._items[item_id] = item
        self._index(item)

    def _index(self, item: T) -> None:
        """Hook for subclasses maintaining secondary indexes."""

    def _unindex(self, item: T) -> None:
        """Hook for subclasses maintaining secondary indexes."""

    async def get(self, item_id: str) -> Optional[T]:
        """O(1) lookup by id. Returns None if not loaded."""
        async with self._lock:
            return self._items.get(item_id)

    async def require(self, item_id: str) -> T:
        """
        Lookup by id that fails loudly.

        Raises:
            NotFoundError: If no record with that id is loaded
        """
        item = await self.get(item_id)
        if item is None:
            raise NotFoundError(self.kind, item_id)
        return item

    async def contains(self, item_id: str) -> bool:
        async with self._lock:
            return item_id in self._items

    async def list_all(self, owner_scope: Optional[str] = None) -> List[T]:
        """
        List records, reading through to the source for unseen scopes.

        Args:
            owner_scope: Factory id to restrict to (None = everything loaded)

        Returns:
            Records in insertion order
        """
        if (
            owner_scope
            and self._source_loader is not None
            and owner_scope not in self._loaded_scopes
        ):
            records = await self._source_loader(owner_scope)
            await self.load(records, owner_scope=owner_scope)

        async with self._lock:
            items = list(self._items.values())
        if owner_scope:
            items = [item for item in items if getattr(item, "factory_id", None) == owner_scope]
        return items

    async def remove(self, item_id: str) -> bool:
        """
        Remove a record (external deletion).

        Returns:
            True if removed, False if not found
        """
        async with self._lock:
            item = self._items.pop(item_id, None)
            if item is None:
                return False
            self._unindex(item)
            self.logger.info(f"Removed {self.kind}: {item_id}")
            return True

    async def invalidate(self, owner_scope: Optional[str] = None) -> None:
        """
        Drop cached records so the next read goes back to the source.

        Args:
            owner_scope: Scope to drop (None = drop everything)
        """
        async with self._lock:
            if owner_scope is None:
                for item in self._items.values():
                    self._unindex(item)
                self._items = {}
                self._loaded_scopes = set()
            else:
                stale = [
                    item_id for item_id, item in self._items.items()
                    if getattr(item, "factory_id", None) == owner_scope
                ]
                for item_id in stale:
                    self._unindex(self._items.pop(item_id))
                self._loaded_scopes.discard(owner_scope)
            self.logger.debug(f"Invalidated {self.kind} catalog", owner_scope=owner_scope)

    async def count(self) -> int:
        async with self._lock:
            return len(self._items)
