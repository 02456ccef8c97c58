"""Repository interfaces consumed by the linking engine.

The engine never references ambient collections. Each entity has an
explicit repository that is injected, exposes read-through queries and
supports explicit invalidation. LinkingEngine, StatusResolver,
CoverageCalculator, VerificationWorkflow and LinkingPipeline are typed
against these protocols; the in-memory stores in this package implement
them, and a hosted document database adapter only has to provide the same
methods.
"""

from datetime import datetime
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Iterable,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

from compliance_linker.data_management.schemas import EvidenceItem, Link, Requirement

LinkPredicate = Callable[[Link], bool]


@runtime_checkable
class EvidenceRepository(Protocol):
    """Evidence source. list_evidence is ordered by upload time, newest first."""

    async def load(
        self, records: Iterable[Any], owner_scope: Optional[str] = None
    ) -> dict[str, Any]: ...

    async def list_evidence(self, owner_scope: Optional[str] = None) -> list[EvidenceItem]: ...

    async def get(self, evidence_id: str) -> Optional[EvidenceItem]: ...

    async def require(self, evidence_id: str) -> EvidenceItem:
        """Like get, but raises NotFoundError for unknown ids."""
        ...

    async def remove(self, evidence_id: str) -> bool: ...

    async def invalidate(self, owner_scope: Optional[str] = None) -> None: ...


@runtime_checkable
class RequirementRepository(Protocol):
    """Requirement source. list_requirements is ordered by standard, then category."""

    async def load(
        self, records: Iterable[Any], owner_scope: Optional[str] = None
    ) -> dict[str, Any]: ...

    async def list_requirements(self, owner_scope: Optional[str] = None) -> list[Requirement]: ...

    async def get(self, requirement_id: str) -> Optional[Requirement]: ...

    async def require(self, requirement_id: str) -> Requirement: ...

    async def find_by_code(self, standard: str, code: str) -> list[Requirement]: ...

    async def remove(self, requirement_id: str) -> bool: ...

    async def invalidate(self, owner_scope: Optional[str] = None) -> None: ...


@runtime_checkable
class LinkRepository(Protocol):
    """Link persistence adapter.

    Counts are link counts, not distinct pairs. Removals return the number
    of links removed. mark_verified is monotonic and returns the ids that
    exist and are verified afterwards.
    """

    async def insert_link(self, link: Link) -> str: ...

    async def get(self, link_id: str) -> Optional[Link]: ...

    async def list_links(self, owner_scope: Optional[str] = None) -> list[Link]: ...

    async def snapshot(self) -> list[Link]: ...

    def query(self, predicate: Optional[LinkPredicate] = None) -> AsyncIterator[Link]: ...

    async def links_for_evidence(self, evidence_id: str) -> list[Link]: ...

    async def count_for_evidence(self, evidence_id: str) -> int: ...

    async def count_for_requirement(self, requirement_id: str) -> int: ...

    async def evidence_link_counts(self) -> dict[str, int]: ...

    async def delete_links(self, link_ids: Sequence[str]) -> int: ...

    async def remove_for_evidence(self, evidence_id: str) -> int: ...

    async def remove_for_requirement(self, requirement_id: str) -> int: ...

    async def remove_for_pairs(
        self, requirement_ids: Iterable[str], evidence_ids: Iterable[str]
    ) -> int: ...

    async def update_link(self, link_id: str, patch: dict[str, Any]) -> Link: ...

    async def mark_verified(
        self,
        link_ids: Sequence[str],
        verified_by: str,
        verified_at: Optional[datetime] = None,
    ) -> list[str]: ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Acting user. Values are opaque strings recorded on links."""

    @property
    def user_id(self) -> str: ...

    @property
    def display_name(self) -> str: ...


class StaticIdentityProvider:
    """Identity provider returning a fixed user, e.g. from settings or the CLI."""

    def __init__(self, user_id: str, display_name: Optional[str] = None) -> None:
        self._user_id = user_id
        self._display_name = display_name or user_id

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def display_name(self) -> str:
        return self._display_name
