"""Verification workflow: reviewer sign-off on existing links.

Verification sets the Link.verified flag together with who verified it and
when. It is one-way: a verified link is never un-verified, and verifying it
again keeps the original verifier and timestamp.

The Link.verified flag is unrelated to the "verified" derived status (a
link-count threshold); verifying links never changes an evidence item's
derived status.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from compliance_linker.data_management.repositories import IdentityProvider, LinkRepository
from compliance_linker.data_management.schemas import BatchResult, Link
from compliance_linker.errors import NotFoundError, StoreError
from compliance_linker.utils.logging import get_structured_logger


class VerificationWorkflow:
    """Marks links verified on behalf of the acting reviewer."""

    def __init__(self, link_store: LinkRepository, identity: IdentityProvider) -> None:
        self.link_store = link_store
        self.identity = identity
        self._logger = get_structured_logger("linking.verification", component="VerificationWorkflow")

    async def verify(
        self,
        link_ids: Iterable[str],
        verified_at: Optional[datetime] = None,
    ) -> BatchResult:
        """Verify a batch of links in one store write.

        Args:
            link_ids: Links to verify.
            verified_at: Verification time (defaults to now, UTC).

        Returns:
            BatchResult; succeeded = links now verified (including links that
            were verified already), failed = unknown link ids (not_found).
            If the store write fails every requested id is reported as
            store_error and no link changes.
        """
        link_ids = list(dict.fromkeys(link_ids))
        result = BatchResult()
        if not link_ids:
            return result

        try:
            verified = await self.link_store.mark_verified(
                link_ids,
                verified_by=self.identity.user_id,
                verified_at=verified_at or datetime.now(timezone.utc),
            )
        except StoreError as e:
            self._logger.error("verification_failed", links=len(link_ids), error=str(e))
            for link_id in link_ids:
                result.record_failure(link_id, e)
            return result

        verified_set = set(verified)
        for link_id in link_ids:
            if link_id in verified_set:
                result.succeeded += 1
                result.created_ids.append(link_id)
            else:
                result.record_failure(link_id, NotFoundError("link", link_id))

        self._logger.info(
            "links_verified",
            verified=result.succeeded,
            missing=result.failed_count,
            verified_by=self.identity.user_id,
        )
        return result

    async def find_unverified(self, owner_scope: Optional[str] = None) -> list[Link]:
        """Links awaiting review, in insertion order."""
        return [
            link
            async for link in self.link_store.query(
                lambda link: not link.verified
                and (owner_scope is None or link.factory_id == owner_scope)
            )
        ]

    async def verify_all_unverified(self, owner_scope: Optional[str] = None) -> BatchResult:
        """Verify every link still awaiting review."""
        pending = await self.find_unverified(owner_scope)
        return await self.verify(link.link_id for link in pending)
