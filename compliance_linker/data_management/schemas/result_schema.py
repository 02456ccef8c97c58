"""Aggregate results for batch operations.

Batch operations never abort on one item's failure. They complete as many
items as possible and summarise: how many succeeded, which ids were
created/affected, and which items failed with what error type.
"""

from pydantic import BaseModel, Field

from compliance_linker.errors import LinkingError


class FailedItem(BaseModel):
    """One failed item of a batch operation."""

    item_id: str = Field(..., description="Failing id, or 'evidence_id:requirement_id' for pairs")
    error_type: str = Field(..., description="not_found, store_error, ...")
    message: str = ""


class BatchResult(BaseModel):
    """Summary of a batch operation.

    Attributes:
        succeeded: Number of items completed (links created, links removed, links verified).
        created_ids: Ids of links created or affected.
        failed: Items that were skipped, with their error.
    """

    succeeded: int = 0
    created_ids: list[str] = Field(default_factory=list)
    failed: list[FailedItem] = Field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def failed_ids(self) -> list[str]:
        return [item.item_id for item in self.failed]

    def record_failure(self, item_id: str, error: Exception) -> None:
        """Append a failure, classifying engine errors by their error_type."""
        error_type = (
            error.error_type if isinstance(error, LinkingError) else type(error).__name__
        )
        self.failed.append(
            FailedItem(item_id=item_id, error_type=error_type, message=str(error))
        )

    def merge(self, other: "BatchResult") -> "BatchResult":
        """Combine two results into a new one."""
        return BatchResult(
            succeeded=self.succeeded + other.succeeded,
            created_ids=self.created_ids + other.created_ids,
            failed=self.failed + other.failed,
        )
