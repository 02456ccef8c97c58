"""Error taxonomy for the linking engine.

Single-item operations raise these directly. Batch operations (bulk link,
auto-link, bulk verify, bulk clear) catch them per item and report them in a
BatchResult instead of aborting.
"""

from typing import Optional


class LinkingError(Exception):
    """Base class for linking engine errors."""

    error_type = "linking_error"


class ValidationError(LinkingError, ValueError):
    """Caller supplied invalid input (empty selection, malformed record, bad patch).

    Raised before any side effect.
    """

    error_type = "validation_error"


class NotFoundError(LinkingError, LookupError):
    """A referenced evidence, requirement or link id is not loaded."""

    error_type = "not_found"

    def __init__(self, kind: str, item_id: str) -> None:
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind} not found: {item_id}")


class StoreError(LinkingError):
    """The persistence adapter failed for one operation."""

    error_type = "store_error"

    def __init__(self, message: str, item_id: Optional[str] = None) -> None:
        self.item_id = item_id
        super().__init__(message)
