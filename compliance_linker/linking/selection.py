"""Selection manager: the operator's current working set.

Tracks selected evidence ids and selected requirement ids for bulk linking.
The selection is process-local, never persisted, and never shared between
sessions. It is cleared explicitly or when a bulk operation completes.

Every mutation notifies registered listeners (the workspace re-render hook).
Listeners receive the manager itself; the notification carries no data
contract beyond that.
"""

from typing import Callable, Iterable

from compliance_linker.utils.logging import get_structured_logger

SelectionListener = Callable[["SelectionManager"], None]


class SelectionManager:
    """Two independent id sets plus change notification."""

    def __init__(self) -> None:
        self._evidence: set[str] = set()
        self._requirements: set[str] = set()
        self._listeners: list[SelectionListener] = []
        self._logger = get_structured_logger("linking.selection", component="SelectionManager")

    def add_listener(self, listener: SelectionListener) -> None:
        """Register a callback invoked after every mutation."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SelectionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                # A broken re-render hook must not corrupt selection state
                self._logger.error("selection_listener_failed", error=str(e))

    def toggle_evidence(self, evidence_id: str, selected: bool) -> None:
        if selected:
            self._evidence.add(evidence_id)
        else:
            self._evidence.discard(evidence_id)
        self._notify()

    def toggle_requirement(self, requirement_id: str, selected: bool) -> None:
        if selected:
            self._requirements.add(requirement_id)
        else:
            self._requirements.discard(requirement_id)
        self._notify()

    def select_all_visible(self, evidence_ids: Iterable[str]) -> None:
        """Add every currently visible evidence id to the selection."""
        self._evidence.update(evidence_ids)
        self._notify()

    def clear(self) -> None:
        """Drop both sets."""
        self._evidence.clear()
        self._requirements.clear()
        self._notify()

    @property
    def evidence_ids(self) -> frozenset[str]:
        return frozenset(self._evidence)

    @property
    def requirement_ids(self) -> frozenset[str]:
        return frozenset(self._requirements)

    @property
    def evidence_count(self) -> int:
        return len(self._evidence)

    @property
    def requirement_count(self) -> int:
        return len(self._requirements)

    @property
    def potential_link_count(self) -> int:
        """Links a bulk link over the current selection would create."""
        return self.evidence_count * self.requirement_count

    @property
    def is_empty(self) -> bool:
        return not self._evidence and not self._requirements

    def exceeds_threshold(self, limit: int) -> bool:
        """True when a bulk link should be confirmed first. Not enforced."""
        return self.potential_link_count > limit
