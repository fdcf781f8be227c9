"""
Dirty tracking for completed steps.
"""

import copy
from typing import Any, Dict, Iterable, Mapping, Optional


class DirtyTracker:
    """
    Field snapshots taken when a step first completes.

    A completed step is dirty when any tracked field differs (deep equality)
    from its snapshot. Steps that never completed are never dirty.
    """

    def __init__(
        self,
        tracked_fields: Mapping[str, Iterable[str]],
        snapshots: Optional[Dict[str, Dict[str, Any]]] = None
    ):
        """
        Args:
            tracked_fields: Step id -> names of the fields that mark it dirty
            snapshots: Existing snapshots to restore
        """
        self.tracked_fields = {step_id: tuple(names) for step_id, names in tracked_fields.items()}
        self._snapshots: Dict[str, Dict[str, Any]] = copy.deepcopy(snapshots or {})

    def has_snapshot(self, step_id: str) -> bool:
        return step_id in self._snapshots

    def snapshot(self, step_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._snapshots.get(step_id))

    def capture_snapshot(self, step_id: str, values: Mapping[str, Any]) -> bool:
        """
        Store the field values of a step that just completed.

        Does nothing when a snapshot already exists.

        Returns:
            True if a snapshot was stored
        """
        if step_id in self._snapshots:
            return False
        # Copied deeply so later edits to nested values cannot leak in
        self._snapshots[step_id] = copy.deepcopy(dict(values))
        return True

    def restore(self, step_id: str, values: Mapping[str, Any]) -> None:
        """Replace a step's snapshot with one loaded from storage."""
        self._snapshots[step_id] = copy.deepcopy(dict(values))

    def is_dirty(self, step_id: str, values: Mapping[str, Any], completed: bool) -> bool:
        """
        Whether a completed step's tracked fields diverge from its snapshot.

        Args:
            step_id: Step identifier
            values: Current field values
            completed: Whether the step is in completed_steps
        """
        if not completed:
            return False
        snapshot = self._snapshots.get(step_id)
        if snapshot is None:
            return False
        return any(
            snapshot.get(name) != values.get(name)
            for name in self.tracked_fields.get(step_id, ())
        )

    def clear(self, step_id: str) -> None:
        self._snapshots.pop(step_id, None)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._snapshots)

    @classmethod
    def from_dict(
        cls,
        data: Optional[Dict[str, Dict[str, Any]]],
        tracked_fields: Mapping[str, Iterable[str]]
    ) -> "DirtyTracker":
        return cls(tracked_fields, data or {})
