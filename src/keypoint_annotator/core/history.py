"""
Bounded linear undo/redo history over annotation collections.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from .models import AnnotationCollection, clone_collection

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 50


@dataclass
class HistoryEntry:
    """One snapshot: a private deep copy of the collection plus its action label."""

    annotations: AnnotationCollection
    timestamp: float
    action: str


class UndoRedoManager:
    """
    Snapshot history with a movable cursor.

    Saving after an undo discards the redo branch. Every collection passed in
    or handed out is a deep copy, so stored snapshots never change when the
    live collection is edited.
    """

    def __init__(
        self,
        initial_annotations: Optional[AnnotationCollection] = None,
        max_history: int = DEFAULT_MAX_HISTORY,
    ):
        if max_history < 1:
            raise ValueError(f"max_history must be >= 1, got {max_history}")
        self.max_history = max_history
        self._history: List[HistoryEntry] = []
        self._current_index = -1
        self.save_state(initial_annotations or [], "Initial state")

    @property
    def current_index(self) -> int:
        return self._current_index

    def __len__(self) -> int:
        return len(self._history)

    def save_state(self, annotations: AnnotationCollection, action: str) -> None:
        """Record a new state after the cursor, evicting the oldest beyond the cap."""
        if self._current_index < len(self._history) - 1:
            del self._history[self._current_index + 1 :]

        self._history.append(
            HistoryEntry(
                annotations=clone_collection(annotations),
                timestamp=time.time(),
                action=action,
            )
        )
        self._current_index = len(self._history) - 1

        if len(self._history) > self.max_history:
            self._history.pop(0)
            self._current_index -= 1
        logger.debug(
            f"Saved state '{action}' ({self._current_index + 1}/{len(self._history)})"
        )

    def can_undo(self) -> bool:
        return self._current_index > 0

    def can_redo(self) -> bool:
        return self._current_index < len(self._history) - 1

    def undo(self) -> Optional[AnnotationCollection]:
        """Step back one state; None when already at the oldest entry."""
        if not self.can_undo():
            return None
        undone = self._history[self._current_index].action
        self._current_index -= 1
        logger.info(f"Undo: {undone}")
        return clone_collection(self._history[self._current_index].annotations)

    def redo(self) -> Optional[AnnotationCollection]:
        """Step forward one state; None when already at the newest entry."""
        if not self.can_redo():
            return None
        self._current_index += 1
        logger.info(f"Redo: {self._history[self._current_index].action}")
        return clone_collection(self._history[self._current_index].annotations)

    def current_state(self) -> AnnotationCollection:
        if 0 <= self._current_index < len(self._history):
            return clone_collection(self._history[self._current_index].annotations)
        return []

    def history_info(self) -> dict:
        return {
            "can_undo": self.can_undo(),
            "can_redo": self.can_redo(),
            "current_action": (
                self._history[self._current_index].action
                if self._current_index >= 0
                else "Initial state"
            ),
            "total_states": len(self._history),
        }

    def clear(self) -> None:
        self._history = []
        self._current_index = -1

    def reset(self, annotations: AnnotationCollection) -> None:
        """Drop all history and start over from `annotations`."""
        self.clear()
        self.save_state(annotations, "Reset")
