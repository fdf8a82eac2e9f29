from __future__ import annotations

from typing import Any, List, Optional

from sitebuilder.core.models import ArtifactSnapshot, HistoryAction, HistoryEntry
from sitebuilder.core.state import BuilderState
from sitebuilder.utils.logging import get_logger

LOGGER = get_logger(__name__)


def capture_artifacts(state: BuilderState) -> ArtifactSnapshot:
    return ArtifactSnapshot(
        sitemap=state.sitemap.model_copy(deep=True) if state.sitemap else None,
        wireframes={k: v.model_copy(deep=True) for k, v in state.wireframes.items()},
        style_guide=state.style_guide.model_copy(deep=True) if state.style_guide else None,
    )


def restore_artifacts(state: BuilderState, snapshot: ArtifactSnapshot) -> None:
    # Copy again so later edits never leak back into the log
    state.sitemap = snapshot.sitemap.model_copy(deep=True) if snapshot.sitemap else None
    state.wireframes = {k: v.model_copy(deep=True) for k, v in snapshot.wireframes.items()}
    state.style_guide = snapshot.style_guide.model_copy(deep=True) if snapshot.style_guide else None


class HistoryLog:
    """Bounded, pointer-indexed log of semantic edits.

    The entries live on the ``BuilderState`` (``history`` / ``history_index``);
    this class owns every transition of those two fields.
    """

    def __init__(self, state: BuilderState, max_size: int = 50) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._state = state
        self.max_size = max_size

    @property
    def entries(self) -> List[HistoryEntry]:
        return self._state.history

    @property
    def index(self) -> int:
        return self._state.history_index

    @property
    def current(self) -> Optional[HistoryEntry]:
        if 0 <= self.index < len(self.entries):
            return self.entries[self.index]
        return None

    @property
    def can_undo(self) -> bool:
        return self.index > 0

    @property
    def can_redo(self) -> bool:
        return self.index < len(self.entries) - 1

    def add_entry(
        self,
        action: HistoryAction,
        description: str,
        data: Any = None,
        *,
        snapshot: Optional[ArtifactSnapshot] = None,
    ) -> HistoryEntry:
        state = self._state
        entry = HistoryEntry(action=action, description=description, data=data, snapshot=snapshot)

        # Drop the redo branch
        if state.history_index < len(state.history) - 1:
            dropped = len(state.history) - state.history_index - 1
            state.history = state.history[: state.history_index + 1]
            LOGGER.debug("Discarded %d redo entries", dropped)

        state.history.append(entry)
        state.history_index = len(state.history) - 1

        if len(state.history) > self.max_size:
            state.history = state.history[-self.max_size :]
            state.history_index = len(state.history) - 1

        return entry

    def undo(self) -> Optional[HistoryEntry]:
        if not self.can_undo:
            return None
        self._state.history_index -= 1
        return self.current

    def redo(self) -> Optional[HistoryEntry]:
        if not self.can_redo:
            return None
        self._state.history_index += 1
        return self.current

    def clear(self) -> None:
        self._state.history = []
        self._state.history_index = -1

    def visible_entries(self) -> List[HistoryEntry]:
        return self.entries[: self.index + 1]
