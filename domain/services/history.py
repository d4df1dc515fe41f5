from __future__ import annotations

import logging

from domain.models import GraphSnapshot

logger = logging.getLogger(__name__)


class HistoryEngine:
    """Linear undo/redo over whole-model snapshots.

    Recording after an undo cuts the redo branch. A snapshot equal to the one
    under the cursor is not recorded again.
    """

    def __init__(self, initial: GraphSnapshot | None = None, *, limit: int | None = None) -> None:
        if limit is not None and limit < 1:
            msg = "History limit must be at least 1"
            raise ValueError(msg)
        self._limit = limit
        self._snapshots: list[GraphSnapshot] = [initial] if initial is not None else []
        self._cursor = len(self._snapshots) - 1

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> GraphSnapshot | None:
        if self._cursor < 0:
            return None
        return self._snapshots[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._snapshots) - 1

    def record(self, snapshot: GraphSnapshot) -> bool:
        if self.current == snapshot:
            return False
        del self._snapshots[self._cursor + 1 :]
        self._snapshots.append(snapshot)
        if self._limit is not None and len(self._snapshots) > self._limit:
            dropped = len(self._snapshots) - self._limit
            del self._snapshots[:dropped]
            logger.debug("History limit reached, dropped %d oldest snapshots", dropped)
        self._cursor = len(self._snapshots) - 1
        return True

    def undo(self) -> GraphSnapshot | None:
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._snapshots[self._cursor]

    def redo(self) -> GraphSnapshot | None:
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._snapshots[self._cursor]

    def reset(self, snapshot: GraphSnapshot) -> None:
        self._snapshots = [snapshot]
        self._cursor = 0
