from __future__ import annotations

import logging
from dataclasses import dataclass

from domain.services.containment_graph import ContainmentGraph
from domain.services.geometry import strictly_contains

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingConfirmation:
    node_id: str
    container_id: str


class DragIntersectionGate:
    """Proposes a grouping when a top-level node is dropped onto a container.

    The gate never mutates the graph. A proposal stays pending until the user
    confirms or cancels it; only one proposal can be pending at a time.
    """

    def __init__(self) -> None:
        self._pending: PendingConfirmation | None = None

    @property
    def pending(self) -> PendingConfirmation | None:
        return self._pending

    @property
    def is_idle(self) -> bool:
        return self._pending is None

    def ensure_idle(self) -> None:
        if self._pending is not None:
            msg = (
                f"Grouping of {self._pending.node_id} into {self._pending.container_id} "
                "is still awaiting confirmation"
            )
            raise RuntimeError(msg)

    def on_drag_stop(self, graph: ContainmentGraph, node_id: str) -> PendingConfirmation | None:
        self.ensure_idle()
        node = graph.require(node_id)
        if node.parent_id is not None:
            return None

        reference = graph.absolute_position(node_id)
        excluded = graph.descendants_of(node_id) | {node_id}
        for container in graph.containers():
            if container.id in excluded:
                continue
            if strictly_contains(graph.bounds_of(container.id), reference):
                self._pending = PendingConfirmation(node_id=node_id, container_id=container.id)
                logger.debug("Proposing to group %s into %s", node_id, container.id)
                return self._pending
        return None

    def confirm(self) -> PendingConfirmation | None:
        pending, self._pending = self._pending, None
        return pending

    def cancel(self) -> PendingConfirmation | None:
        pending, self._pending = self._pending, None
        if pending is not None:
            logger.debug("Cancelled grouping of %s into %s", pending.node_id, pending.container_id)
        return pending

    def reset(self) -> None:
        self._pending = None
