from __future__ import annotations

import logging
from dataclasses import dataclass, field

from domain.models import CanvasNode, Connection, Container
from domain.services.connection_set import ConnectionSet
from domain.services.containment_graph import ContainmentGraph
from domain.services.menu_index import MenuIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeleteOutcome:
    node: CanvasNode
    promoted: list[str] = field(default_factory=list)
    removed_connections: list[Connection] = field(default_factory=list)


class StructuralMutationEngine:
    """Grouping, ungrouping and cascading deletes over graph, connections and menu.

    Validation happens before the first write, so a rejected call leaves all
    three collaborators untouched.
    """

    def __init__(
        self,
        graph: ContainmentGraph,
        connections: ConnectionSet,
        menu: MenuIndex,
    ) -> None:
        self._graph = graph
        self._connections = connections
        self._menu = menu

    def group(self, node_id: str, container_id: str) -> CanvasNode:
        node = self._graph.set_parent(node_id, container_id)
        self._menu.relocate(node_id, container_id)
        return node

    def ungroup(self, node_id: str) -> CanvasNode:
        node = self._graph.require(node_id)
        if node.parent_id is None:
            return node
        node = self._graph.set_parent(node_id, None)
        self._menu.relocate(node_id, None)
        return node

    def delete_node(self, node_id: str) -> DeleteOutcome:
        node = self._graph.require(node_id)
        promoted: list[str] = []
        if isinstance(node, Container):
            # One level only: grandchildren stay with their own parent.
            for child_id in self._promotion_order(node):
                self._graph.set_parent(child_id, node.parent_id)
                promoted.append(child_id)
        removed = self._connections.remove_touching(node_id)
        self._graph.remove(node_id)
        self._menu.remove(node_id)
        logger.debug(
            "Deleted %s, promoted %d children, removed %d connections",
            node_id,
            len(promoted),
            len(removed),
        )
        return DeleteOutcome(node=node, promoted=promoted, removed_connections=removed)

    def _promotion_order(self, container: Container) -> list[str]:
        ordered = [
            child_id
            for child_id in self._menu.level(container.id)
            if child_id in container.children
        ]
        ordered.extend(sorted(container.children - set(ordered)))
        return ordered
