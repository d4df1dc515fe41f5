from __future__ import annotations

from collections.abc import Sequence

from domain.models import Container, MenuEntry
from domain.services.containment_graph import ContainmentGraph


class MenuIndex:
    """Ordered, display-oriented projection of the containment graph.

    Entries keep the order in which they arrived at their level; moving an
    entry appends it to the end of its new level.
    """

    def __init__(self) -> None:
        self._levels: dict[str | None, list[str]] = {None: []}
        self._parent_of: dict[str, str | None] = {}

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._parent_of

    def level(self, parent_id: str | None) -> list[str]:
        return list(self._levels.get(parent_id, []))

    def add(self, node_id: str, parent_id: str | None = None) -> None:
        if node_id in self._parent_of:
            self.relocate(node_id, parent_id)
            return
        self._levels.setdefault(parent_id, []).append(node_id)
        self._parent_of[node_id] = parent_id

    def relocate(self, node_id: str, parent_id: str | None) -> None:
        if node_id not in self._parent_of:
            self.add(node_id, parent_id)
            return
        current = self._parent_of[node_id]
        if current == parent_id:
            return
        self._levels[current].remove(node_id)
        self._levels.setdefault(parent_id, []).append(node_id)
        self._parent_of[node_id] = parent_id

    def remove(self, node_id: str) -> None:
        """Drop an entry, lifting its children into the slot it occupied."""
        if node_id not in self._parent_of:
            return
        parent_id = self._parent_of.pop(node_id)
        siblings = self._levels[parent_id]
        index = siblings.index(node_id)
        lifted = self._levels.pop(node_id, [])
        siblings[index : index + 1] = lifted
        for child_id in lifted:
            self._parent_of[child_id] = parent_id

    def rebuild(self, graph: ContainmentGraph) -> None:
        self._levels = {None: []}
        self._parent_of = {}
        for node in graph.nodes():
            self.add(node.id, node.parent_id)

    def restore(self, entries: Sequence[MenuEntry]) -> None:
        self._levels = {None: []}
        self._parent_of = {}
        stack: list[tuple[str | None, Sequence[MenuEntry]]] = [(None, entries)]
        while stack:
            parent_id, level = stack.pop()
            for entry in level:
                self.add(entry.node_id, parent_id)
                if entry.children:
                    stack.append((entry.node_id, entry.children))

    def sync(self, graph: ContainmentGraph) -> bool:
        """Bring the index back in line with the graph; return whether anything moved."""
        changed = False
        for node_id in [node_id for node_id in self._parent_of if node_id not in graph]:
            self.remove(node_id)
            changed = True
        for node in graph.nodes():
            if self._parent_of.get(node.id, object()) != node.parent_id:
                self.relocate(node.id, node.parent_id)
                changed = True
        return changed

    def project(self, graph: ContainmentGraph) -> tuple[MenuEntry, ...]:
        return self._project_level(graph, None)

    def _project_level(
        self, graph: ContainmentGraph, parent_id: str | None
    ) -> tuple[MenuEntry, ...]:
        entries: list[MenuEntry] = []
        for node_id in self._levels.get(parent_id, []):
            node = graph.require(node_id)
            is_container = isinstance(node, Container)
            children = self._project_level(graph, node_id) if is_container else ()
            entries.append(
                MenuEntry(
                    node_id=node_id,
                    label=node.label,
                    is_container=is_container,
                    children=children,
                )
            )
        return tuple(entries)
