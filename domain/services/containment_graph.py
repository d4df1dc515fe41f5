from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from domain.errors import CycleError, NotFoundError
from domain.models import (
    MIN_CONTAINER_HEIGHT,
    MIN_CONTAINER_WIDTH,
    ORIGIN,
    Bounds,
    CanvasNode,
    Container,
    Item,
    Point,
    Size,
)
from domain.services.geometry import bounds_of, to_absolute, to_local

logger = logging.getLogger(__name__)


class ContainmentGraph:
    """Id-indexed arena of items and containers plus their parent links.

    Every stored position is local to the node's immediate parent, or absolute
    when the node is top-level. Records are immutable and replaced on change,
    so callers holding an old record never observe a mutation. A container's
    ``children`` set is the membership record; ``parent_id`` always mirrors it.
    """

    def __init__(self, *, min_size: Size | None = None) -> None:
        self._nodes: dict[str, CanvasNode] = {}
        self._min_size = min_size or Size(MIN_CONTAINER_WIDTH, MIN_CONTAINER_HEIGHT)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, node_id: str) -> CanvasNode | None:
        return self._nodes.get(node_id)

    def require(self, node_id: str) -> CanvasNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise NotFoundError("Node", node_id)
        return node

    def require_container(self, container_id: str) -> Container:
        node = self._nodes.get(container_id)
        if not isinstance(node, Container):
            raise NotFoundError("Container", container_id)
        return node

    def nodes(self) -> list[CanvasNode]:
        return list(self._nodes.values())

    def items(self) -> list[Item]:
        return [node for node in self._nodes.values() if isinstance(node, Item)]

    def containers(self) -> list[Container]:
        return [node for node in self._nodes.values() if isinstance(node, Container)]

    def children_of(self, node_id: str) -> frozenset[str]:
        node = self.require(node_id)
        return node.children if isinstance(node, Container) else frozenset()

    def roots(self) -> list[str]:
        return [node.id for node in self._nodes.values() if node.parent_id is None]

    def add_item(self, item: Item) -> Item:
        self._ensure_new(item.id)
        if item.parent_id is not None:
            self.require_container(item.parent_id)
        self._nodes[item.id] = item
        if item.parent_id is not None:
            self._link_child(item.parent_id, item.id)
        return item

    def add_container(self, container: Container) -> Container:
        self._ensure_new(container.id)
        if container.parent_id is not None:
            self.require_container(container.parent_id)
        container = replace(
            container,
            size=container.size.clamped(self._min_size.width, self._min_size.height),
            children=frozenset(),
        )
        self._nodes[container.id] = container
        if container.parent_id is not None:
            self._link_child(container.parent_id, container.id)
        return container

    def absolute_position(self, node_id: str) -> Point:
        node = self.require(node_id)
        position = node.position
        parent_id = node.parent_id
        while parent_id is not None:
            parent = self._nodes[parent_id]
            position = to_absolute(position, parent.position)
            parent_id = parent.parent_id
        return position

    def origin_of(self, parent_id: str | None) -> Point:
        if parent_id is None:
            return ORIGIN
        return self.absolute_position(parent_id)

    def bounds_of(self, container_id: str) -> Bounds:
        container = self.require_container(container_id)
        return bounds_of(self.absolute_position(container_id), container.size)

    def ancestors_of(self, node_id: str) -> list[str]:
        """Return ancestor ids ordered from the root down to the immediate parent."""
        chain: list[str] = []
        parent_id = self.require(node_id).parent_id
        while parent_id is not None:
            chain.append(parent_id)
            parent_id = self._nodes[parent_id].parent_id
        chain.reverse()
        return chain

    def descendants_of(self, node_id: str) -> set[str]:
        found: set[str] = set()
        stack = list(self.children_of(node_id))
        while stack:
            child_id = stack.pop()
            if child_id in found:
                continue
            found.add(child_id)
            stack.extend(self.children_of(child_id))
        return found

    def set_parent(self, node_id: str, new_parent_id: str | None) -> CanvasNode:
        node = self.require(node_id)
        if new_parent_id is not None:
            if new_parent_id == node_id:
                raise CycleError(node_id, new_parent_id)
            self.require_container(new_parent_id)
            if node_id in self.ancestors_of(new_parent_id):
                raise CycleError(node_id, new_parent_id)
        if node.parent_id == new_parent_id:
            return node

        absolute = self.absolute_position(node_id)
        local = to_local(absolute, self.origin_of(new_parent_id))
        if node.parent_id is not None:
            self._unlink_child(node.parent_id, node_id)
        if new_parent_id is not None:
            self._link_child(new_parent_id, node_id)
        updated = replace(self._nodes[node_id], position=local, parent_id=new_parent_id)
        self._nodes[node_id] = updated
        logger.debug("Re-parented %s from %s to %s", node_id, node.parent_id, new_parent_id)
        return updated

    def move_to(self, node_id: str, absolute_point: Point) -> CanvasNode:
        node = self.require(node_id)
        local = to_local(absolute_point, self.origin_of(node.parent_id))
        updated = replace(node, position=local)
        self._nodes[node_id] = updated
        return updated

    def rename(self, node_id: str, label: str) -> CanvasNode:
        updated = replace(self.require(node_id), label=label)
        self._nodes[node_id] = updated
        return updated

    def update_attributes(self, node_id: str, attributes: Mapping[str, Any]) -> CanvasNode:
        updated = replace(self.require(node_id), attributes=attributes)
        self._nodes[node_id] = updated
        return updated

    def resize(self, container_id: str, size: Size) -> Container:
        container = self.require_container(container_id)
        updated = replace(
            container, size=size.clamped(self._min_size.width, self._min_size.height)
        )
        self._nodes[container_id] = updated
        return updated

    def remove(self, node_id: str) -> CanvasNode:
        node = self.require(node_id)
        if isinstance(node, Container) and node.children:
            msg = f"Container {node_id} still has children"
            raise ValueError(msg)
        if node.parent_id is not None:
            self._unlink_child(node.parent_id, node_id)
        del self._nodes[node_id]
        return node

    def clamp_sizes(self) -> list[str]:
        changed: list[str] = []
        for container in self.containers():
            clamped = container.size.clamped(self._min_size.width, self._min_size.height)
            if clamped != container.size:
                self._nodes[container.id] = replace(container, size=clamped)
                changed.append(container.id)
        return changed

    def restore(self, nodes: Iterable[CanvasNode]) -> None:
        self._nodes = {node.id: node for node in nodes}

    def check_invariants(self) -> None:
        owners: dict[str, str] = {}
        for container in self.containers():
            for child_id in container.children:
                if child_id in owners:
                    msg = f"{child_id} is a child of both {owners[child_id]} and {container.id}"
                    raise ValueError(msg)
                owners[child_id] = container.id
                child = self._nodes.get(child_id)
                if child is None:
                    msg = f"{container.id} lists missing child {child_id}"
                    raise ValueError(msg)
                if child.parent_id != container.id:
                    msg = f"{child_id} is listed by {container.id} but points at {child.parent_id}"
                    raise ValueError(msg)
        for node in self._nodes.values():
            if node.parent_id is not None and owners.get(node.id) != node.parent_id:
                msg = f"{node.id} points at {node.parent_id} which does not list it"
                raise ValueError(msg)
        for node_id in self._nodes:
            seen = {node_id}
            parent_id = self._nodes[node_id].parent_id
            while parent_id is not None:
                if parent_id in seen:
                    msg = f"Containment cycle through {node_id}"
                    raise ValueError(msg)
                seen.add(parent_id)
                parent_id = self._nodes[parent_id].parent_id

    def _ensure_new(self, node_id: str) -> None:
        if node_id in self._nodes:
            msg = f"Duplicate node id: {node_id}"
            raise ValueError(msg)

    def _link_child(self, parent_id: str, child_id: str) -> None:
        parent = self.require_container(parent_id)
        self._nodes[parent_id] = replace(parent, children=parent.children | {child_id})

    def _unlink_child(self, parent_id: str, child_id: str) -> None:
        parent = self.require_container(parent_id)
        self._nodes[parent_id] = replace(parent, children=parent.children - {child_id})
