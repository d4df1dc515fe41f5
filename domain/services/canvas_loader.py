from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from domain.models import (
    MIN_CONTAINER_HEIGHT,
    MIN_CONTAINER_WIDTH,
    CanvasDocument,
    CanvasNode,
    Connection,
    ConnectionRecord,
    Container,
    ContainerRecord,
    Item,
    ItemRecord,
    NodeRecord,
    Point,
    PointRecord,
    Size,
)
from domain.services.geometry import to_absolute, to_local

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedCanvas:
    canvas_id: str
    nodes: list[CanvasNode]
    connections: list[Connection]
    repairs: list[str] = field(default_factory=list)


def normalise_document(document: CanvasDocument, min_size: Size | None = None) -> LoadedCanvas:
    """Turn a bulk payload into consistent graph records.

    A node's own ``parent_id`` wins over a container's ``children`` listing.
    Dangling parents, links that would close a cycle and connections with a
    missing endpoint are dropped and reported in ``repairs``.
    """
    min_size = min_size or Size(MIN_CONTAINER_WIDTH, MIN_CONTAINER_HEIGHT)
    repairs: list[str] = []
    records: dict[str, NodeRecord] = {}
    for record in [*document.containers, *document.items]:
        records[record.id] = record
    container_ids = {record.id for record in document.containers}

    parents = _resolve_parents(records, container_ids, document.containers, repairs)
    _break_cycles(records, parents, repairs)

    absolute_cache: dict[str, Point] = {}

    def absolute_of(node_id: str) -> Point:
        chain: list[str] = []
        current: str | None = node_id
        while current is not None and current not in absolute_cache:
            chain.append(current)
            if records[current].position_frame == "absolute":
                break
            current = parents[current]
        for pending_id in reversed(chain):
            record = records[pending_id]
            position = Point(record.position.x, record.position.y)
            parent_id = parents[pending_id]
            if record.position_frame == "relative" and parent_id is not None:
                position = to_absolute(position, absolute_cache[parent_id])
            absolute_cache[pending_id] = position
        return absolute_cache[node_id]

    children: dict[str, set[str]] = {container_id: set() for container_id in container_ids}
    for node_id, parent_id in parents.items():
        if parent_id is not None:
            children[parent_id].add(node_id)

    nodes: list[CanvasNode] = []
    for node_id, record in records.items():
        parent_id = parents[node_id]
        absolute = absolute_of(node_id)
        local = to_local(absolute, absolute_of(parent_id)) if parent_id is not None else absolute
        if isinstance(record, ContainerRecord):
            size = Size(record.width, record.height)
            clamped = size.clamped(min_size.width, min_size.height)
            if clamped != size:
                repairs.append(f"Container {node_id} enlarged to the minimum size")
            nodes.append(
                Container(
                    id=node_id,
                    label=record.label,
                    position=local,
                    size=clamped,
                    attributes=record.attributes,
                    parent_id=parent_id,
                    children=frozenset(children[node_id]),
                )
            )
        else:
            nodes.append(
                Item(
                    id=node_id,
                    label=record.label,
                    position=local,
                    attributes=record.attributes,
                    parent_id=parent_id,
                )
            )

    connections: list[Connection] = []
    for connection in document.connections:
        missing = [
            endpoint
            for endpoint in (connection.source_id, connection.target_id)
            if endpoint not in records
        ]
        if missing:
            repairs.append(f"Connection {connection.id} dropped: missing endpoint {missing[0]}")
            continue
        connections.append(
            Connection(
                id=connection.id,
                source_id=connection.source_id,
                target_id=connection.target_id,
                label=connection.label,
                source_anchor=connection.source_anchor,
                target_anchor=connection.target_anchor,
            )
        )

    for repair in repairs:
        logger.warning("Canvas %s: %s", document.canvas_id, repair)
    return LoadedCanvas(
        canvas_id=document.canvas_id,
        nodes=nodes,
        connections=connections,
        repairs=repairs,
    )


def node_record(node: CanvasNode) -> ItemRecord | ContainerRecord:
    common: dict[str, Any] = {
        "id": node.id,
        "label": node.label,
        "position": PointRecord(x=node.position.x, y=node.position.y),
        "parent_id": node.parent_id,
        "attributes": copy.deepcopy(dict(node.attributes)),
    }
    if isinstance(node, Container):
        return ContainerRecord(
            **common,
            width=node.size.width,
            height=node.size.height,
            children=sorted(node.children),
        )
    return ItemRecord(**common)


def connection_record(connection: Connection) -> ConnectionRecord:
    return ConnectionRecord(
        id=connection.id,
        source_id=connection.source_id,
        target_id=connection.target_id,
        label=connection.label,
        source_anchor=connection.source_anchor,
        target_anchor=connection.target_anchor,
    )


def build_document(
    canvas_id: str,
    nodes: Iterable[CanvasNode],
    connections: Iterable[Connection],
) -> CanvasDocument:
    items: list[ItemRecord] = []
    containers: list[ContainerRecord] = []
    for node in nodes:
        record = node_record(node)
        if isinstance(record, ContainerRecord):
            containers.append(record)
        else:
            items.append(record)
    return CanvasDocument(
        canvas_id=canvas_id,
        items=items,
        containers=containers,
        connections=[connection_record(connection) for connection in connections],
    )


def _resolve_parents(
    records: dict[str, NodeRecord],
    container_ids: set[str],
    containers: list[ContainerRecord],
    repairs: list[str],
) -> dict[str, str | None]:
    parents: dict[str, str | None] = {}
    explicit: set[str] = set()
    for node_id, record in records.items():
        parent_id = record.parent_id
        if parent_id is None:
            parents[node_id] = None
            continue
        if parent_id not in container_ids:
            repairs.append(f"Node {node_id} detached from missing container {parent_id}")
            parents[node_id] = None
            continue
        parents[node_id] = parent_id
        explicit.add(node_id)

    for container in containers:
        for child_id in container.children:
            if child_id not in records:
                repairs.append(f"Container {container.id} lists missing child {child_id}")
                continue
            current = parents.get(child_id)
            if current == container.id:
                continue
            if child_id in explicit or current is not None:
                repairs.append(
                    f"Container {container.id} lists {child_id} which belongs to {current}"
                )
                continue
            parents[child_id] = container.id
    return parents


def _break_cycles(
    records: dict[str, NodeRecord],
    parents: dict[str, str | None],
    repairs: list[str],
) -> None:
    for node_id in records:
        visited = {node_id}
        parent_id = parents[node_id]
        while parent_id is not None:
            if parent_id == node_id:
                repairs.append(f"Node {node_id} detached from {parents[node_id]} to break a cycle")
                parents[node_id] = None
                break
            if parent_id in visited:
                break
            visited.add(parent_id)
            parent_id = parents[parent_id]
