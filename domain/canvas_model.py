from __future__ import annotations

import logging
import random
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from domain.errors import RemoteSyncError
from domain.models import (
    MIN_CONTAINER_HEIGHT,
    MIN_CONTAINER_WIDTH,
    Bounds,
    CanvasDocument,
    CanvasNode,
    CanvasNodeView,
    CanvasView,
    Connection,
    Container,
    GraphSnapshot,
    Item,
    Point,
    Size,
)
from domain.ports.persistence import CanvasStore
from domain.services.canvas_loader import LoadedCanvas, build_document, normalise_document
from domain.services.connection_set import ConnectionSet
from domain.services.containment_graph import ContainmentGraph
from domain.services.drag_gate import DragIntersectionGate, PendingConfirmation
from domain.services.geometry import centre_of, to_local
from domain.services.history import HistoryEngine
from domain.services.menu_index import MenuIndex
from domain.services.structural_mutations import DeleteOutcome, StructuralMutationEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")

Notifier = Callable[[str], None]


@dataclass(frozen=True)
class CanvasModelConfig:
    min_container_size: Size = field(
        default_factory=lambda: Size(MIN_CONTAINER_WIDTH, MIN_CONTAINER_HEIGHT)
    )
    default_container_size: Size = field(
        default_factory=lambda: Size(MIN_CONTAINER_WIDTH, MIN_CONTAINER_HEIGHT)
    )
    placement_area: Size = field(default_factory=lambda: Size(500.0, 300.0))
    history_limit: int | None = None


class CanvasModel:
    """Hierarchical diagram model with drag grouping, remote sync and undo/redo.

    Every successful mutation records one history snapshot. When a store is
    attached, the matching remote call runs after the local change; if it
    raises ``RemoteSyncError`` the model returns to its state before the call,
    notifies the user and re-raises.
    """

    def __init__(
        self,
        document: CanvasDocument | None = None,
        *,
        store: CanvasStore | None = None,
        config: CanvasModelConfig | None = None,
        notifier: Notifier | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config or CanvasModelConfig()
        self._store = store
        self._notifier = notifier
        self._rng = rng or random.Random()
        self._graph = ContainmentGraph(min_size=self._config.min_container_size)
        self._connections = ConnectionSet(lambda node_id: node_id in self._graph)
        self._menu = MenuIndex()
        self._mutations = StructuralMutationEngine(self._graph, self._connections, self._menu)
        self._gate = DragIntersectionGate()
        self._history = HistoryEngine(limit=self._config.history_limit)
        self._canvas_id = "default"
        self._selected_id: str | None = None
        self._needs_reconcile = False
        self.load(document or CanvasDocument())

    @classmethod
    def from_store(
        cls,
        store: CanvasStore,
        canvas_id: str,
        **kwargs: Any,
    ) -> CanvasModel:
        return cls(store.load_canvas(canvas_id), store=store, **kwargs)

    @property
    def canvas_id(self) -> str:
        return self._canvas_id

    @property
    def graph(self) -> ContainmentGraph:
        return self._graph

    @property
    def connections(self) -> ConnectionSet:
        return self._connections

    @property
    def history(self) -> HistoryEngine:
        return self._history

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def pending_grouping(self) -> PendingConfirmation | None:
        return self._gate.pending

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    @property
    def needs_reconcile(self) -> bool:
        return self._needs_reconcile

    def load(self, document: CanvasDocument) -> LoadedCanvas:
        loaded = normalise_document(document, self._config.min_container_size)
        self._canvas_id = loaded.canvas_id
        self._graph.restore(loaded.nodes)
        self._graph.check_invariants()
        self._connections.restore(loaded.connections)
        self._menu.rebuild(self._graph)
        self._gate.reset()
        self._selected_id = None
        self._needs_reconcile = False
        self._history.reset(self.snapshot())
        logger.info(
            "Loaded canvas %s with %d nodes and %d connections",
            loaded.canvas_id,
            len(loaded.nodes),
            len(loaded.connections),
        )
        return loaded

    def to_document(self) -> CanvasDocument:
        return build_document(self._canvas_id, self._graph.nodes(), self._connections.all())

    def save(self) -> None:
        if self._store is None:
            msg = "No canvas store attached"
            raise RuntimeError(msg)
        self._store.save_canvas(self.to_document())

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            items={item.id: item for item in self._graph.items()},
            containers={container.id: container for container in self._graph.containers()},
            connections={connection.id: connection for connection in self._connections.all()},
            menu_index=self._menu.project(self._graph),
        )

    def absolute_position(self, node_id: str) -> Point:
        return self._graph.absolute_position(node_id)

    def view(self) -> CanvasView:
        nodes: list[CanvasNodeView] = []
        for node in self._graph.nodes():
            is_container = isinstance(node, Container)
            nodes.append(
                CanvasNodeView(
                    id=node.id,
                    kind="container" if is_container else "item",
                    label=node.label,
                    position=self._graph.absolute_position(node.id),
                    parent_id=node.parent_id,
                    attributes=node.attributes,
                    size=node.size if isinstance(node, Container) else None,
                )
            )
        return CanvasView(
            nodes=nodes,
            connections=self._connections.all(),
            selected_id=self._selected_id,
        )

    def select(self, node_id: str | None) -> None:
        if node_id is not None:
            self._graph.require(node_id)
        self._selected_id = node_id

    def create_item(
        self,
        label: str,
        *,
        position: Point | None = None,
        viewport: Bounds | None = None,
        attributes: Mapping[str, Any] | None = None,
        parent_id: str | None = None,
        node_id: str | None = None,
    ) -> Item:
        absolute = self._placement(position, viewport)

        def mutate() -> Item:
            origin = self._graph.origin_of(parent_id)
            item = self._graph.add_item(
                Item(
                    id=node_id or f"node-{uuid.uuid4().hex[:12]}",
                    label=label,
                    position=to_local(absolute, origin),
                    attributes=attributes or {},
                    parent_id=parent_id,
                )
            )
            self._menu.add(item.id, parent_id)
            return item

        return self._apply("Create item", mutate, lambda store, item: store.create_item(item))

    def create_container(
        self,
        label: str,
        *,
        position: Point | None = None,
        size: Size | None = None,
        viewport: Bounds | None = None,
        attributes: Mapping[str, Any] | None = None,
        parent_id: str | None = None,
        node_id: str | None = None,
    ) -> Container:
        absolute = self._placement(position, viewport)

        def mutate() -> Container:
            origin = self._graph.origin_of(parent_id)
            container = self._graph.add_container(
                Container(
                    id=node_id or f"group-{uuid.uuid4().hex[:12]}",
                    label=label,
                    position=to_local(absolute, origin),
                    size=size or self._config.default_container_size,
                    attributes=attributes or {},
                    parent_id=parent_id,
                )
            )
            self._menu.add(container.id, parent_id)
            self._needs_reconcile = True
            return container

        return self._apply(
            "Create container",
            mutate,
            lambda store, container: store.create_container(container),
        )

    def update_item(
        self,
        node_id: str,
        *,
        label: str | None = None,
        attributes: Mapping[str, Any] | None = None,
    ) -> CanvasNode:
        """Apply an edit-form submission; the selection is cleared afterwards."""

        def mutate() -> CanvasNode:
            node = self._graph.require(node_id)
            if label is not None:
                node = self._graph.rename(node_id, label)
            if attributes is not None:
                node = self._graph.update_attributes(node_id, attributes)
            return node

        node = self._apply("Update node", mutate, _sync_node)
        self._selected_id = None
        return node

    def rename(self, node_id: str, label: str) -> CanvasNode:
        return self.update_item(node_id, label=label)

    def resize_container(self, container_id: str, width: float, height: float) -> Container:
        def mutate() -> Container:
            container = self._graph.resize(container_id, Size(width, height))
            self._needs_reconcile = True
            return container

        return self._apply(
            "Resize container",
            mutate,
            lambda store, container: store.update_container(container),
        )

    def drag_stop(self, node_id: str, absolute_position: Point) -> PendingConfirmation | None:
        """Apply a finished drag and propose a grouping for top-level nodes."""
        self._gate.ensure_idle()
        self._apply(
            "Move node",
            lambda: self._graph.move_to(node_id, absolute_position),
            _sync_node,
        )
        return self._gate.on_drag_stop(self._graph, node_id)

    def confirm_grouping(self) -> CanvasNode | None:
        pending = self._gate.confirm()
        if pending is None:
            return None
        return self.group(pending.node_id, pending.container_id)

    def cancel_grouping(self) -> PendingConfirmation | None:
        return self._gate.cancel()

    def group(self, node_id: str, container_id: str) -> CanvasNode:
        def mutate() -> CanvasNode:
            node = self._mutations.group(node_id, container_id)
            self._needs_reconcile = True
            return node

        return self._apply(
            "Group node",
            mutate,
            lambda store, node: store.set_parent(node.id, node.parent_id, node.position),
        )

    def ungroup(self, node_id: str) -> CanvasNode:
        def mutate() -> CanvasNode:
            node = self._mutations.ungroup(node_id)
            self._needs_reconcile = True
            return node

        return self._apply(
            "Ungroup node",
            mutate,
            lambda store, node: store.set_parent(node.id, None, node.position),
        )

    def delete_node(self, node_id: str) -> DeleteOutcome:
        def mutate() -> DeleteOutcome:
            outcome = self._mutations.delete_node(node_id)
            pending = self._gate.pending
            if pending is not None and node_id in (pending.node_id, pending.container_id):
                self._gate.reset()
            if self._selected_id == node_id:
                self._selected_id = None
            self._needs_reconcile = True
            return outcome

        def sync(store: CanvasStore, outcome: DeleteOutcome) -> None:
            for connection in outcome.removed_connections:
                store.delete_connection(connection.id)
            for child_id in outcome.promoted:
                child = self._graph.require(child_id)
                store.set_parent(child_id, child.parent_id, child.position)
            if isinstance(outcome.node, Container):
                store.delete_container(outcome.node.id)
            else:
                store.delete_item(outcome.node.id)

        return self._apply("Delete node", mutate, sync)

    def connect(
        self,
        source_id: str,
        target_id: str,
        *,
        source_anchor: str | None = None,
        target_anchor: str | None = None,
        label: str = "",
        connection_id: str | None = None,
    ) -> Connection:
        return self._apply(
            "Connect",
            lambda: self._connections.connect(
                source_id,
                target_id,
                source_anchor=source_anchor,
                target_anchor=target_anchor,
                label=label,
                connection_id=connection_id,
            ),
            lambda store, connection: store.create_connection(connection),
        )

    def update_connection_label(self, connection_id: str, label: str) -> Connection:
        return self._apply(
            "Update connection",
            lambda: self._connections.update_label(connection_id, label),
            lambda store, connection: store.update_connection(connection),
        )

    def delete_connection(self, connection_id: str) -> Connection:
        return self._apply(
            "Delete connection",
            lambda: self._connections.delete(connection_id),
            lambda store, connection: store.delete_connection(connection.id),
        )

    def undo(self) -> bool:
        return self._travel(self._history.undo, self._history.redo, "Undo")

    def redo(self) -> bool:
        return self._travel(self._history.redo, self._history.undo, "Redo")

    def reconcile(self) -> bool:
        """Idempotent consistency pass run after layout or structural batches.

        Never records history.
        """
        changed = bool(self._graph.clamp_sizes())
        changed = self._menu.sync(self._graph) or changed
        if self._selected_id is not None and self._selected_id not in self._graph:
            self._selected_id = None
        self._graph.check_invariants()
        self._needs_reconcile = False
        return changed

    def _apply(
        self,
        description: str,
        mutate: Callable[[], T],
        sync: Callable[[CanvasStore, T], None],
    ) -> T:
        before = self.snapshot()
        result = mutate()
        after = self.snapshot()
        if after == before:
            return result
        if self._store is not None:
            try:
                sync(self._store, result)
            except RemoteSyncError as exc:
                self._restore(before)
                self._report_sync_failure(description, exc)
                raise
        self._history.record(after)
        logger.debug("%s applied on canvas %s", description, self._canvas_id)
        return result

    def _travel(
        self,
        step: Callable[[], GraphSnapshot | None],
        step_back: Callable[[], GraphSnapshot | None],
        description: str,
    ) -> bool:
        before = self.snapshot()
        target = step()
        if target is None:
            return False
        self._gate.reset()
        self._restore(target)
        if self._store is not None:
            try:
                self._store.save_canvas(self.to_document())
            except RemoteSyncError as exc:
                step_back()
                self._restore(before)
                self._report_sync_failure(description, exc)
                raise
        return True

    def _restore(self, snapshot: GraphSnapshot) -> None:
        self._graph.restore([*snapshot.containers.values(), *snapshot.items.values()])
        self._connections.restore(snapshot.connections.values())
        self._menu.restore(snapshot.menu_index)
        if self._selected_id is not None and self._selected_id not in self._graph:
            self._selected_id = None
        self._needs_reconcile = True

    def _report_sync_failure(self, description: str, exc: RemoteSyncError) -> None:
        message = f"{description} could not be saved and was reverted: {exc}"
        logger.warning(message)
        if self._notifier is not None:
            self._notifier(message)

    def _placement(self, position: Point | None, viewport: Bounds | None) -> Point:
        if position is not None:
            return position
        if viewport is not None:
            return centre_of(viewport)
        area = self._config.placement_area
        return Point(self._rng.random() * area.width, self._rng.random() * area.height)


def _sync_node(store: CanvasStore, node: CanvasNode) -> None:
    if isinstance(node, Container):
        store.update_container(node)
    else:
        store.update_item(node)
