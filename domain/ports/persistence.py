from __future__ import annotations

from pathlib import Path
from typing import Protocol

from domain.models import CanvasDocument, Connection, Container, Item, Point


class CanvasStore(Protocol):
    """Remote persistence collaborator. Failures raise ``RemoteSyncError``."""

    def load_canvas(self, canvas_id: str) -> CanvasDocument: ...

    def save_canvas(self, document: CanvasDocument) -> None: ...

    def create_item(self, item: Item) -> None: ...

    def update_item(self, item: Item) -> None: ...

    def delete_item(self, item_id: str) -> None: ...

    def create_container(self, container: Container) -> None: ...

    def update_container(self, container: Container) -> None: ...

    def delete_container(self, container_id: str) -> None: ...

    def create_connection(self, connection: Connection) -> None: ...

    def update_connection(self, connection: Connection) -> None: ...

    def delete_connection(self, connection_id: str) -> None: ...

    def set_parent(self, node_id: str, parent_id: str | None, position: Point) -> None:
        """Move a node under ``parent_id``; ``position`` is local to the new parent."""
        ...


class CanvasDocumentRepository(Protocol):
    def load(self, path: Path) -> CanvasDocument: ...

    def save(self, document: CanvasDocument, path: Path) -> None: ...
