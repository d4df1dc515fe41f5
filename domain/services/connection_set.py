from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace

from domain.errors import InvalidEndpointError, NotFoundError
from domain.models import Connection


class ConnectionSet:
    def __init__(self, node_exists: Callable[[str], bool]) -> None:
        self._node_exists = node_exists
        self._connections: dict[str, Connection] = {}

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def require(self, connection_id: str) -> Connection:
        connection = self._connections.get(connection_id)
        if connection is None:
            raise NotFoundError("Connection", connection_id)
        return connection

    def all(self) -> list[Connection]:
        return list(self._connections.values())

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
        for endpoint in (source_id, target_id):
            if not self._node_exists(endpoint):
                raise InvalidEndpointError(endpoint)
        connection = Connection(
            id=connection_id or f"edge-{uuid.uuid4().hex[:12]}",
            source_id=source_id,
            target_id=target_id,
            label=label,
            source_anchor=source_anchor,
            target_anchor=target_anchor,
        )
        if connection.id in self._connections:
            msg = f"Duplicate connection id: {connection.id}"
            raise ValueError(msg)
        self._connections[connection.id] = connection
        return connection

    def update_label(self, connection_id: str, label: str) -> Connection:
        updated = replace(self.require(connection_id), label=label)
        self._connections[connection_id] = updated
        return updated

    def delete(self, connection_id: str) -> Connection:
        connection = self.require(connection_id)
        del self._connections[connection_id]
        return connection

    def touching(self, node_id: str) -> list[Connection]:
        return [
            connection
            for connection in self._connections.values()
            if connection.touches(node_id)
        ]

    def remove_touching(self, node_id: str) -> list[Connection]:
        removed = self.touching(node_id)
        for connection in removed:
            del self._connections[connection.id]
        return removed

    def restore(self, connections: Iterable[Connection]) -> None:
        self._connections = {connection.id: connection for connection in connections}
