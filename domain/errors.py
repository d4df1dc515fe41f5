from __future__ import annotations


class CanvasError(Exception):
    """Base class for every recoverable canvas model failure."""


class NotFoundError(CanvasError, LookupError):
    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class CycleError(CanvasError):
    def __init__(self, node_id: str, parent_id: str) -> None:
        super().__init__(f"Cannot nest {node_id} under {parent_id}: containment cycle")
        self.node_id = node_id
        self.parent_id = parent_id


class InvalidEndpointError(CanvasError):
    def __init__(self, endpoint_id: str) -> None:
        super().__init__(f"Connection endpoint does not exist: {endpoint_id}")
        self.endpoint_id = endpoint_id


class RemoteSyncError(CanvasError):
    """A persistence call failed after the local mutation was applied."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
