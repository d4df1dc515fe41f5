from __future__ import annotations

import logging
from typing import Any

import httpx

from adapters.http.http_client import create_http_client
from domain.errors import RemoteSyncError
from domain.models import CanvasDocument, Connection, Container, Item, Point
from domain.ports.persistence import CanvasStore
from domain.services.canvas_loader import connection_record, node_record

logger = logging.getLogger(__name__)


class HttpCanvasStore(CanvasStore):
    """REST persistence collaborator; every failure surfaces as ``RemoteSyncError``."""

    def __init__(self, client: httpx.Client, canvas_id: str) -> None:
        self._client = client
        self._canvas_id = canvas_id

    @classmethod
    def from_settings(cls, settings: Any) -> HttpCanvasStore:
        client = create_http_client(
            base_url=settings.base_url,
            timeout_seconds=settings.timeout_seconds,
            auth_token=settings.auth_token,
        )
        return cls(client, settings.canvas_id)

    def close(self) -> None:
        self._client.close()

    def load_canvas(self, canvas_id: str) -> CanvasDocument:
        payload = self._request("GET", f"/canvases/{canvas_id}")
        if not isinstance(payload, dict):
            msg = f"Unexpected canvas payload for {canvas_id}"
            raise RemoteSyncError(msg)
        if "canvas_id" not in payload and "canvasId" not in payload:
            payload["canvas_id"] = canvas_id
        return CanvasDocument.model_validate(payload)

    def save_canvas(self, document: CanvasDocument) -> None:
        self._request(
            "PUT",
            f"/canvases/{document.canvas_id}",
            document.model_dump(mode="json"),
        )

    def create_item(self, item: Item) -> None:
        self._request("POST", self._path("items"), node_record(item).model_dump(mode="json"))

    def update_item(self, item: Item) -> None:
        self._request(
            "PUT", self._path("items", item.id), node_record(item).model_dump(mode="json")
        )

    def delete_item(self, item_id: str) -> None:
        self._request("DELETE", self._path("items", item_id))

    def create_container(self, container: Container) -> None:
        self._request(
            "POST", self._path("containers"), node_record(container).model_dump(mode="json")
        )

    def update_container(self, container: Container) -> None:
        self._request(
            "PUT",
            self._path("containers", container.id),
            node_record(container).model_dump(mode="json"),
        )

    def delete_container(self, container_id: str) -> None:
        self._request("DELETE", self._path("containers", container_id))

    def create_connection(self, connection: Connection) -> None:
        self._request(
            "POST",
            self._path("connections"),
            connection_record(connection).model_dump(mode="json"),
        )

    def update_connection(self, connection: Connection) -> None:
        self._request(
            "PUT",
            self._path("connections", connection.id),
            connection_record(connection).model_dump(mode="json"),
        )

    def delete_connection(self, connection_id: str) -> None:
        self._request("DELETE", self._path("connections", connection_id))

    def set_parent(self, node_id: str, parent_id: str | None, position: Point) -> None:
        self._request(
            "PUT",
            self._path("nodes", node_id, "parent"),
            {"parent_id": parent_id, "position": {"x": position.x, "y": position.y}},
        )

    def _path(self, *parts: str) -> str:
        return "/".join([f"/canvases/{self._canvas_id}", *parts])

    def _request(self, method: str, path: str, payload: Any = None) -> Any:
        logger.debug("Making %s request to %s", method, path)
        try:
            response = self._client.request(method, path, json=payload)
        except httpx.TimeoutException as exc:
            raise RemoteSyncError("Request timeout", status=408) from exc
        except httpx.HTTPError as exc:
            raise RemoteSyncError(str(exc) or "Unknown error occurred", status=500) from exc

        if response.is_error:
            raise RemoteSyncError(_error_message(response), status=response.status_code)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            msg = f"Invalid JSON from {method} {path}"
            raise RemoteSyncError(msg, status=response.status_code) from exc


def _error_message(response: httpx.Response) -> str:
    fallback = f"API request failed with status {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return fallback
