from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from adapters.http.canvas_api import HttpCanvasStore
from adapters.http.http_client import create_http_client
from domain.errors import RemoteSyncError
from domain.models import Connection, Container, Item, Point, Size


def _store(handler: Any) -> HttpCanvasStore:
    client = create_http_client(
        base_url="http://api.test/api/",
        transport=httpx.MockTransport(handler),
    )
    return HttpCanvasStore(client, "c1")


def test_item_calls_are_keyed_by_node_id() -> None:
    seen: list[tuple[str, str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        seen.append((request.method, request.url.path, body))
        return httpx.Response(204)

    store = _store(handler)
    item = Item(id="A", label="Sensor", position=Point(50, 50), attributes={"stride": ["S"]}, parent_id="G1")
    store.create_item(item)
    store.update_item(item)
    store.delete_item("A")

    assert [(method, path) for method, path, _ in seen] == [
        ("POST", "/api/canvases/c1/items"),
        ("PUT", "/api/canvases/c1/items/A"),
        ("DELETE", "/api/canvases/c1/items/A"),
    ]
    payload = seen[0][2]
    assert payload["id"] == "A"
    assert payload["parent_id"] == "G1"
    assert payload["position"] == {"x": 50.0, "y": 50.0}
    assert payload["attributes"] == {"stride": ["S"]}


def test_container_connection_and_parent_calls() -> None:
    seen: list[tuple[str, str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        seen.append((request.method, request.url.path, body))
        return httpx.Response(200, json={})

    store = _store(handler)
    store.create_container(Container(id="G1", label="Zone", position=Point(0, 0), size=Size(300, 200)))
    store.create_connection(Connection(id="e1", source_id="A", target_id="B", label="reads"))
    store.set_parent("A", None, Point(10, 20))

    assert seen[0][1] == "/api/canvases/c1/containers"
    assert seen[0][2]["width"] == 300.0
    assert seen[1][2]["source_id"] == "A"
    assert seen[2] == (
        "PUT",
        "/api/canvases/c1/nodes/A/parent",
        {"parent_id": None, "position": {"x": 10, "y": 20}},
    )


def test_load_canvas_validates_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/canvases/c1"
        return httpx.Response(
            200,
            json={
                "containers": [{"id": "G1", "width": 300, "height": 200}],
                "items": [{"id": "A", "parentId": "G1"}],
                "connections": [{"id": "e1", "source": "A", "target": "G1"}],
            },
        )

    document = _store(handler).load_canvas("c1")

    assert document.canvas_id == "c1"
    assert document.items[0].parent_id == "G1"
    assert document.connections[0].target_id == "G1"


def test_error_status_becomes_remote_sync_error_with_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"message": "Item is locked"})

    with pytest.raises(RemoteSyncError) as excinfo:
        _store(handler).delete_item("A")

    assert excinfo.value.status == 409
    assert str(excinfo.value) == "Item is locked"


def test_error_without_message_uses_status_fallback() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(RemoteSyncError, match="API request failed with status 500"):
        _store(handler).delete_connection("e1")


def test_timeout_is_reported_as_408() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(RemoteSyncError) as excinfo:
        _store(handler).set_parent("A", "G1", Point(0, 0))

    assert excinfo.value.status == 408


def test_transport_failure_is_reported_as_500() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RemoteSyncError) as excinfo:
        _store(handler).create_item(Item(id="A", label="", position=Point(0, 0)))

    assert excinfo.value.status == 500
