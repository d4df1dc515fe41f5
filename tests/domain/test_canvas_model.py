from __future__ import annotations

from collections.abc import Callable

import pytest

from domain.canvas_model import CanvasModel
from domain.errors import CycleError, InvalidEndpointError, NotFoundError, RemoteSyncError
from domain.models import Bounds, CanvasDocument, Point, Size
from domain.services.drag_gate import PendingConfirmation
from tests.helpers.recording_store import RecordingStore


def test_drag_into_container_groups_after_confirmation(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas

    proposal = model.drag_stop("A", Point(150, 150))

    assert proposal == PendingConfirmation(node_id="A", container_id="G1")
    assert model.graph.require("A").parent_id is None

    model.confirm_grouping()

    node = model.graph.require("A")
    assert node.parent_id == "G1"
    assert node.position == Point(50, 50)
    assert model.pending_grouping is None

    model.ungroup("A")

    node = model.graph.require("A")
    assert node.parent_id is None
    assert node.position == Point(150, 150)


def test_cancelled_grouping_leaves_node_where_it_was_dropped(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.drag_stop("A", Point(150, 150))

    model.cancel_grouping()

    assert model.graph.require("A").parent_id is None
    assert model.absolute_position("A") == Point(150, 150)
    assert model.confirm_grouping() is None


def test_drag_within_container_moves_without_prompt(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.group("A", "G1")

    assert model.drag_stop("A", Point(300, 250)) is None
    assert model.graph.require("A").position == Point(200, 150)
    assert model.pending_grouping is None


def test_drag_while_confirmation_pending_is_rejected(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.drag_stop("A", Point(150, 150))
    position_before = model.absolute_position("B")

    with pytest.raises(RuntimeError):
        model.drag_stop("B", Point(160, 160))

    assert model.absolute_position("B") == position_before


def test_deleting_target_cascades_its_connections(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    reads = model.connect("A", "B", label="reads")

    model.delete_node("B")

    assert all(connection.target_id != "B" for connection in model.connections.all())
    with pytest.raises(NotFoundError):
        model.update_connection_label(reads.id, "writes")


def test_deleting_group_keeps_child_absolute_position(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.drag_stop("A", Point(150, 150))
    model.confirm_grouping()
    before = model.absolute_position("A")

    model.delete_node("G1")

    assert model.graph.require("A").parent_id is None
    assert model.absolute_position("A") == before
    assert [entry.node_id for entry in model.snapshot().menu_index] == ["B", "A"]


def test_new_action_after_undo_discards_redo_branch(model: CanvasModel) -> None:
    model.create_item("Sensor", position=Point(0, 0), node_id="A")
    model.create_item("ECU", position=Point(500, 0), node_id="B")
    model.create_container("Zone", position=Point(100, 100), node_id="G1")
    assert model.history.cursor == 3

    model.undo()
    model.undo()
    assert model.history.cursor == 1
    assert model.can_redo
    assert "B" not in model.graph

    model.rename("A", "Camera")

    assert model.history.cursor == 2
    assert len(model.history) == 3
    assert not model.can_redo
    assert "G1" not in model.graph


def test_undo_then_redo_restores_exact_snapshot(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.group("A", "G1")
    model.connect("A", "B", label="reads")
    latest = model.snapshot()

    assert model.undo() is True
    assert model.snapshot() != latest
    assert model.redo() is True
    assert model.snapshot() == latest


def test_undo_restores_containment_and_menu(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.group("A", "G1")

    model.undo()

    assert model.graph.require("A").parent_id is None
    assert model.graph.require_container("G1").children == frozenset()
    assert [entry.node_id for entry in model.snapshot().menu_index] == ["A", "B", "G1"]
    model.graph.check_invariants()


def test_rejected_operations_record_no_history(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.create_container("Inner", position=Point(120, 120), node_id="G2")
    model.group("G2", "G1")
    length = len(model.history)

    with pytest.raises(CycleError):
        model.group("G1", "G2")
    with pytest.raises(InvalidEndpointError):
        model.connect("A", "ghost")
    with pytest.raises(NotFoundError):
        model.delete_node("ghost")

    assert len(model.history) == length


def test_no_op_mutation_is_not_recorded(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    length = len(model.history)

    model.ungroup("A")
    model.rename("A", "Sensor")

    assert len(model.history) == length


def test_remote_failure_reverts_group_and_notifies(
    model_factory: Callable[..., CanvasModel],
    store: RecordingStore,
    notices: list[str],
) -> None:
    model = model_factory(store=store)
    model.create_item("Sensor", position=Point(150, 150), node_id="A")
    model.create_container("Zone", position=Point(100, 100), size=Size(300, 200), node_id="G1")
    before = model.snapshot()
    length = len(model.history)
    store.fail_on.add("set_parent")

    with pytest.raises(RemoteSyncError):
        model.group("A", "G1")

    assert model.snapshot() == before
    assert len(model.history) == length
    assert notices and "Group node" in notices[0]
    model.graph.check_invariants()


def test_remote_failure_reverts_cascading_delete(
    model_factory: Callable[..., CanvasModel],
    store: RecordingStore,
) -> None:
    model = model_factory(store=store)
    model.create_item("Sensor", position=Point(150, 150), node_id="A")
    model.create_item("ECU", position=Point(600, 0), node_id="B")
    model.create_container("Zone", position=Point(100, 100), node_id="G1")
    model.group("A", "G1")
    model.connect("A", "B", label="reads", connection_id="e1")
    before = model.snapshot()
    store.fail_on.add("delete_container")

    with pytest.raises(RemoteSyncError):
        model.delete_node("G1")

    assert model.snapshot() == before
    assert model.graph.require("A").parent_id == "G1"


def test_every_mutation_issues_matching_remote_call(
    model_factory: Callable[..., CanvasModel],
    store: RecordingStore,
) -> None:
    model = model_factory(store=store)
    model.create_item("Sensor", position=Point(150, 150), node_id="A")
    model.create_container("Zone", position=Point(100, 100), node_id="G1")
    model.group("A", "G1")
    model.connect("A", "G1", connection_id="e1")
    model.update_connection_label("e1", "inside")
    model.resize_container("G1", 400, 300)
    model.delete_node("G1")

    assert store.names() == [
        "create_item",
        "create_container",
        "set_parent",
        "create_connection",
        "update_connection",
        "update_container",
        "delete_connection",
        "set_parent",
        "delete_container",
    ]
    assert store.calls[-2] == ("set_parent", ("A", None, Point(150, 150)))


def test_undo_saves_whole_canvas_and_rolls_back_on_failure(
    model_factory: Callable[..., CanvasModel],
    store: RecordingStore,
) -> None:
    model = model_factory(store=store)
    model.create_item("Sensor", position=Point(0, 0), node_id="A")
    model.undo()
    assert store.names()[-1] == "save_canvas"
    assert "A" not in model.graph

    store.fail_on.add("save_canvas")
    with pytest.raises(RemoteSyncError):
        model.redo()

    assert "A" not in model.graph
    assert model.history.cursor == 0
    assert model.can_redo


def test_reconcile_is_idempotent_and_records_nothing(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.group("A", "G1")
    assert model.needs_reconcile
    length = len(model.history)

    model.reconcile()
    snapshot = model.snapshot()
    assert model.reconcile() is False
    assert model.snapshot() == snapshot
    assert len(model.history) == length
    assert not model.needs_reconcile


def test_view_publishes_absolute_positions(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.group("A", "G1")
    model.select("A")

    view = model.view()
    nodes = {node.id: node for node in view.nodes}

    assert nodes["A"].position == Point(0, 0)
    assert nodes["A"].parent_id == "G1"
    assert nodes["G1"].kind == "container"
    assert nodes["G1"].size == Size(300, 200)
    assert view.selected_id == "A"


def test_selection_clears_when_node_is_deleted(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.select("B")

    model.delete_node("B")

    assert model.selected_id is None
    with pytest.raises(NotFoundError):
        model.select("B")


def test_creation_placement_defaults(model: CanvasModel) -> None:
    centred = model.create_item("Centred", viewport=Bounds(0, 0, 800, 600))
    random_item = model.create_item("Random", attributes={"stride": ["S", "T"]})

    assert centred.position == Point(400, 300)
    assert 0 <= random_item.position.x <= 500
    assert 0 <= random_item.position.y <= 300
    assert random_item.attributes == {"stride": ["S", "T"]}


def test_create_inside_container_uses_absolute_input(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas

    item = model.create_item("Gateway", position=Point(180, 160), parent_id="G1")

    assert item.position == Point(80, 60)
    assert model.graph.require_container("G1").children == frozenset({item.id})


def test_model_loads_document_and_exports_it(model_factory: Callable[..., CanvasModel]) -> None:
    document = CanvasDocument.model_validate(
        {
            "canvas_id": "vehicle",
            "containers": [{"id": "G1", "label": "Zone", "position": {"x": 100, "y": 100}}],
            "items": [{"id": "A", "label": "Sensor", "position": {"x": 50, "y": 50}, "parent_id": "G1"}],
        }
    )

    model = model_factory(document)

    assert model.canvas_id == "vehicle"
    assert model.absolute_position("A") == Point(150, 150)
    assert not model.can_undo
    exported = model.to_document()
    assert exported.items[0].parent_id == "G1"
    assert exported.containers[0].children == ["A"]


def test_from_store_loads_remote_canvas(store: RecordingStore) -> None:
    store.document = CanvasDocument.model_validate({"items": [{"id": "A", "label": "Sensor"}]})

    model = CanvasModel.from_store(store, "remote-1")

    assert model.canvas_id == "remote-1"
    assert "A" in model.graph
    assert store.names() == ["load_canvas"]


def test_caller_side_attribute_edits_never_reach_history(model: CanvasModel) -> None:
    source = {"asil": "B", "tags": ["brake"]}
    item = model.create_item("Sensor", position=Point(0, 0), attributes=source, node_id="A")
    source["asil"] = "D"
    source["tags"].append("steer")
    model.rename("A", "Camera")

    with pytest.raises(TypeError):
        item.attributes["asil"] = "D"  # type: ignore[index]

    model.undo()
    node = model.graph.require("A")
    assert node.label == "Sensor"
    assert node.attributes == {"asil": "B", "tags": ["brake"]}


def test_grouping_is_persisted_in_the_container_frame(
    model_factory: Callable[..., CanvasModel],
    store: RecordingStore,
) -> None:
    model = model_factory(store=store)
    model.create_item("Sensor", position=Point(0, 0), node_id="A")
    model.create_container("Zone", position=Point(100, 100), size=Size(300, 200), node_id="G1")
    model.drag_stop("A", Point(150, 150))
    model.confirm_grouping()

    reloaded = CanvasModel.from_store(store, model.canvas_id)

    assert store.calls[-2] == ("set_parent", ("A", "G1", Point(50, 50)))
    assert reloaded.graph.require("A").parent_id == "G1"
    assert reloaded.absolute_position("A") == Point(150, 150)


def test_ungroup_and_promotion_are_persisted_with_absolute_positions(
    model_factory: Callable[..., CanvasModel],
    store: RecordingStore,
) -> None:
    model = model_factory(store=store)
    model.create_container("Outer", position=Point(100, 100), size=Size(600, 400), node_id="G1")
    model.create_container("Inner", position=Point(200, 200), size=Size(300, 200), node_id="G2")
    model.create_item("Sensor", position=Point(250, 250), node_id="A")
    model.create_item("ECU", position=Point(300, 300), node_id="B")
    model.group("G2", "G1")
    model.group("A", "G2")
    model.group("B", "G2")
    model.ungroup("B")
    model.delete_node("G2")

    reloaded = CanvasModel.from_store(store, model.canvas_id)

    assert "G2" not in reloaded.graph
    assert reloaded.graph.require("A").parent_id == "G1"
    assert reloaded.absolute_position("A") == Point(250, 250)
    assert reloaded.graph.require("B").parent_id is None
    assert reloaded.absolute_position("B") == Point(300, 300)


@pytest.mark.parametrize("deleted_id", ["A", "G1"])
def test_deleting_node_named_by_pending_grouping_clears_it(
    sensor_canvas: CanvasModel, deleted_id: str
) -> None:
    model = sensor_canvas
    model.drag_stop("A", Point(150, 150))

    model.delete_node(deleted_id)

    assert model.pending_grouping is None
    assert model.confirm_grouping() is None
    assert model.drag_stop("B", Point(600, 0)) is None


def test_deleting_unrelated_node_keeps_pending_grouping(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    proposal = model.drag_stop("A", Point(150, 150))

    model.delete_node("B")

    assert model.pending_grouping == proposal


def test_editing_a_node_clears_selection(sensor_canvas: CanvasModel) -> None:
    model = sensor_canvas
    model.select("A")

    model.update_item("A", label="Camera", attributes={"asil": "C"})

    assert model.selected_id is None
    assert model.graph.require("A").label == "Camera"
    assert model.graph.require("A").attributes == {"asil": "C"}
