from __future__ import annotations

import os
import random
from collections.abc import Callable, Generator

import pytest

from domain.canvas_model import CanvasModel
from domain.models import CanvasDocument, Point, Size
from tests.helpers.recording_store import RecordingStore


def _clear_canvas_env() -> None:
    for key in list(os.environ):
        if key.startswith("CANVAS_"):
            os.environ.pop(key, None)


_clear_canvas_env()


@pytest.fixture(autouse=True)
def clear_canvas_env() -> Generator[None, None, None]:
    _clear_canvas_env()
    yield
    _clear_canvas_env()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def notices() -> list[str]:
    return []


@pytest.fixture
def model_factory(notices: list[str]) -> Callable[..., CanvasModel]:
    def _factory(
        document: CanvasDocument | None = None,
        store: RecordingStore | None = None,
    ) -> CanvasModel:
        return CanvasModel(
            document,
            store=store,
            notifier=notices.append,
            rng=random.Random(7),
        )

    return _factory


@pytest.fixture
def model(model_factory: Callable[..., CanvasModel]) -> CanvasModel:
    return model_factory()


@pytest.fixture
def sensor_canvas(model: CanvasModel) -> CanvasModel:
    """Items A ("Sensor") and B ("ECU") plus container G1 at (100, 100), 300x200."""
    model.create_item("Sensor", position=Point(0, 0), node_id="A")
    model.create_item("ECU", position=Point(500, 0), node_id="B")
    model.create_container("Zone", position=Point(100, 100), size=Size(300, 200), node_id="G1")
    return model
