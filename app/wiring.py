from __future__ import annotations

from adapters.http.canvas_api import HttpCanvasStore
from app.config import AppSettings
from domain.canvas_model import CanvasModel, Notifier
from domain.models import CanvasDocument
from domain.ports.persistence import CanvasStore


def build_canvas_store(settings: AppSettings) -> CanvasStore | None:
    if not settings.api.enabled:
        return None
    if not settings.api.canvas_id:
        msg = "api.canvas_id is required when the remote store is enabled"
        raise ValueError(msg)
    return HttpCanvasStore.from_settings(settings.api)


def build_canvas_model(
    settings: AppSettings,
    document: CanvasDocument | None = None,
    *,
    store: CanvasStore | None = None,
    notifier: Notifier | None = None,
) -> CanvasModel:
    store = store or build_canvas_store(settings)
    config = settings.editor.to_model_config()
    if store is not None and document is None:
        return CanvasModel.from_store(
            store, settings.api.canvas_id, config=config, notifier=notifier
        )
    return CanvasModel(document, store=store, config=config, notifier=notifier)
