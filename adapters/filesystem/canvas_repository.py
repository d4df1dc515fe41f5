from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from filelock import FileLock

from adapters.filesystem.json_utils import load_json, write_json_atomic
from domain.models import CanvasDocument
from domain.ports.persistence import CanvasDocumentRepository


class FileSystemCanvasRepository(CanvasDocumentRepository):
    def load(self, path: Path) -> CanvasDocument:
        payload = load_json(path)
        if "canvas_id" not in payload and "canvasId" not in payload:
            payload["canvas_id"] = path.name.removesuffix(".json").removesuffix(".canvas")
        return CanvasDocument.model_validate(payload)

    def load_all_with_paths(self, directory: Path) -> list[tuple[Path, CanvasDocument]]:
        return [(path, self.load(path)) for path in sorted(self._iter_paths(directory))]

    def save(self, document: CanvasDocument, path: Path) -> None:
        lock_path = path.with_suffix(f"{path.suffix}.lock")
        with FileLock(str(lock_path)):
            write_json_atomic(path, document.model_dump(mode="json"))

    def _iter_paths(self, directory: Path) -> Iterable[Path]:
        yield from directory.glob("*.json")
