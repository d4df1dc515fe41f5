from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Optional, Set, TypeAlias

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

MIN_CONTAINER_WIDTH = 200.0
MIN_CONTAINER_HEIGHT = 80.0

PositionFrame = Literal["relative", "absolute"]


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)


ORIGIN = Point(0.0, 0.0)


def _frozen_attributes(attributes: Mapping[str, Any]) -> Mapping[str, Any]:
    """Read-only view over a private deep copy of ``attributes``."""
    return MappingProxyType(copy.deepcopy(dict(attributes)))


@dataclass(frozen=True)
class Size:
    width: float
    height: float

    def clamped(self, min_width: float, min_height: float) -> Size:
        return Size(max(self.width, min_width), max(self.height, min_height))


@dataclass(frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float


@dataclass(frozen=True)
class Item:
    id: str
    label: str
    position: Point
    attributes: Mapping[str, Any] = field(default_factory=dict)
    parent_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _frozen_attributes(self.attributes))


@dataclass(frozen=True)
class Container:
    id: str
    label: str
    position: Point
    size: Size
    attributes: Mapping[str, Any] = field(default_factory=dict)
    parent_id: str | None = None
    children: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _frozen_attributes(self.attributes))


CanvasNode: TypeAlias = Item | Container


@dataclass(frozen=True)
class Connection:
    id: str
    source_id: str
    target_id: str
    label: str = ""
    source_anchor: str | None = None
    target_anchor: str | None = None

    def touches(self, node_id: str) -> bool:
        return self.source_id == node_id or self.target_id == node_id


@dataclass(frozen=True)
class MenuEntry:
    node_id: str
    label: str
    is_container: bool
    children: tuple[MenuEntry, ...] = ()


@dataclass(frozen=True)
class GraphSnapshot:
    items: Mapping[str, Item]
    containers: Mapping[str, Container]
    connections: Mapping[str, Connection]
    menu_index: tuple[MenuEntry, ...]


@dataclass(frozen=True)
class CanvasNodeView:
    id: str
    kind: Literal["item", "container"]
    label: str
    position: Point  # absolute
    parent_id: str | None
    attributes: Mapping[str, Any]
    size: Size | None = None


@dataclass(frozen=True)
class CanvasView:
    nodes: List[CanvasNodeView]
    connections: List[Connection]
    selected_id: str | None = None


class PointRecord(BaseModel):
    x: float = 0.0
    y: float = 0.0


class NodeRecord(BaseModel):
    id: str = Field(..., min_length=1)
    label: str = ""
    position: PointRecord = Field(default_factory=PointRecord)
    position_frame: PositionFrame = Field(
        default="relative",
        validation_alias=AliasChoices("position_frame", "positionFrame"),
    )
    parent_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("parent_id", "parentId", "parentNode"),
    )
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("parent_id", mode="before")
    @classmethod
    def blank_parent_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ItemRecord(NodeRecord):
    pass


class ContainerRecord(NodeRecord):
    width: float = MIN_CONTAINER_WIDTH
    height: float = MIN_CONTAINER_HEIGHT
    children: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("children", "childNodes"),
    )


class ConnectionRecord(BaseModel):
    id: str = Field(..., min_length=1)
    source_id: str = Field(..., validation_alias=AliasChoices("source_id", "sourceId", "source"))
    target_id: str = Field(..., validation_alias=AliasChoices("target_id", "targetId", "target"))
    label: str = ""
    source_anchor: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("source_anchor", "sourceAnchor", "sourceHandle"),
    )
    target_anchor: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("target_anchor", "targetAnchor", "targetHandle"),
    )


class CanvasDocument(BaseModel):
    canvas_id: str = Field(
        default="default",
        validation_alias=AliasChoices("canvas_id", "canvasId"),
    )
    items: List[ItemRecord] = Field(default_factory=list)
    containers: List[ContainerRecord] = Field(default_factory=list)
    connections: List[ConnectionRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def ensure_unique_ids(self) -> CanvasDocument:
        seen: Set[str] = set()
        for record in [*self.items, *self.containers]:
            if record.id in seen:
                msg = f"Duplicate node id found: {record.id}"
                raise ValueError(msg)
            seen.add(record.id)
        seen_connections: Set[str] = set()
        for connection in self.connections:
            if connection.id in seen_connections:
                msg = f"Duplicate connection id found: {connection.id}"
                raise ValueError(msg)
            seen_connections.add(connection.id)
        return self
