from __future__ import annotations

from domain.models import Bounds, Point, Size


def to_local(absolute_point: Point, container_origin: Point) -> Point:
    return absolute_point - container_origin


def to_absolute(local_point: Point, container_origin: Point) -> Point:
    return local_point + container_origin


def bounds_of(origin: Point, size: Size) -> Bounds:
    return Bounds(
        min_x=origin.x,
        min_y=origin.y,
        max_x=origin.x + size.width,
        max_y=origin.y + size.height,
    )


def strictly_contains(bounds: Bounds, point: Point) -> bool:
    # Points on an edge are outside.
    return bounds.min_x < point.x < bounds.max_x and bounds.min_y < point.y < bounds.max_y


def centre_of(bounds: Bounds) -> Point:
    return Point(
        (bounds.min_x + bounds.max_x) / 2,
        (bounds.min_y + bounds.max_y) / 2,
    )
