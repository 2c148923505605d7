"""Vector helpers and the containment test."""

from __future__ import annotations

import math

from flowchart_mcp.models import Point, Rect, Side


def length(v: Point) -> float:
    return math.hypot(v.x, v.y)


def distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def normalize(v: Point) -> Point:
    """Unit vector in the direction of *v* (zero vector stays zero)."""
    n = length(v)
    if n == 0:
        return Point(0, 0)
    return Point(v.x / n, v.y / n)


def cross(a: Point, b: Point) -> float:
    """Z component of the 2-D cross product."""
    return a.x * b.y - a.y * b.x


def dot(a: Point, b: Point) -> float:
    return a.x * b.x + a.y * b.y


def same_direction(a: Point, b: Point, eps: float = 1e-9) -> bool:
    return abs(a.x - b.x) < eps and abs(a.y - b.y) < eps


def stub_point(anchor: Point, side: Side, distance_: float) -> Point:
    """Project *anchor* outward along the side's direction vector."""
    return anchor + side.vector * distance_


def contains(inner: Rect, outer: Rect) -> bool:
    """True when the centre of *inner* lies within *outer* (inclusive)."""
    return outer.contains_point(inner.cx, inner.cy)
