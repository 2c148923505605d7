"""
Orthogonal connector routing.

Computes elbowed, rounded paths between two anchors (a point on a shape
edge plus the side it sits on):

1. Project a stub from each anchor so the path always leaves and enters
   perpendicular to the shape edge.
2. Pick elbow points from the orientation of the two sides.
3. Drop duplicate and collinear points so only real corners remain.
4. Replace every corner with a short circular arc.

The functions here are pure and deterministic. Routing a whole store
skips connections whose endpoints are missing or hidden.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from flowchart_mcp.geometry import (
    cross,
    distance,
    dot,
    length,
    normalize,
    same_direction,
    stub_point,
)
from flowchart_mcp.models import ArcTo, Connection, LineTo, PathCommand, Point, Side
from flowchart_mcp.store import Flowchart

logger = logging.getLogger("flowchart-mcp")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class RouterConfig:
    """Constants for connector routing."""
    stub_length: float = 20      # Perpendicular run out of / into a shape
    corner_radius: float = 12    # Upper bound for rounded corners
    merge_distance: float = 0.5  # Points closer than this are one point


@dataclass
class ConnectorPath:
    """A routed connection, ready for the rendering surface."""
    connection_id: str
    start: Point
    end: Point
    commands: list[PathCommand] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.connection_id,
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
            "commands": [c.to_dict() for c in self.commands],
            "d": to_svg_path(self.start, self.commands),
        }


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

def route(
    start: Point,
    start_side: Union[Side, str, None],
    end: Point,
    end_side: Union[Side, str, None],
    config: Optional[RouterConfig] = None,
) -> list[PathCommand]:
    """Route from *start* to *end* and return the rounded path commands.

    The path implicitly begins at *start*. Unknown sides fall back to
    ``bottom`` for the start and ``top`` for the end.
    """
    cfg = config or RouterConfig()
    points = route_points(start, start_side, end, end_side, cfg)
    return round_corners(points, cfg.corner_radius, cfg.merge_distance)


def route_points(
    start: Point,
    start_side: Union[Side, str, None],
    end: Point,
    end_side: Union[Side, str, None],
    config: Optional[RouterConfig] = None,
) -> list[Point]:
    """Return the simplified corner points of the route, endpoints included."""
    cfg = config or RouterConfig()
    s_side = Side.coerce(start_side, Side.BOTTOM)
    e_side = Side.coerce(end_side, Side.TOP)

    s_stub = stub_point(start, s_side, cfg.stub_length)
    e_stub = stub_point(end, e_side, cfg.stub_length)

    if s_side.is_horizontal == e_side.is_horizontal:
        elbows = _parallel_elbows(s_stub, s_side, e_stub, e_side, cfg.stub_length)
    else:
        elbows = _cross_elbows(s_stub, s_side, e_stub, e_side)

    return simplify([start, s_stub, *elbows, e_stub, end], cfg.merge_distance)


def _beyond(a: float, b: float, sign: float, extra: float) -> float:
    """Coordinate *extra* past whichever of a, b is farther along *sign*."""
    if sign > 0:
        return max(a, b) + extra
    return min(a, b) - extra


def _parallel_elbows(
    s: Point, s_side: Side, e: Point, e_side: Side, stub: float,
) -> list[Point]:
    """Elbows for two horizontal sides or two vertical sides."""
    horizontal = s_side.is_horizontal
    d = s_side.vector

    if s_side == e_side:
        # Ports face the same way: detour past the outermost stub
        if horizontal:
            x = _beyond(s.x, e.x, d.x, stub)
            return [Point(x, s.y), Point(x, e.y)]
        y = _beyond(s.y, e.y, d.y, stub)
        return [Point(s.x, y), Point(e.x, y)]

    facing = dot(e - s, d) >= 0
    mid_x = (s.x + e.x) / 2
    mid_y = (s.y + e.y) / 2
    if horizontal == facing:
        # Jog on the vertical line halfway between the stubs. Vertical ports
        # sharing an x leave nothing to jog, so the path stays a straight line
        return [Point(mid_x, s.y), Point(mid_x, e.y)]
    # Jog on the horizontal line halfway between the stubs
    return [Point(s.x, mid_y), Point(e.x, mid_y)]


def _cross_elbows(s: Point, s_side: Side, e: Point, e_side: Side) -> list[Point]:
    """Elbow for one horizontal and one vertical side."""
    sd = s_side.vector
    ed = e_side.vector
    if s_side.is_horizontal:
        ahead = (e.x - s.x) * sd.x >= 0
        approach_ok = (e.y - s.y) * ed.y <= 0
        if ahead and approach_ok:
            return [Point(e.x, s.y)]
        return [Point(s.x, e.y)]
    ahead = (e.y - s.y) * sd.y >= 0
    approach_ok = (e.x - s.x) * ed.x <= 0
    if ahead and approach_ok:
        return [Point(s.x, e.y)]
    return [Point(e.x, s.y)]


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------

def infer_preview_side(start: Point, cursor: Point) -> Side:
    """Guess the side a connection being dragged will enter.

    The dominant axis of the drag picks horizontal vs. vertical (ties go
    vertical); the entry side faces back toward the start so the final
    stub continues the drag direction.
    """
    dx = cursor.x - start.x
    dy = cursor.y - start.y
    if abs(dx) > abs(dy):
        return Side.LEFT if dx >= 0 else Side.RIGHT
    return Side.TOP if dy >= 0 else Side.BOTTOM


def preview_route(
    start: Point,
    start_side: Union[Side, str, None],
    cursor: Point,
    config: Optional[RouterConfig] = None,
) -> list[PathCommand]:
    """Route to the pointer before a target anchor has been chosen."""
    return route(start, start_side, cursor, infer_preview_side(start, cursor), config)


# ---------------------------------------------------------------------------
# Simplification and corner rounding
# ---------------------------------------------------------------------------

def simplify(points: list[Point], eps: float = 0.5) -> list[Point]:
    """Drop near-duplicate points and points collinear with both neighbours.

    The first and last points are always kept exactly.
    """
    if len(points) <= 2:
        return list(points)

    deduped = [points[0]]
    for p in points[1:]:
        if distance(p, deduped[-1]) < eps:
            continue
        deduped.append(p)
    last = points[-1]
    if deduped[-1] != last:
        if len(deduped) > 1:
            deduped[-1] = last
        else:
            deduped.append(last)

    result = [deduped[0]]
    for i in range(1, len(deduped) - 1):
        prev = result[-1]
        cur = deduped[i]
        nxt = deduped[i + 1]
        same_x = abs(prev.x - cur.x) < eps and abs(cur.x - nxt.x) < eps
        same_y = abs(prev.y - cur.y) < eps and abs(cur.y - nxt.y) < eps
        if same_x or same_y:
            continue
        result.append(cur)
    result.append(deduped[-1])
    return result


def round_corners(
    points: list[Point],
    max_radius: float = 12,
    eps: float = 0.5,
) -> list[PathCommand]:
    """Turn a polyline into line/arc commands with rounded corners."""
    commands: list[PathCommand] = []
    if len(points) < 2:
        return commands

    for i in range(1, len(points) - 1):
        prev, cur, nxt = points[i - 1], points[i], points[i + 1]
        v_in = cur - prev
        v_out = nxt - cur
        len_in = length(v_in)
        len_out = length(v_out)
        if len_in == 0 or len_out == 0:
            continue
        d_in = normalize(v_in)
        d_out = normalize(v_out)
        if same_direction(d_in, d_out):
            commands.append(LineTo(cur))
            continue

        radius = min(max_radius, len_in / 2, len_out / 2)
        if radius < eps:
            # Too tight to round
            commands.append(LineTo(cur))
            continue
        arc_start = cur - d_in * radius
        arc_end = cur + d_out * radius
        sweep = 1 if cross(d_in, d_out) > 0 else 0
        commands.append(LineTo(arc_start))
        commands.append(ArcTo(arc_end, radius, sweep))

    commands.append(LineTo(points[-1]))
    return commands


def to_svg_path(start: Point, commands: list[PathCommand]) -> str:
    """Render commands as an SVG path ``d`` attribute."""
    parts = [f"M {_fmt(start.x)} {_fmt(start.y)}"]
    for cmd in commands:
        if isinstance(cmd, ArcTo):
            r = _fmt(cmd.radius)
            parts.append(f"A {r} {r} 0 0 {cmd.sweep} {_fmt(cmd.to.x)} {_fmt(cmd.to.y)}")
        else:
            parts.append(f"L {_fmt(cmd.to.x)} {_fmt(cmd.to.y)}")
    return " ".join(parts)


def _fmt(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


# ---------------------------------------------------------------------------
# Routing stored connections
# ---------------------------------------------------------------------------

def route_connection(
    store: Flowchart,
    connection: Connection,
    config: Optional[RouterConfig] = None,
) -> Optional[ConnectorPath]:
    """Route one stored connection.

    Returns None when an endpoint shape is missing (dangling) or hidden
    inside a collapsed container.
    """
    src = store.get(connection.from_id)
    tgt = store.get(connection.to_id)
    if src is None or tgt is None:
        logger.debug("Skipping dangling connection %s", connection.id)
        return None
    if not (store.is_visible(src.id) and store.is_visible(tgt.id)):
        return None

    from_side = Side.coerce(connection.from_port, Side.BOTTOM)
    to_side = Side.coerce(connection.to_port, Side.TOP)
    start = src.bounds.anchor(from_side)
    end = tgt.bounds.anchor(to_side)
    return ConnectorPath(
        connection_id=connection.id,
        start=start,
        end=end,
        commands=route(start, from_side, end, to_side, config),
    )


def route_all(
    store: Flowchart,
    config: Optional[RouterConfig] = None,
) -> dict[str, ConnectorPath]:
    """Route every routable connection in the store, keyed by connection id."""
    paths: dict[str, ConnectorPath] = {}
    for conn in store.connections:
        path = route_connection(store, conn, config)
        if path is not None:
            paths[conn.id] = path
    return paths
