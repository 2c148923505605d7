"""
Core data classes for the flowchart geometry engine.

Provides the spatial model shared by the router and the grouping engine:
points, sizes, rectangles, anchor sides, shapes, connections and the
path commands handed to the rendering surface.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger("flowchart-mcp")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class FlowchartConfig:
    """Shape and layout constants for the editor."""
    # Default / minimum shape size
    shape_width: float = 120
    shape_height: float = 36
    min_width: float = 120
    min_height: float = 36

    # Initial placement of shapes created from headings
    start_x: float = 50
    start_y: float = 50
    step_x: float = 150
    step_y: float = 100
    wrap_x: float = 800
    per_row: int = 5
    heading_gap_y: float = 20

    # Containers
    group_padding: float = 20
    group_header_height: float = 40  # Reserved label band on the top edge

    # Pointer movement below this is a click, not a drag
    drag_threshold: float = 3


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Side(Enum):
    """Anchor side of a shape. Each side has a fixed outward unit vector."""
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"

    @property
    def vector(self) -> Point:
        return _SIDE_VECTORS[self]

    @property
    def is_horizontal(self) -> bool:
        """True for sides whose outward vector lies on the x axis."""
        return self in (Side.LEFT, Side.RIGHT)

    @property
    def opposite(self) -> Side:
        return _OPPOSITES[self]

    @classmethod
    def coerce(cls, value: Union[Side, str, None], default: Side) -> Side:
        """Turn a port name into a Side, falling back to *default*.

        Missing or unknown names never raise; unknown ones are logged.
        """
        if isinstance(value, Side):
            return value
        if isinstance(value, str) and value.strip():
            try:
                return cls(value.strip().lower())
            except ValueError:
                logger.warning("Unknown port '%s', using '%s'", value, default.value)
        return default


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    """A 2-D coordinate (also used as a vector)."""
    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)

    def __mul__(self, k: float) -> Point:
        return Point(self.x * k, self.y * k)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


_SIDE_VECTORS: dict[Side, Point] = {
    Side.TOP: Point(0, -1),
    Side.BOTTOM: Point(0, 1),
    Side.LEFT: Point(-1, 0),
    Side.RIGHT: Point(1, 0),
}

_OPPOSITES: dict[Side, Side] = {
    Side.TOP: Side.BOTTOM,
    Side.BOTTOM: Side.TOP,
    Side.LEFT: Side.RIGHT,
    Side.RIGHT: Side.LEFT,
}


@dataclass
class Size:
    """Width/height pair used by the collapse/expand caches."""
    width: float
    height: float

    def to_dict(self) -> dict[str, float]:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional[Size]:
        if not data:
            return None
        return cls(float(data["width"]), float(data["height"]))


@dataclass
class Rect:
    """Axis-aligned rectangle."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2

    @property
    def center(self) -> Point:
        return Point(self.cx, self.cy)

    def span(self, axis: str) -> tuple[float, float]:
        """Return (start, end) of the rectangle along 'x' or 'y'."""
        if axis == "x":
            return self.x, self.right
        return self.y, self.bottom

    def intersects(self, other: Rect, margin: float = 0) -> bool:
        """Check if two rectangles overlap (with optional margin)."""
        return not (
            self.right + margin <= other.x
            or other.right + margin <= self.x
            or self.bottom + margin <= other.y
            or other.bottom + margin <= self.y
        )

    def contains_point(self, px: float, py: float, margin: float = 0) -> bool:
        """Check if a point is inside this rectangle, edges included."""
        return (
            self.x - margin <= px <= self.right + margin
            and self.y - margin <= py <= self.bottom + margin
        )

    def anchor(self, side: Side) -> Point:
        """Midpoint of the given side."""
        if side == Side.TOP:
            return Point(self.cx, self.y)
        if side == Side.BOTTOM:
            return Point(self.cx, self.bottom)
        if side == Side.LEFT:
            return Point(self.x, self.cy)
        return Point(self.right, self.cy)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class ShapeStyle:
    """Colours of a shape. Opaque to the engine."""
    background_color: Optional[str] = None
    border_color: Optional[str] = None
    color: Optional[str] = None

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "backgroundColor": self.background_color,
            "borderColor": self.border_color,
            "color": self.color,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> ShapeStyle:
        data = data or {}
        return cls(
            background_color=data.get("backgroundColor"),
            border_color=data.get("borderColor"),
            color=data.get("color"),
        )


@dataclass
class Shape:
    """A node on the canvas. May contain other shapes."""
    id: str
    x: float = 0
    y: float = 0
    width: float = 120
    height: float = 36
    text: str = ""
    # Tree links are owned by the store; mutate them through Flowchart.reparent
    parent: Optional[str] = None
    children: list[str] = field(default_factory=list)
    collapsed: bool = False
    collapsed_size: Optional[Size] = None
    expanded_size: Optional[Size] = None
    heading_id: Optional[str] = None
    heading_index: Optional[int] = None
    style: ShapeStyle = field(default_factory=ShapeStyle)
    z_index: int = 0

    @property
    def bounds(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_container(self) -> bool:
        return bool(self.children)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "parent": self.parent,
            "children": list(self.children),
            "collapsed": self.collapsed,
            "collapsedSize": self.collapsed_size.to_dict() if self.collapsed_size else None,
            "expandedSize": self.expanded_size.to_dict() if self.expanded_size else None,
            "headingId": self.heading_id,
            "headingIndex": self.heading_index,
            "style": self.style.to_dict(),
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> Shape:
        return cls(
            id=str(data["id"]),
            x=float(data.get("x", 0)),
            y=float(data.get("y", 0)),
            width=float(data.get("width", 120)),
            height=float(data.get("height", 36)),
            text=data.get("text") or "",
            parent=data.get("parent") or None,
            children=list(data.get("children") or []),
            collapsed=bool(data.get("collapsed", False)),
            collapsed_size=Size.from_dict(data.get("collapsedSize")),
            expanded_size=Size.from_dict(data.get("expandedSize")),
            heading_id=data.get("headingId"),
            heading_index=data.get("headingIndex"),
            style=ShapeStyle.from_dict(data.get("style")),
        )


@dataclass
class ConnectionStyle:
    """Line style of a connection. Opaque to the engine."""
    type: str = "solid"      # solid | dashed
    arrow: str = "end"       # end | both | none
    color: str = "#94a3b8"
    label: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "arrow": self.arrow, "color": self.color, "label": self.label}

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> ConnectionStyle:
        data = data or {}
        defaults = cls()
        return cls(
            type=data.get("type") or defaults.type,
            arrow=data.get("arrow") or defaults.arrow,
            color=data.get("color") or defaults.color,
            label=data.get("label") or "",
        )


@dataclass
class Connection:
    """A connector between two shape anchors."""
    id: str
    from_id: str
    to_id: str
    from_port: Side = Side.BOTTOM
    to_port: Side = Side.TOP
    style: ConnectionStyle = field(default_factory=ConnectionStyle)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": self.from_id,
            "to": self.to_id,
            "fromPort": self.from_port.value,
            "toPort": self.to_port.value,
            "style": self.style.to_dict(),
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> Connection:
        # fromPoint/toPoint are the names used by older saved data
        from_port = data.get("fromPort", data.get("fromPoint"))
        to_port = data.get("toPort", data.get("toPoint"))
        return cls(
            id=str(data.get("id") or new_id("conn")),
            from_id=str(data["from"]),
            to_id=str(data["to"]),
            from_port=Side.coerce(from_port, Side.BOTTOM),
            to_port=Side.coerce(to_port, Side.TOP),
            style=ConnectionStyle.from_dict(data.get("style")),
        )


# ---------------------------------------------------------------------------
# Path commands (router output)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LineTo:
    """Straight segment from the current point to *to*."""
    to: Point

    def to_dict(self) -> dict[str, Any]:
        return {"type": "line", "to": self.to.to_dict()}


@dataclass(frozen=True)
class ArcTo:
    """Circular arc from the current point to *to*."""
    to: Point
    radius: float
    sweep: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "arc",
            "to": self.to.to_dict(),
            "radius": self.radius,
            "sweep": self.sweep,
        }


PathCommand = Union[LineTo, ArcTo]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def new_id(prefix: str = "shape") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"
