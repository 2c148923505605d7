"""
Shape / connection store.

The store is an arena: a flat ``id -> Shape`` map plus id-based parent and
children links. Every change to the tree goes through :meth:`Flowchart.reparent`,
which refuses links that would create a cycle.

Subscribers are told about changes through two signals:

- ``"tree"``: parent/children changed; z-order must be recomputed.
- ``"geometry"``: a rectangle changed; connections must be redrawn.

Inside ``with store.batch():`` both signals are held back and delivered
once, tree first, when the outermost batch exits.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Union

from flowchart_mcp.models import (
    Connection,
    ConnectionStyle,
    FlowchartConfig,
    Shape,
    ShapeStyle,
    Side,
    new_id,
)

logger = logging.getLogger("flowchart-mcp")

TREE = "tree"
GEOMETRY = "geometry"
CLICK = "click"

# Delivery order for batched signals
_BATCHED = (TREE, GEOMETRY)

Listener = Callable[[Any], None]


class Flowchart:
    """In-memory store of shapes and connections for one canvas."""

    def __init__(self, name: str = "Flowchart-1", config: Optional[FlowchartConfig] = None) -> None:
        self.name = name
        self.config = config or FlowchartConfig()
        self.shapes: dict[str, Shape] = {}
        self.connections: list[Connection] = []
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._batch_depth = 0
        self._pending: set[str] = set()

    # ----- signals -----

    def on(self, event: str, callback: Listener) -> None:
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Listener) -> None:
        if callback in self._listeners.get(event, []):
            self._listeners[event].remove(callback)

    def emit(self, event: str, payload: Any = None) -> None:
        if event in _BATCHED and self._batch_depth > 0:
            self._pending.add(event)
            return
        for callback in list(self._listeners.get(event, [])):
            callback(payload)

    @contextmanager
    def batch(self) -> Iterator[Flowchart]:
        """Hold back tree/geometry signals until the outermost batch ends."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._pending:
                pending = self._pending
                self._pending = set()
                for event in _BATCHED:
                    if event in pending:
                        self.emit(event)

    # ----- shapes -----

    def get(self, shape_id: Optional[str]) -> Optional[Shape]:
        if shape_id is None:
            return None
        return self.shapes.get(shape_id)

    def add_shape(
        self,
        x: Optional[float] = None,
        y: Optional[float] = None,
        width: Optional[float] = None,
        height: Optional[float] = None,
        text: str = "",
        shape_id: Optional[str] = None,
        heading_id: Optional[str] = None,
        heading_index: Optional[int] = None,
        style: Optional[ShapeStyle] = None,
    ) -> Shape:
        cfg = self.config
        sid = shape_id or new_id("shape")
        if sid in self.shapes:
            raise ValueError(f"shape '{sid}' already exists.")
        shape = Shape(
            id=sid,
            x=cfg.start_x if x is None else x,
            y=cfg.start_y if y is None else y,
            width=cfg.shape_width if width is None else width,
            height=cfg.shape_height if height is None else height,
            text=text,
            heading_id=heading_id,
            heading_index=heading_index,
            style=style or ShapeStyle(),
        )
        self.shapes[sid] = shape
        with self.batch():
            self.emit(TREE)
            self.emit(GEOMETRY)
        return shape

    def remove_shape(self, shape_id: str) -> Optional[str]:
        """Delete a shape, its connections, and orphan its children.

        Returns the id of the former parent (or None).
        """
        shape = self.shapes.get(shape_id)
        if shape is None:
            return None
        old_parent = shape.parent
        with self.batch():
            if shape.parent is not None:
                self.reparent(shape_id, None)
            for child_id in list(shape.children):
                self.reparent(child_id, None)
            before = len(self.connections)
            self.connections = [
                c for c in self.connections
                if c.from_id != shape_id and c.to_id != shape_id
            ]
            if len(self.connections) != before:
                logger.debug("Removed %d connection(s) of shape %s",
                             before - len(self.connections), shape_id)
            del self.shapes[shape_id]
            self.emit(TREE)
            self.emit(GEOMETRY)
        return old_parent

    def move_shape(self, shape_id: str, dx: float, dy: float) -> None:
        """Translate a shape and all of its descendants."""
        shape = self.shapes.get(shape_id)
        if shape is None or (dx == 0 and dy == 0):
            return
        stack = [shape]
        while stack:
            s = stack.pop()
            s.x += dx
            s.y += dy
            stack.extend(c for c in (self.shapes.get(cid) for cid in s.children) if c)
        self.emit(GEOMETRY)

    def set_rect(
        self,
        shape_id: str,
        x: Optional[float] = None,
        y: Optional[float] = None,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> None:
        """Write a shape's rectangle without touching its children."""
        shape = self.shapes.get(shape_id)
        if shape is None:
            return
        if x is not None:
            shape.x = x
        if y is not None:
            shape.y = y
        if width is not None:
            shape.width = width
        if height is not None:
            shape.height = height
        self.emit(GEOMETRY)

    # ----- tree -----

    def roots(self) -> list[Shape]:
        return [s for s in self.shapes.values() if s.parent is None]

    def is_descendant(self, ancestor_id: str, candidate_id: str) -> bool:
        """True if *candidate_id* lies somewhere below *ancestor_id*."""
        ancestor = self.shapes.get(ancestor_id)
        if ancestor is None:
            return False
        seen: set[str] = set()
        stack = list(ancestor.children)
        while stack:
            cid = stack.pop()
            if cid == candidate_id:
                return True
            if cid in seen:
                continue
            seen.add(cid)
            child = self.shapes.get(cid)
            if child:
                stack.extend(child.children)
        return False

    def descendants(self, shape_id: str) -> list[str]:
        """All descendant ids, depth-first in child order."""
        shape = self.shapes.get(shape_id)
        if shape is None:
            return []
        out: list[str] = []
        for cid in shape.children:
            if cid in self.shapes:
                out.append(cid)
                out.extend(self.descendants(cid))
        return out

    def ancestors(self, shape_id: str) -> list[str]:
        """Parent chain from nearest to root."""
        out: list[str] = []
        shape = self.shapes.get(shape_id)
        while shape is not None and shape.parent is not None and shape.parent not in out:
            out.append(shape.parent)
            shape = self.shapes.get(shape.parent)
        return out

    def is_visible(self, shape_id: str) -> bool:
        """A shape is hidden when any ancestor is collapsed."""
        if shape_id not in self.shapes:
            return False
        return not any(
            self.shapes[a].collapsed for a in self.ancestors(shape_id) if a in self.shapes
        )

    def reparent(self, child_id: str, parent_id: Optional[str]) -> bool:
        """Move *child_id* under *parent_id* (or to the top level).

        Returns False, without changing anything, when either shape is
        missing or the link would make a shape its own ancestor.
        """
        child = self.shapes.get(child_id)
        if child is None:
            return False
        parent: Optional[Shape] = None
        if parent_id is not None:
            parent = self.shapes.get(parent_id)
            if parent is None:
                return False
            if parent_id == child_id or self.is_descendant(child_id, parent_id):
                logger.debug("Refusing to nest %s under its descendant %s", child_id, parent_id)
                return False
        if child.parent == parent_id:
            return True
        if child.parent is not None:
            old = self.shapes.get(child.parent)
            if old is not None and child_id in old.children:
                old.children.remove(child_id)
        child.parent = parent_id
        if parent is not None:
            parent.children.append(child_id)
        self.emit(TREE)
        return True

    # ----- connections -----

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        return next((c for c in self.connections if c.id == connection_id), None)

    def find_connection(self, from_id: str, to_id: str) -> Optional[Connection]:
        return next(
            (c for c in self.connections if c.from_id == from_id and c.to_id == to_id),
            None,
        )

    def add_connection(
        self,
        from_id: str,
        to_id: str,
        from_port: Union[Side, str, None] = Side.BOTTOM,
        to_port: Union[Side, str, None] = Side.TOP,
        style: Optional[ConnectionStyle] = None,
        connection_id: Optional[str] = None,
    ) -> Connection:
        if from_id not in self.shapes:
            raise ValueError(f"shape '{from_id}' not found.")
        if to_id not in self.shapes:
            raise ValueError(f"shape '{to_id}' not found.")
        if from_id == to_id:
            raise ValueError("a connection needs two different shapes.")
        conn = Connection(
            id=connection_id or new_id("conn"),
            from_id=from_id,
            to_id=to_id,
            from_port=Side.coerce(from_port, Side.BOTTOM),
            to_port=Side.coerce(to_port, Side.TOP),
            style=style or ConnectionStyle(),
        )
        self.connections.append(conn)
        self.emit(GEOMETRY)
        return conn

    def remove_connection(self, connection_id: str) -> bool:
        before = len(self.connections)
        self.connections = [c for c in self.connections if c.id != connection_id]
        if len(self.connections) == before:
            return False
        self.emit(GEOMETRY)
        return True

    # ----- plain records -----

    def get_data(self) -> dict[str, Any]:
        return {
            "shapes": [s.to_record() for s in self.shapes.values()],
            "connections": [c.to_record() for c in self.connections],
        }

    def set_data(self, data: dict[str, Any]) -> None:
        """Replace all content from plain records, repairing the tree.

        Parent links are authoritative; children lists only fix the order.
        A parent link that would close a cycle is dropped.
        """
        # Parse everything first so bad records leave the store untouched
        shapes = [Shape.from_record(rec) for rec in data.get("shapes") or []]
        connections = [Connection.from_record(rec) for rec in data.get("connections") or []]
        with self.batch():
            self.shapes = {}
            self.connections = []
            listed_order: dict[str, list[str]] = {}
            parents: dict[str, Optional[str]] = {}
            for shape in shapes:
                listed_order[shape.id] = list(shape.children)
                parents[shape.id] = shape.parent
                shape.parent = None
                shape.children = []
                self.shapes[shape.id] = shape

            # Shapes only referenced from a parent's children list
            for pid, kids in listed_order.items():
                for cid in kids:
                    if cid in parents and parents[cid] is None:
                        parents[cid] = pid

            for cid, pid in parents.items():
                if pid is None:
                    continue
                if not self.reparent(cid, pid):
                    logger.warning("Dropped invalid parent link %s -> %s", cid, pid)

            for pid, shape in self.shapes.items():
                order = listed_order.get(pid, [])
                shape.children.sort(
                    key=lambda c: order.index(c) if c in order else len(order)
                )

            for conn in connections:
                if conn.from_id not in self.shapes or conn.to_id not in self.shapes:
                    logger.debug("Keeping dangling connection %s", conn.id)
                self.connections.append(conn)

            self.emit(TREE)
            self.emit(GEOMETRY)
