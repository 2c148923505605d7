"""
Containment and grouping engine.

Infers parent/child nesting from where shapes are dropped, keeps
containers sized around their children, and collapses/expands containers
while shifting their siblings so nothing new overlaps and no needless gap
is left behind.

All tree changes go through ``Flowchart.reparent``; this module never
writes ``parent``/``children`` itself.
"""

from __future__ import annotations

import logging
from typing import Optional

from flowchart_mcp.geometry import contains
from flowchart_mcp.models import FlowchartConfig, Shape, Size
from flowchart_mcp.store import GEOMETRY, TREE, Flowchart

logger = logging.getLogger("flowchart-mcp")


class GroupingEngine:
    """Grouping, auto-sizing and collapse logic over one store."""

    def __init__(self, store: Flowchart) -> None:
        self.store = store

    @property
    def config(self) -> FlowchartConfig:
        return self.store.config

    # ------------------------------------------------------------------
    # Drop handling
    # ------------------------------------------------------------------

    def contains(self, inner_id: str, outer_id: str) -> bool:
        """True when the centre of *inner_id* lies inside *outer_id*."""
        inner = self.store.get(inner_id)
        outer = self.store.get(outer_id)
        if inner is None or outer is None:
            return False
        return contains(inner.bounds, outer.bounds)

    def handle_drop(self, shape_id: str) -> Optional[str]:
        """Regroup a shape after a manual move ends.

        The topmost visible shape containing the dropped shape's centre
        becomes its parent. With no such shape, a shape that has left its
        current parent is ungrouped. Returns the resulting parent id.
        """
        store = self.store
        shape = store.get(shape_id)
        if shape is None:
            return None

        z = self.z_order()
        best: Optional[Shape] = None
        for other in store.shapes.values():
            if other.id == shape_id:
                continue
            # Dropping onto one's own descendant would close a cycle
            if store.is_descendant(shape_id, other.id):
                continue
            if not store.is_visible(other.id):
                continue
            if contains(shape.bounds, other.bounds):
                if best is None or z.get(other.id, 0) > z.get(best.id, 0):
                    best = other

        if best is not None:
            self.group(best.id, shape_id)
        elif shape.parent is not None:
            parent = store.get(shape.parent)
            if parent is not None and not contains(shape.bounds, parent.bounds):
                self.ungroup(shape_id)
        return shape.parent

    def group(self, parent_id: str, child_id: str) -> bool:
        """Nest *child_id* inside *parent_id* and re-fit both containers."""
        store = self.store
        child = store.get(child_id)
        if child is None or store.get(parent_id) is None:
            return False
        if child.parent == parent_id:
            return True
        old_parent = child.parent
        with store.batch():
            if not store.reparent(child_id, parent_id):
                return False
            if old_parent is not None:
                self.fit_ancestors(old_parent)
            self.fit_ancestors(parent_id)
        logger.debug("Grouped %s under %s", child_id, parent_id)
        return True

    def ungroup(self, child_id: str) -> bool:
        """Move *child_id* to the top level."""
        store = self.store
        child = store.get(child_id)
        if child is None or child.parent is None:
            return False
        old_parent = child.parent
        with store.batch():
            store.reparent(child_id, None)
            self.fit_ancestors(old_parent)
        logger.debug("Ungrouped %s from %s", child_id, old_parent)
        return True

    def remove_shape(self, shape_id: str) -> bool:
        """Delete a shape; its children are orphaned, its connections dropped."""
        store = self.store
        if store.get(shape_id) is None:
            return False
        with store.batch():
            old_parent = store.remove_shape(shape_id)
            if old_parent is not None:
                self.fit_ancestors(old_parent)
        return True

    # ------------------------------------------------------------------
    # Sizing
    # ------------------------------------------------------------------

    def update_parent_size(self, shape_id: str) -> None:
        """Grow a container around its children.

        The container never shrinks below its current size or its memoized
        expanded size. Collapsed containers ignore their children.
        """
        store = self.store
        shape = store.get(shape_id)
        if shape is None or not shape.children:
            return
        cfg = self.config

        if shape.collapsed:
            store.set_rect(
                shape_id,
                width=shape.width or cfg.shape_width,
                height=shape.height or cfg.shape_height,
            )
            return

        kids = [c for c in (store.get(cid) for cid in shape.children) if c is not None]
        if not kids:
            return
        min_x = min(k.x for k in kids)
        min_y = min(k.y for k in kids)
        max_x = max(k.x + k.width for k in kids)
        max_y = max(k.y + k.height for k in kids)

        pad = cfg.group_padding
        header = cfg.group_header_height
        new_x = min(shape.x, min_x - pad)
        new_y = min(shape.y, min_y - header - pad)
        new_w = max(shape.right, max_x + pad) - new_x
        new_h = max(shape.bottom, max_y + pad) - new_y
        if shape.expanded_size is not None:
            new_w = max(new_w, shape.expanded_size.width)
            new_h = max(new_h, shape.expanded_size.height)

        store.set_rect(shape_id, new_x, new_y, new_w, new_h)
        shape.expanded_size = Size(new_w, new_h)

    def fit_ancestors(self, shape_id: str) -> None:
        """Re-fit *shape_id* and every container above it."""
        for sid in [shape_id, *self.store.ancestors(shape_id)]:
            self.update_parent_size(sid)

    # ------------------------------------------------------------------
    # Collapse / expand
    # ------------------------------------------------------------------

    def toggle_collapse(self, shape_id: str) -> bool:
        """Collapse or expand a container. Returns the new collapsed flag."""
        store = self.store
        shape = store.get(shape_id)
        if shape is None:
            return False
        if not shape.children and not shape.collapsed:
            logger.debug("Ignoring collapse of leaf %s", shape_id)
            return False
        cfg = self.config

        with store.batch():
            if shape.collapsed:
                shape.collapsed_size = Size(shape.width, shape.height)
            else:
                shape.expanded_size = Size(shape.width, shape.height)

            old_width = shape.width
            old_height = shape.height
            shape.collapsed = not shape.collapsed

            if shape.collapsed:
                size = shape.collapsed_size or Size(cfg.shape_width, cfg.shape_height)
                store.set_rect(shape_id, width=size.width, height=size.height)
            elif shape.expanded_size is not None:
                store.set_rect(
                    shape_id,
                    width=shape.expanded_size.width,
                    height=shape.expanded_size.height,
                )
            else:
                self.update_parent_size(shape_id)

            delta_x = shape.width - old_width
            delta_y = shape.height - old_height
            if delta_x != 0 or delta_y != 0:
                self.adjust_layout(shape_id, delta_x, delta_y, old_width, old_height)

            if shape.parent is not None:
                self.fit_ancestors(shape.parent)
            # Descendants appeared or disappeared
            store.emit(TREE)
            store.emit(GEOMETRY)

        logger.debug("%s %s", "Collapsed" if shape.collapsed else "Expanded", shape_id)
        return shape.collapsed

    def collapse_affordance(self, shape_id: str) -> Optional[str]:
        """Glyph of the expand/collapse control, or None when not a container."""
        shape = self.store.get(shape_id)
        if shape is None or not shape.children:
            return None
        return "+" if shape.collapsed else "-"

    def hidden_shapes(self) -> list[str]:
        return [sid for sid in self.store.shapes if not self.store.is_visible(sid)]

    # ------------------------------------------------------------------
    # Cascading displacement
    # ------------------------------------------------------------------

    def adjust_layout(
        self,
        shape_id: str,
        delta_x: float,
        delta_y: float,
        old_width: Optional[float] = None,
        old_height: Optional[float] = None,
    ) -> list[str]:
        """Shift siblings after *shape_id* changed size.

        Each axis is handled on its own. Growth pushes siblings beyond the
        old far edge outward, but only when something actually sits in the
        newly covered span. Shrinkage pulls siblings that started at or
        beyond the old edge inward, never past a still-expanded sibling
        container spanning the vacated region. Returns the moved ids.
        """
        store = self.store
        source = store.get(shape_id)
        if source is None:
            return []

        old_right = source.x + (source.width if old_width is None else old_width)
        old_bottom = source.y + (source.height if old_height is None else old_height)
        new_right = source.right
        new_bottom = source.bottom

        eff_x = self._effective_delta(delta_x, source, "x", old_right, new_right)
        eff_y = self._effective_delta(delta_y, source, "y", old_bottom, new_bottom)
        if eff_x == 0 and eff_y == 0:
            return []

        moved: list[str] = []
        with store.batch():
            for shape in self._siblings(source):
                dx = self._axis_shift(shape, "x", delta_x, eff_x, old_right)
                dy = self._axis_shift(shape, "y", delta_y, eff_y, old_bottom)
                if dx != 0 or dy != 0:
                    store.move_shape(shape.id, dx, dy)
                    moved.append(shape.id)
        return moved

    @staticmethod
    def _axis_shift(shape: Shape, axis: str, delta: float, effective: float, old_edge: float) -> float:
        if effective == 0:
            return 0
        start, end = shape.bounds.span(axis)
        if delta > 0:
            return effective if end > old_edge else 0
        return effective if start >= old_edge else 0

    def _siblings(self, source: Shape) -> list[Shape]:
        """Shapes on the same level as *source* (same parent, or both top-level)."""
        store = self.store
        return [
            s for s in list(store.shapes.values())
            if s.id != source.id
            and s.parent == source.parent
            and not store.is_descendant(source.id, s.id)
        ]

    def _effective_delta(
        self,
        delta: float,
        source: Shape,
        axis: str,
        old_edge: float,
        new_edge: float,
    ) -> float:
        if delta < 0:
            limit = self._blocking_edge(source, axis, old_edge, new_edge)
            if limit is None:
                return delta
            adjusted = limit - old_edge
            return 0 if adjusted >= 0 else adjusted
        if delta > 0:
            return delta if self._growth_overlaps(source, axis, old_edge, new_edge) else 0
        return 0

    def _blocking_edge(
        self, source: Shape, axis: str, old_edge: float, new_edge: float,
    ) -> Optional[float]:
        """Far edge of the most restrictive expanded container in the vacated span."""
        limit: Optional[float] = None
        for shape in self._siblings(source):
            if not shape.children or shape.collapsed:
                continue
            start, end = shape.bounds.span(axis)
            if end > new_edge and start < old_edge:
                limit = end if limit is None else max(limit, end)
        return limit

    def _growth_overlaps(
        self, source: Shape, axis: str, old_edge: float, new_edge: float,
    ) -> bool:
        for shape in self._siblings(source):
            start, end = shape.bounds.span(axis)
            if end > old_edge and start < new_edge:
                return True
        return False

    # ------------------------------------------------------------------
    # Z-order
    # ------------------------------------------------------------------

    def z_order(self) -> dict[str, int]:
        """Render order: depth-first from the roots, children above parents."""
        store = self.store
        order: dict[str, int] = {}

        def visit(shape: Shape, z: int) -> int:
            order[shape.id] = z
            current = z
            for cid in shape.children:
                child = store.get(cid)
                if child is not None and cid not in order:
                    current = visit(child, current + 1)
            return current

        z = 1
        for root in store.roots():
            z = visit(root, z) + 1
        return order

    def compute_z_order(self) -> dict[str, int]:
        """Recompute and store ``z_index`` on every shape."""
        order = self.z_order()
        for sid, z in order.items():
            self.store.shapes[sid].z_index = z
        return order
