"""
Pointer interaction controller.

All transient gesture state (what is being dragged, which resize handle is
held, where a connection started, the pan offset) lives in one
:class:`InteractionState` value owned by :class:`InteractionController`.
The state only changes at gesture boundaries: ``begin_*``, ``move``,
``end`` and ``cancel``.

Shape positions are written to the store as the pointer moves; releasing
outside any valid target simply returns to idle without rolling back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

from flowchart_mcp.grouping import GroupingEngine
from flowchart_mcp.models import Connection, PathCommand, Point, Rect, Side, Size
from flowchart_mcp.routing import RouterConfig, preview_route
from flowchart_mcp.store import CLICK, Flowchart

logger = logging.getLogger("flowchart-mcp")

RESIZE_HANDLES = frozenset({"n", "s", "e", "w", "ne", "nw", "se", "sw"})


class Mode(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    RESIZING = "resizing"
    CONNECTING = "connecting"
    PANNING = "panning"


@dataclass(frozen=True)
class InteractionState:
    """Snapshot of the gesture in progress."""
    mode: Mode = Mode.IDLE
    target_id: Optional[str] = None
    handle: Optional[str] = None
    origin: Optional[Point] = None       # Pointer position at gesture start
    start_rect: Optional[Rect] = None    # Shape rectangle at gesture start
    offset: Optional[Point] = None       # Pointer minus shape origin while dragging
    has_moved: bool = False
    start_side: Optional[Side] = None
    start_pan: Optional[Point] = None


IDLE = InteractionState()


class InteractionController:
    """Turns pointer events into store mutations."""

    def __init__(
        self,
        store: Flowchart,
        engine: Optional[GroupingEngine] = None,
        router_config: Optional[RouterConfig] = None,
    ) -> None:
        self.store = store
        self.engine = engine or GroupingEngine(store)
        self.router_config = router_config or RouterConfig()
        self.state = IDLE
        self.pan_offset = Point(0, 0)

    @property
    def mode(self) -> Mode:
        return self.state.mode

    # ----- gesture start -----

    def begin_drag(self, shape_id: str, pointer: Point) -> bool:
        shape = self.store.get(shape_id)
        if shape is None:
            logger.warning("Shape data not found for id: %s", shape_id)
            self.state = IDLE
            return False
        self.state = InteractionState(
            mode=Mode.DRAGGING,
            target_id=shape_id,
            origin=pointer,
            start_rect=shape.bounds,
            offset=Point(pointer.x - shape.x, pointer.y - shape.y),
        )
        return True

    def begin_resize(self, shape_id: str, handle: str, pointer: Point) -> bool:
        shape = self.store.get(shape_id)
        if shape is None or handle not in RESIZE_HANDLES:
            self.state = IDLE
            return False
        self.state = InteractionState(
            mode=Mode.RESIZING,
            target_id=shape_id,
            handle=handle,
            origin=pointer,
            start_rect=shape.bounds,
        )
        return True

    def begin_connect(self, shape_id: str, side: Union[Side, str, None]) -> bool:
        if self.store.get(shape_id) is None:
            self.state = IDLE
            return False
        self.state = InteractionState(
            mode=Mode.CONNECTING,
            target_id=shape_id,
            start_side=Side.coerce(side, Side.BOTTOM),
        )
        return True

    def begin_pan(self, pointer: Point) -> None:
        self.state = InteractionState(
            mode=Mode.PANNING, origin=pointer, start_pan=self.pan_offset,
        )

    # ----- gesture progress -----

    def move(self, pointer: Point) -> Optional[list[PathCommand]]:
        """Advance the current gesture.

        While connecting, returns the preview path from the start anchor to
        the pointer; otherwise None.
        """
        mode = self.state.mode
        if mode == Mode.DRAGGING:
            self._drag_to(pointer)
        elif mode == Mode.RESIZING:
            self._resize_to(pointer)
        elif mode == Mode.PANNING:
            origin = self.state.origin or pointer
            start = self.state.start_pan or Point(0, 0)
            self.pan_offset = start + (pointer - origin)
        elif mode == Mode.CONNECTING:
            return self._preview(pointer)
        return None

    def _drag_to(self, pointer: Point) -> None:
        st = self.state
        shape = self.store.get(st.target_id)
        if shape is None or st.origin is None or st.offset is None:
            self.state = IDLE
            return
        if not st.has_moved:
            threshold = self.store.config.drag_threshold
            if abs(pointer.x - st.origin.x) <= threshold and abs(pointer.y - st.origin.y) <= threshold:
                return
            self.state = st = replace(st, has_moved=True)

        new_x = max(0.0, pointer.x - st.offset.x)
        new_y = max(0.0, pointer.y - st.offset.y)
        self.store.move_shape(shape.id, new_x - shape.x, new_y - shape.y)

    def _resize_to(self, pointer: Point) -> None:
        st = self.state
        shape = self.store.get(st.target_id)
        if shape is None or st.origin is None or st.start_rect is None or st.handle is None:
            self.state = IDLE
            return
        cfg = self.store.config
        dx = pointer.x - st.origin.x
        dy = pointer.y - st.origin.y
        r = st.start_rect

        new_x, new_y, new_w, new_h = r.x, r.y, r.width, r.height
        if "e" in st.handle:
            new_w = max(cfg.min_width, r.width + dx)
        if "w" in st.handle:
            new_w = max(cfg.min_width, r.width - dx)
            new_x = r.x + (r.width - new_w)
        if "s" in st.handle:
            new_h = max(cfg.min_height, r.height + dy)
        if "n" in st.handle:
            new_h = max(cfg.min_height, r.height - dy)
            new_y = r.y + (r.height - new_h)

        with self.store.batch():
            self.store.set_rect(shape.id, new_x, new_y, new_w, new_h)
            if shape.collapsed:
                shape.collapsed_size = Size(new_w, new_h)
            else:
                shape.expanded_size = Size(new_w, new_h)
            if shape.parent is not None:
                self.engine.fit_ancestors(shape.parent)

    def _preview(self, pointer: Point) -> Optional[list[PathCommand]]:
        st = self.state
        shape = self.store.get(st.target_id)
        if shape is None:
            return None
        side = st.start_side or Side.BOTTOM
        start = shape.bounds.anchor(side)
        return preview_route(start, side, pointer, self.router_config)

    # ----- gesture end -----

    def end(
        self,
        target_id: Optional[str] = None,
        target_side: Union[Side, str, None] = None,
    ) -> Optional[Connection]:
        """Finish the gesture.

        A drag that moved regroups the shape; one that did not is a click
        (``click`` signal). A connect gesture released on another shape's
        port creates the connection unless it already exists.
        """
        st = self.state
        self.state = IDLE
        created: Optional[Connection] = None

        if st.mode == Mode.DRAGGING and st.target_id is not None:
            if st.has_moved:
                self.engine.handle_drop(st.target_id)
            elif self.store.get(st.target_id) is not None:
                self.store.emit(CLICK, st.target_id)

        elif st.mode == Mode.CONNECTING and st.target_id is not None:
            if (
                target_id is not None
                and target_id != st.target_id
                and self.store.get(target_id) is not None
                and self.store.get(st.target_id) is not None
                and self.store.find_connection(st.target_id, target_id) is None
            ):
                created = self.store.add_connection(
                    st.target_id,
                    target_id,
                    st.start_side,
                    Side.coerce(target_side, Side.TOP),
                )
        return created

    def cancel(self) -> None:
        """Drop transient state; positions already written stay."""
        self.state = IDLE
