"""Tests for the pointer interaction controller."""

from flowchart_mcp.grouping import GroupingEngine
from flowchart_mcp.interaction import IDLE, InteractionController, Mode
from flowchart_mcp.models import LineTo, Point, Side
from flowchart_mcp.store import CLICK, Flowchart


def _controller() -> InteractionController:
    store = Flowchart()
    store.add_shape(0, 0, 300, 200, text="Group", shape_id="g")
    store.add_shape(400, 300, 120, 36, text="A", shape_id="a")
    store.add_shape(600, 300, 120, 36, text="B", shape_id="b")
    return InteractionController(store, GroupingEngine(store))


# ===================================================================
# Dragging
# ===================================================================

class TestDrag:

    def test_small_movement_is_a_click(self) -> None:
        ctl = _controller()
        clicked: list[str] = []
        ctl.store.on(CLICK, clicked.append)
        assert ctl.begin_drag("a", Point(410, 310))
        assert ctl.mode == Mode.DRAGGING
        ctl.move(Point(412, 311))
        ctl.end()
        a = ctl.store.shapes["a"]
        assert (a.x, a.y) == (400, 300)
        assert clicked == ["a"]
        assert ctl.state == IDLE

    def test_drag_moves_and_regroups(self) -> None:
        ctl = _controller()
        ctl.begin_drag("a", Point(410, 310))
        ctl.move(Point(200, 200))
        ctl.move(Point(60, 90))
        a = ctl.store.shapes["a"]
        assert (a.x, a.y) == (50, 80)
        # Grouping only happens on release
        assert a.parent is None
        ctl.end()
        assert a.parent == "g"

    def test_drag_out_ungroups(self) -> None:
        ctl = _controller()
        ctl.store.move_shape("a", -350, -220)  # (50, 80)
        ctl.engine.group("g", "a")
        ctl.begin_drag("a", Point(60, 90))
        ctl.move(Point(810, 610))
        ctl.end()
        assert ctl.store.shapes["a"].parent is None

    def test_drag_clamps_at_origin(self) -> None:
        ctl = _controller()
        ctl.begin_drag("a", Point(410, 310))
        ctl.move(Point(-100, -100))
        a = ctl.store.shapes["a"]
        assert (a.x, a.y) == (0, 0)

    def test_drag_moves_children(self) -> None:
        ctl = _controller()
        ctl.store.move_shape("a", -350, -220)  # (50, 80)
        ctl.engine.group("g", "a")
        ctl.begin_drag("g", Point(10, 10))
        ctl.move(Point(110, 10))
        assert ctl.store.shapes["g"].x == 100
        assert ctl.store.shapes["a"].x == 150

    def test_unknown_shape(self) -> None:
        ctl = _controller()
        assert not ctl.begin_drag("ghost", Point(0, 0))
        assert ctl.state == IDLE


# ===================================================================
# Resizing
# ===================================================================

class TestResize:

    def test_resize_south_east(self) -> None:
        ctl = _controller()
        assert ctl.begin_resize("a", "se", Point(520, 336))
        ctl.move(Point(600, 400))
        ctl.end()
        a = ctl.store.shapes["a"]
        assert (a.x, a.y, a.width, a.height) == (400, 300, 200, 100)
        assert (a.expanded_size.width, a.expanded_size.height) == (200, 100)

    def test_resize_north_west_keeps_far_corner(self) -> None:
        ctl = _controller()
        ctl.store.set_rect("a", width=200, height=100)
        ctl.begin_resize("a", "nw", Point(400, 300))
        ctl.move(Point(450, 320))
        a = ctl.store.shapes["a"]
        assert (a.x, a.y, a.width, a.height) == (450, 320, 150, 80)

    def test_resize_clamps_to_minimum(self) -> None:
        ctl = _controller()
        ctl.begin_resize("a", "se", Point(520, 336))
        ctl.move(Point(300, 200))
        a = ctl.store.shapes["a"]
        assert (a.width, a.height) == (120, 36)

    def test_resize_child_grows_parent(self) -> None:
        ctl = _controller()
        ctl.store.move_shape("a", -360, -220)  # (40, 80)
        ctl.engine.group("g", "a")
        ctl.begin_resize("a", "e", Point(160, 98))
        ctl.move(Point(460, 98))
        g = ctl.store.shapes["g"]
        assert ctl.store.shapes["a"].width == 420
        assert g.x + g.width == 480

    def test_invalid_handle(self) -> None:
        ctl = _controller()
        assert not ctl.begin_resize("a", "middle", Point(0, 0))
        assert ctl.mode == Mode.IDLE


# ===================================================================
# Connecting
# ===================================================================

class TestConnect:

    def test_preview_follows_pointer(self) -> None:
        ctl = _controller()
        assert ctl.begin_connect("a", "right")
        commands = ctl.move(Point(560, 250))
        assert commands is not None
        assert commands[-1] == LineTo(Point(560, 250))

    def test_release_on_port_creates_connection(self) -> None:
        ctl = _controller()
        ctl.begin_connect("a", "right")
        conn = ctl.end("b", "left")
        assert conn is not None
        assert (conn.from_id, conn.to_id) == ("a", "b")
        assert (conn.from_port, conn.to_port) == (Side.RIGHT, Side.LEFT)
        assert ctl.store.connections == [conn]

    def test_duplicate_connection_not_created(self) -> None:
        ctl = _controller()
        ctl.begin_connect("a", "right")
        ctl.end("b", "left")
        ctl.begin_connect("a", "bottom")
        assert ctl.end("b", "top") is None
        assert len(ctl.store.connections) == 1

    def test_release_on_self_or_nothing(self) -> None:
        ctl = _controller()
        ctl.begin_connect("a", None)
        assert ctl.state.start_side == Side.BOTTOM
        assert ctl.end("a", "top") is None
        ctl.begin_connect("a", "top")
        assert ctl.end() is None
        assert ctl.store.connections == []


# ===================================================================
# Panning and cancel
# ===================================================================

def test_pan_accumulates() -> None:
    ctl = _controller()
    ctl.begin_pan(Point(0, 0))
    ctl.move(Point(30, 40))
    ctl.end()
    assert ctl.pan_offset == Point(30, 40)
    ctl.begin_pan(Point(100, 100))
    ctl.move(Point(90, 100))
    assert ctl.pan_offset == Point(20, 40)


def test_cancel_keeps_positions() -> None:
    ctl = _controller()
    ctl.begin_drag("a", Point(410, 310))
    ctl.move(Point(460, 310))
    ctl.cancel()
    assert ctl.state == IDLE
    assert ctl.store.shapes["a"].x == 450
    assert ctl.move(Point(0, 0)) is None
