"""Tests for the core model classes and geometry helpers."""

from flowchart_mcp.geometry import contains, cross, normalize, stub_point
from flowchart_mcp.models import (
    ArcTo,
    Connection,
    ConnectionStyle,
    LineTo,
    Point,
    Rect,
    Shape,
    Side,
    Size,
)


def test_side_vectors_and_opposites() -> None:
    assert Side.TOP.vector == Point(0, -1)
    assert Side.RIGHT.vector == Point(1, 0)
    assert Side.LEFT.is_horizontal
    assert not Side.BOTTOM.is_horizontal
    for side in Side:
        assert side.opposite.opposite == side
        assert side.vector + side.opposite.vector == Point(0, 0)


def test_side_coerce() -> None:
    assert Side.coerce("Left", Side.BOTTOM) == Side.LEFT
    assert Side.coerce(Side.TOP, Side.BOTTOM) == Side.TOP
    assert Side.coerce("diagonal", Side.BOTTOM) == Side.BOTTOM
    assert Side.coerce(None, Side.TOP) == Side.TOP
    assert Side.coerce("", Side.TOP) == Side.TOP


def test_rect_anchors() -> None:
    r = Rect(10, 20, 100, 40)
    assert r.anchor(Side.TOP) == Point(60, 20)
    assert r.anchor(Side.BOTTOM) == Point(60, 60)
    assert r.anchor(Side.LEFT) == Point(10, 40)
    assert r.anchor(Side.RIGHT) == Point(110, 40)
    assert r.span("x") == (10, 110)
    assert r.span("y") == (20, 60)


def test_rect_intersects_and_contains_point() -> None:
    a = Rect(0, 0, 100, 100)
    assert a.intersects(Rect(50, 50, 100, 100))
    assert not a.intersects(Rect(100, 0, 50, 50))  # touching edges
    assert a.contains_point(100, 100)
    assert not a.contains_point(101, 50)


def test_containment_is_centre_based() -> None:
    outer = Rect(0, 0, 200, 100)
    assert contains(Rect(150, 50, 100, 40), outer)     # centre (200, 70)
    assert not contains(Rect(160, 50, 100, 40), outer)  # centre (210, 70)


def test_vector_helpers() -> None:
    assert normalize(Point(3, 4)) == Point(0.6, 0.8)
    assert normalize(Point(0, 0)) == Point(0, 0)
    assert cross(Point(1, 0), Point(0, 1)) == 1
    assert stub_point(Point(60, 36), Side.BOTTOM, 20) == Point(60, 56)


def test_shape_edges_match_bounds() -> None:
    shape = Shape(id="s", x=10, y=20, width=300, height=200)
    assert shape.right == shape.bounds.right == 310
    assert shape.bottom == shape.bounds.bottom == 220


def test_shape_record_round_trip() -> None:
    shape = Shape(
        id="s1", x=5, y=6, width=200, height=80, text="Box",
        parent="p", children=["c"], collapsed=True,
        collapsed_size=Size(120, 36), expanded_size=Size(200, 80),
        heading_id="h", heading_index=2,
    )
    record = shape.to_record()
    assert record["collapsedSize"] == {"width": 120, "height": 36}
    assert record["headingIndex"] == 2
    assert Shape.from_record(record) == shape


def test_shape_record_defaults() -> None:
    shape = Shape.from_record({"id": 7})
    assert shape.id == "7"
    assert (shape.width, shape.height) == (120, 36)
    assert shape.parent is None
    assert shape.expanded_size is None


def test_connection_record() -> None:
    conn = Connection.from_record({
        "from": "a", "to": "b", "fromPort": "left",
        "style": {"type": "dashed"},
    })
    assert conn.id.startswith("conn-")
    assert conn.from_port == Side.LEFT
    assert conn.to_port == Side.TOP
    assert conn.style == ConnectionStyle(type="dashed")
    assert conn.to_record()["toPort"] == "top"


def test_path_command_dicts() -> None:
    assert LineTo(Point(1, 2)).to_dict() == {"type": "line", "to": {"x": 1, "y": 2}}
    assert ArcTo(Point(3, 4), 12, 1).to_dict() == {
        "type": "arc", "to": {"x": 3, "y": 4}, "radius": 12, "sweep": 1,
    }
