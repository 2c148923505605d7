"""Tests for input validation in the MCP server tools."""

import pytest

from flowchart_mcp.validation import (
    ValidationError,
    validate_action,
    validate_color,
    validate_connection_dict,
    validate_dict,
    validate_enum,
    validate_heading_list,
    validate_list,
    validate_non_empty_string,
    validate_number,
    validate_positive_number,
    validate_resize_handle,
    validate_shape_dict,
    validate_shape_style_dict,
    validate_string,
    validate_style_dict,
    _FLOWCHART_ACTIONS,
    _SHAPE_ACTIONS,
)


# ===================================================================
# Unit tests for primitive validators
# ===================================================================


class TestValidateNonEmptyString:
    def test_valid(self) -> None:
        assert validate_non_empty_string("hello", "f") == "hello"

    def test_strips_whitespace(self) -> None:
        assert validate_non_empty_string("  hi  ", "f") == "hi"

    def test_empty_string(self) -> None:
        with pytest.raises(ValidationError, match="non-empty"):
            validate_non_empty_string("", "field")

    def test_not_a_string(self) -> None:
        with pytest.raises(ValidationError, match="non-empty"):
            validate_non_empty_string(123, "field")


class TestValidateString:
    def test_allows_empty(self) -> None:
        assert validate_string("", "f") == ""

    def test_rejects_empty_when_asked(self) -> None:
        with pytest.raises(ValidationError, match="must not be empty"):
            validate_string("  ", "f", allow_empty=False)

    def test_wrong_type(self) -> None:
        with pytest.raises(ValidationError, match="got int"):
            validate_string(5, "f")


class TestValidateColor:
    def test_valid_forms(self) -> None:
        assert validate_color("#fff", "c") == "#fff"
        assert validate_color(" #A1B2C3 ", "c") == "#A1B2C3"
        assert validate_color("#11223344", "c") == "#11223344"

    def test_invalid(self) -> None:
        with pytest.raises(ValidationError, match="valid hex color"):
            validate_color("blue", "c")

    def test_wrong_type(self) -> None:
        with pytest.raises(ValidationError, match="color string"):
            validate_color(None, "c")


class TestValidateNumber:
    def test_int_and_float(self) -> None:
        assert validate_number(3, "n") == 3.0
        assert validate_number(2.5, "n") == 2.5

    def test_bool_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must be a number"):
            validate_number(True, "n")

    def test_range(self) -> None:
        with pytest.raises(ValidationError, match=">= 0"):
            validate_number(-1, "n", min_val=0)
        with pytest.raises(ValidationError, match="<= 10"):
            validate_number(11, "n", max_val=10)

    def test_positive(self) -> None:
        assert validate_positive_number(1, "n") == 1.0
        with pytest.raises(ValidationError):
            validate_positive_number(0, "n")


class TestValidateEnum:
    def test_case_insensitive(self) -> None:
        assert validate_enum("DASHED", "t", {"solid", "dashed"}) == "dashed"

    def test_unknown(self) -> None:
        with pytest.raises(ValidationError, match=r"one of \[dashed, solid\]"):
            validate_enum("dotted", "t", {"solid", "dashed"})


class TestValidateListAndDict:
    def test_list(self) -> None:
        assert validate_list([1], "l", min_length=1) == [1]
        with pytest.raises(ValidationError, match="must be a list"):
            validate_list(None, "l")
        with pytest.raises(ValidationError, match="at least 2"):
            validate_list([1], "l", min_length=2)

    def test_dict(self) -> None:
        assert validate_dict({}, "d") == {}
        with pytest.raises(ValidationError, match="dict/object"):
            validate_dict([], "d")


class TestValidateAction:
    def test_valid(self) -> None:
        assert validate_action("Create", "flowchart", _FLOWCHART_ACTIONS) == "create"
        assert validate_action(" toggle_collapse ", "shape", _SHAPE_ACTIONS) == "toggle_collapse"

    def test_missing(self) -> None:
        with pytest.raises(ValidationError, match="requires an 'action'"):
            validate_action(None, "shape", _SHAPE_ACTIONS)

    def test_unknown_lists_choices(self) -> None:
        with pytest.raises(ValidationError, match="Valid actions: add, drop, group"):
            validate_action("explode", "shape", _SHAPE_ACTIONS)


# ===================================================================
# Domain validators
# ===================================================================


class TestValidateShapeDict:
    def test_valid(self) -> None:
        validate_shape_dict({"text": "A", "x": 0, "y": 10.5, "width": 120}, 0)

    def test_empty_is_valid(self) -> None:
        validate_shape_dict({}, 0)

    def test_not_a_dict(self) -> None:
        with pytest.raises(ValidationError, match="index 3 must be a dict"):
            validate_shape_dict("A", 3)

    def test_bad_coordinate(self) -> None:
        with pytest.raises(ValidationError, match=r"'shapes\[0\]\.x' must be a number"):
            validate_shape_dict({"x": "10"}, 0)

    def test_non_positive_size(self) -> None:
        with pytest.raises(ValidationError, match=r"'shapes\[1\]\.height' must be >= 0.001"):
            validate_shape_dict({"height": 0}, 1)

    def test_bad_style_color(self) -> None:
        with pytest.raises(ValidationError, match=r"shapes\[2\]\.style\.borderColor"):
            validate_shape_dict({"style": {"borderColor": "navy"}}, 2)


class TestValidateShapeStyleDict:
    def test_valid(self) -> None:
        style = {"backgroundColor": "#fff", "borderColor": None, "color": "#112233"}
        assert validate_shape_style_dict(style) == style

    def test_unknown_key(self) -> None:
        with pytest.raises(ValidationError, match="not a shape style key"):
            validate_shape_style_dict({"fill": "#fff"})

    def test_not_a_dict(self) -> None:
        with pytest.raises(ValidationError, match="dict/object"):
            validate_shape_style_dict("#fff")


class TestValidateConnectionDict:
    def test_valid(self) -> None:
        validate_connection_dict({"from_id": "a", "to_id": "b", "from_port": "right"}, 0)

    def test_unknown_port_tolerated(self) -> None:
        validate_connection_dict({"from_id": "a", "to_id": "b", "to_port": "middle"}, 0)

    def test_missing_key(self) -> None:
        with pytest.raises(ValidationError, match="missing required key 'to_id'"):
            validate_connection_dict({"from_id": "a"}, 0)

    def test_self_loop(self) -> None:
        with pytest.raises(ValidationError, match="must be different"):
            validate_connection_dict({"from_id": "a", "to_id": "a"}, 0)

    def test_bad_style(self) -> None:
        with pytest.raises(ValidationError, match="style.type"):
            validate_connection_dict({"from_id": "a", "to_id": "b", "style": {"type": "wavy"}}, 0)


class TestValidateStyleDict:
    def test_valid(self) -> None:
        style = {"type": "dashed", "arrow": "both", "color": "#94a3b8", "label": "yes"}
        assert validate_style_dict(style) == style

    def test_bad_color(self) -> None:
        with pytest.raises(ValidationError, match="style.color"):
            validate_style_dict({"color": "grey"})

    def test_bad_label(self) -> None:
        with pytest.raises(ValidationError, match="style.label"):
            validate_style_dict({"label": 3})


class TestValidateHeadings:
    def test_valid(self) -> None:
        headings = [{"id": "h1", "text": "Intro"}, {"text": "No id"}]
        assert validate_heading_list(headings) == headings

    def test_missing_text(self) -> None:
        with pytest.raises(ValidationError, match="Heading at index 0: 'text'"):
            validate_heading_list([{"id": "h1"}])

    def test_bad_id(self) -> None:
        with pytest.raises(ValidationError, match="'id' must be a string"):
            validate_heading_list([{"id": 4, "text": "x"}])


def test_resize_handle() -> None:
    assert validate_resize_handle("SE") == "se"
    with pytest.raises(ValidationError, match="'handle' must be one of"):
        validate_resize_handle("middle")
