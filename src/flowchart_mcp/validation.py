"""
Input validation for flowchart MCP server tool parameters.

Provides reusable validators that produce clear error messages for all
parameters received from LLM callers.
"""

from __future__ import annotations

import re
from typing import Any


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_string(value: Any, field_name: str, *, allow_empty: bool = True) -> str:
    """Ensure *value* is a string (optionally non-empty)."""
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a string, got {type(value).__name__}.")
    if not allow_empty and not value.strip():
        raise ValidationError(f"'{field_name}' must not be empty.")
    return value


def validate_color(value: Any, field_name: str) -> str:
    """Validate a CSS-style hex color (#RGB, #RRGGBB, #RRGGBBAA)."""
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a color string, got {type(value).__name__}.")
    value = value.strip()
    if not re.match(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$", value):
        raise ValidationError(
            f"'{field_name}' must be a valid hex color (#RGB, #RRGGBB, or #RRGGBBAA), got '{value}'."
        )
    return value


def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a numeric value and optional range."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_positive_number(value: Any, field_name: str) -> float:
    """Validate that a number is positive (> 0)."""
    return validate_number(value, field_name, min_val=0.001)


def validate_enum(value: Any, field_name: str, allowed: set[str]) -> str:
    """Validate that a string value is one of the allowed choices (case-insensitive)."""
    if not isinstance(value, str):
        raise ValidationError(
            f"'{field_name}' must be a string, got {type(value).__name__}."
        )
    normalized = value.strip().lower()
    if normalized not in {a.lower() for a in allowed}:
        choices = ", ".join(sorted(allowed))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return normalized


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    """Ensure *value* is a list with at least *min_length* items."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    return value


def validate_dict(value: Any, field_name: str) -> dict:
    """Ensure *value* is a dict."""
    if not isinstance(value, dict):
        raise ValidationError(
            f"'{field_name}' must be a dict/object, got {type(value).__name__}."
        )
    return value


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_FLOWCHART_ACTIONS = {"CREATE", "LIST", "DELETE", "GET_DATA", "SET_DATA", "SYNC_HEADINGS"}
_SHAPE_ACTIONS = {
    "ADD", "MOVE", "RESIZE", "REMOVE", "DROP",
    "GROUP", "UNGROUP", "TOGGLE_COLLAPSE", "SET_STYLE",
}
_CONNECTION_ACTIONS = {"ADD", "REMOVE", "SET_STYLE", "PREVIEW"}
_INSPECT_ACTIONS = {"SHAPES", "CONNECTIONS", "PATHS", "TREE", "SNAPSHOT"}

_LINE_TYPES = {"solid", "dashed"}
_ARROW_STYLES = {"end", "both", "none"}
_SHAPE_STYLE_KEYS = {"backgroundColor", "borderColor", "color"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_shape_dict(s: dict, index: int) -> None:
    """Validate a single shape dict from the shapes list."""
    if not isinstance(s, dict):
        raise ValidationError(f"Shape at index {index} must be a dict/object.")
    if "text" in s and not isinstance(s["text"], str):
        raise ValidationError(f"Shape at index {index}: 'text' must be a string.")
    for key in ("x", "y"):
        if key in s:
            validate_number(s[key], f"shapes[{index}].{key}")
    for key in ("width", "height"):
        if key in s:
            validate_positive_number(s[key], f"shapes[{index}].{key}")
    if "shape_id" in s and not isinstance(s["shape_id"], str):
        raise ValidationError(f"Shape at index {index}: 'shape_id' must be a string.")
    if "style" in s:
        validate_shape_style_dict(s["style"], f"shapes[{index}].style")


def validate_shape_style_dict(value: Any, field_name: str = "style") -> dict[str, Any]:
    """Validate a shape style object (backgroundColor, borderColor, color)."""
    style = validate_dict(value, field_name)
    for key, val in style.items():
        if key not in _SHAPE_STYLE_KEYS:
            choices = ", ".join(sorted(_SHAPE_STYLE_KEYS))
            raise ValidationError(
                f"'{field_name}.{key}' is not a shape style key. Use one of [{choices}]."
            )
        if val is not None:
            validate_color(val, f"{field_name}.{key}")
    return style


def validate_connection_dict(c: dict, index: int) -> None:
    """Validate a single connection dict from the connections list."""
    if not isinstance(c, dict):
        raise ValidationError(f"Connection at index {index} must be a dict/object.")
    for key in ("from_id", "to_id"):
        if key not in c:
            raise ValidationError(f"Connection at index {index} missing required key '{key}'.")
        if not isinstance(c[key], str) or not c[key].strip():
            raise ValidationError(f"Connection at index {index}: '{key}' must be a non-empty string.")
    if c["from_id"] == c["to_id"]:
        raise ValidationError(
            f"Connection at index {index}: 'from_id' and 'to_id' must be different."
        )
    # Unknown port names are tolerated here and coerced by the engine
    for key in ("from_port", "to_port"):
        if key in c and c[key] is not None and not isinstance(c[key], str):
            raise ValidationError(f"Connection at index {index}: '{key}' must be a string.")
    if "style" in c:
        validate_style_dict(c["style"])


def validate_style_dict(value: Any) -> dict[str, str]:
    """Validate a connection style object (type, arrow, color, label)."""
    style = validate_dict(value, "style")
    if "type" in style:
        validate_enum(style["type"], "style.type", _LINE_TYPES)
    if "arrow" in style:
        validate_enum(style["arrow"], "style.arrow", _ARROW_STYLES)
    if "color" in style:
        validate_color(style["color"], "style.color")
    if "label" in style:
        validate_string(style["label"], "style.label")
    return style


def validate_heading_list(value: Any) -> list[dict[str, Any]]:
    """Validate the heading list passed to sync_headings."""
    headings = validate_list(value, "headings")
    for i, h in enumerate(headings):
        if not isinstance(h, dict):
            raise ValidationError(f"Heading at index {i} must be a dict/object.")
        if "text" not in h or not isinstance(h["text"], str):
            raise ValidationError(f"Heading at index {i}: 'text' must be a string.")
        if "id" in h and h["id"] is not None and not isinstance(h["id"], str):
            raise ValidationError(f"Heading at index {i}: 'id' must be a string.")
    return headings


def validate_resize_handle(value: Any) -> str:
    """Validate a resize handle (n, s, e, w, ne, nw, se, sw)."""
    return validate_enum(value, "handle", {"n", "s", "e", "w", "ne", "nw", "se", "sw"})
