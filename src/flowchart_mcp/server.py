"""
Flowchart MCP Server — edit flowchart geometry via Model Context Protocol.

Exposes 4 tools that let an LLM agent build a flowchart, nest shapes into
collapsible groups, and read back routed connector paths.

Tools:
  1. flowchart   — lifecycle: create, list, delete, get_data, set_data, sync_headings
  2. shape       — content:   add, move, resize, remove, drop, group, ungroup,
                              toggle_collapse, set_style
  3. connection  — wiring:    add, remove, set_style, preview
  4. inspect     — read-only: shapes, connections, paths, tree, snapshot
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any

from mcp.server.fastmcp import FastMCP

from flowchart_mcp.grouping import GroupingEngine
from flowchart_mcp.interaction import InteractionController
from flowchart_mcp.invalidation import RouteInvalidator
from flowchart_mcp.models import ConnectionStyle, Point, Shape, ShapeStyle
from flowchart_mcp.routing import RouterConfig, to_svg_path
from flowchart_mcp.store import Flowchart
from flowchart_mcp.sync import sync_headings
from flowchart_mcp.validation import (
    ValidationError,
    validate_action,
    validate_connection_dict,
    validate_dict,
    validate_heading_list,
    validate_list,
    validate_non_empty_string,
    validate_number,
    validate_resize_handle,
    validate_shape_dict,
    validate_shape_style_dict,
    validate_style_dict,
    _CONNECTION_ACTIONS,
    _FLOWCHART_ACTIONS,
    _INSPECT_ACTIONS,
    _SHAPE_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging: suppress routine FastMCP INFO messages that VS Code shows
# as warnings (they go to stderr which VS Code labels [warning]).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("flowchart-mcp")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "flowchart-mcp",
    instructions=(
        "MCP server for flowchart geometry: shapes, nested groups and\n"
        "orthogonal connectors with rounded corners.\n\n"
        "=== ONLY 4 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. flowchart(action, ...) — lifecycle: create, list, delete,\n"
        "   get_data, set_data, sync_headings.\n"
        "2. shape(action, ...) — content: add, move, resize, remove, drop,\n"
        "   group, ungroup, toggle_collapse, set_style.\n"
        "3. connection(action, ...) — wiring: add, remove, set_style, preview.\n"
        "4. inspect(action, ...) — read-only: shapes, connections, paths,\n"
        "   tree, snapshot.\n\n"
        "=== RULES ===\n"
        "- ALL coordinates (x, y) are ABSOLUTE canvas positions.\n"
        "- Moving a shape so its centre lands inside another shape nests it.\n"
        "  Moving it out of its parent ungroups it.\n"
        "- Containers grow to fit their children; collapsing hides them and\n"
        "  pulls the following siblings closer.\n"
        "- Ports are top, bottom, left, right. Connections are rerouted\n"
        "  automatically after every change.\n"
    ),
)


@dataclass
class FlowchartSession:
    """One canvas plus the engines that keep it consistent."""
    store: Flowchart
    engine: GroupingEngine
    invalidator: RouteInvalidator
    controller: InteractionController

    @classmethod
    def create(cls, name: str, router_config: RouterConfig | None = None) -> FlowchartSession:
        store = Flowchart(name)
        engine = GroupingEngine(store)
        router_config = router_config or RouterConfig()
        return cls(
            store=store,
            engine=engine,
            invalidator=RouteInvalidator(store, engine, router_config),
            controller=InteractionController(store, engine, router_config),
        )


# In-memory flowchart registry: name -> FlowchartSession
# Guarded by _flowcharts_lock for thread-safety.
_flowcharts: dict[str, FlowchartSession] = {}
_flowcharts_lock = threading.Lock()


# ===================================================================
# TOOL 1: flowchart — lifecycle
# ===================================================================

@mcp.tool()
def flowchart(
    action: str,
    name: str = "",
    data: dict[str, Any] | None = None,
    headings: list[dict[str, Any]] | None = None,
) -> str:
    """Flowchart lifecycle management.

    Actions:
      create        — Create a new empty flowchart. Params: name.
      list          — List all in-memory flowcharts. No params needed.
      delete        — Remove a flowchart from memory. Params: name.
      get_data      — Export shapes and connections as plain records. Params: name.
      set_data      — Replace all content from plain records. Params: name, data
                      ({shapes: [...], connections: [...]}).
      sync_headings — Mirror document headings into shapes. Params: name,
                      headings (list of {id, text} in document order).

    Args:
        action: One of: create, list, delete, get_data, set_data, sync_headings.
        name: Flowchart name (used as key in memory).
        data: Records for set_data.
        headings: Heading list for sync_headings.

    Returns:
        Result string or JSON depending on action.
    """
    try:
        action = validate_action(action, "flowchart", _FLOWCHART_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "list":
        result: list[dict[str, Any]] = []
        for n, session in _flowcharts.items():
            result.append({
                "name": n,
                "shapes": len(session.store.shapes),
                "connections": len(session.store.connections),
            })
        return json.dumps(result, indent=2)

    try:
        name = validate_non_empty_string(name, "name")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "create":
        with _flowcharts_lock:
            _flowcharts[name] = FlowchartSession.create(name)
        logger.info("Created flowchart '%s'", name)
        return f"Flowchart '{name}' created."

    if action == "delete":
        with _flowcharts_lock:
            session = _flowcharts.pop(name, None)
        if session is None:
            return f"Error: flowchart '{name}' not found."
        session.invalidator.detach()
        return f"Flowchart '{name}' deleted."

    session = _flowcharts.get(name)
    if session is None:
        return f"Error: flowchart '{name}' not found."
    store = session.store

    if action == "get_data":
        return json.dumps(store.get_data(), indent=2)

    elif action == "set_data":
        try:
            data = validate_dict(data, "data")
            validate_list(data.get("shapes", []), "data.shapes")
            validate_list(data.get("connections", []), "data.connections")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        try:
            store.set_data(data)
        except (KeyError, TypeError, ValueError) as exc:
            return f"Error: invalid flowchart data ({exc})."
        return (
            f"Loaded {len(store.shapes)} shape(s) and "
            f"{len(store.connections)} connection(s) into '{name}'."
        )

    elif action == "sync_headings":
        try:
            headings = validate_heading_list(headings)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        return json.dumps(sync_headings(store, headings, session.engine), indent=2)

    else:
        return (
            f"Error: unknown flowchart action '{action}'. "
            "Use: create, list, delete, get_data, set_data, sync_headings."
        )


# ===================================================================
# TOOL 2: shape — content
# ===================================================================

@mcp.tool()
def shape(
    action: str,
    flowchart_name: str = "",
    shapes: list[dict[str, Any]] | None = None,
    shape_id: str = "",
    shape_ids: list[str] | None = None,
    parent_id: str = "",
    dx: float = 0,
    dy: float = 0,
    handle: str = "se",
    style: dict[str, Any] | None = None,
) -> str:
    """Add, move, resize, group, collapse or restyle shapes.

    Actions:
      add             — Add one or more shapes. Params: shapes (list of
                        {text?, x?, y?, width?, height?, shape_id?, parent_id?,
                        style? {backgroundColor, borderColor, color}}).
      move            — Move a shape (and its children) by dx, dy, then regroup
                        it from where it landed. Params: shape_id, dx, dy.
      resize          — Drag a resize handle by dx, dy. Params: shape_id,
                        handle (n, s, e, w, ne, nw, se, sw), dx, dy.
      remove          — Delete shapes; children are kept and moved up.
                        Params: shape_id or shape_ids.
      drop            — Regroup a shape from its current position. Params: shape_id.
      group           — Nest a shape in a container. Params: shape_id, parent_id.
      ungroup         — Move a shape to the top level. Params: shape_id.
      toggle_collapse — Collapse or expand a container. Params: shape_id.
      set_style       — Merge colours into a shape's style. Params: shape_id,
                        style {backgroundColor?, borderColor?, color?}.

    Args:
        action: One of the actions listed above.
        flowchart_name: Target flowchart name.
        shapes: List of shape dicts for add.
        shape_id: Target shape ID.
        shape_ids: Target shape IDs for remove.
        parent_id: Container ID for group.
        dx: Horizontal offset for move / resize.
        dy: Vertical offset for move / resize.
        handle: Resize handle for resize.
        style: Colour overrides for set_style.

    Returns:
        JSON result or confirmation message.
    """
    try:
        action = validate_action(action, "shape", _SHAPE_ACTIONS)
        validate_non_empty_string(flowchart_name, "flowchart_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = _flowcharts.get(flowchart_name)
    if session is None:
        return f"Error: flowchart '{flowchart_name}' not found."
    store = session.store
    engine = session.engine

    if action == "add":
        try:
            shapes = validate_list(shapes, "shapes", min_length=1)
            for i, s in enumerate(shapes):
                validate_shape_dict(s, i)
        except ValidationError as exc:
            return f"Error: {exc.message}"

        created: list[dict[str, Any]] = []
        with store.batch():
            for s in shapes:
                try:
                    new_shape = store.add_shape(
                        x=s.get("x"),
                        y=s.get("y"),
                        width=s.get("width"),
                        height=s.get("height"),
                        text=s.get("text", ""),
                        shape_id=s.get("shape_id"),
                        style=ShapeStyle.from_dict(s.get("style")),
                    )
                except ValueError as exc:
                    return f"Error: {exc}"
                parent = s.get("parent_id")
                if parent and not engine.group(parent, new_shape.id):
                    logger.warning("Could not nest %s under %s", new_shape.id, parent)
                created.append({"id": new_shape.id, "text": new_shape.text,
                                "parent": new_shape.parent})
        return json.dumps(created, indent=2)

    if action == "remove":
        ids = list(shape_ids or [])
        if shape_id:
            ids.append(shape_id)
        if not ids:
            return "Error: 'shape_id' or 'shape_ids' is required."
        missing = [sid for sid in ids if store.get(sid) is None]
        if missing:
            return f"Error: shape(s) not found: {', '.join(missing)}."
        with store.batch():
            for sid in ids:
                engine.remove_shape(sid)
        return f"Removed {len(ids)} shape(s)."

    # All other actions target one existing shape
    try:
        shape_id = validate_non_empty_string(shape_id, "shape_id")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    target = store.get(shape_id)
    if target is None:
        return f"Error: shape '{shape_id}' not found."

    if action == "move":
        try:
            dx = validate_number(dx, "dx")
            dy = validate_number(dy, "dy")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        with store.batch():
            # Shapes never leave the positive quadrant
            new_x = max(0.0, target.x + dx)
            new_y = max(0.0, target.y + dy)
            store.move_shape(shape_id, new_x - target.x, new_y - target.y)
            engine.handle_drop(shape_id)
        return json.dumps(_shape_info(session, target), indent=2)

    elif action == "resize":
        try:
            handle = validate_resize_handle(handle)
            dx = validate_number(dx, "dx")
            dy = validate_number(dy, "dy")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        controller = session.controller
        origin = target.bounds.center
        controller.begin_resize(shape_id, handle, origin)
        controller.move(Point(origin.x + dx, origin.y + dy))
        controller.end()
        return json.dumps(_shape_info(session, target), indent=2)

    elif action == "drop":
        parent = engine.handle_drop(shape_id)
        return json.dumps({"id": shape_id, "parent": parent})

    elif action == "group":
        try:
            parent_id = validate_non_empty_string(parent_id, "parent_id")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        if store.get(parent_id) is None:
            return f"Error: shape '{parent_id}' not found."
        if not engine.group(parent_id, shape_id):
            return f"Error: cannot nest '{shape_id}' under '{parent_id}' (would create a cycle)."
        return f"Shape '{shape_id}' grouped under '{parent_id}'."

    elif action == "ungroup":
        if not engine.ungroup(shape_id):
            return f"Shape '{shape_id}' is already at the top level."
        return f"Shape '{shape_id}' moved to the top level."

    elif action == "toggle_collapse":
        if not target.children and not target.collapsed:
            return f"Error: shape '{shape_id}' has no children to collapse."
        collapsed = engine.toggle_collapse(shape_id)
        info = _shape_info(session, target)
        info["hidden"] = engine.hidden_shapes()
        info["collapsed"] = collapsed
        return json.dumps(info, indent=2)

    elif action == "set_style":
        try:
            style = validate_shape_style_dict(style)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        merged = {**target.style.to_dict(), **style}
        target.style = ShapeStyle.from_dict(merged)
        return json.dumps(target.to_record()["style"], indent=2)

    else:
        return (
            f"Error: unknown shape action '{action}'. Use: add, move, resize, "
            "remove, drop, group, ungroup, toggle_collapse, set_style."
        )


# ===================================================================
# TOOL 3: connection — wiring
# ===================================================================

@mcp.tool()
def connection(
    action: str,
    flowchart_name: str = "",
    connections: list[dict[str, Any]] | None = None,
    connection_id: str = "",
    style: dict[str, Any] | None = None,
    from_id: str = "",
    from_port: str = "bottom",
    x: float = 0,
    y: float = 0,
) -> str:
    """Create, restyle and preview connections between shapes.

    Actions:
      add       — Add one or more connections. Params: connections (list of
                  {from_id, to_id, from_port?, to_port?, style?}).
      remove    — Delete a connection. Params: connection_id.
      set_style — Update a connection's style. Params: connection_id, style
                  ({type: solid|dashed, arrow: end|both|none, color, label}).
      preview   — Route from a shape port to a free point, as while dragging
                  a new connection. Params: from_id, from_port, x, y.

    Args:
        action: One of: add, remove, set_style, preview.
        flowchart_name: Target flowchart name.
        connections: List of connection dicts for add.
        connection_id: Target connection ID.
        style: Style dict for set_style.
        from_id: Source shape for preview.
        from_port: Source port for preview (top, bottom, left, right).
        x: Pointer x for preview.
        y: Pointer y for preview.

    Returns:
        JSON result or confirmation message.
    """
    try:
        action = validate_action(action, "connection", _CONNECTION_ACTIONS)
        validate_non_empty_string(flowchart_name, "flowchart_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = _flowcharts.get(flowchart_name)
    if session is None:
        return f"Error: flowchart '{flowchart_name}' not found."
    store = session.store

    if action == "add":
        try:
            connections = validate_list(connections, "connections", min_length=1)
            for i, c in enumerate(connections):
                validate_connection_dict(c, i)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        created: list[dict[str, Any]] = []
        with store.batch():
            for c in connections:
                try:
                    conn = store.add_connection(
                        c["from_id"],
                        c["to_id"],
                        c.get("from_port"),
                        c.get("to_port"),
                        ConnectionStyle.from_dict(c.get("style")),
                    )
                except ValueError as exc:
                    return f"Error: {exc}"
                created.append(conn.to_record())
        return json.dumps(created, indent=2)

    elif action == "remove":
        try:
            connection_id = validate_non_empty_string(connection_id, "connection_id")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        if not store.remove_connection(connection_id):
            return f"Error: connection '{connection_id}' not found."
        return f"Connection '{connection_id}' removed."

    elif action == "set_style":
        try:
            connection_id = validate_non_empty_string(connection_id, "connection_id")
            style = validate_style_dict(style)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        conn = store.get_connection(connection_id)
        if conn is None:
            return f"Error: connection '{connection_id}' not found."
        merged = {**conn.style.to_dict(), **style}
        conn.style = ConnectionStyle.from_dict(merged)
        return json.dumps(conn.to_record(), indent=2)

    elif action == "preview":
        try:
            from_id = validate_non_empty_string(from_id, "from_id")
            x = validate_number(x, "x")
            y = validate_number(y, "y")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        controller = session.controller
        if not controller.begin_connect(from_id, from_port):
            return f"Error: shape '{from_id}' not found."
        start = store.get(from_id).bounds.anchor(controller.state.start_side)
        commands = controller.move(Point(x, y)) or []
        # Preview never creates a connection
        controller.cancel()
        return json.dumps({
            "start": start.to_dict(),
            "commands": [cmd.to_dict() for cmd in commands],
            "d": to_svg_path(start, commands),
        }, indent=2)

    else:
        return (
            f"Error: unknown connection action '{action}'. "
            "Use: add, remove, set_style, preview."
        )


# ===================================================================
# TOOL 4: inspect — read-only
# ===================================================================

@mcp.tool()
def inspect(
    action: str,
    flowchart_name: str = "",
) -> str:
    """Read-only inspection of flowcharts.

    Actions:
      shapes      — List all shapes with rectangles, parents and z-order.
      connections — List all connections with ports and styles.
      paths       — Routed connector paths (line/arc commands and SVG path).
      tree        — Nesting of shapes as a tree.
      snapshot    — Everything needed to paint the canvas: visible shapes in
                    z-order with collapse toggles, plus routed connections.

    Args:
        action: One of: shapes, connections, paths, tree, snapshot.
        flowchart_name: Target flowchart name.

    Returns:
        JSON data.
    """
    try:
        action = validate_action(action, "inspect", _INSPECT_ACTIONS)
        validate_non_empty_string(flowchart_name, "flowchart_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = _flowcharts.get(flowchart_name)
    if session is None:
        return f"Error: flowchart '{flowchart_name}' not found."
    store = session.store

    if action == "shapes":
        return json.dumps(
            [_shape_info(session, s) for s in store.shapes.values()], indent=2
        )

    elif action == "connections":
        return json.dumps([c.to_record() for c in store.connections], indent=2)

    elif action == "paths":
        paths = session.invalidator.paths
        return json.dumps([p.to_dict() for p in paths.values()], indent=2)

    elif action == "tree":
        return json.dumps([_tree_node(store, root) for root in store.roots()], indent=2)

    elif action == "snapshot":
        return json.dumps(session.invalidator.snapshot(), indent=2)

    else:
        return (
            f"Error: unknown inspect action '{action}'. "
            "Use: shapes, connections, paths, tree, snapshot."
        )


# ===================================================================
# Internal helpers
# ===================================================================

def _shape_info(session: FlowchartSession, s: Shape) -> dict[str, Any]:
    info: dict[str, Any] = {"id": s.id}
    if s.text:
        info["text"] = s.text
    info["position"] = s.bounds.to_dict()
    if s.parent:
        info["parent"] = s.parent
    if s.children:
        info["children"] = list(s.children)
        info["collapsed"] = s.collapsed
    info["z"] = s.z_index
    info["visible"] = session.store.is_visible(s.id)
    return info


def _tree_node(store: Flowchart, s: Shape) -> dict[str, Any]:
    node: dict[str, Any] = {"id": s.id, "text": s.text}
    kids = [store.get(cid) for cid in s.children]
    if s.children:
        node["collapsed"] = s.collapsed
        node["children"] = [_tree_node(store, k) for k in kids if k is not None]
    return node


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
