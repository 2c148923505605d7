"""
Route invalidation.

Listens to the store and keeps two derived views current:

- z-order, recomputed on every ``tree`` signal;
- connector paths, recomputed on every ``geometry`` signal.

Because the store delivers batched signals only after a grouping or
resize operation has fully finished, paths are always computed from final
rectangle positions.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from flowchart_mcp.grouping import GroupingEngine
from flowchart_mcp.routing import ConnectorPath, RouterConfig, route_all
from flowchart_mcp.store import GEOMETRY, TREE, Flowchart

logger = logging.getLogger("flowchart-mcp")


class RouteInvalidator:
    """Recomputes z-order and connector paths when the store changes."""

    def __init__(
        self,
        store: Flowchart,
        engine: Optional[GroupingEngine] = None,
        config: Optional[RouterConfig] = None,
    ) -> None:
        self.store = store
        self.engine = engine or GroupingEngine(store)
        self.router_config = config or RouterConfig()
        self.paths: dict[str, ConnectorPath] = {}
        self.reroute_count = 0
        store.on(TREE, self._on_tree_changed)
        store.on(GEOMETRY, self._on_geometry_changed)
        self.engine.compute_z_order()
        self.reroute()

    def detach(self) -> None:
        self.store.off(TREE, self._on_tree_changed)
        self.store.off(GEOMETRY, self._on_geometry_changed)

    def _on_tree_changed(self, _payload: Any) -> None:
        self.engine.compute_z_order()

    def _on_geometry_changed(self, _payload: Any) -> None:
        self.reroute()

    def reroute(self) -> dict[str, ConnectorPath]:
        self.paths = route_all(self.store, self.router_config)
        self.reroute_count += 1
        logger.debug("Rerouted %d connection(s)", len(self.paths))
        return self.paths

    def snapshot(self) -> dict[str, Any]:
        """Everything the rendering surface needs to paint the canvas."""
        store = self.store
        shapes: list[dict[str, Any]] = []
        for shape in sorted(store.shapes.values(), key=lambda s: s.z_index):
            if not store.is_visible(shape.id):
                continue
            shapes.append({
                "id": shape.id,
                "text": shape.text,
                "rect": shape.bounds.to_dict(),
                "z": shape.z_index,
                "parent": shape.parent,
                "collapsed": shape.collapsed,
                "toggle": self.engine.collapse_affordance(shape.id),
                "style": shape.style.to_dict(),
            })

        connections: list[dict[str, Any]] = []
        for conn in store.connections:
            path = self.paths.get(conn.id)
            if path is None:
                continue
            entry = path.to_dict()
            entry["from"] = conn.from_id
            entry["to"] = conn.to_id
            entry["style"] = conn.style.to_dict()
            connections.append(entry)

        return {"shapes": shapes, "connections": connections}
