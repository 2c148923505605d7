"""
Mirror document headings into shapes.

Each heading is a ``{"id": ..., "text": ...}`` record in document order.
Shapes remember the heading they came from, so renaming or reordering
headings updates the existing shapes instead of creating new ones.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from flowchart_mcp.grouping import GroupingEngine
from flowchart_mcp.models import Shape
from flowchart_mcp.store import Flowchart

logger = logging.getLogger("flowchart-mcp")


def sync_headings(
    store: Flowchart,
    headings: list[dict[str, Any]],
    engine: Optional[GroupingEngine] = None,
) -> dict[str, list[str]]:
    """Create, update and remove shapes so they match *headings*.

    Shapes without a heading link (drawn by hand) are left alone.

    Returns ``{"created": [...], "updated": [...], "removed": [...]}``.
    """
    engine = engine or GroupingEngine(store)
    created: list[str] = []
    updated: list[str] = []
    seen: set[str] = set()

    with store.batch():
        for index, heading in enumerate(headings):
            hid = heading.get("id")
            text = heading.get("text") or ""

            shape = _find_by_heading(store, hid)
            if shape is None:
                # Older data linked shapes by position only
                shape = next(
                    (s for s in store.shapes.values()
                     if s.heading_id is None and s.heading_index == index and s.id not in seen),
                    None,
                )
                if shape is not None:
                    shape.heading_id = hid

            if shape is not None:
                shape.text = text
                shape.heading_index = index
                seen.add(shape.id)
                updated.append(shape.id)
                continue

            x, y = _initial_position(store, headings, index)
            shape = store.add_shape(
                x=x, y=y, text=text, heading_id=hid, heading_index=index,
            )
            seen.add(shape.id)
            created.append(shape.id)

        stale = [
            s.id for s in store.shapes.values()
            if s.id not in seen and (s.heading_id is not None or s.heading_index is not None)
        ]
        for sid in stale:
            engine.remove_shape(sid)

    if created or stale:
        logger.debug("Heading sync: %d created, %d removed", len(created), len(stale))
    return {"created": created, "updated": updated, "removed": stale}


def _find_by_heading(store: Flowchart, heading_id: Any) -> Optional[Shape]:
    if heading_id is None:
        return None
    return next((s for s in store.shapes.values() if s.heading_id == heading_id), None)


def _initial_position(
    store: Flowchart,
    headings: list[dict[str, Any]],
    index: int,
) -> tuple[float, float]:
    """Place a new shape under the previous heading's shape, else on the grid."""
    cfg = store.config
    if index == 0:
        return cfg.start_x, cfg.start_y
    prev = _find_by_heading(store, headings[index - 1].get("id"))
    if prev is not None:
        return prev.x, prev.y + prev.height + cfg.heading_gap_y
    x = cfg.start_x + (index * cfg.step_x) % cfg.wrap_x
    y = cfg.start_y + (index // cfg.per_row) * cfg.step_y
    return x, y
