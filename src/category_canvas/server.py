"""category-canvas server: MCP tools for editing and laying out a category tree."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .flatten import level_columns
from .layout import Bounds
from .parser import forest_to_yaml
from .session import CategorySession
from .store import CategoryNotFoundError, InMemoryCategoryStore

logger = logging.getLogger(__name__)


# --- Constants ---
SNAPSHOT_PATH = os.environ.get("CATEGORY_CANVAS_SNAPSHOT")
LOG_LEVEL = os.environ.get("CATEGORY_CANVAS_LOG_LEVEL", "INFO")

server = Server("category-canvas")

_session: Optional[CategorySession] = None


def get_session() -> CategorySession:
    """Return the process-wide session, loading the snapshot file on first use."""
    global _session
    if _session is None:
        if SNAPSHOT_PATH and Path(SNAPSHOT_PATH).exists():
            store = InMemoryCategoryStore.from_file(SNAPSHOT_PATH)
        else:
            store = InMemoryCategoryStore()
        _session = CategorySession(store)
        _session.reload()
    return _session


def set_session(session: Optional[CategorySession]) -> None:
    """Replace the process-wide session (None forces a reload on next use)."""
    global _session
    _session = session


def _json(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload))]


def _bounds_payload(bounds: Optional[Bounds]) -> Optional[dict]:
    if bounds is None:
        return None
    return {"x": bounds.x, "y": bounds.y, "width": bounds.width, "height": bounds.height}


def _history_payload(session: CategorySession) -> dict:
    return {"can_undo": session.can_undo, "can_redo": session.can_redo}


_CATEGORY_ID = {"type": "string", "description": "Category id"}


# --- Tool definitions ---

@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="load_categories",
            description=(
                "Replace the category set from a YAML snapshot and reset undo history. "
                "Accepts the flat format (categories + relations) or the nested "
                "format (tree of named items with children)."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "yaml_snapshot": {
                        "type": "string",
                        "description": (
                            "YAML string. Flat format example:\n"
                            "categories:\n"
                            "  - id: c1\n"
                            "    name: Cardiology\n"
                            "  - id: c2\n"
                            "    name: Arrhythmia\n"
                            "relations:\n"
                            "  - parent: c1\n"
                            "    child: c2\n"
                        ),
                    },
                },
                "required": ["yaml_snapshot"],
            },
        ),
        Tool(
            name="get_layout",
            description=(
                "Compute the node-link diagram: positioned nodes, parent→child edges, "
                "and the bounding box of what is visible."
            ),
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="get_table",
            description=(
                "Flatten the categories into table rows, one per category, with a "
                "'category{N}' cell per depth level."
            ),
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="add_category",
            description="Create a category, optionally under a parent.",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Category name"},
                    "description": {"type": "string", "description": "Optional description"},
                    "parent_id": {"type": "string", "description": "Parent id; omit for a root"},
                },
                "required": ["name"],
            },
        ),
        Tool(
            name="update_category",
            description=(
                "Rename, re-describe or move a category. Omitted fields keep "
                "their current values."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "id": _CATEGORY_ID,
                    "name": {"type": "string", "description": "New name"},
                    "description": {"type": "string", "description": "New description"},
                    "parent_id": {
                        "type": ["string", "null"],
                        "description": "New parent id; null moves the category to the root",
                    },
                },
                "required": ["id"],
            },
        ),
        Tool(
            name="delete_category",
            description="Delete a category. Its children become roots.",
            inputSchema={
                "type": "object",
                "properties": {"id": _CATEGORY_ID},
                "required": ["id"],
            },
        ),
        Tool(
            name="undo",
            description="Step back to the previous category tree.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="redo",
            description="Step forward to the next category tree.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="toggle_collapse",
            description="Collapse or expand the children of one category in the diagram.",
            inputSchema={
                "type": "object",
                "properties": {"id": _CATEGORY_ID},
                "required": ["id"],
            },
        ),
        Tool(
            name="collapse_to_layer",
            description="Show only layers 0..depth of the diagram (0 = roots only).",
            inputSchema={
                "type": "object",
                "properties": {
                    "depth": {"type": "integer", "minimum": 0, "description": "Deepest visible layer"},
                },
                "required": ["depth"],
            },
        ),
        Tool(
            name="search_categories",
            description=(
                "Find the first category whose name contains the query "
                "(case-insensitive), expand its ancestors, select it and return "
                "the point to center the view on."
            ),
            inputSchema={
                "type": "object",
                "properties": {"query": {"type": "string", "description": "Search text"}},
                "required": ["query"],
            },
        ),
        Tool(
            name="reset_layout",
            description="Expand every category in the diagram.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="export_yaml",
            description=(
                "Export the current category tree as nested YAML. When a path is "
                "given (or a snapshot path is configured), the flat snapshot is also "
                "written there."
            ),
            inputSchema={
                "type": "object",
                "properties": {"path": {"type": "string", "description": "Optional output file"}},
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    handler = _HANDLERS.get(name)
    if handler is None:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]
    try:
        return await handler(arguments or {})
    except (LookupError, ValueError, TypeError) as e:
        logger.error(f"Tool {name} failed: {e}")
        return [TextContent(type="text", text=f"{name} failed: {e}")]


async def _load_categories(args: dict) -> list[TextContent]:
    """Replace the store contents from a YAML snapshot."""
    try:
        store = InMemoryCategoryStore.from_yaml(args["yaml_snapshot"])
    except Exception as e:
        return [TextContent(type="text", text=f"Failed to parse YAML snapshot: {e}")]

    session = CategorySession(store)
    forest = session.reload()
    set_session(session)

    table = session.flatten()
    return _json({
        "status": "success",
        "roots": len(forest),
        "categories": len(table.rows),
        "max_depth": table.max_depth,
    })


async def _get_layout(args: dict) -> list[TextContent]:
    session = get_session()
    result = session.layout()
    payload = result.model_dump()
    payload["bounds"] = _bounds_payload(session.bounds())
    payload["layers"] = session.layer_count()
    return _json(payload)


async def _get_table(args: dict) -> list[TextContent]:
    table = get_session().flatten()
    return _json({
        "columns": level_columns(table.max_depth) + ["description"],
        "max_depth": table.max_depth,
        "rows": [row.model_dump() for row in table.rows],
    })


async def _add_category(args: dict) -> list[TextContent]:
    session = get_session()
    record = session.add_category(
        args["name"],
        args.get("description", ""),
        args.get("parent_id"),
    )
    return _json({"status": "success", "category": record.model_dump(), **_history_payload(session)})


def _stored_fields(session: CategorySession, category_id: str) -> tuple[str, str, Optional[str]]:
    """Current (name, description, parent id) of a category as the store holds it."""
    snapshot = session.store.fetch_all()
    record = next((c for c in snapshot.categories if c.id == category_id), None)
    if record is None:
        raise CategoryNotFoundError(category_id)
    parent_id = next((e.parent_id for e in snapshot.relations if e.child_id == category_id), None)
    return record.name, record.description, parent_id


async def _update_category(args: dict) -> list[TextContent]:
    """Update a category; omitted fields keep their stored values."""
    session = get_session()
    name, description, parent_id = _stored_fields(session, args["id"])
    record = session.update_category(
        args["id"],
        args.get("name", name),
        args.get("description", description),
        args.get("parent_id", parent_id),
    )
    return _json({"status": "success", "category": record.model_dump(), **_history_payload(session)})


async def _delete_category(args: dict) -> list[TextContent]:
    session = get_session()
    session.delete_category(args["id"])
    return _json({"status": "success", **_history_payload(session)})


async def _undo(args: dict) -> list[TextContent]:
    session = get_session()
    changed = session.undo()
    return _json({"changed": changed, **_history_payload(session)})


async def _redo(args: dict) -> list[TextContent]:
    session = get_session()
    changed = session.redo()
    return _json({"changed": changed, **_history_payload(session)})


async def _toggle_collapse(args: dict) -> list[TextContent]:
    session = get_session()
    collapsed = session.toggle_collapse(args["id"])
    return _json({
        "id": args["id"],
        "collapsed": collapsed,
        "bounds": _bounds_payload(session.bounds()),
    })


async def _collapse_to_layer(args: dict) -> list[TextContent]:
    session = get_session()
    depth = int(args["depth"])
    if depth < 0:
        raise ValueError("depth must be >= 0")
    collapsed = session.collapse_to_layer(depth)
    return _json({
        "depth": depth,
        "collapsed": sorted(collapsed),
        "bounds": _bounds_payload(session.bounds()),
    })


async def _search_categories(args: dict) -> list[TextContent]:
    session = get_session()
    match = session.search(args.get("query", ""))
    if match is None:
        return _json({"found": False})

    center = session.center_on(match.node.id)
    return _json({
        "found": True,
        "id": match.node.id,
        "name": match.node.name,
        "ancestor_ids": match.ancestor_ids,
        "center": list(center) if center else None,
    })


async def _reset_layout(args: dict) -> list[TextContent]:
    session = get_session()
    session.reset_layout()
    return _json({"status": "success", "bounds": _bounds_payload(session.bounds())})


async def _export_yaml(args: dict) -> list[TextContent]:
    session = get_session()
    path = args.get("path") or SNAPSHOT_PATH
    payload = {"yaml": forest_to_yaml(session.categories), "path": None}

    if path and isinstance(session.store, InMemoryCategoryStore):
        session.store.save(path)
        payload["path"] = str(path)

    return _json(payload)


_HANDLERS = {
    "load_categories": _load_categories,
    "get_layout": _get_layout,
    "get_table": _get_table,
    "add_category": _add_category,
    "update_category": _update_category,
    "delete_category": _delete_category,
    "undo": _undo,
    "redo": _redo,
    "toggle_collapse": _toggle_collapse,
    "collapse_to_layer": _collapse_to_layer,
    "search_categories": _search_categories,
    "reset_layout": _reset_layout,
    "export_yaml": _export_yaml,
}


def main():
    """Entry point for the MCP server."""
    import asyncio

    # stdout carries the MCP protocol; logs go to stderr
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    asyncio.run(_run())


async def _run():
    get_session()
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    main()
