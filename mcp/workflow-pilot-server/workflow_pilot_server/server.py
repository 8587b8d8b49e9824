#!/usr/bin/env python3
"""
Workflow Pilot MCP Server

Exposes the workflow stage machine to an AI coding assistant as MCP tools:
start a flow, read the current stage's instructions and checklist, move
between stages and tick checklist items. Sessions are resolved from the
server's working directory, the same way the `wp` CLI resolves them.
"""

import asyncio
import logging
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    Tool,
    TextContent,
    Resource,
    ResourceTemplate,
)

from .resources import RESOURCE_DESCRIPTIONS, RESOURCE_TEMPLATES, resolve_resource
from .state_tools import (
    workflow_advance,
    workflow_back,
    workflow_check,
    workflow_end,
    workflow_list_flows,
    workflow_loop,
    workflow_start,
    workflow_status,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

server = Server("workflow-pilot")


NO_ARGUMENTS = {"type": "object", "properties": {}, "required": []}

TOOLS = [
    Tool(
        name="workflow_status",
        description="Get current workflow stage, instructions, checklist, and available transitions. Call this before every response to follow stage-appropriate guidelines.",
        inputSchema=NO_ARGUMENTS
    ),
    Tool(
        name="workflow_advance",
        description="Move to the next stage in the workflow.",
        inputSchema=NO_ARGUMENTS
    ),
    Tool(
        name="workflow_back",
        description="Go back to the previous stage in the workflow.",
        inputSchema=NO_ARGUMENTS
    ),
    Tool(
        name="workflow_loop",
        description="Repeat the current stage (e.g. another annotation cycle). Resets the stage checklist.",
        inputSchema=NO_ARGUMENTS
    ),
    Tool(
        name="workflow_checklist",
        description="Toggle a checklist item of the current stage by 1-based index.",
        inputSchema={
            "type": "object",
            "properties": {
                "item": {
                    "type": "integer",
                    "description": "1-based index of the checklist item to toggle"
                }
            },
            "required": ["item"]
        }
    ),
    Tool(
        name="workflow_list_flows",
        description="List all available workflow definitions.",
        inputSchema=NO_ARGUMENTS
    ),
    Tool(
        name="workflow_start",
        description="Start a new workflow session for the current project with the given flow ID.",
        inputSchema={
            "type": "object",
            "properties": {
                "flow_id": {
                    "type": "string",
                    "description": "ID of the flow to start (e.g. feature, bugfix)"
                }
            },
            "required": ["flow_id"]
        }
    ),
    Tool(
        name="workflow_end",
        description="End the current workflow session.",
        inputSchema=NO_ARGUMENTS
    ),
]


class ToolError(Exception):
    """A tool call that failed; the MCP SDK reports it with isError set."""


def _as_text(result: dict[str, Any]) -> str:
    if result["success"]:
        return result["message"]
    raise ToolError(f"Error: {result['error']}")


def _parse_item(arguments: dict[str, Any]):
    item = arguments.get("item")
    if isinstance(item, bool):
        return None
    if isinstance(item, float) and item.is_integer():
        return int(item)
    if isinstance(item, int):
        return item
    return None


def dispatch_tool(name: str, arguments: dict[str, Any]) -> str:
    if name == "workflow_status":
        return _as_text(workflow_status())
    if name == "workflow_advance":
        return _as_text(workflow_advance())
    if name == "workflow_back":
        return _as_text(workflow_back())
    if name == "workflow_loop":
        return _as_text(workflow_loop())
    if name == "workflow_checklist":
        item = _parse_item(arguments)
        if item is None:
            raise ToolError("Error: item (number) is required")
        return _as_text(workflow_check(item))
    if name == "workflow_list_flows":
        return _as_text(workflow_list_flows())
    if name == "workflow_start":
        flow_id = arguments.get("flow_id")
        if not isinstance(flow_id, str) or not flow_id:
            raise ToolError("Error: flow_id (string) is required")
        return _as_text(workflow_start(flow_id))
    if name == "workflow_end":
        return _as_text(workflow_end())
    raise ToolError(f"Unknown tool: {name}")


@server.list_tools()
async def list_tools() -> list[Tool]:
    return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    try:
        text = dispatch_tool(name, arguments or {})
    except ToolError:
        raise
    except Exception as e:
        logger.exception(f"Error executing tool {name}")
        raise ToolError(f"Error: {e}") from e

    return [TextContent(type="text", text=text)]


@server.list_resources()
async def list_resources() -> list[Resource]:
    return [
        Resource(uri=uri, **description)
        for uri, description in RESOURCE_DESCRIPTIONS.items()
    ]


@server.list_resource_templates()
async def list_resource_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(uriTemplate=template, **description)
        for template, description in RESOURCE_TEMPLATES.items()
    ]


@server.read_resource()
async def read_resource(uri) -> str:
    return resolve_resource(str(uri).rstrip("/"))


async def async_main():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


def main():
    """Entry point for the MCP server."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
