"""
Tests for server.py — MCP tool definitions and dispatch.

Run with: pytest tests/test_server.py -v
"""

import asyncio
import json
import pytest
import yaml
from pathlib import Path
from unittest.mock import patch

from mcp.types import CallToolRequest, CallToolRequestParams

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from workflow_pilot_server.config_tools import HOME_ENV_VAR
from workflow_pilot_server.server import (
    TOOLS,
    ToolError,
    call_tool,
    dispatch_tool,
    list_resources,
    list_resource_templates,
    list_tools,
    read_resource,
    server,
)
from workflow_pilot_server.session_store import read_state


FLOW = {
    "id": "loopy",
    "name": "Loopy",
    "description": "A single loopable stage and a finish",
    "stages": [
        {"id": "draft", "name": "Draft", "icon": "📝", "transitions": {"next": "ship"},
         "checklist": ["Outline", "Body"], "can_loop": True},
        {"id": "ship", "name": "Ship", "icon": "🚀", "transitions": {"back": "draft"}},
    ],
}


def dispatch_error(name, arguments) -> str:
    with pytest.raises(ToolError) as exc:
        dispatch_tool(name, arguments)
    return str(exc.value)


def sdk_call(name, arguments):
    """Run a tools/call request through the MCP request handler."""
    request = CallToolRequest(
        method="tools/call",
        params=CallToolRequestParams(name=name, arguments=arguments),
    )
    return asyncio.run(server.request_handlers[CallToolRequest](request)).root


@pytest.fixture
def project(tmp_path, monkeypatch):
    home = tmp_path / "pilot-home"
    monkeypatch.setenv(HOME_ENV_VAR, str(home))
    (home / "flows").mkdir(parents=True)
    (home / "flows" / "loopy.yaml").write_text(yaml.safe_dump(FLOW, allow_unicode=True), encoding="utf-8")

    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)
    return project


class TestToolDefinitions:
    def test_tool_names(self):
        names = {tool.name for tool in asyncio.run(list_tools())}
        assert names == {
            "workflow_status",
            "workflow_start",
            "workflow_advance",
            "workflow_back",
            "workflow_loop",
            "workflow_checklist",
            "workflow_list_flows",
            "workflow_end",
        }

    def test_required_arguments(self):
        schemas = {tool.name: tool.inputSchema for tool in TOOLS}
        assert schemas["workflow_checklist"]["required"] == ["item"]
        assert schemas["workflow_start"]["required"] == ["flow_id"]
        assert schemas["workflow_status"]["required"] == []


class TestDispatch:
    def test_full_session(self, project):
        assert dispatch_tool("workflow_start", {"flow_id": "loopy"}).startswith("Started workflow: Loopy")
        assert dispatch_tool("workflow_checklist", {"item": 1}) == "☑ [1] Outline"
        assert dispatch_tool("workflow_loop", {}) == "Looping 📝 Draft (loop #1)"
        assert "CURRENT STAGE: 📝 Draft (stage 1/2)" in dispatch_tool("workflow_status", {})
        assert dispatch_tool("workflow_advance", {}) == "Advanced to: 🚀 Ship"
        assert dispatch_tool("workflow_back", {}) == "Went back to: 📝 Draft"
        assert dispatch_tool("workflow_end", {}) == "Ended workflow: loopy"
        assert read_state(str(project)) is None

    def test_errors_are_prefixed(self, project):
        assert dispatch_error("workflow_status", {}).startswith("Error: No active workflow")

    def test_float_item_is_accepted(self, project):
        dispatch_tool("workflow_start", {"flow_id": "loopy"})
        assert dispatch_tool("workflow_checklist", {"item": 2.0}) == "☑ [2] Body"

    @pytest.mark.parametrize("arguments", [{}, {"item": "1"}, {"item": 1.5}, {"item": True}])
    def test_invalid_item(self, project, arguments):
        assert dispatch_error("workflow_checklist", arguments) == "Error: item (number) is required"

    @pytest.mark.parametrize("arguments", [{}, {"flow_id": 3}, {"flow_id": ""}])
    def test_invalid_flow_id(self, project, arguments):
        assert dispatch_error("workflow_start", arguments) == "Error: flow_id (string) is required"

    def test_unknown_tool(self, project):
        assert dispatch_error("workflow_teleport", {}) == "Unknown tool: workflow_teleport"

    def test_list_flows(self, project):
        assert "loopy" in dispatch_tool("workflow_list_flows", {})


class TestCallTool:
    def test_returns_text_content(self, project):
        result = asyncio.run(call_tool("workflow_list_flows", None))
        assert len(result) == 1
        assert result[0].type == "text"
        assert "Loopy" in result[0].text

    def test_failed_operation_raises(self, project):
        with pytest.raises(ToolError) as exc:
            asyncio.run(call_tool("workflow_advance", {}))
        assert str(exc.value).startswith("Error: No active workflow")

    def test_unexpected_exception_becomes_tool_error(self, project):
        with patch("workflow_pilot_server.server.workflow_status", side_effect=RuntimeError("disk on fire")):
            with pytest.raises(ToolError) as exc:
                asyncio.run(call_tool("workflow_status", {}))
        assert str(exc.value) == "Error: disk on fire"


class TestCallToolResult:
    def test_failed_advance_is_marked_as_error(self, project):
        result = sdk_call("workflow_advance", {})
        assert result.isError is True
        assert result.content[0].text.startswith("Error: No active workflow")

    def test_success_is_not_marked_as_error(self, project):
        result = sdk_call("workflow_start", {"flow_id": "loopy"})
        assert not result.isError
        assert result.content[0].text.startswith("Started workflow: Loopy")

    def test_unknown_flow_is_marked_as_error(self, project):
        result = sdk_call("workflow_start", {"flow_id": "ghost"})
        assert result.isError is True
        assert "Flow not found" in result.content[0].text


class TestResourceHandlers:
    def test_list_resources(self):
        uris = {str(r.uri).rstrip("/") for r in asyncio.run(list_resources())}
        assert "workflow://active" in uris
        assert "workflow://flows" in uris
        assert "config://effective" in uris

    def test_list_templates(self):
        templates = asyncio.run(list_resource_templates())
        assert [t.uriTemplate for t in templates] == ["workflow://flows/{flow_id}"]

    def test_read_flow_resource(self, project):
        data = json.loads(asyncio.run(read_resource("workflow://flows/loopy")))
        assert [s["id"] for s in data["stages"]] == ["draft", "ship"]
