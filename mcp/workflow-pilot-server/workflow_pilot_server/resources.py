"""
MCP Resources for Workflow Pilot

Provides URI-based access to session state, flows and configuration.

Resource URIs:
  - workflow://active                   - Session for the server's cwd
  - workflow://flows                    - Summaries of all flows
  - workflow://flows/{flow_id}          - Full definition of one flow
  - config://effective                  - Fully merged effective config
"""

import json
from typing import Any, Optional

from .config_tools import config_get_effective, get_flows_dir
from .flow_tools import list_flows, load_flow
from .state_tools import workflow_status


def get_active_session(cwd: Optional[str] = None) -> dict[str, Any]:
    result = workflow_status(cwd)
    if not result["success"]:
        return {
            "error": result["error"],
            "error_code": result["error_code"],
            "has_active": False
        }

    return {
        "has_active": True,
        "state": result["state"],
        "view": result["view"]
    }


def get_flows_list() -> dict[str, Any]:
    flows = list_flows()
    return {
        "flows": flows,
        "count": len(flows),
        "flows_dir": str(get_flows_dir())
    }


def get_flow_definition(flow_id: str) -> dict[str, Any]:
    flow = load_flow(flow_id)
    if flow is None:
        return {"error": f"Flow not found: {flow_id}"}
    return flow.to_dict()


def get_effective_config(cwd: Optional[str] = None) -> dict[str, Any]:
    return config_get_effective(project_dir=cwd)


def resolve_resource(uri: str, cwd: Optional[str] = None) -> str:
    if uri == "workflow://active":
        return json.dumps(get_active_session(cwd), indent=2, ensure_ascii=False)

    if uri == "workflow://flows":
        return json.dumps(get_flows_list(), indent=2, ensure_ascii=False)

    if uri == "config://effective":
        return json.dumps(get_effective_config(cwd), indent=2)

    if uri.startswith("workflow://flows/"):
        flow_id = uri[len("workflow://flows/"):]
        return json.dumps(get_flow_definition(flow_id), indent=2, ensure_ascii=False)

    return json.dumps({"error": f"Unknown resource URI: {uri}"})


RESOURCE_DESCRIPTIONS = {
    "workflow://active": {
        "name": "Active workflow session",
        "description": "Workflow session for the current project directory, with its rendered view",
        "mimeType": "application/json"
    },
    "workflow://flows": {
        "name": "Available flows",
        "description": "Summaries of every flow definition in the flows directory",
        "mimeType": "application/json"
    },
    "config://effective": {
        "name": "Effective configuration",
        "description": "Fully merged workflow-pilot configuration from all sources",
        "mimeType": "application/json"
    }
}


RESOURCE_TEMPLATES = {
    "workflow://flows/{flow_id}": {
        "name": "Flow definition",
        "description": "Full stage list of a flow by ID",
        "mimeType": "application/json"
    }
}
