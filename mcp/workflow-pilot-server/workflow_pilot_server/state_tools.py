"""
State Management Tools for Workflow Pilot

The stage state machine. A session is either absent or active at exactly
one stage of its flow. Operations read the session for the caller's
directory, check every precondition, and only then mutate and persist.

Every public function returns a dict and never raises:
  success: {"success": True, "message": ..., "state"?, "flow"?, "stage"?}
  failure: {"success": False, "error": ..., "error_code": ...}
"""

import os
from datetime import datetime
from typing import Any, Optional

from .config_tools import config_get_statusline, get_flows_dir
from .flow_tools import Flow, Stage, list_flows, load_flow
from .render import (
    build_view,
    checklist_values,
    render_checklist_item,
    render_prompt,
    render_status,
    render_statusline,
)
from .session_store import clear_state, read_state, write_state


NO_ACTIVE_SESSION = "no_active_session"
FLOW_NOT_FOUND = "flow_not_found"
STAGE_NOT_FOUND = "stage_not_found"
NO_SUCH_TRANSITION = "no_such_transition"
CHECKLIST_INDEX_OUT_OF_RANGE = "checklist_index_out_of_range"
EMPTY_FLOW = "empty_flow"


def _failure(error_code: str, error: str) -> dict[str, Any]:
    return {
        "success": False,
        "error": error,
        "error_code": error_code
    }


def _success(message: str, state: Optional[dict] = None, flow: Optional[Flow] = None,
             stage: Optional[Stage] = None, **extra: Any) -> dict[str, Any]:
    result: dict[str, Any] = {"success": True, "message": message}
    if state is not None:
        result["state"] = state
    if flow is not None:
        result["flow"] = flow.to_dict()
    if stage is not None:
        result["stage"] = stage.to_dict()
    result.update(extra)
    return result


def _now() -> str:
    return datetime.now().isoformat()


def _load_session(cwd: Optional[str] = None) -> tuple[Optional[dict], Optional[Flow], Optional[Stage], Optional[dict]]:
    """Resolve state, flow and current stage, or the failure explaining why not."""
    state = read_state(cwd)
    if state is None:
        return None, None, None, _failure(
            NO_ACTIVE_SESSION, "No active workflow. Run: wp start <flow-id>"
        )

    flow = load_flow(state["active_flow"])
    if flow is None:
        return state, None, None, _failure(
            FLOW_NOT_FOUND, f"Flow not found: {state['active_flow']}"
        )

    stage = flow.get_stage(state["current_stage"])
    if stage is None:
        return state, flow, None, _failure(
            STAGE_NOT_FOUND, f"Stage not found: {state['current_stage']}"
        )

    return state, flow, stage, None


def workflow_start(flow_id: str, cwd: Optional[str] = None) -> dict[str, Any]:
    flow = load_flow(flow_id)
    if flow is None:
        return _failure(FLOW_NOT_FOUND, f'Flow not found: "{flow_id}". Run: wp flows')
    if not flow.stages:
        return _failure(EMPTY_FLOW, f"Flow has no stages: {flow_id}")

    first_stage = flow.stages[0]
    state = {
        "active_flow": flow.id,
        "current_stage": first_stage.id,
        "loop_count": 0,
        "checklist": {},
        "history": [],
        "started_at": _now(),
        "project_dir": os.path.abspath(cwd if cwd else os.getcwd())
    }
    write_state(state)

    return _success(
        f"Started workflow: {flow.name}\nCurrent stage: {first_stage.icon} {first_stage.name}",
        state, flow, first_stage
    )


def workflow_status(cwd: Optional[str] = None) -> dict[str, Any]:
    state, flow, stage, error = _load_session(cwd)
    if error:
        return error

    view = build_view(state, flow, stage)
    return _success(render_status(view), state, flow, stage, view=view)


def _transition(direction: str, cwd: Optional[str] = None) -> dict[str, Any]:
    state, flow, stage, error = _load_session(cwd)
    if error:
        return error

    target_id = stage.next if direction == "next" else stage.back
    if not target_id:
        return _failure(NO_SUCH_TRANSITION, f"No {direction} stage from: {stage.name}")
    target = flow.get_stage(target_id)
    if target is None:
        label = "Next" if direction == "next" else "Back"
        return _failure(STAGE_NOT_FOUND, f"{label} stage not found: {target_id}")

    state["history"].append({
        "from": state["current_stage"],
        "to": target.id,
        "at": _now()
    })
    state["current_stage"] = target.id
    state["loop_count"] = 0
    write_state(state)

    verb = "Advanced to" if direction == "next" else "Went back to"
    return _success(f"{verb}: {target.icon} {target.name}", state, flow, target)


def workflow_advance(cwd: Optional[str] = None) -> dict[str, Any]:
    return _transition("next", cwd)


def workflow_back(cwd: Optional[str] = None) -> dict[str, Any]:
    return _transition("back", cwd)


def workflow_loop(cwd: Optional[str] = None) -> dict[str, Any]:
    state, flow, stage, error = _load_session(cwd)
    if error:
        return error

    if not stage.can_loop:
        return _failure(NO_SUCH_TRANSITION, f"Stage does not support looping: {stage.name}")

    state["loop_count"] += 1
    state["checklist"][stage.id] = [False] * len(stage.checklist)
    state["history"].append({
        "from": stage.id,
        "to": stage.id,
        "at": _now()
    })
    write_state(state)

    return _success(
        f"Looping {stage.icon} {stage.name} (loop #{state['loop_count']})",
        state, flow, stage
    )


def workflow_check(item: int, cwd: Optional[str] = None) -> dict[str, Any]:
    state, flow, stage, error = _load_session(cwd)
    if error:
        return error

    total = len(stage.checklist)
    if isinstance(item, bool) or not isinstance(item, int) or item < 1 or item > total:
        return _failure(
            CHECKLIST_INDEX_OUT_OF_RANGE,
            f"Item index out of range. Valid: 1–{total}"
        )

    values = checklist_values(state, stage)
    idx = item - 1
    values[idx] = not values[idx]
    state["checklist"][stage.id] = values
    write_state(state)

    message = render_checklist_item({
        "index": item,
        "item": stage.checklist[idx],
        "checked": values[idx]
    })
    return _success(message, state, flow, stage, checked=values[idx])


def workflow_end(cwd: Optional[str] = None) -> dict[str, Any]:
    state = read_state(cwd)
    if state is None:
        return _failure(NO_ACTIVE_SESSION, "No active workflow.")

    clear_state(cwd)
    return _success(f"Ended workflow: {state['active_flow']}")


def workflow_list_flows() -> dict[str, Any]:
    flows = list_flows()
    if not flows:
        return _success(
            f"No flows found in {get_flows_dir()}\nAdd YAML files there to create flows.",
            flows=[]
        )

    entries = [
        f"  {f['id']:<20} {f['name']}\n{'':<22}{f['description']}"
        for f in flows
    ]
    return _success("Available flows:\n\n" + "\n\n".join(entries), flows=flows)


def workflow_prompt(cwd: Optional[str] = None) -> dict[str, Any]:
    state, flow, stage, error = _load_session(cwd)
    if error:
        return _success("")

    return _success(render_prompt(build_view(state, flow, stage)))


def workflow_statusline(cwd: Optional[str] = None) -> dict[str, Any]:
    state, flow, stage, error = _load_session(cwd)
    if error:
        return _success("")

    settings = config_get_statusline(state.get("project_dir") or cwd)
    message = render_statusline(
        build_view(state, flow, stage),
        color=settings["color"],
        show_flow=settings["show_flow"]
    )
    return _success(message)
