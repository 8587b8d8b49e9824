"""
Renderers for Workflow Pilot

Every human-facing output (full status, one-line prompt summary, terminal
statusline) is a pure function of the view computed by build_view(), so
the three renderings can never disagree about position, loop count or
checklist progress.
"""

from typing import Any

from .flow_tools import Flow, Stage


DIM = "\x1b[2m"
BOLD = "\x1b[1m"
CYAN = "\x1b[36m"
GREEN = "\x1b[32m"
RESET = "\x1b[0m"

CHECKED = "☑"
UNCHECKED = "□"
NO_INSTRUCTIONS = "(no specific instructions)"


def checklist_values(state: dict, stage: Stage) -> list[bool]:
    """Stored checklist flags for a stage, sized to the stage's checklist."""
    stored = state.get("checklist", {}).get(stage.id)
    if not isinstance(stored, list):
        stored = []
    size = len(stage.checklist)
    values = [bool(v) for v in stored[:size]]
    return values + [False] * (size - len(values))


def build_view(state: dict, flow: Flow, stage: Stage) -> dict[str, Any]:
    position = flow.position(stage.id)
    values = checklist_values(state, stage)

    previous_stage = flow.stages[position - 1] if position > 0 else None
    next_stage = flow.stages[position + 1] if position < len(flow.stages) - 1 else None

    return {
        "flow_id": flow.id,
        "flow_name": flow.name,
        "stage_id": stage.id,
        "stage_name": stage.name,
        "icon": stage.icon,
        "position": position + 1,
        "total": len(flow.stages),
        "loop_count": state.get("loop_count", 0),
        "instructions": stage.instructions.strip() or NO_INSTRUCTIONS,
        "keywords": list(stage.keywords),
        "checklist": [
            {"index": i + 1, "item": item, "checked": values[i]}
            for i, item in enumerate(stage.checklist)
        ],
        "checked": sum(values),
        "transitions": {
            "next": stage.next,
            "back": stage.back,
            "loop": stage.can_loop
        },
        "previous_stage": _neighbour(previous_stage),
        "next_stage": _neighbour(next_stage),
    }


def _neighbour(stage):
    if stage is None:
        return None
    return {"id": stage.id, "name": stage.name, "icon": stage.icon}


def _label(icon: str, name: str) -> str:
    return f"{icon} {name}" if icon else name


def render_status(view: dict) -> str:
    lines = [
        f"CURRENT WORKFLOW: {view['flow_name']}",
        f"CURRENT STAGE: {_label(view['icon'], view['stage_name'])} "
        f"(stage {view['position']}/{view['total']})",
    ]
    if view["loop_count"] > 0:
        lines.append(f"LOOP COUNT: {view['loop_count']}")
    lines += [
        "",
        "YOUR INSTRUCTIONS FOR THIS STAGE:",
        view["instructions"],
        "",
    ]

    if view["keywords"]:
        lines.append("KEY PHRASES TO USE:")
        lines.extend(f"- {k}" for k in view["keywords"])
        lines.append("")

    lines.append(f"CHECKLIST ({view['checked']}/{len(view['checklist'])}):")
    for entry in view["checklist"]:
        lines.append(render_checklist_item(entry))
    lines.append("")

    transitions = []
    if view["transitions"]["next"]:
        transitions.append(f"→ next: {view['transitions']['next']}")
    if view["transitions"]["back"]:
        transitions.append(f"← back: {view['transitions']['back']}")
    if view["transitions"]["loop"]:
        transitions.append("↺ loop (repeat this stage)")
    if transitions:
        lines.append("AVAILABLE TRANSITIONS:")
        lines.extend(f"  {t}" for t in transitions)

    return "\n".join(lines)


def render_checklist_item(entry: dict) -> str:
    marker = CHECKED if entry["checked"] else UNCHECKED
    return f"{marker} [{entry['index']}] {entry['item']}"


def render_prompt(view: dict) -> str:
    parts = [view["stage_id"]]
    if view["loop_count"] > 0:
        parts.append(f"#{view['loop_count']}")
    total = len(view["checklist"])
    if total > 0:
        parts.append(f"{UNCHECKED} {view['checked']}/{total}")
    return " ".join(parts)


def render_statusline(view: dict, color: bool = True, show_flow: bool = True) -> str:
    def paint(text: str, *codes: str) -> str:
        if not color:
            return text
        return "".join(codes) + text + RESET

    parts = []
    if show_flow:
        parts.append(paint(view["flow_id"], DIM))
        parts.append(paint("|", DIM))

    breadcrumb = ""
    previous_stage = view["previous_stage"]
    if previous_stage:
        breadcrumb += paint(f"{_label(previous_stage['icon'], previous_stage['name'])} →", DIM) + " "
    breadcrumb += paint(_label(view["icon"], view["stage_name"]), BOLD, CYAN)
    if view["loop_count"] > 0:
        breadcrumb += " " + paint(f"#{view['loop_count']}", DIM)
    next_stage = view["next_stage"]
    if next_stage:
        breadcrumb += " " + paint(f"→ {_label(next_stage['icon'], next_stage['name'])}", DIM)
    parts.append(breadcrumb)

    if view["transitions"]["loop"]:
        parts.append(paint("↺", DIM))

    total = len(view["checklist"])
    if total > 0:
        checked = view["checked"]
        if checked == total:
            parts.append(paint(f"✓ {checked}/{total}", GREEN))
        else:
            parts.append(paint(f"{UNCHECKED} {checked}/{total}", DIM))

    return " ".join(parts)
