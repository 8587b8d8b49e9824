"""
Flow Catalog for Workflow Pilot

Flows are YAML documents stored one per file in the flows directory
(<pilot home>/flows/<flow_id>.yaml). A flow is an ordered list of stages;
each stage carries instructions, an optional checklist and named
transitions to other stages.

Files that cannot be parsed or validated are skipped when listing and
reported as not found when loaded by id, so one broken flow never hides
the others.
"""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .config_tools import get_flow_extensions, get_flows_dir


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    """One step of a flow."""
    id: str
    name: str
    icon: str = ""
    instructions: str = ""
    keywords: list = field(default_factory=list)
    transitions: dict = field(default_factory=dict)
    checklist: list = field(default_factory=list)
    can_loop: bool = False

    @property
    def next(self) -> Optional[str]:
        return self.transitions.get("next") or None

    @property
    def back(self) -> Optional[str]:
        return self.transitions.get("back") or None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Flow:
    """A named, ordered sequence of stages."""
    id: str
    name: str
    description: str = ""
    stages: tuple = ()
    _positions: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self, "_positions", {stage.id: i for i, stage in enumerate(self.stages)}
        )

    def position(self, stage_id: str) -> Optional[int]:
        return self._positions.get(stage_id)

    def get_stage(self, stage_id: Optional[str]) -> Optional[Stage]:
        if stage_id is None:
            return None
        idx = self._positions.get(stage_id)
        return self.stages[idx] if idx is not None else None

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "stages": len(self.stages)
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "stages": [stage.to_dict() for stage in self.stages]
        }


class FlowValidationError(ValueError):
    pass


def _as_str_list(value: Any, what: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise FlowValidationError(f"{what} must be a list")
    return [str(v) for v in value]


def _parse_stage(raw: Any) -> Stage:
    if not isinstance(raw, dict):
        raise FlowValidationError("stage must be a mapping")
    stage_id = raw.get("id")
    if not stage_id:
        raise FlowValidationError("stage is missing an id")
    stage_id = str(stage_id)

    transitions = raw.get("transitions") or {}
    if not isinstance(transitions, dict):
        raise FlowValidationError(f"transitions of stage {stage_id} must be a mapping")
    transitions = {
        direction: str(transitions[direction])
        for direction in ("next", "back")
        if transitions.get(direction)
    }

    can_loop = raw.get("can_loop", False)
    if not isinstance(can_loop, bool):
        raise FlowValidationError(f"can_loop of stage {stage_id} must be true or false")

    return Stage(
        id=stage_id,
        name=str(raw.get("name") or stage_id),
        icon=str(raw.get("icon") or ""),
        instructions=str(raw.get("instructions") or ""),
        keywords=_as_str_list(raw.get("keywords"), f"keywords of stage {stage_id}"),
        transitions=transitions,
        checklist=_as_str_list(raw.get("checklist"), f"checklist of stage {stage_id}"),
        can_loop=can_loop,
    )


def parse_flow(raw: Any) -> Flow:
    """Build a Flow from a decoded YAML document.

    Raises FlowValidationError when the document does not describe a flow.
    """
    if not isinstance(raw, dict):
        raise FlowValidationError("flow document must be a mapping")
    flow_id = raw.get("id")
    if not flow_id:
        raise FlowValidationError("flow is missing an id")

    raw_stages = raw.get("stages")
    if raw_stages is None:
        raw_stages = []
    if not isinstance(raw_stages, list):
        raise FlowValidationError("stages must be a list")

    stages = tuple(_parse_stage(s) for s in raw_stages)
    seen = set()
    for stage in stages:
        if stage.id in seen:
            raise FlowValidationError(f"duplicate stage id: {stage.id}")
        seen.add(stage.id)

    return Flow(
        id=str(flow_id),
        name=str(raw.get("name") or flow_id),
        description=str(raw.get("description") or ""),
        stages=stages,
    )


def _read_flow_file(path: Path) -> Optional[Flow]:
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        flow = parse_flow(raw)
        if flow.id != path.stem:
            raise FlowValidationError(f"flow id {flow.id!r} does not match file name {path.name!r}")
        return flow
    except (OSError, yaml.YAMLError, FlowValidationError) as e:
        logger.warning("Skipping flow file %s: %s", path, e)
        return None


def _flow_path(flow_id: str) -> Optional[Path]:
    if not flow_id or "/" in flow_id or "\\" in flow_id or flow_id in (".", ".."):
        return None
    flows_dir = get_flows_dir()
    for ext in get_flow_extensions():
        path = flows_dir / f"{flow_id}{ext}"
        if path.is_file():
            return path
    return None


def load_flow(flow_id: str) -> Optional[Flow]:
    path = _flow_path(flow_id)
    if path is None:
        return None
    return _read_flow_file(path)


def list_flows() -> list[dict[str, Any]]:
    flows_dir = get_flows_dir()
    if not flows_dir.is_dir():
        return []

    extensions = set(get_flow_extensions())
    flow_ids = sorted({
        path.stem for path in flows_dir.iterdir()
        if path.is_file() and path.suffix in extensions
    })

    # Same file resolution as load_flow, so x.yaml and x.yml list once
    flows = []
    for flow_id in flow_ids:
        flow = load_flow(flow_id)
        if flow is not None:
            flows.append(flow.summary())
    return flows


def get_stage(flow: Flow, stage_id: Optional[str]) -> Optional[Stage]:
    return flow.get_stage(stage_id)
