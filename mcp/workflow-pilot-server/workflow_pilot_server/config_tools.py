"""
Configuration Tools for Workflow Pilot

Handles YAML configuration cascade merge:
  1. Built-in defaults:  DEFAULT_CONFIG below
  2. Global config:      <pilot home>/config.yaml
  3. Project config:     <project>/.workflow-pilot.yaml

Each level overrides the previous. The pilot home is $WORKFLOW_PILOT_HOME
when set, otherwise ~/.workflow-pilot. Storage paths (flows_dir,
sessions_dir) are only read from the global level so that every project
sees the same sessions and flows.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml


logger = logging.getLogger(__name__)

HOME_ENV_VAR = "WORKFLOW_PILOT_HOME"
GLOBAL_CONFIG_NAME = "config.yaml"
PROJECT_CONFIG_NAME = ".workflow-pilot.yaml"

DEFAULT_CONFIG = {
    "flows_dir": "",
    "sessions_dir": "",
    "flow_extensions": [".yaml", ".yml"],
    "log_level": "WARNING",
    "statusline": {
        "color": True,
        "show_flow": True
    }
}


def _validate_config(config: dict, defaults: dict, prefix: str = "") -> list[str]:
    """Validate config against defaults, returning warnings for unknown keys."""
    warnings = []
    for key, value in config.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if key not in defaults:
            warnings.append(f"Unknown config key: '{full_key}'")
        elif isinstance(value, dict) and isinstance(defaults.get(key), dict):
            warnings.extend(_validate_config(value, defaults[key], full_key))
        elif value is not None:
            expected_type = type(defaults.get(key))
            if not isinstance(value, expected_type):
                warnings.append(
                    f"Invalid type for '{full_key}': expected {expected_type.__name__}, got {type(value).__name__}"
                )
    return warnings


def _deep_merge(base: dict, override: dict) -> dict:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml(path: Path) -> Optional[dict]:
    if not path.exists():
        return None

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return None

    if not isinstance(data, dict):
        return None
    return data


def get_pilot_home() -> Path:
    env_home = os.environ.get(HOME_ENV_VAR)
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".workflow-pilot"


def _get_global_config_path() -> Path:
    return get_pilot_home() / GLOBAL_CONFIG_NAME


def _get_project_config_path(project_dir: Optional[str] = None) -> Path:
    base = Path(project_dir) if project_dir else Path.cwd()
    return base / PROJECT_CONFIG_NAME


def config_get_effective(project_dir: Optional[str] = None) -> dict[str, Any]:
    config = copy.deepcopy(DEFAULT_CONFIG)
    warnings = []

    global_path = _get_global_config_path()
    global_config = _load_yaml(global_path)
    if global_config:
        warnings.extend(_validate_config(global_config, DEFAULT_CONFIG))
        config = _deep_merge(config, global_config)

    project_path = _get_project_config_path(project_dir)
    project_config = _load_yaml(project_path)
    if project_config:
        warnings.extend(_validate_config(project_config, DEFAULT_CONFIG))
        # Storage locations are global; a project cannot redirect them
        project_config = {
            k: v for k, v in project_config.items()
            if k not in ("flows_dir", "sessions_dir")
        }
        config = _deep_merge(config, project_config)

    sources = []
    if global_config:
        sources.append(str(global_path))
    if project_config is not None:
        sources.append(str(project_path))

    return {
        "config": config,
        "sources": sources,
        "warnings": warnings,
        "has_global": global_config is not None,
        "has_project": project_config is not None
    }


def _global_config() -> dict[str, Any]:
    config = copy.deepcopy(DEFAULT_CONFIG)
    global_config = _load_yaml(_get_global_config_path())
    if global_config:
        config = _deep_merge(config, global_config)
    return config


def _resolve_dir(configured: Any, default_name: str) -> Path:
    home = get_pilot_home()
    if not configured or not isinstance(configured, str):
        return home / default_name
    path = Path(configured).expanduser()
    if not path.is_absolute():
        path = home / path
    return path


def get_flows_dir() -> Path:
    return _resolve_dir(_global_config().get("flows_dir"), "flows")


def get_sessions_dir() -> Path:
    return _resolve_dir(_global_config().get("sessions_dir"), "sessions")


def get_flow_extensions() -> list[str]:
    extensions = _global_config().get("flow_extensions")
    if not isinstance(extensions, list) or not extensions:
        return list(DEFAULT_CONFIG["flow_extensions"])
    return [e if e.startswith(".") else f".{e}" for e in extensions if isinstance(e, str)]


def ensure_dirs() -> None:
    get_pilot_home().mkdir(parents=True, exist_ok=True)
    get_sessions_dir().mkdir(parents=True, exist_ok=True)
    get_flows_dir().mkdir(parents=True, exist_ok=True)


def config_get_statusline(project_dir: Optional[str] = None) -> dict[str, Any]:
    effective = config_get_effective(project_dir)
    statusline = effective["config"].get("statusline", {})
    if not isinstance(statusline, dict):
        statusline = {}

    return {
        "color": bool(statusline.get("color", True)),
        "show_flow": bool(statusline.get("show_flow", True)),
        "sources": effective["sources"]
    }
