"""
Session Store for Workflow Pilot

One JSON state record per project directory, stored under the sessions
directory as <sha256(abs project dir)[:16]>.json.

Lookups walk upward from the caller's directory, so a session started at a
project root stays visible from any subdirectory. A record that is missing,
unparsable or structurally invalid at one level is treated as absent there
and the walk continues with the parent.
"""

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from filelock import FileLock

from .config_tools import ensure_dirs, get_sessions_dir


logger = logging.getLogger(__name__)

KEY_LENGTH = 16


def _abs_dir(directory: Optional[str] = None) -> str:
    return os.path.abspath(directory if directory else os.getcwd())


def dir_hash(directory: str) -> str:
    return hashlib.sha256(directory.encode("utf-8")).hexdigest()[:KEY_LENGTH]


def state_file_for_dir(directory: str, sessions_dir: Optional[Path] = None) -> Path:
    sessions_dir = sessions_dir or get_sessions_dir()
    return sessions_dir / f"{dir_hash(_abs_dir(directory))}.json"


def _lock_for(state_file: Path) -> FileLock:
    return FileLock(str(state_file) + ".lock")


def _normalize_state(raw: Any, directory: str) -> Optional[dict]:
    if not isinstance(raw, dict):
        return None
    if not isinstance(raw.get("active_flow"), str) or not isinstance(raw.get("current_stage"), str):
        return None

    state = dict(raw)
    loop_count = state.get("loop_count")
    if not isinstance(loop_count, int) or isinstance(loop_count, bool) or loop_count < 0:
        state["loop_count"] = 0
    if not isinstance(state.get("checklist"), dict):
        state["checklist"] = {}
    if not isinstance(state.get("history"), list):
        state["history"] = []
    if not isinstance(state.get("project_dir"), str) or not state["project_dir"]:
        state["project_dir"] = directory
    return state


def _load_state_file(state_file: Path, directory: str) -> Optional[dict]:
    if not state_file.is_file():
        return None
    try:
        with _lock_for(state_file):
            with open(state_file, encoding="utf-8") as f:
                raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable session file %s: %s", state_file, e)
        return None

    state = _normalize_state(raw, directory)
    if state is None:
        logger.warning("Ignoring malformed session file %s", state_file)
    return state


def _search_upward(start_dir: Optional[str] = None) -> Optional[tuple[Path, dict]]:
    start = Path(_abs_dir(start_dir))
    sessions_dir = get_sessions_dir()
    for directory in (start, *start.parents):
        state_file = state_file_for_dir(str(directory), sessions_dir)
        state = _load_state_file(state_file, str(directory))
        if state is not None:
            return state_file, state
    return None


def read_state(start_dir: Optional[str] = None) -> Optional[dict]:
    found = _search_upward(start_dir)
    return found[1] if found else None


def write_state(state: dict) -> Path:
    ensure_dirs()
    state_file = state_file_for_dir(state["project_dir"])
    with _lock_for(state_file):
        with open(state_file, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2, ensure_ascii=False)
    return state_file


def clear_state(start_dir: Optional[str] = None) -> Optional[Path]:
    found = _search_upward(start_dir)
    if found is None:
        return None

    state_file, _ = found
    with _lock_for(state_file):
        state_file.unlink(missing_ok=True)
    Path(str(state_file) + ".lock").unlink(missing_ok=True)
    return state_file
