"""
Tests for render.py — the shared view and its three renderings.

Run with: pytest tests/test_render.py -v
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from workflow_pilot_server.flow_tools import parse_flow
from workflow_pilot_server.render import (
    build_view,
    checklist_values,
    render_prompt,
    render_status,
    render_statusline,
    GREEN,
    RESET,
)


FLOW = parse_flow({
    "id": "review",
    "name": "Review",
    "stages": [
        {"id": "read", "name": "Read", "icon": "📖", "transitions": {"next": "comment"}},
        {
            "id": "comment",
            "name": "Comment",
            "icon": "💬",
            "instructions": "  Leave comments.  \n",
            "keywords": ["be kind"],
            "transitions": {"next": "approve", "back": "read"},
            "checklist": ["Style", "Logic", "Tests"],
            "can_loop": True,
        },
        {"id": "approve", "name": "Approve"},
    ],
})


def state_at(stage_id, loop_count=0, checklist=None):
    return {
        "active_flow": "review",
        "current_stage": stage_id,
        "loop_count": loop_count,
        "checklist": checklist or {},
        "history": [],
        "started_at": "2026-01-01T00:00:00",
        "project_dir": "/p",
    }


def view_at(stage_id, **kwargs):
    return build_view(state_at(stage_id, **kwargs), FLOW, FLOW.get_stage(stage_id))


class TestChecklistValues:
    def test_absent_defaults_to_false(self):
        assert checklist_values(state_at("comment"), FLOW.get_stage("comment")) == [False, False, False]

    def test_short_list_is_padded(self):
        state = state_at("comment", checklist={"comment": [True]})
        assert checklist_values(state, FLOW.get_stage("comment")) == [True, False, False]

    def test_long_list_is_truncated(self):
        state = state_at("comment", checklist={"comment": [True, True, True, True]})
        assert checklist_values(state, FLOW.get_stage("comment")) == [True, True, True]


class TestBuildView:
    def test_middle_stage(self):
        view = view_at("comment", loop_count=2, checklist={"comment": [True, False, True]})

        assert view["position"] == 2
        assert view["total"] == 3
        assert view["loop_count"] == 2
        assert view["instructions"] == "Leave comments."
        assert view["checked"] == 2
        assert view["checklist"][0] == {"index": 1, "item": "Style", "checked": True}
        assert view["transitions"] == {"next": "approve", "back": "read", "loop": True}
        assert view["previous_stage"]["id"] == "read"
        assert view["next_stage"]["id"] == "approve"

    def test_edges_have_no_neighbours(self):
        assert view_at("read")["previous_stage"] is None
        assert view_at("approve")["next_stage"] is None


class TestRenderStatus:
    def test_sections(self):
        text = render_status(view_at("comment", loop_count=1, checklist={"comment": [False, True, False]}))

        assert text.splitlines()[:3] == [
            "CURRENT WORKFLOW: Review",
            "CURRENT STAGE: 💬 Comment (stage 2/3)",
            "LOOP COUNT: 1",
        ]
        assert "KEY PHRASES TO USE:\n- be kind" in text
        assert "CHECKLIST (1/3):\n□ [1] Style\n☑ [2] Logic\n□ [3] Tests" in text
        assert "  → next: approve" in text
        assert "  ← back: read" in text
        assert "  ↺ loop (repeat this stage)" in text

    def test_stage_without_icon_or_instructions(self):
        text = render_status(view_at("approve"))
        assert "CURRENT STAGE: Approve (stage 3/3)" in text
        assert "(no specific instructions)" in text
        assert "KEY PHRASES" not in text
        assert "CHECKLIST (0/0):" in text


class TestRenderPrompt:
    @pytest.mark.parametrize("stage_id, loop_count, checklist, expected", [
        ("read", 0, None, "read"),
        ("comment", 0, None, "comment □ 0/3"),
        ("comment", 3, {"comment": [True, True, False]}, "comment #3 □ 2/3"),
    ])
    def test_summary(self, stage_id, loop_count, checklist, expected):
        assert render_prompt(view_at(stage_id, loop_count=loop_count, checklist=checklist)) == expected


class TestRenderStatusline:
    def test_plain_breadcrumb(self):
        text = render_statusline(view_at("comment", loop_count=1), color=False)
        assert text == "review | 📖 Read → 💬 Comment #1 → Approve ↺ □ 0/3"

    def test_hide_flow(self):
        text = render_statusline(view_at("read"), color=False, show_flow=False)
        assert text == "📖 Read → 💬 Comment"

    def test_complete_checklist_is_green(self):
        text = render_statusline(view_at("comment", checklist={"comment": [True, True, True]}))
        assert f"{GREEN}✓ 3/3{RESET}" in text

    def test_incomplete_checklist_is_not_green(self):
        text = render_statusline(view_at("comment", checklist={"comment": [True, False, True]}))
        assert GREEN not in text
        assert "□ 2/3" in text
