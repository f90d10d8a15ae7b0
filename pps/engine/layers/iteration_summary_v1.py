from __future__ import annotations

from typing import Any, Dict

from pps.engine.constants import GATE_STATUS_FAIL, GATE_STATUS_PASS
from pps.engine.utils import clone_json


def build_iteration_summary_v1(state: Dict[str, Any], gate_result: Dict[str, Any]) -> Dict[str, Any]:
    """
    Derived view for one merge. Only this step's gate outcome is reported;
    the summary is rebuilt on every merge and never persisted.
    """
    gate_id = gate_result.get("gate_id") or ""
    status = gate_result.get("status")

    gates_passed = [gate_id] if status == GATE_STATUS_PASS and gate_id != "" else []
    gates_failed = [gate_id] if status == GATE_STATUS_FAIL and gate_id != "" else []

    logs = state["state"]
    return {
        "decisions_made": clone_json(logs["decision_log"]),
        "open_questions": clone_json(logs["open_questions"]),
        "changelog_entries": clone_json(logs["changelog"]),
        "active_freeze_label": logs["contract_freeze_ref"].get("label") or "",
        "gates_passed": gates_passed,
        "gates_failed": gates_failed,
        "next_actions": list(gate_result.get("next_actions") or []),
    }
