from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple

from pps.engine.constants import CONSISTENCY_CHECKER_VERSION, CONSISTENCY_WARNING
from pps.engine.utils import add_issue


def _check_freeze_ref_appendix(state: Dict[str, Any], findings: List[Dict[str, str]]) -> None:
    ref = state["state"]["contract_freeze_ref"]
    label = ref.get("label") or ""
    appendix_id = ref.get("openapi_appendix_id") or ""
    if label == "" or appendix_id == "":
        return

    known_ids = {entry.get("id") for entry in state["appendices_index"]}
    if appendix_id not in known_ids:
        add_issue(
            findings,
            code=CONSISTENCY_WARNING,
            message=(
                f'contract_freeze_ref references OpenAPI appendix "{appendix_id}" '
                "which is not in appendices_index"
            ),
            path="$.state.contract_freeze_ref.openapi_appendix_id",
        )


# Cross-reference rules run in order over the finished state.
CONSISTENCY_RULES_V1: Tuple[Callable[[Dict[str, Any], List[Dict[str, str]]], None], ...] = (
    _check_freeze_ref_appendix,
)


def run_consistency_checks_v1(state: Dict[str, Any]) -> Dict[str, Any]:
    findings: List[Dict[str, str]] = []
    for rule in CONSISTENCY_RULES_V1:
        rule(state, findings)

    return {
        "version": CONSISTENCY_CHECKER_VERSION,
        "status": "WARN" if findings else "OK",
        "findings": findings,
    }
