"""
OMS v1.0 merge engine.

merge_v1 folds one prompt result into the pipeline state embedded in the
envelope it was generated from. It is pure and deterministic: inputs are never
mutated, nothing is read from or written to disk, and every outcome is a
structured payload (duplicate no-op, validation failure, or merged state).

Single-writer discipline is assumed. The applied index only makes repeated
delivery of the same (prompt_id, run_id) harmless; two different results
derived from the same stale snapshot are not detected.
"""

from __future__ import annotations

from typing import Any, Dict, List

from pps.engine.constants import (
    DEFAULT_APPENDIX_THRESHOLD_CHARS,
    DUPLICATE_NOOP,
    DUPLICATE_NOOP_MESSAGE,
    MERGE_ENGINE_VERSION,
    RESULT_WARNING,
)
from pps.engine.documents_v1 import (
    STATE_UPDATE_KEYS,
    applied_key_from_result_v1,
    envelope_threshold_chars,
    normalize_applied_index_v1,
    normalize_envelope_v1,
    normalize_prompt_result_v1,
)
from pps.engine.gate_catalog_v1 import GateCatalog, default_gate_catalog_v1
from pps.engine.layers.consistency_checker_v1 import run_consistency_checks_v1
from pps.engine.layers.iteration_summary_v1 import build_iteration_summary_v1
from pps.engine.layers.merge_policy_v1 import apply_policy_v1
from pps.engine.layers.result_validator_v1 import run_result_validator_v1
from pps.engine.layers.state_builder_v1 import project_state_from_normalized_envelope_v1
from pps.engine.layers.token_hygiene_v1 import run_token_hygiene_scan_v1
from pps.engine.utils import as_dict, as_list, clone_json, make_issue


def _merge_payload(
    *,
    status: str,
    state: Dict[str, Any] | None = None,
    applied_index: List[Dict[str, str]] | None = None,
    iteration_summary: Dict[str, Any] | None = None,
    errors: List[Dict[str, str]] | None = None,
    warnings: List[Dict[str, str]] | None = None,
) -> Dict[str, Any]:
    return {
        "version": MERGE_ENGINE_VERSION,
        "status": status,
        "ok": status != "ERROR",
        "state": state,
        "applied_index": applied_index,
        "iteration_summary": iteration_summary,
        "errors": list(errors or []),
        "warnings": list(warnings or []),
    }


def _result_warnings(result: Any) -> List[Dict[str, str]]:
    return [
        make_issue(RESULT_WARNING, text, "$.warnings")
        for text in as_list(as_dict(result).get("warnings"))
        if isinstance(text, str)
    ]


def _resolve_threshold(envelope: Any, appendix_threshold_chars: Any) -> int:
    declared = envelope_threshold_chars(envelope)
    if declared is not None:
        return declared
    if isinstance(appendix_threshold_chars, int) and not isinstance(appendix_threshold_chars, bool):
        if appendix_threshold_chars > 0:
            return appendix_threshold_chars
    return DEFAULT_APPENDIX_THRESHOLD_CHARS


def merge_v1(
    envelope: Any,
    result: Any,
    applied_index: Any = None,
    appendix_threshold_chars: int = DEFAULT_APPENDIX_THRESHOLD_CHARS,
    catalog: GateCatalog | None = None,
) -> Dict[str, Any]:
    gate_catalog = catalog if catalog is not None else default_gate_catalog_v1()
    prior_applied = normalize_applied_index_v1(applied_index)

    key = applied_key_from_result_v1(result)
    seen = {(entry["prompt_id"], entry["run_id"]) for entry in prior_applied}
    if (key["prompt_id"], key["run_id"]) in seen:
        return _merge_payload(
            status="DUPLICATE",
            warnings=[make_issue(DUPLICATE_NOOP, DUPLICATE_NOOP_MESSAGE, "$.meta")],
        )

    warnings = _result_warnings(result)

    validation = run_result_validator_v1(envelope, result, gate_catalog)
    if validation["errors"]:
        return _merge_payload(status="ERROR", errors=validation["errors"], warnings=warnings)

    envelope_n = normalize_envelope_v1(envelope)
    result_n = normalize_prompt_result_v1(result)

    pipeline_state = project_state_from_normalized_envelope_v1(envelope_n)
    pipeline_state["applied_index"] = clone_json(prior_applied)

    pipeline_state["context"] = apply_policy_v1("context", pipeline_state["context"], result_n["context_updates"])
    pipeline_state["appendices_index"] = apply_policy_v1(
        "appendices_index",
        pipeline_state["appendices_index"],
        result_n["appendices_updates"],
    )

    logs = pipeline_state["state"]
    for log_key, added_key in STATE_UPDATE_KEYS.items():
        logs[log_key] = apply_policy_v1(f"state.{log_key}", logs[log_key], result_n["state_updates"][added_key])

    # only the contract-freeze authority may publish a freeze ref
    freeze_ref = result_n["contract_freeze_ref"]
    if not gate_catalog.is_contract_freeze_authority(result_n["meta"]["prompt_id"]):
        freeze_ref = None
    logs["contract_freeze_ref"] = apply_policy_v1("state.contract_freeze_ref", logs["contract_freeze_ref"], freeze_ref)

    consistency = run_consistency_checks_v1(pipeline_state)
    warnings.extend(consistency["findings"])

    threshold = _resolve_threshold(envelope, appendix_threshold_chars)
    hygiene = run_token_hygiene_scan_v1(result_n["context_updates"], threshold)
    warnings.extend(hygiene["findings"])

    pipeline_state["applied_index"] = apply_policy_v1("applied_index", pipeline_state["applied_index"], [key])
    iteration_summary = build_iteration_summary_v1(pipeline_state, result_n["gate_result"])

    return _merge_payload(
        status="OK",
        state=pipeline_state,
        applied_index=clone_json(pipeline_state["applied_index"]),
        iteration_summary=iteration_summary,
        warnings=warnings,
    )
