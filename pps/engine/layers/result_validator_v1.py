from __future__ import annotations

from typing import Any, Dict, List, Set

from pps.engine.constants import (
    APPENDIX_COLLISION_ERROR,
    FREEZE_PINNING_ERROR,
    GATE_NOT_APPLICABLE,
    GATE_SEMANTIC_ERROR,
    GATE_STATUS_FAIL,
    GATE_STATUS_NA,
    GATE_STATUS_PASS,
    OUTPUT_FORMAT,
    OUTPUT_FORMAT_ERROR,
    RESULT_VALIDATOR_VERSION,
    SHAPE_ERROR,
)
from pps.engine.documents_v1 import STATE_UPDATE_KEYS, normalize_envelope_v1, normalize_prompt_result_v1
from pps.engine.gate_catalog_v1 import GateCatalog, default_gate_catalog_v1
from pps.engine.utils import add_issue, as_dict, nonempty_str


_REQUIRED_BLOCKS = (
    "gate_result",
    "appendices_updates",
    "state_updates",
)


def _validate_appendix_entries(value: Any, *, path: str, errors: List[Dict[str, str]]) -> None:
    if value is None:
        return
    if not isinstance(value, list):
        add_issue(errors, code=SHAPE_ERROR, message=f"{path} must be a list", path=path)
        return
    for idx, entry in enumerate(value):
        entry_path = f"{path}[{idx}]"
        if not isinstance(entry, dict):
            add_issue(errors, code=SHAPE_ERROR, message=f"{entry_path} must be an object", path=entry_path)
            continue
        if nonempty_str(entry.get("id")) is None:
            add_issue(errors, code=SHAPE_ERROR, message=f"{entry_path}.id required", path=f"{entry_path}.id")


def validate_result_shape_v1(result: Any) -> List[Dict[str, str]]:
    """Phase A: required blocks present, containers well-typed, output format tag."""
    errors: List[Dict[str, str]] = []

    if not isinstance(result, dict):
        add_issue(errors, code=SHAPE_ERROR, message="prompt_result must be an object", path="$")
        return errors

    meta = as_dict(result.get("meta"))
    if nonempty_str(meta.get("prompt_id")) is None:
        add_issue(errors, code=SHAPE_ERROR, message="prompt_result.meta.prompt_id required", path="$.meta.prompt_id")
    if nonempty_str(meta.get("run_id")) is None:
        add_issue(errors, code=SHAPE_ERROR, message="prompt_result.meta.run_id required", path="$.meta.run_id")

    for block in _REQUIRED_BLOCKS:
        if not isinstance(result.get(block), dict):
            add_issue(errors, code=SHAPE_ERROR, message=f"prompt_result.{block} required", path=f"$.{block}")

    appendices_updates = as_dict(result.get("appendices_updates"))
    for key in ("added", "updated"):
        _validate_appendix_entries(
            appendices_updates.get(key),
            path=f"$.appendices_updates.{key}",
            errors=errors,
        )

    state_updates = as_dict(result.get("state_updates"))
    for added_key in STATE_UPDATE_KEYS.values():
        value = state_updates.get(added_key)
        if value is not None and not isinstance(value, list):
            add_issue(
                errors,
                code=SHAPE_ERROR,
                message=f"prompt_result.state_updates.{added_key} must be a list",
                path=f"$.state_updates.{added_key}",
            )

    context_updates = result.get("context_updates")
    if context_updates is not None and not isinstance(context_updates, dict):
        add_issue(
            errors,
            code=SHAPE_ERROR,
            message="prompt_result.context_updates must be an object",
            path="$.context_updates",
        )

    if "output_format" in result and result.get("output_format") != OUTPUT_FORMAT:
        add_issue(
            errors,
            code=OUTPUT_FORMAT_ERROR,
            message=f'output_format must be "{OUTPUT_FORMAT}"',
            path="$.output_format",
        )

    return errors


def validate_gate_semantics_v1(
    gate_target: str,
    gate_result: Dict[str, Any],
    catalog: GateCatalog,
) -> List[Dict[str, str]]:
    errors: List[Dict[str, str]] = []
    status = gate_result.get("status")
    gate_id = gate_result.get("gate_id")

    if gate_target == GATE_NOT_APPLICABLE:
        if status != GATE_STATUS_NA:
            add_issue(
                errors,
                code=GATE_SEMANTIC_ERROR,
                message=f'gate_target is "{GATE_NOT_APPLICABLE}" but gate_result.status is not "{GATE_STATUS_NA}"',
                path="$.gate_result.status",
            )
        return errors

    if not catalog.is_known_gate(gate_target):
        add_issue(
            errors,
            code=GATE_SEMANTIC_ERROR,
            message=f"unknown gate_target: {gate_target}",
            path="$.envelope.meta.gate_target",
        )
    if gate_id != gate_target:
        add_issue(
            errors,
            code=GATE_SEMANTIC_ERROR,
            message=f"gate_result.gate_id ({gate_id}) must match gate_target ({gate_target})",
            path="$.gate_result.gate_id",
        )
    if status not in (GATE_STATUS_PASS, GATE_STATUS_FAIL):
        add_issue(
            errors,
            code=GATE_SEMANTIC_ERROR,
            message=f'gate_result.status must be "{GATE_STATUS_PASS}" or "{GATE_STATUS_FAIL}" when gate_target is set',
            path="$.gate_result.status",
        )
    return errors


def validate_freeze_pinning_v1(
    envelope: Dict[str, Any],
    result: Dict[str, Any],
    catalog: GateCatalog,
) -> List[Dict[str, str]]:
    """
    FE/BE prompts must work against an explicit, pinned contract freeze label:
    received in focus, echoed back in meta, and equal to the accumulated label.
    """
    errors: List[Dict[str, str]] = []
    prompt_id = result["meta"]["prompt_id"]
    if not catalog.is_fe_or_be(prompt_id):
        return errors

    applied = result["meta"]["applied_to_freeze_label"]
    state_label = envelope["state"]["contract_freeze_ref"]["label"]
    focus_label_raw = envelope["focus"].get("contract_freeze_label")
    focus_label = focus_label_raw if isinstance(focus_label_raw, str) and focus_label_raw != "" else None

    if focus_label is None:
        add_issue(
            errors,
            code=FREEZE_PINNING_ERROR,
            message=f"FE/BE prompt {prompt_id} must receive focus.contract_freeze_label",
            path="$.envelope.focus.contract_freeze_label",
        )
    if applied == "":
        add_issue(
            errors,
            code=FREEZE_PINNING_ERROR,
            message="FE/BE prompt must emit meta.applied_to_freeze_label",
            path="$.meta.applied_to_freeze_label",
        )
    if focus_label is not None and applied != "" and applied != focus_label:
        add_issue(
            errors,
            code=FREEZE_PINNING_ERROR,
            message=f"applied_to_freeze_label ({applied}) must match focus.contract_freeze_label ({focus_label})",
            path="$.meta.applied_to_freeze_label",
        )
    if state_label != "" and applied != state_label:
        add_issue(
            errors,
            code=FREEZE_PINNING_ERROR,
            message=f"applied_to_freeze_label ({applied}) must match state.contract_freeze_ref.label ({state_label})",
            path="$.meta.applied_to_freeze_label",
        )
    return errors


def validate_appendices_v1(result: Dict[str, Any], existing_ids: Set[str]) -> List[Dict[str, str]]:
    errors: List[Dict[str, str]] = []
    added = result["appendices_updates"]["added"]
    updated = result["appendices_updates"]["updated"]

    seen_added: Set[str] = set()
    for idx, entry in enumerate(added):
        appendix_id = entry["id"]
        path = f"$.appendices_updates.added[{idx}].id"
        if appendix_id in existing_ids:
            add_issue(
                errors,
                code=APPENDIX_COLLISION_ERROR,
                message=f'appendices added: id "{appendix_id}" already exists',
                path=path,
            )
        elif appendix_id in seen_added:
            add_issue(
                errors,
                code=APPENDIX_COLLISION_ERROR,
                message=f'appendices added: id "{appendix_id}" appears more than once',
                path=path,
            )
        seen_added.add(appendix_id)

    for idx, entry in enumerate(updated):
        appendix_id = entry["id"]
        if appendix_id not in existing_ids:
            add_issue(
                errors,
                code=APPENDIX_COLLISION_ERROR,
                message=f'appendices updated: id "{appendix_id}" does not exist',
                path=f"$.appendices_updates.updated[{idx}].id",
            )
    return errors


def run_result_validator_v1(
    envelope: Any,
    result: Any,
    catalog: GateCatalog | None = None,
) -> Dict[str, Any]:
    """
    Two-phase, non-mutating check of a prompt result against the envelope it
    was generated from. Phase B only runs when phase A is clean. All problems
    of the failing phase are reported together.
    """
    gate_catalog = catalog if catalog is not None else default_gate_catalog_v1()

    shape_errors = validate_result_shape_v1(result)
    if shape_errors:
        return {
            "version": RESULT_VALIDATOR_VERSION,
            "status": "ERROR",
            "phase": "shape",
            "errors": shape_errors,
        }

    envelope_n = normalize_envelope_v1(envelope)
    result_n = normalize_prompt_result_v1(result)

    errors: List[Dict[str, str]] = []
    errors.extend(
        validate_gate_semantics_v1(
            envelope_n["meta"]["gate_target"],
            result_n["gate_result"],
            gate_catalog,
        )
    )
    errors.extend(validate_freeze_pinning_v1(envelope_n, result_n, gate_catalog))

    existing_ids = {entry["id"] for entry in envelope_n["appendices_index"]}
    errors.extend(validate_appendices_v1(result_n, existing_ids))

    return {
        "version": RESULT_VALIDATOR_VERSION,
        "status": "ERROR" if errors else "OK",
        "phase": "semantics",
        "errors": errors,
    }
