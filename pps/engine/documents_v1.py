"""
Normalization boundary for PPS envelopes, prompt results and pipeline state.

Every optional document field is resolved to its stated default here, once.
Downstream layers read normalized dicts and never re-derive defaults.
Inputs are never mutated; every normalized value is a fresh copy.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple

from pps.engine.constants import (
    CONTEXT_BLOCK_POLICY,
    DEFAULT_APPENDIX_THRESHOLD_CHARS,
    DEPTH_MODES,
    GATE_NOT_APPLICABLE,
    GATE_STATUS_NA,
    LARGE_ARTIFACT_POLICY,
    OUTPUT_FORMAT,
    OUTPUT_MODES,
    PPS_VERSION,
    PROMPT_VERSION,
    STATE_LOG_KEYS,
)
from pps.engine.utils import as_dict, as_list, as_str, clone_json


_APPENDIX_FIELDS = ("id", "kind", "summary", "location", "produced_by", "updated_on")
_FREEZE_REF_FIELDS = ("label", "openapi_appendix_id", "updated_on")
_CONSTRAINT_FIELDS = ("team_size", "timeline", "budget", "compliance_privacy", "hosting_limits")
_PROJECT_FIELDS = ("name", "brief", "domain", "users")
_RESULT_META_FIELDS = ("prompt_id", "prompt_version", "iteration_id", "run_id", "applied_to_freeze_label")
_IDENTITY_FIELDS = frozenset({"id", "kind", "label", "openapi_appendix_id"})

STATE_UPDATE_KEYS = {
    "decision_log": "decision_log_added",
    "open_questions": "open_questions_added",
    "changelog": "changelog_added",
    "change_requests": "change_requests_added",
}


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if value <= 0:
        return None
    return int(value)


def _identity_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, (bool, dict, list)):
        return ""
    return str(value)


def _carried_fields(value: Any, fields: Tuple[str, ...]) -> Dict[str, Any]:
    """
    Fixed-shape record. Identity fields are coerced to strings; any other
    present value, YAML dates included, is carried unchanged. Absent fields
    become "".
    """
    raw = as_dict(value)
    out: Dict[str, Any] = {}
    for field in fields:
        item = raw.get(field)
        if field in _IDENTITY_FIELDS:
            out[field] = _identity_str(item)
        elif item is None:
            out[field] = ""
        else:
            out[field] = clone_json(item)
    return out


def _defaulted_map(value: Any, fields: Tuple[str, ...]) -> Dict[str, Any]:
    out: Dict[str, Any] = {field: "" for field in fields}
    for key, item in as_dict(value).items():
        if item is not None:
            out[key] = clone_json(item)
    return out


def create_default_token_hygiene_v1() -> Dict[str, Any]:
    return {
        "context_block_policy": CONTEXT_BLOCK_POLICY,
        "large_artifact_policy": LARGE_ARTIFACT_POLICY,
        "appendix_threshold_chars": DEFAULT_APPENDIX_THRESHOLD_CHARS,
    }


def normalize_token_hygiene_v1(value: Any) -> Dict[str, Any]:
    out = create_default_token_hygiene_v1()
    raw = as_dict(value)
    if isinstance(raw.get("context_block_policy"), str):
        out["context_block_policy"] = raw["context_block_policy"]
    if isinstance(raw.get("large_artifact_policy"), str):
        out["large_artifact_policy"] = raw["large_artifact_policy"]
    threshold = _positive_int(raw.get("appendix_threshold_chars"))
    if threshold is not None:
        out["appendix_threshold_chars"] = threshold
    return out


def create_default_meta_v1(overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    """
    Envelope meta with every field defaulted. iteration_id and run_id default
    to "" so the result is deterministic; callers supply real identifiers.
    """
    meta: Dict[str, Any] = {
        "prompt_id": "APP/00_placeholder",
        "prompt_version": PROMPT_VERSION,
        "iteration_id": "",
        "run_id": "",
        "depth_mode": "MVP",
        "stack_prefs": [],
        "output_mode": "delta",
        "output_format": OUTPUT_FORMAT,
        "gate_target": GATE_NOT_APPLICABLE,
        "token_hygiene": create_default_token_hygiene_v1(),
    }
    for key, value in as_dict(overrides).items():
        if value is None:
            continue
        meta[key] = clone_json(value)
    return meta


def normalize_envelope_meta_v1(value: Any) -> Dict[str, Any]:
    raw = as_dict(value)
    meta = create_default_meta_v1()
    for key in ("prompt_id", "prompt_version", "iteration_id", "run_id", "output_format"):
        if isinstance(raw.get(key), str):
            meta[key] = raw[key]
    if raw.get("depth_mode") in DEPTH_MODES:
        meta["depth_mode"] = raw["depth_mode"]
    if raw.get("output_mode") in OUTPUT_MODES:
        meta["output_mode"] = raw["output_mode"]
    meta["stack_prefs"] = [item for item in as_list(raw.get("stack_prefs")) if isinstance(item, str)]
    gate_target = raw.get("gate_target")
    if isinstance(gate_target, str) and gate_target.strip() != "":
        meta["gate_target"] = gate_target
    meta["token_hygiene"] = normalize_token_hygiene_v1(raw.get("token_hygiene"))
    return meta


def normalize_appendix_ref_v1(value: Any) -> Dict[str, Any]:
    ref = _carried_fields(value, _APPENDIX_FIELDS)
    if ref["kind"] == "":
        ref["kind"] = "other"
    return ref


def normalize_appendices_index_v1(value: Any) -> List[Dict[str, Any]]:
    return [normalize_appendix_ref_v1(item) for item in as_list(value) if isinstance(item, dict)]


def create_empty_freeze_ref_v1() -> Dict[str, str]:
    return {field: "" for field in _FREEZE_REF_FIELDS}


def normalize_freeze_ref_v1(value: Any) -> Dict[str, Any]:
    return _carried_fields(value, _FREEZE_REF_FIELDS)


def normalize_state_block_v1(value: Any) -> Dict[str, Any]:
    raw = as_dict(value)
    block: Dict[str, Any] = {key: clone_json(as_list(raw.get(key))) for key in STATE_LOG_KEYS}
    block["contract_freeze_ref"] = normalize_freeze_ref_v1(raw.get("contract_freeze_ref"))
    return block


def normalize_envelope_v1(value: Any) -> Dict[str, Any]:
    raw = as_dict(value)
    return {
        "pps_version": as_str(raw.get("pps_version"), PPS_VERSION),
        "meta": normalize_envelope_meta_v1(raw.get("meta")),
        "constraints": _defaulted_map(raw.get("constraints"), _CONSTRAINT_FIELDS),
        "project": _defaulted_map(raw.get("project"), _PROJECT_FIELDS),
        "context_block": as_str(raw.get("context_block")),
        "context": clone_json(as_dict(raw.get("context"))),
        "appendices_index": normalize_appendices_index_v1(raw.get("appendices_index")),
        "state": normalize_state_block_v1(raw.get("state")),
        "focus": clone_json(as_dict(raw.get("focus"))),
    }


def envelope_threshold_chars(envelope: Any) -> int | None:
    """Threshold declared by the raw envelope meta, or None when it declares none."""
    meta = as_dict(as_dict(envelope).get("meta"))
    hygiene = as_dict(meta.get("token_hygiene"))
    return _positive_int(hygiene.get("appendix_threshold_chars"))


def normalize_gate_result_v1(value: Any) -> Dict[str, Any]:
    raw = as_dict(value)
    return {
        "gate_id": as_str(raw.get("gate_id")),
        "status": as_str(raw.get("status")),
        "reason": as_str(raw.get("reason")),
        "blockers": [item for item in as_list(raw.get("blockers")) if isinstance(item, str)],
        "next_actions": [item for item in as_list(raw.get("next_actions")) if isinstance(item, str)],
    }


def normalize_prompt_result_v1(value: Any) -> Dict[str, Any]:
    raw = as_dict(value)
    appendices_updates = as_dict(raw.get("appendices_updates"))
    state_updates = as_dict(raw.get("state_updates"))
    result_meta = as_dict(raw.get("meta"))

    freeze_ref = raw.get("contract_freeze_ref")

    return {
        "meta": {field: _identity_str(result_meta.get(field)) for field in _RESULT_META_FIELDS},
        "output_format": raw.get("output_format"),
        "context_updates": clone_json(as_dict(raw.get("context_updates"))),
        "appendices_updates": {
            "added": normalize_appendices_index_v1(appendices_updates.get("added")),
            "updated": normalize_appendices_index_v1(appendices_updates.get("updated")),
        },
        "state_updates": {
            added_key: clone_json(as_list(state_updates.get(added_key)))
            for added_key in STATE_UPDATE_KEYS.values()
        },
        "gate_result": normalize_gate_result_v1(raw.get("gate_result")),
        "contract_freeze_ref": normalize_freeze_ref_v1(freeze_ref) if isinstance(freeze_ref, dict) else None,
        "warnings": [item for item in as_list(raw.get("warnings")) if isinstance(item, str)],
    }


def create_empty_prompt_result_v1(
    prompt_id: str,
    run_id: str,
    *,
    prompt_version: str = PROMPT_VERSION,
    iteration_id: str = "",
    applied_to_freeze_label: str = "",
) -> Dict[str, Any]:
    return {
        "meta": {
            "prompt_id": prompt_id,
            "prompt_version": prompt_version,
            "iteration_id": iteration_id,
            "run_id": run_id,
            "applied_to_freeze_label": applied_to_freeze_label,
        },
        "context_updates": {},
        "appendices_updates": {"added": [], "updated": []},
        "state_updates": {added_key: [] for added_key in STATE_UPDATE_KEYS.values()},
        "gate_result": {
            "gate_id": "",
            "status": GATE_STATUS_NA,
            "reason": "",
            "blockers": [],
            "next_actions": [],
        },
        "warnings": [],
    }


def applied_entry_v1(prompt_id: Any, run_id: Any) -> Dict[str, str]:
    return {"prompt_id": as_str(prompt_id), "run_id": as_str(run_id)}


def applied_key_from_result_v1(result: Any) -> Dict[str, str]:
    meta = as_dict(as_dict(result).get("meta"))
    return applied_entry_v1(meta.get("prompt_id"), meta.get("run_id"))


def normalize_applied_index_v1(value: Any) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    seen = set()
    for item in as_list(value):
        if not isinstance(item, dict):
            continue
        entry = applied_entry_v1(item.get("prompt_id"), item.get("run_id"))
        key = (entry["prompt_id"], entry["run_id"])
        if key in seen:
            continue
        seen.add(key)
        out.append(entry)
    return out


def normalize_pipeline_state_v1(value: Any) -> Dict[str, Any]:
    raw = as_dict(value)
    return {
        "context": clone_json(as_dict(raw.get("context"))),
        "appendices_index": normalize_appendices_index_v1(raw.get("appendices_index")),
        "state": normalize_state_block_v1(raw.get("state")),
        "applied_index": normalize_applied_index_v1(raw.get("applied_index")),
    }
