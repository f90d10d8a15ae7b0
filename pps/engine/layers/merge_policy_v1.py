"""
Per-field merge policy for OMS v1.0.

Every field the merge engine writes is listed in MERGE_POLICY_V1 and merged
through apply_policy_v1. Inside the context map a key is replaced or recursed
into, except that an existing list under a CONTEXT_APPEND_ONLY_KEYS name is
extended append-only at whatever depth it sits.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from pps.engine.constants import CONTEXT_APPEND_ONLY_KEYS, STATE_LOG_KEYS
from pps.engine.utils import as_dict, clone_json


POLICY_RECURSE = "recurse"
POLICY_APPEND_ONLY = "append_only"
POLICY_KEYED_UPSERT = "keyed_upsert"
POLICY_AUTHORITY_REPLACE = "authority_replace"

MERGE_POLICY_V1: Mapping[str, str] = {
    "context": POLICY_RECURSE,
    "appendices_index": POLICY_KEYED_UPSERT,
    **{f"state.{key}": POLICY_APPEND_ONLY for key in STATE_LOG_KEYS},
    "state.contract_freeze_ref": POLICY_AUTHORITY_REPLACE,
    "applied_index": POLICY_APPEND_ONLY,
}


def policy_for_path(path: str) -> str:
    if path in MERGE_POLICY_V1:
        return MERGE_POLICY_V1[path]
    raise KeyError(f"MERGE_POLICY_V1_UNKNOWN_PATH: {path}")


def apply_policy_v1(path: str, current: Any, update: Any) -> Any:
    """
    Merge `update` into `current` under the policy registered for `path`.

    keyed_upsert expects {"added": [...], "updated": [...]}; authority_replace
    keeps `current` when `update` is None.
    """
    policy = policy_for_path(path)
    if policy == POLICY_RECURSE:
        return merge_context_v1(as_dict(current), as_dict(update))
    if policy == POLICY_KEYED_UPSERT:
        patch = as_dict(update)
        return upsert_appendices_v1(current, patch.get("added") or [], patch.get("updated") or [])
    if policy == POLICY_APPEND_ONLY:
        return append_only_v1(current, update)
    if policy == POLICY_AUTHORITY_REPLACE:
        return clone_json(current if update is None else update)
    raise KeyError(f"MERGE_POLICY_V1_UNKNOWN_POLICY: {policy}")


def append_only_v1(existing: Any, additions: Any) -> List[Any]:
    """Concatenate additions onto existing. Never drops, dedupes or reorders."""
    if existing is None:
        base: List[Any] = []
    elif isinstance(existing, list):
        base = list(existing)
    else:
        base = [existing]

    if additions is None:
        extra: List[Any] = []
    elif isinstance(additions, list):
        extra = clone_json(additions)
    else:
        extra = [clone_json(additions)]

    return base + extra


def merge_context_v1(context: Dict[str, Any], updates: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(context)
    for key, value in updates.items():
        current = merged.get(key)

        if key in CONTEXT_APPEND_ONLY_KEYS and isinstance(current, list):
            merged[key] = append_only_v1(current, value)
            continue

        if isinstance(value, dict) and isinstance(current, dict):
            merged[key] = merge_context_v1(current, value)
        else:
            merged[key] = clone_json(value)
    return merged


def upsert_appendices_v1(
    index: List[Dict[str, Any]],
    added: List[Dict[str, Any]],
    updated: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Updated entries replace their namesake in place; added entries with new
    ids go after all existing ones, in patch order.
    """
    by_id: Dict[str, Dict[str, Any]] = {entry["id"]: dict(entry) for entry in index}
    order = [entry["id"] for entry in index]

    for entry in updated:
        if entry["id"] in by_id:
            by_id[entry["id"]] = dict(entry)

    for entry in added:
        if entry["id"] not in by_id:
            by_id[entry["id"]] = dict(entry)
            order.append(entry["id"])

    return [by_id[appendix_id] for appendix_id in order]
