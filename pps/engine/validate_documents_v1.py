"""
Standalone document checks used by loaders, the CLI `validate` command and the
HTTP surface. These are looser than the merge-time validator: they only ask
whether a document is a well-formed envelope or prompt result on its own.
"""

from __future__ import annotations

from typing import Any, Dict, List

from pps.engine.constants import (
    CONTEXT_BLOCK_POLICY,
    GATE_NOT_APPLICABLE,
    GATE_SEMANTIC_ERROR,
    GATE_STATUSES,
    OUTPUT_FORMAT,
    OUTPUT_FORMAT_ERROR,
    PPS_VERSION,
    SHAPE_ERROR,
)
from pps.engine.gate_catalog_v1 import GateCatalog, default_gate_catalog_v1
from pps.engine.utils import add_issue, nonempty_str


def _outcome(errors: List[Dict[str, str]]) -> Dict[str, Any]:
    return {"ok": len(errors) == 0, "errors": errors}


def validate_pps_envelope_v1(doc: Any) -> Dict[str, Any]:
    errors: List[Dict[str, str]] = []
    if not isinstance(doc, dict):
        add_issue(errors, code=SHAPE_ERROR, message="Envelope must be an object", path="$")
        return _outcome(errors)

    if doc.get("pps_version") != PPS_VERSION:
        add_issue(errors, code=SHAPE_ERROR, message=f'pps_version must be "{PPS_VERSION}"', path="$.pps_version")

    meta = doc.get("meta")
    if not isinstance(meta, dict):
        add_issue(errors, code=SHAPE_ERROR, message="meta is required", path="$.meta")
        return _outcome(errors)

    if nonempty_str(meta.get("run_id")) is None:
        add_issue(errors, code=SHAPE_ERROR, message="meta.run_id must be a non-empty string", path="$.meta.run_id")
    if meta.get("output_format") != OUTPUT_FORMAT:
        add_issue(
            errors,
            code=OUTPUT_FORMAT_ERROR,
            message=f'meta.output_format must be "{OUTPUT_FORMAT}"',
            path="$.meta.output_format",
        )

    hygiene = meta.get("token_hygiene")
    if hygiene is not None:
        if not isinstance(hygiene, dict) or hygiene.get("context_block_policy") != CONTEXT_BLOCK_POLICY:
            add_issue(
                errors,
                code=SHAPE_ERROR,
                message=f'meta.token_hygiene.context_block_policy must be "{CONTEXT_BLOCK_POLICY}"',
                path="$.meta.token_hygiene.context_block_policy",
            )
    return _outcome(errors)


def validate_prompt_result_v1(doc: Any) -> Dict[str, Any]:
    errors: List[Dict[str, str]] = []
    if not isinstance(doc, dict):
        add_issue(errors, code=SHAPE_ERROR, message="Result must be an object", path="$")
        return _outcome(errors)

    meta = doc.get("meta")
    if not isinstance(meta, dict):
        add_issue(errors, code=SHAPE_ERROR, message="meta is required", path="$.meta")
    else:
        for field in ("prompt_id", "run_id"):
            if nonempty_str(meta.get(field)) is None:
                add_issue(errors, code=SHAPE_ERROR, message=f"meta.{field} is required", path=f"$.meta.{field}")

    gate_result = doc.get("gate_result")
    if not isinstance(gate_result, dict):
        add_issue(errors, code=SHAPE_ERROR, message="gate_result is required", path="$.gate_result")
    else:
        status = gate_result.get("status")
        if status is not None and status not in GATE_STATUSES:
            add_issue(
                errors,
                code=SHAPE_ERROR,
                message="gate_result.status must be pass, fail, or na",
                path="$.gate_result.status",
            )

    for block in ("appendices_updates", "state_updates"):
        if not isinstance(doc.get(block), dict):
            add_issue(errors, code=SHAPE_ERROR, message=f"{block} is required", path=f"$.{block}")
    return _outcome(errors)


def validate_gate_target_v1(target: Any, catalog: GateCatalog | None = None) -> Dict[str, Any]:
    gate_catalog = catalog if catalog is not None else default_gate_catalog_v1()
    errors: List[Dict[str, str]] = []
    if target != GATE_NOT_APPLICABLE and not (isinstance(target, str) and gate_catalog.is_known_gate(target)):
        add_issue(
            errors,
            code=GATE_SEMANTIC_ERROR,
            message=f"gate_target must be {GATE_NOT_APPLICABLE} or one of the catalog gates, got {target!r}",
            path="$.meta.gate_target",
        )
    return _outcome(errors)
