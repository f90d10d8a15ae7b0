"""Canned prompt results for demos, offline runs and tests."""

from __future__ import annotations

from typing import Any, Dict, Mapping

from pps.engine.constants import GATE_NOT_APPLICABLE, GATE_STATUS_NA, GATE_STATUS_PASS
from pps.engine.documents_v1 import create_empty_prompt_result_v1
from pps.engine.gate_catalog_v1 import GateCatalog, default_gate_catalog_v1
from pps.engine.utils import as_dict, as_str


STUB_FREEZE_LABEL = "CONTRACT_FREEZE_V0"
STUB_NEXT_ACTION = "Run next prompt in sequence"


def stub_result_v1(
    prompt_id: str,
    run_id: str,
    *,
    gate_target: str | None = None,
    status: str | None = None,
    iteration_id: str = "",
    applied_to_freeze_label: str = "",
    contract_freeze_ref: Mapping[str, Any] | None = None,
    catalog: GateCatalog | None = None,
) -> Dict[str, Any]:
    """
    Minimal valid result for `prompt_id`. Gate target and status default from
    the catalog's prompt sequence: "na" for ungated steps, "pass" otherwise.
    """
    gate_catalog = catalog if catalog is not None else default_gate_catalog_v1()
    gate = gate_target if gate_target is not None else gate_catalog.gate_target_for_prompt(prompt_id)
    gate_status = status if status is not None else (GATE_STATUS_NA if gate == GATE_NOT_APPLICABLE else GATE_STATUS_PASS)

    result = create_empty_prompt_result_v1(
        prompt_id,
        run_id,
        iteration_id=iteration_id,
        applied_to_freeze_label=applied_to_freeze_label,
    )
    result["gate_result"] = {
        "gate_id": "" if gate == GATE_NOT_APPLICABLE else gate,
        "status": gate_status,
        "reason": "" if gate_status == GATE_STATUS_NA else f"stub {gate_status}",
        "blockers": [],
        "next_actions": [] if gate == GATE_NOT_APPLICABLE else [STUB_NEXT_ACTION],
    }
    if contract_freeze_ref is not None:
        result["contract_freeze_ref"] = dict(contract_freeze_ref)
    return result


def stub_generator_v1(catalog: GateCatalog | None = None):
    """
    Generator callable for the pipeline runner that never leaves the process.
    The freeze authority publishes STUB_FREEZE_LABEL; FE/BE steps echo the
    label they were pinned to.
    """
    gate_catalog = catalog if catalog is not None else default_gate_catalog_v1()

    def _generate(envelope: Dict[str, Any], prompt_template: str) -> Dict[str, Any]:
        meta = as_dict(envelope.get("meta"))
        prompt_id = as_str(meta.get("prompt_id"))
        freeze_ref = None
        if gate_catalog.is_contract_freeze_authority(prompt_id):
            freeze_ref = {"label": STUB_FREEZE_LABEL, "openapi_appendix_id": "", "updated_on": ""}
        applied = ""
        if gate_catalog.is_fe_or_be(prompt_id):
            applied = as_str(as_dict(envelope.get("focus")).get("contract_freeze_label"))
        return stub_result_v1(
            prompt_id,
            as_str(meta.get("run_id")),
            gate_target=as_str(meta.get("gate_target"), GATE_NOT_APPLICABLE),
            iteration_id=as_str(meta.get("iteration_id")),
            applied_to_freeze_label=applied,
            contract_freeze_ref=freeze_ref,
            catalog=gate_catalog,
        )

    return _generate
