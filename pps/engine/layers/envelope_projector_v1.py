from __future__ import annotations

from typing import Any, Dict, Mapping

from pps.engine.documents_v1 import (
    create_default_meta_v1,
    normalize_envelope_v1,
    normalize_pipeline_state_v1,
)
from pps.engine.utils import as_dict, clone_json, nonempty_str


def envelope_from_state_v1(
    base: Any,
    pipeline_state: Any,
    meta_overrides: Mapping[str, Any],
    focus: Mapping[str, Any] | None = None,
) -> Dict[str, Any]:
    """
    Build the next step's envelope: project/constraints come from `base`,
    context, appendices and logs from the merged pipeline state, meta from
    base meta plus overrides, focus replaced wholesale.
    """
    overrides = as_dict(meta_overrides)
    for required in ("prompt_id", "run_id"):
        if nonempty_str(overrides.get(required)) is None:
            raise ValueError(f"ENVELOPE_PROJECTOR_V1_INVALID: meta_overrides.{required} required")

    base_envelope = normalize_envelope_v1(base)
    state = normalize_pipeline_state_v1(pipeline_state)

    context = clone_json(state["context"])
    context_block = context.pop("context_block", "")
    if not isinstance(context_block, str):
        context_block = ""

    meta = create_default_meta_v1({**base_envelope["meta"], **overrides})

    return {
        "pps_version": base_envelope["pps_version"],
        "meta": meta,
        "constraints": base_envelope["constraints"],
        "project": base_envelope["project"],
        "context_block": context_block,
        "context": context,
        "appendices_index": state["appendices_index"],
        "state": state["state"],
        "focus": clone_json(as_dict(focus)),
    }
