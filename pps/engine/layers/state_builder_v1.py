from __future__ import annotations

from typing import Any, Dict

from pps.engine.documents_v1 import normalize_envelope_v1
from pps.engine.utils import clone_json


def project_state_from_normalized_envelope_v1(envelope: Dict[str, Any]) -> Dict[str, Any]:
    context = clone_json(envelope["context"])
    context["context_block"] = envelope["context_block"]
    return {
        "context": context,
        "appendices_index": clone_json(envelope["appendices_index"]),
        "state": clone_json(envelope["state"]),
        "applied_index": [],
    }


def initial_state_from_envelope_v1(envelope: Any) -> Dict[str, Any]:
    """
    Project the pipeline state embedded in an envelope. Used once at pipeline
    start and as the merge engine's starting snapshot; applied_index is empty
    because the envelope does not carry it.
    """
    return project_state_from_normalized_envelope_v1(normalize_envelope_v1(envelope))
