from __future__ import annotations

from typing import Any, Dict, List, Mapping

from pps.engine.constants import TOKEN_HYGIENE_VERSION, TOKEN_HYGIENE_WARNING
from pps.engine.utils import add_issue, compact_json_dumps


def serialized_length_v1(value: Any) -> int:
    if isinstance(value, str):
        return len(value)
    return len(compact_json_dumps(value))


def run_token_hygiene_scan_v1(context_updates: Mapping[str, Any], threshold_chars: int) -> Dict[str, Any]:
    """Advisory only: flags top-level context updates that belong in an appendix."""
    findings: List[Dict[str, str]] = []
    for key, value in context_updates.items():
        if value is None:
            continue
        if serialized_length_v1(value) > threshold_chars:
            add_issue(
                findings,
                code=TOKEN_HYGIENE_WARNING,
                message=(
                    f"token_hygiene: context_updates.{key} exceeds {threshold_chars} chars; "
                    "consider moving to appendix"
                ),
                path=f"$.context_updates.{key}",
            )

    return {
        "version": TOKEN_HYGIENE_VERSION,
        "threshold_chars": int(threshold_chars),
        "findings": findings,
    }
