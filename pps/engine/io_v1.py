from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from pps.engine.validate_documents_v1 import validate_pps_envelope_v1, validate_prompt_result_v1


def _require_file(path: str | Path) -> Path:
    target = Path(path)
    if not target.is_file():
        raise FileNotFoundError(f"File not found: {target}")
    return target


def load_yaml_v1(path: str | Path) -> Any:
    target = _require_file(path)
    with target.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def dump_yaml_v1(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, width=120, allow_unicode=True)


def save_yaml_v1(path: str | Path, data: Any) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dump_yaml_v1(data), encoding="utf-8")
    return target


def unwrap_prompt_result_v1(data: Any) -> Any:
    if isinstance(data, dict) and isinstance(data.get("prompt_result"), dict):
        return data["prompt_result"]
    return data


def load_envelope_v1(path: str | Path) -> Tuple[Any, Dict[str, Any]]:
    envelope = load_yaml_v1(path)
    return envelope, validate_pps_envelope_v1(envelope)


def load_prompt_result_v1(path: str | Path) -> Tuple[Any, Dict[str, Any]]:
    result = unwrap_prompt_result_v1(load_yaml_v1(path))
    return result, validate_prompt_result_v1(result)


def load_state_v1(path: str | Path) -> Dict[str, Any]:
    target = _require_file(path)
    try:
        parsed = json.loads(target.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"PIPELINE_STATE_V1_INVALID_JSON: {target}") from exc
    if not isinstance(parsed, dict):
        raise RuntimeError(f"PIPELINE_STATE_V1_INVALID: {target} root must be an object")
    return parsed


def save_state_v1(path: str | Path, state: Dict[str, Any]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    # YAML dates come through as datetime.date; str() keeps them ISO formatted
    target.write_text(json.dumps(state, indent=2, ensure_ascii=False, default=str) + "\n", encoding="utf-8")
    return target
