from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

from pps.engine.constants import ENGINE_DATA_DIR, GATE_NOT_APPLICABLE


_GATE_CATALOG_FILE = ENGINE_DATA_DIR / "gates" / "gate_catalog_v1.json"

_EXPECTED_ROOT_KEYS = {
    "version",
    "gate_ids",
    "gate_ownership",
    "contract_freeze_authority",
    "fe_be_prompts",
    "prompt_sequence",
}


@dataclass(frozen=True)
class PromptStep:
    prompt_id: str
    gate_target: str


@dataclass(frozen=True)
class GateCatalog:
    """
    Immutable gate configuration handed to the validator and merge engine.

    Each gate is owned by exactly one prompt. Only `contract_freeze_authority`
    may write the contract freeze reference; `fe_be_prompts` are pinned to it.
    """

    version: str
    gate_ids: Tuple[str, ...]
    gate_ownership: Mapping[str, str]
    contract_freeze_authority: str
    fe_be_prompts: Tuple[str, ...]
    prompt_sequence: Tuple[PromptStep, ...]

    def is_known_gate(self, gate_id: str) -> bool:
        return gate_id in self.gate_ids

    def gate_owner(self, gate_id: str) -> str | None:
        return self.gate_ownership.get(gate_id)

    def is_contract_freeze_authority(self, prompt_id: str) -> bool:
        return prompt_id == self.contract_freeze_authority

    def is_fe_or_be(self, prompt_id: str) -> bool:
        return prompt_id in self.fe_be_prompts

    def gate_target_for_prompt(self, prompt_id: str) -> str:
        for step in self.prompt_sequence:
            if step.prompt_id == prompt_id:
                return step.gate_target
        return GATE_NOT_APPLICABLE

    def prompt_ids(self) -> Tuple[str, ...]:
        return tuple(step.prompt_id for step in self.prompt_sequence)


def _runtime_error(code: str, detail: str) -> RuntimeError:
    return RuntimeError(f"{code}: {detail}")


def _nonempty_str(value: Any) -> str | None:
    if isinstance(value, str):
        token = value.strip()
        if token != "":
            return token
    return None


def _require_str_list(value: Any, *, field_path: str) -> Tuple[str, ...]:
    if not isinstance(value, list):
        raise _runtime_error("GATE_CATALOG_V1_INVALID", f"{field_path} must be a list")
    out = []
    for idx, item in enumerate(value):
        token = _nonempty_str(item)
        if token is None:
            raise _runtime_error("GATE_CATALOG_V1_INVALID", f"{field_path}[{idx}] must be a non-empty string")
        out.append(token)
    if len(set(out)) != len(out):
        raise _runtime_error("GATE_CATALOG_V1_INVALID", f"{field_path} must not contain duplicates")
    return tuple(out)


def parse_gate_catalog_v1(parsed: Any) -> GateCatalog:
    if not isinstance(parsed, dict):
        raise _runtime_error("GATE_CATALOG_V1_INVALID", "root must be an object")

    if set(parsed.keys()) != _EXPECTED_ROOT_KEYS:
        raise _runtime_error(
            "GATE_CATALOG_V1_INVALID",
            f"root keys must be exactly {sorted(_EXPECTED_ROOT_KEYS)}",
        )

    version = _nonempty_str(parsed.get("version"))
    if version is None:
        raise _runtime_error("GATE_CATALOG_V1_INVALID", "version must be a non-empty string")

    gate_ids = _require_str_list(parsed.get("gate_ids"), field_path="gate_ids")
    if GATE_NOT_APPLICABLE in gate_ids:
        raise _runtime_error("GATE_CATALOG_V1_INVALID", f"gate_ids must not contain {GATE_NOT_APPLICABLE!r}")

    ownership_raw = parsed.get("gate_ownership")
    if not isinstance(ownership_raw, dict):
        raise _runtime_error("GATE_CATALOG_V1_INVALID", "gate_ownership must be an object")
    if set(ownership_raw.keys()) != set(gate_ids):
        raise _runtime_error("GATE_CATALOG_V1_INVALID", "gate_ownership keys must be exactly gate_ids")

    gate_ownership: Dict[str, str] = {}
    for gate_id in gate_ids:
        owner = _nonempty_str(ownership_raw.get(gate_id))
        if owner is None:
            raise _runtime_error("GATE_CATALOG_V1_INVALID", f"gate_ownership.{gate_id} must be a non-empty string")
        gate_ownership[gate_id] = owner

    authority = _nonempty_str(parsed.get("contract_freeze_authority"))
    if authority is None:
        raise _runtime_error("GATE_CATALOG_V1_INVALID", "contract_freeze_authority must be a non-empty string")

    fe_be_prompts = _require_str_list(parsed.get("fe_be_prompts"), field_path="fe_be_prompts")

    sequence_raw = parsed.get("prompt_sequence")
    if not isinstance(sequence_raw, list):
        raise _runtime_error("GATE_CATALOG_V1_INVALID", "prompt_sequence must be a list")

    steps = []
    seen_prompts = set()
    for idx, row in enumerate(sequence_raw):
        if not isinstance(row, dict):
            raise _runtime_error("GATE_CATALOG_V1_INVALID", f"prompt_sequence[{idx}] must be an object")
        prompt_id = _nonempty_str(row.get("prompt_id"))
        gate_target = _nonempty_str(row.get("gate_target"))
        if prompt_id is None or gate_target is None:
            raise _runtime_error(
                "GATE_CATALOG_V1_INVALID",
                f"prompt_sequence[{idx}] requires non-empty prompt_id and gate_target",
            )
        if gate_target != GATE_NOT_APPLICABLE and gate_target not in gate_ids:
            raise _runtime_error(
                "GATE_CATALOG_V1_INVALID",
                f"prompt_sequence[{idx}].gate_target is not a known gate: {gate_target}",
            )
        if prompt_id in seen_prompts:
            raise _runtime_error("GATE_CATALOG_V1_INVALID", f"prompt_sequence repeats prompt_id {prompt_id}")
        seen_prompts.add(prompt_id)
        steps.append(PromptStep(prompt_id=prompt_id, gate_target=gate_target))

    return GateCatalog(
        version=version,
        gate_ids=gate_ids,
        gate_ownership=MappingProxyType(gate_ownership),
        contract_freeze_authority=authority,
        fe_be_prompts=fe_be_prompts,
        prompt_sequence=tuple(steps),
    )


def load_gate_catalog_v1(path: str | Path | None = None) -> GateCatalog:
    catalog_file = Path(path) if path is not None else _GATE_CATALOG_FILE
    if not catalog_file.is_file():
        raise _runtime_error("GATE_CATALOG_V1_MISSING", str(catalog_file))

    try:
        parsed = json.loads(catalog_file.read_text(encoding="utf-8"))
    except Exception as exc:
        raise _runtime_error(
            "GATE_CATALOG_V1_INVALID_JSON",
            str(catalog_file),
        ) from exc

    return parse_gate_catalog_v1(parsed)


_DEFAULT_CATALOG: GateCatalog | None = None


def default_gate_catalog_v1() -> GateCatalog:
    global _DEFAULT_CATALOG
    if _DEFAULT_CATALOG is None:
        _DEFAULT_CATALOG = load_gate_catalog_v1()
    return _DEFAULT_CATALOG