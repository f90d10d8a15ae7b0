from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from pps.engine.constants import DEFAULT_APPENDIX_THRESHOLD_CHARS, ENGINE_DATA_DIR
from pps.engine.gate_catalog_v1 import GateCatalog, default_gate_catalog_v1, load_gate_catalog_v1


_TRUTHY_VALUES = {"1", "true", "yes", "on"}

DEFAULT_LLM_MODEL = "claude-sonnet-4-20250514"
DEFAULT_LLM_MAX_TOKENS = 8000
DEFAULT_LLM_TEMPERATURE = 0.7
DEFAULT_LLM_BASE_URL = "https://api.anthropic.com"
DEFAULT_LLM_TIMEOUT_SECONDS = 120.0
DEFAULT_PROMPTS_DIR = Path("prompts")
DEFAULT_PROMPT_TEMPLATE_FILE = ENGINE_DATA_DIR / "prompts" / "default_prompt_v1.txt"


def _env_truthy(var_name: str) -> bool:
    raw = os.getenv(var_name)
    if not isinstance(raw, str):
        return False
    return raw.strip().lower() in _TRUTHY_VALUES


def _env_str(var_name: str) -> str | None:
    raw = os.getenv(var_name)
    if isinstance(raw, str) and raw.strip() != "":
        return raw.strip()
    return None


def _env_positive_int(var_name: str, default: int) -> int:
    raw = _env_str(var_name)
    if raw is None:
        return int(default)
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"PPS_CONFIG_V1_INVALID: {var_name} must be a positive integer") from exc
    if value <= 0:
        raise RuntimeError(f"PPS_CONFIG_V1_INVALID: {var_name} must be a positive integer")
    return value


def _env_float(var_name: str, default: float, *, minimum: float, maximum: float | None = None) -> float:
    raw = _env_str(var_name)
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"PPS_CONFIG_V1_INVALID: {var_name} must be a number") from exc
    if value < minimum or (maximum is not None and value > maximum):
        raise RuntimeError(f"PPS_CONFIG_V1_INVALID: {var_name} out of range")
    return value


@dataclass(frozen=True)
class PpsConfig:
    gate_catalog_path: Path | None
    prompts_dir: Path
    appendix_threshold_chars: int
    llm_model: str
    llm_max_tokens: int
    llm_temperature: float
    llm_base_url: str
    llm_timeout_seconds: float
    api_key: str | None
    dev_cors: bool


def load_config_v1() -> PpsConfig:
    """Read PPS_* settings from the environment. Bad values fail fast."""
    catalog_path = _env_str("PPS_GATE_CATALOG_PATH")
    prompts_dir = _env_str("PPS_PROMPTS_DIR")
    return PpsConfig(
        gate_catalog_path=Path(catalog_path).expanduser() if catalog_path is not None else None,
        prompts_dir=Path(prompts_dir).expanduser() if prompts_dir is not None else DEFAULT_PROMPTS_DIR,
        appendix_threshold_chars=_env_positive_int("PPS_APPENDIX_THRESHOLD_CHARS", DEFAULT_APPENDIX_THRESHOLD_CHARS),
        llm_model=_env_str("PPS_LLM_MODEL") or DEFAULT_LLM_MODEL,
        llm_max_tokens=_env_positive_int("PPS_LLM_MAX_TOKENS", DEFAULT_LLM_MAX_TOKENS),
        llm_temperature=_env_float("PPS_LLM_TEMPERATURE", DEFAULT_LLM_TEMPERATURE, minimum=0.0, maximum=1.0),
        llm_base_url=(_env_str("PPS_LLM_BASE_URL") or DEFAULT_LLM_BASE_URL).rstrip("/"),
        llm_timeout_seconds=_env_float("PPS_LLM_TIMEOUT_SECONDS", DEFAULT_LLM_TIMEOUT_SECONDS, minimum=1.0),
        api_key=_env_str("ANTHROPIC_API_KEY"),
        dev_cors=_env_truthy("PPS_DEV_CORS"),
    )


def configured_gate_catalog_v1(config: PpsConfig | None = None) -> GateCatalog:
    cfg = config if config is not None else load_config_v1()
    if cfg.gate_catalog_path is None:
        return default_gate_catalog_v1()
    return load_gate_catalog_v1(cfg.gate_catalog_path)
