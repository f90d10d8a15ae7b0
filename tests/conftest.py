from __future__ import annotations

import pytest

_PPS_ENV_VARS = (
    "PPS_GATE_CATALOG_PATH",
    "PPS_PROMPTS_DIR",
    "PPS_APPENDIX_THRESHOLD_CHARS",
    "PPS_LLM_MODEL",
    "PPS_LLM_MAX_TOKENS",
    "PPS_LLM_TEMPERATURE",
    "PPS_LLM_BASE_URL",
    "PPS_LLM_TIMEOUT_SECONDS",
    "PPS_DEV_CORS",
    "ANTHROPIC_API_KEY",
)


@pytest.fixture(autouse=True)
def _hermetic_pps_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Developer shells may export real keys or overrides; tests run on defaults.
    for var_name in _PPS_ENV_VARS:
        monkeypatch.delenv(var_name, raising=False)
