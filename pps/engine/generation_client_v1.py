"""
HTTP client for the generation service (Anthropic Messages API).

The merge core never sees this module. The pipeline runner calls it to turn an
envelope plus prompt template into a raw prompt result; every failure comes
back as GenerationError.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, TypeVar

import requests
import yaml

from pps.engine.config_v1 import (
    DEFAULT_LLM_BASE_URL,
    DEFAULT_LLM_MAX_TOKENS,
    DEFAULT_LLM_MODEL,
    DEFAULT_LLM_TEMPERATURE,
    DEFAULT_LLM_TIMEOUT_SECONDS,
    PpsConfig,
)
from pps.engine.io_v1 import unwrap_prompt_result_v1


logger = logging.getLogger(__name__)

T = TypeVar("T")

ANTHROPIC_API_VERSION = "2023-06-01"
ENVELOPE_PLACEHOLDER = "{envelope}"

_RETRYABLE_STATUS = {429, 500, 502, 503, 504, 529}
_FENCED_YAML_RE = re.compile(r"```ya?ml\n(.*?)\n```", re.DOTALL)
_FENCED_ANY_RE = re.compile(r"```\n(.*?)\n```", re.DOTALL)


class GenerationError(Exception):
    def __init__(self, message: str, *, retryable: bool = False, status_code: int | None = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


@dataclass(frozen=True)
class GenerationConfig:
    api_key: str
    model: str = DEFAULT_LLM_MODEL
    max_tokens: int = DEFAULT_LLM_MAX_TOKENS
    temperature: float = DEFAULT_LLM_TEMPERATURE
    base_url: str = DEFAULT_LLM_BASE_URL
    timeout_seconds: float = DEFAULT_LLM_TIMEOUT_SECONDS
    retries: int = 3
    backoff_seconds: float = 2.0

    @classmethod
    def from_pps_config(cls, config: PpsConfig) -> "GenerationConfig":
        if config.api_key is None:
            raise GenerationError("ANTHROPIC_API_KEY is not set")
        return cls(
            api_key=config.api_key,
            model=config.llm_model,
            max_tokens=config.llm_max_tokens,
            temperature=config.llm_temperature,
            base_url=config.llm_base_url,
            timeout_seconds=config.llm_timeout_seconds,
        )


def call_with_retries_v1(
    fn: Callable[[], T],
    *,
    retries: int,
    backoff_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run fn, retrying retryable GenerationErrors with exponential backoff."""
    attempts = max(1, int(retries))
    last_error: GenerationError | None = None
    for attempt in range(attempts):
        try:
            return fn()
        except GenerationError as exc:
            last_error = exc
            if not exc.retryable or attempt + 1 >= attempts:
                raise
            delay = backoff_seconds * (2**attempt)
            logger.warning("Generation attempt %d failed (%s); retrying in %.1fs", attempt + 1, exc, delay)
            sleep(delay)
    raise GenerationError("generation retries exhausted") from last_error


def extract_yaml_text_v1(raw_text: str) -> str:
    match = _FENCED_YAML_RE.search(raw_text) or _FENCED_ANY_RE.search(raw_text)
    return match.group(1) if match else raw_text


def build_prompt_v1(envelope: Dict[str, Any], prompt_template: str) -> str:
    envelope_yaml = yaml.safe_dump(envelope, sort_keys=False, width=float("inf"), allow_unicode=True)
    return prompt_template.replace(ENVELOPE_PLACEHOLDER, envelope_yaml)


def _post_messages(
    session: Any,
    config: GenerationConfig,
    payload: Dict[str, Any],
) -> Dict[str, Any]:
    headers = {
        "x-api-key": config.api_key,
        "anthropic-version": ANTHROPIC_API_VERSION,
        "content-type": "application/json",
    }
    try:
        response = session.post(
            f"{config.base_url}/v1/messages",
            headers=headers,
            json=payload,
            timeout=config.timeout_seconds,
        )
    except (requests.Timeout, requests.ConnectionError) as exc:
        raise GenerationError(f"generation request failed: {exc}", retryable=True) from exc
    except requests.RequestException as exc:
        raise GenerationError(f"generation request failed: {exc}") from exc

    if response.status_code != 200:
        raise GenerationError(
            f"generation service returned HTTP {response.status_code}",
            retryable=response.status_code in _RETRYABLE_STATUS,
            status_code=response.status_code,
        )
    try:
        body = response.json()
    except ValueError as exc:
        raise GenerationError("generation service returned a non-JSON body") from exc
    if not isinstance(body, dict):
        raise GenerationError("generation service returned an unexpected body")
    return body


def _first_text_block(body: Dict[str, Any]) -> str:
    content = body.get("content")
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str):
                return block["text"]
    raise GenerationError("No text content in generation response")


def call_generation_v1(
    envelope: Dict[str, Any],
    prompt_template: str,
    config: GenerationConfig,
    *,
    session: Any = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Returns the parsed prompt result (unwrapped from `prompt_result:` when the
    model wraps it). Shape is not checked here; the merge engine does that.
    """
    http = session if session is not None else requests
    payload = {
        "model": config.model,
        "max_tokens": int(config.max_tokens),
        "temperature": float(config.temperature),
        "messages": [{"role": "user", "content": build_prompt_v1(envelope, prompt_template)}],
    }
    prompt_id = ((envelope.get("meta") or {}).get("prompt_id")) if isinstance(envelope, dict) else None
    logger.info("Calling generation service for %s (model=%s)", prompt_id, config.model)

    body = call_with_retries_v1(
        lambda: _post_messages(http, config, payload),
        retries=config.retries,
        backoff_seconds=config.backoff_seconds,
        sleep=sleep,
    )
    yaml_text = extract_yaml_text_v1(_first_text_block(body))
    try:
        parsed = yaml.safe_load(yaml_text)
    except yaml.YAMLError as exc:
        raise GenerationError(f"generation response is not valid YAML: {exc}") from exc
    return unwrap_prompt_result_v1(parsed)


def validate_api_key_v1(config: GenerationConfig, *, session: Any = None) -> bool:
    check_config = replace(config, max_tokens=10, retries=1)
    http = session if session is not None else requests
    payload = {
        "model": check_config.model,
        "max_tokens": check_config.max_tokens,
        "messages": [{"role": "user", "content": "test"}],
    }
    try:
        _post_messages(http, check_config, payload)
    except GenerationError as exc:
        logger.debug("API key check failed: %s", exc)
        return False
    return True
