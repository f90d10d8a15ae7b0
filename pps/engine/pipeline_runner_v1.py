"""
Drives the full APP/01..APP/08 sequence: project the envelope, generate a
result, merge, repeat. Stops at the first step that fails to generate or merge
and returns the state as of the last successful merge.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List

from tqdm import tqdm

from pps.engine.config_v1 import DEFAULT_PROMPT_TEMPLATE_FILE, DEFAULT_PROMPTS_DIR, load_config_v1
from pps.engine.constants import DEFAULT_APPENDIX_THRESHOLD_CHARS, PPS_VERSION
from pps.engine.documents_v1 import create_default_meta_v1, normalize_state_block_v1
from pps.engine.gate_catalog_v1 import GateCatalog, default_gate_catalog_v1
from pps.engine.generation_client_v1 import GenerationConfig, GenerationError, call_generation_v1
from pps.engine.layers.envelope_projector_v1 import envelope_from_state_v1
from pps.engine.layers.merge_engine_v1 import merge_v1
from pps.engine.layers.state_builder_v1 import initial_state_from_envelope_v1
from pps.engine.utils import issue_messages


logger = logging.getLogger(__name__)

Generator = Callable[[Dict[str, Any], str], Any]
ProgressCallback = Callable[[int, str, str], None]


@dataclass
class RunPipelineOptions:
    project_name: str
    project_brief: str
    domain: str = "general"
    team_size: int = 2
    timeline: str = "8 weeks"
    budget: str = "startup"
    run_id_prefix: str | None = None
    prompts_dir: Path = DEFAULT_PROMPTS_DIR
    appendix_threshold_chars: int = DEFAULT_APPENDIX_THRESHOLD_CHARS
    catalog: GateCatalog | None = None
    on_progress: ProgressCallback | None = None
    show_progress: bool = True
    extra_context: Dict[str, Any] = field(default_factory=dict)


def create_initial_envelope_v1(options: RunPipelineOptions, run_id: str, catalog: GateCatalog) -> Dict[str, Any]:
    first_prompt = catalog.prompt_sequence[0].prompt_id if catalog.prompt_sequence else "APP/01_mvp-cutter"
    return {
        "pps_version": PPS_VERSION,
        "meta": create_default_meta_v1(
            {
                "prompt_id": first_prompt,
                "run_id": run_id,
                "gate_target": catalog.gate_target_for_prompt(first_prompt),
                "depth_mode": "MVP",
            }
        ),
        "project": {
            "name": options.project_name,
            "brief": options.project_brief,
            "domain": options.domain,
            "users": "general users",
        },
        "constraints": {
            "team_size": str(options.team_size),
            "timeline": options.timeline,
            "budget": options.budget,
            "compliance_privacy": "standard",
            "hosting_limits": "none",
        },
        "context_block": "",
        "context": dict(options.extra_context),
        "appendices_index": [],
        "state": normalize_state_block_v1(None),
        "focus": {},
    }


def load_prompt_template_v1(prompt_id: str, prompts_dir: Path | str = DEFAULT_PROMPTS_DIR) -> str:
    candidate = Path(prompts_dir) / f"{prompt_id}.txt"
    if candidate.is_file():
        return candidate.read_text(encoding="utf-8")
    logger.debug("No prompt template at %s; using packaged default", candidate)
    return DEFAULT_PROMPT_TEMPLATE_FILE.read_text(encoding="utf-8")


def default_generator_v1(config: GenerationConfig | None = None) -> Generator:
    generation_config = config if config is not None else GenerationConfig.from_pps_config(load_config_v1())

    def _generate(envelope: Dict[str, Any], prompt_template: str) -> Any:
        return call_generation_v1(envelope, prompt_template, generation_config)

    return _generate


def run_pipeline_v1(options: RunPipelineOptions, generate: Generator | None = None) -> Dict[str, Any]:
    catalog = options.catalog if options.catalog is not None else default_gate_catalog_v1()
    generator = generate if generate is not None else default_generator_v1()
    run_id_prefix = options.run_id_prefix or f"RUN-{int(time.time())}"

    def _progress(step: int, prompt_id: str, status: str) -> None:
        if options.on_progress is not None:
            options.on_progress(step, prompt_id, status)

    base = create_initial_envelope_v1(options, run_id_prefix, catalog)
    state = initial_state_from_envelope_v1(base)
    errors: List[str] = []
    summaries: List[Dict[str, Any]] = []

    steps = catalog.prompt_sequence
    with tqdm(total=len(steps), desc="pps pipeline", unit="prompt", disable=not options.show_progress) as bar:
        for idx, step in enumerate(steps, start=1):
            prompt_id = step.prompt_id
            bar.set_postfix_str(prompt_id)
            try:
                _progress(idx, prompt_id, "loading template")
                template = load_prompt_template_v1(prompt_id, options.prompts_dir)

                _progress(idx, prompt_id, "building envelope")
                focus: Dict[str, Any] = {}
                if catalog.is_fe_or_be(prompt_id):
                    focus["contract_freeze_label"] = state["state"]["contract_freeze_ref"]["label"]
                envelope = envelope_from_state_v1(
                    base,
                    state,
                    {
                        "prompt_id": prompt_id,
                        "run_id": f"{run_id_prefix}-{idx}",
                        "gate_target": step.gate_target,
                    },
                    focus,
                )

                _progress(idx, prompt_id, "generating")
                result = generator(envelope, template)
            except (GenerationError, OSError, RuntimeError, ValueError) as exc:
                logger.error("Step %d (%s) failed: %s", idx, prompt_id, exc)
                errors.append(f"{prompt_id}: {exc}")
                _progress(idx, prompt_id, "failed")
                return {"success": False, "state": state, "errors": errors, "summaries": summaries}

            _progress(idx, prompt_id, "merging result")
            outcome = merge_v1(
                envelope,
                result,
                state["applied_index"],
                appendix_threshold_chars=options.appendix_threshold_chars,
                catalog=catalog,
            )
            for message in issue_messages(outcome["warnings"]):
                logger.warning("%s: %s", prompt_id, message)

            if not outcome["ok"]:
                errors.append(f"{prompt_id}: {', '.join(issue_messages(outcome['errors']))}")
                _progress(idx, prompt_id, "failed")
                return {"success": False, "state": state, "errors": errors, "summaries": summaries}

            if outcome["status"] == "OK":
                state = outcome["state"]
                summaries.append(outcome["iteration_summary"])
            _progress(idx, prompt_id, "complete")
            bar.update(1)

    return {"success": True, "state": state, "errors": errors, "summaries": summaries}
