from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Sequence

from pps.engine.config_v1 import configured_gate_catalog_v1, load_config_v1
from pps.engine.constants import ENGINE_DATA_DIR, ENGINE_VERSION
from pps.engine.documents_v1 import create_default_meta_v1
from pps.engine.export_v1 import export_artifacts_v1
from pps.engine.generation_client_v1 import GenerationError
from pps.engine.io_v1 import load_envelope_v1, load_prompt_result_v1, load_state_v1, save_state_v1
from pps.engine.layers.envelope_projector_v1 import envelope_from_state_v1
from pps.engine.layers.merge_engine_v1 import merge_v1
from pps.engine.pipeline_runner_v1 import RunPipelineOptions, default_generator_v1, run_pipeline_v1
from pps.engine.stubs_v1 import stub_generator_v1, stub_result_v1
from pps.engine.utils import issue_messages


DEFAULT_ENVELOPE_TEMPLATE = ENGINE_DATA_DIR / "templates" / "pps_envelope_example_v1.yaml"

DEMO_STEPS = (
    ("APP/01_mvp-cutter", "RUN-DEMO-001"),
    ("APP/02_ux-flows", "RUN-DEMO-002"),
)


def _err(message: str) -> None:
    print(message, file=sys.stderr)


def _report_errors(header: str, errors: List[Dict[str, str]]) -> None:
    _err(header)
    for message in issue_messages(errors):
        _err(f"  - {message}")


def _report_warnings(warnings: List[Dict[str, str]]) -> None:
    for message in issue_messages(warnings):
        _err(f"WARN: {message}")


def _joined(values: List[str]) -> str:
    return ", ".join(values) if values else "(none)"


def _print_summary(summary: Dict[str, Any]) -> None:
    print("Iteration summary:")
    print(f"  active_freeze_label: {summary['active_freeze_label'] or '(none)'}")
    print(f"  gates_passed: {_joined(summary['gates_passed'])}")
    print(f"  gates_failed: {_joined(summary['gates_failed'])}")
    if summary["next_actions"]:
        print("  next_actions:")
        for action in summary["next_actions"]:
            print(f"    - {action}")


def _cmd_validate(args: argparse.Namespace) -> int:
    if args.kind == "envelope":
        envelope, validation = load_envelope_v1(args.path)
        if not validation["ok"]:
            _report_errors("Validation failed:", validation["errors"])
            return 1
        meta = envelope.get("meta") or {}
        print("OK")
        print(f"  pps_version: {envelope.get('pps_version')}")
        print(f"  meta.prompt_id: {meta.get('prompt_id')}")
        print(f"  meta.run_id: {meta.get('run_id')}")
        return 0

    result, validation = load_prompt_result_v1(args.path)
    if not validation["ok"]:
        _report_errors("Validation failed:", validation["errors"])
        return 1
    print("OK")
    print(f"  meta.prompt_id: {result['meta'].get('prompt_id')}")
    print(f"  meta.run_id: {result['meta'].get('run_id')}")
    print(f"  gate_result.status: {result['gate_result'].get('status')}")
    return 0


def _cmd_merge(args: argparse.Namespace) -> int:
    config = load_config_v1()
    envelope, envelope_validation = load_envelope_v1(args.envelope)
    if not envelope_validation["ok"]:
        _report_errors("Envelope validation failed:", envelope_validation["errors"])
        return 1

    result, result_validation = load_prompt_result_v1(args.result)
    if not result_validation["ok"]:
        _report_errors("Result validation failed:", result_validation["errors"])
        return 1

    applied_index = None
    if args.state_in:
        applied_index = load_state_v1(args.state_in).get("applied_index")

    outcome = merge_v1(
        envelope,
        result,
        applied_index,
        appendix_threshold_chars=config.appendix_threshold_chars,
        catalog=configured_gate_catalog_v1(config),
    )
    if not outcome["ok"]:
        _report_errors("Merge failed:", outcome["errors"])
        _report_warnings(outcome["warnings"])
        return 1

    _report_warnings(outcome["warnings"])
    if outcome["status"] == "DUPLICATE":
        print("Merge skipped (duplicate).")
        return 0

    if args.state_out:
        target = save_state_v1(args.state_out, outcome["state"])
        print(f"State written to {target}")
    _print_summary(outcome["iteration_summary"])
    print("Merge OK.")
    return 0


def _cmd_demo(args: argparse.Namespace) -> int:
    catalog = configured_gate_catalog_v1()
    base, validation = load_envelope_v1(args.template)
    if not validation["ok"]:
        _report_errors("Envelope validation failed:", validation["errors"])
        return 1

    print("PPS demo: stub APP/01 -> merge -> APP/02 -> merge")
    state: Dict[str, Any] | None = None
    summary: Dict[str, Any] | None = None
    for prompt_id, run_id in DEMO_STEPS:
        meta = create_default_meta_v1(
            {
                "prompt_id": prompt_id,
                "run_id": run_id,
                "gate_target": catalog.gate_target_for_prompt(prompt_id),
            }
        )
        if state is None:
            envelope = {**base, "meta": {**(base.get("meta") or {}), **meta}}
            applied_index: List[Dict[str, str]] = []
        else:
            envelope = envelope_from_state_v1(base, state, meta, {})
            applied_index = state["applied_index"]

        outcome = merge_v1(envelope, stub_result_v1(prompt_id, run_id, catalog=catalog), applied_index, catalog=catalog)
        if outcome["status"] != "OK":
            _report_errors(f"Merge failed ({prompt_id}):", outcome["errors"])
            return 1
        _report_warnings(outcome["warnings"])
        state = outcome["state"]
        summary = outcome["iteration_summary"]
        print(f"Merge OK ({prompt_id}). gates_passed: {_joined(summary['gates_passed'])}")
        if args.state_out:
            save_state_v1(args.state_out, state)

    if args.state_out:
        print(f"State saved to {args.state_out}")
    _print_summary(summary)
    print(f"  applied_index: {len(state['applied_index'])} entries")
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    config = load_config_v1()
    catalog = configured_gate_catalog_v1(config)
    options = RunPipelineOptions(
        project_name=args.project_name,
        project_brief=args.brief,
        domain=args.domain,
        team_size=args.team_size,
        timeline=args.timeline,
        budget=args.budget,
        run_id_prefix=args.run_id_prefix,
        prompts_dir=Path(args.prompts_dir) if args.prompts_dir else config.prompts_dir,
        appendix_threshold_chars=config.appendix_threshold_chars,
        catalog=catalog,
        show_progress=not args.no_progress,
    )
    try:
        generate = stub_generator_v1(catalog) if args.stub else default_generator_v1()
    except GenerationError as exc:
        _err(f"Generation setup failed: {exc}")
        return 1

    outcome = run_pipeline_v1(options, generate)
    if args.state_out:
        save_state_v1(args.state_out, outcome["state"])
        print(f"State written to {args.state_out}")
    if args.export_dir:
        written = export_artifacts_v1(args.export_dir, outcome["state"])
        for path in written.values():
            print(f"Exported {path}")

    if not outcome["success"]:
        _err("Pipeline failed:")
        for message in outcome["errors"]:
            _err(f"  - {message}")
        return 1

    print(f"Pipeline complete: {len(outcome['summaries'])} prompts merged.")
    if outcome["summaries"]:
        _print_summary(outcome["summaries"][-1])
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="pps", description="PPS envelope/result validation and OMS merge")
    ap.add_argument("--version", action="version", version=f"%(prog)s {ENGINE_VERSION}")
    ap.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Validate a PPS envelope or prompt result YAML")
    validate.add_argument("kind", choices=("envelope", "result"))
    validate.add_argument("path")
    validate.set_defaults(handler=_cmd_validate)

    merge = sub.add_parser("merge", help="Merge a prompt result into pipeline state")
    merge.add_argument("envelope")
    merge.add_argument("result")
    merge.add_argument("--state-in", default=None, help="State file whose applied_index is used for dedupe")
    merge.add_argument("--state-out", default=None, help="Write merged state to this file")
    merge.set_defaults(handler=_cmd_merge)

    demo = sub.add_parser("demo", help="Merge stub APP/01 and APP/02 results into the example envelope")
    demo.add_argument("--template", default=str(DEFAULT_ENVELOPE_TEMPLATE), help="Base envelope YAML")
    demo.add_argument("--state-out", default=None, help="Write state after each merge to this file")
    demo.set_defaults(handler=_cmd_demo)

    run = sub.add_parser("run", help="Run the full prompt sequence")
    run.add_argument("--project-name", required=True)
    run.add_argument("--brief", required=True, help="Project brief")
    run.add_argument("--domain", default="general")
    run.add_argument("--team-size", type=int, default=2)
    run.add_argument("--timeline", default="8 weeks")
    run.add_argument("--budget", default="startup")
    run.add_argument("--run-id-prefix", default=None)
    run.add_argument("--prompts-dir", default=None, help="Directory of <prompt_id>.txt templates")
    run.add_argument("--state-out", default=None)
    run.add_argument("--export-dir", default=None)
    run.add_argument("--stub", action="store_true", help="Use canned results instead of the generation service")
    run.add_argument("--no-progress", action="store_true", help="Hide the progress bar")
    run.set_defaults(handler=_cmd_run)
    return ap


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.handler(args))
    except FileNotFoundError as exc:
        _err(str(exc))
        return 1
    except RuntimeError as exc:
        _err(f"ERROR: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
