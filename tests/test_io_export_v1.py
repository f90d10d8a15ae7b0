from __future__ import annotations

import datetime
import json
import tempfile
import unittest
from pathlib import Path

import yaml

from pps.engine.constants import ENGINE_DATA_DIR
from pps.engine.export_v1 import export_artifacts_v1
from pps.engine.io_v1 import (
    load_envelope_v1,
    load_prompt_result_v1,
    load_state_v1,
    save_state_v1,
    save_yaml_v1,
)
from pps.engine.layers.envelope_projector_v1 import envelope_from_state_v1
from pps.engine.layers.merge_engine_v1 import merge_v1
from tests.pps_fixture_harness import appendix, decision, make_result


class IoV1Tests(unittest.TestCase):
    def test_packaged_example_envelope_is_valid(self) -> None:
        envelope, validation = load_envelope_v1(ENGINE_DATA_DIR / "templates" / "pps_envelope_example_v1.yaml")
        self.assertTrue(validation["ok"], validation["errors"])
        self.assertEqual(envelope["pps_version"], "1.2")
        self.assertEqual(envelope["meta"]["gate_target"], "GATE_1_MVP_BOUNDED")

    def test_prompt_result_wrapper_is_unwrapped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            wrapped = Path(tmp_dir) / "wrapped.yaml"
            bare = Path(tmp_dir) / "bare.yaml"
            save_yaml_v1(wrapped, {"prompt_result": make_result()})
            save_yaml_v1(bare, make_result())

            wrapped_result, wrapped_validation = load_prompt_result_v1(wrapped)
            bare_result, _ = load_prompt_result_v1(bare)

        self.assertTrue(wrapped_validation["ok"])
        self.assertEqual(wrapped_result, bare_result)
        self.assertEqual(wrapped_result["meta"]["prompt_id"], "APP/01_mvp-cutter")

    def test_yaml_keeps_key_order(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            target = save_yaml_v1(Path(tmp_dir) / "out.yaml", {"zeta": 1, "alpha": 2})
            text = target.read_text(encoding="utf-8")
        self.assertLess(text.index("zeta"), text.index("alpha"))

    def test_state_round_trip_handles_yaml_dates(self) -> None:
        state = {"state": {"decision_log": [yaml.safe_load("date: 2026-01-15")]}, "applied_index": []}
        with tempfile.TemporaryDirectory() as tmp_dir:
            target = save_state_v1(Path(tmp_dir) / "nested" / "state.json", state)
            loaded = load_state_v1(target)
        self.assertEqual(loaded["state"]["decision_log"], [{"date": "2026-01-15"}])

    def test_missing_files_raise(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            missing = Path(tmp_dir) / "missing.yaml"
            with self.assertRaises(FileNotFoundError):
                load_envelope_v1(missing)
            with self.assertRaises(FileNotFoundError):
                load_state_v1(missing)

    def test_corrupt_state_fails_fast(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            target = Path(tmp_dir) / "state.json"
            target.write_text("[1, 2", encoding="utf-8")
            with self.assertRaises(RuntimeError) as ctx:
                load_state_v1(target)
            self.assertIn("PIPELINE_STATE_V1_INVALID_JSON", str(ctx.exception))

            target.write_text("[1, 2]", encoding="utf-8")
            with self.assertRaises(RuntimeError) as ctx:
                load_state_v1(target)
            self.assertIn("PIPELINE_STATE_V1_INVALID", str(ctx.exception))


_DATED_ENVELOPE_YAML = """pps_version: "1.2"
meta:
  prompt_id: APP/02_ux-flows
  prompt_version: "1.2"
  run_id: RUN-YAML-002
  output_format: prompt_result_v1.2
  gate_target: GATE_2_TRACEABILITY_FLOW_SCREEN_STATE
  token_hygiene:
    context_block_policy: summary_only
    appendix_threshold_chars: 4000
constraints:
  team_size: 3
  timeline: 8 weeks
  region: eu
project:
  name: Booking
  users:
    - shop owners
    - customers
context_block: mvp bounded
appendices_index:
  - id: openapi-v0
    kind: openapi
    summary: contract
    location: appendix/openapi.yaml
    produced_by: APP/04_data-api-contract
    updated_on: 2026-01-15
state:
  contract_freeze_ref:
    label: v0
    openapi_appendix_id: openapi-v0
    updated_on: 2026-01-15
"""

_UX_RESULT_YAML = """prompt_result:
  meta:
    prompt_id: APP/02_ux-flows
    run_id: RUN-YAML-002
  context_updates:
    flows: [booking, cancel]
  appendices_updates: {added: [], updated: []}
  state_updates:
    decision_log_added: []
  gate_result:
    gate_id: GATE_2_TRACEABILITY_FLOW_SCREEN_STATE
    status: pass
"""


class YamlDatesMergeTests(unittest.TestCase):
    def _load(self, tmp: Path):
        (tmp / "envelope.yaml").write_text(_DATED_ENVELOPE_YAML, encoding="utf-8")
        (tmp / "result.yaml").write_text(_UX_RESULT_YAML, encoding="utf-8")
        envelope, envelope_validation = load_envelope_v1(tmp / "envelope.yaml")
        result, result_validation = load_prompt_result_v1(tmp / "result.yaml")
        self.assertTrue(envelope_validation["ok"], envelope_validation["errors"])
        self.assertTrue(result_validation["ok"], result_validation["errors"])
        return envelope, result

    def test_untouched_dated_fields_survive_a_merge(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            envelope, result = self._load(Path(tmp_dir))
            out = merge_v1(envelope, result, [])
            saved = load_state_v1(save_state_v1(Path(tmp_dir) / "state.json", out["state"]))

        self.assertEqual(out["status"], "OK", out["errors"])
        self.assertEqual(out["state"]["state"]["contract_freeze_ref"], envelope["state"]["contract_freeze_ref"])
        self.assertEqual(out["state"]["state"]["contract_freeze_ref"]["updated_on"], datetime.date(2026, 1, 15))
        self.assertEqual(out["state"]["appendices_index"], envelope["appendices_index"])
        self.assertEqual(saved["state"]["contract_freeze_ref"]["updated_on"], "2026-01-15")
        self.assertEqual(saved["appendices_index"][0]["updated_on"], "2026-01-15")

    def test_projection_carries_non_string_base_fields(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            envelope, result = self._load(Path(tmp_dir))
        out = merge_v1(envelope, result, [])

        nxt = envelope_from_state_v1(
            envelope,
            out["state"],
            {"prompt_id": "APP/03_architecture", "run_id": "RUN-YAML-003"},
        )

        self.assertEqual(nxt["constraints"]["team_size"], 3)
        self.assertEqual(nxt["constraints"]["region"], "eu")
        self.assertEqual(nxt["constraints"]["budget"], "")
        self.assertEqual(nxt["project"]["users"], ["shop owners", "customers"])
        self.assertEqual(nxt["state"]["contract_freeze_ref"]["updated_on"], datetime.date(2026, 1, 15))


class ExportV1Tests(unittest.TestCase):
    def test_exports_non_empty_logs_and_state(self) -> None:
        state = {
            "context": {"context_block": ""},
            "appendices_index": [appendix("openapi-v0", kind="openapi", location="appendix/openapi.yaml")],
            "state": {
                "decision_log": [decision("use postgres")],
                "open_questions": [],
                "changelog": [
                    {
                        "date": "2026-01-16",
                        "changed_area": "api",
                        "change": "rename /slots",
                        "reason": "clarity",
                        "compatibility": "breaking",
                        "impact": "frontend",
                    }
                ],
                "change_requests": [],
                "contract_freeze_ref": {"label": "v0", "openapi_appendix_id": "openapi-v0", "updated_on": ""},
            },
            "applied_index": [{"prompt_id": "APP/04_data-api-contract", "run_id": "RUN-4"}],
        }
        with tempfile.TemporaryDirectory() as tmp_dir:
            out_dir = Path(tmp_dir) / "export"
            with self.assertLogs("pps.engine.export_v1", level="INFO") as logs:
                written = export_artifacts_v1(out_dir, state)

            self.assertEqual(sorted(written), ["changelog", "decisions", "state"])
            self.assertFalse((out_dir / "open-questions.md").exists())
            decisions_md = (out_dir / "decisions.md").read_text(encoding="utf-8")
            changelog_md = (out_dir / "CHANGELOG.md").read_text(encoding="utf-8")
            exported_state = json.loads((out_dir / "state.json").read_text(encoding="utf-8"))

        self.assertIn("## 2026-01-15: use postgres", decisions_md)
        self.assertIn("**Rationale:** because use postgres", decisions_md)
        self.assertIn("**Compatibility:** breaking", changelog_md)
        self.assertEqual(exported_state["applied_index"], state["applied_index"])
        self.assertTrue(any("appendix/openapi.yaml" in line for line in logs.output))

    def test_open_questions_markdown(self) -> None:
        state = {
            "state": {
                "open_questions": [
                    {
                        "id": "Q1",
                        "question": "Which payment provider?",
                        "context": "EU customers",
                        "options": ["Stripe", "Adyen"],
                        "recommended": "Stripe",
                        "owner": "pm",
                        "due_by": "2026-02-01",
                    }
                ]
            }
        }
        with tempfile.TemporaryDirectory() as tmp_dir:
            written = export_artifacts_v1(tmp_dir, state)
            text = written["open_questions"].read_text(encoding="utf-8")

        self.assertIn("## Which payment provider?", text)
        self.assertIn("- Stripe\n- Adyen", text)
        self.assertIn("**Due by:** 2026-02-01", text)


if __name__ == "__main__":
    unittest.main()
