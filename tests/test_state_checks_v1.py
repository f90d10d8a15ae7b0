from __future__ import annotations

import unittest

from pps.engine.documents_v1 import normalize_pipeline_state_v1
from pps.engine.layers.consistency_checker_v1 import run_consistency_checks_v1
from pps.engine.layers.iteration_summary_v1 import build_iteration_summary_v1
from pps.engine.layers.token_hygiene_v1 import run_token_hygiene_scan_v1, serialized_length_v1
from tests.pps_fixture_harness import GATE_1, appendix, decision


def _state(freeze_ref=None, appendices=None, decisions=None):
    return normalize_pipeline_state_v1(
        {
            "appendices_index": appendices or [],
            "state": {
                "decision_log": decisions or [],
                "contract_freeze_ref": freeze_ref or {},
            },
        }
    )


class ConsistencyCheckerTests(unittest.TestCase):
    def test_clean_state_is_ok(self) -> None:
        payload = run_consistency_checks_v1(_state())
        self.assertEqual(payload, {"version": "consistency_checker_v1", "status": "OK", "findings": []})

    def test_label_without_appendix_id_is_not_checked(self) -> None:
        payload = run_consistency_checks_v1(_state({"label": "v0"}))
        self.assertEqual(payload["findings"], [])

    def test_appendix_id_without_label_is_not_checked(self) -> None:
        payload = run_consistency_checks_v1(_state({"openapi_appendix_id": "missing"}))
        self.assertEqual(payload["findings"], [])

    def test_dangling_reference_warns(self) -> None:
        payload = run_consistency_checks_v1(_state({"label": "v0", "openapi_appendix_id": "oa"}, [appendix("other")]))
        self.assertEqual(payload["status"], "WARN")
        self.assertEqual(payload["findings"][0]["code"], "CONSISTENCY_WARNING")
        self.assertEqual(payload["findings"][0]["path"], "$.state.contract_freeze_ref.openapi_appendix_id")

    def test_resolved_reference_is_ok(self) -> None:
        payload = run_consistency_checks_v1(_state({"label": "v0", "openapi_appendix_id": "oa"}, [appendix("oa")]))
        self.assertEqual(payload["status"], "OK")


class TokenHygieneTests(unittest.TestCase):
    def test_string_length_is_raw_length(self) -> None:
        self.assertEqual(serialized_length_v1("héllo"), 5)

    def test_structured_length_is_compact_json(self) -> None:
        self.assertEqual(serialized_length_v1({"a": [1, 2]}), len('{"a":[1,2]}'))

    def test_exact_threshold_is_not_flagged(self) -> None:
        payload = run_token_hygiene_scan_v1({"k": "x" * 10}, 10)
        self.assertEqual(payload["findings"], [])
        self.assertEqual(payload["threshold_chars"], 10)

    def test_none_values_are_skipped(self) -> None:
        self.assertEqual(run_token_hygiene_scan_v1({"k": None}, 1)["findings"], [])

    def test_findings_follow_update_order(self) -> None:
        payload = run_token_hygiene_scan_v1({"b": "x" * 3, "a": ["y" * 5]}, 2)
        self.assertEqual([f["path"] for f in payload["findings"]], ["$.context_updates.b", "$.context_updates.a"])


class IterationSummaryTests(unittest.TestCase):
    def test_pass_populates_only_passed(self) -> None:
        summary = build_iteration_summary_v1(
            _state({"label": "v0"}, decisions=[decision("d1")]),
            {"gate_id": GATE_1, "status": "pass", "next_actions": ["go on"]},
        )
        self.assertEqual(summary["gates_passed"], [GATE_1])
        self.assertEqual(summary["gates_failed"], [])
        self.assertEqual(summary["active_freeze_label"], "v0")
        self.assertEqual(summary["decisions_made"], [decision("d1")])
        self.assertEqual(summary["next_actions"], ["go on"])

    def test_fail_populates_only_failed(self) -> None:
        summary = build_iteration_summary_v1(_state(), {"gate_id": GATE_1, "status": "fail", "next_actions": []})
        self.assertEqual(summary["gates_passed"], [])
        self.assertEqual(summary["gates_failed"], [GATE_1])

    def test_na_or_blank_gate_populates_neither(self) -> None:
        for gate_result in ({"gate_id": "", "status": "na"}, {"gate_id": "", "status": "pass"}):
            with self.subTest(gate_result=gate_result):
                summary = build_iteration_summary_v1(_state(), gate_result)
                self.assertEqual(summary["gates_passed"], [])
                self.assertEqual(summary["gates_failed"], [])
                self.assertEqual(summary["next_actions"], [])

    def test_summary_lists_are_copies(self) -> None:
        state = _state(decisions=[decision("d1")])
        summary = build_iteration_summary_v1(state, {"gate_id": GATE_1, "status": "pass"})
        summary["decisions_made"].append(decision("d2"))
        self.assertEqual(len(state["state"]["decision_log"]), 1)


if __name__ == "__main__":
    unittest.main()
