from __future__ import annotations

import copy
import unittest

from pps.engine.layers.merge_policy_v1 import (
    MERGE_POLICY_V1,
    POLICY_APPEND_ONLY,
    POLICY_AUTHORITY_REPLACE,
    POLICY_KEYED_UPSERT,
    POLICY_RECURSE,
    append_only_v1,
    apply_policy_v1,
    merge_context_v1,
    policy_for_path,
    upsert_appendices_v1,
)


class MergePolicyTableTests(unittest.TestCase):
    def test_every_state_log_is_append_only(self) -> None:
        for key in ("decision_log", "open_questions", "changelog", "change_requests"):
            self.assertEqual(MERGE_POLICY_V1[f"state.{key}"], POLICY_APPEND_ONLY)
        self.assertEqual(MERGE_POLICY_V1["applied_index"], POLICY_APPEND_ONLY)

    def test_structural_fields(self) -> None:
        self.assertEqual(policy_for_path("context"), POLICY_RECURSE)
        self.assertEqual(policy_for_path("appendices_index"), POLICY_KEYED_UPSERT)
        self.assertEqual(policy_for_path("state.contract_freeze_ref"), POLICY_AUTHORITY_REPLACE)

    def test_table_holds_only_dispatched_paths(self) -> None:
        self.assertEqual(
            sorted(MERGE_POLICY_V1),
            [
                "applied_index",
                "appendices_index",
                "context",
                "state.change_requests",
                "state.changelog",
                "state.contract_freeze_ref",
                "state.decision_log",
                "state.open_questions",
            ],
        )

    def test_unknown_path_fails_loudly(self) -> None:
        with self.assertRaises(KeyError) as ctx:
            policy_for_path("context.mvp")
        self.assertIn("MERGE_POLICY_V1_UNKNOWN_PATH", str(ctx.exception))


class ApplyPolicyTests(unittest.TestCase):
    def test_dispatches_by_registered_policy(self) -> None:
        self.assertEqual(apply_policy_v1("context", {"a": 1}, {"b": 2}), {"a": 1, "b": 2})
        self.assertEqual(apply_policy_v1("state.decision_log", ["d1"], ["d2"]), ["d1", "d2"])
        self.assertEqual(
            apply_policy_v1("appendices_index", [{"id": "A1"}], {"added": [{"id": "A2"}], "updated": []}),
            [{"id": "A1"}, {"id": "A2"}],
        )

    def test_authority_replace_keeps_current_without_update(self) -> None:
        current = {"label": "v0", "openapi_appendix_id": "", "updated_on": ""}
        self.assertEqual(apply_policy_v1("state.contract_freeze_ref", current, None), current)
        self.assertEqual(
            apply_policy_v1("state.contract_freeze_ref", current, {"label": "v1"}),
            {"label": "v1"},
        )

    def test_unregistered_path_is_rejected(self) -> None:
        with self.assertRaises(KeyError):
            apply_policy_v1("project", {}, {})


class AppendOnlyTests(unittest.TestCase):
    def test_concatenates_in_order(self) -> None:
        self.assertEqual(append_only_v1([1, 2], [3, 1]), [1, 2, 3, 1])

    def test_missing_sides(self) -> None:
        self.assertEqual(append_only_v1(None, None), [])
        self.assertEqual(append_only_v1(None, ["a"]), ["a"])
        self.assertEqual(append_only_v1(["a"], None), ["a"])

    def test_scalars_become_single_entries(self) -> None:
        self.assertEqual(append_only_v1("old", "new"), ["old", "new"])
        self.assertEqual(append_only_v1([], {"id": "Q1"}), [{"id": "Q1"}])

    def test_additions_are_copied(self) -> None:
        additions = [{"id": "Q1"}]
        merged = append_only_v1([], additions)
        merged[0]["id"] = "changed"
        self.assertEqual(additions, [{"id": "Q1"}])


class MergeContextTests(unittest.TestCase):
    def test_returns_new_mapping_without_touching_inputs(self) -> None:
        context = {"a": {"b": 1}, "keep": True}
        updates = {"a": {"c": 2}}
        before = copy.deepcopy((context, updates))

        merged = merge_context_v1(context, updates)

        self.assertEqual(merged, {"a": {"b": 1, "c": 2}, "keep": True})
        self.assertEqual((context, updates), before)

    def test_lists_and_scalars_overwrite(self) -> None:
        merged = merge_context_v1({"tags": ["a", "b"], "n": 1, "m": {"x": 1}}, {"tags": ["c"], "n": None, "m": 5})
        self.assertEqual(merged, {"tags": ["c"], "n": None, "m": 5})

    def test_dict_over_scalar_replaces(self) -> None:
        self.assertEqual(merge_context_v1({"a": 1}, {"a": {"b": 2}}), {"a": {"b": 2}})

    def test_log_named_keys_absent_from_context_are_replaced(self) -> None:
        merged = merge_context_v1(
            {"context_block": ""},
            {"changelog": "see CHANGELOG.md", "ux": {"decision_log": {"k": 1}}},
        )
        self.assertEqual(
            merged,
            {"context_block": "", "changelog": "see CHANGELOG.md", "ux": {"decision_log": {"k": 1}}},
        )

    def test_existing_log_lists_are_extended_at_any_depth(self) -> None:
        merged = merge_context_v1(
            {"open_questions": ["q1"], "ux": {"decision_log": ["d1"]}, "change_requests": ["c1"]},
            {"open_questions": "q2", "ux": {"decision_log": ["d2"]}, "change_requests": ["c2"]},
        )
        self.assertEqual(merged["open_questions"], ["q1", "q2"])
        self.assertEqual(merged["ux"]["decision_log"], ["d1", "d2"])
        self.assertEqual(merged["change_requests"], ["c2"])

    def test_log_named_key_over_non_list_is_replaced(self) -> None:
        self.assertEqual(merge_context_v1({"changelog": "old"}, {"changelog": ["new"]}), {"changelog": ["new"]})


class UpsertAppendicesTests(unittest.TestCase):
    def test_unknown_update_and_known_add_are_skipped(self) -> None:
        index = [{"id": "A1", "summary": "one"}]
        merged = upsert_appendices_v1(
            index,
            added=[{"id": "A1", "summary": "dup"}, {"id": "A2", "summary": "two"}],
            updated=[{"id": "Z9", "summary": "ghost"}],
        )
        self.assertEqual(merged, [{"id": "A1", "summary": "one"}, {"id": "A2", "summary": "two"}])


if __name__ == "__main__":
    unittest.main()
