from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from pps.engine.documents_v1 import normalize_pipeline_state_v1
from pps.engine.io_v1 import save_state_v1
from pps.engine.utils import as_dict, as_list


logger = logging.getLogger(__name__)


def _field(entry: Any, key: str) -> str:
    value = as_dict(entry).get(key)
    return "" if value is None else str(value)


def format_decision_log_v1(decisions: List[Any]) -> str:
    lines = [
        "# Decision Log",
        "",
        "This document tracks all key decisions made during the app spec creation process.",
        "",
    ]
    for entry in decisions:
        lines.extend(
            [
                f"## {_field(entry, 'date')}: {_field(entry, 'decision')}",
                "",
                f"**Rationale:** {_field(entry, 'rationale')}",
                "",
                f"**Impact:** {_field(entry, 'impact')}",
                "",
            ]
        )
        if _field(entry, "owner"):
            lines.extend([f"**Owner:** {_field(entry, 'owner')}", ""])
        lines.extend(["---", ""])
    return "\n".join(lines)


def format_changelog_v1(changelog: List[Any]) -> str:
    lines = [
        "# Changelog",
        "",
        "This document tracks all changes made to the spec during the pipeline run.",
        "",
    ]
    for entry in changelog:
        lines.extend(
            [
                f"## {_field(entry, 'date')}: {_field(entry, 'change')}",
                "",
                f"**Area:** {_field(entry, 'changed_area')}",
                "",
                f"**Reason:** {_field(entry, 'reason')}",
                "",
                f"**Compatibility:** {_field(entry, 'compatibility')}",
                "",
                f"**Impact:** {_field(entry, 'impact')}",
                "",
                "---",
                "",
            ]
        )
    return "\n".join(lines)


def format_open_questions_v1(questions: List[Any]) -> str:
    lines = [
        "# Open Questions",
        "",
        "These questions need to be resolved before implementation can proceed.",
        "",
    ]
    for entry in questions:
        lines.extend(
            [
                f"## {_field(entry, 'question')}",
                "",
                f"**ID:** {_field(entry, 'id')}",
                "",
                f"**Context:** {_field(entry, 'context')}",
                "",
                "**Options:**",
            ]
        )
        lines.extend(f"- {option}" for option in as_list(as_dict(entry).get("options")))
        lines.extend(
            [
                "",
                f"**Recommended:** {_field(entry, 'recommended')}",
                "",
                f"**Owner:** {_field(entry, 'owner')}",
                "",
                f"**Due by:** {_field(entry, 'due_by')}",
                "",
                "---",
                "",
            ]
        )
    return "\n".join(lines)


def export_artifacts_v1(output_dir: str | Path, state: Any) -> Dict[str, Path]:
    """
    Write the human-readable logs and the full state under output_dir.
    Markdown files are only written for non-empty logs.
    """
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    pipeline_state = normalize_pipeline_state_v1(state)
    logs = pipeline_state["state"]
    written: Dict[str, Path] = {}

    for kind in ("openapi", "migrations"):
        for entry in pipeline_state["appendices_index"]:
            if entry["kind"] == kind:
                logger.info("%s appendix %s: %s", kind, entry["id"], entry["location"] or "(no location)")
                break

    documents = (
        ("decisions", "decisions.md", logs["decision_log"], format_decision_log_v1),
        ("changelog", "CHANGELOG.md", logs["changelog"], format_changelog_v1),
        ("open_questions", "open-questions.md", logs["open_questions"], format_open_questions_v1),
    )
    for key, filename, entries, formatter in documents:
        if len(entries) == 0:
            continue
        target = out_dir / filename
        target.write_text(formatter(entries), encoding="utf-8")
        logger.info("Exported %s to %s", key, target)
        written[key] = target

    written["state"] = save_state_v1(out_dir / "state.json", pipeline_state)
    logger.info("Exported full state to %s", written["state"])
    return written
