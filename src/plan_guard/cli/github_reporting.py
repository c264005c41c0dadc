"""Helpers for publishing plan validation verdicts to GitHub Actions surfaces."""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import Iterable, Mapping, Sequence

ANNOTATION_LEVELS = {
    "critical": "error",
    "high": "error",
    "medium": "warning",
    "low": "notice",
    "info": "notice",
}


def _escape(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "").replace("\n", "%0A")


def _resource_address(verdict: Mapping[str, object]) -> str:
    resource = verdict.get("resource") or {}
    if not isinstance(resource, Mapping):
        return ""
    return str(resource.get("address", "")).strip()


def format_summary(report: Mapping[str, object]) -> str:
    """Render a Markdown job summary for the provided report."""

    summary: Mapping[str, object] = report.get("summary") or {}
    metadata: Mapping[str, object] = report.get("metadata") or {}
    verdicts: Sequence[Mapping[str, object]] = report.get("verdicts") or []

    total = int(summary.get("total", len(verdicts)))
    failed = int(summary.get("failed", sum(1 for item in verdicts if not item.get("passed"))))
    result = "Fail" if failed else "Pass"

    lines: list[str] = [
        "# Plan Policy Report",
        "",
        f"**Result:** {result}",
        f"**Policies evaluated:** {total}",
        f"**Policies failed:** {failed}",
    ]

    if verdicts:
        lines.extend(
            [
                "",
                "| Status | Policy | Severity | Message |",
                "| --- | --- | --- | --- |",
            ]
        )
        for verdict in verdicts:
            status = "✅" if verdict.get("passed") else "❌"
            policy_id = str(verdict.get("policy_id", "")).strip()
            severity = str(verdict.get("severity", "info")).title()
            message = str(verdict.get("message", "")).strip().replace("|", "\\|")
            address = _resource_address(verdict)
            if address and not verdict.get("passed"):
                message += f" _(Resource: `{address}`)_"
            lines.append(f"| {status} | `{policy_id}` | {severity} | {message} |")

    if metadata:
        lines.extend(["", "## Metadata", ""])
        for key in sorted(metadata):
            lines.append(f"- **{key}:** {metadata[key]}")

    lines.append("")
    return "\n".join(lines)


def iter_annotations(report: Mapping[str, object]) -> Iterable[str]:
    """Generate workflow command annotations for every failed verdict."""

    verdicts: Sequence[Mapping[str, object]] = report.get("verdicts") or []
    for verdict in verdicts:
        if verdict.get("passed"):
            continue

        severity = str(verdict.get("severity", "info")).lower()
        level = ANNOTATION_LEVELS.get(severity, "notice")
        policy_id = str(verdict.get("policy_id", "")).strip()
        message = str(verdict.get("message", "")).strip()
        address = _resource_address(verdict)

        title_parts = [part for part in (severity.title(), policy_id) if part]
        title = " - ".join(title_parts)

        body_parts = [message] if message else []
        if address:
            body_parts.append(f"Resource: {address}")
        if not body_parts:
            body_parts.append("Policy failed without a diagnostic message.")

        yield f"::{level} title={title}::{_escape('; '.join(body_parts))}"


def _load_report(path: Path) -> Mapping[str, object]:
    raw = path.read_text(encoding="utf-8-sig")
    if not raw.strip():
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse report JSON from '{path}': {exc.msg}.") from exc

    if not isinstance(data, Mapping):
        raise ValueError("Report JSON must be an object.")
    return data


def _write_summary(report: Mapping[str, object], destination: Path | None) -> None:
    if destination is None:
        return

    content = format_summary(report)
    destination.parent.mkdir(parents=True, exist_ok=True)
    with destination.open("a", encoding="utf-8") as handle:
        handle.write(content)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Publish plan validation verdicts as GitHub job summary and annotations."
    )
    parser.add_argument("report", type=Path, help="Path to the JSON report from `plan-guard`.")
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Optional explicit path for the GitHub job summary output.",
    )

    args = parser.parse_args(argv)

    summary_path = args.summary_path
    if summary_path is None:
        summary_env = os.getenv("GITHUB_STEP_SUMMARY")
        if summary_env:
            summary_path = Path(summary_env)

    try:
        report = _load_report(args.report)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}")
        return 2

    _write_summary(report, summary_path)

    for command in iter_annotations(report):
        print(command)

    return 0


def run() -> None:  # pragma: no cover - wrapper for console entry point
    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover - module execution guard
    run()
