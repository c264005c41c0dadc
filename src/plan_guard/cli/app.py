"""Command-line interface implementation for the plan validator."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

from ..adapters import BaselinePolicyEngine
from ..errors import PlanGuardError
from ..models import PolicyVerdict, ResourceChange
from ..normalization import ResourceNormalizer
from ..policies import PolicyManifestManager
from ..service import PolicyValidationService, ValidationResult

EXIT_OK = 0
EXIT_POLICY_FAILURE = 1
EXIT_ERROR = 2


@dataclass(slots=True)
class ValidationReport:
    """Collection of verdicts plus contextual metadata."""

    verdicts: Sequence[PolicyVerdict]
    metadata: Mapping[str, Any]

    @property
    def failed_count(self) -> int:
        return sum(1 for verdict in self.verdicts if not verdict.passed)

    @property
    def passed(self) -> bool:
        return self.failed_count == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": dict(self.metadata),
            "summary": {
                "total": len(self.verdicts),
                "passed": len(self.verdicts) - self.failed_count,
                "failed": self.failed_count,
                "result": "pass" if self.passed else "fail",
            },
            "verdicts": [_serialize_verdict(verdict) for verdict in self.verdicts],
        }


def _serialize_verdict(verdict: PolicyVerdict) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "policy_id": verdict.policy_id,
        "title": verdict.title,
        "passed": verdict.passed,
        "severity": verdict.severity.value,
        "reason": verdict.reason.value if verdict.reason else None,
        "message": verdict.message,
        "metadata": dict(verdict.metadata),
    }

    if verdict.resource:
        payload["resource"] = _serialize_resource(verdict.resource)
    else:
        payload["resource"] = None

    return payload


def _serialize_resource(resource: ResourceChange) -> dict[str, Any]:
    return {
        "address": resource.address,
        "module_path": list(resource.module_path),
        "type": resource.type,
        "name": resource.name,
        "provider_name": resource.provider_name,
        "mode": resource.mode,
        "index": resource.index,
        "change_action": resource.change_action.value,
    }


def render_table(report: ValidationReport) -> str:
    """Render verdicts as a simple text table for terminal output."""

    if not report.verdicts:
        return "No policies evaluated."

    headers = ("Status", "Policy", "Severity", "Resource", "Message")
    rows = [headers]
    for verdict in report.verdicts:
        resource_address = verdict.resource.address if verdict.resource else "-"
        rows.append(
            (
                "PASS" if verdict.passed else "FAIL",
                verdict.policy_id,
                verdict.severity.value,
                resource_address or "-",
                verdict.message,
            )
        )

    widths = [max(len(str(row[idx])) for row in rows) for idx in range(len(headers))]

    def format_row(values: tuple[str, str, str, str, str]) -> str:
        line = "  ".join(value.ljust(width) for value, width in zip(values, widths, strict=True))
        return line.rstrip()

    lines = [format_row(headers)]
    lines.append("  ".join("=" * width for width in widths))
    for row in rows[1:]:
        lines.append(format_row(row))

    lines.append("")
    if report.passed:
        lines.append(f"All {len(report.verdicts)} policies passed.")
    else:
        lines.append(f"{report.failed_count} of {len(report.verdicts)} policies failed.")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser."""

    parser = argparse.ArgumentParser(
        prog="plan-guard", description="Terraform plan security baseline validator"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Verbosity of diagnostic logging written to stderr.",
    )
    subparsers = parser.add_subparsers(dest="command")

    validate_parser = subparsers.add_parser(
        "validate", help="Validate a Terraform plan against the security baseline."
    )
    validate_parser.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=Path.cwd(),
        help="Path to the directory containing the Terraform configuration.",
    )
    validate_parser.add_argument(
        "--plan-json",
        type=Path,
        default=None,
        help="Path to an existing Terraform plan exported with `terraform show -json`.",
    )
    validate_parser.add_argument(
        "--plan-file",
        type=Path,
        default=None,
        help="Path to a binary Terraform plan file generated via `terraform plan -out`.",
    )
    validate_parser.add_argument(
        "--var-file",
        dest="var_files",
        action="append",
        type=Path,
        default=None,
        help="Additional Terraform variable files to pass when generating a plan.",
    )
    validate_parser.add_argument(
        "--env",
        dest="env",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Environment variables to provide to Terraform during execution.",
    )
    validate_parser.add_argument(
        "--inherit-env",
        action="store_true",
        help="Inherit the current environment instead of a minimal PATH-only sandbox.",
    )
    validate_parser.add_argument(
        "--terraform-bin",
        default="terraform",
        help="Name or path of the Terraform executable to use when generating plans.",
    )
    validate_parser.add_argument(
        "--policy-manifest",
        dest="policy_manifests",
        action="append",
        default=None,
        type=str,
        help="Path to a YAML policy manifest overriding severities, toggles or settings.",
    )
    validate_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format for validation results.",
    )

    return parser


def create_service(
    *,
    default_policy_manifests: Sequence[str] | None = None,
) -> PolicyValidationService:
    """Create a validation service wired to the baseline policy engine."""

    manager = PolicyManifestManager()
    normalizer = ResourceNormalizer()

    default_manifests = list(default_policy_manifests or [])

    def factory(manifests: Sequence[str] | None) -> BaselinePolicyEngine:
        manifest_list = list(default_manifests)
        if manifests:
            manifest_list.extend(str(manifest) for manifest in manifests)
        return BaselinePolicyEngine(manifest_manager=manager, manifests=manifest_list)

    return PolicyValidationService(policy_engine_factory=factory, normalizer=normalizer)


def _parse_env_values(values: Sequence[str] | None) -> Mapping[str, str]:
    if not values:
        return {}

    env: dict[str, str] = {}
    for value in values:
        if "=" not in value:
            raise ValueError(f"Environment variables must be in KEY=VALUE form: {value}")
        key, raw = value.split("=", 1)
        env[key] = raw
    return env


def _build_report(result: ValidationResult) -> ValidationReport:
    return ValidationReport(verdicts=result.verdicts, metadata=result.metadata)


def _format_report(report: ValidationReport, *, output_format: str) -> str:
    if output_format not in {"table", "json"}:
        raise ValueError("format must be either 'table' or 'json'")

    if output_format == "json":
        return json.dumps(report.to_dict(), indent=2)
    return render_table(report)


def _handle_validate(args: argparse.Namespace) -> int:
    try:
        env = _parse_env_values(args.env)
    except ValueError as exc:
        print(f"Error: {exc}")
        return EXIT_ERROR

    service = create_service()

    working_dir = args.path.resolve()
    plan_json = args.plan_json.resolve() if args.plan_json else None
    plan_file = args.plan_file.resolve() if args.plan_file else None
    var_files = [path.resolve() for path in args.var_files] if args.var_files else None
    manifests = list(args.policy_manifests or [])

    try:
        result = service.validate(
            working_dir,
            plan_json_path=plan_json,
            plan_file_path=plan_file,
            var_files=var_files,
            env=env,
            inherit_environment=args.inherit_env,
            terraform_bin=args.terraform_bin,
            manifests=manifests,
        )
    except PlanGuardError as exc:
        print(f"Error: {exc}")
        return EXIT_ERROR

    report = _build_report(result)
    print(_format_report(report, output_format=args.format))
    return EXIT_OK if report.passed else EXIT_POLICY_FAILURE


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by tests and the console script."""

    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if args.command == "validate":
        return _handle_validate(args)

    parser.print_help()
    return EXIT_OK


def run() -> None:  # pragma: no cover - thin wrapper for module execution
    """Execute the CLI and exit with the produced status code."""

    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover - module execution guard
    run()
