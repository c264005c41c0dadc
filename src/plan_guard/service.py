"""Orchestration layer used by the CLI to execute plan validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, MutableMapping, Sequence

from .adapters import (
    BaselinePolicyEngine,
    PlanLoader,
    PlanLoaderError,
    PolicyEngineAdapter,
    PolicyEvaluationError,
)
from .models import ChangeDocument, PolicyVerdict
from .normalization import ResourceNormalizer


@dataclass(slots=True)
class ValidationResult:
    """Result returned by :class:`PolicyValidationService` runs."""

    verdicts: list[PolicyVerdict]
    metadata: Mapping[str, Any]

    @property
    def passed(self) -> bool:
        return all(verdict.passed for verdict in self.verdicts)

    @property
    def failures(self) -> list[PolicyVerdict]:
        return [verdict for verdict in self.verdicts if not verdict.passed]


PlanLoaderFactory = Callable[..., PlanLoader]
PolicyEngineFactory = Callable[[Sequence[str] | None], PolicyEngineAdapter]


def default_engine_factory(manifests: Sequence[str] | None) -> PolicyEngineAdapter:
    return BaselinePolicyEngine(manifests=manifests)


class PolicyValidationService:
    """High level service responsible for plan ingestion and policy evaluation."""

    def __init__(
        self,
        *,
        plan_loader_factory: PlanLoaderFactory | None = None,
        normalizer: ResourceNormalizer | None = None,
        policy_engine_factory: PolicyEngineFactory | None = default_engine_factory,
    ) -> None:
        self._plan_loader_factory = plan_loader_factory or PlanLoader
        self._normalizer = normalizer or ResourceNormalizer()
        self._policy_engine_factory = policy_engine_factory

    # ------------------------------------------------------------------
    def validate(
        self,
        working_dir: Path,
        *,
        plan_json_path: Path | None = None,
        plan_file_path: Path | None = None,
        var_files: Sequence[Path] | None = None,
        env: Mapping[str, str] | None = None,
        inherit_environment: bool = False,
        terraform_bin: str = "terraform",
        manifests: Sequence[str] | None = None,
    ) -> ValidationResult:
        """Load the plan for ``working_dir`` and evaluate every policy against it."""

        loader_kwargs: MutableMapping[str, Any] = {
            "working_dir": working_dir,
            "plan_json_path": plan_json_path,
            "plan_file_path": plan_file_path,
            "inherit_environment": inherit_environment,
            "terraform_bin": terraform_bin,
        }

        if var_files:
            loader_kwargs["var_files"] = list(var_files)
        if env:
            loader_kwargs["env"] = dict(env)

        loader = self._plan_loader_factory(**loader_kwargs)
        plan = loader.load_plan()

        result = self.validate_document(plan, manifests=manifests)
        metadata = {"working_dir": str(working_dir)}
        metadata.update(result.metadata)
        return ValidationResult(verdicts=result.verdicts, metadata=metadata)

    def validate_document(
        self,
        plan: Any,
        *,
        manifests: Sequence[str] | None = None,
    ) -> ValidationResult:
        """Evaluate every policy against an already parsed plan document."""

        document = self._normalizer.normalize(plan)
        engine = self._resolve_policy_engine(manifests)
        verdicts = engine.evaluate(document)

        return ValidationResult(verdicts=list(verdicts), metadata=_document_metadata(document))

    # ------------------------------------------------------------------
    def _resolve_policy_engine(self, manifests: Sequence[str] | None) -> PolicyEngineAdapter:
        if self._policy_engine_factory is None:
            raise PolicyEvaluationError("No policy engine factory configured for validation service")

        return self._policy_engine_factory(manifests)


def _document_metadata(document: ChangeDocument) -> dict[str, Any]:
    metadata: dict[str, Any] = {"resource_count": len(document)}
    if document.terraform_version:
        metadata["terraform_version"] = document.terraform_version
    if document.format_version:
        metadata["format_version"] = document.format_version
    return metadata


__all__ = [
    "PlanLoaderError",
    "PolicyEvaluationError",
    "PolicyValidationService",
    "ValidationResult",
    "default_engine_factory",
]
