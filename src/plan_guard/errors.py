"""Exception hierarchy shared by the loader, policy layer and CLI."""

from __future__ import annotations


class PlanGuardError(RuntimeError):
    """Base class for errors that abort a validation run."""


class PlanLoaderError(PlanGuardError):
    """Exception raised when terraform plan ingestion fails."""


class PlanDocumentError(PlanLoaderError):
    """Raised when a plan document does not have the expected top-level shape."""


class PolicyManifestError(PlanGuardError):
    """Raised when policy manifests cannot be loaded or parsed."""


class PolicyEvaluationError(PlanGuardError):
    """Raised when the policy engine is misconfigured."""


__all__ = [
    "PlanDocumentError",
    "PlanGuardError",
    "PlanLoaderError",
    "PolicyEvaluationError",
    "PolicyManifestError",
]
