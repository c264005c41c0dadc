"""Adapter layer package for plan ingestion and policy evaluation."""

from ..errors import PlanDocumentError, PlanLoaderError, PolicyEvaluationError
from .plan_loader import DEFAULT_PLAN_FILENAME, PlanLoader
from .policy_engine import BaselinePolicyEngine, PolicyEngineAdapter

__all__ = [
    "DEFAULT_PLAN_FILENAME",
    "BaselinePolicyEngine",
    "PlanDocumentError",
    "PlanLoader",
    "PlanLoaderError",
    "PolicyEngineAdapter",
    "PolicyEvaluationError",
]
