"""Policy engine interfaces and the baseline implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

from ..models import ChangeDocument, FailureReason, PolicyVerdict
from ..policies import BASELINE_POLICIES, PolicyDescriptor, PolicyManifest, PolicyManifestManager

logger = logging.getLogger(__name__)


class PolicyEngineAdapter(ABC):
    """Abstract base class describing the policy engine contract."""

    @abstractmethod
    def evaluate(self, document: ChangeDocument) -> List[PolicyVerdict]:
        """Evaluate the supplied plan and return one verdict per policy."""


class BaselinePolicyEngine(PolicyEngineAdapter):
    """Evaluate the declarative baseline table against a change document.

    Every enabled policy is evaluated, in table order, regardless of the
    outcome of the others.
    """

    def __init__(
        self,
        *,
        policies: Sequence[PolicyDescriptor] | None = None,
        manifest_manager: PolicyManifestManager | None = None,
        manifests: Sequence[str] | None = None,
        manifest: PolicyManifest | None = None,
    ) -> None:
        self.policies = tuple(policies if policies is not None else BASELINE_POLICIES)
        if manifest is None:
            manager = manifest_manager or PolicyManifestManager()
            manifest = manager.load(list(manifests or []))
        self.manifest = manifest

    # ------------------------------------------------------------------
    def evaluate(self, document: ChangeDocument) -> List[PolicyVerdict]:
        verdicts: List[PolicyVerdict] = []
        for descriptor in self.policies:
            if not self.manifest.is_enabled(descriptor.policy_id):
                logger.info("Policy %s disabled by manifest", descriptor.policy_id)
                continue

            verdict = self._evaluate_policy(descriptor, document)
            if verdict.passed:
                logger.debug("Policy %s passed", descriptor.policy_id)
            else:
                logger.info("Policy %s failed: %s", descriptor.policy_id, verdict.message)
            verdicts.append(verdict)

        return verdicts

    # ------------------------------------------------------------------
    def _evaluate_policy(
        self, descriptor: PolicyDescriptor, document: ChangeDocument
    ) -> PolicyVerdict:
        severity = self.manifest.severity_for(descriptor.policy_id, descriptor.severity)
        matches = document.find_by_type(descriptor.resource_type)

        if not matches:
            return PolicyVerdict(
                policy_id=descriptor.policy_id,
                title=descriptor.title,
                passed=False,
                severity=severity,
                reason=FailureReason.RESOURCE_MISSING,
                message=f"expected at least one {descriptor.resource_type} resource in the plan",
                metadata={"resource_type": descriptor.resource_type},
            )

        resource = matches[0]
        if len(matches) > 1:
            logger.debug(
                "Policy %s: %d %s resources planned, checking %s",
                descriptor.policy_id,
                len(matches),
                descriptor.resource_type,
                resource.address,
            )

        violation = None
        if descriptor.check is not None:
            violation = descriptor.check(resource, document, self.manifest.settings)

        if violation is None:
            return PolicyVerdict(
                policy_id=descriptor.policy_id,
                title=descriptor.title,
                passed=True,
                severity=severity,
                message=descriptor.title,
                resource=resource,
                metadata={"resource_type": descriptor.resource_type},
            )

        metadata = {"resource_type": descriptor.resource_type}
        metadata.update(violation.metadata)
        return PolicyVerdict(
            policy_id=descriptor.policy_id,
            title=descriptor.title,
            passed=False,
            severity=severity,
            reason=violation.reason,
            message=violation.message,
            resource=resource,
            metadata=metadata,
        )
