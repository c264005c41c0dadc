"""Verdict models shared by the policy engine and reporting layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .resource import ResourceChange


class Severity(str, Enum):
    """Severity levels attached to policies."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FailureReason(str, Enum):
    """Why a policy did not pass."""

    RESOURCE_MISSING = "resource_missing"
    BLOCK_MISSING = "block_missing"
    FIELD_MISSING = "field_missing"
    VALUE_MISMATCH = "value_mismatch"


@dataclass(frozen=True, slots=True)
class Violation:
    """Failure details returned by a single policy check."""

    reason: FailureReason
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PolicyVerdict:
    """Outcome of one policy for one validation run."""

    policy_id: str
    title: str
    passed: bool
    severity: Severity
    message: str
    reason: Optional[FailureReason] = None
    resource: Optional["ResourceChange"] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return not self.passed
