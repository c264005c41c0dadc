"""Data models for parsed Terraform plans and policy verdicts."""

from .resource import ChangeAction, ChangeDocument, ResourceChange
from .verdict import FailureReason, PolicyVerdict, Severity, Violation

__all__ = [
    "ChangeAction",
    "ChangeDocument",
    "FailureReason",
    "PolicyVerdict",
    "ResourceChange",
    "Severity",
    "Violation",
]
