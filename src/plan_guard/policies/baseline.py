"""Security baseline for S3 storage and GitHub OIDC federation.

Each policy is a :class:`PolicyDescriptor`: the resource type whose presence
is the precondition and an optional check run against the first resource of
that type. The engine walks :data:`BASELINE_POLICIES` in order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Tuple

from ..models import ChangeDocument, FailureReason, ResourceChange, Severity, Violation
from ..normalization.shapes import first_object

logger = logging.getLogger(__name__)

S3_BUCKET = "aws_s3_bucket"
IAM_ROLE = "aws_iam_role"
S3_BUCKET_VERSIONING = "aws_s3_bucket_versioning"
S3_BUCKET_ENCRYPTION = "aws_s3_bucket_server_side_encryption_configuration"
S3_PUBLIC_ACCESS_BLOCK = "aws_s3_bucket_public_access_block"
KMS_KEY = "aws_kms_key"
OIDC_PROVIDER = "aws_iam_openid_connect_provider"

PUBLIC_ACCESS_FLAGS = (
    "block_public_acls",
    "block_public_policy",
    "ignore_public_acls",
    "restrict_public_buckets",
)

KMS_ALGORITHMS = ("aws:kms", "aws:kms:dsse")


@dataclass(frozen=True, slots=True)
class PolicySettings:
    """Tunable values referenced by the baseline checks."""

    oidc_provider_url: str = "https://token.actions.githubusercontent.com"
    oidc_client_id: str = "sts.amazonaws.com"
    role_name_substring: str = "oidc"
    versioning_status: str = "Enabled"
    default_sse_algorithm: str = "AES256"
    require_explicit_algorithm: bool = False


PolicyCheck = Callable[[ResourceChange, ChangeDocument, PolicySettings], Optional[Violation]]


@dataclass(frozen=True, slots=True)
class PolicyDescriptor:
    """Declarative description of one baseline policy."""

    policy_id: str
    title: str
    resource_type: str
    check: Optional[PolicyCheck] = None
    severity: Severity = Severity.HIGH


# ----------------------------------------------------------------------
def check_versioning(
    resource: ResourceChange, document: ChangeDocument, settings: PolicySettings
) -> Optional[Violation]:
    block = first_object(resource.after_state.get("versioning_configuration"))
    if block is None:
        return Violation(
            FailureReason.BLOCK_MISSING,
            f"{resource.type}: versioning_configuration block is missing or invalid",
            {"field": "versioning_configuration"},
        )

    status = block.get("status")
    if status is None:
        return Violation(
            FailureReason.FIELD_MISSING,
            f"{resource.type}: versioning_configuration.status is not set "
            f"(expected '{settings.versioning_status}')",
            {"field": "versioning_configuration.status", "expected": settings.versioning_status},
        )

    if status != settings.versioning_status:
        return Violation(
            FailureReason.VALUE_MISMATCH,
            f"{resource.type}: versioning must be '{settings.versioning_status}', got '{status}'",
            {
                "field": "versioning_configuration.status",
                "expected": settings.versioning_status,
                "actual": status,
            },
        )

    return None


def check_encryption(
    resource: ResourceChange, document: ChangeDocument, settings: PolicySettings
) -> Optional[Violation]:
    # Terraform drops sse_algorithm from the plan when kms_master_key_id points at
    # a key that is created in the same run, so a planned KMS key counts as KMS
    # encryption unless an explicit algorithm is required.
    default_block = _default_encryption_block(resource)
    algorithm = default_block.get("sse_algorithm") if default_block is not None else None

    if document.has_type(KMS_KEY):
        if settings.require_explicit_algorithm:
            allowed = KMS_ALGORITHMS + (settings.default_sse_algorithm,)
            if algorithm not in allowed:
                return _algorithm_violation(resource, algorithm, allowed)
            return None

        if algorithm is None:
            logger.warning(
                "%s: no sse_algorithm in plan, assuming KMS encryption because %s is planned",
                resource.address or resource.type,
                KMS_KEY,
            )
        return None

    rule = first_object(resource.after_state.get("rule"))
    if rule is None:
        return Violation(
            FailureReason.BLOCK_MISSING,
            f"{resource.type}: rule block is missing or invalid",
            {"field": "rule"},
        )

    if default_block is None:
        return Violation(
            FailureReason.BLOCK_MISSING,
            f"{resource.type}: rule.apply_server_side_encryption_by_default block "
            "is missing or invalid",
            {"field": "rule.apply_server_side_encryption_by_default"},
        )

    if algorithm != settings.default_sse_algorithm:
        return _algorithm_violation(
            resource,
            algorithm,
            (settings.default_sse_algorithm,),
            " when no KMS key is planned",
        )

    return None


def _default_encryption_block(resource: ResourceChange) -> Optional[Mapping[str, Any]]:
    rule = first_object(resource.after_state.get("rule"))
    if rule is None:
        return None
    return first_object(rule.get("apply_server_side_encryption_by_default"))


def _algorithm_violation(
    resource: ResourceChange, algorithm: Any, allowed: Tuple[str, ...], context: str = ""
) -> Violation:
    field = "rule.apply_server_side_encryption_by_default.sse_algorithm"
    expected = " or ".join(f"'{value}'" for value in allowed)
    if algorithm is None:
        return Violation(
            FailureReason.FIELD_MISSING,
            f"{resource.type}: sse_algorithm is not set (expected {expected}{context})",
            {"field": field, "expected": list(allowed)},
        )
    return Violation(
        FailureReason.VALUE_MISMATCH,
        f"{resource.type}: sse_algorithm must be {expected}{context}, got '{algorithm}'",
        {"field": field, "expected": list(allowed), "actual": algorithm},
    )


def check_public_access(
    resource: ResourceChange, document: ChangeDocument, settings: PolicySettings
) -> Optional[Violation]:
    missing: List[str] = []
    wrong: List[str] = []
    for flag in PUBLIC_ACCESS_FLAGS:
        if flag not in resource.after_state or resource.after_state[flag] is None:
            missing.append(flag)
        elif resource.after_state[flag] is not True:
            wrong.append(flag)

    if not missing and not wrong:
        return None

    details = [f"{flag}={resource.after_state[flag]!r}" for flag in wrong]
    details.extend(f"{flag} not set" for flag in missing)
    failing = [flag for flag in PUBLIC_ACCESS_FLAGS if flag in wrong or flag in missing]

    return Violation(
        FailureReason.VALUE_MISMATCH if wrong else FailureReason.FIELD_MISSING,
        f"{resource.type}: public access flags must all be true ({', '.join(details)})",
        {"flags": failing},
    )


def normalize_provider_url(url: str) -> str:
    """Prefix ``url`` with ``https://`` unless it already carries that scheme."""

    if url.startswith("https://"):
        return url
    return f"https://{url}"


def check_oidc_provider(
    resource: ResourceChange, document: ChangeDocument, settings: PolicySettings
) -> Optional[Violation]:
    url = resource.after_state.get("url")
    if not isinstance(url, str) or not url:
        return Violation(
            FailureReason.FIELD_MISSING,
            f"{resource.type}: url is not set (expected '{settings.oidc_provider_url}')",
            {"field": "url", "expected": settings.oidc_provider_url},
        )

    normalized = normalize_provider_url(url)
    if normalized != settings.oidc_provider_url:
        return Violation(
            FailureReason.VALUE_MISMATCH,
            f"{resource.type}: url must be '{settings.oidc_provider_url}', got '{url}'",
            {"field": "url", "expected": settings.oidc_provider_url, "actual": url},
        )

    client_ids = resource.after_state.get("client_id_list")
    if not isinstance(client_ids, list):
        return Violation(
            FailureReason.FIELD_MISSING,
            f"{resource.type}: client_id_list is not set "
            f"(expected it to contain '{settings.oidc_client_id}')",
            {"field": "client_id_list", "expected": settings.oidc_client_id},
        )

    if settings.oidc_client_id not in client_ids:
        return Violation(
            FailureReason.VALUE_MISMATCH,
            f"{resource.type}: client_id_list must contain '{settings.oidc_client_id}', "
            f"got {client_ids!r}",
            {"field": "client_id_list", "expected": settings.oidc_client_id, "actual": client_ids},
        )

    return None


def check_role_name(
    resource: ResourceChange, document: ChangeDocument, settings: PolicySettings
) -> Optional[Violation]:
    name = resource.after_state.get("name")
    if not isinstance(name, str):
        return Violation(
            FailureReason.FIELD_MISSING,
            f"{resource.type}: role name is not known at plan time "
            f"(expected it to contain '{settings.role_name_substring}')",
            {"field": "name", "expected": settings.role_name_substring},
        )

    if settings.role_name_substring not in name:
        return Violation(
            FailureReason.VALUE_MISMATCH,
            f"{resource.type}: role name '{name}' must contain "
            f"'{settings.role_name_substring}'",
            {"field": "name", "expected": settings.role_name_substring, "actual": name},
        )

    return None


BASELINE_POLICIES: Tuple[PolicyDescriptor, ...] = (
    PolicyDescriptor(
        policy_id="storage-bucket-present",
        title="S3 bucket is declared",
        resource_type=S3_BUCKET,
    ),
    PolicyDescriptor(
        policy_id="iam-role-present",
        title="IAM role is declared",
        resource_type=IAM_ROLE,
    ),
    PolicyDescriptor(
        policy_id="bucket-versioning-enabled",
        title="Bucket versioning is enabled",
        resource_type=S3_BUCKET_VERSIONING,
        check=check_versioning,
    ),
    PolicyDescriptor(
        policy_id="bucket-encryption-configured",
        title="Server-side encryption is configured",
        resource_type=S3_BUCKET_ENCRYPTION,
        check=check_encryption,
        severity=Severity.CRITICAL,
    ),
    PolicyDescriptor(
        policy_id="bucket-public-access-blocked",
        title="Public access is fully blocked",
        resource_type=S3_PUBLIC_ACCESS_BLOCK,
        check=check_public_access,
        severity=Severity.CRITICAL,
    ),
    PolicyDescriptor(
        policy_id="oidc-provider-configured",
        title="GitHub OIDC provider is configured",
        resource_type=OIDC_PROVIDER,
        check=check_oidc_provider,
    ),
    PolicyDescriptor(
        policy_id="iam-role-oidc-naming",
        title="IAM role follows the OIDC naming convention",
        resource_type=IAM_ROLE,
        check=check_role_name,
        severity=Severity.MEDIUM,
    ),
)


def policy_ids() -> List[str]:
    """Return the baseline policy ids in evaluation order."""

    return [descriptor.policy_id for descriptor in BASELINE_POLICIES]
