from __future__ import annotations

import logging
from typing import Any

import pytest

from plan_guard.models import ChangeDocument, FailureReason
from plan_guard.normalization import ResourceNormalizer
from plan_guard.policies import PolicySettings, normalize_provider_url
from plan_guard.policies.baseline import (
    check_encryption,
    check_oidc_provider,
    check_public_access,
    check_role_name,
    check_versioning,
    policy_ids,
)

SETTINGS = PolicySettings()


def _change(resource_type: str, after: Any, name: str = "this") -> dict[str, Any]:
    return {
        "address": f"{resource_type}.{name}",
        "type": resource_type,
        "name": name,
        "change": {"actions": ["create"], "after": after},
    }


def _document(*changes: dict[str, Any]) -> ChangeDocument:
    return ResourceNormalizer().normalize({"resource_changes": list(changes)})


def _first(document: ChangeDocument, resource_type: str):
    return document.find_by_type(resource_type)[0]


def test_baseline_order_is_fixed() -> None:
    assert policy_ids() == [
        "storage-bucket-present",
        "iam-role-present",
        "bucket-versioning-enabled",
        "bucket-encryption-configured",
        "bucket-public-access-blocked",
        "oidc-provider-configured",
        "iam-role-oidc-naming",
    ]


# Versioning -----------------------------------------------------------------
@pytest.mark.parametrize(
    "block",
    [{"status": "Enabled"}, [{"status": "Enabled", "mfa_delete": None}]],
)
def test_versioning_enabled_passes_for_object_or_list(block: Any) -> None:
    document = _document(_change("aws_s3_bucket_versioning", {"versioning_configuration": block}))
    resource = _first(document, "aws_s3_bucket_versioning")

    assert check_versioning(resource, document, SETTINGS) is None


def test_versioning_suspended_fails_with_value_mismatch() -> None:
    document = _document(
        _change("aws_s3_bucket_versioning", {"versioning_configuration": {"status": "Suspended"}})
    )
    violation = check_versioning(_first(document, "aws_s3_bucket_versioning"), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.VALUE_MISMATCH
    assert "Suspended" in violation.message
    assert violation.metadata["actual"] == "Suspended"


@pytest.mark.parametrize("block", [None, [], "Enabled", ["Enabled"]])
def test_versioning_block_missing_or_malformed(block: Any) -> None:
    document = _document(_change("aws_s3_bucket_versioning", {"versioning_configuration": block}))
    violation = check_versioning(_first(document, "aws_s3_bucket_versioning"), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.BLOCK_MISSING
    assert "versioning_configuration" in violation.message


def test_versioning_status_missing() -> None:
    document = _document(
        _change("aws_s3_bucket_versioning", {"versioning_configuration": [{"mfa_delete": None}]})
    )
    violation = check_versioning(_first(document, "aws_s3_bucket_versioning"), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.FIELD_MISSING


# Encryption -----------------------------------------------------------------
SSE = "aws_s3_bucket_server_side_encryption_configuration"


def _sse_after(algorithm: Any, *, wrap: bool = True) -> dict[str, Any]:
    default: dict[str, Any] = {"kms_master_key_id": None}
    if algorithm is not None:
        default["sse_algorithm"] = algorithm
    if wrap:
        return {"rule": [{"apply_server_side_encryption_by_default": [default]}]}
    return {"rule": {"apply_server_side_encryption_by_default": default}}


@pytest.mark.parametrize("wrap", [True, False])
def test_encryption_aes256_without_kms_passes(wrap: bool) -> None:
    document = _document(_change(SSE, _sse_after("AES256", wrap=wrap)))

    assert check_encryption(_first(document, SSE), document, SETTINGS) is None


def test_encryption_wrong_algorithm_without_kms_fails() -> None:
    document = _document(_change(SSE, _sse_after("AES128")))
    violation = check_encryption(_first(document, SSE), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.VALUE_MISMATCH
    assert "AES128" in violation.message
    assert "AES256" in violation.message


def test_encryption_missing_algorithm_without_kms_fails() -> None:
    document = _document(_change(SSE, _sse_after(None)))
    violation = check_encryption(_first(document, SSE), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.FIELD_MISSING


def test_encryption_with_kms_key_and_no_algorithm_passes(caplog: pytest.LogCaptureFixture) -> None:
    document = _document(
        _change("aws_kms_key", {"enable_key_rotation": True}),
        _change(SSE, _sse_after(None)),
    )

    with caplog.at_level(logging.WARNING, logger="plan_guard.policies.baseline"):
        assert check_encryption(_first(document, SSE), document, SETTINGS) is None

    assert "assuming KMS encryption" in caplog.text


def test_encryption_with_kms_key_and_empty_after_passes() -> None:
    document = _document(_change("aws_kms_key", {}), _change(SSE, None))

    assert check_encryption(_first(document, SSE), document, SETTINGS) is None


@pytest.mark.parametrize(
    ("after", "field"),
    [
        ({}, "rule"),
        ({"rule": []}, "rule"),
        ({"rule": [{"bucket_key_enabled": True}]}, "rule.apply_server_side_encryption_by_default"),
    ],
)
def test_encryption_blocks_missing_without_kms(after: dict[str, Any], field: str) -> None:
    document = _document(_change(SSE, after))
    violation = check_encryption(_first(document, SSE), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.BLOCK_MISSING
    assert violation.metadata["field"] == field


def test_explicit_algorithm_required_with_kms_key() -> None:
    strict = PolicySettings(require_explicit_algorithm=True)

    missing = _document(_change("aws_kms_key", {}), _change(SSE, _sse_after(None)))
    violation = check_encryption(_first(missing, SSE), missing, strict)
    assert violation is not None
    assert violation.reason is FailureReason.FIELD_MISSING

    kms = _document(_change("aws_kms_key", {}), _change(SSE, _sse_after("aws:kms")))
    assert check_encryption(_first(kms, SSE), kms, strict) is None


# Public access --------------------------------------------------------------
PAB = "aws_s3_bucket_public_access_block"
ALL_TRUE = {
    "block_public_acls": True,
    "block_public_policy": True,
    "ignore_public_acls": True,
    "restrict_public_buckets": True,
}


def test_public_access_all_true_passes() -> None:
    document = _document(_change(PAB, dict(ALL_TRUE)))

    assert check_public_access(_first(document, PAB), document, SETTINGS) is None


@pytest.mark.parametrize("flag", sorted(ALL_TRUE))
def test_public_access_false_flag_fails(flag: str) -> None:
    after = dict(ALL_TRUE, **{flag: False})
    document = _document(_change(PAB, after))
    violation = check_public_access(_first(document, PAB), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.VALUE_MISMATCH
    assert violation.metadata["flags"] == [flag]
    assert flag in violation.message


@pytest.mark.parametrize("flag", sorted(ALL_TRUE))
def test_public_access_absent_flag_fails(flag: str) -> None:
    after = {key: value for key, value in ALL_TRUE.items() if key != flag}
    document = _document(_change(PAB, after))
    violation = check_public_access(_first(document, PAB), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.FIELD_MISSING
    assert violation.metadata["flags"] == [flag]


def test_public_access_requires_literal_booleans() -> None:
    document = _document(_change(PAB, dict(ALL_TRUE, block_public_policy="true")))
    violation = check_public_access(_first(document, PAB), document, SETTINGS)

    assert violation is not None
    assert violation.metadata["flags"] == ["block_public_policy"]


# OIDC provider --------------------------------------------------------------
OIDC = "aws_iam_openid_connect_provider"


@pytest.mark.parametrize(
    "url", ["token.actions.githubusercontent.com", "https://token.actions.githubusercontent.com"]
)
def test_oidc_provider_url_is_normalized(url: str) -> None:
    document = _document(_change(OIDC, {"url": url, "client_id_list": ["sts.amazonaws.com"]}))

    assert check_oidc_provider(_first(document, OIDC), document, SETTINGS) is None


def test_normalize_provider_url() -> None:
    assert normalize_provider_url("example.com") == "https://example.com"
    assert normalize_provider_url("https://example.com") == "https://example.com"


def test_oidc_provider_wrong_url_fails() -> None:
    document = _document(
        _change(OIDC, {"url": "https://wrong.example.com", "client_id_list": ["sts.amazonaws.com"]})
    )
    violation = check_oidc_provider(_first(document, OIDC), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.VALUE_MISMATCH
    assert violation.metadata["field"] == "url"
    assert "wrong.example.com" in violation.message


def test_oidc_provider_missing_client_id_fails() -> None:
    document = _document(
        _change(
            OIDC,
            {"url": "token.actions.githubusercontent.com", "client_id_list": ["sigstore"]},
        )
    )
    violation = check_oidc_provider(_first(document, OIDC), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.VALUE_MISMATCH
    assert violation.metadata["field"] == "client_id_list"


@pytest.mark.parametrize(
    ("after", "field"),
    [
        ({"client_id_list": ["sts.amazonaws.com"]}, "url"),
        ({"url": None, "client_id_list": ["sts.amazonaws.com"]}, "url"),
        ({"url": "token.actions.githubusercontent.com"}, "client_id_list"),
    ],
)
def test_oidc_provider_missing_fields(after: dict[str, Any], field: str) -> None:
    document = _document(_change(OIDC, after))
    violation = check_oidc_provider(_first(document, OIDC), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.FIELD_MISSING
    assert violation.metadata["field"] == field


# Role naming ----------------------------------------------------------------
def test_role_name_contains_oidc() -> None:
    document = _document(_change("aws_iam_role", {"name": "github-oidc-deploy"}))

    assert check_role_name(_first(document, "aws_iam_role"), document, SETTINGS) is None


def test_role_name_without_oidc_fails() -> None:
    document = _document(_change("aws_iam_role", {"name": "deploy"}))
    violation = check_role_name(_first(document, "aws_iam_role"), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.VALUE_MISMATCH
    assert "'deploy'" in violation.message


def test_role_name_unknown_at_plan_time_fails() -> None:
    document = _document(_change("aws_iam_role", {"name_prefix": "oidc-"}))
    violation = check_role_name(_first(document, "aws_iam_role"), document, SETTINGS)

    assert violation is not None
    assert violation.reason is FailureReason.FIELD_MISSING
