"""Normalization of raw Terraform plan JSON."""

from .resource_normalizer import ResourceNormalizer, check_plan_document, find_by_type
from .shapes import first_object, resolve_after

__all__ = [
    "ResourceNormalizer",
    "check_plan_document",
    "find_by_type",
    "first_object",
    "resolve_after",
]
