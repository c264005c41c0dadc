"""Baseline policy definitions and manifest handling."""

from .baseline import BASELINE_POLICIES, PolicyDescriptor, PolicySettings, normalize_provider_url
from .manifest import PolicyManifest, PolicyManifestManager, PolicyOverride

__all__ = [
    "BASELINE_POLICIES",
    "PolicyDescriptor",
    "PolicyManifest",
    "PolicyManifestManager",
    "PolicyOverride",
    "PolicySettings",
    "normalize_provider_url",
]
