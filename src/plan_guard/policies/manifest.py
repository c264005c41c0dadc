"""Utilities for loading and merging policy manifest files."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Sequence

import yaml

from ..errors import PolicyManifestError
from ..models import Severity
from .baseline import PolicySettings, policy_ids

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PolicyOverride:
    """Manifest configuration for a single baseline policy."""

    policy_id: str
    enabled: bool = True
    severity: Severity | None = None


@dataclass(slots=True)
class PolicyManifest:
    """Merged view of every manifest supplied to a run."""

    overrides: Dict[str, PolicyOverride] = field(default_factory=dict)
    settings: PolicySettings = field(default_factory=PolicySettings)

    def is_enabled(self, policy_id: str) -> bool:
        override = self.overrides.get(policy_id)
        return override.enabled if override else True

    def severity_for(self, policy_id: str, default: Severity) -> Severity:
        override = self.overrides.get(policy_id)
        if override and override.severity is not None:
            return override.severity
        return default


_DEFAULT_MANIFEST = Path(__file__).resolve().parent / "manifests" / "aws-s3-oidc-baseline.yaml"
_KNOWN_POLICIES = frozenset(policy_ids())
_SETTING_FIELDS = {item.name: item for item in dataclasses.fields(PolicySettings)}


class PolicyManifestManager:
    """Load policy manifests and merge them over the built-in baseline."""

    def __init__(self, default_manifests: Sequence[Path | str] | None = None) -> None:
        manifest_paths: List[Path]
        if default_manifests is None:
            manifest_paths = []
            if _DEFAULT_MANIFEST.exists():
                manifest_paths.append(_DEFAULT_MANIFEST)
        else:
            manifest_paths = [Path(path) for path in default_manifests]

        self._default_manifests = manifest_paths

    # ------------------------------------------------------------------
    def load(self, manifests: Sequence[Path | str] | None = None) -> PolicyManifest:
        """Return the manifest produced by merging defaults and ``manifests`` in order."""

        manifest_paths = [Path(path) for path in self._default_manifests]
        if manifests:
            manifest_paths.extend(Path(path) for path in manifests)

        overrides: MutableMapping[str, PolicyOverride] = {}
        settings: Dict[str, Any] = {}
        for manifest_path in manifest_paths:
            data = self._load_manifest(manifest_path)
            self._merge_policies(manifest_path, data.get("policies") or [], overrides)
            settings.update(self._read_settings(manifest_path, data.get("settings") or {}))

        return PolicyManifest(overrides=dict(overrides), settings=PolicySettings(**settings))

    # ------------------------------------------------------------------
    def _merge_policies(
        self,
        path: Path,
        entries: Any,
        overrides: MutableMapping[str, PolicyOverride],
    ) -> None:
        if not isinstance(entries, list):
            raise PolicyManifestError(f"'policies' must be a list in manifest {path}")

        for entry in entries:
            if not isinstance(entry, Mapping):
                continue

            policy_id = str(entry.get("id") or "").strip()
            if not policy_id:
                continue
            if policy_id not in _KNOWN_POLICIES:
                logger.warning("Ignoring unknown policy '%s' in %s", policy_id, path)
                continue

            override = overrides.get(policy_id, PolicyOverride(policy_id=policy_id))
            if "enabled" in entry:
                enabled = entry["enabled"]
                if not isinstance(enabled, bool):
                    raise PolicyManifestError(
                        f"'enabled' for policy '{policy_id}' in manifest {path} must be a bool"
                    )
                override.enabled = enabled

            level = entry.get("severity")
            if isinstance(level, Severity):
                override.severity = level
            elif isinstance(level, str):
                try:
                    override.severity = Severity(level.strip().lower())
                except ValueError:
                    logger.warning(
                        "Ignoring unknown severity '%s' for policy '%s' in %s",
                        level,
                        policy_id,
                        path,
                    )

            overrides[policy_id] = override

    def _read_settings(self, path: Path, raw: Any) -> Dict[str, Any]:
        if not isinstance(raw, Mapping):
            raise PolicyManifestError(f"'settings' must be a mapping in manifest {path}")

        settings: Dict[str, Any] = {}
        for key, value in raw.items():
            setting = _SETTING_FIELDS.get(str(key))
            if setting is None:
                raise PolicyManifestError(f"Unknown setting '{key}' in manifest {path}")

            expected = bool if setting.type in ("bool", bool) else str
            if not isinstance(value, expected):
                raise PolicyManifestError(
                    f"Setting '{key}' in manifest {path} must be a {expected.__name__}"
                )
            settings[setting.name] = value

        return settings

    # ------------------------------------------------------------------
    def _load_manifest(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise PolicyManifestError(f"Policy manifest not found: {path}")

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem errors surfaced to caller
            raise PolicyManifestError(f"Failed to read policy manifest {path}") from exc

        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as exc:
            raise PolicyManifestError(f"Invalid YAML in policy manifest {path}") from exc

        if not isinstance(data, Mapping):
            raise PolicyManifestError(f"Policy manifest must be a mapping: {path}")

        logger.debug("Loaded policy manifest %s", path)
        return dict(data)
