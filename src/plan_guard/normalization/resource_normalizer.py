"""Conversion helpers that turn raw Terraform plan JSON into service models."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping

from ..errors import PlanDocumentError
from ..models import ChangeAction, ChangeDocument, ResourceChange
from .shapes import resolve_after

logger = logging.getLogger(__name__)


class ResourceNormalizer:
    """Normalize Terraform plan JSON into a :class:`ChangeDocument`."""

    def normalize(self, plan: Any) -> ChangeDocument:
        """Return the change document for the supplied plan structure.

        Raises :class:`PlanDocumentError` when ``plan`` is not an object or
        lacks a ``resource_changes`` list. Unknown fields are ignored.
        """

        raw_changes = check_plan_document(plan)["resource_changes"]

        changes: List[ResourceChange] = []
        for position, entry in enumerate(raw_changes):
            if not isinstance(entry, Mapping):
                raise PlanDocumentError(
                    f"resource_changes[{position}] must be an object, "
                    f"got {type(entry).__name__}"
                )
            changes.append(self._normalize_change(entry))

        logger.debug("Normalized %d resource changes", len(changes))

        return ChangeDocument(
            resource_changes=tuple(changes),
            format_version=_optional_str(plan.get("format_version")),
            terraform_version=_optional_str(plan.get("terraform_version")),
        )

    # ------------------------------------------------------------------
    def _normalize_change(self, change: Mapping[str, Any]) -> ResourceChange:
        section = change.get("change")
        if not isinstance(section, Mapping):
            section = {}

        before = section.get("before")
        after = section.get("after")

        return ResourceChange(
            address=str(change.get("address") or ""),
            type=str(change.get("type") or ""),
            name=str(change.get("name") or ""),
            module_path=self._module_path(change.get("module_address")),
            provider_name=change.get("provider_name"),
            mode=str(change.get("mode") or "managed"),
            index=change.get("index"),
            change_action=self._normalize_action(section.get("actions") or []),
            before=dict(before) if isinstance(before, Mapping) else None,
            after=dict(after) if isinstance(after, Mapping) else None,
            after_state=resolve_after(change),
        )

    def _module_path(self, module_address: Any) -> List[str]:
        if not isinstance(module_address, str) or not module_address:
            return []

        parts: List[str] = []
        for segment in module_address.split("."):
            if segment == "module":
                continue
            parts.append(segment)
        return parts

    def _normalize_action(self, actions: Iterable[str]) -> ChangeAction:
        action_list = list(actions)
        if not action_list:
            return ChangeAction.UNKNOWN

        if action_list == ["no-op"]:
            return ChangeAction.NOOP
        if action_list == ["create"]:
            return ChangeAction.CREATE
        if action_list == ["update"]:
            return ChangeAction.UPDATE
        if action_list == ["delete"]:
            return ChangeAction.DELETE
        if set(action_list) == {"delete", "create"}:
            return ChangeAction.REPLACE

        return ChangeAction.UNKNOWN


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def find_by_type(document: ChangeDocument, resource_type: str) -> List[ResourceChange]:
    """Return resource changes of ``resource_type`` in plan order (possibly empty)."""

    return document.find_by_type(resource_type)


def check_plan_document(plan: Any) -> Mapping[str, Any]:
    """Return ``plan`` unchanged if it is an object holding a ``resource_changes`` list.

    Raises :class:`PlanDocumentError` otherwise.
    """

    if not isinstance(plan, Mapping):
        raise PlanDocumentError("Plan document must be a JSON object")

    if "resource_changes" not in plan:
        raise PlanDocumentError("Plan document is missing 'resource_changes'")

    raw_changes = plan["resource_changes"]
    if not isinstance(raw_changes, list):
        raise PlanDocumentError(
            f"'resource_changes' must be a list, got {type(raw_changes).__name__}"
        )
    return plan
