"""Resource models used by the policy validator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ChangeAction(str, Enum):
    """Enumeration of the planned action for a Terraform resource."""

    NOOP = "no-op"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REPLACE = "replace"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ResourceChange:
    """One ``resource_changes`` entry of a Terraform plan.

    ``after`` is the raw value found in the plan (``None`` for resources that
    are being destroyed) while ``after_state`` is always a mapping so policy
    checks can read attributes without guarding against missing sections.
    """

    address: str
    type: str = ""
    name: str = ""
    module_path: List[str] = field(default_factory=list)
    provider_name: Optional[str] = None
    mode: str = "managed"
    index: Optional[str | int] = None
    change_action: ChangeAction = ChangeAction.UNKNOWN
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    after_state: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_module_root(self) -> bool:
        """Return ``True`` when the resource is defined at the root module."""

        return not self.module_path


@dataclass(frozen=True, slots=True)
class ChangeDocument:
    """Parsed Terraform plan holding resource changes in encounter order."""

    resource_changes: Tuple[ResourceChange, ...] = ()
    format_version: Optional[str] = None
    terraform_version: Optional[str] = None

    def find_by_type(self, resource_type: str) -> List[ResourceChange]:
        """Return every resource change of ``resource_type``, preserving plan order."""

        return [change for change in self.resource_changes if change.type == resource_type]

    def has_type(self, resource_type: str) -> bool:
        return any(change.type == resource_type for change in self.resource_changes)

    def __len__(self) -> int:
        return len(self.resource_changes)
