"""Helpers for reading Terraform plan JSON whose block shapes drift between versions.

Nested blocks such as ``versioning_configuration`` or ``rule`` are rendered as
a single object by some provider/schema versions and as a list holding one
object by others. Every policy reads nested blocks through :func:`first_object`
so both shapes are accepted.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


def first_object(value: Any) -> Optional[Mapping[str, Any]]:
    """Return ``value`` as a mapping, unwrapping a leading list element if needed.

    Mappings are returned unchanged. A non-empty list or tuple whose first
    element is a mapping yields that element. Anything else yields ``None``.
    """

    if isinstance(value, Mapping):
        return value

    if isinstance(value, (list, tuple)) and value:
        head = value[0]
        if isinstance(head, Mapping):
            return head

    return None


def resolve_after(change: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the planned end state of a raw ``resource_changes`` entry.

    Resources being destroyed carry ``after: null``; those, and entries with
    a malformed ``change`` section, resolve to an empty mapping.
    """

    section = change.get("change") if isinstance(change, Mapping) else None
    if not isinstance(section, Mapping):
        return {}

    after = section.get("after")
    if not isinstance(after, Mapping):
        return {}

    return dict(after)


__all__ = ["first_object", "resolve_after"]
