"""
Shared validators for identifiers and JSON snapshots.
"""

import uuid
from collections.abc import Mapping
from typing import Any


def is_uuid(value: Any) -> bool:
    """True if value is a UUID or its canonical string form."""
    if isinstance(value, uuid.UUID):
        return True
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False


def has_circular_reference(value: Any) -> bool:
    """
    Detect a container that (directly or indirectly) contains itself.

    Only the current path is tracked, so the same object shared by two
    siblings is not a cycle.
    """
    path: set[int] = set()

    def walk(node: Any) -> bool:
        if isinstance(node, Mapping):
            children = node.values()
        elif isinstance(node, (list, tuple, set, frozenset)):
            children = node
        else:
            return False

        marker = id(node)
        if marker in path:
            return True
        path.add(marker)
        try:
            return any(walk(child) for child in children)
        finally:
            path.discard(marker)

    return walk(value)

