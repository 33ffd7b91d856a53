"""Reporting-line cycle detection over an ``id -> manager_id`` lookup."""

from __future__ import annotations

import uuid
from typing import Mapping, Optional


def would_create_cycle(
    manager_of: Mapping[uuid.UUID, Optional[uuid.UUID]],
    employee_id: uuid.UUID,
    proposed_manager_id: uuid.UUID,
) -> bool:
    """True if making ``proposed_manager_id`` the manager of ``employee_id``
    closes a loop, i.e. ``employee_id`` is the proposed manager or one of
    their ancestors.

    The walk stops on a repeated node so corrupt data that already holds a
    cycle cannot spin forever.
    """
    visited: set[uuid.UUID] = set()
    current: Optional[uuid.UUID] = proposed_manager_id
    while current is not None:
        if current in visited:
            return False
        visited.add(current)
        if current == employee_id:
            return True
        current = manager_of.get(current)
    return False
