"""Leave request state machine.

A closed transition table keyed by ``(current status, action)``. Each entry
names the gate (who may perform it) and the target status. A target of
``None`` means "restore ``status_before_cancellation``".

    PENDING_MANAGER  --approve(manager)-->  APPROVED_BY_MANAGER
    PENDING_MANAGER  --deny(manager)----->  DENIED
    PENDING_MANAGER  --withdraw(owner)--->  CANCELLED
    APPROVED_BY_MANAGER / PENDING_ADMIN --approve(admin)--> APPROVED_BY_ADMIN
    APPROVED_BY_MANAGER / PENDING_ADMIN --deny(admin)-----> DENIED
    APPROVED_BY_MANAGER --withdraw(owner)--> CANCELLED
    APPROVED_BY_ADMIN --request_cancellation(owner)--> CANCELLATION_PENDING_MANAGER
        (CANCELLATION_PENDING_ADMIN instead when manager approval is bypassed)
    CANCELLATION_PENDING_MANAGER --approve_cancellation(manager)--> CANCELLATION_PENDING_ADMIN
    CANCELLATION_PENDING_ADMIN   --approve_cancellation(admin)----> CANCELLED
    CANCELLATION_PENDING_*       --reject_cancellation(same gate)-> restored status

DENIED and CANCELLED are terminal.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

from leaveflow.common.constants import (
    ADMIN_ROLES,
    TERMINAL_STATUSES,
    LeaveStatus,
    UserRole,
)
from leaveflow.common.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
)


class LeaveAction(str, enum.Enum):
    approve = "approve"
    deny = "deny"
    withdraw = "withdraw"
    request_cancellation = "request_cancellation"
    approve_cancellation = "approve_cancellation"
    reject_cancellation = "reject_cancellation"


class Gate(str, enum.Enum):
    owner = "owner"        # the employee who filed the request
    manager = "manager"    # the owner's manager, or any admin
    admin = "admin"        # admin / super_admin only


@dataclass(frozen=True)
class Transition:
    gate: Gate
    target: Optional[LeaveStatus]


_S = LeaveStatus
_A = LeaveAction

TRANSITIONS: dict[tuple[LeaveStatus, LeaveAction], Transition] = {
    (_S.PENDING_MANAGER, _A.approve): Transition(Gate.manager, _S.APPROVED_BY_MANAGER),
    (_S.PENDING_MANAGER, _A.deny): Transition(Gate.manager, _S.DENIED),
    (_S.PENDING_MANAGER, _A.withdraw): Transition(Gate.owner, _S.CANCELLED),
    (_S.APPROVED_BY_MANAGER, _A.approve): Transition(Gate.admin, _S.APPROVED_BY_ADMIN),
    (_S.APPROVED_BY_MANAGER, _A.deny): Transition(Gate.admin, _S.DENIED),
    (_S.APPROVED_BY_MANAGER, _A.withdraw): Transition(Gate.owner, _S.CANCELLED),
    (_S.PENDING_ADMIN, _A.approve): Transition(Gate.admin, _S.APPROVED_BY_ADMIN),
    (_S.PENDING_ADMIN, _A.deny): Transition(Gate.admin, _S.DENIED),
    (_S.APPROVED_BY_ADMIN, _A.request_cancellation): Transition(
        Gate.owner, _S.CANCELLATION_PENDING_MANAGER,
    ),
    (_S.CANCELLATION_PENDING_MANAGER, _A.approve_cancellation): Transition(
        Gate.manager, _S.CANCELLATION_PENDING_ADMIN,
    ),
    (_S.CANCELLATION_PENDING_MANAGER, _A.reject_cancellation): Transition(Gate.manager, None),
    (_S.CANCELLATION_PENDING_ADMIN, _A.approve_cancellation): Transition(Gate.admin, _S.CANCELLED),
    (_S.CANCELLATION_PENDING_ADMIN, _A.reject_cancellation): Transition(Gate.admin, None),
}

# Target statuses accepted by the generic "set status" operation
_STATUS_UPDATE_ACTIONS: dict[LeaveStatus, LeaveAction] = {
    _S.APPROVED_BY_MANAGER: _A.approve,
    _S.APPROVED_BY_ADMIN: _A.approve,
    _S.DENIED: _A.deny,
}


def resolve(current: LeaveStatus, action: LeaveAction) -> Transition:
    """Look up the transition or raise InvalidTransitionException."""
    transition = TRANSITIONS.get((current, action))
    if transition is None or current in TERMINAL_STATUSES:
        raise InvalidTransitionException(current, action.value.replace("_", " "))
    return transition


def action_for_target(current: LeaveStatus, target: LeaveStatus) -> LeaveAction:
    """Map a requested target status onto the action that reaches it.

    Only approve/deny style targets are accepted here; the transition must
    also exist from ``current`` and land exactly on ``target``.
    """
    action = _STATUS_UPDATE_ACTIONS.get(target)
    if action is None:
        raise InvalidTransitionException(current, f"move to {target.value}")
    transition = resolve(current, action)
    if transition.target is not target:
        raise InvalidTransitionException(current, f"move to {target.value}")
    return action


def authorize(
    gate: Gate,
    *,
    actor_id: uuid.UUID,
    actor_role: UserRole,
    owner_id: uuid.UUID,
    owner_manager_id: Optional[uuid.UUID],
) -> None:
    """Raise ForbiddenException unless the actor passes the gate."""
    is_admin = actor_role in ADMIN_ROLES
    if gate is Gate.owner:
        allowed = actor_id == owner_id
        detail = "You can only act on your own leave requests."
    elif gate is Gate.manager:
        allowed = is_admin or (
            owner_manager_id is not None and actor_id == owner_manager_id
        )
        detail = "Only the employee's manager or an admin can perform this action."
    else:
        allowed = is_admin
        detail = "Only an admin can perform this action."
    if not allowed:
        raise ForbiddenException(detail)


def acting_as_manager(
    gate: Gate,
    *,
    actor_id: uuid.UUID,
    owner_manager_id: Optional[uuid.UUID],
) -> bool:
    """True when a manager-gated action is being taken by the actual manager."""
    return gate is Gate.manager and owner_manager_id is not None and actor_id == owner_manager_id
