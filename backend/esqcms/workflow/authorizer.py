"""
Role/ownership gate for workflow transitions. Pure: no I/O, no side effects.
"""
import uuid
from dataclasses import dataclass

from esqcms.db.models import UserRole
from esqcms.workflow.errors import AuthorizationError
from esqcms.workflow.transitions import Transition


@dataclass(frozen=True)
class Actor:
    """Verified identity of the caller"""
    id: uuid.UUID
    role: UserRole


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: str = ""


REQUIRED_ROLES: dict[Transition, UserRole] = {
    Transition.SUBMIT: UserRole.INSPECTOR,
    Transition.RESUBMIT: UserRole.INSPECTOR,
    Transition.REQUEST_REVISION: UserRole.SUPERVISOR,
    Transition.EDIT_DURING_REVISION: UserRole.OPERATOR,
    Transition.CHECK: UserRole.SUPERVISOR,
    Transition.APPROVE: UserRole.SUPERVISOR,
}

OWNER_ONLY: frozenset[Transition] = frozenset({Transition.SUBMIT, Transition.RESUBMIT})

_DENIAL_MESSAGES: dict[Transition, str] = {
    Transition.SUBMIT: "Only inspectors can submit checksheets",
    Transition.RESUBMIT: "Only inspectors can resubmit checksheets",
    Transition.REQUEST_REVISION: "Only supervisors can request revision",
    Transition.EDIT_DURING_REVISION: "Only administrators can edit checksheets during revision",
    Transition.CHECK: "Only supervisors can check checksheets",
    Transition.APPROVE: "Only supervisors can approve checksheets",
}


def authorize(role: UserRole, transition: Transition, is_owner: bool) -> AuthorizationDecision:
    if role != REQUIRED_ROLES[transition]:
        return AuthorizationDecision(False, _DENIAL_MESSAGES[transition])
    if transition in OWNER_ONLY and not is_owner:
        return AuthorizationDecision(False, f"You can only {transition.value} your own checksheet")
    return AuthorizationDecision(True)


def ensure_authorized(role: UserRole, transition: Transition, is_owner: bool) -> None:
    """Raise AuthorizationError unless ``authorize`` allows the transition."""
    decision = authorize(role, transition, is_owner)
    if not decision.allowed:
        raise AuthorizationError(
            decision.reason,
            role=role.value,
            transition=transition.value,
        )
