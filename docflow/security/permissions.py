"""
DocFlow Permissions — Role → capability matrix.

Every role-dependent decision in the workflow goes through
``has_capability`` / ``require_capability`` instead of comparing role
names inline. Ownership (creator == actor) is checked separately by the
services; capabilities only describe what a role may do on top of that.

    Capability                 user  approver  admin
    decide                              x        x
    manage_any_document                          x
    edit_locked_document                         x
    delete_approved_document                     x
    view_all_stats                               x
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Union

from docflow.engine.errors import DocFlowSecurityError, DocFlowValidationError
from docflow.engine.logging import log, log_security_event

logger = logging.getLogger("docflow.security.permissions")


class Role(str, Enum):
    USER = "user"
    APPROVER = "approver"
    ADMIN = "admin"


class Capability(str, Enum):
    DECIDE = "decide"
    MANAGE_ANY_DOCUMENT = "manage_any_document"
    EDIT_LOCKED_DOCUMENT = "edit_locked_document"
    DELETE_APPROVED_DOCUMENT = "delete_approved_document"
    VIEW_ALL_STATS = "view_all_stats"


PERMISSION_MATRIX: Dict[Role, FrozenSet[Capability]] = {
    Role.USER: frozenset(),
    Role.APPROVER: frozenset({Capability.DECIDE}),
    Role.ADMIN: frozenset(Capability),
}


def coerce_role(role: Union[Role, str]) -> Role:
    """Accept a Role or its string value; unknown values are a validation error."""
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        raise DocFlowValidationError(
            f"Unknown role '{role}'",
            validation_errors=[{"field": "role", "error": "not one of user/approver/admin"}],
        ) from None


def has_capability(role: Union[Role, str], capability: Capability) -> bool:
    """True if the role's row in the matrix grants the capability."""
    return capability in PERMISSION_MATRIX[coerce_role(role)]


def require_capability(
    role: Union[Role, str],
    capability: Capability,
    message: str,
    *,
    actor_id: Optional[str] = None,
    object_type: str = "documents",
    operation: str = "",
    **context: Any,
) -> None:
    """Raise DocFlowSecurityError (and log the denial) unless the role has the capability."""
    if has_capability(role, capability):
        return
    deny(
        message,
        actor_id=actor_id,
        actor_role=coerce_role(role).value,
        object_type=object_type,
        operation=operation,
        required_capability=capability.value,
        **context,
    )


def deny(
    message: str,
    *,
    actor_id: Optional[str],
    actor_role: Optional[str],
    object_type: str,
    operation: str,
    required_capability: Optional[str] = None,
    **context: Any,
) -> None:
    """Record a denied access in the security log and raise Forbidden."""
    document_id = context.get("document_id")
    logger.warning(
        f"Denied {operation} for actor={actor_id} role={actor_role} "
        f"document={document_id}: {message}"
    )
    log(log_security_event(
        event="access_denied",
        object_type=object_type,
        operation=operation,
        actor_id=actor_id,
        actor_role=actor_role,
        document_id=document_id,
        required_capability=required_capability,
        reason=message,
    ))
    raise DocFlowSecurityError(
        message,
        actor_id=actor_id,
        actor_role=actor_role,
        required_capability=required_capability,
        operation=operation,
        **context,
    )
