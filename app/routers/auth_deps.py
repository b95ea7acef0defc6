"""
Caller identity dependencies.

Identity and role storage live upstream: the gateway authenticates the caller
and forwards `X-User-Id` / `X-User-Role`. These dependencies only read and
check them.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from fastapi import Depends, Header

from app.core.exceptions import AccessDeniedError, AuthenticationError

logger = logging.getLogger(__name__)


class UserRole(str, enum.Enum):
    HR_ADMIN = "hr_admin"
    HR_MANAGER = "hr_manager"
    MANAGER = "manager"
    EMPLOYEE = "employee"


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: UserRole


def get_current_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None)
) -> Actor:
    if not x_user_id or not x_user_role:
        logger.warning("Authentication failed: missing identity headers")
        raise AuthenticationError("Missing caller identity")
    try:
        role = UserRole(x_user_role.lower())
    except ValueError:
        logger.warning(f"Authentication failed: unknown role '{x_user_role}'")
        raise AuthenticationError(f"Unknown role '{x_user_role}'")
    return Actor(user_id=x_user_id, role=role)


def require_role(allowed_roles: List[UserRole]) -> Callable[..., Actor]:
    """Dependency factory restricting an endpoint to the given roles."""
    def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            logger.warning(f"Access denied for {actor.user_id} with role {actor.role.value}")
            raise AccessDeniedError(
                f"Role '{actor.role.value}' is not allowed to perform this action"
            )
        return actor
    return role_checker


require_hr = require_role([UserRole.HR_ADMIN, UserRole.HR_MANAGER])
require_approver = require_role([UserRole.HR_ADMIN, UserRole.HR_MANAGER, UserRole.MANAGER])
