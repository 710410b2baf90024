from typing import FrozenSet, Optional

from fastapi import Depends, HTTPException

from copo.models.user import Role, User
from copo.security import get_current_user

def parse_role(value) -> Optional[Role]:
    try:
        return Role(value)
    except ValueError:
        return None

def role_allowed(role: Optional[Role], allowed: FrozenSet[Role]) -> bool:
    """Flat allow-list check. Roles do not inherit from each other."""
    if role is None:
        return False
    if role is Role.ADMIN:
        return Role.ADMIN in allowed
    if role is Role.HOD:
        return Role.HOD in allowed
    if role is Role.FACULTY:
        return Role.FACULTY in allowed
    if role is Role.STUDENT:
        return Role.STUDENT in allowed
    raise AssertionError(f"unhandled role {role!r}")

def require_roles(*roles: Role):
    """
    Route dependency gating a handler to a fixed set of roles.

    Anonymous requests get 401, authenticated users outside the set get 403.
    The current user is returned to the handler when the check passes.
    """
    allowed = frozenset(roles)

    async def checker(user: User = Depends(get_current_user)) -> User:
        if not role_allowed(parse_role(user.role), allowed):
            raise HTTPException(status_code=403, detail="Forbidden: Insufficient permissions")
        return user

    return checker

# Shared allow-lists
ADMIN_ONLY = require_roles(Role.ADMIN)
HOD_ONLY = require_roles(Role.HOD)
FACULTY_ONLY = require_roles(Role.FACULTY)
STUDENT_ONLY = require_roles(Role.STUDENT)
ADMIN_OR_HOD = require_roles(Role.ADMIN, Role.HOD)
FACULTY_OR_HOD = require_roles(Role.FACULTY, Role.HOD)
STAFF = require_roles(Role.ADMIN, Role.HOD, Role.FACULTY)
