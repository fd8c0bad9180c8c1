"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Header
from pymongo.database import Database

from ..domain.models import ActorContext
from ..domain.enums import AdminRole
from ..domain.errors import AuthenticationError, AuthorizationError
from ..repositories.mongo_client import get_database


def get_db() -> Database:
    """Database handle; overridden in tests"""
    return get_database()


async def get_admin_actor_dep(
    x_admin_id: Optional[str] = Header(None, alias="X-Admin-Id"),
    x_admin_username: Optional[str] = Header(None, alias="X-Admin-Username"),
    x_admin_role: Optional[str] = Header(None, alias="X-Admin-Role")
) -> ActorContext:
    """
    Admin identity as forwarded by the auth gateway
    
    Session handling lives in the gateway; this only checks that an admin
    identity is present and carries an admin role.
    
    Raises:
        AuthenticationError: identity headers missing
        AuthorizationError: role is not an admin role
    """
    if not x_admin_id or not x_admin_username:
        raise AuthenticationError("Admin authentication required")
    
    try:
        role = AdminRole((x_admin_role or "").strip().lower())
    except ValueError:
        raise AuthorizationError(
            "Admin role required",
            details={"role": x_admin_role}
        )
    
    return ActorContext(admin_id=x_admin_id, username=x_admin_username, role=role)
