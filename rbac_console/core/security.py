"""JWT bearer authentication and permission-key authorization helpers.

Token issuance and password hashing are thin wrappers: the console only
needs to hash passwords for admin-created users and to decode bearer
tokens issued by the authentication service.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from rbac_console.core.config import settings
from rbac_console.core.exceptions import AuthenticationError, AuthorizationError
from rbac_console.db.session import get_db
from rbac_console.models.user import User
from rbac_console.services.permission_service import permission_service

logger = logging.getLogger("rbac_console")

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def create_access_token(user_id: str, email: Optional[str] = None,
                        expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token whose subject is the user id."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode = {"sub": str(user_id), "exp": expire, "type": "access"}
    if email:
        to_encode["email"] = email
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> str:
    """Extract the acting user id from the JWT Bearer token.

    The user must still exist and be active; tokens of deactivated users
    are rejected.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")
    user = db.query(User).filter(User.id == str(user_id), User.is_active == True).first()
    if not user:
        raise AuthenticationError("User not found or deactivated")
    return user.id


class RequirePermission:
    """Dependency that checks the caller effectively holds a permission key.

    Returns the caller's user id so routes can thread it through commands
    as the acting principal.
    """

    def __init__(self, permission_key: str):
        self.permission_key = permission_key

    async def __call__(
        self,
        user_id: str = Depends(get_current_user_id),
        db: Session = Depends(get_db),
    ) -> str:
        if not permission_service.has_permission(db, user_id, self.permission_key):
            logger.warning("User %s denied: missing permission %s", user_id, self.permission_key)
            raise AuthorizationError(f"Permission '{self.permission_key}' required")
        return user_id


# Convenience dependency factories
require_roles_view = RequirePermission("roles.view")
require_roles_create = RequirePermission("roles.create")
require_roles_edit = RequirePermission("roles.edit")
require_roles_delete = RequirePermission("roles.delete")
require_users_view = RequirePermission("users.view")
require_users_create = RequirePermission("users.create")
require_users_edit = RequirePermission("users.edit")
require_users_delete = RequirePermission("users.delete")
require_permissions_view = RequirePermission("permissions.view")
require_system_view = RequirePermission("system.view")
require_system_manage = RequirePermission("system.manage")
